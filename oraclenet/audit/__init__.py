"""Audit logging module for OracleNet."""

from oraclenet.audit.logger import AuditEvent, AuditLogger

__all__ = [
    "AuditLogger",
    "AuditEvent",
]
