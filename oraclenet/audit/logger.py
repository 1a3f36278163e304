"""Audit trail for verification events.

Every start/nonce/verify request leaves one event naming the external
identifier being verified and whether it succeeded, was denied, or errored.
Events go to the "audit" logger and into a bounded in-memory buffer.
"""

import logging
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from fastapi import Request

log = logging.getLogger("audit")

CORRELATION_HEADERS = ("X-Request-ID", "X-Correlation-ID", "Request-Id")


@dataclass
class AuditEvent:
    """One verification step."""

    action: str  # "auth.github.start", "auth.siwe.verify", ...
    principal: str = "anonymous"  # GitHub login or wallet address
    resource: str | None = None  # "issue:42", "oracle:<id>"
    status: str = "success"  # "success", "denied", "error"
    details: dict[str, Any] | None = None
    request_id: str | None = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class AuditLogger:
    """Writes audit events and keeps the most recent ones for inspection."""

    MAX_BUFFER_SIZE = 1000

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._events: deque[dict] = deque(maxlen=self.MAX_BUFFER_SIZE)

    def log(self, event: AuditEvent) -> None:
        if not self.enabled:
            return

        record = asdict(event)
        self._events.append(record)

        extra = {"type": "audit"}
        extra.update({k: v for k, v in record.items() if v is not None and k != "timestamp"})
        level = logging.INFO if event.status == "success" else logging.WARNING
        log.log(level, f"audit: {event.action} {event.status}", extra=extra)

    def log_verification(
        self,
        action: str,
        principal: str | None,
        status: str = "success",
        resource: str | None = None,
        details: dict[str, Any] | None = None,
        request: Request | None = None,
    ) -> None:
        """Record one step of a verification flow.

        Args:
            action: Event name (e.g., "auth.github.start")
            principal: External identifier being verified, if known
            status: "success", "denied" (rejected proof) or "error"
            resource: Affected resource (issue, oracle id)
            details: Extra context; never secrets
            request: Source of the correlation id
        """
        self.log(
            AuditEvent(
                action=action,
                principal=principal or "anonymous",
                resource=resource,
                status=status,
                details=details,
                request_id=correlation_id(request),
            )
        )

    def get_recent_events(
        self,
        limit: int = 100,
        action_filter: str | None = None,
        status_filter: str | None = None,
    ) -> list[dict]:
        """Newest-first events, optionally filtered by action prefix and status."""
        matches = (
            e for e in reversed(self._events)
            if (not action_filter or e["action"].startswith(action_filter))
            and (not status_filter or e["status"] == status_filter)
        )
        return [e for _, e in zip(range(limit), matches)]


def correlation_id(request: Request | None) -> str | None:
    if request is None:
        return None
    for header in CORRELATION_HEADERS:
        value = request.headers.get(header)
        if value:
            return value
    return None
