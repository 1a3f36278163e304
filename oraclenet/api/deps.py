"""Request-scoped access to the components built by create_app()."""
from fastapi import Request

from oraclenet.audit.logger import AuditLogger
from oraclenet.auth.github_flow import GitHubVerificationFlow
from oraclenet.auth.siwe import SiweVerificationFlow
from oraclenet.auth.tokens import TokenStore


def get_github_flow(request: Request) -> GitHubVerificationFlow:
    return request.app.state.github_flow


def get_siwe_flow(request: Request) -> SiweVerificationFlow:
    return request.app.state.siwe_flow


def get_token_store(request: Request) -> TokenStore:
    return request.app.state.tokens


def get_audit(request: Request) -> AuditLogger:
    return request.app.state.audit
