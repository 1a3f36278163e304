"""OracleNet auth FastAPI application."""
import asyncio
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from oraclenet.api import github, health, oracles, siwe
from oraclenet.audit.logger import AuditLogger
from oraclenet.auth.challenge import InMemoryChallengeStore
from oraclenet.auth.exceptions import VerificationFailed, VerificationRejected
from oraclenet.auth.github import GitHubClient
from oraclenet.auth.github_flow import GitHubVerificationFlow
from oraclenet.auth.siwe import SiweVerificationFlow
from oraclenet.auth.tokens import InMemoryTokenStore
from oraclenet.config import (
    AUDIT_ENABLED,
    CHALLENGE_CLEANUP_INTERVAL,
    GITHUB_CHALLENGE_TTL_SECONDS,
    SERVICE_VERSION,
    SIWE_CHALLENGE_TTL_SECONDS,
)
from oraclenet.db.session import init_database
from oraclenet.logging_config import configure_logging

configure_logging()
log = logging.getLogger("oraclenet-auth")


async def _cleanup_task(app: FastAPI):
    """Periodically sweep expired challenges and tokens."""
    while True:
        await asyncio.sleep(CHALLENGE_CLEANUP_INTERVAL)
        try:
            removed = await app.state.github_challenges.cleanup_expired()
            removed += await app.state.siwe_challenges.cleanup_expired()
            removed += await app.state.tokens.cleanup_expired()
            if removed > 0:
                log.debug(f"Cleanup: removed {removed} expired entries")
        except Exception as e:
            log.error(f"Cleanup error: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    log.info("Starting OracleNet auth service...")

    try:
        init_database()
    except Exception as e:
        log.error(f"Failed to initialize database: {e}")
        raise

    cleanup_task = asyncio.create_task(_cleanup_task(app))
    log.info(f"Cleanup task started (interval: {CHALLENGE_CLEANUP_INTERVAL}s)")
    log.info("OracleNet auth service started")

    yield

    log.info("Shutting down OracleNet auth service...")
    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass
    log.info("OracleNet auth service stopped")


async def verification_rejected_handler(request: Request, exc: VerificationRejected):
    """Soft failure: HTTP 200 so callers can tell "try again" from a bad request."""
    content = {"success": False, "error": exc.message}
    if exc.hint:
        content["hint"] = exc.hint
    return JSONResponse(status_code=200, content=content)


async def verification_failed_handler(request: Request, exc: VerificationFailed):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message},
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": "Invalid request",
            "details": [
                {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
                for err in exc.errors()
            ],
        },
    )


async def request_logging(request: Request, call_next):
    """Log all requests with timing."""
    start = time.time()
    response = await call_next(request)
    duration_ms = int((time.time() - start) * 1000)

    log.info(
        f"request_complete status={response.status_code} duration_ms={duration_ms}",
        extra={
            "route": request.url.path,
            "method": request.method,
            "status": response.status_code,
            "remote_addr": request.client.host if request.client else None,
        },
    )
    return response


def create_app(github_client: GitHubClient | None = None) -> FastAPI:
    """Build the application with its own stores and flows.

    Args:
        github_client: GitHub API client (tests pass one with a mock transport)
    """
    app = FastAPI(
        title="OracleNet Auth",
        version=SERVICE_VERSION,
        description="OracleNet identity verification service",
        lifespan=lifespan,
    )

    github_challenges = InMemoryChallengeStore("github", GITHUB_CHALLENGE_TTL_SECONDS)
    siwe_challenges = InMemoryChallengeStore("siwe", SIWE_CHALLENGE_TTL_SECONDS)
    tokens = InMemoryTokenStore()

    app.state.github_challenges = github_challenges
    app.state.siwe_challenges = siwe_challenges
    app.state.tokens = tokens
    app.state.audit = AuditLogger(enabled=AUDIT_ENABLED)
    app.state.github_flow = GitHubVerificationFlow(
        github_client or GitHubClient(), github_challenges, tokens
    )
    app.state.siwe_flow = SiweVerificationFlow(siwe_challenges, tokens)

    app.include_router(health.router)
    app.include_router(github.router)
    app.include_router(siwe.router)
    app.include_router(oracles.router)

    app.middleware("http")(request_logging)
    app.add_exception_handler(VerificationRejected, verification_rejected_handler)
    app.add_exception_handler(VerificationFailed, verification_failed_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    return app


app = create_app()
