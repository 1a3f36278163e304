"""Health check and version endpoints."""
import logging
import os

from fastapi import APIRouter, Request

from oraclenet.api.models import HealthResponse, VersionResponse
from oraclenet.auth.identity import IdentityResolver
from oraclenet.config import SERVICE_VERSION
from oraclenet.db.session import get_db_session

log = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/healthz", response_model=HealthResponse)
async def healthz(request: Request) -> HealthResponse:
    """Health check endpoint.

    Returns service status, identity count and pending challenges.
    """
    state = request.app.state
    try:
        with get_db_session() as db:
            oracles = IdentityResolver(db).count()
    except Exception as e:
        log.warning(f"Health check warning: {e}")
        oracles = 0

    return HealthResponse(
        ok=True,
        service="oraclenet-auth",
        oracles=oracles,
        pending_github=state.github_challenges.challenge_count,
        pending_siwe=state.siwe_challenges.challenge_count,
    )


@router.get("/version", response_model=VersionResponse)
async def version() -> VersionResponse:
    """Return the service version and deployed git commit."""
    return VersionResponse(version=SERVICE_VERSION, git_sha=os.getenv("GIT_SHA", "unknown"))
