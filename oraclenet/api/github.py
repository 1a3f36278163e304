"""GitHub social verification endpoints."""
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from oraclenet.api.deps import get_audit, get_github_flow
from oraclenet.api.models import (
    GitHubRecord,
    GitHubStartRequest,
    GitHubStartResponse,
    GitHubVerifyRequest,
    GitHubVerifyResponse,
)
from oraclenet.audit.logger import AuditLogger
from oraclenet.auth.exceptions import VerificationFailed, VerificationRejected
from oraclenet.auth.github_flow import GitHubVerificationFlow, describe_duration
from oraclenet.db.session import get_db

log = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth/github", tags=["auth"])


@router.post("/start", response_model=GitHubStartResponse)
async def github_start(
    body: GitHubStartRequest,
    request: Request,
    flow: GitHubVerificationFlow = Depends(get_github_flow),
    audit: AuditLogger = Depends(get_audit),
) -> GitHubStartResponse:
    """Issue a verification code for an Oracle announcement issue.

    The issue must live in the allowed repository and carry the
    announcement label. The caller then posts `verify:<code>` on it.
    """
    try:
        issued = await flow.start(body.issue_url)
    except VerificationFailed as e:
        audit.log_verification(
            "auth.github.start", None, status="error",
            details={"issue_url": body.issue_url, "error": e.message}, request=request,
        )
        raise

    audit.log_verification(
        "auth.github.start", issued.author,
        resource=f"issue:{issued.issue_number}", request=request,
    )
    return GitHubStartResponse(
        code=issued.code,
        message=issued.instruction,
        issue_url=issued.issue_url,
        oracle_name=issued.oracle_name,
        author=issued.author,
        expires_in=describe_duration(issued.expires_in_seconds),
    )


@router.post("/verify", response_model=GitHubVerifyResponse)
async def github_verify(
    body: GitHubVerifyRequest,
    request: Request,
    flow: GitHubVerificationFlow = Depends(get_github_flow),
    audit: AuditLogger = Depends(get_audit),
    db: Session = Depends(get_db),
) -> GitHubVerifyResponse:
    """Complete verification once the author's `verify:<code>` comment is posted.

    Returns `success: false` with HTTP 200 when the code is invalid or the
    comment is not there yet.
    """
    try:
        verified = await flow.verify(db, body.issue_url, body.code)
    except VerificationRejected as e:
        audit.log_verification(
            "auth.github.verify", None, status="denied",
            details={"issue_url": body.issue_url, "reason": e.message}, request=request,
        )
        raise
    except VerificationFailed as e:
        audit.log_verification(
            "auth.github.verify", None, status="error",
            details={"issue_url": body.issue_url, "error": e.message}, request=request,
        )
        raise

    oracle = verified.oracle
    audit.log_verification(
        "auth.github.verify", oracle.github_username,
        resource=f"oracle:{oracle.id}", details={"created": verified.created}, request=request,
    )
    return GitHubVerifyResponse(
        token=verified.token,
        created=verified.created,
        oracle_name=oracle.name,
        approved=oracle.approved,
        record=GitHubRecord(
            id=oracle.id,
            name=oracle.name,
            github_username=oracle.github_username,
            approved=oracle.approved,
        ),
    )
