"""Wallet (Sign-In With Ethereum) verification endpoints."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from oraclenet.api.deps import get_audit, get_siwe_flow
from oraclenet.api.models import (
    SiweCheckResponse,
    SiweNonceRequest,
    SiweNonceResponse,
    SiweVerifyRequest,
    SiweVerifyResponse,
    oracle_brief,
    oracle_response,
)
from oraclenet.audit.logger import AuditLogger
from oraclenet.auth.exceptions import VerificationFailed
from oraclenet.auth.siwe import SiweVerificationFlow
from oraclenet.db.session import get_db

log = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth/siwe", tags=["auth"])


@router.post("/nonce", response_model=SiweNonceResponse)
async def siwe_nonce(
    body: SiweNonceRequest,
    request: Request,
    flow: SiweVerificationFlow = Depends(get_siwe_flow),
    audit: AuditLogger = Depends(get_audit),
) -> SiweNonceResponse:
    """Issue a nonce and the message the wallet must sign (valid 5 minutes)."""
    try:
        issued = await flow.issue_nonce(body.address)
    except VerificationFailed as e:
        audit.log_verification(
            "auth.siwe.nonce", body.address, status="error",
            details={"error": e.message}, request=request,
        )
        raise

    audit.log_verification("auth.siwe.nonce", body.address.lower(), request=request)
    return SiweNonceResponse(
        nonce=issued.nonce,
        message=issued.message,
        timestamp=issued.timestamp,
        expires_in=issued.expires_in,
    )


@router.post("/verify", response_model=SiweVerifyResponse)
async def siwe_verify(
    body: SiweVerifyRequest,
    request: Request,
    flow: SiweVerificationFlow = Depends(get_siwe_flow),
    audit: AuditLogger = Depends(get_audit),
    db: Session = Depends(get_db),
) -> SiweVerifyResponse:
    """Verify the signed message and find or create the wallet's identity.

    New wallet identities start unapproved.
    """
    try:
        verified = await flow.verify(db, body.address, body.signature, body.name)
    except VerificationFailed as e:
        audit.log_verification(
            "auth.siwe.verify", body.address, status="error" if e.status_code >= 500 else "denied",
            details={"error": e.message}, request=request,
        )
        raise

    audit.log_verification(
        "auth.siwe.verify", verified.oracle.wallet_address,
        resource=f"oracle:{verified.oracle.id}", details={"created": verified.created}, request=request,
    )
    return SiweVerifyResponse(
        created=verified.created,
        oracle=oracle_response(verified.oracle),
        token=verified.token,
    )


@router.get("/check", response_model=SiweCheckResponse, response_model_exclude_none=True)
async def siwe_check(
    address: Optional[str] = Query(None, description="0x-prefixed wallet address"),
    flow: SiweVerificationFlow = Depends(get_siwe_flow),
    db: Session = Depends(get_db),
) -> SiweCheckResponse:
    """Report whether a wallet already has an identity. Read-only."""
    oracle = flow.check(db, address)
    return SiweCheckResponse(
        registered=oracle is not None,
        address=address.lower(),
        oracle=oracle_brief(oracle) if oracle is not None else None,
    )
