"""Identity lookup for bearer token holders."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from oraclenet.api.deps import get_token_store
from oraclenet.api.models import OracleResponse, oracle_response
from oraclenet.auth.identity import IdentityResolver
from oraclenet.auth.tokens import TokenStore
from oraclenet.db.session import get_db

log = logging.getLogger(__name__)
router = APIRouter(prefix="/api/oracles", tags=["oracles"])


def _extract_token(authorization: Optional[str]) -> Optional[str]:
    """Accept either "Bearer <token>" or the raw token."""
    if not authorization:
        return None
    scheme, _, rest = authorization.strip().partition(" ")
    if rest and scheme.lower() == "bearer":
        return rest.strip() or None
    return authorization.strip()


@router.get("/me", response_model=OracleResponse)
async def get_me(
    authorization: Optional[str] = Header(None),
    tokens: TokenStore = Depends(get_token_store),
    db: Session = Depends(get_db),
) -> OracleResponse:
    """Return the identity the presented token was issued for."""
    token = _extract_token(authorization)
    if token is None:
        raise HTTPException(status_code=401, detail="Missing bearer token")

    record = await tokens.get(token)
    if record is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    oracle = IdentityResolver(db).get(record.oracle_id)
    if oracle is None:
        log.warning(f"Token {token[:8]}... refers to missing oracle {record.oracle_id}")
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    return oracle_response(oracle)
