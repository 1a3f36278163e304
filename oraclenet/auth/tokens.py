"""Opaque bearer credentials for verified Oracles.

A successful verification ends with a token bound to the resolved identity.
Tokens are random strings held server-side; the client only ever sees the
token itself.

Note: InMemoryTokenStore is per-instance and tokens are lost on restart.
"""

import asyncio
import logging
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from oraclenet.config import TOKEN_TTL_SECONDS

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class BearerToken:
    """Server-side token record.

    Attributes:
        token: Cryptographically random token string
        oracle_id: Identity the token authenticates
        created_at: When the token was issued
        expires_at: When the token stops being accepted
    """

    token: str
    oracle_id: str
    created_at: datetime
    expires_at: datetime

    @property
    def is_expired(self) -> bool:
        return datetime.now(timezone.utc) > self.expires_at


class TokenStore(ABC):
    """Abstract interface for token storage."""

    @abstractmethod
    async def create(self, oracle_id: str) -> BearerToken:
        """Issue a new token for oracle_id."""
        ...

    @abstractmethod
    async def get(self, token: str) -> BearerToken | None:
        """Return the token record, or None if unknown or expired."""
        ...

    @abstractmethod
    async def cleanup_expired(self) -> int:
        """Remove all expired tokens and return how many were removed."""
        ...


class InMemoryTokenStore(TokenStore):
    """asyncio-locked in-memory token store."""

    def __init__(self, ttl_seconds: int = TOKEN_TTL_SECONDS) -> None:
        self.ttl_seconds = ttl_seconds
        self._tokens: dict[str, BearerToken] = {}
        self._lock = asyncio.Lock()

    async def create(self, oracle_id: str) -> BearerToken:
        # 32 bytes = 256 bits
        token = secrets.token_urlsafe(32)
        now = datetime.now(timezone.utc)
        record = BearerToken(
            token=token,
            oracle_id=oracle_id,
            created_at=now,
            expires_at=now + timedelta(seconds=self.ttl_seconds),
        )

        async with self._lock:
            self._tokens[token] = record

        log.debug(f"Issued token {token[:8]}... for oracle {oracle_id}")
        return record

    async def get(self, token: str) -> BearerToken | None:
        async with self._lock:
            record = self._tokens.get(token)
            if record is None:
                return None
            if record.is_expired:
                del self._tokens[token]
                log.debug(f"Token {token[:8]}... expired")
                return None
            return record

    async def cleanup_expired(self) -> int:
        now = datetime.now(timezone.utc)

        async with self._lock:
            expired = [t for t, r in self._tokens.items() if r.expires_at < now]
            for t in expired:
                del self._tokens[t]

        if expired:
            log.info(f"Cleaned up {len(expired)} expired tokens")

        return len(expired)
