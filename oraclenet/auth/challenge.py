"""Expiring, single-use challenge storage.

A challenge binds a short random secret to a subject key (a GitHub issue
number or a lowercase wallet address). At most one live challenge exists per
subject; issuing again overwrites the previous one.

Expiry is enforced lazily on read. The periodic sweep started by the app
lifespan only bounds memory; it is not relied on for correctness.

Note: InMemoryChallengeStore is per-process. For multi-instance deployments,
implement a Redis-backed ChallengeStore.
"""

import asyncio
import logging
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from oraclenet.config import CHALLENGE_MAX_ENTRIES, CHALLENGE_SECRET_BYTES

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_secret(nbytes: int = CHALLENGE_SECRET_BYTES) -> str:
    """Generate a hex-encoded random challenge secret."""
    return secrets.token_hex(nbytes)


def _matches(challenge: "Challenge", secret: str) -> bool:
    # Bytes, so non-ASCII input compares unequal instead of raising
    return secrets.compare_digest(challenge.secret.encode(), secret.encode())


# =============================================================================
# CHALLENGE DATACLASS
# =============================================================================


@dataclass(frozen=True)
class Challenge:
    """A pending verification secret.

    Attributes:
        subject_key: What is being verified (issue number, wallet address)
        secret: Random code or nonce the caller must echo back
        issued_at: When the challenge was issued
        expires_at: issued_at + store TTL
    """

    subject_key: str
    secret: str
    issued_at: datetime
    expires_at: datetime

    @property
    def is_expired(self) -> bool:
        return _utcnow() > self.expires_at

    @property
    def ttl_seconds(self) -> int:
        """Remaining time-to-live in seconds."""
        remaining = (self.expires_at - _utcnow()).total_seconds()
        return max(0, int(remaining))


# =============================================================================
# CHALLENGE STORE INTERFACE
# =============================================================================


class ChallengeStore(ABC):
    """Abstract interface for challenge storage.

    Implementations must make every read-modify-write sequence atomic with
    respect to concurrent requests.
    """

    ttl_seconds: int

    @abstractmethod
    async def issue(self, subject_key: str) -> Challenge:
        """Mint a new secret for subject_key, replacing any previous one."""
        ...

    @abstractmethod
    async def get(self, subject_key: str) -> Challenge | None:
        """Return the live challenge for subject_key.

        An expired entry is deleted and None is returned.
        """
        ...

    @abstractmethod
    async def validate(self, subject_key: str, secret: str) -> bool:
        """Check a presented secret without consuming it.

        Returns False if no entry exists, or if the entry has expired (the
        entry is deleted in that case), or if the secret does not match.
        """
        ...

    @abstractmethod
    async def consume(self, subject_key: str, secret: str) -> bool:
        """Delete the entry only if it is live and still holds secret.

        Returns True if this call removed it. At most one caller can win.
        """
        ...

    @abstractmethod
    async def invalidate(self, subject_key: str) -> bool:
        """Delete the entry for subject_key.

        Returns:
            True if an entry was found and deleted
        """
        ...

    @abstractmethod
    async def cleanup_expired(self) -> int:
        """Remove all expired entries.

        Returns:
            Number of entries removed
        """
        ...


# =============================================================================
# IN-MEMORY CHALLENGE STORE
# =============================================================================


class InMemoryChallengeStore(ChallengeStore):
    """asyncio-locked in-memory challenge store.

    Suitable for single-instance deployments. Challenges are lost on restart.
    """

    def __init__(
        self,
        name: str,
        ttl_seconds: int,
        max_entries: int = CHALLENGE_MAX_ENTRIES,
    ) -> None:
        """Initialize the store.

        Args:
            name: Label used in log messages ("github", "siwe")
            ttl_seconds: Lifetime of each issued challenge
            max_entries: Upper bound on stored entries
        """
        self.name = name
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._challenges: dict[str, Challenge] = {}
        self._lock = asyncio.Lock()

    async def issue(self, subject_key: str) -> Challenge:
        now = _utcnow()
        challenge = Challenge(
            subject_key=subject_key,
            secret=generate_secret(),
            issued_at=now,
            expires_at=now + timedelta(seconds=self.ttl_seconds),
        )

        async with self._lock:
            if subject_key not in self._challenges and len(self._challenges) >= self.max_entries:
                self._make_room(now)
            self._challenges[subject_key] = challenge

        log.debug(f"Issued {self.name} challenge for {subject_key}")
        return challenge

    async def get(self, subject_key: str) -> Challenge | None:
        async with self._lock:
            return self._get_live(subject_key)

    async def validate(self, subject_key: str, secret: str) -> bool:
        async with self._lock:
            challenge = self._get_live(subject_key)
            if challenge is None:
                return False
            return _matches(challenge, secret)

    async def consume(self, subject_key: str, secret: str) -> bool:
        async with self._lock:
            challenge = self._get_live(subject_key)
            if challenge is None or not _matches(challenge, secret):
                return False
            del self._challenges[subject_key]

        log.debug(f"Consumed {self.name} challenge for {subject_key}")
        return True

    async def invalidate(self, subject_key: str) -> bool:
        async with self._lock:
            if subject_key in self._challenges:
                del self._challenges[subject_key]
                log.debug(f"Invalidated {self.name} challenge for {subject_key}")
                return True
            return False

    async def cleanup_expired(self) -> int:
        now = _utcnow()

        async with self._lock:
            count = self._purge_expired(now)

        if count > 0:
            log.info(f"Cleaned up {count} expired {self.name} challenges")

        return count

    @property
    def challenge_count(self) -> int:
        """Number of stored challenges, expired or not (for monitoring)."""
        return len(self._challenges)

    # Callers must hold self._lock for the helpers below.

    def _get_live(self, subject_key: str) -> Challenge | None:
        challenge = self._challenges.get(subject_key)
        if challenge is None:
            return None
        if challenge.is_expired:
            del self._challenges[subject_key]
            log.debug(f"{self.name} challenge for {subject_key} expired")
            return None
        return challenge

    def _purge_expired(self, now: datetime) -> int:
        expired = [
            key for key, challenge in self._challenges.items()
            if challenge.expires_at < now
        ]
        for key in expired:
            del self._challenges[key]
        return len(expired)

    def _make_room(self, now: datetime) -> None:
        if self._purge_expired(now) > 0 or not self._challenges:
            return
        oldest = min(self._challenges.values(), key=lambda c: c.issued_at)
        del self._challenges[oldest.subject_key]
        log.warning(
            f"{self.name} challenge store full ({self.max_entries}); "
            f"evicted oldest entry {oldest.subject_key}"
        )
