"""Identity resolution for verified external identifiers.

Two explicitly separate strategies:
- resolve_by_github(): social verification. Creates approved identities and
  re-approves existing ones on every successful verification.
- resolve_by_wallet(): signature verification. Creates unapproved identities
  and never changes approval of an existing one.

Both are idempotent with respect to their identifier.
"""

import logging
import secrets
import uuid
from dataclasses import dataclass

import bcrypt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from oraclenet.auth.exceptions import IdentityConflictError
from oraclenet.config import BCRYPT_ROUNDS, GITHUB_ALLOWED_REPO
from oraclenet.db.models import Oracle

log = logging.getLogger(__name__)


def hash_password(raw: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash placeholder credential material with bcrypt."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(raw.encode(), salt).decode()


def default_wallet_name(address: str) -> str:
    """Display name for a wallet identity created without one ("Oracle-0xabcdef")."""
    return f"Oracle-{address[:8]}"


@dataclass
class Resolution:
    """Outcome of a resolve call."""

    oracle: Oracle
    created: bool


class IdentityResolver:
    """Find-or-create for Oracle identities."""

    def __init__(self, db: Session, bcrypt_rounds: int = BCRYPT_ROUNDS):
        """Initialize resolver with database session.

        Args:
            db: SQLAlchemy session
            bcrypt_rounds: Cost factor for placeholder passwords
        """
        self.db = db
        self.bcrypt_rounds = bcrypt_rounds

    def find_by_github(self, login: str) -> Oracle | None:
        return self.db.query(Oracle).filter(Oracle.github_username == login).first()

    def find_by_wallet(self, address: str) -> Oracle | None:
        """Find a wallet-bound identity. address must already be lowercase."""
        return self.db.query(Oracle).filter(Oracle.wallet_address == address).first()

    def get(self, oracle_id: str) -> Oracle | None:
        return self.db.query(Oracle).filter(Oracle.id == oracle_id).first()

    def count(self) -> int:
        return self.db.query(Oracle).count()

    def resolve_by_github(self, login: str, name: str, issue_number: str) -> Resolution:
        """Resolve a verified GitHub login, approving the identity.

        Args:
            login: Issue author's login
            name: Name extracted from the announcement ("" for none)
            issue_number: Announcement issue number, stored as birth_issue

        Raises:
            IdentityConflictError: If the new identity collides on another
                unique field (e.g. birth_issue already claimed)
        """
        existing = self.find_by_github(login)
        if existing is not None:
            if not existing.approved:
                existing.approved = True
                self.db.commit()
                log.info(f"Re-approved oracle {existing.id} for @{login}")
            return Resolution(oracle=existing, created=False)

        oracle = Oracle(
            id=str(uuid.uuid4()),
            name=name or login,
            email=f"{login}@github.oracle",
            password_hash=hash_password(secrets.token_urlsafe(24), self.bcrypt_rounds),
            github_username=login,
            github_repo=f"{GITHUB_ALLOWED_REPO}/issues/{issue_number}",
            birth_issue=int(issue_number),
            approved=True,
            karma=0,
        )
        return self._insert(oracle, lambda: self.find_by_github(login))

    def resolve_by_wallet(self, address: str, name: str | None = None) -> Resolution:
        """Resolve a verified wallet address. New identities start unapproved.

        Args:
            address: Lowercase 0x-prefixed address
            name: Optional display name

        Raises:
            IdentityConflictError: If the new identity collides on another
                unique field
        """
        existing = self.find_by_wallet(address)
        if existing is not None:
            return Resolution(oracle=existing, created=False)

        oracle = Oracle(
            id=str(uuid.uuid4()),
            name=name or default_wallet_name(address),
            email=f"{address[2:]}@wallet.oraclenet",
            # The address itself fills the non-empty password requirement
            password_hash=hash_password(address, self.bcrypt_rounds),
            wallet_address=address,
            approved=False,
            karma=0,
        )
        return self._insert(oracle, lambda: self.find_by_wallet(address))

    def _insert(self, oracle: Oracle, lookup) -> Resolution:
        """Persist a new identity, tolerating a concurrent create of the same one."""
        self.db.add(oracle)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            existing = lookup()
            if existing is not None:
                log.info(f"Lost create race; using existing oracle {existing.id}")
                return Resolution(oracle=existing, created=False)
            log.warning(f"Identity conflict creating oracle {oracle.name!r}: {e.orig}")
            raise IdentityConflictError(f"identity conflicts with an existing record: {e.orig}") from e

        self.db.refresh(oracle)
        log.info(f"Created oracle {oracle.id} ({oracle.name})")
        return Resolution(oracle=oracle, created=True)
