"""SQLAlchemy ORM models for OracleNet identities.

One table, `oracles`, holds every identity regardless of how it was verified.
An identity is reachable by its GitHub login (social verification) or by its
lowercase wallet address (signature verification).
"""

import re
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import DeclarativeBase, validates

WALLET_ADDRESS_PATTERN = re.compile(r"^0x[a-f0-9]{40}$")


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class Oracle(Base):
    """A persisted Oracle identity.

    Credential material (email, password_hash) only satisfies the shape of a
    password-auth record; verified callers receive bearer tokens instead.
    """

    __tablename__ = "oracles"

    id = Column(String(36), primary_key=True)  # UUID
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)  # bcrypt
    github_username = Column(String(255), nullable=True, unique=True)
    github_repo = Column(String(255), nullable=True)  # e.g. "oracle-v2/issues/42"
    wallet_address = Column(String(42), nullable=True, unique=True)
    birth_issue = Column(Integer, nullable=True, unique=True)  # NULLs never collide
    approved = Column(Boolean, default=False, nullable=False)
    karma = Column(Integer, default=0, nullable=False)
    created = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    @validates("wallet_address")
    def validate_wallet_address(self, key: str, value: str | None) -> str | None:
        if value is not None and not WALLET_ADDRESS_PATTERN.match(value):
            raise ValueError(f"wallet_address must match {WALLET_ADDRESS_PATTERN.pattern}")
        return value

    def __repr__(self) -> str:
        return (
            f"<Oracle(id={self.id!r}, name={self.name!r}, "
            f"github_username={self.github_username!r}, wallet_address={self.wallet_address!r})>"
        )
