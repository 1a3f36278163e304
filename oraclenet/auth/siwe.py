"""Sign-In With Ethereum style wallet verification.

The caller asks for a nonce, signs the returned message with their wallet
(EIP-191 personal_sign), and sends the signature back. The message is never
stored; it is rebuilt from the stored nonce and issuance time, so
build_siwe_message() must stay byte-for-byte stable.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone

from eth_keys import KeyAPI
from eth_keys.exceptions import BadSignature, ValidationError
from eth_utils import decode_hex, to_checksum_address
from eth_utils.conversions import to_int
from eth_utils.crypto import keccak
from sqlalchemy.orm import Session

from oraclenet.auth.challenge import ChallengeStore
from oraclenet.auth.exceptions import IdentityConflictError, VerificationFailed
from oraclenet.auth.identity import IdentityResolver
from oraclenet.auth.tokens import TokenStore
from oraclenet.config import BCRYPT_ROUNDS, SIWE_STATEMENT
from oraclenet.db.models import Oracle

log = logging.getLogger(__name__)

ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")

PERSONAL_MESSAGE_PREFIX = b"\x19Ethereum Signed Message:\n"

SIGNATURE_LENGTH = 65


class SignatureError(ValueError):
    """Signature could not be decoded or recovered."""

    pass


def is_valid_address(address: str | None) -> bool:
    """True for a 0x-prefixed, 20-byte hex address (any case)."""
    return bool(address) and ADDRESS_PATTERN.match(address) is not None


def format_timestamp(moment: datetime) -> str:
    """RFC 3339 UTC with second precision, e.g. 2024-01-02T15:04:05Z."""
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def build_siwe_message(nonce: str, timestamp: str) -> str:
    return f"{SIWE_STATEMENT}\n\nNonce: {nonce}\nTimestamp: {timestamp}"


def personal_message_hash(message: str) -> bytes:
    """keccak256 of the EIP-191 prefixed message."""
    data = message.encode("utf-8")
    return keccak(PERSONAL_MESSAGE_PREFIX + str(len(data)).encode() + data)


def recover_address(message: str, signature: str) -> str:
    """Recover the checksummed signer address of a personal_sign signature.

    Args:
        message: The exact message that was signed
        signature: Hex string, 65 bytes r || s || v, v as 0/1 or 27/28

    Raises:
        SignatureError: If the signature is malformed or unrecoverable
    """
    try:
        raw = decode_hex(signature)
    except (TypeError, ValueError) as e:
        raise SignatureError("signature is not valid hex") from e

    if len(raw) != SIGNATURE_LENGTH:
        raise SignatureError(f"signature must be {SIGNATURE_LENGTH} bytes, got {len(raw)}")

    v = raw[64]
    if v >= 27:
        v -= 27

    try:
        sig = KeyAPI.Signature(vrs=(v, to_int(raw[:32]), to_int(raw[32:64])))
        public_key = sig.recover_public_key_from_msg_hash(personal_message_hash(message))
    except (BadSignature, ValidationError, ValueError) as e:
        raise SignatureError(f"could not recover public key: {e}") from e

    return public_key.to_checksum_address()


# =============================================================================
# FLOW
# =============================================================================


@dataclass
class NonceIssued:
    nonce: str
    message: str
    timestamp: str
    expires_in: int


@dataclass
class WalletVerified:
    oracle: Oracle
    created: bool
    token: str


class SiweVerificationFlow:
    """Nonce issuance, signature verification and registration lookup.

    Challenges are keyed by lowercase address.
    """

    def __init__(
        self,
        challenges: ChallengeStore,
        tokens: TokenStore,
        bcrypt_rounds: int = BCRYPT_ROUNDS,
    ) -> None:
        self.challenges = challenges
        self.tokens = tokens
        self.bcrypt_rounds = bcrypt_rounds

    async def issue_nonce(self, address: str | None) -> NonceIssued:
        """Issue a nonce and the message the wallet must sign.

        Raises:
            VerificationFailed: If the address is missing or malformed
        """
        if not address:
            raise VerificationFailed("address is required")
        if not is_valid_address(address):
            raise VerificationFailed("Invalid Ethereum address format")

        challenge = await self.challenges.issue(address.lower())
        timestamp = format_timestamp(challenge.issued_at)
        return NonceIssued(
            nonce=challenge.secret,
            message=build_siwe_message(challenge.secret, timestamp),
            timestamp=timestamp,
            expires_in=self.challenges.ttl_seconds,
        )

    async def verify(
        self,
        db: Session,
        address: str | None,
        signature: str | None,
        name: str | None = None,
    ) -> WalletVerified:
        """Verify a signature over the issued message and resolve the wallet.

        The nonce is consumed before the identity is touched, so a replayed
        signature fails even if the first request is still in flight.

        Raises:
            VerificationFailed: 400 for any verification failure, 500 when
                the identity cannot be persisted
        """
        if not address or not signature:
            raise VerificationFailed("address and signature are required")
        if not is_valid_address(address):
            raise VerificationFailed("Invalid Ethereum address format")

        key = address.lower()
        challenge = await self.challenges.get(key)
        if challenge is None:
            raise VerificationFailed("No nonce found. Call /api/auth/siwe/nonce first")

        message = build_siwe_message(challenge.secret, format_timestamp(challenge.issued_at))
        try:
            recovered = recover_address(message, signature)
        except SignatureError as e:
            log.info(f"Signature verification failed for {key}: {e}")
            raise VerificationFailed(f"Signature verification failed: {e}") from e

        if recovered.lower() != key:
            raise VerificationFailed(
                f"Address mismatch: expected {to_checksum_address(key)}, got {recovered}"
            )

        if not await self.challenges.consume(key, challenge.secret):
            raise VerificationFailed("Nonce already used or expired. Call /api/auth/siwe/nonce again")

        try:
            resolution = IdentityResolver(db, self.bcrypt_rounds).resolve_by_wallet(key, name)
        except IdentityConflictError as e:
            raise VerificationFailed(f"Failed to create oracle: {e}", status_code=500) from e

        token = await self.tokens.create(resolution.oracle.id)
        log.info(f"Wallet {key} verified (oracle={resolution.oracle.id}, created={resolution.created})")
        return WalletVerified(oracle=resolution.oracle, created=resolution.created, token=token.token)

    def check(self, db: Session, address: str | None) -> Oracle | None:
        """Return the identity bound to address, without creating anything.

        Raises:
            VerificationFailed: If the address is missing or malformed
        """
        if not address:
            raise VerificationFailed("address is required")
        if not is_valid_address(address):
            raise VerificationFailed("Invalid Ethereum address format")
        return IdentityResolver(db).find_by_wallet(address.lower())
