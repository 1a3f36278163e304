"""API models for the OracleNet auth service.

Pydantic models for API requests and responses. Wire names are camelCase
(issueUrl, oracleName, expiresIn); Python attributes are snake_case.
Request fields are optional so that the flows can report which one is
missing with their own messages.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from oraclenet.db.models import Oracle


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# Request Models
# =============================================================================


class GitHubStartRequest(_WireModel):
    """Request to start GitHub verification."""

    issue_url: Optional[str] = Field(None, alias="issueUrl", description="Announcement issue URL")


class GitHubVerifyRequest(_WireModel):
    """Request to complete GitHub verification."""

    issue_url: Optional[str] = Field(None, alias="issueUrl", description="Announcement issue URL")
    code: Optional[str] = Field(None, description="Code returned by /start")


class SiweNonceRequest(_WireModel):
    """Request for a wallet sign-in nonce."""

    address: Optional[str] = Field(None, description="0x-prefixed wallet address")


class SiweVerifyRequest(_WireModel):
    """Request to verify a wallet signature."""

    address: Optional[str] = Field(None, description="0x-prefixed wallet address")
    signature: Optional[str] = Field(None, description="Hex personal_sign signature (65 bytes)")
    name: Optional[str] = Field(None, description="Display name for a new identity")


# =============================================================================
# Response Models
# =============================================================================


class OracleBrief(BaseModel):
    """Minimal identity summary."""

    id: str
    name: str
    approved: bool


class GitHubRecord(OracleBrief):
    """Identity summary returned by GitHub verification."""

    github_username: Optional[str] = None


class OracleResponse(BaseModel):
    """Full identity summary."""

    id: str = Field(..., description="Identity ID (UUID)")
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Synthetic email")
    wallet_address: Optional[str] = Field(None, description="Lowercase wallet address")
    github_username: Optional[str] = Field(None, description="Verified GitHub login")
    birth_issue: Optional[int] = Field(None, description="Announcement issue number")
    approved: bool = Field(..., description="Whether the identity is approved")
    karma: int = Field(..., description="Karma score")
    created: str = Field(..., description="Creation timestamp (ISO8601)")
    updated: str = Field(..., description="Last update timestamp (ISO8601)")


class GitHubStartResponse(_WireModel):
    """Code to post on the announcement issue."""

    success: bool = True
    code: str
    message: str
    issue_url: str = Field(..., alias="issueUrl")
    oracle_name: str = Field(..., alias="oracleName")
    author: str
    expires_in: str = Field(..., alias="expiresIn", description='e.g. "10 minutes"')


class GitHubVerifyResponse(_WireModel):
    """Successful GitHub verification."""

    success: bool = True
    token: str
    created: bool
    oracle_name: str = Field(..., alias="oracleName")
    approved: bool
    record: GitHubRecord


class SiweNonceResponse(_WireModel):
    """Nonce and the exact message to sign."""

    success: bool = True
    nonce: str
    message: str
    timestamp: str
    expires_in: int = Field(..., alias="expiresIn", description="Seconds")


class SiweVerifyResponse(BaseModel):
    """Successful wallet verification."""

    success: bool = True
    created: bool
    oracle: OracleResponse
    token: str


class SiweCheckResponse(BaseModel):
    """Whether a wallet already has an identity."""

    registered: bool
    address: str
    oracle: Optional[OracleBrief] = None


class HealthResponse(BaseModel):
    """Health check response."""

    ok: bool
    service: str
    oracles: int
    pending_github: int
    pending_siwe: int


class VersionResponse(BaseModel):
    """Service version."""

    version: str
    git_sha: str


# =============================================================================
# Converters
# =============================================================================


def oracle_response(oracle: Oracle) -> OracleResponse:
    return OracleResponse(
        id=oracle.id,
        name=oracle.name,
        email=oracle.email,
        wallet_address=oracle.wallet_address,
        github_username=oracle.github_username,
        birth_issue=oracle.birth_issue,
        approved=oracle.approved,
        karma=oracle.karma,
        created=oracle.created.isoformat(),
        updated=oracle.updated.isoformat(),
    )


def oracle_brief(oracle: Oracle) -> OracleBrief:
    return OracleBrief(id=oracle.id, name=oracle.name, approved=oracle.approved)
