"""OracleNet auth service configuration constants.

Environment-based configuration, organized into:
- POLICY: Fixed domain rules, not overridable from the environment
- OPERATIONAL: Deployment-specific settings (env vars)
"""
import os
from pathlib import Path


# =============================================================================
# POLICY CONSTANTS
# =============================================================================

# Only announcement issues in this repository can bind a GitHub identity
GITHUB_ALLOWED_OWNER: str = "Soul-Brews-Studio"
GITHUB_ALLOWED_REPO: str = "oracle-v2"

# Label that marks an issue as an Oracle announcement
GITHUB_REQUIRED_LABEL: str = "oracle-family"

# Comment body must contain f"{GITHUB_VERIFY_PREFIX}{code}"
GITHUB_VERIFY_PREFIX: str = "verify:"

# First line of the wallet sign-in message
SIWE_STATEMENT: str = "Sign in to OracleNet"

# Random bytes per challenge secret (hex encoded, so 8 characters)
CHALLENGE_SECRET_BYTES: int = 4


# =============================================================================
# PERSISTENCE CONFIGURATION
# =============================================================================

def _get_data_dir() -> Path:
    """Determine data directory based on environment.

    Priority:
    1. ORACLENET_DATA_DIR env var (explicit override)
    2. ~/.oraclenet (local development)
    3. /tmp/oraclenet (container fallback when home unavailable)
    """
    env_path = os.getenv("ORACLENET_DATA_DIR")
    if env_path:
        return Path(env_path)

    try:
        home_path = Path.home() / ".oraclenet"
        home_path.mkdir(parents=True, exist_ok=True)
        return home_path
    except (OSError, PermissionError):
        return Path("/tmp/oraclenet")


def _get_database_url() -> str:
    """Get database URL from environment, falling back to a local SQLite file."""
    if url := os.getenv("ORACLENET_DATABASE_URL"):
        return url
    return f"sqlite:///{DATA_DIR}/oraclenet.db"


DATA_DIR: Path = _get_data_dir()
DATABASE_URL: str = _get_database_url()


# =============================================================================
# GITHUB API
# =============================================================================

GITHUB_API_BASE: str = os.getenv("ORACLENET_GITHUB_API_BASE", "https://api.github.com").rstrip("/")

# Optional token, only used to lift the anonymous rate limit
GITHUB_TOKEN: str | None = os.getenv("ORACLENET_GITHUB_TOKEN") or None

GITHUB_TIMEOUT_SECONDS: float = float(os.getenv("ORACLENET_GITHUB_TIMEOUT", "10.0"))
GITHUB_COMMENTS_MAX_PAGES: int = int(os.getenv("ORACLENET_GITHUB_COMMENTS_MAX_PAGES", "10"))


# =============================================================================
# CHALLENGE CONFIGURATION
# =============================================================================

GITHUB_CHALLENGE_TTL_SECONDS: int = int(os.getenv("ORACLENET_GITHUB_CHALLENGE_TTL", "600"))  # 10 minutes
SIWE_CHALLENGE_TTL_SECONDS: int = int(os.getenv("ORACLENET_SIWE_CHALLENGE_TTL", "300"))  # 5 minutes

# Upper bound per store; oldest entries are evicted beyond this
CHALLENGE_MAX_ENTRIES: int = int(os.getenv("ORACLENET_CHALLENGE_MAX_ENTRIES", "10000"))
CHALLENGE_CLEANUP_INTERVAL: int = int(os.getenv("ORACLENET_CHALLENGE_CLEANUP_INTERVAL", "60"))


# =============================================================================
# CREDENTIALS
# =============================================================================

TOKEN_TTL_SECONDS: int = int(os.getenv("ORACLENET_TOKEN_TTL", "604800"))  # 7 days

# bcrypt cost factor for placeholder passwords (tests use 4)
BCRYPT_ROUNDS: int = int(os.getenv("ORACLENET_BCRYPT_ROUNDS", "12"))


# =============================================================================
# OPERATIONAL
# =============================================================================

AUDIT_ENABLED: bool = os.getenv("ORACLENET_AUDIT_ENABLED", "true").lower() == "true"
SERVICE_VERSION: str = "0.1.0"
