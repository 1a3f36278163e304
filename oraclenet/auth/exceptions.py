"""Verification outcomes that end a request early.

Two tiers, mapped to responses in one place (oraclenet.main):
- VerificationRejected: the request was well-formed but the proof did not
  hold yet. Answered with HTTP 200 and success=false so the caller can retry.
- VerificationFailed: malformed input, upstream failure or persistence
  failure. Answered with the carried 4xx/5xx status.
"""


class VerificationError(Exception):
    """Base exception for verification flow errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class VerificationRejected(VerificationError):
    """Soft failure: the caller may fix things and try again."""

    def __init__(self, message: str, hint: str | None = None):
        super().__init__(message)
        self.hint = hint


class VerificationFailed(VerificationError):
    """Hard failure answered with an error status."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


class GitHubAPIError(Exception):
    """GitHub API call failed (network, non-200 status, or bad payload)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class IdentityConflictError(Exception):
    """A new identity collided with an existing one on a unique field."""

    pass
