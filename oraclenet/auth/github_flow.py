"""GitHub announcement-issue verification.

Start: the caller names their announcement issue in the allowed repository;
a short code is issued for that issue. Verify: the issue author must have
posted `verify:<code>` as a comment on the same issue. GitHub is never called
while a challenge store lock is held.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from oraclenet.auth.challenge import ChallengeStore
from oraclenet.auth.exceptions import (
    GitHubAPIError,
    IdentityConflictError,
    VerificationFailed,
    VerificationRejected,
)
from oraclenet.auth.github import (
    GitHubClient,
    IssueRef,
    find_verification_comment,
    parse_issue_url,
    verification_phrase,
)
from oraclenet.auth.identity import IdentityResolver
from oraclenet.auth.tokens import TokenStore
from oraclenet.config import (
    BCRYPT_ROUNDS,
    GITHUB_ALLOWED_OWNER,
    GITHUB_ALLOWED_REPO,
    GITHUB_REQUIRED_LABEL,
)
from oraclenet.db.models import Oracle

log = logging.getLogger(__name__)


@dataclass
class GitHubChallengeIssued:
    code: str
    issue_number: str
    issue_url: str
    oracle_name: str
    author: str
    expires_in_seconds: int

    @property
    def instruction(self) -> str:
        return f"Post this comment on your announcement issue:\n\n{verification_phrase(self.code)}"


@dataclass
class GitHubVerified:
    oracle: Oracle
    created: bool
    token: str


def describe_duration(seconds: int) -> str:
    """Human form of a TTL ("10 minutes", "45 seconds")."""
    if seconds % 60 == 0 and seconds >= 60:
        minutes = seconds // 60
        return f"{minutes} minute" if minutes == 1 else f"{minutes} minutes"
    return f"{seconds} seconds"


class GitHubVerificationFlow:
    """Start and verify steps of GitHub social verification."""

    def __init__(
        self,
        github: GitHubClient,
        challenges: ChallengeStore,
        tokens: TokenStore,
        bcrypt_rounds: int = BCRYPT_ROUNDS,
    ) -> None:
        self.github = github
        self.challenges = challenges
        self.tokens = tokens
        self.bcrypt_rounds = bcrypt_rounds

    def _parse(self, issue_url: str | None) -> IssueRef:
        if not issue_url:
            raise VerificationFailed("issueUrl is required")
        try:
            ref = parse_issue_url(issue_url)
        except ValueError as e:
            raise VerificationFailed("Invalid GitHub issue URL") from e
        if ref.owner != GITHUB_ALLOWED_OWNER or ref.repo != GITHUB_ALLOWED_REPO:
            raise VerificationFailed(
                f"Issue must be in {GITHUB_ALLOWED_OWNER}/{GITHUB_ALLOWED_REPO}"
            )
        return ref

    async def start(self, issue_url: str | None) -> GitHubChallengeIssued:
        """Validate the announcement issue and issue a verification code.

        Raises:
            VerificationFailed: Bad URL, wrong repository, issue not found,
                upstream failure, or missing label
        """
        ref = self._parse(issue_url)
        try:
            issue = await self.github.fetch_issue(ref)
        except GitHubAPIError as e:
            raise VerificationFailed(f"Failed to fetch issue: {e}") from e

        if not issue.has_label(GITHUB_REQUIRED_LABEL):
            raise VerificationFailed(f"Issue must have '{GITHUB_REQUIRED_LABEL}' label")

        challenge = await self.challenges.issue(ref.number)
        log.info(f"Issued GitHub code for issue #{ref.number} (author=@{issue.author})")
        return GitHubChallengeIssued(
            code=challenge.secret,
            issue_number=ref.number,
            issue_url=issue_url,
            oracle_name=issue.oracle_name,
            author=issue.author,
            expires_in_seconds=self.challenges.ttl_seconds,
        )

    async def verify(self, db: Session, issue_url: str | None, code: str | None) -> GitHubVerified:
        """Check for the author's `verify:<code>` comment and resolve the login.

        Raises:
            VerificationRejected: Code invalid/expired, or comment not found
            VerificationFailed: Bad input, upstream or persistence failure
        """
        ref = self._parse(issue_url)
        if not code:
            raise VerificationFailed("code is required")

        if not await self.challenges.validate(ref.number, code):
            raise VerificationRejected("Invalid or expired code. Start again.")

        try:
            issue = await self.github.fetch_issue(ref)
            listing = await self.github.list_comments(ref)
        except GitHubAPIError as e:
            raise VerificationFailed(f"Failed to fetch issue: {e}") from e

        if find_verification_comment(listing.comments, code, issue.author) is None:
            phrase = verification_phrase(code)
            hint = f"Post a comment on your announcement issue with: {phrase}"
            if listing.truncated:
                hint = f"Only the first {len(listing.comments)} comments on the issue were searched"
            raise VerificationRejected(
                f"Comment with '{phrase}' not found from @{issue.author}",
                hint=hint,
            )

        try:
            resolution = IdentityResolver(db, self.bcrypt_rounds).resolve_by_github(
                issue.author, issue.oracle_name, ref.number
            )
        except IdentityConflictError as e:
            raise VerificationFailed(f"Failed to create oracle: {e}") from e

        if not await self.challenges.consume(ref.number, code):
            raise VerificationRejected("Invalid or expired code. Start again.")

        token = await self.tokens.create(resolution.oracle.id)

        log.info(
            f"GitHub @{issue.author} verified via issue #{ref.number} "
            f"(oracle={resolution.oracle.id}, created={resolution.created})"
        )
        return GitHubVerified(
            oracle=resolution.oracle,
            created=resolution.created,
            token=token.token,
        )
