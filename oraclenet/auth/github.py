"""GitHub issue API client for announcement-based verification.

Provides issue URL parsing, Oracle name extraction from announcement issues,
and comment scanning for the `verify:<code>` proof, via the GitHub REST API:
https://docs.github.com/rest/issues
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

import httpx

from oraclenet.auth.exceptions import GitHubAPIError
from oraclenet.config import (
    GITHUB_API_BASE,
    GITHUB_COMMENTS_MAX_PAGES,
    GITHUB_TIMEOUT_SECONDS,
    GITHUB_TOKEN,
    GITHUB_VERIFY_PREFIX,
)

log = logging.getLogger(__name__)

ISSUE_URL_PATTERN = re.compile(r"github\.com/([^/]+)/([^/]+)/issues/(\d+)")

# Ordered (pattern, extractor) pairs. Each pattern is tried against the title
# and then the body before moving on to the next pattern; first hit wins.
NAME_PATTERNS: list[tuple[re.Pattern[str], Callable[[re.Match[str]], str]]] = [
    # "🦞 SHRIMP Oracle Awakens" -> "SHRIMP"
    (re.compile(r"([A-Za-z0-9_-]+)\s+oracle\s+awakens", re.IGNORECASE), lambda m: m.group(1)),
    # "**Name**: SHRIMP"
    (re.compile(r"\*\*name\*\*[:\s]+([A-Za-z0-9_-]+)", re.IGNORECASE), lambda m: m.group(1)),
    # "name: 'SHRIMP'"
    (re.compile(r"name[:\s]+[\"']?([A-Za-z0-9_-]+)", re.IGNORECASE), lambda m: m.group(1)),
]


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass(frozen=True)
class IssueRef:
    """Location of a GitHub issue parsed from its URL."""

    owner: str
    repo: str
    number: str

    @property
    def api_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}/issues/{self.number}"


@dataclass
class IssueInfo:
    """The parts of an issue the verification flow relies on."""

    number: str
    title: str
    body: str
    author: str
    labels: list[str] = field(default_factory=list)

    def has_label(self, name: str) -> bool:
        return name in self.labels

    @property
    def oracle_name(self) -> str:
        return extract_oracle_name(self.title, self.body)


@dataclass
class IssueComment:
    """A single issue comment."""

    author: str
    body: str


@dataclass
class CommentListing:
    """Comments of one issue. truncated is set when the page limit cut the listing short."""

    comments: list[IssueComment]
    truncated: bool = False


# =============================================================================
# PURE HELPERS
# =============================================================================


def parse_issue_url(url: str) -> IssueRef:
    """Parse `github.com/<owner>/<repo>/issues/<number>` out of a URL.

    Raises:
        ValueError: If the URL does not have that shape
    """
    match = ISSUE_URL_PATTERN.search(url or "")
    if match is None:
        raise ValueError("invalid GitHub issue URL")
    owner, repo, number = match.groups()
    return IssueRef(owner=owner, repo=repo, number=number)


def extract_oracle_name(title: str, body: str) -> str:
    """Extract the announced Oracle name, or "" if none of the patterns match."""
    for pattern, extract in NAME_PATTERNS:
        for text in (title or "", body or ""):
            match = pattern.search(text)
            if match:
                name = extract(match)
                if name:
                    return name
    return ""


def verification_phrase(code: str) -> str:
    return f"{GITHUB_VERIFY_PREFIX}{code}"


def find_verification_comment(
    comments: Iterable[IssueComment],
    code: str,
    expected_author: str,
) -> IssueComment | None:
    """Return the first comment by expected_author containing `verify:<code>`.

    Author comparison is case-insensitive, as GitHub logins are.
    """
    phrase = verification_phrase(code)
    expected = expected_author.lower()
    for comment in comments:
        if comment.author.lower() == expected and phrase in comment.body:
            return comment
    return None


def _parse_labels(raw: Any) -> list[str]:
    """Label names from an issue payload; anything unexpected means no labels."""
    if not isinstance(raw, list):
        return []
    names = []
    for label in raw:
        if isinstance(label, dict) and isinstance(label.get("name"), str):
            names.append(label["name"])
        elif isinstance(label, str):
            names.append(label)
    return names


def _login_of(user: Any) -> str:
    if isinstance(user, dict) and isinstance(user.get("login"), str):
        return user["login"]
    return ""


def _parse_issue(number: str, data: Any) -> IssueInfo:
    if not isinstance(data, dict):
        raise GitHubAPIError("malformed issue payload")
    author = _login_of(data.get("user"))
    if not author:
        raise GitHubAPIError("malformed issue payload: missing author")
    return IssueInfo(
        number=number,
        title=data.get("title") or "",
        body=data.get("body") or "",
        author=author,
        labels=_parse_labels(data.get("labels")),
    )


def _parse_comments(data: Any) -> list[IssueComment]:
    if not isinstance(data, list):
        raise GitHubAPIError("malformed comments payload")
    return [
        IssueComment(author=_login_of(item.get("user")), body=item.get("body") or "")
        for item in data
        if isinstance(item, dict)
    ]


# =============================================================================
# API CLIENT
# =============================================================================


class GitHubClient:
    """Minimal async client for the GitHub issues API.

    A fresh httpx.AsyncClient is opened per call; no retries are attempted
    and every failure surfaces as GitHubAPIError.
    """

    def __init__(
        self,
        api_base: str = GITHUB_API_BASE,
        token: str | None = GITHUB_TOKEN,
        timeout: float = GITHUB_TIMEOUT_SECONDS,
        max_comment_pages: int = GITHUB_COMMENTS_MAX_PAGES,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            api_base: GitHub REST API root
            token: Optional bearer token
            timeout: Per-request timeout in seconds
            max_comment_pages: Page limit when listing comments
            transport: Custom httpx transport (tests)
        """
        self._api_base = api_base
        self._token = token
        self._timeout = timeout
        self._max_comment_pages = max_comment_pages
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "oraclenet-auth",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._api_base,
            headers=self._headers(),
            timeout=self._timeout,
            transport=self._transport,
        )

    async def fetch_issue(self, ref: IssueRef) -> IssueInfo:
        """Fetch an issue.

        Raises:
            GitHubAPIError: On network error, non-200 status or bad payload
        """
        try:
            async with self._client() as client:
                response = await client.get(ref.api_path)
                if response.status_code != 200:
                    log.warning(f"GitHub issue fetch {ref.api_path} returned {response.status_code}")
                    raise GitHubAPIError(
                        f"issue not found (status {response.status_code})",
                        status_code=response.status_code,
                    )
                data = response.json()
        except httpx.RequestError as e:
            log.error(f"GitHub issue request failed: {e}")
            raise GitHubAPIError(f"GitHub request failed: {e}") from e
        except ValueError as e:
            raise GitHubAPIError("malformed issue payload") from e

        issue = _parse_issue(ref.number, data)
        log.debug(f"Fetched issue #{ref.number} by {issue.author} labels={issue.labels}")
        return issue

    async def list_comments(self, ref: IssueRef) -> CommentListing:
        """Fetch the comments of an issue, following pagination links.

        At most max_comment_pages pages are read; the listing is marked
        truncated when more remain.

        Raises:
            GitHubAPIError: On network error, non-200 status or bad payload
        """
        comments: list[IssueComment] = []
        url: str | None = f"{ref.api_path}/comments"
        params: dict[str, Any] | None = {"per_page": 100}
        pages = 0

        try:
            async with self._client() as client:
                while url and pages < self._max_comment_pages:
                    response = await client.get(url, params=params)
                    if response.status_code != 200:
                        log.warning(f"GitHub comments fetch {url} returned {response.status_code}")
                        raise GitHubAPIError(
                            f"failed to list comments (status {response.status_code})",
                            status_code=response.status_code,
                        )
                    comments.extend(_parse_comments(response.json()))
                    pages += 1
                    # "next" URLs already carry the query string
                    url = response.links.get("next", {}).get("url")
                    params = None
        except httpx.RequestError as e:
            log.error(f"GitHub comments request failed: {e}")
            raise GitHubAPIError(f"GitHub request failed: {e}") from e
        except ValueError as e:
            raise GitHubAPIError("malformed comments payload") from e

        if url:
            log.warning(f"Stopped listing comments on #{ref.number} after {pages} pages")
        return CommentListing(comments=comments, truncated=bool(url))
