"""Pytest fixtures for OracleNet auth tests."""
import os
import tempfile

# Must be set before oraclenet.config is imported
os.environ["ORACLENET_DATABASE_URL"] = "sqlite://"
os.environ["ORACLENET_BCRYPT_ROUNDS"] = "4"
os.environ.setdefault("ORACLENET_DATA_DIR", tempfile.mkdtemp(prefix="oraclenet-test-"))

from typing import AsyncGenerator

import httpx
import pytest
from eth_account.account import Account as ETHAccount
from eth_account.messages import encode_defunct
from httpx import ASGITransport, AsyncClient

from oraclenet.auth.github import GitHubClient
from oraclenet.db.models import Base
from oraclenet.db.session import SessionLocal, engine
from oraclenet.main import create_app

GITHUB_API_BASE = "https://api.github.test"
ISSUE_URL = "https://github.com/Soul-Brews-Studio/oracle-v2/issues/42"

# Fixed keys so failures are reproducible
TEST_WALLET_KEY = "0x" + "4c" * 32
OTHER_WALLET_KEY = "0x" + "7d" * 32


# =============================================================================
# Fake GitHub API
# =============================================================================


class FakeGitHubAPI:
    """In-memory stand-in for the GitHub issues API.

    Serves issues and comments registered by the test and records every
    request it receives.
    """

    def __init__(self, repo: str = "Soul-Brews-Studio/oracle-v2"):
        self.repo = repo
        self.issues: dict[str, dict] = {}
        self.comments: dict[str, list[dict]] = {}
        self.page_size: int | None = None  # None: honour per_page
        self.fail_status: int | None = None
        self.requests: list[httpx.Request] = []

    def add_issue(
        self,
        number: int | str = 42,
        title: str | None = "🦞 SHRIMP Oracle Awakens",
        body: str | None = "Hello OracleNet",
        author: str = "shrimp-dev",
        labels=None,
    ) -> dict:
        issue = {
            "number": int(number),
            "title": title,
            "body": body,
            "user": {"login": author},
            "labels": [{"name": "oracle-family"}] if labels is None else labels,
        }
        self.issues[str(number)] = issue
        self.comments.setdefault(str(number), [])
        return issue

    def add_comment(self, number: int | str, author: str, body: str) -> None:
        self.comments.setdefault(str(number), []).append(
            {"user": {"login": author}, "body": body}
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_status is not None:
            return httpx.Response(self.fail_status, json={"message": "Server Error"})

        prefix = f"/repos/{self.repo}/issues/"
        path = request.url.path
        if not path.startswith(prefix):
            return httpx.Response(404, json={"message": "Not Found"})

        rest = path[len(prefix):]
        if rest.endswith("/comments"):
            return self._comments_page(request, rest[: -len("/comments")])

        issue = self.issues.get(rest)
        if issue is None:
            return httpx.Response(404, json={"message": "Not Found"})
        return httpx.Response(200, json=issue)

    def _comments_page(self, request: httpx.Request, number: str) -> httpx.Response:
        if number not in self.issues:
            return httpx.Response(404, json={"message": "Not Found"})

        comments = self.comments.get(number, [])
        per_page = self.page_size or int(request.url.params.get("per_page", 30))
        page = int(request.url.params.get("page", 1))
        start = (page - 1) * per_page
        headers = {}
        if start + per_page < len(comments):
            next_url = (
                f"{GITHUB_API_BASE}/repos/{self.repo}/issues/{number}/comments"
                f"?per_page={per_page}&page={page + 1}"
            )
            headers["Link"] = f'<{next_url}>; rel="next"'
        return httpx.Response(200, json=comments[start:start + per_page], headers=headers)

    def client(self, **kwargs) -> GitHubClient:
        return GitHubClient(
            api_base=GITHUB_API_BASE,
            transport=httpx.MockTransport(self.handler),
            **kwargs,
        )


# =============================================================================
# Wallet helpers
# =============================================================================


def sign_message(account, message: str) -> str:
    """personal_sign a message, returned as 0x-prefixed hex (v = 27/28)."""
    signed = ETHAccount.sign_message(encode_defunct(text=message), private_key=account.key)
    return "0x" + bytes(signed.signature).hex()


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def database():
    """Fresh schema for every test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def github_api() -> FakeGitHubAPI:
    return FakeGitHubAPI()


@pytest.fixture
def app(github_api):
    return create_app(github_client=github_api.client())


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to a fresh app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
def wallet():
    return ETHAccount.from_key(TEST_WALLET_KEY)


@pytest.fixture
def other_wallet():
    return ETHAccount.from_key(OTHER_WALLET_KEY)
