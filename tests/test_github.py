"""Tests for GitHub issue helpers and the GitHub API client."""
import httpx
import pytest

from oraclenet.auth.exceptions import GitHubAPIError
from oraclenet.auth.github import (
    GitHubClient,
    IssueComment,
    IssueRef,
    extract_oracle_name,
    find_verification_comment,
    parse_issue_url,
)
from tests.conftest import GITHUB_API_BASE, FakeGitHubAPI

REF = IssueRef(owner="Soul-Brews-Studio", repo="oracle-v2", number="42")


class TestParseIssueUrl:
    def test_parses_owner_repo_number(self):
        ref = parse_issue_url("https://github.com/Soul-Brews-Studio/oracle-v2/issues/42")
        assert ref == REF
        assert ref.api_path == "/repos/Soul-Brews-Studio/oracle-v2/issues/42"

    def test_accepts_fragment_and_query(self):
        ref = parse_issue_url("https://github.com/a/b/issues/7#issuecomment-1?x=1")
        assert (ref.owner, ref.repo, ref.number) == ("a", "b", "7")

    @pytest.mark.parametrize(
        "url",
        [
            "",
            "https://github.com/Soul-Brews-Studio/oracle-v2/pull/42",
            "https://github.com/Soul-Brews-Studio/oracle-v2/issues/abc",
            "https://gitlab.com/Soul-Brews-Studio/oracle-v2/issues",
        ],
    )
    def test_rejects_malformed(self, url):
        with pytest.raises(ValueError):
            parse_issue_url(url)


class TestExtractOracleName:
    def test_awakens_title(self):
        assert extract_oracle_name("🦞 SHRIMP Oracle Awakens", "") == "SHRIMP"

    def test_awakens_is_case_insensitive(self):
        assert extract_oracle_name("the Kraken oracle AWAKENS", "") == "Kraken"

    def test_bold_name_in_body(self):
        assert extract_oracle_name("Hello", "Intro\n**Name**: Lobster_01\n") == "Lobster_01"

    def test_plain_name_with_quotes(self):
        assert extract_oracle_name("", "name: 'Crab-9'") == "Crab-9"

    def test_pattern_order_beats_field_order(self):
        # A later pattern in the title loses to an earlier pattern in the body
        title = "name: Wrong"
        body = "Finally the Squid Oracle Awakens"
        assert extract_oracle_name(title, body) == "Squid"

    def test_title_checked_before_body_for_same_pattern(self):
        assert extract_oracle_name("Alpha Oracle Awakens", "Beta Oracle Awakens") == "Alpha"

    def test_no_match(self):
        assert extract_oracle_name("Just an issue", "nothing to see") == ""

    def test_none_fields(self):
        assert extract_oracle_name(None, None) == ""


class TestFindVerificationComment:
    def test_matches_author_comment_containing_code(self):
        comments = [IssueComment(author="shrimp-dev", body="thanks! verify:ab12cd34 done")]
        assert find_verification_comment(comments, "ab12cd34", "shrimp-dev") is comments[0]

    def test_author_comparison_ignores_case(self):
        comments = [IssueComment(author="Shrimp-Dev", body="verify:ab12cd34")]
        assert find_verification_comment(comments, "ab12cd34", "shrimp-dev") is not None

    def test_other_author_does_not_match(self):
        comments = [IssueComment(author="someone-else", body="thanks! verify:ab12cd34 done")]
        assert find_verification_comment(comments, "ab12cd34", "shrimp-dev") is None

    def test_wrong_code_does_not_match(self):
        comments = [IssueComment(author="shrimp-dev", body="verify:00000000")]
        assert find_verification_comment(comments, "ab12cd34", "shrimp-dev") is None

    def test_first_match_wins(self):
        comments = [
            IssueComment(author="shrimp-dev", body="verify:ab12cd34 first"),
            IssueComment(author="shrimp-dev", body="verify:ab12cd34 second"),
        ]
        assert find_verification_comment(comments, "ab12cd34", "shrimp-dev").body.endswith("first")


class TestGitHubClient:
    async def test_fetch_issue(self, github_api: FakeGitHubAPI):
        github_api.add_issue(42)
        issue = await github_api.client().fetch_issue(REF)

        assert issue.author == "shrimp-dev"
        assert issue.oracle_name == "SHRIMP"
        assert issue.has_label("oracle-family")

    async def test_sends_github_headers(self, github_api: FakeGitHubAPI):
        github_api.add_issue(42)
        await github_api.client(token="ghp_test").fetch_issue(REF)

        headers = github_api.requests[0].headers
        assert headers["Accept"] == "application/vnd.github+json"
        assert headers["User-Agent"] == "oraclenet-auth"
        assert headers["Authorization"] == "Bearer ghp_test"

    async def test_no_token_no_authorization_header(self, github_api: FakeGitHubAPI):
        github_api.add_issue(42)
        await github_api.client(token=None).fetch_issue(REF)
        assert "Authorization" not in github_api.requests[0].headers

    async def test_null_title_and_body(self, github_api: FakeGitHubAPI):
        github_api.add_issue(42, title=None, body=None)
        issue = await github_api.client().fetch_issue(REF)
        assert issue.title == ""
        assert issue.body == ""
        assert issue.oracle_name == ""

    @pytest.mark.parametrize("labels", ["oracle-family", None, [42, {"id": 1}]])
    async def test_malformed_labels_mean_no_label(self, github_api: FakeGitHubAPI, labels):
        github_api.add_issue(42)
        github_api.issues["42"]["labels"] = labels
        issue = await github_api.client().fetch_issue(REF)
        assert issue.has_label("oracle-family") is False

    async def test_missing_issue_raises(self, github_api: FakeGitHubAPI):
        with pytest.raises(GitHubAPIError) as exc_info:
            await github_api.client().fetch_issue(REF)
        assert exc_info.value.status_code == 404
        assert "status 404" in str(exc_info.value)

    async def test_upstream_error_raises(self, github_api: FakeGitHubAPI):
        github_api.add_issue(42)
        github_api.fail_status = 502
        with pytest.raises(GitHubAPIError):
            await github_api.client().list_comments(REF)

    async def test_network_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = GitHubClient(api_base=GITHUB_API_BASE, transport=httpx.MockTransport(handler))
        with pytest.raises(GitHubAPIError, match="GitHub request failed"):
            await client.fetch_issue(REF)

    async def test_non_json_payload_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>rate limited</html>")

        client = GitHubClient(api_base=GITHUB_API_BASE, transport=httpx.MockTransport(handler))
        with pytest.raises(GitHubAPIError, match="malformed"):
            await client.fetch_issue(REF)

    async def test_list_comments_follows_pagination(self, github_api: FakeGitHubAPI):
        github_api.add_issue(42)
        github_api.page_size = 2
        for i in range(5):
            github_api.add_comment(42, "someone", f"comment {i}")

        listing = await github_api.client().list_comments(REF)

        assert [c.body for c in listing.comments] == [f"comment {i}" for i in range(5)]
        assert listing.truncated is False
        assert len(github_api.requests) == 3
        assert github_api.requests[0].url.params["per_page"] == "100"

    async def test_list_comments_stops_at_page_limit(self, github_api: FakeGitHubAPI):
        github_api.add_issue(42)
        github_api.page_size = 1
        for i in range(5):
            github_api.add_comment(42, "someone", f"comment {i}")

        listing = await github_api.client(max_comment_pages=2).list_comments(REF)
        assert len(listing.comments) == 2
        assert listing.truncated is True

    async def test_comment_without_user_never_matches(self, github_api: FakeGitHubAPI):
        github_api.add_issue(42)
        github_api.comments["42"].append({"user": None, "body": "verify:ab12cd34"})

        listing = await github_api.client().list_comments(REF)
        assert find_verification_comment(listing.comments, "ab12cd34", "shrimp-dev") is None
