"""Tests for the GitHub REST client, using httpx's mock transport."""

import httpx
import pytest
from tenacity import wait_none

from src.integrations.github import GitHubClient


def make_client(handler):
    return GitHubClient(base_url="https://api.test", timeout=5, transport=httpx.MockTransport(handler))


@pytest.mark.unit
class TestFetchLatestCommitSha:
    @pytest.mark.asyncio
    async def test_returns_first_sha(self):
        seen = {}

        def handler(request):
            seen["request"] = request
            return httpx.Response(200, json=[{"sha": "abc123"}, {"sha": "older"}])

        sha = await make_client(handler).fetch_latest_commit_sha("tok", "acme", "docs", "main")

        assert sha == "abc123"
        request = seen["request"]
        assert request.url.path == "/repos/acme/docs/commits"
        assert request.url.params["sha"] == "main"
        assert request.url.params["per_page"] == "1"
        assert request.headers["Authorization"] == "Bearer tok"
        assert request.headers["Accept"] == "application/vnd.github+json"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(404, json={"message": "Not Found"}),
            httpx.Response(200, json=[]),
            httpx.Response(200, json={"sha": "not-a-list"}),
            httpx.Response(200, content=b"<html>"),
        ],
    )
    async def test_unusable_responses_return_none(self, response):
        sha = await make_client(lambda request: response).fetch_latest_commit_sha("tok", "acme", "docs", "main")
        assert sha is None

    @pytest.mark.asyncio
    async def test_network_errors_are_retried_then_none(self, monkeypatch):
        monkeypatch.setattr(GitHubClient._send.retry, "wait", wait_none())
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        sha = await make_client(handler).fetch_latest_commit_sha("tok", "acme", "docs", "main")

        assert sha is None
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_transient_error_recovers(self, monkeypatch):
        monkeypatch.setattr(GitHubClient._send.retry, "wait", wait_none())
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ReadTimeout("slow", request=request)
            return httpx.Response(200, json=[{"sha": "abc123"}])

        sha = await make_client(handler).fetch_latest_commit_sha("tok", "acme", "docs", "main")

        assert sha == "abc123"
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_http_errors_are_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        await make_client(handler).fetch_latest_commit_sha("tok", "acme", "docs", "main")
        assert len(calls) == 1


@pytest.mark.unit
class TestFetchRepoTree:
    @pytest.mark.asyncio
    async def test_returns_tree_entries(self):
        tree = [{"path": "README.md", "type": "blob"}]
        seen = {}

        def handler(request):
            seen["request"] = request
            return httpx.Response(200, json={"sha": "x", "tree": tree, "truncated": False})

        result = await make_client(handler).fetch_repo_tree("tok", "acme", "docs", "dev")

        assert result == tree
        assert seen["request"].url.path == "/repos/acme/docs/git/trees/dev"
        assert seen["request"].url.params["recursive"] == "1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [httpx.Response(403), httpx.Response(200, json=[]), httpx.Response(200, json={"tree": "nope"})],
    )
    async def test_failures_return_empty_list(self, response):
        result = await make_client(lambda request: response).fetch_repo_tree("tok", "acme", "docs", "main")
        assert result == []
