"""GitHub REST API client used for repository scans and sync detection."""
from typing import Any, Dict, List, Optional

import httpx

from src.config import settings
from src.exceptions import GitHubApiException
from src.services.retry import retry_on_network_error
from src.utils.logger import log


class GitHubClient:
    """Thin async client over the GitHub REST API.

    Every call takes the installation access token explicitly; the client
    holds no credentials of its own.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.github_api_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.github_request_timeout
        self._transport = transport

    def _headers(self, token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    @retry_on_network_error(max_attempts=3, min_wait=0.5, max_wait=4)
    async def _send(
        self, token: str, path: str, params: Optional[Dict[str, Any]] = None
    ) -> httpx.Response:
        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        ) as client:
            return await client.get(path, headers=self._headers(token), params=params)

    async def _get_json(
        self,
        token: str,
        path: str,
        operation: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """GET a JSON document.

        Raises:
            GitHubApiException: On HTTP error status, network failure after
                retries, or an undecodable body
        """
        try:
            response = await self._send(token, path, params)
        except httpx.HTTPError as e:
            raise GitHubApiException(operation, original_exception=e) from e

        if response.is_error:
            raise GitHubApiException(operation, status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise GitHubApiException(
                operation, status_code=response.status_code, original_exception=e
            ) from e

    async def fetch_latest_commit_sha(
        self, token: str, owner: str, repo: str, branch: str
    ) -> Optional[str]:
        """Return the HEAD commit SHA of `branch`, or None when it cannot be read."""
        try:
            data = await self._get_json(
                token,
                f"/repos/{owner}/{repo}/commits",
                "fetch_latest_commit_sha",
                params={"sha": branch, "per_page": 1},
            )
        except GitHubApiException as e:
            log.warning(f"Could not fetch latest commit for {owner}/{repo}@{branch}: {e}")
            return None

        if not isinstance(data, list) or not data:
            return None
        first = data[0]
        if not isinstance(first, dict):
            return None
        return first.get("sha")

    async def fetch_repo_tree(
        self, token: str, owner: str, repo: str, branch: str
    ) -> List[Dict[str, Any]]:
        """Return the recursive git tree of `branch` (empty list on failure)."""
        try:
            data = await self._get_json(
                token,
                f"/repos/{owner}/{repo}/git/trees/{branch}",
                "fetch_repo_tree",
                params={"recursive": 1},
            )
        except GitHubApiException as e:
            log.warning(f"Could not fetch tree for {owner}/{repo}@{branch}: {e}")
            return []

        if not isinstance(data, dict):
            return []
        tree = data.get("tree")
        return tree if isinstance(tree, list) else []
