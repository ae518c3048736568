"""GitHub API client for plugin repositories and the build workflow.

This module provides the GitHubClient class used to read commit history
and diffs of plugin repositories, dispatch the plugin build workflow and
download the logs of finished workflow runs.
"""

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DIFF_MEDIA_TYPE = "application/vnd.github.diff"


class GitHubClient:
    """GitHub API client.

    Unlike a per-repository client, every method takes the owner and
    repository it operates on, since publish requests span many repos.
    """

    def __init__(
        self,
        token: str,
        *,
        base_url: str = "https://api.github.com",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the GitHub client.

        Args:
            token: GitHub personal access token or app installation token
            base_url: GitHub API base URL (for GitHub Enterprise)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self.headers = {
            "Accept": "application/vnd.github.v3+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            self.headers["Authorization"] = f"Bearer {token}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            follow_redirects=True,
        )

    async def _request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Make an HTTP request to the GitHub API.

        Args:
            method: HTTP method
            url: Absolute URL or path appended to base_url
            headers: Headers overriding the defaults
            **kwargs: Additional httpx arguments

        Returns:
            The response

        Raises:
            httpx.HTTPError: On API errors
        """
        if not url.startswith("http"):
            url = f"{self.base_url}/{url}"

        async with self._client() as client:
            response = await client.request(
                method,
                url,
                headers={**self.headers, **(headers or {})},
                **kwargs,
            )
            response.raise_for_status()
            return response

    async def list_commits(self, owner: str, repo: str, count: int = 100) -> list[str]:
        """List the most recent commit hashes of a repository.

        Args:
            owner: Repository owner
            repo: Repository name
            count: Window size (GitHub caps a page at 100)

        Returns:
            Commit SHAs, most recent first
        """
        logger.debug(f"Fetching {count} commits for {owner}/{repo}")
        response = await self._request(
            "GET",
            f"repos/{owner}/{repo}/commits",
            params={"per_page": min(count, 100)},
        )
        return [commit["sha"] for commit in response.json()]

    async def get_compare_diff(self, owner: str, repo: str, base: str, head: str) -> str:
        """Fetch the unified diff between two commits.

        Args:
            owner: Repository owner
            repo: Repository name
            base: Base commit
            head: Head commit

        Returns:
            Diff as string
        """
        logger.debug(f"Fetching diff {base}...{head} for {owner}/{repo}")
        response = await self._request(
            "GET",
            f"repos/{owner}/{repo}/compare/{base}...{head}",
            headers={"Accept": DIFF_MEDIA_TYPE},
        )
        return response.text

    async def dispatch_workflow(
        self,
        owner: str,
        repo: str,
        workflow: str,
        ref: str,
        inputs: dict[str, str],
    ) -> None:
        """Trigger a workflow_dispatch run.

        Args:
            owner: Owner of the repository holding the workflow
            repo: Repository holding the workflow
            workflow: Workflow file name or id
            ref: Git ref to run the workflow on
            inputs: Workflow inputs
        """
        logger.info(f"Dispatching {workflow} on {owner}/{repo}@{ref} with {inputs}")
        await self._request(
            "POST",
            f"repos/{owner}/{repo}/actions/workflows/{workflow}/dispatches",
            json={"ref": ref, "inputs": inputs},
        )

    async def download_run_logs(self, logs_url: str) -> bytes:
        """Download the zipped log archive of a workflow run.

        Args:
            logs_url: ``logs_url`` from the workflow run payload

        Returns:
            Raw zip archive bytes
        """
        logger.debug(f"Downloading workflow logs from {logs_url}")
        response = await self._request("GET", logs_url)
        return response.content
