"""Public sink: publish pages and assets to GitHub as one commit.

Uses the git data API so that any number of files lands in a single
commit: blobs are created first, then one tree layered over the branch
head's tree, a commit on top of the head, and finally the branch ref is
moved. Nothing is committed unless every blob was created.
"""

import asyncio
import base64
import logging
from typing import Any, Awaitable, Dict, List, Optional, Sequence

import httpx

from bridge_publisher.core.models import AssetUpload, RenderedPage, SinkError

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
COMMIT_MESSAGE = "bridge: publish multiple files"
FILE_MODE = "100644"


async def gather_or_cancel(aws: Sequence[Awaitable[Any]]) -> List[Any]:
    """Await all of `aws`; on the first failure cancel the rest and re-raise."""
    tasks = [asyncio.ensure_future(a) for a in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class GitHubSink:
    """Commits rendered pages and public assets to a GitHub repository."""

    name = "github"

    def __init__(
        self,
        repository: str,
        token: str,
        branch: str = "main",
        api_url: str = GITHUB_API_URL,
        commit_message: str = COMMIT_MESSAGE,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            repository: Target repository as `owner/name`
            token: Bearer token with contents write access
            branch: Branch to advance
            api_url: GitHub API base URL
            commit_message: Message of the publish commit
            timeout: Request timeout in seconds (None waits indefinitely)
            transport: Custom httpx transport (tests)
        """
        if "/" not in repository:
            raise ValueError(f"Repository must be 'owner/name', got {repository!r}")
        self.repository = repository
        self.branch = branch
        self.api_url = api_url.rstrip("/")
        self.commit_message = commit_message
        self._token = token
        self._timeout = timeout
        self._transport = transport

    async def publish(self, pages: Sequence[RenderedPage], assets: Sequence[AssetUpload]) -> str:
        """Publish everything as one commit.

        Returns:
            SHA of the new commit

        Raises:
            SinkError: if any request fails or returns an unexpected body;
                the branch is left untouched
                unless the final ref update itself was the failing step
        """
        repo = f"/repos/{self.repository}"
        async with self._client() as client:
            try:
                head = await self._request(client, "GET", f"{repo}/commits/{self.branch}")
                parent_sha = head["sha"]
                base_tree = head["commit"]["tree"]["sha"]

                blobs = [self._page_entry(client, repo, page) for page in pages]
                blobs += [self._asset_entry(client, repo, asset) for asset in assets]
                entries = await gather_or_cancel(blobs)

                tree = await self._request(client, "POST", f"{repo}/git/trees", json={
                    "base_tree": base_tree,
                    "tree": entries,
                })
                commit = await self._request(client, "POST", f"{repo}/git/commits", json={
                    "message": self.commit_message,
                    "tree": tree["sha"],
                    "parents": [parent_sha],
                })
                await self._request(client, "PATCH", f"{repo}/git/refs/heads/{self.branch}", json={
                    "sha": commit["sha"],
                })
            except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
                raise SinkError(f"GitHub publish to {self.repository} failed: {e}") from e

        logger.info(
            "Committed %d pages and %d assets to %s@%s (%s)",
            len(pages), len(assets), self.repository, self.branch, commit["sha"],
        )
        return commit["sha"]

    async def _page_entry(self, client: httpx.AsyncClient, repo: str, page: RenderedPage) -> Dict[str, str]:
        blob = await self._request(client, "POST", f"{repo}/git/blobs", json={
            "content": page.html,
            "encoding": "utf-8",
        })
        return self._tree_entry(page.path, blob["sha"])

    async def _asset_entry(self, client: httpx.AsyncClient, repo: str, asset: AssetUpload) -> Dict[str, str]:
        blob = await self._request(client, "POST", f"{repo}/git/blobs", json={
            "content": base64.b64encode(asset.content).decode("ascii"),
            "encoding": "base64",
        })
        return self._tree_entry(asset.path, blob["sha"])

    @staticmethod
    def _tree_entry(path: str, sha: str) -> Dict[str, str]:
        return {"path": path, "mode": FILE_MODE, "type": "blob", "sha": sha}

    @staticmethod
    async def _request(client: httpx.AsyncClient, method: str, url: str, **kwargs) -> Dict[str, Any]:
        resp = await client.request(method, url, **kwargs)
        resp.raise_for_status()
        return resp.json()

    def _client(self) -> httpx.AsyncClient:
        headers = {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        return httpx.AsyncClient(
            base_url=self.api_url,
            headers=headers,
            timeout=self._timeout,
            transport=self._transport,
        )
