"""
Thin async client for the GitHub releases API and release asset downloads.
"""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

import httpx
from pydantic import TypeAdapter

from vpm_repository.domain.models import Release

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
USER_AGENT = "vpm-repository-builder"
RELEASES_PAGE_SIZE = 100

_RELEASE_LIST = TypeAdapter(List[Release])


def create_http_client(
    token: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    timeout: float = 60.0,
) -> httpx.AsyncClient:
    """
    Build the shared HTTP client.

    Headers are fixed here and never changed per request, so one client can
    serve every concurrent task.
    """
    headers = {
        "User-Agent": USER_AGENT,
        "Accept": "application/vnd.github+json",
    }
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return httpx.AsyncClient(
        headers=headers,
        follow_redirects=True,
        timeout=timeout,
        transport=transport,
    )


class GitHubClient:
    """
    Issues every request of a build through a shared semaphore so the total
    number of in-flight requests never exceeds ``max_concurrency``.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_url: str = GITHUB_API_URL,
        max_concurrency: int = 8,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.http = http
        self.api_url = api_url.rstrip("/")
        self._limit = asyncio.Semaphore(max_concurrency)

    @property
    def limit(self) -> asyncio.Semaphore:
        return self._limit

    async def list_releases(self, repository: str) -> List[Release]:
        """
        Fetch every release of ``owner/repo``, following ``Link: rel="next"``
        pagination.
        """
        url: Optional[str] = f"{self.api_url}/repos/{repository}/releases"
        params: Optional[dict] = {"per_page": RELEASES_PAGE_SIZE}
        releases: List[Release] = []

        while url:
            async with self._limit:
                response = await self.http.get(url, params=params)
            response.raise_for_status()
            releases.extend(_RELEASE_LIST.validate_json(response.content))

            # The next link already carries the query string.
            url = response.links.get("next", {}).get("url")
            params = None

        logger.debug(f"{repository}: {len(releases)} release(s)")
        return releases

    async def download(self, url: str) -> bytes:
        """Fetch a release asset fully into memory."""
        async with self._limit:
            response = await self.http.get(url, headers={"Accept": "application/octet-stream"})
        response.raise_for_status()
        return response.content
