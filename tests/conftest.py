from __future__ import annotations

import asyncio
import json
from typing import Dict, List, Optional, Set

import httpx
import pytest

from vpm_repository.domain.models import Source
from vpm_repository.services.github import GitHubClient, create_http_client
from vpm_repository.services.hasher import ContentHasher
from vpm_repository.services.ingestion import ReleaseIngestionPipeline
from vpm_repository.storage.hash_cache import HashCache

API = "https://api.github.com"


def download_url(repo: str, tag: str, name: str) -> str:
    return f"https://github.com/{repo}/releases/download/{tag}/{name}"


class FakeGitHub:
    """In-memory stand-in for the GitHub API and release downloads."""

    def __init__(self) -> None:
        self.releases: Dict[str, List[dict]] = {}
        self.files: Dict[str, bytes] = {}
        self.failing: Set[str] = set()
        self.delays: Dict[str, float] = {}
        self.requests: List[str] = []
        self.page_size: Optional[int] = None
        self.in_flight = 0
        self.max_in_flight = 0

    def add_release(
        self,
        repo: str,
        tag: str,
        package: Optional[dict] = None,
        zip_bytes: Optional[bytes] = None,
        zip_url: Optional[str] = None,
        zip_content_type: str = "application/zip",
        draft: bool = False,
        extra_assets: Optional[List[dict]] = None,
    ) -> dict:
        assets: List[dict] = []
        if package is not None:
            url = download_url(repo, tag, "package.json")
            self.files[url] = json.dumps(package).encode("utf-8")
            assets.append(
                {"name": "package.json", "content_type": "application/json", "browser_download_url": url}
            )
        if zip_bytes is not None:
            url = zip_url or download_url(repo, tag, f"{tag}.zip")
            self.files[url] = zip_bytes
            assets.append(
                {
                    "name": url.rsplit("/", 1)[-1],
                    "content_type": zip_content_type,
                    "browser_download_url": url,
                    "size": len(zip_bytes),
                }
            )
        assets.extend(extra_assets or [])
        release = {"name": tag, "tag_name": tag, "draft": draft, "assets": assets}
        self.releases.setdefault(repo, []).append(release)
        return release

    def count(self, url: str) -> int:
        return sum(1 for requested in self.requests if requested == url)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url).split("?", 1)[0]
        self.requests.append(url)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(url, 0))
            if url in self.failing:
                return httpx.Response(500, text="boom")

            prefix = f"{API}/repos/"
            if url.startswith(prefix) and url.endswith("/releases"):
                repo = url[len(prefix):-len("/releases")]
                if repo not in self.releases:
                    return httpx.Response(404, json={"message": "Not Found"})
                return self._releases_page(request, repo)

            if url in self.files:
                return httpx.Response(200, content=self.files[url])
            return httpx.Response(404, text="Not Found")
        finally:
            self.in_flight -= 1

    def _releases_page(self, request: httpx.Request, repo: str) -> httpx.Response:
        releases = self.releases[repo]
        if self.page_size is None:
            return httpx.Response(200, json=releases)

        page = int(request.url.params.get("page", "1"))
        start = (page - 1) * self.page_size
        chunk = releases[start:start + self.page_size]
        headers = {}
        if start + self.page_size < len(releases):
            next_url = f"{API}/repos/{repo}/releases?per_page={self.page_size}&page={page + 1}"
            headers["Link"] = f'<{next_url}>; rel="next"'
        return httpx.Response(200, json=chunk, headers=headers)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def source() -> Source:
    return Source(
        name="Test",
        id="test.repo",
        url="https://example.com",
        author="Alice",
        githubRepos=["acme/widget"],
    )


@pytest.fixture
def run_ingestion(fake_github: FakeGitHub):
    """Run the ingestion pipeline against the fake GitHub and return it."""

    def run(
        source: Source,
        cache: Optional[HashCache] = None,
        hasher: Optional[ContentHasher] = None,
        max_concurrency: int = 8,
    ):
        async def _run():
            async with create_http_client(transport=fake_github.transport()) as http:
                github = GitHubClient(http, max_concurrency=max_concurrency)
                pipeline = ReleaseIngestionPipeline(github, cache if cache is not None else HashCache(), hasher)
                descriptors = await pipeline.run(source)
                return descriptors, pipeline

        return asyncio.run(_run())

    return run
