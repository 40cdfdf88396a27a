"""
Concurrent ingestion of GitHub releases into package descriptors.

For every repository of a source the releases are listed, and for every
release the ``package.json`` asset is paired with the release's zip archive.
Releases that do not carry both are skipped. The archive hash is resolved
through the hash cache, downloading the archive only on a cache miss.
"""
from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import httpx
from pydantic import ValidationError

from vpm_repository.domain.models import Asset, PackageDescriptor, Release, Source
from vpm_repository.services.github import GitHubClient
from vpm_repository.services.hasher import ContentHasher
from vpm_repository.storage.hash_cache import HashCache

logger = logging.getLogger(__name__)

DESCRIPTOR_ASSET_NAME = "package.json"
ZIP_CONTENT_TYPES = frozenset({"application/zip", "application/x-zip-compressed"})

# Errors that drop a single release or repository instead of the whole build.
_RECOVERABLE_ERRORS = (httpx.HTTPError, httpx.InvalidURL, ValidationError, ValueError)


@dataclass
class IngestionStats:
    repositories: int = 0
    failed_repositories: int = 0
    releases: int = 0
    skipped_releases: int = 0
    failed_releases: int = 0
    packages: int = 0
    cache_hits: int = 0
    hashed: int = 0


def find_release_assets(release: Release) -> Tuple[Optional[Asset], Optional[Asset]]:
    """
    Return the first descriptor asset and the first zip asset of a release.

    Scanning stops as soon as both have been seen.
    """
    descriptor: Optional[Asset] = None
    archive: Optional[Asset] = None
    for asset in release.assets:
        if asset.name == DESCRIPTOR_ASSET_NAME:
            if descriptor is None:
                descriptor = asset
        elif asset.content_type in ZIP_CONTENT_TYPES:
            if archive is None:
                archive = asset

        if descriptor is not None and archive is not None:
            break
    return descriptor, archive


class ReleaseIngestionPipeline:
    """Collects resolved package descriptors for every release of a source."""

    def __init__(
        self,
        github: GitHubClient,
        cache: HashCache,
        hasher: Optional[ContentHasher] = None,
    ):
        self.github = github
        self.cache = cache
        self.hasher = hasher or ContentHasher()
        self.stats = IngestionStats()
        self._hash_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def run(self, source: Source) -> List[PackageDescriptor]:
        """
        Ingest every repository of ``source`` and return the descriptors found.

        The result has no particular order. Per-repository and per-release
        failures are logged and skipped.
        """
        results: asyncio.Queue[PackageDescriptor] = asyncio.Queue()

        await asyncio.gather(
            *(self._ingest_repository(repository, results) for repository in source.repositories)
        )

        descriptors: List[PackageDescriptor] = []
        while not results.empty():
            descriptors.append(results.get_nowait())

        self.stats.packages = len(descriptors)
        logger.info(
            f"Collected {self.stats.packages} package version(s) from "
            f"{self.stats.releases} release(s) in {self.stats.repositories} repository(ies); "
            f"{self.stats.skipped_releases} skipped, {self.stats.failed_releases} failed, "
            f"{self.stats.failed_repositories} repository(ies) unreachable; "
            f"hashes: {self.stats.cache_hits} cached, {self.stats.hashed} computed"
        )
        return descriptors

    async def _ingest_repository(
        self,
        repository: str,
        results: "asyncio.Queue[PackageDescriptor]",
    ) -> None:
        self.stats.repositories += 1
        try:
            releases = await self.github.list_releases(repository)
        except _RECOVERABLE_ERRORS as e:
            self.stats.failed_repositories += 1
            logger.warning(f"Failed to list releases of {repository}: {e}")
            return

        await asyncio.gather(
            *(self._ingest_release(repository, release, results) for release in releases)
        )

    async def _ingest_release(
        self,
        repository: str,
        release: Release,
        results: "asyncio.Queue[PackageDescriptor]",
    ) -> None:
        self.stats.releases += 1
        try:
            descriptor = await self.resolve_release(repository, release)
        except _RECOVERABLE_ERRORS as e:
            self.stats.failed_releases += 1
            logger.warning(f"Failed to ingest {repository} release {release.label}: {e}")
            return

        if descriptor is None:
            self.stats.skipped_releases += 1
            return
        results.put_nowait(descriptor)

    async def resolve_release(self, repository: str, release: Release) -> Optional[PackageDescriptor]:
        """
        Pair a release's descriptor with its archive and fill in url and hash.

        Returns None for releases that are skipped on purpose (drafts, or a
        missing descriptor or archive). Fetch and parse errors propagate.
        """
        if release.draft:
            logger.debug(f"Skipping {repository} release {release.label}: draft")
            return None

        descriptor_asset, archive_asset = find_release_assets(release)
        if descriptor_asset is None:
            logger.debug(f"Skipping {repository} release {release.label}: no {DESCRIPTOR_ASSET_NAME}")
            return None
        if archive_asset is None:
            logger.debug(f"Skipping {repository} release {release.label}: no zip archive")
            return None

        raw = await self.github.download(descriptor_asset.browser_download_url)
        descriptor = PackageDescriptor.model_validate_json(raw.decode("utf-8-sig"))

        descriptor.url = archive_asset.browser_download_url
        if not descriptor.zip_sha256:
            descriptor.zip_sha256 = await self._resolve_hash(archive_asset)

        logger.debug(f"{repository} release {release.label}: {descriptor.name} {descriptor.version}")
        return descriptor

    async def _resolve_hash(self, archive: Asset) -> str:
        url = archive.browser_download_url
        # One lock per URL so concurrent releases sharing an archive hash it once.
        async with self._hash_locks[url]:
            digest = self.cache.get(url)
            if digest is not None:
                self.stats.cache_hits += 1
                return digest

            async with self.github.limit:
                digest = await self.hasher.hash_url(self.github.http, url, expected_size=archive.size)
            self.cache.put(url, digest)
            self.stats.hashed += 1
            return digest
