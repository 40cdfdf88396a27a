"""
End-to-end repository build: read source and cache, ingest releases,
write the index and the updated cache.
"""
from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

import httpx

from vpm_repository.core.settings import Settings
from vpm_repository.data.source import load_source
from vpm_repository.domain.models import PackageIndex
from vpm_repository.services.assembler import IndexAssembler, render_index
from vpm_repository.services.github import GitHubClient, create_http_client
from vpm_repository.services.hasher import ContentHasher
from vpm_repository.services.ingestion import IngestionStats, ReleaseIngestionPipeline
from vpm_repository.storage.file_store import read_optional, write_atomic
from vpm_repository.storage.hash_cache import HashCache

logger = logging.getLogger(__name__)


@contextmanager
def timed_phase(label: str) -> Iterator[None]:
    """Log ``label`` with its elapsed time once the block completes."""
    started = time.perf_counter()
    logger.info(f"{label} ...")
    yield
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(f"{label} ... done: {elapsed_ms:.0f}ms")


@dataclass
class BuildResult:
    index: PackageIndex
    cache: HashCache
    stats: IngestionStats


async def build_repository(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    hasher: Optional[ContentHasher] = None,
) -> BuildResult:
    """
    Run one full build as configured by ``settings``.

    Raises SourceError before any network activity when the source file is
    unusable. Per-repository and per-release failures only shrink the index.
    """
    with timed_phase(f"Read {settings.input_path}"):
        source = await load_source(settings.input_path)

    with timed_phase(f"Read {settings.cache_path}"):
        try:
            cache_data = await read_optional(settings.cache_path)
        except OSError as e:
            logger.warning(f"Cannot read hash cache {settings.cache_path}, starting empty: {e}")
            cache_data = None
        cache = HashCache.load(cache_data)
        logger.info(f"{len(cache)} cached hash(es)")

    async with create_http_client(settings.token, transport=transport) as http:
        github = GitHubClient(http, api_url=settings.api_url, max_concurrency=settings.max_concurrency)
        pipeline = ReleaseIngestionPipeline(github, cache, hasher)
        with timed_phase("Fetch packages"):
            descriptors = await pipeline.run(source)

    index = IndexAssembler(source).assemble(descriptors)

    with timed_phase(f"Export package list > {settings.output_path}"):
        await write_atomic(settings.output_path, render_index(index, settings.indent))

    with timed_phase(f"Export hash cache > {settings.cache_path}"):
        await write_atomic(settings.cache_path, cache.serialize(settings.indent))

    return BuildResult(index=index, cache=cache, stats=pipeline.stats)
