"""
SHA-256 content hashing of release archives.
"""
from __future__ import annotations

import hashlib
import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


def hash_bytes(data: bytes) -> str:
    """Return the lowercase hex SHA-256 digest of ``data``."""
    return hashlib.sha256(data).hexdigest()


class ContentHasher:
    """Downloads archives and computes their SHA-256 digest."""

    def __init__(self):
        self.calls = 0

    async def hash_url(
        self,
        client: httpx.AsyncClient,
        url: str,
        expected_size: Optional[int] = None,
    ) -> str:
        """
        Stream ``url`` through SHA-256 and return the hex digest.

        Raises httpx.HTTPError on transport or status errors, and ValueError
        when the server sends a different number of bytes than the release
        asset declares.
        """
        self.calls += 1
        logger.debug(f"Hashing archive {url}")

        hasher = hashlib.sha256()
        received = 0
        async with client.stream("GET", url) as response:
            response.raise_for_status()
            async for chunk in response.aiter_bytes():
                hasher.update(chunk)
                received += len(chunk)

        if expected_size is not None and received != expected_size:
            raise ValueError(f"Archive size mismatch for {url}: expected {expected_size} bytes, got {received}")

        return hasher.hexdigest()
