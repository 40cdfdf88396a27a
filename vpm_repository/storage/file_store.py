"""
Whole-file reads and atomic writes for the index and cache files.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import aiofiles

logger = logging.getLogger(__name__)


async def read_optional(path: Path) -> Optional[bytes]:
    """
    Read a file's bytes, or return None if it does not exist.
    """
    try:
        async with aiofiles.open(path, "rb") as f:
            return await f.read()
    except FileNotFoundError:
        logger.debug(f"{path} does not exist")
        return None


async def write_atomic(path: Path, data: bytes) -> None:
    """
    Replace ``path`` with ``data``.

    The bytes go to a temp file next to the target first, so a failed write
    leaves the previous file untouched.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.name}.tmp")

    try:
        async with aiofiles.open(tmp_path, "wb") as f:
            await f.write(data)
            await f.flush()
            os.fsync(f.fileno())
        tmp_path.replace(path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise

    logger.debug(f"Wrote {len(data)} bytes to {path}")
