"""Stage blobs from Redis as local files for ffmpeg."""

import asyncio
import os
import tempfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from loguru import logger
from redis.asyncio import Redis
from redis.exceptions import RedisError

from backdrop.contracts import AssetKind
from backdrop.exceptions import AssetFetchError

STAGED_PREFIX = "backdrop-"


async def fetch_blob(client: Redis, blob_id: str) -> bytes:
    try:
        data = await client.get(blob_id)
    except RedisError as e:
        raise AssetFetchError(blob_id, f"{type(e).__name__}: {e}") from e
    if data is None:
        raise AssetFetchError(blob_id, "blob does not exist")
    return data


def _write_staged_file(data: bytes, suffix: str, staging_dir: Path | None) -> Path:
    fd, name = tempfile.mkstemp(prefix=STAGED_PREFIX, suffix=suffix, dir=staging_dir)
    os.close(fd)
    path = Path(name)
    try:
        path.write_bytes(data)
    except BaseException:
        path.unlink(missing_ok=True)
        raise
    return path


def _discard_staged_file(write: "asyncio.Future[Path]") -> None:
    if write.cancelled() or write.exception() is not None:
        return
    write.result().unlink(missing_ok=True)


@asynccontextmanager
async def stage_asset(
    client: Redis,
    blob_id: str,
    kind: AssetKind,
    staging_dir: Path | None = None,
) -> AsyncIterator[Path]:
    """Fetch a blob and expose it as a temporary file for the duration of the block.

    The blob is fetched before any file is created, so a fetch failure leaves
    nothing behind. The file is removed when the block exits, whatever the reason.
    """
    data = await fetch_blob(client, blob_id)
    write = asyncio.ensure_future(asyncio.to_thread(_write_staged_file, data, kind.suffix, staging_dir))
    try:
        path = await asyncio.shield(write)
    except asyncio.CancelledError:
        # the thread still finishes the file; remove it once it does
        write.add_done_callback(_discard_staged_file)
        raise
    logger.debug(f"Staged {kind} {blob_id} at {path} ({len(data)} bytes)")
    try:
        yield path
    finally:
        path.unlink(missing_ok=True)
        logger.debug(f"Removed staged {kind} {path}")
