"""Producer side of the render queue: submitting renders and reading results back.

These are the calls the upload and download endpoints make. They share the
queue contract with the render worker through `backdrop.workers.queue`.
"""

import uuid

from loguru import logger
from redis.asyncio import Redis

from backdrop.contracts import (
    GONE,
    PENDING,
    READY,
    RENDER_QUEUE,
    AssetKind,
    RenderProgress,
    RenderTask,
    RenderTaskBuilder,
)
from backdrop.exceptions import AssetTooLargeError, IncompleteTaskError, ResultNotFoundError
from backdrop.store import transaction

DEFAULT_MAX_ASSET_BYTES = 5 << 20

# TTL reply for a key that does not exist
REDIS_TTL_EXPIRED = -2


def _check_asset(kind: AssetKind, data: bytes, limit: int) -> None:
    if not data:
        raise IncompleteTaskError([kind.value])
    if len(data) > limit:
        raise AssetTooLargeError(kind, len(data), limit)


async def submit_render(
    client: Redis,
    audio: bytes,
    image: bytes,
    *,
    max_asset_bytes: int = DEFAULT_MAX_ASSET_BYTES,
) -> RenderTask:
    """Store both assets, mark the render as pending and queue it.

    All three writes go through one transaction, so a task never reaches the
    queue without its assets and its progress marker.
    """
    _check_asset(AssetKind.AUDIO, audio, max_asset_bytes)
    _check_asset(AssetKind.IMAGE, image, max_asset_bytes)

    task = RenderTaskBuilder().add_audio(uuid.uuid4()).add_image(uuid.uuid4()).build()

    async with transaction(client) as tx:
        tx.set(str(task.audio), audio)
        tx.set(str(task.image), image)
        tx.set(str(task.target), PENDING)
        tx.lpush(RENDER_QUEUE, task.model_dump_json().encode())

    logger.bind(**task.log_context).info(f"Queued render ({len(audio)} bytes audio, {len(image)} bytes image)")
    return task


async def check_progress(client: Redis, target: uuid.UUID | str) -> RenderProgress:
    """Report whether a render is still pending, ready for download or gone.

    Once the result has expired the marker is deleted, so every later call
    reports `gone` as well.
    """
    marker = await client.get(str(target))
    if marker is None:
        return RenderProgress(progress=GONE)

    value = marker.decode() if isinstance(marker, bytes) else marker
    if value == PENDING:
        return RenderProgress(progress=PENDING)

    video_key = value
    if await client.ttl(video_key) == REDIS_TTL_EXPIRED:
        await client.delete(str(target))
        logger.info(f"Result {video_key} for {target} has expired")
        return RenderProgress(progress=GONE)

    return RenderProgress(progress=READY, video_key=video_key)


async def load_result(client: Redis, result_id: uuid.UUID | str) -> bytes:
    data = await client.get(str(result_id))
    if data is None:
        raise ResultNotFoundError(str(result_id))
    return data
