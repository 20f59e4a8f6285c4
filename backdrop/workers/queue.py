"""Queue operations shared by the render worker and the producer side.

The queue is a plain Redis list: producers LPUSH onto the tail and the worker
RPOPs the head, so tasks come out in push order. RPOP is atomic, which is all
that is needed for several workers to share one queue.
"""

from dataclasses import dataclass

from loguru import logger
from pydantic import ValidationError
from redis.asyncio import Redis

from backdrop.contracts import DLQ_TTL_SECONDS, RENDER_ATTEMPTS, RENDER_DLQ, RENDER_QUEUE, RenderTask


@dataclass
class PoppedTask:
    """A payload popped from the queue, parsed if possible."""

    raw: bytes
    task: RenderTask | None
    error: ValidationError | None = None


async def push_raw(client: Redis, raw: bytes) -> None:
    await client.lpush(RENDER_QUEUE, raw)


async def push_task(client: Redis, task: RenderTask) -> None:
    """Append a task to the tail of the queue."""
    await push_raw(client, task.model_dump_json().encode())


async def pop_task(client: Redis) -> PoppedTask | None:
    """Pop the oldest entry from the queue.

    Returns None if the queue is empty. Never blocks. A payload that does not
    parse is still returned (with `task=None`) so the caller can log and drop it.
    """
    raw = await client.rpop(RENDER_QUEUE)
    if raw is None:
        return None
    if isinstance(raw, str):
        raw = raw.encode()

    try:
        task = RenderTask.model_validate_json(raw)
    except ValidationError as e:
        return PoppedTask(raw=raw, task=None, error=e)
    return PoppedTask(raw=raw, task=task)


async def record_failure(client: Redis, task: RenderTask) -> int:
    """Count a failed attempt for this task and return the running total."""
    return await client.hincrby(RENDER_ATTEMPTS, str(task.target), 1)


async def clear_failures(client: Redis, task: RenderTask) -> None:
    await client.hdel(RENDER_ATTEMPTS, str(task.target))


async def requeue_task(client: Redis, task: RenderTask, raw: bytes, attempts: int) -> None:
    """Put the original payload back on the tail of the queue."""
    await push_raw(client, raw)
    logger.info(f"Re-queued render task {task.target}, attempts={attempts}")


async def move_to_dlq(client: Redis, task: RenderTask, raw: bytes, attempts: int) -> None:
    """Move a task to the dead letter queue.

    DLQ expires 7 days after the last entry. Assets and the pending marker are
    left untouched so the task can be inspected and pushed again by hand.
    """
    await client.lpush(RENDER_DLQ, raw)
    await client.expire(RENDER_DLQ, DLQ_TTL_SECONDS)
    await clear_failures(client, task)
    logger.error(f"Render task {task.target} moved to DLQ after {attempts} attempts")
