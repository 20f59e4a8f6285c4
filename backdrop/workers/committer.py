import uuid

from loguru import logger
from redis.asyncio import Redis

from backdrop.contracts import RENDER_ATTEMPTS, RenderTask
from backdrop.exceptions import CommitError
from backdrop.store import transaction


async def commit_result(client: Redis, task: RenderTask, video: bytes, lifetime_minutes: int) -> str:
    """Store a finished render and retire the task's assets in one transaction.

    Stores the video under a fresh ID with a TTL of `lifetime_minutes`, points
    the progress marker at it and deletes both source assets. Either all of it
    happens or none of it does.

    Returns:
        The new result ID.

    Raises:
        CommitError: any step failed; the transaction was discarded.
    """
    result_id = str(uuid.uuid4())
    target = str(task.target)

    try:
        async with transaction(client) as tx:
            tx.set(result_id, video)
            tx.expire(result_id, lifetime_minutes * 60)
            tx.set(target, result_id)
            tx.delete(str(task.image), str(task.audio))
            tx.hdel(RENDER_ATTEMPTS, target)
    except Exception as e:
        raise CommitError(target, f"{type(e).__name__}: {e}") from e

    logger.bind(**task.log_context).info(
        f"Committed result {result_id} ({len(video)} bytes, expires in {lifetime_minutes}min)"
    )
    return result_id
