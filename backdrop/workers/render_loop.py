"""Pull-based render worker that turns queued tasks into videos."""

import asyncio
from contextlib import AsyncExitStack
from enum import StrEnum

from loguru import logger
from redis.asyncio import Redis
from redis.exceptions import RedisError

from backdrop.config import Settings
from backdrop.contracts import RENDER_QUEUE, AssetKind, RenderTask
from backdrop.exceptions import RecoverableRenderError
from backdrop.workers.committer import commit_result
from backdrop.workers.encoder import render_video
from backdrop.workers.queue import move_to_dlq, pop_task, push_raw, record_failure, requeue_task
from backdrop.workers.staging import stage_asset

ERROR_BACKOFF_SECONDS = 1.0


class IterationOutcome(StrEnum):
    IDLE = "idle"  # queue empty
    DROPPED = "dropped"  # malformed payload discarded
    RENDERED = "rendered"
    RETRY = "retry"  # failed, task pushed back (or lost if that failed too)
    DEAD_LETTERED = "dead_lettered"  # failed too often, moved to DLQ


def backoff_for(outcome: IterationOutcome, laziness: float) -> float:
    """Seconds to sleep before the next poll."""
    if outcome is IterationOutcome.IDLE:
        return laziness
    if outcome in (IterationOutcome.RETRY, IterationOutcome.DEAD_LETTERED):
        return ERROR_BACKOFF_SECONDS
    return 0


async def run_render_worker(client: Redis, settings: Settings, worker_id: str) -> None:
    """Poll the render queue until cancelled.

    Task-level failures never end the loop; they are logged and followed by a
    short backoff.
    """
    worker_settings = settings.render_worker
    logger.info(
        f"Render worker {worker_id} starting, queue={RENDER_QUEUE}, "
        f"laziness={worker_settings.laziness}s, lifetime={worker_settings.lifetime}min"
    )

    try:
        while True:
            try:
                outcome = await process_one_task(client, settings)
            except (RedisError, OSError) as e:
                logger.exception(f"Render worker {worker_id} failed to poll {RENDER_QUEUE}: {e}")
                outcome = IterationOutcome.RETRY

            delay = backoff_for(outcome, worker_settings.laziness)
            if delay:
                await asyncio.sleep(delay)
    except asyncio.CancelledError:
        logger.info(f"Render worker {worker_id} shutting down")


async def process_one_task(client: Redis, settings: Settings) -> IterationOutcome:
    """Pop one task and carry it through render and commit, or recover from the failure.

    The iteration runs on its own connection from the pool. It is opened
    before the pop, so a connection failure leaves the queue untouched.
    """
    async with client.client() as conn:
        popped = await pop_task(conn)
        if popped is None:
            return IterationOutcome.IDLE

        if popped.task is None:
            logger.error(f"Dropping malformed render task {popped.raw[:200]!r}: {popped.error}")
            return IterationOutcome.DROPPED

        task = popped.task
        task_log = logger.bind(**task.log_context)
        task_log.info("Render task started")

        try:
            result_id = await _render_and_commit(conn, task, settings)
        except RecoverableRenderError as e:
            task_log.warning(f"Render attempt failed: {e}")
            return await _recover(conn, task, popped.raw, settings.render_worker.max_attempts)
        except Exception as e:
            task_log.exception(f"Render attempt failed unexpectedly: {e}")
            return await _recover(conn, task, popped.raw, settings.render_worker.max_attempts)
        except asyncio.CancelledError:
            task_log.warning("Render interrupted by shutdown, returning task to the queue")
            await push_raw(conn, popped.raw)
            raise

    task_log.info(f"Render task completed, result={result_id}")
    return IterationOutcome.RENDERED


async def _render_and_commit(conn: Redis, task: RenderTask, settings: Settings) -> str:
    staging_dir = settings.render_worker.staging_dir

    async with AsyncExitStack() as staged:
        audio = await staged.enter_async_context(stage_asset(conn, str(task.audio), AssetKind.AUDIO, staging_dir))
        image = await staged.enter_async_context(stage_asset(conn, str(task.image), AssetKind.IMAGE, staging_dir))
        video = await render_video(image, audio, settings.encoder)

    return await commit_result(conn, task, video, settings.render_worker.lifetime)


async def _recover(conn: Redis, task: RenderTask, raw: bytes, max_attempts: int) -> IterationOutcome:
    """Push the original payload back, or dead-letter it once it has failed `max_attempts` times."""
    task_log = logger.bind(**task.log_context)

    attempts = 0
    try:
        attempts = await record_failure(conn, task)
    except (RedisError, OSError) as e:
        task_log.warning(f"Failed to record render attempt: {e}")

    try:
        if max_attempts and attempts >= max_attempts:
            await move_to_dlq(conn, task, raw, attempts)
            return IterationOutcome.DEAD_LETTERED
        await requeue_task(conn, task, raw, attempts)
    except (RedisError, OSError) as e:
        task_log.warning(f"Failed to re-queue render task, task is lost: {e}")

    return IterationOutcome.RETRY
