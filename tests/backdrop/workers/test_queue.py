"""Tests for the render queue contract."""

import uuid

import pytest

from backdrop.contracts import DLQ_TTL_SECONDS, RENDER_ATTEMPTS, RENDER_DLQ, RENDER_QUEUE, RenderTask
from backdrop.workers.queue import (
    clear_failures,
    move_to_dlq,
    pop_task,
    push_raw,
    push_task,
    record_failure,
    requeue_task,
)


def make_task() -> RenderTask:
    return RenderTask(target=uuid.uuid4(), audio=uuid.uuid4(), image=uuid.uuid4())


@pytest.mark.asyncio
async def test_pop_empty_queue(redis_client):
    assert await pop_task(redis_client) is None


@pytest.mark.asyncio
async def test_fifo_order(redis_client):
    first, second, third = make_task(), make_task(), make_task()
    for task in (first, second, third):
        await push_task(redis_client, task)

    popped = [(await pop_task(redis_client)).task for _ in range(3)]

    assert popped == [first, second, third]
    assert await pop_task(redis_client) is None


@pytest.mark.asyncio
async def test_pop_returns_raw_payload(redis_client):
    task = make_task()
    await push_task(redis_client, task)

    popped = await pop_task(redis_client)

    assert popped.raw == task.model_dump_json().encode()
    assert popped.error is None


@pytest.mark.asyncio
async def test_pop_malformed_payload(redis_client):
    await push_raw(redis_client, b"{not json")

    popped = await pop_task(redis_client)

    assert popped.task is None
    assert popped.error is not None
    assert popped.raw == b"{not json"
    assert await redis_client.exists(RENDER_QUEUE) == 0


@pytest.mark.asyncio
async def test_record_and_clear_failures(redis_client):
    task = make_task()

    assert await record_failure(redis_client, task) == 1
    assert await record_failure(redis_client, task) == 2

    await clear_failures(redis_client, task)
    assert await redis_client.hget(RENDER_ATTEMPTS, str(task.target)) is None


@pytest.mark.asyncio
async def test_requeue_goes_behind_waiting_tasks(redis_client):
    failed, waiting = make_task(), make_task()
    await push_task(redis_client, waiting)

    await requeue_task(redis_client, failed, failed.model_dump_json().encode(), attempts=1)

    assert (await pop_task(redis_client)).task == waiting
    assert (await pop_task(redis_client)).task == failed


@pytest.mark.asyncio
async def test_move_to_dlq(redis_client):
    task = make_task()
    raw = task.model_dump_json().encode()
    await record_failure(redis_client, task)

    await move_to_dlq(redis_client, task, raw, attempts=5)

    assert await redis_client.lrange(RENDER_DLQ, 0, -1) == [raw]
    assert DLQ_TTL_SECONDS - 5 < await redis_client.ttl(RENDER_DLQ) <= DLQ_TTL_SECONDS
    assert await redis_client.hget(RENDER_ATTEMPTS, str(task.target)) is None
    assert await pop_task(redis_client) is None
