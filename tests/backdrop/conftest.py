import uuid
from pathlib import Path

import pytest
import pytest_asyncio
from testcontainers.redis import RedisContainer

from backdrop.config import EncoderSettings, RenderWorkerSettings, Settings
from backdrop.contracts import PENDING, RenderTask, RenderTaskBuilder
from backdrop.redis_client import create_redis_client
from backdrop.workers.queue import push_task


@pytest.fixture(scope="session")
def redis_container():
    with RedisContainer("redis:7-alpine") as redis:
        yield redis


@pytest.fixture(scope="session")
def redis_url(redis_container) -> str:
    return f"redis://{redis_container.get_container_host_ip()}:{redis_container.get_exposed_port(6379)}"


@pytest.fixture
def settings(tmp_path: Path, redis_url: str) -> Settings:
    return Settings(
        redis_url=redis_url,
        redis_max_connections=5,
        render_worker=RenderWorkerSettings(laziness=3, lifetime=10, max_attempts=3, staging_dir=tmp_path),
        encoder=EncoderSettings(),
        log_dir=tmp_path / "logs",
    )


@pytest_asyncio.fixture(scope="function")
async def redis_client(settings: Settings):
    client = await create_redis_client(settings)
    await client.flushdb()
    yield client
    await client.aclose()


@pytest_asyncio.fixture
async def queued_task(redis_client) -> RenderTask:
    """A task on the queue with both assets and the pending marker in place."""
    task = RenderTaskBuilder().add_audio(uuid.uuid4()).add_image(uuid.uuid4()).build()
    await redis_client.set(str(task.audio), b"ID3-audio-bytes")
    await redis_client.set(str(task.image), b"\x89PNG-image-bytes")
    await redis_client.set(str(task.target), PENDING)
    await push_task(redis_client, task)
    return task
