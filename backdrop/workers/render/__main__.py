"""Render worker process.

Pulls render tasks from Redis, renders them with ffmpeg and commits the
results back to Redis.
"""

import asyncio
import os
import signal
import socket
import sys

from loguru import logger
from pydantic import ValidationError
from redis.exceptions import RedisError

from backdrop.config import Settings
from backdrop.logging_config import configure_logging
from backdrop.redis_client import create_redis_client
from backdrop.workers.render_loop import run_render_worker


async def main() -> None:
    try:
        settings = Settings()  # type: ignore[call-arg]
    except ValidationError as e:
        logger.critical(f"Invalid configuration: {e}")
        sys.exit(1)

    worker_id = os.getenv("WORKER_ID", socket.gethostname())
    configure_logging(settings.log_dir, settings.log_level, worker_id)

    client = await create_redis_client(settings)
    try:
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            logger.critical(f"Cannot reach Redis at startup: {e}")
            sys.exit(1)

        worker = asyncio.current_task()
        assert worker is not None
        asyncio.get_running_loop().add_signal_handler(signal.SIGTERM, worker.cancel)

        await run_render_worker(client, settings, worker_id)
    finally:
        await client.aclose()


if __name__ == "__main__":
    asyncio.run(main())
