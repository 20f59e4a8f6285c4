"""Transactions over the Redis blob store."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from loguru import logger
from redis.asyncio import Redis
from redis.asyncio.client import Pipeline


@asynccontextmanager
async def transaction(client: Redis) -> AsyncIterator[Pipeline]:
    """Buffer commands and apply them all-or-nothing.

    Entering begins a MULTI/EXEC pipeline, a clean exit commits it, and any
    exception (including one raised by EXEC itself) aborts it, discarding
    every buffered command before the exception propagates.
    """
    pipe = client.pipeline(transaction=True)
    try:
        yield pipe
        await pipe.execute()
    except BaseException:
        logger.debug("Aborting transaction")
        await pipe.reset()
        raise
