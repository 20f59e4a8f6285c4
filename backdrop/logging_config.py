"""Logging configuration for render workers.

Every record carries the id of the worker that wrote it, so the logs of
several workers sharing one log directory stay apart.
"""

import logging
import sys
from pathlib import Path

from loguru import logger

STDOUT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<magenta>{extra[worker_id]}</magenta> | <cyan>{name}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


class InterceptHandler(logging.Handler):
    """Forward records from standard library loggers (redis-py, asyncio) to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # report the line that called logging, not logging's own frames
        frame, depth = sys._getframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def configure_logging(log_dir: Path, level: str = "INFO", worker_id: str = "render") -> None:
    """Log to stdout and to `<log_dir>/<worker_id>.jsonl`, tagging every record with `worker_id`."""
    logger.remove()
    logger.configure(extra={"worker_id": worker_id})
    logger.add(sys.stdout, format=STDOUT_FORMAT, level=level, colorize=True)

    log_dir.mkdir(parents=True, exist_ok=True)
    logger.add(
        log_dir / f"{worker_id}.jsonl",
        format="{message}",
        level=level,
        serialize=True,
        rotation="100 MB",
        retention=100,
        compression="gz",
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
