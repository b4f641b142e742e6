import logging
import os
import sys

from loguru import logger

# Third-party libraries that log through the stdlib
STDLIB_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "aiogram", "websockets", "httpx")


class InterceptHandler(logging.Handler):
    """Forward stdlib log records into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.opt(depth=6, exception=record.exc_info).log(level, record.getMessage())


def setup_logger(*, json_logs: bool = False, level: str = "INFO", log_dir: str = "logs") -> None:
    """Configure loguru sinks for the aggregator.

    Console level comes from LOG_LEVEL env (falls back to ``level``).
    When ``log_dir`` is set, a rotating DEBUG file sink is added for feed
    post-mortems; serverless deployments leave it empty.
    """
    console_level = os.getenv("LOG_LEVEL", level).upper()
    logger.remove()

    if json_logs:
        logger.add(sys.stdout, serialize=True, level=console_level)
    else:
        logger.add(
            sys.stdout,
            format=(
                "<green>{time:HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
                "<level>{message}</level>"
            ),
            level=console_level,
            colorize=True,
        )

    if log_dir:
        logger.add(
            os.path.join(log_dir, "pulse_{time:YYYY-MM-DD}.log"),
            rotation="20 MB",
            retention="2 days",
            compression="gz",
            level="DEBUG",
            serialize=json_logs,
            enqueue=True,
        )

    handler = InterceptHandler()
    for name in STDLIB_LOGGERS:
        std_logger = logging.getLogger(name)
        std_logger.handlers = [handler]
        std_logger.propagate = False
    # websockets logs every frame at DEBUG
    logging.getLogger("websockets").setLevel(logging.INFO)
