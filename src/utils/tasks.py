"""Background task helpers."""

import asyncio
from collections.abc import Coroutine
from typing import Any

from loguru import logger


def log_task_failure(task: asyncio.Task) -> None:
    """Done-callback: log the exception of a failed background task."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.opt(exception=exc).error(f"[TASK] Background task {task.get_name()} failed: {exc}")


def create_logged_task(coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task:
    task = asyncio.create_task(coro, name=name)
    task.add_done_callback(log_task_failure)
    return task
