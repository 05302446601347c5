# cmdsentry/utils/async_helpers.py
"""
Async utilities for safe task management.
"""

import asyncio
import logging
from typing import Any, Coroutine, Optional

logger = logging.getLogger(__name__)


def create_safe_task(
    coro: Coroutine[Any, Any, Any],
    name: Optional[str] = None,
    log_errors: bool = True
) -> asyncio.Task:
    """
    Create an asyncio task whose exception is always logged.

    This prevents fire-and-forget tasks (such as an invocation abandoned after
    a timeout) from silently swallowing exceptions.

    Args:
        coro: The coroutine to run as a task
        name: Optional name for the task (for logging)
        log_errors: Whether to log errors (default True)

    Returns:
        The created asyncio.Task
    """
    task = asyncio.create_task(coro, name=name)

    def _handle_exception(t: asyncio.Task):
        try:
            exc = t.exception()
            if exc and log_errors:
                task_name = name or t.get_name()
                logger.error(f"[AsyncTask:{task_name}] Unhandled exception: {exc}", exc_info=exc)
        except asyncio.CancelledError:
            pass  # Task was cancelled, not an error
        except asyncio.InvalidStateError:
            pass  # Task not done yet (shouldn't happen in callback)

    task.add_done_callback(_handle_exception)
    return task


async def wait_first(task: asyncio.Task, timeout: float) -> bool:
    """
    Race a task against a timer without cancelling the loser.

    Returns True if the task settled first, False if the timer did. The task
    keeps running on timeout.
    """
    done, _ = await asyncio.wait({task}, timeout=max(timeout, 0))
    return task in done
