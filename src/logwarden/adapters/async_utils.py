"""Utilities for handing coroutines to an event loop from any thread."""

import asyncio
from collections.abc import Coroutine
from typing import Any


def _current_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def _start(
    loop: asyncio.AbstractEventLoop,
    coro: Coroutine[Any, Any, Any],
    tasks: set[asyncio.Task[Any]],
) -> None:
    task = loop.create_task(coro)
    tasks.add(task)
    task.add_done_callback(tasks.discard)


def spawn(
    coro: Coroutine[Any, Any, Any],
    loop: asyncio.AbstractEventLoop | None,
    tasks: set[asyncio.Task[Any]],
) -> bool:
    """Schedule a coroutine as a detached task without blocking the caller.

    The coroutine runs on ``loop`` when one is bound, otherwise on the
    loop running in the calling thread. Calls from a foreign thread are
    handed over with ``call_soon_threadsafe``. The created task is kept in
    ``tasks`` until it finishes so that shutdown can wait for it.

    Args:
        coro: Coroutine to run.
        loop: Loop the owner was started on, or None.
        tasks: Set tracking in-flight tasks of the owner.

    Returns:
        True if scheduled, False if no usable loop exists (the coroutine
        is closed without running).
    """
    running = _current_loop()
    target = loop or running
    if target is None or target.is_closed():
        coro.close()
        return False
    if target is running:
        _start(target, coro, tasks)
        return True
    try:
        target.call_soon_threadsafe(_start, target, coro, tasks)
    except RuntimeError:
        # Loop closed between the check and the hand-over
        coro.close()
        return False
    return True


async def drain(tasks: set[asyncio.Task[Any]]) -> None:
    """Wait for every tracked task, ignoring their outcomes."""
    current = asyncio.current_task()
    while True:
        pending = [task for task in tasks if task is not current and not task.done()]
        if not pending:
            return
        await asyncio.gather(*pending, return_exceptions=True)
