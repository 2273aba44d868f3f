"""Async utilities for bridging blocking remote-store calls to the event loop."""

import asyncio
import logging
from typing import Any, Callable, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    This is used to wrap blocking HTTP calls of the remote store in the
    async sync-engine operations.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        # In a SyncEngine operation:
        value = await run_sync(self.remote.get, path)
    """
    return await asyncio.to_thread(func, *args, **kwargs)


def call_soon_threadsafe(
    loop: asyncio.AbstractEventLoop,
    func: Callable[..., Any],
    *args: Any,
) -> None:
    """Schedule *func* on *loop* from any thread.

    Listener threads hand remote events to the loop this way so that all
    state changes happen on the loop thread.  Events arriving after the
    loop closed are dropped.
    """
    if loop.is_closed():
        logger.debug("Event loop closed, dropping %r", func)
        return
    loop.call_soon_threadsafe(func, *args)
