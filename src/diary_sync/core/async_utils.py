"""Run the blocking diary core from the asyncio MCP server.

Stores, remotes and the sync engine are synchronous.  Tool handlers push
them onto worker threads with ``run_sync``; bulk syncs use
``run_sync_limited`` so at most ``max_parallel_syncs`` dates hit the
remote at once.
"""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)

# Sized by init_semaphore() during server startup; None means unbounded
_sync_slots: asyncio.Semaphore | None = None


def init_semaphore(max_parallel: int = 4) -> None:
    """Bound concurrent ``run_sync_limited`` calls to *max_parallel*."""
    global _sync_slots
    _sync_slots = asyncio.Semaphore(max_parallel)
    logger.info("Parallel date syncs limited to %d", max_parallel)


async def run_sync(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Await ``func(*args, **kwargs)`` on a worker thread.

    Example:
        entry = await run_sync(service.get_entry, diary_date)
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def run_sync_limited(
    func: Callable[..., T],
    *args: Any,
    timeout: float | None = None,
    **kwargs: Any,
) -> T:
    """Like ``run_sync``, but waits for a free slot first.

    *timeout* bounds only the call itself; time spent queued for a slot
    does not count against it.

    Raises:
        asyncio.TimeoutError: If the call outlives *timeout*.  The slot is
            released, the worker thread runs on to completion.
    """
    slot = _sync_slots if _sync_slots is not None else contextlib.nullcontext()
    async with slot:
        return await asyncio.wait_for(
            asyncio.to_thread(func, *args, **kwargs), timeout
        )


async def gather_limited(aws: Iterable[Awaitable[T]]) -> list[T]:
    """Await *aws* concurrently and return their results in order.

    The first exception propagates; callers wanting per-item isolation
    catch inside each awaitable, as ``SyncEngine`` does per date.
    """
    return list(await asyncio.gather(*aws))
