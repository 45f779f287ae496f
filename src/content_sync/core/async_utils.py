"""Thread-pool helpers for driving blocking store calls from asyncio.

Store adapters are plain blocking code (``requests``, ``threading.Lock``).
The executor awaits them through these helpers so one batch can keep
several writes in flight. Concurrency limits are always passed in by the
caller; nothing here holds state between sync runs.
"""

import asyncio
import logging
from typing import Any, Callable, Coroutine, Sequence, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


async def run_sync(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Await ``func(*args, **kwargs)`` on a worker thread.

    Example:
        existing = await run_sync(loader.load, "alice")
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def run_sync_limited(
    semaphore: asyncio.Semaphore | None,
    func: Callable[..., T],
    *args: Any,
    **kwargs: Any,
) -> T:
    """Like ``run_sync``, but hold *semaphore* for the duration of the call.

    Args:
        semaphore: Write budget of the current sync run; ``None`` runs
            the call unbounded.
        func: Blocking callable, usually a ``ContentStore`` method.
    """
    if semaphore is None:
        return await run_sync(func, *args, **kwargs)
    async with semaphore:
        return await run_sync(func, *args, **kwargs)


async def gather_limited(
    coros: Sequence[Coroutine[Any, Any, T]],
) -> list[T]:
    """Await *coros* together; results keep the input order.

    The first exception propagates, so per-item isolation belongs inside
    each coroutine (the executor converts failures to ``WriteResult``).
    """
    return list(await asyncio.gather(*coros))
