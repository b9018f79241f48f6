"""
Blendrec Serial Task Queue
Single-worker queue that runs external calls one at a time
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_STOP = object()


class SerialTaskQueue:
    """
    Runs submitted coroutine factories strictly one after another.

    A fixed delay separates successive calls and every call gets its own
    timeout. Back-off or jitter belongs in the worker loop, not in callers.

    Usage:
        async with SerialTaskQueue(spacing_sec=0.1) as queue:
            songs = await queue.run(lambda: catalogue.search("x", 0, 3), default=[])
    """

    def __init__(
        self,
        spacing_sec: float = 0.1,
        call_timeout_sec: Optional[float] = 5.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.spacing_sec = spacing_sec
        self.call_timeout_sec = call_timeout_sec
        self._sleep = sleep
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self.calls_made = 0

    async def __aenter__(self) -> "SerialTaskQueue":
        self.start()
        return self

    async def __aexit__(self, *args) -> None:
        await self.stop()

    def start(self) -> None:
        if self._worker is None:
            self._worker = asyncio.get_running_loop().create_task(self._work())

    async def stop(self) -> None:
        if self._worker is None:
            return
        await self._queue.put(_STOP)
        await self._worker
        self._worker = None

    async def _work(self) -> None:
        while True:
            item = await self._queue.get()
            if item is _STOP:
                break
            factory, future, label = item
            if self.calls_made > 0 and self.spacing_sec > 0:
                await self._sleep(self.spacing_sec)
            self.calls_made += 1
            try:
                if self.call_timeout_sec:
                    result = await asyncio.wait_for(factory(), timeout=self.call_timeout_sec)
                else:
                    result = await factory()
            except Exception as e:
                if not future.cancelled():
                    future.set_exception(e)
            else:
                if not future.cancelled():
                    future.set_result(result)
            logger.debug(f"Serial call #{self.calls_made} done: {label}")

    async def submit(self, factory: Callable[[], Awaitable[T]], label: str = "") -> T:
        """Queue a call and wait for its result; exceptions propagate"""
        if self._worker is None:
            raise RuntimeError("SerialTaskQueue is not running")
        future: "asyncio.Future[T]" = asyncio.get_running_loop().create_future()
        item: Tuple[Callable[[], Awaitable[T]], asyncio.Future, str] = (factory, future, label)
        await self._queue.put(item)
        return await future

    async def run(self, factory: Callable[[], Awaitable[T]], default: T, label: str = "") -> T:
        """Queue a call; on timeout or error log it and return default"""
        try:
            return await self.submit(factory, label)
        except asyncio.TimeoutError:
            logger.warning(f"External call timed out after {self.call_timeout_sec}s: {label}")
        except Exception as e:
            logger.warning(f"External call failed ({label}): {e}")
        return default
