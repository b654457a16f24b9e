import asyncio
import time
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Optional, Tuple, TypeVar

from loguru import logger
from generation_client.models import AdmissionQueueConfig

T = TypeVar("T")

QueuedTask = Tuple[Callable[[], Awaitable[Any]], "asyncio.Future[Any]"]


class AdmissionQueue:
    """Runs submitted coroutines one at a time, in submission order, with a
    fixed cooldown after each one so outbound calls stay under the provider's
    request budget.

    A task that hangs stalls every task queued behind it unless
    ``config.task_timeout`` is set.
    """

    def __init__(
        self,
        config: Optional[AdmissionQueueConfig] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or AdmissionQueueConfig()
        self.logger = logger
        self._sleep = sleep
        self._clock = clock
        self._tasks: Deque[QueuedTask] = deque()
        self._processing = False
        self._worker: Optional[asyncio.Task] = None

    @property
    def is_processing(self) -> bool:
        """True while a task is in flight or in its post-execution cooldown"""
        return self._processing

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def enqueue(self, task: Callable[[], Awaitable[T]]) -> T:
        """Schedule ``task`` and wait for its own outcome"""
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._tasks.append((task, future))
        self.logger.debug(f"Task queued, {len(self._tasks)} waiting")

        if not self._processing:
            self._processing = True
            self._worker = asyncio.create_task(self._process())

        # A caller giving up cancels its future; the worker then skips the task or drops its outcome
        return await future

    async def _run(self, task: Callable[[], Awaitable[T]]) -> T:
        if self.config.task_timeout is None:
            return await task()
        return await asyncio.wait_for(task(), timeout=self.config.task_timeout)

    def _cancel_pending(self) -> None:
        while self._tasks:
            _, future = self._tasks.popleft()
            future.cancel()

    def _deliver(self, running: "asyncio.Future[Any]", future: "asyncio.Future[Any]") -> None:
        """Hands the finished task's outcome to its caller, if the caller is still waiting"""
        if future.done():
            if not running.cancelled():
                running.exception()  # mark retrieved
            return
        if running.cancelled():
            self.logger.debug("Queued task was cancelled")
            future.cancel()
        elif running.exception() is not None:
            self.logger.debug(f"Queued task failed: {running.exception()!r}")
            future.set_exception(running.exception())
        else:
            future.set_result(running.result())

    async def _process(self) -> None:
        try:
            while self._tasks:
                task, future = self._tasks.popleft()
                if future.cancelled():
                    self.logger.debug("Skipping task abandoned by its caller")
                    continue
                started = self._clock()

                running = asyncio.ensure_future(self._run(task))
                try:
                    # wait() leaves the task alone when the worker itself is cancelled
                    await asyncio.wait({running})
                except asyncio.CancelledError:
                    running.cancel()
                    future.cancel()
                    self._cancel_pending()
                    raise
                self._deliver(running, future)

                self.logger.debug(
                    f"Task finished in {self._clock() - started:.2f}s, "
                    f"cooling down for {self.config.rate_limit_delay:.2f}s"
                )
                try:
                    await self._sleep(self.config.rate_limit_delay)
                except asyncio.CancelledError:
                    self._cancel_pending()
                    raise
        finally:
            self._processing = False
            self._worker = None
