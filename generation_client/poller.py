import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional

from loguru import logger
from generation_client.errors import (
    IncompleteResultError,
    PollingTimeoutError,
    RemoteOperationError,
)
from generation_client.models import (
    GenerationResult,
    OperationStatus,
    PollingConfig,
    PollState,
)

ProgressCallback = Callable[[str], Any]


class OperationPoller:
    def __init__(
        self,
        check_status: Callable[[str], Awaitable[OperationStatus]],
        config: Optional[PollingConfig] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.check_status = check_status
        self.config = config or PollingConfig()
        self.logger = logger
        self._sleep = sleep

    async def report_progress(self, on_progress: Optional[ProgressCallback], text: str) -> None:
        """Forward a progress message, awaiting the callback if it is a coroutine"""
        self.logger.debug(text)
        if on_progress is None:
            return
        outcome = on_progress(text)
        if inspect.isawaitable(outcome):
            await outcome

    def _check_terminal(self, status: OperationStatus) -> Optional[GenerationResult]:
        """Returns the result once the operation is done, raising if it ended badly"""
        if status.error is not None:
            raise RemoteOperationError(status.error.message)
        if not status.done:
            return None
        if status.result is None or not status.result.video_url:
            raise IncompleteResultError()
        return status.result

    async def await_operation(
        self,
        handle: str,
        on_progress: Optional[ProgressCallback] = None,
        max_attempts: Optional[int] = None,
        interval: Optional[float] = None,
    ) -> GenerationResult:
        """Poll ``handle`` at a fixed interval until it completes, fails or runs out of attempts.

        Errors raised by ``check_status`` itself are not retried.
        """
        state = PollState(
            handle=handle,
            max_attempts=self.config.max_attempts if max_attempts is None else max_attempts,
        )
        interval = self.config.interval if interval is None else interval

        await self.report_progress(on_progress, "Video generation started. Polling for results...")

        while state.attempts < state.max_attempts:
            await self._sleep(interval)
            state.attempts += 1

            status = await self.check_status(handle)
            state.last_progress = status.state
            await self.report_progress(on_progress, f"Checking status: {status.state}")

            result = self._check_terminal(status)
            if result is not None:
                self.logger.info(f"Operation {handle} completed after {state.attempts} checks")
                await self.report_progress(on_progress, "Generation complete! Finalizing video.")
                return result

        self.logger.error(
            f"Operation {handle} still {state.last_progress} after {state.attempts} checks"
        )
        raise PollingTimeoutError(state)
