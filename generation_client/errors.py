from typing import Optional

from generation_client.models import PollState


class GenerationError(Exception):
    """Base class for failures raised by the generation client"""


class ApiError(GenerationError):
    """The backend answered with a non-success HTTP status"""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status


class RemoteOperationError(GenerationError):
    """A long-running operation finished with an error reported by the provider"""

    def __init__(self, message: str):
        super().__init__(f"Video generation failed: {message}")
        self.message = message


class IncompleteResultError(GenerationError):
    def __init__(
        self,
        message: str = "Video generation completed, but no video URI was returned.",
    ):
        super().__init__(message)
        self.message = message


class PollingTimeoutError(GenerationError, TimeoutError):
    def __init__(self, state: PollState):
        self.message = "Video generation timed out or failed to complete."
        super().__init__(self.message)
        self.state = state
        self.handle = state.handle
        self.attempts = state.attempts
        self.last_progress = state.last_progress
