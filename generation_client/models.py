import base64
import mimetypes
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ErrorKind(str, Enum):
    rate_limited = "rate_limited"
    configuration_error = "configuration_error"
    content_policy_blocked = "content_policy_blocked"
    model_no_output = "model_no_output"
    timeout = "timeout"
    server_error = "server_error"
    validation_error = "validation_error"
    unknown = "unknown"


class FriendlyError(BaseModel):
    kind: ErrorKind
    message: str


class AdmissionQueueConfig(BaseModel):
    rate_limit_delay: float = 1.5  # seconds between the end of one task and the next
    task_timeout: Optional[float] = None


class PollingConfig(BaseModel):
    interval: float = 10.0
    max_attempts: int = 30  # 5 minutes at the default interval


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ImageData(WireModel):
    data: str
    mime_type: str = Field(alias="mimeType")

    @classmethod
    def from_bytes(cls, raw: bytes, mime_type: str) -> "ImageData":
        return cls(data=base64.b64encode(raw).decode("ascii"), mime_type=mime_type)

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "ImageData":
        path = Path(path)
        mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return cls.from_bytes(path.read_bytes(), mime_type)


class GenerationResult(WireModel):
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    video_url: Optional[str] = Field(default=None, alias="videoUrl")
    text: str = ""


class OperationError(WireModel):
    message: str
    code: Optional[int] = None


class OperationStatus(WireModel):
    done: bool = False
    result: Optional[GenerationResult] = None
    error: Optional[OperationError] = None
    metadata: Optional[dict[str, Any]] = None

    @property
    def state(self) -> str:
        return (self.metadata or {}).get("state") or "in_progress"


class PollState(BaseModel):
    """Progress of one polling session, dropped once it reaches a terminal outcome"""

    handle: str
    max_attempts: int
    attempts: int = 0
    last_progress: Optional[str] = None


class CommunityPromptSubmission(WireModel):
    name: str
    email: str
    phone: str
    title: str
    prompt: str


class CommunityPrompt(CommunityPromptSubmission):
    id: str
    created_at: str = Field(alias="createdAt")
