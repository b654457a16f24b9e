import json
from typing import Any, Optional

import aiohttp
from loguru import logger
from generation_client.admission_queue import AdmissionQueue
from generation_client.config import Settings
from generation_client.errors import ApiError
from generation_client.models import (
    CommunityPrompt,
    CommunityPromptSubmission,
    GenerationResult,
    ImageData,
    OperationStatus,
    PollingConfig,
)
from generation_client.poller import OperationPoller, ProgressCallback

MAX_ERROR_BODY_LENGTH = 150


class GenerationClient:
    """Client for the generation backend.

    Job submissions go through the :class:`AdmissionQueue`; status checks for
    running operations are issued directly so polling keeps its own cadence.
    Each client builds its own queue unless one is passed in, so clients that
    draw on the same provider budget must be given the same queue.
    """

    def __init__(
        self,
        base_url: str,
        queue: Optional[AdmissionQueue] = None,
        polling: Optional[PollingConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.queue = queue or AdmissionQueue()
        self.poller = OperationPoller(self.check_status, polling)
        self.logger = logger
        self._session = session
        self._owns_session = session is None

    @classmethod
    def from_settings(
        cls, settings: Settings, queue: Optional[AdmissionQueue] = None
    ) -> "GenerationClient":
        return cls(settings.api_url, queue or AdmissionQueue(settings.queue), settings.polling)

    async def __aenter__(self) -> "GenerationClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def _handle_response(self, response: aiohttp.ClientResponse) -> Any:
        """Decodes a backend response, raising ApiError for non-success statuses"""
        if not response.ok:
            if "application/json" in response.headers.get("Content-Type", ""):
                data = await response.json()
                error = data.get("error") if isinstance(data, dict) else None
                message = error or f"Server responded with status {response.status}"
            else:
                text = await response.text()
                if len(text) > MAX_ERROR_BODY_LENGTH:
                    text = f"{text[:MAX_ERROR_BODY_LENGTH]}..."
                message = f"Server error: {response.status}. Response: {text}"
            raise ApiError(message, status=response.status)

        text = await response.text()
        return json.loads(text) if text else {}

    async def call(self, endpoint: str, payload: Optional[dict] = None) -> Any:
        """Sends one request to the backend: POST when a payload is given, GET otherwise"""
        url = f"{self.base_url}{endpoint}"
        method = "GET" if payload is None else "POST"
        session = self._get_session()

        try:
            async with session.request(method, url, json=payload) as response:
                return await self._handle_response(response)
        except ApiError as e:
            self.logger.error(f"HTTP error {e.status} at {url}: {e.message}")
            raise
        except aiohttp.ClientError as e:
            self.logger.error(f"Request to {url} failed: {e}")
            raise

    async def submit_throttled(self, endpoint: str, payload: Optional[dict] = None) -> Any:
        return await self.queue.enqueue(lambda: self.call(endpoint, payload))

    async def submit_direct(self, endpoint: str, payload: Optional[dict] = None) -> Any:
        return await self.call(endpoint, payload)

    async def check_status(self, handle: str) -> OperationStatus:
        data = await self.submit_direct("/video-status", {"operationName": handle})
        return OperationStatus.model_validate(data)

    async def contains_male_subject(self, image: ImageData) -> bool:
        data = await self.submit_throttled(
            "/classify-image", {"imageData": image.model_dump(by_alias=True)}
        )
        return "yes" in data["classification"].strip().lower()

    async def improve_prompt(self, prompt: str) -> str:
        if not prompt.strip():
            raise ValueError("Prompt cannot be empty.")
        data = await self.submit_throttled("/improve-prompt", {"prompt": prompt})
        return data["improvedPrompt"]

    async def edit_image(self, image: ImageData, prompt: str) -> GenerationResult:
        data = await self.submit_throttled(
            "/edit-image", {"imageData": image.model_dump(by_alias=True), "prompt": prompt}
        )
        return GenerationResult.model_validate(data)

    async def combine_images(
        self, image1: ImageData, image2: ImageData, prompt: str
    ) -> GenerationResult:
        data = await self.submit_throttled(
            "/combine-images",
            {
                "image1Data": image1.model_dump(by_alias=True),
                "image2Data": image2.model_dump(by_alias=True),
                "prompt": prompt,
            },
        )
        return GenerationResult.model_validate(data)

    async def generate_video(
        self,
        prompt: str,
        image: Optional[ImageData] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> GenerationResult:
        """Starts a video generation job and waits for it to finish"""
        await self.poller.report_progress(on_progress, "Converting reference image...")
        image_data = image.model_dump(by_alias=True) if image is not None else None

        await self.poller.report_progress(on_progress, "Sending request to the video model...")
        data = await self.submit_throttled(
            "/generate-video", {"prompt": prompt, "imageData": image_data}
        )
        operation_name = data["operationName"]
        self.logger.info(f"Video operation started: {operation_name}")

        return await self.poller.await_operation(operation_name, on_progress)

    async def get_community_prompts(self) -> list[CommunityPrompt]:
        data = await self.submit_direct("/community/prompts")
        return [CommunityPrompt.model_validate(item) for item in data]

    async def share_community_prompt(self, submission: CommunityPromptSubmission) -> str:
        data = await self.submit_throttled(
            "/community/share-prompt", submission.model_dump(by_alias=True)
        )
        return data["message"]
