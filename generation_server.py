import json
import random
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from aiohttp import web
from loguru import logger

BANNED_WORDS = ("badword1", "badword2", "inappropriate")
SAMPLE_IMAGE_URL = "data:image/png;base64,iVBORw0KGgo="


class PromptStore:
    """Community prompts kept as a flat JSON list in a file"""

    def __init__(self, path: Path):
        self.path = Path(path)

    def read(self) -> list:
        if not self.path.exists():
            self.write([])
            return []
        return json.loads(self.path.read_text(encoding="utf-8"))

    def write(self, prompts: list) -> None:
        self.path.write_text(json.dumps(prompts, indent=2), encoding="utf-8")


class GenerationServer:
    """Stand-in for the generation backend, answering with canned results"""

    def __init__(
        self,
        completion_time: float = 10.0,
        error_rate: float = 0.0,
        video_failure: Optional[str] = None,
        omit_video_url: bool = False,
        min_request_interval: float = 0.0,
        prompts_path: Optional[Path] = None,
    ):
        self.completion_time = completion_time
        self.error_rate = error_rate
        self.video_failure = video_failure
        self.omit_video_url = omit_video_url
        self.min_request_interval = min_request_interval
        self.store = PromptStore(prompts_path or Path("community-prompts.json"))
        self.operations: dict[str, datetime] = {}
        self.request_times: list[datetime] = []
        self.status_checks = 0
        self.logger = logger

        self.app = web.Application(middlewares=[self.throttle])
        self.app.router.add_post("/api/classify-image", self.handle_classify_image)
        self.app.router.add_post("/api/improve-prompt", self.handle_improve_prompt)
        self.app.router.add_post("/api/edit-image", self.handle_edit_image)
        self.app.router.add_post("/api/combine-images", self.handle_combine_images)
        self.app.router.add_post("/api/generate-video", self.handle_generate_video)
        self.app.router.add_post("/api/video-status", self.handle_video_status)
        self.app.router.add_get("/api/community/prompts", self.handle_get_prompts)
        self.app.router.add_post("/api/community/share-prompt", self.handle_share_prompt)

    @web.middleware
    async def throttle(self, request, handler):
        """Rejects generation calls that arrive faster than the configured interval"""
        if request.path == "/api/video-status":
            return await handler(request)

        now = datetime.now()
        if self.min_request_interval and self.request_times:
            gap = (now - self.request_times[-1]).total_seconds()
            if gap < self.min_request_interval:
                self.logger.info(f"Rejecting request after {gap:.2f}s")
                return web.json_response(
                    {"error": "Request failed with status 429: quota exceeded"}, status=429
                )
        self.request_times.append(now)
        return await handler(request)

    @staticmethod
    def _missing(body: dict, *fields: str) -> Optional[web.Response]:
        missing = [field for field in fields if not body.get(field)]
        if not missing:
            return None
        verb = "is" if len(missing) == 1 else "are"
        return web.json_response(
            {"error": f"{' and '.join(missing)} {verb} required"}, status=400
        )

    def _image_result(self) -> web.Response:
        if random.random() < self.error_rate:
            self.logger.info("Returning model error")
            return web.json_response(
                {"error": "The model did not generate a response."}, status=500
            )
        return web.json_response({"imageUrl": SAMPLE_IMAGE_URL, "text": "Here is your image."})

    async def handle_classify_image(self, request):
        body = await request.json()
        error = self._missing(body, "imageData")
        if error is not None:
            return error
        return web.json_response({"classification": "No"})

    async def handle_improve_prompt(self, request):
        body = await request.json()
        error = self._missing(body, "prompt")
        if error is not None:
            return error
        improved = f"{body['prompt']}, photorealistic, 8k, cinematic lighting, detailed"
        return web.json_response({"improvedPrompt": improved})

    async def handle_edit_image(self, request):
        body = await request.json()
        error = self._missing(body, "imageData", "prompt")
        if error is not None:
            return error
        return self._image_result()

    async def handle_combine_images(self, request):
        body = await request.json()
        error = self._missing(body, "image1Data", "image2Data", "prompt")
        if error is not None:
            return error
        return self._image_result()

    async def handle_generate_video(self, request):
        body = await request.json()
        error = self._missing(body, "prompt")
        if error is not None:
            return error
        name = f"operations/{uuid.uuid4().hex[:12]}"
        self.operations[name] = datetime.now()
        self.logger.info(f"Started video operation {name}")
        return web.json_response({"operationName": name})

    async def handle_video_status(self, request):
        body = await request.json()
        error = self._missing(body, "operationName")
        if error is not None:
            return error
        name = body["operationName"]
        if name not in self.operations:
            return web.json_response({"error": f"Operation {name} not found"}, status=404)

        self.status_checks += 1
        elapsed = (datetime.now() - self.operations[name]).total_seconds()
        if elapsed < self.completion_time:
            self.logger.info(f"Returning pending status (elapsed: {elapsed:.1f}s)")
            return web.json_response({"done": False, "metadata": {"state": "RUNNING"}})

        metadata = {"state": "SUCCEEDED"}
        if self.video_failure:
            self.logger.info("Returning failed operation")
            return web.json_response(
                {"done": True, "error": {"message": self.video_failure}, "metadata": metadata}
            )

        result = {"text": "Video generation complete."}
        if not self.omit_video_url:
            result["videoUrl"] = f"https://example.invalid/{name}.mp4"
        self.logger.info("Returning completed status")
        return web.json_response({"done": True, "result": result, "metadata": metadata})

    async def handle_get_prompts(self, request):
        prompts = self.store.read()
        return web.json_response(list(reversed(prompts)))

    async def handle_share_prompt(self, request):
        body = await request.json()
        fields = ("name", "email", "phone", "title", "prompt")
        if any(not body.get(field) for field in fields):
            return web.json_response({"error": "All fields are required."}, status=400)

        combined = f"{body['title']} {body['prompt']}".lower()
        if any(word in combined for word in BANNED_WORDS):
            return web.json_response(
                {"error": "Your prompt contains inappropriate language and was rejected."},
                status=400,
            )

        prompts = self.store.read()
        prompts.append(
            {
                "id": uuid.uuid4().hex,
                **{field: body[field] for field in fields},
                "createdAt": datetime.now(timezone.utc).isoformat(),
            }
        )
        self.store.write(prompts)
        return web.json_response(
            {"message": "Thank you! Your prompt has been approved and shared with the community."},
            status=201,
        )

    async def start(self, port: int = 3001):
        runner = web.AppRunner(self.app)
        await runner.setup()
        site = web.TCPSite(runner, "localhost", port)
        await site.start()
        self.logger.info(f"Server started on port {port}")
        return site
