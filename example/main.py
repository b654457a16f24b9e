import asyncio
import tempfile
from pathlib import Path

from generation_client.admission_queue import AdmissionQueue
from generation_client.config import load_settings
from generation_client.error_messages import get_friendly_error_message
from generation_client.generation_client import GenerationClient
from generation_client.models import ImageData, PollingConfig
from generation_server import GenerationServer


def show_progress(message):
    print(f"Progress: {message}")


async def main():
    PORT = 8000
    prompts_path = Path(tempfile.gettempdir()) / "community-prompts.json"
    server = GenerationServer(completion_time=12.0, prompts_path=prompts_path)
    await server.start(port=PORT)
    print(f"Server started on http://localhost:{PORT}")

    settings = load_settings()
    queue = AdmissionQueue(settings.queue)
    polling = PollingConfig(interval=3.0, max_attempts=10)
    image = ImageData.from_bytes(b"\x89PNG\r\n\x1a\n", "image/png")

    async with GenerationClient(
        f"http://localhost:{PORT}/api", queue=queue, polling=polling
    ) as client:
        try:
            prompt = await client.improve_prompt("a cat wearing a space helmet")
            print(f"Improved prompt: {prompt}")

            edited = await client.edit_image(image, prompt)
            print(f"Edited image: {edited.image_url[:40]}... ({edited.text})")

            video = await client.generate_video(prompt, image, on_progress=show_progress)
            print(f"Video ready: {video.video_url}")

            # Rejected by the backend, shown the way a user would see it
            await client.edit_image(image, "")
        except Exception as e:
            print(f"Error occurred: {get_friendly_error_message(e)}")

    await asyncio.sleep(1)


if __name__ == "__main__":
    asyncio.run(main())
