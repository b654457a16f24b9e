import os
from typing import Mapping, Optional

from loguru import logger
from pydantic import BaseModel

from generation_client.models import AdmissionQueueConfig, PollingConfig

DEFAULT_API_URL = "http://localhost:3001/api"
DEFAULT_RATE_LIMIT_DELAY_MS = 1500
DEFAULT_POLL_INTERVAL_MS = 10000
DEFAULT_POLL_MAX_ATTEMPTS = 30


class Settings(BaseModel):
    api_url: str = DEFAULT_API_URL
    queue: AdmissionQueueConfig = AdmissionQueueConfig()
    polling: PollingConfig = PollingConfig()


def _millis(environ: Mapping[str, str], name: str, default: Optional[int]) -> Optional[float]:
    raw = environ.get(name, "").strip()
    if not raw:
        return None if default is None else default / 1000
    return int(raw) / 1000


def load_settings(environ: Mapping[str, str] = os.environ) -> Settings:
    """Build settings from environment variables. Delays are given in milliseconds."""
    settings = Settings(
        api_url=environ.get("GENERATION_API_URL", DEFAULT_API_URL),
        queue=AdmissionQueueConfig(
            rate_limit_delay=_millis(environ, "RATE_LIMIT_DELAY", DEFAULT_RATE_LIMIT_DELAY_MS),
            task_timeout=_millis(environ, "TASK_TIMEOUT_MS", None),
        ),
        polling=PollingConfig(
            interval=_millis(environ, "POLL_INTERVAL_MS", DEFAULT_POLL_INTERVAL_MS),
            max_attempts=int(environ.get("POLL_MAX_ATTEMPTS", DEFAULT_POLL_MAX_ATTEMPTS)),
        ),
    )
    logger.debug(f"Loaded settings: {settings.model_dump()}")
    return settings
