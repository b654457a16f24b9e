import pytest
from generation_client.admission_queue import AdmissionQueue
from generation_client.config import load_settings
from generation_client.generation_client import GenerationClient


def test_defaults():
    """Test defaults when no environment variables are set."""
    settings = load_settings({})

    assert settings.api_url == "http://localhost:3001/api"
    assert settings.queue.rate_limit_delay == 1.5
    assert settings.queue.task_timeout is None
    assert settings.polling.interval == 10.0
    assert settings.polling.max_attempts == 30


def test_environment_overrides():
    """Test environment variables override every setting."""
    settings = load_settings(
        {
            "GENERATION_API_URL": "http://backend:8080/api",
            "RATE_LIMIT_DELAY": "250",
            "TASK_TIMEOUT_MS": "60000",
            "POLL_INTERVAL_MS": "2000",
            "POLL_MAX_ATTEMPTS": "5",
        }
    )

    assert settings.api_url == "http://backend:8080/api"
    assert settings.queue.rate_limit_delay == 0.25
    assert settings.queue.task_timeout == 60.0
    assert settings.polling.interval == 2.0
    assert settings.polling.max_attempts == 5


def test_invalid_number_is_rejected():
    """Test non-numeric delays are rejected."""
    with pytest.raises(ValueError):
        load_settings({"RATE_LIMIT_DELAY": "soon"})


@pytest.mark.asyncio
async def test_client_from_settings():
    """Test a client built from settings picks up its queue and polling config."""
    settings = load_settings({"RATE_LIMIT_DELAY": "100", "POLL_MAX_ATTEMPTS": "7"})

    async with GenerationClient.from_settings(settings) as client:
        assert client.base_url == "http://localhost:3001/api"
        assert client.queue.config.rate_limit_delay == 0.1
        assert client.poller.config.max_attempts == 7


@pytest.mark.asyncio
async def test_clients_from_settings_can_share_a_queue():
    """Clients handed the same queue throttle against one budget."""
    settings = load_settings({})
    shared = AdmissionQueue(settings.queue)

    async with GenerationClient.from_settings(settings, queue=shared) as first, \
            GenerationClient.from_settings(settings, queue=shared) as second:
        assert first.queue is shared
        assert second.queue is shared

    async with GenerationClient.from_settings(settings) as lone:
        assert lone.queue is not shared
