"""
Shared fixtures: fake upstream HTTP client, manual clocks and a wired gateway
"""
import pytest

from agents.irrigation.gateway import DataGateway
from agents.irrigation.mock_data import SyntheticDataGenerator
from core.cache import CacheManager
from core.config import Settings
from core.rate_limit import RateLimiter
from core.retry import RetryExecutor
from tests.fakes import (
    TODAY, FakeHttp, ManualClock, current_payload, forecast_payload, soil_payload
)

@pytest.fixture
def clock():
    return ManualClock()

@pytest.fixture
def sleeps():
    return []

@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)
    return _sleep

@pytest.fixture
def fake_http():
    return FakeHttp(routes={
        "/weather/current": current_payload(),
        "/weather/forecast": forecast_payload(),
        "/soil/properties": soil_payload(),
    })

@pytest.fixture
def synthetic():
    return SyntheticDataGenerator(today=lambda: TODAY)

@pytest.fixture
def gateway(fake_http, fake_sleep, synthetic):
    return DataGateway(
        http=fake_http,
        cache=CacheManager(),
        rate_limiter=RateLimiter(limit=60, window_seconds=60),
        retry=RetryExecutor(attempts=3, base_delay=2.0, sleep=fake_sleep),
        base_url="https://api.test",
        api_key="static-key",
        synthetic=synthetic
    )

@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        environment="testing",
        openepi_base_url="https://api.test",
        openepi_api_key="static-key"
    )
