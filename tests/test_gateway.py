import asyncio
from datetime import date

import pytest

from agents.irrigation.gateway import DataGateway
from agents.irrigation.models import DataSource, GeoPoint, SoilType
from core.auth import TokenManager
from core.cache import CacheManager
from core.exceptions import ExternalAPIError, InputValidationError, RateLimitError, UpstreamUnavailableError
from core.rate_limit import RateLimiter
from core.retry import RetryExecutor
from tests.fakes import FakeHttp, current_payload, forecast_payload, soil_payload

NAIROBI = GeoPoint(latitude=-1.2921, longitude=36.8219)

async def test_current_weather_is_transformed(gateway, fake_http):
    weather = await gateway.get_current_weather(NAIROBI)

    assert weather.temperature == 32.0
    assert weather.humidity == 40.0
    assert weather.wind_speed == 5.0
    assert weather.solar_radiation == 25.0
    assert weather.source == DataSource.OPENEPI

    call = fake_http.calls[0]
    assert call["url"] == "https://api.test/weather/current"
    assert call["params"]["lat"] == -1.2921
    assert call["params"]["lon"] == 36.8219
    assert call["headers"]["Authorization"] == "Bearer static-key"

async def test_forecast_days_are_parsed(gateway):
    forecast = await gateway.get_forecast(NAIROBI, days=5)

    assert len(forecast.days) == 5
    assert forecast.days[0].date == date(2026, 10, 19)
    assert forecast.days[0].temperature.max == 31.0
    assert forecast.days[0].precipitation == 0.0

async def test_soil_profile_uses_capacity_table_when_provider_omits_it(gateway):
    soil = await gateway.get_soil_profile(NAIROBI)

    assert soil.type == SoilType.LOAM
    assert soil.water_holding_capacity == 200
    assert soil.ph == 6.8

async def test_second_call_within_ttl_hits_cache(gateway, fake_http):
    first = await gateway.get_current_weather(NAIROBI)
    second = await gateway.get_current_weather(NAIROBI)

    assert fake_http.calls_to("/weather/current") == 1
    assert first == second

async def test_cache_hit_consumes_no_rate_limit(fake_http, fake_sleep, synthetic):
    gateway = DataGateway(
        http=fake_http,
        cache=CacheManager(),
        rate_limiter=RateLimiter(limit=1, window_seconds=60),
        retry=RetryExecutor(sleep=fake_sleep),
        base_url="https://api.test",
        synthetic=synthetic
    )
    await gateway.get_current_weather(NAIROBI)
    # served from cache, so the exhausted limiter is never consulted
    await gateway.get_current_weather(NAIROBI)

    with pytest.raises(RateLimitError) as exc_info:
        await gateway.get_forecast(NAIROBI)
    assert exc_info.value.retry_after > 0

async def test_rate_limit_is_not_masked_by_fallback(fake_sleep, synthetic):
    http = FakeHttp(routes={"/weather/current": ExternalAPIError("bad request", 400)})
    gateway = DataGateway(
        http=http,
        cache=CacheManager(),
        rate_limiter=RateLimiter(limit=1, window_seconds=60),
        retry=RetryExecutor(sleep=fake_sleep),
        base_url="https://api.test",
        synthetic=synthetic
    )
    first = await gateway.get_current_weather(NAIROBI)
    assert first.source == DataSource.SYNTHETIC

    with pytest.raises(RateLimitError):
        await gateway.get_current_weather(GeoPoint(latitude=10, longitude=10))

async def test_retries_count_against_the_rate_limit(fake_sleep, synthetic):
    http = FakeHttp(routes={"/weather/current": ExternalAPIError("Service Unavailable", 503)})
    gateway = DataGateway(
        http=http,
        cache=CacheManager(),
        rate_limiter=RateLimiter(limit=2, window_seconds=60),
        retry=RetryExecutor(sleep=fake_sleep),
        base_url="https://api.test",
        synthetic=synthetic
    )

    with pytest.raises(RateLimitError):
        await gateway.get_current_weather(NAIROBI)
    assert http.calls_to("/weather/current") == 2
    assert gateway.rate_limiter.stats()["request_count"] == 2

@pytest.mark.parametrize("body", [None, "oops", 42])
async def test_non_object_payload_falls_back(body, fake_sleep, synthetic):
    http = FakeHttp(routes={"/weather/current": body, "/soil/health": body})
    gateway = DataGateway(
        http=http,
        cache=CacheManager(),
        rate_limiter=RateLimiter(),
        retry=RetryExecutor(sleep=fake_sleep),
        base_url="https://api.test",
        synthetic=synthetic
    )

    weather = await gateway.get_current_weather(NAIROBI)
    health = await gateway.get_soil_health(NAIROBI)

    assert weather.source == DataSource.SYNTHETIC
    assert health.source == DataSource.SYNTHETIC
    assert gateway.stats()["synthetic_fallbacks"] == 2

async def test_outage_falls_back_to_synthetic_data(fake_sleep, sleeps, synthetic):
    http = FakeHttp(routes={"/weather/current": ExternalAPIError("Service Unavailable", 503)})
    gateway = DataGateway(
        http=http,
        cache=CacheManager(),
        rate_limiter=RateLimiter(),
        retry=RetryExecutor(attempts=3, base_delay=2.0, sleep=fake_sleep),
        base_url="https://api.test",
        synthetic=synthetic
    )

    weather = await gateway.get_current_weather(NAIROBI)

    assert http.calls_to("/weather/current") == 3
    assert sleeps == [2.0, 4.0]
    assert weather.source == DataSource.SYNTHETIC
    assert gateway.stats()["synthetic_fallbacks"] == 1

async def test_synthetic_results_are_not_cached(fake_sleep, synthetic):
    http = FakeHttp(routes={"/soil/properties": [ExternalAPIError("down", 500)] * 3 + [soil_payload("Clay")]})
    gateway = DataGateway(
        http=http,
        cache=CacheManager(),
        rate_limiter=RateLimiter(),
        retry=RetryExecutor(attempts=3, sleep=fake_sleep),
        base_url="https://api.test",
        synthetic=synthetic
    )

    degraded = await gateway.get_soil_profile(NAIROBI)
    recovered = await gateway.get_soil_profile(NAIROBI)

    assert degraded.source == DataSource.SYNTHETIC
    assert recovered.source == DataSource.OPENEPI
    assert recovered.type == SoilType.CLAY

async def test_client_error_falls_back_without_retry(fake_sleep, sleeps, synthetic):
    http = FakeHttp(routes={"/weather/forecast": ExternalAPIError("bad params", 400)})
    gateway = DataGateway(
        http=http,
        cache=CacheManager(),
        rate_limiter=RateLimiter(),
        retry=RetryExecutor(sleep=fake_sleep),
        base_url="https://api.test",
        synthetic=synthetic
    )

    forecast = await gateway.get_forecast(NAIROBI, days=7)

    assert http.calls_to("/weather/forecast") == 1
    assert sleeps == []
    assert forecast.source == DataSource.SYNTHETIC
    assert len(forecast.days) == 7

async def test_malformed_payload_falls_back(fake_sleep, synthetic):
    http = FakeHttp(routes={"/weather/current": {"current": {"humidity": 50}}})
    gateway = DataGateway(
        http=http,
        cache=CacheManager(),
        rate_limiter=RateLimiter(),
        retry=RetryExecutor(sleep=fake_sleep),
        base_url="https://api.test",
        synthetic=synthetic
    )

    weather = await gateway.get_current_weather(NAIROBI)
    assert weather.source == DataSource.SYNTHETIC

async def test_token_manager_supplies_bearer_token(fake_sleep, synthetic, clock):
    http = FakeHttp(
        routes={"/weather/current": current_payload(), "/weather/forecast": forecast_payload()},
        token_payload={"access_token": "oauth-token", "expires_in": 3600}
    )
    gateway = DataGateway(
        http=http,
        cache=CacheManager(),
        rate_limiter=RateLimiter(),
        retry=RetryExecutor(sleep=fake_sleep),
        base_url="https://api.test",
        token_manager=TokenManager(http, "https://auth.test/token", "id", "secret", clock=clock),
        synthetic=synthetic
    )

    await asyncio.gather(gateway.get_current_weather(NAIROBI), gateway.get_forecast(NAIROBI))

    assert http.token_calls == 1
    assert all(call["headers"]["Authorization"] == "Bearer oauth-token" for call in http.calls)

async def test_unauthorized_response_invalidates_token(fake_sleep, synthetic, clock):
    http = FakeHttp(
        routes={"/weather/current": [ExternalAPIError("expired token", 401), current_payload()]},
        token_payload={"access_token": "oauth-token", "expires_in": 3600}
    )
    token_manager = TokenManager(http, "https://auth.test/token", "id", "secret", clock=clock)
    gateway = DataGateway(
        http=http,
        cache=CacheManager(),
        rate_limiter=RateLimiter(),
        retry=RetryExecutor(sleep=fake_sleep),
        base_url="https://api.test",
        token_manager=token_manager,
        synthetic=synthetic
    )

    first = await gateway.get_current_weather(NAIROBI)
    second = await gateway.get_current_weather(NAIROBI)

    assert first.source == DataSource.SYNTHETIC
    assert second.source == DataSource.OPENEPI
    assert http.token_calls == 2

async def test_soil_composition_and_health(fake_sleep, synthetic):
    http = FakeHttp(routes={
        "/soil/composition": {"depth": 30, "texture": {"sand": 40, "silt": 35, "clay": 25}, "bulk_density": 1.4},
        "/soil/health": {
            "healthScore": 82,
            "indicators": {"organicMatter": {"status": "good"}, "biologicalActivity": {"status": "active"}},
            "risks": [{"type": "erosion", "description": "Moderate erosion risk"}],
            "recommendations": ["Maintain ground cover"]
        },
    })
    gateway = DataGateway(
        http=http,
        cache=CacheManager(),
        rate_limiter=RateLimiter(),
        retry=RetryExecutor(sleep=fake_sleep),
        base_url="https://api.test",
        synthetic=synthetic
    )

    composition = await gateway.get_soil_composition(NAIROBI, depth_cm=30)
    health = await gateway.get_soil_health(NAIROBI)

    assert (composition.sand, composition.silt, composition.clay) == (40, 35, 25)
    assert composition.source == DataSource.OPENEPI
    assert health.health_score == 82
    assert health.organic_matter_status == "good"
    assert health.risks == ["Moderate erosion risk"]

async def test_historical_weather_request_and_validation(gateway, fake_http):
    fake_http.routes["/weather/historical"] = {"historical": forecast_payload(days=3)["forecast"]}

    history = await gateway.get_historical_weather(NAIROBI, date(2026, 10, 1), date(2026, 10, 3))

    assert len(history.days) == 3
    assert fake_http.calls[-1]["params"]["start_date"] == "2026-10-01"

    with pytest.raises(InputValidationError):
        await gateway.get_historical_weather(NAIROBI, date(2026, 10, 3), date(2026, 10, 1))

async def test_failing_synthetic_data_is_upstream_unavailable(fake_sleep, synthetic, monkeypatch):
    def broken(point):
        raise ValueError("no climate normals for this location")

    monkeypatch.setattr(synthetic, "current_weather", broken)
    gateway = DataGateway(
        http=FakeHttp(routes={"/weather/current": ExternalAPIError("Service Unavailable", 503)}),
        cache=CacheManager(),
        rate_limiter=RateLimiter(),
        retry=RetryExecutor(sleep=fake_sleep),
        base_url="https://api.test",
        synthetic=synthetic
    )

    with pytest.raises(UpstreamUnavailableError):
        await gateway.get_current_weather(NAIROBI)
