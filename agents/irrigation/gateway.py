# server/agents/irrigation/gateway.py
"""
Data gateway for weather and soil observations (OpenEPI-style provider)

Every accessor follows the same pipeline: cache lookup, rate limiter, bearer
token, retried HTTP call, transform to the canonical model, cache store. When
the provider still fails after retries, the synthetic generator answers
instead and the result carries ``source=synthetic``. Rate limit errors are
never masked.
"""
import logging
import time
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional, TypeVar

from dateutil import parser as date_parser
from pydantic import ValidationError as PydanticValidationError

from agents.irrigation.mock_data import SyntheticDataGenerator
from agents.irrigation.models import (
    DataSource, GeoPoint, HistoricalWeather, SoilComposition, SoilHealth,
    SoilProfile, TemperatureRange, WeatherForecast, WeatherForecastDay,
    WeatherSnapshot
)
from agents.irrigation.service import normalize_soil_type, SOIL_WATER_CAPACITY
from core.auth import TokenManager
from core.cache import CacheManager, make_cache_key
from core.config import Settings
from core.exceptions import AuthError, ExternalAPIError, InputValidationError, UpstreamUnavailableError
from core.http import HttpClient
from core.rate_limit import RateLimiter
from core.retry import RetryExecutor

logger = logging.getLogger(__name__)

T = TypeVar("T")

def _first(data: Dict[str, Any], *paths: str) -> Any:
    """First non-null value among dotted paths ("wind.speed")"""
    for path in paths:
        value: Any = data
        for part in path.split("."):
            if not isinstance(value, dict):
                value = None
                break
            value = value.get(part)
        if value is not None:
            return value
    return None

def _num(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None

def _parse_day(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date_parser.parse(str(value)).date()

def _parse_time(value: Any) -> datetime:
    """Observation timestamp; providers that omit it are treated as observed now"""
    if value is None:
        return datetime.now(timezone.utc)
    if isinstance(value, datetime):
        return value
    return date_parser.parse(str(value))

class DataGateway:
    """Typed, cached, rate-limited access to upstream weather and soil data"""

    def __init__(
        self,
        http: HttpClient,
        cache: CacheManager,
        rate_limiter: RateLimiter,
        retry: RetryExecutor,
        base_url: str,
        token_manager: Optional[TokenManager] = None,
        api_key: Optional[str] = None,
        synthetic: Optional[SyntheticDataGenerator] = None,
        ttls: Optional[Dict[str, int]] = None
    ):
        self.http = http
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.retry = retry
        self.base_url = base_url.rstrip("/")
        self.token_manager = token_manager
        self.api_key = api_key
        self.synthetic = synthetic or SyntheticDataGenerator()
        self.ttls = {
            "current": 1800,
            "forecast": 3600,
            "historical": 86400,
            "soil": 86400,
            **(ttls or {})
        }
        self.upstream_calls = 0
        self.fallbacks = 0

    @classmethod
    def from_settings(cls, settings: Settings, http: Optional[HttpClient] = None) -> "DataGateway":
        http = http or HttpClient(timeout_seconds=settings.request_timeout_seconds)
        token_manager = None
        if settings.has_client_credentials:
            token_manager = TokenManager(
                http,
                auth_url=settings.openepi_auth_url,
                client_id=settings.openepi_client_id,
                client_secret=settings.openepi_client_secret,
                safety_margin=settings.token_safety_margin_seconds
            )
        return cls(
            http=http,
            cache=CacheManager(
                max_size=settings.cache_max_size,
                default_ttl=settings.cache_ttl_forecast,
                enabled=settings.cache_enabled
            ),
            rate_limiter=RateLimiter(
                limit=settings.rate_limit_requests,
                window_seconds=settings.rate_limit_window,
                enabled=settings.rate_limit_enabled
            ),
            retry=RetryExecutor(attempts=settings.retry_attempts, base_delay=settings.retry_base_delay_seconds),
            base_url=settings.openepi_base_url,
            token_manager=token_manager,
            api_key=settings.openepi_api_key,
            ttls={
                "current": settings.cache_ttl_current_weather,
                "forecast": settings.cache_ttl_forecast,
                "historical": settings.cache_ttl_historical,
                "soil": settings.cache_ttl_soil,
            }
        )

    # ---------- Core pipeline ----------

    async def _auth_headers(self) -> Dict[str, str]:
        if self.token_manager:
            return {"Authorization": f"Bearer {await self.token_manager.get_token()}"}
        if self.api_key:
            return {"Authorization": f"Bearer {self.api_key}"}
        return {}

    async def _call_upstream(self, endpoint: str, params: Dict[str, Any]) -> Any:
        url = f"{self.base_url}{endpoint}"

        async def attempt():
            # every attempt is an upstream request; RateLimitError is not retried
            await self.rate_limiter.check_and_consume()
            headers = await self._auth_headers()
            started = time.perf_counter()
            self.upstream_calls += 1
            try:
                payload = await self.http.get_json(url, params=params, headers=headers)
            except ExternalAPIError as e:
                elapsed_ms = (time.perf_counter() - started) * 1000
                logger.warning(f"Upstream GET {endpoint} failed in {elapsed_ms:.0f}ms: {e}")
                if e.status_code == 401 and self.token_manager:
                    self.token_manager.invalidate()
                raise
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.info(f"Upstream GET {endpoint} ok in {elapsed_ms:.0f}ms")
            return payload

        return await self.retry.execute(attempt)

    async def _fetch(
        self,
        endpoint: str,
        params: Dict[str, Any],
        ttl: int,
        transform: Callable[[Any], T],
        fallback: Callable[[], T]
    ) -> T:
        cache_key = make_cache_key(endpoint, params)
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            payload = await self._call_upstream(endpoint, params)
            if not isinstance(payload, dict):
                raise ValueError(f"Expected a JSON object, got {type(payload).__name__}")
            result = transform(payload)
        except (ExternalAPIError, AuthError) as e:
            return self._fallback(endpoint, e, fallback)
        except (AttributeError, KeyError, TypeError, ValueError, PydanticValidationError) as e:
            return self._fallback(endpoint, e, fallback, reason="unexpected payload shape")

        await self.cache.set(cache_key, result, ttl)
        return result

    def _fallback(self, endpoint: str, error: Exception, fallback: Callable[[], T], reason: str = "upstream failure") -> T:
        self.fallbacks += 1
        logger.warning(f"Using synthetic data for {endpoint} ({reason}): {error}")
        try:
            return fallback()
        except Exception as e:
            logger.error(f"Synthetic data for {endpoint} failed: {e}", exc_info=True)
            raise UpstreamUnavailableError(f"No data available for {endpoint}: {error}") from e

    @staticmethod
    def _location_params(point: GeoPoint) -> Dict[str, Any]:
        return {"lat": point.latitude, "lon": point.longitude}

    # ---------- Weather ----------

    async def get_current_weather(self, point: GeoPoint) -> WeatherSnapshot:
        return await self._fetch(
            "/weather/current",
            {**self._location_params(point), "units": "metric"},
            self.ttls["current"],
            self._transform_current,
            lambda: self.synthetic.current_weather(point)
        )

    async def get_forecast(self, point: GeoPoint, days: int = 7) -> WeatherForecast:
        if days < 1:
            raise InputValidationError("Forecast days must be at least 1")
        return await self._fetch(
            "/weather/forecast",
            {**self._location_params(point), "days": days, "units": "metric"},
            self.ttls["forecast"],
            lambda payload: self._transform_forecast(payload, point, days),
            lambda: self.synthetic.forecast(point, days)
        )

    async def get_historical_weather(self, point: GeoPoint, start_date: date, end_date: date) -> HistoricalWeather:
        if end_date < start_date:
            raise InputValidationError("end_date must not be before start_date")
        return await self._fetch(
            "/weather/historical",
            {
                **self._location_params(point),
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
                "units": "metric"
            },
            self.ttls["historical"],
            lambda payload: self._transform_historical(payload, point, start_date, end_date),
            lambda: self.synthetic.historical_weather(point, start_date, end_date)
        )

    # ---------- Soil ----------

    async def get_soil_profile(self, point: GeoPoint) -> SoilProfile:
        return await self._fetch(
            "/soil/properties",
            self._location_params(point),
            self.ttls["soil"],
            self._transform_soil,
            lambda: self.synthetic.soil_profile(point)
        )

    async def get_soil_composition(self, point: GeoPoint, depth_cm: int = 30) -> SoilComposition:
        return await self._fetch(
            "/soil/composition",
            {**self._location_params(point), "depth_cm": depth_cm},
            self.ttls["soil"],
            lambda payload: self._transform_composition(payload, depth_cm),
            lambda: self.synthetic.soil_composition(point, depth_cm)
        )

    async def get_soil_health(self, point: GeoPoint) -> SoilHealth:
        return await self._fetch(
            "/soil/health",
            self._location_params(point),
            self.ttls["soil"],
            self._transform_health,
            lambda: self.synthetic.soil_health(point)
        )

    # ---------- Provider -> canonical transforms ----------

    def _transform_current(self, payload: Dict[str, Any]) -> WeatherSnapshot:
        data = payload.get("current") or payload
        return WeatherSnapshot(
            temperature=_num(_first(data, "temperature", "temp", "air_temperature")),
            humidity=_num(_first(data, "humidity", "relative_humidity")),
            wind_speed=_num(_first(data, "wind_speed", "windSpeed", "wind.speed")),
            solar_radiation=_num(_first(data, "solar_radiation", "solarRadiation", "shortwave_radiation")),
            precipitation=_num(_first(data, "precipitation", "precip")),
            description=_first(data, "description", "weather_description"),
            source=DataSource.OPENEPI,
            observed_at=_parse_time(_first(data, "observed_at", "time", "timestamp"))
        )

    def _transform_day(self, day: Dict[str, Any]) -> WeatherForecastDay:
        return WeatherForecastDay(
            date=_parse_day(_first(day, "date", "datetime", "time")),
            temperature=TemperatureRange(
                min=_num(_first(day, "temp_min", "temperature.min", "low")),
                max=_num(_first(day, "temp_max", "temperature.max", "high")),
                avg=_num(_first(day, "temp_avg", "temperature.avg"))
            ),
            precipitation=_num(_first(day, "precipitation", "precip")) or 0.0,
            humidity=_num(_first(day, "humidity", "relative_humidity")),
            wind_speed=_num(_first(day, "wind_speed", "windSpeed", "wind.speed")),
            summary=_first(day, "summary", "description", "weather_description")
        )

    def _days(self, payload: Dict[str, Any], *keys: str) -> List[WeatherForecastDay]:
        for key in keys:
            entries = payload.get(key)
            if isinstance(entries, list):
                return [self._transform_day(day) for day in entries]
        raise ValueError(f"Payload has none of {keys}")

    def _transform_forecast(self, payload: Dict[str, Any], point: GeoPoint, days: int) -> WeatherForecast:
        entries = self._days(payload, "forecast", "daily")
        return WeatherForecast(location=point, days=entries[:days], source=DataSource.OPENEPI)

    def _transform_historical(self, payload: Dict[str, Any], point: GeoPoint, start_date: date, end_date: date) -> HistoricalWeather:
        return HistoricalWeather(
            location=point,
            start_date=start_date,
            end_date=end_date,
            days=self._days(payload, "historical", "data", "daily"),
            source=DataSource.OPENEPI
        )

    def _transform_soil(self, payload: Dict[str, Any]) -> SoilProfile:
        soil_type = normalize_soil_type(_first(payload, "soil_type", "type", "most_probable_soil_type"))
        capacity = _num(_first(payload, "water_holding_capacity", "waterHoldingCapacity"))
        return SoilProfile(
            type=soil_type,
            ph=_num(_first(payload, "ph", "pH", "properties.ph")) or 6.5,
            organic_matter=_num(_first(payload, "organic_matter", "organicMatter")) or 2.5,
            water_holding_capacity=capacity or SOIL_WATER_CAPACITY[soil_type],
            drainage=_first(payload, "drainage") or "moderate",
            source=DataSource.OPENEPI
        )

    def _transform_composition(self, payload: Dict[str, Any], depth_cm: int) -> SoilComposition:
        texture = payload.get("texture") or payload
        return SoilComposition(
            depth_cm=int(_first(payload, "depth_cm", "depth") or depth_cm),
            sand=_num(texture["sand"]),
            silt=_num(texture["silt"]),
            clay=_num(texture["clay"]),
            bulk_density=_num(_first(payload, "bulk_density", "properties.bulkDensity")),
            organic_carbon=_num(_first(payload, "organic_carbon", "properties.organicCarbon")),
            source=DataSource.OPENEPI
        )

    def _transform_health(self, payload: Dict[str, Any]) -> SoilHealth:
        return SoilHealth(
            health_score=int(_first(payload, "health_score", "healthScore")),
            organic_matter_status=_first(payload, "organic_matter_status", "indicators.organicMatter.status") or "unknown",
            biological_activity=_first(payload, "biological_activity", "indicators.biologicalActivity.status") or "unknown",
            risks=[r if isinstance(r, str) else r.get("description", "") for r in payload.get("risks") or []],
            recommendations=list(payload.get("recommendations") or []),
            source=DataSource.OPENEPI
        )

    # ---------- Lifecycle / stats ----------

    async def close(self) -> None:
        await self.http.close()

    def stats(self) -> Dict[str, Any]:
        return {
            "upstream_calls": self.upstream_calls,
            "synthetic_fallbacks": self.fallbacks,
            "cache_size": len(self.cache),
            "rate_limit": self.rate_limiter.stats(),
            "auth": "client_credentials" if self.token_manager else ("api_key" if self.api_key else "none")
        }
