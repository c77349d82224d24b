# server/agents/irrigation/mock_data.py
"""
Synthetic weather and soil data used when the upstream provider is unavailable

Values are bounded pseudo-random draws seeded from the rounded coordinates,
so a given location always produces the same dataset. Everything returned
is tagged ``source=synthetic``.
"""
import random
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional

from agents.irrigation.models import (
    DataSource, GeoPoint, HistoricalWeather, SoilComposition, SoilHealth,
    SoilProfile, SoilType, TemperatureRange, WeatherForecast, WeatherForecastDay,
    WeatherSnapshot
)
from agents.irrigation.service import SOIL_WATER_CAPACITY

MOCK_SOIL_TYPES = [SoilType.SANDY, SoilType.LOAM, SoilType.CLAY, SoilType.SANDY_LOAM, SoilType.CLAY_LOAM]
DRAINAGE_CLASSES = ["poor", "moderate", "good"]

class SyntheticDataGenerator:
    """Deterministic per-location fallback datasets"""

    def __init__(self, seed: int = 0, today: Callable[[], date] = date.today):
        self.seed = seed
        self._today = today

    def _rng(self, point: GeoPoint, salt: str) -> random.Random:
        return random.Random(f"{self.seed}:{salt}:{point.latitude:.2f}:{point.longitude:.2f}")

    def _day(self, rng: random.Random, day: date, base_temp: float, base_humidity: float) -> WeatherForecastDay:
        avg = round(base_temp + (rng.random() - 0.5) * 5, 1)
        rain_chance = rng.random()
        precipitation = round(rng.random() * 20, 1) if rain_chance > 0.7 else 0.0
        if rain_chance > 0.7:
            summary = "rain"
        elif rain_chance > 0.4:
            summary = "cloudy"
        else:
            summary = "sunny"
        return WeatherForecastDay(
            date=day,
            temperature=TemperatureRange(min=round(avg - 5, 1), max=round(avg + 5, 1), avg=avg),
            precipitation=precipitation,
            humidity=round(max(20.0, min(90.0, base_humidity + (rng.random() - 0.5) * 20)), 1),
            wind_speed=round(5 + rng.random() * 15, 1),
            summary=summary
        )

    def current_weather(self, point: GeoPoint) -> WeatherSnapshot:
        rng = self._rng(point, "current")
        return WeatherSnapshot(
            temperature=round(25 + (rng.random() - 0.5) * 10, 1),
            humidity=round(max(20.0, min(90.0, 60 + (rng.random() - 0.5) * 30)), 1),
            wind_speed=round(5 + rng.random() * 15, 1),
            solar_radiation=round(18 + rng.random() * 8, 1),
            precipitation=0.0,
            description="synthetic estimate",
            source=DataSource.SYNTHETIC,
            observed_at=datetime.now(timezone.utc)
        )

    def forecast(self, point: GeoPoint, days: int = 7) -> WeatherForecast:
        rng = self._rng(point, "forecast")
        base_temp = 25 + (rng.random() - 0.5) * 10
        base_humidity = 60 + (rng.random() - 0.5) * 30
        start = self._today()
        return WeatherForecast(
            location=point,
            days=[self._day(rng, start + timedelta(days=i), base_temp, base_humidity) for i in range(days)],
            source=DataSource.SYNTHETIC
        )

    def historical_weather(self, point: GeoPoint, start_date: date, end_date: date) -> HistoricalWeather:
        rng = self._rng(point, f"history:{start_date.isoformat()}")
        base_temp = 25 + (rng.random() - 0.5) * 10
        base_humidity = 60 + (rng.random() - 0.5) * 30
        span = max((end_date - start_date).days + 1, 0)
        return HistoricalWeather(
            location=point,
            start_date=start_date,
            end_date=end_date,
            days=[self._day(rng, start_date + timedelta(days=i), base_temp, base_humidity) for i in range(span)],
            source=DataSource.SYNTHETIC
        )

    def soil_profile(self, point: GeoPoint, soil_type: Optional[SoilType] = None) -> SoilProfile:
        rng = self._rng(point, "soil")
        soil_type = soil_type or rng.choice(MOCK_SOIL_TYPES)
        return SoilProfile(
            type=soil_type,
            ph=round(6.0 + rng.random() * 2.5, 1),
            organic_matter=round(1.5 + rng.random() * 3, 1),
            water_holding_capacity=SOIL_WATER_CAPACITY[soil_type],
            drainage=rng.choice(DRAINAGE_CLASSES),
            source=DataSource.SYNTHETIC
        )

    def soil_composition(self, point: GeoPoint, depth_cm: int = 30) -> SoilComposition:
        rng = self._rng(point, f"composition:{depth_cm}")
        sand = rng.randint(20, 70)
        clay = rng.randint(10, min(40, 90 - sand))
        return SoilComposition(
            depth_cm=depth_cm,
            sand=sand,
            silt=100 - sand - clay,
            clay=clay,
            bulk_density=round(1.2 + rng.random() * 0.5, 2),
            organic_carbon=round(0.5 + rng.random() * 2, 2),
            source=DataSource.SYNTHETIC
        )

    def soil_health(self, point: GeoPoint) -> SoilHealth:
        rng = self._rng(point, "health")
        organic_matter = round(1 + rng.random() * 3, 2)
        biological_activity = "active" if rng.random() > 0.4 else "low"
        risks = []
        if organic_matter < 2:
            risks.append("Low organic matter may reduce soil fertility and water retention")
        if biological_activity == "low":
            risks.append("Low biological activity may indicate soil health issues")
        return SoilHealth(
            health_score=rng.randint(60, 99),
            organic_matter_status="good" if organic_matter >= 2 else "needs_improvement",
            biological_activity=biological_activity,
            risks=risks,
            recommendations=[
                "Maintain ground cover to prevent erosion",
                "Add organic matter through compost or crop residues",
                "Practice crop rotation to improve soil biodiversity",
            ],
            source=DataSource.SYNTHETIC
        )
