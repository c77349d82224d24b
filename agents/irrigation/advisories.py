# server/agents/irrigation/advisories.py
"""
Weather alerts and quick irrigation insights from current conditions and forecast
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from agents.irrigation.models import (
    AlertType, DataSource, GeoPoint, InsightAction, IrrigationInsights, WeatherAlert,
    WeatherAlerts, WeatherForecast, WeatherForecastDay, WeatherSnapshot
)

logger = logging.getLogger(__name__)

HEAT_ALERT_THRESHOLD_C = 35
HUMIDITY_ALERT_THRESHOLD = 90
WIND_ALERT_THRESHOLD = 10

# Hours until the next irrigation for each insight
NEXT_IRRIGATION_HOURS = {
    InsightAction.INCREASE: 12,
    InsightAction.NORMAL: 24,
    InsightAction.REDUCE: 48,
    InsightAction.DELAY: 72,
}

class WeatherAdvisor:
    """Rule-of-thumb alerts and irrigation insights, independent of the water balance"""

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)
    ):
        config = config or {}
        self.heat_threshold = float(config.get("heat_alert_threshold_c", HEAT_ALERT_THRESHOLD_C))
        self.humidity_threshold = float(config.get("humidity_alert_threshold", HUMIDITY_ALERT_THRESHOLD))
        self.wind_threshold = float(config.get("wind_alert_threshold", WIND_ALERT_THRESHOLD))
        self.rain_lookahead_days = int(config.get("rain_lookahead_days", 3))
        self._clock = clock

    def alerts(self, location: GeoPoint, weather: WeatherSnapshot) -> WeatherAlerts:
        found: List[WeatherAlert] = []

        if weather.temperature > self.heat_threshold:
            found.append(WeatherAlert(
                type=AlertType.HEAT,
                severity="moderate",
                title="High Temperature Alert",
                description=f"Temperature is above {self.heat_threshold:g}°C. Consider irrigation and crop protection.",
                recommendations=[
                    "Increase irrigation frequency",
                    "Provide shade for sensitive crops",
                    "Monitor for heat stress"
                ]
            ))

        if weather.humidity > self.humidity_threshold:
            found.append(WeatherAlert(
                type=AlertType.HUMIDITY,
                severity="moderate",
                title="High Humidity Alert",
                description="High humidity may increase disease risk.",
                recommendations=[
                    "Improve air circulation",
                    "Monitor for fungal diseases",
                    "Reduce irrigation if possible"
                ]
            ))

        if weather.wind_speed > self.wind_threshold:
            found.append(WeatherAlert(
                type=AlertType.WIND,
                severity="moderate",
                title="Strong Wind Alert",
                description="Strong winds may damage crops and affect spraying.",
                recommendations=[
                    "Secure loose items",
                    "Postpone pesticide application",
                    "Check for crop damage"
                ]
            ))

        if found:
            logger.info(f"{len(found)} weather alert(s) at ({location.latitude}, {location.longitude})")
        return WeatherAlerts(location=location, alerts=found, weather=weather, timestamp=self._clock())

    def irrigation_insights(
        self,
        weather: WeatherSnapshot,
        forecast: Union[WeatherForecast, List[WeatherForecastDay]]
    ) -> IrrigationInsights:
        """Increase, reduce or delay watering from today's weather and the next few days of rain"""
        entries = forecast.days if isinstance(forecast, WeatherForecast) else forecast
        action = InsightAction.NORMAL
        reasoning: List[str] = []

        if weather.temperature > 30 and weather.humidity < 50:
            action = InsightAction.INCREASE
            reasoning.append("High temperature and low humidity increase water loss")

        if (weather.precipitation or 0.0) > 5:
            action = InsightAction.REDUCE
            reasoning.append("Recent rainfall reduces irrigation needs")

        rain_expected = any(day.precipitation > 2 for day in entries[:self.rain_lookahead_days])
        if rain_expected and action != InsightAction.REDUCE:
            action = InsightAction.DELAY
            reasoning.append(f"Rain expected in next {self.rain_lookahead_days} days")

        degraded = weather.source == DataSource.SYNTHETIC or (
            isinstance(forecast, WeatherForecast) and forecast.source == DataSource.SYNTHETIC
        )
        return IrrigationInsights(
            recommendation=action,
            reasoning=reasoning,
            estimated_soil_moisture=estimate_soil_moisture(weather),
            next_irrigation_at=self._clock() + timedelta(hours=NEXT_IRRIGATION_HOURS[action]),
            degraded=degraded
        )

def estimate_soil_moisture(weather: WeatherSnapshot) -> float:
    """Coarse moisture percentage from rain, heat and dryness; no soil data involved"""
    moisture = 50.0
    rain = weather.precipitation or 0.0
    if rain > 10:
        moisture += 30
    elif rain > 5:
        moisture += 15
    if weather.temperature > 30:
        moisture -= 20
    if weather.humidity < 50:
        moisture -= 10
    return max(0.0, min(100.0, moisture))
