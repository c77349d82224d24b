# server/agents/irrigation/recommendation.py
"""
Irrigation recommendation engine - ordered decision rules over the water balance
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from agents.irrigation.models import (
    ConservationTip, CostEstimate, EnvironmentalImpact, EvapotranspirationResult,
    IrrigationRecommendation, IrrigationWindow, OptimalTimes, RecommendationStatus,
    WaterBalance, WeatherForecast, WeatherForecastDay, WeatherSnapshot
)
from core.exceptions import InputValidationError

logger = logging.getLogger(__name__)

PRIORITY_BY_STATUS = {
    RecommendationStatus.URGENT: "high",
    RecommendationStatus.NEEDED: "medium",
}

NEXT_ASSESSMENT_HOURS = {
    RecommendationStatus.URGENT: 6,
    RecommendationStatus.NEEDED: 24,
    RecommendationStatus.SKIP: 72,
}
DEFAULT_ASSESSMENT_HOURS = 48

SUSTAINABILITY_BY_STATUS = {
    RecommendationStatus.OPTIMAL: "excellent",
    RecommendationStatus.SKIP: "excellent",
    RecommendationStatus.MONITOR: "good",
    RecommendationStatus.NEEDED: "moderate",
    RecommendationStatus.URGENT: "concerning",
}

HOT_EVENING_THRESHOLD_C = 30
WARM_MORNING_THRESHOLD_C = 25
WINDY_THRESHOLD = 15

# Advisory volume factor: liters per mm of deficit per hectare
LITERS_PER_MM_HECTARE = 10

def upcoming_rain(forecast: Union[WeatherForecast, List[WeatherForecastDay]], days: int = 3) -> float:
    """Total precipitation (mm) forecast over the next ``days`` entries"""
    entries = forecast.days if isinstance(forecast, WeatherForecast) else forecast
    return sum(day.precipitation or 0.0 for day in entries[:days])

class RecommendationEngine:
    """Turns a water balance and forecast into an irrigation recommendation"""

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)
    ):
        config = config or {}
        self.rain_lookahead_days = int(config.get("rain_lookahead_days", 3))
        self.water_cost_per_liter = float(config.get("water_cost_per_liter", 0.001))
        self.energy_cost_per_liter = float(config.get("energy_cost_per_liter", 0.0005))
        self.co2_kg_per_liter = float(config.get("co2_kg_per_liter", 0.0003))
        self.currency = config.get("currency", "USD")
        self._clock = clock

    def recommend(
        self,
        balance: WaterBalance,
        forecast: Union[WeatherForecast, List[WeatherForecastDay]],
        current: WeatherSnapshot,
        et: EvapotranspirationResult,
        field_size_ha: float,
        degraded: bool = False
    ) -> IrrigationRecommendation:
        if field_size_ha is None or field_size_ha <= 0:
            raise InputValidationError(f"Field size must be positive, got {field_size_ha}")

        rain = upcoming_rain(forecast, self.rain_lookahead_days)
        status, action, amount, timing, reason = self._apply_rules(balance, rain, field_size_ha)

        logger.info(
            f"Recommendation: {status.value} ({action}), {amount}L, "
            f"moisture {balance.moisture_percentage}%, rain {rain:.1f}mm, ETc {et.etc}mm/day"
        )

        return IrrigationRecommendation(
            status=status,
            priority=PRIORITY_BY_STATUS.get(status, "low"),
            action=action,
            water_amount_liters=amount,
            timing_window=timing,
            reason=reason,
            optimal_times=self.optimal_times(current),
            conservation_tips=self.conservation_tips(status, current),
            next_assessment_at=self.next_assessment(status),
            cost_estimate=self.cost_estimate(amount),
            environmental_impact=self.environmental_impact(amount, status),
            degraded=degraded
        )

    def _apply_rules(self, balance: WaterBalance, rain: float, field_size_ha: float):
        """First matching rule wins"""
        if balance.is_critical and rain < 10:
            amount = self._liters(balance.total_capacity * 0.8 - balance.current_moisture, field_size_ha)
            return (
                RecommendationStatus.URGENT, "irrigate_now", amount, "within_2_hours",
                "Critical soil moisture level detected. Immediate irrigation required to prevent crop stress."
            )

        if balance.moisture_percentage < 50 and rain < 5:
            amount = self._liters(balance.total_capacity * 0.7 - balance.current_moisture, field_size_ha)
            return (
                RecommendationStatus.NEEDED, "irrigate_soon", amount, "within_24_hours",
                "Soil moisture below optimal level. Irrigation recommended before crop stress occurs."
            )

        if rain >= 10:
            return (
                RecommendationStatus.SKIP, "wait_for_rain", 0, "after_rainfall",
                f"Significant rainfall expected ({round(rain)}mm). Skip irrigation and reassess after rain."
            )

        if balance.is_optimal:
            return (
                RecommendationStatus.OPTIMAL, "monitor", 0, "next_assessment",
                "Soil moisture at optimal level. Continue monitoring and reassess in 2-3 days."
            )

        return (
            RecommendationStatus.MONITOR, "assess_tomorrow", 0, "tomorrow",
            "Soil moisture adequate for now. Reassess tomorrow based on weather conditions."
        )

    def _liters(self, deficit_mm: float, field_size_ha: float) -> int:
        return max(0, round(deficit_mm * field_size_ha * LITERS_PER_MM_HECTARE))

    # ---------- Derived fields ----------

    def optimal_times(self, current: WeatherSnapshot) -> OptimalTimes:
        early_morning = IrrigationWindow(
            time="05:30 - 07:00",
            reason="Low evaporation, good water absorption",
            efficiency=95
        )
        evening = IrrigationWindow(
            time="18:30 - 20:00" if current.temperature > HOT_EVENING_THRESHOLD_C else "17:00 - 19:00",
            reason="Cooler temperatures, reduced water loss",
            efficiency=85
        )
        midday = IrrigationWindow(
            time="10:00 - 16:00",
            reason="High evaporation, water stress on plants",
            efficiency=45
        )
        return OptimalTimes(
            recommended=[early_morning, evening],
            avoid=[midday],
            best=early_morning if current.temperature > WARM_MORNING_THRESHOLD_C else evening
        )

    def conservation_tips(self, status: RecommendationStatus, current: WeatherSnapshot) -> List[ConservationTip]:
        tips = [
            ConservationTip(tip="Use drip irrigation for 30-50% water savings", impact="high", savings="30-50%"),
            ConservationTip(tip="Apply mulch around plants to reduce evaporation", impact="medium", savings="15-25%"),
        ]
        if current.wind_speed > WINDY_THRESHOLD:
            tips.append(ConservationTip(
                tip="Avoid irrigation during windy conditions to reduce drift",
                impact="medium",
                savings="10-20%"
            ))
        if status == RecommendationStatus.URGENT:
            tips.append(ConservationTip(
                tip="Consider split irrigation to improve absorption",
                impact="high",
                savings="20-30%"
            ))
        return tips

    def next_assessment(self, status: RecommendationStatus) -> datetime:
        hours = NEXT_ASSESSMENT_HOURS.get(status, DEFAULT_ASSESSMENT_HOURS)
        return self._clock() + timedelta(hours=hours)

    def cost_estimate(self, liters: int) -> CostEstimate:
        water = liters * self.water_cost_per_liter
        energy = liters * self.energy_cost_per_liter
        return CostEstimate(
            water=round(water, 2),
            energy=round(energy, 2),
            total=round(water + energy, 2),
            currency=self.currency
        )

    def environmental_impact(self, liters: int, status: RecommendationStatus) -> EnvironmentalImpact:
        return EnvironmentalImpact(
            co2_footprint_kg=round(liters * self.co2_kg_per_liter, 3),
            sustainability=SUSTAINABILITY_BY_STATUS[status],
            water_efficiency="low" if status == RecommendationStatus.URGENT else "high",
            recommendation="Consider precision irrigation techniques for better efficiency"
        )
