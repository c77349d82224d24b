# server/agents/irrigation/service.py
"""
Irrigation service - evapotranspiration and soil water balance

The ET0 estimate is a simplified factor model (temperature, humidity, wind
and radiation factors scaled to mm/day), not full FAO-56 Penman-Monteith.
"""
import math
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from agents.irrigation.models import (
    CropContext, EvapotranspirationResult, GrowthStage, SoilProfile, SoilType,
    WaterBalance, WeatherForecast, WeatherForecastDay, WeatherSnapshot
)
from core.exceptions import CalculationError, InputValidationError

logger = logging.getLogger(__name__)

# Crop coefficients (Kc) per growth stage
CROP_COEFFICIENTS: Dict[str, Dict[str, float]] = {
    "tomato": {"initial": 0.6, "development": 0.8, "mid": 1.15, "late": 0.8},
    "corn": {"initial": 0.3, "development": 0.7, "mid": 1.2, "late": 0.6},
    "rice": {"initial": 1.05, "development": 1.10, "mid": 1.20, "late": 0.90},
    "wheat": {"initial": 0.4, "development": 0.7, "mid": 1.15, "late": 0.4},
    "potato": {"initial": 0.5, "development": 0.75, "mid": 1.15, "late": 0.75},
    "cassava": {"initial": 0.3, "development": 0.6, "mid": 0.8, "late": 0.5},
    "default": {"initial": 0.5, "development": 0.75, "mid": 1.0, "late": 0.7},
}

CROP_ALIASES = {"maize": "corn"}

# Soil water holding capacity (mm per meter of soil depth)
SOIL_WATER_CAPACITY: Dict[SoilType, float] = {
    SoilType.SANDY: 120,
    SoilType.LOAM: 200,
    SoilType.CLAY: 250,
    SoilType.SANDY_LOAM: 160,
    SoilType.CLAY_LOAM: 220,
    SoilType.SILT_LOAM: 240,
    SoilType.UNKNOWN: 180,
}

CRITICAL_FRACTION = 0.3
OPTIMAL_FRACTION = 0.7

def normalize_soil_type(value: Optional[Union[str, SoilType]]) -> SoilType:
    """Map a free-form soil name ("Sandy Loam", "clay-loam") onto SoilType"""
    if isinstance(value, SoilType):
        return value
    if not value:
        return SoilType.UNKNOWN
    key = value.strip().lower().replace("-", "_").replace(" ", "_")
    if key == "sand":
        key = "sandy"
    try:
        return SoilType(key)
    except ValueError:
        return SoilType.UNKNOWN

def soil_capacity_for(soil_type: Union[str, SoilType, None]) -> float:
    return SOIL_WATER_CAPACITY[normalize_soil_type(soil_type)]

class IrrigationService:
    """Evapotranspiration and water-balance calculations (pure, no I/O)"""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.default_days_since_irrigation = int(config.get("default_days_since_irrigation", 7))
        self.moisture_baseline_fraction = float(config.get("moisture_baseline_fraction", 0.8))

    # ---------- Crop coefficients ----------

    def get_crop_coefficient(self, crop_type: str, growth_stage: Union[str, GrowthStage]) -> float:
        """Kc for crop and stage; unknown crops use the default row, unknown stages use mid"""
        crop = (crop_type or "").strip().lower()
        crop = CROP_ALIASES.get(crop, crop)
        row = CROP_COEFFICIENTS.get(crop, CROP_COEFFICIENTS["default"])
        stage = growth_stage.value if isinstance(growth_stage, GrowthStage) else str(growth_stage).lower()
        return row.get(stage, row["mid"])

    # ---------- Evapotranspiration ----------

    def compute_etc(self, weather: WeatherSnapshot, crop: CropContext) -> EvapotranspirationResult:
        """Crop evapotranspiration ETc = ET0 * Kc (mm/day)"""
        self._validate_weather(weather)

        temp_factor = max(0.0, (weather.temperature - 5) / 30)
        humidity_factor = max(0.3, (100 - weather.humidity) / 100)
        wind_factor = min(2.0, 1 + weather.wind_speed / 10)
        radiation_factor = weather.solar_radiation / 25 if weather.solar_radiation is not None else 1.0

        et0 = temp_factor * humidity_factor * wind_factor * radiation_factor * 5
        kc = self.get_crop_coefficient(crop.crop_type, crop.growth_stage)
        etc = et0 * kc

        return EvapotranspirationResult(et0=round(et0, 2), etc=round(etc, 2), kc=round(kc, 2))

    def _validate_weather(self, weather: WeatherSnapshot) -> None:
        for name in ("temperature", "humidity", "wind_speed"):
            value = getattr(weather, name)
            if value is None or not math.isfinite(value):
                raise InputValidationError(f"Weather field '{name}' is missing or not a number")
        if not 0 <= weather.humidity <= 100:
            raise InputValidationError(f"Humidity must be within 0-100%, got {weather.humidity}")
        if weather.wind_speed < 0:
            raise InputValidationError(f"Wind speed cannot be negative, got {weather.wind_speed}")
        if weather.solar_radiation is not None and weather.solar_radiation < 0:
            raise InputValidationError(f"Solar radiation cannot be negative, got {weather.solar_radiation}")

    # ---------- Soil ----------

    def resolve_soil(self, fetched: SoilProfile, soil_type_hint: Optional[str]) -> SoilProfile:
        """A caller-supplied soil type overrides the provider's, using the capacity table"""
        if not soil_type_hint:
            return fetched
        soil_type = normalize_soil_type(soil_type_hint)
        return fetched.model_copy(update={
            "type": soil_type,
            "water_holding_capacity": SOIL_WATER_CAPACITY[soil_type],
        })

    def days_since(self, last_irrigation_at: Optional[datetime], now: Optional[datetime] = None) -> int:
        """Whole days since last irrigation; unknown -> configured default"""
        if last_irrigation_at is None:
            return self.default_days_since_irrigation

        now = now or datetime.now(timezone.utc)
        if last_irrigation_at.tzinfo is None:
            last_irrigation_at = last_irrigation_at.replace(tzinfo=timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        elapsed = now - last_irrigation_at
        if elapsed.total_seconds() < 0:
            raise InputValidationError("Last irrigation time cannot be in the future")
        return elapsed.days

    # ---------- Water balance ----------

    def compute_water_balance(
        self,
        etc: float,
        forecast: Union[WeatherForecast, List[WeatherForecastDay]],
        soil: SoilProfile,
        root_depth_m: float,
        days_since_irrigation: Optional[int] = None
    ) -> WaterBalance:
        """Root-zone moisture since the last irrigation"""
        if days_since_irrigation is None:
            days_since_irrigation = self.default_days_since_irrigation
        if days_since_irrigation < 0:
            raise InputValidationError("days_since_irrigation cannot be negative")
        if etc < 0:
            raise InputValidationError(f"ETc cannot be negative, got {etc}")
        if root_depth_m <= 0:
            raise InputValidationError(f"Root depth must be positive, got {root_depth_m}")

        total_capacity = soil.water_holding_capacity * root_depth_m
        if total_capacity <= 0:
            raise CalculationError(f"Total soil water capacity must be positive, got {total_capacity}")

        days = forecast.days if isinstance(forecast, WeatherForecast) else forecast
        water_loss = etc * days_since_irrigation
        water_gain = sum(day.precipitation or 0.0 for day in days[:days_since_irrigation])

        current_moisture = max(0.0, total_capacity * self.moisture_baseline_fraction - water_loss + water_gain)
        moisture_percentage = current_moisture / total_capacity * 100

        balance = WaterBalance(
            current_moisture=round(current_moisture, 2),
            total_capacity=round(total_capacity, 2),
            moisture_percentage=round(moisture_percentage, 2),
            water_loss=round(water_loss, 2),
            water_gain=round(water_gain, 2),
            is_critical=current_moisture < total_capacity * CRITICAL_FRACTION,
            is_optimal=current_moisture >= total_capacity * OPTIMAL_FRACTION,
            days_since_irrigation=days_since_irrigation
        )
        logger.debug(f"Water balance: {balance.moisture_percentage}% of {balance.total_capacity}mm")
        return balance
