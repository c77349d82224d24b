# server/agents/irrigation/agent.py
"""
Irrigation advisory agent - evapotranspiration water balance and recommendation
"""

import asyncio
from typing import Dict, Any, List, Optional
from datetime import datetime, timezone

from agents.base import BaseAgent
from agents.irrigation.advisories import WeatherAdvisor
from agents.irrigation.gateway import DataGateway
from agents.irrigation.models import (
    CropContext, DataSource, GeoPoint, IrrigationAdvice, IrrigationRequest,
    IrrigationInsights, IrrigationResponse, SoilType, WeatherAlerts
)
from agents.irrigation.recommendation import RecommendationEngine, upcoming_rain
from agents.irrigation.service import IrrigationService, SOIL_WATER_CAPACITY, CROP_COEFFICIENTS
from core.config import Settings
from core.exceptions import AgentConfigError, InputValidationError

class IrrigationAgent(BaseAgent[IrrigationRequest, IrrigationResponse]):
    """
    Irrigation advisory agent

    Features:
    - Weather and soil data from an OpenEPI-style provider (cached, rate limited,
      retried, with synthetic fallback)
    - Simplified ET0 and crop coefficient (Kc) by growth stage
    - Root-zone water balance since last irrigation
    - Ordered irrigation decision rules with cost and environmental estimates
    - Heat, humidity and wind alerts and quick irrigation insights
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        gateway: Optional[DataGateway] = None,
        engine: Optional[RecommendationEngine] = None,
        advisor: Optional[WeatherAdvisor] = None
    ):
        super().__init__("irrigation", settings=settings)
        self.gateway = gateway or DataGateway.from_settings(self.settings)
        self.service = IrrigationService(config=self.config)
        self.engine = engine or RecommendationEngine(config=self.config)
        self.advisor = advisor or WeatherAdvisor(config=self.config)
        self.logger.info("Irrigation agent initialized")

    def _validate_config(self) -> None:
        """Validate irrigation agent configuration"""
        required_config = [
            "default_days_since_irrigation", "moisture_baseline_fraction",
            "default_root_depth_m", "forecast_days"
        ]

        missing = [key for key in required_config if key not in self.config]
        if missing:
            self.logger.warning(f"Missing irrigation config (using defaults): {missing}")

        baseline = self.config.get("moisture_baseline_fraction", 0.8)
        if not 0 < baseline <= 1:
            raise AgentConfigError(f"moisture_baseline_fraction must be within (0, 1], got {baseline}")

    async def startup(self) -> None:
        self.gateway.cache.start_sweeper(self.settings.cache_sweep_interval_seconds)

    async def shutdown(self) -> None:
        await self.gateway.cache.stop_sweeper()
        await self.gateway.close()

    async def process_request(self, request: IrrigationRequest) -> IrrigationResponse:
        """Process irrigation recommendation request"""
        crop = CropContext(
            crop_type=request.crop,
            growth_stage=request.growth_stage,
            root_depth_m=request.root_depth_m or self.config.get("default_root_depth_m", 0.6)
        )
        return await self.compute_irrigation_recommendation(
            location=GeoPoint(latitude=request.lat, longitude=request.lon),
            crop=crop,
            soil_type_hint=request.soil_type,
            field_size_ha=request.field_size_ha,
            last_irrigation_at=request.last_irrigation_at
        )

    async def compute_irrigation_recommendation(
        self,
        location: GeoPoint,
        crop: CropContext,
        soil_type_hint: Optional[str],
        field_size_ha: float,
        last_irrigation_at: Optional[datetime]
    ) -> IrrigationResponse:
        """Fetch observations, run ET -> water balance -> rules"""
        if field_size_ha is None or field_size_ha <= 0:
            raise InputValidationError(f"Field size must be positive, got {field_size_ha}")

        now = datetime.now(timezone.utc)
        days_since = self.service.days_since(last_irrigation_at, now)

        self.logger.info(
            f"Processing irrigation request for {crop.crop_type} ({crop.growth_stage.value}) "
            f"at ({location.latitude}, {location.longitude})"
        )

        # Step 1: Fetch weather and soil concurrently
        weather, forecast, fetched_soil = await asyncio.gather(
            self.gateway.get_current_weather(location),
            self.gateway.get_forecast(location, self.config.get("forecast_days", 7)),
            self.gateway.get_soil_profile(location)
        )

        soil = self.service.resolve_soil(fetched_soil, soil_type_hint)
        degraded = any(
            item.source == DataSource.SYNTHETIC for item in (weather, forecast, fetched_soil)
        )

        # Step 2: Crop evapotranspiration
        et = self.service.compute_etc(weather, crop)

        # Step 3: Water balance
        balance = self.service.compute_water_balance(
            et.etc, forecast, soil, crop.root_depth_m, days_since
        )

        # Step 4: Recommendation
        recommendation = self.engine.recommend(
            balance, forecast, weather, et, field_size_ha, degraded=degraded
        )

        message = recommendation.reason
        if degraded:
            message += " (based on estimated data; provider unavailable)"

        self.logger.info(
            f"Irrigation recommendation: {recommendation.status.value}, "
            f"{recommendation.water_amount_liters}L, degraded={degraded}"
        )

        return IrrigationResponse(
            success=True,
            data=IrrigationAdvice(
                recommendation=recommendation,
                water_balance=balance,
                evapotranspiration=et,
                weather=weather,
                forecast=forecast,
                soil=soil
            ),
            message=message,
            timestamp=now.isoformat(),
            metadata={
                "location": {"latitude": location.latitude, "longitude": location.longitude},
                "crop": {"type": crop.crop_type, "growth_stage": crop.growth_stage.value},
                "field_size_ha": field_size_ha,
                "upcoming_rain_mm": round(upcoming_rain(forecast, self.engine.rain_lookahead_days), 2),
                "data_sources": {
                    "weather": weather.source.value,
                    "forecast": forecast.source.value,
                    "soil": fetched_soil.source.value
                },
                "degraded": degraded
            }
        )

    async def get_weather_alerts(self, location: GeoPoint) -> WeatherAlerts:
        """Heat, humidity and wind alerts for current conditions"""
        weather = await self.gateway.get_current_weather(location)
        return self.advisor.alerts(location, weather)

    async def get_irrigation_insights(self, location: GeoPoint) -> IrrigationInsights:
        weather, forecast = await asyncio.gather(
            self.gateway.get_current_weather(location),
            self.gateway.get_forecast(location, self.config.get("forecast_days", 7))
        )
        return self.advisor.irrigation_insights(weather, forecast)

    async def health_check(self) -> Dict[str, Any]:
        health = await super().health_check()
        health["gateway"] = self.gateway.stats()
        return health

    async def get_crop_recommendations(self) -> List[Dict[str, Any]]:
        """Supported crops with their stage coefficients"""
        return [
            {"name": name, "crop_coefficients": stages}
            for name, stages in CROP_COEFFICIENTS.items()
            if name != "default"
        ]

    async def get_soil_types(self) -> List[Dict[str, Any]]:
        """Soil textures with water holding capacity (mm/m)"""
        descriptions = {
            SoilType.SANDY: "Drains quickly, needs frequent irrigation",
            SoilType.SANDY_LOAM: "Good drainage with moderate water retention",
            SoilType.LOAM: "Ideal soil with balanced drainage and retention",
            SoilType.SILT_LOAM: "High retention, smooth texture, moderate drainage",
            SoilType.CLAY_LOAM: "Good water retention, slower drainage",
            SoilType.CLAY: "High water retention, poor drainage",
            SoilType.UNKNOWN: "Used when the soil type is not known",
        }
        return [
            {
                "type": soil_type.value,
                "description": descriptions[soil_type],
                "water_holding_capacity_mm_per_m": capacity
            }
            for soil_type, capacity in SOIL_WATER_CAPACITY.items()
        ]
