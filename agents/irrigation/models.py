# server/agents/irrigation/models.py
"""
Pydantic models for irrigation agent
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Dict, Any
from datetime import date as dt_date, datetime
from enum import Enum

class DataSource(str, Enum):
    OPENEPI = "openepi"
    SYNTHETIC = "synthetic"

class SoilType(str, Enum):
    SANDY = "sandy"
    LOAM = "loam"
    CLAY = "clay"
    SANDY_LOAM = "sandy_loam"
    CLAY_LOAM = "clay_loam"
    SILT_LOAM = "silt_loam"
    UNKNOWN = "unknown"

class GrowthStage(str, Enum):
    INITIAL = "initial"
    DEVELOPMENT = "development"
    MID = "mid"
    LATE = "late"

class RecommendationStatus(str, Enum):
    URGENT = "urgent"
    NEEDED = "needed"
    SKIP = "skip"
    OPTIMAL = "optimal"
    MONITOR = "monitor"

# ---------- Inputs ----------

class GeoPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

class CropContext(BaseModel):
    crop_type: str = Field("unknown", description="Crop type (e.g., tomato, corn, rice, wheat)")
    growth_stage: GrowthStage = GrowthStage.MID
    root_depth_m: float = Field(0.6, gt=0, le=5, description="Effective root depth in meters")

class IrrigationRequest(BaseModel):
    lat: float = Field(..., ge=-90, le=90, description="Latitude of the field")
    lon: float = Field(..., ge=-180, le=180, description="Longitude of the field")
    crop: str = Field("unknown", description="Crop type")
    growth_stage: GrowthStage = Field(GrowthStage.MID, description="Current crop growth stage")
    root_depth_m: Optional[float] = Field(None, gt=0, le=5, description="Root depth override in meters")
    soil_type: Optional[str] = Field(None, description="Soil type hint (sandy, loam, clay, ...)")
    field_size_ha: float = Field(1.0, gt=0, description="Field size in hectares")
    last_irrigation_at: Optional[datetime] = Field(None, description="When the field was last irrigated")

# ---------- Canonical upstream data ----------

class WeatherSnapshot(BaseModel):
    temperature: float
    humidity: float
    wind_speed: float
    solar_radiation: Optional[float] = None
    precipitation: Optional[float] = None
    description: Optional[str] = None
    source: DataSource = DataSource.OPENEPI
    observed_at: Optional[datetime] = None

class TemperatureRange(BaseModel):
    min: Optional[float] = None
    max: Optional[float] = None
    avg: Optional[float] = None

class WeatherForecastDay(BaseModel):
    date: dt_date
    temperature: TemperatureRange
    precipitation: float = 0.0
    humidity: Optional[float] = None
    wind_speed: Optional[float] = None
    summary: Optional[str] = None

class WeatherForecast(BaseModel):
    location: GeoPoint
    days: List[WeatherForecastDay]
    source: DataSource = DataSource.OPENEPI

class HistoricalWeather(BaseModel):
    location: GeoPoint
    start_date: dt_date
    end_date: dt_date
    days: List[WeatherForecastDay]
    source: DataSource = DataSource.OPENEPI

class SoilProfile(BaseModel):
    type: SoilType = SoilType.UNKNOWN
    ph: float = 6.5
    organic_matter: float = 2.5
    water_holding_capacity: float = Field(..., description="mm of water per meter of soil depth")
    drainage: str = "moderate"
    source: DataSource = DataSource.OPENEPI

class SoilComposition(BaseModel):
    depth_cm: int
    sand: float
    silt: float
    clay: float
    bulk_density: Optional[float] = None
    organic_carbon: Optional[float] = None
    source: DataSource = DataSource.OPENEPI

class SoilHealth(BaseModel):
    health_score: int
    organic_matter_status: str
    biological_activity: str
    risks: List[str] = []
    recommendations: List[str] = []
    source: DataSource = DataSource.OPENEPI

# ---------- Calculation results ----------

class EvapotranspirationResult(BaseModel):
    et0: float
    etc: float
    kc: float

class WaterBalance(BaseModel):
    current_moisture: float
    total_capacity: float
    moisture_percentage: float
    water_loss: float
    water_gain: float
    is_critical: bool
    is_optimal: bool
    days_since_irrigation: int

class IrrigationWindow(BaseModel):
    time: str
    reason: str
    efficiency: int

class OptimalTimes(BaseModel):
    recommended: List[IrrigationWindow]
    avoid: List[IrrigationWindow]
    best: IrrigationWindow

class ConservationTip(BaseModel):
    tip: str
    impact: str
    savings: str

class CostEstimate(BaseModel):
    water: float
    energy: float
    total: float
    currency: str

class EnvironmentalImpact(BaseModel):
    co2_footprint_kg: float
    sustainability: str
    water_efficiency: str
    recommendation: str

class IrrigationRecommendation(BaseModel):
    status: RecommendationStatus
    priority: str
    action: str
    water_amount_liters: int
    timing_window: str
    reason: str
    optimal_times: OptimalTimes
    conservation_tips: List[ConservationTip]
    next_assessment_at: datetime
    cost_estimate: CostEstimate
    environmental_impact: EnvironmentalImpact
    degraded: bool = False

# ---------- Weather alerts and insights ----------

class AlertType(str, Enum):
    HEAT = "heat_warning"
    HUMIDITY = "humidity_warning"
    WIND = "wind_warning"

class InsightAction(str, Enum):
    INCREASE = "increase"
    NORMAL = "normal"
    REDUCE = "reduce"
    DELAY = "delay"

class WeatherAlert(BaseModel):
    type: AlertType
    severity: str
    title: str
    description: str
    recommendations: List[str]

class WeatherAlerts(BaseModel):
    location: GeoPoint
    alerts: List[WeatherAlert]
    weather: WeatherSnapshot
    timestamp: datetime

class IrrigationInsights(BaseModel):
    recommendation: InsightAction
    reasoning: List[str]
    estimated_soil_moisture: float = Field(..., ge=0, le=100, description="Rough moisture estimate in percent")
    next_irrigation_at: datetime
    degraded: bool = False

# ---------- Agent response ----------

class IrrigationAdvice(BaseModel):
    recommendation: IrrigationRecommendation
    water_balance: WaterBalance
    evapotranspiration: EvapotranspirationResult
    weather: WeatherSnapshot
    forecast: WeatherForecast
    soil: SoilProfile

class IrrigationResponse(BaseModel):
    success: bool
    data: IrrigationAdvice
    message: str
    timestamp: str
    metadata: Optional[Dict[str, Any]] = None
