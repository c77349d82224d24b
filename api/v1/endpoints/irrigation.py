# server/api/v1/endpoints/irrigation.py
from fastapi import APIRouter, HTTPException, Query
from datetime import date, timedelta

from agents.base import agent_registry
from agents.irrigation.agent import IrrigationAgent
from agents.irrigation.models import GeoPoint, IrrigationRequest, IrrigationResponse

router = APIRouter()

def _get_agent() -> IrrigationAgent:
    irrigation_agent = agent_registry.get("irrigation")
    if not irrigation_agent:
        raise HTTPException(status_code=500, detail="Irrigation agent not available")
    return irrigation_agent

@router.post("/recommend", response_model=IrrigationResponse)
async def recommend_irrigation(request: IrrigationRequest):
    """
    Get an irrigation recommendation for a field

    Combines current weather, the forecast and soil properties into an
    evapotranspiration water balance and applies the irrigation rules.
    Responses built from estimated data carry ``metadata.degraded = true``.
    """
    irrigation_agent = _get_agent()
    return await irrigation_agent.execute(request)

@router.get("/crops")
async def get_crop_recommendations():
    """Get supported crop types with their crop coefficients"""
    crops = await _get_agent().get_crop_recommendations()
    return {
        "success": True,
        "crops": crops,
        "note": "Unlisted crops use default coefficients"
    }

@router.get("/soils")
async def get_soil_types():
    """Get available soil texture types"""
    soils = await _get_agent().get_soil_types()
    return {
        "success": True,
        "soil_types": soils,
        "note": "Soil texture affects water retention and irrigation frequency"
    }

@router.get("/weather-preview")
async def get_weather_preview(
    lat: float = Query(..., ge=-90, le=90, description="Latitude of the location"),
    lon: float = Query(..., ge=-180, le=180, description="Longitude of the location"),
    days: int = Query(7, ge=1, le=14, description="Number of days to preview")
):
    """Get current weather and forecast for a location"""
    gateway = _get_agent().gateway
    point = GeoPoint(latitude=lat, longitude=lon)

    current = await gateway.get_current_weather(point)
    forecast = await gateway.get_forecast(point, days)

    return {
        "success": True,
        "current": current,
        "forecast": forecast,
        "location": f"({lat:.3f}, {lon:.3f})"
    }

@router.get("/weather-history")
async def get_weather_history(
    lat: float = Query(..., ge=-90, le=90, description="Latitude of the location"),
    lon: float = Query(..., ge=-180, le=180, description="Longitude of the location"),
    days: int = Query(7, ge=1, le=90, description="Number of past days")
):
    """Get observed weather for the past days"""
    gateway = _get_agent().gateway
    end = date.today() - timedelta(days=1)
    start = end - timedelta(days=days - 1)
    history = await gateway.get_historical_weather(GeoPoint(latitude=lat, longitude=lon), start, end)
    return {"success": True, "history": history}

@router.get("/soil-report")
async def get_soil_report(
    lat: float = Query(..., ge=-90, le=90, description="Latitude of the location"),
    lon: float = Query(..., ge=-180, le=180, description="Longitude of the location"),
    depth_cm: int = Query(30, ge=5, le=200, description="Sampling depth in cm")
):
    """Get soil properties, composition and health for a location"""
    gateway = _get_agent().gateway
    point = GeoPoint(latitude=lat, longitude=lon)

    return {
        "success": True,
        "profile": await gateway.get_soil_profile(point),
        "composition": await gateway.get_soil_composition(point, depth_cm),
        "health": await gateway.get_soil_health(point)
    }

@router.get("/alerts")
async def get_weather_alerts(
    lat: float = Query(..., ge=-90, le=90, description="Latitude of the location"),
    lon: float = Query(..., ge=-180, le=180, description="Longitude of the location")
):
    """Get heat, humidity and wind alerts for current conditions"""
    alerts = await _get_agent().get_weather_alerts(GeoPoint(latitude=lat, longitude=lon))
    return {"success": True, "data": alerts}

@router.get("/insights")
async def get_irrigation_insights(
    lat: float = Query(..., ge=-90, le=90, description="Latitude of the location"),
    lon: float = Query(..., ge=-180, le=180, description="Longitude of the location")
):
    """Quick increase/reduce/delay guidance from weather alone, without soil or crop data"""
    insights = await _get_agent().get_irrigation_insights(GeoPoint(latitude=lat, longitude=lon))
    return {"success": True, "data": insights}

@router.get("/health")
async def irrigation_health():
    """Check irrigation agent health"""
    irrigation_agent = agent_registry.get("irrigation")
    if not irrigation_agent:
        return {"status": "unhealthy", "error": "Irrigation agent not available"}
    return await irrigation_agent.health_check()

@router.get("/stats")
async def irrigation_stats():
    """Upstream gateway statistics (calls, fallbacks, cache, rate limit)"""
    return {"success": True, "gateway": _get_agent().gateway.stats()}
