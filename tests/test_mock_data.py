from datetime import date, timedelta

from agents.irrigation.models import DataSource, GeoPoint, SoilType
from agents.irrigation.service import SOIL_WATER_CAPACITY

KISUMU = GeoPoint(latitude=-0.0917, longitude=34.768)

def test_same_location_gives_same_forecast(synthetic):
    nearby = GeoPoint(latitude=-0.0921, longitude=34.7681)
    assert synthetic.forecast(KISUMU).days == synthetic.forecast(nearby).days

def test_different_locations_differ(synthetic):
    a = synthetic.forecast(KISUMU)
    b = synthetic.forecast(GeoPoint(latitude=12.5, longitude=-8.0))
    assert a.days != b.days

def test_forecast_shape_and_bounds(synthetic):
    forecast = synthetic.forecast(KISUMU, days=5)

    assert forecast.source == DataSource.SYNTHETIC
    assert [day.date for day in forecast.days] == [date(2026, 10, 19) + timedelta(days=i) for i in range(5)]
    for day in forecast.days:
        assert 0 <= day.precipitation <= 20
        assert 20 <= day.humidity <= 90
        assert day.temperature.min < day.temperature.avg < day.temperature.max

def test_current_weather_bounds(synthetic):
    weather = synthetic.current_weather(KISUMU)

    assert weather.source == DataSource.SYNTHETIC
    assert 20 <= weather.temperature <= 30
    assert 20 <= weather.humidity <= 90
    assert weather.wind_speed >= 0
    assert weather.observed_at is not None

def test_historical_covers_inclusive_range(synthetic):
    history = synthetic.historical_weather(KISUMU, date(2026, 9, 1), date(2026, 9, 10))

    assert len(history.days) == 10
    assert history.days[-1].date == date(2026, 9, 10)

def test_soil_profile_uses_capacity_table(synthetic):
    soil = synthetic.soil_profile(KISUMU)

    assert soil.type in SOIL_WATER_CAPACITY
    assert soil.water_holding_capacity == SOIL_WATER_CAPACITY[soil.type]
    assert synthetic.soil_profile(KISUMU, SoilType.CLAY).water_holding_capacity == 250

def test_composition_sums_to_one_hundred(synthetic):
    composition = synthetic.soil_composition(KISUMU, depth_cm=60)

    assert composition.depth_cm == 60
    assert composition.sand + composition.silt + composition.clay == 100

def test_health_score_range(synthetic):
    health = synthetic.soil_health(KISUMU)
    assert 60 <= health.health_score <= 99
    assert health.source == DataSource.SYNTHETIC
