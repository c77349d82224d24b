from datetime import date, datetime, timedelta, timezone

import pytest

from agents.irrigation.models import (
    CropContext, DataSource, GrowthStage, SoilProfile, SoilType, TemperatureRange,
    WeatherForecastDay, WeatherSnapshot
)
from agents.irrigation.service import IrrigationService, SOIL_WATER_CAPACITY, normalize_soil_type
from core.exceptions import CalculationError, InputValidationError

@pytest.fixture
def service():
    return IrrigationService(config={"default_days_since_irrigation": 7, "moisture_baseline_fraction": 0.8})

def day(offset: int, rain: float) -> WeatherForecastDay:
    return WeatherForecastDay(
        date=date(2026, 10, 19) + timedelta(days=offset),
        temperature=TemperatureRange(min=15, max=28, avg=21.5),
        precipitation=rain
    )

def soil(soil_type=SoilType.LOAM, capacity=None) -> SoilProfile:
    return SoilProfile(type=soil_type, water_holding_capacity=capacity or SOIL_WATER_CAPACITY[soil_type])

class TestEvapotranspiration:

    def test_reference_case(self, service):
        weather = WeatherSnapshot(temperature=35, humidity=40, wind_speed=5, solar_radiation=25)
        crop = CropContext(crop_type="tomato", growth_stage=GrowthStage.MID)

        result = service.compute_etc(weather, crop)

        # temp 1.0 * humidity 0.6 * wind 1.5 * radiation 1.0 * 5
        assert result.et0 == 4.5
        assert result.kc == 1.15
        assert result.etc == pytest.approx(5.175, abs=0.01)

    def test_missing_radiation_uses_neutral_factor(self, service):
        weather = WeatherSnapshot(temperature=20, humidity=50, wind_speed=0)
        result = service.compute_etc(weather, CropContext(crop_type="wheat", growth_stage=GrowthStage.INITIAL))

        assert result.et0 == 1.25
        assert result.kc == 0.4
        assert result.etc == 0.5

    def test_measured_zero_radiation_is_not_treated_as_missing(self, service):
        night = WeatherSnapshot(temperature=20, humidity=50, wind_speed=0, solar_radiation=0.0)
        result = service.compute_etc(night, CropContext(crop_type="wheat", growth_stage=GrowthStage.INITIAL))

        assert result.et0 == 0
        assert result.etc == 0

    @pytest.mark.parametrize("temperature,humidity,wind", [
        (-30, 0, 0), (-5, 100, 40), (0, 95, 0), (5, 100, 0), (45, 10, 60), (12.5, 99.9, 3.3),
    ])
    def test_et0_is_never_negative(self, service, temperature, humidity, wind):
        weather = WeatherSnapshot(temperature=temperature, humidity=humidity, wind_speed=wind)
        result = service.compute_etc(weather, CropContext())
        assert result.et0 >= 0
        assert result.etc >= 0

    def test_humidity_and_wind_factors_are_clamped(self, service):
        saturated = WeatherSnapshot(temperature=35, humidity=100, wind_speed=100)
        result = service.compute_etc(saturated, CropContext(crop_type="default"))
        # humidity floor 0.3, wind cap 2
        assert result.et0 == 3.0

    def test_unknown_crop_uses_default_row(self, service):
        assert service.get_crop_coefficient("quinoa", GrowthStage.LATE) == 0.7
        assert service.get_crop_coefficient("Maize", "development") == 0.7
        assert service.get_crop_coefficient("rice", "harvest") == 1.20

    @pytest.mark.parametrize("weather", [
        WeatherSnapshot(temperature=25, humidity=120, wind_speed=2),
        WeatherSnapshot(temperature=25, humidity=50, wind_speed=-1),
        WeatherSnapshot(temperature=25, humidity=50, wind_speed=1, solar_radiation=-3),
        WeatherSnapshot(temperature=float("nan"), humidity=50, wind_speed=1),
    ])
    def test_invalid_weather_fails_fast(self, service, weather):
        with pytest.raises(InputValidationError):
            service.compute_etc(weather, CropContext())

class TestWaterBalance:

    @pytest.mark.parametrize("soil_type", list(SoilType))
    def test_total_capacity_follows_soil_table(self, service, soil_type):
        balance = service.compute_water_balance(0, [], soil(soil_type), 0.6, 0)
        assert balance.total_capacity == pytest.approx(SOIL_WATER_CAPACITY[soil_type] * 0.6)

    def test_loss_and_gain(self, service):
        forecast = [day(0, 2.0), day(1, 3.0), day(2, 10.0), day(3, 50.0)]
        balance = service.compute_water_balance(4.0, forecast, soil(), 0.6, 3)

        # capacity 120mm, baseline 96mm, loss 12mm, gain 15mm
        assert balance.total_capacity == 120
        assert balance.water_loss == 12
        assert balance.water_gain == 15
        assert balance.current_moisture == 99
        assert balance.moisture_percentage == 82.5
        assert balance.is_optimal
        assert not balance.is_critical
        assert balance.days_since_irrigation == 3

    def test_moisture_never_negative_and_critical(self, service):
        balance = service.compute_water_balance(10.0, [day(i, 0) for i in range(7)], soil(SoilType.SANDY), 0.6, 14)

        assert balance.current_moisture == 0
        assert balance.moisture_percentage == 0
        assert balance.is_critical

    def test_unknown_days_defaults_to_seven(self, service):
        balance = service.compute_water_balance(1.0, [day(i, 1.0) for i in range(7)], soil(), 1.0, None)

        assert balance.days_since_irrigation == 7
        assert balance.water_loss == 7
        assert balance.water_gain == 7

    def test_baseline_fraction_is_configurable(self):
        service = IrrigationService(config={"moisture_baseline_fraction": 0.5})
        balance = service.compute_water_balance(0, [], soil(), 1.0, 0)
        assert balance.moisture_percentage == 50

    def test_zero_capacity_is_a_calculation_error(self, service):
        with pytest.raises(CalculationError):
            service.compute_water_balance(1.0, [], SoilProfile(water_holding_capacity=0), 0.6, 3)

    def test_negative_inputs_rejected(self, service):
        with pytest.raises(InputValidationError):
            service.compute_water_balance(1.0, [], soil(), 0.6, -1)
        with pytest.raises(InputValidationError):
            service.compute_water_balance(-1.0, [], soil(), 0.6, 1)

class TestSoilResolution:

    @pytest.mark.parametrize("raw,expected", [
        ("Sandy Loam", SoilType.SANDY_LOAM),
        ("clay-loam", SoilType.CLAY_LOAM),
        ("sand", SoilType.SANDY),
        ("LOAM", SoilType.LOAM),
        ("peat", SoilType.UNKNOWN),
        (None, SoilType.UNKNOWN),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_soil_type(raw) == expected

    def test_hint_overrides_fetched_type(self, service):
        fetched = SoilProfile(type=SoilType.LOAM, water_holding_capacity=205, ph=7.1, source=DataSource.OPENEPI)

        resolved = service.resolve_soil(fetched, "clay")

        assert resolved.type == SoilType.CLAY
        assert resolved.water_holding_capacity == 250
        assert resolved.ph == 7.1

    def test_unrecognised_hint_uses_unknown_entry(self, service):
        resolved = service.resolve_soil(soil(), "volcanic ash")
        assert resolved.type == SoilType.UNKNOWN
        assert resolved.water_holding_capacity == 180

    def test_no_hint_keeps_fetched(self, service):
        fetched = soil(SoilType.SILT_LOAM)
        assert service.resolve_soil(fetched, None) is fetched

class TestDaysSince:

    def test_whole_days(self, service):
        now = datetime(2026, 10, 19, 12, tzinfo=timezone.utc)
        assert service.days_since(now - timedelta(days=3, hours=5), now) == 3

    def test_naive_timestamp_treated_as_utc(self, service):
        now = datetime(2026, 10, 19, 12, tzinfo=timezone.utc)
        assert service.days_since(datetime(2026, 10, 17, 12), now) == 2

    def test_none_uses_default(self, service):
        assert service.days_since(None) == 7

    def test_future_rejected(self, service):
        now = datetime(2026, 10, 19, tzinfo=timezone.utc)
        with pytest.raises(InputValidationError):
            service.days_since(now + timedelta(hours=1), now)
