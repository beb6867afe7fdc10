import pytest

from regional_weather.weather.aggregator import RegionalAggregator, aggregate, dominant_direction
from regional_weather.weather.confidence import ConfidenceScorer
from regional_weather.weather.regions import get_region
from regional_weather.weather.validator import validate_snapshot


def test_changi_statistics(snapshot):
    data = aggregate(get_region("changi"), snapshot)

    # S24 and S33 are Changi priority stations
    assert data.stations_used == ["S24", "S33"]
    assert data.temperature.count == 2
    assert data.temperature.average == pytest.approx(30.4)
    assert data.temperature.min == 30.2
    assert data.temperature.max == 30.6
    assert data.humidity.average == pytest.approx(82.0)
    assert data.rainfall.total == pytest.approx(2.4)
    assert data.rainfall.active_stations == 1
    assert data.wind.average_speed == pytest.approx(4.1)
    assert data.wind.dominant_direction == "E"


def test_empty_humidity_series(raw_snapshot):
    raw_snapshot["data"]["humidity"]["readings"] = []
    report = validate_snapshot(raw_snapshot)

    data = aggregate(get_region("changi"), report.sanitized)

    assert data.humidity.count == 0
    assert data.humidity.average is None
    assert data.humidity.min is None
    assert data.humidity.max is None
    # Humidity reported nothing, so it does not count against completeness
    assert ConfidenceScorer().data_completeness(report.sanitized, report) == 1.0


def test_rejected_humidity_counts_against_completeness(raw_snapshot):
    for reading in raw_snapshot["data"]["humidity"]["readings"]:
        reading["value"] = 150
    report = validate_snapshot(raw_snapshot)

    assert ConfidenceScorer().data_completeness(report.sanitized, report) == pytest.approx(0.75)


def test_region_without_readings(snapshot):
    data = aggregate(get_region("sentosa").model_copy(update={"priority_stations": ("S201",)}), snapshot)

    assert data.stations_used == []
    assert data.temperature.average is None
    assert data.rainfall.total == 0
    assert data.wind.average_speed is None
    assert data.wind.dominant_direction is None


def test_heat_island_flag(snapshot):
    aggregator = RegionalAggregator()

    # Newton reads 31.8 against an island mean of about 30.5
    assert aggregator.aggregate(get_region("newton"), snapshot).temperature.heat_island_effect
    assert not aggregator.aggregate(get_region("woodlands"), snapshot).temperature.heat_island_effect


@pytest.mark.parametrize(
    "degrees,expected",
    [
        ([], None),
        ([90, 100], "E"),
        ([350, 10], "N"),
        ([225], "SW"),
        ([0, 180], None),
    ],
)
def test_dominant_direction(degrees, expected):
    assert dominant_direction(degrees) == expected
