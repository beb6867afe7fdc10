import pytest

from regional_weather.weather.validator import sanitize_text, security_score, validate_snapshot


def test_valid_snapshot_is_accepted(raw_snapshot):
    report = validate_snapshot(raw_snapshot)

    assert report.is_valid
    assert report.errors == []
    assert report.sanitized is not None
    assert set(report.sanitized.station_details) == set(raw_snapshot["station_details"])
    assert len(report.sanitized.data.readings("temperature")) == 7
    # Seven stations is below the low-count threshold
    assert any("Low station count" in w for w in report.warnings)
    assert report.security_score == security_score(0, len(report.warnings))


@pytest.mark.parametrize(
    "measurement,value,accepted",
    [
        ("temperature", 15, True),
        ("temperature", 45, True),
        ("temperature", 14.9, False),
        ("temperature", 45.1, False),
        ("humidity", 0, True),
        ("humidity", 100, True),
        ("humidity", 100.5, False),
        ("rainfall", 0, True),
        ("rainfall", 200, True),
        ("rainfall", -0.1, False),
        ("rainfall", 200.1, False),
        ("wind_speed", 50, True),
        ("wind_speed", -1, False),
        ("wind_direction", 360, True),
        ("wind_direction", 361, False),
    ],
)
def test_reading_range_acceptance(raw_snapshot, measurement, value, accepted):
    raw_snapshot["data"] = {measurement: {"readings": [{"station": "S24", "value": value}]}}

    report = validate_snapshot(raw_snapshot)

    assert report.is_valid
    assert report.series[measurement].received == 1
    assert report.series[measurement].accepted == (1 if accepted else 0)
    assert len(report.sanitized.data.readings(measurement)) == (1 if accepted else 0)


def test_out_of_range_reading_is_dropped_with_warning(raw_snapshot):
    raw_snapshot["data"]["temperature"]["readings"].append({"station": "S999", "value": 999})

    report = validate_snapshot(raw_snapshot)

    assert report.is_valid
    stations = [r.station for r in report.sanitized.data.readings("temperature")]
    assert "S999" not in stations
    assert len(stations) == 7
    assert "Value out of range for temperature at S999" in report.warnings


def test_malformed_readings_are_dropped(raw_snapshot):
    readings = raw_snapshot["data"]["humidity"]["readings"]
    readings.append({"station": "X1", "value": 70})
    readings.append({"station": "S24", "value": "wet"})
    readings.append({"station": "S24", "value": True})
    readings.append("not a reading")

    report = validate_snapshot(raw_snapshot)

    assert report.is_valid
    assert report.series["humidity"].received == 11
    assert report.series["humidity"].accepted == 7


def test_oversized_integers_are_rejected_not_raised(raw_snapshot):
    raw_snapshot["data"]["temperature"]["readings"].append({"station": "S24", "value": 10 ** 400})
    raw_snapshot["station_details"]["S50"]["coordinates"] = {"lat": 10 ** 400, "lng": 103.8}

    report = validate_snapshot(raw_snapshot)

    assert report.is_valid
    assert report.series["temperature"].accepted == 7
    assert "Invalid reading for temperature: missing station or value" in report.warnings
    assert "Non-numeric coordinates for S50" in report.errors
    assert "S50" not in report.sanitized.station_details


@pytest.mark.parametrize(
    "mutate",
    [
        lambda raw: raw.pop("timestamp"),
        lambda raw: raw.pop("station_details"),
        lambda raw: raw.update(timestamp="2019-06-01T00:00:00Z"),
        lambda raw: raw.update(timestamp="yesterday"),
        lambda raw: raw.update(data=[]),
        lambda raw: raw.update(stations_used="S24"),
    ],
)
def test_structural_problems_are_fatal(raw_snapshot, mutate):
    mutate(raw_snapshot)

    report = validate_snapshot(raw_snapshot)

    assert not report.is_valid
    assert report.sanitized is None
    assert report.errors


def test_non_object_is_rejected():
    report = validate_snapshot(["not", "an", "object"])

    assert not report.is_valid
    assert report.errors == ["Invalid data structure: expected object"]


def test_no_valid_station_is_fatal(raw_snapshot):
    for details in raw_snapshot["station_details"].values():
        details["coordinates"] = {"lat": 40.7, "lng": -74.0}

    report = validate_snapshot(raw_snapshot)

    assert not report.is_valid
    assert "No valid stations found in station_details" in report.errors


def test_station_problems(raw_snapshot):
    details = raw_snapshot["station_details"]
    details["BAD1"] = dict(details["S24"])
    details["S24"]["priority_level"] = "urgent"
    details["S33"]["reliability_score"] = 1.5

    report = validate_snapshot(raw_snapshot)

    assert report.is_valid
    assert "BAD1" not in report.sanitized.station_details
    assert any("Invalid station ID format" in e for e in report.errors)
    assert "Invalid priority level for station S24" in report.warnings
    assert "Invalid reliability score for station S33" in report.warnings
    assert report.sanitized.station_details["S24"].priority_level == "medium"


def test_free_text_is_sanitized(raw_snapshot):
    raw_snapshot["source"] = "<script>alert('x')</script> & NEA"
    raw_snapshot["station_details"]["S24"]["name"] = '"Changi" <b>' + "x" * 300

    report = validate_snapshot(raw_snapshot)
    source = report.sanitized.source
    name = report.sanitized.station_details["S24"].name

    for text in (source, name):
        assert not set("<>\"'&") & set(text)
    assert len(name) <= 200


def test_forecast_is_parsed(snapshot):
    band = snapshot.data.forecast_band()

    assert band.low == 25
    assert band.high == 33
    assert snapshot.data.forecast.general.forecast == "Partly Cloudy"


def test_unknown_measurement_type_is_a_warning(raw_snapshot):
    raw_snapshot["data"]["pollen"] = {"readings": []}

    report = validate_snapshot(raw_snapshot)

    assert report.is_valid
    assert "Unknown data type: pollen" in report.warnings


def test_sanitize_text_is_idempotent():
    for text in ["<b>Hello & 'world'</b>", "plain", "x" * 500, "  padded  "]:
        once = sanitize_text(text)
        assert sanitize_text(once) == once


def test_sanitized_snapshot_revalidates_unchanged(raw_snapshot):
    first = validate_snapshot(raw_snapshot).sanitized
    second = validate_snapshot(first.model_dump(mode="json", exclude_none=True)).sanitized

    assert second.model_dump_json() == first.model_dump_json()


def test_security_score():
    assert security_score(0, 0) == 100
    assert security_score(2, 3) == 45
    assert security_score(10, 0) == 0
