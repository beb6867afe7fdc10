import copy
import json
from datetime import datetime, timezone

import pytest
from fastapi_cache import FastAPICache
from fastapi_cache.backends.inmemory import InMemoryBackend

from regional_weather.weather.validator import validate_snapshot

SNAPSHOT_TIMESTAMP = "2026-10-18T08:00:00+08:00"

STATIONS = {
    "S24": ("Changi", 1.3678, 103.9826),
    "S33": ("Tampines", 1.3500, 103.9500),
    "S43": ("Marina Bay", 1.2850, 103.8600),
    "S104": ("Newton", 1.3140, 103.8430),
    "S116": ("Bukit Timah", 1.3440, 103.7650),
    "S44": ("Jurong", 1.3250, 103.7070),
    "S50": ("Woodlands", 1.4380, 103.7880),
}

READINGS = {
    "temperature": {"S24": 30.2, "S33": 30.6, "S43": 31.4, "S104": 31.8, "S116": 29.9, "S44": 30.4, "S50": 29.5},
    "humidity": {"S24": 84, "S33": 80, "S43": 76, "S104": 72, "S116": 78, "S44": 74, "S50": 81},
    "rainfall": {"S24": 0.0, "S33": 2.4, "S43": 0.0, "S104": 0.0, "S116": 0.6, "S44": 0.0, "S50": 0.0},
    "wind_speed": {"S24": 4.1, "S43": 3.2, "S104": 2.0, "S44": 2.8},
    "wind_direction": {"S24": 90, "S43": 100, "S104": 80},
}

BASE_SNAPSHOT = {
    "timestamp": SNAPSHOT_TIMESTAMP,
    "source": "NEA Singapore",
    "stations_used": list(STATIONS),
    "data": {
        measurement: {
            "readings": [{"station": station, "value": value} for station, value in values.items()]
        }
        for measurement, values in READINGS.items()
    },
    "station_details": {
        station: {
            "name": name,
            "coordinates": {"lat": lat, "lng": lng},
            "data_types": ["temperature", "humidity"],
            "priority_level": "high",
            "priority_score": 120,
            "reliability_score": 0.95,
        }
        for station, (name, lat, lng) in STATIONS.items()
    },
}
BASE_SNAPSHOT["data"]["forecast"] = {
    "general": {"forecast": "Partly Cloudy", "temperature": {"low": 25, "high": 33}}
}

GENERATED_TEXT = """Here is the analysis.

🌡️ Temperature characteristics
The area is warm at around 30°C, typical for a coastal part of Singapore.
💧 Humidity and comfort
Humidity above 80% makes it feel hotter than the measured temperature.
🏃 Recommended activities
- Morning walks along the waterfront before 9am
- Indoor visits during the hottest hours
- Evening cycling once the sea breeze picks up
⚠️ Health and safety
Stay hydrated and avoid prolonged sun exposure around midday, especially for the elderly.
🎯 Outlook
Afternoon showers are possible; carry an umbrella when heading out.
"""


@pytest.fixture(scope="session", autouse=True)
def in_memory_cache():
    FastAPICache.init(InMemoryBackend(), prefix="test")


@pytest.fixture
def raw_snapshot():
    """A fresh, valid raw snapshot that tests may mutate."""
    return copy.deepcopy(BASE_SNAPSHOT)


@pytest.fixture
def snapshot(raw_snapshot):
    report = validate_snapshot(raw_snapshot)
    assert report.is_valid
    return report.sanitized


@pytest.fixture
def now():
    """Ten minutes after the snapshot was collected."""
    return datetime(2026, 10, 18, 0, 10, tzinfo=timezone.utc)


@pytest.fixture
def snapshot_file(tmp_path, raw_snapshot):
    path = tmp_path / "latest.json"
    path.write_text(json.dumps(raw_snapshot), encoding="utf-8")
    return path


@pytest.fixture
def generated_text():
    return GENERATED_TEXT
