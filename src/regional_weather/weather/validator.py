"""Integrity validation and sanitization of raw weather snapshots.

Everything that crosses into the engine passes through ``validate_snapshot``:
structure and freshness are checked, stations and readings are filtered
against the registry's bounds and physical limits, and a clean
``WeatherSnapshot`` is rebuilt from whitelisted fields only.

A single bad reading never invalidates a batch. Readings are dropped with a
warning; only structural problems, an unusable timestamp or the absence of any
valid station reject the snapshot.
"""

import logging
import math
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from regional_weather.weather.models import (
    Coordinates, ForecastEntry, GeneralForecast, GeographicCoverage,
    MeasurementSeries, Reading, SeriesValidation, SnapshotData,
    StationDetails, TemperatureBand, ValidationReport, WeatherSnapshot
)
from regional_weather.weather.regions import (
    COVERAGE_REGIONS, DATA_LIMITS, MEASUREMENT_TYPES, PRIORITY_LEVELS,
    is_valid_station_id, within_singapore
)

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("timestamp", "source", "stations_used", "data", "station_details")
MIN_TIMESTAMP_YEAR = 2020
MAX_TEXT_LENGTH = 200
LOW_STATION_COUNT = 10
ERROR_PENALTY = 20
WARNING_PENALTY = 5

_UNSAFE_CHARS = re.compile(r"[<>\"'&]")


def sanitize_text(value: Any) -> str:
    """Strip markup-significant characters and bound the length."""
    if not isinstance(value, str):
        return ""
    return _UNSAFE_CHARS.sub("", value)[:MAX_TEXT_LENGTH].strip()


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, returning None if unusable."""
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def security_score(error_count: int, warning_count: int) -> int:
    return max(0, 100 - ERROR_PENALTY * error_count - WARNING_PENALTY * warning_count)


def _is_number(value: Any) -> bool:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # Integers beyond float range
        return False


def _clamp(value: Any, low: float, high: float, default: float) -> float:
    if not _is_number(value):
        return default
    return float(max(low, min(high, value)))


class SnapshotValidator:
    """Validates one raw snapshot and accumulates errors and warnings."""

    def __init__(self):
        self.errors: List[str] = []
        self.warnings: List[str] = []
        self.series: Dict[str, SeriesValidation] = {}

    def validate(self, raw: Any) -> ValidationReport:
        """Validate and sanitize a raw snapshot.

        Args:
            raw: Decoded JSON document

        Returns:
            ValidationReport with a sanitized snapshot when valid
        """
        is_valid = self._check_structure(raw)
        sanitized = None

        if is_valid:
            stations = self._validate_station_details(raw["station_details"])
            if not stations:
                self.errors.append("No valid stations found in station_details")
                is_valid = False
            else:
                data = self._validate_data(raw["data"])
                sanitized = self._build_snapshot(raw, stations, data)
                if sanitized is None:
                    is_valid = False

        report = ValidationReport(
            is_valid=is_valid,
            errors=self.errors,
            warnings=self.warnings,
            sanitized=sanitized if is_valid else None,
            security_score=security_score(len(self.errors), len(self.warnings)),
            series=self.series,
        )

        logger.info(
            f"Snapshot validation completed: valid={report.is_valid}, "
            f"errors={len(report.errors)}, warnings={len(report.warnings)}, "
            f"security_score={report.security_score}"
        )
        return report

    def _check_structure(self, raw: Any) -> bool:
        if not isinstance(raw, dict):
            self.errors.append("Invalid data structure: expected object")
            return False

        missing = [field for field in REQUIRED_FIELDS if raw.get(field) is None or raw.get(field) == ""]
        if missing:
            self.errors.append(f"Missing required fields: {', '.join(missing)}")
            return False

        timestamp = parse_timestamp(raw["timestamp"])
        if timestamp is None or timestamp.year <= MIN_TIMESTAMP_YEAR:
            self.errors.append("Invalid timestamp format")
            return False

        if not isinstance(raw["source"], str) or not sanitize_text(raw["source"]):
            self.errors.append("Invalid source field")
            return False

        if not isinstance(raw["stations_used"], list):
            self.errors.append("stations_used must be an array")
            return False

        if not isinstance(raw["data"], dict):
            self.errors.append("Invalid weather data structure")
            return False

        if not isinstance(raw["station_details"], dict):
            self.errors.append("Invalid station_details structure")
            return False

        return True

    def _validate_station_details(self, station_details: Dict[str, Any]) -> Dict[str, StationDetails]:
        stations = {}
        for station_id, details in station_details.items():
            if not is_valid_station_id(station_id):
                self.errors.append(f"Invalid station ID format: {sanitize_text(station_id)}")
                continue

            station = self._validate_station(station_id, details)
            if station is not None:
                stations[station_id] = station

        if stations and len(stations) < LOW_STATION_COUNT:
            self.warnings.append(f"Low station count: {len(stations)}")

        return stations

    def _validate_station(self, station_id: str, details: Any) -> Optional[StationDetails]:
        if not isinstance(details, dict):
            self.errors.append(f"Invalid details for station {station_id}")
            return None

        coordinates = self._coordinates(details.get("coordinates"), station_id, hard=True)
        if coordinates is None:
            return None

        data_types = details.get("data_types", [])
        if not isinstance(data_types, list):
            self.warnings.append(f"Invalid data_types format for station {station_id}")
            data_types = []
        unknown_types = [t for t in data_types if t not in MEASUREMENT_TYPES]
        if unknown_types:
            self.warnings.append(f"Unknown data types for station {station_id}: {len(unknown_types)}")

        priority_level = details.get("priority_level")
        if priority_level is not None and priority_level not in PRIORITY_LEVELS:
            self.warnings.append(f"Invalid priority level for station {station_id}")
            priority_level = None

        reliability = details.get("reliability_score")
        if reliability is not None and (not _is_number(reliability) or not 0 <= reliability <= 1):
            self.warnings.append(f"Invalid reliability score for station {station_id}")

        return StationDetails(
            station_id=station_id,
            name=sanitize_text(details.get("name", "")),
            coordinates=coordinates,
            data_types=[t for t in data_types if t in MEASUREMENT_TYPES],
            priority_level=priority_level or "medium",
            priority_score=_clamp(details.get("priority_score"), 0, 200, 0.0),
            reliability_score=(
                _clamp(reliability, 0, 1, 0.0) if reliability is not None else None
            ),
        )

    def _coordinates(self, value: Any, owner: str, hard: bool) -> Optional[Coordinates]:
        """Check a coordinate object; failures are errors when ``hard``, else warnings."""
        problems = self.errors if hard else self.warnings

        if not isinstance(value, dict):
            problems.append(f"Invalid coordinates structure for {owner}")
            return None

        lat, lng = value.get("lat"), value.get("lng")
        if not _is_number(lat) or not _is_number(lng):
            problems.append(f"Non-numeric coordinates for {owner}")
            return None

        if not within_singapore(lat, lng):
            problems.append(f"Coordinates outside Singapore bounds for {owner}")
            return None

        return Coordinates(lat=float(lat), lng=float(lng))

    def _validate_data(self, data: Dict[str, Any]) -> SnapshotData:
        series = {}
        for measurement, type_data in data.items():
            if measurement == "forecast":
                series["forecast"] = self._forecast(type_data)
                continue

            if measurement not in MEASUREMENT_TYPES:
                self.warnings.append(f"Unknown data type: {sanitize_text(measurement)}")
                continue

            if not isinstance(type_data, dict) or not isinstance(type_data.get("readings"), list):
                self.errors.append(f"Invalid readings array for {measurement}")
                continue

            raw_readings = type_data["readings"]
            readings = [
                reading
                for reading in (self._reading(measurement, raw) for raw in raw_readings)
                if reading is not None
            ]

            self.series[measurement] = SeriesValidation(received=len(raw_readings), accepted=len(readings))
            if raw_readings and not readings:
                self.errors.append(f"No valid readings found for {measurement}")

            series[measurement] = MeasurementSeries(readings=readings)

        if not any(self.series.get(m) and self.series[m].accepted for m in MEASUREMENT_TYPES):
            self.warnings.append("No valid measurement readings in snapshot")

        return SnapshotData(**series)

    def _reading(self, measurement: str, raw: Any) -> Optional[Reading]:
        if not isinstance(raw, dict):
            self.warnings.append(f"Invalid reading structure for {measurement}")
            return None

        station = raw.get("station")
        value = raw.get("value")
        if not station or not _is_number(value):
            self.warnings.append(f"Invalid reading for {measurement}: missing station or value")
            return None

        if not is_valid_station_id(station):
            self.warnings.append(f"Invalid station ID in {measurement} reading")
            return None

        low, high = DATA_LIMITS[measurement]
        if not low <= value <= high:
            self.warnings.append(f"Value out of range for {measurement} at {station}")
            return None

        coordinates = None
        if raw.get("coordinates") is not None:
            coordinates = self._coordinates(raw["coordinates"], station, hard=False)
            if coordinates is None:
                return None

        station_name = raw.get("station_name")
        return Reading(
            station=station,
            value=float(value),
            station_name=sanitize_text(station_name) if station_name is not None else None,
            coordinates=coordinates,
        )

    def _forecast(self, value: Any) -> Optional[ForecastEntry]:
        general = value.get("general") if isinstance(value, dict) else None
        if not isinstance(general, dict):
            self.warnings.append("Invalid forecast structure")
            return None

        band = None
        temperature = general.get("temperature")
        if isinstance(temperature, dict):
            low, high = temperature.get("low"), temperature.get("high")
            if _is_number(low) and _is_number(high) and low <= high:
                band = TemperatureBand(low=float(low), high=float(high))
            else:
                self.warnings.append("Invalid forecast temperature band")

        text = general.get("forecast")
        return ForecastEntry(general=GeneralForecast(
            forecast=sanitize_text(text) if text is not None else None,
            temperature=band,
        ))

    def _stations_used(self, stations_used: List[Any]) -> List[str]:
        valid = []
        for station in stations_used:
            if not is_valid_station_id(station):
                self.warnings.append("Invalid station ID in stations_used")
                continue
            if station not in valid:
                valid.append(station)
        return valid

    def _coverage(self, coverage: Any) -> Optional[GeographicCoverage]:
        if coverage is None:
            return None
        if not isinstance(coverage, dict):
            self.warnings.append("Invalid geographic coverage structure")
            return None

        raw_regions = coverage.get("stations_by_region") or {}
        if not isinstance(raw_regions, dict):
            self.warnings.append("Invalid stations_by_region structure")
            raw_regions = {}

        by_region = {}
        for region, stations in raw_regions.items():
            if region not in COVERAGE_REGIONS:
                self.warnings.append(f"Invalid coverage region: {sanitize_text(region)}")
                continue
            if not isinstance(stations, list):
                self.warnings.append(f"Invalid stations array for coverage region {region}")
                continue
            by_region[region] = [s for s in stations if is_valid_station_id(s)]

        percentage = coverage.get("coverage_percentage")
        return GeographicCoverage(
            coverage_percentage=_clamp(percentage, 0, 100, 0.0) if percentage is not None else None,
            stations_by_region=by_region,
        )

    def _build_snapshot(self, raw: Dict[str, Any], stations: Dict[str, StationDetails],
                        data: SnapshotData) -> Optional[WeatherSnapshot]:
        quality = raw.get("data_quality_score")
        try:
            return WeatherSnapshot(
                timestamp=raw["timestamp"],
                source=sanitize_text(raw["source"]),
                stations_used=self._stations_used(raw["stations_used"]),
                data=data,
                station_details=stations,
                geographic_coverage=self._coverage(raw.get("geographic_coverage")),
                data_quality_score=_clamp(quality, 0, 100, 0.0) if quality is not None else None,
            )
        except ValidationError as e:
            logger.error(f"Sanitized snapshot failed model validation: {e.error_count()} errors")
            self.errors.append("Sanitized snapshot failed model validation")
            return None


def validate_snapshot(raw: Any) -> ValidationReport:
    """Validate and sanitize a raw weather snapshot."""
    return SnapshotValidator().validate(raw)
