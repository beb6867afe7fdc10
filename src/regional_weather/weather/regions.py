"""Static registry of Singapore analysis regions and data limits."""

import re
from typing import Dict, Final, List, Tuple

from pydantic import BaseModel, ConfigDict, Field


class UnknownRegionError(KeyError):
    """Raised when a region identifier is not in the registry."""
    pass


class GeoPoint(BaseModel):
    """Geographic point in decimal degrees."""
    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., description="Latitude in decimal degrees")
    lng: float = Field(..., description="Longitude in decimal degrees")


class Region(BaseModel):
    """Named, fixed analysis zone."""
    model_config = ConfigDict(frozen=True)

    region_id: str = Field(..., description="Registry key, e.g. 'marina-bay'")
    name: str = Field(..., description="Display name")
    area: str = Field(..., description="Descriptive area label")
    center: GeoPoint = Field(..., description="Region center")
    radius_km: float = Field(3.0, gt=0, description="Membership radius around the center")
    priority_stations: Tuple[str, ...] = Field(..., description="Stations pre-assigned to this region")
    characteristics: Tuple[str, ...] = Field(..., description="Characteristic tags, narrative flavor only")
    analysis_focus: Tuple[str, ...] = Field(..., description="Topics the narrative should emphasise")


# Singapore bounding box
SINGAPORE_BOUNDS: Final[Dict[str, Dict[str, float]]] = {
    "lat": {"min": 1.16, "max": 1.48},
    "lng": {"min": 103.6, "max": 104.0},
}

# NEA station identifier format
STATION_ID_PATTERN: Final[re.Pattern] = re.compile(r"^S\d{1,3}$")

MEASUREMENT_TYPES: Final[Tuple[str, ...]] = (
    "temperature",
    "humidity",
    "rainfall",
    "wind_speed",
    "wind_direction",
)

# Physically plausible ranges per measurement type
DATA_LIMITS: Final[Dict[str, Tuple[float, float]]] = {
    "temperature": (15.0, 45.0),     # Celsius
    "humidity": (0.0, 100.0),        # Percent
    "rainfall": (0.0, 200.0),        # mm/h
    "wind_speed": (0.0, 50.0),       # m/s
    "wind_direction": (0.0, 360.0),  # degrees
}

PRIORITY_LEVELS: Final[Tuple[str, ...]] = ("critical", "high", "medium", "low")

# Collector's coarse coverage buckets
COVERAGE_REGIONS: Final[Tuple[str, ...]] = ("north", "south", "east", "west", "central")


def _region(region_id: str, name: str, area: str, lat: float, lng: float,
            stations: List[str], characteristics: List[str], focus: List[str]) -> Region:
    return Region(
        region_id=region_id,
        name=name,
        area=area,
        center=GeoPoint(lat=lat, lng=lng),
        priority_stations=tuple(stations),
        characteristics=tuple(characteristics),
        analysis_focus=tuple(focus),
    )


REGIONS: Final[Dict[str, Region]] = {
    region.region_id: region
    for region in (
        _region(
            "hwa-chong", "Hwa Chong International", "Bukit Timah Road 663", 1.3437, 103.7640,
            ["S116", "S121"],
            ["education hub", "urban heat island", "traffic congestion"],
            ["temperature_extremes", "air_quality", "commuter_conditions"],
        ),
        _region(
            "newton", "Newton MRT", "Central Singapore", 1.3138, 103.8420,
            ["S104", "S107"],
            ["urban core", "high-density buildings", "commercial district"],
            ["urban_heat", "pedestrian_comfort", "office_conditions"],
        ),
        _region(
            "changi", "Changi Airport", "East Singapore", 1.3644, 103.9915,
            ["S24", "S33"],
            ["airport hub", "coastal", "international transit"],
            ["flight_conditions", "coastal_weather", "visibility"],
        ),
        _region(
            "jurong", "Jurong Industrial", "West Singapore", 1.3249, 103.7065,
            ["S44", "S45"],
            ["industrial estate", "western gateway", "manufacturing"],
            ["industrial_safety", "air_quality", "worker_conditions"],
        ),
        _region(
            "woodlands", "Woodlands Checkpoint", "North Singapore", 1.4382, 103.7890,
            ["S50", "S106"],
            ["border crossing", "northern new town", "dense housing"],
            ["border_conditions", "residential_comfort", "commuter_weather"],
        ),
        _region(
            "marina-bay", "Marina Bay", "Downtown Core", 1.2838, 103.8607,
            ["S43", "S60"],
            ["financial district", "high-rise towers", "coastal"],
            ["urban_canyon", "sea_breeze", "tourist_conditions"],
        ),
        _region(
            "sentosa", "Sentosa Island", "Resort Island", 1.2494, 103.8303,
            ["S24", "S43"],
            ["resort island", "coastal", "leisure facilities"],
            ["beach_conditions", "tourist_comfort", "outdoor_activities"],
        ),
        _region(
            "tampines", "Tampines Hub", "East Singapore", 1.3496, 103.9568,
            ["S109", "S33"],
            ["new town", "residential estates", "shopping hub"],
            ["residential_weather", "shopping_conditions", "family_activities"],
        ),
    )
}


def get_region(region_id: str) -> Region:
    """Look up a region by identifier.

    Raises:
        UnknownRegionError: If the identifier is not registered
    """
    try:
        return REGIONS[region_id]
    except KeyError:
        raise UnknownRegionError(f"Unknown region: {region_id}")


def within_singapore(lat: float, lng: float) -> bool:
    """Check whether a coordinate falls inside the Singapore bounding box."""
    return (
        SINGAPORE_BOUNDS["lat"]["min"] <= lat <= SINGAPORE_BOUNDS["lat"]["max"]
        and SINGAPORE_BOUNDS["lng"]["min"] <= lng <= SINGAPORE_BOUNDS["lng"]["max"]
    )


def is_valid_station_id(station_id) -> bool:
    return isinstance(station_id, str) and STATION_ID_PATTERN.fullmatch(station_id) is not None
