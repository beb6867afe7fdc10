"""Geospatial assignment of readings and stations to regions."""

import logging
from typing import Iterable, List, Optional, Union

from geopy.distance import great_circle

from regional_weather.weather.models import Coordinates, Reading
from regional_weather.weather.regions import REGIONS, GeoPoint, Region

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0

Point = Union[Coordinates, GeoPoint]


def distance_km(a: Point, b: Point) -> float:
    """Great-circle distance between two points on a 6371 km sphere.

    Args:
        a: First point
        b: Second point

    Returns:
        Distance in kilometres
    """
    return great_circle((a.lat, a.lng), (b.lat, b.lng), radius=EARTH_RADIUS_KM).km


def within_region(coordinates: Point, region: Region) -> bool:
    return distance_km(coordinates, region.center) <= region.radius_km


def assign(reading: Reading, region: Region) -> bool:
    """Decide whether a reading belongs to a region.

    Readings with coordinates are matched by distance to the region center;
    readings without coordinates fall back to the region's priority stations.
    """
    if reading.coordinates is not None:
        return within_region(reading.coordinates, region)
    return reading.station in region.priority_stations


def regions_for_station(
    station_id: str,
    coordinates: Optional[Point] = None,
    regions: Optional[Iterable[Region]] = None
) -> List[Region]:
    """Return every region a station belongs to.

    Regions overlap, so a station may match several of them. A station
    matches when it is a priority station or lies within the radius.
    """
    matches = []
    for region in (regions if regions is not None else REGIONS.values()):
        if station_id in region.priority_stations:
            matches.append(region)
        elif coordinates is not None and within_region(coordinates, region):
            matches.append(region)
    return matches
