"""Regional aggregation of validated readings."""

import logging
import math
from typing import Dict, List, Optional, Tuple

from regional_weather.weather.geo import assign
from regional_weather.weather.models import (
    MeasurementStats, RainfallStats, Reading, RegionalData,
    TemperatureStats, WeatherSnapshot, WindStats
)
from regional_weather.weather.regions import MEASUREMENT_TYPES, Region

logger = logging.getLogger(__name__)

# Regional mean above the island mean by this much counts as a heat island
HEAT_ISLAND_DELTA_C = 0.5

COMPASS_POINTS = ("N", "NE", "E", "SE", "S", "SW", "W", "NW")


def mean(values: List[float]) -> Optional[float]:
    return sum(values) / len(values) if values else None


def describe(values: List[float]) -> Tuple[Optional[float], Optional[float], Optional[float]]:
    """Return (mean, min, max), all None for an empty list."""
    if not values:
        return None, None, None
    return mean(values), min(values), max(values)


def dominant_direction(degrees: List[float]) -> Optional[str]:
    """Compass sector of the circular mean of wind directions."""
    if not degrees:
        return None

    sin_sum = sum(math.sin(math.radians(d)) for d in degrees)
    cos_sum = sum(math.cos(math.radians(d)) for d in degrees)
    if math.isclose(sin_sum, 0.0, abs_tol=1e-9) and math.isclose(cos_sum, 0.0, abs_tol=1e-9):
        # Directions cancel out
        return None

    bearing = math.degrees(math.atan2(sin_sum, cos_sum)) % 360
    return COMPASS_POINTS[int((bearing + 22.5) // 45) % 8]


class RegionalAggregator:
    """Collects readings for a region and computes descriptive statistics."""

    def __init__(self, heat_island_delta: float = HEAT_ISLAND_DELTA_C):
        self.heat_island_delta = heat_island_delta

    def collect(self, region: Region, snapshot: WeatherSnapshot) -> Dict[str, List[Reading]]:
        """Collect matching readings per measurement type."""
        collected = {}
        for measurement in MEASUREMENT_TYPES:
            collected[measurement] = [
                reading
                for reading in snapshot.data.readings(measurement)
                if assign(reading, region) or reading.station in region.priority_stations
            ]
        return collected

    def aggregate(self, region: Region, snapshot: WeatherSnapshot) -> RegionalData:
        """Build RegionalData for one region.

        Args:
            region: Region to aggregate
            snapshot: Validated snapshot

        Returns:
            RegionalData with statistics; averages are None for empty series
        """
        collected = self.collect(region, snapshot)

        stations_used = []
        for measurement in MEASUREMENT_TYPES:
            for reading in collected[measurement]:
                if reading.station not in stations_used:
                    stations_used.append(reading.station)

        temperatures = [r.value for r in collected["temperature"]]
        t_avg, t_min, t_max = describe(temperatures)
        island_mean = mean([r.value for r in snapshot.data.readings("temperature")])
        heat_island = (
            t_avg is not None
            and island_mean is not None
            and t_avg - island_mean >= self.heat_island_delta
        )

        h_avg, h_min, h_max = describe([r.value for r in collected["humidity"]])

        rainfall = [r.value for r in collected["rainfall"]]
        r_avg, r_min, r_max = describe(rainfall)

        speeds = [r.value for r in collected["wind_speed"]]

        regional_data = RegionalData(
            region_id=region.region_id,
            temperature=TemperatureStats(
                readings=collected["temperature"],
                average=t_avg, min=t_min, max=t_max,
                heat_island_effect=heat_island,
            ),
            humidity=MeasurementStats(
                readings=collected["humidity"],
                average=h_avg, min=h_min, max=h_max,
            ),
            rainfall=RainfallStats(
                readings=collected["rainfall"],
                average=r_avg, min=r_min, max=r_max,
                total=sum(rainfall),
                active_stations=sum(1 for value in rainfall if value > 0),
            ),
            wind=WindStats(
                readings=collected["wind_speed"],
                average_speed=mean(speeds),
                max_speed=max(speeds) if speeds else None,
                direction_readings=collected["wind_direction"],
                dominant_direction=dominant_direction([r.value for r in collected["wind_direction"]]),
            ),
            stations_used=stations_used,
        )

        logger.debug(
            f"Aggregated {region.region_id}: {len(stations_used)} stations, "
            f"{len(temperatures)} temperature readings"
        )
        return regional_data


def aggregate(region: Region, snapshot: WeatherSnapshot) -> RegionalData:
    """Aggregate a region with default settings."""
    return RegionalAggregator().aggregate(region, snapshot)
