"""Data models for the regional weather analysis engine."""

from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from regional_weather.weather.regions import MEASUREMENT_TYPES


class Coordinates(BaseModel):
    """Station or reading position."""
    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., description="Latitude in decimal degrees")
    lng: float = Field(..., description="Longitude in decimal degrees")


class Reading(BaseModel):
    """One observation from one station."""
    model_config = ConfigDict(frozen=True)

    station: str = Field(..., description="Station identifier, S + 1-3 digits")
    value: float = Field(..., description="Observed value in the series unit")
    station_name: Optional[str] = Field(None, description="Sanitized display name")
    coordinates: Optional[Coordinates] = Field(None, description="Observation position if reported")


class MeasurementSeries(BaseModel):
    """Readings for one measurement type."""
    model_config = ConfigDict(frozen=True)

    readings: List[Reading] = Field(default_factory=list, description="Accepted readings")


class TemperatureBand(BaseModel):
    """Official forecast temperature band."""
    model_config = ConfigDict(frozen=True)

    low: float = Field(..., description="Forecast low in Celsius")
    high: float = Field(..., description="Forecast high in Celsius")


class GeneralForecast(BaseModel):
    """General section of the official 24-hour forecast."""
    model_config = ConfigDict(frozen=True)

    forecast: Optional[str] = Field(None, description="Sanitized forecast text")
    temperature: Optional[TemperatureBand] = Field(None, description="Forecast temperature band")


class ForecastEntry(BaseModel):
    """Forecast block as nested by the collector under data.forecast."""
    model_config = ConfigDict(frozen=True)

    general: Optional[GeneralForecast] = Field(None, description="General forecast")


class SnapshotData(BaseModel):
    """Measurement series keyed by type, plus the official forecast."""
    model_config = ConfigDict(frozen=True)

    temperature: Optional[MeasurementSeries] = None
    humidity: Optional[MeasurementSeries] = None
    rainfall: Optional[MeasurementSeries] = None
    wind_speed: Optional[MeasurementSeries] = None
    wind_direction: Optional[MeasurementSeries] = None
    forecast: Optional[ForecastEntry] = None

    def series(self, measurement: str) -> Optional[MeasurementSeries]:
        """Return the series for a measurement type, or None if not reported."""
        if measurement not in MEASUREMENT_TYPES:
            raise ValueError(f"Unknown measurement type: {measurement}")
        return getattr(self, measurement)

    def readings(self, measurement: str) -> List[Reading]:
        """Return readings for a measurement type (empty if not reported)."""
        series = self.series(measurement)
        return list(series.readings) if series is not None else []

    def forecast_band(self) -> Optional[TemperatureBand]:
        if self.forecast is None or self.forecast.general is None:
            return None
        return self.forecast.general.temperature


class StationDetails(BaseModel):
    """Whitelisted station metadata."""
    model_config = ConfigDict(frozen=True)

    station_id: str = Field(..., description="Station identifier")
    name: str = Field("", description="Sanitized station name")
    coordinates: Coordinates = Field(..., description="Station position")
    data_types: List[str] = Field(default_factory=list, description="Measurement types reported")
    priority_level: str = Field("medium", description="critical, high, medium or low")
    priority_score: float = Field(0.0, ge=0, le=200, description="Collector priority score")
    reliability_score: Optional[float] = Field(None, ge=0, le=1, description="Collector reliability estimate")


class GeographicCoverage(BaseModel):
    """Collector's coarse coverage summary."""
    model_config = ConfigDict(frozen=True)

    coverage_percentage: Optional[float] = Field(None, ge=0, le=100)
    stations_by_region: Dict[str, List[str]] = Field(default_factory=dict)


class WeatherSnapshot(BaseModel):
    """Validated, sanitized input snapshot."""
    model_config = ConfigDict(frozen=True)

    timestamp: str = Field(..., description="ISO-8601 collection timestamp")
    source: str = Field(..., description="Sanitized source label")
    stations_used: List[str] = Field(default_factory=list, description="Stations contributing to the snapshot")
    data: SnapshotData = Field(default_factory=SnapshotData, description="Measurement series")
    station_details: Dict[str, StationDetails] = Field(default_factory=dict, description="Station metadata")
    geographic_coverage: Optional[GeographicCoverage] = None
    data_quality_score: Optional[float] = Field(None, ge=0, le=100)

    @property
    def observed_at(self) -> datetime:
        """Collection time as an aware UTC datetime."""
        observed = datetime.fromisoformat(self.timestamp.replace("Z", "+00:00"))
        if observed.tzinfo is None:
            observed = observed.replace(tzinfo=timezone.utc)
        return observed.astimezone(timezone.utc)


class SeriesValidation(BaseModel):
    """Reading counts for one series before and after validation."""
    received: int = Field(0, ge=0)
    accepted: int = Field(0, ge=0)


class ValidationReport(BaseModel):
    """Result of integrity validation."""
    is_valid: bool = Field(..., description="False on any fatal condition")
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    sanitized: Optional[WeatherSnapshot] = Field(None, description="Clean snapshot, only when valid")
    security_score: int = Field(100, ge=0, le=100)
    series: Dict[str, SeriesValidation] = Field(default_factory=dict, description="Per-type reading counts")


class MeasurementStats(BaseModel):
    """Descriptive statistics for one measurement type within a region."""
    model_config = ConfigDict(frozen=True)

    readings: List[Reading] = Field(default_factory=list)
    average: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None

    @property
    def count(self) -> int:
        return len(self.readings)


class TemperatureStats(MeasurementStats):
    heat_island_effect: bool = Field(False, description="Regional mean notably above island mean")


class RainfallStats(MeasurementStats):
    total: float = Field(0.0, description="Sum of rainfall readings in mm")
    active_stations: int = Field(0, description="Readings reporting rain")


class WindStats(BaseModel):
    """Wind speed and direction statistics within a region."""
    model_config = ConfigDict(frozen=True)

    readings: List[Reading] = Field(default_factory=list, description="Wind speed readings")
    average_speed: Optional[float] = None
    max_speed: Optional[float] = None
    direction_readings: List[Reading] = Field(default_factory=list)
    dominant_direction: Optional[str] = Field(None, description="8-point compass sector")


class RegionalData(BaseModel):
    """Readings and statistics collected for one region."""
    model_config = ConfigDict(frozen=True)

    region_id: str
    temperature: TemperatureStats = Field(default_factory=TemperatureStats)
    humidity: MeasurementStats = Field(default_factory=MeasurementStats)
    rainfall: RainfallStats = Field(default_factory=RainfallStats)
    wind: WindStats = Field(default_factory=WindStats)
    stations_used: List[str] = Field(default_factory=list)


class FactorScore(BaseModel):
    """One weighted signal in a confidence score."""
    model_config = ConfigDict(frozen=True)

    name: str
    weight: float
    score: float = Field(..., ge=0, le=1, description="Normalized signal")
    contribution: float = Field(..., description="weight * score")


class ConfidenceScore(BaseModel):
    """Bounded confidence value with its factor breakdown."""
    model_config = ConfigDict(frozen=True)

    value: float = Field(..., ge=0.75, le=0.99)
    base: float
    raw_total: float = Field(..., description="Base plus contributions before bonus and clamp")
    bonus_applied: bool = False
    factors: List[FactorScore] = Field(default_factory=list)

    def factor(self, name: str) -> FactorScore:
        for factor in self.factors:
            if factor.name == name:
                return factor
        raise KeyError(name)


class DetailedAnalysis(BaseModel):
    """Five narrative sections."""
    temperature_characteristics: str = ""
    humidity_comfort: str = ""
    activity_recommendations: List[str] = Field(default_factory=list)
    health_safety: str = ""
    future_outlook: str = ""


class NarrativeAnalysis(BaseModel):
    """Narrative for one region, generated or fallback."""
    summary: str
    detailed_analysis: DetailedAnalysis
    recommendations: List[str] = Field(default_factory=list)
    health_advisory: str
    activity_suggestions: List[str] = Field(default_factory=list)
    fallback: bool = Field(..., description="True when produced by the deterministic template")
    model: str = Field(..., description="Generating model, or 'rule-based-fallback'")


class AnalysisResult(BaseModel):
    """Per-region output record."""
    region_id: str
    region_name: str
    region_area: str
    region_characteristics: List[str]
    analysis_focus: List[str]
    regional_data: RegionalData
    confidence: ConfidenceScore
    narrative: NarrativeAnalysis
    fallback: bool
    analysis_timestamp: str


class RegionalConfidence(BaseModel):
    region_id: str
    region: str
    confidence: float
    fallback: bool


class ConfidenceBreakdown(BaseModel):
    overall_confidence: float
    overall_factors: ConfidenceScore
    regional_confidences: List[RegionalConfidence]
    quality_factors: Dict[str, str]


class ValidationSummary(BaseModel):
    security_score: int
    error_count: int
    warning_count: int


class ApiUsageSummary(BaseModel):
    calls_today: int
    daily_limit: int
    limit_reached: bool
    force_analysis: bool


class AnalysisReport(BaseModel):
    """Output snapshot written once per run."""
    timestamp: str
    source: str
    analysis_type: str = "comprehensive_regional_analysis"
    achieved_confidence: str = Field(..., description="Overall confidence as a percentage string")
    overall_summary: str
    regional_analyses: List[AnalysisResult]
    confidence_breakdown: ConfidenceBreakdown
    regions_analyzed: int
    successful_analyses: int
    fallback_analyses: int
    weather_data_timestamp: str
    validation: ValidationSummary
    api_usage: ApiUsageSummary
    analysis_version: str
