"""Multi-factor confidence scoring for snapshots and regions.

The overall score starts from a base of 0.85 and adds nine weighted quality
signals, each normalized to [0, 1]. Region scores use a reduced factor set on
a base of 0.80. Both are clamped to [0.75, 0.99]; a perfect score is not
reachable from live sensor data.

Scoring is a pure function of its inputs. The only time dependency is the
snapshot age, which is measured against an explicit ``now``.
"""

import logging
import statistics
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from regional_weather.weather.geo import regions_for_station
from regional_weather.weather.models import (
    AnalysisResult, ConfidenceScore, FactorScore, NarrativeAnalysis,
    RegionalData, ValidationReport, WeatherSnapshot
)
from regional_weather.weather.regions import REGIONS, Region

logger = logging.getLogger(__name__)

REQUIRED_MEASUREMENTS = ("temperature", "humidity", "rainfall", "wind_speed")

OVERALL_WEIGHTS: Dict[str, float] = {
    "data_completeness": 0.15,
    "station_coverage": 0.12,
    "temporal_consistency": 0.10,
    "spatial_coherence": 0.08,
    "validation_checks": 0.15,
    "expert_rules": 0.10,
    "cross_validation": 0.12,
    "regional_context": 0.08,
    "weather_patterns": 0.10,
}

REGIONAL_WEIGHTS: Dict[str, float] = {
    "data_quality": 0.15,
    "analysis_completeness": 0.10,
    "region_relevance": 0.05,
}

COASTAL_TAGS = ("coastal",)
URBAN_TAGS = ("urban core", "urban heat island")


@dataclass(frozen=True)
class ScoringConstants:
    """Empirical thresholds used by the scorer.

    Changing any of these changes historical scores, so they are kept as
    named values rather than derived.
    """
    overall_base: float = 0.85
    regional_base: float = 0.80
    floor: float = 0.75
    ceiling: float = 0.99
    bonus_threshold: float = 0.95
    bonus: float = 0.02
    expected_stations: int = 40
    coverage_station_share: float = 0.7
    freshness_minutes: tuple = ((30, 1.0), (60, 0.9), (120, 0.7))
    stale_score: float = 0.5
    coherence_stddev_c: float = 5.0
    coherence_min_readings: int = 5
    cross_validation_range_c: float = 8.0
    cross_validation_min_regions: int = 3
    min_signal: float = 0.3
    forecast_band_bonus: float = 0.2
    forecast_near_bonus: float = 0.1
    forecast_near_c: float = 2.0
    pattern_base: float = 0.7
    coastal_humidity: float = 80.0
    overall_weights: Dict[str, float] = field(default_factory=lambda: dict(OVERALL_WEIGHTS))
    regional_weights: Dict[str, float] = field(default_factory=lambda: dict(REGIONAL_WEIGHTS))


DEFAULT_CONSTANTS = ScoringConstants()


def _bounded(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def _mean(values: List[float]) -> Optional[float]:
    return sum(values) / len(values) if values else None


def quality_label(score: float) -> str:
    if score >= 0.9:
        return "Excellent"
    if score >= 0.75:
        return "Good"
    if score >= 0.5:
        return "Fair"
    return "Poor"


class ConfidenceScorer:
    """Computes overall and regional confidence scores."""

    def __init__(self, constants: ScoringConstants = DEFAULT_CONSTANTS,
                 regions: Optional[Dict[str, Region]] = None):
        self.constants = constants
        self.regions = regions if regions is not None else REGIONS

    def score(
        self,
        snapshot: WeatherSnapshot,
        analyses: Sequence[AnalysisResult],
        report: Optional[ValidationReport] = None,
        now: Optional[datetime] = None
    ) -> ConfidenceScore:
        """Score the whole dataset.

        Args:
            snapshot: Validated snapshot
            analyses: Per-region results from this run
            report: Validation report for the snapshot, if available
            now: Reference time for freshness (defaults to current UTC time)

        Returns:
            ConfidenceScore in [0.75, 0.99] with all nine factors
        """
        now = now or datetime.now(timezone.utc)
        scores = {
            "data_completeness": self.data_completeness(snapshot, report),
            "station_coverage": self.station_coverage(snapshot),
            "temporal_consistency": self.temporal_consistency(snapshot, now),
            "spatial_coherence": self.spatial_coherence(snapshot),
            "validation_checks": self.validation_checks(snapshot, report),
            "expert_rules": self.expert_rules(snapshot),
            "cross_validation": self.cross_validation(analyses),
            "regional_context": self.regional_context(analyses),
            "weather_patterns": self.weather_patterns(snapshot),
        }
        result = self._combine(self.constants.overall_base, self.constants.overall_weights, scores, bonus=True)

        logger.info(f"Overall confidence {result.value:.3f} (raw {result.raw_total:.3f})")
        return result

    def score_region(self, region: Region, regional_data: RegionalData,
                     narrative: NarrativeAnalysis) -> ConfidenceScore:
        """Score one region from its data depth and narrative quality."""
        scores = {
            "data_quality": self.regional_data_quality(regional_data),
            "analysis_completeness": self.analysis_completeness(narrative),
            "region_relevance": self.region_relevance(region, narrative),
        }
        return self._combine(self.constants.regional_base, self.constants.regional_weights, scores, bonus=False)

    def fixed(self, value: float) -> ConfidenceScore:
        """A score with no factors, used for failed regions."""
        value = _bounded(value, self.constants.floor, self.constants.ceiling)
        return ConfidenceScore(value=value, base=value, raw_total=value)

    def _combine(self, base: float, weights: Dict[str, float], scores: Dict[str, float],
                 bonus: bool) -> ConfidenceScore:
        factors = []
        total = base
        for name, weight in weights.items():
            score = _bounded(scores[name])
            contribution = weight * score
            total += contribution
            factors.append(FactorScore(name=name, weight=weight, score=score, contribution=contribution))

        value = total
        bonus_applied = bonus and total >= self.constants.bonus_threshold
        if bonus_applied:
            value = min(self.constants.ceiling, value + self.constants.bonus)

        return ConfidenceScore(
            value=_bounded(value, self.constants.floor, self.constants.ceiling),
            base=base,
            raw_total=total,
            bonus_applied=bonus_applied,
            factors=factors,
        )

    # Overall factors

    def data_completeness(self, snapshot: WeatherSnapshot,
                          report: Optional[ValidationReport] = None) -> float:
        """Share of reported required measurements that kept at least one reading.

        Measurements reported with no readings at all are left out of the
        denominator.
        """
        reported, complete = 0, 0
        for measurement in REQUIRED_MEASUREMENTS:
            if report is not None and measurement in report.series:
                received = report.series[measurement].received
                accepted = report.series[measurement].accepted
            else:
                received = accepted = len(snapshot.data.readings(measurement))

            if received == 0:
                continue
            reported += 1
            if accepted > 0:
                complete += 1

        return complete / reported if reported else 0.0

    def station_coverage(self, snapshot: WeatherSnapshot) -> float:
        c = self.constants
        coverage = min(1.0, len(snapshot.stations_used) / c.expected_stations)

        covered = set()
        for station_id in snapshot.stations_used:
            details = snapshot.station_details.get(station_id)
            coordinates = details.coordinates if details is not None else None
            for region in regions_for_station(station_id, coordinates, self.regions.values()):
                covered.add(region.region_id)

        region_coverage = len(covered) / len(self.regions) if self.regions else 0.0
        return coverage * c.coverage_station_share + region_coverage * (1 - c.coverage_station_share)

    def temporal_consistency(self, snapshot: WeatherSnapshot, now: datetime) -> float:
        age_minutes = (now - snapshot.observed_at).total_seconds() / 60
        for limit, score in self.constants.freshness_minutes:
            if age_minutes <= limit:
                return score
        return self.constants.stale_score

    def spatial_coherence(self, snapshot: WeatherSnapshot) -> float:
        c = self.constants
        temperatures = [r.value for r in snapshot.data.readings("temperature")]
        if len(temperatures) < c.coherence_min_readings:
            return 0.5

        stddev = statistics.pstdev(temperatures)
        return max(c.min_signal, min(1.0, (c.coherence_stddev_c - stddev) / c.coherence_stddev_c))

    def validation_checks(self, snapshot: WeatherSnapshot,
                          report: Optional[ValidationReport] = None) -> float:
        """Mean share of readings within physical bounds per reported measurement."""
        fractions = []
        if report is not None:
            for counts in report.series.values():
                if counts.received > 0:
                    fractions.append(counts.accepted / counts.received)
        else:
            for measurement in REQUIRED_MEASUREMENTS:
                if snapshot.data.readings(measurement):
                    fractions.append(1.0)

        return _mean(fractions) if fractions else 0.5

    def expert_rules(self, snapshot: WeatherSnapshot) -> float:
        """Agreement between temperature, humidity and rainfall."""
        avg_temp = _mean([r.value for r in snapshot.data.readings("temperature")])
        avg_humidity = _mean([r.value for r in snapshot.data.readings("humidity")])
        rainfall = snapshot.data.readings("rainfall")

        rules = []
        if avg_temp is not None and avg_humidity is not None:
            if avg_humidity >= 80 and avg_temp >= 30:
                rules.append(1.0)
            elif avg_humidity >= 70 and avg_temp >= 28:
                rules.append(0.8)
            else:
                rules.append(0.6)

        if rainfall and avg_humidity is not None:
            total_rain = sum(r.value for r in rainfall)
            if total_rain > 0 and avg_humidity >= 85:
                rules.append(1.0)
            elif total_rain == 0 and avg_humidity < 85:
                rules.append(0.9)
            else:
                rules.append(0.7)

        return _mean(rules) if rules else 0.7

    def cross_validation(self, analyses: Sequence[AnalysisResult]) -> float:
        """Consistency of mean temperature between regions."""
        c = self.constants
        if len(analyses) < c.cross_validation_min_regions:
            return 0.5

        temperatures = [
            a.regional_data.temperature.average
            for a in analyses
            if a.regional_data.temperature.average is not None
        ]
        if len(temperatures) < c.cross_validation_min_regions:
            return 0.6

        spread = max(temperatures) - min(temperatures)
        return max(c.min_signal, min(1.0, (c.cross_validation_range_c - spread) / c.cross_validation_range_c))

    def regional_context(self, analyses: Sequence[AnalysisResult]) -> float:
        """How well each region's readings fit its characteristic tags."""
        if not analyses:
            return 0.5

        scores = []
        for analysis in analyses:
            region = self.regions.get(analysis.region_id)
            if region is None:
                continue

            data = analysis.regional_data
            humidity = data.humidity.average
            if any(tag in region.characteristics for tag in COASTAL_TAGS) \
                    and humidity is not None and humidity > self.constants.coastal_humidity:
                scores.append(1.0)
            elif any(tag in region.characteristics for tag in URBAN_TAGS) \
                    and data.temperature.heat_island_effect:
                scores.append(1.0)
            else:
                scores.append(0.8)

        return _mean(scores) if scores else 0.7

    def weather_patterns(self, snapshot: WeatherSnapshot) -> float:
        """Agreement between observed mean temperature and the official forecast band."""
        c = self.constants
        band = snapshot.data.forecast_band()
        avg_temp = _mean([r.value for r in snapshot.data.readings("temperature")])

        score = c.pattern_base
        if band is not None and avg_temp is not None:
            if band.low <= avg_temp <= band.high:
                score += c.forecast_band_bonus
            elif abs(avg_temp - (band.low + band.high) / 2) <= c.forecast_near_c:
                score += c.forecast_near_bonus

        return min(1.0, score)

    # Regional factors

    def regional_data_quality(self, regional_data: RegionalData) -> float:
        parts = []
        for stats in (regional_data.temperature, regional_data.humidity):
            if stats.count > 0:
                parts.append(1.0 if stats.count >= 2 else 0.5)

        station_count = len(regional_data.stations_used)
        if station_count >= 2:
            parts.append(1.0)
        elif station_count == 1:
            parts.append(0.7)
        else:
            parts.append(0.3)

        return _mean(parts)

    def analysis_completeness(self, narrative: NarrativeAnalysis) -> float:
        detail = narrative.detailed_analysis
        checks = (
            len(narrative.summary) > 50,
            bool(detail.temperature_characteristics),
            bool(detail.humidity_comfort),
            len(narrative.activity_suggestions) >= 2,
            len(narrative.health_advisory) > 30,
        )
        return 0.2 * sum(checks)

    def region_relevance(self, region: Region, narrative: NarrativeAnalysis) -> float:
        text = narrative_text(narrative).lower()
        relevance = 0.5
        if region.name.lower() in text:
            relevance += 0.3

        if region.characteristics:
            matched = [tag for tag in region.characteristics if tag.lower() in text]
            relevance += len(matched) / len(region.characteristics) * 0.2

        return min(1.0, relevance)


def narrative_text(narrative: NarrativeAnalysis) -> str:
    """Flatten every text field of a narrative into one string."""
    detail = narrative.detailed_analysis
    parts = [
        narrative.summary,
        detail.temperature_characteristics,
        detail.humidity_comfort,
        *detail.activity_recommendations,
        detail.health_safety,
        detail.future_outlook,
        *narrative.recommendations,
        narrative.health_advisory,
        *narrative.activity_suggestions,
    ]
    return " ".join(part for part in parts if part)


def quality_labels(score: ConfidenceScore, snapshot: WeatherSnapshot) -> Dict[str, str]:
    """Qualitative labels for the report's quality factor summary."""
    labels = {factor.name: quality_label(factor.score) for factor in score.factors}
    labels["station_coverage"] = f"{len(snapshot.stations_used)} stations"
    return labels
