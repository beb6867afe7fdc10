"""Pipeline orchestration for regional weather analysis."""

import asyncio
import json
import logging
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from regional_weather.config import (
    ANALYSIS_CONCURRENCY, ANALYSIS_VERSION, COHERE_API_KEY, ENGINE_SOURCE,
    FORCE_ANALYSIS, MAX_DAILY_CALLS, USAGE_TRACKING_FILE
)
from regional_weather.weather.aggregator import RegionalAggregator
from regional_weather.weather.client import TextGenerationClient
from regional_weather.weather.confidence import ConfidenceScorer, quality_labels
from regional_weather.weather.models import (
    AnalysisReport, AnalysisResult, ApiUsageSummary, ConfidenceBreakdown,
    RegionalConfidence, RegionalData, ValidationReport, ValidationSummary,
    WeatherSnapshot
)
from regional_weather.weather.narrative import NarrativeAnalyzer, fallback_narrative
from regional_weather.weather.regions import REGIONS, Region
from regional_weather.weather.usage import UsageTracker, write_json_atomic
from regional_weather.weather.validator import validate_snapshot

logger = logging.getLogger(__name__)

FAILED_REGION_CONFIDENCE = 0.75


class EngineError(Exception):
    """Base class for fatal pipeline errors."""
    pass


class SnapshotLoadError(EngineError):
    """Raised when the input snapshot cannot be read or decoded."""
    pass


class SnapshotValidationError(EngineError):
    """Raised when the input snapshot fails integrity validation."""

    def __init__(self, errors: List[str]):
        self.errors = errors
        detail = "; ".join(errors[:3]) if errors else "unknown validation failure"
        super().__init__(f"Weather snapshot failed validation: {detail}")


class PipelineStage(str, Enum):
    LOAD = "load"
    VALIDATE = "validate"
    ANALYZE_REGIONS = "analyze_regions"
    SCORE_OVERALL = "score_overall"
    WRITE = "write"
    DONE = "done"


def generate_overall_summary(results: List[AnalysisResult]) -> str:
    """Island-wide summary built from the non-fallback regional results."""
    successful = [r for r in results if not r.fallback]
    if not successful:
        return "Regional analysis ran, but no region produced a generated narrative."

    temperatures = [
        r.regional_data.temperature.average
        for r in successful
        if r.regional_data.temperature.average is not None
    ]
    if temperatures:
        average = f"{sum(temperatures) / len(temperatures):.1f}°C"
        spread = f"{min(temperatures):.1f}°C to {max(temperatures):.1f}°C"
    else:
        average, spread = "N/A", "N/A"

    highlights = " | ".join(
        f"{r.region_name}: {r.narrative.summary[:60]}..." for r in successful[:3]
    )
    return (
        f"Analysis completed for {len(results)} regions of Singapore. "
        f"Average temperature {average} (range {spread}). Regional highlights: {highlights}"
    )


class AnalysisPipeline:
    """Runs LOAD → VALIDATE → per-region analysis → SCORE_OVERALL → WRITE."""

    def __init__(
        self,
        analyzer: Optional[NarrativeAnalyzer] = None,
        scorer: Optional[ConfidenceScorer] = None,
        aggregator: Optional[RegionalAggregator] = None,
        usage: Optional[UsageTracker] = None,
        regions: Optional[Dict[str, Region]] = None,
        concurrency: int = ANALYSIS_CONCURRENCY
    ):
        """Initialize the pipeline.

        Args:
            analyzer: Narrative analyzer (offline fallback-only if None)
            scorer: Confidence scorer
            aggregator: Regional aggregator
            usage: Daily API budget, loaded and saved once per run
            regions: Regions to analyze (defaults to the registry)
            concurrency: Maximum regions analyzed at once
        """
        self.usage = usage
        self.analyzer = analyzer or NarrativeAnalyzer(usage=usage)
        self.scorer = scorer or ConfidenceScorer()
        self.aggregator = aggregator or RegionalAggregator()
        self.regions = regions if regions is not None else REGIONS
        self.concurrency = max(1, concurrency)
        self.stage = PipelineStage.LOAD

    @classmethod
    def from_config(
        cls,
        force: bool = FORCE_ANALYSIS,
        usage_path: Union[str, Path] = USAGE_TRACKING_FILE,
        api_key: str = COHERE_API_KEY
    ) -> "AnalysisPipeline":
        """Build a pipeline from environment configuration."""
        usage = UsageTracker(usage_path, daily_limit=MAX_DAILY_CALLS, force=force)
        client = TextGenerationClient(api_key=api_key) if api_key else None
        logger.info(f"API key status: {'SET' if client else 'NOT_SET'}, force analysis: {force}")
        return cls(analyzer=NarrativeAnalyzer(client=client, usage=usage), usage=usage)

    def _enter(self, stage: PipelineStage) -> None:
        self.stage = stage
        logger.info(f"Pipeline stage: {stage.value}")

    def load(self, input_path: Union[str, Path]) -> Any:
        """Read and decode the raw snapshot.

        Raises:
            SnapshotLoadError: If the file is missing, unreadable or not JSON
        """
        self._enter(PipelineStage.LOAD)
        try:
            with open(input_path, encoding="utf-8") as f:
                raw = json.load(f)
        except FileNotFoundError:
            raise SnapshotLoadError(f"Weather data file not found: {input_path}")
        except json.JSONDecodeError as e:
            raise SnapshotLoadError(f"Weather data file is not valid JSON: {input_path} (line {e.lineno})")
        except OSError as e:
            raise SnapshotLoadError(f"Weather data file unreadable: {input_path} ({e.strerror})")

        logger.info(f"Weather data loaded from {input_path}")
        return raw

    def validate(self, raw: Any) -> ValidationReport:
        """Validate the raw snapshot.

        Raises:
            SnapshotValidationError: If the snapshot is rejected
        """
        self._enter(PipelineStage.VALIDATE)
        report = validate_snapshot(raw)
        if not report.is_valid or report.sanitized is None:
            raise SnapshotValidationError(report.errors)
        return report

    async def analyze_region(self, region: Region, snapshot: WeatherSnapshot,
                             analyzed_at: datetime) -> AnalysisResult:
        """Aggregate, narrate and score one region.

        Any failure is contained here and turned into a fallback result.
        """
        try:
            regional_data = self.aggregator.aggregate(region, snapshot)
            narrative = await self.analyzer.analyze(region, regional_data, snapshot)
            confidence = self.scorer.score_region(region, regional_data, narrative)

            logger.info(
                f"{region.name} analysis completed "
                f"(confidence: {confidence.value * 100:.1f}%, fallback: {narrative.fallback})"
            )
            return AnalysisResult(
                region_id=region.region_id,
                region_name=region.name,
                region_area=region.area,
                region_characteristics=list(region.characteristics),
                analysis_focus=list(region.analysis_focus),
                regional_data=regional_data,
                confidence=confidence,
                narrative=narrative,
                fallback=narrative.fallback,
                analysis_timestamp=analyzed_at.isoformat(),
            )

        except Exception as e:
            logger.error(f"Failed to analyze {region.name}: {type(e).__name__}: {e}")
            return self.failed_result(region, analyzed_at)

    def failed_result(self, region: Region, analyzed_at: datetime) -> AnalysisResult:
        return AnalysisResult(
            region_id=region.region_id,
            region_name=region.name,
            region_area=region.area,
            region_characteristics=list(region.characteristics),
            analysis_focus=list(region.analysis_focus),
            regional_data=RegionalData(region_id=region.region_id),
            confidence=self.scorer.fixed(FAILED_REGION_CONFIDENCE),
            narrative=fallback_narrative(region),
            fallback=True,
            analysis_timestamp=analyzed_at.isoformat(),
        )

    async def analyze_regions(self, snapshot: WeatherSnapshot,
                              analyzed_at: datetime) -> List[AnalysisResult]:
        """Analyze every region; results keep registry order."""
        self._enter(PipelineStage.ANALYZE_REGIONS)
        semaphore = asyncio.Semaphore(self.concurrency)

        async def bounded(region: Region) -> AnalysisResult:
            async with semaphore:
                return await self.analyze_region(region, snapshot, analyzed_at)

        return list(await asyncio.gather(*(bounded(region) for region in self.regions.values())))

    async def analyze_snapshot(self, raw: Any, now: Optional[datetime] = None) -> AnalysisReport:
        """Run validation, regional analysis and scoring without file I/O.

        Args:
            raw: Decoded snapshot document
            now: Reference time for freshness and timestamps

        Returns:
            The complete AnalysisReport

        Raises:
            SnapshotValidationError: If the snapshot is rejected
        """
        now = now or datetime.now(timezone.utc)
        report = self.validate(raw)
        snapshot = report.sanitized

        results = await self.analyze_regions(snapshot, now)

        self._enter(PipelineStage.SCORE_OVERALL)
        overall = self.scorer.score(snapshot, results, report=report, now=now)

        successful = sum(1 for r in results if not r.fallback)
        return AnalysisReport(
            timestamp=now.isoformat(),
            source=ENGINE_SOURCE,
            achieved_confidence=f"{overall.value * 100:.1f}%",
            overall_summary=generate_overall_summary(results),
            regional_analyses=results,
            confidence_breakdown=ConfidenceBreakdown(
                overall_confidence=overall.value,
                overall_factors=overall,
                regional_confidences=[
                    RegionalConfidence(
                        region_id=r.region_id,
                        region=r.region_name,
                        confidence=r.confidence.value,
                        fallback=r.fallback,
                    )
                    for r in results
                ],
                quality_factors=quality_labels(overall, snapshot),
            ),
            regions_analyzed=len(results),
            successful_analyses=successful,
            fallback_analyses=len(results) - successful,
            weather_data_timestamp=snapshot.timestamp,
            validation=ValidationSummary(
                security_score=report.security_score,
                error_count=len(report.errors),
                warning_count=len(report.warnings),
            ),
            api_usage=self._usage_summary(),
            analysis_version=ANALYSIS_VERSION,
        )

    def _usage_summary(self) -> ApiUsageSummary:
        if self.usage is None:
            return ApiUsageSummary(
                calls_today=0, daily_limit=MAX_DAILY_CALLS, limit_reached=False, force_analysis=False
            )
        status = self.usage.check()
        return ApiUsageSummary(
            calls_today=status.today_calls,
            daily_limit=self.usage.daily_limit,
            limit_reached=status.limit_reached,
            force_analysis=self.usage.force,
        )

    def write(self, report: AnalysisReport, output_path: Union[str, Path]) -> Path:
        """Write the report atomically."""
        self._enter(PipelineStage.WRITE)
        path = Path(output_path)
        write_json_atomic(path, report.model_dump_json(indent=2))
        logger.info(f"Results saved to: {path}")
        return path

    async def run(self, input_path: Union[str, Path], output_path: Union[str, Path],
                  now: Optional[datetime] = None) -> AnalysisReport:
        """Run the full pipeline.

        Args:
            input_path: Raw snapshot JSON file
            output_path: Destination of the report
            now: Reference time (defaults to current UTC time)

        Returns:
            The written AnalysisReport

        Raises:
            SnapshotLoadError: If the input cannot be read
            SnapshotValidationError: If the input is rejected
        """
        if self.usage is not None:
            self.usage.load()
            status = self.usage.check()
            logger.info(
                f"API usage: {status.today_calls}/{self.usage.daily_limit} calls today, "
                f"{status.remaining} remaining"
            )

        raw = self.load(input_path)
        report = await self.analyze_snapshot(raw, now=now)
        self.write(report, output_path)

        if self.usage is not None:
            self.usage.save()

        self._enter(PipelineStage.DONE)
        logger.info(
            f"Overall confidence: {report.achieved_confidence}, "
            f"successful analyses: {report.successful_analyses}/{report.regions_analyzed}"
        )
        return report

    async def aclose(self):
        """Close the text generation client, if any."""
        client = self.analyzer.client
        if client is not None:
            try:
                await client.aclose()
            except Exception as e:
                logger.error(f"Error closing text generation client: {e}")

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.aclose()
