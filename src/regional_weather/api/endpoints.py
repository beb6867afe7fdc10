"""API endpoints for the regional weather analysis engine."""

import json
import logging
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi_cache import FastAPICache
from fastapi_cache.decorator import cache

from regional_weather.config import (
    ANALYSIS_VERSION, CACHE_EXPIRE_SECONDS, ENGINE_SOURCE, FORCE_ANALYSIS,
    OUTPUT_FILE, WEATHER_DATA_FILE
)
from regional_weather.weather.regions import REGIONS
from regional_weather.weather.service import AnalysisPipeline, EngineError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analysis", tags=["analysis"])

LATEST_CACHE_NAMESPACE = "analysis-latest"


def get_report_path() -> Path:
    """Dependency returning where the latest report is written."""
    return Path(OUTPUT_FILE)


def get_input_path() -> Path:
    """Dependency returning the raw snapshot location."""
    return Path(WEATHER_DATA_FILE)


def get_pipeline(
    force: bool = Query(False, description="Ignore the daily API call limit for this run")
) -> AnalysisPipeline:
    """Dependency building a pipeline from configuration."""
    return AnalysisPipeline.from_config(force=force or FORCE_ANALYSIS)


@router.get("/latest")
@cache(expire=CACHE_EXPIRE_SECONDS, namespace=LATEST_CACHE_NAMESPACE)
async def get_latest_analysis(report_path: Path = Depends(get_report_path)) -> dict:
    """Return the most recently written analysis report.

    Raises:
        HTTPException: 404 if no report has been written yet, 500 if it is unreadable
    """
    try:
        with open(report_path, encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="No analysis report available yet")
    except (OSError, ValueError) as e:
        logger.error(f"Unreadable analysis report at {report_path}: {type(e).__name__}")
        raise HTTPException(status_code=500, detail="Analysis report is unreadable")


@router.post("/run")
async def run_analysis(
    pipeline: AnalysisPipeline = Depends(get_pipeline),
    input_path: Path = Depends(get_input_path),
    report_path: Path = Depends(get_report_path)
) -> dict:
    """Run the analysis pipeline on the current snapshot.

    Returns:
        Summary of the written report

    Raises:
        HTTPException: 422 if the snapshot cannot be loaded or is rejected
    """
    try:
        async with pipeline:
            report = await pipeline.run(input_path, report_path)
    except EngineError as e:
        logger.error(f"Analysis run aborted: {e}")
        raise HTTPException(status_code=422, detail=str(e))

    # A cached /latest response would still serve the previous report
    await FastAPICache.clear(namespace=LATEST_CACHE_NAMESPACE)

    return {
        "timestamp": report.timestamp,
        "achieved_confidence": report.achieved_confidence,
        "regions_analyzed": report.regions_analyzed,
        "successful_analyses": report.successful_analyses,
        "fallback_analyses": report.fallback_analyses,
        "api_usage": report.api_usage.model_dump(),
        "output": str(report_path),
    }


@router.get("/regions")
async def list_regions() -> list:
    """List the regions the engine analyzes."""
    return [
        {
            "region_id": region.region_id,
            "name": region.name,
            "area": region.area,
            "center": {"lat": region.center.lat, "lng": region.center.lng},
            "radius_km": region.radius_km,
            "priority_stations": list(region.priority_stations),
            "characteristics": list(region.characteristics),
            "analysis_focus": list(region.analysis_focus),
        }
        for region in REGIONS.values()
    ]


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "healthy", "service": "regional-weather"}


@router.get("/info")
async def get_service_info() -> dict:
    """Service information including coverage and features."""
    return {
        "service": ENGINE_SOURCE,
        "version": ANALYSIS_VERSION,
        "regions": len(REGIONS),
        "features": [
            "Snapshot integrity validation and sanitization",
            "Per-region aggregation within a 3 km radius",
            "Generated regional narratives with deterministic fallback",
            "Multi-factor confidence scoring"
        ],
        "data_source": "Singapore NEA real-time weather readings"
    }
