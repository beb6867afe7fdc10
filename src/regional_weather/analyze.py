"""Command-line entry point for one batch analysis run."""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from regional_weather.config import (
    ANALYSIS_CONCURRENCY, COHERE_API_KEY, FORCE_ANALYSIS, OUTPUT_FILE,
    USAGE_TRACKING_FILE, WEATHER_DATA_FILE
)
from regional_weather.logging_config import configure_logging
from regional_weather.weather.service import AnalysisPipeline, EngineError

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run regional weather analysis with confidence scoring on the latest snapshot."
    )
    parser.add_argument("--input", default=WEATHER_DATA_FILE, help="Raw weather snapshot JSON")
    parser.add_argument("--output", default=OUTPUT_FILE, help="Analysis report destination")
    parser.add_argument("--usage-file", default=USAGE_TRACKING_FILE, help="Daily API usage counters")
    parser.add_argument("--force", action="store_true", default=FORCE_ANALYSIS,
                        help="Ignore the daily API call limit")
    parser.add_argument("--concurrency", type=int, default=ANALYSIS_CONCURRENCY,
                        help="Regions analyzed at once")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace, api_key: str = COHERE_API_KEY) -> int:
    pipeline = AnalysisPipeline.from_config(force=args.force, usage_path=args.usage_file, api_key=api_key)
    pipeline.concurrency = max(1, args.concurrency)

    try:
        async with pipeline:
            report = await pipeline.run(args.input, args.output)
    except EngineError as e:
        logger.error(f"Analysis aborted: {e}")
        return 1

    logger.info(
        f"Analysis complete: {report.achieved_confidence} confidence, "
        f"{report.successful_analyses} generated / {report.fallback_analyses} fallback"
    )
    return 0


def main(argv: Optional[List[str]] = None, api_key: str = COHERE_API_KEY) -> int:
    """Run one analysis and return the process exit code.

    Args:
        argv: Command-line arguments (defaults to sys.argv)
        api_key: Text generation credential; empty runs fully offline

    Returns:
        0 when a report was written, 1 on a fatal input error
    """
    configure_logging()
    args = parse_args(argv)
    logger.info(f"Regional weather analysis starting (input: {args.input})")
    return asyncio.run(run(args, api_key=api_key))


if __name__ == "__main__":
    sys.exit(main())
