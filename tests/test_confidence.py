import asyncio
from datetime import timedelta

import pytest

from regional_weather.weather.confidence import (
    OVERALL_WEIGHTS, ConfidenceScorer, ScoringConstants, quality_label, quality_labels
)
from regional_weather.weather.narrative import fallback_narrative
from regional_weather.weather.regions import get_region
from regional_weather.weather.service import AnalysisPipeline
from regional_weather.weather.validator import validate_snapshot


def analyses_for(snapshot, now):
    return asyncio.run(AnalysisPipeline().analyze_regions(snapshot, now))


def test_overall_score_is_bounded_and_complete(snapshot, now):
    score = ConfidenceScorer().score(snapshot, analyses_for(snapshot, now), now=now)

    assert 0.75 <= score.value <= 0.99
    assert [f.name for f in score.factors] == list(OVERALL_WEIGHTS)
    for factor in score.factors:
        assert 0.0 <= factor.score <= 1.0
        assert factor.contribution == pytest.approx(factor.weight * factor.score)


def test_degenerate_snapshot_stays_in_bounds(raw_snapshot, now):
    raw_snapshot["data"] = {}
    report = validate_snapshot(raw_snapshot)

    score = ConfidenceScorer().score(report.sanitized, [], report=report, now=now + timedelta(days=3))

    assert 0.75 <= score.value <= 0.99


def test_scoring_is_deterministic(snapshot, now):
    analyses = analyses_for(snapshot, now)
    scorer = ConfidenceScorer()

    assert scorer.score(snapshot, analyses, now=now) == scorer.score(snapshot, analyses, now=now)


def test_bonus_applies_above_threshold(snapshot, now):
    scorer = ConfidenceScorer(ScoringConstants(overall_base=0.95))

    score = scorer.score(snapshot, [], now=now)

    assert score.bonus_applied
    assert score.value == 0.99


def test_fixed_score():
    score = ConfidenceScorer().fixed(0.75)

    assert score.value == 0.75
    assert score.factors == []


@pytest.mark.parametrize(
    "minutes,expected",
    [(10, 1.0), (45, 0.9), (90, 0.7), (180, 0.5)],
)
def test_temporal_consistency(snapshot, minutes, expected):
    now = snapshot.observed_at + timedelta(minutes=minutes)

    assert ConfidenceScorer().temporal_consistency(snapshot, now) == expected


def test_weather_patterns_uses_forecast_band(raw_snapshot, snapshot):
    scorer = ConfidenceScorer()
    assert scorer.weather_patterns(snapshot) == pytest.approx(0.9)

    del raw_snapshot["data"]["forecast"]
    without_forecast = validate_snapshot(raw_snapshot).sanitized
    assert scorer.weather_patterns(without_forecast) == pytest.approx(0.7)


def test_station_coverage(snapshot):
    # 7 of 40 expected stations; all eight regions have a used station
    expected = 7 / 40 * 0.7 + 1.0 * 0.3

    assert ConfidenceScorer().station_coverage(snapshot) == pytest.approx(expected)


def test_region_factors_for_fallback_narrative():
    changi = get_region("changi")
    scorer = ConfidenceScorer()
    narrative = fallback_narrative(changi)

    assert scorer.analysis_completeness(narrative) == pytest.approx(1.0)
    assert scorer.region_relevance(changi, narrative) > 0.8


def test_region_score_is_bounded(snapshot, now):
    for analysis in analyses_for(snapshot, now):
        assert 0.75 <= analysis.confidence.value <= 0.99
        assert [f.name for f in analysis.confidence.factors] == [
            "data_quality", "analysis_completeness", "region_relevance"
        ]


def test_quality_labels(snapshot, now):
    score = ConfidenceScorer().score(snapshot, analyses_for(snapshot, now), now=now)
    labels = quality_labels(score, snapshot)

    assert labels["station_coverage"] == "7 stations"
    assert labels["temporal_consistency"] == "Excellent"
    assert quality_label(0.6) == "Fair"
    assert quality_label(0.2) == "Poor"
