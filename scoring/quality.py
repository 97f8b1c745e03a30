"""Per-source data-quality assessment of a run's raw bundle."""

from __future__ import annotations

from typing import Mapping

from pipelines.model import Confidence, DataQualityReport, RawDataBundle, SourceQuality
from scoring.combine import round_half_up

SOURCE_WEIGHTS: Mapping[str, int] = {
    "geography": 3,
    "census": 2,
    "housing_index": 2,
    "employment": 1,
    "places": 1,
    "weather": 1,
    "flood": 1,
    "news": 1,
}

CONFIDENCE_SCORES: Mapping[Confidence, int] = {
    Confidence.GOOD: 100,
    Confidence.PARTIAL: 60,
    Confidence.INTERPOLATED: 60,
    Confidence.MISSING: 0,
}


def assess_quality(
    bundle: RawDataBundle, weights: Mapping[str, int] = SOURCE_WEIGHTS
) -> DataQualityReport:
    qualities: dict[str, SourceQuality] = {}
    earned = 0
    possible = 0
    for source, weight in weights.items():
        confidence = getattr(bundle, source).confidence
        score = CONFIDENCE_SCORES[confidence]
        qualities[source] = SourceQuality(score=score, confidence=confidence, weight=weight)
        earned += score * weight
        possible += 100 * weight

    overall = round_half_up(earned / possible * 100) if possible else 0
    return DataQualityReport(overall_score=overall, source_qualities=qualities)


__all__ = ["CONFIDENCE_SCORES", "SOURCE_WEIGHTS", "assess_quality"]
