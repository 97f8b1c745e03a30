"""Component scoring and market-transformation classification.

A component is a weighted average of metric percentiles, renormalized over the
metrics that actually produced a percentile. Transformation stage, investment
timing and historical pattern are rule-based components rather than
percentile averages.
"""

from __future__ import annotations

from typing import Mapping

from pipelines.model import (
    AdjustedMetric,
    ComponentScore,
    Confidence,
    MetricContribution,
    PercentileRank,
    TransformationAnalysis,
)

NEUTRAL_SCORE = 50.0

COMPONENT_DEFINITIONS: Mapping[str, Mapping[str, float]] = {
    "market_momentum": {"zhvi_1y_growth": 0.6, "zhvi_3y_cagr": 0.4},
    "supply_demand": {"days_on_market": 1.0},
    "rental_strength": {"zori_1y_growth": 0.6, "rental_rate": 0.4},
    "affordability": {"price_to_income_ratio": 1.0},
    "economic_fundamentals": {
        "unemployment_rate": 0.5,
        "median_household_income": 0.25,
        "pct_bachelor_plus": 0.25,
    },
    "amenities_access": {"amenity_density_score": 1.0},
}

PRE_TRANSFORMATION = "pre-transformation"
EARLY_TRANSFORMATION = "early-transformation"
ACTIVE_TRANSFORMATION = "active-transformation"
LATE_STAGE = "late-stage"
UNKNOWN_STAGE = "unknown"

STAGE_SCORES: Mapping[str, float] = {
    PRE_TRANSFORMATION: 60.0,
    EARLY_TRANSFORMATION: 80.0,
    ACTIVE_TRANSFORMATION: 90.0,
    LATE_STAGE: 40.0,
}

TIMING_SCORES: Mapping[str, int] = {
    PRE_TRANSFORMATION: 3,
    EARLY_TRANSFORMATION: 5,
    ACTIVE_TRANSFORMATION: 3,
    LATE_STAGE: 1,
    UNKNOWN_STAGE: 0,
}

TIMING_RATIONALE: Mapping[str, str] = {
    PRE_TRANSFORMATION: "Good opportunity with moderate timing risk",
    EARLY_TRANSFORMATION: "Optimal investment window currently open",
    ACTIVE_TRANSFORMATION: "Late-stage opportunity with higher risk",
    LATE_STAGE: "Poor timing - high speculation risk",
    UNKNOWN_STAGE: "Cannot assess timing due to insufficient data",
}

MAX_TIMING_SCORE = 5


class ComponentScorer:
    def __init__(self, definitions: Mapping[str, Mapping[str, float]] = COMPONENT_DEFINITIONS) -> None:
        for name, weights in definitions.items():
            if abs(sum(weights.values()) - 1.0) > 1e-9:
                raise ValueError(f"weights of component {name!r} must sum to 1.0")
        self.definitions = {name: dict(weights) for name, weights in definitions.items()}

    def score_component(
        self, weights: Mapping[str, float], ranks: Mapping[str, PercentileRank]
    ) -> ComponentScore:
        available = {
            metric: ranks[metric].percentile
            for metric in weights
            if metric in ranks and ranks[metric].percentile is not None
        }
        available_weight = sum(weights[metric] for metric in available)

        details: dict[str, MetricContribution] = {}
        for metric, weight in weights.items():
            if metric in available:
                share = available[metric] * weight / available_weight
                details[metric] = MetricContribution(
                    percentile=available[metric], weight=weight, contribution=round(share, 2)
                )
            else:
                rank = ranks.get(metric)
                details[metric] = MetricContribution(
                    weight=weight, note=(rank.note if rank else None) or "metric unavailable"
                )

        if not available:
            return ComponentScore(
                score=NEUTRAL_SCORE,
                confidence=Confidence.MISSING,
                available_metrics=0,
                total_metrics=len(weights),
                details=details,
                note="no constituent metric available; neutral score",
            )

        score = sum(available[m] * weights[m] for m in available) / available_weight
        confidence = Confidence.GOOD if len(available) == len(weights) else Confidence.PARTIAL
        return ComponentScore(
            score=round(score, 2),
            confidence=confidence,
            available_metrics=len(available),
            total_metrics=len(weights),
            details=details,
        )

    def score_all(self, ranks: Mapping[str, PercentileRank]) -> dict[str, ComponentScore]:
        return {
            name: self.score_component(weights, ranks)
            for name, weights in self.definitions.items()
        }


def _adjusted(metrics: Mapping[str, AdjustedMetric], name: str) -> float | None:
    metric = metrics.get(name)
    return metric.adjusted_value if metric is not None else None


def timing_band(timing_score: int) -> str:
    if timing_score >= 5:
        return "Optimal"
    if timing_score >= 3:
        return "Good"
    if timing_score >= 1:
        return "Poor"
    return "Avoid"


def classify_transformation(adjusted_metrics: Mapping[str, AdjustedMetric]) -> TransformationAnalysis:
    """Rule-based stage from 1-yr price growth; demographics are evidence only.

    Without a growth figure the stage is ``unknown`` rather than
    ``pre-transformation``, so the stage and timing components count as missing.
    """
    signals: list[str] = []
    risks: list[str] = []

    growth = _adjusted(adjusted_metrics, "zhvi_1y_growth")
    if growth is None:
        stage = UNKNOWN_STAGE
    elif growth > 25:
        stage = LATE_STAGE
        signals.append("Strong price appreciation (>15% annually)")
        risks.append("Potential speculation risk (>25% price growth)")
    elif growth > 15:
        stage = ACTIVE_TRANSFORMATION
        signals.append("Strong price appreciation (>15% annually)")
    elif growth >= 10:
        stage = EARLY_TRANSFORMATION
        signals.append("Moderate price appreciation (10-15% annually)")
    else:
        stage = PRE_TRANSFORMATION

    young_share = _adjusted(adjusted_metrics, "pct_25_34")
    if young_share is not None and young_share > 15:
        signals.append("High young professional population (>15%)")
    bachelor_share = _adjusted(adjusted_metrics, "pct_bachelor_plus")
    if bachelor_share is not None and bachelor_share > 40:
        signals.append("High education levels (>40% BA+)")

    price_to_income = _adjusted(adjusted_metrics, "price_to_income_ratio")
    if price_to_income is not None and price_to_income > 6:
        risks.append("High price-to-income ratio indicates affordability stress")

    timing = TIMING_SCORES[stage]
    return TransformationAnalysis(
        stage=stage,
        signals=signals,
        risks=risks,
        historical_indicators={
            "employment_catalyst": "unknown",
            "infrastructure_signals": "unknown",
            "policy_catalysts": "unknown",
        },
        timing_score=timing,
        timing_band=timing_band(timing),
        timing_rationale=[TIMING_RATIONALE[stage]],
    )


def transformation_component(analysis: TransformationAnalysis) -> ComponentScore:
    if analysis.stage == UNKNOWN_STAGE:
        return ComponentScore(
            score=NEUTRAL_SCORE,
            confidence=Confidence.MISSING,
            total_metrics=1,
            note="1-yr price growth unavailable; stage unknown",
        )
    return ComponentScore(
        score=STAGE_SCORES[analysis.stage],
        confidence=Confidence.PARTIAL,
        available_metrics=1,
        total_metrics=1,
        note=f"stage: {analysis.stage}",
    )


def timing_component(analysis: TransformationAnalysis) -> ComponentScore:
    if analysis.stage == UNKNOWN_STAGE:
        return ComponentScore(
            score=NEUTRAL_SCORE,
            confidence=Confidence.MISSING,
            total_metrics=1,
            note=TIMING_RATIONALE[UNKNOWN_STAGE],
        )
    return ComponentScore(
        score=round(analysis.timing_score / MAX_TIMING_SCORE * 100, 2),
        confidence=Confidence.PARTIAL,
        available_metrics=1,
        total_metrics=1,
        note=f"timing: {analysis.timing_band}",
    )


def historical_pattern_component() -> ComponentScore:
    # TODO: match against recorded ZHVI trajectories once run history spans multiple years
    return ComponentScore(
        score=NEUTRAL_SCORE,
        confidence=Confidence.MISSING,
        note="Historical analysis requires time-series data",
    )


__all__ = [
    "COMPONENT_DEFINITIONS",
    "ComponentScorer",
    "NEUTRAL_SCORE",
    "STAGE_SCORES",
    "TIMING_SCORES",
    "classify_transformation",
    "historical_pattern_component",
    "timing_band",
    "timing_component",
    "transformation_component",
]
