"""Top-level weighting of component scores into the final investment score."""

from __future__ import annotations

import math
from typing import Mapping

from pipelines.model import ComponentScore, Confidence, InvestmentScore

TOP_LEVEL_WEIGHTS: Mapping[str, float] = {
    "market_momentum": 0.25,
    "supply_demand": 0.20,
    "rental_strength": 0.15,
    "affordability": 0.10,
    "transformation_stage": 0.15,
    "historical_pattern": 0.10,
    "investment_timing": 0.05,
}

PRIMARY_COMPONENTS = ("market_momentum", "supply_demand", "rental_strength", "affordability")

COMPONENT_CONFIDENCE_MULTIPLIERS: Mapping[Confidence, float] = {
    Confidence.GOOD: 1.0,
    Confidence.PARTIAL: 0.8,
    Confidence.INTERPOLATED: 0.6,
    Confidence.MISSING: 0.0,
}

BANDS: tuple[tuple[int, str], ...] = (
    (90, "Exceptional"),
    (75, "Strong Buy"),
    (60, "Moderate Opportunity"),
    (40, "Market Rate"),
    (25, "Below Average"),
)
LOWEST_BAND = "Avoid"

SUFFICIENT_QUALITY = 70
STRONG_COMPONENT = 70
WEAK_COMPONENT = 30


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def score_band(score: int) -> str:
    for threshold, band in BANDS:
        if score >= threshold:
            return band
    return LOWEST_BAND


def build_rationale(
    final_score: int,
    band: str,
    components: Mapping[str, ComponentScore],
    data_quality: int,
    stage: str | None,
) -> list[str]:
    quality_note = (
        "Sufficient for analysis" if data_quality >= SUFFICIENT_QUALITY else "Limited data affects reliability"
    )
    rationale = [
        f"Investment Score: {final_score}/100 ({band})",
        f"Data Quality: {data_quality}/100 - {quality_note}",
    ]

    primary = {
        name: components[name]
        for name in PRIMARY_COMPONENTS
        if name in components and components[name].confidence is not Confidence.MISSING
    }
    strong = [f"{name}: {round_half_up(c.score)}" for name, c in primary.items() if c.score >= STRONG_COMPONENT]
    weak = [f"{name}: {round_half_up(c.score)}" for name, c in primary.items() if c.score <= WEAK_COMPONENT]
    if strong:
        rationale.append(f"Strong performance in: {', '.join(strong)}")
    if weak:
        rationale.append(f"Areas of concern: {', '.join(weak)}")
    if stage:
        rationale.append(f"Transformation stage: {stage}")
    if data_quality < SUFFICIENT_QUALITY:
        rationale.append("Consider gathering additional data before making investment decisions")
    return rationale


class ScoreCombiner:
    """Confidence-weighted average over components; missing ones drop out entirely."""

    def __init__(self, weights: Mapping[str, float] = TOP_LEVEL_WEIGHTS) -> None:
        if abs(sum(weights.values()) - 1.0) > 1e-9:
            raise ValueError("top-level weights must sum to 1.0")
        self.weights = dict(weights)

    def combine(self, components: Mapping[str, ComponentScore]) -> tuple[int, float]:
        """Return ``(final_score, data_coverage)``."""
        numerator = 0.0
        denominator = 0.0
        covered = 0.0
        for name, weight in self.weights.items():
            component = components.get(name)
            if component is None:
                continue
            multiplier = COMPONENT_CONFIDENCE_MULTIPLIERS[component.confidence]
            if multiplier == 0:
                continue
            numerator += component.score * weight * multiplier
            denominator += weight * multiplier
            covered += weight

        if denominator == 0:
            return 0, 0.0
        final_score = max(0, min(100, round_half_up(numerator / denominator)))
        coverage = round(covered / sum(self.weights.values()), 4)
        return final_score, coverage

    def build(
        self,
        components: Mapping[str, ComponentScore],
        *,
        data_quality: int,
        stage: str | None = None,
    ) -> InvestmentScore:
        final_score, coverage = self.combine(components)
        band = score_band(final_score)
        return InvestmentScore(
            final_score=final_score,
            band=band,
            component_scores={name: components[name] for name in self.weights if name in components},
            data_coverage=coverage,
            rationale=build_rationale(final_score, band, components, data_quality, stage),
        )


__all__ = [
    "BANDS",
    "PRIMARY_COMPONENTS",
    "ScoreCombiner",
    "TOP_LEVEL_WEIGHTS",
    "build_rationale",
    "round_half_up",
    "score_band",
]
