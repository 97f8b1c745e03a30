"""Region mode: rank housing-dataset regions of a state against the peer population."""

from __future__ import annotations

import logging
from typing import Mapping, Sequence

from pipelines.model import Confidence, RegionCandidate
from pipelines.sources.housing_index import compute_market_metrics
from scoring.adjust import adjust
from scoring.components import COMPONENT_DEFINITIONS, ComponentScorer
from scoring.percentile import PercentileRanker
from storage.housing import HousingMarketDataset

logger = logging.getLogger(__name__)

REGION_COMPONENTS = ("market_momentum", "supply_demand")
REGION_METRICS = tuple(
    metric for component in REGION_COMPONENTS for metric in COMPONENT_DEFINITIONS[component]
)


def rank_regions(
    dataset: HousingMarketDataset,
    state: str | None,
    peer_distributions: Mapping[str, Sequence[float]],
    top_n: int,
    *,
    ranker: PercentileRanker | None = None,
    scorer: ComponentScorer | None = None,
) -> list[RegionCandidate]:
    """Top ``top_n`` regions by the mean of their momentum and supply-demand scores."""
    ranker = ranker or PercentileRanker()
    scorer = scorer or ComponentScorer()

    candidates: list[RegionCandidate] = []
    for region in dataset.regions_in_state(state):
        metrics = compute_market_metrics(dataset.region_series(region))
        adjusted = {
            metric: adjust(metrics.get(metric), Confidence.GOOD, None) for metric in REGION_METRICS
        }
        ranks = ranker.rank(adjusted, peer_distributions)
        scores = {
            name: scorer.score_component(COMPONENT_DEFINITIONS[name], ranks)
            for name in REGION_COMPONENTS
        }
        usable = [s.score for s in scores.values() if s.confidence is not Confidence.MISSING]
        if not usable:
            continue
        candidates.append(
            RegionCandidate(
                region=region,
                score=round(sum(usable) / len(usable), 2),
                market_momentum=_score_or_none(scores["market_momentum"]),
                supply_demand=_score_or_none(scores["supply_demand"]),
                zhvi_1y_growth=metrics.get("zhvi_1y_growth"),
            )
        )

    candidates.sort(key=lambda candidate: candidate.score, reverse=True)
    logger.info("Ranked %d regions in %s; keeping %d.", len(candidates), state or "all states", top_n)
    return candidates[:top_n]


def _score_or_none(component) -> float | None:
    return None if component.confidence is Confidence.MISSING else component.score


__all__ = ["REGION_METRICS", "rank_regions"]
