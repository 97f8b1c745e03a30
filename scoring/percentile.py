"""Peer populations and percentile ranking of adjusted metrics.

Peer data is pluggable: tests inject a ``StaticPeerSource``, demos use the
seeded ``SyntheticPeerSource`` and a deployment with history can rank against
previously recorded runs through ``StoredPeerSource``.
"""

from __future__ import annotations

import logging
import random
from typing import Iterable, Mapping, Protocol, Sequence

from pipelines.model import AdjustedMetric, PercentileRank
from storage.db import fetch_peer_values

logger = logging.getLogger(__name__)

# lower is better for these
INVERTED_METRICS = frozenset(
    {"days_on_market", "price_to_income_ratio", "unemployment_rate", "vacancy_rate"}
)

# (mean, standard deviation); growth metrics are in percent
SYNTHETIC_DISTRIBUTIONS: Mapping[str, tuple[float, float]] = {
    "zhvi_1y_growth": (5.0, 15.0),
    "zhvi_3y_cagr": (8.0, 12.0),
    "zori_1y_growth": (4.0, 3.0),
    "days_on_market": (45.0, 20.0),
    "median_household_income": (65000.0, 25000.0),
    "pct_bachelor_plus": (35.0, 15.0),
    "pct_25_34": (12.0, 5.0),
    "price_to_income_ratio": (4.5, 1.5),
    "rental_rate": (35.0, 12.0),
    "unemployment_rate": (4.5, 1.5),
    "vacancy_rate": (8.0, 4.0),
    "amenity_density_score": (60.0, 30.0),
}

SYNTHETIC_PEER_COUNT = 50


class PeerDataSource(Protocol):
    def distributions(
        self, metrics: Iterable[str], *, exclude_slug: str | None = None
    ) -> dict[str, list[float]]:
        ...


class StaticPeerSource:
    """Fixed peer values, mainly for tests and offline comparisons."""

    def __init__(self, distributions: Mapping[str, Sequence[float]]) -> None:
        self._distributions = {metric: list(values) for metric, values in distributions.items()}

    def distributions(self, metrics, *, exclude_slug=None):
        return {m: list(self._distributions[m]) for m in metrics if m in self._distributions}


class SyntheticPeerSource:
    """Normal draws per metric, reproducible for a given seed."""

    def __init__(
        self,
        seed: int = 7,
        count: int = SYNTHETIC_PEER_COUNT,
        parameters: Mapping[str, tuple[float, float]] = SYNTHETIC_DISTRIBUTIONS,
    ) -> None:
        self.seed = seed
        self.count = count
        self.parameters = dict(parameters)

    def distributions(self, metrics, *, exclude_slug=None):
        result: dict[str, list[float]] = {}
        for metric in metrics:
            if metric not in self.parameters:
                continue
            mean, std_dev = self.parameters[metric]
            rng = random.Random(f"{self.seed}:{metric}")
            result[metric] = sorted(rng.gauss(mean, std_dev) for _ in range(self.count))
        return result


class StoredPeerSource:
    """Adjusted values recorded by earlier runs in the DuckDB run store."""

    def __init__(self, conn) -> None:
        self.conn = conn

    def distributions(self, metrics, *, exclude_slug=None):
        metrics = list(metrics)
        values = fetch_peer_values(self.conn, metrics, exclude_slug=exclude_slug)
        logger.debug("Loaded stored peers for %d of %d metrics.", len(values), len(metrics))
        return values


def percentile_of(value: float, peers: Sequence[float], *, inverted: bool = False) -> tuple[float, int]:
    """``(percentile, rank)`` where rank counts peers strictly worse than ``value``."""
    if inverted:
        rank = sum(1 for peer in peers if peer > value)
    else:
        rank = sum(1 for peer in peers if peer < value)
    percentile = min(100.0, round(rank / (len(peers) - 1) * 100, 1))
    return percentile, rank


class PercentileRanker:
    def __init__(self, inverted: Iterable[str] = INVERTED_METRICS) -> None:
        self.inverted = frozenset(inverted)

    def rank(
        self,
        adjusted_metrics: Mapping[str, AdjustedMetric],
        peer_distributions: Mapping[str, Sequence[float]],
    ) -> dict[str, PercentileRank]:
        ranks: dict[str, PercentileRank] = {}
        for metric, adjusted in adjusted_metrics.items():
            value = adjusted.adjusted_value
            peers = peer_distributions.get(metric)
            if value is None:
                ranks[metric] = PercentileRank(
                    peer_count=len(peers or ()), note="no adjusted value"
                )
                continue
            if not peers:
                ranks[metric] = PercentileRank(value=value, note="no peer distribution")
                continue
            if len(peers) < 2:
                ranks[metric] = PercentileRank(
                    value=value, peer_count=len(peers), note="fewer than 2 peers"
                )
                continue
            percentile, rank = percentile_of(value, peers, inverted=metric in self.inverted)
            ranks[metric] = PercentileRank(
                percentile=percentile,
                rank=rank,
                value=value,
                peer_count=len(peers),
                peer_mean=sum(peers) / len(peers),
            )
        return ranks


__all__ = [
    "INVERTED_METRICS",
    "PeerDataSource",
    "PercentileRanker",
    "StaticPeerSource",
    "StoredPeerSource",
    "SyntheticPeerSource",
    "percentile_of",
]
