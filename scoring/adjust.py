"""Confidence and recency discounting of raw provider values."""

from __future__ import annotations

from datetime import datetime, UTC
from typing import Mapping

from pipelines.model import AdjustedMetric, Confidence, utcnow

CONFIDENCE_MULTIPLIERS: Mapping[Confidence, float] = {
    Confidence.GOOD: 1.0,
    Confidence.PARTIAL: 0.8,
    Confidence.INTERPOLATED: 0.6,
    Confidence.MISSING: 0.0,
}

DAYS_PER_MONTH = 30


def confidence_multiplier(confidence: Confidence) -> float:
    return CONFIDENCE_MULTIPLIERS[Confidence(confidence)]


def recency_multiplier(retrieved_at: datetime | None, now: datetime | None = None) -> float:
    """1.0 under six months old, 0.9 under twelve, 0.7 beyond; no timestamp counts as current."""
    if retrieved_at is None:
        return 1.0
    now = now or utcnow()
    if retrieved_at.tzinfo is None:
        retrieved_at = retrieved_at.replace(tzinfo=UTC)
    months_old = (now - retrieved_at).days / DAYS_PER_MONTH
    if months_old < 6:
        return 1.0
    if months_old < 12:
        return 0.9
    return 0.7


def adjust(
    raw_value: float | None,
    confidence: Confidence,
    retrieved_at: datetime | None,
    *,
    now: datetime | None = None,
) -> AdjustedMetric:
    conf_mult = confidence_multiplier(confidence)
    rec_mult = recency_multiplier(retrieved_at, now)
    # a zero multiplier means "no data", not a value of zero
    adjusted = None if raw_value is None or conf_mult == 0 else raw_value * conf_mult * rec_mult
    return AdjustedMetric(
        raw_value=raw_value,
        adjusted_value=adjusted,
        confidence=confidence,
        confidence_multiplier=conf_mult,
        recency_multiplier=rec_mult,
        retrieved_at=retrieved_at,
    )


__all__ = ["CONFIDENCE_MULTIPLIERS", "adjust", "confidence_multiplier", "recency_multiplier"]
