"""Free-text to dataset-region resolution.

Strategies run in order (token substring, then alias table) and the first hit
wins. Successful resolutions are cached for the life of the process; the cache
is append-only, so concurrent readers never observe a removal.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Mapping, Sequence

logger = logging.getLogger(__name__)

STOP_WORDS = frozenset({"the", "of", "in", "at", "to", "for", "on", "with"})

DEFAULT_ALIASES: Mapping[str, str] = {
    "nyc": "New York",
    "ny": "New York",
    "la": "Los Angeles",
    "sf": "San Francisco",
    "dc": "Washington",
    "philly": "Philadelphia",
    "vegas": "Las Vegas",
    "boston": "Boston",
    "chicago": "Chicago",
    "miami": "Miami",
    "atlanta": "Atlanta",
    "dallas": "Dallas",
    "houston": "Houston",
    "phoenix": "Phoenix",
    "denver": "Denver",
    "seattle": "Seattle",
    "nashville": "Nashville",
}

_PUNCTUATION = re.compile(r"[^\w\s]")

MatchStrategy = Callable[[Sequence[str], Sequence[str]], "str | None"]


def normalize(text: str) -> str:
    return " ".join(_PUNCTUATION.sub(" ", text).lower().split())


def extract_search_terms(location: str) -> list[str]:
    """Tokens and adjacent-token pairs, longest first, without stop words."""
    parts = normalize(location).split()
    terms = list(parts)
    terms.extend(f"{a} {b}" for a, b in zip(parts, parts[1:]))
    filtered = [term for term in terms if len(term) > 1 and term not in STOP_WORDS]
    # stable sort keeps input order among equally long terms
    return sorted(dict.fromkeys(filtered), key=len, reverse=True)


def substring_strategy(terms: Sequence[str], regions: Sequence[str]) -> str | None:
    # two-letter tokens are state codes or aliases and match far too much as substrings
    normalized = [(region, normalize(region)) for region in regions]
    for term in terms:
        if len(term) <= 2:
            continue
        for region, region_norm in normalized:
            if term in region_norm:
                return region
    return None


def alias_strategy(
    aliases: Mapping[str, str] = DEFAULT_ALIASES,
) -> MatchStrategy:
    def _match(terms: Sequence[str], regions: Sequence[str]) -> str | None:
        for term in terms:
            target = aliases.get(term)
            if not target:
                continue
            target_norm = normalize(target)
            for region in regions:
                if target_norm in normalize(region):
                    return region
        return None

    return _match


class RegionMatcher:
    """Resolve user free text to the best-matching dataset region name."""

    def __init__(self, strategies: Sequence[MatchStrategy] | None = None) -> None:
        self._strategies = list(strategies or (substring_strategy, alias_strategy()))
        self._cache: dict[str, str] = {}

    def resolve(self, location: str, regions: Sequence[str]) -> str | None:
        key = location.strip().lower()
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        terms = extract_search_terms(location)
        for strategy in self._strategies:
            match = strategy(terms, regions)
            if match:
                self._cache[key] = match
                logger.debug("Resolved %r to region %r.", location, match)
                return match
        return None

    @property
    def cached(self) -> Mapping[str, str]:
        return dict(self._cache)


__all__ = [
    "DEFAULT_ALIASES",
    "RegionMatcher",
    "alias_strategy",
    "extract_search_terms",
    "normalize",
    "substring_strategy",
]
