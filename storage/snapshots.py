"""Per-run JSON snapshots keyed by a slug derived from the location text.

Layout::

    <output_dir>/<slug>/<slug>_analysis.json
    <output_dir>/<slug>/<slug>_summary.json
    <output_dir>/<slug>/<slug>_error.json     (aborted runs only)
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

from pipelines.model import AnalysisResult

logger = logging.getLogger(__name__)

SLUG_MAX_LENGTH = 60
FALLBACK_SLUG = "location"

_NON_SLUG = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")
_SLUG = re.compile(rf"[a-z0-9_]{{1,{SLUG_MAX_LENGTH}}}")

SUMMARY_METRICS = (
    "zhvi_1y_growth",
    "zhvi_3y_cagr",
    "days_on_market",
    "median_household_income",
    "price_to_income_ratio",
    "unemployment_rate",
    "amenity_density_score",
)


def slugify(location: str) -> str:
    """Lowercase, strip non-alphanumerics, spaces to underscores, at most 60 chars."""
    cleaned = _NON_SLUG.sub("", location.lower()).strip()
    slug = _WHITESPACE.sub("_", cleaned)[:SLUG_MAX_LENGTH]
    return slug or FALLBACK_SLUG


def is_slug(value: str) -> bool:
    """True when ``value`` has the shape ``slugify`` produces."""
    return _SLUG.fullmatch(value) is not None


def build_summary(result: AnalysisResult) -> dict[str, Any]:
    adjusted = result.processed_metrics.adjusted_metrics
    transformation = result.processed_metrics.transformation_analysis
    return {
        "location": result.meta.query,
        "slug": result.meta.slug,
        "status": result.status,
        "final_score": result.investment_score.final_score,
        "band": result.investment_score.band,
        "data_quality": result.data_quality.overall_score,
        "data_coverage": result.investment_score.data_coverage,
        "transformation_stage": transformation.stage if transformation else None,
        "key_metrics": {
            metric: adjusted[metric].raw_value for metric in SUMMARY_METRICS if metric in adjusted
        },
        "created_at": result.meta.created_at.isoformat(),
    }


class SnapshotStore:
    def __init__(self, output_dir: str | os.PathLike[str]) -> None:
        self.output_dir = Path(output_dir)

    def path_for(self, slug: str, kind: str = "analysis") -> Path:
        return self.output_dir / slug / f"{slug}_{kind}.json"

    def _write(self, path: Path, text: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    def write(self, result: AnalysisResult) -> Path:
        slug = result.meta.slug
        path = self._write(self.path_for(slug), result.model_dump_json(indent=2))
        self._write(self.path_for(slug, "summary"), json.dumps(build_summary(result), indent=2))
        logger.info("Snapshot written to %s", path)
        return path

    def write_error(self, result: AnalysisResult) -> Path:
        path = self._write(self.path_for(result.meta.slug, "error"), result.model_dump_json(indent=2))
        logger.info("Error snapshot written to %s", path)
        return path

    def load(self, slug: str) -> AnalysisResult:
        path = self.path_for(slug)
        if not path.is_file():
            raise FileNotFoundError(f"No analysis snapshot for '{slug}'")
        return AnalysisResult.model_validate_json(path.read_text(encoding="utf-8"))

    def load_summary(self, slug: str) -> dict[str, Any]:
        path = self.path_for(slug, "summary")
        if not path.is_file():
            raise FileNotFoundError(f"No summary snapshot for '{slug}'")
        return json.loads(path.read_text(encoding="utf-8"))

    def slugs(self) -> list[str]:
        if not self.output_dir.is_dir():
            return []
        return sorted(
            entry.name for entry in self.output_dir.iterdir() if self.path_for(entry.name).is_file()
        )


__all__ = ["SLUG_MAX_LENGTH", "SnapshotStore", "build_summary", "is_slug", "slugify"]
