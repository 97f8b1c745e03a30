"""End-to-end location analysis: geocode, fan out to providers, score, persist."""

from __future__ import annotations

import asyncio
import logging
import os
import time

import duckdb

from jobs.config import Settings
from pipelines.matching import RegionMatcher
from pipelines.model import (
    AnalysisMeta,
    AnalysisMode,
    AnalysisResult,
    Coordinates,
    GeographyContext,
    LocationQuery,
    MetricEnvelope,
    ProcessedMetrics,
    RawDataBundle,
    utcnow,
)
from pipelines.ratelimit import RateLimiter
from pipelines.sources.base import ProviderAdapter
from pipelines.sources.bls import BlsEmploymentAdapter
from pipelines.sources.census import AcsAdapter, CensusGeographyAdapter
from pipelines.sources.flood import FloodRiskAdapter
from pipelines.sources.google import GoogleGeocoder, GoogleNewsAdapter, GooglePlacesAdapter
from pipelines.sources.housing_index import HousingIndexAdapter
from pipelines.sources.weather import WeatherAdapter
from scoring.combine import ScoreCombiner
from scoring.components import (
    ComponentScorer,
    classify_transformation,
    historical_pattern_component,
    timing_component,
    transformation_component,
)
from scoring.extract import extract_metrics
from scoring.percentile import (
    PeerDataSource,
    PercentileRanker,
    StoredPeerSource,
    SyntheticPeerSource,
)
from scoring.quality import assess_quality
from scoring.regions import rank_regions
from storage.db import connect, record_run
from storage.housing import HousingMarketDataset, load_dataset
from storage.snapshots import SnapshotStore, slugify

logger = logging.getLogger(__name__)

HIERARCHY_LEVELS = ("tract", "block_group", "place", "county", "state", "zcta")

_LOAD_FROM_SETTINGS = object()


class AnalysisAborted(Exception):
    """Geocoding failed; ``result`` is the structurally complete error result."""

    def __init__(self, result: AnalysisResult) -> None:
        super().__init__(result.error)
        self.result = result


class AnalysisOrchestrator:
    """Run one analysis per ``analyze`` call against injected collaborators.

    Everything with I/O (adapters, peer source, snapshot store, run store) is
    built from ``settings`` unless passed in explicitly. Long-lived callers pass
    one limiter, matcher and dataset to every run; an explicit ``dataset=None``
    means no housing data and skips the load.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        limiter: RateLimiter | None = None,
        dataset: HousingMarketDataset | None | object = _LOAD_FROM_SETTINGS,
        matcher: RegionMatcher | None = None,
        peer_source: PeerDataSource | None = None,
        snapshots: SnapshotStore | None = None,
        conn: duckdb.DuckDBPyConnection | None = None,
    ) -> None:
        self.settings = settings
        self.limiter = limiter or RateLimiter(settings.rate_limits_ms)
        if dataset is _LOAD_FROM_SETTINGS:
            dataset = load_dataset(settings.housing_data_dir)
        self.dataset = dataset
        self.conn = conn
        self.snapshots = snapshots or SnapshotStore(settings.output_dir)
        self.peer_source = peer_source or self._default_peer_source()

        self.geocoder = GoogleGeocoder(settings, self.limiter)
        self.hierarchy = CensusGeographyAdapter(settings, self.limiter)
        self.providers: dict[str, ProviderAdapter] = {
            "census": AcsAdapter(settings, self.limiter),
            "employment": BlsEmploymentAdapter(settings, self.limiter),
            "housing_index": HousingIndexAdapter(
                settings, self.limiter, self.dataset, matcher or RegionMatcher()
            ),
            "places": GooglePlacesAdapter(settings, self.limiter),
            "weather": WeatherAdapter(settings, self.limiter),
            "flood": FloodRiskAdapter(settings, self.limiter),
            "news": GoogleNewsAdapter(settings, self.limiter),
        }

        self.ranker = PercentileRanker()
        self.scorer = ComponentScorer()
        self.combiner = ScoreCombiner()

    def _default_peer_source(self) -> PeerDataSource:
        if self.settings.peer_source == "stored":
            if self.conn is None:
                raise ValueError("PEER_SOURCE=stored requires a run-store connection")
            return StoredPeerSource(self.conn)
        return SyntheticPeerSource(seed=self.settings.peer_seed)

    def configured_providers(self) -> dict[str, bool]:
        configured = self.settings.configured_providers()
        configured["housing_index"] = self.dataset is not None
        return configured

    async def _bounded(self, adapter: ProviderAdapter, context) -> MetricEnvelope:
        timeout = self.settings.provider_timeout_seconds
        try:
            return await asyncio.wait_for(adapter.fetch(context), timeout)
        except asyncio.TimeoutError:
            logger.warning("[%s] no answer within %ss", adapter.name, timeout)
            return MetricEnvelope.missing(adapter.source, f"timed out after {timeout:g}s")

    def _abort(self, meta: AnalysisMeta, geography: MetricEnvelope, started: float) -> AnalysisAborted:
        bundle = RawDataBundle(geography=geography)
        meta.completed_at = utcnow()
        meta.processing_ms = int((time.perf_counter() - started) * 1000)
        result = AnalysisResult(
            status="error",
            error=geography.error or "Geocoding failed",
            meta=meta,
            raw_data=bundle,
            data_quality=assess_quality(bundle),
        )
        self.snapshots.write_error(result)
        logger.error("Analysis of %r aborted: %s", meta.query, result.error)
        return AnalysisAborted(result)

    async def _resolve_geography(
        self, query: LocationQuery, geocoded: MetricEnvelope
    ) -> tuple[GeographyContext, MetricEnvelope]:
        coordinates = Coordinates(**geocoded.value["coordinates"])
        hierarchy = await self._bounded(self.hierarchy, coordinates)
        levels = hierarchy.value if hierarchy.available else {}

        context = GeographyContext(
            query=query.location,
            coordinates=coordinates,
            formatted_address=geocoded.get("formatted_address"),
            **{key: levels.get(key) for key in HIERARCHY_LEVELS},
        )
        geography = MetricEnvelope(
            source=geocoded.source,
            confidence=geocoded.confidence,
            retrieved_at=geocoded.retrieved_at,
            value={
                "coordinates": coordinates.model_dump(),
                "formatted_address": context.formatted_address,
                "place_id": geocoded.get("place_id"),
                "hierarchy": levels or None,
            },
            note=None if hierarchy.available else f"geography hierarchy unavailable: {hierarchy.error}",
        )
        return context, geography

    async def _fan_out(self, context: GeographyContext) -> dict[str, MetricEnvelope]:
        names = list(self.providers)
        envelopes = await asyncio.gather(
            *(self._bounded(self.providers[name], context) for name in names)
        )
        return dict(zip(names, envelopes))

    def score(
        self,
        bundle: RawDataBundle,
        *,
        slug: str,
        query: LocationQuery,
        state: str | None = None,
    ):
        adjusted = extract_metrics(bundle)
        peers = self.peer_source.distributions(adjusted, exclude_slug=slug)
        ranks = self.ranker.rank(adjusted, peers)

        components = self.scorer.score_all(ranks)
        transformation = classify_transformation(adjusted)
        components["transformation_stage"] = transformation_component(transformation)
        components["historical_pattern"] = historical_pattern_component()
        components["investment_timing"] = timing_component(transformation)

        quality = assess_quality(bundle)
        investment = self.combiner.build(
            components, data_quality=quality.overall_score, stage=transformation.stage
        )

        candidates = []
        if query.mode is AnalysisMode.REGION:
            if self.dataset is None:
                logger.warning("Region mode requested without a housing dataset.")
            else:
                candidates = rank_regions(
                    self.dataset, state, peers, query.top_n, ranker=self.ranker, scorer=self.scorer
                )

        processed = ProcessedMetrics(
            adjusted_metrics=adjusted,
            percentile_ranks=ranks,
            components=components,
            transformation_analysis=transformation,
            region_candidates=candidates,
        )
        return processed, investment, quality

    async def analyze(self, query: LocationQuery) -> AnalysisResult:
        started = time.perf_counter()
        slug = slugify(query.location)
        meta = AnalysisMeta(
            query=query.location,
            mode=query.mode,
            top_n=query.top_n if query.mode is AnalysisMode.REGION else None,
            slug=slug,
            providers_configured=self.configured_providers(),
        )
        logger.info("Analyzing %r (mode=%s, slug=%s).", query.location, query.mode.value, slug)

        geocoded = await self._bounded(self.geocoder, query)
        if not geocoded.available:
            raise self._abort(meta, geocoded, started)

        context, geography = await self._resolve_geography(query, geocoded)
        logger.info("Geocoded to %s; fanning out to %d providers.", context.coordinates, len(self.providers))

        envelopes = await self._fan_out(context)
        bundle = RawDataBundle(geography=geography, **envelopes)

        housing_state = bundle.housing_index.get("state")
        processed, investment, quality = self.score(
            bundle, slug=slug, query=query, state=context.state_abbr or housing_state
        )

        meta.completed_at = utcnow()
        meta.processing_ms = int((time.perf_counter() - started) * 1000)
        result = AnalysisResult(
            meta=meta,
            raw_data=bundle,
            processed_metrics=processed,
            investment_score=investment,
            data_quality=quality,
        )
        logger.info(
            "Score for %r: %s (%s); data quality %s.",
            query.location,
            investment.final_score,
            investment.band,
            quality.overall_score,
        )

        self.snapshots.write(result)
        if self.conn is not None:
            written = record_run(self.conn, result)
            logger.info("Recorded run %s with %s metrics.", slug, written)
        return result


async def analyze_async(
    query: LocationQuery,
    settings: Settings | None = None,
    **collaborators,
) -> AnalysisResult:
    settings = settings or Settings.from_env()
    conn = collaborators.pop("conn", None)
    own_conn = conn is None
    if own_conn:
        conn = connect(settings.database_path)
    try:
        orchestrator = AnalysisOrchestrator(settings, conn=conn, **collaborators)
        return await orchestrator.analyze(query)
    finally:
        if own_conn:
            conn.close()


def analyze(
    location: str,
    *,
    mode: AnalysisMode | str = AnalysisMode.POINT,
    top_n: int = 5,
    settings: Settings | None = None,
    **collaborators,
) -> AnalysisResult:
    """Synchronous entry point; raises ``AnalysisAborted`` when geocoding fails."""
    query = LocationQuery(location=location, mode=mode, top_n=top_n)
    return asyncio.run(analyze_async(query, settings, **collaborators))


def main(location: str, *, mode: str = "point", top_n: int = 5) -> int:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    try:
        result = analyze(location, mode=mode, top_n=top_n)
    except AnalysisAborted as exc:
        logger.error("Analysis failed: %s", exc)
        return 1
    for line in result.investment_score.rationale:
        print(line)
    print(f"Snapshot slug: {result.meta.slug}")
    return 0


__all__ = [
    "AnalysisAborted",
    "AnalysisOrchestrator",
    "analyze",
    "analyze_async",
    "main",
]
