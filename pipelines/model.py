"""Canonical data model shared by provider adapters, scoring and persistence."""

from __future__ import annotations

from datetime import datetime, UTC
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Confidence(str, Enum):
    """Degree of trust attached to an externally sourced datum."""

    GOOD = "good"
    PARTIAL = "partial"
    INTERPOLATED = "interpolated"
    MISSING = "missing"


def utcnow() -> datetime:
    return datetime.now(UTC)


class MetricEnvelope(BaseModel):
    """Value + confidence + timestamp + source wrapper produced by every provider.

    ``confidence`` is the discriminant: a ``missing`` envelope never carries a
    value, so callers must branch on it instead of probing optional fields.
    """

    model_config = ConfigDict(frozen=True)

    source: str = Field(
        ..., description="Upstream URL or logical provider name (e.g. 'census_acs')."
    )
    confidence: Confidence = Field(
        ..., description="Trust level of the payload; 'missing' implies no value."
    )
    retrieved_at: Optional[datetime] = Field(
        default=None, description="When the payload was acquired."
    )
    value: Optional[Any] = Field(
        default=None, description="Provider payload normalized to plain JSON types."
    )
    error: Optional[str] = Field(
        default=None, description="Why the provider degraded, when it did."
    )
    note: Optional[str] = Field(
        default=None, description="Explanatory note for partial results."
    )

    @model_validator(mode="after")
    def _missing_has_no_value(self) -> "MetricEnvelope":
        if self.confidence is Confidence.MISSING and self.value is not None:
            raise ValueError("a 'missing' envelope cannot carry a value")
        return self

    @property
    def available(self) -> bool:
        return self.confidence is not Confidence.MISSING and self.value is not None

    @classmethod
    def missing(
        cls, source: str, error: str, *, note: str | None = None
    ) -> "MetricEnvelope":
        return cls(
            source=source,
            confidence=Confidence.MISSING,
            retrieved_at=utcnow(),
            error=error,
            note=note,
        )

    @classmethod
    def ok(
        cls,
        source: str,
        value: Any,
        *,
        confidence: Confidence = Confidence.GOOD,
        note: str | None = None,
        error: str | None = None,
    ) -> "MetricEnvelope":
        return cls(
            source=source,
            confidence=confidence,
            retrieved_at=utcnow(),
            value=value,
            note=note,
            error=error,
        )

    def get(self, key: str, default: Any = None) -> Any:
        """Read one field of a mapping payload; absent for missing envelopes."""
        if not isinstance(self.value, dict):
            return default
        return self.value.get(key, default)


class AnalysisMode(str, Enum):
    POINT = "point"
    REGION = "region"


class LocationQuery(BaseModel):
    """Free-text or ZIP location plus the requested analysis mode."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    location: str = Field(..., min_length=1)
    mode: AnalysisMode = AnalysisMode.POINT
    top_n: int = Field(default=5, ge=1, le=50)

    @property
    def is_zip(self) -> bool:
        return self.location.isdigit() and len(self.location) == 5


class Coordinates(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float


class GeographyContext(BaseModel):
    """Resolved coordinates plus the Census hierarchy used as lookup keys.

    Built once per run right after geocoding succeeds and never mutated.
    """

    model_config = ConfigDict(frozen=True)

    query: str
    coordinates: Coordinates
    formatted_address: Optional[str] = None
    tract: Optional[dict[str, Any]] = None
    block_group: Optional[dict[str, Any]] = None
    place: Optional[dict[str, Any]] = None
    county: Optional[dict[str, Any]] = None
    state: Optional[dict[str, Any]] = None
    zcta: Optional[dict[str, Any]] = None

    @property
    def tract_fips(self) -> str | None:
        if not self.tract:
            return None
        parts = (self.tract.get("STATE"), self.tract.get("COUNTY"), self.tract.get("TRACT"))
        if not all(parts):
            return None
        return "".join(parts)

    @property
    def state_abbr(self) -> str | None:
        if not self.state:
            return None
        return self.state.get("STUSAB")


def _not_fetched(source: str) -> MetricEnvelope:
    return MetricEnvelope.missing(source, "not fetched")


class RawDataBundle(BaseModel):
    """Per-run provider payloads. Every key is always present."""

    geography: MetricEnvelope = Field(default_factory=lambda: _not_fetched("geography"))
    census: MetricEnvelope = Field(default_factory=lambda: _not_fetched("census"))
    employment: MetricEnvelope = Field(default_factory=lambda: _not_fetched("employment"))
    housing_index: MetricEnvelope = Field(
        default_factory=lambda: _not_fetched("housing_index")
    )
    places: MetricEnvelope = Field(default_factory=lambda: _not_fetched("places"))
    weather: MetricEnvelope = Field(default_factory=lambda: _not_fetched("weather"))
    flood: MetricEnvelope = Field(default_factory=lambda: _not_fetched("flood"))
    news: MetricEnvelope = Field(default_factory=lambda: _not_fetched("news"))


PROVIDER_NAMES: tuple[str, ...] = tuple(RawDataBundle.model_fields)


class AdjustedMetric(BaseModel):
    """A provider value discounted by confidence and recency multipliers."""

    raw_value: Optional[float] = None
    adjusted_value: Optional[float] = None
    confidence: Confidence
    confidence_multiplier: float
    recency_multiplier: float
    retrieved_at: Optional[datetime] = None


class PercentileRank(BaseModel):
    percentile: Optional[float] = None
    peer_count: int = 0
    peer_mean: Optional[float] = None
    rank: Optional[int] = None
    value: Optional[float] = None
    note: Optional[str] = None


class MetricContribution(BaseModel):
    percentile: Optional[float] = None
    weight: float
    contribution: float = 0.0
    note: Optional[str] = None


class ComponentScore(BaseModel):
    score: float
    confidence: Confidence
    available_metrics: int = 0
    total_metrics: int = 0
    details: dict[str, MetricContribution] = Field(default_factory=dict)
    note: Optional[str] = None


class TransformationAnalysis(BaseModel):
    stage: str
    signals: list[str] = Field(default_factory=list)
    risks: list[str] = Field(default_factory=list)
    historical_indicators: dict[str, str] = Field(default_factory=dict)
    timing_score: int = 0
    timing_band: str = "Avoid"
    timing_rationale: list[str] = Field(default_factory=list)


class RegionCandidate(BaseModel):
    region: str
    score: float
    market_momentum: Optional[float] = None
    supply_demand: Optional[float] = None
    zhvi_1y_growth: Optional[float] = None


class ProcessedMetrics(BaseModel):
    adjusted_metrics: dict[str, AdjustedMetric] = Field(default_factory=dict)
    percentile_ranks: dict[str, PercentileRank] = Field(default_factory=dict)
    components: dict[str, ComponentScore] = Field(default_factory=dict)
    transformation_analysis: Optional[TransformationAnalysis] = None
    region_candidates: list[RegionCandidate] = Field(default_factory=list)


class InvestmentScore(BaseModel):
    final_score: int = Field(default=0, ge=0, le=100)
    band: str = "Avoid"
    component_scores: dict[str, ComponentScore] = Field(default_factory=dict)
    data_coverage: float = 0.0
    rationale: list[str] = Field(default_factory=list)
    calculated_at: datetime = Field(default_factory=utcnow)


class SourceQuality(BaseModel):
    score: int
    confidence: Confidence
    weight: int


class DataQualityReport(BaseModel):
    overall_score: int = 0
    source_qualities: dict[str, SourceQuality] = Field(default_factory=dict)
    assessment_date: datetime = Field(default_factory=utcnow)


class AnalysisMeta(BaseModel):
    query: str
    mode: AnalysisMode
    top_n: Optional[int] = None
    slug: str
    created_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    processing_ms: Optional[int] = None
    providers_configured: dict[str, bool] = Field(default_factory=dict)


class AnalysisResult(BaseModel):
    """Structurally complete outcome of one analysis run, success or abort."""

    status: str = "completed"
    error: Optional[str] = None
    meta: AnalysisMeta
    raw_data: RawDataBundle = Field(default_factory=RawDataBundle)
    processed_metrics: ProcessedMetrics = Field(default_factory=ProcessedMetrics)
    investment_score: InvestmentScore = Field(default_factory=InvestmentScore)
    data_quality: DataQualityReport = Field(default_factory=DataQualityReport)


__all__ = [
    "AdjustedMetric",
    "AnalysisMeta",
    "AnalysisMode",
    "AnalysisResult",
    "ComponentScore",
    "Confidence",
    "Coordinates",
    "DataQualityReport",
    "GeographyContext",
    "InvestmentScore",
    "LocationQuery",
    "MetricContribution",
    "MetricEnvelope",
    "PercentileRank",
    "PROVIDER_NAMES",
    "ProcessedMetrics",
    "RawDataBundle",
    "RegionCandidate",
    "SourceQuality",
    "TransformationAnalysis",
    "utcnow",
]
