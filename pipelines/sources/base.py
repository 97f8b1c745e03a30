"""Adapter contract shared by every external data provider."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from jobs.config import Settings
from pipelines.common import fetch_json
from pipelines.model import Confidence, MetricEnvelope
from pipelines.ratelimit import RateLimiter

logger = logging.getLogger(__name__)


class ProviderAdapter:
    """Speak one provider's protocol and always answer with a ``MetricEnvelope``.

    Subclasses implement ``_fetch``; ``fetch`` guarantees that a missing
    credential short-circuits and that no network or parsing error crosses the
    adapter boundary.
    """

    name: str = "provider"
    source: str = "provider"
    rate_key: str | None = None

    def __init__(self, settings: Settings, limiter: RateLimiter) -> None:
        self.settings = settings
        self.limiter = limiter

    def is_configured(self) -> bool:
        return True

    async def fetch(self, context: Any) -> MetricEnvelope:
        if not self.is_configured():
            logger.info("[%s] not configured; skipping.", self.name)
            return MetricEnvelope.missing(self.source, f"{self.name} not configured")
        try:
            envelope = await self._fetch(context)
        except httpx.TimeoutException:
            envelope = MetricEnvelope.missing(self.source, "timeout")
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code if exc.response is not None else "?"
            envelope = MetricEnvelope.missing(self.source, f"http_{status}")
        except Exception as exc:  # noqa: BLE001
            envelope = MetricEnvelope.missing(self.source, str(exc) or type(exc).__name__)

        if envelope.confidence is Confidence.MISSING:
            logger.warning("[%s] degraded to missing: %s", self.name, envelope.error)
        else:
            logger.info("[%s] %s", self.name, envelope.confidence.value)
        return envelope

    async def _fetch(self, context: Any) -> MetricEnvelope:
        raise NotImplementedError

    async def _get_json(self, url: str, **kwargs: Any) -> Any:
        """Rate-limited request through the shared HTTP helper."""
        if self.rate_key:
            await self.limiter.acquire(self.rate_key)
        return await fetch_json(
            url,
            timeout=self.settings.http_timeout_seconds,
            attempts=self.settings.http_max_attempts,
            **kwargs,
        )


__all__ = ["ProviderAdapter"]
