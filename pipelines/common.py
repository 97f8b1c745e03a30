"""HTTP access and scalar normalization shared by the provider adapters."""

from __future__ import annotations

import math
from typing import Any, Mapping

import httpx
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_ATTEMPTS = 1
_BACKOFF = wait_exponential(min=1, max=16)

_SENTINEL_STRINGS = {"", ".", "N/A", "NA", "null", "Null", "-"}


async def fetch_json(
    url: str,
    *,
    method: str = "GET",
    params: Mapping[str, Any] | None = None,
    headers: Mapping[str, str] | None = None,
    json: Any = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    attempts: int = DEFAULT_ATTEMPTS,
) -> Any:
    """Issue one provider request and decode its JSON body.

    ``attempts`` caps how often the request is sent; with the default of one a
    failing provider costs exactly one call per run. Non-2xx answers raise
    ``httpx.HTTPStatusError`` for the adapter boundary to classify.
    """

    retrying = AsyncRetrying(wait=_BACKOFF, stop=stop_after_attempt(max(1, attempts)), reraise=True)
    async for attempt in retrying:
        with attempt:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.request(
                    method.upper(), url, params=params, headers=headers, json=json
                )
            response.raise_for_status()
            return response.json()
    return None  # pragma: no cover


def coerce_float(value: Any) -> float | None:
    """Convert provider scalars to float, treating sentinels and NaN as absent."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        numeric = float(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if stripped in _SENTINEL_STRINGS:
            return None
        try:
            numeric = float(stripped)
        except ValueError:
            return None
    else:
        return None

    if math.isnan(numeric) or math.isinf(numeric):
        return None
    return numeric


def safe_ratio(
    numerator: float | None, denominator: float | None, *, scale: float = 1.0
) -> float | None:
    """``numerator / denominator * scale`` or ``None`` when either side is unusable."""
    if numerator is None or denominator is None or denominator == 0:
        return None
    return round(numerator / denominator * scale, 2)


__all__ = [
    "DEFAULT_ATTEMPTS",
    "DEFAULT_TIMEOUT_SECONDS",
    "coerce_float",
    "fetch_json",
    "safe_ratio",
]
