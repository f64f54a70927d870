"""
Prometheus Adapter

Architectural Intent:
- Infrastructure adapter implementing MetricsPort against the Prometheus
  instant-query API (/api/v1/query)
- Maps every "no data" shape to an absent MetricSample: empty vector,
  null, NaN or infinite values

Design Decisions:
- Transport failures and error responses raise DataUnavailable; the
  evaluators degrade them to defaults
"""

import logging
import math
from datetime import datetime, UTC
from typing import Any, Optional
from urllib.parse import urlencode

from helmsman.domain.exceptions import DataUnavailable
from helmsman.domain.value_objects.metric_sample import MetricSample
from helmsman.infrastructure.adapters.http_client import HTTPClient, HTTPRequestError

logger = logging.getLogger(__name__)


class PrometheusAdapter:
    def __init__(self, base_url: str, http: Optional[HTTPClient] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.http = http or HTTPClient()

    async def query(self, expression: str, window: str) -> MetricSample:
        url = f"{self.base_url}/api/v1/query?{urlencode({'query': expression})}"
        try:
            payload = await self.http.request("GET", url)
        except HTTPRequestError as e:
            raise DataUnavailable("prometheus", str(e)) from e
        return parse_query_response(payload, window)


def parse_query_response(payload: Any, window: str) -> MetricSample:
    """Extract the single scalar of an instant query response."""
    if not isinstance(payload, dict) or payload.get("status") != "success":
        error = payload.get("error", "") if isinstance(payload, dict) else payload
        raise DataUnavailable("prometheus", f"query failed: {error}")

    data = payload.get("data") or {}
    result = data.get("result")
    if data.get("resultType") == "scalar":
        raw = result[1] if isinstance(result, list) and len(result) == 2 else None
    elif result:
        raw = (result[0].get("value") or [None, None])[1]
    else:
        raw = None

    if raw is None:
        logger.debug("Empty result for window %s", window)
        return MetricSample.absent(window)
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return MetricSample.absent(window)
    if math.isnan(value) or math.isinf(value):
        return MetricSample.absent(window)
    return MetricSample(value=value, window=window, queried_at=datetime.now(UTC))
