"""
HTTP Client

Architectural Intent:
- Thin JSON-over-HTTP helper shared by the Prometheus, Cloudflare, Slack
  and PagerDuty adapters
- Uses stdlib urllib for the HTTP layer, run in the default executor so the
  event loop is never blocked

Design Decisions:
- Non-2xx responses raise HTTPRequestError carrying the status and body
- Every request has a timeout
"""

import asyncio
import json
import logging
import urllib.error
import urllib.request
from typing import Any, Optional

logger = logging.getLogger(__name__)


class HTTPRequestError(Exception):
    def __init__(self, url: str, status: Optional[int], body: str = "") -> None:
        self.url = url
        self.status = status
        self.body = body
        super().__init__(f"HTTP {status} from {url}: {body[:200]}")


class HTTPClient:
    def __init__(self, timeout: float = 10.0) -> None:
        self.timeout = timeout

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[dict[str, str]] = None,
        body: Optional[Any] = None,
    ) -> Any:
        """Send a request and decode the JSON response (None when empty)."""

        def _send():
            data = json.dumps(body).encode() if body is not None else None
            req = urllib.request.Request(url, data=data, method=method)
            req.add_header("Accept", "application/json")
            if data is not None:
                req.add_header("Content-Type", "application/json")
            for name, value in (headers or {}).items():
                req.add_header(name, value)
            try:
                with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                    raw = resp.read().decode()
            except urllib.error.HTTPError as e:
                raise HTTPRequestError(url, e.code, e.read().decode(errors="replace"))
            except urllib.error.URLError as e:
                raise HTTPRequestError(url, None, str(e.reason))
            if not raw.strip():
                return None
            try:
                return json.loads(raw)
            except json.JSONDecodeError:
                return raw

        logger.debug("%s %s", method, url)
        return await asyncio.get_event_loop().run_in_executor(None, _send)
