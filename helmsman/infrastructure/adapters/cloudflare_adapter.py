"""
Cloudflare Load Balancer Adapter

Architectural Intent:
- Implements LoadBalancerPort against the Cloudflare v4 API
- Pool membership is read from and written to default_pool_ids of one
  load balancer; the PATCH replaces the whole list atomically

Design Decisions:
- A response with success=false is an error even on HTTP 200
"""

import logging
from typing import Any, Optional

from helmsman.infrastructure.adapters.http_client import HTTPClient

logger = logging.getLogger(__name__)


class CloudflareAPIError(Exception):
    pass


class CloudflareAdapter:
    def __init__(
        self,
        api_url: str,
        zone_id: str,
        api_token: str,
        http: Optional[HTTPClient] = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.zone_id = zone_id
        self._api_token = api_token
        self.http = http or HTTPClient(timeout=30.0)

    def _url(self, load_balancer_id: str) -> str:
        if self.zone_id:
            return f"{self.api_url}/zones/{self.zone_id}/load_balancers/{load_balancer_id}"
        return f"{self.api_url}/load_balancers/{load_balancer_id}"

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_token}"}

    async def get_pools(self, load_balancer_id: str) -> list[str]:
        response = await self.http.request(
            "GET", self._url(load_balancer_id), headers=self._headers()
        )
        result = self._unwrap(response, "get load balancer")
        return list(result.get("default_pool_ids") or [])

    async def set_pools(
        self, load_balancer_id: str, pools: list[str], description: str
    ) -> None:
        response = await self.http.request(
            "PATCH",
            self._url(load_balancer_id),
            headers=self._headers(),
            body={"default_pool_ids": pools, "description": description},
        )
        self._unwrap(response, "update load balancer")
        logger.info("Load balancer %s pools set to %s", load_balancer_id, ",".join(pools))

    @staticmethod
    def _unwrap(response: Any, action: str) -> dict:
        if not isinstance(response, dict) or not response.get("success"):
            errors = response.get("errors") if isinstance(response, dict) else response
            raise CloudflareAPIError(f"Cloudflare {action} failed: {errors}")
        return response.get("result") or {}
