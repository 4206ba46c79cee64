"""
Gateway REST client.

Thin, typed-by-path wrappers over the settlement gateway endpoints. Every
non-2xx response is raised as `GatewayError` with its parsed error body;
transport failures surface as `TransportError`. No method here retries.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote

from .errors import ErrorBody, GatewayError, TransportError
from .transport import HttpTransport

logger = logging.getLogger(__name__)


def _seg(value: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValueError("path segment must be a non-empty string")
    return quote(value, safe="")


class GatewayApiClient:
    def __init__(self, base_url: str, transport: HttpTransport) -> None:
        if not isinstance(base_url, str) or not base_url.startswith(("http://", "https://")):
            raise ValueError(f"invalid base_url: {base_url!r}")
        self._base_url = base_url.rstrip("/")
        self._transport = transport
        self._access_token: Optional[str] = None

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def has_access_token(self) -> bool:
        return self._access_token is not None

    def set_access_token(self, token: Optional[str]) -> None:
        self._access_token = token

    async def request(
        self,
        method: str,
        path: str,
        *,
        body: Optional[Mapping[str, Any]] = None,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        headers: Dict[str, str] = {}
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        url = self._base_url + path
        clean_params = {k: v for k, v in (params or {}).items() if v is not None} or None
        resp = await self._transport.request_json(method, url, json_body=body, params=clean_params, headers=headers)
        if not resp.ok:
            err = ErrorBody.from_dict(resp.body, fallback_message=f"HTTP {resp.status_code}")
            logger.debug("%s %s rejected: %s", method, path, err.error_code or resp.status_code)
            raise GatewayError(resp.status_code, err)
        return resp.body

    async def get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, body: Mapping[str, Any]) -> Any:
        result = await self.request("POST", path, body=body)
        if result is None:
            raise TransportError(f"empty response body from POST {path}")
        return result

    # Auth

    async def auth_challenge(self, public_key: str) -> Any:
        return await self.post("/v1/auth/challenge", {"publicKey": public_key})

    async def auth_verify(self, public_key: str, signature: str) -> Any:
        return await self.post("/v1/auth/verify", {"publicKey": public_key, "signature": signature})

    # Hosts and integrators

    async def register_host(self, body: Mapping[str, Any]) -> Any:
        return await self.post("/v1/hosts/register", body)

    async def get_host(self, namespace: str) -> Any:
        return await self.get(f"/v1/hosts/{_seg(namespace)}")

    async def withdraw_host_fees(self, body: Mapping[str, Any]) -> Any:
        return await self.post("/v1/hosts/withdraw-fees", body)

    async def get_pool_host_fees(self, body: Mapping[str, Any]) -> Any:
        return await self.post("/v1/hosts/pool-fees", body)

    async def get_host_fees(self, body: Mapping[str, Any]) -> Any:
        return await self.post("/v1/hosts/host-fees", body)

    async def withdraw_integrator_fees(self, body: Mapping[str, Any]) -> Any:
        return await self.post("/v1/integrators/withdraw-fees", body)

    # Pools

    async def create_constant_product_pool(self, body: Mapping[str, Any]) -> Any:
        return await self.post("/v1/pools/constant-product", body)

    async def create_single_sided_pool(self, body: Mapping[str, Any]) -> Any:
        return await self.post("/v1/pools/single-sided", body)

    async def confirm_initial_deposit(self, body: Mapping[str, Any]) -> Any:
        return await self.post("/v1/pools/single-sided/confirm-initial-deposit", body)

    async def list_pools(self, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.get("/v1/pools", params)

    async def get_pool(self, pool_id: str) -> Any:
        return await self.get(f"/v1/pools/{_seg(pool_id)}")

    async def get_lp_position(self, pool_id: str, provider_public_key: str) -> Any:
        return await self.get(f"/v1/pools/{_seg(pool_id)}/lp/{_seg(provider_public_key)}")

    # Liquidity

    async def add_liquidity(self, body: Mapping[str, Any]) -> Any:
        return await self.post("/v1/liquidity/add", body)

    async def simulate_add_liquidity(self, body: Mapping[str, Any]) -> Any:
        return await self.post("/v1/liquidity/add/simulate", body)

    async def remove_liquidity(self, body: Mapping[str, Any]) -> Any:
        return await self.post("/v1/liquidity/remove", body)

    async def simulate_remove_liquidity(self, body: Mapping[str, Any]) -> Any:
        return await self.post("/v1/liquidity/remove/simulate", body)

    # Concentrated liquidity

    async def create_concentrated_pool(self, body: Mapping[str, Any]) -> Any:
        return await self.post("/v1/concentrated/pools", body)

    async def increase_liquidity(self, body: Mapping[str, Any]) -> Any:
        return await self.post("/v1/concentrated/liquidity/increase", body)

    async def decrease_liquidity(self, body: Mapping[str, Any]) -> Any:
        return await self.post("/v1/concentrated/liquidity/decrease", body)

    async def collect_fees(self, body: Mapping[str, Any]) -> Any:
        return await self.post("/v1/concentrated/fees/collect", body)

    async def list_concentrated_positions(self, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.get("/v1/concentrated/positions", params)

    # Swaps

    async def swap(self, body: Mapping[str, Any]) -> Any:
        return await self.post("/v1/swap", body)

    async def simulate_swap(self, body: Mapping[str, Any]) -> Any:
        return await self.post("/v1/swap/simulate", body)

    async def route_swap(self, body: Mapping[str, Any]) -> Any:
        return await self.post("/v1/route-swap", body)

    async def simulate_route_swap(self, body: Mapping[str, Any]) -> Any:
        return await self.post("/v1/route-swap/simulate", body)

    # Escrow

    async def create_escrow(self, body: Mapping[str, Any]) -> Any:
        return await self.post("/v1/escrow/create", body)

    async def fund_escrow(self, body: Mapping[str, Any]) -> Any:
        return await self.post("/v1/escrow/fund", body)

    async def claim_escrow(self, body: Mapping[str, Any]) -> Any:
        return await self.post("/v1/escrow/claim", body)

    async def get_escrow(self, escrow_id: str) -> Any:
        return await self.get(f"/v1/escrow/{_seg(escrow_id)}")

    # Clawback

    async def clawback(self, body: Mapping[str, Any]) -> Any:
        return await self.post("/v1/clawback", body)

    async def check_clawback_eligibility(self, body: Mapping[str, Any]) -> Any:
        return await self.post("/v1/clawback/check-eligibility", body)

    async def list_clawbackable_transfers(self, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.get("/v1/clawback/transfers", params)

    # Config and liveness

    async def feature_status(self) -> Any:
        return await self.get("/v1/config/feature-status")

    async def min_amounts(self) -> Any:
        return await self.get("/v1/config/min-amounts")

    async def allowed_assets(self) -> Any:
        return await self.get("/v1/config/allowed-assets")

    async def ping(self) -> Any:
        return await self.get("/v1/ping")
