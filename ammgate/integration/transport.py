"""
HTTP transport for gateway REST calls.

The API client depends on the `HttpTransport` protocol, not on httpx
directly, so tests can plug in a fake and callers can share a configured
`httpx.AsyncClient`.

Concrete implementations:
    - HttpxTransport (default, uses httpx.AsyncClient)

Transports never retry and never interpret status codes: they return the
status and parsed body, and raise `TransportError` only when no HTTP
response was received or the body is not JSON.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol, runtime_checkable

import httpx

from .errors import TransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransportResponse:
    status_code: int
    body: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


@runtime_checkable
class HttpTransport(Protocol):
    """Async transport for JSON requests."""

    async def request_json(
        self,
        method: str,
        url: str,
        *,
        json_body: Optional[Mapping[str, Any]] = None,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> TransportResponse:
        """Send a request and return status plus parsed JSON body.

        Raises:
            TransportError: On connection failures, timeouts, TLS errors or
                a non-JSON response body.
        """
        ...


def _parse_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError as exc:
        if response.status_code >= 400:
            # Proxies answer errors with HTML/plain text; keep it as the message.
            return response.text
        raise TransportError(
            f"non-JSON response from {response.request.url} (HTTP {response.status_code})"
        ) from exc


class HttpxTransport:
    """Default transport using httpx.AsyncClient.

    If no client is supplied a short-lived one is opened per request.
    """

    def __init__(self, timeout: float = 30.0, *, client: Optional[httpx.AsyncClient] = None) -> None:
        if not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ValueError("timeout must be positive")
        self._timeout = float(timeout)
        self._client = client

    async def request_json(
        self,
        method: str,
        url: str,
        *,
        json_body: Optional[Mapping[str, Any]] = None,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> TransportResponse:
        hdrs = {"Content-Type": "application/json", "Accept": "application/json"}
        if headers:
            hdrs.update(headers)
        try:
            if self._client is not None:
                response = await self._client.request(
                    method, url, json=json_body, params=params, headers=hdrs, timeout=self._timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.request(method, url, json=json_body, params=params, headers=hdrs)
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {url} failed: {exc.__class__.__name__}: {exc}") from exc
        logger.debug("%s %s -> %d", method, url, response.status_code)
        return TransportResponse(status_code=response.status_code, body=_parse_body(response))

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
