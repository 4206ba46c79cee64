# [TESTER] v1

from __future__ import annotations

import json

import httpx
import pytest
from pytest_httpx import HTTPXMock

from ammgate.integration.api_client import GatewayApiClient
from ammgate.integration.errors import GatewayError, RecoveryStrategy, TransportError
from ammgate.integration.transport import HttpxTransport

BASE = "http://gw.test"


@pytest.mark.asyncio
async def test_transport_returns_status_and_json(httpx_mock: HTTPXMock) -> None:
    httpx_mock.add_response(method="POST", url=f"{BASE}/v1/swap", json={"accepted": True}, status_code=200)
    resp = await HttpxTransport(5).request_json(
        "POST", f"{BASE}/v1/swap", json_body={"a": "1"}, headers={"Authorization": "Bearer t"}
    )
    assert resp.ok
    assert resp.body == {"accepted": True}
    req = httpx_mock.get_requests()[0]
    assert req.headers["Authorization"] == "Bearer t"
    assert req.headers["Content-Type"] == "application/json"
    assert json.loads(req.read()) == {"a": "1"}


@pytest.mark.asyncio
async def test_transport_keeps_plain_text_error_bodies(httpx_mock: HTTPXMock) -> None:
    httpx_mock.add_response(url=f"{BASE}/v1/ping", text="bad gateway", status_code=502)
    resp = await HttpxTransport(5).request_json("GET", f"{BASE}/v1/ping")
    assert not resp.ok
    assert resp.status_code == 502
    assert resp.body == "bad gateway"


@pytest.mark.asyncio
async def test_transport_rejects_non_json_success(httpx_mock: HTTPXMock) -> None:
    httpx_mock.add_response(url=f"{BASE}/v1/ping", text="ok", status_code=200)
    with pytest.raises(TransportError):
        await HttpxTransport(5).request_json("GET", f"{BASE}/v1/ping")


@pytest.mark.asyncio
async def test_transport_wraps_connection_errors(httpx_mock: HTTPXMock) -> None:
    httpx_mock.add_exception(httpx.ConnectError("refused"))
    with pytest.raises(TransportError) as ei:
        await HttpxTransport(5).request_json("GET", f"{BASE}/v1/ping")
    assert "ConnectError" in str(ei.value)


def test_transport_timeout_must_be_positive() -> None:
    with pytest.raises(ValueError):
        HttpxTransport(0)


@pytest.mark.asyncio
async def test_api_client_raises_classified_gateway_error(httpx_mock: HTTPXMock) -> None:
    httpx_mock.add_response(
        method="POST",
        url=f"{BASE}/v1/swap",
        status_code=400,
        json={"errorCode": "FSAG-4202", "errorCategory": "Business", "message": "slippage exceeded"},
    )
    api = GatewayApiClient(BASE, HttpxTransport(5))
    with pytest.raises(GatewayError) as ei:
        await api.swap({"poolId": "p"})
    assert ei.value.status_code == 400
    assert ei.value.error_code == "FSAG-4202"
    assert ei.value.recovery is RecoveryStrategy.AUTO_REFUND


@pytest.mark.asyncio
async def test_api_client_sends_bearer_token_and_quotes_segments(httpx_mock: HTTPXMock) -> None:
    httpx_mock.add_response(method="GET", url=f"{BASE}/v1/pools/a%2Fb", json={"lpPubkey": "a/b"})
    api = GatewayApiClient(BASE + "/", HttpxTransport(5))
    assert api.base_url == BASE
    api.set_access_token("tok")
    assert api.has_access_token
    await api.get_pool("a/b")
    assert httpx_mock.get_requests()[0].headers["Authorization"] == "Bearer tok"

    api.set_access_token(None)
    assert not api.has_access_token


@pytest.mark.asyncio
async def test_api_client_drops_unset_query_params(httpx_mock: HTTPXMock) -> None:
    httpx_mock.add_response(method="GET", url=f"{BASE}/v1/clawback/transfers?limit=5", json={"transfers": []})
    api = GatewayApiClient(BASE, HttpxTransport(5))
    assert await api.list_clawbackable_transfers({"limit": 5, "offset": None}) == {"transfers": []}
    assert "Authorization" not in httpx_mock.get_requests()[0].headers


@pytest.mark.asyncio
async def test_api_client_rejects_empty_post_body(httpx_mock: HTTPXMock) -> None:
    httpx_mock.add_response(method="POST", url=f"{BASE}/v1/clawback", status_code=200)
    api = GatewayApiClient(BASE, HttpxTransport(5))
    with pytest.raises(TransportError):
        await api.clawback({"sparkTransferId": "tx"})


def test_api_client_requires_http_base_url() -> None:
    with pytest.raises(ValueError):
        GatewayApiClient("ftp://gw.test", HttpxTransport(5))
