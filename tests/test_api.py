"""Tests for the FastAPI endpoints."""

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from lzswap.api.app import create_app
from lzswap.config import get_settings
from lzswap.routing.remote import RemoteQuoteGateway

from conftest import ONE_ETH, ROUTER, WALLET

CORS = {
    "access-control-allow-origin": "*",
    "access-control-allow-methods": "GET, POST, PUT, DELETE, OPTIONS",
    "access-control-allow-headers": "Content-Type, Authorization",
}


def upstream(handler) -> RemoteQuoteGateway:
    return RemoteQuoteGateway(
        server_url="http://quote.test",
        router_address=ROUTER,
        transport=httpx.MockTransport(handler),
    )


def ok_handler(request):
    return httpx.Response(200, json={
        "quote": "2000000000",
        "route": [[{"type": "v3-pool"}]],
        "methodParameters": {"calldata": "0x3593564c", "value": "0x0de0b6b3a7640000", "to": ROUTER},
    })


@pytest.fixture
async def client_for():
    """Build a test client around an app serving the given gateway."""
    clients = []

    async def build(gateway=None):
        app = create_app(gateway=gateway)
        client = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
        clients.append(client)
        return client

    yield build

    for client in clients:
        await client.aclose()


@pytest.fixture
async def client(client_for):
    return await client_for(upstream(ok_handler))


@pytest.fixture
def body(eth, usdc):
    return {
        "tokenIn": eth.to_dict(),
        "tokenOut": usdc.to_dict(),
        "amountIn": ONE_ETH,
        "walletAddress": WALLET,
    }


def assert_cors(response):
    for name, value in CORS.items():
        assert response.headers[name] == value


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    @pytest.mark.asyncio
    async def test_health_check(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "lzswap"

    @pytest.mark.asyncio
    async def test_detailed_health(self, client):
        response = await client.get("/health/detailed")

        assert response.status_code == 200
        data = response.json()
        assert data["quote_backend"] == "remote"
        assert "environment" in data["config"]
        assert data["config"]["quote"]["server_url"] == "***"


class TestSwapEndpoint:
    """Tests for POST /api/swap."""

    @pytest.mark.asyncio
    async def test_quote(self, client, body):
        response = await client.post("/api/swap", json=body)

        assert response.status_code == 200
        data = response.json()
        assert data["quote"] == "2000.0000"
        assert data["route"] == {"to": ROUTER, "calldata": "0x3593564c", "value": ONE_ETH}
        assert data["routeDetails"] == {"route": [[{"type": "v3-pool"}]]}
        assert_cors(response)

    @pytest.mark.asyncio
    async def test_preflight(self, client):
        response = await client.options("/api/swap")

        assert response.status_code == 204
        assert_cors(response)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["tokenIn", "tokenOut", "amountIn", "walletAddress"])
    async def test_missing_parameter(self, client, body, missing):
        del body[missing]

        response = await client.post("/api/swap", json=body)

        assert response.status_code == 400
        assert response.json() == {"error": "Missing required parameters"}
        assert_cors(response)

    @pytest.mark.asyncio
    async def test_invalid_amount(self, client, body):
        body["amountIn"] = "1.5"

        response = await client.post("/api/swap", json=body)

        assert response.status_code == 400
        assert "amountIn" in response.json()["error"]

    @pytest.mark.asyncio
    async def test_non_json_body(self, client):
        response = await client.post(
            "/api/swap", content=b"not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_upstream_failure(self, client_for, body):
        client = await client_for(upstream(lambda request: httpx.Response(503)))

        response = await client.post("/api/swap", json=body)

        assert response.status_code == 502
        assert response.json() == {"error": "Failed to fetch from /quote"}
        assert_cors(response)

    @pytest.mark.asyncio
    async def test_no_route(self, client_for, body):
        client = await client_for(upstream(lambda request: httpx.Response(200, json={"errorCode": "NO_ROUTE"})))

        response = await client.post("/api/swap", json=body)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_missing_server_url(self, client_for, body, monkeypatch):
        monkeypatch.delenv("SERVER_URL", raising=False)
        get_settings.cache_clear()
        client = await client_for()

        response = await client.post("/api/swap", json=body)

        assert response.status_code == 500
        assert response.json() == {"error": "SERVER_URL environment variable is missing"}
        assert_cors(response)


class TestTokenEndpoint:
    @pytest.mark.asyncio
    async def test_list_tokens(self, client):
        response = await client.get("/api/tokens", params={"chainId": 42161})

        assert response.status_code == 200
        data = response.json()
        assert data["chainId"] == 42161
        assert {t["symbol"] for t in data["tokens"]} >= {"ETH", "USDC"}
