from datetime import date

import httpx
import pytest

from wealth_manager.market_data_client import MarketDataClient


@pytest.mark.asyncio
async def test_get_uses_httpx_async_client_get(monkeypatch: pytest.MonkeyPatch):
    client = MarketDataClient("http://market.test", timeout_seconds=10.0)
    calls = {"count": 0}

    async def fake_get(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ):
        calls["count"] += 1
        return httpx.Response(200, json=[], request=httpx.Request("GET", url))

    monkeypatch.setattr(httpx.AsyncClient, "get", fake_get)
    await client.get_prices("AAPL")
    assert calls["count"] == 1


@pytest.mark.asyncio
async def test_get_retries_once_on_network_error(monkeypatch: pytest.MonkeyPatch):
    client = MarketDataClient("http://market.test", timeout_seconds=10.0)
    attempts = {"count": 0}

    async def fake_get(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ):
        attempts["count"] += 1
        if attempts["count"] == 1:
            raise httpx.ConnectError("temporary network issue", request=httpx.Request("GET", url))
        return httpx.Response(200, json=[{"date": "2024-01-02"}], request=httpx.Request("GET", url))

    monkeypatch.setattr(httpx.AsyncClient, "get", fake_get)
    result = await client.get_prices("AAPL")
    assert attempts["count"] == 2
    assert result == [{"date": "2024-01-02"}]


@pytest.mark.asyncio
async def test_get_raises_after_retry_exhausted(monkeypatch: pytest.MonkeyPatch):
    client = MarketDataClient("http://market.test", timeout_seconds=10.0)
    attempts = {"count": 0}

    async def fake_get(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ):
        attempts["count"] += 1
        raise httpx.ConnectError("persistent network issue", request=httpx.Request("GET", url))

    monkeypatch.setattr(httpx.AsyncClient, "get", fake_get)
    with pytest.raises(httpx.ConnectError):
        await client.get_fundamentals("AAPL")
    assert attempts["count"] == 2


@pytest.mark.asyncio
async def test_get_does_not_retry_on_http_status_error(monkeypatch: pytest.MonkeyPatch):
    client = MarketDataClient("http://market.test", timeout_seconds=10.0)
    attempts = {"count": 0}

    async def fake_get(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ):
        attempts["count"] += 1
        return httpx.Response(500, json={"error": "server"}, request=httpx.Request("GET", url))

    monkeypatch.setattr(httpx.AsyncClient, "get", fake_get)
    with pytest.raises(httpx.HTTPStatusError):
        await client.get_fundamentals("AAPL")
    assert attempts["count"] == 1


@pytest.mark.asyncio
async def test_get_prices_sends_date_window(monkeypatch: pytest.MonkeyPatch):
    client = MarketDataClient("http://market.test/", api_key="k-123", timeout_seconds=10.0)
    captured: dict[str, object] = {}

    async def fake_get(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ):
        captured["url"] = url
        captured["params"] = params
        captured["headers"] = headers
        return httpx.Response(200, json=[], request=httpx.Request("GET", url))

    monkeypatch.setattr(httpx.AsyncClient, "get", fake_get)
    await client.get_prices("AAPL", start=date(2024, 1, 1), end=date(2024, 3, 31))
    assert captured["url"] == "http://market.test/api/financial-data/prices/AAPL"
    assert captured["params"] == {"start": "2024-01-01", "end": "2024-03-31"}
    assert captured["headers"]["Authorization"] == "Bearer k-123"


@pytest.mark.asyncio
async def test_get_fundamentals_calls_fundamentals_endpoint(monkeypatch: pytest.MonkeyPatch):
    client = MarketDataClient("http://market.test", timeout_seconds=10.0)
    captured: dict[str, object] = {}

    async def fake_get(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ):
        captured["url"] = url
        captured["params"] = params
        captured["headers"] = headers
        return httpx.Response(200, json={"ok": True}, request=httpx.Request("GET", url))

    monkeypatch.setattr(httpx.AsyncClient, "get", fake_get)
    result = await client.get_fundamentals("MSFT")
    assert result == {"ok": True}
    assert captured["url"] == "http://market.test/api/financial-data/fundamentals/MSFT"
    assert captured["params"] is None
    assert "Authorization" not in captured["headers"]
