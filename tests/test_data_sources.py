import asyncio
import time
from datetime import date

import pytest

from wealth_manager.data_sources import build_provider
from wealth_manager.data_sources.mock_provider import MockMarketDataProvider, years_before
from wealth_manager.data_sources.remote_api_provider import RemoteAPIMarketDataProvider
from wealth_manager.errors import MarketDataError
from wealth_manager.market_data_client import MarketDataClient


def _api_provider() -> RemoteAPIMarketDataProvider:
    return RemoteAPIMarketDataProvider(MarketDataClient("http://market.test", timeout_seconds=10.0))


def test_build_provider_returns_mock_for_mock_source():
    provider = build_provider("mock", _api_provider())
    assert isinstance(provider, MockMarketDataProvider)


def test_build_provider_prefers_configured_mock_instance():
    mock_provider = MockMarketDataProvider(seed=7)
    provider = build_provider("mock", _api_provider(), mock_provider)
    assert provider is mock_provider


def test_build_provider_returns_api_for_remote_source():
    api_provider = _api_provider()
    provider = build_provider("remote_api", api_provider)
    assert provider is api_provider


def test_years_before_handles_leap_day():
    assert years_before(date(2024, 2, 29), 1) == date(2023, 2, 28)
    assert years_before(date(2024, 3, 15), 40) == date(1984, 3, 15)


@pytest.mark.asyncio
async def test_mock_prices_cover_weekdays_in_window_only():
    provider = MockMarketDataProvider(seed=1)
    bars = await provider.download_price_data("AAPL", start=date(2024, 1, 1), end=date(2024, 1, 14))

    # 2024-01-01 is a Monday: two full weeks of trading days.
    assert len(bars) == 10
    assert all(bar.date.weekday() < 5 for bar in bars)
    assert bars[0].date == date(2024, 1, 1)
    assert bars[-1].date == date(2024, 1, 12)
    for bar in bars:
        assert bar.low <= bar.open <= bar.high
        assert bar.close >= 1.0
        assert 1_000_000 <= bar.volume < 11_000_000
        assert bar.adjusted_close == bar.close


@pytest.mark.asyncio
async def test_mock_prices_are_deterministic_with_seed():
    first = await MockMarketDataProvider(seed=42).download_price_data(
        "MSFT", start=date(2024, 2, 1), end=date(2024, 2, 29)
    )
    second = await MockMarketDataProvider(seed=42).download_price_data(
        "MSFT", start=date(2024, 2, 1), end=date(2024, 2, 29)
    )
    other_symbol = await MockMarketDataProvider(seed=42).download_price_data(
        "VTI", start=date(2024, 2, 1), end=date(2024, 2, 29)
    )
    assert first == second
    assert first != other_symbol


@pytest.mark.asyncio
async def test_mock_prices_empty_when_start_after_end():
    provider = MockMarketDataProvider(seed=3)
    bars = await provider.download_price_data("AAPL", start=date(2024, 5, 2), end=date(2024, 5, 1))
    assert bars == []


@pytest.mark.asyncio
async def test_mock_fundamentals_names_company_after_symbol():
    data = await MockMarketDataProvider(seed=5).download_fundamental_data("NVDA")
    assert data.symbol == "NVDA"
    assert data.company_info.name == "NVDA Corporation"
    assert data.company_info.sector in {"Technology", "Healthcare", "Finance", "Consumer", "Energy"}
    assert data.financial_statements.cash_flow.investing_cash_flow <= 0


@pytest.mark.asyncio
async def test_mock_provider_injects_failures():
    provider = MockMarketDataProvider(seed=9, failure_rate=1.0)
    with pytest.raises(MarketDataError, match="Simulated price provider failure for AAPL"):
        await provider.download_price_data("AAPL", start=date(2024, 1, 1), end=date(2024, 1, 5))


@pytest.mark.asyncio
async def test_full_history_generation_keeps_event_loop_responsive():
    provider = MockMarketDataProvider(seed=11, history_years=40)
    gaps: list[float] = []
    done = asyncio.Event()

    async def heartbeat() -> None:
        last = time.monotonic()
        while not done.is_set():
            await asyncio.sleep(0.01)
            now = time.monotonic()
            gaps.append(now - last)
            last = now

    beat = asyncio.create_task(heartbeat())
    results = await asyncio.gather(*(provider.download_price_data(symbol) for symbol in ("AAPL", "MSFT", "VTI")))
    done.set()
    await beat

    assert all(len(bars) > 10_000 for bars in results)
    assert gaps
    assert max(gaps) < 0.5
