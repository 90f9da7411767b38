from datetime import date, timedelta

import pytest

from wealth_manager.data_sources.mock_provider import MockMarketDataProvider
from wealth_manager.downloader import CancelToken, DownloadService, normalize_symbols
from wealth_manager.errors import MarketDataError
from wealth_manager.market_store import MarketDataStore
from wealth_manager.schemas import DownloadProgress, PriceBar


def _bar(day: date, close: float = 10.0) -> PriceBar:
    return PriceBar(date=day, open=close, high=close, low=close, close=close, volume=100, adjusted_close=close)


HISTORY = [_bar(date(2024, 1, 2)), _bar(date(2024, 1, 3)), _bar(date(2024, 1, 4))]


class FakeProvider:
    def __init__(self, failing: tuple[str, ...] = ()):
        self.failing = set(failing)
        self.price_calls: list[tuple[str, date | None, date | None]] = []
        self._fundamentals = MockMarketDataProvider(seed=11)

    async def download_price_data(self, symbol: str, start: date | None = None, end: date | None = None):
        self.price_calls.append((symbol, start, end))
        if symbol in self.failing:
            raise RuntimeError(f"no data for {symbol}")
        if start is None:
            return list(HISTORY)
        return [_bar(start, 15.0)]

    async def download_fundamental_data(self, symbol: str):
        if symbol in self.failing:
            raise RuntimeError(f"no data for {symbol}")
        return await self._fundamentals.download_fundamental_data(symbol)


def _service(provider: FakeProvider, store: MarketDataStore | None = None, batch_size: int = 100) -> DownloadService:
    return DownloadService(provider, store or MarketDataStore(), batch_size=batch_size, pause_seconds=0)


def test_normalize_symbols_strips_uppercases_and_dedupes():
    assert normalize_symbols([" aapl", "MSFT", "AAPL ", "", "vti"]) == ["AAPL", "MSFT", "VTI"]


@pytest.mark.asyncio
async def test_download_batch_processes_every_symbol_in_batches():
    provider = FakeProvider()
    service = _service(provider, batch_size=2)
    snapshots: list[list[DownloadProgress]] = []

    report = await service.download_batch(["AAPL", "MSFT", "VTI", "NVDA", "AMZN"], ["price"], snapshots.append)

    assert report.total == 5
    assert report.successful == 5
    assert report.failed == 0
    assert report.records_downloaded == 15
    assert report.cancelled is False
    assert all(entry.status == "complete" and entry.progress == 100 for entry in report.progress)
    assert report.progress[0].message == "Downloaded 3 records"
    assert [call[0] for call in provider.price_calls] == ["AAPL", "MSFT", "VTI", "NVDA", "AMZN"]

    # initial snapshot, then one before and one after each of the three batches
    assert len(snapshots) == 7
    assert all(entry.status == "pending" for entry in snapshots[0])
    assert [entry.status for entry in snapshots[1]] == ["downloading", "downloading", "pending", "pending", "pending"]
    assert snapshots[1][0].message == "Downloading price data..."


@pytest.mark.asyncio
async def test_download_batch_orders_progress_symbol_major():
    service = _service(FakeProvider())
    report = await service.download_batch(["AAPL", "MSFT"], ["price", "fundamental"])
    assert [(entry.symbol, entry.type) for entry in report.progress] == [
        ("AAPL", "price"),
        ("AAPL", "fundamental"),
        ("MSFT", "price"),
        ("MSFT", "fundamental"),
    ]
    assert report.progress[1].message == "Download complete"
    assert service.store.get_symbol("MSFT").status == "complete"


@pytest.mark.asyncio
async def test_download_batch_isolates_failures():
    service = _service(FakeProvider(failing=("BAD",)))
    report = await service.download_batch(["AAPL", "BAD", "MSFT"], ["price"])

    assert report.successful == 2
    assert report.failed == 1
    failed = report.progress[1]
    assert failed.symbol == "BAD"
    assert failed.status == "error"
    assert failed.message == "Download failed"
    assert service.store.get_symbol("BAD") is None
    assert service.store.get_symbol("MSFT") is not None


@pytest.mark.asyncio
async def test_cancel_marks_remaining_entries_and_stops():
    provider = FakeProvider()
    service = _service(provider, batch_size=1)
    token = CancelToken()

    def on_progress(snapshot: list[DownloadProgress]) -> None:
        if snapshot[0].status == "complete":
            token.cancel("Stopped by test")

    report = await service.download_batch(
        ["AAPL", "MSFT", "VTI"], ["price"], on_progress, cancel_token=token
    )

    assert report.cancelled is True
    assert report.cancel_reason == "Stopped by test"
    assert report.successful == 1
    assert report.progress[0].status == "complete"
    assert [entry.message for entry in report.progress[1:]] == ["Cancelled: Stopped by test"] * 2
    assert [call[0] for call in provider.price_calls] == ["AAPL"]


@pytest.mark.asyncio
async def test_cancel_without_reason_uses_default_message():
    token = CancelToken()
    token.cancel()
    report = await _service(FakeProvider()).download_batch(["AAPL"], ["price"], cancel_token=token)
    assert report.cancel_reason == "Download was cancelled"
    assert report.progress[0].message == "Cancelled: Download was cancelled"


@pytest.mark.asyncio
async def test_incremental_refresh_fetches_only_new_days():
    provider = FakeProvider()
    store = MarketDataStore()
    store.save_price_data("AAPL", [_bar(date(2024, 1, 5))])
    service = _service(provider, store)

    report = await service.download_batch(["AAPL"], ["price"])

    assert provider.price_calls == [("AAPL", date(2024, 1, 6), date.today())]
    assert report.records_downloaded == 1
    assert store.last_available_date("AAPL") == date(2024, 1, 6)
    assert len(store.get_price_data("AAPL")) == 2


@pytest.mark.asyncio
async def test_incremental_refresh_skips_when_up_to_date():
    provider = FakeProvider()
    service = _service(provider)
    bars = await service.download_incremental_price_data("AAPL", date.today())
    future = await service.download_incremental_price_data("AAPL", date.today() + timedelta(days=3))
    assert bars == []
    assert future == []
    assert provider.price_calls == []


@pytest.mark.asyncio
async def test_override_replaces_stored_series():
    provider = FakeProvider()
    store = MarketDataStore()
    store.save_price_data("AAPL", [_bar(date(2023, 6, 1)), _bar(date(2024, 1, 5))])
    service = _service(provider, store)
    snapshots: list[list[DownloadProgress]] = []

    report = await service.download_batch(["AAPL"], ["price"], snapshots.append, override=True)

    assert provider.price_calls == [("AAPL", None, None)]
    assert [bar.date for bar in store.get_price_data("AAPL")] == [bar.date for bar in HISTORY]
    assert report.progress[0].message == "Downloaded 3 records (override)"
    assert snapshots[1][0].message == "Downloading (override mode)..."


@pytest.mark.asyncio
async def test_failed_override_keeps_existing_series():
    store = MarketDataStore()
    store.save_price_data("BAD", [_bar(date(2024, 1, 5))])
    service = _service(FakeProvider(failing=("BAD",)), store)

    report = await service.download_batch(["BAD"], ["price"], override=True)

    assert report.failed == 1
    assert [bar.date for bar in store.get_price_data("BAD")] == [date(2024, 1, 5)]


@pytest.mark.asyncio
async def test_download_price_history_wraps_provider_errors():
    service = _service(FakeProvider(failing=("BAD",)))
    with pytest.raises(MarketDataError, match="Failed to download price data for BAD"):
        await service.download_price_history("BAD")


@pytest.mark.asyncio
async def test_batch_wrappers_select_data_kind():
    service = _service(FakeProvider())
    prices = await service.download_batch_price_data(["AAPL"])
    fundamentals = await service.download_batch_fundamental_data(["AAPL"])
    assert [entry.type for entry in prices.progress] == ["price"]
    assert [entry.type for entry in fundamentals.progress] == ["fundamental"]
    assert service.store.get_fundamental_data("AAPL").company_info.name == "AAPL Corporation"


@pytest.mark.asyncio
async def test_download_fundamentals_saves_to_store():
    service = _service(FakeProvider(failing=("BAD",)))
    data = await service.download_fundamentals("AAPL")

    assert service.store.get_fundamental_data("AAPL") == data
    assert service.store.get_symbol("AAPL").status == "partial"
    with pytest.raises(MarketDataError, match="Failed to download fundamental data for BAD"):
        await service.download_fundamentals("BAD")
