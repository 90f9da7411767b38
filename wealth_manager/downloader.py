"""Batched market data downloads with progress reporting and cancellation."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, timedelta

from wealth_manager.data_sources.base import MarketDataProvider
from wealth_manager.errors import MarketDataError
from wealth_manager.market_store import MarketDataStore
from wealth_manager.schemas import (
    DataKind,
    DownloadProgress,
    DownloadReport,
    FundamentalData,
    PriceBar,
)
from wealth_manager.telemetry import get_logger, timed

logger = get_logger(__name__)

ProgressCallback = Callable[[list[DownloadProgress]], None]

DEFAULT_CANCEL_REASON = "Download was cancelled"


@dataclass
class CancelToken:
    cancelled: bool = False
    reason: str | None = None

    def cancel(self, reason: str | None = None) -> None:
        self.cancelled = True
        self.reason = reason


def normalize_symbols(symbols: Iterable[str]) -> list[str]:
    seen: dict[str, None] = {}
    for raw in symbols:
        symbol = (raw or "").strip().upper()
        if symbol:
            seen.setdefault(symbol, None)
    return list(seen)


class DownloadService:
    def __init__(
        self,
        provider: MarketDataProvider,
        store: MarketDataStore,
        *,
        batch_size: int = 100,
        pause_seconds: float = 1.0,
    ) -> None:
        self.provider = provider
        self.store = store
        self.batch_size = batch_size
        self.pause_seconds = pause_seconds

    async def download_price_history(
        self,
        symbol: str,
        start: date | None = None,
        end: date | None = None,
    ) -> list[PriceBar]:
        try:
            bars = await self.provider.download_price_data(symbol, start=start, end=end)
        except Exception as exc:
            logger.warning("price_download_failed", extra={"symbol": symbol, "error": str(exc)})
            raise MarketDataError(f"Failed to download price data for {symbol}") from exc
        self.store.save_price_data(symbol, bars)
        return bars

    async def download_incremental_price_data(self, symbol: str, last_date: date) -> list[PriceBar]:
        start = last_date + timedelta(days=1)
        end = date.today()
        if start > end:
            return []
        return await self.download_price_history(symbol, start=start, end=end)

    async def download_fundamentals(self, symbol: str) -> FundamentalData:
        try:
            data = await self.provider.download_fundamental_data(symbol)
        except Exception as exc:
            logger.warning("fundamental_download_failed", extra={"symbol": symbol, "error": str(exc)})
            raise MarketDataError(f"Failed to download fundamental data for {symbol}") from exc
        self.store.save_fundamental_data(symbol, data)
        return data

    async def _refresh_prices(self, symbol: str, override: bool) -> int:
        if override:
            try:
                bars = await self.provider.download_price_data(symbol)
            except Exception as exc:
                raise MarketDataError(f"Failed to download price data for {symbol}") from exc
            # Fetch before deleting so a failed download keeps the old series.
            self.store.delete_price_data(symbol)
            self.store.save_price_data(symbol, bars, replace=True)
            return len(bars)

        last_date = self.store.last_available_date(symbol)
        if last_date is not None:
            bars = await self.download_incremental_price_data(symbol, last_date)
        else:
            bars = await self.download_price_history(symbol)
        return len(bars)

    async def _refresh_fundamentals(self, symbol: str, override: bool) -> None:
        try:
            data = await self.provider.download_fundamental_data(symbol)
        except Exception as exc:
            raise MarketDataError(f"Failed to download fundamental data for {symbol}") from exc
        if override:
            self.store.delete_fundamental_data(symbol)
        self.store.save_fundamental_data(symbol, data)

    async def _download_one(
        self,
        symbol: str,
        kind: DataKind,
        entry: DownloadProgress,
        override: bool,
    ) -> int:
        suffix = " (override)" if override else ""
        try:
            if kind == "price":
                count = await self._refresh_prices(symbol, override)
                message = f"Downloaded {count} records{suffix}"
            else:
                await self._refresh_fundamentals(symbol, override)
                count = 0
                message = f"Download complete{suffix}"
        except Exception as exc:
            logger.warning(
                "symbol_download_failed",
                extra={"symbol": symbol, "kind": kind, "override": override, "error": str(exc)},
            )
            entry.status = "error"
            entry.message = "Download failed"
            raise

        entry.progress = 100
        entry.status = "complete"
        entry.message = message
        return count

    async def download_batch(
        self,
        symbols: Iterable[str],
        kinds: Iterable[DataKind],
        on_progress: ProgressCallback | None = None,
        *,
        override: bool = False,
        cancel_token: CancelToken | None = None,
        batch_size: int | None = None,
        pause_seconds: float | None = None,
    ) -> DownloadReport:
        """Download ``kinds`` of data for ``symbols`` in fixed-size batches.

        Every (symbol, kind) pair in a batch runs concurrently and the batch
        waits for all of them to settle before the next one starts. A failed
        pair is recorded as an ``error`` entry and never stops the others.
        ``cancel_token`` is checked before each batch; pairs that have not
        started yet are then marked as cancelled.
        """
        symbol_list = normalize_symbols(symbols)
        kind_list: list[DataKind] = list(dict.fromkeys(kinds))
        size = max(batch_size or self.batch_size, 1)
        pause = self.pause_seconds if pause_seconds is None else pause_seconds

        progress = [DownloadProgress(symbol=symbol, type=kind) for symbol in symbol_list for kind in kind_list]
        report = DownloadReport(total=len(progress))

        def publish() -> None:
            if on_progress is not None:
                on_progress([entry.model_copy() for entry in progress])

        publish()

        batch_count = (len(symbol_list) + size - 1) // size
        for batch_index, offset in enumerate(range(0, len(symbol_list), size), start=1):
            if cancel_token is not None and cancel_token.cancelled:
                reason = cancel_token.reason or DEFAULT_CANCEL_REASON
                for entry in progress:
                    if entry.status == "pending":
                        entry.status = "error"
                        entry.message = f"Cancelled: {reason}"
                publish()
                report.cancelled = True
                report.cancel_reason = reason
                logger.info(
                    "download_batch_cancelled",
                    extra={"batch": batch_index, "batches": batch_count, "reason": reason},
                )
                break

            batch = symbol_list[offset : offset + size]
            entries = progress[offset * len(kind_list) : (offset + len(batch)) * len(kind_list)]
            for entry in entries:
                entry.status = "downloading"
                if override:
                    entry.message = "Downloading (override mode)..."
                else:
                    entry.message = f"Downloading {entry.type} data..."
            publish()

            with timed() as timing:
                results = await asyncio.gather(
                    *(self._download_one(entry.symbol, entry.type, entry, override) for entry in entries),
                    return_exceptions=True,
                )

            successful = 0
            failed = 0
            for result in results:
                if isinstance(result, BaseException):
                    failed += 1
                else:
                    successful += 1
                    report.records_downloaded += result
            report.successful += successful
            report.failed += failed
            publish()

            logger.info(
                "download_batch_completed",
                extra={
                    "batch": batch_index,
                    "batches": batch_count,
                    "successful": successful,
                    "failed": failed,
                    "override": override,
                    "elapsed_ms": round(timing["elapsed_ms"], 1),
                },
            )

            if offset + size < len(symbol_list) and pause > 0:
                await asyncio.sleep(pause)

        report.progress = [entry.model_copy() for entry in progress]
        return report

    async def download_batch_price_data(
        self,
        symbols: Iterable[str],
        on_progress: ProgressCallback | None = None,
        *,
        override: bool = False,
        cancel_token: CancelToken | None = None,
    ) -> DownloadReport:
        return await self.download_batch(
            symbols, ["price"], on_progress, override=override, cancel_token=cancel_token
        )

    async def download_batch_fundamental_data(
        self,
        symbols: Iterable[str],
        on_progress: ProgressCallback | None = None,
        *,
        override: bool = False,
        cancel_token: CancelToken | None = None,
    ) -> DownloadReport:
        return await self.download_batch(
            symbols, ["fundamental"], on_progress, override=override, cancel_token=cancel_token
        )
