"""In-memory market data store.

Holds three collections keyed by symbol: symbol metadata, daily price series
and fundamentals. It stands in for a document database, so every operation
connects lazily the way a driver would.
"""

from datetime import UTC, date, datetime

from wealth_manager.schemas import (
    DatabaseSize,
    DatabaseStats,
    DatabaseSymbol,
    FundamentalData,
    PriceBar,
    SymbolStatus,
)
from wealth_manager.telemetry import get_logger

logger = get_logger(__name__)

# Rough per-document footprints used for size estimates.
SYMBOL_ENTRY_BYTES = 500
PRICE_SERIES_BYTES = 10_000
FUNDAMENTALS_BYTES = 2_000


def symbol_status(price_available: bool, fundamental_available: bool) -> SymbolStatus:
    if price_available and fundamental_available:
        return "complete"
    if price_available or fundamental_available:
        return "partial"
    return "missing"


class MarketDataStore:
    def __init__(self, uri: str = "memory://wealth-manager") -> None:
        self.uri = uri
        self._connected = False
        self._symbols: dict[str, DatabaseSymbol] = {}
        self._prices: dict[str, list[PriceBar]] = {}
        self._fundamentals: dict[str, FundamentalData] = {}

    @property
    def is_connected(self) -> bool:
        return self._connected

    def connect(self) -> None:
        if self._connected:
            return
        self._symbols = {}
        self._prices = {}
        self._fundamentals = {}
        self._connected = True
        logger.info("market_store_connected", extra={"uri": self.uri})

    def disconnect(self) -> None:
        if not self._connected:
            return
        self._symbols = {}
        self._prices = {}
        self._fundamentals = {}
        self._connected = False
        logger.info("market_store_disconnected", extra={"uri": self.uri})

    def _ensure_connected(self) -> None:
        if not self._connected:
            self.connect()

    def _touch_symbol(self, symbol: str, **changes: object) -> DatabaseSymbol:
        existing = self._symbols.get(symbol) or DatabaseSymbol(symbol=symbol, name=symbol)
        updated = existing.model_copy(update={**changes, "last_updated": datetime.now(UTC)})
        updated.status = symbol_status(updated.price_data_available, updated.fundamental_data_available)
        self._symbols[symbol] = updated
        return updated

    def save_price_data(self, symbol: str, bars: list[PriceBar], replace: bool = False) -> int:
        """Store ``bars`` for ``symbol`` and return the size of the stored series.

        Bars are merged by date unless ``replace`` is set, in which case the
        new bars become the whole series.
        """
        self._ensure_connected()
        merged: dict[date, PriceBar] = {}
        if not replace:
            merged = {bar.date: bar for bar in self._prices.get(symbol, [])}
        for bar in bars:
            merged[bar.date] = bar
        series = [merged[day] for day in sorted(merged)]
        self._prices[symbol] = series
        self._touch_symbol(
            symbol,
            price_data_available=bool(series),
            price_data_count=len(series),
        )
        logger.debug(
            "market_store_prices_saved",
            extra={"symbol": symbol, "received": len(bars), "stored": len(series), "replace": replace},
        )
        return len(series)

    def save_fundamental_data(self, symbol: str, data: FundamentalData) -> None:
        self._ensure_connected()
        self._fundamentals[symbol] = data
        changes: dict[str, object] = {
            "fundamental_data_available": True,
            "fundamental_data_count": 1,
        }
        if data.company_info.name:
            changes["name"] = data.company_info.name
        self._touch_symbol(symbol, **changes)
        logger.debug("market_store_fundamentals_saved", extra={"symbol": symbol})

    def get_symbols(self) -> list[DatabaseSymbol]:
        self._ensure_connected()
        return [self._symbols[symbol] for symbol in sorted(self._symbols)]

    def get_symbol(self, symbol: str) -> DatabaseSymbol | None:
        self._ensure_connected()
        return self._symbols.get(symbol)

    def get_price_data(
        self,
        symbol: str,
        start: date | None = None,
        end: date | None = None,
    ) -> list[PriceBar]:
        self._ensure_connected()
        series = self._prices.get(symbol, [])
        return [
            bar
            for bar in series
            if (start is None or bar.date >= start) and (end is None or bar.date <= end)
        ]

    def get_fundamental_data(self, symbol: str) -> FundamentalData | None:
        self._ensure_connected()
        return self._fundamentals.get(symbol)

    def last_available_date(self, symbol: str) -> date | None:
        self._ensure_connected()
        series = self._prices.get(symbol)
        return series[-1].date if series else None

    def latest_quote(self, symbol: str) -> tuple[float, float | None] | None:
        """Return ``(last_close, previous_close)`` or ``None`` without prices."""
        self._ensure_connected()
        series = self._prices.get(symbol)
        if not series:
            return None
        previous = series[-2].close if len(series) > 1 else None
        return series[-1].close, previous

    def delete_symbol(self, symbol: str) -> bool:
        self._ensure_connected()
        existed = symbol in self._symbols or symbol in self._prices or symbol in self._fundamentals
        self._symbols.pop(symbol, None)
        self._prices.pop(symbol, None)
        self._fundamentals.pop(symbol, None)
        if existed:
            logger.info("market_store_symbol_deleted", extra={"symbol": symbol})
        return existed

    def delete_price_data(self, symbol: str) -> bool:
        self._ensure_connected()
        removed = self._prices.pop(symbol, None) is not None
        if symbol in self._symbols:
            self._touch_symbol(symbol, price_data_available=False, price_data_count=0)
        return removed

    def delete_fundamental_data(self, symbol: str) -> bool:
        self._ensure_connected()
        removed = self._fundamentals.pop(symbol, None) is not None
        if symbol in self._symbols:
            self._touch_symbol(symbol, fundamental_data_available=False, fundamental_data_count=0)
        return removed

    def stats(self) -> DatabaseStats:
        self._ensure_connected()
        symbols = list(self._symbols.values())
        updates = [item.last_updated for item in symbols if item.last_updated is not None]
        return DatabaseStats(
            total_symbols=len(symbols),
            symbols_with_price_data=sum(1 for item in symbols if item.price_data_available),
            symbols_with_fundamental_data=sum(1 for item in symbols if item.fundamental_data_available),
            total_price_records=sum(len(series) for series in self._prices.values()),
            total_fundamental_records=len(self._fundamentals),
            last_update=max(updates) if updates else None,
        )

    def size(self) -> DatabaseSize:
        self._ensure_connected()
        symbols_size = len(self._symbols)
        prices_size = len(self._prices)
        fundamentals_size = len(self._fundamentals)
        return DatabaseSize(
            symbols_collection_size=symbols_size,
            price_data_collection_size=prices_size,
            fundamental_data_collection_size=fundamentals_size,
            total_estimated_bytes=(
                symbols_size * SYMBOL_ENTRY_BYTES
                + prices_size * PRICE_SERIES_BYTES
                + fundamentals_size * FUNDAMENTALS_BYTES
            ),
        )
