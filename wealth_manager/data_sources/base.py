from datetime import date
from typing import Protocol

from wealth_manager.schemas import FundamentalData, PriceBar


class MarketDataProvider(Protocol):
    async def download_price_data(
        self,
        symbol: str,
        start: date | None = None,
        end: date | None = None,
    ) -> list[PriceBar]: ...

    async def download_fundamental_data(self, symbol: str) -> FundamentalData: ...
