import asyncio
import random
from datetime import date, timedelta

from wealth_manager.errors import MarketDataError
from wealth_manager.mock_data import MOCK_INDUSTRIES, MOCK_SECTORS
from wealth_manager.schemas import (
    BalanceSheet,
    CashFlow,
    CompanyInfo,
    FinancialStatements,
    FundamentalData,
    IncomeStatement,
    PriceBar,
)
from wealth_manager.telemetry import get_logger


logger = get_logger(__name__)


def years_before(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        # Feb 29 in a non-leap target year
        return day.replace(year=day.year - years, day=28)


class MockMarketDataProvider:
    """Generates plausible random price and fundamental data.

    With a ``seed`` every symbol gets its own deterministic random stream, so
    the same (seed, symbol, window) always yields the same bars.
    """

    def __init__(
        self,
        *,
        history_years: int = 40,
        seed: int | None = None,
        failure_rate: float = 0.0,
        simulate_latency: bool = False,
    ) -> None:
        self.history_years = history_years
        self.seed = seed
        self.failure_rate = failure_rate
        self.simulate_latency = simulate_latency
        self._random = random.Random(seed)

    def _rng(self, symbol: str, kind: str) -> random.Random:
        if self.seed is None:
            return random.Random()
        return random.Random(f"{self.seed}:{kind}:{symbol}")

    async def _sleep(self, low: float, high: float) -> None:
        if self.simulate_latency:
            await asyncio.sleep(low + self._random.random() * (high - low))

    def _maybe_fail(self, symbol: str, kind: str) -> None:
        if self.failure_rate and self._random.random() < self.failure_rate:
            logger.debug("mock_provider_injected_failure", extra={"symbol": symbol, "kind": kind})
            raise MarketDataError(f"Simulated {kind} provider failure for {symbol}")

    async def download_price_data(
        self,
        symbol: str,
        start: date | None = None,
        end: date | None = None,
    ) -> list[PriceBar]:
        await self._sleep(1.0, 3.0)
        self._maybe_fail(symbol, "price")

        today = date.today()
        end = end or today
        start = start or years_before(today, self.history_years)
        # CPU-bound for long windows, so it runs off the event loop.
        return await asyncio.to_thread(self._generate_bars, symbol, start, end)

    def _generate_bars(self, symbol: str, start: date, end: date) -> list[PriceBar]:
        rng = self._rng(symbol, "price")

        bars: list[PriceBar] = []
        price = 100 + rng.random() * 200
        day = start
        while day <= end:
            if day.weekday() < 5:
                volatility = 0.02 + rng.random() * 0.03
                change = (rng.random() - 0.5) * volatility * price
                price = max(price + change, 1.0)

                high = price + rng.random() * price * 0.02
                low = price - rng.random() * price * 0.02
                open_ = low + rng.random() * (high - low)
                bars.append(
                    PriceBar(
                        date=day,
                        open=round(open_, 2),
                        high=round(high, 2),
                        low=round(low, 2),
                        close=round(price, 2),
                        volume=rng.randrange(1_000_000, 11_000_000),
                        adjusted_close=round(price, 2),
                    )
                )
            day += timedelta(days=1)
        return bars

    async def download_fundamental_data(self, symbol: str) -> FundamentalData:
        await self._sleep(2.0, 5.0)
        self._maybe_fail(symbol, "fundamental")

        rng = self._rng(symbol, "fundamental")

        def amount(scale: float, floor: float) -> float:
            return float(int(rng.random() * scale + floor))

        return FundamentalData(
            symbol=symbol,
            company_info=CompanyInfo(
                name=f"{symbol} Corporation",
                sector=rng.choice(MOCK_SECTORS),
                industry=rng.choice(MOCK_INDUSTRIES),
                market_cap=amount(1e12, 1e8),
                enterprise_value=amount(1e12, 1e8),
                trailing_pe=rng.random() * 30 + 5,
                forward_pe=rng.random() * 25 + 10,
                peg_ratio=rng.random() * 2 + 0.5,
                price_to_sales=rng.random() * 5 + 1,
                price_to_book=rng.random() * 10 + 1,
                enterprise_to_revenue=rng.random() * 10 + 2,
                enterprise_to_ebitda=rng.random() * 15 + 5,
                beta=rng.random() * 2,
                fifty_two_week_high=150 + rng.random() * 100,
                fifty_two_week_low=50 + rng.random() * 50,
                dividend_yield=rng.random() * 5,
                dividend_rate=rng.random() * 10,
                ex_dividend_date=date.today() - timedelta(days=rng.randrange(0, 90)),
                payout_ratio=rng.random() * 0.5,
                dividend_per_share=rng.random() * 5,
            ),
            financial_statements=FinancialStatements(
                income_statement=IncomeStatement(
                    total_revenue=amount(1e11, 1e7),
                    gross_profit=amount(5e10, 5e6),
                    operating_income=amount(2e10, 2e6),
                    net_income=amount(1e10, 1e6),
                    earnings_per_share=rng.random() * 10 + 1,
                    diluted_eps=rng.random() * 8 + 0.5,
                ),
                balance_sheet=BalanceSheet(
                    total_assets=amount(2e11, 2e7),
                    total_liabilities=amount(1e11, 1e7),
                    total_stockholder_equity=amount(1e11, 1e7),
                    current_assets=amount(5e10, 5e6),
                    current_liabilities=amount(2.5e10, 2.5e6),
                    total_debt=amount(5e10, 5e6),
                ),
                cash_flow=CashFlow(
                    operating_cash_flow=amount(2e10, 2e6),
                    investing_cash_flow=-amount(1e10, 1e6),
                    financing_cash_flow=amount(1e10, 1e6),
                    free_cash_flow=amount(1.5e10, 1.5e6),
                ),
            ),
        )
