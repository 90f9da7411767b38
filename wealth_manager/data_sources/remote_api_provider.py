from datetime import date
from typing import Any

from pydantic import BaseModel

from wealth_manager.market_data_client import MarketDataClient
from wealth_manager.schemas import (
    BalanceSheet,
    CashFlow,
    CompanyInfo,
    FinancialStatements,
    FundamentalData,
    IncomeStatement,
    PriceBar,
)

# Wire names that do not follow plain camelCase of the field name.
_WIRE_NAMES = {
    "trailing_pe": "trailingPE",
    "forward_pe": "forwardPE",
    "diluted_eps": "dilutedEPS",
}

_TEXT_FIELDS = {"name", "sector", "industry"}


def _wire_name(field_name: str) -> str:
    if field_name in _WIRE_NAMES:
        return _WIRE_NAMES[field_name]
    head, *rest = field_name.split("_")
    return head + "".join(part.title() for part in rest)


class RemoteAPIMarketDataProvider:
    def __init__(self, client: MarketDataClient) -> None:
        self.client = client

    @staticmethod
    def _parse_required_float(value: Any, field_name: str, context: str) -> float:
        try:
            if value is None:
                raise ValueError
            return float(value)
        except (TypeError, ValueError):
            raise ValueError(f"{context} has invalid required numeric field '{field_name}'")

    @staticmethod
    def _parse_optional_float(value: Any) -> float | None:
        try:
            if value is None:
                return None
            return float(value)
        except (TypeError, ValueError):
            return None

    @staticmethod
    def _parse_date(value: Any, context: str) -> date:
        try:
            return date.fromisoformat(str(value)[:10])
        except (TypeError, ValueError):
            raise ValueError(f"{context} has invalid date '{value}'")

    def _parse_section(self, raw: Any, model: type[BaseModel], context: str) -> BaseModel:
        if not isinstance(raw, dict):
            raise ValueError(f"{context} must be an object")
        values: dict[str, Any] = {}
        for field_name in model.model_fields:
            wire = _wire_name(field_name)
            value = raw.get(wire, raw.get(field_name))
            if field_name in _TEXT_FIELDS:
                values[field_name] = str(value) if value is not None else ""
            elif field_name == "ex_dividend_date":
                values[field_name] = self._parse_date(value, context) if value else None
            else:
                values[field_name] = self._parse_required_float(value, wire, context)
        return model(**values)

    async def download_price_data(
        self,
        symbol: str,
        start: date | None = None,
        end: date | None = None,
    ) -> list[PriceBar]:
        response = await self.client.get_prices(symbol, start=start, end=end)
        if isinstance(response, list):
            raw_bars = response
        elif isinstance(response, dict) and isinstance(response.get("prices"), list):
            raw_bars = response["prices"]
        else:
            raise ValueError("Expected price list or {prices: [...]} from market data API")

        bars: list[PriceBar] = []
        for index, item in enumerate(raw_bars):
            context = f"Price bar at index {index}"
            if not isinstance(item, dict):
                raise ValueError(f"{context} must be an object")
            if not item.get("date"):
                raise ValueError(f"{context} is missing required date")
            close = self._parse_required_float(item.get("close"), "close", context)
            adjusted = self._parse_optional_float(item.get("adjustedClose", item.get("adjusted_close")))
            volume = self._parse_optional_float(item.get("volume"))
            bars.append(
                PriceBar(
                    date=self._parse_date(item["date"], context),
                    open=self._parse_required_float(item.get("open"), "open", context),
                    high=self._parse_required_float(item.get("high"), "high", context),
                    low=self._parse_required_float(item.get("low"), "low", context),
                    close=close,
                    volume=int(volume or 0),
                    adjusted_close=adjusted if adjusted is not None else close,
                )
            )
        bars.sort(key=lambda bar: bar.date)
        return bars

    async def download_fundamental_data(self, symbol: str) -> FundamentalData:
        response = await self.client.get_fundamentals(symbol)
        if not isinstance(response, dict):
            raise ValueError("Expected fundamentals object from market data API")

        statements = response.get("financialStatements")
        if not isinstance(statements, dict):
            raise ValueError("Fundamentals payload is missing financialStatements")

        return FundamentalData(
            symbol=response.get("symbol") or symbol,
            company_info=self._parse_section(response.get("companyInfo"), CompanyInfo, "companyInfo"),
            financial_statements=FinancialStatements(
                income_statement=self._parse_section(
                    statements.get("incomeStatement"), IncomeStatement, "incomeStatement"
                ),
                balance_sheet=self._parse_section(
                    statements.get("balanceSheet"), BalanceSheet, "balanceSheet"
                ),
                cash_flow=self._parse_section(statements.get("cashFlow"), CashFlow, "cashFlow"),
            ),
        )
