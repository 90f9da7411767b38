"""Derived portfolio figures: valuation, summaries and performance."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

from wealth_manager.portfolio_store import HoldingRecord, PortfolioRecord
from wealth_manager.schemas import (
    Holding,
    PerformanceData,
    PerformanceHolding,
    Portfolio,
    PortfolioSummary,
)

QuoteLookup = Callable[[str], tuple[float, float | None] | None]

PERFORMER_LIMIT = 5


def _pct(part: float, whole: float) -> float:
    if not whole:
        return 0.0
    return round(part / whole * 100, 2)


def current_price(record: HoldingRecord, quote: QuoteLookup) -> float:
    latest = quote(record.symbol)
    if latest is None:
        return record.average_cost
    return latest[0]


def value_holdings(records: list[HoldingRecord], quote: QuoteLookup) -> list[Holding]:
    """Price ``records`` and express each as a share of their combined value."""
    prices = {record.id: current_price(record, quote) for record in records}
    total_value = sum(record.quantity * prices[record.id] for record in records)

    holdings: list[Holding] = []
    for record in records:
        price = prices[record.id]
        value = record.quantity * price
        gain = value - record.cost_basis
        holdings.append(
            Holding(
                id=record.id,
                portfolio_id=record.portfolio_id,
                symbol=record.symbol,
                name=record.name,
                asset_type=record.asset_type,
                quantity=record.quantity,
                average_cost=round(record.average_cost, 4),
                current_price=round(price, 2),
                current_value=round(value, 2),
                unrealized_gain_loss=round(gain, 2),
                unrealized_gain_loss_percent=_pct(gain, record.cost_basis),
                allocation_percent=_pct(value, total_value),
                last_updated=record.last_updated,
                created_at=record.created_at,
            )
        )
    return holdings


def build_portfolio(record: PortfolioRecord, holdings: list[HoldingRecord], quote: QuoteLookup) -> Portfolio:
    valued = value_holdings(holdings, quote)
    total_value = sum(holding.quantity * current_price(holding, quote) for holding in holdings)
    return Portfolio(
        id=record.id,
        user_id=record.user_id,
        name=record.name,
        description=record.description,
        total_value=round(total_value, 2),
        is_active=record.is_active,
        created_at=record.created_at,
        updated_at=record.updated_at,
        holdings=valued,
    )


def summarize(records: list[HoldingRecord], quote: QuoteLookup) -> PortfolioSummary:
    holdings = value_holdings(records, quote)
    total_value = sum(record.quantity * current_price(record, quote) for record in records)
    total_cost = sum(record.cost_basis for record in records)
    total_gain = total_value - total_cost

    by_asset_type: dict[str, float] = {}
    for record in records:
        value = record.quantity * current_price(record, quote)
        by_asset_type[record.asset_type] = by_asset_type.get(record.asset_type, 0.0) + value
    asset_allocation = {asset_type: _pct(value, total_value) for asset_type, value in by_asset_type.items()}

    ranked = sorted(holdings, key=lambda item: item.unrealized_gain_loss_percent, reverse=True)
    return PortfolioSummary(
        total_value=round(total_value, 2),
        total_gain_loss=round(total_gain, 2),
        total_gain_loss_percent=_pct(total_gain, total_cost),
        holdings_count=len(holdings),
        asset_allocation=asset_allocation,
        top_performers=ranked[:PERFORMER_LIMIT],
        worst_performers=list(reversed(ranked))[:PERFORMER_LIMIT],
    )


def performance(records: list[HoldingRecord], quote: QuoteLookup) -> PerformanceData:
    rows: list[PerformanceHolding] = []
    total_value = 0.0
    total_cost = 0.0
    for record in records:
        latest = quote(record.symbol)
        price = latest[0] if latest else record.average_cost
        previous = latest[1] if latest else None
        value = record.quantity * price
        gain = value - record.cost_basis
        if previous:
            daily_change = (price - previous) * record.quantity
            daily_change_percent = _pct(price - previous, previous)
        else:
            daily_change = 0.0
            daily_change_percent = 0.0
        total_value += value
        total_cost += record.cost_basis
        rows.append(
            PerformanceHolding(
                symbol=record.symbol,
                name=record.name,
                quantity=record.quantity,
                average_cost=round(record.average_cost, 4),
                current_price=round(price, 2),
                current_value=round(value, 2),
                gain_loss=round(gain, 2),
                gain_loss_percent=_pct(gain, record.cost_basis),
                daily_change=round(daily_change, 2),
                daily_change_percent=daily_change_percent,
                last_updated=record.last_updated,
            )
        )

    total_gain = total_value - total_cost
    return PerformanceData(
        total_value=round(total_value, 2),
        total_cost=round(total_cost, 2),
        total_gain_loss=round(total_gain, 2),
        total_gain_loss_percent=_pct(total_gain, total_cost),
        holdings=rows,
        last_updated=datetime.now(UTC),
    )
