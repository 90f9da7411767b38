from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from itertools import count

from wealth_manager.errors import NotFoundError, ValidationFailedError
from wealth_manager.schemas import (
    AssetType,
    HoldingCreate,
    HoldingUpdate,
    PortfolioCreate,
    PortfolioUpdate,
)
from wealth_manager.telemetry import get_logger

logger = get_logger(__name__)


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass
class HoldingRecord:
    id: int
    portfolio_id: int
    symbol: str
    asset_type: AssetType
    quantity: float
    average_cost: float
    name: str | None = None
    created_at: datetime = field(default_factory=_now)
    last_updated: datetime = field(default_factory=_now)

    @property
    def cost_basis(self) -> float:
        return self.quantity * self.average_cost


@dataclass
class PortfolioRecord:
    id: int
    user_id: int
    name: str
    description: str | None = None
    is_active: bool = True
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime | None = None


def merge_positions(quantity: float, average_cost: float, extra_quantity: float, extra_cost: float) -> tuple[float, float]:
    """Combine two lots into one position with a cost-weighted average."""
    total = quantity + extra_quantity
    if total <= 0:
        return 0.0, 0.0
    return total, (quantity * average_cost + extra_quantity * extra_cost) / total


class PortfolioStore:
    """In-memory portfolios and holdings, scoped per user."""

    def __init__(self) -> None:
        self._portfolios: dict[int, PortfolioRecord] = {}
        self._holdings: dict[int, HoldingRecord] = {}
        self._portfolio_ids = count(1)
        self._holding_ids = count(1)

    # Portfolios

    def list_portfolios(self, user_id: int, active_only: bool = False) -> list[PortfolioRecord]:
        return [
            record
            for record in sorted(self._portfolios.values(), key=lambda item: item.id)
            if record.user_id == user_id and (record.is_active or not active_only)
        ]

    def get_portfolio(self, user_id: int, portfolio_id: int) -> PortfolioRecord:
        record = self._portfolios.get(portfolio_id)
        if record is None or record.user_id != user_id:
            raise NotFoundError(f"Portfolio {portfolio_id} not found")
        return record

    def create_portfolio(self, user_id: int, payload: PortfolioCreate) -> PortfolioRecord:
        record = PortfolioRecord(
            id=next(self._portfolio_ids),
            user_id=user_id,
            name=payload.name,
            description=payload.description,
        )
        self._portfolios[record.id] = record
        for holding in payload.holdings:
            self.add_holding(user_id, record.id, holding)
        logger.info(
            "portfolio_created",
            extra={"portfolio_id": record.id, "user_id": user_id, "holdings": len(payload.holdings)},
        )
        return record

    def update_portfolio(self, user_id: int, portfolio_id: int, payload: PortfolioUpdate) -> PortfolioRecord:
        record = self.get_portfolio(user_id, portfolio_id)
        changes = payload.model_dump(exclude_unset=True)
        if changes.get("name") is None:
            changes.pop("name", None)
        if changes.get("is_active") is None:
            changes.pop("is_active", None)
        for key, value in changes.items():
            setattr(record, key, value)
        record.updated_at = _now()
        return record

    def delete_portfolio(self, user_id: int, portfolio_id: int) -> None:
        self.get_portfolio(user_id, portfolio_id)
        for holding in self.list_holdings(user_id, portfolio_id):
            del self._holdings[holding.id]
        del self._portfolios[portfolio_id]
        logger.info("portfolio_deleted", extra={"portfolio_id": portfolio_id, "user_id": user_id})

    # Holdings

    def list_holdings(self, user_id: int, portfolio_id: int) -> list[HoldingRecord]:
        self.get_portfolio(user_id, portfolio_id)
        return [
            record
            for record in sorted(self._holdings.values(), key=lambda item: item.id)
            if record.portfolio_id == portfolio_id
        ]

    def get_holding(self, user_id: int, portfolio_id: int, holding_id: int) -> HoldingRecord:
        self.get_portfolio(user_id, portfolio_id)
        record = self._holdings.get(holding_id)
        if record is None or record.portfolio_id != portfolio_id:
            raise NotFoundError(f"Holding {holding_id} not found in portfolio {portfolio_id}")
        return record

    def _find_by_symbol(self, portfolio_id: int, symbol: str) -> HoldingRecord | None:
        for record in self._holdings.values():
            if record.portfolio_id == portfolio_id and record.symbol == symbol:
                return record
        return None

    def _touch_portfolio(self, portfolio_id: int) -> None:
        self._portfolios[portfolio_id].updated_at = _now()

    def add_holding(self, user_id: int, portfolio_id: int, payload: HoldingCreate) -> HoldingRecord:
        self.get_portfolio(user_id, portfolio_id)
        existing = self._find_by_symbol(portfolio_id, payload.symbol)
        if existing is not None:
            existing.quantity, existing.average_cost = merge_positions(
                existing.quantity, existing.average_cost, payload.quantity, payload.average_cost
            )
            existing.name = payload.name or existing.name
            existing.last_updated = _now()
            self._touch_portfolio(portfolio_id)
            return existing

        record = HoldingRecord(
            id=next(self._holding_ids),
            portfolio_id=portfolio_id,
            symbol=payload.symbol,
            name=payload.name,
            asset_type=payload.asset_type,
            quantity=payload.quantity,
            average_cost=payload.average_cost,
        )
        self._holdings[record.id] = record
        self._touch_portfolio(portfolio_id)
        return record

    def update_holding(
        self,
        user_id: int,
        portfolio_id: int,
        holding_id: int,
        payload: HoldingUpdate,
    ) -> HoldingRecord:
        record = self.get_holding(user_id, portfolio_id, holding_id)
        changes = {key: value for key, value in payload.model_dump(exclude_unset=True).items() if value is not None}
        new_symbol = changes.get("symbol")
        if new_symbol and new_symbol != record.symbol:
            clash = self._find_by_symbol(portfolio_id, new_symbol)
            if clash is not None:
                raise ValidationFailedError(f"Portfolio {portfolio_id} already holds {new_symbol}")
        for key, value in changes.items():
            setattr(record, key, value)
        record.last_updated = _now()
        self._touch_portfolio(portfolio_id)
        return record

    def delete_holding(self, user_id: int, portfolio_id: int, holding_id: int) -> None:
        self.get_holding(user_id, portfolio_id, holding_id)
        del self._holdings[holding_id]
        self._touch_portfolio(portfolio_id)

    def replace_holdings(
        self,
        user_id: int,
        portfolio_id: int,
        rows: list[HoldingCreate],
    ) -> list[HoldingRecord]:
        """Write ``rows`` as the current state of their symbols.

        Rows for a symbol already held overwrite that holding; new symbols are
        added. Repeated symbols within ``rows`` are merged first.
        """
        self.get_portfolio(user_id, portfolio_id)
        combined: dict[str, HoldingCreate] = {}
        for row in rows:
            previous = combined.get(row.symbol)
            if previous is None:
                combined[row.symbol] = row.model_copy()
                continue
            quantity, cost = merge_positions(
                previous.quantity, previous.average_cost, row.quantity, row.average_cost
            )
            combined[row.symbol] = previous.model_copy(
                update={"quantity": quantity, "average_cost": cost, "name": row.name or previous.name}
            )

        written: list[HoldingRecord] = []
        for symbol, row in combined.items():
            existing = self._find_by_symbol(portfolio_id, symbol)
            if existing is None:
                written.append(self.add_holding(user_id, portfolio_id, row))
                continue
            existing.quantity = row.quantity
            existing.average_cost = row.average_cost
            existing.asset_type = row.asset_type
            existing.name = row.name or existing.name
            existing.last_updated = _now()
            written.append(existing)
        self._touch_portfolio(portfolio_id)
        return written
