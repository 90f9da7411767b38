import re
from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

DATA_SOURCE_REMOTE_API = "remote_api"
DATA_SOURCE_MOCK = "mock"
DataSource = Literal[DATA_SOURCE_REMOTE_API, DATA_SOURCE_MOCK]

AssetType = Literal["stock", "etf", "mutual_fund", "money_market", "cash"]
DataKind = Literal["price", "fundamental"]
ProgressStatus = Literal["pending", "downloading", "complete", "error"]
SymbolStatus = Literal["complete", "partial", "missing", "error"]
JobStatus = Literal["running", "completed", "cancelled", "failed"]
Frequency = Literal["daily", "weekly", "monthly"]
SymbolListStatus = Literal["active", "processing", "completed"]

SYMBOL_PATTERN = re.compile(r"^[A-Z0-9.^=\-]{1,15}$")
SCHEDULE_TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


def normalize_symbol(value: str) -> str:
    symbol = (value or "").strip().upper()
    if not SYMBOL_PATTERN.match(symbol):
        raise ValueError(f"Invalid symbol '{value}'")
    return symbol


# Portfolios and holdings


class HoldingCreate(BaseModel):
    symbol: str
    asset_type: AssetType = "stock"
    name: str | None = None
    quantity: float = Field(gt=0)
    average_cost: float = Field(ge=0)

    @field_validator("symbol")
    @classmethod
    def _normalize_symbol(cls, value: str) -> str:
        return normalize_symbol(value)


class HoldingUpdate(BaseModel):
    symbol: str | None = None
    asset_type: AssetType | None = None
    name: str | None = None
    quantity: float | None = Field(default=None, gt=0)
    average_cost: float | None = Field(default=None, ge=0)

    @field_validator("symbol")
    @classmethod
    def _normalize_symbol(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return normalize_symbol(value)


class Holding(BaseModel):
    id: int
    portfolio_id: int
    symbol: str
    name: str | None = None
    asset_type: AssetType
    quantity: float
    average_cost: float
    current_price: float
    current_value: float
    unrealized_gain_loss: float
    unrealized_gain_loss_percent: float
    allocation_percent: float
    last_updated: datetime
    created_at: datetime


class PortfolioCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    holdings: list[HoldingCreate] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("Portfolio name is required")
        return stripped


class PortfolioUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    is_active: bool | None = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        stripped = value.strip()
        if not stripped:
            raise ValueError("Portfolio name is required")
        return stripped


class Portfolio(BaseModel):
    id: int
    user_id: int
    name: str
    description: str | None = None
    total_value: float
    is_active: bool
    created_at: datetime
    updated_at: datetime | None = None
    holdings: list[Holding] = Field(default_factory=list)


class PortfolioSummary(BaseModel):
    total_value: float
    total_gain_loss: float
    total_gain_loss_percent: float
    holdings_count: int
    asset_allocation: dict[str, float]
    top_performers: list[Holding]
    worst_performers: list[Holding]


class PerformanceHolding(BaseModel):
    symbol: str
    name: str | None = None
    quantity: float
    average_cost: float
    current_price: float
    current_value: float
    gain_loss: float
    gain_loss_percent: float
    daily_change: float
    daily_change_percent: float
    last_updated: datetime


class PerformanceData(BaseModel):
    total_value: float
    total_cost: float
    total_gain_loss: float
    total_gain_loss_percent: float
    holdings: list[PerformanceHolding]
    last_updated: datetime


class CsvTemplate(BaseModel):
    template: str


class CsvRowError(BaseModel):
    row: int
    message: str


# Market data


class PriceBar(BaseModel):
    date: date
    open: float
    high: float
    low: float
    close: float
    volume: int
    adjusted_close: float


class CompanyInfo(BaseModel):
    name: str
    sector: str
    industry: str
    market_cap: float
    enterprise_value: float
    trailing_pe: float
    forward_pe: float
    peg_ratio: float
    price_to_sales: float
    price_to_book: float
    enterprise_to_revenue: float
    enterprise_to_ebitda: float
    beta: float
    fifty_two_week_high: float
    fifty_two_week_low: float
    dividend_yield: float
    dividend_rate: float
    ex_dividend_date: date | None = None
    payout_ratio: float
    dividend_per_share: float


class IncomeStatement(BaseModel):
    total_revenue: float
    gross_profit: float
    operating_income: float
    net_income: float
    earnings_per_share: float
    diluted_eps: float


class BalanceSheet(BaseModel):
    total_assets: float
    total_liabilities: float
    total_stockholder_equity: float
    current_assets: float
    current_liabilities: float
    total_debt: float


class CashFlow(BaseModel):
    operating_cash_flow: float
    investing_cash_flow: float
    financing_cash_flow: float
    free_cash_flow: float


class FinancialStatements(BaseModel):
    income_statement: IncomeStatement
    balance_sheet: BalanceSheet
    cash_flow: CashFlow


class FundamentalData(BaseModel):
    symbol: str
    company_info: CompanyInfo
    financial_statements: FinancialStatements


class DatabaseSymbol(BaseModel):
    symbol: str
    name: str
    price_data_available: bool = False
    fundamental_data_available: bool = False
    price_data_count: int = 0
    fundamental_data_count: int = 0
    last_updated: datetime | None = None
    status: SymbolStatus = "missing"


class DatabaseStats(BaseModel):
    total_symbols: int
    symbols_with_price_data: int
    symbols_with_fundamental_data: int
    total_price_records: int
    total_fundamental_records: int
    last_update: datetime | None = None


class DatabaseSize(BaseModel):
    symbols_collection_size: int
    price_data_collection_size: int
    fundamental_data_collection_size: int
    total_estimated_bytes: int


# Downloads


class DownloadProgress(BaseModel):
    symbol: str
    type: DataKind
    progress: int = 0
    status: ProgressStatus = "pending"
    message: str = "Waiting to start..."


class DownloadReport(BaseModel):
    total: int
    successful: int = 0
    failed: int = 0
    cancelled: bool = False
    cancel_reason: str | None = None
    records_downloaded: int = 0
    progress: list[DownloadProgress] = Field(default_factory=list)


class DownloadRequest(BaseModel):
    symbols: list[str] = Field(min_length=1)
    kinds: list[DataKind] = Field(default_factory=lambda: ["price"], min_length=1)
    override: bool = False
    wait: bool = False


class CancelRequest(BaseModel):
    reason: str | None = None


class DownloadJob(BaseModel):
    id: str
    status: JobStatus = "running"
    symbols: list[str]
    kinds: list[DataKind]
    override: bool = False
    created_at: datetime
    finished_at: datetime | None = None
    progress: list[DownloadProgress] = Field(default_factory=list)
    report: DownloadReport | None = None
    error: str | None = None


# Update schedules


class UpdateSchedule(BaseModel):
    id: str
    name: str = Field(min_length=1)
    frequency: Frequency
    time: str = Field(pattern=SCHEDULE_TIME_PATTERN)
    enabled: bool = True
    last_run: datetime | None = None


class ScheduleCreate(BaseModel):
    id: str | None = None
    name: str = Field(min_length=1)
    frequency: Frequency
    time: str = Field(pattern=SCHEDULE_TIME_PATTERN)
    enabled: bool = True


class ScheduleUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    frequency: Frequency | None = None
    time: str | None = Field(default=None, pattern=SCHEDULE_TIME_PATTERN)
    enabled: bool | None = None


class SchedulerStatus(BaseModel):
    running: bool
    active_schedules: int
    schedules: list[UpdateSchedule]


# Symbol lists


class SymbolEntry(BaseModel):
    symbol: str
    name: str = ""

    @field_validator("symbol")
    @classmethod
    def _normalize_symbol(cls, value: str) -> str:
        return normalize_symbol(value)


class SymbolListCreate(BaseModel):
    name: str = Field(min_length=1)
    symbols: list[SymbolEntry] = Field(min_length=1)


class SymbolList(BaseModel):
    id: str
    name: str
    upload_date: datetime
    symbols: list[SymbolEntry]
    status: SymbolListStatus = "active"


class SymbolListDownloadRequest(BaseModel):
    kinds: list[DataKind] = Field(default_factory=lambda: ["price"], min_length=1)
    override: bool = False
