from fastapi import APIRouter, Depends, File, Response, UploadFile, status

from wealth_manager import csv_io, portfolio_analytics
from wealth_manager.schemas import (
    CsvTemplate,
    Holding,
    HoldingCreate,
    HoldingUpdate,
    PerformanceData,
    Portfolio,
    PortfolioCreate,
    PortfolioSummary,
    PortfolioUpdate,
)
from wealth_manager.services import ServiceContainer, get_services, get_user_id
from wealth_manager.telemetry import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/portfolios", tags=["portfolios"])


def _portfolio(services: ServiceContainer, user_id: int, portfolio_id: int) -> Portfolio:
    record = services.portfolios.get_portfolio(user_id, portfolio_id)
    holdings = services.portfolios.list_holdings(user_id, portfolio_id)
    return portfolio_analytics.build_portfolio(record, holdings, services.market_store.latest_quote)


def _valued_holdings(services: ServiceContainer, user_id: int, portfolio_id: int) -> list[Holding]:
    records = services.portfolios.list_holdings(user_id, portfolio_id)
    return portfolio_analytics.value_holdings(records, services.market_store.latest_quote)


def _holding(services: ServiceContainer, user_id: int, portfolio_id: int, holding_id: int) -> Holding:
    return next(item for item in _valued_holdings(services, user_id, portfolio_id) if item.id == holding_id)


@router.get("", response_model=list[Portfolio])
async def list_portfolios(
    user_id: int = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> list[Portfolio]:
    return [
        _portfolio(services, user_id, record.id)
        for record in services.portfolios.list_portfolios(user_id)
    ]


@router.post("", response_model=Portfolio, status_code=status.HTTP_201_CREATED)
async def create_portfolio(
    payload: PortfolioCreate,
    user_id: int = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> Portfolio:
    record = services.portfolios.create_portfolio(user_id, payload)
    return _portfolio(services, user_id, record.id)


@router.get("/summary", response_model=PortfolioSummary)
async def overall_summary(
    user_id: int = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> PortfolioSummary:
    records = [
        holding
        for portfolio in services.portfolios.list_portfolios(user_id, active_only=True)
        for holding in services.portfolios.list_holdings(user_id, portfolio.id)
    ]
    return portfolio_analytics.summarize(records, services.market_store.latest_quote)


@router.get("/csv-template", response_model=CsvTemplate)
async def csv_template() -> CsvTemplate:
    return CsvTemplate(template=csv_io.csv_template())


@router.get("/{portfolio_id}", response_model=Portfolio)
async def get_portfolio(
    portfolio_id: int,
    user_id: int = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> Portfolio:
    return _portfolio(services, user_id, portfolio_id)


@router.put("/{portfolio_id}", response_model=Portfolio)
async def update_portfolio(
    portfolio_id: int,
    payload: PortfolioUpdate,
    user_id: int = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> Portfolio:
    services.portfolios.update_portfolio(user_id, portfolio_id, payload)
    return _portfolio(services, user_id, portfolio_id)


@router.delete("/{portfolio_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_portfolio(
    portfolio_id: int,
    user_id: int = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> Response:
    services.portfolios.delete_portfolio(user_id, portfolio_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{portfolio_id}/holdings", response_model=list[Holding])
async def list_holdings(
    portfolio_id: int,
    user_id: int = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> list[Holding]:
    return _valued_holdings(services, user_id, portfolio_id)


@router.post("/{portfolio_id}/holdings", response_model=Holding, status_code=status.HTTP_201_CREATED)
async def create_holding(
    portfolio_id: int,
    payload: HoldingCreate,
    user_id: int = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> Holding:
    record = services.portfolios.add_holding(user_id, portfolio_id, payload)
    return _holding(services, user_id, portfolio_id, record.id)


@router.put("/{portfolio_id}/holdings/{holding_id}", response_model=Holding)
async def update_holding(
    portfolio_id: int,
    holding_id: int,
    payload: HoldingUpdate,
    user_id: int = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> Holding:
    services.portfolios.update_holding(user_id, portfolio_id, holding_id, payload)
    return _holding(services, user_id, portfolio_id, holding_id)


@router.delete("/{portfolio_id}/holdings/{holding_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_holding(
    portfolio_id: int,
    holding_id: int,
    user_id: int = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> Response:
    services.portfolios.delete_holding(user_id, portfolio_id, holding_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{portfolio_id}/summary", response_model=PortfolioSummary)
async def portfolio_summary(
    portfolio_id: int,
    user_id: int = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> PortfolioSummary:
    records = services.portfolios.list_holdings(user_id, portfolio_id)
    return portfolio_analytics.summarize(records, services.market_store.latest_quote)


@router.get("/{portfolio_id}/performance", response_model=PerformanceData)
async def portfolio_performance(
    portfolio_id: int,
    user_id: int = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> PerformanceData:
    records = services.portfolios.list_holdings(user_id, portfolio_id)
    return portfolio_analytics.performance(records, services.market_store.latest_quote)


@router.post("/{portfolio_id}/upload-csv", response_model=list[Holding])
async def upload_csv(
    portfolio_id: int,
    file: UploadFile = File(...),
    user_id: int = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> list[Holding]:
    services.portfolios.get_portfolio(user_id, portfolio_id)
    data = await file.read()
    rows = csv_io.parse_holdings_csv(data, services.settings.max_upload_bytes)
    written = services.portfolios.replace_holdings(user_id, portfolio_id, rows)
    logger.info(
        "portfolio_csv_imported",
        extra={"portfolio_id": portfolio_id, "filename": file.filename, "rows": len(rows), "holdings": len(written)},
    )
    written_ids = {record.id for record in written}
    return [item for item in _valued_holdings(services, user_id, portfolio_id) if item.id in written_ids]


@router.get("/{portfolio_id}/download-csv")
async def download_csv(
    portfolio_id: int,
    user_id: int = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> Response:
    content = csv_io.export_holdings_csv(_valued_holdings(services, user_id, portfolio_id))
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="portfolio_{portfolio_id}_holdings.csv"'},
    )
