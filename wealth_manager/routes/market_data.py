from datetime import date

from fastapi import APIRouter, Body, Depends, Response, status

from wealth_manager.errors import NotFoundError
from wealth_manager.schemas import (
    CancelRequest,
    DatabaseSize,
    DatabaseStats,
    DatabaseSymbol,
    DownloadJob,
    DownloadRequest,
    FundamentalData,
    PriceBar,
)
from wealth_manager.services import ServiceContainer, get_services

router = APIRouter(prefix="/market-data", tags=["market-data"])


def _require_symbol(services: ServiceContainer, symbol: str) -> DatabaseSymbol:
    entry = services.market_store.get_symbol(symbol.strip().upper())
    if entry is None:
        raise NotFoundError(f"Symbol '{symbol}' not found in market data store")
    return entry


@router.get("/symbols", response_model=list[DatabaseSymbol])
async def list_symbols(services: ServiceContainer = Depends(get_services)) -> list[DatabaseSymbol]:
    return services.market_store.get_symbols()


@router.get("/symbols/{symbol}", response_model=DatabaseSymbol)
async def get_symbol(symbol: str, services: ServiceContainer = Depends(get_services)) -> DatabaseSymbol:
    return _require_symbol(services, symbol)


@router.delete("/symbols/{symbol}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_symbol(symbol: str, services: ServiceContainer = Depends(get_services)) -> Response:
    if not services.market_store.delete_symbol(symbol.strip().upper()):
        raise NotFoundError(f"Symbol '{symbol}' not found in market data store")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/symbols/{symbol}/prices", response_model=list[PriceBar])
async def get_prices(
    symbol: str,
    start: date | None = None,
    end: date | None = None,
    services: ServiceContainer = Depends(get_services),
) -> list[PriceBar]:
    entry = _require_symbol(services, symbol)
    return services.market_store.get_price_data(entry.symbol, start, end)


@router.delete("/symbols/{symbol}/prices", status_code=status.HTTP_204_NO_CONTENT)
async def delete_prices(symbol: str, services: ServiceContainer = Depends(get_services)) -> Response:
    if not services.market_store.delete_price_data(symbol.strip().upper()):
        raise NotFoundError(f"No price data stored for '{symbol}'")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/symbols/{symbol}/fundamentals", response_model=FundamentalData)
async def get_fundamentals(symbol: str, services: ServiceContainer = Depends(get_services)) -> FundamentalData:
    data = services.market_store.get_fundamental_data(symbol.strip().upper())
    if data is None:
        raise NotFoundError(f"No fundamental data stored for '{symbol}'")
    return data


@router.delete("/symbols/{symbol}/fundamentals", status_code=status.HTTP_204_NO_CONTENT)
async def delete_fundamentals(symbol: str, services: ServiceContainer = Depends(get_services)) -> Response:
    if not services.market_store.delete_fundamental_data(symbol.strip().upper()):
        raise NotFoundError(f"No fundamental data stored for '{symbol}'")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/stats", response_model=DatabaseStats)
async def stats(services: ServiceContainer = Depends(get_services)) -> DatabaseStats:
    return services.market_store.stats()


@router.get("/size", response_model=DatabaseSize)
async def size(services: ServiceContainer = Depends(get_services)) -> DatabaseSize:
    return services.market_store.size()


@router.post("/downloads", response_model=DownloadJob, status_code=status.HTTP_202_ACCEPTED)
async def start_download(
    payload: DownloadRequest,
    response: Response,
    services: ServiceContainer = Depends(get_services),
) -> DownloadJob:
    job = services.jobs.start(payload.symbols, payload.kinds, override=payload.override)
    if payload.wait:
        job = await services.jobs.wait(job.id)
        response.status_code = status.HTTP_200_OK
    return job


@router.get("/downloads", response_model=list[DownloadJob])
async def list_downloads(services: ServiceContainer = Depends(get_services)) -> list[DownloadJob]:
    return services.jobs.list_jobs()


@router.get("/downloads/{job_id}", response_model=DownloadJob)
async def get_download(job_id: str, services: ServiceContainer = Depends(get_services)) -> DownloadJob:
    return services.jobs.get(job_id)


@router.post("/downloads/{job_id}/cancel", response_model=DownloadJob)
async def cancel_download(
    job_id: str,
    payload: CancelRequest | None = Body(default=None),
    services: ServiceContainer = Depends(get_services),
) -> DownloadJob:
    reason = payload.reason if payload is not None else None
    return services.jobs.cancel(job_id, reason)
