from fastapi import APIRouter, Body, Depends, File, Form, Response, UploadFile, status

from wealth_manager.schemas import (
    DownloadJob,
    SymbolList,
    SymbolListCreate,
    SymbolListDownloadRequest,
)
from wealth_manager.services import ServiceContainer, get_services
from wealth_manager.symbol_lists import parse_symbol_csv
from wealth_manager.telemetry import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/symbol-lists", tags=["symbol-lists"])


@router.get("", response_model=list[SymbolList])
async def list_symbol_lists(services: ServiceContainer = Depends(get_services)) -> list[SymbolList]:
    return services.symbol_lists.list_all()


@router.post("", response_model=SymbolList, status_code=status.HTTP_201_CREATED)
async def create_symbol_list(
    payload: SymbolListCreate,
    services: ServiceContainer = Depends(get_services),
) -> SymbolList:
    return services.symbol_lists.create(payload)


@router.post("/upload", response_model=SymbolList, status_code=status.HTTP_201_CREATED)
async def upload_symbol_list(
    name: str = Form(..., min_length=1),
    file: UploadFile = File(...),
    services: ServiceContainer = Depends(get_services),
) -> SymbolList:
    entries = parse_symbol_csv(await file.read(), services.settings.max_upload_bytes)
    logger.info("symbol_list_uploaded", extra={"filename": file.filename, "symbols": len(entries)})
    return services.symbol_lists.create(SymbolListCreate(name=name, symbols=entries))


@router.get("/{list_id}", response_model=SymbolList)
async def get_symbol_list(list_id: str, services: ServiceContainer = Depends(get_services)) -> SymbolList:
    return services.symbol_lists.get(list_id)


@router.delete("/{list_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_symbol_list(list_id: str, services: ServiceContainer = Depends(get_services)) -> Response:
    services.symbol_lists.delete(list_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{list_id}/download", response_model=DownloadJob, status_code=status.HTTP_202_ACCEPTED)
async def download_symbol_list(
    list_id: str,
    payload: SymbolListDownloadRequest | None = Body(default=None),
    services: ServiceContainer = Depends(get_services),
) -> DownloadJob:
    symbol_list = services.symbol_lists.get(list_id)
    options = payload or SymbolListDownloadRequest()

    def on_finish(job: DownloadJob) -> None:
        services.symbol_lists.set_status(list_id, "completed" if job.status == "completed" else "active")

    job = services.jobs.start(
        [entry.symbol for entry in symbol_list.symbols],
        options.kinds,
        override=options.override,
        on_finish=on_finish,
    )
    services.symbol_lists.set_status(list_id, "processing")
    return job
