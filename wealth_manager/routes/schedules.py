from fastapi import APIRouter, Depends, Response, status

from wealth_manager.errors import NotFoundError
from wealth_manager.schemas import (
    DatabaseStats,
    DownloadReport,
    ScheduleCreate,
    SchedulerStatus,
    ScheduleUpdate,
    UpdateSchedule,
)
from wealth_manager.services import ServiceContainer, get_services

router = APIRouter(prefix="/schedules", tags=["schedules"])


def _status(services: ServiceContainer) -> SchedulerStatus:
    scheduler = services.scheduler
    return SchedulerStatus(
        running=scheduler.is_running,
        active_schedules=len(scheduler.get_active_schedules()),
        schedules=scheduler.list_schedules(),
    )


@router.get("", response_model=list[UpdateSchedule])
async def list_schedules(services: ServiceContainer = Depends(get_services)) -> list[UpdateSchedule]:
    return services.scheduler.list_schedules()


@router.post("", response_model=UpdateSchedule, status_code=status.HTTP_201_CREATED)
async def create_schedule(
    payload: ScheduleCreate,
    services: ServiceContainer = Depends(get_services),
) -> UpdateSchedule:
    return services.scheduler.create_schedule(payload)


@router.get("/status", response_model=SchedulerStatus)
async def scheduler_status(services: ServiceContainer = Depends(get_services)) -> SchedulerStatus:
    return _status(services)


@router.post("/start", response_model=SchedulerStatus)
async def start_scheduler(services: ServiceContainer = Depends(get_services)) -> SchedulerStatus:
    await services.scheduler.start()
    return _status(services)


@router.post("/stop", response_model=SchedulerStatus)
async def stop_scheduler(services: ServiceContainer = Depends(get_services)) -> SchedulerStatus:
    await services.scheduler.stop()
    return _status(services)


@router.post("/manual-update", response_model=DownloadReport)
async def manual_update(services: ServiceContainer = Depends(get_services)) -> DownloadReport:
    return await services.scheduler.trigger_manual_update()


@router.get("/stats", response_model=DatabaseStats)
async def database_stats(services: ServiceContainer = Depends(get_services)) -> DatabaseStats:
    return services.scheduler.get_database_stats()


@router.patch("/{schedule_id}", response_model=UpdateSchedule)
async def update_schedule(
    schedule_id: str,
    payload: ScheduleUpdate,
    services: ServiceContainer = Depends(get_services),
) -> UpdateSchedule:
    return services.scheduler.update_schedule(schedule_id, payload)


@router.delete("/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_schedule(schedule_id: str, services: ServiceContainer = Depends(get_services)) -> Response:
    if not services.scheduler.remove_schedule(schedule_id):
        raise NotFoundError(f"Update schedule '{schedule_id}' not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
