"""Interval-checked update schedules for the market data store."""

from __future__ import annotations

from datetime import UTC, datetime, tzinfo
from uuid import uuid4
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from wealth_manager.downloader import DownloadService
from wealth_manager.errors import NotFoundError, SchedulerStateError
from wealth_manager.market_store import MarketDataStore
from wealth_manager.schemas import (
    DatabaseStats,
    DownloadReport,
    ScheduleCreate,
    ScheduleUpdate,
    UpdateSchedule,
)
from wealth_manager.telemetry import get_logger

logger = get_logger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
TICK_JOB_ID = "update_schedule_tick"


def is_schedule_due(schedule: UpdateSchedule, now: datetime, timezone: tzinfo = UTC) -> bool:
    """Whether ``schedule`` should run at ``now``.

    The schedule's clock time must have been reached today, and enough time
    must have passed since ``last_run`` for its frequency. Both datetimes are
    compared in ``now``'s timezone; a naive ``now`` is a wall-clock time in
    ``timezone``.
    """
    if now.strftime("%H:%M") < schedule.time:
        return False

    last_run = schedule.last_run or EPOCH
    if last_run.tzinfo is None:
        last_run = last_run.replace(tzinfo=UTC)
    if now.tzinfo is not None:
        last_run = last_run.astimezone(now.tzinfo)
    else:
        last_run = last_run.astimezone(timezone).replace(tzinfo=None)

    if schedule.frequency == "daily":
        return now.date() > last_run.date()
    if schedule.frequency == "weekly":
        return (now - last_run).days >= 7
    if schedule.frequency == "monthly":
        months = (now.year - last_run.year) * 12 + (now.month - last_run.month)
        return months >= 1
    return False


class UpdateScheduler:
    def __init__(
        self,
        downloader: DownloadService,
        store: MarketDataStore,
        *,
        poll_seconds: float = 60.0,
        timezone: str = "UTC",
        scheduled_batch_size: int = 50,
        manual_batch_size: int = 100,
        manual_pause_seconds: float = 2.0,
    ) -> None:
        self.downloader = downloader
        self.store = store
        self.poll_seconds = poll_seconds
        self.timezone = ZoneInfo(timezone)
        self.scheduled_batch_size = scheduled_batch_size
        self.manual_batch_size = manual_batch_size
        self.manual_pause_seconds = manual_pause_seconds
        self._schedules: dict[str, UpdateSchedule] = {}
        self._timer: AsyncIOScheduler | None = None

    # Schedule management

    def add_schedule(self, schedule: UpdateSchedule) -> None:
        self._schedules[schedule.id] = schedule

    def remove_schedule(self, schedule_id: str) -> bool:
        return self._schedules.pop(schedule_id, None) is not None

    def list_schedules(self) -> list[UpdateSchedule]:
        return list(self._schedules.values())

    def get_active_schedules(self) -> list[UpdateSchedule]:
        return [schedule for schedule in self._schedules.values() if schedule.enabled]

    def get_schedule(self, schedule_id: str) -> UpdateSchedule:
        schedule = self._schedules.get(schedule_id)
        if schedule is None:
            raise NotFoundError(f"Update schedule '{schedule_id}' not found")
        return schedule

    def create_schedule(self, payload: ScheduleCreate) -> UpdateSchedule:
        schedule = UpdateSchedule(
            id=payload.id or uuid4().hex,
            name=payload.name,
            frequency=payload.frequency,
            time=payload.time,
            enabled=payload.enabled,
        )
        self.add_schedule(schedule)
        logger.info(
            "update_schedule_created",
            extra={"schedule_id": schedule.id, "name": schedule.name, "frequency": schedule.frequency},
        )
        return schedule

    def update_schedule(self, schedule_id: str, payload: ScheduleUpdate) -> UpdateSchedule:
        schedule = self.get_schedule(schedule_id)
        changes = {key: value for key, value in payload.model_dump(exclude_unset=True).items() if value is not None}
        updated = schedule.model_copy(update=changes)
        self._schedules[schedule_id] = updated
        return updated

    # Running

    @property
    def is_running(self) -> bool:
        return self._timer is not None

    def now(self) -> datetime:
        return datetime.now(self.timezone)

    async def start(self) -> None:
        if self._timer is not None:
            raise SchedulerStateError("Incremental updates are already running")
        timer = AsyncIOScheduler(timezone=self.timezone)
        timer.add_job(
            self._tick,
            IntervalTrigger(seconds=self.poll_seconds, timezone=self.timezone),
            id=TICK_JOB_ID,
            next_run_time=self.now(),
            max_instances=1,
            coalesce=True,
        )
        timer.start()
        self._timer = timer
        logger.info("scheduler_started", extra={"poll_seconds": self.poll_seconds})

    async def stop(self) -> None:
        timer = self._timer
        self._timer = None
        if timer is not None and timer.running:
            timer.shutdown(wait=False)
        logger.info("scheduler_stopped")

    async def _tick(self) -> None:
        try:
            await self.run_due_schedules()
        except Exception:
            logger.exception("scheduler_tick_failed")

    async def run_due_schedules(self, now: datetime | None = None) -> list[str]:
        """Run every enabled schedule that is due and return their ids."""
        now = now or self.now()
        ran: list[str] = []
        for schedule in self.get_active_schedules():
            if is_schedule_due(schedule, now, self.timezone):
                await self.run_scheduled_update(schedule, now)
                ran.append(schedule.id)
        return ran

    async def run_scheduled_update(self, schedule: UpdateSchedule, now: datetime | None = None) -> DownloadReport | None:
        logger.info("scheduled_update_started", extra={"schedule_id": schedule.id, "name": schedule.name})
        try:
            symbols = [item.symbol for item in self.store.get_symbols()]
            report = await self.downloader.download_batch(
                symbols,
                ["price"],
                batch_size=self.scheduled_batch_size,
            )
        except Exception:
            logger.exception("scheduled_update_failed", extra={"schedule_id": schedule.id})
            return None

        current = self._schedules.get(schedule.id)
        if current is not None:
            self._schedules[schedule.id] = current.model_copy(update={"last_run": now or self.now()})
        logger.info(
            "scheduled_update_completed",
            extra={
                "schedule_id": schedule.id,
                "symbols": report.total,
                "successful": report.successful,
                "failed": report.failed,
            },
        )
        return report

    async def trigger_manual_update(self) -> DownloadReport:
        logger.info("manual_update_started")
        symbols = [item.symbol for item in self.store.get_symbols()]
        report = await self.downloader.download_batch(
            symbols,
            ["price"],
            override=True,
            batch_size=self.manual_batch_size,
            pause_seconds=self.manual_pause_seconds,
        )
        logger.info(
            "manual_update_completed",
            extra={"symbols": report.total, "successful": report.successful, "failed": report.failed},
        )
        return report

    def get_database_stats(self) -> DatabaseStats:
        return self.store.stats()
