from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from contextlib import suppress
from datetime import UTC, datetime
from uuid import uuid4

from wealth_manager.downloader import CancelToken, DownloadService, normalize_symbols
from wealth_manager.errors import NotFoundError, ValidationFailedError
from wealth_manager.schemas import DataKind, DownloadJob, DownloadProgress
from wealth_manager.telemetry import get_logger

logger = get_logger(__name__)

USER_CANCEL_REASON = "User cancelled"

JobCallback = Callable[[DownloadJob], None]


class DownloadJobRegistry:
    """Runs batch downloads as background tasks and tracks their progress."""

    def __init__(self, downloader: DownloadService) -> None:
        self.downloader = downloader
        self._jobs: dict[str, DownloadJob] = {}
        self._tokens: dict[str, CancelToken] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}

    def start(
        self,
        symbols: Iterable[str],
        kinds: Iterable[DataKind],
        *,
        override: bool = False,
        on_finish: JobCallback | None = None,
    ) -> DownloadJob:
        symbol_list = normalize_symbols(symbols)
        if not symbol_list:
            raise ValidationFailedError("At least one symbol is required")

        job = DownloadJob(
            id=uuid4().hex,
            symbols=symbol_list,
            kinds=list(dict.fromkeys(kinds)),
            override=override,
            created_at=datetime.now(UTC),
        )
        token = CancelToken()
        self._jobs[job.id] = job
        self._tokens[job.id] = token
        self._tasks[job.id] = asyncio.create_task(self._run(job, token, on_finish))
        logger.info(
            "download_job_started",
            extra={"job_id": job.id, "symbols": len(symbol_list), "kinds": job.kinds, "override": override},
        )
        return job

    async def _run(self, job: DownloadJob, token: CancelToken, on_finish: JobCallback | None) -> None:
        def on_progress(snapshot: list[DownloadProgress]) -> None:
            job.progress = snapshot

        try:
            report = await self.downloader.download_batch(
                job.symbols,
                job.kinds,
                on_progress,
                override=job.override,
                cancel_token=token,
            )
        except asyncio.CancelledError:
            job.status = "cancelled"
            job.error = "Job was stopped"
            raise
        except Exception as exc:
            logger.exception("download_job_failed", extra={"job_id": job.id})
            job.status = "failed"
            job.error = str(exc)
        else:
            job.report = report
            job.progress = report.progress
            job.status = "cancelled" if report.cancelled else "completed"
        finally:
            self._tasks.pop(job.id, None)
            self._tokens.pop(job.id, None)
            job.finished_at = datetime.now(UTC)
            logger.info("download_job_finished", extra={"job_id": job.id, "status": job.status})
            if on_finish is not None:
                on_finish(job)

    def get(self, job_id: str) -> DownloadJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise NotFoundError(f"Download job '{job_id}' not found")
        return job

    def list_jobs(self) -> list[DownloadJob]:
        return sorted(self._jobs.values(), key=lambda job: job.created_at, reverse=True)

    def cancel(self, job_id: str, reason: str | None = None) -> DownloadJob:
        job = self.get(job_id)
        if job.status == "running":
            token = self._tokens.get(job_id)
            if token is not None:
                token.cancel(reason or USER_CANCEL_REASON)
            logger.info("download_job_cancel_requested", extra={"job_id": job_id, "reason": reason})
        return job

    async def wait(self, job_id: str) -> DownloadJob:
        job = self.get(job_id)
        task = self._tasks.get(job_id)
        if task is not None:
            with suppress(asyncio.CancelledError):
                await task
        return job

    async def shutdown(self) -> None:
        running = [task for task in self._tasks.values() if not task.done()]
        for task in running:
            task.cancel()
        if running:
            await asyncio.gather(*running, return_exceptions=True)
