"""
dispatch/jobs.py
The two dispatch jobs (adzan, custom reminder) and the combined runner.

Each job: resolve the minute → match → resolve recipients → enqueue →
send → record the run. Outcomes are returned as values: a `JobSummary` on
success, a `JobFailure` when configuration is missing or the datastore
raised. A failed job writes no cron_job_runs row.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Sequence, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.settings import DispatchConfig
from dispatch.clock import TimeWindow, resolve_time_window
from dispatch.matcher import select_due_reminders, select_due_schedules
from dispatch.push import PushTransport, dispatch
from dispatch.queue import enqueue
from dispatch.recipients import (
    Delivery,
    build_reminder_deliveries,
    resolve_adzan_deliveries,
    select_reminder_recipients,
)
from dispatch.recorder import record_run

logger = logging.getLogger(__name__)

ADZAN_JOB = "adzan"
REMINDER_JOB = "reminder"


class FailureReason(str, Enum):
    CONFIGURATION = "configuration"
    DATASTORE = "datastore"


@dataclass(frozen=True)
class JobSummary:
    job: str
    processed: int
    sent: int
    failed: int
    time: str
    time_zone: str
    message: Optional[str] = None
    ok: bool = field(default=True, init=False)

    def to_dict(self) -> dict:
        data = asdict(self)
        if self.message is None:
            data.pop("message")
        return data


@dataclass(frozen=True)
class JobFailure:
    job: str
    reason: FailureReason
    error: str
    time: Optional[str] = None
    time_zone: Optional[str] = None
    ok: bool = field(default=False, init=False)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["reason"] = self.reason.value
        return data


JobOutcome = Union[JobSummary, JobFailure]


@dataclass(frozen=True)
class CombinedOutcome:
    adzan: JobOutcome
    reminder: JobOutcome

    @property
    def outcomes(self) -> List[JobOutcome]:
        return [self.adzan, self.reminder]

    @property
    def ok(self) -> bool:
        return all(o.ok for o in self.outcomes)

    @property
    def total(self) -> dict:
        summaries = [o for o in self.outcomes if isinstance(o, JobSummary)]
        return {
            "processed": sum(s.processed for s in summaries),
            "sent": sum(s.sent for s in summaries),
            "failed": sum(s.failed for s in summaries),
        }

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "adzan": self.adzan.to_dict(),
            "reminder": self.reminder.to_dict(),
            "total": self.total,
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobOrchestrator:
    """
    Runs dispatch jobs against a session factory and a push transport.
    Holds no state between invocations; safe to trigger repeatedly or
    concurrently, the dedupe key decides who sends.
    """

    def __init__(
        self,
        config: DispatchConfig,
        session_factory: async_sessionmaker,
        transport: PushTransport,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.config = config
        self.session_factory = session_factory
        self.transport = transport
        self.clock = clock

    # ── Entry points ──────────────────────────────────────────

    async def run_adzan_job(self) -> JobOutcome:
        return await self._run(ADZAN_JOB, self._adzan)

    async def run_reminder_job(self) -> JobOutcome:
        return await self._run(REMINDER_JOB, self._reminder)

    async def run_all(self) -> CombinedOutcome:
        """Run both jobs regardless of how the first one ends."""
        adzan = await self.run_adzan_job()
        reminder = await self.run_reminder_job()
        return CombinedOutcome(adzan=adzan, reminder=reminder)

    # ── Plumbing ──────────────────────────────────────────────

    async def _run(
        self,
        job: str,
        body: Callable[[AsyncSession, TimeWindow], Awaitable[JobSummary]],
    ) -> JobOutcome:
        missing = self.config.missing
        if missing:
            error = f"Missing settings: {', '.join(missing)}"
            logger.error(f"{job} job not started: {error}")
            return JobFailure(job=job, reason=FailureReason.CONFIGURATION, error=error)

        window = resolve_time_window(self.config.time_zone, self.clock())
        async with self.session_factory() as db:
            try:
                summary = await body(db, window)
            except SQLAlchemyError as e:
                await db.rollback()
                logger.exception(f"{job} job failed at {window.date} {window.time}: {e}")
                return JobFailure(
                    job=job,
                    reason=FailureReason.DATASTORE,
                    error=str(e),
                    time=window.time,
                    time_zone=window.time_zone,
                )

        logger.info(
            "%s job %s %s: processed=%d sent=%d failed=%d",
            job, window.date, window.time, summary.processed, summary.sent, summary.failed,
        )
        return summary

    def _summary(
        self,
        job: str,
        window: TimeWindow,
        processed: int = 0,
        sent: int = 0,
        failed: int = 0,
        message: Optional[str] = None,
    ) -> JobSummary:
        return JobSummary(
            job=job,
            processed=processed,
            sent=sent,
            failed=failed,
            time=window.time,
            time_zone=window.time_zone,
            message=message,
        )

    async def _send_batch(
        self,
        db: AsyncSession,
        job: str,
        deliveries: Sequence[Delivery],
        window: TimeWindow,
    ) -> JobSummary:
        queued = await enqueue(db, deliveries, window)
        tally = await dispatch(db, queued, deliveries, self.transport, self.config)
        await record_run(
            db,
            job,
            processed=len(queued),
            sent=tally.sent,
            failed=tally.failed,
            note=f"{window.time} {window.time_zone}",
        )
        return self._summary(job, window, len(queued), tally.sent, tally.failed)

    # ── Jobs ──────────────────────────────────────────────────

    async def _adzan(self, db: AsyncSession, window: TimeWindow) -> JobSummary:
        schedules = await select_due_schedules(db, window.time)
        if not schedules:
            await record_run(db, ADZAN_JOB, note=f"No schedule for {window.time}")
            return self._summary(ADZAN_JOB, window, message="No schedule")

        deliveries = await resolve_adzan_deliveries(db, schedules, window)
        if not deliveries:
            await record_run(
                db, ADZAN_JOB,
                processed=len(schedules),
                note=f"No eligible tokens for {window.time}",
            )
            return self._summary(
                ADZAN_JOB, window, processed=len(schedules), message="No eligible users"
            )

        return await self._send_batch(db, ADZAN_JOB, deliveries, window)

    async def _reminder(self, db: AsyncSession, window: TimeWindow) -> JobSummary:
        reminders = await select_due_reminders(db, window.time)
        if not reminders:
            await record_run(db, REMINDER_JOB, note=f"No active reminder at {window.time}")
            return self._summary(REMINDER_JOB, window, message="No reminder")

        recipients = await select_reminder_recipients(db)
        if not recipients:
            await record_run(
                db, REMINDER_JOB,
                processed=len(reminders),
                note="No users with active reminder token",
            )
            return self._summary(
                REMINDER_JOB, window, processed=len(reminders), message="No reminder recipients"
            )

        deliveries = build_reminder_deliveries(reminders, recipients, window)
        return await self._send_batch(db, REMINDER_JOB, deliveries, window)


def build_orchestrator(
    config: Optional[DispatchConfig] = None,
    session_factory: Optional[async_sessionmaker] = None,
    transport: Optional[PushTransport] = None,
) -> JobOrchestrator:
    """Wire an orchestrator from process settings; any part may be overridden."""
    from config.database import AsyncSessionLocal
    from config.settings import get_dispatch_config
    from dispatch.push import FCMTransport

    config = config or get_dispatch_config()
    return JobOrchestrator(
        config=config,
        session_factory=session_factory or AsyncSessionLocal,
        transport=transport or FCMTransport(
            config.firebase_credentials_path, config.firebase_project_id
        ),
    )
