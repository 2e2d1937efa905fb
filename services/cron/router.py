"""
services/cron/router.py
Scheduler trigger endpoints. Called every minute by Celery beat (or an
external cron hitting the URL with CRON_SECRET), or by an admin by hand.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from dispatch.jobs import JobOrchestrator, JobOutcome, build_orchestrator
from shared.middleware.auth import TriggerCaller, require_admin_or_scheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["Cron"])

RUN_EVERY = "1 minute"


def get_orchestrator() -> JobOrchestrator:
    """Dependency hook; tests override it with a fake transport and clock."""
    return build_orchestrator()


def _job_response(outcome: JobOutcome) -> JSONResponse:
    return JSONResponse(
        status_code=200 if outcome.ok else 500,
        content=outcome.to_dict(),
    )


@router.post("/run")
async def run_all_jobs(
    caller: TriggerCaller = Depends(require_admin_or_scheduler),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    """Run the adzan job and the reminder job for the current minute."""
    logger.info(f"Dispatch run triggered by {caller.email or caller.kind}")
    outcome = await orchestrator.run_all()
    content = {"run_every": RUN_EVERY, **outcome.to_dict()}
    return JSONResponse(status_code=200 if outcome.ok else 500, content=content)


@router.post("/adzan")
async def run_adzan_job(
    caller: TriggerCaller = Depends(require_admin_or_scheduler),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    return _job_response(await orchestrator.run_adzan_job())


@router.post("/reminders")
async def run_reminder_job(
    caller: TriggerCaller = Depends(require_admin_or_scheduler),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    return _job_response(await orchestrator.run_reminder_job())
