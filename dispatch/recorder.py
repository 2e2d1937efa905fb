"""
dispatch/recorder.py
Writes the one cron_job_runs row that closes every completed job invocation.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from shared.models.models import CronJobRun, RunStatus


def run_status(sent: int, failed: int) -> RunStatus:
    """success when nothing failed, partial on mixed results, failed when every send failed."""
    if failed == 0:
        return RunStatus.SUCCESS
    if sent > 0:
        return RunStatus.PARTIAL
    return RunStatus.FAILED


async def record_run(
    db: AsyncSession,
    job_name: str,
    *,
    processed: int = 0,
    sent: int = 0,
    failed: int = 0,
    note: str = "",
) -> CronJobRun:
    run = CronJobRun(
        job_name=job_name,
        status=run_status(sent, failed),
        processed_count=processed,
        sent_count=sent,
        failed_count=failed,
        note=note or None,
    )
    db.add(run)
    await db.commit()
    return run
