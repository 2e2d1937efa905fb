"""
tasks/dispatch_tasks.py
Celery tasks that run the dispatch jobs.

Each task invocation gets its own event loop (asyncio.run), so it also gets
its own engine; pooled asyncpg connections cannot cross event loops.
"""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from config.settings import settings
from dispatch.jobs import build_orchestrator
from tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


async def _run(job: str) -> dict:
    engine = create_async_engine(settings.DATABASE_URL, poolclass=NullPool)
    session_factory = async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    try:
        orchestrator = build_orchestrator(session_factory=session_factory)
        if job == "adzan":
            outcome = await orchestrator.run_adzan_job()
        elif job == "reminder":
            outcome = await orchestrator.run_reminder_job()
        else:
            outcome = await orchestrator.run_all()
        return outcome.to_dict()
    finally:
        await engine.dispose()


@celery_app.task(name="tasks.dispatch_tasks.run_dispatch_jobs")
def run_dispatch_jobs() -> dict:
    """Beat entry point: both jobs for the current minute."""
    return _log_outcome("all", asyncio.run(_run("all")))


@celery_app.task(name="tasks.dispatch_tasks.run_adzan_job")
def run_adzan_job() -> dict:
    return _log_outcome("adzan", asyncio.run(_run("adzan")))


@celery_app.task(name="tasks.dispatch_tasks.run_reminder_job")
def run_reminder_job() -> dict:
    return _log_outcome("reminder", asyncio.run(_run("reminder")))


def _log_outcome(job: str, result: dict) -> dict:
    if result.get("ok"):
        logger.info(f"Dispatch ({job}) finished: {result}")
    else:
        logger.error(f"Dispatch ({job}) reported a failure: {result}")
    return result
