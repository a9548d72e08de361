"""Dedicated APScheduler worker process."""
from __future__ import annotations

import logging
import signal
import threading

from apscheduler.schedulers.background import BackgroundScheduler

from shedai.core.config import settings
from shedai.core.logging import configure_logging
from shedai.db.session import SessionLocal
from shedai.services.job_runner import run_schedule_for_all_users


logger = logging.getLogger(__name__)

NIGHTLY_JOB_ID = "nightly_schedule_job"


def main() -> None:
    configure_logging(log_level=settings.log_level, engine_log_level=settings.engine_log_level)
    logger.info("Scheduler worker starting (enabled=%s)", settings.scheduler_enabled)

    scheduler = BackgroundScheduler(timezone=settings.scheduler_timezone)

    if settings.scheduler_enabled:
        register_jobs(scheduler)
        scheduler.start()
        if settings.jobs_run_on_startup:
            logger.info("Running nightly job once on startup")
            run_nightly_schedule_job()
    else:
        logger.warning("Scheduler disabled via config; worker will idle")

    stop_event = threading.Event()

    def shutdown(signum, frame):  # pragma: no cover - signal handler
        logger.info("Scheduler worker shutting down (signal=%s)", signum)
        if scheduler.running:
            scheduler.shutdown(wait=False)
        stop_event.set()

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    try:
        stop_event.wait()
    except KeyboardInterrupt:  # pragma: no cover - manual stop
        shutdown(signal.SIGINT, None)


def register_jobs(scheduler: BackgroundScheduler) -> None:
    scheduler.add_job(
        run_nightly_schedule_job,
        trigger="cron",
        hour=settings.nightly_job_hour,
        minute=settings.nightly_job_minute,
        id=NIGHTLY_JOB_ID,
        replace_existing=True,
    )
    logger.info(
        "Registered nightly schedule job (time=%02d:%02d %s)",
        settings.nightly_job_hour,
        settings.nightly_job_minute,
        settings.scheduler_timezone,
    )


def run_nightly_schedule_job() -> None:
    session = SessionLocal()
    try:
        result = run_schedule_for_all_users(session)
        logger.info(
            "Nightly schedule job complete: users=%s, schedules=%s, failed=%s",
            result.users_processed,
            result.schedules_written,
            len(result.failed_user_ids),
        )
    except Exception:  # pragma: no cover - keep the worker alive
        logger.exception("Nightly schedule job failed")
    finally:
        session.close()


if __name__ == "__main__":  # pragma: no cover - manual launch
    main()
