import logging
import time

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import settings
from app.core.db import SessionLocal
from app.core.logging import configure_logging
from app.services.overdue import sweep_overdue_tickets

logger = logging.getLogger("app.scheduler")


def job_listener(event):
    if event.exception:
        logger.error("Job %s failed: %s", event.job_id, event.exception)
    else:
        logger.info("Job %s executed", event.job_id)


def run_overdue_sweep() -> int:
    """One sweep in its own session and transaction."""
    db = SessionLocal()
    try:
        changed = sweep_overdue_tickets(db)
        db.commit()
        return changed
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def build_scheduler() -> BackgroundScheduler:
    scheduler = BackgroundScheduler(
        job_defaults={
            "coalesce": True,
            "max_instances": 1,
            "misfire_grace_time": 300,
        }
    )
    scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)
    scheduler.add_job(
        run_overdue_sweep,
        trigger=IntervalTrigger(seconds=settings.OVERDUE_SWEEP_INTERVAL_SECONDS),
        id="overdue_sweep",
        name="Overdue ticket sweep",
        replace_existing=True,
    )
    return scheduler


def run_scheduler():
    """
    Entry point of the scheduler process.
    Periodic triggers live here, outside the request path of the API.
    """
    configure_logging(settings.LOG_LEVEL)
    scheduler = build_scheduler()
    logger.info(
        "Starting scheduler, overdue sweep every %s seconds",
        settings.OVERDUE_SWEEP_INTERVAL_SECONDS,
    )
    scheduler.start()
    try:
        while True:
            time.sleep(1)
    except (KeyboardInterrupt, SystemExit):
        logger.info("Stopping scheduler")
        scheduler.shutdown()


if __name__ == "__main__":
    run_scheduler()
