# booking_engine/scheduler.py
"""
Background scheduler for time-based booking transitions.

Uses APScheduler to run periodic jobs for:
- Promoting agreed bookings to upcoming
- Completing bookings whose event date has passed
"""

import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED

from booking_engine.background_tasks.booking_tasks import (
    promote_due_bookings,
    complete_past_bookings,
)

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = None


def _on_job_error(event):
    """Log scheduler job errors with full context."""
    exc = event.exception
    logger.error(
        "Scheduled job FAILED: job_id=%s error=%s",
        event.job_id, exc,
        exc_info=(type(exc), exc, None) if exc else None,
    )
    if event.traceback:
        logger.error("Traceback for job %s:\n%s", event.job_id, event.traceback)


def _on_job_missed(event):
    logger.warning(
        "Scheduled job MISSED: job_id=%s scheduled_run_time=%s",
        event.job_id,
        event.scheduled_run_time,
    )


def init_scheduler():
    """
    Initialize the background scheduler with the booking jobs.

    This is called once when the application starts up.
    """
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler already initialized")
        return scheduler

    scheduler = BackgroundScheduler(
        timezone="UTC",
        job_defaults={
            'coalesce': True,  # Combine missed executions
            'max_instances': 1,  # Only one instance of each job at a time
            'misfire_grace_time': 60
        }
    )

    # Job 1: Promote agreed bookings once both receipts are in
    # Runs every 15 minutes
    scheduler.add_job(
        func=promote_due_bookings,
        trigger=IntervalTrigger(minutes=15),
        id='promote_due_bookings',
        name='Promote Agreed Bookings to Upcoming',
        replace_existing=True
    )
    logger.info("Scheduled job: promote_due_bookings (every 15 minutes)")

    # Job 2: Complete bookings whose event date has passed
    # Runs daily just after midnight UTC
    scheduler.add_job(
        func=complete_past_bookings,
        trigger=CronTrigger(hour=0, minute=5),
        id='complete_past_bookings',
        name='Complete Past Bookings',
        replace_existing=True
    )
    logger.info("Scheduled job: complete_past_bookings (daily at 00:05 UTC)")

    scheduler.add_listener(_on_job_error, EVENT_JOB_ERROR)
    scheduler.add_listener(_on_job_missed, EVENT_JOB_MISSED)

    scheduler.start()
    logger.info("Background scheduler started")
    return scheduler


def shutdown_scheduler():
    """
    Gracefully shutdown the scheduler.

    This is called when the application shuts down.
    """
    global scheduler

    if scheduler is not None:
        scheduler.shutdown(wait=True)
        logger.info("Background scheduler shutdown complete")
        scheduler = None


def get_scheduler_status():
    """
    Get the current status of all scheduled jobs.

    Returns:
        Dict with scheduler state and job details
    """
    if scheduler is None:
        return {"status": "not_initialized", "jobs": []}

    jobs = []
    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
            "trigger": str(job.trigger)
        })

    return {
        "status": "running" if scheduler.running else "stopped",
        "jobs": jobs
    }
