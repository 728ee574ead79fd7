"""
ARQ Background Worker
Runs the booking notification scheduler every minute and the stale client cleanup

Deploy exactly one worker process: the scheduler's overlap guard is
per-process, and a second worker would send duplicate reminders.
"""

import logging
import os

from arq.connections import RedisSettings
from arq.cron import cron

from .config import REDIS_URL, SCHEDULER_INTERVAL_SECONDS
from .database import SessionLocal
from .services.cleanup_service import remove_unregistered_clients
from .services.notification_scheduler import NotificationScheduler
from .services.telegram_service import TelegramNotifier

logger = logging.getLogger(__name__)


def get_redis_settings(redis_url: str = REDIS_URL) -> RedisSettings:
    """arq connection settings; rediss:// URLs turn on TLS"""
    return RedisSettings.from_dsn(redis_url)


def scheduler_cron_fields(interval_seconds: int) -> dict:
    """arq cron fields for a pass every interval_seconds (whole minutes above 60)"""
    if interval_seconds < 60:
        return {"second": set(range(0, 60, max(interval_seconds, 1)))}
    step = max(interval_seconds // 60, 1)
    return {"minute": set(range(0, 60, step)), "second": 0}


async def startup(ctx):
    ctx["scheduler"] = NotificationScheduler(SessionLocal, TelegramNotifier())
    logger.info("🚀 Booking notification worker started")


async def shutdown(ctx):
    logger.info("Booking notification worker shutting down")


async def booking_notifications_task(ctx):
    """
    Every-minute job: reminders (1 day, 3 hours, 1 hour, 30 minutes before)
    and completion notices for approved bookings.
    """
    scheduler = ctx.get("scheduler")
    if scheduler is None:
        scheduler = ctx["scheduler"] = NotificationScheduler(SessionLocal, TelegramNotifier())
    return await scheduler.run_pass()


async def unregistered_client_cleanup_task(ctx):
    """Every third day: reject and remove stale clients without a messaging contact"""
    logger.info("🔄 Starting unregistered client cleanup")

    db = SessionLocal()
    try:
        return remove_unregistered_clients(db)
    except Exception as e:
        logger.error(f"❌ Unregistered client cleanup failed: {str(e)}")
        raise
    finally:
        db.close()


class WorkerSettings:
    """ARQ Worker Settings"""

    functions = [booking_notifications_task, unregistered_client_cleanup_task]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = get_redis_settings()

    max_jobs = int(os.getenv("ARQ_MAX_JOBS", "10"))
    job_timeout = int(os.getenv("ARQ_JOB_TIMEOUT", "300"))

    # unique=True (arq default) keeps one tick from being enqueued twice
    cron_jobs = [
        cron(
            booking_notifications_task,
            unique=True,
            **scheduler_cron_fields(SCHEDULER_INTERVAL_SECONDS),
        ),  # every minute by default
        cron(
            unregistered_client_cleanup_task, day=set(range(1, 32, 3)), hour=0, minute=0
        ),  # 00:00 every third day
    ]
