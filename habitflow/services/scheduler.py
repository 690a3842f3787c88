"""Background jobs: expired-session sweep and periodic AI nudges."""

import logging
from datetime import timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from habitflow.config import NUDGE_INTERVAL_MINUTES, SESSION_SWEEP_MINUTES
from habitflow.database import SessionLocal
from habitflow.services.ai_service import AiService
from habitflow.services.notification_service import notification_queue
from habitflow.services.session_service import SessionStore
from habitflow.services.websocket_manager import ws_manager
from habitflow.timeutils import utcnow

logger = logging.getLogger(__name__)

NUDGE_COOLDOWN = timedelta(hours=1)

_scheduler: AsyncIOScheduler | None = None


def sweep_sessions_job(session_factory=SessionLocal) -> int:
    """Delete expired sessions. Never raises."""
    db = session_factory()
    try:
        removed = SessionStore.sweep_expired(db)
        if removed:
            logger.info("Session sweep removed %d expired sessions", removed)
        return removed
    except Exception as exc:
        logger.error(f"Session sweep failed: {exc}", exc_info=True)
        return 0
    finally:
        db.close()


async def periodic_nudges_job(session_factory=SessionLocal, provider=None) -> int:
    """
    Nudge every user with a live session, at most once per cooldown window.
    Returns how many nudges were sent. Per-user failures are logged and skipped.
    """
    db = session_factory()
    sent = 0
    try:
        since = utcnow() - NUDGE_COOLDOWN
        service = AiService(db, provider=provider)
        for user_id in SessionStore.active_user_ids(db):
            if notification_queue.recent_of_type(user_id, "nudge", since):
                continue
            try:
                nudge = await service.generate_personalized_nudge(user_id)
                if nudge is None:
                    continue
                notification_queue.append(user_id, "nudge", nudge.title, nudge.message, habit_id=nudge.habit_id)
                await ws_manager.broadcast_to_user(user_id, "ai_nudge", nudge.to_dict())
                sent += 1
            except Exception as exc:
                db.rollback()
                logger.error(f"Periodic nudge failed for user {user_id}: {exc}", exc_info=True)
        return sent
    except Exception as exc:
        logger.error(f"Periodic nudge job failed: {exc}", exc_info=True)
        return sent
    finally:
        db.close()


def start_scheduler() -> AsyncIOScheduler:
    """Start the scheduler on the running event loop."""
    global _scheduler
    if _scheduler is not None:
        logger.warning("Scheduler already running")
        return _scheduler

    _scheduler = AsyncIOScheduler(timezone="UTC")
    _scheduler.add_job(
        func=sweep_sessions_job,
        trigger=IntervalTrigger(minutes=SESSION_SWEEP_MINUTES),
        id="session_sweep",
        name="Expired Session Sweep",
        replace_existing=True,
    )
    _scheduler.add_job(
        func=periodic_nudges_job,
        trigger=IntervalTrigger(minutes=NUDGE_INTERVAL_MINUTES),
        id="periodic_nudges",
        name="Periodic AI Nudges",
        replace_existing=True,
    )
    _scheduler.start()
    logger.info(
        "Background scheduler started (session sweep every %d min, nudges every %d min)",
        SESSION_SWEEP_MINUTES, NUDGE_INTERVAL_MINUTES,
    )
    return _scheduler


def shutdown_scheduler():
    global _scheduler
    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Background scheduler stopped")
