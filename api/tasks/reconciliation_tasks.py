"""
Celery tasks that repair aggregates from session history.
"""
import logging

from tasks.celery_app import celery_app
from database import SessionLocal
from services.reconciliation_service import ReconciliationService

logger = logging.getLogger(__name__)


@celery_app.task(name="tasks.apply_pending_session_stats")
def apply_pending_session_stats(limit: int = 500):
    """
    Complete the end-of-session cascade for sessions whose request failed
    part way through. Scheduled hourly.
    """
    db = SessionLocal()

    try:
        processed = ReconciliationService.apply_pending(db, limit=limit)
        return {"status": "success", "processed": processed}

    except Exception as e:
        logger.error(f"Failed to apply pending session stats: {e}")
        raise

    finally:
        db.close()


@celery_app.task(name="tasks.rebuild_user_stats")
def rebuild_user_stats(user_id: int):
    """
    Recompute a user's daily totals, streaks and profile from sessions.

    Args:
        user_id: User to rebuild
    """
    db = SessionLocal()

    try:
        logger.info(f"Rebuilding reading stats for user {user_id}")
        user = ReconciliationService.rebuild_user(db, user_id)

        return {
            "status": "success",
            "user_id": user_id,
            "total_reading_duration": user.total_reading_duration,
            "current_streak_days": user.current_streak_days,
        }

    except Exception as e:
        logger.error(f"Failed to rebuild stats for user {user_id}: {e}")
        raise

    finally:
        db.close()
