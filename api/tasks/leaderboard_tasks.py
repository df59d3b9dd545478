"""
Celery tasks for weekly leaderboard settlement.
"""
from datetime import date, datetime
from typing import Optional
import logging

from tasks.celery_app import celery_app
from database import SessionLocal
from services.leaderboard_service import LeaderboardService

logger = logging.getLogger(__name__)


@celery_app.task(name="tasks.settle_weekly_leaderboard")
def settle_weekly_leaderboard(week_start: Optional[str] = None, force: bool = False):
    """
    Settle the leaderboard for the week that just ended.

    Scheduled every Monday. Running it again for a settled week is a no-op
    unless ``force`` is set.

    Args:
        week_start: ISO date of the Monday to settle (defaults to last week)
        force: Recompute entries even if the week was already settled
    """
    db = SessionLocal()

    try:
        now = datetime.utcnow()
        if week_start is not None:
            start = date.fromisoformat(week_start)
        else:
            start = LeaderboardService.previous_week_start(now)

        logger.info(f"Settling weekly leaderboard for {start}")

        settlement = LeaderboardService.settle_week(db, start, force=force, now=now)

        return {
            "status": "success",
            "week_start": start.isoformat(),
            "participants": settlement.participants,
            "settled_at": settlement.settled_at.isoformat(),
        }

    except Exception as e:
        logger.error(f"Failed to settle weekly leaderboard: {e}")
        raise

    finally:
        db.close()
