import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from habitflow.auth import get_current_user
from habitflow.database import get_db
from habitflow.services.progress_service import ProgressService
from habitflow.services.stats_service import StatsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Stats"])


@router.get("/stats")
async def get_stats(user_id: int = Depends(get_current_user), db: Session = Depends(get_db)):
    """Live streak / completion aggregates plus today's summary."""
    try:
        return {"status": "success", "data": StatsService.get_stats(db, user_id)}
    except Exception as e:
        logger.exception("Failed to fetch stats: %s", e)
        raise HTTPException(status_code=500, detail="Failed to fetch user stats")


@router.get("/progress/weekly")
async def weekly_progress(user_id: int = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        return {"status": "success", "data": ProgressService.weekly(db, user_id)}
    except Exception as e:
        logger.exception("Failed to fetch weekly progress: %s", e)
        raise HTTPException(status_code=500, detail="Failed to fetch weekly progress")


@router.get("/progress/monthly")
async def monthly_progress(user_id: int = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        return {"status": "success", "data": ProgressService.monthly(db, user_id)}
    except Exception as e:
        logger.exception("Failed to fetch monthly progress: %s", e)
        raise HTTPException(status_code=500, detail="Failed to fetch monthly progress")
