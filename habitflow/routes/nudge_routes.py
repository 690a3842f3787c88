import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from habitflow.auth import get_current_user
from habitflow.database import get_db
from habitflow.services.nudge_service import NudgeService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/nudges", tags=["Nudges"])


@router.get("")
async def list_nudges(
    limit: int = Query(default=10, ge=1, le=100),
    user_id: int = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        nudges = NudgeService.get_all(db, user_id, limit=limit)
        return {"status": "success", "data": [n.to_dict() for n in nudges]}
    except Exception as e:
        logger.exception("Failed to fetch nudges: %s", e)
        raise HTTPException(status_code=500, detail="Failed to fetch AI nudges")


@router.post("/{nudge_id}/dismiss")
async def dismiss_nudge(nudge_id: int, user_id: int = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        if not NudgeService.dismiss(db, user_id, nudge_id):
            raise HTTPException(status_code=404, detail="Nudge not found")
        return {"status": "success"}
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Failed to dismiss nudge %s: %s", nudge_id, e)
        raise HTTPException(status_code=500, detail="Failed to dismiss nudge")


@router.post("/{nudge_id}/read")
async def read_nudge(nudge_id: int, user_id: int = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        if not NudgeService.mark_read(db, user_id, nudge_id):
            raise HTTPException(status_code=404, detail="Nudge not found")
        return {"status": "success"}
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Failed to mark nudge %s as read: %s", nudge_id, e)
        raise HTTPException(status_code=500, detail="Failed to mark nudge as read")
