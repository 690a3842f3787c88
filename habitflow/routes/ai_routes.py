# ---------- routes/ai_routes.py ----------
import logging
import random

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Optional

from habitflow.auth import get_current_user
from habitflow.database import get_db
from habitflow.services.ai_service import AiService
from habitflow.services.notification_service import notification_queue
from habitflow.services.websocket_manager import ws_manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["AI"])

# Share of auto-generate calls that also produce a micro-challenge
CHALLENGE_PROBABILITY = 0.3


# ── Pydantic schemas ──────────────────────────────────────────────
class MotivateRequest(BaseModel):
    habit_id: Optional[int] = None


def get_ai_service(db: Session = Depends(get_db)) -> AiService:
    return AiService(db)


# ── Routes ────────────────────────────────────────────────────────
@router.post("/generate-nudge")
async def generate_nudge(user_id: int = Depends(get_current_user), ai: AiService = Depends(get_ai_service)):
    try:
        nudge = await ai.generate_personalized_nudge(user_id)
        if nudge is None:
            raise HTTPException(status_code=404, detail="Unable to generate nudge - no habits found")
        return {"status": "success", "data": nudge.to_dict()}
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Failed to generate AI nudge: %s", e)
        raise HTTPException(status_code=500, detail="Failed to generate AI nudge")


@router.post("/generate-challenge")
async def generate_challenge(user_id: int = Depends(get_current_user), ai: AiService = Depends(get_ai_service)):
    try:
        challenge = await ai.generate_daily_challenge(user_id)
        if challenge is None:
            raise HTTPException(status_code=404, detail="Unable to generate challenge - no habits found")
        return {"status": "success", "data": challenge.to_dict()}
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Failed to generate AI challenge: %s", e)
        raise HTTPException(status_code=500, detail="Failed to generate AI challenge")


@router.post("/motivate")
async def motivate(
    body: Optional[MotivateRequest] = None,
    user_id: int = Depends(get_current_user),
    ai: AiService = Depends(get_ai_service),
):
    habit_id = body.habit_id if body else None
    try:
        motivation = await ai.generate_motivation(user_id, habit_id)
        return {"status": "success", "data": motivation.to_dict()}
    except Exception as e:
        logger.exception("Failed to generate motivation: %s", e)
        raise HTTPException(status_code=500, detail="Failed to generate motivation message")


@router.get("/habit-suggestions")
async def habit_suggestions(
    category: Optional[str] = Query(default=None, max_length=50),
    user_id: int = Depends(get_current_user),
    ai: AiService = Depends(get_ai_service),
):
    try:
        suggestions = await ai.generate_habit_suggestions(user_id, category)
        return {"status": "success", "data": {"suggestions": suggestions}}
    except Exception as e:
        logger.exception("Failed to generate habit suggestions: %s", e)
        raise HTTPException(status_code=500, detail="Failed to generate habit suggestions")


@router.post("/request-nudge")
async def request_nudge(
    background_tasks: BackgroundTasks,
    user_id: int = Depends(get_current_user),
    ai: AiService = Depends(get_ai_service),
):
    """Generate a nudge, queue it as a notification and push it over the socket."""
    try:
        nudge = await ai.generate_personalized_nudge(user_id)
        if nudge is None:
            raise HTTPException(status_code=404, detail="Unable to generate nudge")

        notification = notification_queue.append(
            user_id, "nudge", nudge.title, nudge.message, habit_id=nudge.habit_id
        )
        payload = nudge.to_dict()
        background_tasks.add_task(ws_manager.broadcast_to_user, user_id, "ai_nudge", payload)
        return {"status": "success", "data": {"nudge": payload, "notification": notification.to_dict()}}
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Failed to request nudge: %s", e)
        raise HTTPException(status_code=500, detail="Failed to generate nudge")


@router.post("/auto-generate-nudges")
async def auto_generate_nudges(user_id: int = Depends(get_current_user), ai: AiService = Depends(get_ai_service)):
    try:
        nudge = await ai.generate_personalized_nudge(user_id)
        challenge = None
        if random.random() < CHALLENGE_PROBABILITY:
            challenge = await ai.generate_daily_challenge(user_id)
        return {
            "status": "success",
            "data": {
                "nudge": nudge.id if nudge else None,
                "challenge": challenge.id if challenge else None,
            },
        }
    except Exception as e:
        logger.exception("Failed to auto-generate nudges: %s", e)
        raise HTTPException(status_code=500, detail="Failed to auto-generate nudges")
