import logging
import datetime

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from typing import Optional

from habitflow.auth import get_current_user
from habitflow.database import get_db
from habitflow.services.habit_service import HabitService
from habitflow.services.notification_service import notification_queue
from habitflow.services.progress_service import ProgressService
from habitflow.services.stats_service import StatsService
from habitflow.services.websocket_manager import ws_manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/habits", tags=["Habits"])

COLOR_PATTERN = r"^#[0-9a-fA-F]{6}$"


class HabitCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    category: str = Field(min_length=1, max_length=50)
    target_days: Optional[int] = Field(default=30, ge=1, le=3650)
    color: Optional[str] = Field(default="#10b981", pattern=COLOR_PATTERN)


class HabitUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    category: Optional[str] = Field(default=None, min_length=1, max_length=50)
    target_days: Optional[int] = Field(default=None, ge=1, le=3650)
    color: Optional[str] = Field(default=None, pattern=COLOR_PATTERN)


class ToggleRequest(BaseModel):
    completed: bool = True
    date: Optional[datetime.date] = None
    notes: Optional[str] = Field(default=None, max_length=1000)


@router.get("")
async def list_habits(user_id: int = Depends(get_current_user), db: Session = Depends(get_db)):
    """Active habits with today's status, streak and completion rate."""
    try:
        return {"status": "success", "data": HabitService.get_all(db, user_id)}
    except Exception as e:
        logger.exception("Failed to list habits: %s", e)
        raise HTTPException(status_code=500, detail="Failed to fetch habits")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_habit(body: HabitCreate, user_id: int = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        habit = HabitService.create(db, user_id, body.model_dump())
        StatsService.refresh(db, user_id)
        return {"status": "success", "data": habit.to_dict()}
    except Exception as e:
        logger.exception("Failed to create habit: %s", e)
        raise HTTPException(status_code=500, detail="Failed to create habit")


@router.put("/{habit_id}")
async def update_habit(
    habit_id: int,
    body: HabitUpdate,
    user_id: int = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        habit = HabitService.update(db, user_id, habit_id, body.model_dump(exclude_unset=True))
        if not habit:
            raise HTTPException(status_code=404, detail="Habit not found")
        return {"status": "success", "data": habit.to_dict()}
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Failed to update habit %s: %s", habit_id, e)
        raise HTTPException(status_code=500, detail="Failed to update habit")


@router.delete("/{habit_id}")
async def delete_habit(habit_id: int, user_id: int = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        if not HabitService.delete(db, user_id, habit_id):
            raise HTTPException(status_code=404, detail="Habit not found")
        StatsService.refresh(db, user_id)
        return {"status": "success"}
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Failed to delete habit %s: %s", habit_id, e)
        raise HTTPException(status_code=500, detail="Failed to delete habit")


@router.post("/{habit_id}/toggle")
async def toggle_habit(
    habit_id: int,
    background_tasks: BackgroundTasks,
    body: Optional[ToggleRequest] = None,
    user_id: int = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Mark a day (default today) complete or incomplete, then push live updates."""
    body = body or ToggleRequest()
    try:
        result = HabitService.toggle(db, user_id, habit_id, completed=body.completed, day=body.date, notes=body.notes)
        if result is None:
            raise HTTPException(status_code=404, detail="Habit not found")

        entry = result["entry"]
        stats = StatsService.get_stats(db, user_id)
        weekly = ProgressService.weekly(db, user_id)

        if result["milestone_reached"]:
            habit = HabitService.get(db, user_id, habit_id)
            notification_queue.append(
                user_id,
                "streak",
                f"{result['streak']}-day streak!",
                f"You've kept up {habit.name} for {result['streak']} days in a row. Keep going!",
                habit_id=habit_id,
            )

        # Payloads are built now; only the sends run after the response
        background_tasks.add_task(
            ws_manager.broadcast_to_user, user_id, "habit_completed",
            {
                "habit_id": habit_id,
                "date": entry.date.isoformat(),
                "completed": entry.completed,
                "streak": result["streak"],
                "milestone_reached": result["milestone_reached"],
                "milestone_type": result["milestone_type"],
            },
        )
        background_tasks.add_task(ws_manager.broadcast_to_user, user_id, "stats_update", stats)
        background_tasks.add_task(ws_manager.broadcast_to_user, user_id, "progress_update", {"weekly": weekly})

        return {
            "status": "success",
            "data": {
                "entry": entry.to_dict(),
                "streak": result["streak"],
                "milestone_reached": result["milestone_reached"],
                "milestone_type": result["milestone_type"],
            },
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Failed to toggle habit %s: %s", habit_id, e)
        raise HTTPException(status_code=500, detail="Failed to toggle habit")


@router.get("/{habit_id}/entries")
async def habit_entries(
    habit_id: int,
    limit: int = Query(default=30, ge=1, le=365),
    user_id: int = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        if not HabitService.get(db, user_id, habit_id):
            raise HTTPException(status_code=404, detail="Habit not found")
        entries = HabitService.get_history(db, user_id, habit_id, limit=limit)
        return {"status": "success", "data": [e.to_dict() for e in entries]}
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Failed to fetch entries for habit %s: %s", habit_id, e)
        raise HTTPException(status_code=500, detail="Failed to fetch habit entries")
