"""
ai_service.py — AI habit coaching
Builds a snapshot of the user's habits, asks the language model for a JSON
nudge / challenge / motivation / suggestion list, and stores the result.
Any provider problem degrades to a locally generated message: AI output is
an enrichment and never fails the request.
"""

import json
import logging
import random
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from habitflow.models.ai_nudge import AiNudge
from habitflow.models.habit import Habit
from habitflow.providers.base import BaseProvider
from habitflow.providers.openai_provider import get_ai_provider
from habitflow.services.entry_ledger import EntryLedger
from habitflow.services.habit_service import HabitService
from habitflow.services.nudge_service import NudgeService
from habitflow.timeutils import today_utc

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """The language model could not produce a usable answer."""


@dataclass
class UserContext:
    habits: list[Habit] = field(default_factory=list)
    streaks: dict[int, int] = field(default_factory=dict)
    completion_rates: dict[int, int] = field(default_factory=dict)
    todays_completions: int = 0

    @property
    def total_habits(self) -> int:
        return len(self.habits)


# ── Templates used when the model is unavailable ─────────────────
FALLBACK_NUDGES = [
    {
        "type": "motivation",
        "title": "You're building momentum!",
        "message": "Every small step counts. Keep up the great work with your daily habits.",
        "action_label": None,
    },
    {
        "type": "reminder",
        "title": "Don't forget your habits today",
        "message": "Take a moment to check in with your habits. Consistency is key to lasting change.",
        "action_label": "Check Habits",
    },
    {
        "type": "tip",
        "title": "Pro Tip: Stack your habits",
        "message": "Try linking new habits to existing routines. After you brush your teeth, do 5 minutes of meditation.",
        "action_label": None,
    },
]

FALLBACK_CHALLENGES = [
    {"title": "5-Minute Energy Boost", "message": "Take 5 deep breaths and do 10 jumping jacks to energize your day."},
    {"title": "Gratitude Moment", "message": "Write down 3 things you're grateful for today. Focus on small, everyday moments."},
    {"title": "Hydration Check", "message": "Drink a full glass of water and notice how refreshed you feel afterwards."},
    {"title": "Mindful Minute", "message": "Spend 60 seconds focusing only on your breathing. Let thoughts pass without judgment."},
]

FALLBACK_SUGGESTIONS = {
    "fitness": [
        "Take the stairs instead of the elevator",
        "10 pushups every morning",
        "Walk for 15 minutes after lunch",
        "Stretch for 5 minutes before bed",
        "Do desk exercises every 2 hours",
    ],
    "nutrition": [
        "Eat a piece of fruit with breakfast",
        "Drink a glass of water before each meal",
        "Pack a healthy snack for work",
        "Eat vegetables with dinner",
        "Take a daily vitamin",
    ],
    "mindfulness": [
        "Practice 5 minutes of deep breathing",
        "Write one sentence in a gratitude journal",
        "Meditate for 10 minutes",
        "Practice mindful eating for one meal",
        "Do a body scan before sleep",
    ],
    "productivity": [
        "Make your bed every morning",
        "Plan your top 3 priorities each day",
        "Clear your desk at the end of the workday",
        "Review your day in the evening",
        "Prepare tomorrow's clothes the night before",
    ],
    "sleep": [
        "Set a consistent bedtime",
        "Turn off screens 1 hour before bed",
        "Read for 15 minutes before sleep",
        "Keep a sleep diary",
        "Avoid caffeine after 2 PM",
    ],
}

GENERAL_SUGGESTIONS = [
    "Drink 8 glasses of water daily",
    "Take a 10-minute walk after meals",
    "Write down 3 goals each morning",
    "Practice gratitude before bed",
    "Spend 5 minutes organizing your space",
]

COACH_SYSTEM_PROMPT = (
    "You are an AI habit coach that gives short, specific, encouraging guidance. "
    "Respond with a single JSON object in the exact format requested."
)


class AiService:
    def __init__(self, db: Session, provider: BaseProvider | None = None, use_default_provider: bool = True):
        self.db = db
        self.provider = provider if provider is not None else (get_ai_provider() if use_default_provider else None)

    # ------------------------------------------------------------------
    def get_user_context(self, user_id: int) -> UserContext:
        today = today_utc()
        ctx = UserContext(habits=HabitService.list_active(self.db, user_id))
        for h in ctx.habits:
            ctx.streaks[h.id] = HabitService.calculate_streak(self.db, h.id, user_id, today)
            ctx.completion_rates[h.id] = HabitService.completion_rate(self.db, h.id, user_id)
        todays = EntryLedger.list_for_user_on_date(self.db, user_id, today)
        active_ids = set(ctx.streaks)
        ctx.todays_completions = sum(1 for e in todays if e.completed and e.habit_id in active_ids)
        return ctx

    # ------------------------------------------------------------------
    async def _ask(self, prompt: str) -> dict:
        """Send one prompt and return the parsed JSON object. Raises ProviderError on any failure."""
        if self.provider is None:
            raise ProviderError("No AI provider configured")

        result = await self.provider.chat(
            [{"role": "system", "content": COACH_SYSTEM_PROMPT}, {"role": "user", "content": prompt}],
            json_mode=True,
        )
        if result.get("status") != "success" or not result.get("text"):
            raise ProviderError(result.get("error") or "Empty response")

        try:
            data = json.loads(result["text"])
        except json.JSONDecodeError as e:
            raise ProviderError(f"Invalid JSON from {result.get('provider')}: {e}") from e
        if not isinstance(data, dict):
            raise ProviderError("Expected a JSON object")
        return data

    @staticmethod
    def _text(data: dict, key: str, default: str | None = None) -> str | None:
        """A string field of the model's answer; missing or blank gives ``default``. Non-strings are rejected."""
        value = data.get(key)
        if value is None:
            return default
        if not isinstance(value, str):
            raise ProviderError(f"Field {key!r} is {type(value).__name__}, expected a string")
        return value.strip() or default

    def _owned_habit_id(self, ctx: UserContext, raw) -> int | None:
        """Only keep a habit id the model returned if it belongs to this user."""
        try:
            habit_id = int(raw)
        except (TypeError, ValueError):
            return None
        return habit_id if habit_id in ctx.streaks else None

    @staticmethod
    def _habit_lines(ctx: UserContext) -> str:
        return "\n".join(
            f"- [{h.id}] {h.name} ({h.category}): {ctx.streaks.get(h.id, 0)} day streak, "
            f"{ctx.completion_rates.get(h.id, 0)}% completion rate"
            for h in ctx.habits
        )

    # ------------------------------------------------------------------
    async def generate_personalized_nudge(self, user_id: int) -> AiNudge | None:
        ctx = self.get_user_context(user_id)
        if not ctx.habits:
            return None

        prompt = (
            "Generate a personalized nudge for a user working on habit building.\n\n"
            f"Habits:\n{self._habit_lines(ctx)}\n\n"
            f"Today's progress: {ctx.todays_completions}/{ctx.total_habits} habits completed.\n\n"
            'Respond with JSON: {"type": "motivation|reminder|tip|challenge", "title": "...", '
            '"message": "2-3 sentences", "habitId": <habit id or null>, "actionLabel": "... or null"}'
        )
        try:
            data = await self._ask(prompt)
            return NudgeService.create(
                self.db, user_id,
                type=self._text(data, "type", "motivation"),
                title=self._text(data, "title", "Keep it up!"),
                message=self._text(data, "message", "You're doing great with your habits!"),
                habit_id=self._owned_habit_id(ctx, data.get("habitId")),
                action_label=self._text(data, "actionLabel"),
            )
        except ProviderError as e:
            logger.warning("AI nudge generation fell back to a template: %s", e)
            template = random.choice(FALLBACK_NUDGES)
            return NudgeService.create(self.db, user_id, **template)

    async def generate_daily_challenge(self, user_id: int) -> AiNudge | None:
        ctx = self.get_user_context(user_id)
        if not ctx.habits:
            return None

        prompt = (
            "Create a small, achievable micro-challenge (5-15 minutes) that supports one of these habits "
            "or a complementary wellness practice.\n\n"
            f"Habits:\n{self._habit_lines(ctx)}\n\n"
            'Respond with JSON: {"title": "...", "message": "...", "habitId": <habit id or null>, '
            '"actionLabel": "Complete Challenge"}'
        )
        try:
            data = await self._ask(prompt)
            return NudgeService.create(
                self.db, user_id,
                type="challenge",
                title=self._text(data, "title", "Daily Challenge"),
                message=self._text(data, "message", "Try this simple challenge today!"),
                habit_id=self._owned_habit_id(ctx, data.get("habitId")),
                action_label=self._text(data, "actionLabel", "Complete Challenge"),
            )
        except ProviderError as e:
            logger.warning("AI challenge generation fell back to a template: %s", e)
            template = random.choice(FALLBACK_CHALLENGES)
            return NudgeService.create(
                self.db, user_id, type="challenge", action_label="Complete Challenge", **template
            )

    async def generate_motivation(self, user_id: int, habit_id: int | None = None) -> AiNudge:
        ctx = self.get_user_context(user_id)
        target = next((h for h in ctx.habits if h.id == habit_id), None) if habit_id else None

        if target:
            prompt = (
                f"Write a motivational message for the habit {target.name} ({target.category}): "
                f"{ctx.streaks.get(target.id, 0)} day streak, {ctx.completion_rates.get(target.id, 0)}% completion.\n"
                'Respond with JSON: {"title": "...", "message": "2-3 sentences", "actionLabel": null}'
            )
        else:
            prompt = (
                f"Write a motivational message about a user's habit journey: "
                f"{ctx.todays_completions}/{ctx.total_habits} habits done today.\n"
                'Respond with JSON: {"title": "...", "message": "2-3 sentences", "actionLabel": null}'
            )

        try:
            data = await self._ask(prompt)
            return NudgeService.create(
                self.db, user_id,
                type="motivation",
                title=self._text(data, "title", "You're doing great!"),
                message=self._text(data, "message", "Keep up the excellent work on your habits!"),
                habit_id=target.id if target else None,
                action_label=self._text(data, "actionLabel"),
            )
        except ProviderError as e:
            logger.warning("AI motivation fell back to a template: %s", e)
            return NudgeService.create(self.db, user_id, **self._fallback_motivation(ctx, target))

    @staticmethod
    def _fallback_motivation(ctx: UserContext, target: Habit | None) -> dict:
        if target:
            streak = ctx.streaks.get(target.id, 0)
            return {
                "type": "motivation",
                "title": f"{target.name} Progress",
                "message": (
                    f"Great job on your {streak}-day streak with {target.name}! You're building lasting change."
                    if streak > 0
                    else f"Every expert was once a beginner. Start your {target.name} journey today!"
                ),
                "habit_id": target.id,
            }
        return {
            "type": "motivation",
            "title": "Your Habit Journey",
            "message": (
                f"You've completed {ctx.todays_completions} out of {ctx.total_habits} habits today. "
                "Progress, not perfection!"
            ),
        }

    async def generate_habit_suggestions(self, user_id: int, category: str | None = None) -> list[str]:
        ctx = self.get_user_context(user_id)
        current = "\n".join(f"- {h.name} ({h.category})" for h in ctx.habits) or "- none yet"
        focus = f"Focus on the {category} category.\n" if category else ""
        prompt = (
            "Suggest 5 new, specific, realistic habits that complement the user's current habits.\n\n"
            f"Current habits:\n{current}\n{focus}\n"
            'Respond with JSON: {"suggestions": ["...", "...", "...", "...", "..."]}'
        )
        try:
            data = await self._ask(prompt)
            raw = data.get("suggestions") or []
            if not isinstance(raw, list) or not all(isinstance(s, str) for s in raw):
                raise ProviderError("Expected 'suggestions' to be a list of strings")
            suggestions = [s.strip() for s in raw if s.strip()]
            if not suggestions:
                raise ProviderError("No suggestions in response")
            return suggestions[:5]
        except ProviderError as e:
            logger.warning("AI habit suggestions fell back to defaults: %s", e)
            return self.fallback_suggestions(category)

    @staticmethod
    def fallback_suggestions(category: str | None = None) -> list[str]:
        if category and category.lower() in FALLBACK_SUGGESTIONS:
            return list(FALLBACK_SUGGESTIONS[category.lower()])
        return list(GENERAL_SUGGESTIONS)
