"""Tests for AI coaching: provider parsing, template fallbacks and the /api/ai routes."""

import asyncio
import json

import httpx
import pytest
from fastapi import Depends

from habitflow.database import get_db
from habitflow.main import app
from habitflow.models.ai_nudge import AiNudge
from habitflow.providers.base import BaseProvider
from habitflow.providers.openai_provider import OpenAIProvider
from habitflow.routes.ai_routes import get_ai_service
from habitflow.services.ai_service import (
    FALLBACK_CHALLENGES,
    FALLBACK_NUDGES,
    FALLBACK_SUGGESTIONS,
    GENERAL_SUGGESTIONS,
    AiService,
)
from habitflow.services.notification_service import notification_queue


class StubProvider(BaseProvider):
    """Returns a fixed completion and remembers the prompts it saw."""

    def __init__(self, text=None, status="success", error=None):
        self.text = text
        self.status = status
        self.error = error
        self.calls = []

    @property
    def name(self) -> str:
        return "stub"

    async def chat(self, messages, model=None, json_mode=False):
        self.calls.append({"messages": messages, "json_mode": json_mode})
        return {"text": self.text, "provider": self.name, "model": "stub-1", "status": self.status, "error": self.error}


def run(coro):
    return asyncio.run(coro)


class TestNudges:
    def test_no_habits_means_no_nudge(self, db, user):
        service = AiService(db, provider=StubProvider("{}"))
        assert run(service.generate_personalized_nudge(user.id)) is None
        assert run(service.generate_daily_challenge(user.id)) is None

    def test_model_output_is_stored(self, db, habit_factory):
        habit = habit_factory()
        provider = StubProvider(json.dumps({
            "type": "tip",
            "title": "Lay out your shoes",
            "message": "Put your running shoes by the door tonight.",
            "habitId": habit.id,
            "actionLabel": "Got it",
        }))
        nudge = run(AiService(db, provider=provider).generate_personalized_nudge(habit.user_id))

        assert nudge.type == "tip"
        assert nudge.title == "Lay out your shoes"
        assert nudge.habit_id == habit.id
        assert nudge.action_label == "Got it"
        assert provider.calls[0]["json_mode"] is True
        assert "Exercise" in provider.calls[0]["messages"][-1]["content"]

    def test_foreign_habit_id_from_model_is_dropped(self, db, habit_factory, user_factory):
        other = user_factory("bob")
        foreign = habit_factory(owner=other)
        habit = habit_factory()
        provider = StubProvider(json.dumps({"type": "tip", "title": "t", "message": "m", "habitId": foreign.id}))
        nudge = run(AiService(db, provider=provider).generate_personalized_nudge(habit.user_id))
        assert nudge.habit_id is None

    def test_unknown_type_becomes_motivation(self, db, habit_factory):
        habit = habit_factory()
        provider = StubProvider(json.dumps({"type": "lecture", "title": "t", "message": "m"}))
        nudge = run(AiService(db, provider=provider).generate_personalized_nudge(habit.user_id))
        assert nudge.type == "motivation"

    @pytest.mark.parametrize("provider", [
        None,
        StubProvider(status="failed", error="Timeout"),
        StubProvider("this is not json"),
        StubProvider("[1, 2, 3]"),
    ])
    def test_provider_problems_fall_back_to_templates(self, db, habit_factory, provider):
        habit = habit_factory()
        service = AiService(db, provider=provider, use_default_provider=False)

        nudge = run(service.generate_personalized_nudge(habit.user_id))
        assert nudge.title in {t["title"] for t in FALLBACK_NUDGES}

        challenge = run(service.generate_daily_challenge(habit.user_id))
        assert challenge.type == "challenge"
        assert challenge.title in {t["title"] for t in FALLBACK_CHALLENGES}
        assert challenge.action_label == "Complete Challenge"

        assert db.query(AiNudge).filter_by(user_id=habit.user_id).count() == 2


def model_replying(content):
    """An OpenAI provider whose HTTP layer always answers with ``content``."""
    transport = httpx.MockTransport(
        lambda request: httpx.Response(200, json={"choices": [{"message": {"content": content}}]})
    )
    return OpenAIProvider("test-key", base_url="https://llm.test/v1", transport=transport)


class TestMalformedModelOutput:
    def test_non_string_nudge_fields_fall_back(self, db, habit_factory):
        habit = habit_factory()
        provider = model_replying(json.dumps({"type": "tip", "title": {"nested": 1}, "message": ["a", "b"]}))
        nudge = run(AiService(db, provider=provider).generate_personalized_nudge(habit.user_id))
        assert nudge.title in {t["title"] for t in FALLBACK_NUDGES}

    def test_numeric_challenge_title_falls_back(self, db, habit_factory):
        habit = habit_factory()
        provider = model_replying(json.dumps({"title": 42, "message": "Walk"}))
        challenge = run(AiService(db, provider=provider).generate_daily_challenge(habit.user_id))
        assert challenge.title in {t["title"] for t in FALLBACK_CHALLENGES}

    def test_non_string_action_label_falls_back(self, db, habit_factory):
        habit = habit_factory()
        provider = model_replying(json.dumps({"title": "t", "message": "m", "actionLabel": ["go"]}))
        motivation = run(AiService(db, provider=provider).generate_motivation(habit.user_id))
        assert motivation.title == "Your Habit Journey"

    @pytest.mark.parametrize("suggestions", ["Walk daily", ["Walk daily", 3], {"a": "b"}])
    def test_suggestions_must_be_a_list_of_strings(self, db, user, suggestions):
        provider = model_replying(json.dumps({"suggestions": suggestions}))
        result = run(AiService(db, provider=provider).generate_habit_suggestions(user.id))
        assert result == GENERAL_SUGGESTIONS

    def test_route_falls_back_instead_of_failing(self, auth_client):
        provider = model_replying(json.dumps({"title": {"nested": 1}, "message": "m"}))
        app.dependency_overrides[get_ai_service] = lambda db=Depends(get_db): AiService(db, provider=provider)
        auth_client.post("/api/habits", json={"name": "Run", "category": "fitness"})

        resp = auth_client.post("/api/ai/generate-nudge")
        assert resp.status_code == 200
        assert resp.json()["data"]["title"] in {t["title"] for t in FALLBACK_NUDGES}


class TestMotivationAndSuggestions:
    def test_fallback_motivation_for_a_habit(self, db, habit_factory, complete_days):
        habit = habit_factory("Meditate", "mindfulness")
        complete_days(habit, [0, 1, 2])
        service = AiService(db, use_default_provider=False)

        motivation = run(service.generate_motivation(habit.user_id, habit.id))
        assert motivation.habit_id == habit.id
        assert "3-day streak" in motivation.message

    def test_fallback_motivation_overall(self, db, user):
        motivation = run(AiService(db, use_default_provider=False).generate_motivation(user.id))
        assert motivation.title == "Your Habit Journey"
        assert "0 out of 0" in motivation.message

    def test_suggestions_from_model(self, db, user):
        provider = StubProvider(json.dumps({"suggestions": ["a", "b", "c", "d", "e", "f"]}))
        suggestions = run(AiService(db, provider=provider).generate_habit_suggestions(user.id, "sleep"))
        assert suggestions == ["a", "b", "c", "d", "e"]
        assert "sleep" in provider.calls[0]["messages"][-1]["content"]

    def test_suggestions_fallback_by_category(self, db, user):
        service = AiService(db, use_default_provider=False)
        assert run(service.generate_habit_suggestions(user.id, "Fitness")) == FALLBACK_SUGGESTIONS["fitness"]
        assert run(service.generate_habit_suggestions(user.id, "astrology")) == GENERAL_SUGGESTIONS

    def test_empty_suggestions_fall_back(self, db, user):
        service = AiService(db, provider=StubProvider(json.dumps({"suggestions": []})))
        assert run(service.generate_habit_suggestions(user.id)) == GENERAL_SUGGESTIONS


class TestOpenAIProvider:
    def test_success(self):
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            assert request.headers["Authorization"] == "Bearer test-key"
            assert body["response_format"] == {"type": "json_object"}
            return httpx.Response(200, json={"choices": [{"message": {"content": '{"ok": true}'}}]})

        provider = OpenAIProvider("test-key", base_url="https://llm.test/v1", transport=httpx.MockTransport(handler))
        result = run(provider.chat([{"role": "user", "content": "hi"}], json_mode=True))
        assert result["status"] == "success"
        assert result["text"] == '{"ok": true}'
        assert result["provider"] == "openai"

    def test_http_error_is_reported_not_raised(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, json={"error": "boom"}))
        provider = OpenAIProvider("test-key", base_url="https://llm.test/v1", transport=transport)
        result = run(provider.chat([{"role": "user", "content": "hi"}]))
        assert result["status"] == "failed"
        assert result["text"] is None
        assert result["error"]

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        provider = OpenAIProvider("test-key", base_url="https://llm.test/v1", transport=httpx.MockTransport(handler))
        result = run(provider.chat([{"role": "user", "content": "hi"}]))
        assert result == {"text": None, "provider": "openai", "model": provider.default_model,
                          "status": "failed", "error": "Timeout"}


class TestAiRoutes:
    def test_generate_nudge_without_habits_is_not_found(self, auth_client):
        resp = auth_client.post("/api/ai/generate-nudge")
        assert resp.status_code == 404

    def test_fallback_nudge_and_listing(self, auth_client):
        auth_client.post("/api/habits", json={"name": "Run", "category": "fitness"})
        resp = auth_client.post("/api/ai/generate-nudge")
        assert resp.status_code == 200
        nudge = resp.json()["data"]

        listed = auth_client.get("/api/nudges").json()["data"]
        assert [n["id"] for n in listed] == [nudge["id"]]

        assert auth_client.post(f"/api/nudges/{nudge['id']}/read").status_code == 200
        assert auth_client.post(f"/api/nudges/{nudge['id']}/dismiss").status_code == 200
        assert auth_client.get("/api/nudges").json()["data"] == []
        assert auth_client.post("/api/nudges/999/dismiss").status_code == 404

    def test_request_nudge_queues_a_notification(self, auth_client):
        auth_client.post("/api/habits", json={"name": "Run", "category": "fitness"})
        resp = auth_client.post("/api/ai/request-nudge")
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["notification"]["type"] == "nudge"
        assert data["notification"]["title"] == data["nudge"]["title"]
        assert len(notification_queue.list_all(auth_client.user["id"])) == 1

    def test_stubbed_provider_through_the_api(self, auth_client):
        provider = StubProvider(json.dumps({"suggestions": ["Floss nightly"]}))
        app.dependency_overrides[get_ai_service] = lambda db=Depends(get_db): AiService(db, provider=provider)

        resp = auth_client.get("/api/ai/habit-suggestions?category=health")
        assert resp.json()["data"]["suggestions"] == ["Floss nightly"]

    def test_motivate_and_challenge(self, auth_client):
        habit = auth_client.post("/api/habits", json={"name": "Run", "category": "fitness"}).json()["data"]
        resp = auth_client.post("/api/ai/motivate", json={"habit_id": habit["id"]})
        assert resp.status_code == 200
        assert resp.json()["data"]["habit_id"] == habit["id"]

        resp = auth_client.post("/api/ai/generate-challenge")
        assert resp.json()["data"]["type"] == "challenge"

    def test_auto_generate(self, auth_client):
        auth_client.post("/api/habits", json={"name": "Run", "category": "fitness"})
        data = auth_client.post("/api/ai/auto-generate-nudges").json()["data"]
        assert data["nudge"] is not None
