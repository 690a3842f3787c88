"""Tests for stats aggregation, the stats cache and progress charts."""

from datetime import timedelta

from habitflow.models.user_stats import UserStats
from habitflow.services.habit_service import HabitService
from habitflow.services.progress_service import ProgressService
from habitflow.services.stats_service import StatsService
from habitflow.timeutils import today_utc


class TestStatsService:
    def test_empty_user(self, db, user):
        stats = StatsService.get_stats(db, user.id)
        assert stats["total_habits"] == 0
        assert stats["current_streak"] == 0
        assert stats["today_completion_rate"] == 0

    def test_live_values(self, db, habit_factory, complete_days):
        run = habit_factory("Run")
        read = habit_factory("Read", "learning")
        complete_days(run, [0, 1, 2])
        complete_days(read, [1, 5, 6, 7, 8])

        stats = StatsService.get_stats(db, run.user_id)
        assert stats["total_habits"] == 2
        assert stats["active_habits"] == 2
        assert stats["current_streak"] == 3
        assert stats["longest_streak"] == 4
        assert stats["total_completions"] == 8
        assert stats["completed_today"] == 1
        assert stats["total_habits_today"] == 2
        assert stats["today_completion_rate"] == 50

    def test_deleted_habits_count_for_longest_only(self, db, habit_factory, complete_days):
        run = habit_factory("Run")
        complete_days(run, range(10))
        HabitService.delete(db, run.user_id, run.id)

        stats = StatsService.compute(db, run.user_id)
        assert stats["active_habits"] == 0
        assert stats["current_streak"] == 0
        assert stats["longest_streak"] == 10

    def test_refresh_writes_a_single_cache_row(self, db, habit_factory, complete_days):
        run = habit_factory("Run")
        complete_days(run, [0])
        StatsService.refresh(db, run.user_id)
        StatsService.refresh(db, run.user_id)

        rows = db.query(UserStats).filter_by(user_id=run.user_id).all()
        assert len(rows) == 1
        assert rows[0].total_completions == 1
        assert StatsService.cached(db, run.user_id)["current_streak"] == 1


class TestProgressService:
    def test_weekly_has_seven_days_oldest_first(self, db, habit_factory, complete_days):
        run = habit_factory("Run")
        habit_factory("Read", "learning")
        complete_days(run, [0, 6])

        points = ProgressService.weekly(db, run.user_id)
        today = today_utc()
        assert len(points) == 7
        assert points[0]["date"] == (today - timedelta(days=6)).isoformat()
        assert points[-1]["date"] == today.isoformat()
        assert points[-1]["completed"] == 1
        assert points[-1]["total"] == 2
        assert points[-1]["percentage"] == 50
        assert points[3]["percentage"] == 0

    def test_monthly_buckets(self, db, habit_factory, complete_days):
        run = habit_factory("Run")
        complete_days(run, range(7))

        buckets = ProgressService.monthly(db, run.user_id)
        assert [b["date"] for b in buckets] == ["Week 1", "Week 2", "Week 3", "Week 4"]
        assert buckets[-1]["completed"] == 7
        assert buckets[-1]["percentage"] == 100
        assert buckets[0]["completed"] == 0

    def test_no_habits_means_zero_percent(self, db, user):
        assert all(p["percentage"] == 0 for p in ProgressService.weekly(db, user.id))


class TestStatsRoutes:
    def test_stats_and_progress_endpoints(self, auth_client):
        habit = auth_client.post("/api/habits", json={"name": "Run", "category": "fitness"}).json()["data"]
        auth_client.post(f"/api/habits/{habit['id']}/toggle")

        stats = auth_client.get("/api/stats").json()["data"]
        assert stats["current_streak"] == 1
        assert stats["completed_today"] == 1

        weekly = auth_client.get("/api/progress/weekly").json()["data"]
        assert weekly[-1]["percentage"] == 100
        monthly = auth_client.get("/api/progress/monthly").json()["data"]
        assert len(monthly) == 4

    def test_requires_auth(self, client):
        assert client.get("/api/stats").status_code == 401
        assert client.get("/api/progress/weekly").status_code == 401
