"""Tests for the server-side session store and the credential helpers."""

from datetime import timedelta

from habitflow.auth import hash_password, verify_password
from habitflow.models.session import AuthSession
from habitflow.services.scheduler import sweep_sessions_job
from habitflow.services.session_service import SESSION_PREFIX, SessionStore
from habitflow.services.user_service import UserService
from habitflow.timeutils import utcnow


class TestSessionStore:
    def test_create_and_get(self, db, user):
        s = SessionStore.create(db, user.id)
        assert s.id.startswith(SESSION_PREFIX)
        assert SessionStore.get(db, s.id).user_id == user.id

    def test_default_ttl_is_seven_days(self, db, user):
        s = SessionStore.create(db, user.id)
        assert timedelta(days=6, hours=23) < s.expires_at - utcnow() <= timedelta(days=7)

    def test_ids_are_unique(self, db, user):
        ids = {SessionStore.create(db, user.id).id for _ in range(5)}
        assert len(ids) == 5

    def test_expired_session_is_absent(self, db, user):
        s = SessionStore.create(db, user.id, ttl=timedelta(seconds=-1))
        assert SessionStore.get(db, s.id) is None

    def test_session_one_millisecond_past_expiry_is_absent(self, db, user):
        s = SessionStore.create(db, user.id)
        s.expires_at = utcnow() - timedelta(milliseconds=1)
        db.commit()
        assert SessionStore.get(db, s.id) is None

    def test_unknown_and_empty_ids(self, db):
        assert SessionStore.get(db, "sess_nope") is None
        assert SessionStore.get(db, None) is None

    def test_delete(self, db, user):
        s = SessionStore.create(db, user.id)
        assert SessionStore.delete(db, s.id) is True
        assert SessionStore.get(db, s.id) is None
        assert SessionStore.delete(db, s.id) is False

    def test_sweep_removes_only_expired(self, db, user):
        live = SessionStore.create(db, user.id)
        SessionStore.create(db, user.id, ttl=timedelta(seconds=-5))
        SessionStore.create(db, user.id, ttl=timedelta(seconds=-5))

        assert SessionStore.sweep_expired(db) == 2
        assert db.query(AuthSession).count() == 1
        assert SessionStore.get(db, live.id) is not None

    def test_sweep_job_uses_its_own_session(self, db, user, session_factory):
        SessionStore.create(db, user.id, ttl=timedelta(seconds=-5))
        assert sweep_sessions_job(session_factory) == 1

    def test_active_user_ids(self, db, user, user_factory):
        other = user_factory("bob")
        SessionStore.create(db, user.id)
        SessionStore.create(db, user.id)
        SessionStore.create(db, other.id, ttl=timedelta(seconds=-5))
        assert SessionStore.active_user_ids(db) == [user.id]


class TestCredentials:
    def test_hash_roundtrip(self):
        digest = hash_password("s3cret-pass")
        assert digest != "s3cret-pass"
        assert verify_password("s3cret-pass", digest)
        assert not verify_password("wrong-pass", digest)

    def test_same_password_gets_a_new_salt(self):
        assert hash_password("same-password") != hash_password("same-password")

    def test_garbage_digest_does_not_raise(self):
        assert verify_password("anything", "not-a-bcrypt-hash") is False

    def test_authenticate(self, db, user, password):
        assert UserService.authenticate(db, user.username, password).id == user.id
        assert UserService.authenticate(db, user.username, "wrong-password") is None
        assert UserService.authenticate(db, "ghost", password) is None

    def test_authenticate_stamps_last_login(self, db, user, password):
        assert user.last_login_at is None
        UserService.authenticate(db, user.username, password)
        db.refresh(user)
        assert user.last_login_at is not None


class TestPasswordReset:
    def test_token_is_single_use(self, db, user):
        t = UserService.create_reset_token(db, user.id)
        assert UserService.reset_password(db, t.token, "new-password-1") is True
        assert UserService.reset_password(db, t.token, "new-password-2") is False

        db.refresh(user)
        assert verify_password("new-password-1", user.hashed_password)

    def test_token_burnt_after_it_was_read_is_not_reused(self, db, user, monkeypatch):
        t = UserService.create_reset_token(db, user.id)
        assert UserService.reset_password(db, t.token, "first-password") is True

        # Another worker read the token before it was burnt
        monkeypatch.setattr(UserService, "get_valid_reset_token", lambda db, token: t)
        assert UserService.reset_password(db, t.token, "second-password") is False

        db.refresh(user)
        assert verify_password("first-password", user.hashed_password)
        assert not verify_password("second-password", user.hashed_password)

    def test_reset_ends_every_session(self, db, user):
        SessionStore.create(db, user.id)
        SessionStore.create(db, user.id)
        t = UserService.create_reset_token(db, user.id)
        assert UserService.reset_password(db, t.token, "new-password-1") is True
        assert SessionStore.active_user_ids(db) == []

    def test_expired_token_is_rejected(self, db, user):
        t = UserService.create_reset_token(db, user.id, ttl=timedelta(seconds=-1))
        assert UserService.reset_password(db, t.token, "new-password-1") is False
