"""Tests for session tokens, role checks and error code mapping."""

import os

import pytest

from rollcall_engine.common.config import RollcallSettings, get_settings
from rollcall_engine.common.exceptions import (
    AlreadyVerifiedError,
    IllegalTransitionError,
    WrongStatusError,
    http_status_for,
)
from rollcall_engine.common.security import (
    AuthenticatedActor,
    Role,
    create_session_token,
    verify_session_token,
)


@pytest.fixture(autouse=True)
def session_settings():
    os.environ["ROLLCALL_SECRET_KEY"] = "test-secret-key-for-unit-tests"
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSessionTokens:
    def test_round_trip(self):
        actor = AuthenticatedActor(id="moderator-1", role=Role.MODERATOR)
        token = create_session_token(actor)
        assert verify_session_token(token) == actor

    def test_tampered_token(self):
        token = create_session_token(AuthenticatedActor(id="student-1", role=Role.STUDENT))
        assert verify_session_token(token[:-2] + "xx") is None

    def test_expired_token(self):
        token = create_session_token(AuthenticatedActor(id="student-1", role=Role.STUDENT))
        assert verify_session_token(token, max_age=-1) is None

    def test_other_secret_rejected(self):
        token = create_session_token(AuthenticatedActor(id="student-1", role=Role.STUDENT))
        os.environ["ROLLCALL_SECRET_KEY"] = "a-different-secret"
        get_settings.cache_clear()
        assert verify_session_token(token) is None

    def test_garbage(self):
        assert verify_session_token("not-a-token") is None


class TestActor:
    def test_roles(self):
        student = AuthenticatedActor(id="s", role=Role.STUDENT)
        moderator = AuthenticatedActor(id="m", role=Role.MODERATOR)
        admin = AuthenticatedActor(id="a", role=Role.ADMINISTRATOR)
        assert not student.is_staff
        assert moderator.is_staff and not moderator.is_admin
        assert admin.is_staff and admin.is_admin


class TestErrorCodes:
    def test_transition_hierarchy(self):
        assert isinstance(AlreadyVerifiedError(), IllegalTransitionError)
        assert isinstance(WrongStatusError(), IllegalTransitionError)
        assert AlreadyVerifiedError().code == "ALREADY_VERIFIED"
        assert WrongStatusError().code == "WRONG_STATUS"

    @pytest.mark.parametrize("code,status", [
        ("VALIDATION_ERROR", 422),
        ("NOT_FOUND", 404),
        ("OWNERSHIP", 403),
        ("DUPLICATE", 409),
        ("ALREADY_VERIFIED", 409),
        ("RATE_LIMITED", 429),
        ("SOMETHING_ELSE", 400),
    ])
    def test_http_status(self, code, status):
        assert http_status_for(code) == status


class TestSettings:
    def test_production_rejects_insecure_defaults(self):
        settings = RollcallSettings(environment="production", secret_key="insecure-dev-key-change-me")
        with pytest.raises(RuntimeError):
            settings.validate_for_production()

    def test_keyring_from_json(self):
        settings = RollcallSettings(hmac_keys='{"0": "old", "2": "new"}')
        assert settings.hmac_keyring == {0: "old", 2: "new"}
        assert settings.current_hmac_key == "new"

    def test_keyring_invalid_json(self):
        with pytest.raises(ValueError):
            RollcallSettings(hmac_keys="not json").hmac_keyring
