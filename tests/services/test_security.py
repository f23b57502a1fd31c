import pytest
from datetime import datetime, timedelta, timezone
from jose import jwt

from lmslocal.core.security import ApiSession, read_token_expiry


def make_token(expires_at):
    return jwt.encode({"sub": "42", "exp": int(expires_at.timestamp())}, "remote-secret", algorithm="HS256")


class TestTokenExpiry:

    def test_reads_exp_claim(self):
        expires_at = datetime(2030, 1, 1, tzinfo=timezone.utc)
        assert read_token_expiry(make_token(expires_at)) == expires_at

    def test_non_jwt_token_has_no_expiry(self):
        assert read_token_expiry("not-a-jwt") is None


class TestApiSession:

    def test_requires_token(self):
        with pytest.raises(ValueError, match="requires a token"):
            ApiSession(token="", user_id=1)

    def test_auth_headers(self):
        session = ApiSession(token="abc", user_id=1)
        assert session.auth_headers() == {"Authorization": "Bearer abc"}

    def test_expired_token_is_not_usable(self):
        session = ApiSession(token=make_token(datetime.now(timezone.utc) - timedelta(minutes=1)), user_id=1)
        assert session.is_expired() is True
        assert session.is_usable() is False

    def test_invalidated_session_is_not_usable(self):
        session = ApiSession(token=make_token(datetime.now(timezone.utc) + timedelta(hours=1)), user_id=1)
        assert session.is_usable() is True
        session.invalidate()
        assert session.is_invalidated is True
        assert session.is_usable() is False

    def test_cookie_round_trip_keeps_identity(self):
        session = ApiSession(token="abc", user_id=7, display_name="Sam")
        restored = ApiSession.from_cookie(session.to_cookie())
        assert restored.token == "abc"
        assert restored.user_id == 7
        assert restored.display_name == "Sam"
        assert restored.created_at == session.created_at

    def test_from_incomplete_cookie(self):
        assert ApiSession.from_cookie({}) is None
        assert ApiSession.from_cookie({"token": "abc"}) is None
