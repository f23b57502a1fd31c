import pytest
from unittest.mock import MagicMock
from fastapi.testclient import TestClient

from lmslocal.main import app
from lmslocal.api.dependencies import get_api_client, get_competition_service
from lmslocal.core.exceptions import AuthenticationError, LmsApiError, TransportError
from lmslocal.core.security import ApiSession
from lmslocal.schemas.standings_schemas import PageSlice, StandingsResponse
from lmslocal.services.api_client import LmsApiClient
from lmslocal.services.competition_service import CompetitionService


@pytest.fixture
def mock_api_client():
    return MagicMock(spec=LmsApiClient)


@pytest.fixture
def mock_competition_service():
    return MagicMock(spec=CompetitionService)


@pytest.fixture
def client(mock_api_client, mock_competition_service):
    app.dependency_overrides[get_api_client] = lambda: mock_api_client
    app.dependency_overrides[get_competition_service] = lambda: mock_competition_service
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestAuthRoutes:

    def test_login_stores_session(self, client: TestClient, mock_api_client: MagicMock,
                                  mock_competition_service: MagicMock):
        mock_api_client.login.return_value = ApiSession(token="token-abc", user_id=42, display_name="Sam")
        mock_competition_service.get_standings.return_value = StandingsResponse(
            competition_id=9, active=PageSlice(page_size=25),
        )

        response = client.post("/auth/login", json={"email": "sam@example.com", "password": "secret"})
        assert response.status_code == 200
        assert response.json()["user_id"] == 42
        mock_api_client.login.assert_called_once_with("sam@example.com", "secret")

        # The signed cookie now authenticates later requests
        response = client.get("/competitions/9/standings")
        assert response.status_code == 200
        session_arg = mock_competition_service.get_standings.call_args[0][0]
        assert session_arg.user_id == 42
        assert session_arg.token == "token-abc"

    def test_login_rejected(self, client: TestClient, mock_api_client: MagicMock):
        mock_api_client.login.side_effect = LmsApiError("INVALID_CREDENTIALS", "Invalid email or password")
        response = client.post("/auth/login", json={"email": "sam@example.com", "password": "wrong"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"

    def test_login_remote_unreachable(self, client: TestClient, mock_api_client: MagicMock):
        mock_api_client.login.side_effect = TransportError("Could not reach remote API")
        response = client.post("/auth/login", json={"email": "sam@example.com", "password": "secret"})
        assert response.status_code == 503

    def test_login_validates_email(self, client: TestClient):
        response = client.post("/auth/login", json={"email": "not-an-email", "password": "secret"})
        assert response.status_code == 422

    def test_logout_clears_session(self, client: TestClient, mock_api_client: MagicMock,
                                   mock_competition_service: MagicMock):
        mock_api_client.login.return_value = ApiSession(token="token-abc", user_id=42)
        client.post("/auth/login", json={"email": "sam@example.com", "password": "secret"})

        response = client.post("/auth/logout")
        assert response.status_code == 204
        mock_api_client.logout.assert_called_once()
        mock_competition_service.forget_user.assert_called_once_with(42)

        response = client.get("/competitions/9/standings")
        assert response.status_code == 401

    def test_auth_failure_clears_cookie_session(self, client: TestClient, mock_api_client: MagicMock,
                                                mock_competition_service: MagicMock):
        mock_api_client.login.return_value = ApiSession(token="token-abc", user_id=42)
        client.post("/auth/login", json={"email": "sam@example.com", "password": "secret"})

        mock_competition_service.get_standings.side_effect = AuthenticationError("TOKEN_EXPIRED", "Token expired")
        assert client.get("/competitions/9/standings").status_code == 401

        mock_competition_service.get_standings.side_effect = None
        mock_competition_service.get_standings.return_value = StandingsResponse(
            competition_id=9, active=PageSlice(page_size=25),
        )
        # The cookie was cleared, so the next request never reaches the service
        assert client.get("/competitions/9/standings").status_code == 401
        assert mock_competition_service.get_standings.call_count == 1
