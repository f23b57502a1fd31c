import pytest
from unittest.mock import MagicMock
from fastapi.testclient import TestClient

from lmslocal.main import app
from lmslocal.api.dependencies import get_competition_service, get_current_session
from lmslocal.core.exceptions import (
    AuthenticationError,
    LmsApiError,
    PermissionDeniedError,
    RollbackError,
    TransportError,
)
from lmslocal.core.security import ApiSession
from lmslocal.schemas.envelope import SubmitResultsResponse
from lmslocal.schemas.standings_schemas import PageSlice, PlayerHistoryResponse, StandingsResponse
from lmslocal.schemas.round_schemas import CurrentRoundResponse
from lmslocal.services.competition_service import CompetitionService

MOCK_SESSION = ApiSession(token="token-abc", user_id=1, display_name="Ann")


@pytest.fixture
def mock_competition_service():
    return MagicMock(spec=CompetitionService)


@pytest.fixture
def client(mock_competition_service):
    app.dependency_overrides[get_current_session] = lambda: MOCK_SESSION
    app.dependency_overrides[get_competition_service] = lambda: mock_competition_service
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestCompetitionRoutes:

    def test_health(self, client: TestClient):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_get_standings(self, client: TestClient, mock_competition_service: MagicMock):
        mock_competition_service.get_standings.return_value = StandingsResponse(
            competition_id=9,
            round_number=2,
            active_player_count=0,
            active=PageSlice(page_size=25),
        )
        response = client.get("/competitions/9/standings?page=1")
        assert response.status_code == 200
        assert response.json()["competition_id"] == 9
        mock_competition_service.get_standings.assert_called_once_with(MOCK_SESSION, 9, 1)

    def test_empty_state_is_200(self, client: TestClient, mock_competition_service: MagicMock):
        mock_competition_service.get_standings.return_value = StandingsResponse(
            competition_id=9, active=PageSlice(page_size=25), empty_state="NO_DATA",
        )
        response = client.get("/competitions/9/standings")
        assert response.status_code == 200
        assert response.json()["empty_state"] == "NO_DATA"

    def test_bad_page_is_400(self, client: TestClient, mock_competition_service: MagicMock):
        mock_competition_service.get_standings.side_effect = ValueError("Page 9 out of range (1-3).")
        response = client.get("/competitions/9/standings?page=9")
        assert response.status_code == 400
        assert "out of range" in response.json()["detail"]

    def test_current_round(self, client: TestClient, mock_competition_service: MagicMock):
        mock_competition_service.get_current_round.return_value = CurrentRoundResponse(
            competition_id=9, state="ACTIVE", is_locked=True, landing_view="results",
        )
        response = client.get("/competitions/9/rounds/current")
        assert response.status_code == 200
        assert response.json()["state"] == "ACTIVE"

    def test_player_history(self, client: TestClient, mock_competition_service: MagicMock):
        mock_competition_service.get_player_history.return_value = PlayerHistoryResponse(
            player_id=2, display_name="Ben",
        )
        response = client.get("/competitions/9/players/2/history")
        assert response.status_code == 200
        assert response.json()["display_name"] == "Ben"
        mock_competition_service.get_player_history.assert_called_once_with(MOCK_SESSION, 9, 2)

    def test_submit_results(self, client: TestClient, mock_competition_service: MagicMock):
        mock_competition_service.submit_results.return_value = SubmitResultsResponse(
            return_code="SUCCESS", round_completed=True,
        )
        response = client.post("/competitions/9/results", json={
            "round_id": 3,
            "results": [{"fixture_id": 10, "result": "home_win"}],
        })
        assert response.status_code == 200
        assert response.json()["round_completed"] is True
        args, _ = mock_competition_service.submit_results.call_args
        assert args[:3] == (MOCK_SESSION, 9, 3)
        assert args[3][0].fixture_id == 10

    @pytest.mark.parametrize("error, expected_status", [
        (AuthenticationError("TOKEN_EXPIRED", "Token expired"), 401),
        (PermissionDeniedError("UNAUTHORIZED", "Organiser only"), 403),
        (TransportError("Request timed out"), 503),
        (RollbackError(LmsApiError("VALIDATION_ERROR", "Bad result")), 502),
        (RollbackError(TransportError("Request timed out")), 503),
        (LmsApiError("SERVER_ERROR", "Database error"), 502),
    ])
    def test_error_mapping(self, client: TestClient, mock_competition_service: MagicMock, error, expected_status):
        mock_competition_service.submit_results.side_effect = error
        response = client.post("/competitions/9/results", json={"round_id": 3, "results": []})
        assert response.status_code == expected_status


class TestAuthenticationRequired:

    def test_missing_session_is_401(self):
        app.dependency_overrides.clear()
        response = TestClient(app).get("/competitions/9/standings")
        assert response.status_code == 401
