from fastapi import APIRouter, Depends, Path, Query, Request

from lmslocal.api.dependencies import get_competition_service, get_current_session
from lmslocal.api.errors import to_http_exception
from lmslocal.core.security import ApiSession
from lmslocal.schemas.envelope import SubmitResultsRequest, SubmitResultsResponse
from lmslocal.schemas.round_schemas import CurrentRoundResponse
from lmslocal.schemas.standings_schemas import PlayerHistoryResponse, StandingsResponse
from lmslocal.services.competition_service import CompetitionService

router = APIRouter()


@router.get("/{competition_id}/standings", response_model=StandingsResponse, summary="Competition standings")
def get_standings(
    request: Request,
    competition_id: int = Path(..., description="The ID of the competition"),
    page: int = Query(1, description="1-based page of the active players"),
    session: ApiSession = Depends(get_current_session),
    service: CompetitionService = Depends(get_competition_service),
):
    """
    Active and eliminated players with their derived statistics.

    - Picks of other players stay hidden until the round locks, unless more
      than three players are still active.
    - The active list is paginated once it is long enough.
    """
    try:
        return service.get_standings(session, competition_id, page)
    except Exception as e:
        raise to_http_exception(e, request) from e


@router.get("/{competition_id}/rounds/current", response_model=CurrentRoundResponse, summary="Latest round")
def get_current_round(
    request: Request,
    competition_id: int = Path(..., description="The ID of the competition"),
    session: ApiSession = Depends(get_current_session),
    service: CompetitionService = Depends(get_competition_service),
):
    try:
        return service.get_current_round(session, competition_id)
    except Exception as e:
        raise to_http_exception(e, request) from e


@router.get("/{competition_id}/players/{player_id}/history", response_model=PlayerHistoryResponse,
            summary="Pick history of one player")
def get_player_history(
    request: Request,
    competition_id: int = Path(..., description="The ID of the competition"),
    player_id: int = Path(..., description="The user ID of the player"),
    session: ApiSession = Depends(get_current_session),
    service: CompetitionService = Depends(get_competition_service),
):
    try:
        return service.get_player_history(session, competition_id, player_id)
    except Exception as e:
        raise to_http_exception(e, request) from e


@router.post("/{competition_id}/results", response_model=SubmitResultsResponse, summary="Confirm round results")
def submit_results(
    payload: SubmitResultsRequest,
    request: Request,
    competition_id: int = Path(..., description="The ID of the competition"),
    session: ApiSession = Depends(get_current_session),
    service: CompetitionService = Depends(get_competition_service),
):
    """
    Enters the given results and confirms them in one batch.
    Each result is one of home_win, away_win, draw or clear. If the remote API
    refuses the batch nothing is kept and the error is returned.
    """
    try:
        return service.submit_results(session, competition_id, payload.round_id, payload.results)
    except Exception as e:
        raise to_http_exception(e, request) from e
