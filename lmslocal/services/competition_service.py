import logging
import threading
from collections import OrderedDict
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from lmslocal.core.config import settings
from lmslocal.core.security import ApiSession
from lmslocal.models import CompetitionModel, FixtureModel, PlayerModel, RoundInfo, RoundModel
from lmslocal.schemas.envelope import ApiEnvelope, ResultEntry, ReturnCode, SubmitResultsResponse
from lmslocal.schemas.round_schemas import CurrentRoundResponse
from lmslocal.schemas.standings_schemas import (
    HistoryEntryView,
    PageSlice,
    PlayerHistoryResponse,
    StandingsResponse,
)
from lmslocal.services.api_client import LmsApiClient
from lmslocal.services.pagination import paginate
from lmslocal.services.request_guard import LoadScope
from lmslocal.services.results_service import ResultsBoard
from lmslocal.services.round_state import (
    derive_round_state,
    is_pick_visible,
    is_round_locked,
    player_landing_view,
    redact_pick,
    resolve_history_outcome,
    sort_fixtures,
)
from lmslocal.services.standings_service import (
    StatusRegressionError,
    build_standings,
    compute_player_stats,
    guard_status_regression,
)

logger = logging.getLogger(__name__)


class CompetitionService:
    """Builds the competition views a signed-in user sees from remote API data."""

    def __init__(self, client: LmsApiClient, max_tracked: Optional[int] = None):
        self.client = client
        self.max_tracked = max_tracked or settings.STANDINGS_TRACKED_LIMIT
        self._lock = threading.Lock()
        # Least recently used (user, competition) pairs are dropped first
        self._scopes: "OrderedDict[Tuple[int, int], LoadScope]" = OrderedDict()
        self._snapshots: "OrderedDict[Tuple[int, int], List[PlayerModel]]" = OrderedDict()

    def _scope(self, user_id: int, competition_id: int) -> LoadScope:
        key = (user_id, competition_id)
        with self._lock:
            if key not in self._scopes:
                self._scopes[key] = LoadScope(name=f"standings {competition_id}")
            self._scopes.move_to_end(key)
            while len(self._scopes) > self.max_tracked:
                evicted, scope = self._scopes.popitem(last=False)
                scope.cancel()
                self._snapshots.pop(evicted, None)
            return self._scopes[key]

    def forget_user(self, user_id: int) -> None:
        """Drops per-user state at logout; pending loads for that user are discarded."""
        with self._lock:
            for key in [k for k in self._scopes if k[0] == user_id]:
                self._scopes.pop(key).cancel()
                self._snapshots.pop(key, None)

    def _remember(self, key: Tuple[int, int], players: List[PlayerModel]) -> None:
        with self._lock:
            self._snapshots[key] = players
            self._snapshots.move_to_end(key)
            while len(self._snapshots) > self.max_tracked:
                self._snapshots.popitem(last=False)

    def _regressions(self, key: Tuple[int, int], players: List[PlayerModel]) -> List[int]:
        with self._lock:
            previous = self._snapshots.get(key)
        if previous is None:
            return []
        try:
            guard_status_regression(previous, players)
        except StatusRegressionError as e:
            # Reported to the caller; the fresh data still becomes the new baseline
            return e.player_ids
        return []

    # --- Remote lookups ---

    def latest_round(self, session: ApiSession, competition_id: int) -> Optional[RoundModel]:
        envelope = self.client.get_rounds(session, competition_id)
        if envelope.is_empty_state:
            return None
        rounds = [RoundModel.model_validate(r) for r in envelope.payload("rounds") or []]
        if not rounds:
            return None
        return max(rounds, key=lambda r: r.round_number)

    def find_round(self, session: ApiSession, competition_id: int, round_id: int) -> RoundModel:
        envelope = self.client.get_rounds(session, competition_id)
        for raw in envelope.payload("rounds") or []:
            round_ = RoundModel.model_validate(raw)
            if round_.id == round_id:
                return round_
        raise ValueError(f"Round {round_id} not found in competition {competition_id}.")

    def round_fixtures(self, session: ApiSession, round_id: int) -> Tuple[List[FixtureModel], Optional[RoundInfo]]:
        envelope = self.client.get_fixtures(session, round_id)
        fixtures = [FixtureModel.model_validate(f) for f in envelope.payload("fixtures") or []]
        info = envelope.payload("round_info")
        return sort_fixtures(fixtures), RoundInfo.model_validate(info) if info else None

    def competition(self, session: ApiSession, competition_id: int) -> CompetitionModel:
        envelope = self.client.get_user_dashboard(session)
        for raw in envelope.payload("competitions") or []:
            if raw.get("id") == competition_id:
                return CompetitionModel.model_validate(raw)
        return CompetitionModel(id=competition_id, name="")

    # --- Views ---

    def get_standings(self, session: ApiSession, competition_id: int, page: int = 1,
                      now: Optional[datetime] = None) -> StandingsResponse:
        scope = self._scope(session.user_id, competition_id)
        token = scope.start()
        envelope = self.client.get_competition_standings(session, competition_id)
        if envelope.is_empty_state:
            return StandingsResponse(
                competition_id=competition_id,
                active=PageSlice(page_size=settings.STANDINGS_PAGE_SIZE),
                empty_state=envelope.return_code,
            )

        players = [PlayerModel.model_validate(p) for p in envelope.payload("players") or []]
        key = (session.user_id, competition_id)
        regressed = self._regressions(key, players)
        scope.apply(token, players, lambda fresh: self._remember(key, fresh))

        round_ = self.latest_round(session, competition_id)
        active_count = sum(1 for p in players if p.is_active)
        shown: List[PlayerModel] = []
        hidden_ids = set()
        for player in players:
            visible = is_pick_visible(round_, session.user_id, player, active_count, now)
            if not visible and player.current_pick is not None:
                hidden_ids.add(player.id)
            shown.append(redact_pick(player, visible))

        standings = build_standings(shown, session.user_id)
        for standing in standings.active + standings.eliminated:
            standing.pick_hidden = standing.id in hidden_ids

        return StandingsResponse(
            competition_id=competition_id,
            round_number=round_.round_number if round_ else None,
            round_locked=is_round_locked(round_, now),
            active_player_count=active_count,
            active=paginate(standings.active, page),
            eliminated=standings.eliminated,
            status_regression=regressed,
        )

    def get_current_round(self, session: ApiSession, competition_id: int,
                          now: Optional[datetime] = None) -> CurrentRoundResponse:
        round_ = self.latest_round(session, competition_id)
        if round_ is None:
            return CurrentRoundResponse(competition_id=competition_id, empty_state=ReturnCode.NO_ROUNDS.value)

        fixtures, info = self.round_fixtures(session, round_.id)
        competition = self.competition(session, competition_id)
        locked = is_round_locked(round_, now)
        pick_counts: Dict[str, int] = {}
        if locked:
            counts = self.client.get_pick_counts(session, round_.id)
            pick_counts = counts.payload("pick_counts") or {}

        board = ResultsBoard(fixtures, round_, competition.status)
        return CurrentRoundResponse(
            competition_id=competition_id,
            round=round_,
            fixtures=fixtures,
            round_info=info,
            is_locked=locked,
            state=derive_round_state(round_, fixtures, now).value,
            completed=board.is_completed(info, now),
            landing_view=player_landing_view(round_, competition, now).value,
            pick_counts=pick_counts,
            empty_state=None if fixtures else ReturnCode.NO_FIXTURES.value,
        )

    def get_player_history(self, session: ApiSession, competition_id: int, player_id: int) -> PlayerHistoryResponse:
        envelope = self.client.get_player_history(session, competition_id, player_id)
        if envelope.is_empty_state:
            return PlayerHistoryResponse(player_id=player_id, empty_state=envelope.return_code)

        player = PlayerModel.model_validate({
            **(envelope.payload("player") or {"id": player_id, "display_name": ""}),
            "history": envelope.payload("history") or [],
        })
        return PlayerHistoryResponse(
            player_id=player.id,
            display_name=player.display_name,
            lives_remaining=player.lives_remaining,
            status=player.status,
            history=[HistoryEntryView(entry=e, outcome=resolve_history_outcome(e)) for e in player.history],
            stats=compute_player_stats(player),
        )

    def submit_results(self, session: ApiSession, competition_id: int, round_id: int,
                       results: Sequence[ResultEntry], now: Optional[datetime] = None) -> SubmitResultsResponse:
        round_ = self.find_round(session, competition_id, round_id)
        fixtures, _ = self.round_fixtures(session, round_id)
        competition = self.competition(session, competition_id)

        board = ResultsBoard(fixtures, round_, competition.status)
        for entry in results:
            board.set_result(entry.fixture_id, entry.result)
        envelope: ApiEnvelope = board.confirm(self.client, session, competition_id, now)

        # Compare what we showed against what the server now reports
        _, server_info = self.round_fixtures(session, round_id)
        divergence = board.check_divergence(server_info, now)
        completed = board.is_completed(server_info, now)

        return SubmitResultsResponse(
            return_code=envelope.return_code,
            message=envelope.message,
            round_completed=completed or envelope.return_code == ReturnCode.COMPETITION_COMPLETE.value,
            divergence=divergence,
            fixtures_processed=envelope.payload("fixtures_processed"),
            active_players=envelope.payload("active_players"),
        )
