"""
Round lifecycle derivations shared by every competition view.

All functions here are pure: the same inputs always give the same answer and
nothing is cached between calls. Callers that need "now" pass it in; when it
is omitted the current UTC time is used.
"""
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional, Sequence, Union

from lmslocal.core.config import settings
from lmslocal.models import (
    CompetitionModel,
    CompetitionStatus,
    FixtureModel,
    PickOutcome,
    PickResult,
    PlayerModel,
    RoundHistoryEntry,
    RoundInfo,
    RoundModel,
    DRAW,
)

logger = logging.getLogger(__name__)

Timestamp = Union[datetime, str, None]


class RoundState(str, Enum):
    PENDING = "PENDING"   # picks still open
    ACTIVE = "ACTIVE"     # locked, results still being processed
    COMPLETE = "COMPLETE" # locked and every fixture processed


class LandingView(str, Enum):
    WAITING = "waiting"
    PICK = "pick"
    RESULTS = "results"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Timestamp) -> Optional[datetime]:
    """
    Parses an API timestamp into an aware UTC datetime.
    Naive values are read as UTC. Returns None for missing or malformed input.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z") or text.endswith("z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            logger.debug("Unparseable timestamp %r treated as absent", value)
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def is_locked(lock_time: Timestamp, now: Optional[datetime] = None) -> bool:
    """Picks are closed once now >= lock_time. No lock time means always open."""
    lock_at = parse_timestamp(lock_time)
    if lock_at is None:
        return False
    current = parse_timestamp(now) if now is not None else _utcnow()
    return current >= lock_at


def is_round_locked(round_: Optional[RoundModel], now: Optional[datetime] = None) -> bool:
    if round_ is None:
        return False
    return is_locked(round_.lock_time, now)


def is_pick_visible(
    round_: Optional[RoundModel],
    viewer_id: int,
    player: PlayerModel,
    active_player_count: int,
    now: Optional[datetime] = None,
    min_active: Optional[int] = None,
) -> bool:
    """
    Whether `player`'s current pick may be shown to `viewer_id`.

    Visible once the round is locked, when more than `min_active` players are
    still active, or to the pick's owner. Hidden otherwise; a pool of exactly
    `min_active` players hides.
    """
    if min_active is None:
        min_active = settings.PICK_VISIBILITY_MIN_ACTIVE
    if is_round_locked(round_, now):
        return True
    if active_player_count > min_active:
        return True
    return viewer_id == player.id


def redact_pick(player: PlayerModel, visible: bool) -> PlayerModel:
    """Returns the player as the viewer may see it: the current pick removed when hidden."""
    if visible or player.current_pick is None:
        return player
    return player.model_copy(update={"current_pick": None})


def classify_outcome(
    fixture_result: Optional[str],
    player_pick: Optional[str],
    round_locked: bool,
) -> PickOutcome:
    """
    Maps a fixture result and a pick to a display outcome.

    Not locked -> pending; no pick -> no_pick; result equals pick -> win;
    opponent's code or DRAW -> loss. A locked round whose fixture has no
    result yet is still pending.
    """
    if not round_locked:
        return PickOutcome.PENDING
    if not player_pick:
        return PickOutcome.NO_PICK
    if fixture_result is None or fixture_result == "":
        return PickOutcome.PENDING
    if fixture_result == player_pick:
        return PickOutcome.WIN
    return PickOutcome.LOSS


_RECORDED_OUTCOMES = {
    PickResult.WIN: PickOutcome.WIN,
    PickResult.LOSS: PickOutcome.LOSS,
    PickResult.DRAW: PickOutcome.LOSS,
    PickResult.NO_PICK: PickOutcome.NO_PICK,
    PickResult.PENDING: PickOutcome.PENDING,
}


def resolve_history_outcome(entry: RoundHistoryEntry) -> PickOutcome:
    """
    Outcome of a past round, through the same rules as a live fixture card.
    History rounds are locked; the recorded label is only used when the entry
    does not carry the fixture result needed to classify it.
    """
    if entry.pick_result == PickResult.PENDING:
        return PickOutcome.PENDING
    if entry.fixture_result:
        return classify_outcome(entry.fixture_result, entry.pick_team, round_locked=True)
    if not entry.pick_team:
        return PickOutcome.NO_PICK
    return _RECORDED_OUTCOMES[entry.pick_result]


def fixture_for_pick(fixtures: Iterable[FixtureModel], team_short: Optional[str]) -> Optional[FixtureModel]:
    if not team_short:
        return None
    return next((f for f in fixtures if f.involves(team_short)), None)


def outcome_for_player(
    player: PlayerModel,
    fixtures: Sequence[FixtureModel],
    round_: Optional[RoundModel],
    now: Optional[datetime] = None,
) -> PickOutcome:
    """Current-round outcome of a player, classified against the round's fixtures."""
    pick = player.pick_team
    fixture = fixture_for_pick(fixtures, pick)
    return classify_outcome(fixture.result if fixture else None, pick, is_round_locked(round_, now))


def derive_round_state(
    round_: Optional[RoundModel],
    fixtures: Sequence[FixtureModel],
    now: Optional[datetime] = None,
) -> RoundState:
    if round_ is None or not is_round_locked(round_, now):
        return RoundState.PENDING
    if fixtures and all(f.is_processed for f in fixtures):
        return RoundState.COMPLETE
    return RoundState.ACTIVE


def player_landing_view(
    round_: Optional[RoundModel],
    competition: CompetitionModel,
    now: Optional[datetime] = None,
) -> LandingView:
    """Which screen a player should land on for the competition's latest round."""
    if round_ is None or round_.fixture_count == 0:
        return LandingView.WAITING
    if is_round_locked(round_, now) or competition.viewer_is_eliminated:
        return LandingView.RESULTS
    return LandingView.PICK


def derive_competition_status(
    current: Optional[CompetitionStatus],
    round_count: int,
    active_players: int,
) -> CompetitionStatus:
    """SETUP until the first round exists, ACTIVE while more than one player survives."""
    if current == CompetitionStatus.COMPLETE:
        return CompetitionStatus.COMPLETE
    if round_count == 0:
        return CompetitionStatus.SETUP
    if active_players <= 1:
        return CompetitionStatus.COMPLETE
    return CompetitionStatus.ACTIVE


def _fixtures_complete_locally(fixtures: Sequence[FixtureModel]) -> bool:
    return len(fixtures) > 0 and all(f.result and f.is_processed for f in fixtures)


def is_round_completed(
    competition_status: Optional[CompetitionStatus],
    local_fixtures: Sequence[FixtureModel],
    round_locked: bool,
    server_round_info: Optional[RoundInfo],
) -> bool:
    """
    A round is complete when the competition is over, when every local fixture
    has a processed result in a locked round, or when the server says so.
    Local state wins right after a mutation; the server is the fallback.
    """
    if competition_status == CompetitionStatus.COMPLETE:
        return True
    if round_locked and _fixtures_complete_locally(local_fixtures):
        return True
    if server_round_info is None:
        return False
    return bool(server_round_info.is_locked and server_round_info.all_processed)


def detect_processing_divergence(
    local_fixtures: Sequence[FixtureModel],
    round_locked: bool,
    server_round_info: Optional[RoundInfo],
) -> bool:
    """
    True when local state believes the round finished processing but the
    server, after a refresh, does not. That points at an upstream failure.
    """
    if server_round_info is None:
        return False
    locally_complete = round_locked and _fixtures_complete_locally(local_fixtures)
    server_complete = server_round_info.is_locked and server_round_info.all_processed
    if locally_complete and not server_complete:
        logger.warning(
            "Round %s processed locally but not on the server (is_locked=%s, all_processed=%s)",
            server_round_info.round_number,
            server_round_info.is_locked,
            server_round_info.all_processed,
        )
        return True
    return False


def sort_fixtures(fixtures: Iterable[FixtureModel]) -> list:
    """Alphabetical by "home vs away", fixture id breaking ties."""
    return sorted(fixtures, key=lambda f: (f.description, f.id))


def result_code_for(fixture: FixtureModel, choice: str) -> Optional[str]:
    """Translates a result button (home_win, away_win, draw, clear) into the stored code."""
    if choice == "home_win":
        return fixture.home_team_short
    if choice == "away_win":
        return fixture.away_team_short
    if choice == "draw":
        return DRAW
    if choice == "clear":
        return None
    raise ValueError(f"Unknown result choice: {choice}")
