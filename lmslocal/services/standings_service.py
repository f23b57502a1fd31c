import logging
import math
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from lmslocal.core.config import settings
from lmslocal.models import EliminationPick, PickOutcome, PlayerModel, PlayerStatus, RoundHistoryEntry
from lmslocal.schemas.standings_schemas import (
    PlayerStanding,
    PlayerStats,
    Standings,
)
from lmslocal.services.round_state import resolve_history_outcome

logger = logging.getLogger(__name__)

_STREAK_OUTCOMES = (PickOutcome.WIN, PickOutcome.LOSS)


class StatusRegressionError(ValueError):
    """An eliminated player came back as active after a refresh."""

    def __init__(self, player_ids: List[int]):
        self.player_ids = player_ids
        super().__init__(f"Eliminated players reported active again: {player_ids}")


def _streak(outcomes: Sequence[PickOutcome]) -> Tuple[int, Optional[PickOutcome]]:
    # Anchor on the most recent win/loss, skipping trailing pending/no_pick entries
    anchor = len(outcomes) - 1
    while anchor >= 0 and outcomes[anchor] not in _STREAK_OUTCOMES:
        anchor -= 1
    if anchor < 0:
        return 0, None

    streak_type = outcomes[anchor]
    count = 0
    for outcome in reversed(outcomes[:anchor + 1]):
        if outcome != streak_type:
            break
        count += 1
    return count, streak_type


def _win_rate(outcomes: Sequence[PickOutcome]) -> int:
    if not outcomes:
        return 0
    wins = sum(1 for o in outcomes if o == PickOutcome.WIN)
    # Half rounds up, as a percentage display would
    return int(math.floor(wins * 100 / len(outcomes) + 0.5))


def find_elimination_pick(history: Sequence[RoundHistoryEntry]) -> Optional[EliminationPick]:
    """The most recent losing pick. No-pick rounds never count as the cause."""
    for entry in reversed(history):
        if entry.pick_team and resolve_history_outcome(entry) == PickOutcome.LOSS:
            return EliminationPick(
                round_number=entry.round_number,
                team=entry.pick_team,
                team_full_name=entry.pick_team_full_name,
                fixture=entry.fixture,
                result=entry.fixture_result,
            )
    return None


def compute_player_stats(
    player: PlayerModel,
    window: Optional[int] = None,
    form_size: Optional[int] = None,
) -> PlayerStats:
    window = window or settings.STATS_WINDOW
    form_size = form_size or settings.RECENT_FORM_SIZE

    recent = player.history[-window:]
    outcomes = [resolve_history_outcome(entry) for entry in recent]
    streak, streak_type = _streak(outcomes)

    stats = PlayerStats(
        current_streak=streak,
        streak_type=streak_type,
        win_rate=_win_rate(outcomes),
        recent_form=outcomes[-form_size:],
    )
    if player.status == PlayerStatus.ELIMINATED:
        # Standings rows come without history; the server names the losing pick instead
        stats.elimination_pick = find_elimination_pick(player.history) or player.elimination_pick
    return stats


def _order(standings: List[PlayerStanding]) -> List[PlayerStanding]:
    return sorted(standings, key=lambda s: (not s.is_current_user, s.display_name, s.id))


def to_standing(player: PlayerModel, current_user_id: Optional[int]) -> PlayerStanding:
    return PlayerStanding(
        id=player.id,
        display_name=player.display_name,
        lives_remaining=player.lives_remaining,
        status=player.status,
        is_current_user=player.id == current_user_id,
        current_pick=player.current_pick,
        stats=compute_player_stats(player),
    )


def build_standings(players: Iterable[PlayerModel], current_user_id: Optional[int]) -> Standings:
    """
    Splits players into active and eliminated groups.
    In each group the current user comes first, then players by display name.
    """
    active: List[PlayerStanding] = []
    eliminated: List[PlayerStanding] = []
    for player in players:
        standing = to_standing(player, current_user_id)
        if player.status == PlayerStatus.ELIMINATED:
            eliminated.append(standing)
        else:
            active.append(standing)
    return Standings(active=_order(active), eliminated=_order(eliminated))


def guard_status_regression(previous: Iterable[PlayerModel], fresh: Iterable[PlayerModel]) -> None:
    """Raises StatusRegressionError if any eliminated player is reported active again."""
    eliminated_before: Dict[int, PlayerModel] = {
        p.id: p for p in previous if p.status == PlayerStatus.ELIMINATED
    }
    regressed = [p.id for p in fresh if p.id in eliminated_before and p.status == PlayerStatus.ACTIVE]
    if regressed:
        logger.warning("Player status regression detected for %s", regressed)
        raise StatusRegressionError(regressed)
