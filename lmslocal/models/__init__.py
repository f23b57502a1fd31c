# Re-export the domain models so callers can import them from one place
from .competition_model import CompetitionModel, CompetitionStatus
from .round_model import RoundModel, RoundInfo
from .fixture_model import FixtureModel, DRAW
from .player_model import (
    PlayerModel,
    PlayerStatus,
    PickOutcome,
    PickResult,
    CurrentPick,
    EliminationPick,
    RoundHistoryEntry,
)
