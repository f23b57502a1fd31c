from typing import Any, List, Optional

from pydantic import BaseModel, Field

from lmslocal.models import CurrentPick, EliminationPick, PickOutcome, PlayerStatus, RoundHistoryEntry


class PlayerStats(BaseModel):
    current_streak: int = 0
    streak_type: Optional[PickOutcome] = None # WIN or LOSS when a streak exists
    win_rate: int = 0 # whole percent over the stats window
    recent_form: List[PickOutcome] = Field(default_factory=list)
    elimination_pick: Optional[EliminationPick] = None


class PlayerStanding(BaseModel):
    id: int
    display_name: str
    lives_remaining: int
    status: PlayerStatus
    is_current_user: bool = False
    current_pick: Optional[CurrentPick] = None
    pick_hidden: bool = False
    stats: PlayerStats = Field(default_factory=PlayerStats)


class Standings(BaseModel):
    active: List[PlayerStanding] = Field(default_factory=list)
    eliminated: List[PlayerStanding] = Field(default_factory=list)


class PageSlice(BaseModel):
    items: List[Any] = Field(default_factory=list)
    page: int = 1
    page_size: int
    total: int = 0
    total_pages: int = 1
    paginated: bool = False


class StandingsResponse(BaseModel):
    competition_id: int
    round_number: Optional[int] = None
    round_locked: bool = False
    active_player_count: int = 0
    active: PageSlice
    eliminated: List[PlayerStanding] = Field(default_factory=list)
    empty_state: Optional[str] = None
    # Players eliminated in the previous refresh that the server now reports active
    status_regression: List[int] = Field(default_factory=list)


class HistoryEntryView(BaseModel):
    entry: RoundHistoryEntry
    outcome: PickOutcome


class PlayerHistoryResponse(BaseModel):
    player_id: int
    display_name: str = ""
    lives_remaining: int = 0
    status: PlayerStatus = PlayerStatus.ACTIVE
    history: List[HistoryEntryView] = Field(default_factory=list)
    stats: PlayerStats = Field(default_factory=PlayerStats)
    empty_state: Optional[str] = None
