from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PlayerStatus(str, Enum):
    ACTIVE = "active"
    ELIMINATED = "eliminated"


class PickOutcome(str, Enum):
    """Display outcome of a single pick. Draws are losses."""
    PENDING = "pending"
    NO_PICK = "no_pick"
    WIN = "win"
    LOSS = "loss"


class PickResult(str, Enum):
    """Outcome label as recorded in round history by the API."""
    NO_PICK = "no_pick"
    PENDING = "pending"
    WIN = "win"
    DRAW = "draw"
    LOSS = "loss"


_RESULT_ALIASES = {
    "lose": "loss",
    "lost": "loss",
    "won": "win",
    "nopick": "no_pick",
    "no pick": "no_pick",
}


class CurrentPick(BaseModel):
    model_config = ConfigDict(extra="ignore")

    team: str
    team_full_name: Optional[str] = None
    fixture: Optional[str] = None
    outcome: Optional[str] = None


class EliminationPick(BaseModel):
    """The pick that knocked a player out."""
    model_config = ConfigDict(extra="ignore")

    round_number: int
    team: str
    team_full_name: Optional[str] = None
    fixture: Optional[str] = None
    result: Optional[str] = None


class RoundHistoryEntry(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    round_id: Optional[int] = None
    round_number: int
    pick_team: Optional[str] = None
    pick_team_full_name: Optional[str] = None
    fixture: Optional[str] = None
    fixture_result: Optional[str] = None
    pick_result: PickResult = PickResult.PENDING
    lock_time: Optional[str] = None

    @field_validator("pick_result", mode="before")
    @classmethod
    def normalize_pick_result(cls, v):
        if v is None:
            return PickResult.PENDING
        if isinstance(v, str):
            key = v.strip().lower()
            return _RESULT_ALIASES.get(key, key)
        return v


class PlayerModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    display_name: str
    lives_remaining: int = Field(default=0, ge=0)
    status: PlayerStatus = PlayerStatus.ACTIVE
    current_pick: Optional[CurrentPick] = None
    history: List[RoundHistoryEntry] = Field(default_factory=list)
    # Sent by the standings endpoint for eliminated players, which carry no history there
    elimination_pick: Optional[EliminationPick] = None

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
            if v == "out":
                return PlayerStatus.ELIMINATED
        return v

    @field_validator("current_pick", mode="before")
    @classmethod
    def pick_from_code(cls, v):
        # Some endpoints send the bare team short code
        if isinstance(v, str):
            return {"team": v} if v else None
        return v

    @field_validator("history")
    @classmethod
    def chronological_history(cls, v: List[RoundHistoryEntry]) -> List[RoundHistoryEntry]:
        return sorted(v, key=lambda entry: entry.round_number)

    @property
    def is_active(self) -> bool:
        return self.status == PlayerStatus.ACTIVE

    @property
    def pick_team(self) -> Optional[str]:
        return self.current_pick.team if self.current_pick else None
