from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class CompetitionStatus(str, Enum):
    SETUP = "SETUP"
    ACTIVE = "ACTIVE"
    COMPLETE = "COMPLETE"
    # Display states some endpoints report for the current round
    LOCKED = "LOCKED"
    UNLOCKED = "UNLOCKED"


class CompetitionModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    status: Optional[CompetitionStatus] = None
    current_round: Optional[int] = None
    invite_code: Optional[str] = None
    player_count: int = 0
    is_organiser: bool = False
    is_participant: bool = False
    user_status: Optional[str] = None
    lives_per_player: Optional[int] = None
    no_team_twice: Optional[bool] = None

    @field_validator("status", mode="before")
    @classmethod
    def upper_status(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v

    @property
    def is_complete(self) -> bool:
        return self.status == CompetitionStatus.COMPLETE

    @property
    def viewer_is_eliminated(self) -> bool:
        """True when the viewer takes part and is no longer active."""
        return bool(self.is_participant and self.user_status and self.user_status != "active")
