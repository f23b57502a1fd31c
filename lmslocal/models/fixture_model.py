from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

DRAW = "DRAW"


class FixtureModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    home_team: str
    away_team: str
    home_team_short: str
    away_team_short: str
    kickoff_time: Optional[str] = None
    result: Optional[str] = None # home short code, away short code or "DRAW"
    processed: Optional[str] = None # set once the result has been applied to players

    @field_validator("kickoff_time", "processed", mode="before")
    @classmethod
    def timestamp_text(cls, v):
        if isinstance(v, datetime):
            return v.isoformat()
        return v

    @property
    def description(self) -> str:
        return f"{self.home_team} vs {self.away_team}"

    @property
    def is_processed(self) -> bool:
        return self.processed is not None

    def involves(self, team_short: str) -> bool:
        return team_short in (self.home_team_short, self.away_team_short)
