from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from lmslocal.models import FixtureModel, RoundInfo, RoundModel


class CurrentRoundResponse(BaseModel):
    competition_id: int
    round: Optional[RoundModel] = None
    fixtures: List[FixtureModel] = Field(default_factory=list)
    round_info: Optional[RoundInfo] = None
    is_locked: bool = False
    state: str = "PENDING"
    completed: bool = False
    landing_view: str = "waiting"
    pick_counts: Dict[str, int] = Field(default_factory=dict)
    empty_state: Optional[str] = None
