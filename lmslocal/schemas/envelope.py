from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class ReturnCode(str, Enum):
    SUCCESS = "SUCCESS"
    NEW_ROUND_CREATED = "NEW_ROUND_CREATED"
    COMPETITION_COMPLETE = "COMPETITION_COMPLETE"

    NO_ROUNDS = "NO_ROUNDS"
    NO_RESULTS_TO_PROCESS = "NO_RESULTS_TO_PROCESS"
    NO_FIXTURES = "NO_FIXTURES"
    NO_ACTIVE_FIXTURES = "NO_ACTIVE_FIXTURES"
    NO_COMPLETED_ROUNDS = "NO_COMPLETED_ROUNDS"
    NO_DATA = "NO_DATA"

    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    UNAUTHORIZED = "UNAUTHORIZED"


SUCCESS_CODES = frozenset({
    ReturnCode.SUCCESS.value,
    ReturnCode.NEW_ROUND_CREATED.value,
    ReturnCode.COMPETITION_COMPLETE.value,
})

EMPTY_STATE_CODES = frozenset({
    ReturnCode.NO_ROUNDS.value,
    ReturnCode.NO_RESULTS_TO_PROCESS.value,
    ReturnCode.NO_FIXTURES.value,
    ReturnCode.NO_ACTIVE_FIXTURES.value,
    ReturnCode.NO_COMPLETED_ROUNDS.value,
    ReturnCode.NO_DATA.value,
})

AUTH_FAILURE_CODES = frozenset({
    ReturnCode.TOKEN_EXPIRED.value,
    ReturnCode.INVALID_TOKEN.value,
})


class ApiEnvelope(BaseModel):
    """Every remote response: a return_code, an optional message, and the payload fields."""
    model_config = ConfigDict(extra="allow")

    return_code: str
    message: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.return_code in SUCCESS_CODES

    @property
    def is_empty_state(self) -> bool:
        return self.return_code in EMPTY_STATE_CODES

    def payload(self, key: str, default=None):
        return (self.model_extra or {}).get(key, default)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class SessionInfo(BaseModel):
    user_id: int
    display_name: Optional[str] = None
    expires_at: Optional[str] = None


class ResultEntry(BaseModel):
    fixture_id: int
    result: str = Field(..., description="home_win, away_win, draw or clear")


class SubmitResultsRequest(BaseModel):
    round_id: int
    results: List[ResultEntry] = Field(default_factory=list)


class SubmitResultsResponse(BaseModel):
    return_code: str
    message: Optional[str] = None
    round_completed: bool = False
    divergence: bool = False
    fixtures_processed: Optional[int] = None
    active_players: Optional[int] = None
