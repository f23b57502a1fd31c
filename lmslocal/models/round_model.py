from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


def timestamp_text(v):
    # Timestamps stay as text; a malformed value must not fail the whole payload
    if isinstance(v, datetime):
        return v.isoformat()
    return v


class RoundModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    round_number: int
    lock_time: Optional[str] = None
    status: Optional[str] = None
    fixture_count: int = 0

    @field_validator("lock_time", mode="before")
    @classmethod
    def lock_time_text(cls, v):
        return timestamp_text(v)


class RoundInfo(BaseModel):
    """Round metadata reported by the API alongside a round's fixtures."""
    model_config = ConfigDict(extra="ignore")

    round_number: Optional[int] = None
    lock_time: Optional[str] = None
    is_locked: bool = False
    all_processed: bool = False

    @field_validator("lock_time", mode="before")
    @classmethod
    def lock_time_text(cls, v):
        return timestamp_text(v)
