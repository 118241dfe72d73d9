"""Match snapshot models (API-Football fixture state cached per contest)."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class MatchPhase(str, Enum):
    not_started = "not_started"
    in_progress = "in_progress"
    interrupted = "interrupted"  # postponed, suspended, abandoned, awarded...
    final = "final"


class Outcome(str, Enum):
    home = "H"
    draw = "D"
    away = "A"


# API-Football short status codes
FINAL_STATUSES = frozenset({"FT", "AET", "PEN"})
NOT_STARTED_STATUSES = frozenset({"TBD", "NS"})
INTERRUPTED_STATUSES = frozenset({"SUSP", "INT", "PST", "CANC", "ABD", "AWD", "WO"})


class Score(BaseModel):
    home: Optional[int] = None
    away: Optional[int] = None

    @property
    def complete(self) -> bool:
        return self.home is not None and self.away is not None


class MatchSnapshot(BaseModel):
    """State of one fixture as reported by the result provider."""
    match_id: int
    status: str
    status_long: str = ""
    elapsed: Optional[int] = None
    score: Optional[Score] = None
    kickoff_at: Optional[datetime] = None
    home_team: str = ""
    away_team: str = ""
    raw: dict[str, Any] = Field(default_factory=dict)
