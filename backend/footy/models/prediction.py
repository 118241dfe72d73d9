"""Prediction entry documents: one participant's 1X2 pick for one match."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from footy.models.match import Outcome


class EntryResult(BaseModel):
    home_goals: int
    away_goals: int


class PredictionEntryInDB(BaseModel):
    id: str = Field(alias="_id")
    match_id: int
    participant_id: str
    pick: Outcome
    awarded: bool = False
    points: int = 0
    correct: Optional[bool] = None
    status: Optional[str] = None           # final status code frozen at settlement
    result: Optional[EntryResult] = None
    settled_at: Optional[datetime] = None

    model_config = {"populate_by_name": True, "extra": "ignore"}
