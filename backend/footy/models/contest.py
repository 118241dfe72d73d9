"""Contest (gameweek) documents. Owned by the admin surface; workers only read them."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ContestStatus(str, Enum):
    draft = "draft"
    active = "active"
    completed = "completed"
    archived = "archived"


class ContestInDB(BaseModel):
    id: str = Field(alias="_id")
    name: str = ""
    status: ContestStatus = ContestStatus.draft
    deadline: Optional[datetime] = None
    match_ids: list[int] = Field(default_factory=list)

    model_config = {"populate_by_name": True, "extra": "ignore"}
