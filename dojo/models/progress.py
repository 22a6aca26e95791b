from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class StreakState(BaseModel):
    """Consecutive-day completion counter. Day-level, UTC only."""

    count: int = Field(0, ge=0)
    last_completed_date: Optional[str] = Field(None, alias="lastCompletedDate")
    completed_today: bool = Field(False, alias="completedToday")

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class HistoryEntry(BaseModel):
    """One completed submission-to-thread cycle, keyed by calendar date."""

    date: str
    day_index: int = Field(..., alias="dayIndex")
    title: str
    category: str
    difficulty: str
    analysis_excerpt: str = Field("", alias="analysisExcerpt")

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class ThreadResult(BaseModel):
    segments: List[str]
    streak: StreakState

    model_config = ConfigDict(frozen=True, populate_by_name=True)
