from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field, StrictStr


class Difficulty(str, Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"


@dataclass(frozen=True)
class Category:
    """A challenge topic with the vocabulary the model should lean on."""

    id: str
    label: str
    angles: str


@dataclass(frozen=True)
class DayAssignment:
    """What a given calendar slot is about. Derived, never stored."""

    category: Category
    difficulty: Difficulty
    day_index: int


class ChallengeContent(BaseModel):
    """The six fields the model must produce. Validated as a unit."""

    title: StrictStr = Field(..., min_length=1)
    problem: StrictStr = Field(..., min_length=1)
    hints: List[StrictStr] = Field(..., min_length=1)
    key_metrics: List[StrictStr] = Field(..., alias="keyMetrics")
    tools: List[StrictStr]
    teaching_point: StrictStr = Field(..., alias="teachingPoint", min_length=1)

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class Challenge(ChallengeContent):
    """A generated challenge plus the slot metadata it was assembled with."""

    category: str
    category_id: str = Field(..., alias="categoryId")
    difficulty: Difficulty
    day_index: int = Field(..., alias="dayIndex", ge=1)
    cache_key: str = Field(..., alias="cacheKey", min_length=1)

    @classmethod
    def assemble(cls, content: ChallengeContent, assignment: DayAssignment, cache_key: str) -> "Challenge":
        return cls(
            **content.model_dump(),
            category=assignment.category.label,
            category_id=assignment.category.id,
            difficulty=assignment.difficulty,
            day_index=assignment.day_index,
            cache_key=cache_key,
        )

    def with_assignment(self, assignment: DayAssignment) -> "Challenge":
        """Overlay freshly computed slot metadata; content is left untouched."""
        return self.model_copy(
            update={
                "category": assignment.category.label,
                "category_id": assignment.category.id,
                "difficulty": assignment.difficulty,
                "day_index": assignment.day_index,
            }
        )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)
