"""Gamification schemas: badge criteria, stats and evaluation results."""

from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, NonNegativeFloat, NonNegativeInt, TypeAdapter


class StudentStats(BaseModel):
    """Aggregate statistics badge criteria are evaluated against."""
    total_xp: int = 0
    lessons_completed: int = 0
    courses_completed: int = 0


Threshold = Union[NonNegativeInt, NonNegativeFloat]


class XPThresholdCriterion(BaseModel):
    """Earned once the student's XP balance reaches ``value``."""
    type: Literal["xp_threshold"] = "xp_threshold"
    value: Threshold

    def current(self, stats: StudentStats) -> float:
        return stats.total_xp

    def is_met(self, stats: StudentStats) -> bool:
        return stats.total_xp >= self.value


class CoursesCompletedCriterion(BaseModel):
    """Earned once ``value`` enrolled courses are fully completed."""
    type: Literal["courses_completed"] = "courses_completed"
    value: Threshold

    def current(self, stats: StudentStats) -> float:
        return stats.courses_completed

    def is_met(self, stats: StudentStats) -> bool:
        return stats.courses_completed >= self.value


class LessonsCompletedCriterion(BaseModel):
    """Earned once ``value`` lessons are completed."""
    type: Literal["lessons_completed"] = "lessons_completed"
    value: Threshold

    def current(self, stats: StudentStats) -> float:
        return stats.lessons_completed

    def is_met(self, stats: StudentStats) -> bool:
        return stats.lessons_completed >= self.value


class StreakDaysCriterion(BaseModel):
    """Daily-streak badge. There is no streak data source, so it never fires."""
    type: Literal["streak_days"] = "streak_days"
    value: Threshold

    def current(self, stats: StudentStats) -> float:
        return 0

    def is_met(self, stats: StudentStats) -> bool:
        return False


BadgeCriterion = Annotated[
    Union[XPThresholdCriterion, CoursesCompletedCriterion, LessonsCompletedCriterion, StreakDaysCriterion],
    Field(discriminator="type"),
]

criterion_adapter = TypeAdapter(BadgeCriterion)


def parse_criterion(raw) -> BadgeCriterion:
    """Validate a stored criteria JSON blob into its typed variant."""
    return criterion_adapter.validate_python(raw)


class BadgeCreate(BaseModel):
    """Payload for creating a badge."""
    name: str = Field(min_length=1, max_length=100)
    description: str = ""
    icon_url: Optional[str] = None
    xp_reward: int = Field(default=0, ge=0)
    criteria: BadgeCriterion


class BadgeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str
    icon_url: Optional[str] = None
    xp_reward: int
    criteria: dict
    created_at: Optional[datetime] = None


class BadgeDefinition(BaseModel):
    """Detached, validated view of a badge row used during evaluation."""
    id: UUID
    name: str
    description: str = ""
    xp_reward: int = 0
    criteria: BadgeCriterion


class StudentBadgeResponse(BaseModel):
    badge_id: UUID
    name: str
    description: str
    icon_url: Optional[str] = None
    xp_reward: int
    earned_at: Optional[datetime] = None


class AwardedBadge(BaseModel):
    badge_id: UUID
    name: str
    description: str = ""
    xp_reward: int = 0
    xp_granted: bool = True


class BadgeAwardFailure(BaseModel):
    badge_id: UUID
    name: str
    stage: Literal["criteria", "lookup", "insert", "xp_increment"]
    error: str


class BadgeEvaluationResult(BaseModel):
    """Outcome of one evaluation pass.

    ``error`` is set when the pass could not run at all (stats or catalog
    unreadable); ``failures`` lists badges that qualified or were checked but
    could not be fully processed.
    """
    student_id: UUID
    stats: Optional[StudentStats] = None
    awarded: List[AwardedBadge] = Field(default_factory=list)
    failures: List[BadgeAwardFailure] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and not self.failures


class SeedResult(BaseModel):
    created: List[str] = Field(default_factory=list)
    existing: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)


class LeaderboardEntry(BaseModel):
    rank: int
    student_id: UUID
    full_name: Optional[str] = None
    xp_points: int
