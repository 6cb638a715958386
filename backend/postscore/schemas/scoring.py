"""Scoring-related Pydantic schemas."""

from datetime import date, datetime

from pydantic import BaseModel, Field


class PublishEventRequest(BaseModel):
    user_id: int = Field(gt=0)
    post_id: int = Field(gt=0)


class PointLine(BaseModel):
    """One itemized award, e.g. reason="streak_bonus", points=4, label="3-day Streak: +4"."""
    reason: str
    points: int
    label: str


class ScoringResult(BaseModel):
    points_awarded: int  # sum of breakdown lines, excludes achievement rewards
    breakdown: list[PointLine]
    new_achievements: list[str]
    achievement_points: int = 0
    current_streak: int
    best_streak: int
    total_points: int | None = None  # None when the snapshot refresh failed


class UserScoreResponse(BaseModel):
    user_id: int
    total_points: int
    current_streak: int
    best_streak: int
    post_count: int
    rank: int
    total_users: int
    last_post_date: date | None = None


class UserAchievementOut(BaseModel):
    type_key: str
    name: str
    description: str
    points_awarded: int
    earned_at: datetime


class PointHistoryItem(BaseModel):
    points: int
    reason: str
    post_id: int | None
    created_at: datetime


class SnapshotResponse(BaseModel):
    user_id: int
    total_points: int
    current_streak: int
    best_streak: int
    last_post_date: date | None

    model_config = {"from_attributes": True}
