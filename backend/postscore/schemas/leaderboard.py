"""Leaderboard Pydantic schemas."""

from pydantic import BaseModel


class LeaderboardEntry(BaseModel):
    rank: int  # competition rank: tied scores share a rank (1, 1, 3)
    user_id: int
    username: str
    total_points: int
    current_streak: int
    best_streak: int
    post_count: int


class AchievementInfo(BaseModel):
    type_key: str
    name: str
    description: str
    points: int
