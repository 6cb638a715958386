"""Database models package."""

from postscore.models.user import User
from postscore.models.publish_event import PublishEvent
from postscore.models.point_transaction import PointTransaction
from postscore.models.user_score import UserScore
from postscore.models.user_achievement import UserAchievement

__all__ = ["User", "PublishEvent", "PointTransaction", "UserScore", "UserAchievement"]
