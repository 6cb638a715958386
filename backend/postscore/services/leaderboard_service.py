"""Leaderboard service - ranks users from score snapshots.

Reads ``user_scores`` only (plus a joined post count); the ledger is never
summed per request.
"""

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from postscore.models.publish_event import PublishEvent
from postscore.models.user import User
from postscore.models.user_score import UserScore
from postscore.schemas.leaderboard import LeaderboardEntry


class LeaderboardService:
    @staticmethod
    async def rank_of(db: AsyncSession, user_id: int) -> int:
        """1 + number of users with strictly more points. Users without a snapshot count as 0 points."""
        result = await db.execute(
            select(UserScore.total_points).where(UserScore.user_id == user_id)
        )
        points = result.scalar_one_or_none() or 0

        result = await db.execute(
            select(func.count()).select_from(UserScore).where(UserScore.total_points > points)
        )
        return 1 + int(result.scalar_one())

    @staticmethod
    async def total_users(db: AsyncSession) -> int:
        """Every known user, including those never scored (ranked as 0 points)."""
        result = await db.execute(select(func.count()).select_from(User))
        return int(result.scalar_one())

    @staticmethod
    async def top(db: AsyncSession, limit: int = 10) -> list[LeaderboardEntry]:
        """Highest scores first; ties ordered by user_id for stable pagination."""
        post_counts = (
            select(PublishEvent.user_id, func.count(PublishEvent.id).label("post_count"))
            .group_by(PublishEvent.user_id)
            .subquery()
        )
        stmt = (
            select(
                func.rank().over(order_by=UserScore.total_points.desc()).label("rank"),
                UserScore.user_id,
                User.username,
                UserScore.total_points,
                UserScore.current_streak,
                UserScore.best_streak,
                func.coalesce(post_counts.c.post_count, 0).label("post_count"),
            )
            .join(User, User.id == UserScore.user_id)
            .outerjoin(post_counts, post_counts.c.user_id == UserScore.user_id)
            .order_by(UserScore.total_points.desc(), UserScore.user_id.asc())
            .limit(limit)
        )
        result = await db.execute(stmt)
        return [LeaderboardEntry(**row._mapping) for row in result.all()]


leaderboard_service = LeaderboardService()
