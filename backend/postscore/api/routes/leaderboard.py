"""Leaderboard endpoints - top users and the achievement catalog."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from postscore.db.database import get_db
from postscore.schemas.leaderboard import AchievementInfo, LeaderboardEntry
from postscore.services.achievement_service import achievement_service
from postscore.services.leaderboard_service import leaderboard_service

router = APIRouter()


@router.get("/", response_model=list[LeaderboardEntry])
async def get_leaderboard(
    limit: int = Query(default=10, ge=1, le=100), db: AsyncSession = Depends(get_db)
):
    """Get the top users by total points."""
    return await leaderboard_service.top(db, limit)


@router.get("/achievements", response_model=list[AchievementInfo])
async def list_achievements():
    """List every achievement that can be earned."""
    return [
        AchievementInfo(
            type_key=d.type_key.value,
            name=d.name,
            description=d.description,
            points=d.points,
        )
        for d in achievement_service.load_catalog()
    ]
