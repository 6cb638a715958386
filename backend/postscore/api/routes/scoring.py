"""Scoring endpoints - publish-event intake and per-user score queries."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from postscore.core.errors import (
    DuplicatePublishEventError,
    PublishEventNotFoundError,
    ScoringBusyError,
    UserNotFoundError,
)
from postscore.db.database import get_db
from postscore.schemas.scoring import (
    PointHistoryItem,
    PublishEventRequest,
    ScoringResult,
    SnapshotResponse,
    UserAchievementOut,
    UserScoreResponse,
)
from postscore.services.scoring_service import scoring_service

router = APIRouter()


@router.post("/events", response_model=ScoringResult, status_code=201)
async def publish_event(req: PublishEventRequest, db: AsyncSession = Depends(get_db)):
    """Score a post the posting subsystem has just distributed."""
    try:
        return await scoring_service.handle_publish_event(db, req.user_id, req.post_id)
    except (UserNotFoundError, PublishEventNotFoundError) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DuplicatePublishEventError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ScoringBusyError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/{user_id}/score", response_model=UserScoreResponse)
async def get_user_score(user_id: int, db: AsyncSession = Depends(get_db)):
    """Get total points, streaks and rank for a user."""
    try:
        return await scoring_service.get_user_score(db, user_id)
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/{user_id}/achievements", response_model=list[UserAchievementOut])
async def get_user_achievements(user_id: int, db: AsyncSession = Depends(get_db)):
    """Get a user's earned achievements, newest first."""
    try:
        return await scoring_service.get_user_achievements(db, user_id)
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/{user_id}/history", response_model=list[PointHistoryItem])
async def get_point_history(
    user_id: int,
    limit: int = Query(default=50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    """Get a user's point transactions, newest first."""
    try:
        return await scoring_service.get_point_history(db, user_id, limit)
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/{user_id}/recompute", response_model=SnapshotResponse)
async def recompute_snapshot(user_id: int, db: AsyncSession = Depends(get_db)):
    """Rebuild a user's score snapshot from the ledger."""
    try:
        snapshot = await scoring_service.recompute_snapshot(db, user_id)
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ScoringBusyError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return SnapshotResponse.model_validate(snapshot)
