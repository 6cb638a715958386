"""Ledger service - appends to and reads the point ledger."""

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from postscore.models.point_transaction import PointTransaction, REASON_POST


class LedgerService:
    @staticmethod
    async def award(
        db: AsyncSession,
        user_id: int,
        points: int,
        reason: str,
        related_post_id: int | None = None,
    ) -> int:
        """Append a transaction and return its id."""
        record = PointTransaction(
            user_id=user_id,
            points=points,
            reason=reason,
            related_post_id=related_post_id,
        )
        db.add(record)
        await db.flush()
        return record.id

    @staticmethod
    async def total_for(db: AsyncSession, user_id: int) -> int:
        """Sum of all points ever awarded to a user."""
        result = await db.execute(
            select(func.coalesce(func.sum(PointTransaction.points), 0))
            .where(PointTransaction.user_id == user_id)
        )
        return int(result.scalar_one())

    @staticmethod
    async def history(db: AsyncSession, user_id: int, limit: int = 50) -> list[PointTransaction]:
        """Most recent transactions first."""
        result = await db.execute(
            select(PointTransaction)
            .where(PointTransaction.user_id == user_id)
            .order_by(PointTransaction.created_at.desc(), PointTransaction.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    @staticmethod
    async def has_post_award(db: AsyncSession, user_id: int, post_id: int) -> bool:
        result = await db.execute(
            select(PointTransaction.id)
            .where(
                PointTransaction.user_id == user_id,
                PointTransaction.related_post_id == post_id,
                PointTransaction.reason == REASON_POST,
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None


ledger_service = LedgerService()
