"""Point transaction model - the append-only point ledger."""

from datetime import datetime

from sqlalchemy import String, Integer, DateTime, ForeignKey, Index, func, text
from sqlalchemy.orm import Mapped, mapped_column

from postscore.db.database import Base

# Ledger reason tags
REASON_POST = "post"
REASON_FIRST_POST_BONUS = "first_post_bonus"
REASON_STREAK_BONUS = "streak_bonus"
REASON_CORRECTION = "correction"
ACHIEVEMENT_REASON_PREFIX = "achievement:"


class PointTransaction(Base):
    """Never updated or deleted. Corrections are new rows with negative points."""
    __tablename__ = "point_transactions"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    points: Mapped[int] = mapped_column(Integer)  # may be negative
    reason: Mapped[str] = mapped_column(String(64))
    related_post_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_point_transactions_user_created", "user_id", "created_at"),
        # Backstops for the has_post_award check: one base award per post,
        # one first-post bonus per user
        Index(
            "uq_point_transactions_post_award", "user_id", "related_post_id",
            unique=True,
            postgresql_where=text(f"reason = '{REASON_POST}'"),
            sqlite_where=text(f"reason = '{REASON_POST}'"),
        ),
        Index(
            "uq_point_transactions_first_post_bonus", "user_id",
            unique=True,
            postgresql_where=text(f"reason = '{REASON_FIRST_POST_BONUS}'"),
            sqlite_where=text(f"reason = '{REASON_FIRST_POST_BONUS}'"),
        ),
    )
