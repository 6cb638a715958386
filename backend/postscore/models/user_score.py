"""User score snapshot - denormalized score/streak cache, one row per user."""

from datetime import date, datetime

from sqlalchemy import Integer, Date, DateTime, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column

from postscore.db.database import Base


class UserScore(Base):
    """Rebuildable from the ledger and publish history; losing a row is only a cache miss."""
    __tablename__ = "user_scores"

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), primary_key=True)
    total_points: Mapped[int] = mapped_column(Integer, default=0, index=True)
    current_streak: Mapped[int] = mapped_column(Integer, default=0)
    best_streak: Mapped[int] = mapped_column(Integer, default=0)
    last_post_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
