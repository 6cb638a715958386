"""User achievement model - one row per badge a user has earned."""

from datetime import datetime

from sqlalchemy import String, Integer, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from postscore.db.database import Base


class UserAchievement(Base):
    __tablename__ = "user_achievements"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    type_key: Mapped[str] = mapped_column(String(32))  # AchievementType value
    points_awarded: Mapped[int] = mapped_column(Integer)

    earned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        # Backstop for concurrent evaluation: a badge can only ever be inserted once
        UniqueConstraint("user_id", "type_key", name="uq_user_achievements_user_type"),
    )
