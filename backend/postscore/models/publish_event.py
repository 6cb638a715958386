"""Publish event model - a post that was successfully distributed."""

from datetime import datetime

from sqlalchemy import Integer, DateTime, ForeignKey, Index, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from postscore.db.database import Base


class PublishEvent(Base):
    """Written by the posting subsystem. Scoring reads these rows, never mutates them."""
    __tablename__ = "publish_events"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    post_id: Mapped[int] = mapped_column(Integer)
    published_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "post_id", name="uq_publish_events_user_post"),
        Index("ix_publish_events_user_published", "user_id", "published_at"),
    )
