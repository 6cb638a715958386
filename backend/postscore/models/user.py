"""User model - read-only mirror of the user directory."""

from datetime import datetime

from sqlalchemy import String, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column

from postscore.db.database import Base


class User(Base):
    """Owned by the user directory; the scoring engine only reads it."""
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    username: Mapped[str] = mapped_column(String(100), unique=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
