from __future__ import annotations

from datetime import datetime
from sqlalchemy import JSON, DateTime, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base


class UserPattern(Base):
    """Learned per-user association, e.g. exercise alias "bp" -> "bench press". Counters only grow."""

    __tablename__ = "user_patterns"
    __table_args__ = (
        UniqueConstraint("user_id", "pattern_type", "pattern_key", name="uq_user_patterns_user_type_key"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    pattern_type: Mapped[str] = mapped_column(String(32), nullable=False)
    pattern_key: Mapped[str] = mapped_column(String(255), nullable=False)
    pattern_value: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    frequency: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    confidence: Mapped[float] = mapped_column(Float, default=0.5, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )
