from datetime import datetime
from sqlalchemy import Boolean, String, Float, DateTime, ForeignKey, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.base import Base


class FoodLog(Base):
    __tablename__ = "food_logs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, index=True)
    meal_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    foods: Mapped[list | None] = mapped_column(JSON, nullable=True)  # [{name, brand, quantity, unit, calories, ...}]
    total_calories: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_protein: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_carbs: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_fat: Mapped[float | None] = mapped_column(Float, nullable=True)
    ai_parsed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="food_logs")
