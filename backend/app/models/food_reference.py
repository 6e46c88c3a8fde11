from sqlalchemy import Float, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class FoodReference(Base):
    """USDA-style reference food; nutrient values are per 100 g."""

    __tablename__ = "foods"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    brand: Mapped[str | None] = mapped_column(String(128), nullable=True)
    calories_per_100g: Mapped[float] = mapped_column(Float, nullable=False)
    protein_g: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    carbs_g: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    fat_g: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    serving_size_g: Mapped[float | None] = mapped_column(Float, nullable=True)
    grams_per_cup: Mapped[float | None] = mapped_column(Float, nullable=True)
    piece_weight_g: Mapped[float | None] = mapped_column(Float, nullable=True)
