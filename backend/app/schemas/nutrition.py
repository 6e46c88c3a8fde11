from pydantic import BaseModel, ConfigDict, Field


class FoodItem(BaseModel):
    """One food within a meal; macros are for the logged quantity."""

    model_config = ConfigDict(extra="ignore")

    name: str
    brand: str | None = None
    quantity: float | None = Field(None, ge=0)
    unit: str | None = None
    calories: float = Field(0, ge=0)
    protein_g: float | None = Field(None, ge=0)
    carbs_g: float | None = Field(None, ge=0)
    fat_g: float | None = Field(None, ge=0)
    usda_id: int | None = None


class ParsedFood(BaseModel):
    """Structured output of the food parser."""

    foods: list[FoodItem]
    meal_type: str | None = None
    total_calories: float
    total_protein: float
    total_carbs: float
    total_fat: float
    confidence_scores: dict[str, float] = Field(default_factory=dict)


class FoodReferenceEntry(BaseModel):
    """Row of the reference food table; nutrients per 100 g."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    brand: str | None = None
    calories_per_100g: float
    protein_g: float = 0
    carbs_g: float = 0
    fat_g: float = 0
    serving_size_g: float | None = None
    grams_per_cup: float | None = None
    piece_weight_g: float | None = None
