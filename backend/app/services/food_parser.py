"""Free-text meal description -> ParsedFood, matched against the reference food table."""

import logging
from typing import Any

from app.core.errors import AIHandlerError
from app.schemas.ai import HandlerResult, ModelConfig
from app.schemas.context import AIContext, NutritionEntry, PatternEntry
from app.schemas.nutrition import FoodItem, FoodReferenceEntry, ParsedFood
from app.services.context_store import ContextStore
from app.services.gemini_common import parse_json_text
from app.services.model_gateway import ModelGateway
from app.services.stats import round_half_up, round_int

logger = logging.getLogger(__name__)

MATCHED_CONFIDENCE = 0.9
ESTIMATED_CONFIDENCE = 0.6
MEAL_TYPES = ("breakfast", "lunch", "dinner", "snack")

# kcal, protein, carbs, fat per 100 g
CATEGORY_ESTIMATES: dict[str, tuple[float, float, float, float]] = {
    "chicken": (165, 31, 0, 3.6),
    "beef": (250, 26, 0, 15),
    "fish": (150, 28, 0, 5),
    "eggs": (155, 13, 1.1, 11),
    "rice": (130, 2.7, 28, 0.3),
    "pasta": (160, 6, 31, 1),
    "bread": (265, 9, 49, 3.2),
    "oatmeal": (70, 2.5, 12, 1.5),
    "vegetables": (30, 2, 6, 0.2),
    "salad": (20, 1.5, 3.5, 0.2),
}
DEFAULT_ESTIMATE = (150, 5, 20, 5)

SYSTEM_PROMPT_TEMPLATE = """You are an expert nutritionist that parses natural language food descriptions into structured nutritional data.

USER CONTEXT:
- Frequently eaten foods: {foods}
- Common portion sizes: {portions}
- Average daily calories: {calories}

PARSING RULES:
1. Extract all food items with quantities and units
2. Identify meal type (breakfast, lunch, dinner, snack) if mentioned
3. Handle various quantity formats: "1 cup", "handful", "large bowl", "medium plate"
4. Handle brand names and restaurant items
5. Handle recipes and compound foods (break down into ingredients when possible)
6. Handle liquid measurements: oz, ml, cups, tablespoons
7. Handle weight measurements: grams, ounces, pounds
8. Handle colloquial descriptions: "bite", "piece", "slice", "serving"

PORTION ESTIMATES:
- handful = 30g (nuts), 25g (berries), 40g (chips)
- small bowl = 150g, medium bowl = 250g, large bowl = 350g
- small plate = 200g, medium plate = 300g, large plate = 400g
- slice (bread) = 30g, slice (pizza) = 100g, slice (cake) = 80g
- piece (fruit) = 150g (apple/orange), 120g (banana)

Output ONLY valid JSON, no markdown:
{{
  "foods": [
    {{"name": "food name (specific, searchable)", "brand": null, "quantity": 0,
      "unit": "g|oz|cup|tbsp|tsp|ml|serving|piece|slice"}}
  ],
  "meal_type": "breakfast|lunch|dinner|snack|unknown"
}}"""


def portion_grams(quantity: float, unit: str | None, reference: FoodReferenceEntry | None = None) -> float:
    unit = (unit or "g").lower()
    if unit == "oz":
        return quantity * 28.35
    if unit == "cup":
        return quantity * ((reference.grams_per_cup if reference else None) or 240)
    if unit == "tbsp":
        return quantity * 15
    if unit == "tsp":
        return quantity * 5
    if unit == "serving":
        return quantity * ((reference.serving_size_g if reference else None) or 100)
    if unit in ("piece", "slice"):
        return quantity * ((reference.piece_weight_g if reference else None) or 50)
    # g, ml (1 ml ~ 1 g) and anything unrecognised
    return quantity


def portion_factor(quantity: float | None, unit: str | None, reference: FoodReferenceEntry | None = None) -> float:
    """Multiplier for per-100g values. A missing quantity counts as one serving."""
    if not quantity:
        return portion_grams(1, "serving", reference) / 100
    return portion_grams(quantity, unit, reference) / 100


def recent_food_names(nutrition: list[NutritionEntry], logs: int = 20, limit: int = 15) -> list[str]:
    names: dict[str, None] = {}
    for log in nutrition[:logs]:
        for food in log.foods:
            names.setdefault(food.name, None)
    return list(names)[:limit]


def _portion_patterns(patterns: list[PatternEntry]) -> dict[str, dict[str, Any]]:
    """food name -> {typical_quantity, typical_unit}; explicit portion_size rows win over food_preference."""
    out: dict[str, dict[str, Any]] = {}
    for pattern_type in ("food_preference", "portion_size"):
        for p in patterns:
            value = p.pattern_value or {}
            if p.pattern_type == pattern_type and value.get("typical_quantity"):
                out[p.pattern_key.lower()] = value
    return out


def build_system_prompt(context: AIContext) -> str:
    portions = ", ".join(
        f"{name}: typically {v.get('typical_quantity')} {v.get('typical_unit') or ''}".rstrip()
        for name, v in _portion_patterns(context.patterns).items()
    )
    return SYSTEM_PROMPT_TEMPLATE.format(
        foods=", ".join(recent_food_names(context.recent_nutrition)),
        portions=portions or "standard",
        calories=int(context.avg_daily_calories) or 2000,
    )


def pick_reference(candidates: list[FoodReferenceEntry], brand: str | None) -> FoodReferenceEntry | None:
    if not candidates:
        return None
    if brand:
        wanted = brand.lower()
        for candidate in candidates:
            if candidate.brand and wanted in candidate.brand.lower():
                return candidate
    return candidates[0]


def scale_reference(raw: dict[str, Any], reference: FoodReferenceEntry) -> FoodItem:
    factor = portion_factor(raw.get("quantity"), raw.get("unit"), reference)
    return FoodItem(
        name=reference.name,
        brand=reference.brand,
        quantity=raw.get("quantity"),
        unit=raw.get("unit"),
        calories=round_int(reference.calories_per_100g * factor),
        protein_g=round_half_up(reference.protein_g * factor, 1),
        carbs_g=round_half_up(reference.carbs_g * factor, 1),
        fat_g=round_half_up(reference.fat_g * factor, 1),
        usda_id=reference.id,
    )


def estimate_food(raw: dict[str, Any]) -> FoodItem:
    name = str(raw.get("name") or "unknown food")
    lowered = name.lower()
    kcal, protein, carbs, fat = next(
        (values for key, values in CATEGORY_ESTIMATES.items() if key in lowered), DEFAULT_ESTIMATE
    )
    factor = portion_factor(raw.get("quantity"), raw.get("unit"))
    return FoodItem(
        name=name,
        brand=raw.get("brand"),
        quantity=raw.get("quantity"),
        unit=raw.get("unit"),
        calories=round_int(kcal * factor),
        protein_g=round_half_up(protein * factor, 1),
        carbs_g=round_half_up(carbs * factor, 1),
        fat_g=round_half_up(fat * factor, 1),
    )


def summarize_meal(foods: list[FoodItem], meal_type: str | None) -> ParsedFood:
    return ParsedFood(
        foods=foods,
        meal_type=meal_type if meal_type in MEAL_TYPES else None,
        total_calories=round_int(sum(f.calories or 0 for f in foods)),
        total_protein=round_half_up(sum(f.protein_g or 0 for f in foods), 1),
        total_carbs=round_half_up(sum(f.carbs_g or 0 for f in foods), 1),
        total_fat=round_half_up(sum(f.fat_g or 0 for f in foods), 1),
        confidence_scores={
            f.name: MATCHED_CONFIDENCE if f.usda_id else ESTIMATED_CONFIDENCE for f in foods
        },
    )


def food_confidence(parsed: ParsedFood) -> float:
    if not parsed.foods:
        return 0.5
    n = len(parsed.foods)
    matched = sum(1 for f in parsed.foods if f.usda_id)
    complete = sum(1 for f in parsed.foods if f.calories and f.protein_g and f.carbs_g and f.fat_g)
    return min(1.0, round(0.5 + matched / n * 0.3 + complete / n * 0.2, 3))


class FoodParser:
    def __init__(self, store: ContextStore, gateway: ModelGateway):
        self._store = store
        self._gateway = gateway

    async def process(self, input: str, context: AIContext, config: ModelConfig) -> HandlerResult:
        try:
            completion = await self._gateway.complete(build_system_prompt(context), [], str(input), config)
            parsed = parse_json_text(completion.text)
            if not isinstance(parsed, dict):
                raise ValueError("Food JSON is not an object")
            raw_foods = [f for f in parsed.get("foods") or [] if isinstance(f, dict) and f.get("name")]
            portions = _portion_patterns(context.patterns)
            foods = []
            for raw in raw_foods:
                typical = portions.get(str(raw["name"]).lower())
                if typical and not raw.get("quantity"):
                    raw = {**raw, "quantity": typical.get("typical_quantity"), "unit": typical.get("typical_unit")}
                foods.append(await self._match(raw))
            meal = summarize_meal(foods, parsed.get("meal_type"))
        except Exception as e:
            logger.exception("Food parsing failed for user_id=%s", context.user_id)
            raise AIHandlerError("Failed to parse food") from e
        return HandlerResult(data=meal, confidence=food_confidence(meal), tokens_used=completion.total_tokens)

    async def _match(self, raw: dict[str, Any]) -> FoodItem:
        candidates = await self._store.search_foods(str(raw["name"]), limit=3)
        reference = pick_reference(candidates, raw.get("brand"))
        if reference is None:
            return estimate_food(raw)
        return scale_reference(raw, reference)
