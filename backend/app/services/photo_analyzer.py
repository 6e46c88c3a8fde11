"""Food photo -> itemised estimate. JSON is requested; free text falls back to a regex scan."""

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from app.core.errors import AIHandlerError
from app.schemas.ai import HandlerResult, ModelConfig
from app.schemas.context import AIContext
from app.schemas.media import PhotoAnalysis, PhotoFood, as_attachment
from app.services.gemini_common import JSON_OBJECT_PATTERN, strip_code_fence
from app.services.model_gateway import ModelGateway

logger = logging.getLogger(__name__)

NO_FOOD_CONFIDENCE = 0.3
FALLBACK_CONFIDENCE = 0.5

FOOD_LINE_PATTERN = re.compile(
    r"(?:(\d+(?:\.\d+)?)\s*(g|grams|oz|ounces|cups?|pieces?|slices?)\s+)?(?:of\s+)?([a-zA-Z][a-zA-Z ]+?)\s*(?:,|\.|;|\n|$)",
    re.IGNORECASE,
)

PROMPT_TEMPLATE = """Analyze this food photo and identify all visible food items with portion estimates.

USER CONTEXT:
- Common foods: {foods}
- Average daily calories: {calories}

ANALYSIS REQUIREMENTS:
1. Identify ALL visible food items
2. Estimate portion size in grams or standard units
3. Identify cooking methods (grilled, fried, baked, raw)
4. Note any visible condiments or toppings
5. Assess overall meal composition (balanced, protein-heavy, etc.)
6. Estimate total calories

PORTION ESTIMATION GUIDE:
- Compare to common objects (tennis ball = 1 cup, deck of cards = 3oz meat)
- Account for plate size (standard dinner plate = 10-12 inches)
- Consider food density and stacking
- Be conservative with hidden ingredients (oil, butter)

Output ONLY valid JSON:
{{
  "foods": [{{"name": "", "quantity": 0, "unit": "", "cooking_method": "", "visible_additions": [], "confidence": 0.0}}],
  "meal_type": "breakfast/lunch/dinner/snack",
  "meal_composition": {{"protein_sources": [], "carb_sources": [], "vegetable_sources": [], "fat_sources": []}},
  "estimated_totals": {{"calories": 0, "protein_g": 0, "carbs_g": 0, "fat_g": 0}},
  "overall_confidence": 0.0
}}"""


def build_prompt(context: AIContext) -> str:
    foods = ", ".join(p.pattern_key for p in context.patterns_of("food_preference"))
    return PROMPT_TEMPLATE.format(foods=foods or "varied", calories=int(context.avg_daily_calories) or 2000)


def extract_from_text(text: str) -> PhotoAnalysis:
    foods = []
    for match in FOOD_LINE_PATTERN.finditer(text):
        name = match.group(3).strip()
        if len(name) <= 2:
            continue
        foods.append(
            PhotoFood(
                name=name,
                quantity=float(match.group(1)) if match.group(1) else 1,
                unit=match.group(2) or "serving",
                confidence=FALLBACK_CONFIDENCE,
            )
        )
    return PhotoAnalysis(foods=foods, meal_type="unknown", overall_confidence=FALLBACK_CONFIDENCE)


def parse_vision_response(text: str) -> PhotoAnalysis:
    cleaned = strip_code_fence(text)
    match = JSON_OBJECT_PATTERN.search(cleaned)
    if match is None:
        return extract_from_text(cleaned)
    try:
        return PhotoAnalysis.model_validate(json.loads(match.group(0)))
    except (ValueError, ValidationError):
        logger.warning("Could not parse photo analysis JSON")
        return PhotoAnalysis(foods=[], error="Failed to parse response", raw_response=text)


def photo_confidence(analysis: PhotoAnalysis) -> float:
    if not analysis.foods:
        return NO_FOOD_CONFIDENCE
    if analysis.overall_confidence:
        return max(0.0, min(1.0, analysis.overall_confidence))
    scores = [f.confidence if f.confidence else FALLBACK_CONFIDENCE for f in analysis.foods]
    return max(0.0, min(1.0, sum(scores) / len(scores)))


class PhotoAnalyzer:
    def __init__(self, gateway: ModelGateway):
        self._gateway = gateway

    async def process(self, input: Any, context: AIContext, config: ModelConfig) -> HandlerResult:
        try:
            image = as_attachment(input)
            completion = await self._gateway.complete("", [], build_prompt(context), config, attachments=[image])
            analysis = parse_vision_response(completion.text)
        except Exception as e:
            logger.exception("Photo analysis failed for user_id=%s", context.user_id)
            raise AIHandlerError("Failed to analyze photo") from e
        return HandlerResult(data=analysis, confidence=photo_confidence(analysis), tokens_used=completion.total_tokens)
