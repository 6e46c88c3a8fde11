"""Voice transcription and food-photo analysis results, plus the HTTP body for media input."""

import base64

from pydantic import BaseModel, Field

from app.schemas.ai import Attachment


class MediaInput(BaseModel):
    """Audio or image sent over HTTP as base64."""

    mime_type: str = Field(..., min_length=3, max_length=64)
    data_base64: str = Field(..., min_length=1)

    def to_attachment(self) -> Attachment:
        return Attachment(mime_type=self.mime_type, data=base64.b64decode(self.data_base64))


class Transcription(BaseModel):
    text: str
    language: str = "en"


class PhotoFood(BaseModel):
    name: str
    quantity: float | None = None
    unit: str | None = None
    cooking_method: str | None = None
    visible_additions: list[str] = Field(default_factory=list)
    confidence: float | None = None


class EstimatedTotals(BaseModel):
    calories: float | None = None
    protein_g: float | None = None
    carbs_g: float | None = None
    fat_g: float | None = None


class PhotoAnalysis(BaseModel):
    foods: list[PhotoFood] = Field(default_factory=list)
    meal_type: str | None = None
    meal_composition: dict[str, list[str]] | None = None
    estimated_totals: EstimatedTotals | None = None
    overall_confidence: float | None = None
    error: str | None = None
    raw_response: str | None = None


def as_attachment(value) -> Attachment:
    """Accept an Attachment, a MediaInput, or a dict shaped like either."""
    if isinstance(value, Attachment):
        return value
    if isinstance(value, MediaInput):
        return value.to_attachment()
    if isinstance(value, dict):
        if "data_base64" in value:
            return MediaInput.model_validate(value).to_attachment()
        return Attachment.model_validate(value)
    raise ValueError("Expected an audio or image attachment")
