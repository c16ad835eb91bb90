"""Structured recipe value objects produced by the extraction stages."""

import re
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from recipebox.services.ingredient_normalizer import parse_quantity

ConfidenceScore = Annotated[int, Field(ge=0, le=100)]


def _coerce_int(value: Any) -> Any:
    """Accept "4 personen", 4.0 or "45" where an integer is expected."""
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, float):
        return round(value)
    if isinstance(value, str):
        match = re.search(r"\d+", value)
        return int(match.group()) if match else None
    return value


class ExtractedIngredient(BaseModel):
    """One ingredient line of an extracted recipe."""

    model_config = ConfigDict(frozen=True)

    original_line: str = ""
    name: str
    quantity: float | None = None
    unit: str | None = None
    note: str | None = None
    section: str | None = None

    @field_validator("quantity", mode="before")
    @classmethod
    def parse_quantity_text(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_quantity(value)
        return value

    @field_validator("original_line", mode="before")
    @classmethod
    def default_original_line(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("unit", "note", "section", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ExtractedInstruction(BaseModel):
    """One numbered preparation step."""

    model_config = ConfigDict(frozen=True)

    step: int = Field(..., ge=1)
    text: str


class RecipeTimes(BaseModel):
    """Preparation times in minutes."""

    model_config = ConfigDict(frozen=True)

    prep_minutes: int | None = Field(None, ge=0)
    cook_minutes: int | None = Field(None, ge=0)
    total_minutes: int | None = Field(None, ge=0)

    @field_validator("prep_minutes", "cook_minutes", "total_minutes", mode="before")
    @classmethod
    def coerce_minutes(cls, value: Any) -> Any:
        value = _coerce_int(value)
        if isinstance(value, int) and value < 0:
            return None
        return value


class RecipeConfidence(BaseModel):
    """Extraction confidence, overall and per field."""

    model_config = ConfigDict(frozen=True)

    overall: ConfidenceScore | None = None
    fields: dict[str, ConfidenceScore] = Field(default_factory=dict)

    @field_validator("overall", mode="before")
    @classmethod
    def coerce_overall(cls, value: Any) -> Any:
        return _coerce_int(value)

    @field_validator("fields", mode="before")
    @classmethod
    def coerce_fields(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return {}
        return {
            key: _coerce_int(score)
            for key, score in value.items()
            if isinstance(score, int | float | str) and _coerce_int(score) is not None
        }


class ExtractedRecipe(BaseModel):
    """Structured recipe accepted into an import job.

    Instances are immutable; edits go through ``model_copy(update=...)``.
    """

    model_config = ConfigDict(frozen=True)

    title: str = Field(..., min_length=1)
    description: str | None = None
    language_detected: str | None = None
    translated_to: str | None = None
    servings: int | None = Field(None, ge=1)
    times: RecipeTimes = Field(default_factory=RecipeTimes)
    ingredients: list[ExtractedIngredient] = Field(..., min_length=1)
    instructions: list[ExtractedInstruction] = Field(..., min_length=1)
    confidence: RecipeConfidence = Field(default_factory=RecipeConfidence)
    warnings: list[str] = Field(default_factory=list)

    @field_validator("servings", mode="before")
    @classmethod
    def coerce_servings(cls, value: Any) -> Any:
        value = _coerce_int(value)
        if isinstance(value, int) and value < 1:
            return None
        return value

    @field_validator("times", "confidence", mode="before")
    @classmethod
    def null_to_default(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("warnings", mode="before")
    @classmethod
    def null_to_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    def to_json(self) -> dict[str, Any]:
        """Serialize for storage in a JSON column."""
        return self.model_dump(mode="json")
