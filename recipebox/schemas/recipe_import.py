"""Recipe import schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from recipebox.models.enums import MealSlot
from recipebox.schemas.extracted_recipe import (
    ExtractedIngredient,
    ExtractedInstruction,
    RecipeTimes,
)


class ImageFileMeta(BaseModel):
    """Description of one uploaded photo."""

    filename: str = Field(..., max_length=255)
    size: int = Field(..., ge=0)
    mime_type: str = Field(..., max_length=100)


class ImageJobCreate(BaseModel):
    """Request to create an image import job."""

    files: list[ImageFileMeta] = Field(..., min_length=1, max_length=5)
    target_locale: str | None = Field(None, max_length=10)


class ImageProcessRequest(BaseModel):
    """Photos to extract a recipe from, as base64 data URLs."""

    images: list[str] = Field(..., min_length=1)


class UrlImportRequest(BaseModel):
    """Request to import a recipe from a web page."""

    url: str = Field(..., max_length=2048)
    target_locale: str | None = Field(None, max_length=10)


class TextImportRequest(BaseModel):
    """Request to import a recipe from pasted text."""

    text: str = Field(..., max_length=50000)
    target_locale: str | None = Field(None, max_length=10)


class TranslateRequest(BaseModel):
    """Request to translate a job's recipe."""

    target_locale: str = Field(..., min_length=2, max_length=10)


class RecipeImportUpdate(BaseModel):
    """Editorial changes to a job under review."""

    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = Field(None, max_length=5000)
    servings: int | None = Field(None, ge=1)
    times: RecipeTimes | None = None
    ingredients: list[ExtractedIngredient] | None = Field(None, min_length=1)
    instructions: list[ExtractedInstruction] | None = Field(None, min_length=1)


class FinalizeRequest(BaseModel):
    """Request to commit a reviewed job into a recipe."""

    meal_slot: MealSlot = MealSlot.DINNER


class FinalizeResponse(BaseModel):
    """Result of finalizing a job."""

    recipe_id: int


class RecipeImportJobResponse(BaseModel):
    """Response for a recipe import job."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: int
    status: str  # uploaded, processing, ready_for_review, failed, finalized
    source_image_meta: dict[str, Any] | None = None
    source_locale: str | None = None
    target_locale: str | None = None
    extracted_recipe_json: dict[str, Any] | None = None
    original_recipe_json: dict[str, Any] | None = None
    validation_errors_json: dict[str, Any] | None = None
    confidence_overall: int | None = None
    recipe_id: int | None = None
    finalized_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
