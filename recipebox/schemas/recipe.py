"""Recipe schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

# --- Recipe Ingredient ---


class RecipeIngredientResponse(BaseModel):
    """Recipe ingredient response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    position: int
    name: str
    quantity: float | None
    unit: str | None
    note: str | None
    section: str | None
    original_line: str | None


# --- Recipe ---


class RecipeResponse(BaseModel):
    """Finalized recipe with ingredients."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    name: str
    description: str | None
    servings: int | None
    meal_slot: str
    instructions: list[str]
    prep_minutes: int | None
    cook_minutes: int | None
    total_minutes: int | None
    source_url: str | None
    source_domain: str | None
    source_locale: str | None
    image_url: str | None
    ingredients: list[RecipeIngredientResponse]
    created_at: datetime
