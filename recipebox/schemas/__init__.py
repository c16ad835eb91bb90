"""Pydantic schemas for API requests and responses."""

from recipebox.schemas.auth import AuthResponse, UserLogin, UserRegister, UserResponse
from recipebox.schemas.extracted_recipe import (
    ExtractedIngredient,
    ExtractedInstruction,
    ExtractedRecipe,
    RecipeConfidence,
    RecipeTimes,
)
from recipebox.schemas.recipe import RecipeIngredientResponse, RecipeResponse
from recipebox.schemas.recipe_import import RecipeImportJobResponse

__all__ = [
    "UserRegister",
    "UserLogin",
    "AuthResponse",
    "UserResponse",
    "ExtractedIngredient",
    "ExtractedInstruction",
    "ExtractedRecipe",
    "RecipeConfidence",
    "RecipeTimes",
    "RecipeIngredientResponse",
    "RecipeResponse",
    "RecipeImportJobResponse",
]
