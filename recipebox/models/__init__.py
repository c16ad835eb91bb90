"""SQLAlchemy models."""

from recipebox.models.recipe import Recipe, RecipeIngredient
from recipebox.models.recipe_import import RecipeImportJob
from recipebox.models.user import User

__all__ = [
    "User",
    "Recipe",
    "RecipeIngredient",
    "RecipeImportJob",
]
