"""Endpoints for finalized recipes."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from recipebox.api.dependencies import get_current_user
from recipebox.database import get_db
from recipebox.models.recipe import Recipe
from recipebox.models.user import User
from recipebox.schemas.recipe import RecipeResponse

router = APIRouter(prefix="/api/v1/recipes", tags=["recipes"])


def get_user_recipe(db: Session, recipe_id: int, user: User) -> Recipe:
    """Get a recipe that belongs to the user."""
    recipe = (
        db.query(Recipe)
        .filter(
            Recipe.id == recipe_id,
            Recipe.user_id == user.id,
            Recipe.deleted_at.is_(None),
        )
        .first()
    )
    if not recipe:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recipe not found")
    return recipe


@router.get("", response_model=list[RecipeResponse])
async def list_recipes(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    """List the current user's recipes."""
    return (
        db.query(Recipe)
        .filter(Recipe.user_id == current_user.id, Recipe.deleted_at.is_(None))
        .order_by(Recipe.name)
        .all()
    )


@router.get("/{recipe_id}", response_model=RecipeResponse)
async def get_recipe(
    recipe_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    """Get a recipe with its ingredients."""
    return get_user_recipe(db, recipe_id, current_user)


@router.delete("/{recipe_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_recipe(
    recipe_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    """Soft delete a recipe."""
    recipe = get_user_recipe(db, recipe_id, current_user)
    recipe.soft_delete()
    db.commit()
