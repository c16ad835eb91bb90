"""Recipe and RecipeIngredient models."""

from sqlalchemy import JSON, Column, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from recipebox.database import Base
from recipebox.models.mixins import SoftDeleteMixin, TimestampMixin


class Recipe(Base, TimestampMixin, SoftDeleteMixin):
    """Permanent recipe materialized from a finalized import."""

    __tablename__ = "recipes"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    servings = Column(Integer, nullable=True)
    meal_slot = Column(String(20), nullable=False, default="dinner")
    instructions = Column(JSON, nullable=False, default=list)  # ordered step texts

    prep_minutes = Column(Integer, nullable=True)
    cook_minutes = Column(Integer, nullable=True)
    total_minutes = Column(Integer, nullable=True)

    # Provenance
    source_url = Column(String(2048), nullable=True, index=True)
    source_domain = Column(String(255), nullable=True)
    source_locale = Column(String(10), nullable=True)
    image_url = Column(String(2048), nullable=True)
    image_path = Column(String(1024), nullable=True)

    # Relationships
    user = relationship("User", backref="recipes")
    ingredients = relationship(
        "RecipeIngredient",
        back_populates="recipe",
        cascade="all, delete-orphan",
        order_by="RecipeIngredient.position",
    )


class RecipeIngredient(Base, TimestampMixin):
    """Ingredient within a recipe."""

    __tablename__ = "recipe_ingredients"

    id = Column(Integer, primary_key=True, index=True)
    recipe_id = Column(Integer, ForeignKey("recipes.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    name = Column(String(255), nullable=False)
    quantity = Column(Float, nullable=True)
    unit = Column(String(50), nullable=True)
    note = Column(String(500), nullable=True)
    section = Column(String(255), nullable=True)
    original_line = Column(Text, nullable=True)

    # Relationships
    recipe = relationship("Recipe", back_populates="ingredients")
