"""Atomic, idempotent commit of a reviewed import job into a recipe."""

import logging
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlparse

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from recipebox.errors import ErrorCode, RecipeImportError
from recipebox.models.enums import ImportStatus, MealSlot
from recipebox.models.recipe import Recipe, RecipeIngredient
from recipebox.models.recipe_import import RecipeImportJob
from recipebox.services.json_repair import is_placeholder_ingredient, is_placeholder_instruction

logger = logging.getLogger(__name__)

# Error prefixes understood by FinalizationService
PROCEDURE_ERROR_PREFIXES = {
    "AUTH_ERROR:": ErrorCode.AUTH_ERROR,
    "NOT_FOUND:": ErrorCode.NOT_FOUND,
    "FORBIDDEN:": ErrorCode.FORBIDDEN,
    "VALIDATION_ERROR:": ErrorCode.VALIDATION_ERROR,
}


class ProcedureError(Exception):
    """Failure raised by the finalize procedure, message prefixed with its code."""


def _positive_or_none(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    value = int(value)
    return value if value > 0 else None


def _domain(url: str | None) -> str | None:
    if not url:
        return None
    host = urlparse(url).hostname
    if not host:
        return None
    return host[4:] if host.startswith("www.") else host


def _instruction_texts(instructions: list[dict[str, Any]]) -> list[str]:
    ordered = sorted(
        (i for i in instructions if isinstance(i, dict) and not is_placeholder_instruction(i)),
        key=lambda i: i.get("step") if isinstance(i.get("step"), int) else 0,
    )
    return [text for i in ordered if (text := (i.get("text") or "").strip())]


def finalize_recipe_import(
    db: Session, job_id: str, owner_id: int | None, meal_slot: str
) -> int:
    """Materialize a job into Recipe and RecipeIngredient rows.

    The recipe insert, the ingredient inserts and the job's move to
    ``finalized`` are committed together or not at all. The job row is
    locked for the duration. Calling this again for a finalized job returns
    the recipe it already produced.

    Raises ProcedureError with an ``AUTH_ERROR:``, ``NOT_FOUND:``,
    ``FORBIDDEN:`` or ``VALIDATION_ERROR:`` prefix on precondition failures.
    """
    try:
        if owner_id is None:
            raise ProcedureError("AUTH_ERROR: Not authenticated")

        job = (
            db.query(RecipeImportJob)
            .filter(RecipeImportJob.id == job_id)
            .with_for_update()
            .first()
        )
        if job is None:
            raise ProcedureError(f"NOT_FOUND: Import job {job_id} not found")
        if job.user_id != owner_id:
            raise ProcedureError(f"FORBIDDEN: Import job {job_id} belongs to another user")

        if job.status == ImportStatus.FINALIZED.value and job.recipe_id is not None:
            existing_recipe_id = job.recipe_id
            db.rollback()
            return existing_recipe_id
        if job.status != ImportStatus.READY_FOR_REVIEW.value:
            raise ProcedureError(
                f"VALIDATION_ERROR: Job must be ready_for_review to finalize (status: {job.status})"
            )
        if meal_slot not in {slot.value for slot in MealSlot}:
            raise ProcedureError(f"VALIDATION_ERROR: Unknown meal slot {meal_slot!r}")

        data = job.extracted_recipe_json or {}
        title = (data.get("title") or "").strip()
        if not title:
            raise ProcedureError("VALIDATION_ERROR: Recipe title is required")

        ingredients = [
            i
            for i in data.get("ingredients") or []
            if isinstance(i, dict) and (i.get("name") or "").strip() and not is_placeholder_ingredient(i)
        ]
        if not ingredients:
            raise ProcedureError("VALIDATION_ERROR: Recipe needs at least one ingredient")

        meta = job.source_image_meta or {}
        times = data.get("times") or {}
        source_url = meta.get("url")

        recipe = Recipe(
            user_id=owner_id,
            name=title[:255],
            description=data.get("description") or None,
            servings=_positive_or_none(data.get("servings")),
            meal_slot=meal_slot,
            instructions=_instruction_texts(data.get("instructions") or []),
            prep_minutes=_positive_or_none(times.get("prep_minutes")),
            cook_minutes=_positive_or_none(times.get("cook_minutes")),
            total_minutes=_positive_or_none(times.get("total_minutes")),
            source_url=source_url,
            source_domain=meta.get("domain") or _domain(source_url),
            source_locale=data.get("translated_to") or job.source_locale or data.get("language_detected"),
            image_url=meta.get("saved_image_url") or meta.get("image_url"),
            image_path=meta.get("saved_image_path"),
        )
        db.add(recipe)
        db.flush()  # Get recipe.id

        for position, ingredient in enumerate(ingredients):
            quantity = ingredient.get("quantity")
            db.add(
                RecipeIngredient(
                    recipe_id=recipe.id,
                    position=position,
                    name=ingredient["name"].strip()[:255],
                    quantity=quantity if isinstance(quantity, int | float) else None,
                    unit=ingredient.get("unit") or None,
                    note=ingredient.get("note") or None,
                    section=ingredient.get("section") or None,
                    original_line=ingredient.get("original_line") or None,
                )
            )

        job.status = ImportStatus.FINALIZED.value
        job.finalized_at = datetime.now(UTC)
        job.recipe_id = recipe.id
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Finalized import job {job_id} into recipe {recipe.id}")
    return recipe.id


def parse_procedure_error(message: str) -> RecipeImportError:
    """Turn a prefixed procedure message into a typed error."""
    for prefix, code in PROCEDURE_ERROR_PREFIXES.items():
        if message.startswith(prefix):
            return RecipeImportError(code, message[len(prefix) :].strip())
    return RecipeImportError(ErrorCode.DB_ERROR, message)


class FinalizationService:
    """Service boundary around ``finalize_recipe_import``."""

    def __init__(self, db: Session):
        self.db = db

    def finalize(self, owner_id: int | None, job_id: str, meal_slot: MealSlot | str) -> int:
        """Finalize a job and return the recipe id."""
        slot = meal_slot.value if isinstance(meal_slot, MealSlot) else meal_slot
        try:
            return finalize_recipe_import(self.db, job_id, owner_id, slot)
        except ProcedureError as e:
            raise parse_procedure_error(str(e)) from e
        except SQLAlchemyError as e:
            logger.error(f"Database error finalizing job {job_id}: {e}", exc_info=True)
            raise RecipeImportError(ErrorCode.DB_ERROR, "Failed to save recipe") from e
