"""RecipeImportJob model tracking one import attempt end-to-end."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, validates

from recipebox.database import Base
from recipebox.models.enums import ImportStatus
from recipebox.models.mixins import TimestampMixin


def _new_job_id() -> str:
    return str(uuid.uuid4())


class RecipeImportJob(Base, TimestampMixin):
    """A single recipe import and its extracted, reviewable result."""

    __tablename__ = "recipe_import_jobs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_job_id)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ImportStatus.UPLOADED.value,
        index=True,
    )  # uploaded, processing, ready_for_review, failed, finalized
    source_image_meta: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    source_locale: Mapped[str | None] = mapped_column(String(10), nullable=True)
    target_locale: Mapped[str | None] = mapped_column(String(10), nullable=True)
    raw_ocr_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    extracted_recipe_json: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    original_recipe_json: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    validation_errors_json: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    confidence_overall: Mapped[int | None] = mapped_column(Integer, nullable=True)
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    recipe_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("recipes.id"), nullable=True
    )

    @validates("original_recipe_json")
    def _guard_original(self, key: str, value: Any) -> Any:
        """Reject any write once the untranslated snapshot is set."""
        if self.original_recipe_json is not None and value != self.original_recipe_json:
            raise ValueError("original_recipe_json is write-once")
        return value

    def preserve_original(self, recipe: dict[str, Any]) -> bool:
        """Store ``recipe`` as the untranslated snapshot unless one exists.

        Returns True if the snapshot was written by this call.
        """
        if self.original_recipe_json is not None:
            return False
        self.original_recipe_json = recipe
        return True

    @property
    def import_status(self) -> ImportStatus:
        """Current status as an ImportStatus member."""
        return ImportStatus(self.status)

    @property
    def source(self) -> str | None:
        """Source tag recorded in the provenance metadata."""
        return (self.source_image_meta or {}).get("source")

    def __repr__(self) -> str:
        return f"<RecipeImportJob(id={self.id}, user_id={self.user_id}, status={self.status})>"
