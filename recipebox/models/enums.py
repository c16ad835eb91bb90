"""Enums for model fields."""

from enum import Enum


class ImportStatus(str, Enum):
    """Lifecycle states of a recipe import job."""

    UPLOADED = "uploaded"
    PROCESSING = "processing"
    READY_FOR_REVIEW = "ready_for_review"
    FAILED = "failed"
    FINALIZED = "finalized"

    def can_transition_to(self, target: "ImportStatus") -> bool:
        """Check if moving from this status to ``target`` is allowed.

        Self-transitions are always allowed and act as a no-op.
        """
        if self == target:
            return True
        return target in VALID_STATUS_TRANSITIONS[self]

    @property
    def is_terminal(self) -> bool:
        """Check if no further transitions are possible."""
        return not VALID_STATUS_TRANSITIONS[self]


VALID_STATUS_TRANSITIONS: dict[ImportStatus, frozenset[ImportStatus]] = {
    ImportStatus.UPLOADED: frozenset({ImportStatus.PROCESSING, ImportStatus.FAILED}),
    ImportStatus.PROCESSING: frozenset({ImportStatus.READY_FOR_REVIEW, ImportStatus.FAILED}),
    ImportStatus.READY_FOR_REVIEW: frozenset({ImportStatus.FINALIZED, ImportStatus.FAILED}),
    ImportStatus.FAILED: frozenset({ImportStatus.UPLOADED, ImportStatus.PROCESSING}),
    ImportStatus.FINALIZED: frozenset(),
}


class ImportSource(str, Enum):
    """How the recipe entered the import pipeline."""

    IMAGE_IMPORT = "image_import"
    URL_IMPORT = "url_import"
    TEXT_IMPORT = "text_import"
    FROM_SCRATCH = "from_scratch"


class MealSlot(str, Enum):
    """Meal slot a finalized recipe is filed under."""

    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"
    OTHER = "other"
