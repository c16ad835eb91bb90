"""Persistence and status transitions for recipe import jobs."""

import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.orm import Session

from recipebox.errors import ErrorCode, RecipeImportError, sanitize_error_message
from recipebox.models.enums import ImportStatus
from recipebox.models.recipe_import import RecipeImportJob

logger = logging.getLogger(__name__)


def build_error_record(message: str, stage: str | None = None) -> dict[str, Any]:
    """Diagnostic stored in ``validation_errors_json`` for a failed job."""
    return {
        "stage": stage,
        "message": sanitize_error_message(message),
        "timestamp": datetime.now(UTC).isoformat(),
    }


class JobStore:
    """Owner-scoped access to import jobs and their state machine."""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        owner_id: int,
        source_meta: dict[str, Any] | None,
        status: ImportStatus = ImportStatus.UPLOADED,
        **fields: Any,
    ) -> RecipeImportJob:
        """Create a job owned by ``owner_id``.

        Extra keyword arguments are set as job columns, so synchronous import
        paths can create a job that already holds its extracted recipe.
        """
        job = RecipeImportJob(
            user_id=owner_id,
            status=status.value,
            source_image_meta=source_meta,
            **fields,
        )
        if status == ImportStatus.FINALIZED:
            job.finalized_at = datetime.now(UTC)
        self.db.add(job)
        self.db.commit()
        self.db.refresh(job)
        logger.info(f"Created import job {job.id} for user {owner_id} in status {job.status}")
        return job

    def load(self, job_id: str, owner_id: int) -> RecipeImportJob:
        """Load a job, enforcing ownership."""
        job = self.db.query(RecipeImportJob).filter(RecipeImportJob.id == job_id).first()
        if job is None:
            raise RecipeImportError(ErrorCode.NOT_FOUND, f"Import job {job_id} not found")
        if job.user_id != owner_id:
            raise RecipeImportError(
                ErrorCode.FORBIDDEN, f"Import job {job_id} belongs to another user"
            )
        return job

    def transition(
        self,
        job_id: str,
        owner_id: int,
        new_status: ImportStatus,
        error_message: str | None = None,
        stage: str | None = None,
    ) -> RecipeImportJob:
        """Move a job to ``new_status``.

        Illegal transitions raise VALIDATION_ERROR and leave the job as it
        was. Self-transitions succeed without changing anything but the
        error record.
        """
        job = self.load(job_id, owner_id)
        return self.apply_transition(job, new_status, error_message, stage)

    def apply_transition(
        self,
        job: RecipeImportJob,
        new_status: ImportStatus,
        error_message: str | None = None,
        stage: str | None = None,
    ) -> RecipeImportJob:
        """Transition an already loaded job."""
        current = job.import_status
        if not current.can_transition_to(new_status):
            raise RecipeImportError(
                ErrorCode.VALIDATION_ERROR,
                f"Invalid status transition: {current.value} -> {new_status.value}",
                {"from": current.value, "to": new_status.value},
            )

        job.status = new_status.value
        if new_status == ImportStatus.FINALIZED and job.finalized_at is None:
            job.finalized_at = datetime.now(UTC)
        if error_message is not None:
            job.validation_errors_json = build_error_record(error_message, stage)

        self.db.commit()
        self.db.refresh(job)
        if current != new_status:
            logger.info(f"Import job {job.id}: {current.value} -> {new_status.value}")
        return job

    def fail(self, job: RecipeImportJob, message: str, stage: str) -> RecipeImportJob:
        """Move a job to failed with a sanitized diagnostic.

        Pending changes on the job are discarded first so a half-written
        extraction never lands next to the failure record.
        """
        self.db.rollback()
        self.db.refresh(job)
        logger.warning(f"Import job {job.id} failed at stage {stage}: {sanitize_error_message(message)}")
        return self.apply_transition(job, ImportStatus.FAILED, message, stage)

    def save(self, job: RecipeImportJob) -> RecipeImportJob:
        """Commit pending changes to a job."""
        self.db.commit()
        self.db.refresh(job)
        return job
