"""Recipe import pipeline: photo, URL, text and blank imports.

Each entry point runs synchronously to completion. URL, text and blank
imports create their job directly in ``ready_for_review``; photo imports go
through ``uploaded`` -> ``processing`` -> ``ready_for_review`` (or
``failed``). Translation and image download are best effort and never fail
an import.
"""

import base64
import binascii
import logging
import re
from typing import Any
from urllib.parse import urlparse

from pydantic import ValidationError
from sqlalchemy.orm import Session

from recipebox.config import Settings, get_settings
from recipebox.errors import (
    AiExtractionFailed,
    ErrorCode,
    FetchError,
    ProviderError,
    RecipeImportError,
    from_fetch_error,
)
from recipebox.models.enums import ImportSource, ImportStatus, MealSlot
from recipebox.models.recipe import Recipe
from recipebox.models.recipe_import import RecipeImportJob
from recipebox.schemas.extracted_recipe import ExtractedRecipe
from recipebox.services.ai_extraction import (
    AiExtractionResult,
    RecipeExtractionOrchestrator,
    rejection_reason,
)
from recipebox.services.finalization import FinalizationService
from recipebox.services.heuristic_extractor import HeuristicRecipe, HeuristicRecipeExtractor
from recipebox.services.html_content import (
    assign_sections,
    extract_image_url,
    extract_ingredient_sections,
    prepare_html_for_ai,
)
from recipebox.services.html_fetcher import SecureHtmlFetcher
from recipebox.services.image_storage import ImageDownloader
from recipebox.services.ingredient_normalizer import normalize_ingredient
from recipebox.services.instruction_merger import merge_instructions_into_paragraphs
from recipebox.services.job_store import JobStore
from recipebox.services.json_repair import placeholder_ingredient, placeholder_instruction
from recipebox.services.jsonld_extractor import RecipeDraft, extract_recipe_draft
from recipebox.services.llm import ImageInput
from recipebox.services.translation import RecipeTranslator

logger = logging.getLogger(__name__)

JSONLD_CONFIDENCE = 95
BLANK_RECIPE_TITLE = "Nieuw recept"

STAGE_PROVIDER_CALL = "provider_call"
STAGE_PARSE = "parse"
STAGE_VALIDATE = "validate"

EXTRACTION_JSONLD = "jsonld"
EXTRACTION_HEURISTIC = "heuristic"
EXTRACTION_AI = "ai"

_DATA_URL = re.compile(r"^data:(?P<mime>image/[\w.+-]+);base64,(?P<payload>.+)$", re.DOTALL)


def decode_image_data_url(data_url: str, max_bytes: int) -> ImageInput:
    """Decode a ``data:image/...;base64,...`` URL."""
    match = _DATA_URL.match(data_url.strip())
    if not match:
        raise RecipeImportError(ErrorCode.VALIDATION_ERROR, "Image must be a base64 image data URL")
    payload = "".join(match.group("payload").split())
    if len(payload) > max_bytes:
        raise RecipeImportError(
            ErrorCode.VALIDATION_ERROR, f"Image is too large (max {max_bytes // (1024 * 1024)} MB)"
        )
    try:
        data = base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise RecipeImportError(ErrorCode.VALIDATION_ERROR, "Image data is not valid base64") from e
    return ImageInput(data=data, media_type=match.group("mime").lower())


def source_domain(url: str) -> str | None:
    """Hostname of a URL without a leading ``www.``."""
    host = urlparse(url).hostname
    if not host:
        return None
    return host[4:] if host.startswith("www.") else host


def extraction_error(error: Exception) -> RecipeImportError:
    """Map an extraction-stage exception onto the import error taxonomy."""
    if isinstance(error, ProviderError):
        code = ErrorCode.TIMEOUT if error.timed_out else ErrorCode.AI_PROVIDER_ERROR
        return RecipeImportError(code, str(error))
    if isinstance(error, AiExtractionFailed):
        details = {"diagnostics": error.diagnostics} if error.diagnostics else {}
        return RecipeImportError(ErrorCode.AI_EXTRACTION_FAILED, str(error), details)
    if isinstance(error, ValidationError):
        return RecipeImportError(
            ErrorCode.VALIDATION_ERROR,
            f"Extracted recipe failed validation ({error.error_count()} errors)",
        )
    return RecipeImportError(ErrorCode.AI_EXTRACTION_FAILED, str(error))


def _with_placeholders(
    ingredients: list[dict[str, Any]], instructions: list[dict[str, Any]], warnings: list[str]
) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    if not ingredients:
        ingredients = [placeholder_ingredient()]
        warnings.append("No ingredients were found; please add them manually.")
    if not instructions:
        instructions = [placeholder_instruction()]
        warnings.append("No instructions were found; please add them manually.")
    return ingredients, instructions


def recipe_from_lines(
    title: str,
    ingredient_lines: list[str],
    steps: list[str],
    confidence: int,
    **fields: Any,
) -> ExtractedRecipe:
    """Build an ExtractedRecipe from plain ingredient lines and step texts."""
    warnings: list[str] = list(fields.pop("warnings", []))
    ingredients = [
        normalize_ingredient({"original_line": line, "name": line, "quantity": None, "unit": None})
        for line in ingredient_lines
    ]
    instructions = merge_instructions_into_paragraphs(
        [{"step": index, "text": text} for index, text in enumerate(steps, start=1)]
    )
    ingredients, instructions = _with_placeholders(ingredients, instructions, warnings)
    return ExtractedRecipe.model_validate(
        {
            **fields,
            "title": title,
            "ingredients": ingredients,
            "instructions": instructions,
            "confidence": {"overall": confidence},
            "warnings": warnings,
        }
    )


def polish_recipe(recipe: ExtractedRecipe) -> ExtractedRecipe:
    """Normalize ingredient quantities/units and regroup split instructions."""
    ingredients = [normalize_ingredient(i.model_dump()) for i in recipe.ingredients]
    instructions = merge_instructions_into_paragraphs([i.model_dump() for i in recipe.instructions])
    return ExtractedRecipe.model_validate(
        {**recipe.to_json(), "ingredients": ingredients, "instructions": instructions}
    )


class RecipeImportPipeline:
    """Orchestrates the import paths around a JobStore."""

    def __init__(
        self,
        db: Session,
        orchestrator: RecipeExtractionOrchestrator,
        fetcher: SecureHtmlFetcher,
        translator: RecipeTranslator | None = None,
        image_downloader: ImageDownloader | None = None,
        settings: Settings | None = None,
    ):
        self.db = db
        self.jobs = JobStore(db)
        self.orchestrator = orchestrator
        self.fetcher = fetcher
        self.translator = translator
        self.image_downloader = image_downloader
        self.settings = settings or get_settings()

    def get_job(self, owner_id: int, job_id: str) -> RecipeImportJob:
        return self.jobs.load(job_id, owner_id)

    # --- Photo imports ---

    def create_image_job(
        self, owner_id: int, files: list[dict[str, Any]], target_locale: str | None = None
    ) -> RecipeImportJob:
        """Register an upload of 1 to ``max_images`` photos."""
        if not files or len(files) > self.settings.max_images:
            raise RecipeImportError(
                ErrorCode.VALIDATION_ERROR,
                f"Provide between 1 and {self.settings.max_images} images",
            )
        meta = {"source": ImportSource.IMAGE_IMPORT.value, "files": files}
        return self.jobs.create(
            owner_id,
            meta,
            ImportStatus.UPLOADED,
            target_locale=target_locale or self.settings.default_target_locale,
        )

    async def process_images(self, owner_id: int, job_id: str, images: list[str]) -> RecipeImportJob:
        """Extract a recipe from the photos of an uploaded (or failed) job.

        Any failure after the move to ``processing`` leaves the job in
        ``failed`` with the stage and a sanitized message, and is raised.
        """
        job = self.jobs.load(job_id, owner_id)
        if job.import_status not in (ImportStatus.UPLOADED, ImportStatus.FAILED):
            raise RecipeImportError(
                ErrorCode.VALIDATION_ERROR,
                f"Job cannot be processed in status {job.status}",
            )
        if not images or len(images) > self.settings.max_images:
            raise RecipeImportError(
                ErrorCode.VALIDATION_ERROR,
                f"Provide between 1 and {self.settings.max_images} images",
            )
        decoded = [
            decode_image_data_url(image, self.settings.max_image_base64_bytes) for image in images
        ]

        self.jobs.apply_transition(job, ImportStatus.PROCESSING)

        try:
            result = await self.orchestrator.extract_from_images(decoded)
        except ProviderError as e:
            self.jobs.fail(job, str(e), STAGE_PROVIDER_CALL)
            raise extraction_error(e) from e
        except AiExtractionFailed as e:
            self.jobs.fail(job, str(e), STAGE_PARSE)
            raise extraction_error(e) from e
        except ValidationError as e:
            error = extraction_error(e)
            self.jobs.fail(job, error.message, STAGE_VALIDATE)
            raise error from e

        try:
            recipe = self._accept_ai_result(result)
        except RecipeImportError as e:
            self.jobs.fail(job, e.message, STAGE_VALIDATE)
            raise

        job.raw_ocr_text = result.raw_ocr_text
        job.validation_errors_json = None
        self._store_extraction(job, recipe)
        self.jobs.save(job)

        await self._translate(job)
        return self.jobs.apply_transition(job, ImportStatus.READY_FOR_REVIEW)

    # --- URL imports ---

    async def import_from_url(
        self, owner_id: int, url: str, target_locale: str | None = None
    ) -> RecipeImportJob:
        """Import a recipe from a web page.

        Structured data is used when the page has it, then heading-based
        extraction, then the extraction model.
        """
        url = url.strip()
        existing = (
            self.db.query(Recipe)
            .filter(
                Recipe.user_id == owner_id,
                Recipe.source_url == url,
                Recipe.deleted_at.is_(None),
            )
            .first()
        )
        if existing is not None:
            raise RecipeImportError(
                ErrorCode.DUPLICATE,
                "This recipe has already been imported",
                {"recipe_id": existing.id},
            )

        try:
            html = await self.fetcher.fetch(url)
        except FetchError as e:
            logger.warning(f"Fetching {url} failed: {e.code} {e.message}")
            raise from_fetch_error(e) from e

        recipe, method, image_url = await self._extract_from_page(html, url)
        logger.info(f"Extracted recipe from {url} via {method}")

        meta = {
            "url": url,
            "domain": source_domain(url),
            "source": ImportSource.URL_IMPORT.value,
            "image_url": image_url,
            "extraction_method": method,
        }
        job = self._create_review_job(owner_id, meta, recipe, target_locale)

        if image_url and self.image_downloader is not None:
            stored = await self.image_downloader.download_and_store(image_url, owner_id)
            if stored is not None:
                job.source_image_meta = {
                    **meta,
                    "saved_image_url": stored.url,
                    "saved_image_path": stored.path,
                }
                self.jobs.save(job)

        await self._translate(job)
        return job

    async def _extract_from_page(
        self, html: str, url: str
    ) -> tuple[ExtractedRecipe, str, str | None]:
        draft = extract_recipe_draft(html, url)
        if draft is not None:
            recipe = self._recipe_from_draft(draft, html)
            return recipe, EXTRACTION_JSONLD, draft.image_url or extract_image_url(html, url)

        heuristic = HeuristicRecipeExtractor.extract(html, url)
        if heuristic is not None and not self._heuristic_too_thin(heuristic, html):
            recipe = recipe_from_lines(
                heuristic.title,
                heuristic.ingredients,
                heuristic.instructions,
                heuristic.confidence,
                warnings=["Recipe read from page headings; please check it carefully."],
            )
            return recipe, EXTRACTION_HEURISTIC, heuristic.image_url

        try:
            result = await self.orchestrator.extract_from_html(html, url)
        except (ProviderError, AiExtractionFailed, ValidationError) as e:
            logger.warning(f"AI extraction failed for {url}: {e}")
            raise extraction_error(e) from e

        recipe = self._accept_ai_result(result)
        image_url = result.draft.image_url if result.draft else None
        return recipe, EXTRACTION_AI, image_url

    def _recipe_from_draft(self, draft: RecipeDraft, html: str) -> ExtractedRecipe:
        recipe = recipe_from_lines(
            draft.title,
            draft.ingredients,
            draft.steps,
            JSONLD_CONFIDENCE,
            description=draft.description,
            servings=draft.servings,
            language_detected=draft.source_language,
            times={
                "prep_minutes": draft.prep_minutes,
                "cook_minutes": draft.cook_minutes,
                "total_minutes": draft.total_minutes,
            },
        )
        sections = extract_ingredient_sections(html)
        if not sections:
            return recipe
        labelled = assign_sections([i.model_dump() for i in recipe.ingredients], sections)
        return ExtractedRecipe.model_validate({**recipe.to_json(), "ingredients": labelled})

    def _heuristic_too_thin(self, heuristic: HeuristicRecipe, html: str) -> bool:
        """Check if a heuristic result from a truncated page has too few items."""
        if (
            len(heuristic.ingredients) >= self.settings.min_heuristic_ingredients
            and len(heuristic.instructions) >= self.settings.min_heuristic_instructions
        ):
            return False
        _, meta = prepare_html_for_ai(
            html, max_bytes=self.settings.html_max_bytes, keep_bytes=self.settings.html_keep_bytes
        )
        if meta.was_truncated:
            logger.info(
                f"Heuristic extraction found {len(heuristic.ingredients)} ingredients and "
                f"{len(heuristic.instructions)} steps on a truncated page; using AI extraction"
            )
        return meta.was_truncated

    # --- Text and blank imports ---

    async def import_from_text(
        self, owner_id: int, text: str, target_locale: str | None = None
    ) -> RecipeImportJob:
        """Structure pasted recipe text."""
        text = text.strip()
        if len(text) < self.settings.min_text_length:
            raise RecipeImportError(
                ErrorCode.VALIDATION_ERROR,
                f"Recipe text must be at least {self.settings.min_text_length} characters",
            )

        try:
            result = await self.orchestrator.extract_from_text(text)
        except (ProviderError, AiExtractionFailed, ValidationError) as e:
            logger.warning(f"AI extraction of pasted text failed: {e}")
            raise extraction_error(e) from e

        recipe = self._accept_ai_result(result)
        job = self._create_review_job(
            owner_id, {"source": ImportSource.TEXT_IMPORT.value}, recipe, target_locale
        )
        await self._translate(job)
        return job

    def create_blank_job(self, owner_id: int, locale: str | None = None) -> RecipeImportJob:
        """Start an empty recipe for the user to fill in."""
        locale = locale or self.settings.default_target_locale
        recipe = ExtractedRecipe.model_validate(
            {
                "title": BLANK_RECIPE_TITLE,
                "language_detected": locale,
                "ingredients": [{"original_line": "", "name": ""}],
                "instructions": [{"step": 1, "text": ""}],
            }
        )
        return self.jobs.create(
            owner_id,
            {"source": ImportSource.FROM_SCRATCH.value},
            ImportStatus.READY_FOR_REVIEW,
            source_locale=locale,
            target_locale=locale,
            extracted_recipe_json=recipe.to_json(),
        )

    # --- Review ---

    def retry_job(self, owner_id: int, job_id: str) -> RecipeImportJob:
        """Reset a failed job so its photos can be processed again."""
        job = self.jobs.load(job_id, owner_id)
        if job.import_status != ImportStatus.FAILED:
            raise RecipeImportError(
                ErrorCode.VALIDATION_ERROR, f"Only failed jobs can be retried (status: {job.status})"
            )
        job.validation_errors_json = None
        return self.jobs.apply_transition(job, ImportStatus.UPLOADED)

    def update_extracted(
        self, owner_id: int, job_id: str, patch: dict[str, Any]
    ) -> RecipeImportJob:
        """Apply review edits to the current recipe of a job."""
        job = self.jobs.load(job_id, owner_id)
        if job.import_status != ImportStatus.READY_FOR_REVIEW:
            raise RecipeImportError(
                ErrorCode.VALIDATION_ERROR, f"Job cannot be edited in status {job.status}"
            )

        current = job.extracted_recipe_json or {}
        updates = {key: value for key, value in patch.items() if value is not None}
        try:
            recipe = ExtractedRecipe.model_validate({**current, **updates})
        except ValidationError as e:
            raise RecipeImportError(
                ErrorCode.VALIDATION_ERROR,
                f"Edited recipe is invalid ({e.error_count()} errors)",
                {"errors": e.errors(include_url=False, include_context=False, include_input=False)},
            ) from e

        job.extracted_recipe_json = recipe.to_json()
        return self.jobs.save(job)

    async def translate_job(self, owner_id: int, job_id: str, target_locale: str) -> RecipeImportJob:
        """Translate a job under review on request."""
        job = self.jobs.load(job_id, owner_id)
        if job.import_status != ImportStatus.READY_FOR_REVIEW:
            raise RecipeImportError(
                ErrorCode.VALIDATION_ERROR, f"Job cannot be translated in status {job.status}"
            )
        if self.translator is None:
            raise RecipeImportError(ErrorCode.AI_PROVIDER_ERROR, "Translation is not available")

        try:
            changed = await self.translator.translate_job(job, target_locale)
        except ProviderError as e:
            self.db.rollback()
            raise extraction_error(e) from e
        if changed:
            self.jobs.save(job)
        return job

    def finalize(self, owner_id: int, job_id: str, meal_slot: MealSlot | str) -> int:
        """Commit a reviewed job into a permanent recipe."""
        return FinalizationService(self.db).finalize(owner_id, job_id, meal_slot)

    # --- Helpers ---

    def _accept_ai_result(self, result: AiExtractionResult) -> ExtractedRecipe:
        reason = rejection_reason(result.recipe, self.settings.min_confidence)
        if reason is not None:
            logger.warning(f"Rejected extraction: {reason}")
            raise RecipeImportError(ErrorCode.AI_EXTRACTION_FAILED, reason)
        return polish_recipe(result.recipe)

    def _store_extraction(self, job: RecipeImportJob, recipe: ExtractedRecipe) -> None:
        payload = recipe.to_json()
        job.extracted_recipe_json = payload
        job.preserve_original(payload)
        job.confidence_overall = recipe.confidence.overall
        job.source_locale = recipe.language_detected

    def _create_review_job(
        self,
        owner_id: int,
        meta: dict[str, Any],
        recipe: ExtractedRecipe,
        target_locale: str | None,
    ) -> RecipeImportJob:
        payload = recipe.to_json()
        return self.jobs.create(
            owner_id,
            meta,
            ImportStatus.READY_FOR_REVIEW,
            source_locale=recipe.language_detected,
            target_locale=target_locale or self.settings.default_target_locale,
            extracted_recipe_json=payload,
            original_recipe_json=payload,
            confidence_overall=recipe.confidence.overall,
        )

    async def _translate(self, job: RecipeImportJob) -> None:
        """Run translation, keeping the job usable in its source language on failure."""
        if self.translator is None:
            return
        try:
            if await self.translator.translate_job(job):
                self.jobs.save(job)
        except Exception as e:
            self.db.rollback()
            logger.warning(f"Translation of job {job.id} failed, keeping source language: {e}", exc_info=True)
