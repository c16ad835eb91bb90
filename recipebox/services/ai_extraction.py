"""AI recipe extraction from photos, web pages and pasted text."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from recipebox.config import Settings, get_settings
from recipebox.errors import AiExtractionFailed, ProviderError
from recipebox.schemas.extracted_recipe import ExtractedRecipe
from recipebox.services.html_content import (
    HtmlExtractionMeta,
    extract_image_url,
    prepare_html_for_ai,
)
from recipebox.services.json_repair import (
    ParseRepairFlags,
    ParseResult,
    RepairedWithPlaceholders,
    Unrecoverable,
    is_placeholder_ingredient,
    is_placeholder_instruction,
    parse_model_response,
)
from recipebox.services.jsonld_extractor import RecipeDraft
from recipebox.services.llm import GenerationProvider, ImageInput
from recipebox.services.llm_prompts import (
    EXTRACTED_RECIPE_JSON_SCHEMA,
    get_html_extraction_prompt,
    get_image_extraction_prompt,
    get_text_extraction_prompt,
)

logger = logging.getLogger(__name__)

NOTHING_FOUND_MARKERS = ("access denied", "toegang geweigerd", "geen receptinformatie")

RETRY_PARSE_TRUNCATION = "parse_truncation"
RETRY_HTML_TRUNCATED_LOW_COUNTS = "html_truncated_low_counts"

IMAGE_TEMPERATURE = 0.2
HTML_TEMPERATURE = 0.4
TEXT_TEMPERATURE = 0.3


@dataclass
class AiExtractionResult:
    """A validated recipe and how it was obtained."""

    recipe: ExtractedRecipe
    attempt: int
    flags: ParseRepairFlags
    raw_ocr_text: str | None = None
    html_meta: HtmlExtractionMeta | None = None
    draft: RecipeDraft | None = None
    diagnostics: dict[str, Any] | None = None

    @property
    def has_placeholders(self) -> bool:
        return (
            self.flags.injected_placeholders_ingredients
            or self.flags.injected_placeholders_instructions
        )


def rejection_reason(recipe: ExtractedRecipe, min_confidence: int) -> str | None:
    """Explain why an extraction must not be offered for review, or None.

    Rejects low-confidence results, results whose warnings say nothing was
    found, and results in which nothing real was recovered.
    """
    overall = recipe.confidence.overall
    if overall is not None and overall < min_confidence:
        return f"Extraction confidence too low ({overall} < {min_confidence})"

    for warning in recipe.warnings:
        lowered = warning.lower()
        if any(marker in lowered for marker in NOTHING_FOUND_MARKERS):
            return f"No recipe found: {warning}"

    real_ingredients = [
        i for i in recipe.ingredients if not is_placeholder_ingredient(i.model_dump())
    ]
    real_instructions = [
        i for i in recipe.instructions if not is_placeholder_instruction(i.model_dump())
    ]
    if not real_ingredients and not real_instructions:
        return "No ingredients or instructions could be recovered"
    return None


class RecipeExtractionOrchestrator:
    """Run prompts against the provider and turn responses into recipes.

    One retry with a stricter prompt is made when the first response was
    truncated, or when the page had to be truncated and the first response
    came back with too few items. Attempts run sequentially.
    """

    def __init__(self, provider: GenerationProvider, settings: Settings | None = None) -> None:
        self.provider = provider
        self.settings = settings or get_settings()

    async def extract_from_images(self, images: list[ImageInput]) -> AiExtractionResult:
        """Extract a recipe from one or more photos of the same recipe."""
        result, data = await self._run(
            lambda strict: get_image_extraction_prompt(len(images), strict=strict),
            images=images,
            temperature=IMAGE_TEMPERATURE,
        )
        raw_ocr_text = data.get("raw_ocr_text")
        if isinstance(raw_ocr_text, str) and raw_ocr_text.strip():
            result.raw_ocr_text = raw_ocr_text.strip()
        return result

    async def extract_from_html(self, html: str, url: str) -> AiExtractionResult:
        """Extract a recipe from a fetched page.

        The page is cleaned and size-capped first; the result carries a
        draft with the page's representative image.
        """
        cleaned_html, html_meta = prepare_html_for_ai(
            html,
            max_bytes=self.settings.html_max_bytes,
            keep_bytes=self.settings.html_keep_bytes,
        )
        result, _ = await self._run(
            lambda strict: get_html_extraction_prompt(cleaned_html, url, strict=strict),
            temperature=HTML_TEMPERATURE,
            html_meta=html_meta,
        )
        result.draft = self._to_draft(result.recipe, url, extract_image_url(html, url))
        return result

    async def extract_from_text(self, text: str) -> AiExtractionResult:
        """Extract a recipe from pasted free text."""
        result, _ = await self._run(
            lambda strict: get_text_extraction_prompt(text, strict=strict),
            temperature=TEXT_TEMPERATURE,
        )
        return result

    async def _call_provider(
        self, prompt: str, images: list[ImageInput] | None, temperature: float
    ) -> str:
        timeout = self.settings.provider_timeout_seconds
        try:
            async with asyncio.timeout(timeout):
                return await self.provider.generate(
                    prompt,
                    images=images,
                    json_schema=EXTRACTED_RECIPE_JSON_SCHEMA,
                    temperature=temperature,
                    max_tokens=self.settings.extraction_max_output_tokens,
                )
        except TimeoutError as e:
            raise ProviderError(
                f"Extraction provider did not answer within {timeout:.0f}s", timed_out=True
            ) from e

    async def _run(
        self,
        build_prompt: Callable[[bool], str],
        images: list[ImageInput] | None = None,
        temperature: float = 0.3,
        html_meta: HtmlExtractionMeta | None = None,
    ) -> tuple[AiExtractionResult, dict[str, Any]]:
        max_attempts = self.settings.max_extraction_attempts
        attempt = 1
        retry_reason: str | None = None

        while True:
            logger.info(f"Calling extraction provider (attempt {attempt}/{max_attempts})")
            raw = await self._call_provider(build_prompt(attempt > 1), images, temperature)
            logger.info(f"Provider returned {len(raw)} chars on attempt {attempt}")

            parsed = parse_model_response(raw)
            can_retry = attempt < max_attempts

            if isinstance(parsed, Unrecoverable):
                diagnostics = self._diagnostics(parsed, html_meta, attempt, retry_reason)
                if can_retry and parsed.truncated:
                    retry_reason = RETRY_PARSE_TRUNCATION
                    attempt += 1
                    continue
                raise AiExtractionFailed(
                    "Model response was invalid or truncated; failed to parse JSON.", diagnostics
                )

            if can_retry and parsed.truncated:
                retry_reason = RETRY_PARSE_TRUNCATION
                attempt += 1
                continue

            diagnostics = self._diagnostics(parsed, html_meta, attempt, retry_reason)
            if isinstance(parsed, RepairedWithPlaceholders) and not self.settings.allow_placeholders:
                raise AiExtractionFailed(
                    "Model response incomplete; placeholders were injected.", diagnostics
                )

            recipe = ExtractedRecipe.model_validate(parsed.data)

            if (
                can_retry
                and html_meta is not None
                and html_meta.was_truncated
                and (
                    len(recipe.ingredients) < self.settings.min_heuristic_ingredients
                    or len(recipe.instructions) < self.settings.min_heuristic_instructions
                )
            ):
                retry_reason = RETRY_HTML_TRUNCATED_LOW_COUNTS
                attempt += 1
                continue

            if diagnostics is not None:
                logger.info(f"Recipe import diagnostics: {diagnostics}")

            result = AiExtractionResult(
                recipe=recipe,
                attempt=attempt,
                flags=parsed.flags,
                html_meta=html_meta,
                diagnostics=diagnostics,
            )
            return result, parsed.data

    def _diagnostics(
        self,
        parsed: ParseResult,
        html_meta: HtmlExtractionMeta | None,
        attempt: int,
        retry_reason: str | None,
    ) -> dict[str, Any] | None:
        """Non-PII summary of an attempt; only built when debugging is on."""
        if not self.settings.recipe_import_debug:
            return None

        data = {} if isinstance(parsed, Unrecoverable) else parsed.data
        ingredients = data.get("ingredients") or []
        instructions = data.get("instructions") or []
        confidence = data.get("confidence") if isinstance(data.get("confidence"), dict) else {}
        return {
            "html": html_meta.to_dict() if html_meta else None,
            "parse_repair": parsed.flags.to_dict(),
            "ingredient_count": len(ingredients),
            "instruction_count": len(instructions),
            "min_non_placeholder_ingredient_count": sum(
                1 for i in ingredients if not is_placeholder_ingredient(i)
            ),
            "min_non_placeholder_instruction_count": sum(
                1 for i in instructions if not is_placeholder_instruction(i)
            ),
            "confidence_overall": confidence.get("overall"),
            "language_detected": data.get("language_detected"),
            "attempt": attempt,
            "retry_reason": retry_reason,
        }

    @staticmethod
    def _to_draft(recipe: ExtractedRecipe, url: str, image_url: str | None) -> RecipeDraft:
        return RecipeDraft(
            title=recipe.title,
            ingredients=[i.original_line or i.name for i in recipe.ingredients],
            steps=[i.text for i in recipe.instructions],
            source_url=url,
            description=recipe.description,
            servings=str(recipe.servings) if recipe.servings else None,
            source_language=recipe.language_detected,
            image_url=image_url,
            prep_minutes=recipe.times.prep_minutes or None,
            cook_minutes=recipe.times.cook_minutes or None,
            total_minutes=recipe.times.total_minutes or None,
        )
