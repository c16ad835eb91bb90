"""Best-effort translation of extracted recipes into the user's language."""

import asyncio
import logging
import re

from recipebox.config import Settings, get_settings
from recipebox.errors import ProviderError
from recipebox.models.recipe_import import RecipeImportJob
from recipebox.schemas.extracted_recipe import ExtractedRecipe
from recipebox.services.ingredient_normalizer import convert_to_metric, is_metric_locale, split_note
from recipebox.services.llm import GenerationProvider
from recipebox.services.llm_prompts import (
    get_numbered_list_translation_prompt,
    get_short_translation_prompt,
)

logger = logging.getLogger(__name__)

ENGLISH_RECIPE_MARKERS = re.compile(
    r"\b(tomato(es)?|cucumbers?|scallions?|peppers?|place|add|stir|mix|slice|chop|"
    r"cups?|tablespoons?|teaspoons?|ounces?|recipe|salad)\b",
    re.IGNORECASE,
)
_NUMBERED_LINE = re.compile(r"^\s*(\d+)\s*[.):]\s*(.*\S)\s*$")
_FAHRENHEIT_RANGE = re.compile(r"(\d{2,3})\s*-\s*(\d{2,3})\s*°?\s*(?:F|degrees F(?:ahrenheit)?)\b")
_FAHRENHEIT = re.compile(r"(\d{2,3})\s*(?:°\s*F|F|degrees F(?:ahrenheit)?)\b")

TRANSLATION_TEMPERATURE = 0.2
TRANSLATION_MAX_TOKENS = 8192


def fahrenheit_to_celsius(fahrenheit: int) -> int:
    """Convert to Celsius, rounded to the nearest 5 degrees."""
    return round((fahrenheit - 32) * 5 / 9 / 5) * 5


def convert_temperatures(text: str) -> str:
    """Rewrite Fahrenheit temperatures (and ranges) in text as Celsius."""
    text = _FAHRENHEIT_RANGE.sub(
        lambda m: (
            f"{fahrenheit_to_celsius(int(m.group(1)))}-{fahrenheit_to_celsius(int(m.group(2)))}°C"
        ),
        text,
    )
    return _FAHRENHEIT.sub(lambda m: f"{fahrenheit_to_celsius(int(m.group(1)))}°C", text)


def looks_like_english(text: str) -> bool:
    return bool(ENGLISH_RECIPE_MARKERS.search(text))


def looks_untranslated(original: str, translated: str, source_locale: str | None) -> bool:
    """Check if a translation still reads like the source text."""
    if translated.strip().lower() == original.strip().lower():
        return True
    return source_locale == "en" and looks_like_english(translated)


def extract_numbered_lines(response: str, expected: int) -> list[str | None]:
    """Map a "1. ...\\n2. ..." response back to input positions.

    Missing or out-of-range numbers leave None at that position.
    """
    lines: list[str | None] = [None] * expected
    for raw_line in response.splitlines():
        match = _NUMBERED_LINE.match(raw_line)
        if not match:
            continue
        index = int(match.group(1)) - 1
        if 0 <= index < expected and lines[index] is None:
            lines[index] = match.group(2).strip()
    return lines


def _clean_single(response: str) -> str:
    text = response.strip().splitlines()[0] if response.strip() else ""
    return text.strip().strip('"“”').strip()


class RecipeTranslator:
    """Translate recipe text fields with numbered batch calls."""

    def __init__(self, provider: GenerationProvider, settings: Settings | None = None) -> None:
        self.provider = provider
        self.settings = settings or get_settings()

    async def _generate(self, prompt: str) -> str:
        timeout = self.settings.provider_timeout_seconds
        try:
            async with asyncio.timeout(timeout):
                return await self.provider.generate(
                    prompt,
                    temperature=TRANSLATION_TEMPERATURE,
                    max_tokens=TRANSLATION_MAX_TOKENS,
                )
        except TimeoutError as e:
            raise ProviderError("Translation request timed out", timed_out=True) from e

    async def translate_text(
        self, text: str, target_locale: str, kind: str, source_locale: str | None = None
    ) -> str:
        """Translate one short text; retries once if it still reads as English for Dutch."""
        translated = _clean_single(
            await self._generate(get_short_translation_prompt(text, target_locale, kind))
        )
        if not translated:
            return text
        if target_locale == "nl" and looks_untranslated(text, translated, source_locale or "en"):
            retry = _clean_single(
                await self._generate(
                    get_short_translation_prompt(text, target_locale, f"{kind} (answer in Dutch only)")
                )
            )
            translated = retry or translated
        return translated

    async def translate_lines(
        self, lines: list[str], target_locale: str, kind: str, source_locale: str | None = None
    ) -> list[str]:
        """Translate a list of lines in one numbered call.

        Lines missing from the answer, or still English for a Dutch target,
        are translated one at a time. If the batch call fails entirely, every
        line is translated individually.
        """
        if not lines:
            return []
        try:
            response = await self._generate(
                get_numbered_list_translation_prompt(lines, target_locale, kind)
            )
            batch = extract_numbered_lines(response, len(lines))
        except ProviderError as e:
            logger.warning(f"Batch translation of {kind} failed, translating individually: {e}")
            batch = [None] * len(lines)

        translated = []
        for original, candidate in zip(lines, batch, strict=True):
            needs_retry = candidate is None or (
                target_locale == "nl" and source_locale == "en" and looks_like_english(candidate)
            )
            if needs_retry:
                try:
                    candidate = await self.translate_text(
                        original, target_locale, kind.rstrip("s"), source_locale
                    )
                except ProviderError as e:
                    logger.warning(f"Single-line translation failed, keeping original: {e}")
                    candidate = candidate or original
            translated.append(candidate or original)
        return translated

    async def translate_recipe(
        self, recipe: ExtractedRecipe, source_locale: str | None, target_locale: str
    ) -> ExtractedRecipe:
        """Return a translated copy of ``recipe``.

        ``translated_to`` is only set when the translated title no longer
        reads like the source text.
        """
        title = await self.translate_text(recipe.title, target_locale, "recipe title", source_locale)

        description = recipe.description
        if description and description.strip():
            description = await self.translate_text(
                description, target_locale, "recipe description", source_locale
            )

        ingredient_lines = [
            f"{i.name} ({i.note})" if i.note else i.name for i in recipe.ingredients
        ]
        translated_lines = await self.translate_lines(
            ingredient_lines, target_locale, "recipe ingredients", source_locale
        )
        metric = is_metric_locale(target_locale)
        ingredients = []
        for ingredient, line in zip(recipe.ingredients, translated_lines, strict=True):
            name, note = split_note(line) if ingredient.note else (line, None)
            quantity, unit = ingredient.quantity, ingredient.unit
            if metric:
                quantity, unit = convert_to_metric(quantity, unit)
            ingredients.append(
                ingredient.model_copy(
                    update={"name": name or ingredient.name, "note": note, "quantity": quantity, "unit": unit}
                )
            )

        instruction_texts = [i.text for i in recipe.instructions]
        if source_locale == "en" and metric:
            instruction_texts = [convert_temperatures(text) for text in instruction_texts]
        translated_steps = await self.translate_lines(
            instruction_texts, target_locale, "cooking instructions", source_locale
        )
        instructions = [
            step.model_copy(update={"text": text})
            for step, text in zip(recipe.instructions, translated_steps, strict=True)
        ]

        translated_to = None if looks_untranslated(recipe.title, title, source_locale) else target_locale
        if translated_to is None:
            logger.warning(f"Title still reads as untranslated after translation: {title!r}")

        return recipe.model_copy(
            update={
                "title": title,
                "description": description,
                "ingredients": ingredients,
                "instructions": instructions,
                "translated_to": translated_to,
            }
        )

    async def translate_job(self, job: RecipeImportJob, target_locale: str | None = None) -> bool:
        """Translate a job's recipe in place; the caller commits.

        The untranslated recipe is preserved once in ``original_recipe_json``
        and always used as the translation source. Returns False when no
        translation was needed.
        """
        target = target_locale or job.target_locale
        if not target or not job.extracted_recipe_json:
            return False

        current = ExtractedRecipe.model_validate(job.extracted_recipe_json)
        source = ExtractedRecipe.model_validate(job.original_recipe_json or job.extracted_recipe_json)
        source_locale = job.source_locale or source.language_detected
        if source_locale == target or current.translated_to == target:
            logger.info(f"Skipping translation of job {job.id}: already in {target}")
            return False

        logger.info(f"Translating job {job.id} from {source_locale} to {target}")
        translated = await self.translate_recipe(source, source_locale, target)

        job.preserve_original(source.to_json())
        job.extracted_recipe_json = translated.to_json()
        job.target_locale = target
        return True
