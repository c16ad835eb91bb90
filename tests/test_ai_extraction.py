"""Tests for the AI extraction orchestrator."""

import asyncio
import json

import pytest

from recipebox.config import Settings
from recipebox.errors import AiExtractionFailed, ProviderError
from recipebox.schemas.extracted_recipe import ExtractedRecipe
from recipebox.services.ai_extraction import (
    HTML_TEMPERATURE,
    IMAGE_TEMPERATURE,
    RETRY_HTML_TRUNCATED_LOW_COUNTS,
    RETRY_PARSE_TRUNCATION,
    RecipeExtractionOrchestrator,
    rejection_reason,
)
from recipebox.services.json_repair import placeholder_ingredient, placeholder_instruction
from recipebox.services.llm import ImageInput
from recipebox.services.llm_prompts import EXTRACTED_RECIPE_JSON_SCHEMA, STRICT_JSON_PREFIX

PAGE = """
<html><head><meta property="og:image" content="https://example.com/img/pannenkoek.jpg"></head>
<body><article><h1>Pannenkoeken</h1>{body}</article></body></html>
"""


class SlowProvider:
    async def generate(self, prompt, images=None, json_schema=None, temperature=0.3, max_tokens=4096):
        await asyncio.sleep(1)
        return "{}"


def make_settings(**overrides) -> Settings:
    return Settings(**overrides)


@pytest.mark.asyncio
async def test_extract_from_images(fake_provider, make_recipe_json):
    fake_provider.queue(make_recipe_json(raw_ocr_text="  Pannenkoeken\n250 g bloem  "))
    orchestrator = RecipeExtractionOrchestrator(fake_provider, make_settings())
    images = [ImageInput(data=b"jpeg-bytes", media_type="image/jpeg")]

    result = await orchestrator.extract_from_images(images)

    assert result.recipe.title == "Pannenkoeken"
    assert result.attempt == 1
    assert result.raw_ocr_text == "Pannenkoeken\n250 g bloem"
    assert result.has_placeholders is False
    call = fake_provider.calls[0]
    assert call["images"] == images
    assert call["temperature"] == IMAGE_TEMPERATURE
    assert call["json_schema"] == EXTRACTED_RECIPE_JSON_SCHEMA


@pytest.mark.asyncio
async def test_extract_from_text(fake_provider, make_recipe_json):
    fake_provider.queue(make_recipe_json())
    orchestrator = RecipeExtractionOrchestrator(fake_provider, make_settings())

    result = await orchestrator.extract_from_text("250 g bloem, 2 eieren, 500 ml melk. Bak ze.")

    assert len(result.recipe.ingredients) == 3
    assert "250 g bloem, 2 eieren" in fake_provider.calls[0]["prompt"]
    assert fake_provider.calls[0]["images"] is None


@pytest.mark.asyncio
async def test_extract_from_html_builds_draft(fake_provider, make_recipe_json):
    fake_provider.queue(make_recipe_json())
    orchestrator = RecipeExtractionOrchestrator(fake_provider, make_settings())
    url = "https://example.com/pannenkoeken"

    page = PAGE.format(body="<p>" + "Dunne pannenkoeken bakken. " * 30 + "</p>")

    result = await orchestrator.extract_from_html(page, url)

    assert result.html_meta.strategy == "article"
    assert result.draft.image_url == "https://example.com/img/pannenkoek.jpg"
    assert result.draft.ingredients == ["250 g bloem", "2 eieren", "500 ml melk"]
    assert result.draft.servings == "4"
    assert result.draft.source_url == url
    assert fake_provider.calls[0]["temperature"] == HTML_TEMPERATURE
    assert url in fake_provider.calls[0]["prompt"]


@pytest.mark.asyncio
async def test_truncated_response_is_retried_with_strict_prompt(fake_provider, make_recipe_json):
    complete = make_recipe_json()
    fake_provider.queue(complete[: len(complete) // 2], complete)
    orchestrator = RecipeExtractionOrchestrator(
        fake_provider, make_settings(recipe_import_debug=True)
    )

    result = await orchestrator.extract_from_html(PAGE.format(body="<p>x</p>"), "https://example.com/p")

    assert result.attempt == 2
    assert result.diagnostics["retry_reason"] == RETRY_PARSE_TRUNCATION
    assert not fake_provider.calls[0]["prompt"].startswith(STRICT_JSON_PREFIX)
    assert fake_provider.calls[1]["prompt"].startswith(STRICT_JSON_PREFIX)


@pytest.mark.asyncio
@pytest.mark.parametrize("source", ["text", "images"])
async def test_truncated_text_and_photo_responses_retry_strictly(
    fake_provider, make_recipe_json, source
):
    complete = make_recipe_json()
    fake_provider.queue(complete[: len(complete) // 2], complete)
    orchestrator = RecipeExtractionOrchestrator(fake_provider, make_settings())

    if source == "text":
        result = await orchestrator.extract_from_text("250 g bloem, 2 eieren, 500 ml melk. Bak ze.")
    else:
        result = await orchestrator.extract_from_images(
            [ImageInput(data=b"jpeg-bytes", media_type="image/jpeg")]
        )

    assert result.attempt == 2
    first, second = (call["prompt"] for call in fake_provider.calls)
    assert not first.startswith(STRICT_JSON_PREFIX)
    assert second.startswith(STRICT_JSON_PREFIX)
    assert second.endswith(first)


@pytest.mark.asyncio
async def test_truncated_page_with_low_counts_is_retried(fake_provider, make_recipe_json):
    sparse = make_recipe_json(
        ingredients=[{"original_line": "250 g bloem", "name": "bloem", "quantity": 250, "unit": "g"}]
    )
    fake_provider.queue(sparse, make_recipe_json())
    settings = make_settings(html_max_bytes=2000, html_keep_bytes=500, recipe_import_debug=True)
    orchestrator = RecipeExtractionOrchestrator(fake_provider, settings)
    page = PAGE.format(body="<p>" + "lang verhaal " * 1000 + "</p>")

    result = await orchestrator.extract_from_html(page, "https://example.com/p")

    assert result.attempt == 2
    assert len(result.recipe.ingredients) == 3
    assert result.html_meta.was_truncated is True
    assert result.diagnostics["retry_reason"] == RETRY_HTML_TRUNCATED_LOW_COUNTS
    assert result.diagnostics["html"]["truncate_mode"] == "head+tail"


@pytest.mark.asyncio
async def test_only_one_retry(fake_provider, make_recipe_json):
    complete = make_recipe_json()
    fake_provider.queue('{"title": "Pannen', complete[:30])
    orchestrator = RecipeExtractionOrchestrator(fake_provider, make_settings())

    with pytest.raises(AiExtractionFailed):
        await orchestrator.extract_from_text("250 g bloem")

    assert len(fake_provider.calls) == 2


@pytest.mark.asyncio
async def test_unparseable_response_fails_without_retry(fake_provider):
    fake_provider.queue("Ik kan dit recept niet lezen.")
    orchestrator = RecipeExtractionOrchestrator(
        fake_provider, make_settings(recipe_import_debug=True)
    )

    with pytest.raises(AiExtractionFailed) as exc_info:
        await orchestrator.extract_from_text("onleesbaar")

    assert len(fake_provider.calls) == 1
    diagnostics = exc_info.value.diagnostics
    assert diagnostics["attempt"] == 1
    assert diagnostics["ingredient_count"] == 0
    assert "title" not in json.dumps(diagnostics)


@pytest.mark.asyncio
async def test_placeholders_rejected_by_default(fake_provider, make_recipe_json):
    fake_provider.queue(make_recipe_json(instructions=[]))
    orchestrator = RecipeExtractionOrchestrator(fake_provider, make_settings())

    with pytest.raises(AiExtractionFailed, match="placeholders"):
        await orchestrator.extract_from_text("250 g bloem")


@pytest.mark.asyncio
async def test_placeholders_allowed_when_configured(fake_provider, make_recipe_json):
    fake_provider.queue(make_recipe_json(instructions=[]))
    orchestrator = RecipeExtractionOrchestrator(
        fake_provider, make_settings(allow_placeholders=True)
    )

    result = await orchestrator.extract_from_text("250 g bloem")

    assert result.has_placeholders is True
    assert result.flags.injected_placeholders_instructions is True
    assert len(result.recipe.instructions) == 1


@pytest.mark.asyncio
async def test_diagnostics_absent_without_debug(fake_provider, make_recipe_json):
    fake_provider.queue(make_recipe_json())
    orchestrator = RecipeExtractionOrchestrator(fake_provider, make_settings())

    result = await orchestrator.extract_from_text("250 g bloem")

    assert result.diagnostics is None


@pytest.mark.asyncio
async def test_provider_timeout():
    orchestrator = RecipeExtractionOrchestrator(
        SlowProvider(), make_settings(provider_timeout_seconds=0.01)
    )

    with pytest.raises(ProviderError) as exc_info:
        await orchestrator.extract_from_text("250 g bloem")

    assert exc_info.value.timed_out is True


@pytest.mark.asyncio
async def test_provider_error_propagates(fake_provider):
    fake_provider.queue(ProviderError("503 from upstream"))
    orchestrator = RecipeExtractionOrchestrator(fake_provider, make_settings())

    with pytest.raises(ProviderError, match="503"):
        await orchestrator.extract_from_text("250 g bloem")


def _recipe(make_recipe_json, **overrides) -> ExtractedRecipe:
    return ExtractedRecipe.model_validate(json.loads(make_recipe_json(**overrides)))


def test_rejection_reason_accepts_good_recipe(make_recipe_json):
    assert rejection_reason(_recipe(make_recipe_json), min_confidence=30) is None


def test_rejection_reason_low_confidence(make_recipe_json):
    recipe = _recipe(make_recipe_json, confidence={"overall": 12})

    assert "confidence too low" in rejection_reason(recipe, min_confidence=30)


def test_rejection_reason_nothing_found_warning(make_recipe_json):
    recipe = _recipe(make_recipe_json, warnings=["Geen receptinformatie gevonden op de foto"])

    assert rejection_reason(recipe, min_confidence=30).startswith("No recipe found")


def test_rejection_reason_only_placeholders(make_recipe_json):
    recipe = _recipe(
        make_recipe_json,
        ingredients=[placeholder_ingredient()],
        instructions=[placeholder_instruction()],
    )

    assert rejection_reason(recipe, min_confidence=30) == (
        "No ingredients or instructions could be recovered"
    )


def test_rejection_reason_missing_confidence_is_allowed(make_recipe_json):
    recipe = _recipe(make_recipe_json, confidence=None)

    assert rejection_reason(recipe, min_confidence=30) is None
