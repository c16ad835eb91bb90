"""LLM prompt templates for recipe extraction and translation."""

LANGUAGE_NAMES = {
    "nl": "Dutch",
    "en": "English",
    "de": "German",
    "fr": "French",
    "es": "Spanish",
    "it": "Italian",
}

EXTRACTED_RECIPE_JSON_SCHEMA: dict = {
    "type": "object",
    "required": ["title", "ingredients", "instructions"],
    "properties": {
        "title": {"type": "string"},
        "description": {"type": ["string", "null"]},
        "language_detected": {"type": ["string", "null"]},
        "servings": {"type": ["integer", "null"], "minimum": 1},
        "times": {
            "type": "object",
            "properties": {
                "prep_minutes": {"type": ["integer", "null"], "minimum": 0},
                "cook_minutes": {"type": ["integer", "null"], "minimum": 0},
                "total_minutes": {"type": ["integer", "null"], "minimum": 0},
            },
        },
        "ingredients": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "required": ["original_line", "name"],
                "properties": {
                    "original_line": {"type": "string"},
                    "name": {"type": "string"},
                    "quantity": {"type": ["number", "null"]},
                    "unit": {"type": ["string", "null"]},
                    "note": {"type": ["string", "null"]},
                },
            },
        },
        "instructions": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "required": ["step", "text"],
                "properties": {
                    "step": {"type": "integer", "minimum": 1},
                    "text": {"type": "string"},
                },
            },
        },
        "confidence": {
            "type": "object",
            "properties": {
                "overall": {"type": ["integer", "null"], "minimum": 0, "maximum": 100},
                "fields": {"type": "object"},
            },
        },
        "warnings": {"type": "array", "items": {"type": "string"}},
    },
}

RECIPE_EXTRACTION_RULES = """Rules:
- Every ingredient is ONE JSON object: {"original_line", "name", "quantity", "unit", "note"}. Never return bare strings.
- Every instruction is ONE JSON object: {"step", "text"}, numbered from 1 in order. Never return bare strings.
- Do NOT translate. Keep the recipe in its source language and report it as "language_detected" (ISO 639-1, e.g. "nl", "en").
- Convert US units to metric in "quantity"/"unit" (keep the source text in "original_line"):
  cups -> ml (1 cup = 240 ml), tbsp -> el, tsp -> tl, oz -> g (1 oz = 28 g), lb -> g (1 lb = 450 g).
- Put preparation remarks such as "finely chopped" in "note".
- "confidence.overall" is 0-100: how sure you are that this is a complete, correct recipe.
- If no recipe is visible, return an empty "ingredients" and "instructions" list and explain in "warnings"."""

STRICT_JSON_PREFIX = """Return MINIFIED JSON only (no markdown, no whitespace between tokens). If the output gets long, omit non-essential fields first (description, times, confidence, warnings) but ALWAYS include ALL ingredients and ALL instruction steps.

"""


def language_name(locale: str | None) -> str:
    """Human-readable language name for a locale code."""
    if not locale:
        return "the original language"
    return LANGUAGE_NAMES.get(locale.split("-")[0].lower(), locale)


def get_image_extraction_prompt(image_count: int, strict: bool = False) -> str:
    """Generate prompt for extracting a recipe from photos."""
    prefix = STRICT_JSON_PREFIX if strict else ""
    if image_count == 1:
        pages = "this photo"
    else:
        pages = f"these {image_count} photos (pages of one recipe, in order)"
    return f"""{prefix}Read the recipe in {pages} and return it as structured JSON.

Also return "raw_ocr_text": all recipe text you can read, flattened to plain lines.

{RECIPE_EXTRACTION_RULES}"""


def get_html_extraction_prompt(cleaned_html: str, url: str, strict: bool = False) -> str:
    """Generate prompt for extracting a recipe from cleaned page HTML.

    Args:
        cleaned_html: Page content with scripts and layout removed
        url: Source URL, for context only
        strict: Use the minified-output variant for the retry attempt
    """
    prefix = STRICT_JSON_PREFIX if strict else ""
    return f"""{prefix}Extract the recipe from this web page ({url}).

{RECIPE_EXTRACTION_RULES}

Page content:
{cleaned_html}"""


def get_text_extraction_prompt(text: str, strict: bool = False) -> str:
    """Generate prompt for structuring pasted recipe text."""
    prefix = STRICT_JSON_PREFIX if strict else ""
    return f"""{prefix}Structure this pasted recipe text as JSON.

{RECIPE_EXTRACTION_RULES}

Recipe text:
\"\"\"
{text}
\"\"\""""


def get_short_translation_prompt(text: str, target_locale: str, kind: str = "recipe title") -> str:
    """Generate prompt for translating a single title, description or line."""
    language = language_name(target_locale)
    return f"""Translate this {kind} to {language}. Return ONLY the {language} text, nothing else.

"{text}\""""


def get_numbered_list_translation_prompt(
    lines: list[str], target_locale: str, kind: str = "recipe ingredients"
) -> str:
    """Generate prompt for translating a batch of lines by number.

    The response is mapped back by number, so the prompt insists on exactly
    one numbered line per input line.
    """
    language = language_name(target_locale)
    numbered = "\n".join(f"{index}. {line}" for index, line in enumerate(lines, start=1))
    return f"""Translate the following {kind} to {language}. Your answer must be ONLY in {language}.
Reply with ONLY a numbered list of exactly {len(lines)} lines: line 1 starts with "1. ", line 2 with "2. ", etc.
Keep numbers and units. No introduction, no explanation, no other text.

{numbered}"""
