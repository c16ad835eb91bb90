"""Extract schema.org Recipe data embedded as JSON-LD in a page."""

import html as html_lib
import json
import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

_HTML_COMMENT_MARKERS = re.compile(r"^\s*<!--|-->\s*$")
_ISO_DURATION = re.compile(
    r"^P(?:(?P<days>\d+)D)?(?:T(?:(?P<hours>\d+(?:\.\d+)?)H)?(?:(?P<minutes>\d+(?:\.\d+)?)M)?"
    r"(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$",
    re.IGNORECASE,
)

TRACKING_PATTERNS = (
    "facebook.com/tr",
    "google-analytics.com",
    "googletagmanager.com",
    "doubleclick.net",
    "/analytics",
    "/tracking",
    "/pixel",
    "/beacon",
    "noscript",
    "amp;",
)
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif", ".avif")
IMAGE_CDN_HOSTS = ("imgur.com", "cloudinary.com", "unsplash.com", "pexels.com")


@dataclass
class RecipeDraft:
    """Minimally shaped recipe produced by a non-AI extractor."""

    title: str
    ingredients: list[str] = field(default_factory=list)
    steps: list[str] = field(default_factory=list)
    source_url: str | None = None
    description: str | None = None
    servings: str | None = None
    source_language: str | None = None
    image_url: str | None = None
    prep_minutes: int | None = None
    cook_minutes: int | None = None
    total_minutes: int | None = None


def parse_duration_to_minutes(value: Any) -> int | None:
    """Convert an ISO-8601 duration ("PT1H30M") into whole minutes.

    Zero or unparseable durations return None.
    """
    if not isinstance(value, str):
        return None
    match = _ISO_DURATION.match(value.strip())
    if not match:
        return None
    parts = {key: float(amount) for key, amount in match.groupdict().items() if amount}
    minutes = (
        parts.get("days", 0) * 24 * 60
        + parts.get("hours", 0) * 60
        + parts.get("minutes", 0)
        + parts.get("seconds", 0) / 60
    )
    rounded = round(minutes)
    return rounded if rounded > 0 else None


def is_recipe_type(obj: Any) -> bool:
    """Check if a JSON-LD node's @type is (or includes) Recipe."""
    if not isinstance(obj, dict):
        return False
    node_type = obj.get("@type")
    if isinstance(node_type, str):
        return node_type.lower() == "recipe"
    if isinstance(node_type, list):
        return any(isinstance(t, str) and t.lower() == "recipe" for t in node_type)
    return False


def find_recipes(data: Any) -> Iterator[dict]:
    """Yield every Recipe node in document order, including nested @graph nodes."""
    if isinstance(data, list):
        for item in data:
            yield from find_recipes(item)
    elif isinstance(data, dict):
        if is_recipe_type(data):
            yield data
        for value in data.values():
            if isinstance(value, dict | list):
                yield from find_recipes(value)


def has_sufficient_fields(recipe: dict) -> bool:
    """A usable candidate has a title and ingredients or instructions."""
    has_title = bool(_text(recipe.get("name")) or _text(recipe.get("headline")))
    has_body = bool(recipe.get("recipeIngredient")) or bool(recipe.get("recipeInstructions"))
    return has_title and has_body


def parse_jsonld_blocks(html: str) -> list[Any]:
    """Parse all application/ld+json script blocks, skipping broken ones."""
    soup = BeautifulSoup(html, "lxml")
    blocks = []
    for script in soup.find_all("script", type="application/ld+json"):
        raw = script.string or script.get_text()
        if not raw or not raw.strip():
            continue
        cleaned = _HTML_COMMENT_MARKERS.sub("", raw).strip()
        try:
            blocks.append(json.loads(cleaned))
        except json.JSONDecodeError:
            try:
                blocks.append(json.loads(html_lib.unescape(cleaned)))
            except json.JSONDecodeError as e:
                logger.debug(f"Skipping unparseable JSON-LD block: {e}")
    return blocks


def extract_recipe_draft(html: str, source_url: str) -> RecipeDraft | None:
    """Return the first sufficient Recipe in the page, or None."""
    for block in parse_jsonld_blocks(html):
        for candidate in find_recipes(block):
            if not has_sufficient_fields(candidate):
                continue
            draft = _to_draft(candidate, source_url)
            if draft.ingredients or draft.steps:
                return draft
    return None


def _to_draft(recipe: dict, source_url: str) -> RecipeDraft:
    title = _text(recipe.get("name")) or _text(recipe.get("headline")) or ""
    return RecipeDraft(
        title=title,
        description=_text(recipe.get("description")) or None,
        servings=_servings(recipe.get("recipeYield")),
        ingredients=_ingredient_lines(recipe.get("recipeIngredient")),
        steps=_instruction_texts(recipe.get("recipeInstructions")),
        source_url=source_url,
        source_language=_language(recipe.get("inLanguage")),
        image_url=_image_url(recipe.get("image"), source_url),
        prep_minutes=parse_duration_to_minutes(recipe.get("prepTime")),
        cook_minutes=parse_duration_to_minutes(recipe.get("cookTime")),
        total_minutes=parse_duration_to_minutes(recipe.get("totalTime")),
    )


def _text(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    text = html_lib.unescape(value)
    if "<" in text:
        text = BeautifulSoup(text, "lxml").get_text(" ", strip=True)
    return " ".join(text.split())


def _servings(value: Any) -> str | None:
    if isinstance(value, list):
        value = next((v for v in value if v not in (None, "")), None)
    if isinstance(value, int | float) and not isinstance(value, bool):
        return str(int(value))
    text = _text(value)
    return text or None


def _language(value: Any) -> str | None:
    if isinstance(value, dict):
        value = value.get("alternateName") or value.get("name")
    text = _text(value)
    return text.split("-")[0].lower() if text else None


def _ingredient_lines(value: Any) -> list[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [line for line in (_text(item) for item in value) if line]


def _instruction_texts(value: Any) -> list[str]:
    """Flatten recipeInstructions (string, HowToStep, HowToSection) into step texts."""
    if isinstance(value, str):
        text = html_lib.unescape(value)
        if "<" in text:
            soup = BeautifulSoup(text, "lxml")
            items = [li.get_text(" ", strip=True) for li in soup.find_all("li")]
            if items:
                return [item for item in items if item]
            text = soup.get_text("\n", strip=True)
        return [" ".join(line.split()) for line in text.splitlines() if line.strip()]
    if isinstance(value, list):
        steps = []
        for item in value:
            steps.extend(_instruction_texts(item))
        return steps
    if isinstance(value, dict):
        if "itemListElement" in value:
            return _instruction_texts(value["itemListElement"])
        text = _text(value.get("text")) or _text(value.get("name"))
        return [text] if text else []
    return []


def _image_url(value: Any, source_url: str) -> str | None:
    candidates: list[Any] = value if isinstance(value, list) else [value]
    for candidate in candidates:
        if isinstance(candidate, dict):
            candidate = candidate.get("url") or candidate.get("contentUrl")
        if not isinstance(candidate, str) or not candidate.strip():
            continue
        url = normalize_image_url(candidate.strip(), source_url)
        if url and not is_tracking_pixel(url):
            return url
    return None


def normalize_image_url(url: str, source_url: str) -> str | None:
    """Make an image URL absolute."""
    if url.startswith("data:"):
        return None
    if url.startswith("//"):
        return f"https:{url}"
    if url.startswith(("http://", "https://")):
        return url
    parsed = urlparse(source_url)
    if url.startswith("/"):
        return f"{parsed.scheme}://{parsed.netloc}{url}"
    return urljoin(source_url, url)


def is_tracking_pixel(url: str) -> bool:
    """Check if an image URL looks like an analytics beacon rather than a photo."""
    lowered = url.lower()
    if any(pattern in lowered for pattern in TRACKING_PATTERNS):
        return True
    parsed = urlparse(lowered)
    if parsed.query and not parsed.path.endswith(IMAGE_EXTENSIONS):
        return not any(host in parsed.netloc for host in IMAGE_CDN_HOSTS)
    return False
