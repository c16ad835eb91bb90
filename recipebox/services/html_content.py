"""Page cleanup, recipe container selection and image discovery for HTML input."""

import logging
import re
from dataclasses import asdict, dataclass
from typing import Any

from bs4 import BeautifulSoup, Tag

from recipebox.services.jsonld_extractor import is_tracking_pixel, normalize_image_url

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "\n... [middle content removed for size] ...\n"

WPRM_MAX_CHARS = 150_000
ITEMTYPE_MAX_CHARS = 120_000
CONTAINER_TOO_LARGE_CHARS = 15_000
MIN_SECONDARY_MATCH_CHARS = 500

_NOISE_TAGS = ["script", "style", "noscript", "template", "svg", "iframe"]
_LAYOUT_TAGS = ["nav", "header", "footer", "aside", "form"]
_KEPT_ATTRIBUTES = {"class", "id", "itemprop", "itemtype"}
_IMAGE_SRC_ATTRIBUTES = ("src", "data-src", "data-lazy-src", "data-original")
_IGNORED_IMAGE_HINTS = ("icon", "logo", "avatar")


@dataclass
class HtmlExtractionMeta:
    """How the HTML sent to the model was selected and sized."""

    strategy: str
    matched_selector: str | None
    bytes_before: int
    bytes_after: int
    was_truncated: bool = False
    truncate_mode: str = "none"  # none, head+tail

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _primary_candidates(soup: BeautifulSoup) -> list[tuple[str, str, Tag | None]]:
    return [
        (
            "wprm_id",
            "div[id^=wprm-recipe-container-]",
            soup.find("div", id=re.compile(r"^wprm-recipe-container-")),
        ),
        ("wprm_class", ".wprm-recipe-container", soup.select_one(".wprm-recipe-container")),
        (
            "itemtype_recipe",
            "[itemtype*=schema.org/Recipe]",
            soup.find(attrs={"itemtype": re.compile(r"schema\.org/Recipe", re.IGNORECASE)}),
        ),
    ]


def _secondary_candidates(soup: BeautifulSoup) -> list[tuple[str, str, Tag | None]]:
    return [
        ("article", "article", soup.find("article")),
        ("main", "main", soup.find("main")),
        ("recipe_class", "[class*=recipe]", soup.select_one('[class*="recipe"]')),
        ("recipe_id", "[id*=recipe]", soup.select_one('[id*="recipe"]')),
        ("content_class", "[class*=content]", soup.select_one('[class*="content"]')),
    ]


def _clean(element: Tag) -> str:
    for tag in element.find_all(_LAYOUT_TAGS):
        tag.decompose()
    for tag in element.find_all(True):
        tag.attrs = {k: v for k, v in tag.attrs.items() if k in _KEPT_ATTRIBUTES}
    return re.sub(r"\s+", " ", str(element)).strip()


def select_recipe_html(html: str) -> tuple[str, str, str | None]:
    """Pick the part of the page most likely to hold the recipe.

    Returns (cleaned_html, strategy, matched_selector).
    """
    soup = BeautifulSoup(html, "lxml")
    for tag in soup.find_all(_NOISE_TAGS):
        tag.decompose()

    primary = None
    for strategy, selector, element in _primary_candidates(soup):
        if element is not None:
            limit = ITEMTYPE_MAX_CHARS if strategy == "itemtype_recipe" else WPRM_MAX_CHARS
            primary = (_clean(element)[:limit], strategy, selector)
            break

    if primary is not None:
        content, _, _ = primary
        if len(content) <= CONTAINER_TOO_LARGE_CHARS and "ingredient" in content.lower():
            return primary

    for strategy, selector, element in _secondary_candidates(soup):
        if element is None:
            continue
        content = _clean(element)
        if len(content) > MIN_SECONDARY_MATCH_CHARS:
            return content, strategy, selector

    if primary is not None:
        return primary

    body = soup.body or soup
    return _clean(body), "fallback", None


def cap_size(text: str, max_bytes: int, keep_bytes: int) -> tuple[str, bool]:
    """Cap text at max_bytes of UTF-8 by keeping its head and tail.

    Instructions usually follow long ingredient lists, so the end of the
    content is kept instead of cutting it off. A character split by a cut
    is dropped.
    """
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text, False
    keep = min(keep_bytes, max_bytes // 2)
    head = encoded[:keep].decode("utf-8", errors="ignore")
    tail = encoded[-keep:].decode("utf-8", errors="ignore")
    return head + TRUNCATION_MARKER + tail, True


def prepare_html_for_ai(
    html: str, max_bytes: int = 120_000, keep_bytes: int = 60_000
) -> tuple[str, HtmlExtractionMeta]:
    """Clean, narrow and size-cap a page before sending it to the model."""
    content, strategy, selector = select_recipe_html(html)
    capped, truncated = cap_size(content, max_bytes, keep_bytes)
    meta = HtmlExtractionMeta(
        strategy=strategy,
        matched_selector=selector,
        bytes_before=len(html.encode("utf-8")),
        bytes_after=len(capped.encode("utf-8")),
        was_truncated=truncated,
        truncate_mode="head+tail" if truncated else "none",
    )
    logger.debug(
        f"Prepared HTML via {strategy}: {meta.bytes_before} -> {meta.bytes_after} bytes"
        f"{' (truncated)' if truncated else ''}"
    )
    return capped, meta


def _img_src(img: Tag) -> str | None:
    for attribute in _IMAGE_SRC_ATTRIBUTES:
        value = img.get(attribute)
        if isinstance(value, str) and value.strip() and not value.startswith("data:"):
            return value.strip()
    return None


def _usable(url: str | None, base_url: str) -> str | None:
    if not url:
        return None
    absolute = normalize_image_url(url, base_url)
    if absolute and not is_tracking_pixel(absolute):
        return absolute
    return None


def extract_image_url(html: str, base_url: str) -> str | None:
    """Find a representative photo: og:image, a recipe image, then any content image."""
    soup = BeautifulSoup(html, "lxml")

    og_image = soup.find("meta", attrs={"property": "og:image"}) or soup.find(
        "meta", attrs={"name": "og:image"}
    )
    if og_image is not None:
        url = _usable(og_image.get("content"), base_url)
        if url:
            return url

    for img in soup.find_all("img"):
        classes = " ".join(img.get("class") or []).lower()
        if "recipe" in classes:
            url = _usable(_img_src(img), base_url)
            if url:
                return url

    for img in soup.find_all("img"):
        src = _img_src(img)
        if not src or any(hint in src.lower() for hint in _IGNORED_IMAGE_HINTS):
            continue
        url = _usable(src, base_url)
        if url:
            return url

    return None


def extract_ingredient_sections(html: str) -> list[tuple[str | None, int]]:
    """Find ingredient group headings and how many items each group lists.

    WP Recipe Maker groups are used when present, otherwise any h3/h4 that is
    directly followed by a list.
    """
    soup = BeautifulSoup(html, "lxml")

    sections: list[tuple[str | None, int]] = []
    for group in soup.select(".wprm-recipe-ingredient-group"):
        name_el = group.select_one(".wprm-recipe-ingredient-group-name")
        ul = group.select_one("ul.wprm-recipe-ingredients") or group.find("ul")
        if ul is None:
            continue
        count = len(ul.find_all("li"))
        if count:
            name = name_el.get_text(" ", strip=True) if name_el else None
            sections.append((name or None, count))
    if any(name for name, _ in sections):
        return sections

    sections = []
    for heading in soup.find_all(["h3", "h4"]):
        ul = heading.find_next("ul")
        if ul is None or ul.find_previous(["h3", "h4"]) is not heading:
            continue
        name = heading.get_text(" ", strip=True)
        count = len(ul.find_all("li"))
        if name and count:
            sections.append((name, count))
    return sections


def assign_sections(ingredients: list[dict], sections: list[tuple[str | None, int]]) -> list[dict]:
    """Label ingredients with their section, in order, when the counts add up."""
    if not sections or sum(count for _, count in sections) != len(ingredients):
        return ingredients

    labelled = []
    position = 0
    for name, count in sections:
        for ingredient in ingredients[position : position + count]:
            labelled.append({**ingredient, "section": name})
        position += count
    return labelled
