"""Deterministic recipe extraction from page headings - no LLM calls."""

import re
from dataclasses import dataclass, field

from bs4 import BeautifulSoup, Tag

from recipebox.services.html_content import extract_image_url

HEURISTIC_CONFIDENCE = 70

HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]
MAX_HEADING_LENGTH = 60
MAX_LINES = 100

INGREDIENT_HEADING = re.compile(
    r"^\s*(ingredi[eë]nt(en|s)?|benodigdheden|boodschappen(lijst)?|what you('ll)? need|you will need)\b",
    re.IGNORECASE,
)
INSTRUCTION_HEADING = re.compile(
    r"^\s*(instructions?|directions?|method|preparation|steps|how to make( it)?|"
    r"bereiding(swijze)?|werkwijze|zo maak je (het|het recept))\b",
    re.IGNORECASE,
)


@dataclass
class HeuristicRecipe:
    """Plain line lists recovered from heading-delimited page sections."""

    title: str
    ingredients: list[str] = field(default_factory=list)
    instructions: list[str] = field(default_factory=list)
    image_url: str | None = None
    confidence: int = HEURISTIC_CONFIDENCE


class HeuristicRecipeExtractor:
    """Extract recipes from pages without structured data."""

    @staticmethod
    def find_section_heading(soup: BeautifulSoup, pattern: re.Pattern) -> Tag | None:
        """Find the first heading whose text matches ``pattern``.

        Headings are h1-h6, or a short bold/paragraph line standing on its
        own (many blogs style "Ingrediënten" as <p><strong>...</strong></p>).
        """
        for heading in soup.find_all(HEADING_TAGS):
            text = heading.get_text(" ", strip=True)
            if len(text) <= MAX_HEADING_LENGTH and pattern.match(text):
                return heading
        for candidate in soup.find_all(["p", "strong", "b"]):
            text = candidate.get_text(" ", strip=True).rstrip(":")
            if len(text.split()) <= 4 and pattern.match(text):
                return candidate
        return None

    @staticmethod
    def collect_lines(heading: Tag, stop_at: tuple[Tag, ...] = ()) -> list[str]:
        """Collect list items (or paragraphs) after a heading.

        Collection stops at the next h1-h6 or at any element in ``stop_at``.
        """
        items: list[str] = []
        paragraphs: list[str] = []
        for element in heading.find_all_next():
            if element.name in HEADING_TAGS or any(element is stop for stop in stop_at):
                break
            if element.name == "li" and element.find_parent("li") is None:
                text = element.get_text(" ", strip=True)
                if text:
                    items.append(text)
            elif element.name == "p" and element.find_parent("li") is None:
                text = element.get_text(" ", strip=True)
                if text and element is not heading and heading not in element.parents:
                    paragraphs.append(text)
            if len(items) >= MAX_LINES:
                break
        lines = items or paragraphs
        return [" ".join(line.split()) for line in lines[:MAX_LINES]]

    @staticmethod
    def find_title(soup: BeautifulSoup) -> str:
        """Page title from the first h1, og:title or <title>."""
        h1 = soup.find("h1")
        if h1 and h1.get_text(strip=True):
            return h1.get_text(" ", strip=True)
        og_title = soup.find("meta", attrs={"property": "og:title"})
        if og_title and og_title.get("content"):
            return og_title["content"].strip()
        if soup.title and soup.title.string:
            return soup.title.string.strip()
        return ""

    @classmethod
    def extract(cls, html: str, source_url: str) -> HeuristicRecipe | None:
        """Extract title, ingredient lines and instruction lines from a page.

        Returns None unless both an ingredient and an instruction section
        with at least one line are found.

        Examples of recognized headings:
        - "Ingredients", "Ingrediënten", "What you'll need"
        - "Instructions", "Method", "Bereiding", "Werkwijze"
        """
        soup = BeautifulSoup(html, "lxml")
        for tag in soup.find_all(["script", "style", "noscript", "nav", "footer"]):
            tag.decompose()

        ingredient_heading = cls.find_section_heading(soup, INGREDIENT_HEADING)
        instruction_heading = cls.find_section_heading(soup, INSTRUCTION_HEADING)
        if ingredient_heading is None or instruction_heading is None:
            return None

        headings = (ingredient_heading, instruction_heading)
        ingredients = cls.collect_lines(ingredient_heading, stop_at=headings)
        instructions = cls.collect_lines(instruction_heading, stop_at=headings)
        if not ingredients or not instructions:
            return None

        title = cls.find_title(soup)
        if not title:
            return None

        return HeuristicRecipe(
            title=title,
            ingredients=ingredients,
            instructions=instructions,
            image_url=extract_image_url(html, source_url),
        )
