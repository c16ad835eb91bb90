"""Tests for schema.org Recipe extraction from JSON-LD blocks."""

import json

import pytest

from recipebox.services.jsonld_extractor import (
    extract_recipe_draft,
    find_recipes,
    has_sufficient_fields,
    is_tracking_pixel,
    normalize_image_url,
    parse_duration_to_minutes,
    parse_jsonld_blocks,
)

SOURCE_URL = "https://example.com/recepten/stamppot"


def page(*blocks) -> str:
    scripts = "".join(
        f'<script type="application/ld+json">{b if isinstance(b, str) else json.dumps(b)}</script>'
        for b in blocks
    )
    return f"<html><head>{scripts}</head><body><h1>Stamppot</h1></body></html>"


def stamppot(**overrides) -> dict:
    recipe = {
        "@context": "https://schema.org",
        "@type": "Recipe",
        "name": "Boerenkool stamppot",
        "description": "Winterse klassieker",
        "recipeYield": ["4", "4 personen"],
        "inLanguage": "nl-NL",
        "prepTime": "PT15M",
        "cookTime": "PT30M",
        "totalTime": "PT45M",
        "image": ["//cdn.example.com/stamppot.jpg"],
        "recipeIngredient": ["1 kg aardappelen", "500 g boerenkool", "1 rookworst"],
        "recipeInstructions": [
            {"@type": "HowToStep", "text": "Kook de aardappelen."},
            {"@type": "HowToStep", "text": "Stamp alles door elkaar."},
        ],
    }
    recipe.update(overrides)
    return recipe


@pytest.mark.parametrize(
    "value,expected",
    [
        ("PT1H30M", 90),
        ("PT45M", 45),
        ("P1DT2H", 1560),
        ("PT90S", 2),
        ("PT0M", None),
        ("pt20m", 20),
        ("20 minutes", None),
        (None, None),
        (30, None),
    ],
)
def test_parse_duration_to_minutes(value, expected):
    assert parse_duration_to_minutes(value) == expected


def test_extracts_full_draft():
    draft = extract_recipe_draft(page(stamppot()), SOURCE_URL)

    assert draft is not None
    assert draft.title == "Boerenkool stamppot"
    assert draft.description == "Winterse klassieker"
    assert draft.servings == "4"
    assert draft.source_language == "nl"
    assert draft.ingredients == ["1 kg aardappelen", "500 g boerenkool", "1 rookworst"]
    assert draft.steps == ["Kook de aardappelen.", "Stamp alles door elkaar."]
    assert draft.prep_minutes == 15
    assert draft.cook_minutes == 30
    assert draft.total_minutes == 45
    assert draft.image_url == "https://cdn.example.com/stamppot.jpg"
    assert draft.source_url == SOURCE_URL


def test_recipe_inside_graph_is_found():
    graph = {
        "@context": "https://schema.org",
        "@graph": [
            {"@type": "WebPage", "name": "Stamppot pagina"},
            {"@type": ["Recipe", "NewsArticle"], **{k: v for k, v in stamppot().items() if k != "@type"}},
        ],
    }

    draft = extract_recipe_draft(page(graph), SOURCE_URL)

    assert draft is not None
    assert draft.title == "Boerenkool stamppot"


def test_first_sufficient_recipe_wins():
    empty = stamppot(name="Leeg", recipeIngredient=[], recipeInstructions=[])
    second = stamppot(name="Hutspot")

    draft = extract_recipe_draft(page(empty, second), SOURCE_URL)

    assert draft.title == "Hutspot"


def test_broken_block_is_skipped():
    draft = extract_recipe_draft(page("{not json", stamppot()), SOURCE_URL)

    assert draft is not None
    assert draft.title == "Boerenkool stamppot"


def test_html_commented_block_is_parsed():
    blocks = parse_jsonld_blocks(page(f"<!-- {json.dumps(stamppot())} -->"))

    assert len(blocks) == 1
    assert blocks[0]["name"] == "Boerenkool stamppot"


def test_page_without_recipe_returns_none():
    article = {"@type": "Article", "headline": "Tien tips voor de winter"}

    assert extract_recipe_draft(page(article), SOURCE_URL) is None
    assert extract_recipe_draft("<html><body>geen data</body></html>", SOURCE_URL) is None


def test_how_to_sections_are_flattened():
    recipe = stamppot(
        recipeInstructions=[
            {
                "@type": "HowToSection",
                "name": "Aardappelen",
                "itemListElement": [
                    {"@type": "HowToStep", "text": "Schil de aardappelen."},
                    {"@type": "HowToStep", "text": "Kook ze gaar."},
                ],
            },
            {
                "@type": "HowToSection",
                "name": "Afwerken",
                "itemListElement": [{"@type": "HowToStep", "text": "Stamp en serveer."}],
            },
        ]
    )

    draft = extract_recipe_draft(page(recipe), SOURCE_URL)

    assert draft.steps == ["Schil de aardappelen.", "Kook ze gaar.", "Stamp en serveer."]


def test_instruction_string_with_markup():
    recipe = stamppot(recipeInstructions="&lt;ol&gt;&lt;li&gt;Kook.&lt;/li&gt;&lt;li&gt;Stamp.&lt;/li&gt;&lt;/ol&gt;")

    draft = extract_recipe_draft(page(recipe), SOURCE_URL)

    assert draft.steps == ["Kook.", "Stamp."]


def test_plain_instruction_string_is_split_on_lines():
    recipe = stamppot(recipeInstructions="Kook de aardappelen.\nStamp alles.")

    draft = extract_recipe_draft(page(recipe), SOURCE_URL)

    assert draft.steps == ["Kook de aardappelen.", "Stamp alles."]


def test_text_fields_are_unescaped():
    recipe = stamppot(name="Pasta &amp; pesto", recipeIngredient=["200 g &lt;b&gt;pasta&lt;/b&gt;"])

    draft = extract_recipe_draft(page(recipe), SOURCE_URL)

    assert draft.title == "Pasta & pesto"
    assert draft.ingredients == ["200 g pasta"]


def test_numeric_yield():
    draft = extract_recipe_draft(page(stamppot(recipeYield=6)), SOURCE_URL)

    assert draft.servings == "6"


def test_tracking_pixel_image_is_ignored():
    recipe = stamppot(image=["https://www.facebook.com/tr?id=1", {"url": "/img/stamppot.webp"}])

    draft = extract_recipe_draft(page(recipe), SOURCE_URL)

    assert draft.image_url == "https://example.com/img/stamppot.webp"


def test_find_recipes_walks_nested_structures():
    data = [{"@type": "WebSite"}, {"mainEntity": {"@type": "Recipe", "name": "Erwtensoep"}}]

    assert [r["name"] for r in find_recipes(data)] == ["Erwtensoep"]


def test_has_sufficient_fields():
    assert has_sufficient_fields({"name": "Soep", "recipeIngredient": ["water"]})
    assert has_sufficient_fields({"headline": "Soep", "recipeInstructions": ["Kook."]})
    assert not has_sufficient_fields({"name": "Soep"})
    assert not has_sufficient_fields({"recipeIngredient": ["water"]})


def test_normalize_image_url():
    assert normalize_image_url("//cdn.example.com/a.jpg", SOURCE_URL) == "https://cdn.example.com/a.jpg"
    assert normalize_image_url("/a.jpg", SOURCE_URL) == "https://example.com/a.jpg"
    assert normalize_image_url("a.jpg", SOURCE_URL) == "https://example.com/recepten/a.jpg"
    assert normalize_image_url("https://other.com/a.jpg", SOURCE_URL) == "https://other.com/a.jpg"
    assert normalize_image_url("data:image/png;base64,AAAA", SOURCE_URL) is None


def test_is_tracking_pixel():
    assert is_tracking_pixel("https://www.facebook.com/tr?id=123&ev=PageView")
    assert is_tracking_pixel("https://stats.example.com/collect?v=1")
    assert not is_tracking_pixel("https://example.com/photo.jpg?w=800")
    assert not is_tracking_pixel("https://res.cloudinary.com/demo/image/upload?id=1")
    assert not is_tracking_pixel("https://example.com/photo.jpg")
