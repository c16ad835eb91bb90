"""Tests for heading-based recipe extraction."""

from bs4 import BeautifulSoup

from recipebox.services.heuristic_extractor import (
    HEURISTIC_CONFIDENCE,
    INGREDIENT_HEADING,
    INSTRUCTION_HEADING,
    HeuristicRecipeExtractor,
)

SOURCE_URL = "https://blog.example.com/erwtensoep"

BLOG_PAGE = """
<html>
<head>
  <title>Erwtensoep | Kookblog</title>
  <meta property="og:image" content="https://blog.example.com/img/soep.jpg">
</head>
<body>
  <nav><ul><li>Home</li><li>Recepten</li></ul></nav>
  <h1>Snert zoals oma hem maakte</h1>
  <p>Een echte winterklassieker.</p>
  <h2>Ingrediënten</h2>
  <ul>
    <li>500 g spliterwten</li>
    <li>1 rookworst</li>
    <li>2 winterpenen</li>
  </ul>
  <h2>Bereiding</h2>
  <ol>
    <li>Spoel de erwten af.</li>
    <li>Kook alles 2 uur op laag vuur.</li>
  </ol>
  <h2>Reacties</h2>
  <ul><li>Heerlijk!</li></ul>
  <footer><ul><li>Contact</li></ul></footer>
</body>
</html>
"""


def test_extract_blog_page():
    recipe = HeuristicRecipeExtractor.extract(BLOG_PAGE, SOURCE_URL)

    assert recipe is not None
    assert recipe.title == "Snert zoals oma hem maakte"
    assert recipe.ingredients == ["500 g spliterwten", "1 rookworst", "2 winterpenen"]
    assert recipe.instructions == ["Spoel de erwten af.", "Kook alles 2 uur op laag vuur."]
    assert recipe.image_url == "https://blog.example.com/img/soep.jpg"
    assert recipe.confidence == HEURISTIC_CONFIDENCE


def test_bold_paragraph_headings():
    html = """
    <html><head><title>Pancakes</title></head><body>
      <p><strong>Ingredients:</strong></p>
      <ul><li>1 cup flour</li><li>2 eggs</li></ul>
      <p><strong>Method</strong></p>
      <p>Whisk everything together.</p>
      <p>Fry in butter.</p>
    </body></html>
    """

    recipe = HeuristicRecipeExtractor.extract(html, SOURCE_URL)

    assert recipe is not None
    assert recipe.title == "Pancakes"
    assert recipe.ingredients == ["1 cup flour", "2 eggs"]
    assert recipe.instructions == ["Whisk everything together.", "Fry in butter."]


def test_missing_instruction_section_returns_none():
    html = """
    <html><body><h1>Soep</h1>
      <h2>Ingrediënten</h2><ul><li>water</li></ul>
    </body></html>
    """

    assert HeuristicRecipeExtractor.extract(html, SOURCE_URL) is None


def test_empty_section_returns_none():
    html = """
    <html><body><h1>Soep</h1>
      <h2>Ingrediënten</h2>
      <h2>Bereiding</h2><ol><li>Kook.</li></ol>
    </body></html>
    """

    assert HeuristicRecipeExtractor.extract(html, SOURCE_URL) is None


def test_nested_list_items_are_not_duplicated():
    html = """
    <html><body><h1>Taart</h1>
      <h3>Ingredients</h3>
      <ul><li>For the base<ul><li>flour</li></ul></li><li>sugar</li></ul>
      <h3>Directions</h3>
      <ol><li>Bake.</li></ol>
    </body></html>
    """

    recipe = HeuristicRecipeExtractor.extract(html, SOURCE_URL)

    assert recipe.ingredients == ["For the base flour", "sugar"]


def test_heading_patterns():
    assert INGREDIENT_HEADING.match("Ingrediënten")
    assert INGREDIENT_HEADING.match("What you'll need")
    assert INGREDIENT_HEADING.match("benodigdheden voor 4 personen")
    assert not INGREDIENT_HEADING.match("Over de ingrediënten")
    assert INSTRUCTION_HEADING.match("Bereidingswijze")
    assert INSTRUCTION_HEADING.match("How to make it")
    assert INSTRUCTION_HEADING.match("Werkwijze")
    assert not INSTRUCTION_HEADING.match("Reacties")


def test_long_heading_is_ignored():
    soup = BeautifulSoup(
        "<h2>Ingredients for a party of twelve hungry people who came back from a long hike</h2>",
        "lxml",
    )

    assert HeuristicRecipeExtractor.find_section_heading(soup, INGREDIENT_HEADING) is None


def test_find_title_fallbacks():
    og = BeautifulSoup('<head><meta property="og:title" content=" Hutspot "></head>', "lxml")
    titled = BeautifulSoup("<head><title>Stamppot</title></head>", "lxml")

    assert HeuristicRecipeExtractor.find_title(og) == "Hutspot"
    assert HeuristicRecipeExtractor.find_title(titled) == "Stamppot"
    assert HeuristicRecipeExtractor.find_title(BeautifulSoup("<p>x</p>", "lxml")) == ""
