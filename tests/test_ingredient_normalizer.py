"""Tests for ingredient line parsing and unit normalization."""

import pytest

from recipebox.services.ingredient_normalizer import (
    convert_to_metric,
    is_metric_locale,
    normalize_ingredient,
    normalize_unit,
    parse_ingredient_line,
    parse_quantity,
    split_note,
)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("1/2", 0.5),
        ("1 1/2", 1.5),
        ("½", 0.5),
        ("1½", 1.5),
        ("2,5", 2.5),
        ("2.5", 2.5),
        ("3", 3.0),
        ("1/0", None),
        ("een", None),
        ("", None),
    ],
)
def test_parse_quantity(text, expected):
    assert parse_quantity(text) == expected


def test_normalize_unit_aliases():
    assert normalize_unit("theelepel") == "tl"
    assert normalize_unit("Tbsp.") == "el"
    assert normalize_unit("gram") == "g"
    assert normalize_unit("teentjes") == "stuk"
    assert normalize_unit("fluid ounces") == "fl oz"


def test_normalize_unit_unknown_passes_through():
    assert normalize_unit("handvol") == "handvol"
    assert normalize_unit("  ") is None
    assert normalize_unit(None) is None


def test_split_note():
    assert split_note("boter (zacht)") == ("boter", "zacht")
    assert split_note("boter") == ("boter", None)


def test_parse_line_quantity_unit_name():
    parsed = parse_ingredient_line("250 g bloem")
    assert parsed.quantity == 250
    assert parsed.unit == "g"
    assert parsed.name == "bloem"


def test_parse_line_quantity_name():
    parsed = parse_ingredient_line("3 eieren")
    assert parsed.quantity == 3
    assert parsed.unit is None
    assert parsed.name == "eieren"


def test_parse_line_unit_without_quantity():
    parsed = parse_ingredient_line("snufje zout")
    assert parsed.quantity == 1
    assert parsed.unit == "snufje"
    assert parsed.name == "zout"


def test_parse_line_with_note():
    parsed = parse_ingredient_line("2 el boter (gesmolten)")
    assert parsed.quantity == 2
    assert parsed.unit == "el"
    assert parsed.name == "boter"
    assert parsed.note == "gesmolten"


def test_parse_line_bare_name():
    parsed = parse_ingredient_line("peper en zout")
    assert parsed.quantity is None
    assert parsed.unit is None
    assert parsed.name == "peper en zout"


def test_normalize_dutch_teaspoon_fraction():
    result = normalize_ingredient({"name": "1/2 theelepel kurkumapoeder"})
    assert result["quantity"] == 0.5
    assert result["unit"] == "tl"
    assert result["name"] == "kurkumapoeder"


def test_normalize_tbl_abbreviation():
    result = normalize_ingredient({"name": "2 tbl olijfolie"})
    assert result["quantity"] == 2
    assert result["unit"] == "el"
    assert result["name"] == "olijfolie"


def test_normalize_prefers_original_line():
    result = normalize_ingredient({"original_line": "1½ kopje melk", "name": "melk"})
    assert result["quantity"] == 1.5
    assert result["unit"] == "cup"
    assert result["name"] == "melk"


def test_normalize_takes_quantity_with_parsed_unit():
    result = normalize_ingredient(
        {"original_line": "1 cup flour", "name": "flour", "quantity": 240, "unit": None}
    )
    assert (result["quantity"], result["unit"]) == (1, "cup")
    assert convert_to_metric(result["quantity"], result["unit"]) == (240.0, "ml")


def test_normalize_keeps_model_quantity_without_parsed_unit():
    result = normalize_ingredient(
        {"original_line": "2 eieren", "name": "eieren", "quantity": 3, "unit": None}
    )
    assert (result["quantity"], result["unit"]) == (3, None)


def test_normalize_keeps_complete_ingredient_unchanged():
    ingredient = {"original_line": "2 tbl olijfolie", "name": "olie", "quantity": 3, "unit": "ml"}
    assert normalize_ingredient(ingredient) is ingredient


def test_normalize_keeps_existing_note():
    result = normalize_ingredient({"name": "2 uien (gesnipperd)", "note": "fijn"})
    assert result["quantity"] == 2
    assert result["name"] == "uien"
    assert result["note"] == "fijn"


def test_normalize_splits_note_without_quantity():
    result = normalize_ingredient({"original_line": "boter (zacht)", "name": "boter (zacht)"})
    assert result["name"] == "boter"
    assert result["note"] == "zacht"
    assert result.get("quantity") is None


def test_convert_to_metric():
    assert convert_to_metric(1, "cup") == (240.0, "ml")
    assert convert_to_metric(2, "ounces") == (56.0, "g")
    assert convert_to_metric(1.5, "lb") == (675.0, "g")
    assert convert_to_metric(None, "cup") == (None, "ml")


def test_convert_to_metric_leaves_spoons_and_metric():
    assert convert_to_metric(2, "tbsp") == (2, "el")
    assert convert_to_metric(100, "g") == (100, "g")
    assert convert_to_metric(3, None) == (3, None)


def test_is_metric_locale():
    assert is_metric_locale("nl")
    assert is_metric_locale("nl-BE")
    assert not is_metric_locale("en")
    assert not is_metric_locale(None)
