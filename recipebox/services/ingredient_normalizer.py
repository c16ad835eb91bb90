"""Deterministic ingredient line parsing and unit normalization - no LLM calls."""

import re
from dataclasses import dataclass

UNICODE_FRACTIONS: dict[str, float] = {
    "½": 1 / 2,
    "⅓": 1 / 3,
    "⅔": 2 / 3,
    "¼": 1 / 4,
    "¾": 3 / 4,
    "⅕": 1 / 5,
    "⅖": 2 / 5,
    "⅗": 3 / 5,
    "⅘": 4 / 5,
    "⅙": 1 / 6,
    "⅚": 5 / 6,
    "⅛": 1 / 8,
    "⅜": 3 / 8,
    "⅝": 5 / 8,
    "⅞": 7 / 8,
}

# Canonical unit -> accepted spellings (Dutch and English)
_UNIT_SPELLINGS: dict[str, tuple[str, ...]] = {
    "tl": ("tl", "theelepel", "theelepels", "tsp", "tsps", "teaspoon", "teaspoons", "t"),
    "el": (
        "el",
        "eetlepel",
        "eetlepels",
        "tbsp",
        "tbsps",
        "tbl",
        "tbs",
        "tablespoon",
        "tablespoons",
    ),
    "g": ("g", "gr", "gram", "grams", "gramme", "grammes"),
    "kg": ("kg", "kilo", "kilos", "kilogram", "kilograms"),
    "mg": ("mg", "milligram", "milligrams"),
    "ml": ("ml", "milliliter", "milliliters", "millilitre", "millilitres"),
    "cl": ("cl", "centiliter", "centiliters"),
    "dl": ("dl", "deciliter", "deciliters"),
    "l": ("l", "liter", "liters", "litre", "litres"),
    "cup": ("cup", "cups", "kopje", "kopjes", "kop"),
    "fl oz": ("fl oz", "fl. oz", "fluid ounce", "fluid ounces"),
    "oz": ("oz", "ounce", "ounces"),
    "lb": ("lb", "lbs", "pound", "pounds"),
    "pint": ("pint", "pints", "pt"),
    "quart": ("quart", "quarts", "qt"),
    "snufje": ("snufje", "snuf", "pinch", "pinches", "mespunt", "mespuntje"),
    "stuk": (
        "stuk",
        "stuks",
        "piece",
        "pieces",
        "teentje",
        "teentjes",
        "teen",
        "clove",
        "cloves",
        "plak",
        "plakken",
        "plakje",
        "plakjes",
        "slice",
        "slices",
        "bol",
        "bollen",
        "stronk",
        "stronken",
        "takje",
        "takjes",
        "sprig",
        "sprigs",
        "blokje",
        "blokjes",
    ),
}

UNIT_ALIASES: dict[str, str] = {
    spelling: canonical
    for canonical, spellings in _UNIT_SPELLINGS.items()
    for spelling in spellings
}

# US unit -> (metric unit, factor)
METRIC_CONVERSIONS: dict[str, tuple[str, float]] = {
    "cup": ("ml", 240),
    "fl oz": ("ml", 30),
    "pint": ("ml", 500),
    "quart": ("ml", 1000),
    "oz": ("g", 28),
    "lb": ("g", 450),
}

METRIC_LOCALES = {"nl", "de", "fr", "es", "it", "be"}

_FRACTION_CHARS = "".join(UNICODE_FRACTIONS)
_QUANTITY = (
    rf"(?:\d+\s+\d+/\d+|\d+/\d+|\d+\s*[{_FRACTION_CHARS}]|\d+(?:[.,]\d+)?|[{_FRACTION_CHARS}])"
)
_MULTI_WORD_UNITS = sorted((u for u in UNIT_ALIASES if " " in u), key=len, reverse=True)
_UNIT_TOKEN = "|".join(
    [re.escape(u) for u in _MULTI_WORD_UNITS] + [r"[^\W\d_]+\.?"]
)
_QTY_UNIT_NAME = re.compile(
    rf"^\s*(?P<qty>{_QUANTITY})\s*(?P<unit>{_UNIT_TOKEN})?\s+(?P<name>.+?)\s*$",
    re.IGNORECASE,
)
_QTY_NAME = re.compile(rf"^\s*(?P<qty>{_QUANTITY})\s*(?P<name>\S.*?)\s*$")
_UNIT_NAME = re.compile(rf"^\s*(?P<unit>{_UNIT_TOKEN})\s+(?P<name>.+?)\s*$", re.IGNORECASE)
_TRAILING_NOTE = re.compile(r"^(?P<body>.+?)\s*\((?P<note>[^)]+)\)\s*$")


@dataclass
class ParsedIngredientLine:
    """Result of splitting a free-text ingredient line."""

    name: str
    quantity: float | None = None
    unit: str | None = None
    note: str | None = None


def parse_quantity(text: str | None) -> float | None:
    """Parse a quantity token into a number.

    Examples:
    - "1/2" -> 0.5
    - "1 1/2" -> 1.5
    - "1½" -> 1.5
    - "2,5" -> 2.5
    """
    if text is None:
        return None
    value = text.strip()
    if not value:
        return None

    whole = 0.0
    fraction_char = value[-1]
    if fraction_char in UNICODE_FRACTIONS:
        head = value[:-1].strip()
        if head and not head.isdigit():
            return None
        whole = float(head) if head else 0.0
        return whole + UNICODE_FRACTIONS[fraction_char]

    mixed = re.fullmatch(r"(\d+)\s+(\d+)/(\d+)", value)
    if mixed:
        denominator = int(mixed.group(3))
        if denominator == 0:
            return None
        return int(mixed.group(1)) + int(mixed.group(2)) / denominator

    fraction = re.fullmatch(r"(\d+)/(\d+)", value)
    if fraction:
        denominator = int(fraction.group(2))
        if denominator == 0:
            return None
        return int(fraction.group(1)) / denominator

    decimal = re.fullmatch(r"\d+(?:[.,]\d+)?", value)
    if decimal:
        return float(value.replace(",", "."))

    return None


def normalize_unit(unit: str | None) -> str | None:
    """Map a unit spelling to its canonical short form.

    Unknown units are returned unchanged (stripped).
    """
    if unit is None:
        return None
    cleaned = unit.strip()
    if not cleaned:
        return None
    key = cleaned.lower().rstrip(".")
    return UNIT_ALIASES.get(key, cleaned)


def is_known_unit(token: str) -> bool:
    """Check if a token is a recognized unit spelling."""
    return token.lower().rstrip(".") in UNIT_ALIASES


def split_note(text: str) -> tuple[str, str | None]:
    """Split a trailing parenthetical off an ingredient text.

    "boter (zacht)" -> ("boter", "zacht")
    """
    match = _TRAILING_NOTE.match(text.strip())
    if not match:
        return text.strip(), None
    return match.group("body").strip(), match.group("note").strip()


def parse_ingredient_line(line: str) -> ParsedIngredientLine:
    """Split a free-text line into quantity, unit, name and note.

    Patterns tried in order:
    1. quantity + known unit + name ("2 tbl olijfolie")
    2. quantity + name ("3 eieren")
    3. known unit + name, quantity 1 ("snufje zout")
    Anything else becomes a bare name.
    """
    body, note = split_note(line)

    match = _QTY_UNIT_NAME.match(body)
    if match and match.group("unit") and is_known_unit(match.group("unit")):
        return ParsedIngredientLine(
            name=match.group("name").strip(),
            quantity=parse_quantity(match.group("qty")),
            unit=normalize_unit(match.group("unit")),
            note=note,
        )

    match = _QTY_NAME.match(body)
    if match and parse_quantity(match.group("qty")) is not None:
        return ParsedIngredientLine(
            name=match.group("name").strip(),
            quantity=parse_quantity(match.group("qty")),
            note=note,
        )

    match = _UNIT_NAME.match(body)
    if match and is_known_unit(match.group("unit")):
        return ParsedIngredientLine(
            name=match.group("name").strip(),
            quantity=1.0,
            unit=normalize_unit(match.group("unit")),
            note=note,
        )

    return ParsedIngredientLine(name=body, note=note)


def normalize_ingredient(ingredient: dict, use_original_line: bool = True) -> dict:
    """Fill quantity, unit and note of an ingredient from its free text.

    An ingredient that already has a positive quantity and a unit is returned
    unchanged. Otherwise ``original_line`` (or ``name``) is parsed and the
    recovered parts are merged in. A parsed unit always brings its parsed
    quantity along; otherwise existing values win over parsed ones except
    for the name, which loses the quantity/unit prefix.
    """
    quantity = ingredient.get("quantity")
    unit = ingredient.get("unit")
    if quantity is not None and quantity > 0 and unit:
        return ingredient

    source = ingredient.get("original_line") if use_original_line else None
    source = source or ingredient.get("name") or ""
    if not source.strip():
        return ingredient

    parsed = parse_ingredient_line(source)
    result = dict(ingredient)
    if parsed.quantity is None and parsed.unit is None:
        if unit:
            result["unit"] = normalize_unit(unit)
        if not result.get("note") and parsed.note and result.get("name") == source:
            result["name"] = parsed.name
            result["note"] = parsed.note
        return result

    result["name"] = parsed.name or result.get("name") or source
    if parsed.unit:
        # quantity and unit always come from the same source
        result["quantity"] = parsed.quantity
        result["unit"] = parsed.unit
    else:
        result["quantity"] = quantity if quantity is not None and quantity > 0 else parsed.quantity
        result["unit"] = normalize_unit(unit) if unit else None
    if not result.get("note"):
        result["note"] = parsed.note
    return result


def convert_to_metric(quantity: float | None, unit: str | None) -> tuple[float | None, str | None]:
    """Convert a US quantity/unit pair to metric.

    Converted amounts are rounded to whole grams/milliliters. Units without a
    conversion (including the metric spoons ``el``/``tl``) are returned as is.
    """
    canonical = normalize_unit(unit)
    if canonical not in METRIC_CONVERSIONS:
        return quantity, canonical
    metric_unit, factor = METRIC_CONVERSIONS[canonical]
    if quantity is None:
        return None, metric_unit
    return float(round(quantity * factor)), metric_unit


def is_metric_locale(locale: str | None) -> bool:
    """Check if a locale uses metric units in recipes."""
    if not locale:
        return False
    return locale.split("-")[0].lower() in METRIC_LOCALES
