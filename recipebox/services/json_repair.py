"""Recover recipe JSON from truncated or wrapped model output."""

import json
import logging
import re
from dataclasses import asdict, dataclass, field, replace
from typing import Any

logger = logging.getLogger(__name__)

PLACEHOLDER_INGREDIENT_NAME = "Ingredient list truncated"
PLACEHOLDER_INSTRUCTION_TEXT = "Instructions were truncated. Please add steps manually."

_FENCE = re.compile(r"```(?:json|JSON)?\s*(.*?)(?:```|$)", re.DOTALL)
_CLOSERS = {"{": "}", "[": "]"}
_MAX_BACKTRACK_ATTEMPTS = 200


def placeholder_ingredient() -> dict[str, Any]:
    return {
        "original_line": "",
        "name": PLACEHOLDER_INGREDIENT_NAME,
        "quantity": None,
        "unit": None,
        "note": None,
    }


def placeholder_instruction() -> dict[str, Any]:
    return {"step": 1, "text": PLACEHOLDER_INSTRUCTION_TEXT}


def is_placeholder_ingredient(ingredient: dict) -> bool:
    return ingredient.get("name") == PLACEHOLDER_INGREDIENT_NAME


def is_placeholder_instruction(instruction: dict) -> bool:
    return PLACEHOLDER_INSTRUCTION_TEXT.split(".")[0] in (instruction.get("text") or "")


@dataclass(frozen=True)
class ParseRepairFlags:
    """Which recovery steps were needed to read a response."""

    used_extract_json_from_response: bool = False
    used_repair_truncated_json: bool = False
    added_missing_closers: bool = False
    injected_placeholders_ingredients: bool = False
    injected_placeholders_instructions: bool = False

    def to_dict(self) -> dict[str, bool]:
        return asdict(self)


@dataclass(frozen=True)
class Parsed:
    """The response yielded a recipe object with real ingredients and instructions."""

    data: dict[str, Any]
    flags: ParseRepairFlags = field(default_factory=ParseRepairFlags)
    truncated: bool = False


@dataclass(frozen=True)
class RepairedWithPlaceholders:
    """The response was readable but at least one list had to be filled with a placeholder."""

    data: dict[str, Any]
    flags: ParseRepairFlags = field(default_factory=ParseRepairFlags)
    truncated: bool = False


@dataclass(frozen=True)
class Unrecoverable:
    """No JSON object could be recovered from the response."""

    error: str
    flags: ParseRepairFlags = field(default_factory=ParseRepairFlags)
    truncated: bool = False


ParseResult = Parsed | RepairedWithPlaceholders | Unrecoverable


def is_truncation_error(error: json.JSONDecodeError) -> bool:
    """Check if a decode error means the document ended too early."""
    if "Unterminated string" in error.msg:
        return True
    return error.pos >= len(error.doc.rstrip())


def extract_json_from_response(text: str) -> str | None:
    """Pull the JSON object out of a markdown-fenced or chatty response.

    Returns the text from the first "{" on, so a truncated object keeps its
    tail for repair.
    """
    fenced = _FENCE.search(text)
    candidate = fenced.group(1) if fenced and "{" in fenced.group(1) else text
    start = candidate.find("{")
    if start == -1:
        return None
    return candidate[start:].strip()


def _scan(text: str) -> tuple[list[str], bool, list[tuple[int, tuple[str, ...]]]]:
    """Walk text tracking open brackets outside of strings.

    Returns (open_brackets, inside_string, comma_positions) where each comma
    position carries the bracket stack at that point.
    """
    stack: list[str] = []
    commas: list[tuple[int, tuple[str, ...]]] = []
    in_string = False
    escaped = False
    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in _CLOSERS:
            stack.append(char)
        elif char in "}]":
            if stack:
                stack.pop()
        elif char == ",":
            commas.append((index, tuple(stack)))
    return stack, in_string, commas


def _closers(stack: list[str] | tuple[str, ...]) -> str:
    return "".join(_CLOSERS[bracket] for bracket in reversed(stack))


def repair_truncated_json(text: str, position: int | None = None) -> tuple[dict[str, Any], bool]:
    """Close a JSON document that was cut off.

    The text is truncated at ``position`` (where the parser gave up), an open
    string is terminated and every open bracket closed. If the last element
    was itself incomplete, the document is cut back to the previous comma
    and closed again.

    Returns (data, added_closers). Raises json.JSONDecodeError if nothing
    parseable remains.
    """
    body = text[:position] if position is not None else text
    body = body.rstrip()
    stack, in_string, commas = _scan(body)

    last_error = json.JSONDecodeError("No JSON object recovered", body, 0)
    candidate = body + ('"' if in_string else "") + _closers(stack)
    try:
        data = json.loads(candidate)
        if isinstance(data, dict):
            return data, bool(stack)
    except json.JSONDecodeError as e:
        last_error = e

    for index, stack_at_comma in list(reversed(commas))[:_MAX_BACKTRACK_ATTEMPTS]:
        candidate = body[:index] + _closers(stack_at_comma)
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError as e:
            last_error = e
            continue
        if isinstance(data, dict):
            return data, bool(stack_at_comma)

    raise last_error


def _ensure_lists(
    data: dict[str, Any], flags: ParseRepairFlags, truncated: bool = False
) -> ParseResult:
    ingredients = data.get("ingredients")
    instructions = data.get("instructions")
    ingredients = (
        [i for i in ingredients if isinstance(i, dict)] if isinstance(ingredients, list) else []
    )
    instructions = (
        [i for i in instructions if isinstance(i, dict)] if isinstance(instructions, list) else []
    )

    if not ingredients:
        ingredients = [placeholder_ingredient()]
        flags = replace(flags, injected_placeholders_ingredients=True)
    if not instructions:
        instructions = [placeholder_instruction()]
        flags = replace(flags, injected_placeholders_instructions=True)

    result = {**data, "ingredients": ingredients, "instructions": instructions}
    if flags.injected_placeholders_ingredients or flags.injected_placeholders_instructions:
        logger.warning(
            "Injected placeholders into model response "
            f"(ingredients={flags.injected_placeholders_ingredients}, "
            f"instructions={flags.injected_placeholders_instructions})"
        )
        return RepairedWithPlaceholders(data=result, flags=flags, truncated=truncated)
    return Parsed(data=result, flags=flags, truncated=truncated)


def parse_model_response(text: str) -> ParseResult:
    """Parse a model response into a recipe dict.

    Tried in order:
    1. The response as-is
    2. The JSON object inside markdown fences or surrounding prose
    3. Truncation repair of that object

    ``truncated`` on the result is set when the document had been cut off,
    whether or not repair then succeeded.
    """
    flags = ParseRepairFlags()
    try:
        data = json.loads(text)
        if isinstance(data, dict):
            return _ensure_lists(data, flags)
    except json.JSONDecodeError as e:
        logger.debug(f"Direct JSON parse failed: {e}")

    candidate = extract_json_from_response(text)
    if candidate is None:
        return Unrecoverable(error="No JSON object in response", flags=flags)
    flags = replace(flags, used_extract_json_from_response=True)

    try:
        data = json.loads(candidate)
        if isinstance(data, dict):
            return _ensure_lists(data, flags)
        return Unrecoverable(error="Response JSON is not an object", flags=flags)
    except json.JSONDecodeError as e:
        decode_error = e

    truncated = is_truncation_error(decode_error)
    position = None if truncated else decode_error.pos
    flags = replace(flags, used_repair_truncated_json=True)
    try:
        data, added_closers = repair_truncated_json(candidate, position)
    except json.JSONDecodeError as e:
        logger.warning(f"Truncation repair failed: {e}")
        return Unrecoverable(error=str(decode_error), flags=flags, truncated=truncated)

    flags = replace(flags, added_missing_closers=added_closers)
    return _ensure_lists(data, flags, truncated=truncated)
