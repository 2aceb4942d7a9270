"""Structured-text parser that turns a vision-model response into a Recipe.

The vision prompt (src/providers/vision/openai_vision_provider.py) asks the
model to answer in a fixed, labelled layout::

    Recipe Name: Lemon Herb Chicken
    Recipe Category: Main Course
    Dietary Flags: Gluten-Free, Dairy-Free
    Ingredients List:
    - Chicken thighs (4, pieces)
    - Lemon (1 whole)
    Preparation Steps:
    1. Marinate the chicken.
    2. Roast for 35 minutes.
    Preparation Time: 15
    ...
    Short Visual Description: Golden chicken with lemon slices.

Models follow that layout most of the time, not all of the time: labels
go missing, get wrapped in markdown bold, steps come with commentary,
numbers come as "about 20 minutes".  The parser therefore never raises.

Parsing happens in two passes:

1. :func:`split_sections` tokenizes the text on the known labels.  Each
   label's body is everything up to the next label found (or end of text).
2. Small per-section functions convert bodies into typed values, each
   falling back to a documented default.

Everything here is pure: text in, :class:`Recipe` out.  Missing sections are
only reported at debug level.
"""

from __future__ import annotations

import re
import string

from src.models.recipe import (
    UNNAMED_RECIPE,
    DifficultyLevel,
    Ingredient,
    Recipe,
    RecipeCategory,
)
from src.utils.logging import get_logger

_logger = get_logger(__name__)

LABEL_NAME = "Recipe Name:"
LABEL_CATEGORY = "Recipe Category:"
LABEL_FLAGS = "Dietary Flags:"
LABEL_INGREDIENTS = "Ingredients List:"
LABEL_STEPS = "Preparation Steps:"
LABEL_PREP_TIME = "Preparation Time:"
LABEL_COOK_TIME = "Cook Time:"
LABEL_TOTAL_TIME = "Total Time:"
LABEL_SERVINGS = "Servings:"
LABEL_DIFFICULTY = "Difficulty Level:"
LABEL_DESCRIPTION = "Short Visual Description:"

# Prompt order.  Order only matters for readability; bodies are delimited
# by the position at which labels are actually found.
SECTION_LABELS: tuple[str, ...] = (
    LABEL_NAME,
    LABEL_CATEGORY,
    LABEL_FLAGS,
    LABEL_INGREDIENTS,
    LABEL_STEPS,
    LABEL_PREP_TIME,
    LABEL_COOK_TIME,
    LABEL_TOTAL_TIME,
    LABEL_SERVINGS,
    LABEL_DIFFICULTY,
    LABEL_DESCRIPTION,
)

# Compiled against the original text so match offsets index that same string;
# lower-casing first can change the string length.
_LABEL_PATTERNS: dict[str, re.Pattern[str]] = {
    label: re.compile(re.escape(label), re.IGNORECASE) for label in SECTION_LABELS
}

_BULLETS = ("-", "*", "•")
# Markdown emphasis/heading characters and template brackets that models
# leave around single-value answers.
_SCALAR_NOISE = " \t\r\n*#[]."
_FLAG_NOISE = " \t*-•[]"
_EMPTY_FLAG_VALUES = frozenset({"none", "n/a", "na"})


# ---------------------------------------------------------------------------
# Pass 1: section tokenizer
# ---------------------------------------------------------------------------


def split_sections(text: str) -> dict[str, str]:
    """Split *text* into ``{label: body}`` for every known label.

    Labels are matched case-insensitively at their first occurrence.  A
    label that does not occur maps to ``""``.  Bodies are stripped of
    surrounding whitespace only; list sections keep their bullet markers.
    """
    bodies = dict.fromkeys(SECTION_LABELS, "")
    if not text:
        return bodies

    found: list[tuple[int, int, str]] = []
    for label, pattern in _LABEL_PATTERNS.items():
        match = pattern.search(text)
        if match is not None:
            found.append((match.start(), match.end(), label))
    found.sort()

    for pos, (_, start, label) in enumerate(found):
        end = found[pos + 1][0] if pos + 1 < len(found) else len(text)
        bodies[label] = text[start:end].strip()

    return bodies


# ---------------------------------------------------------------------------
# Pass 2: per-section converters
# ---------------------------------------------------------------------------


def parse_int(body: str) -> int:
    """Return the first run of ASCII digits in *body*, or ``0`` if there is none.

    ``"25 minutes"`` → 25, ``"[4]"`` → 4, ``"abc"`` → 0.
    """
    digits: list[str] = []
    for ch in body or "":
        if ch in string.digits:
            digits.append(ch)
        elif digits:
            break
    return int("".join(digits)) if digits else 0


def parse_ingredient_line(text: str) -> Ingredient | None:
    """Parse one un-bulleted ingredient line.

    ``"Flour (200, g)"`` → name Flour, quantity 200, unit g.
    ``"Salt (1 tsp)"``   → name Salt, quantity 1, unit tsp.
    ``"Eggs (3)"``       → name Eggs, quantity 3, no unit.
    ``"Fresh basil"``    → name only.

    Returns ``None`` when no name can be recovered.
    """
    text = (text or "").strip()
    open_idx = text.find("(")
    close_idx = text.find(")", open_idx + 1) if open_idx >= 0 else -1

    if open_idx < 0 or close_idx < 0:
        name = _clean_name(text)
        return Ingredient(name=name) if name else None

    name = _clean_name(text[:open_idx])
    if not name:
        return None

    quantity, unit = _split_quantity(text[open_idx + 1 : close_idx])
    return Ingredient(name=name, quantity=quantity, unit=unit)


def parse_ingredients(body: str) -> list[Ingredient]:
    """Parse every bulleted line of the ingredients section."""
    ingredients: list[Ingredient] = []
    for raw in (body or "").splitlines():
        line = raw.strip()
        if not line or not line.startswith(_BULLETS):
            continue
        ingredient = parse_ingredient_line(line[1:])
        if ingredient is not None:
            ingredients.append(ingredient)
    return ingredients


def parse_step_lines(body: str) -> list[str]:
    """Keep only ``<digits>.`` lines, in order, with the numeral removed.

    Unnumbered lines are dropped: they are model commentary ("Notes: ...",
    "Enjoy!") rather than instructions.
    """
    steps: list[str] = []
    for raw in (body or "").splitlines():
        line = raw.strip()
        numeral_end = 0
        while numeral_end < len(line) and line[numeral_end] in string.digits:
            numeral_end += 1
        if numeral_end == 0 or line[numeral_end : numeral_end + 1] != ".":
            continue
        step = line[numeral_end + 1 :].strip()
        if step:
            steps.append(step)
    return steps


def parse_flags(body: str) -> list[str]:
    """Split dietary flags on commas or newlines, dropping blanks and repeats."""
    flags: list[str] = []
    for part in (body or "").replace("\n", ",").split(","):
        flag = part.strip(_FLAG_NOISE)
        if not flag or flag.lower() in _EMPTY_FLAG_VALUES or flag in flags:
            continue
        flags.append(flag)
    return flags


def parse_category(body: str) -> RecipeCategory:
    value = _first_line(body).strip(_SCALAR_NOISE).lower()
    for category in RecipeCategory:
        if category.value.lower() == value:
            return category
    return RecipeCategory.OTHER


def parse_difficulty(body: str) -> DifficultyLevel:
    value = _first_line(body).strip(_SCALAR_NOISE).lower()
    for level in DifficultyLevel:
        if level.value.lower() == value:
            return level
    return DifficultyLevel.MEDIUM


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def extract_recipe(text: str) -> Recipe:
    """Build a :class:`Recipe` from one labelled model response.

    Never raises on malformed input: every field has a default and a
    garbled response degrades to those defaults.
    """
    sections = split_sections(text)
    missing = [label.rstrip(":") for label, body in sections.items() if not body]
    if missing:
        _logger.debug("recipe_parse_degraded", missing_sections=missing)

    name = _first_line(sections[LABEL_NAME]).strip(" \t*#[]") or UNNAMED_RECIPE
    description = sections[LABEL_DESCRIPTION].strip(" \t\r\n*#[]")

    return Recipe(
        name=name,
        category=parse_category(sections[LABEL_CATEGORY]),
        flags=parse_flags(sections[LABEL_FLAGS]),
        ingredients=parse_ingredients(sections[LABEL_INGREDIENTS]),
        steps=parse_step_lines(sections[LABEL_STEPS]),
        prep_minutes=parse_int(sections[LABEL_PREP_TIME]),
        cook_minutes=parse_int(sections[LABEL_COOK_TIME]),
        total_minutes=parse_int(sections[LABEL_TOTAL_TIME]),
        servings=parse_int(sections[LABEL_SERVINGS]),
        difficulty=parse_difficulty(sections[LABEL_DIFFICULTY]),
        description=description,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _first_line(body: str) -> str:
    for line in (body or "").splitlines():
        if line.strip(" \t*#"):
            return line.strip()
    return ""


def _clean_name(text: str) -> str:
    return text.strip(" \t*")


def _split_quantity(inner: str) -> tuple[str | None, str | None]:
    """Split the inside of an ingredient's parentheses into quantity and unit.

    A comma wins over whitespace: ``"1, large"`` → ("1", "large").
    """
    inner = inner.strip()
    if not inner:
        return None, None

    if "," in inner:
        quantity, _, unit = inner.partition(",")
        return quantity.strip() or None, unit.strip() or None

    parts = inner.split(maxsplit=1)
    if len(parts) == 2:
        return parts[0], parts[1].strip()
    return inner, None
