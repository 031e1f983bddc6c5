"""
Ingredient and equipment substitutions used to match stored alternatives.
"""

from typing import Iterable, List, Set

from ..models import Recipe


# Missing item -> what a generated alternative typically uses instead.
SUBSTITUTIONS = {
    "오븐": "팬",
    "케밥": "팬",
    "에어프라이어": "팬",
    "그릴": "팬",
    "oven": "pan",
    "grill": "pan",
    "air fryer": "pan",
    "버터": "식용유",
    "butter": "oil",
    "생크림": "우유",
    "cream": "milk",
}

ALTERNATIVE_MARKERS = ("대체", "alternative")


def canonical_substitute(item: str) -> str:
    """Return the usual substitute for ``item``, or the item itself."""
    key = item.strip().lower()
    for missing, substitute in SUBSTITUTIONS.items():
        if missing in key:
            return key.replace(missing, substitute)
    return key


def normalize_items(items: Iterable[str]) -> Set[str]:
    return {item.strip().lower() for item in items if isinstance(item, str) and item.strip()}


def matches_alternative(recipe: Recipe, missing_items: List[str]) -> bool:
    """
    Decide whether a stored generated recipe answers a request for the same
    missing items.

    Matches when the stored ``missing_items`` equal the requested ones, or
    when the recipe name mentions one of the items or its substitute. With no
    requested items, any recipe named as an alternative matches.
    """
    requested = normalize_items(missing_items)
    stored = normalize_items(recipe.missing_items)
    if requested and stored:
        return requested == stored

    name = f"{recipe.name_ko} {recipe.name}".lower()
    if not requested:
        return any(marker in name for marker in ALTERNATIVE_MARKERS)

    for item in requested:
        substitute = canonical_substitute(item)
        if item in name or (substitute != item and substitute in name):
            return True
    return False
