"""
Recipe search and artifact storage collaborators.
"""

import asyncio
import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from ..models import Recipe
from ..utils import get_logger
from ..utils.error_handling import PersistenceError
from .substitutions import matches_alternative


ALTERNATIVE_TAG = "대체레시피"

_TOKEN_PATTERN = re.compile(r"[\w가-힣]+")

# Request words that carry no search signal.
_STOP_WORDS = {
    "요리", "레시피", "추천", "추천해줘", "추천해", "알려줘", "해줘", "주세요", "만드는", "방법",
    "recipe", "recipes", "recommend", "please", "the", "a", "for", "me", "some",
}


@dataclass
class SearchFilters:
    """Filters applied to a recipe search."""
    user_id: Optional[str] = None
    allergies: List[str] = field(default_factory=list)
    limit: int = 10


class RecipeSearchProvider(ABC):
    """Read side of the recipe index."""

    @abstractmethod
    async def search(self, query: str, filters: Optional[SearchFilters] = None) -> List[Recipe]:
        """Return recipes matching ``query``, best match first."""

    @abstractmethod
    async def search_by_id(self, recipe_id: str) -> Optional[Recipe]:
        """Return the recipe with ``recipe_id`` or None."""


class ArtifactStore(ABC):
    """Write side of the recipe index, used for generated alternatives."""

    @abstractmethod
    async def find_generated_alternative(self, original_id: str, missing_items: List[str]) -> Optional[Recipe]:
        """Return a previously generated alternative for the same request, if any."""

    @abstractmethod
    async def persist(self, recipe: Recipe) -> None:
        """
        Store ``recipe``.

        Raises:
            PersistenceError: If the recipe could not be stored
        """

    @abstractmethod
    async def max_generated_id_suffix(self, prefix: str) -> int:
        """Return the largest numeric suffix among stored ids with ``prefix`` (0 if none)."""

    @abstractmethod
    async def next_generated_sequence(self, prefix: str) -> int:
        """Atomically reserve and return the next sequence number for ``prefix``."""


def tokenize(text: str) -> List[str]:
    return [token.lower() for token in _TOKEN_PATTERN.findall(text or "")]


class InMemoryRecipeRepository(RecipeSearchProvider, ArtifactStore):
    """
    Dictionary-backed recipe index implementing both collaborator interfaces.

    Search scores recipes by query-token overlap with names, tags and
    ingredients; Korean tokens also match as substrings so "닭가슴살" finds
    "닭가슴살 샐러드". Recipes containing an allergen are excluded.
    """

    def __init__(self, recipes: Optional[List[Recipe]] = None, dedup_candidate_limit: int = 10):
        self.logger = get_logger(__name__)
        self._recipes: Dict[str, Recipe] = {}
        self._sequences: Dict[str, int] = {}
        self._lock = asyncio.Lock()
        self.dedup_candidate_limit = dedup_candidate_limit
        for recipe in recipes or []:
            self._recipes[recipe.id] = recipe

    @classmethod
    def from_json_file(cls, path: str, **kwargs) -> "InMemoryRecipeRepository":
        """
        Load recipes from a JSON file holding a list of recipe objects.

        Args:
            path: Path to the JSON seed file

        Returns:
            Repository populated with the file's recipes
        """
        with open(Path(path), 'r', encoding='utf-8') as f:
            data = json.load(f)
        if isinstance(data, dict):
            data = data.get("recipes", [])
        return cls([Recipe.from_dict(item) for item in data], **kwargs)

    def __len__(self) -> int:
        return len(self._recipes)

    def all_recipes(self) -> List[Recipe]:
        return list(self._recipes.values())

    async def search(self, query: str, filters: Optional[SearchFilters] = None) -> List[Recipe]:
        filters = filters or SearchFilters()
        tokens = [t for t in tokenize(query) if t not in _STOP_WORDS]
        allergies = [a.lower() for a in filters.allergies if a]

        scored = []
        for recipe in self._recipes.values():
            text = recipe.searchable_text()
            if any(allergy in text for allergy in allergies):
                continue
            score = self._score(tokens, recipe, text)
            if score > 0:
                scored.append((score, recipe.rating or 0.0, recipe))

        scored.sort(key=lambda item: (item[0], item[1]), reverse=True)
        results = [recipe for _, _, recipe in scored[:filters.limit]]
        self.logger.debug(f"Search '{query}' matched {len(scored)} recipes, returning {len(results)}")
        return results

    def _score(self, tokens: List[str], recipe: Recipe, text: str) -> float:
        if not tokens:
            return 0.0
        name = f"{recipe.name_ko} {recipe.name}".lower()
        score = 0.0
        for token in tokens:
            if token in name:
                score += 2.0
            elif token in text:
                score += 1.0
            else:
                # "닭가슴살로" should still match "닭가슴살"
                stem = token[:-1] if len(token) > 2 else token
                if stem != token and stem in text:
                    score += 0.5
        return score

    async def search_by_id(self, recipe_id: str) -> Optional[Recipe]:
        return self._recipes.get(recipe_id)

    async def find_generated_alternative(self, original_id: str, missing_items: List[str]) -> Optional[Recipe]:
        candidates = [
            recipe for recipe in self._recipes.values()
            if recipe.is_ai_generated
            and recipe.original_recipe_id == original_id
            and ALTERNATIVE_TAG in recipe.tags
        ][:self.dedup_candidate_limit]

        for recipe in candidates:
            if matches_alternative(recipe, missing_items):
                return recipe
        return None

    async def persist(self, recipe: Recipe) -> None:
        if not recipe.id:
            raise PersistenceError("Cannot persist a recipe without an id")
        self._recipes[recipe.id] = recipe
        self.logger.info(f"Persisted recipe {recipe.id}")

    async def max_generated_id_suffix(self, prefix: str) -> int:
        pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")
        max_number = 0
        for recipe_id in self._recipes:
            match = pattern.match(recipe_id)
            if match:
                max_number = max(max_number, int(match.group(1)))
        return max_number

    async def next_generated_sequence(self, prefix: str) -> int:
        async with self._lock:
            current = self._sequences.get(prefix)
            if current is None:
                current = await self.max_generated_id_suffix(prefix)
            current += 1
            self._sequences[prefix] = current
            return current
