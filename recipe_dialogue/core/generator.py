"""
Alternative recipe generation with dedup and best-effort persistence.
"""

from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..models import Recipe, AlternativeRecipeRequest
from ..models.config import GenerationConfig
from ..utils import get_logger, DialogueEventLogger
from ..utils.deadline import Deadline, run_within
from ..utils.error_handling import ConfigurationError, handle_error
from ..utils.json_cleaning import parse_json_object
from .interfaces import TextCompletionClient, CompletionOptions
from .prompts import PromptLibrary
from .stores import ArtifactStore, ALTERNATIVE_TAG


AI_GENERATED_TAG = "AI생성"


class IdAllocator(ABC):
    """Hands out numeric suffixes for generated recipe ids."""

    @abstractmethod
    async def recover(self) -> int:
        """Prepare the allocator at startup; returns the next number it will hand out."""

    @abstractmethod
    async def allocate(self) -> int:
        """Return the next number."""


class LocalCounterAllocator(IdAllocator):
    """
    Process-local counter, resumed from the largest stored suffix.

    Safe under one event loop because ``allocate`` has no suspension point
    between read and increment. Not safe across several processes sharing a
    store; use StoreSequenceAllocator there.
    """

    def __init__(self, store: ArtifactStore, prefix: str):
        self.store = store
        self.prefix = prefix
        self.next_value = 1
        self.logger = get_logger(__name__)

    async def recover(self) -> int:
        try:
            self.next_value = await self.store.max_generated_id_suffix(self.prefix) + 1
            self.logger.info(f"Generated recipe counter initialized: {self.next_value}")
        except Exception as e:
            self.logger.warning(f"Counter recovery failed, resetting to 1: {str(e)}")
            self.next_value = 1
        return self.next_value

    async def allocate(self) -> int:
        value = self.next_value
        self.next_value += 1
        return value


class StoreSequenceAllocator(IdAllocator):
    """Allocator backed by the store's atomic sequence."""

    def __init__(self, store: ArtifactStore, prefix: str):
        self.store = store
        self.prefix = prefix

    async def recover(self) -> int:
        return 0

    async def allocate(self) -> int:
        return await self.store.next_generated_sequence(self.prefix)


def create_id_allocator(store: ArtifactStore, config: GenerationConfig) -> IdAllocator:
    if config.id_strategy == "local_counter":
        return LocalCounterAllocator(store, config.id_prefix)
    if config.id_strategy == "store_sequence":
        return StoreSequenceAllocator(store, config.id_prefix)
    raise ConfigurationError(f"Unknown id strategy: {config.id_strategy}", config_key="generation_config.id_strategy")


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if isinstance(item, (str, int, float)) and str(item).strip()]


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _minutes(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)) and value > 0:
        return int(value)
    if isinstance(value, str):
        digits = "".join(ch for ch in value if ch.isdigit())
        if digits:
            return int(digits)
    return None


class AlternativeRecipeGenerator:
    """
    Produces a variant of a recipe that works without the missing items.

    Reuses a previously generated alternative when the store holds one for
    the same original and missing items; otherwise asks the completion
    provider for a JSON recipe and persists the result.
    """

    def __init__(self, client: TextCompletionClient, store: ArtifactStore,
                 prompts: Optional[PromptLibrary] = None, config: Optional[GenerationConfig] = None,
                 id_allocator: Optional[IdAllocator] = None):
        self.client = client
        self.store = store
        self.prompts = prompts or PromptLibrary()
        self.config = config or GenerationConfig()
        self.id_allocator = id_allocator or create_id_allocator(store, self.config)
        self.logger = get_logger(__name__)
        self.event_logger = DialogueEventLogger()

    async def initialize_counter(self) -> int:
        """Recover the id allocator from the store."""
        return await self.id_allocator.recover()

    async def generate_or_find_alternative_recipe(self, request: AlternativeRecipeRequest,
                                                  deadline: Optional[Deadline] = None) -> Optional[Recipe]:
        """
        Return an alternative recipe for ``request``, or None.

        Args:
            request: Original recipe, missing items and the user's message
            deadline: Optional query deadline bounding provider and store calls

        Returns:
            Stored or newly generated alternative; None when generation fails
        """
        try:
            original = request.original_recipe

            existing = await self._find_existing(request, deadline)
            if existing is not None:
                self.logger.info(f"Reusing stored alternative recipe: {existing.id}")
                return existing

            self.logger.info(f"Generating alternative recipe for: {original.display_name}")
            recipe = await self._generate(request, deadline)
            if recipe is None:
                return None

            await self._persist(recipe)
            self.logger.info(f"Alternative recipe generated: {recipe.id}")
            return recipe

        except Exception as e:
            handle_error(e, self.event_logger, {"stage": "alternative_generation"})
            return None

    async def _find_existing(self, request: AlternativeRecipeRequest,
                             deadline: Optional[Deadline]) -> Optional[Recipe]:
        original_id = request.original_recipe.id
        try:
            found = await run_within(
                self.store.find_generated_alternative(original_id, list(request.missing_items)), deadline
            )
        except Exception as e:
            self.logger.warning(f"Stored alternative lookup failed: {str(e)}")
            return None

        if found is not None and found.original_recipe_id == original_id:
            return found
        return None

    async def _generate(self, request: AlternativeRecipeRequest, deadline: Optional[Deadline]) -> Optional[Recipe]:
        prompt = self.prompts.alternative_recipe(request)
        options = CompletionOptions(temperature=self.config.temperature, max_tokens=self.config.max_tokens)

        try:
            raw = await run_within(self.client.complete(prompt, options), deadline)
        except Exception as e:
            converted = handle_error(e)
            self.logger.warning(f"Alternative recipe generation failed: {converted.message}")
            return None

        if not raw:
            self.logger.warning("Alternative recipe generation returned an empty response")
            return None

        self.logger.debug(f"Alternative recipe response: {raw[:200]}")
        parsed = parse_json_object(raw)
        if not parsed.is_ok:
            self.logger.warning(f"Alternative recipe response could not be parsed: {parsed.error.message}")
            return None

        number = await self.id_allocator.allocate()
        return self._synthesize(request, parsed.value, f"{self.config.id_prefix}{number}")

    def _synthesize(self, request: AlternativeRecipeRequest, data: Dict[str, Any], recipe_id: str) -> Recipe:
        original = request.original_recipe

        ingredients_ko = _string_list(data.get("ingredientsKo")) or list(original.ingredients_ko)
        ingredients = _string_list(data.get("ingredients")) or list(original.ingredients)
        steps_ko = _string_list(data.get("stepsKo")) or list(original.steps_ko)
        steps = _string_list(data.get("steps")) or list(original.steps)

        return replace(
            original,
            id=recipe_id,
            name=_text(data.get("name")) or f"{original.name or original.display_name} (Alternative)",
            name_ko=_text(data.get("nameKo")) or f"{original.name_ko or original.display_name} (대체 버전)",
            description=_text(data.get("description")) or original.description,
            description_ko=_text(data.get("descriptionKo")) or original.description_ko,
            ingredients=ingredients,
            ingredients_ko=ingredients_ko,
            steps=steps,
            steps_ko=steps_ko,
            n_ingredients=len(ingredients_ko or ingredients) or original.n_ingredients,
            minutes=_minutes(data.get("cookingTime")) or original.minutes,
            difficulty=_text(data.get("difficulty")) or original.difficulty or "보통",
            tags=list(original.tags) + [AI_GENERATED_TAG, ALTERNATIVE_TAG],
            nutrition=dict(original.nutrition),
            is_ai_generated=True,
            original_recipe_id=original.id,
            generation_reason=f"부족한 재료: {', '.join(request.missing_items)}",
            generation_context=request.user_message,
            generated_at=datetime.now().isoformat(),
            missing_items=list(request.missing_items),
        )

    async def _persist(self, recipe: Recipe) -> None:
        try:
            await self.store.persist(recipe)
        except Exception as e:
            # The recipe is still returned to the caller.
            self.logger.error(f"Failed to persist alternative recipe {recipe.id}: {str(e)}")
