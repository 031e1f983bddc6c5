"""
Shared fakes and fixtures for the recipe dialogue tests.
"""

import asyncio
from typing import Callable, List, Optional, Union

import pytest

from recipe_dialogue.core.interfaces import TextCompletionClient, CompletionOptions
from recipe_dialogue.core.stores import InMemoryRecipeRepository, RecipeSearchProvider, SearchFilters
from recipe_dialogue.models import Recipe, SystemConfig
from recipe_dialogue.models.config import OrchestratorConfig
from recipe_dialogue.utils.error_handling import PersistenceError


Scripted = Union[str, BaseException]


class ScriptedCompletionClient(TextCompletionClient):
    """
    Completion client that replays scripted answers.

    Answers come from ``responder(prompt)`` when given, else from
    ``responses`` in order, else ``default``. An exception instance in any
    of those is raised instead of returned.
    """

    def __init__(self, responses: Optional[List[Scripted]] = None,
                 responder: Optional[Callable[[str], Scripted]] = None,
                 default: Scripted = "", ready=True, delay: float = 0.0,
                 model: str = "scripted-model"):
        self.responses = list(responses or [])
        self.responder = responder
        self.default = default
        self.ready = ready
        self.delay = delay
        self._model = model
        self.calls = []
        self.ready_checks = 0

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def prompts(self) -> List[str]:
        return [prompt for prompt, _ in self.calls]

    async def complete(self, prompt: str, options: Optional[CompletionOptions] = None) -> str:
        self.calls.append((prompt, options))
        if self.delay:
            await asyncio.sleep(self.delay)

        if self.responder is not None:
            result = self.responder(prompt)
        elif self.responses:
            result = self.responses.pop(0)
        else:
            result = self.default

        if isinstance(result, BaseException):
            raise result
        return result

    async def is_ready(self) -> bool:
        self.ready_checks += 1
        if isinstance(self.ready, BaseException):
            raise self.ready
        return self.ready


class FailingPersistRepository(InMemoryRecipeRepository):
    """Repository whose writes always fail."""

    async def persist(self, recipe: Recipe) -> None:
        raise PersistenceError("index is read-only", recipe_id=recipe.id)


class FailingRecoveryRepository(InMemoryRecipeRepository):
    """Repository that cannot answer the id recovery query."""

    async def max_generated_id_suffix(self, prefix: str) -> int:
        raise ConnectionError("search cluster unreachable")


class FailingSearchProvider(RecipeSearchProvider):
    """Search provider that is always down."""

    async def search(self, query: str, filters: Optional[SearchFilters] = None) -> List[Recipe]:
        raise ConnectionError("search cluster unreachable")

    async def search_by_id(self, recipe_id: str) -> Optional[Recipe]:
        raise ConnectionError("search cluster unreachable")


def make_sample_recipes() -> List[Recipe]:
    return [
        Recipe(
            id="r_1001", name="Grilled Chicken Breast Salad", name_ko="닭가슴살 샐러드",
            ingredients_ko=["닭가슴살", "양상추", "방울토마토", "올리브유", "소금"],
            steps_ko=["닭가슴살을 소금으로 밑간합니다.", "팬에 굽습니다.", "채소와 함께 담아냅니다."],
            minutes=20, difficulty="쉬움", tags=["샐러드"], rating=4.5,
        ),
        Recipe(
            id="r_1002", name="Chicken Breast Stir-fry", name_ko="닭가슴살 볶음",
            ingredients_ko=["닭가슴살", "양파", "간장", "마늘", "식용유"],
            minutes=25, difficulty="보통", tags=["볶음"], rating=4.2,
        ),
        Recipe(
            id="r_1003", name="Oven Baked Chicken Breast", name_ko="오븐 닭가슴살 구이",
            ingredients_ko=["닭가슴살", "허브", "올리브유", "후추"],
            steps_ko=["오븐을 200도로 예열합니다.", "닭가슴살에 허브를 바릅니다.", "25분간 굽습니다."],
            minutes=35, difficulty="보통", tags=["오븐", "구이"], rating=4.7,
        ),
        Recipe(
            id="r_2001", name="Kimchi Stew", name_ko="김치찌개",
            ingredients_ko=["김치", "돼지고기", "두부", "대파", "고춧가루"],
            steps_ko=["돼지고기를 볶습니다.", "김치를 넣고 함께 볶습니다.", "물을 붓고 끓입니다."],
            minutes=40, difficulty="보통", tags=["찌개", "한식"], rating=4.8,
        ),
    ]


@pytest.fixture
def sample_recipes():
    return make_sample_recipes()


@pytest.fixture
def repository():
    return InMemoryRecipeRepository(make_sample_recipes())


@pytest.fixture
def fast_config():
    """System config with readiness polling that does not sleep."""
    return SystemConfig(
        orchestrator_config=OrchestratorConfig(
            readiness_attempts=2,
            readiness_interval_seconds=0.0,
            query_deadline_seconds=5.0,
        )
    )
