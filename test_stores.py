"""
Tests for the in-memory recipe repository.
"""

import asyncio
import json

import pytest

from conftest import make_sample_recipes
from recipe_dialogue.core.stores import InMemoryRecipeRepository, SearchFilters, tokenize, ALTERNATIVE_TAG
from recipe_dialogue.models import Recipe
from recipe_dialogue.utils.error_handling import PersistenceError


class TestSearch:
    def test_stop_words_are_ignored(self, repository):
        results = asyncio.run(repository.search("김치찌개 레시피 알려줘"))

        assert [r.id for r in results] == ["r_2001"]

    def test_limit_and_rating_order(self, repository):
        results = asyncio.run(repository.search("닭가슴살", SearchFilters(limit=2)))

        assert [r.id for r in results] == ["r_1003", "r_1001"]

    def test_ingredient_match_scores_below_name_match(self, repository):
        results = asyncio.run(repository.search("두부 김치찌개"))

        assert results[0].id == "r_2001"

    def test_particle_suffix_still_matches(self, repository):
        results = asyncio.run(repository.search("두부로"))

        assert [r.id for r in results] == ["r_2001"]

    def test_allergy_exclusion(self, repository):
        results = asyncio.run(repository.search("닭가슴살", SearchFilters(allergies=["간장"])))

        assert "r_1002" not in [r.id for r in results]

    def test_empty_query_matches_nothing(self, repository):
        assert asyncio.run(repository.search("추천해줘")) == []

    def test_tokenize(self):
        assert tokenize("Kimchi, 찌개!") == ["kimchi", "찌개"]


class TestArtifactStore:
    def test_persist_requires_id(self, repository):
        with pytest.raises(PersistenceError):
            asyncio.run(repository.persist(Recipe(id="")))

    def test_find_generated_alternative_filters_by_original(self, repository):
        generated = Recipe(
            id="make_ai_1", name_ko="팬 닭가슴살 구이", is_ai_generated=True,
            original_recipe_id="r_1003", tags=["AI생성", ALTERNATIVE_TAG], missing_items=["오븐"],
        )
        asyncio.run(repository.persist(generated))

        assert asyncio.run(repository.find_generated_alternative("r_1003", ["오븐"])) is generated
        assert asyncio.run(repository.find_generated_alternative("r_1001", ["오븐"])) is None

    def test_untagged_recipe_is_not_a_candidate(self, repository):
        asyncio.run(repository.persist(Recipe(
            id="make_ai_1", is_ai_generated=True, original_recipe_id="r_1003", missing_items=["오븐"],
        )))

        assert asyncio.run(repository.find_generated_alternative("r_1003", ["오븐"])) is None

    def test_max_suffix_ignores_other_ids(self):
        repository = InMemoryRecipeRepository(make_sample_recipes() + [
            Recipe(id="make_ai_12"), Recipe(id="make_ai_x"), Recipe(id="other_99"),
        ])

        assert asyncio.run(repository.max_generated_id_suffix("make_ai_")) == 12

    def test_sequence_is_unique_under_concurrency(self, repository):
        async def reserve_many():
            return await asyncio.gather(*[repository.next_generated_sequence("make_ai_") for _ in range(20)])

        values = asyncio.run(reserve_many())

        assert sorted(values) == list(range(1, 21))


class TestSeedFile:
    def test_loads_wrapped_camel_case_records(self, tmp_path):
        path = tmp_path / "recipes.json"
        path.write_text(json.dumps({"recipes": [
            {"id": "r_1", "nameKo": "된장찌개", "ingredientsKo": ["된장", "두부"], "averageRating": 4.1},
        ]}, ensure_ascii=False), encoding="utf-8")

        repository = InMemoryRecipeRepository.from_json_file(str(path))

        assert len(repository) == 1
        recipe = repository.all_recipes()[0]
        assert recipe.name_ko == "된장찌개"
        assert recipe.rating == 4.1
