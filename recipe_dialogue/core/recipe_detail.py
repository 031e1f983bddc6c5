"""
Normalization of recipe records into the detail view.

The servings and nutrition figures are presentation estimates derived from
ingredient counts and keywords, not nutritional data.
"""

from typing import Any, List, Optional, Tuple

from ..models import Recipe, RecipeDetail, RecipeStep, NutritionEstimate


DEFAULT_PREP_TIME = "10분"
DEFAULT_DIFFICULTY = "보통"
DEFAULT_MINUTES_FOR_ESTIMATE = 30

DEFAULT_TIPS = [
    "신선한 재료를 사용하면 더욱 맛있어집니다.",
    "조리 전 재료를 미리 준비해두세요.",
    "적절한 간을 맞추는 것이 중요합니다.",
]

DEFAULT_STEPS = [
    RecipeStep(1, "재료를 준비합니다.", "5분", ["모든 재료를 미리 손질해두면 요리가 수월합니다."]),
    RecipeStep(2, "조리를 시작합니다.", "20분", ["중간 불에서 천천히 조리하는 것이 좋습니다."]),
    RecipeStep(3, "완성하여 맛있게 드세요!", "2분", ["따뜻할 때 드시면 더욱 맛있습니다."]),
]

PROTEIN_KEYWORDS = ["닭", "고기", "계란", "생선", "두부", "콩",
                    "chicken", "beef", "pork", "egg", "fish", "tofu", "bean"]
CARB_KEYWORDS = ["밥", "면", "빵", "감자", "고구마", "밀가루",
                 "rice", "noodle", "pasta", "bread", "potato", "flour"]
FAT_KEYWORDS = ["기름", "버터", "치즈", "견과", "아보카도", "올리브",
                "oil", "butter", "cheese", "nut", "avocado", "olive"]


def _count_hits(ingredients: List[str], keywords: List[str]) -> int:
    return sum(1 for ingredient in ingredients if any(k in ingredient.lower() for k in keywords))


def estimate_servings(ingredient_count: int, minutes: Optional[int]) -> Tuple[str, int]:
    """Return (display text, numeric midpoint) for the serving estimate."""
    cooking_minutes = minutes or DEFAULT_MINUTES_FOR_ESTIMATE
    if ingredient_count >= 8 or cooking_minutes >= 180:
        return "4-6인분", 5
    if ingredient_count >= 5 or cooking_minutes >= 60:
        return "3-4인분", 3
    return "2-3인분", 2


def estimate_nutrition(ingredients: List[str], ingredient_count: int) -> NutritionEstimate:
    protein = max(5, _count_hits(ingredients, PROTEIN_KEYWORDS) * 8)
    carbs = max(10, _count_hits(ingredients, CARB_KEYWORDS) * 15 + ingredient_count * 3)
    fat = max(3, _count_hits(ingredients, FAT_KEYWORDS) * 5 + ingredient_count)
    return NutritionEstimate(
        calories=f"{150 + ingredient_count * 25}kcal",
        protein=f"{protein}g",
        carbs=f"{carbs}g",
        fat=f"{fat}g",
    )


def _nutrition_from_record(nutrition: dict, fallback: NutritionEstimate) -> NutritionEstimate:
    def pick(*keys: str) -> Optional[str]:
        for key in keys:
            value = nutrition.get(key)
            if value not in (None, ""):
                return str(value)
        return None

    return NutritionEstimate(
        calories=pick("calories") or fallback.calories,
        protein=pick("protein") or fallback.protein,
        carbs=pick("carbs", "carbohydrates") or fallback.carbs,
        fat=pick("fat", "fats") or fallback.fat,
        estimated=False,
    )


def _servings_from_record(servings: Any) -> Optional[Tuple[str, int]]:
    if servings in (None, "", 0):
        return None
    if isinstance(servings, bool):
        return None
    if isinstance(servings, (int, float)):
        return f"{int(servings)}인분", int(servings)
    text = str(servings)
    digits = "".join(ch for ch in text if ch.isdigit())
    return text, int(digits[0]) if digits else 2


def to_recipe_detail(recipe: Recipe) -> RecipeDetail:
    """
    Convert a recipe record into the detail view served to clients.

    Args:
        recipe: Indexed or generated recipe

    Returns:
        RecipeDetail with every field populated
    """
    ingredients = list(recipe.ingredients_ko or recipe.ingredients)
    raw_steps = recipe.steps_ko or recipe.steps
    if raw_steps:
        steps = [RecipeStep(step_number=i + 1, instruction=step) for i, step in enumerate(raw_steps)]
    else:
        steps = [RecipeStep(s.step_number, s.instruction, s.estimated_time, list(s.tips)) for s in DEFAULT_STEPS]

    ingredient_count = recipe.n_ingredients or len(ingredients)
    minutes = recipe.minutes if isinstance(recipe.minutes, int) and recipe.minutes > 0 else None

    servings = _servings_from_record(recipe.servings) or estimate_servings(ingredient_count, minutes)

    estimate = estimate_nutrition(ingredients, len(ingredients))
    nutrition = _nutrition_from_record(recipe.nutrition, estimate) if recipe.nutrition else estimate

    return RecipeDetail(
        recipe_id=recipe.id,
        title=recipe.display_name or "레시피",
        description=recipe.description_ko or recipe.description,
        cooking_time=f"{minutes}분" if minutes else "N/A",
        prep_time=DEFAULT_PREP_TIME,
        minutes=minutes,
        difficulty=recipe.difficulty or DEFAULT_DIFFICULTY,
        servings=servings[1],
        servings_text=servings[0],
        tags=list(recipe.tags),
        ingredients=ingredients,
        ingredient_count=ingredient_count,
        steps=steps,
        tips=list(DEFAULT_TIPS),
        nutrition=nutrition,
        rating=recipe.rating,
    )
