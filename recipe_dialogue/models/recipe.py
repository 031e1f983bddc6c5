"""
Recipe data models.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional


# Provider documents use camelCase field names.
_CAMEL_CASE_ALIASES = {
    "nameKo": "name_ko",
    "descriptionKo": "description_ko",
    "ingredientsKo": "ingredients_ko",
    "stepsKo": "steps_ko",
    "nIngredients": "n_ingredients",
    "originalRecipeId": "original_recipe_id",
    "isAiGenerated": "is_ai_generated",
    "generationReason": "generation_reason",
    "generationContext": "generation_context",
    "generatedAt": "generated_at",
    "missingItems": "missing_items",
    "averageRating": "rating",
    "nutritionInfo": "nutrition",
}


@dataclass
class Recipe:
    """A recipe record, either indexed or AI-generated."""
    id: str
    name: str = ""
    name_ko: str = ""
    description: str = ""
    description_ko: str = ""
    ingredients: List[str] = field(default_factory=list)
    ingredients_ko: List[str] = field(default_factory=list)
    steps: List[str] = field(default_factory=list)
    steps_ko: List[str] = field(default_factory=list)
    minutes: Optional[int] = None
    difficulty: str = ""
    tags: List[str] = field(default_factory=list)
    n_ingredients: Optional[int] = None
    servings: Optional[Any] = None
    rating: Optional[float] = None
    nutrition: Dict[str, Any] = field(default_factory=dict)
    # Generated variants only
    original_recipe_id: Optional[str] = None
    is_ai_generated: bool = False
    generation_reason: str = ""
    generation_context: str = ""
    generated_at: Optional[str] = None
    missing_items: List[str] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.name_ko or self.name or self.id

    @property
    def ingredient_count(self) -> int:
        if self.n_ingredients:
            return self.n_ingredients
        return len(self.ingredients_ko or self.ingredients)

    def searchable_text(self) -> str:
        """Lower-cased text the in-memory index matches against."""
        parts = [self.name, self.name_ko, self.description, self.description_ko]
        parts.extend(self.tags)
        parts.extend(self.ingredients)
        parts.extend(self.ingredients_ko)
        return " ".join(p for p in parts if p).lower()

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Recipe":
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in data.items():
            key = _CAMEL_CASE_ALIASES.get(key, key)
            if key in known and value is not None:
                values[key] = value
        values["id"] = str(data.get("id", ""))
        return cls(**values)
