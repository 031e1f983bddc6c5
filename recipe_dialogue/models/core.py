"""
Core data models for request processing and dialogue orchestration.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Any, Optional, List

from .enums import UserIntent, ConversationRole
from .recipe import Recipe


@dataclass(frozen=True)
class ConversationTurn:
    """One message of a conversation history."""
    role: str
    content: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationTurn":
        role = str(data.get("role", ConversationRole.USER.value)).lower()
        if role not in (ConversationRole.USER.value, ConversationRole.ASSISTANT.value):
            role = ConversationRole.USER.value
        return cls(role=role, content=str(data.get("content", "")))

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class ConversationContext:
    """Short-term conversational memory reconstructed for one request."""
    has_context: bool = False
    last_recipes: List[str] = field(default_factory=list)
    user_references: List[str] = field(default_factory=list)
    conversation_summary: str = ""

    @classmethod
    def empty(cls) -> "ConversationContext":
        return cls()


@dataclass
class IntentAnalysis:
    """Classification result for a user message."""
    intent: UserIntent
    confidence: float
    reasoning: str = ""
    needs_alternative: bool = False
    missing_items: List[str] = field(default_factory=list)
    related_recipe: Optional[str] = None
    stage: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "intent": self.intent.value,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "needs_alternative": self.needs_alternative,
            "missing_items": list(self.missing_items),
            "related_recipe": self.related_recipe,
            "stage": self.stage,
        }


@dataclass
class AgentQuery:
    """A user message entering the dialogue pipeline."""
    message: str
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    conversation_history: List[ConversationTurn] = field(default_factory=list)
    user_allergies: List[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AgentQuery":
        history = [
            turn if isinstance(turn, ConversationTurn) else ConversationTurn.from_dict(turn)
            for turn in data.get("conversation_history") or data.get("conversationHistory") or []
        ]
        return cls(
            message=str(data.get("message", "")),
            user_id=data.get("user_id") or data.get("userId"),
            session_id=data.get("session_id") or data.get("sessionId"),
            conversation_history=history,
            user_allergies=list(data.get("user_allergies") or data.get("userAllergies") or []),
        )


@dataclass
class AlternativeRecipeRequest:
    """Input to the alternative recipe generator."""
    original_recipe: Recipe
    missing_items: List[str] = field(default_factory=list)
    user_message: str = ""
    user_id: Optional[str] = None


@dataclass
class RecipeStep:
    """A numbered cooking step in the detail view."""
    step_number: int
    instruction: str
    estimated_time: Optional[str] = None
    tips: List[str] = field(default_factory=list)


@dataclass
class NutritionEstimate:
    """Nutrition figures as display strings, e.g. ``"275kcal"``."""
    calories: str
    protein: str
    carbs: str
    fat: str
    estimated: bool = True


@dataclass
class RecipeDetail:
    """Normalized recipe view served for detail requests."""
    recipe_id: str
    title: str
    description: str
    cooking_time: str
    prep_time: str
    minutes: Optional[int]
    difficulty: str
    servings: int
    servings_text: str
    tags: List[str]
    ingredients: List[str]
    ingredient_count: int
    steps: List[RecipeStep]
    tips: List[str]
    nutrition: NutritionEstimate
    rating: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recipe_id": self.recipe_id,
            "title": self.title,
            "description": self.description,
            "cooking_time": self.cooking_time,
            "prep_time": self.prep_time,
            "minutes": self.minutes,
            "difficulty": self.difficulty,
            "servings": self.servings,
            "servings_text": self.servings_text,
            "tags": list(self.tags),
            "ingredients": list(self.ingredients),
            "ingredient_count": self.ingredient_count,
            "steps": [step.__dict__.copy() for step in self.steps],
            "tips": list(self.tips),
            "nutrition": self.nutrition.__dict__.copy(),
            "rating": self.rating,
        }


@dataclass
class ResponseMetadata:
    """Diagnostics attached to every response."""
    processing_time_ms: float = 0.0
    tools_used: List[str] = field(default_factory=list)
    confidence: float = 0.1
    response_type: str = ""
    intent: str = ""


@dataclass
class AgentResponse:
    """Response produced by the dialogue orchestrator."""
    message: str
    recipes: List[Recipe] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    metadata: ResponseMetadata = field(default_factory=ResponseMetadata)
    recipe_detail: Optional[RecipeDetail] = None
    degraded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "recipes": [recipe.to_dict() for recipe in self.recipes],
            "suggestions": list(self.suggestions),
            "recipe_detail": self.recipe_detail.to_dict() if self.recipe_detail else None,
            "metadata": {
                "processing_time_ms": self.metadata.processing_time_ms,
                "tools_used": list(self.metadata.tools_used),
                "confidence": self.metadata.confidence,
                "response_type": self.metadata.response_type,
                "intent": self.metadata.intent,
            },
        }
