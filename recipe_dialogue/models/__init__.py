"""
Core data models for the recipe dialogue pipeline.
"""

from .core import (
    ConversationTurn,
    ConversationContext,
    IntentAnalysis,
    AgentQuery,
    AgentResponse,
    ResponseMetadata,
    AlternativeRecipeRequest,
    RecipeDetail,
    RecipeStep,
    NutritionEstimate,
)

from .recipe import Recipe

from .config import (
    SystemConfig,
    LocalLLMConfig,
    OpenAIConfig,
    RateLimitConfig,
    ClassifierConfig,
    ContextConfig,
    GenerationConfig,
    OrchestratorConfig,
    PromptCacheConfig,
    LoggingConfig,
)

from .enums import (
    UserIntent,
    OrchestratorState,
    ConversationRole,
)

__all__ = [
    # Core models
    "ConversationTurn",
    "ConversationContext",
    "IntentAnalysis",
    "AgentQuery",
    "AgentResponse",
    "ResponseMetadata",
    "AlternativeRecipeRequest",
    "RecipeDetail",
    "RecipeStep",
    "NutritionEstimate",
    "Recipe",
    # Configuration models
    "SystemConfig",
    "LocalLLMConfig",
    "OpenAIConfig",
    "RateLimitConfig",
    "ClassifierConfig",
    "ContextConfig",
    "GenerationConfig",
    "OrchestratorConfig",
    "PromptCacheConfig",
    "LoggingConfig",
    # Enums
    "UserIntent",
    "OrchestratorState",
    "ConversationRole",
]
