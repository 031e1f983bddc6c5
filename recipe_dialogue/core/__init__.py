"""
Core components of the recipe dialogue pipeline.
"""

from .orchestrator import RecipeDialogueOrchestrator
from .classifier import (
    IntentClassifier,
    IntentStrategy,
    PrimaryLLMStrategy,
    SimplifiedLLMStrategy,
    HeuristicStrategy,
    INTENT_ALIASES,
    normalize_intent,
    extract_missing_items,
)
from .context import ContextAnalyzer, PatternContextExtractor
from .generator import (
    AlternativeRecipeGenerator,
    IdAllocator,
    LocalCounterAllocator,
    StoreSequenceAllocator,
)
from .interfaces import (
    TextCompletionClient,
    CompletionOptions,
    OllamaCompletionClient,
    OpenAICompletionClient,
    create_completion_client,
)
from .prompts import PromptCache, PromptLibrary
from .recipe_detail import to_recipe_detail
from .stores import RecipeSearchProvider, ArtifactStore, SearchFilters, InMemoryRecipeRepository

__all__ = [
    "RecipeDialogueOrchestrator",
    "IntentClassifier",
    "IntentStrategy",
    "PrimaryLLMStrategy",
    "SimplifiedLLMStrategy",
    "HeuristicStrategy",
    "INTENT_ALIASES",
    "normalize_intent",
    "extract_missing_items",
    "ContextAnalyzer",
    "PatternContextExtractor",
    "AlternativeRecipeGenerator",
    "IdAllocator",
    "LocalCounterAllocator",
    "StoreSequenceAllocator",
    "TextCompletionClient",
    "CompletionOptions",
    "OllamaCompletionClient",
    "OpenAICompletionClient",
    "create_completion_client",
    "PromptCache",
    "PromptLibrary",
    "to_recipe_detail",
    "RecipeSearchProvider",
    "ArtifactStore",
    "SearchFilters",
    "InMemoryRecipeRepository",
]
