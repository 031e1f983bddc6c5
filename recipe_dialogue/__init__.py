"""
Recipe Dialogue

A conversational recipe-recommendation backend that reconstructs context,
classifies intent through an unreliable LLM, dispatches to intent-specific
handlers and generates alternative recipes.
"""

__version__ = "0.1.0"
__author__ = "Recipe Dialogue"

from .models import (
    AgentQuery,
    AgentResponse,
    ConversationTurn,
    Recipe,
    UserIntent,
    SystemConfig,
    LocalLLMConfig,
    OpenAIConfig,
)

__all__ = [
    "AgentQuery",
    "AgentResponse",
    "ConversationTurn",
    "Recipe",
    "UserIntent",
    "SystemConfig",
    "LocalLLMConfig",
    "OpenAIConfig",
]
