"""
Enumerations for the recipe dialogue pipeline.
"""

from enum import Enum, auto


class UserIntent(Enum):
    """Classified purpose of a user message."""
    RECIPE_LIST = "recipe_list"
    RECIPE_DETAIL = "recipe_detail"
    ALTERNATIVE_RECIPE = "alternative_recipe"
    GENERAL_CHAT = "general_chat"


class OrchestratorState(Enum):
    """Lifecycle states of the dialogue orchestrator."""
    STARTING = auto()
    READY = auto()
    DEGRADED = auto()


class ConversationRole(Enum):
    """Speakers in a conversation history."""
    USER = "user"
    ASSISTANT = "assistant"
