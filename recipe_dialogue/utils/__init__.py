"""
Utility modules for the recipe dialogue pipeline.
"""

from .logging import setup_logging, get_logger, DialogueEventLogger
from .config_manager import ConfigManager
from .error_handling import (
    RecipeDialogueError,
    ConfigurationError,
    ProviderUnavailable,
    ProviderTimeout,
    MalformedResponse,
    RecipeNotFound,
    PersistenceError,
    ErrorKind,
    Failure,
    Result,
    handle_error,
    kind_of,
)
from .json_cleaning import clean_json_response, parse_json_object
from .deadline import Deadline, run_within

__all__ = [
    "setup_logging",
    "get_logger",
    "DialogueEventLogger",
    "ConfigManager",
    "RecipeDialogueError",
    "ConfigurationError",
    "ProviderUnavailable",
    "ProviderTimeout",
    "MalformedResponse",
    "RecipeNotFound",
    "PersistenceError",
    "ErrorKind",
    "Failure",
    "Result",
    "handle_error",
    "kind_of",
    "clean_json_response",
    "parse_json_object",
    "Deadline",
    "run_within",
]
