"""
Error handling utilities and custom exceptions for the recipe dialogue pipeline.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar


T = TypeVar("T")


class ErrorKind(Enum):
    """Failure classes every pipeline stage maps its errors onto."""
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    PROVIDER_TIMEOUT = "provider_timeout"
    MALFORMED_RESPONSE = "malformed_response"
    RECIPE_NOT_FOUND = "recipe_not_found"
    PERSISTENCE_ERROR = "persistence_error"
    INTERNAL = "internal"


class RecipeDialogueError(Exception):
    """Base exception for all recipe dialogue errors."""

    kind = ErrorKind.INTERNAL

    def __init__(self, message: str, error_code: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}


class ConfigurationError(RecipeDialogueError):
    """Raised when there are configuration-related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        super().__init__(message, error_code="CONFIG_ERROR", **kwargs)
        self.config_key = config_key


class ProviderUnavailable(RecipeDialogueError):
    """Raised when the text-completion provider cannot serve a request."""

    kind = ErrorKind.PROVIDER_UNAVAILABLE

    def __init__(self, message: str, provider: Optional[str] = None, status_code: Optional[int] = None, **kwargs):
        super().__init__(message, error_code="PROVIDER_UNAVAILABLE", **kwargs)
        self.provider = provider
        self.status_code = status_code


class ProviderTimeout(RecipeDialogueError):
    """Raised when a provider call exceeds its time budget."""

    kind = ErrorKind.PROVIDER_TIMEOUT

    def __init__(self, message: str, timeout_seconds: Optional[float] = None, **kwargs):
        super().__init__(message, error_code="PROVIDER_TIMEOUT", **kwargs)
        self.timeout_seconds = timeout_seconds


class MalformedResponse(RecipeDialogueError):
    """Raised when a provider response cannot be parsed after cleaning."""

    kind = ErrorKind.MALFORMED_RESPONSE

    def __init__(self, message: str, raw_response: Optional[str] = None, **kwargs):
        super().__init__(message, error_code="MALFORMED_RESPONSE", **kwargs)
        self.raw_response = raw_response


class RecipeNotFound(RecipeDialogueError):
    """Raised when a recipe lookup yields nothing."""

    kind = ErrorKind.RECIPE_NOT_FOUND

    def __init__(self, message: str, query: Optional[str] = None, **kwargs):
        super().__init__(message, error_code="RECIPE_NOT_FOUND", **kwargs)
        self.query = query


class PersistenceError(RecipeDialogueError):
    """Raised when the artifact store fails to persist a recipe."""

    kind = ErrorKind.PERSISTENCE_ERROR

    def __init__(self, message: str, recipe_id: Optional[str] = None, **kwargs):
        super().__init__(message, error_code="PERSISTENCE_ERROR", **kwargs)
        self.recipe_id = recipe_id


@dataclass(frozen=True)
class Failure:
    """Describes why a stage could not produce a value."""
    kind: ErrorKind
    message: str = ""


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Either a value or a failure.

    Stages return a Result instead of raising so the caller can decide
    which degraded value to substitute.
    """
    value: Optional[T] = None
    error: Optional[Failure] = None

    @classmethod
    def ok(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str = "") -> "Result[T]":
        return cls(error=Failure(kind=kind, message=message))

    @classmethod
    def from_exception(cls, error: Exception) -> "Result[T]":
        converted = handle_error(error)
        return cls.fail(converted.kind, converted.message)

    @property
    def is_ok(self) -> bool:
        return self.error is None

    def unwrap_or(self, default: T) -> T:
        return self.value if self.error is None else default


def handle_error(error: Exception, logger=None, context: Optional[Dict[str, Any]] = None) -> RecipeDialogueError:
    """
    Convert generic exceptions to RecipeDialogueError instances.

    Args:
        error: The original exception
        logger: Optional DialogueEventLogger for error reporting
        context: Additional context information

    Returns:
        RecipeDialogueError instance
    """
    if isinstance(error, RecipeDialogueError):
        converted = error
    elif isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        converted = ProviderTimeout(f"Operation timed out: {str(error) or type(error).__name__}", context=context)
    elif isinstance(error, ConnectionError):
        converted = ProviderUnavailable(str(error), context=context)
    elif isinstance(error, ValueError):
        converted = MalformedResponse(str(error), context=context)
    else:
        converted = RecipeDialogueError(str(error) or type(error).__name__, context=context)

    if logger:
        logger.log_error(converted, context)

    return converted


def kind_of(error: Exception) -> ErrorKind:
    """Map any exception onto the failure taxonomy."""
    return handle_error(error).kind
