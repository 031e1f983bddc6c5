"""
Logging utilities for the recipe dialogue pipeline.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

from ..models.config import LoggingConfig


ROOT_LOGGER_NAME = "recipe_dialogue"


def setup_logging(config: LoggingConfig) -> None:
    """
    Set up logging configuration for the package.

    Args:
        config: Logging configuration settings
    """
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(config.level)

    # Clear any existing handlers
    root_logger.handlers.clear()

    formatter = logging.Formatter(config.format)

    if config.enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(config.level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    # File handler with rotation
    if config.enable_file and config.file_path:
        file_path = Path(config.file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            filename=config.file_path,
            maxBytes=config.max_file_size_mb * 1024 * 1024,
            backupCount=config.backup_count,
            encoding='utf-8'
        )
        file_handler.setLevel(config.level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Prevent propagation to avoid duplicate logs
    root_logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a specific module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance under the package root logger
    """
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


class DialogueEventLogger:
    """
    Specialized logger for intent decisions, fallbacks and pipeline errors.
    """

    def __init__(self, name: str = "events"):
        self.logger = get_logger(name)

    def log_intent_decision(self, decision_data: dict) -> None:
        """Log an intent decision with structured data."""
        self.logger.info(
            f"Intent decision: {decision_data.get('intent')} "
            f"(confidence: {decision_data.get('confidence', 0.0):.2f}, stage: {decision_data.get('stage')})",
            extra={
                "event_type": "intent_decision",
                "data": decision_data
            }
        )

    def log_fallback(self, original_stage: str, fallback_stage: str, reason: str) -> None:
        """Log a fallback event."""
        self.logger.warning(
            f"Fallback triggered: {original_stage} -> {fallback_stage} ({reason})",
            extra={
                "event_type": "fallback",
                "original_stage": original_stage,
                "fallback_stage": fallback_stage,
                "reason": reason
            }
        )

    def log_error(self, error: Exception, context: Optional[dict] = None) -> None:
        """Log an error with optional context."""
        self.logger.error(
            f"Error occurred: {str(error)}",
            extra={
                "event_type": "error",
                "error_type": type(error).__name__,
                "context": context or {}
            },
            exc_info=error
        )
