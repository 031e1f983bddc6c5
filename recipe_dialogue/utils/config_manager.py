"""
Configuration management for the recipe dialogue pipeline.
"""

import json
from dataclasses import asdict
from pathlib import Path
from typing import Optional, Dict, Any
import logging

from ..models.config import (
    SystemConfig, LocalLLMConfig, OpenAIConfig, RateLimitConfig, ClassifierConfig,
    ContextConfig, GenerationConfig, OrchestratorConfig, PromptCacheConfig, LoggingConfig,
)
from .error_handling import ConfigurationError


SUPPORTED_PROVIDERS = ("ollama", "openai")
SUPPORTED_ID_STRATEGIES = ("local_counter", "store_sequence")


class ConfigManager:
    """
    Manages system configuration loading, validation, and updates.
    """

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or "recipe_dialogue.json"
        self._config: Optional[SystemConfig] = None
        self.logger = logging.getLogger(__name__)

    def load_config(self) -> SystemConfig:
        """
        Load configuration from file or create default configuration.

        Returns:
            SystemConfig instance

        Raises:
            ConfigurationError: If configuration loading fails
        """
        try:
            if Path(self.config_path).exists():
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    config_data = json.load(f)
                config = self._dict_to_config(config_data)
                self.logger.info(f"Configuration loaded from {self.config_path}")
            else:
                config = SystemConfig()
                self.save_config(config)
                self.logger.info("Default configuration created")

            self._validate_config(config)
            self._config = config
            return config

        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError(f"Failed to load configuration: {str(e)}")

    def save_config(self, config: Optional[SystemConfig] = None) -> None:
        """
        Save configuration to file.

        Args:
            config: Configuration to save (uses current config if None)

        Raises:
            ConfigurationError: If configuration saving fails
        """
        config_to_save = config or self._config
        if not config_to_save:
            raise ConfigurationError("No configuration to save")

        try:
            config_dict = self._config_to_dict(config_to_save)

            Path(self.config_path).parent.mkdir(parents=True, exist_ok=True)

            with open(self.config_path, 'w', encoding='utf-8') as f:
                json.dump(config_dict, f, indent=2, ensure_ascii=False, default=str)

            self.logger.info(f"Configuration saved to {self.config_path}")

        except Exception as e:
            raise ConfigurationError(f"Failed to save configuration: {str(e)}")

    def get_config(self) -> SystemConfig:
        """
        Get current configuration, loading if necessary.

        Returns:
            SystemConfig instance
        """
        if self._config is None:
            self._config = self.load_config()
        return self._config

    def update_config(self, updates: Dict[str, Any]) -> SystemConfig:
        """
        Update configuration with new values.

        Args:
            updates: Dictionary of configuration updates

        Returns:
            Updated SystemConfig instance
        """
        current_config = self.get_config()
        config_dict = self._config_to_dict(current_config)

        self._deep_update(config_dict, updates)

        updated_config = self._dict_to_config(config_dict)
        self._validate_config(updated_config)

        self._config = updated_config
        self.save_config()

        return updated_config

    def _validate_config(self, config: SystemConfig) -> None:
        """
        Validate configuration settings.

        Args:
            config: Configuration to validate

        Raises:
            ConfigurationError: If validation fails
        """
        if config.provider not in SUPPORTED_PROVIDERS:
            raise ConfigurationError(
                f"provider must be one of {SUPPORTED_PROVIDERS}, got: {config.provider}",
                config_key="provider"
            )

        if config.provider == "openai" and not config.openai_config.api_key:
            self.logger.warning("OpenAI API key not set; the SDK will fall back to OPENAI_API_KEY")

        if config.local_llm_config.timeout_seconds <= 0:
            raise ConfigurationError("Local LLM timeout must be positive", config_key="local_llm_config.timeout_seconds")

        if config.openai_config.timeout_seconds <= 0:
            raise ConfigurationError("OpenAI timeout must be positive", config_key="openai_config.timeout_seconds")

        temperatures = {
            "classifier_config.temperature": config.classifier_config.temperature,
            "context_config.temperature": config.context_config.temperature,
            "generation_config.temperature": config.generation_config.temperature,
            "orchestrator_config.chat_temperature": config.orchestrator_config.chat_temperature,
        }
        for key, value in temperatures.items():
            if not 0 <= value <= 1:
                raise ConfigurationError(f"{key} must be between 0 and 1, got: {value}", config_key=key)

        confidences = {
            "classifier_config.heuristic_confidence": config.classifier_config.heuristic_confidence,
            "classifier_config.exhausted_confidence": config.classifier_config.exhausted_confidence,
            "classifier_config.llm_default_confidence": config.classifier_config.llm_default_confidence,
            "classifier_config.minimal_default_confidence": config.classifier_config.minimal_default_confidence,
        }
        for key, value in confidences.items():
            if not 0 <= value <= 1:
                raise ConfigurationError(f"{key} must be between 0 and 1, got: {value}", config_key=key)

        if config.orchestrator_config.readiness_attempts < 1:
            raise ConfigurationError("Readiness attempts must be at least 1",
                                     config_key="orchestrator_config.readiness_attempts")

        if config.orchestrator_config.query_deadline_seconds <= 0:
            raise ConfigurationError("Query deadline must be positive",
                                     config_key="orchestrator_config.query_deadline_seconds")

        if config.context_config.history_window < 1:
            raise ConfigurationError("History window must be at least 1", config_key="context_config.history_window")

        if config.generation_config.id_strategy not in SUPPORTED_ID_STRATEGIES:
            raise ConfigurationError(
                f"id_strategy must be one of {SUPPORTED_ID_STRATEGIES}, got: {config.generation_config.id_strategy}",
                config_key="generation_config.id_strategy"
            )

        if not config.generation_config.id_prefix:
            raise ConfigurationError("Generated id prefix must not be empty", config_key="generation_config.id_prefix")

        if config.prompt_cache_config.max_size < 1 or config.prompt_cache_config.ttl_seconds <= 0:
            raise ConfigurationError("Prompt cache size and TTL must be positive", config_key="prompt_cache_config")

    def _dict_to_config(self, config_dict: Dict[str, Any]) -> SystemConfig:
        """Convert dictionary to SystemConfig object."""
        openai_dict = dict(config_dict.get('openai_config', {}))
        rate_limits = RateLimitConfig(**openai_dict.pop('rate_limits', {}))
        return SystemConfig(
            provider=config_dict.get('provider', 'ollama'),
            local_llm_config=LocalLLMConfig(**config_dict.get('local_llm_config', {})),
            openai_config=OpenAIConfig(rate_limits=rate_limits, **openai_dict),
            classifier_config=ClassifierConfig(**config_dict.get('classifier_config', {})),
            context_config=ContextConfig(**config_dict.get('context_config', {})),
            generation_config=GenerationConfig(**config_dict.get('generation_config', {})),
            orchestrator_config=OrchestratorConfig(**config_dict.get('orchestrator_config', {})),
            prompt_cache_config=PromptCacheConfig(**config_dict.get('prompt_cache_config', {})),
            logging_config=LoggingConfig(**config_dict.get('logging_config', {})),
            debug_mode=config_dict.get('debug_mode', False),
            metadata=config_dict.get('metadata', {})
        )

    def _config_to_dict(self, config: SystemConfig) -> Dict[str, Any]:
        """Convert SystemConfig object to dictionary."""
        return asdict(config)

    def _deep_update(self, base_dict: Dict[str, Any], updates: Dict[str, Any]) -> None:
        """Recursively update nested dictionary."""
        for key, value in updates.items():
            if key in base_dict and isinstance(base_dict[key], dict) and isinstance(value, dict):
                self._deep_update(base_dict[key], value)
            else:
                base_dict[key] = value
