"""
Tests for configuration management and logging setup.
"""

import json
import logging
import logging.handlers

import pytest

from recipe_dialogue.models import LoggingConfig, SystemConfig
from recipe_dialogue.utils import ConfigManager, ConfigurationError, setup_logging, get_logger
from recipe_dialogue.utils.logging import ROOT_LOGGER_NAME


def write_config(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


class TestConfigManager:
    def test_missing_file_creates_defaults(self, tmp_path):
        path = tmp_path / "config" / "recipe_dialogue.json"
        manager = ConfigManager(str(path))

        config = manager.load_config()

        assert path.exists()
        assert config.provider == "ollama"
        assert config.local_llm_config.model_path == "gemma3n:e4b"
        assert config.orchestrator_config.readiness_attempts == 10
        assert config.generation_config.id_prefix == "make_ai_"
        assert json.loads(path.read_text(encoding="utf-8"))["context_config"]["history_window"] == 6

    def test_update_is_deep_and_persisted(self, tmp_path):
        path = str(tmp_path / "recipe_dialogue.json")
        manager = ConfigManager(path)
        manager.load_config()

        manager.update_config({"orchestrator_config": {"top_n_recipes": 5}})
        reloaded = ConfigManager(path).load_config()

        assert reloaded.orchestrator_config.top_n_recipes == 5
        assert reloaded.orchestrator_config.search_limit == 10

    def test_nested_rate_limits_load(self, tmp_path):
        path = write_config(tmp_path / "c.json", {
            "provider": "openai",
            "openai_config": {"api_key": "test-key", "rate_limits": {"max_retries": 5}},
        })

        config = ConfigManager(path).load_config()

        assert config.openai_config.api_key == "test-key"
        assert config.openai_config.rate_limits.max_retries == 5
        assert config.openai_config.rate_limits.backoff_base_delay == 1.0

    @pytest.mark.parametrize("data", [
        {"provider": "grpc"},
        {"classifier_config": {"temperature": 1.5}},
        {"classifier_config": {"exhausted_confidence": -0.1}},
        {"orchestrator_config": {"readiness_attempts": 0}},
        {"orchestrator_config": {"query_deadline_seconds": 0}},
        {"context_config": {"history_window": 0}},
        {"generation_config": {"id_strategy": "uuid"}},
        {"generation_config": {"id_prefix": ""}},
        {"prompt_cache_config": {"max_size": 0}},
        {"local_llm_config": {"timeout_seconds": -1}},
    ])
    def test_invalid_values_are_rejected(self, tmp_path, data):
        path = write_config(tmp_path / "bad.json", data)

        with pytest.raises(ConfigurationError):
            ConfigManager(path).load_config()

    def test_unknown_field_is_a_configuration_error(self, tmp_path):
        path = write_config(tmp_path / "bad.json", {"context_config": {"window": 3}})

        with pytest.raises(ConfigurationError):
            ConfigManager(path).load_config()

    def test_invalid_update_is_not_applied(self, tmp_path):
        manager = ConfigManager(str(tmp_path / "c.json"))
        manager.load_config()

        with pytest.raises(ConfigurationError):
            manager.update_config({"provider": "grpc"})

        assert manager.get_config().provider == "ollama"

    def test_save_without_config_fails(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ConfigManager(str(tmp_path / "c.json")).save_config()


class TestLogging:
    def test_setup_logging_with_rotating_file(self, tmp_path):
        log_path = tmp_path / "logs" / "dialogue.log"
        root = logging.getLogger(ROOT_LOGGER_NAME)
        try:
            setup_logging(LoggingConfig(file_path=str(log_path), enable_console=False, level=logging.DEBUG))

            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0], logging.handlers.RotatingFileHandler)
            assert root.propagate is False

            get_logger("tests").info("hello log")
            root.handlers[0].flush()
            assert "hello log" in log_path.read_text(encoding="utf-8")
        finally:
            for handler in list(root.handlers):
                handler.close()
            root.handlers.clear()
            root.propagate = True
            root.setLevel(logging.NOTSET)

    def test_get_logger_namespaces_under_package(self):
        assert get_logger("tests").name == f"{ROOT_LOGGER_NAME}.tests"
        assert get_logger("recipe_dialogue.core.context").name == "recipe_dialogue.core.context"

    def test_default_config_logs_to_file(self):
        config = SystemConfig()

        assert config.logging_config.enable_file is True
        assert config.logging_config.file_path == "recipe_dialogue.log"
