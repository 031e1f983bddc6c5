"""
Configuration models for the recipe dialogue pipeline.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional
import logging


@dataclass
class RateLimitConfig:
    """Configuration for API retry backoff."""
    backoff_base_delay: float = 1.0
    backoff_max_delay: float = 60.0
    max_retries: int = 3


@dataclass
class LocalLLMConfig:
    """Configuration for the Ollama text-completion backend."""
    model_path: str = "gemma3n:e4b"
    base_url: str = "http://localhost:11434"
    max_context_length: int = 4096
    max_tokens: int = 4000
    timeout_seconds: int = 30
    pull_missing_model: bool = True
    suppress_links: bool = True


@dataclass
class OpenAIConfig:
    """Configuration for the OpenAI text-completion backend."""
    api_key: str = ""
    model: str = "gpt-4o-mini"
    base_url: Optional[str] = None
    rate_limits: RateLimitConfig = field(default_factory=RateLimitConfig)
    timeout_seconds: int = 60
    max_tokens: int = 1000


@dataclass
class ClassifierConfig:
    """Settings for the intent classification chain."""
    temperature: float = 0.1
    max_tokens: int = 512
    llm_default_confidence: float = 0.7
    minimal_default_confidence: float = 0.5
    heuristic_confidence: float = 0.7
    exhausted_confidence: float = 0.3
    missing_item_keywords: List[str] = field(default_factory=lambda: [
        "없어서", "없으면", "없는데", "대신"
    ])


@dataclass
class ContextConfig:
    """Settings for conversation context reconstruction."""
    history_window: int = 6
    temperature: float = 0.1
    max_tokens: int = 512
    max_fallback_recipes: int = 3


@dataclass
class GenerationConfig:
    """Settings for alternative recipe generation."""
    temperature: float = 0.3
    max_tokens: int = 2048
    id_prefix: str = "make_ai_"
    id_strategy: str = "local_counter"  # or "store_sequence"
    dedup_candidate_limit: int = 10


@dataclass
class OrchestratorConfig:
    """Settings for the dialogue orchestrator."""
    readiness_attempts: int = 10
    readiness_interval_seconds: float = 1.0
    query_deadline_seconds: float = 90.0
    top_n_recipes: int = 3
    search_limit: int = 10
    chat_temperature: float = 0.7
    chat_max_tokens: int = 800
    max_decision_log_entries: int = 1000


@dataclass
class PromptCacheConfig:
    """Settings for the prompt skeleton cache."""
    max_size: int = 100
    ttl_seconds: float = 300.0


@dataclass
class LoggingConfig:
    """Configuration for system logging."""
    level: int = logging.INFO
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file_path: Optional[str] = "recipe_dialogue.log"
    max_file_size_mb: int = 100
    backup_count: int = 5
    enable_console: bool = True
    enable_file: bool = True


@dataclass
class SystemConfig:
    """Main system configuration."""
    provider: str = "ollama"  # or "openai"
    local_llm_config: LocalLLMConfig = field(default_factory=LocalLLMConfig)
    openai_config: OpenAIConfig = field(default_factory=OpenAIConfig)
    classifier_config: ClassifierConfig = field(default_factory=ClassifierConfig)
    context_config: ContextConfig = field(default_factory=ContextConfig)
    generation_config: GenerationConfig = field(default_factory=GenerationConfig)
    orchestrator_config: OrchestratorConfig = field(default_factory=OrchestratorConfig)
    prompt_cache_config: PromptCacheConfig = field(default_factory=PromptCacheConfig)
    logging_config: LoggingConfig = field(default_factory=LoggingConfig)
    debug_mode: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)
