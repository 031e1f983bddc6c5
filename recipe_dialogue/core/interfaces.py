"""
Text-completion clients for the Ollama and OpenAI backends.
"""

import asyncio
import random
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Any, List, Optional

import openai
import requests
from openai import AsyncOpenAI

from ..models.config import LocalLLMConfig, OpenAIConfig, SystemConfig
from ..utils import get_logger
from ..utils.error_handling import ConfigurationError, ProviderUnavailable, ProviderTimeout


LINK_SUPPRESSION_SUFFIX = """

중요한 제약사항:
- 어떤 URL, 링크, 웹 주소도 포함하지 마세요
- 유튜브 링크나 외부 사이트 링크를 생성하지 마세요
- 존재하지 않는 링크를 만들어내지 마세요
- 텍스트 기반의 레시피 정보에만 집중하세요"""


@dataclass
class CompletionOptions:
    """Sampling options for a single completion call."""
    temperature: float = 0.7
    max_tokens: Optional[int] = None


class TextCompletionClient(ABC):
    """
    Narrow interface to a text-completion provider.

    ``complete`` raises ProviderUnavailable or ProviderTimeout; callers treat
    every other outcome, including an empty string, as a usable response.
    """

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Name of the model serving completions."""

    @abstractmethod
    async def complete(self, prompt: str, options: Optional[CompletionOptions] = None) -> str:
        """Return the provider's completion text for ``prompt``."""

    @abstractmethod
    async def is_ready(self) -> bool:
        """Return True when the provider can serve completions."""


class OllamaCompletionClient(TextCompletionClient):
    """
    Client for a local Ollama server.

    Uses the blocking ``requests`` API on a worker thread so the event loop
    is never stalled by a slow generation.
    """

    def __init__(self, config: Optional[LocalLLMConfig] = None):
        self.config = config or LocalLLMConfig()
        self.logger = get_logger(__name__)
        self._model_checked = False
        self._response_times: List[float] = []
        self._max_response_time_samples = 100

        self.logger.info(f"Initialized OllamaCompletionClient with model: {self.config.model_path}")

    @property
    def model_name(self) -> str:
        return self.config.model_path

    async def complete(self, prompt: str, options: Optional[CompletionOptions] = None) -> str:
        options = options or CompletionOptions()
        if self.config.suppress_links:
            prompt = f"{prompt}{LINK_SUPPRESSION_SUFFIX}"
        return await asyncio.to_thread(self._generate, prompt, options)

    async def is_ready(self) -> bool:
        return await asyncio.to_thread(self._check_model)

    def _generate(self, prompt: str, options: CompletionOptions) -> str:
        """Make a blocking request to the Ollama generate API."""
        payload = {
            "model": self.config.model_path,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": options.temperature,
                "num_ctx": self.config.max_context_length,
                "num_predict": options.max_tokens or self.config.max_tokens
            }
        }

        start_time = time.time()
        try:
            response = requests.post(
                f"{self.config.base_url}/api/generate",
                json=payload,
                timeout=self.config.timeout_seconds
            )
        except requests.exceptions.Timeout:
            self.logger.error(f"Request timeout after {self.config.timeout_seconds} seconds")
            raise ProviderTimeout(
                f"Ollama request timed out after {self.config.timeout_seconds}s",
                timeout_seconds=self.config.timeout_seconds
            )
        except requests.exceptions.RequestException as e:
            self.logger.error(f"Request failed: {str(e)}")
            raise ProviderUnavailable(f"Ollama request failed: {str(e)}", provider="ollama")

        if response.status_code != 200:
            self.logger.error(f"Ollama API error: {response.status_code} - {response.text[:200]}")
            raise ProviderUnavailable(
                f"Ollama API returned {response.status_code}",
                provider="ollama",
                status_code=response.status_code
            )

        self._track_response_time(time.time() - start_time)
        try:
            return str(response.json().get('response', '')).strip()
        except ValueError:
            # A non-JSON body is treated as an empty completion.
            self.logger.warning("Ollama returned a non-JSON body")
            return ""

    def _check_model(self) -> bool:
        """Check the server is up and the configured model is present."""
        try:
            response = requests.get(f"{self.config.base_url}/api/tags", timeout=5)
            if response.status_code != 200:
                self.logger.warning(f"Ollama server not accessible: {response.status_code}")
                return False

            models = response.json().get('models', [])
            model_names = [model.get('name') for model in models]

            if self.config.model_path not in model_names:
                self.logger.warning(f"Model {self.config.model_path} not found. Available models: {model_names}")
                if not self.config.pull_missing_model or self._model_checked:
                    return False
                self._model_checked = True
                return self._pull_model()

            self._model_checked = True
            return True

        except (requests.exceptions.RequestException, ValueError) as e:
            self.logger.warning(f"Ollama readiness check failed: {str(e)}")
            return False

    def _pull_model(self) -> bool:
        """Pull the model if it's not available locally."""
        try:
            self.logger.info(f"Pulling model: {self.config.model_path}")
            response = requests.post(
                f"{self.config.base_url}/api/pull",
                json={"name": self.config.model_path, "stream": False},
                timeout=300  # 5 minutes for model download
            )
            return response.status_code == 200
        except requests.exceptions.RequestException as e:
            self.logger.error(f"Failed to pull model: {str(e)}")
            return False

    def _track_response_time(self, response_time: float) -> None:
        self._response_times.append(response_time)
        if len(self._response_times) > self._max_response_time_samples:
            self._response_times.pop(0)

    def get_performance_stats(self) -> Dict[str, Any]:
        """Get performance statistics."""
        if not self._response_times:
            return {"avg_response_time": 0.0, "sample_count": 0}

        return {
            "avg_response_time": sum(self._response_times) / len(self._response_times),
            "min_response_time": min(self._response_times),
            "max_response_time": max(self._response_times),
            "sample_count": len(self._response_times)
        }


class OpenAICompletionClient(TextCompletionClient):
    """
    Client for the OpenAI chat completions API.

    Rate limits and transient API errors are retried with exponential
    backoff and jitter; quota errors fail immediately.
    """

    def __init__(self, config: Optional[OpenAIConfig] = None, client: Optional[AsyncOpenAI] = None):
        self.config = config or OpenAIConfig()
        self.logger = get_logger(__name__)
        self._client = client or AsyncOpenAI(
            api_key=self.config.api_key or None,
            base_url=self.config.base_url,
            timeout=self.config.timeout_seconds,
            max_retries=0
        )

        self.logger.info(f"Initialized OpenAICompletionClient with model: {self.config.model}")

    @property
    def model_name(self) -> str:
        return self.config.model

    async def complete(self, prompt: str, options: Optional[CompletionOptions] = None) -> str:
        options = options or CompletionOptions()
        api_params = {
            "model": self.config.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": options.temperature,
            "max_tokens": options.max_tokens or self.config.max_tokens
        }
        return await self._make_api_request_with_retry(api_params)

    async def is_ready(self) -> bool:
        try:
            await self._client.models.retrieve(self.config.model)
            return True
        except openai.OpenAIError as e:
            self.logger.warning(f"OpenAI readiness check failed: {str(e)}")
            return False

    async def _make_api_request_with_retry(self, api_params: Dict[str, Any]) -> str:
        """Make API request with exponential backoff retry logic."""
        max_retries = self.config.rate_limits.max_retries

        for attempt in range(max_retries + 1):
            try:
                response = await self._client.chat.completions.create(**api_params)
                if not response.choices:
                    return ""
                return (response.choices[0].message.content or "").strip()

            except openai.APITimeoutError as e:
                self.logger.warning(f"OpenAI timeout on attempt {attempt + 1}: {str(e)}")
                if attempt >= max_retries:
                    raise ProviderTimeout(
                        "OpenAI request timed out after retries",
                        timeout_seconds=self.config.timeout_seconds
                    )

            except openai.RateLimitError as e:
                self.logger.warning(f"Rate limit hit on attempt {attempt + 1}: {str(e)}")
                if "quota" in str(e).lower() or attempt >= max_retries:
                    raise ProviderUnavailable(
                        "OpenAI rate limit or quota exceeded",
                        provider="openai",
                        status_code=429
                    )

            except openai.APIError as e:
                self.logger.error(f"OpenAI API error on attempt {attempt + 1}: {str(e)}")
                if attempt >= max_retries:
                    raise ProviderUnavailable(
                        f"OpenAI API error: {str(e)}",
                        provider="openai",
                        status_code=getattr(e, "status_code", None)
                    )

            delay = self._calculate_backoff_delay(attempt)
            self.logger.info(f"Waiting {delay:.2f}s before retry...")
            await asyncio.sleep(delay)

        raise ProviderUnavailable("Request failed after maximum retry attempts", provider="openai")

    def _calculate_backoff_delay(self, attempt: int) -> float:
        """Calculate exponential backoff delay with jitter."""
        base_delay = self.config.rate_limits.backoff_base_delay
        max_delay = self.config.rate_limits.backoff_max_delay

        delay = min(base_delay * (2 ** attempt), max_delay)
        jitter = random.uniform(0.1, 0.3) * delay
        return delay + jitter


def create_completion_client(config: SystemConfig) -> TextCompletionClient:
    """
    Build the completion client selected by ``config.provider``.

    Raises:
        ConfigurationError: For an unknown provider name
    """
    if config.provider == "ollama":
        return OllamaCompletionClient(config.local_llm_config)
    if config.provider == "openai":
        return OpenAICompletionClient(config.openai_config)
    raise ConfigurationError(f"Unknown completion provider: {config.provider}", config_key="provider")
