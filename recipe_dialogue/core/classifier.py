"""
Intent classification through a chain of progressively simpler strategies.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..models import ConversationContext, IntentAnalysis, UserIntent
from ..models.config import ClassifierConfig
from ..utils import get_logger, DialogueEventLogger
from ..utils.deadline import Deadline, run_within
from ..utils.error_handling import Result, ErrorKind
from ..utils.json_cleaning import parse_json_object
from .interfaces import TextCompletionClient, CompletionOptions
from .prompts import PromptLibrary


EXHAUSTED_REASONING = "all classification strategies exhausted"

# Provider intent labels -> canonical intents. Keys are normalized labels.
INTENT_ALIASES: Dict[str, UserIntent] = {
    "recipe_list": UserIntent.RECIPE_LIST,
    "recipe_request": UserIntent.RECIPE_LIST,
    "recipe_recommendation": UserIntent.RECIPE_LIST,
    "recipe_search": UserIntent.RECIPE_LIST,
    "recommendation": UserIntent.RECIPE_LIST,
    "list": UserIntent.RECIPE_LIST,
    "recipe_detail": UserIntent.RECIPE_DETAIL,
    "recipe_details": UserIntent.RECIPE_DETAIL,
    "recipe_info": UserIntent.RECIPE_DETAIL,
    "how_to_cook": UserIntent.RECIPE_DETAIL,
    "detail": UserIntent.RECIPE_DETAIL,
    "alternative_recipe": UserIntent.ALTERNATIVE_RECIPE,
    "alternaive_recipe": UserIntent.ALTERNATIVE_RECIPE,
    "alternative": UserIntent.ALTERNATIVE_RECIPE,
    "substitution": UserIntent.ALTERNATIVE_RECIPE,
    "substitute": UserIntent.ALTERNATIVE_RECIPE,
    "general_chat": UserIntent.GENERAL_CHAT,
    "chat": UserIntent.GENERAL_CHAT,
    "greeting": UserIntent.GENERAL_CHAT,
    "small_talk": UserIntent.GENERAL_CHAT,
}

KOREAN_PARTICLES = ("이", "가", "은", "는", "도", "을", "를")


def normalize_intent(label: Any) -> UserIntent:
    """Map a provider intent label onto a UserIntent; unknown labels become GENERAL_CHAT."""
    if not isinstance(label, str):
        return UserIntent.GENERAL_CHAT
    key = label.strip().lower().replace("-", "_").replace(" ", "_")
    return INTENT_ALIASES.get(key, UserIntent.GENERAL_CHAT)


def parse_confidence(value: Any, default: float) -> float:
    """Clamp a numeric confidence into [0, 1]; anything non-numeric gives ``default``."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return min(1.0, max(0.0, float(value)))


def extract_missing_items(message: str) -> List[str]:
    """
    Best-effort extraction of the items a user says they lack.

    Takes the word in front of "없" ("오븐이 없으면" -> "오븐") and strips a
    trailing subject/object particle from words of three or more characters.
    """
    tokens = message.split()
    items: List[str] = []
    for index, token in enumerate(tokens):
        position = token.find("없")
        if position < 0:
            continue
        if position > 0:
            candidate = token[:position]
        elif index > 0:
            candidate = tokens[index - 1]
        else:
            continue

        candidate = candidate.strip(".,!?~\"'")
        if len(candidate) >= 3 and candidate.endswith(KOREAN_PARTICLES):
            candidate = candidate[:-1]
        if candidate and candidate not in items:
            items.append(candidate)
    return items


def analysis_from_payload(data: Dict[str, Any], default_confidence: float, stage: str,
                          default_reasoning: str) -> IntentAnalysis:
    """Build an IntentAnalysis from a parsed provider JSON object."""
    reasoning = data.get("reasoning")
    missing_items = data.get("missingItems")
    related_recipe = data.get("relatedRecipe")
    return IntentAnalysis(
        intent=normalize_intent(data.get("intent")),
        confidence=parse_confidence(data.get("confidence"), default_confidence),
        reasoning=reasoning if isinstance(reasoning, str) and reasoning else default_reasoning,
        needs_alternative=data.get("needsAlternative") is True,
        missing_items=[m for m in missing_items if isinstance(m, str) and m] if isinstance(missing_items, list) else [],
        related_recipe=related_recipe if isinstance(related_recipe, str) and related_recipe else None,
        stage=stage,
    )


class IntentStrategy(ABC):
    """One link of the classification chain."""

    name = "strategy"

    @abstractmethod
    async def attempt(self, message: str, context: ConversationContext,
                      deadline: Optional[Deadline] = None) -> Result[IntentAnalysis]:
        """Classify ``message``; a failed Result means the next strategy should run."""


class _LLMStrategy(IntentStrategy):
    """Shared provider call and parsing for the prompt-driven strategies."""

    default_reasoning = ""

    def __init__(self, client: TextCompletionClient, prompts: PromptLibrary, config: ClassifierConfig):
        self.client = client
        self.prompts = prompts
        self.config = config
        self.logger = get_logger(__name__)

    def build_prompt(self, message: str, context: ConversationContext) -> str:
        raise NotImplementedError

    @property
    def default_confidence(self) -> float:
        return self.config.llm_default_confidence

    async def attempt(self, message: str, context: ConversationContext,
                      deadline: Optional[Deadline] = None) -> Result[IntentAnalysis]:
        return await self._classify_with_prompt(self.build_prompt(message, context), deadline)

    async def _classify_with_prompt(self, prompt: str, deadline: Optional[Deadline]) -> Result[IntentAnalysis]:
        options = CompletionOptions(temperature=self.config.temperature, max_tokens=self.config.max_tokens)
        try:
            raw = await run_within(self.client.complete(prompt, options), deadline)
        except Exception as e:
            return Result.from_exception(e)

        if not raw or not raw.strip():
            return Result.fail(ErrorKind.MALFORMED_RESPONSE, f"{self.name}: empty response")

        self.logger.debug(f"{self.name} response: {raw[:200]}")
        parsed = parse_json_object(raw)
        if not parsed.is_ok:
            return Result.fail(parsed.error.kind, f"{self.name}: {parsed.error.message}")

        return Result.ok(analysis_from_payload(
            parsed.value, self.default_confidence, self.name, self.default_reasoning
        ))


class PrimaryLLMStrategy(_LLMStrategy):
    """Full classification prompt with context and labelled examples."""

    name = "primary_llm"
    default_reasoning = "의도 분석 완료"

    def build_prompt(self, message: str, context: ConversationContext) -> str:
        return self.prompts.intent_classification(message, context)


class SimplifiedLLMStrategy(_LLMStrategy):
    """Short prompt with the same JSON contract."""

    name = "simplified_llm"
    default_reasoning = "LLM 기반 폴백 분류"

    def build_prompt(self, message: str, context: ConversationContext) -> str:
        return self.prompts.simplified_intent(message)


class HeuristicStrategy(_LLMStrategy):
    """
    Terminal strategy; always produces an analysis.

    A missing-item keyword in a conversation that already named a recipe is
    read as a request for an alternative. Otherwise one minimal JSON-only
    prompt is tried before settling on the general-chat default.
    """

    name = "heuristic"

    @property
    def default_confidence(self) -> float:
        return self.config.minimal_default_confidence

    async def attempt(self, message: str, context: ConversationContext,
                      deadline: Optional[Deadline] = None) -> Result[IntentAnalysis]:
        if context.has_context and context.last_recipes:
            keywords = [k for k in self.config.missing_item_keywords if k in message]
            if keywords:
                return Result.ok(IntentAnalysis(
                    intent=UserIntent.ALTERNATIVE_RECIPE,
                    confidence=self.config.heuristic_confidence,
                    reasoning=f"대화 맥락과 제약사항 키워드 감지: {', '.join(keywords)}",
                    needs_alternative=True,
                    missing_items=extract_missing_items(message),
                    related_recipe=context.last_recipes[0],
                    stage=self.name,
                ))

        result = await self._classify_with_prompt(self.prompts.minimal_intent(message), deadline)
        if result.is_ok:
            analysis = result.value
            analysis.stage = "minimal_llm"
            analysis.reasoning = f"최종 AI 분류: {analysis.reasoning}" if analysis.reasoning else "최종 AI 분류"
            analysis.missing_items = []
            analysis.related_recipe = None
            return result

        self.logger.warning(f"Minimal classification failed: {result.error.message}")
        return Result.ok(exhausted_analysis(self.config))


def exhausted_analysis(config: ClassifierConfig) -> IntentAnalysis:
    return IntentAnalysis(
        intent=UserIntent.GENERAL_CHAT,
        confidence=config.exhausted_confidence,
        reasoning=EXHAUSTED_REASONING,
        stage="default",
    )


class IntentClassifier:
    """
    Runs the strategy chain until one strategy produces an analysis.

    Never raises: provider failures, malformed responses and unexpected
    errors all advance the chain, and a chain without a terminal strategy
    ends in the general-chat default.
    """

    def __init__(self, client: TextCompletionClient, prompts: Optional[PromptLibrary] = None,
                 config: Optional[ClassifierConfig] = None, strategies: Optional[List[IntentStrategy]] = None):
        self.client = client
        self.prompts = prompts or PromptLibrary()
        self.config = config or ClassifierConfig()
        self.logger = get_logger(__name__)
        self.event_logger = DialogueEventLogger()
        self.strategies: List[IntentStrategy] = strategies if strategies is not None else [
            PrimaryLLMStrategy(client, self.prompts, self.config),
            SimplifiedLLMStrategy(client, self.prompts, self.config),
            HeuristicStrategy(client, self.prompts, self.config),
        ]

    @property
    def strategy_names(self) -> List[str]:
        return [strategy.name for strategy in self.strategies]

    async def classify_intent(self, message: str, context: Optional[ConversationContext] = None,
                              deadline: Optional[Deadline] = None) -> IntentAnalysis:
        """
        Classify ``message`` into one of the four intents.

        Args:
            message: Current user message
            context: Conversation context from the context analyzer
            deadline: Optional query deadline bounding each provider call

        Returns:
            IntentAnalysis with a confidence in [0, 1]
        """
        context = context or ConversationContext.empty()

        for index, strategy in enumerate(self.strategies):
            try:
                result = await strategy.attempt(message, context, deadline)
            except Exception as e:
                result = Result.from_exception(e)

            if result.is_ok:
                analysis = result.value
                self.logger.info(
                    f"Intent classified: \"{message[:50]}\" -> {analysis.intent.value} "
                    f"(confidence: {analysis.confidence:.2f}, stage: {analysis.stage})"
                )
                return analysis

            next_stage = self.strategies[index + 1].name if index + 1 < len(self.strategies) else "default"
            self.event_logger.log_fallback(strategy.name, next_stage, result.error.message or result.error.kind.value)

        return exhausted_analysis(self.config)
