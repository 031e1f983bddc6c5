"""
Conversation context reconstruction.
"""

import re
from typing import Any, List, Optional

from ..models import ConversationContext, ConversationTurn
from ..models.config import ContextConfig
from ..models.enums import ConversationRole
from ..utils import get_logger, DialogueEventLogger
from ..utils.deadline import Deadline, run_within
from ..utils.error_handling import Result, ErrorKind, handle_error
from ..utils.json_cleaning import parse_json_object
from .interfaces import TextCompletionClient, CompletionOptions
from .prompts import PromptLibrary


REFERENCE_WORDS = ["그거", "그것", "다른", "대신", "말고", "없어서"]

COMMON_DISHES = [
    "파스타", "스파게티", "볶음밥", "찌개", "케밥", "샐러드", "수프",
    "스테이크", "치킨", "피자", "라면", "국수", "떡볶이", "김밥",
]

_QUOTED = re.compile(r"[\"“「]([^\"”」\n]{2,30})[\"”」]")
_BOLD = re.compile(r"\*\*([^*\n]{2,30})\*\*")
_NUMBERED = re.compile(r"^\s*\d+[.)]\s*(?:\*\*)?([^*(\n:]{2,30})", re.MULTILINE)
_CAPITALIZED = re.compile(r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+)+)\b")


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


class PatternContextExtractor:
    """
    Provider-free context extraction from surface patterns.

    Scans assistant turns, most recent first, for dish names written as
    quoted text, bold text, numbered list entries, capitalized English
    phrases, or one of a fixed list of common dishes.
    """

    def __init__(self, max_recipes: int = 3):
        self.max_recipes = max_recipes
        self.logger = get_logger(__name__)

    def extract(self, message: str, recent_history: List[ConversationTurn]) -> ConversationContext:
        try:
            references = [word for word in REFERENCE_WORDS if word in message]
            recipes = self._extract_recipes(recent_history)
            summary = self._summarize(message, recent_history, bool(references))
            return ConversationContext(
                has_context=True,
                last_recipes=recipes,
                user_references=references,
                conversation_summary=summary,
            )
        except Exception as e:
            self.logger.warning(f"Pattern extraction failed: {str(e)}")
            return ConversationContext(
                has_context=True,
                conversation_summary=f"사용자 요청: {message[:50]}",
            )

    def _extract_recipes(self, recent_history: List[ConversationTurn]) -> List[str]:
        recipes: List[str] = []

        def add(name: str) -> None:
            name = name.strip().strip(".,!?~")
            if name and name not in recipes:
                recipes.append(name)

        assistant_turns = [t for t in recent_history if t.role == ConversationRole.ASSISTANT.value]
        for turn in reversed(assistant_turns):
            for pattern in (_QUOTED, _BOLD, _NUMBERED, _CAPITALIZED):
                for match in pattern.finditer(turn.content):
                    add(match.group(1))
            for dish in COMMON_DISHES:
                if dish in turn.content and not any(dish in found for found in recipes):
                    add(dish)
            if len(recipes) >= self.max_recipes:
                break

        return recipes[:self.max_recipes]

    def _summarize(self, message: str, recent_history: List[ConversationTurn], has_references: bool) -> str:
        if not recent_history:
            return f"새로운 대화: {message[:50]}"
        if has_references:
            return f"사용자가 이전 대화를 참조하며 {message[:30]}"
        user_turns = [t for t in recent_history if t.role == ConversationRole.USER.value]
        last_user = user_turns[-1].content if user_turns else message
        return f"사용자 요청: {last_user[:50]}"


class ContextAnalyzer:
    """
    Reconstructs short-term conversational memory for one request.

    Asks the completion provider to extract prior recipes, reference words
    and a summary from the recent history; falls back to pattern extraction
    when the provider fails or answers with unusable JSON.
    """

    def __init__(self, client: TextCompletionClient, prompts: Optional[PromptLibrary] = None,
                 config: Optional[ContextConfig] = None):
        self.client = client
        self.prompts = prompts or PromptLibrary()
        self.config = config or ContextConfig()
        self.fallback_extractor = PatternContextExtractor(self.config.max_fallback_recipes)
        self.logger = get_logger(__name__)
        self.event_logger = DialogueEventLogger()

    async def analyze_context(self, message: str, history: Optional[List[ConversationTurn]] = None,
                              deadline: Optional[Deadline] = None) -> ConversationContext:
        """
        Build the ConversationContext for ``message``.

        Args:
            message: Current user message
            history: Prior turns, oldest first
            deadline: Optional query deadline bounding the provider call

        Returns:
            ConversationContext; the zero value when there is no history
        """
        if not history:
            return ConversationContext.empty()

        try:
            recent_history = list(history)[-self.config.history_window:]
            self.logger.info(f"Analyzing conversation history: {len(history)} turns")

            result = await self._extract_with_provider(message, recent_history, deadline)
            if result.is_ok:
                context = result.value
            else:
                self.event_logger.log_fallback("context_llm", "context_pattern", result.error.message)
                context = self.fallback_extractor.extract(message, recent_history)

            self.logger.info(
                f"Context - recipes: [{', '.join(context.last_recipes)}], "
                f"references: [{', '.join(context.user_references)}]"
            )
            return context

        except Exception as e:
            handle_error(e, self.event_logger, {"stage": "context_analysis"})
            return ConversationContext.empty()

    async def _extract_with_provider(self, message: str, recent_history: List[ConversationTurn],
                                     deadline: Optional[Deadline]) -> Result[ConversationContext]:
        prompt = self.prompts.context_extraction(message, recent_history)
        options = CompletionOptions(temperature=self.config.temperature, max_tokens=self.config.max_tokens)

        try:
            raw = await run_within(self.client.complete(prompt, options), deadline)
        except Exception as e:
            return Result.from_exception(e)

        if not raw or not raw.strip():
            return Result.fail(ErrorKind.MALFORMED_RESPONSE, "empty context response")

        self.logger.debug(f"Context response: {raw[:200]}")
        parsed = parse_json_object(raw)
        if not parsed.is_ok:
            return Result.fail(parsed.error.kind, parsed.error.message)

        data = parsed.value
        summary = data.get("conversationSummary")
        return Result.ok(ConversationContext(
            has_context=True,
            last_recipes=_string_list(data.get("lastRecipes")),
            user_references=_string_list(data.get("userReferences")),
            conversation_summary=summary.strip() if isinstance(summary, str) else "",
        ))
