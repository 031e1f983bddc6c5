"""
Prompt construction for the dialogue pipeline.

Prompt skeletons are cached by structural shape only. Message text, recipe
names and history are substituted into the skeleton after lookup, so the
cache never holds user data.
"""

import time
from collections import OrderedDict
from string import Template
from typing import Callable, Hashable, List, Optional

from ..models import ConversationContext, ConversationTurn, AlternativeRecipeRequest
from ..models.config import PromptCacheConfig
from ..utils import get_logger


class PromptCache:
    """
    Bounded prompt-skeleton cache with TTL expiry.

    Entries are immutable strings. Expired entries are purged on access and
    the oldest entry is evicted when the cache is full.
    """

    def __init__(self, config: Optional[PromptCacheConfig] = None, clock: Callable[[], float] = time.monotonic):
        self.config = config or PromptCacheConfig()
        self._clock = clock
        self._entries: "OrderedDict[Hashable, tuple]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        self.purge_expired()
        return key in self._entries

    def get_or_create(self, key: Hashable, factory: Callable[[], str]) -> str:
        """
        Return the skeleton stored under ``key``, building it on a miss.

        Args:
            key: Structural cache key (never message content)
            factory: Builds the skeleton when it is missing or expired

        Returns:
            The cached or freshly built skeleton
        """
        self.purge_expired()

        entry = self._entries.get(key)
        if entry is not None:
            self.hits += 1
            return entry[1]

        self.misses += 1
        skeleton = factory()
        while len(self._entries) >= self.config.max_size:
            self._entries.popitem(last=False)
        self._entries[key] = (self._clock(), skeleton)
        return skeleton

    def purge_expired(self) -> int:
        """Drop entries older than the TTL. Returns the number removed."""
        now = self._clock()
        expired = [
            key for key, (created_at, _) in self._entries.items()
            if now - created_at >= self.config.ttl_seconds
        ]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()


INTENT_CONTEXT_BLOCK = """# 대화 맥락 정보:
- 최근 언급된 레시피: $last_recipes
- 사용자가 참조한 내용: $user_references"""

INTENT_NO_CONTEXT_BLOCK = "# 대화 맥락 정보: 새로운 대화 시작"

INTENT_PROMPT = """# Task (작업)
당신은 요리 전문 챗봇의 의도 분석 전문가입니다. 사용자의 메시지를 분석하여 다음 4가지 의도 중 하나로 정확히 분류해주세요.

## Context (맥락)
- 환경: 한국어 요리 챗봇 시스템
- 사용자: 요리에 관심 있는 일반인
- 목적: 적절한 응답 전략 선택을 위한 의도 파악

$context_block

## Reference (참조 기준)

### 1. recipe_list (레시피 목록/추천)
**예시**: "오늘 저녁 뭐 해먹을까?", "닭가슴살로 만들 수 있는 요리들 보여줘"

### 2. recipe_detail (특정 레시피 상세 정보)
**예시**: "김치찌개 만드는 법 알려줘", "카르보나라 어떻게 만들어?"

### 3. alternative_recipe (대체 레시피/변형)
**예시**: "양파 없으면 뭘로 대체할까?", "더 간단한 방법 없을까?"

### 4. general_chat (일반 대화)
**예시**: "안녕하세요", "고마워", "날씨가 좋네요"

## Evaluate (평가 기준)
JSON 형식으로 응답 (코드 블록 없이):
{
  "intent": "recipe_list|recipe_detail|alternative_recipe|general_chat",
  "confidence": 0.0~1.0,
  "reasoning": "판단 근거",
  "needsAlternative": true/false,
  "missingItems": ["부족한 재료"],
  "relatedRecipe": "관련 레시피명"
}

사용자 메시지: "$message\""""

SIMPLIFIED_INTENT_PROMPT = """간단한 의도 분류를 수행해주세요.

사용자 메시지: "$message"

JSON으로 응답:
{
  "intent": "recipe_list|recipe_detail|alternative_recipe|general_chat",
  "confidence": 0.5,
  "reasoning": "간단한 판단",
  "needsAlternative": false,
  "missingItems": [],
  "relatedRecipe": null
}"""

MINIMAL_INTENT_PROMPT = """사용자 메시지: "$message"

이 메시지의 의도를 분류해주세요:
- recipe_list: 요리 추천이나 목록을 원함
- recipe_detail: 특정 요리 만드는 방법을 원함
- alternative_recipe: 다른 방법이나 대체재를 원함
- general_chat: 일반 대화

JSON 답변만 (설명 없이):
{"intent": "분류결과", "confidence": 0.8, "reasoning": "이유", "needsAlternative": false}"""

CONTEXT_PROMPT = """당신은 대화 맥락을 정확히 분석하는 전문 어시스턴트입니다.

다음 대화 히스토리와 현재 사용자 메시지를 분석하여 정확한 JSON 형태로 응답해주세요.

=== 대화 히스토리 ===
$history

=== 현재 사용자 메시지 ===
"$message"

=== 추출할 정보 ===
1. **lastRecipes** (배열): 이전 대화에서 언급된 구체적인 요리/레시피 이름들. 없으면 []
2. **userReferences** (배열): 현재 메시지에서 이전 대화를 참조하는 표현들
   ("그거", "그것", "그런", "다른", "또 다른", "대신", "말고", "없어서", "안돼서", "못해서" 등). 없으면 []
3. **conversationSummary** (문자열): 대화의 핵심 맥락을 80자 이내로 요약

=== 응답 예시 ===
{
  "lastRecipes": ["지중해식 치킨 케밥", "토마토 파스타"],
  "userReferences": ["그것", "없어서"],
  "conversationSummary": "사용자가 케밥을 요청했지만 도구가 부족해서 대안을 찾고있음"
}

=== 중요 지침 ===
- 반드시 유효한 JSON 형태로만 응답하세요
- JSON 외의 다른 텍스트는 절대 포함하지 마세요

JSON 응답:"""

ALTERNATIVE_RECIPE_PROMPT = """# Task (작업)
당신은 창의적이고 실용적인 요리 문제 해결 전문가입니다. 사용자의 제약사항에 맞는 대체 레시피를 만들어주세요.

## Context (맥락)
**기존 레시피**: $recipe_name
**기존 재료**: $ingredients
**기존 조리 단계**: $steps
**재료 상황**: 없는 재료($missing_items)

## Evaluate (평가 기준)
- 실현 가능성: 실제로 시도할 수 있는 현실적 방법
- 맛 유지도: 원래 레시피의 핵심 맛 유지
- 접근성: 재료나 도구를 쉽게 구할 수 있음

## Output (출력 형식)
다음 키를 가진 JSON 객체 하나만 출력하세요:
{
  "name": "English name",
  "nameKo": "한국어 이름",
  "description": "English description",
  "descriptionKo": "한국어 설명",
  "ingredients": ["English ingredient"],
  "ingredientsKo": ["한국어 재료"],
  "steps": ["English step"],
  "stepsKo": ["한국어 단계"],
  "cookingTime": 30,
  "difficulty": "쉬움|보통|어려움"
}

사용자 요청: "$message"

CRITICAL: Your response must be ONLY valid JSON. No markdown, no explanations, no code blocks. Start with { and end with }."""

GENERAL_CHAT_CONTEXT_BLOCK = "**대화 맥락**: $history"

GENERAL_CHAT_NO_CONTEXT_BLOCK = "**대화 상태**: 새로운 대화 시작"

GENERAL_CHAT_PROMPT = """# Task (작업)
당신은 친근하고 지식이 풍부한 요리 전문 챗봇입니다. 사용자와 자연스럽고 따뜻한 대화를 나누세요.

## Context (맥락)
$context_block
**연결 가능 주제**: $topics

## Reference (참조 기준)
- 친근하고 자연스러운 대화 상대
- 요리에 대한 전문 지식 보유
- 필요시 요리 관련 주제로 자연스럽게 연결

## Evaluate (평가 기준)
- 자연스러움: 어색하지 않은 대화 흐름
- 가치 제공: 도움이 되는 정보나 관심 유발
- 친근함: 따뜻하고 편안한 톤

사용자 메시지: "$message\""""

GENERAL_CHAT_FALLBACK_MESSAGE = (
    "안녕하세요! 저는 요리 도우미예요. 😊 "
    "지금은 자세한 답변을 드리기 어렵지만, 재료나 요리 이름을 알려주시면 "
    "어울리는 레시피를 찾아드릴게요. $topics 중에서 골라보셔도 좋아요!"
)

GENERAL_CHAT_TOPICS = ["간단한 요리", "오늘의 추천", "인기 레시피"]


def _join(items: List[str], empty: str = "없음") -> str:
    return ", ".join(items) if items else empty


def format_history(history: List[ConversationTurn]) -> str:
    return "\n".join(f"{turn.role}: {turn.content}" for turn in history)


class PromptLibrary:
    """
    Builds every provider prompt used by the pipeline.

    Prompts whose structure depends only on the shape of the context are
    built from cached skeletons.
    """

    def __init__(self, cache: Optional[PromptCache] = None):
        self.cache = cache or PromptCache()
        self.logger = get_logger(__name__)

    def intent_classification(self, message: str, context: Optional[ConversationContext] = None) -> str:
        context = context or ConversationContext.empty()
        key = ("intent", context.has_context, len(context.last_recipes), len(context.user_references))

        def build() -> str:
            block = INTENT_CONTEXT_BLOCK if context.has_context else INTENT_NO_CONTEXT_BLOCK
            return INTENT_PROMPT.replace("$context_block", block)

        skeleton = self.cache.get_or_create(key, build)
        return Template(skeleton).safe_substitute(
            message=message,
            last_recipes=_join(context.last_recipes),
            user_references=_join(context.user_references),
        )

    def simplified_intent(self, message: str) -> str:
        return Template(SIMPLIFIED_INTENT_PROMPT).safe_substitute(message=message)

    def minimal_intent(self, message: str) -> str:
        return Template(MINIMAL_INTENT_PROMPT).safe_substitute(message=message)

    def context_extraction(self, message: str, history: List[ConversationTurn]) -> str:
        return Template(CONTEXT_PROMPT).safe_substitute(message=message, history=format_history(history))

    def alternative_recipe(self, request: AlternativeRecipeRequest) -> str:
        original = request.original_recipe
        return Template(ALTERNATIVE_RECIPE_PROMPT).safe_substitute(
            recipe_name=original.display_name,
            ingredients=_join(original.ingredients_ko or original.ingredients, "정보 없음"),
            steps=" / ".join(original.steps_ko or original.steps) or "정보 없음",
            missing_items=_join(request.missing_items, "정보 없음"),
            message=request.user_message,
        )

    def general_chat(self, message: str, history: Optional[List[ConversationTurn]] = None) -> str:
        key = ("general_chat", bool(history))

        def build() -> str:
            block = GENERAL_CHAT_CONTEXT_BLOCK if history else GENERAL_CHAT_NO_CONTEXT_BLOCK
            return GENERAL_CHAT_PROMPT.replace("$context_block", block)

        skeleton = self.cache.get_or_create(key, build)
        return Template(skeleton).safe_substitute(
            message=message,
            history=format_history(history or []),
            topics=_join(GENERAL_CHAT_TOPICS),
        )

    def general_chat_fallback(self) -> str:
        """Static reply used when the provider cannot produce one."""
        return Template(GENERAL_CHAT_FALLBACK_MESSAGE).safe_substitute(
            topics=", ".join(f"'{topic}'" for topic in GENERAL_CHAT_TOPICS)
        )
