"""
Dialogue orchestrator: context -> intent -> handler -> response.
"""

import asyncio
import time
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from ..models import (
    AgentQuery, AgentResponse, ResponseMetadata, ConversationContext, IntentAnalysis,
    AlternativeRecipeRequest, Recipe, UserIntent, OrchestratorState, SystemConfig,
)
from ..utils import get_logger, DialogueEventLogger
from ..utils.deadline import Deadline, run_within
from ..utils.error_handling import handle_error
from .classifier import IntentClassifier
from .context import ContextAnalyzer
from .generator import AlternativeRecipeGenerator
from .interfaces import TextCompletionClient, CompletionOptions
from .prompts import PromptLibrary, PromptCache
from .recipe_detail import to_recipe_detail
from .stores import RecipeSearchProvider, ArtifactStore, SearchFilters


Handler = Callable[[AgentQuery, ConversationContext, IntentAnalysis, float, Deadline], Awaitable[AgentResponse]]

SAFETY_NET_MESSAGE = "죄송합니다. 요청을 처리하는 중 오류가 발생했습니다. 다시 시도해주세요."
SAFETY_NET_SUGGESTIONS = ["다른 키워드로 검색", "간단한 요리 추천", "인기 레시피 보기"]

LIST_SUGGESTIONS = ["간단한 요리", "빠른 요리", "쉬운 요리"]
DETAIL_SUGGESTIONS = ["다른 레시피 보기", "비슷한 요리", "간단 버전"]
ALTERNATIVE_SUGGESTIONS = ["다른 대체 방법", "원본 레시피 보기", "비슷한 요리"]
CHAT_SUGGESTIONS = ["간단한 요리", "오늘의 추천", "인기 레시피"]

SEARCH_FAILED_MESSAGE = "죄송합니다. 지금은 레시피를 검색할 수 없습니다. 잠시 후 다시 시도해주세요."
ALTERNATIVE_FAILED_MESSAGE = "죄송합니다. 해당 조건에 맞는 대체 레시피를 생성할 수 없습니다. 다른 방법을 시도해보세요."

LIST_CONFIDENCE = 0.8
DETAIL_CONFIDENCE = 0.9
DETAIL_NOT_FOUND_CONFIDENCE = 0.4
ALTERNATIVE_CONFIDENCE = 0.9
DEGRADED_CONFIDENCE = 0.3
CHAT_FALLBACK_CONFIDENCE = 0.5
SAFETY_NET_CONFIDENCE = 0.1

# Labelled queries for evaluate_intents().
DEFAULT_EVALUATION_SAMPLES = [
    {"message": "닭가슴살 요리 추천해줘", "expected_intent": "recipe_list"},
    {"message": "김치찌개 만드는 법 알려줘", "expected_intent": "recipe_detail"},
    {"message": "양파 없으면 뭘로 대체할까?", "expected_intent": "alternative_recipe"},
    {"message": "안녕하세요", "expected_intent": "general_chat"},
    {"message": "간단한 파스타 레시피", "expected_intent": "recipe_list"},
    {"message": "견과류 없는 샐러드 레시피", "expected_intent": "recipe_list", "allergies": ["견과류"]},
    {"message": "유제품 없는 디저트", "expected_intent": "recipe_list", "allergies": ["유제품", "우유"]},
]


class RecipeDialogueOrchestrator:
    """
    Top-level entry point of the dialogue pipeline.

    Reconstructs context, classifies intent, dispatches to the handler for
    that intent and assembles the response. ``handle`` never raises: every
    failure ends in a degraded response or the safety-net apology. Keeps an
    audit log of intent decisions and query statistics.
    """

    def __init__(self, client: TextCompletionClient, search_provider: RecipeSearchProvider,
                 store: Optional[ArtifactStore] = None, config: Optional[SystemConfig] = None,
                 prompts: Optional[PromptLibrary] = None,
                 context_analyzer: Optional[ContextAnalyzer] = None,
                 classifier: Optional[IntentClassifier] = None,
                 generator: Optional[AlternativeRecipeGenerator] = None,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.logger = get_logger(__name__)
        self.event_logger = DialogueEventLogger()
        self.config = config or SystemConfig()
        self.client = client
        self.search_provider = search_provider

        if store is None:
            if not isinstance(search_provider, ArtifactStore):
                raise TypeError("An ArtifactStore is required when the search provider is not one")
            store = search_provider
        self.store = store

        self.prompts = prompts or PromptLibrary(PromptCache(self.config.prompt_cache_config))
        self.context_analyzer = context_analyzer or ContextAnalyzer(
            client, self.prompts, self.config.context_config
        )
        self.classifier = classifier or IntentClassifier(
            client, self.prompts, self.config.classifier_config
        )
        self.generator = generator or AlternativeRecipeGenerator(
            client, self.store, self.prompts, self.config.generation_config
        )
        self._sleep = sleep

        self.state = OrchestratorState.STARTING
        self._init_lock = asyncio.Lock()

        self.handlers: Dict[UserIntent, Handler] = {
            UserIntent.RECIPE_LIST: self._handle_recipe_list,
            UserIntent.RECIPE_DETAIL: self._handle_recipe_detail,
            UserIntent.ALTERNATIVE_RECIPE: self._handle_alternative_recipe,
            UserIntent.GENERAL_CHAT: self._handle_general_chat,
        }

        # Intent decision log for audit trail
        self.decision_log: List[Dict[str, Any]] = []
        self._max_log_entries = self.config.orchestrator_config.max_decision_log_entries

        self._stats = {
            'total_queries': 0,
            'successful_queries': 0,
            'degraded_responses': 0,
            'fallback_searches': 0,
            'failed_queries': 0,
            'intent_usage': {intent.value: 0 for intent in UserIntent}
        }

        self.logger.info(f"RecipeDialogueOrchestrator created with model: {client.model_name}")

    async def initialize(self) -> OrchestratorState:
        """
        Wait for the completion provider and recover the generated-id counter.

        Returns:
            READY when the provider answered within the configured attempts,
            DEGRADED otherwise
        """
        settings = self.config.orchestrator_config
        ready = False

        for attempt in range(settings.readiness_attempts):
            try:
                ready = await self.client.is_ready()
            except Exception as e:
                self.logger.warning(f"Readiness check raised: {str(e)}")
                ready = False

            if ready:
                self.logger.info("Completion provider is ready")
                break

            self.logger.warning(
                f"Waiting for completion provider... ({attempt + 1}/{settings.readiness_attempts})"
            )
            if attempt + 1 < settings.readiness_attempts:
                await self._sleep(settings.readiness_interval_seconds)

        await self.generator.initialize_counter()

        self.state = OrchestratorState.READY if ready else OrchestratorState.DEGRADED
        if self.state is OrchestratorState.DEGRADED:
            self.event_logger.log_fallback("orchestrator", "fallback_search", "completion provider not ready")
        self.logger.info(f"Orchestrator state: {self.state.name}")
        return self.state

    async def _ensure_initialized(self) -> None:
        async with self._init_lock:
            if self.state is OrchestratorState.STARTING:
                await self.initialize()

    async def handle(self, query: Union[AgentQuery, Dict[str, Any]]) -> AgentResponse:
        """
        Process one user query.

        Args:
            query: AgentQuery, or its transport dict form

        Returns:
            AgentResponse; never raises
        """
        started = time.monotonic()
        self._stats['total_queries'] += 1
        deadline = Deadline(self.config.orchestrator_config.query_deadline_seconds)

        try:
            if isinstance(query, dict):
                query = AgentQuery.from_dict(query)
            self.logger.info(f"Processing query: \"{query.message[:50]}\"")

            if self.state is OrchestratorState.STARTING:
                await deadline.run(self._ensure_initialized())

            if self.state is OrchestratorState.DEGRADED:
                response = await deadline.run(self._fallback_search(query, started))
                self._stats['fallback_searches'] += 1
            else:
                response = await deadline.run(self._process(query, started, deadline))

            if deadline.expired:
                self.logger.warning("Query finished after its deadline")
                return self._safety_net(started)

            if response.degraded:
                self._stats['degraded_responses'] += 1
            self._stats['successful_queries'] += 1
            return response

        except Exception as e:
            handle_error(e, self.event_logger, {"stage": "orchestrator"})
            return self._safety_net(started)

    async def _process(self, query: AgentQuery, started: float, deadline: Deadline) -> AgentResponse:
        context = await self.context_analyzer.analyze_context(
            query.message, query.conversation_history, deadline
        )
        analysis = await self.classifier.classify_intent(query.message, context, deadline)
        self.log_intent_decision(query, analysis)

        handler = self.handlers.get(analysis.intent, self._handle_recipe_list)
        response = await handler(query, context, analysis, started, deadline)
        return self._assemble(response, analysis, started)

    def _assemble(self, response: AgentResponse, analysis: IntentAnalysis, started: float) -> AgentResponse:
        response.metadata.processing_time_ms = (time.monotonic() - started) * 1000
        response.metadata.intent = analysis.intent.value
        if response.degraded:
            response.metadata.confidence = min(response.metadata.confidence, analysis.confidence)
        else:
            response.metadata.confidence = analysis.confidence
        self.logger.info(
            f"Query processed in {response.metadata.processing_time_ms:.0f}ms: "
            f"intent {analysis.intent.value}, confidence {response.metadata.confidence:.2f}"
        )
        return response

    def _elapsed_ms(self, started: float) -> float:
        return (time.monotonic() - started) * 1000

    def _filters(self, query: AgentQuery, limit: Optional[int] = None) -> SearchFilters:
        if query.user_allergies:
            self.logger.info(f"Applying allergy filter: {', '.join(query.user_allergies)}")
        return SearchFilters(
            user_id=query.user_id,
            allergies=list(query.user_allergies),
            limit=limit or self.config.orchestrator_config.search_limit,
        )

    def _summarize_recipes(self, recipes: List[Recipe]) -> str:
        top_n = self.config.orchestrator_config.top_n_recipes
        lines = [
            f"{i + 1}. **{recipe.display_name}** ({recipe.minutes or 'N/A'}분, {recipe.difficulty or '보통'})"
            for i, recipe in enumerate(recipes[:top_n])
        ]
        return (
            f"🍽️ **레시피 추천**\n\n{len(recipes)}개의 맛있는 레시피를 찾았습니다!\n\n"
            + "\n".join(lines)
            + "\n\n각 레시피를 클릭하면 상세한 조리법을 확인할 수 있습니다. "
              "특별한 요청이나 다른 스타일의 요리를 원하시면 말씀해 주세요! 😊"
        )

    async def _handle_recipe_list(self, query: AgentQuery, context: ConversationContext,
                                  analysis: IntentAnalysis, started: float,
                                  deadline: Deadline) -> AgentResponse:
        tools_used = ['conversation_memory', 'recipe_search']

        try:
            recipes = await run_within(self.search_provider.search(query.message, self._filters(query)), deadline)
        except Exception as e:
            error = handle_error(e, self.event_logger, {"stage": "recipe_list"})
            self.logger.warning(f"Recipe search failed: {error.message}")
            return AgentResponse(
                message=SEARCH_FAILED_MESSAGE,
                suggestions=list(LIST_SUGGESTIONS),
                metadata=ResponseMetadata(
                    processing_time_ms=self._elapsed_ms(started),
                    tools_used=tools_used,
                    confidence=DEGRADED_CONFIDENCE,
                    response_type='recipe_recommendation'
                ),
                degraded=True
            )

        self.logger.info(f"Recipe search returned {len(recipes)} recipes")
        if recipes:
            message = self._summarize_recipes(recipes)
        else:
            message = "요청하신 조건에 맞는 레시피를 찾을 수 없습니다. 다른 키워드로 검색해보세요."

        return AgentResponse(
            message=message,
            recipes=recipes,
            suggestions=list(LIST_SUGGESTIONS),
            metadata=ResponseMetadata(
                processing_time_ms=self._elapsed_ms(started),
                tools_used=tools_used,
                confidence=LIST_CONFIDENCE,
                response_type='recipe_recommendation'
            )
        )

    async def _handle_recipe_detail(self, query: AgentQuery, context: ConversationContext,
                                    analysis: IntentAnalysis, started: float,
                                    deadline: Deadline) -> AgentResponse:
        tools_used = ['conversation_memory', 'recipe_detail_search']
        search_key = analysis.related_recipe or query.message

        recipe = None
        try:
            results = await run_within(self.search_provider.search(search_key, self._filters(query, 1)), deadline)
            recipe = results[0] if results else None
        except Exception as e:
            handle_error(e, self.event_logger, {"stage": "recipe_detail", "search_key": search_key})

        if recipe is None:
            return AgentResponse(
                message="해당 레시피를 찾을 수 없습니다. 다른 요리 이름으로 다시 물어봐 주세요.",
                suggestions=list(DETAIL_SUGGESTIONS),
                metadata=ResponseMetadata(
                    processing_time_ms=self._elapsed_ms(started),
                    tools_used=tools_used,
                    confidence=DETAIL_NOT_FOUND_CONFIDENCE,
                    response_type='recipe_detail'
                ),
                degraded=True
            )

        detail = to_recipe_detail(recipe)
        message = (
            f"🍽️ **{detail.title}** 상세 조리법\n\n"
            f"⏱️ **조리시간**: {detail.cooking_time}\n"
            f"👥 **인분**: {detail.servings_text}\n"
            f"📊 **난이도**: {detail.difficulty}\n\n"
            f"상세한 재료와 조리법은 아래 레시피 카드에서 확인하실 수 있습니다. 궁금한 점이 있으시면 언제든 물어보세요! 😊"
        )
        return AgentResponse(
            message=message,
            recipes=[],
            suggestions=list(DETAIL_SUGGESTIONS),
            recipe_detail=detail,
            metadata=ResponseMetadata(
                processing_time_ms=self._elapsed_ms(started),
                tools_used=tools_used,
                confidence=DETAIL_CONFIDENCE,
                response_type='recipe_detail'
            )
        )

    async def _handle_alternative_recipe(self, query: AgentQuery, context: ConversationContext,
                                         analysis: IntentAnalysis, started: float,
                                         deadline: Deadline) -> AgentResponse:
        tools_used = ['conversation_memory', 'intent_analysis', 'alternative_recipe_generation']

        try:
            original = await self._resolve_original_recipe(context, analysis, deadline)
            if original is None:
                self.event_logger.log_fallback("alternative_recipe", "recipe_list", "original recipe not found")
                return await self._handle_recipe_list(query, context, analysis, started, deadline)

            request = AlternativeRecipeRequest(
                original_recipe=original,
                missing_items=list(analysis.missing_items),
                user_message=query.message,
                user_id=query.user_id,
            )
            alternative = await self.generator.generate_or_find_alternative_recipe(request, deadline)

            if alternative is None:
                return AgentResponse(
                    message=ALTERNATIVE_FAILED_MESSAGE,
                    suggestions=["다른 요리 추천", "원본 레시피 보기"],
                    metadata=ResponseMetadata(
                        processing_time_ms=self._elapsed_ms(started),
                        tools_used=tools_used,
                        confidence=DEGRADED_CONFIDENCE,
                        response_type='error'
                    ),
                    degraded=True
                )

            if request.missing_items:
                message = f"{original.display_name}을(를) {', '.join(request.missing_items)} 없이 만드는 방법을 알려드릴게요!"
            else:
                message = f"{original.display_name}을(를) 다른 방법으로 만드는 방법을 알려드릴게요!"

            return AgentResponse(
                message=message,
                recipes=[alternative],
                suggestions=list(ALTERNATIVE_SUGGESTIONS),
                metadata=ResponseMetadata(
                    processing_time_ms=self._elapsed_ms(started),
                    tools_used=tools_used,
                    confidence=ALTERNATIVE_CONFIDENCE,
                    response_type='alternative_recipe'
                )
            )

        except Exception as e:
            handle_error(e, self.event_logger, {"stage": "alternative_recipe"})
            self.event_logger.log_fallback("alternative_recipe", "recipe_list", "alternative handling failed")
            return await self._handle_recipe_list(query, context, analysis, started, deadline)

    async def _resolve_original_recipe(self, context: ConversationContext, analysis: IntentAnalysis,
                                       deadline: Deadline) -> Optional[Recipe]:
        names = []
        if analysis.related_recipe:
            names.append(analysis.related_recipe)
        if context.last_recipes:
            names.append(context.last_recipes[0])

        for name in names:
            results = await run_within(self.search_provider.search(name, SearchFilters(limit=1)), deadline)
            if results:
                return results[0]
        return None

    async def _handle_general_chat(self, query: AgentQuery, context: ConversationContext,
                                   analysis: IntentAnalysis, started: float,
                                   deadline: Deadline) -> AgentResponse:
        settings = self.config.orchestrator_config
        prompt = self.prompts.general_chat(query.message, query.conversation_history)
        options = CompletionOptions(temperature=settings.chat_temperature, max_tokens=settings.chat_max_tokens)

        reply = ""
        try:
            reply = (await run_within(self.client.complete(prompt, options), deadline) or "").strip()
        except Exception as e:
            error = handle_error(e)
            self.logger.warning(f"General chat completion failed, using fallback message: {error.message}")

        if not reply:
            self.event_logger.log_fallback("general_chat", "fallback_prompt", "no chat reply")
            return AgentResponse(
                message=self.prompts.general_chat_fallback(),
                suggestions=["레시피 추천", "요리 도움말"],
                metadata=ResponseMetadata(
                    processing_time_ms=self._elapsed_ms(started),
                    tools_used=['fallback_prompt'],
                    confidence=CHAT_FALLBACK_CONFIDENCE,
                    response_type='general_chat'
                ),
                degraded=True
            )

        return AgentResponse(
            message=reply,
            suggestions=list(CHAT_SUGGESTIONS),
            metadata=ResponseMetadata(
                processing_time_ms=self._elapsed_ms(started),
                tools_used=['ai_response', 'prompt_template'],
                confidence=analysis.confidence,
                response_type='general_chat'
            )
        )

    async def _fallback_search(self, query: AgentQuery, started: float) -> AgentResponse:
        """Direct search used while the completion provider is unavailable."""
        self.logger.warning("Answering with direct search fallback")
        recipes = await self.search_provider.search(query.message, self._filters(query))
        top = recipes[:self.config.orchestrator_config.top_n_recipes]
        return AgentResponse(
            message=f"{len(recipes)}개의 레시피를 찾았습니다." if recipes else "레시피를 찾을 수 없습니다.",
            recipes=top,
            suggestions=list(LIST_SUGGESTIONS),
            metadata=ResponseMetadata(
                processing_time_ms=self._elapsed_ms(started),
                tools_used=['fallback_search'],
                confidence=DEGRADED_CONFIDENCE,
                response_type='fallback_search',
                intent=UserIntent.RECIPE_LIST.value
            ),
            degraded=True
        )

    def _safety_net(self, started: float) -> AgentResponse:
        self._stats['failed_queries'] += 1
        return AgentResponse(
            message=SAFETY_NET_MESSAGE,
            suggestions=list(SAFETY_NET_SUGGESTIONS),
            metadata=ResponseMetadata(
                processing_time_ms=self._elapsed_ms(started),
                tools_used=[],
                confidence=SAFETY_NET_CONFIDENCE,
                response_type='error'
            ),
            degraded=True
        )

    def log_intent_decision(self, query: AgentQuery, analysis: IntentAnalysis) -> None:
        """
        Record an intent decision in the audit log.

        Args:
            query: The query that was classified
            analysis: The classifier's result
        """
        try:
            decision = analysis.to_dict()
            decision.update({
                'timestamp': datetime.now().isoformat(),
                'message': query.message[:100],
                'session_id': query.session_id,
            })
            self.decision_log.append(decision)

            # Maintain log size limit
            if len(self.decision_log) > self._max_log_entries:
                self.decision_log = self.decision_log[-self._max_log_entries // 2:]  # Keep last half

            self._stats['intent_usage'][analysis.intent.value] += 1
            self.event_logger.log_intent_decision(decision)

        except Exception as e:
            self.logger.error(f"Failed to log intent decision: {str(e)}")

    def get_status(self) -> Dict[str, Any]:
        """Get orchestrator state and component summary."""
        return {
            'state': self.state.name,
            'is_healthy': self.is_healthy(),
            'model_name': self.client.model_name,
            'strategies': self.classifier.strategy_names,
            'prompt_cache_size': len(self.prompts.cache),
            'handlers': [intent.value for intent in self.handlers],
        }

    def get_statistics(self) -> Dict[str, Any]:
        """Get query statistics."""
        total = self._stats['total_queries']
        stats = {
            'total_queries': total,
            'successful_queries': self._stats['successful_queries'],
            'degraded_responses': self._stats['degraded_responses'],
            'fallback_searches': self._stats['fallback_searches'],
            'failed_queries': self._stats['failed_queries'],
            'success_rate': (self._stats['successful_queries'] / total * 100) if total > 0 else 0,
            'intent_usage': self._stats['intent_usage'].copy(),
            'recent_decisions': len(self.decision_log),
            'log_capacity': self._max_log_entries
        }
        return stats

    def get_recent_decisions(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Get recent intent decisions for debugging and analysis."""
        return [dict(decision) for decision in self.decision_log[-limit:]] if limit > 0 else []

    def clear_decision_log(self) -> None:
        self.decision_log.clear()
        self.logger.info("Intent decision log cleared")

    def is_healthy(self) -> bool:
        return self.state is OrchestratorState.READY

    async def evaluate_intents(self, samples: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
        """
        Run labelled queries through ``handle`` and report intent accuracy.

        Args:
            samples: Dicts with ``message``, ``expected_intent`` and optional
                ``allergies``; defaults to DEFAULT_EVALUATION_SAMPLES

        Returns:
            Per-query results and a summary with accuracy and mean confidence
        """
        samples = samples if samples is not None else DEFAULT_EVALUATION_SAMPLES
        test_started = time.monotonic()
        results = []

        for sample in samples:
            query = AgentQuery(
                message=sample["message"],
                user_id="evaluation-user",
                session_id="evaluation-session",
                user_allergies=list(sample.get("allergies", [])),
            )
            response = await self.handle(query)
            results.append({
                'query': sample["message"],
                'expected_intent': sample.get("expected_intent"),
                'actual_intent': response.metadata.intent,
                'processing_time_ms': response.metadata.processing_time_ms,
                'confidence': response.metadata.confidence,
                'tools_used': list(response.metadata.tools_used),
                'recipe_count': len(response.recipes),
                'success': response.metadata.response_type != 'error',
            })

        successful = [r for r in results if r['success']]
        correct = [r for r in successful if r['actual_intent'] == r['expected_intent']]
        summary = {
            'total_queries': len(results),
            'successful_queries': len(successful),
            'failed_queries': len(results) - len(successful),
            'intent_accuracy': (len(correct) / len(successful) * 100) if successful else 0.0,
            'average_confidence': round(sum(r['confidence'] for r in successful) / len(successful), 2) if successful else 0.0,
            'average_processing_time_ms': (sum(r['processing_time_ms'] for r in results) / len(results)) if results else 0.0,
        }

        self.logger.info(f"Intent evaluation complete: {summary}")
        return {
            'timestamp': datetime.now().isoformat(),
            'total_time_ms': (time.monotonic() - test_started) * 1000,
            'query_results': results,
            'summary': summary,
        }
