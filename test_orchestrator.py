"""
End-to-end tests for the dialogue orchestrator.
"""

import asyncio
import json
import time

import pytest

from conftest import ScriptedCompletionClient, FailingSearchProvider
from recipe_dialogue.core.orchestrator import RecipeDialogueOrchestrator, SAFETY_NET_MESSAGE
from recipe_dialogue.core.prompts import GENERAL_CHAT_TOPICS
from recipe_dialogue.models import (
    AgentQuery, ConversationTurn, OrchestratorConfig, OrchestratorState, Recipe, SystemConfig, UserIntent,
)
from recipe_dialogue.utils.deadline import Deadline, run_within
from recipe_dialogue.utils.error_handling import ProviderUnavailable, ProviderTimeout


INTENT_MARKER = "의도 분석 전문가"
CONTEXT_MARKER = "대화 맥락을 정확히 분석"
ALTERNATIVE_MARKER = "대체 레시피를 만들어주세요"
CHAT_MARKER = "요리 전문 챗봇입니다"

PAN_CHICKEN = json.dumps({
    "nameKo": "팬 허브 닭가슴살 구이",
    "ingredientsKo": ["닭가슴살", "허브", "올리브유"],
    "stepsKo": ["팬을 달굽니다.", "닭가슴살을 굽습니다."],
    "cookingTime": 20,
}, ensure_ascii=False)

OVEN_HISTORY = [
    ConversationTurn("user", "닭가슴살 요리 추천해줘"),
    ConversationTurn("assistant", "1. **오븐 닭가슴살 구이** (35분, 보통)"),
]


def make_config(**overrides):
    settings = dict(readiness_attempts=2, readiness_interval_seconds=0.0, query_deadline_seconds=5.0)
    settings.update(overrides)
    return SystemConfig(orchestrator_config=OrchestratorConfig(**settings))


def routed(intent_json, context_json='{"lastRecipes": []}', alternative=PAN_CHICKEN, chat="반가워요!"):
    """Responder that answers each prompt kind with a fixed reply."""
    def responder(prompt):
        if ALTERNATIVE_MARKER in prompt:
            return alternative
        if CONTEXT_MARKER in prompt:
            return context_json
        if INTENT_MARKER in prompt:
            return intent_json
        if CHAT_MARKER in prompt:
            return chat
        return ProviderUnavailable("unexpected prompt")
    return responder


def run_query(orchestrator, message, **kwargs):
    return asyncio.run(orchestrator.handle(AgentQuery(message=message, **kwargs)))


class TestRecipeList:
    def test_end_to_end_recommendation(self, repository):
        client = ScriptedCompletionClient(default='{"intent": "recipe_list", "confidence": 0.9}')
        orchestrator = RecipeDialogueOrchestrator(client, repository, config=make_config())

        response = run_query(orchestrator, "닭가슴살 요리 추천해줘")

        assert len(response.recipes) == 3
        assert [r.id for r in response.recipes] == ["r_1003", "r_1001", "r_1002"]
        assert response.metadata.intent == "recipe_list"
        assert response.metadata.confidence == 0.9
        assert response.metadata.response_type == "recipe_recommendation"
        assert response.metadata.tools_used == ["conversation_memory", "recipe_search"]
        assert "**오븐 닭가슴살 구이**" in response.message
        assert response.metadata.processing_time_ms >= 0

    def test_allergies_filter_results(self, repository):
        client = ScriptedCompletionClient(default='{"intent": "recipe_list", "confidence": 0.9}')
        orchestrator = RecipeDialogueOrchestrator(client, repository, config=make_config())

        response = run_query(orchestrator, "닭가슴살 요리 추천해줘", user_allergies=["올리브유"])

        assert [r.id for r in response.recipes] == ["r_1002"]

    def test_search_failure_is_degraded(self, repository):
        client = ScriptedCompletionClient(default='{"intent": "recipe_list", "confidence": 0.9}')
        orchestrator = RecipeDialogueOrchestrator(client, FailingSearchProvider(), store=repository,
                                                  config=make_config())

        response = run_query(orchestrator, "닭가슴살 요리 추천해줘")

        assert response.recipes == []
        assert response.metadata.confidence == 0.3
        assert response.metadata.response_type == "recipe_recommendation"
        assert orchestrator.get_statistics()["degraded_responses"] == 1


class TestRecipeDetail:
    def test_detail_attached(self, repository):
        client = ScriptedCompletionClient(
            default='{"intent": "recipe_detail", "relatedRecipe": "김치찌개", "confidence": 0.95}'
        )
        orchestrator = RecipeDialogueOrchestrator(client, repository, config=make_config())

        response = run_query(orchestrator, "김치찌개 만드는 법 알려줘")

        assert response.recipes == []
        assert response.recipe_detail.title == "김치찌개"
        assert response.recipe_detail.cooking_time == "40분"
        assert response.metadata.confidence == 0.95
        assert response.metadata.response_type == "recipe_detail"
        assert response.to_dict()["recipe_detail"]["recipe_id"] == "r_2001"

    def test_unknown_recipe_is_degraded(self, repository):
        client = ScriptedCompletionClient(
            default='{"intent": "recipe_detail", "relatedRecipe": "존재하지않는요리", "confidence": 0.95}'
        )
        orchestrator = RecipeDialogueOrchestrator(client, repository, config=make_config())

        response = run_query(orchestrator, "존재하지않는요리 만드는 법")

        assert response.recipe_detail is None
        assert response.metadata.confidence == 0.4
        assert response.metadata.response_type == "recipe_detail"


class TestAlternativeRecipe:
    ALTERNATIVE_INTENT = json.dumps({
        "intent": "alternative_recipe",
        "confidence": 0.88,
        "needsAlternative": True,
        "missingItems": ["오븐"],
        "relatedRecipe": "오븐 닭가슴살 구이",
    }, ensure_ascii=False)

    CONTEXT = json.dumps({
        "lastRecipes": ["오븐 닭가슴살 구이"],
        "userReferences": ["없으면"],
        "conversationSummary": "오븐 요리 추천 후 대체 방법 문의",
    }, ensure_ascii=False)

    def test_generates_alternative(self, repository):
        client = ScriptedCompletionClient(responder=routed(self.ALTERNATIVE_INTENT, self.CONTEXT))
        orchestrator = RecipeDialogueOrchestrator(client, repository, config=make_config())

        response = run_query(orchestrator, "오븐이 없으면 어떻게 만들어?", conversation_history=list(OVEN_HISTORY))

        assert len(response.recipes) == 1
        recipe = response.recipes[0]
        assert recipe.id == "make_ai_1"
        assert recipe.original_recipe_id == "r_1003"
        assert "오븐 없이" in response.message
        assert response.metadata.response_type == "alternative_recipe"
        assert response.metadata.confidence == 0.88
        assert "alternative_recipe_generation" in response.metadata.tools_used

    def test_repeat_request_reuses_stored_alternative(self, repository):
        client = ScriptedCompletionClient(responder=routed(self.ALTERNATIVE_INTENT, self.CONTEXT))
        orchestrator = RecipeDialogueOrchestrator(client, repository, config=make_config())

        first = run_query(orchestrator, "오븐이 없으면 어떻게 만들어?", conversation_history=list(OVEN_HISTORY))
        second = run_query(orchestrator, "오븐이 없으면 어떻게 만들어?", conversation_history=list(OVEN_HISTORY))

        assert first.recipes[0].id == second.recipes[0].id
        assert sum(1 for prompt in client.prompts if ALTERNATIVE_MARKER in prompt) == 1

    def test_without_original_falls_back_to_list(self, repository):
        client = ScriptedCompletionClient(default='{"intent": "alternative_recipe", "confidence": 0.8}')
        orchestrator = RecipeDialogueOrchestrator(client, repository, config=make_config())

        response = run_query(orchestrator, "닭가슴살 다른 버전")

        assert response.metadata.response_type == "recipe_recommendation"
        assert response.metadata.intent == "alternative_recipe"
        assert len(response.recipes) == 3

    def test_generation_failure_is_degraded(self, repository):
        client = ScriptedCompletionClient(
            responder=routed(self.ALTERNATIVE_INTENT, self.CONTEXT, alternative="만들 수 없어요")
        )
        orchestrator = RecipeDialogueOrchestrator(client, repository, config=make_config())

        response = run_query(orchestrator, "오븐이 없으면 어떻게 만들어?", conversation_history=list(OVEN_HISTORY))

        assert response.recipes == []
        assert response.metadata.response_type == "error"
        assert response.metadata.confidence == 0.3


class TestGeneralChat:
    def test_chat_reply(self, repository):
        client = ScriptedCompletionClient(
            responder=routed('{"intent": "general_chat", "confidence": 0.95}', chat="  안녕하세요! 무엇을 요리해볼까요?  ")
        )
        orchestrator = RecipeDialogueOrchestrator(client, repository, config=make_config())

        response = run_query(orchestrator, "안녕하세요")

        assert response.message == "안녕하세요! 무엇을 요리해볼까요?"
        assert response.metadata.tools_used == ["ai_response", "prompt_template"]
        assert response.metadata.confidence == 0.95

    def test_always_failing_provider_gives_low_confidence_fallback(self, repository):
        client = ScriptedCompletionClient(default=ProviderUnavailable("ollama down"))
        orchestrator = RecipeDialogueOrchestrator(client, repository, config=make_config())

        response = run_query(orchestrator, "닭가슴살 요리 추천해줘")

        assert response.metadata.confidence <= 0.3
        assert response.metadata.intent == "general_chat"
        assert response.metadata.tools_used == ["fallback_prompt"]
        assert GENERAL_CHAT_TOPICS[0] in response.message


class TestLifecycle:
    def test_lazy_initialization(self, repository):
        client = ScriptedCompletionClient(default='{"intent": "recipe_list", "confidence": 0.9}')
        orchestrator = RecipeDialogueOrchestrator(client, repository, config=make_config())
        assert orchestrator.state is OrchestratorState.STARTING

        run_query(orchestrator, "닭가슴살 요리 추천해줘")
        run_query(orchestrator, "김치찌개 추천해줘")

        assert orchestrator.state is OrchestratorState.READY
        assert client.ready_checks == 1

    def test_unready_provider_gives_degraded_mode(self, repository):
        client = ScriptedCompletionClient(ready=False)
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        orchestrator = RecipeDialogueOrchestrator(client, repository, config=make_config(readiness_attempts=3),
                                                  sleep=fake_sleep)

        assert asyncio.run(orchestrator.initialize()) is OrchestratorState.DEGRADED
        assert client.ready_checks == 3
        assert len(sleeps) == 2
        assert orchestrator.is_healthy() is False

        response = run_query(orchestrator, "닭가슴살 요리 추천해줘")

        assert response.metadata.response_type == "fallback_search"
        assert response.metadata.tools_used == ["fallback_search"]
        assert response.metadata.confidence == 0.3
        assert response.metadata.intent == "recipe_list"
        assert len(response.recipes) == 3
        assert client.calls == []
        assert orchestrator.get_statistics()["fallback_searches"] == 1

    def test_readiness_error_counts_as_not_ready(self, repository):
        client = ScriptedCompletionClient(ready=ConnectionError("refused"))
        orchestrator = RecipeDialogueOrchestrator(client, repository, config=make_config())

        assert asyncio.run(orchestrator.initialize()) is OrchestratorState.DEGRADED

    def test_initialization_recovers_id_counter(self, repository):
        client = ScriptedCompletionClient()
        orchestrator = RecipeDialogueOrchestrator(client, repository, config=make_config())
        asyncio.run(repository.persist(Recipe(id="make_ai_41", name_ko="저장된 레시피")))

        asyncio.run(orchestrator.initialize())

        assert orchestrator.generator.id_allocator.next_value == 42

    def test_store_is_required_for_plain_search_provider(self):
        with pytest.raises(TypeError):
            RecipeDialogueOrchestrator(ScriptedCompletionClient(), FailingSearchProvider())


class TestSafetyNet:
    def test_deadline_yields_safety_net(self, repository):
        client = ScriptedCompletionClient(default='{"intent": "recipe_list", "confidence": 0.9}', delay=5.0)
        orchestrator = RecipeDialogueOrchestrator(client, repository, config=make_config(query_deadline_seconds=0.2))

        started = time.monotonic()
        response = run_query(orchestrator, "닭가슴살 요리 추천해줘")

        assert time.monotonic() - started < 3.0
        assert response.message == SAFETY_NET_MESSAGE
        assert response.metadata.confidence == 0.1
        assert response.metadata.tools_used == []
        assert response.metadata.response_type == "error"
        assert orchestrator.get_statistics()["failed_queries"] == 1

    def test_handler_exception_yields_safety_net(self, repository):
        client = ScriptedCompletionClient(default='{"intent": "recipe_list", "confidence": 0.9}')
        orchestrator = RecipeDialogueOrchestrator(client, repository, config=make_config())

        async def broken_handler(query, context, analysis, started, deadline):
            raise RuntimeError("handler bug")

        orchestrator.handlers[UserIntent.RECIPE_LIST] = broken_handler

        response = run_query(orchestrator, "닭가슴살 요리 추천해줘")

        assert response.metadata.response_type == "error"
        assert response.metadata.confidence == 0.1


class TestAuditAndStatistics:
    def test_decisions_and_statistics(self, repository):
        client = ScriptedCompletionClient(default='{"intent": "recipe_list", "confidence": 0.9}')
        orchestrator = RecipeDialogueOrchestrator(client, repository, config=make_config())

        run_query(orchestrator, "닭가슴살 요리 추천해줘", session_id="s1")
        asyncio.run(orchestrator.handle({"message": "김치찌개 추천해줘", "sessionId": "s2", "userId": "u1"}))

        stats = orchestrator.get_statistics()
        assert stats["total_queries"] == 2
        assert stats["successful_queries"] == 2
        assert stats["success_rate"] == 100.0
        assert stats["intent_usage"]["recipe_list"] == 2

        recent = orchestrator.get_recent_decisions(1)
        assert len(recent) == 1
        assert recent[0]["intent"] == "recipe_list"
        assert recent[0]["session_id"] == "s2"
        assert recent[0]["stage"] == "primary_llm"

        orchestrator.clear_decision_log()
        assert orchestrator.get_recent_decisions() == []

    def test_decision_log_keeps_last_half_when_full(self, repository):
        client = ScriptedCompletionClient(default='{"intent": "recipe_list", "confidence": 0.9}')
        orchestrator = RecipeDialogueOrchestrator(client, repository, config=make_config(max_decision_log_entries=4))

        for i in range(5):
            run_query(orchestrator, f"닭가슴살 요리 {i}")

        assert [d["message"] for d in orchestrator.decision_log] == ["닭가슴살 요리 3", "닭가슴살 요리 4"]

    def test_status(self, repository):
        client = ScriptedCompletionClient(default='{"intent": "recipe_list", "confidence": 0.9}')
        orchestrator = RecipeDialogueOrchestrator(client, repository, config=make_config())
        run_query(orchestrator, "닭가슴살 요리 추천해줘")

        status = orchestrator.get_status()

        assert status["state"] == "READY"
        assert status["is_healthy"] is True
        assert status["model_name"] == "scripted-model"
        assert status["strategies"] == ["primary_llm", "simplified_llm", "heuristic"]
        assert status["prompt_cache_size"] == 1
        assert set(status["handlers"]) == {intent.value for intent in UserIntent}

    def test_evaluate_intents(self, repository):
        client = ScriptedCompletionClient(default='{"intent": "recipe_list", "confidence": 0.9}')
        orchestrator = RecipeDialogueOrchestrator(client, repository, config=make_config())

        report = asyncio.run(orchestrator.evaluate_intents([
            {"message": "닭가슴살 요리 추천해줘", "expected_intent": "recipe_list"},
            {"message": "안녕하세요", "expected_intent": "general_chat"},
        ]))

        summary = report["summary"]
        assert summary["total_queries"] == 2
        assert summary["successful_queries"] == 2
        assert summary["intent_accuracy"] == 50.0
        assert summary["average_confidence"] == 0.9
        assert report["query_results"][0]["recipe_count"] == 3


class TestDeadline:
    def test_run_returns_value(self):
        async def value():
            return 7

        assert asyncio.run(Deadline(1.0).run(value())) == 7

    def test_spent_budget_raises_without_awaiting(self):
        async def scenario():
            deadline = Deadline(0.0)
            with pytest.raises(ProviderTimeout):
                await deadline.run(asyncio.sleep(1))
            return deadline.expired

        assert asyncio.run(scenario()) is True

    def test_slow_call_is_cut_off(self):
        with pytest.raises(ProviderTimeout):
            asyncio.run(Deadline(0.05).run(asyncio.sleep(2)))

    def test_run_within_without_deadline(self):
        async def value():
            return "done"

        assert asyncio.run(run_within(value())) == "done"
