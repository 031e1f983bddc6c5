"""
Tests for prompt skeleton caching and prompt construction.
"""

from recipe_dialogue.core.prompts import PromptCache, PromptLibrary
from recipe_dialogue.models import AlternativeRecipeRequest, ConversationContext, ConversationTurn, PromptCacheConfig


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestPromptCache:
    def test_hit_reuses_skeleton(self):
        cache = PromptCache(clock=FakeClock())
        built = []

        def factory():
            built.append(1)
            return "skeleton"

        assert cache.get_or_create("k", factory) == "skeleton"
        assert cache.get_or_create("k", factory) == "skeleton"
        assert len(built) == 1
        assert (cache.hits, cache.misses) == (1, 1)

    def test_entries_expire_after_ttl(self):
        clock = FakeClock()
        cache = PromptCache(PromptCacheConfig(ttl_seconds=300.0), clock=clock)
        cache.get_or_create("k", lambda: "old")

        clock.now += 299.0
        assert cache.get_or_create("k", lambda: "new") == "old"

        clock.now += 1.0
        assert "k" not in cache
        assert cache.get_or_create("k", lambda: "new") == "new"

    def test_oldest_entry_evicted_when_full(self):
        cache = PromptCache(PromptCacheConfig(max_size=2), clock=FakeClock())
        for key in ("a", "b", "c"):
            cache.get_or_create(key, lambda: key)

        assert len(cache) == 2
        assert "a" not in cache
        assert "b" in cache and "c" in cache

    def test_purge_expired_reports_count(self):
        clock = FakeClock()
        cache = PromptCache(PromptCacheConfig(ttl_seconds=10.0), clock=clock)
        cache.get_or_create("a", lambda: "a")
        cache.get_or_create("b", lambda: "b")

        clock.now += 10.0

        assert cache.purge_expired() == 2
        assert len(cache) == 0


class TestPromptLibrary:
    def test_intent_prompt_substitutes_message_and_context(self):
        library = PromptLibrary(PromptCache(clock=FakeClock()))
        context = ConversationContext(has_context=True, last_recipes=["김치찌개"], user_references=["그거"])

        prompt = library.intent_classification("그거 어떻게 만들어?", context)

        assert "그거 어떻게 만들어?" in prompt
        assert "최근 언급된 레시피: 김치찌개" in prompt
        assert "$" not in prompt

    def test_cache_holds_no_user_data(self):
        cache = PromptCache(clock=FakeClock())
        library = PromptLibrary(cache)
        context = ConversationContext(has_context=True, last_recipes=["비밀레시피"], user_references=["그거"])

        library.intent_classification("고유메시지123", context)
        library.general_chat("안녕 고유메시지456", [ConversationTurn("user", "이전대화789")])

        skeletons = [skeleton for _, skeleton in cache._entries.values()]
        for marker in ("고유메시지123", "비밀레시피", "고유메시지456", "이전대화789"):
            assert not any(marker in skeleton for skeleton in skeletons)

    def test_same_shape_shares_one_entry(self):
        cache = PromptCache(clock=FakeClock())
        library = PromptLibrary(cache)

        first = library.intent_classification("닭가슴살 요리 추천해줘")
        second = library.intent_classification("김치찌개 알려줘")

        assert len(cache) == 1
        assert "닭가슴살 요리 추천해줘" in first
        assert "김치찌개 알려줘" in second
        assert "새로운 대화 시작" in second

    def test_alternative_prompt_lists_missing_items(self, sample_recipes):
        library = PromptLibrary()
        request = AlternativeRecipeRequest(sample_recipes[2], ["오븐"], "오븐이 없으면?")

        prompt = library.alternative_recipe(request)

        assert "없는 재료(오븐)" in prompt
        assert "오븐 닭가슴살 구이" in prompt
        assert prompt.rstrip().endswith("Start with { and end with }.")

    def test_general_chat_fallback_is_static(self):
        library = PromptLibrary()

        message = library.general_chat_fallback()

        assert "'간단한 요리'" in message
        assert "$" not in message
