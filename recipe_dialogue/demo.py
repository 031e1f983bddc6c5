"""
Demo script showing basic usage of the recipe dialogue pipeline.
"""

import asyncio
import json
import sys
from typing import List, Optional

from .models import AgentQuery, ConversationTurn, Recipe
from .utils import setup_logging, get_logger, ConfigManager
from .core import RecipeDialogueOrchestrator, InMemoryRecipeRepository, create_completion_client


SAMPLE_RECIPES = [
    Recipe(
        id="r_1001", name="Grilled Chicken Breast Salad", name_ko="닭가슴살 샐러드",
        description_ko="담백한 닭가슴살과 신선한 채소로 만든 샐러드",
        ingredients_ko=["닭가슴살", "양상추", "방울토마토", "올리브유", "소금"],
        steps_ko=["닭가슴살을 소금으로 밑간합니다.", "팬에 굽습니다.", "채소와 함께 담아냅니다."],
        minutes=20, difficulty="쉬움", tags=["샐러드", "다이어트"], rating=4.5,
    ),
    Recipe(
        id="r_1002", name="Chicken Breast Stir-fry", name_ko="닭가슴살 볶음",
        description_ko="간장 양념으로 볶아낸 닭가슴살 요리",
        ingredients_ko=["닭가슴살", "양파", "간장", "마늘", "식용유"],
        minutes=25, difficulty="보통", tags=["볶음"], rating=4.2,
    ),
    Recipe(
        id="r_1003", name="Oven Baked Chicken Breast", name_ko="오븐 닭가슴살 구이",
        description_ko="오븐에 구워 촉촉한 닭가슴살",
        ingredients_ko=["닭가슴살", "허브", "올리브유", "후추"],
        steps_ko=["오븐을 200도로 예열합니다.", "닭가슴살에 허브를 바릅니다.", "25분간 굽습니다."],
        minutes=35, difficulty="보통", tags=["오븐", "구이"], rating=4.7,
    ),
    Recipe(
        id="r_2001", name="Kimchi Stew", name_ko="김치찌개",
        description_ko="잘 익은 김치와 돼지고기로 끓인 찌개",
        ingredients_ko=["김치", "돼지고기", "두부", "대파", "고춧가루"],
        steps_ko=["돼지고기를 볶습니다.", "김치를 넣고 함께 볶습니다.", "물을 붓고 끓인 뒤 두부를 넣습니다."],
        minutes=40, difficulty="보통", tags=["찌개", "한식"], rating=4.8,
    ),
]


def build_repository(seed_path: Optional[str] = None) -> InMemoryRecipeRepository:
    if seed_path:
        return InMemoryRecipeRepository.from_json_file(seed_path)
    return InMemoryRecipeRepository(list(SAMPLE_RECIPES))


def sample_queries() -> List[AgentQuery]:
    return [
        AgentQuery(message="닭가슴살 요리 추천해줘", user_id="demo_user"),
        AgentQuery(message="김치찌개 만드는 법 알려줘", user_id="demo_user"),
        AgentQuery(
            message="오븐이 없으면 어떻게 만들어?",
            user_id="demo_user",
            conversation_history=[
                ConversationTurn("user", "닭가슴살 요리 추천해줘"),
                ConversationTurn("assistant", "1. **오븐 닭가슴살 구이** (35분, 보통)"),
            ],
        ),
        AgentQuery(message="안녕하세요", user_id="demo_user"),
    ]


async def run_demo(seed_path: Optional[str] = None) -> None:
    """Run the sample queries against the configured provider."""
    config_manager = ConfigManager()
    config = config_manager.load_config()

    setup_logging(config.logging_config)
    logger = get_logger(__name__)

    logger.info("Recipe Dialogue Demo Starting")

    repository = build_repository(seed_path)
    client = create_completion_client(config)
    orchestrator = RecipeDialogueOrchestrator(client, repository, config=config)

    state = await orchestrator.initialize()
    logger.info(f"Orchestrator initialized in state {state.name}")

    for i, query in enumerate(sample_queries(), 1):
        logger.info(f"Processing query {i}: {query.message}")
        response = await orchestrator.handle(query)
        print(f"\nQuery {i}: {query.message}")
        print(f"Response: {response.message}")
        print(json.dumps(response.to_dict()["metadata"], ensure_ascii=False))
        print("-" * 50)

    print(json.dumps(orchestrator.get_statistics(), ensure_ascii=False, indent=2))
    logger.info("Demo completed successfully")


def main() -> None:
    seed_path = sys.argv[1] if len(sys.argv) > 1 else None
    asyncio.run(run_demo(seed_path))


if __name__ == "__main__":
    main()
