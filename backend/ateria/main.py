"""
Ateria - Terminal Chat

Developer entry point for the food-diary conversation engine. Wires the
settings to the Fineli search provider and the optional Gemini provider,
then runs a chat loop that persists the conversation as JSON between
turns, exactly as a stateless HTTP caller would.

Usage:
    python -m ateria.main --meal lunch
    python -m ateria.main --lang en
"""

import argparse
import asyncio
import json
import logging
from typing import Optional

from ateria.agents.fineli_client import FineliClient
from ateria.agents.gemini_provider import GeminiProvider
from ateria.config import Settings, get_settings
from ateria.core.ai_engine import process_message_with_ai
from ateria.core.nutrients import nutrient_summary, sum_nutrients
from ateria.core.orchestrator import TurnOrchestrator
from ateria.core.questions import text
from ateria.core.state import MEAL_TYPE_LABELS, AIEngineStepResult, MealType, ResolvedItem
from ateria.core.storage import ConversationStore

logger = logging.getLogger(__name__)

QUIT_COMMANDS = {"/quit", "/exit"}


def configure_logging(settings: Optional[Settings] = None) -> None:
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def configure_tracing(settings: Settings) -> None:
    """Enable Opik tracing when a key is configured."""
    if not settings.opik_api_key:
        return
    try:
        import opik
        opik.configure(api_key=settings.opik_api_key)
        logger.info(f"📊 Opik tracing enabled - Project: {settings.opik_project_name}")
    except Exception as e:
        logger.warning(f"⚠️ Opik initialization failed: {e}")


def create_ai_provider(settings: Settings) -> Optional[GeminiProvider]:
    if not settings.ai_enabled:
        return None
    provider = GeminiProvider()
    return provider if provider.available else None


def create_engine(settings: Optional[Settings] = None) -> tuple[TurnOrchestrator, FineliClient, Optional[GeminiProvider]]:
    """Build the orchestrator and its capabilities from settings."""
    settings = settings or get_settings()
    search_client = FineliClient()
    orchestrator = TurnOrchestrator(search_provider=search_client)
    provider = create_ai_provider(settings)

    key_status = settings.validate_required_keys()
    for key, configured in key_status.items():
        status = "✅" if configured else "⚠️ Missing"
        logger.info(f"  {key}: {status}")
    logger.info(f"AI provider: {settings.ai_provider if provider else 'none'}")

    return orchestrator, search_client, provider


def format_turn(result: AIEngineStepResult) -> str:
    """Render a turn's reply, options and suggestions for the terminal."""
    lines = [result.ai_message or result.assistant_message]

    metadata = result.question_metadata
    if metadata and metadata.options:
        for i, option in enumerate(metadata.options, 1):
            sublabel = f" ({option.sublabel})" if option.sublabel else ""
            lines.append(f"  {i}. {option.label}{sublabel}")

    for suggestion in result.suggestions:
        lines.append(f"  💡 {suggestion.message}")

    return "\n".join(line for line in lines if line)


def format_totals(resolved: list[ResolvedItem], language: str = "fi") -> str:
    totals = nutrient_summary(sum_nutrients(*(item.computed_nutrients for item in resolved)))
    return text(language, "totals", **totals)


async def run_chat(meal_type: MealType, language: str) -> None:
    settings = get_settings()
    orchestrator, search_client, provider = create_engine(settings)
    store = ConversationStore()
    state = store.new_state(language=language)
    resolved: dict[str, ResolvedItem] = {}

    print(f"🍽️  {MEAL_TYPE_LABELS[meal_type]} - /state, /quit")

    try:
        while True:
            try:
                message = await asyncio.to_thread(input, "> ")
            except EOFError:
                break

            if message.strip() in QUIT_COMMANDS:
                break
            if message.strip() == "/state":
                print(json.dumps(store.load_wire(state.meal_id), ensure_ascii=False, indent=2))
                continue

            result = await process_message_with_ai(
                message,
                store.load(state.meal_id),
                orchestrator,
                provider=provider,
                meal_type=meal_type,
            )
            state = store.save(result.updated_state)

            for item in result.resolved_items:
                resolved[item.parsed_item_id] = item
            current_ids = {item.id for item in state.items}
            resolved = {k: v for k, v in resolved.items() if k in current_ids}

            print(format_turn(result))
            if state.is_complete and resolved:
                print(format_totals(list(resolved.values()), state.language))
    finally:
        await search_client.aclose()


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Ateria food-diary chat")
    parser.add_argument(
        "--meal",
        choices=[m.value for m in MealType],
        default=MealType.OTHER.value,
        help="Meal being logged",
    )
    parser.add_argument("--lang", choices=["fi", "en"], default="fi", help="Conversation language")
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings)
    logger.info("🚀 Starting Ateria chat")
    logger.info(f"Environment: {settings.environment}")
    configure_tracing(settings)

    asyncio.run(run_chat(MealType(args.meal), args.lang))
    logger.info("👋 Shutting down Ateria chat")


if __name__ == "__main__":
    main()
