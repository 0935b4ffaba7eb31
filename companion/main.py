"""
Main entrypoint — bootstraps the companion bot.

Wires together: config, response gate, LLM client, prompt builder,
conversation history, chat responder, Telegram session and gateway,
and the periodic cache maintenance loop.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from companion.config import load_config, AppConfig
from companion.chat.context import TopicDetector
from companion.chat.history import HistoryStore
from companion.chat.responder import ChatResponder
from companion.chat.state import ChatState
from companion.gate.gate import ResponseGate
from companion.llm.client import LLMClient, providers_from_config
from companion.llm.prompts import ChatPromptBuilder
from companion.telegram.client import TelegramSession
from companion.telegram.gateway import Gateway

logger = logging.getLogger(__name__)


def setup_logging(config: AppConfig) -> None:
    """Configure logging from config."""
    log_cfg = config.logging
    handlers = [logging.StreamHandler()]

    if log_cfg.file:
        log_path = Path(log_cfg.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, log_cfg.level, logging.INFO),
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        handlers=handlers,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_gate(config: AppConfig) -> ResponseGate:
    gate_cfg = config.gate
    return ResponseGate(
        max_cache_entries=gate_cfg.max_cache_entries,
        rate_window_ms=gate_cfg.rate_window_ms,
        max_requests_per_window=gate_cfg.max_requests_per_window,
        cache_ttl_seconds=gate_cfg.cache_ttl_seconds,
    )


def build_responder(config: AppConfig, llm_client: LLMClient) -> ChatResponder:
    """Build the chat responder (and its gate) from config."""
    chat_cfg = config.chat

    prompt_builder = ChatPromptBuilder(
        system_prompt_path=chat_cfg.system_prompt_path,
        history_limit=chat_cfg.history_limit,
        bot_name=chat_cfg.bot_name,
        user_name=chat_cfg.user_name,
        history_store=HistoryStore(
            limit=chat_cfg.history_limit,
            persist_path=chat_cfg.history_path,
        ),
    )
    prompt_builder.load_system_prompt()

    return ChatResponder(
        gate=build_gate(config),
        llm_client=llm_client,
        prompt_builder=prompt_builder,
        state=ChatState(persona=chat_cfg.persona, mood=chat_cfg.mood),
        topic_detector=TopicDetector(chat_cfg.topic_keywords),
        throttle_reply=chat_cfg.throttle_reply,
        error_reply=chat_cfg.error_reply,
    )


def build_llm_client(config: AppConfig) -> LLMClient:
    return LLMClient(
        providers=providers_from_config(config.llm),
        max_tokens=config.llm.max_tokens,
        temperature=config.llm.temperature,
        max_retries=config.llm.max_retries,
    )


async def cache_maintenance_loop(
    gate: ResponseGate,
    interval_minutes: int,
    stop_event: asyncio.Event,
) -> None:
    """Periodically drop every cached reply."""
    while not stop_event.is_set():
        try:
            await asyncio.wait_for(
                stop_event.wait(),
                timeout=interval_minutes * 60,
            )
        except asyncio.TimeoutError:
            gate.clear_cache()


async def run(config_path: str | None = None) -> None:
    """Main async entry point."""
    config = load_config(config_path)
    setup_logging(config)

    logger.info("Starting tg-companion...")

    llm_client = build_llm_client(config)
    responder = build_responder(config, llm_client)

    session = TelegramSession(
        api_id=config.telegram.api_id,
        api_hash=config.telegram.api_hash,
        bot_token=config.telegram.bot_token.get_secret_value(),
        session_name=config.telegram.session_name,
    )
    await session.connect()

    gateway = Gateway(
        session=session,
        responder=responder,
        allowed_chat_ids=config.telegram.allowed_chat_ids,
    )

    stop_event = asyncio.Event()
    maintenance: asyncio.Task | None = None

    try:
        await gateway.start()

        maintenance = asyncio.create_task(
            cache_maintenance_loop(
                responder.gate,
                config.gate.cache_cleanup_minutes,
                stop_event,
            )
        )
        logger.info(
            f"Response cache cleanup scheduled every "
            f"{config.gate.cache_cleanup_minutes} minutes"
        )

        logger.info("Companion bot is running. Press Ctrl+C to stop.")
        await gateway.run_until_disconnected()

    except KeyboardInterrupt:
        logger.info("Shutting down...")
    finally:
        stop_event.set()
        if maintenance:
            await maintenance
        responder.prompts.history_store.save()
        await llm_client.close()
        await session.disconnect()
        logger.info("Companion bot stopped.")


def main(config_path: str | None = None) -> None:
    """Synchronous wrapper for run()."""
    asyncio.run(run(config_path))
