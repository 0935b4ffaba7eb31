"""
Chat Responder Module

Turns an incoming message into a reply: topic detection, cache key,
gated LLM call, and the user-visible text for throttled or failed calls.
"""

from __future__ import annotations

import logging
from typing import Hashable, Optional

import httpx

from companion.chat.context import TopicDetector
from companion.chat.keys import build_cache_key
from companion.chat.state import ChatState
from companion.gate.gate import ResponseGate, Throttled
from companion.llm.client import EmptyResponseError, LLMClient, LLMError
from companion.llm.prompts import ChatPromptBuilder

logger = logging.getLogger(__name__)


class ChatResponder:
    """Feature layer in front of the response gate."""

    def __init__(
        self,
        gate: ResponseGate,
        llm_client: LLMClient,
        prompt_builder: ChatPromptBuilder,
        state: Optional[ChatState] = None,
        topic_detector: Optional[TopicDetector] = None,
        throttle_reply: str = "Mohon sabar ya! Coba lagi {retry_after} detik lagi.",
        error_reply: str = "Maaf, ada gangguan teknis.",
    ):
        self.gate = gate
        self.llm = llm_client
        self.prompts = prompt_builder
        self.state = state or ChatState()
        self.topics = topic_detector or TopicDetector()
        self.throttle_reply = throttle_reply
        self.error_reply = error_reply

    def _format(self, template: str, **extra) -> str:
        return template.format(
            bot_name=self.prompts.bot_name,
            user_name=self.prompts.user_name,
            **extra,
        )

    async def reply(
        self,
        chat_id: Hashable,
        text: str,
        image_context: Optional[str] = None,
    ) -> str:
        """Produce the reply text for one incoming message."""
        topic = self.topics.detect(text)
        cache_key = build_cache_key(
            text,
            topic=topic,
            persona=self.state.persona,
            mood=self.state.mood,
            deeptalk=self.state.deeptalk,
            sulking=self.state.sulking,
            image_context=image_context,
        )

        async def generate() -> str:
            messages = self.prompts.build_messages(
                chat_id,
                text,
                self.state,
                topic=topic,
                image_context=image_context,
            )
            response = await self.llm.chat(messages)
            if not response.content:
                raise EmptyResponseError(
                    f"{response.provider_used or 'LLM'} returned an empty reply"
                )
            return response.content

        try:
            result = await self.gate.resolve(cache_key, chat_id, generate)
        except (LLMError, httpx.HTTPError) as e:
            logger.error(f"Reply generation failed for chat {chat_id}: {e}")
            return self._format(self.error_reply)

        if isinstance(result, Throttled):
            return self._format(
                self.throttle_reply,
                retry_after=max(1, round(result.retry_after_seconds)),
            )

        self.prompts.record_exchange(chat_id, text, result)
        return result
