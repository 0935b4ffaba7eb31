"""
Prompt Builder Module

Loads the persona system prompt from a markdown file and builds LLM
messages with per-chat conversation history and current state flags.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Hashable, Optional, List

from companion.chat.history import HistoryStore, HistoryTurn
from companion.chat.state import ChatState
from companion.llm.client import Message, MessageRole

logger = logging.getLogger(__name__)


class ChatPromptBuilder:
    """
    Builds conversation prompts for the LLM.

    Loads the system prompt from a markdown file and keeps a bounded
    history of recent turns per chat.
    """

    def __init__(
        self,
        system_prompt_path: str = "config/system_prompt.md",
        history_limit: int = 6,
        bot_name: str = "Lumina",
        user_name: str = "Sayang",
        history_store: Optional[HistoryStore] = None,
    ):
        self.system_prompt_path = Path(system_prompt_path)
        self.history_limit = history_limit
        self.bot_name = bot_name
        self.user_name = user_name
        self._system_prompt: Optional[str] = None
        self.history_store = (
            history_store if history_store is not None
            else HistoryStore(limit=history_limit)
        )

    def load_system_prompt(self) -> str:
        """Load system prompt from markdown file."""
        if not self.system_prompt_path.exists():
            raise FileNotFoundError(
                f"System prompt not found: {self.system_prompt_path}"
            )
        self._system_prompt = self.system_prompt_path.read_text(encoding="utf-8")
        logger.info(
            f"Loaded system prompt from {self.system_prompt_path} "
            f"({len(self._system_prompt)} chars)"
        )
        return self._system_prompt

    @property
    def system_prompt(self) -> str:
        """Return the loaded system prompt text."""
        if not self._system_prompt:
            self.load_system_prompt()
        return self._system_prompt

    def record_exchange(self, chat_id: Hashable, user_text: str, reply: str) -> None:
        """Append a user/assistant pair to the chat's history."""
        self.history_store.append(chat_id, HistoryTurn(MessageRole.USER, user_text))
        self.history_store.append(chat_id, HistoryTurn(MessageRole.ASSISTANT, reply))

    def history(self, chat_id: Hashable) -> list[HistoryTurn]:
        return self.history_store.get(chat_id)

    def clear_history(self, chat_id: Optional[Hashable] = None) -> None:
        """Clear one chat's history, or all of it."""
        self.history_store.clear(chat_id)

    def _state_block(
        self,
        state: ChatState,
        topic: Optional[str],
        image_context: Optional[str],
    ) -> str:
        lines = [
            "",
            "---",
            f"Nama kamu: {self.bot_name}. Nama pengguna: {self.user_name}.",
            f"Kepribadian: {state.persona}. Mood: {state.mood}.",
        ]
        if state.deeptalk:
            lines.append("Mode deeptalk aktif: jawab lebih dalam dan personal.")
        if state.sulking:
            lines.append("Mode ngambek aktif: kamu sedang merajuk.")
        if topic:
            lines.append(f"Topik percakapan: {topic}.")
        if image_context:
            lines.append(f"Pengguna mengirim gambar: {image_context}")
        return "\n".join(lines)

    def build_messages(
        self,
        chat_id: Hashable,
        message_text: str,
        state: ChatState,
        topic: Optional[str] = None,
        image_context: Optional[str] = None,
    ) -> List[Message]:
        """
        Build the message list for an LLM reply request.

        Args:
            chat_id: Chat whose history is included.
            message_text: The user's new message.
            state: Current persona/mood flags.
            topic: Detected topic, if any.
            image_context: Description of an attached image, if any.

        Returns:
            [system, *history, user] ready for the LLM.
        """
        system = self.system_prompt + self._state_block(state, topic, image_context)
        messages = [Message.system(system)]
        messages.extend(turn.to_message() for turn in self.history_store.get(chat_id))
        messages.append(Message.user(message_text))
        return messages
