"""
Conversation History Module

Keeps the most recent turns per chat and persists them to a JSON file,
so conversations survive a restart.
"""

from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Hashable, Optional

from companion.llm.client import Message, MessageRole

logger = logging.getLogger(__name__)


@dataclass
class HistoryTurn:
    """A single turn in a chat's conversation history."""
    role: MessageRole
    text: str

    def to_message(self) -> Message:
        return Message(self.role, self.text)

    def to_dict(self) -> dict:
        return {"role": self.role.value, "text": self.text}


def _chat_key(raw: str) -> Hashable:
    # JSON object keys are strings; Telegram chat ids are ints
    return int(raw) if raw.lstrip("-").isdigit() else raw


class HistoryStore:
    """
    Bounded per-chat history with optional JSON persistence.

    Loaded on construction when `persist_path` exists; written by `save()`.
    """

    def __init__(self, limit: int = 6, persist_path: Optional[str] = None):
        self.limit = limit
        self.persist_path = Path(persist_path) if persist_path else None

        # {chat_id: deque[HistoryTurn]}
        self._chats: dict[Hashable, deque[HistoryTurn]] = {}

        if self.persist_path and self.persist_path.exists():
            self._load()

    def append(self, chat_id: Hashable, turn: HistoryTurn) -> None:
        if self.limit <= 0:
            return
        history = self._chats.get(chat_id)
        if history is None:
            history = deque(maxlen=self.limit)
            self._chats[chat_id] = history
        history.append(turn)

    def get(self, chat_id: Hashable) -> list[HistoryTurn]:
        return list(self._chats.get(chat_id, ()))

    def clear(self, chat_id: Optional[Hashable] = None) -> None:
        """Clear one chat's history, or all of it."""
        if chat_id is None:
            self._chats.clear()
        else:
            self._chats.pop(chat_id, None)

    @property
    def chat_count(self) -> int:
        return len(self._chats)

    def save(self) -> None:
        """Persist state to disk."""
        if not self.persist_path:
            return
        try:
            self.persist_path.parent.mkdir(parents=True, exist_ok=True)
            data = {
                str(chat_id): [turn.to_dict() for turn in turns]
                for chat_id, turns in self._chats.items()
            }
            self.persist_path.write_text(
                json.dumps(data, ensure_ascii=False), encoding="utf-8"
            )
            logger.info(f"Saved history for {len(data)} chats to {self.persist_path}")
        except OSError as e:
            logger.warning(f"Failed to save history: {e}")

    def _load(self) -> None:
        """Load persisted state."""
        try:
            data = json.loads(self.persist_path.read_text(encoding="utf-8"))
            for raw_key, turns in data.items():
                chat_id = _chat_key(raw_key)
                for turn in turns:
                    self.append(chat_id, HistoryTurn(MessageRole(turn["role"]), turn["text"]))
            logger.info(f"Loaded history for {len(self._chats)} chats from {self.persist_path}")
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Failed to load history: {e}")
