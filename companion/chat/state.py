"""
Conversation state flags that shape the bot's replies.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict


@dataclass
class ChatState:
    """Persona and mood flags. Changed only by explicit commands."""
    persona: str = "TSUNDERE"
    mood: str = "NORMAL"
    deeptalk: bool = False
    sulking: bool = False

    def set_persona(self, persona: str) -> None:
        self.persona = persona.strip().upper()

    def set_mood(self, mood: str) -> None:
        self.mood = mood.strip().upper()

    def to_dict(self) -> dict:
        return asdict(self)
