"""
Topic Detection Module

Keyword-based topic detection for incoming messages. The detected
topic is part of the reply cache key and is mentioned in the prompt.
"""

from __future__ import annotations

import logging
from typing import Optional

logger = logging.getLogger(__name__)

# Order matters: the first topic with a matching keyword wins.
DEFAULT_TOPIC_KEYWORDS: dict[str, list[str]] = {
    "FOOD": ["makanan", "makan", "kuliner", "resto", "lapar", "haus", "minum", "resep"],
    "MOVIE": ["film", "nonton", "bioskop", "sinema", "series", "drama"],
    "MUSIC": ["musik", "lagu", "band", "penyanyi", "konser", "spotify"],
    "GAME": ["game", "main", "mabar", "gim", "esports"],
    "TRAVEL": [
        "liburan", "jalan-jalan", "wisata", "destinasi", "traveling",
        "hotel", "pantai", "gunung", "keliling dunia",
    ],
    "TECH": [
        "teknologi", "gadget", "komputer", "internet", "aplikasi",
        "software", "hardware", "coding", "ngoding",
    ],
    "NEWS": ["berita", "informasi", "terkini", "update", "koran", "artikel"],
    "GENERAL_CHAT": ["halo", "hai", "apa kabar", "kamu lagi apa", "cerita dong"],
}


class TopicDetector:
    """Case-insensitive substring matcher over a topic → keywords table."""

    def __init__(self, keywords: Optional[dict[str, list[str]]] = None):
        table = DEFAULT_TOPIC_KEYWORDS if keywords is None else keywords
        self.keywords = {
            topic: [k.lower() for k in words] for topic, words in table.items()
        }

    def detect(self, text: str) -> Optional[str]:
        """Return the first matching topic, or None."""
        if not text:
            return None
        text_lower = text.lower()

        for topic, words in self.keywords.items():
            if any(word in text_lower for word in words):
                return topic

        return None
