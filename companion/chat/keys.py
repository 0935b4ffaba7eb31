"""
Cache key construction for generated replies.

A key captures every attribute that changes what the LLM would answer,
so two requests share a cached reply only when all of them match.
"""

from __future__ import annotations

import json
from typing import Optional


def build_cache_key(
    prompt: str,
    *,
    topic: Optional[str] = None,
    persona: str,
    mood: str,
    deeptalk: bool,
    sulking: bool,
    image_context: Optional[str] = None,
) -> str:
    """Serialize request attributes into a deterministic JSON string."""
    return json.dumps(
        {
            "prompt": prompt,
            "topic": topic or "no_topic",
            "persona": persona,
            "mood": mood,
            "deeptalk": deeptalk,
            "sulking": sulking,
            "image_context": image_context or "no_image",
        },
        ensure_ascii=False,
    )
