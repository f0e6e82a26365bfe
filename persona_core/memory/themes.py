"""
Keyword theme extraction over retrieved memories.

Deliberately lexical: a theme is present when any of its keywords occurs
as a substring of the lower-cased content.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Tuple

from .models import MemoryRecord

THEME_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "relationship": ("relationship", "partner", "friend", "family", "love", "connection", "bond"),
    "career": ("work", "job", "career", "professional", "business", "success", "achievement"),
    "health": ("health", "wellness", "body", "mind", "healing", "fitness", "medical"),
    "creativity": ("art", "music", "writing", "creative", "imagination", "inspiration", "expression"),
    "spirituality": ("spiritual", "soul", "meditation", "mindfulness", "purpose", "meaning", "divine"),
    "growth": ("growth", "learning", "development", "change", "improvement", "progress", "evolution"),
    "challenge": ("challenge", "difficulty", "struggle", "obstacle", "problem", "hardship"),
    "celebration": ("celebration", "achievement", "success", "milestone", "accomplishment", "victory"),
}


def extract_themes(text: str) -> List[str]:
    """Themes mentioned in *text*, in ``THEME_KEYWORDS`` order."""
    lowered = text.lower()
    return [
        theme for theme, words in THEME_KEYWORDS.items()
        if any(w in lowered for w in words)
    ]


def collect_themes(records: Iterable[MemoryRecord]) -> List[str]:
    """Distinct themes across *records*, first occurrence first."""
    seen: List[str] = []
    for record in records:
        for theme in extract_themes(record.content):
            if theme not in seen:
                seen.append(theme)
    return seen


def memory_insight(records: List[MemoryRecord], max_themes: int = 3) -> str:
    """One sentence summarising what past conversations touched on."""
    if not records:
        return ""
    themes = collect_themes(records)
    if themes:
        return f"I remember we've explored themes like {', '.join(themes[:max_themes])} together."
    return "I remember our conversations have touched on some meaningful topics."
