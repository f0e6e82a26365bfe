"""
Heuristic text vectors for the in-process memory store.

Not a semantic model: each content word and each character trigram is
hashed to a deterministic pseudo-random direction, the directions are
summed (words weighted above trigrams) and the sum is L2-normalised.
Texts that share vocabulary or word stems end up close under cosine
similarity, which is all the reference store needs.
"""

from __future__ import annotations

import hashlib
import math
import re
import struct
from collections import Counter
from functools import lru_cache
from typing import List, Set, Tuple

EMBED_DIM = 256

_WORD_RE = re.compile(r"[a-z0-9']+")

STOPWORDS = frozenset({
    "a", "an", "the", "is", "are", "was", "were", "be", "been", "am",
    "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "can", "to", "of", "in", "for", "on", "with", "at", "by",
    "from", "as", "about", "and", "but", "or", "not", "so", "this",
    "that", "it", "its", "i", "me", "my", "we", "our", "you", "your",
    "he", "him", "his", "she", "her", "they", "them", "their", "what",
    "which", "who", "just", "really", "very",
})

WORD_WEIGHT = 3.0
TRIGRAM_WEIGHT = 1.0


def keywords(text: str) -> Set[str]:
    """Lower-cased content words of *text* (stopwords and 1-char tokens dropped)."""
    return {
        w for w in _WORD_RE.findall(text.lower())
        if len(w) > 1 and w not in STOPWORDS
    }


def _features(text: str) -> Tuple[Counter, Counter]:
    tokens = _WORD_RE.findall(text.lower())
    words = Counter(w for w in tokens if len(w) > 1 and w not in STOPWORDS)
    trigrams: Counter = Counter()
    for w in tokens:
        if len(w) < 3:
            continue
        padded = f"#{w}#"
        trigrams.update(padded[i:i + 3] for i in range(len(padded) - 2))
    return words, trigrams


@lru_cache(maxsize=8192)
def _direction(feature: str) -> Tuple[float, ...]:
    """Unit vector seeded from the SHA-256 chain of *feature*."""
    needed = EMBED_DIM * 4
    buf = b""
    seed = feature.encode("utf-8")
    while len(buf) < needed:
        seed = hashlib.sha256(seed).digest()
        buf += seed
    raw = [
        struct.unpack_from(">I", buf, i * 4)[0] / 2147483647.5 - 1.0
        for i in range(EMBED_DIM)
    ]
    norm = math.sqrt(sum(x * x for x in raw)) or 1.0
    return tuple(x / norm for x in raw)


def embed_text(text: str) -> List[float]:
    """Fixed-size, L2-normalised vector for *text*; all zeros for empty text."""
    words, trigrams = _features(text)
    vec = [0.0] * EMBED_DIM
    for prefix, counts, weight in (("w", words, WORD_WEIGHT), ("c", trigrams, TRIGRAM_WEIGHT)):
        for feature, count in counts.items():
            scale = weight * (1.0 + math.log(count))
            direction = _direction(f"{prefix}:{feature}")
            for d in range(EMBED_DIM):
                vec[d] += scale * direction[d]

    norm = math.sqrt(sum(x * x for x in vec))
    if norm < 1e-10:
        return [0.0] * EMBED_DIM
    return [x / norm for x in vec]


def cosine_similarity(a: List[float], b: List[float]) -> float:
    """Dot product; inputs from ``embed_text`` are already unit length."""
    return sum(x * y for x, y in zip(a, b))
