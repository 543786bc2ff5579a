"""
Similarity checks used when reusing bank questions.

A candidate is skipped if it is at least SIMILARITY_THRESHOLD similar to a
question already selected in the same assembly run.

  - LexicalSimilarity:   word-overlap coefficient, no network
  - EmbeddingSimilarity: OpenAI embeddings + cosine, cached per text
"""

import math
import os
from typing import Dict, List, Protocol, Sequence

SIMILARITY_THRESHOLD = float(os.getenv("SIMILARITY_THRESHOLD", "0.85"))


class SimilarityService(Protocol):
    threshold: float

    async def is_redundant(self, text: str, selected: Sequence[str]) -> bool:
        ...


def _cosine(a: List[float], b: List[float]) -> float:
    if not a or not b:
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(y * y for y in b))
    return dot / (na * nb) if na and nb else 0.0


def word_overlap(text1: str, text2: str) -> float:
    """|shared words| / size of the smaller word set; words of 3 letters or fewer are ignored."""
    words1 = {w for w in (text1 or "").lower().split() if len(w) > 3}
    words2 = {w for w in (text2 or "").lower().split() if len(w) > 3}
    if not words1 or not words2:
        return 0.0
    return len(words1 & words2) / min(len(words1), len(words2))


class LexicalSimilarity:

    def __init__(self, threshold: float = SIMILARITY_THRESHOLD):
        self.threshold = threshold

    async def is_redundant(self, text: str, selected: Sequence[str]) -> bool:
        return any(word_overlap(text, other) >= self.threshold for other in selected)


class EmbeddingSimilarity:

    def __init__(self, threshold: float = SIMILARITY_THRESHOLD):
        self.threshold = threshold
        self._cache: Dict[str, List[float]] = {}

    async def _embed(self, texts: Sequence[str]) -> None:
        from assembly.gpt_client import embed_texts

        missing = [t for t in dict.fromkeys(texts) if t not in self._cache]
        if missing:
            for text, vector in zip(missing, await embed_texts(missing)):
                self._cache[text] = vector

    async def is_redundant(self, text: str, selected: Sequence[str]) -> bool:
        if not selected:
            return False
        await self._embed([text, *selected])
        vector = self._cache[text]
        return any(_cosine(vector, self._cache[other]) >= self.threshold for other in selected)
