"""
Step 0 — Table of Specification Builder

Turns (topic, instructional hours) rows into per-topic, per-Bloom-level item
counts, then into the TOS cells the assembler walks. Deterministic, no LLM.

Counts use largest-remainder rounding at both stages (topic share, then level
share), so every matrix sums exactly to total_items.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field, field_validator

from assembly.schemas import (
    CognitiveLevel,
    Difficulty,
    KnowledgeDimension,
    TOSCell,
    normalise_level,
)

log = logging.getLogger("assembly.pipeline")

L = CognitiveLevel

BLOOM_DISTRIBUTION: Dict[CognitiveLevel, float] = {
    L.REMEMBERING:   0.15,
    L.UNDERSTANDING: 0.15,
    L.APPLYING:      0.20,
    L.ANALYZING:     0.20,
    L.EVALUATING:    0.15,
    L.CREATING:      0.15,
}

LEVEL_DIFFICULTY: Dict[CognitiveLevel, Difficulty] = {
    L.REMEMBERING:   Difficulty.EASY,
    L.UNDERSTANDING: Difficulty.EASY,
    L.APPLYING:      Difficulty.AVERAGE,
    L.ANALYZING:     Difficulty.AVERAGE,
    L.EVALUATING:    Difficulty.DIFFICULT,
    L.CREATING:      Difficulty.DIFFICULT,
}

LEVEL_DIMENSION: Dict[CognitiveLevel, KnowledgeDimension] = {
    L.REMEMBERING:   KnowledgeDimension.FACTUAL,
    L.UNDERSTANDING: KnowledgeDimension.CONCEPTUAL,
    L.APPLYING:      KnowledgeDimension.PROCEDURAL,
    L.ANALYZING:     KnowledgeDimension.CONCEPTUAL,
    L.EVALUATING:    KnowledgeDimension.METACOGNITIVE,
    L.CREATING:      KnowledgeDimension.METACOGNITIVE,
}


class TopicHours(BaseModel):
    topic: str = Field(..., min_length=1)
    hours: float = Field(..., ge=0.5)


class TOSMatrix(BaseModel):
    total_items: int
    total_hours: float
    # topic → {level value → count}, topics in input order
    distribution: Dict[str, Dict[str, int]]

    @field_validator("distribution")
    @classmethod
    def _levels_known(cls, value: Dict[str, Dict[str, int]]) -> Dict[str, Dict[str, int]]:
        for levels in value.values():
            for level in levels:
                if normalise_level(level) is None:
                    raise ValueError(f"Unknown cognitive level in TOS: {level!r}")
        return value

    def topic_total(self, topic: str) -> int:
        return sum(self.distribution.get(topic, {}).values())


def _largest_remainder(total: int, weights: Sequence[float]) -> List[int]:
    """Split `total` proportionally to `weights`; ties go to the earlier entry."""
    weight_sum = sum(weights)
    if total <= 0 or weight_sum <= 0:
        return [0] * len(weights)
    exact = [total * w / weight_sum for w in weights]
    counts = [int(x) for x in exact]
    remaining = total - sum(counts)
    order = sorted(range(len(weights)), key=lambda i: (-(exact[i] - counts[i]), i))
    for i in order[:remaining]:
        counts[i] += 1
    return counts


def build_tos(
    topics: Sequence[TopicHours],
    total_items: int,
    bloom_distribution: Optional[Dict[CognitiveLevel, float]] = None,
) -> TOSMatrix:
    """
    Build a TOS matrix from topic hours.

    Raises:
        ValueError: no topics, no hours, or total_items < 1
    """
    if total_items < 1:
        raise ValueError("total_items must be at least 1")
    if not topics:
        raise ValueError("At least one topic is required")
    total_hours = sum(t.hours for t in topics)
    if total_hours <= 0:
        raise ValueError("Please add instructional hours for topics")

    split = bloom_distribution or BLOOM_DISTRIBUTION
    levels: List[Tuple[CognitiveLevel, float]] = [(lvl, split.get(lvl, 0.0)) for lvl in L]

    topic_counts = _largest_remainder(total_items, [t.hours for t in topics])
    distribution: Dict[str, Dict[str, int]] = {}
    for topic, count in zip(topics, topic_counts):
        level_counts = _largest_remainder(count, [w for _, w in levels])
        distribution[topic.topic] = {lvl.value: n for (lvl, _), n in zip(levels, level_counts)}

    log.info(f"[TOS] {total_items} item(s) over {len(topics)} topic(s), {total_hours:g} hour(s)")
    return TOSMatrix(total_items=total_items, total_hours=total_hours, distribution=distribution)


def tos_to_cells(matrix: TOSMatrix) -> List[TOSCell]:
    """Expand a matrix into non-empty cells, topic order then Bloom order."""
    cells: List[TOSCell] = []
    for topic, levels in matrix.distribution.items():
        for raw_level, count in levels.items():
            level = normalise_level(raw_level)
            if not count:
                continue
            cells.append(TOSCell(
                topic=topic,
                cognitive_level=level,
                difficulty=LEVEL_DIFFICULTY[level],
                required_count=count,
                knowledge_dimension=LEVEL_DIMENSION[level],
            ))
    return cells
