"""
Step 2 — Concept / Operation Pools

Per-topic concept labels and per-level cognitive operations that the intent
pipeline hands out one at a time. Pure data; the registry tracks consumption.
"""

import re
from typing import Dict, List, Optional

from assembly.schemas import CognitiveLevel, HIGHER_ORDER_LEVELS, normalise_topic

L = CognitiveLevel


GENERIC_CONCEPTS: List[str] = [
    "core principles", "key components", "fundamental concepts", "main processes",
    "critical factors", "essential elements", "primary functions", "basic mechanisms",
    "important relationships", "significant characteristics", "defining features", "crucial aspects",
    "major categories", "fundamental distinctions", "core applications", "primary considerations",
    "essential requirements", "key differences", "important limitations", "critical constraints",
]

TOPIC_CONCEPTS: Dict[str, List[str]] = {
    "databases": [
        "normalization", "indexing", "transactions",
        "query optimization", "referential integrity",
    ],
    "networking": [
        "layered models", "addressing", "routing", "congestion control",
        "error detection", "name resolution",
    ],
    "operating systems": [
        "process scheduling", "memory management", "file systems",
        "synchronization", "deadlocks", "virtual memory",
    ],
}

COGNITIVE_OPERATIONS: Dict[CognitiveLevel, List[str]] = {
    L.REMEMBERING:   ["recall", "recognize", "identify", "list", "name", "define", "state"],
    L.UNDERSTANDING: ["explain", "summarize", "interpret", "classify", "compare", "describe", "paraphrase"],
    L.APPLYING:      ["execute", "implement", "solve", "use", "demonstrate", "apply", "calculate"],
    L.ANALYZING:     ["differentiate", "organize", "attribute", "deconstruct", "examine", "contrast", "distinguish"],
    L.EVALUATING:    ["check", "critique", "judge", "prioritize", "justify", "assess", "defend", "evaluate"],
    L.CREATING:      ["generate", "plan", "produce", "design", "construct", "formulate", "compose", "develop"],
}

# Generic-listing phrasing that higher-order answers must not fall back on
FORBIDDEN_LISTING_PATTERNS: List[re.Pattern] = [
    re.compile(r"\b(include|includes)\b", re.IGNORECASE),
    re.compile(r"\bsuch as\b", re.IGNORECASE),
    re.compile(r"\bfactors\s+(are|include)\b", re.IGNORECASE),
    re.compile(r"\bkey\s+(factors|elements|components)\s+(are|include)\b", re.IGNORECASE),
    re.compile(r"\bthe\s+(main|key|primary)\s+\w+\s+(are|include)\b", re.IGNORECASE),
    re.compile(r"\bthese\s+(are|include)\b", re.IGNORECASE),
]


class ConceptOperationPool:
    """Read-only lookup of concept and operation pools."""

    def __init__(self, topic_concepts: Optional[Dict[str, List[str]]] = None):
        source = TOPIC_CONCEPTS if topic_concepts is None else topic_concepts
        self._topic_concepts = {normalise_topic(t): list(c) for t, c in source.items()}

    def concepts_for(self, topic: str) -> List[str]:
        """Topic-specific pool if one exists, else the generic cross-domain pool."""
        return list(self._topic_concepts.get(normalise_topic(topic), GENERIC_CONCEPTS))

    def has_topic_pool(self, topic: str) -> bool:
        return normalise_topic(topic) in self._topic_concepts

    def operations_for(self, cognitive_level: CognitiveLevel) -> List[str]:
        return list(COGNITIVE_OPERATIONS.get(cognitive_level, []))

    def forbidden_patterns_for(self, cognitive_level: CognitiveLevel) -> List[re.Pattern]:
        if cognitive_level in HIGHER_ORDER_LEVELS:
            return list(FORBIDDEN_LISTING_PATTERNS)
        return []


DEFAULT_POOL = ConceptOperationPool()
