"""
Step 3 — Intent Registry

Session-scoped record of what has already been planned:
  - intents:    (topic, level, dimension, answer type)
  - concepts:   (topic, concept)
  - operations: (topic, level, operation)

One instance is created per "assemble test" run and passed explicitly through
every cell. There is no module-level registry; concurrent runs each own theirs.
No method raises: exhaustion shows up as an empty list.
"""

from typing import Dict, List, Optional, Set, Tuple

from assembly.answer_types import allowed_answer_types
from assembly.concept_pool import ConceptOperationPool, DEFAULT_POOL
from assembly.schemas import (
    AnswerType,
    CognitiveLevel,
    KnowledgeDimension,
    QuestionIntent,
    normalise_topic,
)

IntentKey = Tuple[str, CognitiveLevel, KnowledgeDimension, AnswerType]


class IntentRegistry:

    def __init__(self, pool: Optional[ConceptOperationPool] = None):
        self.pool = pool or DEFAULT_POOL
        self._intents: Set[IntentKey] = set()
        self._concepts: Set[Tuple[str, str]] = set()
        self._operations: Set[Tuple[str, CognitiveLevel, str]] = set()

    # ─── Intents ───────────────────────────────────────────────────────────────

    @staticmethod
    def _intent_key(intent: QuestionIntent) -> IntentKey:
        return (
            normalise_topic(intent.topic),
            intent.cognitive_level,
            intent.knowledge_dimension,
            intent.answer_type,
        )

    def is_intent_used(self, intent: QuestionIntent) -> bool:
        return self._intent_key(intent) in self._intents

    def mark_intent_used(self, intent: QuestionIntent) -> None:
        self._intents.add(self._intent_key(intent))

    def available_answer_types(
        self, topic: str, level: CognitiveLevel, dimension: KnowledgeDimension
    ) -> List[AnswerType]:
        """Compatible answer types minus those already used for this exact triple."""
        key = normalise_topic(topic)
        return [
            a for a in allowed_answer_types(level, dimension)
            if (key, level, dimension, a) not in self._intents
        ]

    def has_available_slot(
        self, topic: str, level: CognitiveLevel, dimension: KnowledgeDimension
    ) -> bool:
        return bool(self.available_answer_types(topic, level, dimension))

    # ─── Concepts / operations ─────────────────────────────────────────────────

    def available_concepts(self, topic: str) -> List[str]:
        key = normalise_topic(topic)
        return [c for c in self.pool.concepts_for(topic) if (key, c) not in self._concepts]

    def is_concept_used(self, topic: str, concept: str) -> bool:
        return (normalise_topic(topic), concept) in self._concepts

    def mark_concept_used(self, topic: str, concept: str) -> None:
        self._concepts.add((normalise_topic(topic), concept))

    def available_operations(self, topic: str, level: CognitiveLevel) -> List[str]:
        key = normalise_topic(topic)
        return [
            op for op in self.pool.operations_for(level)
            if (key, level, op) not in self._operations
        ]

    def mark_operation_used(self, topic: str, level: CognitiveLevel, operation: str) -> None:
        self._operations.add((normalise_topic(topic), level, operation))

    # ─── Session control ───────────────────────────────────────────────────────

    def clear(self) -> None:
        """Reset all three sets. Start of a new session only, never mid-run."""
        self._intents.clear()
        self._concepts.clear()
        self._operations.clear()

    def copy(self) -> "IntentRegistry":
        """Independent working copy sharing the same (immutable) pool."""
        clone = IntentRegistry(self.pool)
        clone._intents = set(self._intents)
        clone._concepts = set(self._concepts)
        clone._operations = set(self._operations)
        return clone

    @property
    def used_intents(self) -> List[IntentKey]:
        return sorted(self._intents, key=lambda k: (k[0], k[1].value, k[2].value, k[3].value))

    @property
    def size(self) -> int:
        return len(self._intents)

    def summary(self) -> Dict[str, int]:
        return {
            "intents": len(self._intents),
            "concepts": len(self._concepts),
            "operations": len(self._operations),
        }
