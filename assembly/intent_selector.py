"""
Step 4 — Intent Selection

Picks distinct intents and (concept, operation) pairs from a registry.
Selection is deterministic: the first available entry in pool order wins.
"""

from typing import Iterable, List, Optional

from assembly.concept_pool import GENERIC_CONCEPTS
from assembly.intent_registry import IntentRegistry
from assembly.schemas import (
    CognitiveLevel,
    ConceptAssignment,
    KnowledgeDimension,
    QuestionIntent,
)


def select_intents(
    registry: IntentRegistry,
    topic: str,
    level: CognitiveLevel,
    dimension: KnowledgeDimension,
    count: int,
) -> List[QuestionIntent]:
    """
    Return up to `count` unused intents for (topic, level, dimension).

    Works on a copy of `registry`; nothing is committed. Fewer than `count`
    results means the answer-type space is exhausted for this triple.
    """
    working = registry.copy()
    intents: List[QuestionIntent] = []
    while len(intents) < count:
        available = working.available_answer_types(topic, level, dimension)
        if not available:
            break
        intent = QuestionIntent(
            topic=topic,
            cognitive_level=level,
            knowledge_dimension=dimension,
            answer_type=available[0],
        )
        working.mark_intent_used(intent)
        intents.append(intent)
    return intents


def commit_intents(registry: IntentRegistry, intents: Iterable[QuestionIntent]) -> None:
    """Mark an accepted batch used in the caller's registry."""
    for intent in intents:
        registry.mark_intent_used(intent)


def select_concept_and_operation(
    registry: IntentRegistry, topic: str, level: CognitiveLevel
) -> Optional[ConceptAssignment]:
    """First free concept and operation, or None if either pool is exhausted."""
    concepts = registry.available_concepts(topic)
    operations = registry.available_operations(topic, level)
    if not concepts or not operations:
        return None
    return ConceptAssignment(concept=concepts[0], operation=operations[0])


def fallback_concept_and_operation(
    registry: IntentRegistry, topic: str, level: CognitiveLevel
) -> ConceptAssignment:
    """
    Generic default used when the topic's pools are exhausted.

    Prefers a still-unused generic concept; once those are gone too it cycles
    through the generic pool. The operation falls back the same way over the
    level's operations. Always flagged is_fallback=True.
    """
    used = registry.summary()

    free_concepts = [c for c in GENERIC_CONCEPTS if not registry.is_concept_used(topic, c)]
    if free_concepts:
        concept = free_concepts[0]
    else:
        concept = GENERIC_CONCEPTS[used["concepts"] % len(GENERIC_CONCEPTS)]

    free_operations = registry.available_operations(topic, level)
    all_operations = registry.pool.operations_for(level)
    if free_operations:
        operation = free_operations[0]
    elif all_operations:
        operation = all_operations[used["operations"] % len(all_operations)]
    else:
        operation = "explain"
    return ConceptAssignment(concept=concept, operation=operation, is_fallback=True)
