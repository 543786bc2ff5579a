from assembly.concept_pool import GENERIC_CONCEPTS, ConceptOperationPool
from assembly.intent_registry import IntentRegistry
from assembly.intent_selector import (
    commit_intents,
    fallback_concept_and_operation,
    select_concept_and_operation,
    select_intents,
)
from assembly.schemas import AnswerType, CognitiveLevel, KnowledgeDimension

L = CognitiveLevel
K = KnowledgeDimension

DATABASES = ["normalization", "indexing", "transactions", "query optimization", "referential integrity"]


def test_selection_is_deterministic_pool_order():
    registry = IntentRegistry()
    intents = select_intents(registry, "Databases", L.UNDERSTANDING, K.CONCEPTUAL, 2)
    assert [i.answer_type for i in intents] == [AnswerType.EXPLANATION, AnswerType.COMPARISON]
    assert intents == select_intents(registry, "Databases", L.UNDERSTANDING, K.CONCEPTUAL, 2)


def test_exhaustion_returns_what_exists_without_raising():
    registry = IntentRegistry()
    intents = select_intents(registry, "Databases", L.UNDERSTANDING, K.CONCEPTUAL, 10)
    assert len(intents) == 3
    assert len({i.answer_type for i in intents}) == 3


def test_selection_does_not_touch_the_real_registry():
    registry = IntentRegistry()
    select_intents(registry, "Databases", L.UNDERSTANDING, K.CONCEPTUAL, 3)
    assert registry.size == 0


def test_commit_then_select_skips_committed():
    registry = IntentRegistry()
    commit_intents(registry, select_intents(registry, "Databases", L.UNDERSTANDING, K.CONCEPTUAL, 2))
    rest = select_intents(registry, "Databases", L.UNDERSTANDING, K.CONCEPTUAL, 5)
    assert [i.answer_type for i in rest] == [AnswerType.DEFINITION]
    commit_intents(registry, rest)
    assert select_intents(registry, "Databases", L.UNDERSTANDING, K.CONCEPTUAL, 1) == []


def test_zero_count_selects_nothing():
    assert select_intents(IntentRegistry(), "Databases", L.APPLYING, K.PROCEDURAL, 0) == []


def test_databases_pool_exhausts_on_sixth_request():
    registry = IntentRegistry(ConceptOperationPool({"Databases": DATABASES}))
    seen = []
    for _ in range(5):
        assignment = select_concept_and_operation(registry, "Databases", L.APPLYING)
        assert assignment is not None
        registry.mark_concept_used("Databases", assignment.concept)
        registry.mark_operation_used("Databases", L.APPLYING, assignment.operation)
        seen.append(assignment.concept)

    assert seen == DATABASES
    assert select_concept_and_operation(registry, "Databases", L.APPLYING) is None


def test_default_databases_pool_has_five_concepts():
    registry = IntentRegistry()
    for concept in registry.available_concepts("Databases"):
        registry.mark_concept_used("Databases", concept)
    assert select_concept_and_operation(registry, "Databases", L.APPLYING) is None


def test_operation_exhaustion_also_returns_none():
    registry = IntentRegistry()
    for op in registry.pool.operations_for(L.REMEMBERING):
        registry.mark_operation_used("Databases", L.REMEMBERING, op)
    assert select_concept_and_operation(registry, "Databases", L.REMEMBERING) is None


def test_fallback_uses_generic_pool_and_is_flagged():
    registry = IntentRegistry(ConceptOperationPool({"Databases": DATABASES}))
    for concept in DATABASES:
        registry.mark_concept_used("Databases", concept)

    assignment = fallback_concept_and_operation(registry, "Databases", L.APPLYING)
    assert assignment.is_fallback
    assert assignment.concept == GENERIC_CONCEPTS[0]
    assert assignment.operation == registry.pool.operations_for(L.APPLYING)[0]

    registry.mark_concept_used("Databases", assignment.concept)
    assert fallback_concept_and_operation(registry, "Databases", L.APPLYING).concept == GENERIC_CONCEPTS[1]


def test_fallback_cycles_when_everything_is_used():
    registry = IntentRegistry()
    for concept in GENERIC_CONCEPTS:
        registry.mark_concept_used("Poetry", concept)
    for op in registry.pool.operations_for(L.CREATING):
        registry.mark_operation_used("Poetry", L.CREATING, op)

    assignment = fallback_concept_and_operation(registry, "Poetry", L.CREATING)
    assert assignment.is_fallback
    assert assignment.concept in GENERIC_CONCEPTS
    assert assignment.operation in registry.pool.operations_for(L.CREATING)
