from assembly.answer_types import (
    COMPATIBILITY,
    allowed_answer_types,
    build_answer_constraint,
    detect_answer_type,
    validate_answer_type_assignment,
)
from assembly.schemas import AnswerType, CognitiveLevel, KnowledgeDimension

L = CognitiveLevel
K = KnowledgeDimension
A = AnswerType


def test_remembering_only_allows_definition():
    for dimension in K:
        assert allowed_answer_types(L.REMEMBERING, dimension) == [A.DEFINITION]


def test_higher_levels_use_their_own_structures():
    assert set(allowed_answer_types(L.ANALYZING, K.CONCEPTUAL)) == {A.COMPARISON, A.ANALYSIS}
    assert set(allowed_answer_types(L.EVALUATING, K.CONCEPTUAL)) == {A.EVALUATION, A.JUSTIFICATION}
    assert set(allowed_answer_types(L.CREATING, K.CONCEPTUAL)) == {A.DESIGN, A.CONSTRUCTION}


def test_every_pair_is_covered():
    for level in L:
        for dimension in K:
            assert allowed_answer_types(level, dimension), (level, dimension)


def test_loose_strings_are_accepted():
    assert allowed_answer_types("analyse", "Conceptual") == allowed_answer_types(L.ANALYZING, K.CONCEPTUAL)


def test_unknown_input_returns_empty_list():
    assert allowed_answer_types("daydreaming", K.FACTUAL) == []
    assert allowed_answer_types(L.APPLYING, "spiritual") == []
    assert allowed_answer_types(None, None) == []


def test_returned_list_is_a_copy():
    allowed = allowed_answer_types(L.UNDERSTANDING, K.CONCEPTUAL)
    allowed.clear()
    assert COMPATIBILITY[L.UNDERSTANDING][K.CONCEPTUAL]


def test_constraint_lists_forbidden_phrases():
    text = build_answer_constraint(A.COMPARISON)
    assert "COMPARISON" in text
    assert 'Do NOT use "such as"' in text


def test_definition_constraint_has_no_forbidden_block():
    assert "FORBIDDEN" not in build_answer_constraint(A.DEFINITION)


def test_detect_answer_type_from_verb():
    assert detect_answer_type("Compare B-trees with hash indexes.") == A.COMPARISON
    assert detect_answer_type("Justify the choice of isolation level.") == A.JUSTIFICATION
    assert detect_answer_type("What happens next?") is None


def test_validate_assignment_flags_verb_mismatch():
    problem = validate_answer_type_assignment(
        "Define a foreign key.", A.COMPARISON, L.ANALYZING, K.CONCEPTUAL
    )
    assert problem is not None and "definition" in problem


def test_validate_assignment_flags_incompatible_type():
    problem = validate_answer_type_assignment(
        "Which approach would you take?", A.DESIGN, L.REMEMBERING, K.FACTUAL
    )
    assert problem is not None and "Remembering" in problem


def test_validate_assignment_accepts_consistent_item():
    assert validate_answer_type_assignment(
        "Evaluate the indexing strategy for this workload.", A.EVALUATION, L.EVALUATING, K.CONCEPTUAL
    ) is None
