import asyncio

import pytest
from sqlalchemy.exc import SQLAlchemyError

from assembly.errors import PersistenceError
from assembly.schemas import (
    AnswerType,
    CognitiveLevel,
    GenerationMetadata,
    Provenance,
    QuestionFilter,
)
from database import crud, models
from assembly.schemas import matches_topic
from database.question_store import SqlQuestionStore


def _seed(store, make_question):
    return asyncio.run(store.insert([
        make_question(topic="Databases", approved=True),
        make_question(topic="Relational Databases"),
        make_question(topic="Networking", level=CognitiveLevel.APPLYING),
        make_question(topic="Databases", deleted=True),
    ]))


def test_matches_topic_needs_whole_words():
    assert matches_topic("Relational Databases", "databases")
    assert matches_topic("DB", "db ")
    assert matches_topic("Relational_Databases", "relational databases")
    assert not matches_topic("Databases", "Relational_Databases")
    assert not matches_topic("Networking", "Databases")
    assert not matches_topic("", "Databases")
    assert not matches_topic("Databases", "")


@pytest.mark.parametrize("stored, wanted", [
    ("Email Systems", "AI"),
    ("Database Partitioning", "Art"),
    ("Cosmology", "OS"),
])
def test_matches_topic_ignores_substrings_inside_words(stored, wanted):
    assert not matches_topic(stored, wanted)


def test_insert_assigns_ids_and_round_trips_metadata(db_session, make_question):
    store = SqlQuestionStore(db_session)
    question = make_question(
        provenance=Provenance.AI,
        needs_review=True,
        ai_confidence_score=0.55,
        metadata=GenerationMetadata(
            assigned_concept="indexing",
            assigned_operation="recall",
            answer_type=AnswerType.DEFINITION,
            structure_validated=False,
            rejection_reason="MCQ returned fewer than 2 choices",
        ),
    )
    (stored,) = asyncio.run(store.insert([question]))

    assert stored.id is not None
    assert stored.provenance == Provenance.AI
    assert stored.choices == question.choices
    assert stored.metadata.answer_type == AnswerType.DEFINITION
    assert stored.metadata.structure_validated is False
    row = db_session.get(models.BankQuestion, stored.id)
    assert row.created_by == "ai"
    assert row.bloom_level == "Remembering"


def test_query_filters_deleted_topic_and_level(db_session, make_question):
    store = SqlQuestionStore(db_session)
    _seed(store, make_question)

    found = asyncio.run(store.query(QuestionFilter(topic="databases", cognitive_level=CognitiveLevel.REMEMBERING)))
    assert [q.topic for q in found] == ["Databases", "Relational Databases"]

    approved = asyncio.run(store.query(QuestionFilter(topic="Databases", approved=True)))
    assert len(approved) == 1

    everything = asyncio.run(store.query(QuestionFilter(deleted=None)))
    assert len(everything) == 4


def test_query_skips_malformed_rows(db_session, make_question):
    store = SqlQuestionStore(db_session)
    _seed(store, make_question)
    db_session.add(models.BankQuestion(topic="Databases", bloom_level="Memorising", question_text="Broken row"))
    db_session.commit()

    found = asyncio.run(store.query(QuestionFilter(topic="Databases")))
    assert "Broken row" not in [q.question_text for q in found]
    assert len(found) == 2


def test_mark_used_and_log_generation(db_session, make_question):
    store = SqlQuestionStore(db_session)
    first = _seed(store, make_question)[0]

    asyncio.run(store.mark_used(first.id))
    asyncio.run(store.mark_used(first.id))
    asyncio.run(store.log_generation(first.id, "gpt-4o-mini", "Databases | Remembering", True))

    row = db_session.get(models.BankQuestion, first.id)
    db_session.refresh(row)
    assert row.used_count == 2
    assert len(row.generation_logs) == 1
    assert row.generation_logs[0].model == "gpt-4o-mini"


def test_insert_failure_becomes_persistence_error(db_session, make_question, monkeypatch):
    store = SqlQuestionStore(db_session)

    def broken_commit():
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(db_session, "commit", broken_commit)
    with pytest.raises(PersistenceError):
        asyncio.run(store.insert([make_question()]))


def test_crud_approval_soft_delete_and_ordering(db_session, make_question):
    store = SqlQuestionStore(db_session)
    seeded = _seed(store, make_question)
    second = seeded[1]

    updated = crud.set_approval(db_session, second.id, True)
    assert updated.approved and not updated.needs_review
    assert crud.set_approval(db_session, second.id, False).needs_review

    ids = [seeded[2].id, seeded[0].id, seeded[3].id]
    assert [r.id for r in crud.get_questions_by_ids(db_session, ids)] == ids[:2]

    assert crud.soft_delete_question(db_session, second.id)
    assert crud.get_question(db_session, second.id) is None
    assert crud.get_question(db_session, second.id, include_deleted=True).deleted
    assert not crud.soft_delete_question(db_session, 9999)

    listed = crud.list_questions(db_session, cognitive_level="apply")
    assert [r.topic for r in listed] == ["Networking"]


def test_query_topic_skips_words_that_only_contain_it(db_session, make_question):
    store = SqlQuestionStore(db_session)
    asyncio.run(store.insert([
        make_question(topic="OS"),
        make_question(topic="Cosmology"),
        make_question(topic="Operating_Systems OS"),
    ]))

    found = asyncio.run(store.query(QuestionFilter(topic="os")))
    assert [q.topic for q in found] == ["OS", "Operating_Systems OS"]


def test_query_level_filter_accepts_stored_aliases(db_session, make_question):
    store = SqlQuestionStore(db_session)
    _seed(store, make_question)
    db_session.add_all([
        models.BankQuestion(topic="Databases", bloom_level="remember ", question_text="Alias row"),
        models.BankQuestion(topic="Databases", bloom_level="Memorising", question_text="Broken row"),
    ])
    db_session.commit()

    found = asyncio.run(store.query(QuestionFilter(cognitive_level=CognitiveLevel.REMEMBERING)))
    texts = [q.question_text for q in found]
    assert "Alias row" in texts
    assert "Broken row" not in texts
    assert all(q.cognitive_level == CognitiveLevel.REMEMBERING for q in found)
    assert "Networking" not in [q.topic for q in found]

    applying = asyncio.run(store.query(QuestionFilter(cognitive_level=CognitiveLevel.APPLYING)))
    assert [q.topic for q in applying] == ["Networking"]


def test_list_questions_pages_after_topic_match(db_session, make_question):
    store = SqlQuestionStore(db_session)
    asyncio.run(store.insert(
        [make_question(topic="Art History") for _ in range(3)]
        + [make_question(topic="Database Partitioning") for _ in range(4)]
    ))

    first = crud.list_questions(db_session, topic="art", skip=0, limit=2)
    rest = crud.list_questions(db_session, topic="art", skip=2, limit=2)
    assert [r.topic for r in first] == ["Art History", "Art History"]
    assert [r.topic for r in rest] == ["Art History"]
    assert first[0].id > first[1].id > rest[0].id
    assert crud.list_questions(db_session, topic="partitioning 50%") == []
