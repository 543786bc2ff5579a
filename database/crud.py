"""
CRUD operations for the question bank and generated tests
Routers go through these functions; the assembly pipeline goes through question_store
"""

from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional

from assembly.schemas import (
    LEVEL_ALIASES,
    CognitiveLevel,
    GeneratedTestRecord,
    matches_topic,
    normalise_level,
    topic_tokens,
)
from database import models


# ==========================================
# SHARED FILTERS
# ==========================================

def _like_pattern(word: str) -> str:
    escaped = word.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def filter_by_topic(q, topic: str):
    """Coarse SQL narrowing: every topic word appears somewhere in the stored topic.
    Callers refine with matches_topic for whole-word matches."""
    for word in topic_tokens(topic):
        q = q.filter(models.BankQuestion.topic.ilike(_like_pattern(word), escape="\\"))
    return q


def filter_by_level(q, level: CognitiveLevel):
    """Match the canonical level and every alias of it, case-insensitively"""
    spellings = sorted({key for key, value in LEVEL_ALIASES.items() if value == level} | {level.value.lower()})
    return q.filter(func.lower(func.trim(models.BankQuestion.bloom_level)).in_(spellings))


# ==========================================
# QUESTION CRUD
# ==========================================

def get_question(db: Session, question_id: int, include_deleted: bool = False) -> Optional[models.BankQuestion]:
    """Get question by ID (soft-deleted rows hidden unless asked for)"""
    q = db.query(models.BankQuestion).filter(models.BankQuestion.id == question_id)
    if not include_deleted:
        q = q.filter(models.BankQuestion.deleted == False)  # noqa: E712
    return q.first()


def get_questions_by_ids(db: Session, question_ids: List[int]) -> List[models.BankQuestion]:
    """Get non-deleted questions, in the order the ids were given"""
    rows = (
        db.query(models.BankQuestion)
        .filter(models.BankQuestion.id.in_(question_ids), models.BankQuestion.deleted == False)  # noqa: E712
        .all()
    )
    by_id = {r.id: r for r in rows}
    return [by_id[i] for i in question_ids if i in by_id]


def list_questions(
    db: Session,
    cognitive_level: Optional[str] = None,
    approved: Optional[bool] = None,
    needs_review: Optional[bool] = None,
    created_by: Optional[str] = None,
    topic: Optional[str] = None,
    skip: int = 0,
    limit: int = 50,
) -> List[models.BankQuestion]:
    """List non-deleted questions with optional filters; topic is a whole-word match"""
    q = db.query(models.BankQuestion).filter(models.BankQuestion.deleted == False)  # noqa: E712
    if cognitive_level is not None:
        level = normalise_level(cognitive_level)
        if level is not None:
            q = filter_by_level(q, level)
        else:
            q = q.filter(models.BankQuestion.bloom_level == cognitive_level)
    if approved is not None:
        q = q.filter(models.BankQuestion.approved == approved)
    if needs_review is not None:
        q = q.filter(models.BankQuestion.needs_review == needs_review)
    if created_by is not None:
        q = q.filter(models.BankQuestion.created_by == created_by)
    q = q.order_by(models.BankQuestion.id.desc())
    if not topic:
        return q.offset(skip).limit(limit).all()

    rows = [r for r in filter_by_topic(q, topic).all() if matches_topic(r.topic, topic)]
    return rows[skip:skip + limit]


def set_approval(db: Session, question_id: int, approved: bool) -> Optional[models.BankQuestion]:
    """Approve or un-approve; needs_review always tracks the opposite"""
    db_question = get_question(db, question_id)
    if not db_question:
        return None
    db_question.approved = approved
    db_question.needs_review = not approved
    db.commit()
    db.refresh(db_question)
    return db_question


def soft_delete_question(db: Session, question_id: int) -> bool:
    """Flag a question deleted; issued versions keep referring to it"""
    db_question = get_question(db, question_id)
    if not db_question:
        return False
    db_question.deleted = True
    db.commit()
    return True


# ==========================================
# GENERATED TEST CRUD
# ==========================================

def create_generated_test(
    db: Session,
    record: GeneratedTestRecord,
    cell_reports: Optional[List[Dict[str, Any]]] = None,
) -> models.GeneratedTest:
    """Persist a complete version set"""
    db_test = models.GeneratedTest(
        title=record.title,
        config=record.config.model_dump(mode="json"),
        versions=record.versions,
        answer_keys=record.answer_keys,
        cell_reports=cell_reports,
    )
    db.add(db_test)
    db.commit()
    db.refresh(db_test)
    return db_test


def get_generated_test(db: Session, test_id: int) -> Optional[models.GeneratedTest]:
    """Get generated test by ID"""
    return db.query(models.GeneratedTest).filter(models.GeneratedTest.id == test_id).first()


def list_generated_tests(db: Session, skip: int = 0, limit: int = 50) -> List[models.GeneratedTest]:
    """Get generated tests, newest first"""
    return (
        db.query(models.GeneratedTest)
        .order_by(models.GeneratedTest.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
