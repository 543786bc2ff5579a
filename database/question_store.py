"""
QuestionStore: the assembly pipeline's only view of the question bank.

Rows are converted to assembly.schemas.Question on the way out, so nothing
past this module sees ORM objects or loosely-shaped records.
"""

import logging
from typing import Any, Dict, List, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from assembly.errors import PersistenceError
from assembly.schemas import (
    Question,
    QuestionFilter,
    normalise_level,
    matches_topic,
    normalise_question_record,
)
from database import crud, models

logger = logging.getLogger("database.store")


class QuestionStore(Protocol):
    async def query(self, filter: QuestionFilter) -> List[Question]:
        ...

    async def insert(self, questions: List[Question]) -> List[Question]:
        ...

    async def mark_used(self, question_id: int) -> None:
        ...

    async def log_generation(
        self,
        question_id: int,
        model: Optional[str],
        prompt_summary: Optional[str],
        structure_validated: Optional[bool],
    ) -> None:
        ...


def matches_filter(question: Question, filter: QuestionFilter) -> bool:
    if filter.deleted is not None and question.deleted != filter.deleted:
        return False
    if filter.approved is not None and question.approved != filter.approved:
        return False
    if filter.topic and not matches_topic(question.topic, filter.topic):
        return False
    if filter.cognitive_level and question.cognitive_level != normalise_level(filter.cognitive_level):
        return False
    return True


# ─── Row conversion ────────────────────────────────────────────────────────────

def row_to_record(row: models.BankQuestion) -> Dict[str, Any]:
    return {
        "id": row.id,
        "topic": row.topic,
        "bloom_level": row.bloom_level,
        "knowledge_dimension": row.knowledge_dimension,
        "difficulty": row.difficulty,
        "question_type": row.question_type,
        "question_text": row.question_text,
        "choices": row.choices,
        "correct_answer": row.correct_answer,
        "created_by": row.created_by,
        "approved": row.approved,
        "needs_review": row.needs_review,
        "deleted": row.deleted,
        "used_count": row.used_count,
        "ai_confidence_score": row.ai_confidence_score,
        "generation_metadata": row.generation_metadata,
    }


def row_to_question(row: models.BankQuestion) -> Question:
    return normalise_question_record(row_to_record(row))


def question_to_row(question: Question) -> models.BankQuestion:
    return models.BankQuestion(
        topic=question.topic,
        bloom_level=question.cognitive_level.value,
        knowledge_dimension=question.knowledge_dimension.value,
        difficulty=question.difficulty.value,
        question_type=question.question_type.value,
        question_text=question.question_text,
        choices=question.choices,
        correct_answer=question.correct_answer,
        created_by=question.provenance.value,
        approved=question.approved,
        needs_review=question.needs_review,
        deleted=question.deleted,
        used_count=question.usage_count,
        ai_confidence_score=question.ai_confidence_score,
        generation_metadata=question.metadata.model_dump(mode="json") if question.metadata else None,
    )


# ─── SQL-backed store ──────────────────────────────────────────────────────────

class SqlQuestionStore:

    def __init__(self, db: Session):
        self.db = db

    async def query(self, filter: QuestionFilter) -> List[Question]:
        q = self.db.query(models.BankQuestion)
        if filter.deleted is not None:
            q = q.filter(models.BankQuestion.deleted == filter.deleted)
        if filter.approved is not None:
            q = q.filter(models.BankQuestion.approved == filter.approved)
        level = normalise_level(filter.cognitive_level) if filter.cognitive_level else None
        if level is not None:
            q = crud.filter_by_level(q, level)
        if filter.topic:
            q = crud.filter_by_topic(q, filter.topic)

        # SQL narrows by substring; matches_filter keeps whole-word topic matches only
        questions = []
        for row in q.order_by(models.BankQuestion.id).all():
            try:
                question = row_to_question(row)
            except ValueError as e:
                logger.warning(f"[STORE] Skipping malformed question {row.id}: {e}")
                continue
            if matches_filter(question, filter):
                questions.append(question)
        return questions

    async def insert(self, questions: List[Question]) -> List[Question]:
        rows = [question_to_row(q) for q in questions]
        try:
            self.db.add_all(rows)
            self.db.commit()
            for row in rows:
                self.db.refresh(row)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"[STORE] Insert of {len(rows)} question(s) failed: {e}")
            raise PersistenceError(f"Could not persist {len(rows)} question(s): {e}") from e
        logger.info(f"[STORE] Inserted {len(rows)} question(s)")
        return [row_to_question(row) for row in rows]

    async def mark_used(self, question_id: int) -> None:
        try:
            self.db.query(models.BankQuestion).filter(
                models.BankQuestion.id == question_id
            ).update({models.BankQuestion.used_count: models.BankQuestion.used_count + 1})
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

    async def log_generation(
        self,
        question_id: int,
        model: Optional[str],
        prompt_summary: Optional[str],
        structure_validated: Optional[bool],
    ) -> None:
        try:
            self.db.add(models.GenerationLog(
                question_id=question_id,
                model=model,
                prompt_summary=prompt_summary,
                structure_validated=structure_validated,
            ))
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
