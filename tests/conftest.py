import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

from typing import Dict, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from assembly.errors import PersistenceError, TransportError
from assembly.schemas import (
    AnswerType,
    CognitiveLevel,
    Difficulty,
    GenerationRequest,
    GenerationResult,
    KnowledgeDimension,
    Question,
    QuestionFilter,
    QuestionType,
)
from database.database import Base
from database.question_store import matches_filter


# ─── Fakes ─────────────────────────────────────────────────────────────────────

class FakeQuestionStore:
    """In-memory QuestionStore with switchable failures."""

    def __init__(self, questions: Optional[List[Question]] = None):
        self.questions: Dict[int, Question] = {}
        self.next_id = 1
        self.fail_insert = False
        self.fail_mark_used = False
        self.queries: List[QuestionFilter] = []
        self.used: List[int] = []
        self.logs: List[dict] = []
        for q in questions or []:
            self._add(q)

    def _add(self, question: Question) -> Question:
        stored = question.model_copy(update={"id": question.id or self.next_id})
        self.next_id = max(self.next_id, stored.id) + 1
        self.questions[stored.id] = stored
        return stored

    async def query(self, filter: QuestionFilter) -> List[Question]:
        self.queries.append(filter)
        return [q for q in self.questions.values() if matches_filter(q, filter)]

    async def insert(self, questions: List[Question]) -> List[Question]:
        if self.fail_insert:
            raise PersistenceError("store is read-only")
        return [self._add(q.model_copy(update={"id": None})) for q in questions]

    async def mark_used(self, question_id: int) -> None:
        if self.fail_mark_used:
            raise RuntimeError("usage counter offline")
        self.used.append(question_id)
        q = self.questions[question_id]
        self.questions[question_id] = q.model_copy(update={"usage_count": q.usage_count + 1})

    async def log_generation(self, question_id, model, prompt_summary, structure_validated) -> None:
        self.logs.append({
            "question_id": question_id,
            "model": model,
            "prompt_summary": prompt_summary,
            "structure_validated": structure_validated,
        })


def well_formed_answer(request: GenerationRequest) -> str:
    return (
        f"Applying {request.assigned_concept} works differently from the alternative approach, "
        f"whereas a careless design breaks the system because the {request.assigned_operation} "
        f"step then changes the outcome."
    )


class FakeTextGenerationService:
    """
    Returns one structurally valid result per request unless overridden.

    answers: optional {AnswerType: answer_text} overrides
    drop:    number of trailing requests to answer with empty text
    """

    def __init__(self, answers: Optional[Dict[AnswerType, str]] = None, drop: int = 0, fail: bool = False):
        self.answers = answers or {}
        self.drop = drop
        self.fail = fail
        self.calls: List[List[GenerationRequest]] = []

    async def generate_batch(self, requests: List[GenerationRequest]) -> List[GenerationResult]:
        self.calls.append(list(requests))
        if self.fail:
            raise TransportError("generation service unavailable")
        results = []
        keep = len(requests) - self.drop
        for idx, req in enumerate(requests):
            if idx >= keep:
                results.append(GenerationResult())
                continue
            is_mcq = req.question_type == QuestionType.MCQ
            results.append(GenerationResult(
                question_text=f"{req.assigned_operation.capitalize()} how {req.assigned_concept} shapes {req.topic} (item {len(self.calls)}-{idx + 1})",
                answer_text=self.answers.get(req.answer_type, well_formed_answer(req)),
                choices={
                    "A": f"{req.assigned_concept} option one",
                    "B": f"{req.assigned_concept} option two",
                    "C": f"{req.assigned_concept} option three",
                    "D": f"{req.assigned_concept} option four",
                } if is_mcq else None,
                correct_answer="B" if is_mcq else None,
            ))
        return results

    @property
    def requests(self) -> List[GenerationRequest]:
        return [r for call in self.calls for r in call]


# ─── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def make_question():
    """Factory for bank questions; MCQ with four choices unless told otherwise."""

    def _make(
        qid: Optional[int] = None,
        topic: str = "Databases",
        level: CognitiveLevel = CognitiveLevel.REMEMBERING,
        text: Optional[str] = None,
        mcq: bool = True,
        correct: str = "B",
        usage_count: int = 0,
        difficulty: Difficulty = Difficulty.EASY,
        **extra,
    ) -> Question:
        choices = {
            "A": f"alpha {qid}",
            "B": f"bravo {qid}",
            "C": f"charlie {qid}",
            "D": f"delta {qid}",
        } if mcq else None
        return Question(
            id=qid,
            topic=topic,
            cognitive_level=level,
            knowledge_dimension=KnowledgeDimension.FACTUAL,
            difficulty=difficulty,
            question_type=QuestionType.MCQ if mcq else QuestionType.ESSAY,
            question_text=text or f"Question number {qid} about {topic}",
            choices=choices,
            correct_answer=correct if mcq else f"Model answer {qid}",
            usage_count=usage_count,
            **extra,
        )

    return _make


@pytest.fixture
def fake_store():
    return FakeQuestionStore()


@pytest.fixture
def fake_service():
    return FakeTextGenerationService()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    from database import models  # noqa: F401
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session(engine):
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = Session()
    try:
        yield session
    finally:
        session.close()
