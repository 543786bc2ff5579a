"""
Test Assembly Router — /tests

Endpoints:
  POST /tests/assemble             — TOS → reuse/generate → N versions, persisted as a set
  POST /tests/versions             — curated question ids → N versions (no sourcing)
  GET  /tests                      — list generated tests
  GET  /tests/{id}                 — full version set
  GET  /tests/{id}/answer-keys     — answer keys only
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from assembly.constrained_generator import ConstrainedGenerator
from assembly.errors import (
    AssemblyFailedError,
    InsufficientPoolError,
    VersionIntegrityError,
)
from assembly.gpt_client import GPT_MODEL
from assembly.similarity import EmbeddingSimilarity, LexicalSimilarity
from assembly.test_assembler import (
    AssembledTest,
    AssemblyOptions,
    TestAssembler,
    assemble_versions_from_questions,
)
from assembly.text_generation import OpenAITextGenerationService, TextGenerationService
from assembly.tos_builder import build_tos, tos_to_cells
from assembly.usage_tracker import UsageTracker
from assembly.version_assembler import derive_answer_key
from database import crud
from database import schemas as db_schemas
from database.database import get_db
from database.question_store import SqlQuestionStore, row_to_question

router = APIRouter(prefix="/tests", tags=["tests"])

# Use Python's standard logger so output appears in the uvicorn console
log = logging.getLogger("assembly.pipeline")


def get_text_generation_service() -> TextGenerationService:
    return OpenAITextGenerationService()


def _to_response(row) -> db_schemas.GeneratedTestResponse:
    return db_schemas.GeneratedTestResponse.model_validate(row)


# ─── Assemble from TOS ─────────────────────────────────────────────────────────

@router.post("/assemble", response_model=db_schemas.GeneratedTestResponse, status_code=201)
async def assemble_test(
    request: db_schemas.AssembleTestRequest,
    db: Session = Depends(get_db),
    service: TextGenerationService = Depends(get_text_generation_service),
):
    """
    **Assemble a multi-version test from a TOS.**

    Each cell reuses bank questions first (least-used, near-duplicates skipped)
    and generates the remainder with the intent-driven pipeline. Generated
    questions are saved to the bank even if the run fails; the test itself is
    saved only when every cell succeeded.
    """
    if request.cells is not None:
        cells = request.cells
    else:
        try:
            cells = tos_to_cells(build_tos(request.topics, request.total_items))
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))

    similarity = None
    if request.similarity == "lexical":
        similarity = LexicalSimilarity()
    elif request.similarity == "embedding":
        similarity = EmbeddingSimilarity()

    store = SqlQuestionStore(db)
    tracker = UsageTracker(store, model=GPT_MODEL)
    assembler = TestAssembler(
        store,
        ConstrainedGenerator(service),
        similarity=similarity,
        tracker=tracker,
        options=AssemblyOptions(allow_shortfall=request.allow_shortfall),
    )

    log.info(f"[ASSEMBLE] '{request.title}': {len(cells)} cell(s), {request.config.number_of_versions} version(s)")
    try:
        assembled: AssembledTest = await assembler.assemble_test(cells, request.config)
    except AssemblyFailedError as e:
        raise HTTPException(status_code=422, detail=e.to_dict())
    except InsufficientPoolError as e:
        raise HTTPException(status_code=422, detail=e.to_dict())
    except VersionIntegrityError as e:
        raise HTTPException(status_code=500, detail=str(e))

    record = assembled.to_record(request.title, request.config)
    row = crud.create_generated_test(
        db, record, cell_reports=[r.to_dict() for r in assembled.cell_reports]
    )
    log.info(f"[ASSEMBLE] Saved test {row.id} with {len(assembled.questions)} question(s)")
    return _to_response(row)


# ─── Versions from curated questions ───────────────────────────────────────────

@router.post("/versions", response_model=db_schemas.GeneratedTestResponse, status_code=201)
def versions_from_questions(
    request: db_schemas.VersionsFromQuestionsRequest,
    db: Session = Depends(get_db),
):
    rows = crud.get_questions_by_ids(db, request.question_ids)
    missing = sorted(set(request.question_ids) - {r.id for r in rows})
    if missing:
        raise HTTPException(status_code=404, detail=f"Questions not found: {missing}")

    try:
        versions = assemble_versions_from_questions([row_to_question(r) for r in rows], request.config)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except InsufficientPoolError as e:
        raise HTTPException(status_code=422, detail=e.to_dict())

    assembled = AssembledTest(
        versions=versions,
        answer_keys=[derive_answer_key(v) for v in versions],
        cell_reports=[],
        questions=[],
    )
    row = crud.create_generated_test(db, assembled.to_record(request.title, request.config))
    return _to_response(row)


# ─── Read ──────────────────────────────────────────────────────────────────────

@router.get("", response_model=List[db_schemas.GeneratedTestSummary])
def list_tests(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    rows = crud.list_generated_tests(db, skip=skip, limit=limit)
    return [
        db_schemas.GeneratedTestSummary(
            id=r.id,
            title=r.title,
            number_of_versions=len(r.versions or []),
            item_count=len((r.versions or [{}])[0].get("items", [])),
            created_at=r.created_at,
        )
        for r in rows
    ]


@router.get("/{test_id}", response_model=db_schemas.GeneratedTestResponse)
def get_test(test_id: int, db: Session = Depends(get_db)):
    row = crud.get_generated_test(db, test_id)
    if not row:
        raise HTTPException(status_code=404, detail="Test not found")
    return _to_response(row)


@router.get("/{test_id}/answer-keys")
def get_answer_keys(test_id: int, db: Session = Depends(get_db)):
    row = crud.get_generated_test(db, test_id)
    if not row:
        raise HTTPException(status_code=404, detail="Test not found")
    return {"id": row.id, "title": row.title, "answer_keys": row.answer_keys}
