"""
Question Bank Router — /questions

The bank the assembler draws from:
  POST   /questions                    — add one teacher-authored question
  POST   /questions/bulk               — add already-parsed records of any known shape
  GET    /questions                    — list with filters
  PATCH  /questions/{id}/approval      — approve / send back to review
  DELETE /questions/{id}               — soft delete
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from assembly.errors import PersistenceError
from assembly.schemas import Provenance, Question, normalise_question_record
from database import crud
from database import schemas as db_schemas
from database.database import get_db
from database.question_store import SqlQuestionStore, row_to_question

router = APIRouter(prefix="/questions", tags=["questions"])

log = logging.getLogger("assembly.pipeline")


@router.post("", response_model=Question, status_code=201)
async def create_question(
    request: db_schemas.QuestionCreate,
    db: Session = Depends(get_db),
):
    try:
        question = normalise_question_record(request.model_dump(exclude_none=True))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    try:
        inserted = await SqlQuestionStore(db).insert([question])
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return inserted[0]


@router.post("/bulk", response_model=db_schemas.BulkImportResponse, status_code=201)
async def bulk_import(
    request: db_schemas.BulkImportRequest,
    db: Session = Depends(get_db),
):
    """
    Insert every record that normalises cleanly; report the rest by index.
    Records without a provenance are tagged bulk_import.
    """
    valid: List[Question] = []
    errors = []
    for idx, record in enumerate(request.questions):
        try:
            question = normalise_question_record(record)
        except (ValueError, TypeError) as e:
            errors.append({"index": idx, "error": str(e)})
            continue
        if not any(record.get(k) for k in ("provenance", "created_by", "createdBy")):
            question.provenance = Provenance.BULK_IMPORT
        question.id = None
        valid.append(question)

    inserted: List[Question] = []
    if valid:
        try:
            inserted = await SqlQuestionStore(db).insert(valid)
        except PersistenceError as e:
            raise HTTPException(status_code=500, detail=str(e))

    log.info(f"[BULK] Imported {len(inserted)} question(s), {len(errors)} rejected")
    return db_schemas.BulkImportResponse(
        inserted=len(inserted),
        question_ids=[q.id for q in inserted],
        errors=errors,
    )


@router.get("", response_model=List[Question])
def list_questions(
    topic: Optional[str] = Query(None),
    cognitive_level: Optional[str] = Query(None),
    approved: Optional[bool] = Query(None),
    needs_review: Optional[bool] = Query(None),
    created_by: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    """List non-deleted questions. Topic matches whole words, case/format-insensitive."""
    rows = crud.list_questions(
        db,
        cognitive_level=cognitive_level,
        approved=approved,
        needs_review=needs_review,
        created_by=created_by,
        topic=topic,
        skip=skip,
        limit=limit,
    )
    return [row_to_question(r) for r in rows]


@router.patch("/{question_id}/approval", response_model=Question)
def update_approval(
    question_id: int,
    update: db_schemas.ApprovalUpdate,
    db: Session = Depends(get_db),
):
    row = crud.set_approval(db, question_id, update.approved)
    if not row:
        raise HTTPException(status_code=404, detail="Question not found")
    return row_to_question(row)


@router.delete("/{question_id}")
def delete_question(question_id: int, db: Session = Depends(get_db)):
    if not crud.soft_delete_question(db, question_id):
        raise HTTPException(status_code=404, detail="Question not found")
    return {"id": question_id, "deleted": True}
