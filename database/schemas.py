"""
Pydantic schemas for request/response validation
Separate from SQLAlchemy models and from the assembly pipeline's own types
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from assembly.schemas import TOSCell, VersionConfig
from assembly.tos_builder import TopicHours


# ==========================================
# QUESTION BANK SCHEMAS
# ==========================================

class QuestionCreate(BaseModel):
    """Teacher-authored question. Level/difficulty accept aliases ('analyse', 'hard')."""
    topic: str = Field(..., min_length=1, max_length=255)
    cognitive_level: str = Field(..., min_length=1)
    knowledge_dimension: Optional[str] = None
    difficulty: Optional[str] = None
    question_type: Optional[str] = None
    question_text: str = Field(..., min_length=1)
    choices: Optional[Any] = None
    correct_answer: Optional[str] = None
    approved: bool = False


class BulkImportRequest(BaseModel):
    """Already-parsed records of any known shape (camelCase or snake_case keys)."""
    questions: List[Dict[str, Any]] = Field(..., min_length=1)


class BulkImportResponse(BaseModel):
    inserted: int
    question_ids: List[int]
    errors: List[Dict[str, Any]]


class ApprovalUpdate(BaseModel):
    approved: bool


# ==========================================
# TEST ASSEMBLY SCHEMAS
# ==========================================

class AssembleTestRequest(BaseModel):
    """
    Either explicit TOS cells, or topic hours + total_items to build them.
    """
    title: str = Field(..., min_length=1, max_length=255)
    cells: Optional[List[TOSCell]] = None
    topics: Optional[List[TopicHours]] = None
    total_items: Optional[int] = Field(None, ge=1)
    config: VersionConfig = Field(default_factory=VersionConfig)
    allow_shortfall: bool = True
    similarity: Literal["lexical", "embedding", "none"] = "lexical"

    @model_validator(mode="after")
    def _one_source(self) -> "AssembleTestRequest":
        if self.cells is None and self.topics is None:
            raise ValueError("Provide either 'cells' or 'topics' with 'total_items'")
        if self.cells is not None and self.topics is not None:
            raise ValueError("Provide 'cells' or 'topics', not both")
        if self.topics is not None and self.total_items is None:
            raise ValueError("'total_items' is required with 'topics'")
        return self


class VersionsFromQuestionsRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    question_ids: List[int] = Field(..., min_length=1)
    config: VersionConfig = Field(default_factory=VersionConfig)


class GeneratedTestSummary(BaseModel):
    id: int
    title: str
    number_of_versions: int
    item_count: int
    created_at: Optional[datetime] = None


class GeneratedTestResponse(BaseModel):
    id: int
    title: str
    config: Dict[str, Any]
    versions: List[Dict[str, Any]]
    answer_keys: List[Dict[str, Any]]
    cell_reports: Optional[List[Dict[str, Any]]] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
