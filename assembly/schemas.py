"""
Pydantic schemas for the test assembly pipeline.

Layer 1 (bank):       Question + boundary normalisation of loosely-shaped records
Layer 2 (planning):   QuestionIntent / ConceptAssignment → GenerationRequest
Layer 3 (output):     VersionItem → TestVersion → AnswerKey → GeneratedTestRecord
"""

import enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ─── Enums ─────────────────────────────────────────────────────────────────────

class CognitiveLevel(str, enum.Enum):
    """Bloom's revised taxonomy levels, lowest to highest."""
    REMEMBERING = "Remembering"
    UNDERSTANDING = "Understanding"
    APPLYING = "Applying"
    ANALYZING = "Analyzing"
    EVALUATING = "Evaluating"
    CREATING = "Creating"


class KnowledgeDimension(str, enum.Enum):
    FACTUAL = "factual"
    CONCEPTUAL = "conceptual"
    PROCEDURAL = "procedural"
    METACOGNITIVE = "metacognitive"


class Difficulty(str, enum.Enum):
    EASY = "easy"
    AVERAGE = "average"
    DIFFICULT = "difficult"


class QuestionType(str, enum.Enum):
    MCQ = "mcq"
    TRUE_FALSE = "true_false"
    ESSAY = "essay"
    SHORT_ANSWER = "short_answer"


class AnswerType(str, enum.Enum):
    """Required shape of a correct answer. Assigned before any text exists."""
    DEFINITION = "definition"
    EXPLANATION = "explanation"
    COMPARISON = "comparison"
    PROCEDURE = "procedure"
    APPLICATION = "application"
    EVALUATION = "evaluation"
    JUSTIFICATION = "justification"
    ANALYSIS = "analysis"
    DESIGN = "design"
    CONSTRUCTION = "construction"


class Provenance(str, enum.Enum):
    TEACHER = "teacher"
    AI = "ai"
    BULK_IMPORT = "bulk_import"


HIGHER_ORDER_LEVELS = (
    CognitiveLevel.ANALYZING,
    CognitiveLevel.EVALUATING,
    CognitiveLevel.CREATING,
)


# ─── Alias normalisation (authored data is free text) ─────────────────────────

LEVEL_ALIASES: Dict[str, CognitiveLevel] = {
    "remember":      CognitiveLevel.REMEMBERING,
    "remembering":   CognitiveLevel.REMEMBERING,
    "recall":        CognitiveLevel.REMEMBERING,
    "knowledge":     CognitiveLevel.REMEMBERING,
    "understand":    CognitiveLevel.UNDERSTANDING,
    "understanding": CognitiveLevel.UNDERSTANDING,
    "comprehension": CognitiveLevel.UNDERSTANDING,
    "apply":         CognitiveLevel.APPLYING,
    "applying":      CognitiveLevel.APPLYING,
    "application":   CognitiveLevel.APPLYING,
    "analyze":       CognitiveLevel.ANALYZING,
    "analyse":       CognitiveLevel.ANALYZING,
    "analyzing":     CognitiveLevel.ANALYZING,
    "analysing":     CognitiveLevel.ANALYZING,
    "analysis":      CognitiveLevel.ANALYZING,
    "evaluate":      CognitiveLevel.EVALUATING,
    "evaluating":    CognitiveLevel.EVALUATING,
    "evaluation":    CognitiveLevel.EVALUATING,
    "create":        CognitiveLevel.CREATING,
    "creating":      CognitiveLevel.CREATING,
    "synthesis":     CognitiveLevel.CREATING,
}

DIFFICULTY_ALIASES: Dict[str, Difficulty] = {
    "easy":      Difficulty.EASY,
    "e":         Difficulty.EASY,
    "average":   Difficulty.AVERAGE,
    "medium":    Difficulty.AVERAGE,
    "moderate":  Difficulty.AVERAGE,
    "m":         Difficulty.AVERAGE,
    "difficult": Difficulty.DIFFICULT,
    "hard":      Difficulty.DIFFICULT,
    "h":         Difficulty.DIFFICULT,
}

QUESTION_TYPE_ALIASES: Dict[str, QuestionType] = {
    "mcq":             QuestionType.MCQ,
    "multiple_choice": QuestionType.MCQ,
    "true_false":      QuestionType.TRUE_FALSE,
    "truefalse":       QuestionType.TRUE_FALSE,
    "tf":              QuestionType.TRUE_FALSE,
    "essay":           QuestionType.ESSAY,
    "long":            QuestionType.ESSAY,
    "short_answer":    QuestionType.SHORT_ANSWER,
    "short":           QuestionType.SHORT_ANSWER,
}


def _alias_key(raw: Any) -> str:
    return str(raw or "").strip().lower().replace("-", "_").replace(" ", "_")


def normalise_level(raw: Any) -> Optional[CognitiveLevel]:
    """Map 'analyse', 'Analyzing', 'ANALYSIS' … to a CognitiveLevel, else None."""
    if isinstance(raw, CognitiveLevel):
        return raw
    return LEVEL_ALIASES.get(_alias_key(raw))


def normalise_dimension(raw: Any) -> Optional[KnowledgeDimension]:
    if isinstance(raw, KnowledgeDimension):
        return raw
    try:
        return KnowledgeDimension(_alias_key(raw))
    except ValueError:
        return None


def normalise_difficulty(raw: Any) -> Optional[Difficulty]:
    if isinstance(raw, Difficulty):
        return raw
    return DIFFICULTY_ALIASES.get(_alias_key(raw))


def normalise_question_type(raw: Any) -> Optional[QuestionType]:
    if isinstance(raw, QuestionType):
        return raw
    return QUESTION_TYPE_ALIASES.get(_alias_key(raw))


def normalise_topic(raw: Any) -> str:
    """Case/format-insensitive topic key: 'Data_Bases ' → 'data bases'."""
    text = str(raw or "").lower().replace("_", " ").replace("-", " ")
    return " ".join(text.split())


def topic_tokens(raw: Any) -> List[str]:
    return normalise_topic(raw).split()


def matches_topic(stored: Any, wanted: Any) -> bool:
    """Every word of the wanted topic appears as a whole word of the stored topic."""
    wanted_words = set(topic_tokens(wanted))
    return bool(wanted_words) and wanted_words <= set(topic_tokens(stored))


# ─── Layer 1: Bank questions ───────────────────────────────────────────────────

class GenerationMetadata(BaseModel):
    """Planning data attached to AI-generated questions."""
    pipeline_mode: str = "intent_driven"
    assigned_concept: Optional[str] = None
    assigned_operation: Optional[str] = None
    answer_type: Optional[AnswerType] = None
    concept_is_fallback: bool = False
    structure_validated: Optional[bool] = None
    rejection_reason: Optional[str] = None
    answer_text: Optional[str] = None


class Question(BaseModel):
    """Canonical internal question. id is None until the store assigns one."""
    id: Optional[int] = None
    topic: str
    cognitive_level: CognitiveLevel
    knowledge_dimension: KnowledgeDimension = KnowledgeDimension.CONCEPTUAL
    difficulty: Difficulty = Difficulty.AVERAGE
    question_type: QuestionType = QuestionType.MCQ
    question_text: str
    choices: Optional[Dict[str, str]] = None   # insertion order = display order
    correct_answer: Optional[str] = None       # MCQ: choice key; others: answer text
    provenance: Provenance = Provenance.TEACHER
    approved: bool = False
    needs_review: bool = False
    deleted: bool = False
    usage_count: int = 0
    ai_confidence_score: Optional[float] = None
    metadata: Optional[GenerationMetadata] = None

    @property
    def is_mcq(self) -> bool:
        return self.question_type == QuestionType.MCQ and bool(self.choices)


def _choices_from_raw(raw: Any) -> Optional[Dict[str, str]]:
    """Accept {"A": "..."} or [{"label": "A", "text": "..."}] or ["A. ...", ...]."""
    if not raw:
        return None
    if isinstance(raw, dict):
        return {str(k).strip().upper(): str(v) for k, v in raw.items()}
    choices: Dict[str, str] = {}
    for idx, item in enumerate(raw):
        if isinstance(item, dict):
            label = str(item.get("label") or chr(ord("A") + idx)).strip().upper()
            choices[label] = str(item.get("text", ""))
        else:
            choices[chr(ord("A") + idx)] = str(item)
    return choices or None


def _first(record: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return None


def normalise_question_record(record: Dict[str, Any]) -> Question:
    """
    Turn an ingested record of any known shape into a Question.

    Raises:
        ValueError: if the record has no text, no topic or an unknown cognitive level.
    """
    text = _first(record, "question_text", "questionText", "text")
    topic = _first(record, "topic")
    level = normalise_level(_first(record, "cognitive_level", "cognitiveLevel", "bloom_level", "bloomLevel"))
    if not text or not topic:
        raise ValueError("Question record needs both text and topic")
    if level is None:
        raise ValueError(f"Unknown cognitive level in record: {record!r}")

    qtype = normalise_question_type(_first(record, "question_type", "questionType", "type")) or QuestionType.MCQ
    correct = _first(record, "correct_answer", "correctAnswer", "answer_key", "answer")
    if correct is not None and qtype == QuestionType.MCQ:
        correct = str(correct).strip().upper()

    meta = _first(record, "metadata", "generation_metadata")
    provenance_raw = _first(record, "provenance", "created_by", "createdBy")
    try:
        provenance = Provenance(provenance_raw) if provenance_raw else Provenance.TEACHER
    except ValueError:
        provenance = Provenance.TEACHER

    return Question(
        id=_first(record, "id"),
        topic=str(topic).strip(),
        cognitive_level=level,
        knowledge_dimension=(
            normalise_dimension(_first(record, "knowledge_dimension", "knowledgeDimension"))
            or KnowledgeDimension.CONCEPTUAL
        ),
        difficulty=normalise_difficulty(record.get("difficulty")) or Difficulty.AVERAGE,
        question_type=qtype,
        question_text=str(text),
        choices=_choices_from_raw(_first(record, "choices", "options")),
        correct_answer=None if correct is None else str(correct),
        provenance=provenance,
        approved=bool(record.get("approved", False)),
        needs_review=bool(_first(record, "needs_review", "needsReview") or False),
        deleted=bool(record.get("deleted", False)),
        usage_count=int(_first(record, "usage_count", "used_count", "usedCount") or 0),
        ai_confidence_score=_first(record, "ai_confidence_score", "aiConfidenceScore"),
        metadata=GenerationMetadata(**meta) if isinstance(meta, dict) else None,
    )


class QuestionFilter(BaseModel):
    topic: Optional[str] = None
    cognitive_level: Optional[CognitiveLevel] = None
    approved: Optional[bool] = None
    deleted: Optional[bool] = False


# ─── Layer 2: Planning ─────────────────────────────────────────────────────────

class QuestionIntent(BaseModel):
    """Planned (topic, level, dimension, answer type) tuple. Never persisted."""
    model_config = ConfigDict(frozen=True)

    topic: str
    cognitive_level: CognitiveLevel
    knowledge_dimension: KnowledgeDimension
    answer_type: AnswerType


class ConceptAssignment(BaseModel):
    concept: str
    operation: str
    is_fallback: bool = False


class GenerationRequest(BaseModel):
    """One item of a batched call to the text-generation service."""
    topic: str
    cognitive_level: CognitiveLevel
    knowledge_dimension: KnowledgeDimension
    difficulty: Difficulty
    question_type: QuestionType = QuestionType.MCQ
    answer_type: AnswerType
    answer_type_constraint: str
    assigned_concept: str
    assigned_operation: str
    forbidden_patterns: List[str] = Field(default_factory=list)


class GenerationResult(BaseModel):
    question_text: str = ""
    answer_text: str = ""
    choices: Optional[Dict[str, str]] = None
    correct_answer: Optional[str] = None

    @field_validator("choices", mode="before")
    @classmethod
    def _coerce_choices(cls, value: Any) -> Optional[Dict[str, str]]:
        return _choices_from_raw(value)


class TOSCell(BaseModel):
    """One cell of a Table of Specification: how many items a (topic, level, difficulty) needs."""
    topic: str
    cognitive_level: CognitiveLevel
    difficulty: Difficulty = Difficulty.AVERAGE
    required_count: int = Field(..., ge=0)
    knowledge_dimension: Optional[KnowledgeDimension] = None
    question_type: Optional[QuestionType] = None

    @field_validator("cognitive_level", mode="before")
    @classmethod
    def _coerce_level(cls, value: Any) -> Any:
        return normalise_level(value) or value

    @field_validator("difficulty", mode="before")
    @classmethod
    def _coerce_difficulty(cls, value: Any) -> Any:
        return normalise_difficulty(value) or value

    @property
    def label(self) -> str:
        return f"{self.topic}/{self.cognitive_level.value}/{self.difficulty.value}"


# ─── Layer 3: Versions ─────────────────────────────────────────────────────────

class VersionConfig(BaseModel):
    number_of_versions: int = Field(1, ge=1, le=26)
    shuffle_questions: bool = True
    shuffle_choices: bool = True
    points_per_question: int = Field(1, ge=1)
    seed: str = "default"

    @field_validator("seed", mode="before")
    @classmethod
    def _seed_as_text(cls, value: Any) -> str:
        return str(value)


class VersionItem(BaseModel):
    question_id: int
    position: int                              # 1-based, version-local
    question_type: QuestionType
    choices: Optional[Dict[str, str]] = None   # version-local layout
    correct_answer: Optional[str] = None       # version-local key for MCQ
    points: int


class TestVersion(BaseModel):
    __test__ = False  # keep pytest from collecting this model

    label: str
    items: List[VersionItem]
    total_points: int


class AnswerKeyEntry(BaseModel):
    number: int
    answer: str


class AnswerKey(BaseModel):
    label: str
    keys: List[AnswerKeyEntry]


class GeneratedTestRecord(BaseModel):
    """Persisted shape of a generated test, consumed by export/print."""
    test_id: Optional[int] = None
    title: str
    config: VersionConfig
    versions: List[Dict[str, Any]]
    answer_keys: List[Dict[str, Any]]
