"""
SQLAlchemy models for the question bank and generated tests

questions        → bank entries (teacher-authored, imported or AI-generated)
generated_tests  → a full version set + answer keys + the config that produced it
generation_logs  → one row per AI question written to the bank
"""

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime, Text, Float, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database.database import Base


class BankQuestion(Base):
    """
    Question in the bank. Never physically deleted: issued test versions keep
    referring to it by id, so removal sets `deleted`.
    """
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    topic = Column(String(255), nullable=False, index=True)
    bloom_level = Column(String(20), nullable=False, index=True)  # Remembering … Creating
    knowledge_dimension = Column(String(20), nullable=False, default="conceptual")
    difficulty = Column(String(10), nullable=False, default="average")  # easy | average | difficult
    question_type = Column(String(20), nullable=False, default="mcq")  # mcq | true_false | essay | short_answer

    question_text = Column(Text, nullable=False)
    choices = Column(JSON, nullable=True)  # {"A": "...", "B": "..."} in display order
    correct_answer = Column(Text, nullable=True)  # choice key for MCQ, answer text otherwise

    created_by = Column(String(20), nullable=False, default="teacher")  # teacher | ai | bulk_import
    approved = Column(Boolean, default=False, nullable=False)
    needs_review = Column(Boolean, default=False, nullable=False)
    deleted = Column(Boolean, default=False, nullable=False, index=True)
    used_count = Column(Integer, default=0, nullable=False)
    ai_confidence_score = Column(Float, nullable=True)
    generation_metadata = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    generation_logs = relationship("GenerationLog", back_populates="question", cascade="all, delete-orphan")


class GeneratedTest(Base):
    """
    A complete multi-version test. Versions are stored and regenerated as a
    set, never individually; config holds everything needed to recompute them.
    """
    __tablename__ = "generated_tests"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    config = Column(JSON, nullable=False)        # VersionConfig
    versions = Column(JSON, nullable=False)      # [{label, items: [...], total_points}]
    answer_keys = Column(JSON, nullable=False)   # [{label, keys: [{number, answer}]}]
    cell_reports = Column(JSON, nullable=True)   # per-TOS-cell sourcing summary
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class GenerationLog(Base):
    """Tracks each AI-generated bank question: model, prompt summary, validation outcome."""
    __tablename__ = "generation_logs"

    id = Column(Integer, primary_key=True, index=True)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
    model = Column(String(100), nullable=True)
    prompt_summary = Column(Text, nullable=True)
    structure_validated = Column(Boolean, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    question = relationship("BankQuestion", back_populates="generation_logs")
