"""
Exception types raised by the assembly pipeline.

Exhaustion and structure violations never raise; they surface as counts
(CellReport.shortfall) and flags (needs_review), not errors.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional


class AssemblyError(Exception):
    """Base class for every assembly failure."""


class TransportError(AssemblyError):
    """The text-generation call failed for the whole batch."""


class PersistenceError(AssemblyError):
    """The question store could not be read, or new questions could not be written to it."""


class InsufficientPoolError(AssemblyError):
    def __init__(self, required: int, available: int, message: Optional[str] = None):
        self.required = required
        self.available = available
        super().__init__(
            message or f"Need {required} question(s) but only {available} available"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": "insufficient_pool",
            "required": self.required,
            "available": self.available,
            "deficit": self.required - self.available,
        }


class VersionIntegrityError(AssemblyError):
    """Versions of one test do not contain the same multiset of questions."""


@dataclass
class CellFailure:
    topic: str
    cognitive_level: str
    difficulty: str
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "topic": self.topic,
            "cognitive_level": self.cognitive_level,
            "difficulty": self.difficulty,
            "reason": self.reason,
        }


class AssemblyFailedError(AssemblyError):
    """One or more TOS cells failed; carries every failure plus per-cell reports."""

    def __init__(self, failures: List[CellFailure], reports: Optional[List[Any]] = None):
        self.failures = failures
        self.reports = reports or []
        cells = ", ".join(f"{f.topic}/{f.cognitive_level}/{f.difficulty}" for f in failures)
        super().__init__(f"{len(failures)} cell(s) failed: {cells}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": "assembly_failed",
            "failed_cells": [f.to_dict() for f in self.failures],
            "cell_reports": [
                r.to_dict() if hasattr(r, "to_dict") else r for r in self.reports
            ],
        }
