"""
Step 8 — Usage Tracker

Fire-and-forget bookkeeping around an assembly run:
  - increment usage counters on reused bank questions
  - write a generation log row for every AI question inserted

Neither may block or fail the run. Each call is scheduled as its own task;
exceptions are logged at WARNING and swallowed inside the task.
"""

import asyncio
import logging
from typing import Awaitable, Optional, Set

from assembly.schemas import Question

logger = logging.getLogger("assembly.pipeline")


class UsageTracker:

    def __init__(self, store, model: Optional[str] = None):
        self.store = store
        self.model = model
        self._pending: Set[asyncio.Task] = set()

    def _fire(self, description: str, awaitable: Awaitable) -> None:
        async def _run():
            try:
                await awaitable
            except Exception as e:
                logger.warning(f"[USAGE] {description} failed: {e}")

        task = asyncio.create_task(_run())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def mark_used(self, question_id: int) -> None:
        self._fire(f"mark_used({question_id})", self.store.mark_used(question_id))

    def log_generation(self, question: Question) -> None:
        meta = question.metadata
        summary = None
        if meta is not None:
            summary = (
                f"{question.topic} | {question.cognitive_level.value} | "
                f"{meta.answer_type.value if meta.answer_type else '-'} | "
                f"{meta.assigned_concept} + {meta.assigned_operation}"
            )
        self._fire(
            f"log_generation({question.id})",
            self.store.log_generation(
                question.id,
                self.model,
                summary,
                meta.structure_validated if meta else None,
            ),
        )

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every scheduled task. Failures were already logged."""
        if self._pending:
            await asyncio.gather(*list(self._pending))
