"""
Step 6 — Constrained Generation

Produces question/answer pairs for one (topic, level, dimension, difficulty)
cell that cannot repeat anything already recorded in the session registry:

  1. pick up to `count` intents on a working copy of the registry
  2. assign each a concept + operation, marked used immediately
  3. build one GenerationRequest per intent
  4. one batched call to the TextGenerationService
  5. structure-check every answer; violations are flagged, never dropped
  6. commit the consumed intents to the caller's registry

Returned questions carry no id; the caller persists them.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from assembly.answer_types import build_answer_constraint, validate_answer_type_assignment
from assembly.concept_pool import ConceptOperationPool, DEFAULT_POOL
from assembly.errors import TransportError
from assembly.intent_registry import IntentRegistry
from assembly.intent_selector import (
    commit_intents,
    fallback_concept_and_operation,
    select_concept_and_operation,
    select_intents,
)
from assembly.schemas import (
    CognitiveLevel,
    ConceptAssignment,
    Difficulty,
    GenerationMetadata,
    GenerationRequest,
    GenerationResult,
    KnowledgeDimension,
    Provenance,
    Question,
    QuestionIntent,
    QuestionType,
)
from assembly.structure_enforcer import should_reject
from assembly.text_generation import TextGenerationService

logger = logging.getLogger("assembly.generation")

VALIDATED_CONFIDENCE = 0.75
REJECTED_CONFIDENCE = 0.55
MIN_QUESTION_LENGTH = 10


@dataclass
class GenerationOutcome:
    requested: int
    questions: List[Question] = field(default_factory=list)
    intents: List[QuestionIntent] = field(default_factory=list)
    shortfall: int = 0

    @property
    def flagged(self) -> int:
        return sum(1 for q in self.questions if q.needs_review)


def default_question_type(level: CognitiveLevel) -> QuestionType:
    """Creating is answered as an essay; every other level stays MCQ."""
    return QuestionType.ESSAY if level == CognitiveLevel.CREATING else QuestionType.MCQ


def _mcq_problem(result: GenerationResult) -> Optional[str]:
    if not result.choices or len(result.choices) < 2:
        return "MCQ returned fewer than 2 choices"
    if result.correct_answer not in result.choices:
        return f"MCQ correct answer {result.correct_answer!r} is not one of the choices"
    return None


class ConstrainedGenerator:

    def __init__(self, service: TextGenerationService, pool: Optional[ConceptOperationPool] = None):
        self.service = service
        self.pool = pool or DEFAULT_POOL

    def _assign(self, registry: IntentRegistry, topic: str, level: CognitiveLevel) -> ConceptAssignment:
        assignment = select_concept_and_operation(registry, topic, level)
        if assignment is None:
            assignment = fallback_concept_and_operation(registry, topic, level)
            logger.info(
                f"[GENERATE] Concept pool exhausted for '{topic}'/{level.value}; "
                f"falling back to '{assignment.concept}' + '{assignment.operation}'"
            )
        registry.mark_concept_used(topic, assignment.concept)
        registry.mark_operation_used(topic, level, assignment.operation)
        return assignment

    async def generate(
        self,
        registry: IntentRegistry,
        topic: str,
        level: CognitiveLevel,
        dimension: KnowledgeDimension,
        difficulty: Difficulty,
        count: int,
        question_type: Optional[QuestionType] = None,
    ) -> GenerationOutcome:
        outcome = GenerationOutcome(requested=count)
        if count <= 0:
            return outcome

        qtype = question_type or default_question_type(level)

        # 1. Intents
        intents = select_intents(registry, topic, level, dimension, count)
        if len(intents) < count:
            logger.warning(
                f"[GENERATE] Intent space exhausted for {topic}/{level.value}/{dimension.value}: "
                f"{len(intents)}/{count} available"
            )
        if not intents:
            outcome.shortfall = count
            return outcome

        # 2-3. Concept/operation per intent, then requests
        assignments: List[ConceptAssignment] = []
        requests: List[GenerationRequest] = []
        forbidden = [p.pattern for p in self.pool.forbidden_patterns_for(level)]
        for intent in intents:
            assignment = self._assign(registry, topic, level)
            assignments.append(assignment)
            requests.append(GenerationRequest(
                topic=topic,
                cognitive_level=level,
                knowledge_dimension=dimension,
                difficulty=difficulty,
                question_type=qtype,
                answer_type=intent.answer_type,
                answer_type_constraint=build_answer_constraint(intent.answer_type),
                assigned_concept=assignment.concept,
                assigned_operation=assignment.operation,
                forbidden_patterns=forbidden,
            ))

        # 4. One batched call
        try:
            results = await self.service.generate_batch(requests)
        except TransportError:
            raise
        except Exception as e:
            raise TransportError(f"Text generation failed: {e}") from e

        # 5. Structure check
        consumed: List[QuestionIntent] = []
        for intent, assignment, result in zip(intents, assignments, results):
            if len((result.question_text or "").strip()) < MIN_QUESTION_LENGTH:
                continue

            check = should_reject(intent.answer_type, result.answer_text, level)
            reasons = [check.reason] if check.reject else []
            if qtype == QuestionType.MCQ:
                problem = _mcq_problem(result)
                if problem:
                    reasons.append(problem)
            mismatch = validate_answer_type_assignment(
                result.question_text, intent.answer_type, level, dimension
            )
            if mismatch and reasons:
                reasons.append(mismatch)

            rejected = bool(reasons)
            if rejected:
                logger.info(f"[GENERATE] Flagged for review ({intent.answer_type.value}): {reasons[0]}")

            outcome.questions.append(Question(
                topic=topic,
                cognitive_level=level,
                knowledge_dimension=dimension,
                difficulty=difficulty,
                question_type=qtype,
                question_text=result.question_text.strip(),
                choices=result.choices if qtype == QuestionType.MCQ else None,
                correct_answer=(
                    result.correct_answer if qtype == QuestionType.MCQ
                    else result.correct_answer or result.answer_text
                ),
                provenance=Provenance.AI,
                approved=not rejected,
                needs_review=rejected,
                ai_confidence_score=REJECTED_CONFIDENCE if rejected else VALIDATED_CONFIDENCE,
                metadata=GenerationMetadata(
                    assigned_concept=assignment.concept,
                    assigned_operation=assignment.operation,
                    answer_type=intent.answer_type,
                    concept_is_fallback=assignment.is_fallback,
                    structure_validated=not check.reject,
                    rejection_reason="; ".join(reasons) or None,
                    answer_text=result.answer_text,
                ),
            ))
            consumed.append(intent)

        # 6. Commit to the caller's registry
        commit_intents(registry, consumed)
        outcome.intents = consumed
        outcome.shortfall = count - len(outcome.questions)
        logger.info(
            f"[GENERATE] {topic}/{level.value}: {len(outcome.questions)}/{count} generated, "
            f"{outcome.flagged} flagged, shortfall {outcome.shortfall}"
        )
        return outcome
