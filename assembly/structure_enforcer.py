"""
Step 5 — Structure Enforcement

Pure text classifier run on every generated answer. Order of checks:
  1. higher-order levels: shared generic-listing regexes
  2. answer-type forbidden substrings
  3. answer-type required language (comparative / causal)
First hit wins and is reported with its pattern.
"""

import re
from dataclasses import dataclass
from typing import Optional

from assembly.answer_types import ANSWER_STRUCTURES
from assembly.concept_pool import FORBIDDEN_LISTING_PATTERNS
from assembly.schemas import AnswerType, CognitiveLevel, HIGHER_ORDER_LEVELS


@dataclass(frozen=True)
class StructureCheck:
    reject: bool
    reason: Optional[str] = None


ACCEPT = StructureCheck(reject=False)


def should_reject(
    answer_type: AnswerType,
    answer_text: str,
    cognitive_level: CognitiveLevel,
) -> StructureCheck:
    if answer_type == AnswerType.DEFINITION:
        return ACCEPT

    text = answer_text or ""

    if cognitive_level in HIGHER_ORDER_LEVELS:
        for pattern in FORBIDDEN_LISTING_PATTERNS:
            if pattern.search(text):
                return StructureCheck(
                    reject=True,
                    reason=(
                        f"Generic listing pattern /{pattern.pattern}/ is forbidden "
                        f"for {cognitive_level.value} answers"
                    ),
                )

    structure = ANSWER_STRUCTURES.get(answer_type)
    if structure is None:
        return ACCEPT

    for phrase in structure["forbidden"]:
        if re.search(rf"\b{re.escape(phrase)}\b", text, re.IGNORECASE):
            return StructureCheck(
                reject=True,
                reason=f'Forbidden phrase "{phrase}" in {answer_type.value} answer',
            )

    required = structure["required"]
    if required is not None and not required.search(text):
        return StructureCheck(
            reject=True,
            reason=(
                f"{answer_type.value} answer lacks required language "
                f"/{required.pattern}/"
            ),
        )

    return ACCEPT
