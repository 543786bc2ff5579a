"""
Step 7 — Version Assembly

Turns one finalised question list into N lettered versions (A, B, C, ...):
  - question order shuffled per version, seeded from (seed, label)
  - MCQ choices shuffled per (version, question) and re-lettered A, B, C, ...
  - answer key derived from the assembled items, never stored separately

Same seed + same questions → identical versions, so a lost test can be
recomputed exactly.
"""

import logging
import random
import string
from collections import Counter
from typing import Dict, List, Optional, Sequence, Tuple

from assembly.errors import InsufficientPoolError, VersionIntegrityError
from assembly.schemas import (
    AnswerKey,
    AnswerKeyEntry,
    Question,
    TestVersion,
    VersionConfig,
    VersionItem,
)

logger = logging.getLogger("assembly.pipeline")

VERSION_LABELS = string.ascii_uppercase
NO_ANSWER = "N/A"


def version_labels(count: int) -> List[str]:
    return list(VERSION_LABELS[:count])


def _rng(*parts) -> random.Random:
    return random.Random("-".join(str(p) for p in parts))


def shuffle_choices(
    choices: Dict[str, str],
    correct_answer: Optional[str],
    rng: random.Random,
) -> Tuple[Dict[str, str], Optional[str]]:
    """
    Shuffle one MCQ's choices and re-letter them A, B, C... in display order.

    Returns the new mapping and the new key holding the originally-correct
    text (None if the original key was not among the choices).
    """
    entries = list(choices.items())
    rng.shuffle(entries)

    shuffled: Dict[str, str] = {}
    new_correct = None
    for idx, (original_key, text) in enumerate(entries):
        new_key = VERSION_LABELS[idx]
        shuffled[new_key] = text
        if original_key == correct_answer:
            new_correct = new_key
    return shuffled, new_correct


def _validate_input(questions: Sequence[Question]) -> None:
    if not questions:
        raise InsufficientPoolError(required=1, available=0, message="Cannot assemble versions from an empty question list")
    ids = [q.id for q in questions]
    if any(i is None for i in ids):
        raise ValueError("Every question must be persisted (have an id) before version assembly")
    duplicates = [i for i, n in Counter(ids).items() if n > 1]
    if duplicates:
        raise ValueError(f"Duplicate question ids in assembly input: {sorted(duplicates)}")


def _build_items(questions: Sequence[Question], label: str, config: VersionConfig) -> List[VersionItem]:
    ordered = list(questions)
    if config.shuffle_questions:
        _rng(config.seed, label, "order").shuffle(ordered)

    items: List[VersionItem] = []
    for position, question in enumerate(ordered, 1):
        choices = dict(question.choices) if question.choices else None
        correct = question.correct_answer
        if config.shuffle_choices and question.is_mcq:
            choices, correct = shuffle_choices(
                question.choices,
                question.correct_answer,
                _rng(config.seed, label, "q", question.id),
            )
        items.append(VersionItem(
            question_id=question.id,
            position=position,
            question_type=question.question_type,
            choices=choices,
            correct_answer=correct,
            points=config.points_per_question,
        ))
    return items


def derive_answer_key(version: TestVersion) -> AnswerKey:
    """Replay a version's items into its answer key."""
    return AnswerKey(
        label=version.label,
        keys=[
            AnswerKeyEntry(number=item.position, answer=item.correct_answer or NO_ANSWER)
            for item in sorted(version.items, key=lambda i: i.position)
        ],
    )


def verify_same_questions(versions: Sequence[TestVersion]) -> None:
    """Raise VersionIntegrityError unless every version holds the same question multiset."""
    if not versions:
        return
    reference = sorted(item.question_id for item in versions[0].items)
    for version in versions[1:]:
        ids = sorted(item.question_id for item in version.items)
        if ids != reference:
            raise VersionIntegrityError(
                f"Version {version.label} does not contain the same questions as version {versions[0].label}"
            )


def assemble_versions(questions: Sequence[Question], config: VersionConfig) -> List[TestVersion]:
    """
    Build config.number_of_versions versions of the same question set.

    Raises:
        InsufficientPoolError: empty question list
        ValueError:            a question without id, or the same id twice
        VersionIntegrityError: versions ended up with different question sets
    """
    _validate_input(questions)

    versions: List[TestVersion] = []
    for label in version_labels(config.number_of_versions):
        items = _build_items(questions, label, config)
        versions.append(TestVersion(
            label=label,
            items=items,
            total_points=sum(item.points for item in items),
        ))

    verify_same_questions(versions)
    logger.info(
        f"[VERSIONS] Built {len(versions)} version(s) × {len(questions)} item(s) "
        f"(shuffle_questions={config.shuffle_questions}, shuffle_choices={config.shuffle_choices})"
    )
    return versions


# ─── Version analysis ──────────────────────────────────────────────────────────

def analyze_version_differences(versions: Sequence[TestVersion]) -> Dict:
    """Per version, how many positions / choice layouts differ from version A."""
    result = {"question_order_changes": {}, "choice_order_changes": {}, "total_differences": 0}
    if len(versions) < 2:
        return result

    base = versions[0]
    for version in versions[1:]:
        order_changes = 0
        choice_changes = 0
        for base_item, item in zip(base.items, version.items):
            if item.question_id != base_item.question_id:
                order_changes += 1
            if item.choices and base_item.choices and list(item.choices.values()) != list(base_item.choices.values()):
                choice_changes += 1
        result["question_order_changes"][version.label] = order_changes
        result["choice_order_changes"][version.label] = choice_changes
        result["total_differences"] += order_changes + choice_changes
    return result


def validate_version_balance(
    versions: Sequence[TestVersion],
    questions_by_id: Dict[int, Question],
) -> Dict:
    """Warn when item counts, topics or difficulties are spread unevenly across versions."""
    if not versions:
        return {"is_balanced": False, "warnings": ["No versions to validate"]}

    warnings: List[str] = []
    counts = [len(v.items) for v in versions]
    if len(set(counts)) > 1:
        warnings.append(f"Versions have different question counts: {counts}")

    def _distribution(version: TestVersion, key) -> Counter:
        return Counter(
            key(questions_by_id[i.question_id])
            for i in version.items if i.question_id in questions_by_id
        )

    topic_dists = [_distribution(v, lambda q: q.topic) for v in versions]
    for topic in sorted(set().union(*topic_dists)):
        per_version = [d[topic] for d in topic_dists]
        if max(per_version) - min(per_version) > 1:
            warnings.append(f'Topic "{topic}" has uneven distribution across versions: {per_version}')

    difficulty_dists = [_distribution(v, lambda q: q.difficulty.value) for v in versions]
    for difficulty in ("easy", "average", "difficult"):
        per_version = [d[difficulty] for d in difficulty_dists]
        if max(per_version) - min(per_version) > 2:
            warnings.append(f'Difficulty "{difficulty}" has significant imbalance across versions: {per_version}')

    return {"is_balanced": not warnings, "warnings": warnings}
