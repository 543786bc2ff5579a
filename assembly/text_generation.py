"""
Text-generation service used by the constrained generator.

One batched prompt per TOS cell: every GenerationRequest becomes a numbered
item in a single call, and the model answers with one JSON object holding a
"questions" array in the same order.

Any API failure or unparseable response is raised as a single TransportError;
there is no per-item failure and no retry here.
"""

import json
import logging
import os
import re
from typing import List, Protocol

from assembly.errors import TransportError
from assembly.schemas import GenerationRequest, GenerationResult, QuestionType

logger = logging.getLogger("assembly.generation")

GENERATION_TEMPERATURE = float(os.getenv("GENERATION_TEMPERATURE", "0.3"))


class TextGenerationService(Protocol):
    async def generate_batch(self, requests: List[GenerationRequest]) -> List[GenerationResult]:
        ...


# ─── Prompt ────────────────────────────────────────────────────────────────────

SYSTEM_PROMPT = (
    "You are an expert exam question setter. Every item you write must follow "
    "its assigned concept, cognitive operation and answer structure exactly. "
    "Respond with a single JSON object only."
)

BATCH_PROMPT = """Generate exactly {count} exam question(s), one per ITEM below.

Each item has been assigned a DIFFERENT concept, cognitive operation and answer
structure. Do not reuse the concept or angle of another item.

{items}

OUTPUT FORMAT — respond with ONLY a valid JSON object, no markdown:
{{
  "questions": [
    {{
      "index": <item number>,
      "question_text": "<the question>",
      "answer_text": "<model answer obeying the item's ANSWER STRUCTURE CONSTRAINT>",
      "choices": {{"A": "<text>", "B": "<text>", "C": "<text>", "D": "<text>"}},
      "correct_answer": "<A|B|C|D for MCQ, True|False for true_false, omit otherwise>"
    }}
  ]
}}

RULES:
1. Return the items in the same order, one object per item
2. "choices" only for MCQ items (exactly 4) and omitted for every other type
3. Exactly ONE MCQ choice is correct; no "All of the above" / "None of the above"
4. The question must make the assigned operation explicit (e.g. "Compare...", "Justify...")
5. Never use any phrase from an item's FORBIDDEN list in its answer
"""

ITEM_TEMPLATE = """ITEM {index}
- Topic: {topic}
- Bloom's Level: {level}
- Knowledge Dimension: {dimension}
- Difficulty: {difficulty}
- Question Type: {question_type}
- Assigned Concept: {concept}
- Assigned Operation: {operation}
{constraint}{forbidden}"""


def build_batch_prompt(requests: List[GenerationRequest]) -> str:
    blocks = []
    for idx, req in enumerate(requests, 1):
        forbidden = ""
        if req.forbidden_patterns:
            forbidden = "\n- FORBIDDEN patterns: " + "; ".join(req.forbidden_patterns)
        blocks.append(ITEM_TEMPLATE.format(
            index=idx,
            topic=req.topic,
            level=req.cognitive_level.value,
            dimension=req.knowledge_dimension.value,
            difficulty=req.difficulty.value,
            question_type=req.question_type.value,
            concept=req.assigned_concept,
            operation=req.assigned_operation,
            constraint=req.answer_type_constraint,
            forbidden=forbidden,
        ))
    return BATCH_PROMPT.format(count=len(requests), items="\n\n".join(blocks))


# ─── JSON extraction ───────────────────────────────────────────────────────────

def _extract_json_obj(raw: str) -> dict:
    raw = raw.strip()
    raw = re.sub(r"^```(?:json)?\s*", "", raw, flags=re.MULTILINE)
    raw = re.sub(r"\s*```$", "", raw, flags=re.MULTILINE)
    start = raw.find("{")
    end = raw.rfind("}") + 1
    if start == -1 or end == 0:
        raise ValueError(f"No JSON object found: {raw[:200]}")
    return json.loads(raw[start:end])


def parse_batch_response(raw: str, requests: List[GenerationRequest]) -> List[GenerationResult]:
    """
    Align the model's answers with the requests.

    Items the model skipped come back as empty results (counted as shortfall
    downstream), so the returned list always has len(requests) entries.
    """
    data = _extract_json_obj(raw)
    items = data.get("questions")
    if not isinstance(items, list):
        raise ValueError('Response has no "questions" array')

    by_index = {}
    for pos, item in enumerate(items, 1):
        if not isinstance(item, dict):
            continue
        try:
            idx = int(item.get("index", pos))
        except (TypeError, ValueError):
            idx = pos
        by_index.setdefault(idx, item)

    results: List[GenerationResult] = []
    for idx, req in enumerate(requests, 1):
        item = by_index.get(idx, {})
        result = GenerationResult(
            question_text=str(item.get("question_text") or "").strip(),
            answer_text=str(item.get("answer_text") or "").strip(),
            choices=item.get("choices") if req.question_type == QuestionType.MCQ else None,
            correct_answer=item.get("correct_answer"),
        )
        if result.correct_answer is not None:
            result.correct_answer = str(result.correct_answer).strip()
            if req.question_type == QuestionType.MCQ:
                result.correct_answer = result.correct_answer.upper()
        results.append(result)
    return results


# ─── OpenAI-backed service ─────────────────────────────────────────────────────

class OpenAITextGenerationService:
    """TextGenerationService backed by gpt_client.call_gpt in JSON mode."""

    def __init__(self, temperature: float = GENERATION_TEMPERATURE):
        self.temperature = temperature

    async def generate_batch(self, requests: List[GenerationRequest]) -> List[GenerationResult]:
        if not requests:
            return []
        from assembly.gpt_client import call_gpt

        prompt = build_batch_prompt(requests)
        max_tokens = min(700 * len(requests) + 500, 16000)
        try:
            raw = await call_gpt(
                prompt,
                system=SYSTEM_PROMPT,
                temperature=self.temperature,
                max_tokens=max_tokens,
                json_mode=True,
            )
            results = parse_batch_response(raw, requests)
        except Exception as e:
            logger.error(f"[GENERATE] Batch of {len(requests)} failed: {e}")
            raise TransportError(f"Text generation failed: {e}") from e

        logger.info(f"[GENERATE] Batch of {len(requests)} returned {sum(1 for r in results if r.question_text)} item(s)")
        return results
