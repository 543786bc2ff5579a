import asyncio
import json

import pytest

from assembly import gpt_client
from assembly.answer_types import build_answer_constraint
from assembly.errors import TransportError
from assembly.schemas import (
    AnswerType,
    CognitiveLevel,
    Difficulty,
    GenerationRequest,
    KnowledgeDimension,
    QuestionType,
)
from assembly.text_generation import (
    OpenAITextGenerationService,
    build_batch_prompt,
    parse_batch_response,
)


def _request(question_type=QuestionType.MCQ, concept="indexing", answer_type=AnswerType.ANALYSIS):
    return GenerationRequest(
        topic="Databases",
        cognitive_level=CognitiveLevel.ANALYZING,
        knowledge_dimension=KnowledgeDimension.CONCEPTUAL,
        difficulty=Difficulty.AVERAGE,
        question_type=question_type,
        answer_type=answer_type,
        answer_type_constraint=build_answer_constraint(answer_type),
        assigned_concept=concept,
        assigned_operation="differentiate",
        forbidden_patterns=[r"\bsuch as\b"],
    )


def test_prompt_lists_every_item_with_its_assignment():
    prompt = build_batch_prompt([_request(), _request(concept="transactions", answer_type=AnswerType.COMPARISON)])
    assert "exactly 2 exam question(s)" in prompt
    assert "ITEM 1" in prompt and "ITEM 2" in prompt
    assert "Assigned Concept: transactions" in prompt
    assert "ANSWER STRUCTURE CONSTRAINT: COMPARISON" in prompt
    assert "FORBIDDEN patterns" in prompt


def test_parse_aligns_by_index_and_pads_missing():
    requests = [_request(), _request(QuestionType.ESSAY), _request()]
    raw = "```json\n" + json.dumps({"questions": [
        {"index": 2, "question_text": "Differentiate clustered and heap storage", "answer_text": "Clustered..."},
        {"index": 1, "question_text": " Differentiate B-tree and hash indexes ", "answer_text": "B-trees...",
         "choices": ["sorted", "hashed", "both", "neither"], "correct_answer": "a"},
    ]}) + "\n```"

    results = parse_batch_response(raw, requests)

    assert len(results) == 3
    assert results[0].question_text == "Differentiate B-tree and hash indexes"
    assert results[0].choices == {"A": "sorted", "B": "hashed", "C": "both", "D": "neither"}
    assert results[0].correct_answer == "A"
    assert results[1].choices is None
    assert results[1].question_text.startswith("Differentiate clustered")
    assert results[2].question_text == ""


def test_parse_rejects_unusable_payloads():
    with pytest.raises(ValueError):
        parse_batch_response("no json here", [_request()])
    with pytest.raises(ValueError):
        parse_batch_response('{"items": []}', [_request()])


def test_service_returns_parsed_results(monkeypatch):
    captured = {}

    async def fake_call_gpt(prompt, system, temperature, max_tokens, json_mode):
        captured.update(temperature=temperature, json_mode=json_mode)
        return json.dumps({"questions": [{"question_text": "Differentiate two index kinds", "answer_text": "x"}]})

    monkeypatch.setattr(gpt_client, "call_gpt", fake_call_gpt)
    results = asyncio.run(OpenAITextGenerationService(temperature=0.1).generate_batch([_request()]))
    assert results[0].question_text == "Differentiate two index kinds"
    assert captured == {"temperature": 0.1, "json_mode": True}


def test_service_wraps_failures_as_transport_error(monkeypatch):
    async def broken(*args, **kwargs):
        raise RuntimeError("rate limited")

    monkeypatch.setattr(gpt_client, "call_gpt", broken)
    with pytest.raises(TransportError):
        asyncio.run(OpenAITextGenerationService().generate_batch([_request()]))


def test_unparseable_reply_is_a_transport_error(monkeypatch):
    async def garbage(*args, **kwargs):
        return "Sorry, I cannot help with that."

    monkeypatch.setattr(gpt_client, "call_gpt", garbage)
    with pytest.raises(TransportError):
        asyncio.run(OpenAITextGenerationService().generate_batch([_request()]))


def test_empty_batch_makes_no_call(monkeypatch):
    async def unexpected(*args, **kwargs):
        raise AssertionError("should not be called")

    monkeypatch.setattr(gpt_client, "call_gpt", unexpected)
    assert asyncio.run(OpenAITextGenerationService().generate_batch([])) == []
