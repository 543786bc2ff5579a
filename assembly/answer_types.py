"""
Step 1 — Answer-Type Compatibility

Static lookup: which answer structures a (cognitive level, knowledge dimension)
pair may demand, plus the structural description sent to the generator for
each answer type. Deterministic, no LLM.
"""

import re
from typing import Dict, List, Optional

from assembly.schemas import (
    AnswerType,
    CognitiveLevel,
    KnowledgeDimension,
    normalise_dimension,
    normalise_level,
)

A = AnswerType
L = CognitiveLevel
K = KnowledgeDimension


# ─── (level, dimension) → permitted answer types, in selection order ──────────

COMPATIBILITY: Dict[CognitiveLevel, Dict[KnowledgeDimension, List[AnswerType]]] = {
    L.REMEMBERING: {
        K.FACTUAL:       [A.DEFINITION],
        K.CONCEPTUAL:    [A.DEFINITION],
        K.PROCEDURAL:    [A.DEFINITION],
        K.METACOGNITIVE: [A.DEFINITION],
    },
    L.UNDERSTANDING: {
        K.FACTUAL:       [A.DEFINITION, A.EXPLANATION],
        K.CONCEPTUAL:    [A.EXPLANATION, A.COMPARISON, A.DEFINITION],
        K.PROCEDURAL:    [A.EXPLANATION, A.PROCEDURE],
        K.METACOGNITIVE: [A.EXPLANATION, A.JUSTIFICATION],
    },
    L.APPLYING: {
        K.FACTUAL:       [A.APPLICATION],
        K.CONCEPTUAL:    [A.APPLICATION, A.EXPLANATION],
        K.PROCEDURAL:    [A.PROCEDURE, A.APPLICATION],
        K.METACOGNITIVE: [A.APPLICATION, A.JUSTIFICATION],
    },
    L.ANALYZING: {
        K.FACTUAL:       [A.COMPARISON, A.ANALYSIS],
        K.CONCEPTUAL:    [A.ANALYSIS, A.COMPARISON],
        K.PROCEDURAL:    [A.ANALYSIS, A.PROCEDURE],
        K.METACOGNITIVE: [A.ANALYSIS, A.JUSTIFICATION],
    },
    L.EVALUATING: {
        K.FACTUAL:       [A.EVALUATION],
        K.CONCEPTUAL:    [A.EVALUATION, A.JUSTIFICATION],
        K.PROCEDURAL:    [A.EVALUATION, A.JUSTIFICATION],
        K.METACOGNITIVE: [A.EVALUATION, A.JUSTIFICATION, A.ANALYSIS],
    },
    L.CREATING: {
        K.FACTUAL:       [A.CONSTRUCTION],
        K.CONCEPTUAL:    [A.DESIGN, A.CONSTRUCTION],
        K.PROCEDURAL:    [A.DESIGN, A.CONSTRUCTION, A.PROCEDURE],
        K.METACOGNITIVE: [A.DESIGN, A.CONSTRUCTION],
    },
}


def allowed_answer_types(cognitive_level, knowledge_dimension) -> List[AnswerType]:
    """
    Return the answer types a (level, dimension) pair permits.

    Accepts enums or loose strings ('analyse', 'Conceptual'). Unknown input
    returns [] so the caller sees "no valid structure" rather than an error.
    """
    level = normalise_level(cognitive_level)
    dimension = normalise_dimension(knowledge_dimension)
    if level is None or dimension is None:
        return []
    return list(COMPATIBILITY.get(level, {}).get(dimension, []))


# ─── Structure descriptions ────────────────────────────────────────────────────

COMPARATIVE_LANGUAGE = re.compile(
    r"\b(whereas|while|unlike|compared|comparison|than|both|similar(ly)?|"
    r"differ(s|ence|ences|ent)?|versus|vs\.?|in contrast|on the other hand)\b",
    re.IGNORECASE,
)
CAUSAL_LANGUAGE = re.compile(
    r"\b(because|therefore|since|thus|hence|consequently|as a result)\b",
    re.IGNORECASE,
)

ANSWER_STRUCTURES: Dict[AnswerType, dict] = {
    A.DEFINITION: {
        "requirement": "State what something IS - terminology, facts, specific details.",
        "rule": "Direct statement of meaning or identification. May use listing.",
        "forbidden": [],
        "required": None,
    },
    A.EXPLANATION: {
        "requirement": "Describe HOW or WHY something works, occurs, or is connected.",
        "rule": "Must show cause-effect or mechanism. Cannot merely enumerate.",
        "forbidden": ["include", "such as"],
        "required": None,
    },
    A.COMPARISON: {
        "requirement": "Explicitly compare at least TWO elements. State BOTH similarities AND differences.",
        "rule": "Must mention Element A vs Element B. Cannot list features of only one.",
        "forbidden": ["include", "such as", "factors"],
        "required": COMPARATIVE_LANGUAGE,
    },
    A.PROCEDURE: {
        "requirement": "Outline ordered STEPS or PROCESSES to accomplish something.",
        "rule": "Must be sequential (Step 1, Step 2...). Cannot be an unordered list.",
        "forbidden": ["include", "such as"],
        "required": None,
    },
    A.APPLICATION: {
        "requirement": "USE knowledge to solve a new problem or address a specific scenario.",
        "rule": "Must reference the specific scenario. Cannot be abstract.",
        "forbidden": ["include", "such as", "factors are"],
        "required": None,
    },
    A.EVALUATION: {
        "requirement": "Make a JUDGMENT based on criteria. State whether something is effective, valid, or optimal.",
        "rule": "Must contain a verdict (better/worse, effective/ineffective). Cannot merely describe.",
        "forbidden": ["include", "such as", "factors"],
        "required": None,
    },
    A.JUSTIFICATION: {
        "requirement": "Provide REASONS and EVIDENCE for a position, decision, or approach.",
        "rule": 'Must contain "because", "therefore", "this works because". Cannot merely list points.',
        "forbidden": ["include", "such as"],
        "required": CAUSAL_LANGUAGE,
    },
    A.ANALYSIS: {
        "requirement": "BREAK DOWN information into components and explain their RELATIONSHIPS.",
        "rule": "Must identify parts AND how they interact. Cannot list parts without relationships.",
        "forbidden": ["include", "such as", "key factors"],
        "required": None,
    },
    A.DESIGN: {
        "requirement": "CREATE a plan, blueprint, or specification for something new.",
        "rule": "Must have structure (sections, components) and purpose. Cannot be an abstract description.",
        "forbidden": ["include", "such as"],
        "required": None,
    },
    A.CONSTRUCTION: {
        "requirement": "BUILD or PRODUCE something original and concrete.",
        "rule": "Must be a tangible output (example, prototype, solution). Cannot be theoretical.",
        "forbidden": ["include"],
        "required": None,
    },
}


def build_answer_constraint(answer_type: AnswerType) -> str:
    """Render the structural constraint block the generator must follow."""
    structure = ANSWER_STRUCTURES[answer_type]
    lines = [
        f"=== ANSWER STRUCTURE CONSTRAINT: {answer_type.value.upper()} ===",
        f"REQUIREMENT: {structure['requirement']}",
        f"STRUCTURAL RULE: {structure['rule']}",
    ]
    if structure["forbidden"]:
        lines.append("FORBIDDEN (will cause rejection):")
        lines.extend(f'- Do NOT use "{p}"' for p in structure["forbidden"])
    return "\n".join(lines)


# ─── Verb → answer type (question-side check) ─────────────────────────────────

VERB_TO_ANSWER_TYPE: Dict[str, AnswerType] = {
    "define": A.DEFINITION, "list": A.DEFINITION, "identify": A.DEFINITION,
    "name": A.DEFINITION, "state": A.DEFINITION, "recall": A.DEFINITION,
    "explain": A.EXPLANATION, "describe": A.EXPLANATION, "summarize": A.EXPLANATION,
    "interpret": A.EXPLANATION, "paraphrase": A.EXPLANATION,
    "apply": A.APPLICATION, "use": A.APPLICATION, "solve": A.APPLICATION,
    "implement": A.PROCEDURE, "demonstrate": A.PROCEDURE, "execute": A.PROCEDURE,
    "compare": A.COMPARISON, "contrast": A.COMPARISON,
    "differentiate": A.ANALYSIS, "distinguish": A.ANALYSIS, "analyze": A.ANALYSIS,
    "examine": A.ANALYSIS, "categorize": A.ANALYSIS, "deconstruct": A.ANALYSIS,
    "evaluate": A.EVALUATION, "assess": A.EVALUATION, "critique": A.EVALUATION,
    "judge": A.EVALUATION,
    "justify": A.JUSTIFICATION, "defend": A.JUSTIFICATION, "argue": A.JUSTIFICATION,
    "design": A.DESIGN, "formulate": A.DESIGN, "develop": A.DESIGN, "plan": A.DESIGN,
    "create": A.CONSTRUCTION, "construct": A.CONSTRUCTION, "compose": A.CONSTRUCTION,
    "generate": A.CONSTRUCTION,
}


def detect_answer_type(question_text: str) -> Optional[AnswerType]:
    """First verb (in table order) found in the question decides its answer type."""
    lowered = (question_text or "").lower()
    for verb, answer_type in VERB_TO_ANSWER_TYPE.items():
        if re.search(rf"\b{verb}\b", lowered):
            return answer_type
    return None


def validate_answer_type_assignment(
    question_text: str,
    assigned: AnswerType,
    cognitive_level: CognitiveLevel,
    knowledge_dimension: KnowledgeDimension,
) -> Optional[str]:
    """Return a problem description, or None if the assignment looks consistent."""
    detected = detect_answer_type(question_text)
    if detected and detected != assigned:
        return f'Question verb suggests "{detected.value}" but assigned "{assigned.value}"'
    if assigned not in allowed_answer_types(cognitive_level, knowledge_dimension):
        return f'Answer type "{assigned.value}" is not appropriate for {cognitive_level.value}'
    return None
