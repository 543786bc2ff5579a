"""
Shared OpenAI helper for the assembly pipeline.

Used by:
  - text_generation.py  (batched question generation, JSON mode)
  - similarity.py       (embeddings for candidate dedup)

Model: gpt-4o-mini  (override with GPT_MODEL env var, e.g. "gpt-4o")
"""

import os
from typing import List

from openai import AsyncOpenAI

# ── Model config ───────────────────────────────────────────────────────────────
GPT_MODEL = os.getenv("GPT_MODEL", "gpt-4o-mini")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")

# Lazy singleton
_client: AsyncOpenAI | None = None


def _get_client() -> AsyncOpenAI:
    global _client
    if _client is None:
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise RuntimeError(
                "OPENAI_API_KEY is not set. Add it to your .env file."
            )
        _client = AsyncOpenAI(api_key=api_key)
    return _client


async def call_gpt(
    prompt: str,
    system: str = "You are a helpful academic assistant. Output only what is asked.",
    temperature: float = 0.3,
    max_tokens: int = 4096,
    json_mode: bool = False,
) -> str:
    """
    Call OpenAI Chat Completions and return the assistant message text.

    Args:
        prompt:      User-turn message
        system:      System prompt
        temperature: Sampling temperature (lower = more deterministic)
        max_tokens:  Max response tokens
        json_mode:   Ask the model for a single JSON object

    Returns:
        Raw string content of the model response
    """
    client = _get_client()
    kwargs = {}
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}
    response = await client.chat.completions.create(
        model=GPT_MODEL,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ],
        temperature=temperature,
        max_tokens=max_tokens,
        **kwargs,
    )
    return response.choices[0].message.content or ""


async def embed_texts(texts: List[str]) -> List[List[float]]:
    """Embed a batch of texts with one API call. Empty strings are sent as a space."""
    if not texts:
        return []
    client = _get_client()
    response = await client.embeddings.create(
        model=EMBEDDING_MODEL,
        input=[t if t and t.strip() else " " for t in texts],
    )
    return [item.embedding for item in response.data]
