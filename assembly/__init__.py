"""
Non-Redundant Multi-Version Test Assembly Pipeline
assembly/

Steps:
0. TOS Builder              — topic hours → per-level item counts → TOS cells
1. Answer-Type Compatibility — (level, dimension) → permitted answer structures
2. Concept / Operation Pools — per-topic concepts, per-level operations, forbidden listing
3. Intent Registry          — session-wide record of used intents/concepts/operations
4. Intent Selector          — deterministic, non-repeating intent + concept picks
5. Structure Enforcer       — lexical check of generated answers
6. Constrained Generator    — one batched LLM call per cell, flagged not dropped
7. Version Assembler        — seeded shuffles, re-lettered choices, derived keys
8. Usage Tracker            — fire-and-forget usage counts and generation logs
9. Test Assembler           — per-cell reuse/generation, then version assembly
"""
