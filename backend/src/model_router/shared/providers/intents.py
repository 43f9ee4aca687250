"""Intent → (provider, model) preference matrix.

Order is curated priority (quality first, then cost); the router walks it
top to bottom and never re-sorts it at runtime.

Structured-output intents (chat, creative, analysis, reflection,
code_edit, vision) stay on Gemini models; decision and utility are
open to every provider because speed and capacity matter more there.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from model_router.shared.providers.types import Candidate

IntentMatrix = Mapping[str, tuple[Candidate, ...]]

_FAST_OPEN_MODELS = (
    Candidate("groq", "llama-3.3-70b-versatile"),
    Candidate("mistral", "mistral-small-latest"),
    Candidate("cerebras", "llama-3.3-70b"),
    Candidate("sambanova", "Meta-Llama-3.3-70B-Instruct"),
    Candidate("openrouter", "meta-llama/llama-3.3-70b-instruct:free"),
)

INTENT_PREFERENCES: IntentMatrix = MappingProxyType({
    "chat": (
        Candidate("gemini", "gemini-2.5-flash"),
        Candidate("gemini", "gemini-2.5-flash-lite"),
    ),
    "creative": (
        Candidate("gemini", "gemini-2.5-flash"),
        Candidate("gemini", "gemini-2.5-flash-lite"),
    ),
    "analysis": (
        Candidate("gemini", "gemini-2.5-flash"),
        Candidate("gemini", "gemini-2.5-pro"),
        Candidate("deepseek", "deepseek-chat"),
    ),
    "reflection": (
        Candidate("gemini", "gemini-2.5-flash"),
        Candidate("gemini", "gemini-2.5-flash-lite"),
    ),
    "code_edit": (
        Candidate("gemini", "gemini-2.5-flash"),
        Candidate("gemini", "gemini-2.5-pro"),
    ),
    "decision": (
        Candidate("gemini", "gemini-2.5-flash-lite"),
        Candidate("groq", "llama-3.3-70b-versatile"),
        Candidate("deepseek", "deepseek-chat"),
        *_FAST_OPEN_MODELS[1:],
    ),
    "utility": (
        Candidate("gemini", "gemini-2.5-flash-lite"),
        *_FAST_OPEN_MODELS,
    ),
    "vision": (
        Candidate("gemini", "gemini-2.5-flash"),
    ),
})
