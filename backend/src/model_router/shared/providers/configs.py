"""Provider registry: static per-provider configuration.

A provider is enabled at startup only when its ``secret_ref`` resolves to a
non-empty secret; see ``build_adapters``.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from model_router.shared.providers.types import ProviderConfig

PROVIDER_CONFIGS: Mapping[str, ProviderConfig] = MappingProxyType({
    "gemini": ProviderConfig(
        name="gemini",
        base_url=None,  # google-genai SDK, not REST
        secret_ref="GEMINI_API_KEYS",
        supports_multiple_credentials=True,
        per_model_daily_quota={
            "gemini-2.5-flash-lite": 20,
            "gemini-2.5-flash": 20,
            "gemini-3-flash-preview": 20,
        },
        default_per_minute_quota=15,
        min_call_interval_s=2.5,
    ),
    "groq": ProviderConfig(
        name="groq",
        base_url="https://api.groq.com/openai/v1",
        secret_ref="GROQ_API_KEYS",
        supports_multiple_credentials=True,
        per_model_daily_quota={
            "llama-3.3-70b-versatile": 1000,
            "moonshotai/kimi-k2-instruct": 1000,
            "qwen/qwen3-32b": 1000,
        },
        default_per_minute_quota=30,
    ),
    "deepseek": ProviderConfig(
        name="deepseek",
        base_url="https://api.deepseek.com",
        secret_ref="DEEPSEEK_API_KEY",
        per_model_daily_quota={
            "deepseek-chat": None,
            "deepseek-reasoner": None,
        },
        default_per_minute_quota=60,
        balance_url="https://api.deepseek.com/user/balance",
    ),
    "mistral": ProviderConfig(
        name="mistral",
        base_url="https://api.mistral.ai/v1",
        secret_ref="MISTRAL_API_KEY",
        per_model_daily_quota={"mistral-small-latest": 500},
        default_per_minute_quota=10,
    ),
    "openrouter": ProviderConfig(
        name="openrouter",
        base_url="https://openrouter.ai/api/v1",
        secret_ref="OPENROUTER_API_KEY",
        per_model_daily_quota={"meta-llama/llama-3.3-70b-instruct:free": 200},
        default_per_minute_quota=20,
    ),
    "cerebras": ProviderConfig(
        name="cerebras",
        base_url="https://api.cerebras.ai/v1",
        secret_ref="CEREBRAS_API_KEY",
        per_model_daily_quota={"llama-3.3-70b": 1000},
        default_per_minute_quota=30,
    ),
    "sambanova": ProviderConfig(
        name="sambanova",
        base_url="https://api.sambanova.ai/v1",
        secret_ref="SAMBANOVA_API_KEY",
        per_model_daily_quota={"Meta-Llama-3.3-70B-Instruct": 1000},
        default_per_minute_quota=30,
    ),
})


def parse_credentials(raw: str, *, multiple: bool, min_length: int = 11) -> tuple[str, ...]:
    """Split a secret into usable credentials, dropping obviously bogus values."""
    raw = (raw or "").strip()
    if not raw:
        return ()
    parts = raw.split(",") if multiple else [raw]
    return tuple(p.strip() for p in parts if len(p.strip()) >= min_length)
