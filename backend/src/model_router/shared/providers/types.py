"""Core types for the model router."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ProviderConfig:
    """Static configuration for a single LLM provider.

    Attributes:
        name:           Unique identifier (e.g. "gemini", "groq").
        base_url:       REST base URL; ``None`` for SDK-backed providers.
        secret_ref:     Name of the environment variable holding the secret.
        supports_multiple_credentials: Secret may hold comma-separated keys.
        per_model_daily_quota: Requests per day per model (``None`` = unbounded).
        default_per_minute_quota: Requests per minute ceiling.
        balance_url:    Optional endpoint reporting the account balance.
        min_call_interval_s: Client-side spacing between two calls.
    """

    name: str
    base_url: str | None = None
    secret_ref: str = ""
    supports_multiple_credentials: bool = False
    per_model_daily_quota: dict[str, int | None] = field(default_factory=dict)
    default_per_minute_quota: int = 30
    balance_url: str | None = None
    min_call_interval_s: float = 0.0


@dataclass(frozen=True)
class Candidate:
    """A (provider, model) pair drawn from an intent's preference list."""

    provider: str
    model: str


@dataclass(frozen=True)
class HealthSnapshot:
    """Read-only view of a provider's health at one instant."""

    provider: str
    has_credential: bool
    daily_used: int
    daily_limit: int | None
    minute_used: int
    minute_limit: int
    reliability: float
    cool_until: float
    last_success: float

    @property
    def unbounded(self) -> bool:
        return self.daily_limit is None


# ── Canonical request / result ───────────────────────────────
@dataclass(frozen=True)
class ChatMessage:
    role: str
    content: str


@dataclass(frozen=True)
class InlineData:
    """One inline binary blob attached to a multimodal request."""

    mime_type: str
    data: bytes


@dataclass(frozen=True)
class CanonicalRequest:
    """Provider-agnostic completion request."""

    messages: tuple[ChatMessage, ...] = ()
    model: str = ""
    max_tokens: int = 4096
    temperature: float = 0.7
    require_json_output: bool = False
    system_instruction: str | None = None
    tools: list[Any] | None = None
    intent: str = "chat"
    chat_history: list[Any] | None = None
    inline_data: InlineData | None = None


@dataclass(frozen=True)
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass(frozen=True)
class GroundingSource:
    title: str
    url: str


@dataclass(frozen=True)
class Grounding:
    """Citations accompanying a web-search-augmented completion."""

    web_search_queries: tuple[str, ...] = ()
    sources: tuple[GroundingSource, ...] = ()


@dataclass(frozen=True)
class RouteMeta:
    provider: str
    model: str
    latency_ms: float
    intent: str


@dataclass(frozen=True)
class CanonicalResult:
    text: str
    usage: Usage = field(default_factory=Usage)
    grounding: Grounding | None = None
    raw_provider_parts: Any = None
    meta: RouteMeta | None = None
