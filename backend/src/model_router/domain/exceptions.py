"""Domain-specific exception hierarchy.

All exceptions inherit from ``DomainError`` so callers can catch the entire
family in one clause while still discriminating on subclass.
"""

from __future__ import annotations

from typing import Sequence

from model_router.domain.enums import ErrorKind

MAX_ERROR_MESSAGE = 200
MAX_ATTEMPT_NOTE = 60


def truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit]


class DomainError(Exception):
    """Base class for all domain-layer errors."""

    def __init__(self, message: str, *, code: str = "DOMAIN_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(message)


# ── Provider calls ───────────────────────────────────────────
class ProviderCallError(DomainError):
    """A single provider call failed; ``kind`` selects the health penalty."""

    kind: ErrorKind = ErrorKind.GENERIC

    def __init__(
        self,
        provider: str,
        message: str,
        *,
        kind: ErrorKind | None = None,
        retry_after_ms: int | None = None,
    ) -> None:
        if kind is not None:
            self.kind = kind
        self.provider = provider
        self.retry_after_ms = retry_after_ms
        super().__init__(
            f"[{provider}] {truncate(message, MAX_ERROR_MESSAGE)}",
            code=f"PROVIDER_{self.kind.name}",
        )


class RateLimitedError(ProviderCallError):
    kind = ErrorKind.RATE_LIMITED


class OverloadedError(ProviderCallError):
    kind = ErrorKind.OVERLOADED


class FatalProviderError(ProviderCallError):
    """Authentication or billing failure; not worth retrying soon."""

    kind = ErrorKind.FATAL


class GenericProviderError(ProviderCallError):
    kind = ErrorKind.GENERIC


# ── Routing ──────────────────────────────────────────────────
class NoViableCandidateError(DomainError):
    def __init__(self, intent: str) -> None:
        self.intent = intent
        super().__init__(
            f"No viable provider for intent {intent!r}",
            code="NO_VIABLE_CANDIDATE",
        )


class AggregateFailureError(DomainError):
    """Every attempted candidate failed; ``attempts`` keeps each reason."""

    def __init__(self, intent: str, attempts: Sequence[tuple[str, str]]) -> None:
        self.intent = intent
        self.attempts = list(attempts)
        detail = ", ".join(f"{provider}: {reason}" for provider, reason in self.attempts)
        super().__init__(
            f"All providers failed (intent: {intent}) - {detail}",
            code="ALL_PROVIDERS_FAILED",
        )

    @property
    def providers(self) -> list[str]:
        return [provider for provider, _ in self.attempts]


# ── Configuration ────────────────────────────────────────────
class UnknownIntentError(DomainError):
    def __init__(self, intent: str) -> None:
        self.intent = intent
        super().__init__(f"Unknown intent {intent!r}", code="UNKNOWN_INTENT")


class NoProvidersConfiguredError(DomainError):
    def __init__(self) -> None:
        super().__init__(
            "No LLM provider secret is configured; set at least one API key",
            code="NO_PROVIDERS_CONFIGURED",
        )
