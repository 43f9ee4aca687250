"""Model selector: filters an intent's preference list through provider health.

Health gates availability but never re-ranks: the surviving candidates keep
the curated order of the intent matrix.
"""

from __future__ import annotations

from typing import Sequence

import structlog

from model_router.domain.exceptions import UnknownIntentError
from model_router.shared.providers.health import ProviderHealth
from model_router.shared.providers.intents import INTENT_PREFERENCES, IntentMatrix
from model_router.shared.providers.types import Candidate

logger = structlog.get_logger(__name__)


class ModelSelector:
    """Selects viable (provider, model) candidates for an intent."""

    def __init__(
        self,
        health: ProviderHealth,
        *,
        preferences: IntentMatrix = INTENT_PREFERENCES,
    ) -> None:
        self._health = health
        self._preferences = preferences

    @property
    def intents(self) -> list[str]:
        return list(self._preferences)

    def select(self, intent: str) -> list[Candidate]:
        """Available candidates for ``intent`` in configured order.

        Raises:
            UnknownIntentError: ``intent`` is not in the preference matrix.
        """
        preferences = self._preferences.get(intent)
        if preferences is None:
            raise UnknownIntentError(intent)

        candidates: list[Candidate] = []
        for candidate in preferences:
            h = self._health.get(candidate.provider)
            if h is None or not h.has_credential:
                continue
            if not self._health.is_available(candidate.provider, candidate.model):
                logger.debug(
                    "candidate_unavailable",
                    intent=intent,
                    provider=candidate.provider,
                    model=candidate.model,
                )
                continue
            candidates.append(candidate)

        if not candidates:
            logger.warning(
                "no_available_candidates",
                intent=intent,
                configured=len(preferences),
            )
        return candidates

    def rank_by_score(self, candidates: Sequence[Candidate]) -> list[Candidate]:
        """Stable sort by health score, for callers breaking ties explicitly."""
        return sorted(
            candidates,
            key=lambda c: self._health.score(c.provider, c.model),
            reverse=True,
        )
