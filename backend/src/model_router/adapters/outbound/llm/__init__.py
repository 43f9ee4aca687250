"""LLM provider adapters and the factory that wires them from settings.

A provider is enabled only when its secret resolves to at least one usable
credential.  SDK-backed providers (no ``base_url``) get the Gemini adapter;
everything else speaks the OpenAI chat-completions wire format.
"""

from __future__ import annotations

from typing import Mapping

import httpx
import structlog

from model_router.adapters.outbound.llm.gemini import GeminiAdapter
from model_router.adapters.outbound.llm.openai_compat import OpenAICompatAdapter
from model_router.config import Settings
from model_router.ports.outbound import ProviderAdapter
from model_router.shared.providers.configs import PROVIDER_CONFIGS, parse_credentials
from model_router.shared.providers.credentials import CredentialPool
from model_router.shared.providers.types import ProviderConfig

logger = structlog.get_logger(__name__)

__all__ = ["GeminiAdapter", "OpenAICompatAdapter", "build_adapters"]


def build_adapters(
    settings: Settings,
    configs: Mapping[str, ProviderConfig] = PROVIDER_CONFIGS,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> dict[str, ProviderAdapter]:
    """One adapter per provider whose secret is configured."""
    adapters: dict[str, ProviderAdapter] = {}
    for name, config in configs.items():
        keys = parse_credentials(
            settings.secret_for(config.secret_ref),
            multiple=config.supports_multiple_credentials,
        )
        if not keys:
            logger.debug("provider_disabled", provider=name, reason="no credentials")
            continue

        if config.base_url is None:
            pool = CredentialPool(name, keys, min_interval_s=settings.gemini_min_interval_seconds)
            adapters[name] = GeminiAdapter(
                config,
                pool,
                timeout_s=settings.provider_timeout_seconds,
                epoch_timezone=settings.quota_epoch_timezone,
                epoch_margin_s=settings.quota_epoch_margin_seconds,
            )
        else:
            pool = CredentialPool(name, keys, min_interval_s=config.min_call_interval_s)
            adapters[name] = OpenAICompatAdapter(
                config,
                pool,
                client=http_client,
                timeout_s=settings.provider_timeout_seconds,
                epoch_timezone=settings.quota_epoch_timezone,
                epoch_margin_s=settings.quota_epoch_margin_seconds,
            )
        logger.info("provider_enabled", provider=name, keys=len(keys))
    return adapters
