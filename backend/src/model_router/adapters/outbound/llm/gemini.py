"""Gemini adapter backed by the ``google-genai`` SDK.

Three calling modes, picked by which optional request fields are set:

- conversational: ``chat_history`` → chat session seeded with prior turns,
  the last message is sent as the new turn;
- multimodal: ``inline_data`` → one user turn with a text part and an
  inline blob part;
- plain: messages flattened into one prompt string.

Reasoning-capable model families get ``thinking_budget=0`` so a caller
asking for a fast answer does not pay for hidden reasoning.
"""

from __future__ import annotations

import re
from typing import Any, Callable

import structlog
from google import genai
from google.genai import errors, types

from model_router.domain.exceptions import (
    FatalProviderError,
    GenericProviderError,
    OverloadedError,
    ProviderCallError,
    RateLimitedError,
)
from model_router.ports.outbound import ProviderAdapter
from model_router.shared.providers.credentials import CredentialPool
from model_router.shared.providers.scheduler import DEFAULT_EPOCH_TIMEZONE, seconds_until_epoch_reset
from model_router.shared.providers.types import (
    CanonicalRequest,
    CanonicalResult,
    Grounding,
    GroundingSource,
    ProviderConfig,
    Usage,
)

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_S = 60.0
DEFAULT_KEY_COOLDOWN_S = 90.0
REASONING_FAMILIES = ("gemini-3",)

_DURATION = re.compile(r"^\s*([\d.]+)s\s*$")
_PER_DAY_MARKERS = ("perday", "per day")


def _default_client_factory(timeout_s: float) -> Callable[[str], Any]:
    def factory(api_key: str) -> Any:
        return genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=int(timeout_s * 1000)),
        )

    return factory


class GeminiAdapter(ProviderAdapter):
    """Native SDK adapter with a rotating key pool."""

    def __init__(
        self,
        config: ProviderConfig,
        pool: CredentialPool,
        *,
        client_factory: Callable[[str], Any] | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        epoch_timezone: str = DEFAULT_EPOCH_TIMEZONE,
        epoch_margin_s: float = 0.0,
    ) -> None:
        self.name = config.name
        self._pool = pool
        self._epoch_timezone = epoch_timezone
        self._epoch_margin_s = epoch_margin_s
        self._client_factory = client_factory or _default_client_factory(timeout_s)
        self._clients: dict[int, Any] = {}

    def is_available(self) -> bool:
        return self._pool.key_count > 0

    @property
    def credential_count(self) -> int:
        return self._pool.key_count

    async def complete(self, request: CanonicalRequest) -> CanonicalResult:
        key = await self._pool.acquire()
        if key is None:
            raise FatalProviderError(self.name, "no API key configured")

        client = self._clients.get(key.index)
        if client is None:
            client = self._clients[key.index] = self._client_factory(key.api_key)

        try:
            response = await self._generate(client, request)
        except errors.APIError as exc:
            error = self._classify_api_error(exc)
            if isinstance(error, RateLimitedError):
                self._on_rate_limited(error, exc, key.index, request.model)
            raise error from exc
        except ProviderCallError:
            raise
        except Exception as exc:
            raise GenericProviderError(self.name, f"{type(exc).__name__}: {exc}") from exc

        return self._parse(response, request.model)

    # ── SDK call ─────────────────────────────────────────────
    async def _generate(self, client: Any, request: CanonicalRequest) -> Any:
        model = request.model
        config = self._build_config(request)
        messages = request.messages
        last = messages[-1].content if messages else ""

        if request.chat_history is not None:
            chat = client.aio.chats.create(model=model, history=request.chat_history, config=config)
            return await chat.send_message(last)

        if request.inline_data is not None:
            contents = [
                types.Content(
                    role="user",
                    parts=[
                        types.Part(text=last),
                        types.Part(
                            inline_data=types.Blob(
                                mime_type=request.inline_data.mime_type,
                                data=request.inline_data.data,
                            )
                        ),
                    ],
                )
            ]
            return await client.aio.models.generate_content(model=model, contents=contents, config=config)

        prompt = "\n".join(m.content for m in messages)
        return await client.aio.models.generate_content(model=model, contents=prompt, config=config)

    @staticmethod
    def _build_config(request: CanonicalRequest) -> types.GenerateContentConfig:
        kwargs: dict[str, Any] = {
            "max_output_tokens": request.max_tokens,
            "temperature": request.temperature,
        }
        if request.system_instruction:
            kwargs["system_instruction"] = request.system_instruction
        if request.require_json_output:
            kwargs["response_mime_type"] = "application/json"
        if request.model.startswith(REASONING_FAMILIES):
            kwargs["thinking_config"] = types.ThinkingConfig(thinking_budget=0)
        if request.tools:
            kwargs["tools"] = request.tools
        return types.GenerateContentConfig(**kwargs)

    # ── Response parsing ─────────────────────────────────────
    def _parse(self, response: Any, model: str) -> CanonicalResult:
        candidates = getattr(response, "candidates", None) or []
        candidate = candidates[0] if candidates else None

        if candidate is not None and _enum_name(getattr(candidate, "finish_reason", None)) == "MAX_TOKENS":
            raise GenericProviderError(self.name, f"MAX_TOKENS: response truncated by {model}")

        text = (getattr(response, "text", None) or "").strip()
        if not text:
            raise GenericProviderError(self.name, f"empty response from {model}")

        usage_meta = getattr(response, "usage_metadata", None)
        usage = Usage(
            input_tokens=int(getattr(usage_meta, "prompt_token_count", 0) or 0),
            output_tokens=int(getattr(usage_meta, "candidates_token_count", 0) or 0),
        )

        content = getattr(candidate, "content", None)
        raw_parts = getattr(content, "parts", None) or [{"text": text}]

        return CanonicalResult(
            text=text,
            usage=usage,
            grounding=_grounding(getattr(candidate, "grounding_metadata", None)),
            raw_provider_parts=raw_parts,
        )

    # ── Error classification ─────────────────────────────────
    def _classify_api_error(self, exc: errors.APIError) -> ProviderCallError:
        code = getattr(exc, "code", None)
        status = str(getattr(exc, "status", "") or "")
        message = str(getattr(exc, "message", None) or exc)

        if code == 429 or status == "RESOURCE_EXHAUSTED":
            return RateLimitedError(self.name, f"429 {message}", retry_after_ms=_retry_delay_ms(exc))
        if code == 503 or status == "UNAVAILABLE":
            return OverloadedError(self.name, f"503 {message}")
        if code in (401, 402):
            return FatalProviderError(self.name, f"HTTP {code}: {message}")
        return GenericProviderError(self.name, f"HTTP {code}: {message}")

    def _on_rate_limited(
        self,
        error: RateLimitedError,
        exc: errors.APIError,
        key_index: int,
        model: str,
    ) -> None:
        """Cool the key; escalate to the provider only once every key is out.

        A per-day quota 429 benches that key until the epoch reset.  The
        provider-level retry delay stays the SDK's own hint while another
        key can still serve; once the whole pool is cooling, it becomes the
        time until the first key returns.
        """
        if not _is_daily_quota(exc):
            self._pool.mark_cooldown(key_index, DEFAULT_KEY_COOLDOWN_S)
            return

        self._pool.mark_cooldown(
            key_index,
            seconds_until_epoch_reset(self._epoch_timezone, margin_s=self._epoch_margin_s),
        )
        remaining_s = self._pool.min_cooldown_remaining()
        logger.warning(
            "gemini_daily_quota_exhausted",
            key_index=key_index,
            model=model,
            pool_exhausted=remaining_s > 0,
        )
        if remaining_s > 0:
            error.retry_after_ms = int(remaining_s * 1000)


def _enum_name(value: Any) -> str | None:
    if value is None:
        return None
    return getattr(value, "name", None) or str(value)


def _error_details(exc: errors.APIError) -> list[dict[str, Any]]:
    payload = getattr(exc, "details", None)
    if isinstance(payload, dict):
        payload = payload.get("error", payload)
        payload = payload.get("details") if isinstance(payload, dict) else None
    if not isinstance(payload, list):
        return []
    return [d for d in payload if isinstance(d, dict)]


def _retry_delay_ms(exc: errors.APIError) -> int | None:
    for detail in _error_details(exc):
        if str(detail.get("@type", "")).endswith("RetryInfo"):
            match = _DURATION.match(str(detail.get("retryDelay", "")))
            if match:
                return int(float(match.group(1)) * 1000)
    return None


def _is_daily_quota(exc: errors.APIError) -> bool:
    for detail in _error_details(exc):
        for violation in detail.get("violations") or []:
            quota_id = str(violation.get("quotaId", "")).lower() if isinstance(violation, dict) else ""
            if any(marker in quota_id for marker in _PER_DAY_MARKERS):
                return True
    message = str(getattr(exc, "message", None) or exc).lower()
    return any(marker in message for marker in _PER_DAY_MARKERS)


def _grounding(metadata: Any) -> Grounding | None:
    if metadata is None:
        return None
    sources = tuple(
        GroundingSource(
            title=getattr(getattr(chunk, "web", None), "title", None) or "",
            url=getattr(getattr(chunk, "web", None), "uri", None) or "",
        )
        for chunk in (getattr(metadata, "grounding_chunks", None) or [])
    )
    return Grounding(
        web_search_queries=tuple(getattr(metadata, "web_search_queries", None) or ()),
        sources=sources,
    )
