"""OpenAI-compatible REST adapter (Groq, DeepSeek, Mistral, OpenRouter, ...).

One POST to ``{base_url}/chat/completions`` per call.  HTTP status codes and
transport failures are mapped onto the shared error kinds; the router
decides what to do with them.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import httpx
import structlog

from model_router.domain.exceptions import (
    FatalProviderError,
    GenericProviderError,
    OverloadedError,
    RateLimitedError,
)
from model_router.ports.outbound import ProviderAdapter
from model_router.shared.providers.credentials import CredentialPool
from model_router.shared.providers.scheduler import DEFAULT_EPOCH_TIMEZONE, seconds_until_epoch_reset
from model_router.shared.providers.types import CanonicalRequest, CanonicalResult, ProviderConfig, Usage

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_S = 60.0
DEFAULT_KEY_COOLDOWN_S = 90.0
RPM_KEY_COOLDOWN_S = 65.0
UPSTREAM_KEY_COOLDOWN_S = 120.0
RETRY_AFTER_BUFFER = 1.2
LONG_RETRY_AFTER_MS = 3_600_000

# Providers whose 429s are always per-minute limits, or carry no usable header
_RPM_ONLY_PROVIDERS = frozenset({"mistral"})
_HEADERLESS_PROVIDERS = frozenset({"openrouter"})


def parse_retry_after(value: str | None, *, now: datetime | None = None) -> int | None:
    """``retry-after`` header (delta-seconds or HTTP-date) in milliseconds."""
    if not value:
        return None
    value = value.strip()
    try:
        seconds = float(value)
    except ValueError:
        try:
            when = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        seconds = (when - (now or datetime.now(timezone.utc))).total_seconds()
    if math.isnan(seconds) or seconds < 0:
        return None
    return int(seconds * 1000)


class OpenAICompatAdapter(ProviderAdapter):
    """Chat-completions adapter over ``httpx``."""

    def __init__(
        self,
        config: ProviderConfig,
        pool: CredentialPool,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        epoch_timezone: str = DEFAULT_EPOCH_TIMEZONE,
        epoch_margin_s: float = 0.0,
    ) -> None:
        if not config.base_url:
            raise ValueError(f"{config.name}: OpenAI-compatible adapter needs a base_url")
        self.name = config.name
        self._base_url = config.base_url.rstrip("/")
        self._pool = pool
        self._client = client or httpx.AsyncClient(timeout=timeout_s)
        self._timeout = timeout_s
        self._epoch_timezone = epoch_timezone
        self._epoch_margin_s = epoch_margin_s

    def is_available(self) -> bool:
        return self._pool.key_count > 0

    @property
    def credential_count(self) -> int:
        return self._pool.key_count

    async def complete(self, request: CanonicalRequest) -> CanonicalResult:
        key = await self._pool.acquire()
        if key is None:
            raise FatalProviderError(self.name, "no API key configured")

        try:
            response = await self._client.post(
                f"{self._base_url}/chat/completions",
                headers={
                    "Authorization": f"Bearer {key.api_key}",
                    "Content-Type": "application/json",
                },
                json=self._build_body(request),
                timeout=self._timeout,
            )
        except httpx.TimeoutException as exc:
            raise GenericProviderError(self.name, f"request timeout ({self._timeout:.0f}s)") from exc
        except httpx.HTTPError as exc:
            raise GenericProviderError(self.name, f"network error: {exc}") from exc

        status = response.status_code
        if status == 429:
            retry_after_ms = parse_retry_after(response.headers.get("retry-after"))
            remaining = response.headers.get("x-ratelimit-remaining-req-minute")
            self._pool.mark_cooldown(
                key.index,
                self._key_cooldown_s(retry_after_ms, is_rpm=remaining is not None and remaining.strip() == "0"),
            )
            raise RateLimitedError(self.name, "429 Too Many Requests", retry_after_ms=retry_after_ms)
        if status == 503:
            raise OverloadedError(self.name, "503 Service Unavailable")
        if status in (401, 402):
            raise FatalProviderError(self.name, f"HTTP {status}: {_error_detail(response)}")
        if status >= 400:
            raise GenericProviderError(self.name, f"HTTP {status}: {_error_detail(response)}")

        try:
            data = response.json()
        except ValueError as exc:
            raise GenericProviderError(self.name, f"response parse error: {exc}") from exc
        return self._parse(data, request.model)

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── Wire format ──────────────────────────────────────────
    @staticmethod
    def _build_body(request: CanonicalRequest) -> dict[str, Any]:
        messages: list[dict[str, str]] = []
        if request.system_instruction:
            messages.append({"role": "system", "content": request.system_instruction})
        messages.extend({"role": m.role or "user", "content": m.content} for m in request.messages)

        body: dict[str, Any] = {
            "model": request.model,
            "messages": messages,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
        }
        if request.require_json_output:
            body["response_format"] = {"type": "json_object"}
        return body

    def _parse(self, data: Any, model: str) -> CanonicalResult:
        try:
            choice = data["choices"][0]
            message = choice.get("message") or {}
        except (KeyError, IndexError, TypeError, AttributeError) as exc:
            raise GenericProviderError(self.name, f"response parse error: missing choices ({exc})") from exc

        text = (message.get("content") or message.get("reasoning_content") or "").strip()
        if not text:
            reason = "truncated at max_tokens" if choice.get("finish_reason") == "length" else "empty response"
            raise GenericProviderError(self.name, f"{reason} from {model}")

        usage = data.get("usage") or {}
        return CanonicalResult(
            text=text,
            usage=Usage(
                input_tokens=int(usage.get("prompt_tokens") or 0),
                output_tokens=int(usage.get("completion_tokens") or 0),
            ),
        )

    def _key_cooldown_s(self, retry_after_ms: int | None, *, is_rpm: bool) -> float:
        if self.name in _RPM_ONLY_PROVIDERS or is_rpm:
            return RPM_KEY_COOLDOWN_S
        if self.name in _HEADERLESS_PROVIDERS:
            return UPSTREAM_KEY_COOLDOWN_S
        if retry_after_ms is not None and retry_after_ms > LONG_RETRY_AFTER_MS:
            return seconds_until_epoch_reset(self._epoch_timezone, margin_s=self._epoch_margin_s)
        if retry_after_ms:
            return retry_after_ms / 1000 * RETRY_AFTER_BUFFER
        return DEFAULT_KEY_COOLDOWN_S


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
    return str(payload)[:200]
