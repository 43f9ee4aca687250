"""Data Transfer Objects: Pydantic models for API boundaries.

DTOs handle serialisation and validation at the HTTP edge and convert to
and from the frozen canonical dataclasses the router works with.
"""

from __future__ import annotations

import base64
import binascii
from typing import Any

from pydantic import BaseModel, Field, field_validator

from model_router.shared.providers.types import (
    CanonicalRequest,
    CanonicalResult,
    ChatMessage,
    InlineData,
)


# ═══════════════════════════════════════════════════════════════
#  Common
# ═══════════════════════════════════════════════════════════════
class ErrorResponse(BaseModel):
    code: str
    message: str


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    environment: str = "development"
    providers: int = 0


# ═══════════════════════════════════════════════════════════════
#  Completions
# ═══════════════════════════════════════════════════════════════
class MessageDTO(BaseModel):
    role: str = "user"
    content: str


class InlineDataDTO(BaseModel):
    mime_type: str
    data: str = Field(..., description="Base64-encoded payload")

    @field_validator("data")
    @classmethod
    def _validate_base64(cls, v: str) -> str:
        try:
            base64.b64decode(v, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("data must be valid base64") from exc
        return v


class CompletionRequest(BaseModel):
    intent: str = "chat"
    messages: list[MessageDTO] = Field(..., min_length=1)
    max_tokens: int = Field(4096, ge=1, le=65_536)
    temperature: float = Field(0.7, ge=0.0, le=2.0)
    require_json_output: bool = False
    system_instruction: str | None = None
    tools: list[dict[str, Any]] | None = Field(
        None,
        description='Provider tool declarations, e.g. [{"google_search": {}}] for grounded answers',
    )
    chat_history: list[dict[str, Any]] | None = None
    inline_data: InlineDataDTO | None = None

    def to_canonical(self) -> CanonicalRequest:
        inline = None
        if self.inline_data is not None:
            inline = InlineData(
                mime_type=self.inline_data.mime_type,
                data=base64.b64decode(self.inline_data.data),
            )
        return CanonicalRequest(
            messages=tuple(ChatMessage(role=m.role, content=m.content) for m in self.messages),
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            require_json_output=self.require_json_output,
            system_instruction=self.system_instruction,
            tools=self.tools,
            intent=self.intent,
            chat_history=self.chat_history,
            inline_data=inline,
        )


class UsageDTO(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0


class GroundingSourceDTO(BaseModel):
    title: str
    url: str


class GroundingDTO(BaseModel):
    web_search_queries: list[str] = Field(default_factory=list)
    sources: list[GroundingSourceDTO] = Field(default_factory=list)


class RouteMetaDTO(BaseModel):
    provider: str
    model: str
    latency_ms: float
    intent: str


class CompletionResponse(BaseModel):
    text: str
    usage: UsageDTO
    grounding: GroundingDTO | None = None
    meta: RouteMetaDTO | None = None

    @classmethod
    def from_result(cls, result: CanonicalResult) -> CompletionResponse:
        grounding = None
        if result.grounding is not None:
            grounding = GroundingDTO(
                web_search_queries=list(result.grounding.web_search_queries),
                sources=[GroundingSourceDTO(title=s.title, url=s.url) for s in result.grounding.sources],
            )
        meta = None
        if result.meta is not None:
            meta = RouteMetaDTO(
                provider=result.meta.provider,
                model=result.meta.model,
                latency_ms=round(result.meta.latency_ms, 1),
                intent=result.meta.intent,
            )
        return cls(
            text=result.text,
            usage=UsageDTO(
                input_tokens=result.usage.input_tokens,
                output_tokens=result.usage.output_tokens,
            ),
            grounding=grounding,
            meta=meta,
        )


# ═══════════════════════════════════════════════════════════════
#  Providers
# ═══════════════════════════════════════════════════════════════
class ProviderStatusResponse(BaseModel):
    provider: str
    available: bool
    score: float
    reliability: float
    daily_used: int
    daily_limit: int | None
    minute_used: int
    minute_limit: int
    cool_until: float
    credentials: int | None = None


class ProviderSummaryResponse(BaseModel):
    providers: int
    summary: str


class BalanceResponse(BaseModel):
    provider: str
    total: float
    granted: float
    topped_up: float
    currency: str
    fetched_at: float | None = None


class QuotaResetResponse(BaseModel):
    status: str = "reset"
    providers: list[str] = Field(default_factory=list)
