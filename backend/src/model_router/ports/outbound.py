"""Outbound ports: interfaces that provider adapters must implement.

The router depends only on this abstraction, never on a concrete wire
protocol, so it never branches on provider identity.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from model_router.shared.providers.types import CanonicalRequest, CanonicalResult


class ProviderAdapter(ABC):
    """One protocol family bound to one provider's credentials.

    ``complete`` returns a result with trimmed, non-empty text or raises a
    ``ProviderCallError`` classified per the shared error table.
    """

    name: str

    @abstractmethod
    def is_available(self) -> bool: ...

    @abstractmethod
    async def complete(self, request: CanonicalRequest) -> CanonicalResult: ...

    @property
    def credential_count(self) -> int | None:
        return None

    async def aclose(self) -> None:
        return None
