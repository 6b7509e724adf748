"""Ports (interfaces) used by the core.

Ports define the minimal contracts for the config store and the chat
transport so that the core can be reused with different backends.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Iterable, List, Protocol, Sequence

from core.models import AccountConfig, HistoryMessage, InboundEvent

InboundHandler = Callable[[Sequence[InboundEvent]], Awaitable[None]]
Unsubscribe = Callable[[], None]


class ConfigStorePort(Protocol):
    """Durable per-identity account record storage."""

    def load_config(self, identity: str) -> AccountConfig:
        ...

    def save_config(self, identity: str, config: AccountConfig) -> AccountConfig:
        ...


class TransportPort(Protocol):
    """Chat transport operations required by the core.

    ``resolve_identities`` maps each queried user id to a transport handle;
    ids that cannot be resolved are simply absent from the result.
    """

    async def current_account_identity(self) -> str:
        ...

    def subscribe_inbound(self, handler: InboundHandler) -> Unsubscribe:
        ...

    async def resolve_identities(self, user_ids: Iterable[str]) -> Dict[str, Any]:
        ...

    async def send_direct_message(self, peer: Any, text: str) -> None:
        ...

    async def fetch_recent_private_history(self, peer: Any, limit: int = 100) -> List[HistoryMessage]:
        ...
