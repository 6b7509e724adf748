"""Telethon transport adapter.

Implements the core TransportPort on top of a connected TelegramClient.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List

from telethon import TelegramClient, events

from adapters.telegram_mapper import build_history_message, build_inbound_event
from core.models import HistoryMessage
from core.ports import InboundHandler, Unsubscribe

LOGGER = logging.getLogger(__name__)


class TelegramTransport:
    """Send, history and identity resolution through one user session."""

    def __init__(self, client: TelegramClient) -> None:
        self._client = client
        # user id -> InputPeer, kept for the lifetime of the process.
        self._peer_cache: dict[str, Any] = {}

    async def current_account_identity(self) -> str:
        me = await self._client.get_me()
        if me is None:
            raise RuntimeError("Telegram session is not authorized")
        return str(me.id)

    def subscribe_inbound(self, handler: InboundHandler) -> Unsubscribe:
        """Register a NewMessage handler that forwards mapped events as a batch."""

        async def _on_message(event) -> None:
            inbound = build_inbound_event(event.message)
            if inbound is None:
                return
            await handler([inbound])

        event_filter = events.NewMessage(incoming=True)
        self._client.add_event_handler(_on_message, event_filter)

        def _unsubscribe() -> None:
            self._client.remove_event_handler(_on_message, event_filter)

        return _unsubscribe

    async def resolve_identities(self, user_ids: Iterable[str]) -> Dict[str, Any]:
        """Map user ids to input peers; ids that fail to resolve are left out."""

        resolved: Dict[str, Any] = {}
        for user_id in user_ids:
            if user_id in self._peer_cache:
                resolved[user_id] = self._peer_cache[user_id]
                continue
            try:
                peer = await self._client.get_input_entity(int(user_id))
            except Exception:
                # Unknown ids and RPC errors alike: skip this id, keep the rest.
                LOGGER.warning("Could not resolve Telegram user %s", user_id, exc_info=True)
                continue
            self._peer_cache[user_id] = peer
            resolved[user_id] = peer
        return resolved

    async def send_direct_message(self, peer: Any, text: str) -> None:
        await self._client.send_message(peer, text)

    async def fetch_recent_private_history(self, peer: Any, limit: int = 100) -> List[HistoryMessage]:
        history: List[HistoryMessage] = []
        async for message in self._client.iter_messages(peer, limit=limit):
            history.append(build_history_message(message))
        return history
