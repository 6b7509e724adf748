"""Telegram-to-core message mapping adapter.

This keeps Telethon-specific details out of the core dispatcher.
"""

from __future__ import annotations

from typing import Optional

from telethon.tl.custom import Message

from core.models import ChatType, HistoryMessage, InboundEvent


def _chat_type_from_message(message: Message) -> Optional[ChatType]:
    if getattr(message, "is_private", False):
        return ChatType.PRIVATE
    if getattr(message, "is_group", False):
        return ChatType.GROUP
    # Broadcast channels have no individual senders to watch.
    return None


def build_inbound_event(message: Message) -> Optional[InboundEvent]:
    """Build a core InboundEvent from a Telethon Message, or None if irrelevant."""

    chat_type = _chat_type_from_message(message)
    if chat_type is None:
        return None

    sender_id = getattr(message, "sender_id", None)
    chat_id = getattr(message, "chat_id", None)
    if sender_id is None or chat_id is None:
        return None

    return InboundEvent(
        chat_type=chat_type,
        sender_id=str(sender_id),
        peer_id=str(chat_id),
        timestamp_raw=message.date,
    )


def build_history_message(message: Message) -> HistoryMessage:
    sender_id = getattr(message, "sender_id", None)
    return HistoryMessage(
        sender_id="" if sender_id is None else str(sender_id),
        timestamp_raw=message.date,
    )
