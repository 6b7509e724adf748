"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Tuple

# Consecutive unanswered fires after which the next fire disables the rule.
MAX_NO_REPLY = 3


class ChatType(str, Enum):
    PRIVATE = "private"
    GROUP = "group"


@dataclass
class Rule:
    """One forwarding policy plus its persisted strike-out state.

    Rules are mutable on purpose: the strike tracker updates them in place
    while holding the rule store lock.
    """

    enabled: bool = True
    group_id: str = ""
    trigger_user_id: str = ""
    target_user_id: str = ""
    reply_text: str = ""
    awaiting_reply: bool = False
    no_reply_streak: int = 0
    last_sent_at: int = 0
    last_reply_at: int = 0

    @property
    def identity_key(self) -> Tuple[str, str, str]:
        return (self.group_id, self.trigger_user_id, self.target_user_id)

    @property
    def is_struck_out(self) -> bool:
        return not self.enabled and self.awaiting_reply and self.no_reply_streak >= MAX_NO_REPLY


@dataclass
class AccountConfig:
    """Root record persisted once per account identity."""

    enabled: bool = True
    strike_out_mode: bool = False
    debug: bool = False
    rules: List[Rule] = field(default_factory=list)


@dataclass(frozen=True)
class InboundEvent:
    """A single incoming chat message, reduced to what dispatch needs.

    ``peer_id`` is the group id for group messages and the other user's id
    for private messages.
    """

    chat_type: ChatType
    sender_id: str
    peer_id: str
    timestamp_raw: Any


@dataclass(frozen=True)
class HistoryMessage:
    """One entry of a private chat history fetch."""

    sender_id: str
    timestamp_raw: Any
