"""Account record normalization and core configuration dataclasses.

The on-disk record uses the camelCase field names shared with other tools
that edit it. Everything entering the core passes through
``normalize_config`` so the state machine never sees missing or mistyped
fields.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from core.models import AccountConfig, Rule

# Fields of a rule that only the running process changes.
STRIKE_FIELDS = ("awaiting_reply", "no_reply_streak", "last_sent_at", "last_reply_at")


@dataclass(frozen=True)
class PersistenceConfig:
    """Debounce settings for the write-coalescing gate."""

    debounce_seconds: float = 0.2


@dataclass(frozen=True)
class HistoryConfig:
    """History window used when reconciling pending replies."""

    limit: int = 100


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _as_count(value: Any) -> int:
    try:
        number = int(float(value or 0))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(0, number)


def normalize_rule(raw: dict) -> Rule:
    """Build a Rule from a raw record entry, defaulting anything unusable."""

    return Rule(
        enabled=raw.get("enabled") is not False,
        group_id=_as_text(raw.get("groupCode")),
        trigger_user_id=_as_text(raw.get("triggerFriendUin")),
        target_user_id=_as_text(raw.get("targetFriendUin")),
        reply_text="" if raw.get("replyText") is None else str(raw.get("replyText")),
        awaiting_reply=bool(raw.get("awaitingReply")),
        no_reply_streak=_as_count(raw.get("noReplyStreak")),
        last_sent_at=_as_count(raw.get("lastSentAt")),
        last_reply_at=_as_count(raw.get("lastReplyAt")),
    )


def normalize_config(raw: Any) -> AccountConfig:
    """Return a fully populated AccountConfig for any decoded JSON value."""

    if not isinstance(raw, dict):
        raw = {}
    raw_rules = raw.get("rules")
    if not isinstance(raw_rules, list):
        raw_rules = []
    return AccountConfig(
        enabled=raw.get("enabled") is not False,
        strike_out_mode=bool(raw.get("strikeOutMode")),
        debug=bool(raw.get("debug")),
        rules=[normalize_rule(entry) for entry in raw_rules if isinstance(entry, dict)],
    )


def rule_to_dict(rule: Rule) -> dict:
    return {
        "enabled": rule.enabled,
        "groupCode": rule.group_id,
        "triggerFriendUin": rule.trigger_user_id,
        "targetFriendUin": rule.target_user_id,
        "replyText": rule.reply_text,
        "awaitingReply": rule.awaiting_reply,
        "noReplyStreak": rule.no_reply_streak,
        "lastSentAt": rule.last_sent_at,
        "lastReplyAt": rule.last_reply_at,
    }


def config_to_dict(config: AccountConfig) -> dict:
    """Serialize an AccountConfig into the persisted record layout."""

    return {
        "enabled": config.enabled,
        "strikeOutMode": config.strike_out_mode,
        "debug": config.debug,
        "rules": [rule_to_dict(rule) for rule in config.rules],
    }
