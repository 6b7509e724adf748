"""Rule matching logic (core domain)."""

from __future__ import annotations

from typing import Iterable, List

from core.models import ChatType, InboundEvent, Rule


def is_complete(rule: Rule) -> bool:
    """Return True when every identity field needed for matching is set."""

    return bool(rule.group_id.strip() and rule.trigger_user_id.strip() and rule.target_user_id.strip())


def match_rules(event: InboundEvent, rules: Iterable[Rule]) -> List[Rule]:
    """Return all rules triggered by a group event, in rule list order.

    Matching logic:
    - Only group events can trigger rules.
    - Disabled or incomplete rules never match.
    - Group id and sender id are compared as trimmed strings, nothing fuzzier.
    """

    if event.chat_type is not ChatType.GROUP:
        return []

    group_id = str(event.peer_id or "").strip()
    sender_id = str(event.sender_id or "").strip()
    if not group_id or not sender_id:
        return []

    matches: List[Rule] = []
    for rule in rules:
        if not rule.enabled or not is_complete(rule):
            continue
        if rule.group_id.strip() != group_id:
            continue
        if rule.trigger_user_id.strip() != sender_id:
            continue
        matches.append(rule)

    return matches
