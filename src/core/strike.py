"""Strike-out state machine (core domain).

Each rule moves between three states while strike-out mode is on:

- Idle: ``awaiting_reply`` is False.
- AwaitingReply: a reply was sent and the target has not answered yet;
  ``no_reply_streak`` counts fires since the last answer.
- Exhausted: the rule fired ``MAX_NO_REPLY`` times without an answer and the
  next fire attempt disabled it. Only a human re-enables it.

When strike-out mode is off the gate always permits and reply events are
ignored, which freezes every rule exactly where it was.

All methods mutate rules in place; callers hold the rule store lock.
"""

from __future__ import annotations

import logging
from typing import Callable, List

from core.models import MAX_NO_REPLY, Rule
from core.persistence import PersistenceGate
from core.store import RuleStore
from core.time_utils import now_ms, to_ms

LOGGER = logging.getLogger(__name__)


class StrikeTracker:
    """Fire gate and reply bookkeeping for one account's rules."""

    def __init__(
        self,
        store: RuleStore,
        persistence: PersistenceGate,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._store = store
        self._persistence = persistence
        self._clock = clock

    def gate(self, rule: Rule) -> bool:
        """Decide whether a matched rule may send now, updating its streak."""

        if not self._store.config.strike_out_mode:
            return True
        if not rule.enabled:
            return False

        if rule.awaiting_reply and rule.no_reply_streak >= MAX_NO_REPLY:
            rule.enabled = False
            LOGGER.info(
                "Rule %s struck out after %s unanswered replies, disabling",
                rule.identity_key,
                rule.no_reply_streak,
            )
            self._persistence.request(rule)
            return False

        # A previously answered rule restarts at 1 rather than counting on.
        rule.no_reply_streak = rule.no_reply_streak + 1 if rule.awaiting_reply else 1
        rule.awaiting_reply = True
        rule.last_sent_at = self._clock()
        LOGGER.debug("Rule %s armed, streak=%s", rule.identity_key, rule.no_reply_streak)
        self._persistence.request(rule)
        return True

    def on_reply(self, sender_id: str, timestamp_raw: object = None) -> List[Rule]:
        """Handle a private message from ``sender_id`` as a possible answer."""

        if not self._store.config.strike_out_mode:
            return []
        sender_id = str(sender_id or "").strip()
        if not sender_id:
            return []

        replied_at = to_ms(timestamp_raw) or self._clock()
        cleared = self.accept_reply(sender_id, replied_at)
        if cleared:
            LOGGER.info("Target %s replied, cleared %s rule(s)", sender_id, len(cleared))
        return cleared

    def accept_reply(self, target_id: str, replied_at: int) -> List[Rule]:
        """Clear the pending state of every rule waiting on ``target_id``.

        A reply counts when it is not older than the last send. Message
        dates may carry whole seconds only, so the send time is compared at
        second precision and a reply within the same second counts.
        """

        cleared: List[Rule] = []
        for rule in self._store.rules_for_target(target_id):
            if not rule.awaiting_reply:
                continue
            sent_second = rule.last_sent_at - rule.last_sent_at % 1000
            if rule.last_sent_at and replied_at < sent_second:
                continue
            rule.awaiting_reply = False
            rule.no_reply_streak = 0
            rule.last_reply_at = replied_at
            cleared.append(rule)

        if cleared:
            self._persistence.request(*cleared)
        return cleared
