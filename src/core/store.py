"""Per-account rule store.

One RuleStore exists per account identity. It is the working copy of the
account record while the process runs, and its lock is the single critical
section for every read-modify-write of rule state.
"""

from __future__ import annotations

import asyncio
from typing import List, Optional

from core.models import AccountConfig, Rule


class RuleStore:
    """Holds the in-memory AccountConfig for one identity."""

    def __init__(self, identity: str, config: Optional[AccountConfig] = None) -> None:
        self.identity = identity
        self.config = config or AccountConfig()
        self.lock = asyncio.Lock()

    def replace(self, config: AccountConfig) -> AccountConfig:
        """Swap in a new working copy and return the previous one.

        Callers must hold ``lock``.
        """

        previous = self.config
        self.config = config
        return previous

    def pending_targets(self) -> List[str]:
        """Distinct target ids that still owe a reply, in first-seen order."""

        targets: List[str] = []
        for rule in self.config.rules:
            if rule.awaiting_reply and rule.target_user_id and rule.target_user_id not in targets:
                targets.append(rule.target_user_id)
        return targets

    def rules_for_target(self, target_id: str) -> List[Rule]:
        return [rule for rule in self.config.rules if rule.target_user_id == target_id]

    def position_of(self, rule: Rule) -> Optional[int]:
        """Return the list position of this exact rule object, if still present."""

        for index, candidate in enumerate(self.config.rules):
            if candidate is rule:
                return index
        return None
