"""Write coalescing for the account record.

Bursts of state changes collapse into one write after a short quiet period.
The write re-reads the latest record first and overlays only what this
process changed, so edits made by other writers to the same record survive.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from core.config import STRIKE_FIELDS, PersistenceConfig
from core.models import AccountConfig, Rule
from core.ports import ConfigStorePort
from core.store import RuleStore

LOGGER = logging.getLogger(__name__)


class PersistenceGate:
    """Single pending-write slot with a debounce timer."""

    def __init__(
        self,
        store: RuleStore,
        config_store: ConfigStorePort,
        config: Optional[PersistenceConfig] = None,
    ) -> None:
        self._store = store
        self._config_store = config_store
        self._delay = (config or PersistenceConfig()).debounce_seconds
        self._dirty: List[Rule] = []
        self._pending = False
        self._timer: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._pending

    def request(self, *rules: Rule) -> None:
        """Mark rules as changed and (re)arm the flush timer without blocking."""

        for rule in rules:
            if not any(existing is rule for existing in self._dirty):
                self._dirty.append(rule)
        self._pending = True

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop (plain sync callers): wait for an explicit flush().
            return
        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(self._delay, self.flush)

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def flush(self) -> Optional[AccountConfig]:
        """Write pending changes now and return the record actually saved."""

        self.cancel()
        if not self._pending:
            return None

        identity = self._store.identity
        try:
            latest = self._config_store.load_config(identity)
            self._overlay(latest)
            saved = self._config_store.save_config(identity, latest)
        except Exception:
            # Keep the dirty set; the next request() retries the write.
            LOGGER.exception("Failed to persist account record for %s", identity)
            return None

        self._dirty = []
        self._pending = False
        LOGGER.debug("Persisted account record for %s", identity)
        return saved

    def rebase(self, incoming: AccountConfig) -> None:
        """Carry unsaved rule state over to a config about to replace the working copy.

        Callers hold the store lock and call this right before
        ``RuleStore.replace``.
        """

        if self._dirty:
            self._dirty = self._overlay(incoming)

    def _overlay(self, config: AccountConfig) -> List[Rule]:
        overlaid: List[Rule] = []
        for rule in self._dirty:
            position = self._store.position_of(rule)
            if position is None or position >= len(config.rules):
                LOGGER.debug("Dropping state for a rule no longer in the record: %s", rule.identity_key)
                continue
            target = config.rules[position]
            if target.identity_key != rule.identity_key:
                # The list was edited elsewhere; the other writer's rule wins.
                LOGGER.debug("Rule %s moved in the record, not overlaying", rule.identity_key)
                continue
            for name in STRIKE_FIELDS:
                setattr(target, name, getattr(rule, name))
            if not rule.enabled:
                target.enabled = False
            overlaid.append(target)
        return overlaid
