"""History reconciliation for pending replies.

When strike-out mode is switched on, replies that arrived while it was off
(or while the process was down) were never seen live. This module scans
recent private history per pending target and clears rules whose target
has already answered.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from core.config import HistoryConfig
from core.ports import TransportPort
from core.store import RuleStore
from core.strike import StrikeTracker
from core.time_utils import to_ms

LOGGER = logging.getLogger(__name__)


class HistoryReconciler:
    """Applies missed replies found in private chat history."""

    def __init__(
        self,
        store: RuleStore,
        transport: TransportPort,
        tracker: StrikeTracker,
        config: Optional[HistoryConfig] = None,
    ) -> None:
        self._store = store
        self._transport = transport
        self._tracker = tracker
        self._limit = (config or HistoryConfig()).limit

    async def reconcile(self) -> None:
        """Scan history for every target that still owes a reply."""

        async with self._store.lock:
            if not self._store.config.strike_out_mode:
                return
            targets = self._store.pending_targets()
        if not targets:
            return

        # One failing target never blocks the others.
        await asyncio.gather(*(self._reconcile_target(target_id) for target_id in targets))
        LOGGER.info("History reconciliation finished for %s target(s)", len(targets))

    async def _reconcile_target(self, target_id: str) -> None:
        try:
            peers = await self._transport.resolve_identities([target_id])
        except Exception:
            LOGGER.exception("Failed to resolve %s for history reconciliation", target_id)
            return
        peer = peers.get(target_id)
        if peer is None:
            LOGGER.warning("Cannot resolve %s, skipping history reconciliation", target_id)
            return

        try:
            history = await self._transport.fetch_recent_private_history(peer, limit=self._limit)
        except Exception:
            LOGGER.exception("Failed to fetch history for %s", target_id)
            return

        newest_incoming_at = 0
        for message in history:
            if str(message.sender_id or "").strip() != target_id:
                continue
            newest_incoming_at = max(newest_incoming_at, to_ms(message.timestamp_raw))

        if not newest_incoming_at:
            LOGGER.debug("No message from %s in recent history", target_id)
            return

        async with self._store.lock:
            # Strike-out mode may have been switched off while fetching.
            if not self._store.config.strike_out_mode:
                return
            cleared = self._tracker.accept_reply(target_id, newest_incoming_at)
        if cleared:
            LOGGER.info("History shows %s replied, cleared %s rule(s)", target_id, len(cleared))
