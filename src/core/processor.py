"""Core inbound event dispatch.

This module is integration-agnostic. It only relies on ports for the
transport and the config store, enabling other chat backends without
changes here.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional, Sequence, Set, Tuple

from core.config import HistoryConfig
from core.models import AccountConfig, ChatType, InboundEvent
from core.persistence import PersistenceGate
from core.ports import TransportPort, Unsubscribe
from core.reconcile import HistoryReconciler
from core.rules_engine import match_rules
from core.store import RuleStore
from core.strike import StrikeTracker

LOGGER = logging.getLogger(__name__)


class Dispatcher:
    """Routes inbound events for one account to the strike tracker and transport."""

    def __init__(
        self,
        store: RuleStore,
        transport: TransportPort,
        persistence: PersistenceGate,
        tracker: Optional[StrikeTracker] = None,
        reconciler: Optional[HistoryReconciler] = None,
        history_config: Optional[HistoryConfig] = None,
        on_config_applied: Optional[Callable[[AccountConfig], None]] = None,
    ) -> None:
        self._store = store
        self._transport = transport
        self._persistence = persistence
        self._tracker = tracker or StrikeTracker(store, persistence)
        self._reconciler = reconciler or HistoryReconciler(store, transport, self._tracker, history_config)
        self._on_config_applied = on_config_applied
        self._unsubscribe: Optional[Unsubscribe] = None
        self._apply_tasks: Set[asyncio.Task] = set()

    @property
    def subscribed(self) -> bool:
        return self._unsubscribe is not None

    async def handle_batch(self, events: Sequence[InboundEvent]) -> None:
        """Process every event of an inbound batch in arrival order."""

        for event in events:
            try:
                await self.handle(event)
            except Exception:
                LOGGER.exception("Error while dispatching inbound event")

    async def handle(self, event: InboundEvent) -> None:
        """Process one inbound event."""

        if not self._store.config.enabled:
            return

        if event.chat_type is ChatType.PRIVATE:
            async with self._store.lock:
                if self._store.config.enabled:
                    self._tracker.on_reply(event.sender_id, event.timestamp_raw)
            return

        if event.chat_type is not ChatType.GROUP:
            return

        # Gate every match under the lock, then send outside it so a slow
        # transport never holds up other events.
        outgoing: List[Tuple[str, str]] = []
        async with self._store.lock:
            if not self._store.config.enabled:
                return
            for rule in match_rules(event, self._store.config.rules):
                LOGGER.info("Rule matched in %s by %s -> %s", event.peer_id, event.sender_id, rule.target_user_id)
                if self._tracker.gate(rule):
                    outgoing.append((rule.target_user_id, rule.reply_text))

        for target_id, text in outgoing:
            await self._send(target_id, text)

    async def _send(self, target_id: str, text: str) -> None:
        # Failures here never undo the gate: the attempt still counts.
        try:
            peers = await self._transport.resolve_identities([target_id])
        except Exception:
            LOGGER.exception("Failed to resolve %s, reply not sent", target_id)
            return
        peer = peers.get(target_id)
        if peer is None:
            LOGGER.warning("Cannot resolve %s, reply not sent", target_id)
            return
        try:
            await self._transport.send_direct_message(peer, text)
        except Exception:
            LOGGER.exception("Failed to send reply to %s", target_id)
            return
        LOGGER.info("Reply sent to %s", target_id)

    async def apply_config(self, config: AccountConfig) -> None:
        """Adopt a new account record and react to switch changes.

        History reconciliation runs only when strike-out mode goes from off
        to on, never merely because it is on.
        """

        async with self._store.lock:
            self._persistence.rebase(config)
            previous = self._store.replace(config)

        if self._on_config_applied is not None:
            self._on_config_applied(config)
        LOGGER.info(
            "Config applied for %s: enabled=%s strike_out_mode=%s rules=%s",
            self._store.identity,
            config.enabled,
            config.strike_out_mode,
            len(config.rules),
        )

        self.sync_subscription()

        if not previous.strike_out_mode and config.strike_out_mode:
            await self._reconciler.reconcile()

    def on_record_saved(self, identity: str, config: AccountConfig) -> None:
        """Config store listener: adopt a saved record without blocking the writer.

        A flush merges our rule state into whatever other writers left on
        disk, so the saved record can carry their switch changes too.
        """

        if identity != self._store.identity:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            LOGGER.warning("No running loop, saved record for %s not applied", identity)
            return
        task = loop.create_task(self.apply_config(config))
        self._apply_tasks.add(task)
        task.add_done_callback(self._apply_tasks.discard)

    def sync_subscription(self) -> None:
        """Subscribe while the global switch is on, unsubscribe otherwise."""

        if self._store.config.enabled:
            if self._unsubscribe is None:
                self._unsubscribe = self._transport.subscribe_inbound(self.handle_batch)
                LOGGER.info("Subscribed to inbound messages")
            return
        self.stop()

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
            LOGGER.info("Unsubscribed from inbound messages")
