"""JSON file config store adapter.

Implements the core ConfigStorePort with one JSON file per account identity.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from typing import Awaitable, Callable, List, Optional

from core.config import config_to_dict, normalize_config
from core.models import AccountConfig

LOGGER = logging.getLogger(__name__)

ChangeListener = Callable[[str, AccountConfig], None]


class JsonConfigStore:
    """Reads, normalizes and atomically writes ``<data_dir>/<identity>.json``."""

    def __init__(self, data_dir: str) -> None:
        self._data_dir = data_dir
        self._listeners: List[ChangeListener] = []
        # mtime of the last write made by this process, per identity.
        self._own_mtimes: dict[str, int] = {}

    def path_for(self, identity: str) -> str:
        return os.path.join(self._data_dir, f"{identity}.json")

    def list_identities(self) -> List[str]:
        """Return identities that already have a record on disk."""

        if not os.path.isdir(self._data_dir):
            return []
        return sorted(
            name[: -len(".json")]
            for name in os.listdir(self._data_dir)
            if name.endswith(".json") and not name.startswith(".")
        )

    def load_config(self, identity: str) -> AccountConfig:
        """Return the normalized record, creating or repairing the file as needed."""

        path = self.path_for(identity)
        if not os.path.exists(path):
            LOGGER.info("No record for %s yet, writing defaults to %s", identity, path)
            return self._write(identity, AccountConfig())

        try:
            with open(path, "r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except (OSError, ValueError):
            LOGGER.warning("Unreadable record %s, falling back to defaults", path, exc_info=True)
            return self._write(identity, AccountConfig())

        config = normalize_config(raw)
        if raw != config_to_dict(config):
            # Persist the normalized shape so other editors see clean data.
            LOGGER.info("Normalized record %s", path)
            self._write(identity, config)
        return config

    def save_config(self, identity: str, config: AccountConfig) -> AccountConfig:
        """Normalize and write the record, then notify listeners."""

        saved = self._write(identity, normalize_config(config_to_dict(config)))
        for listener in list(self._listeners):
            try:
                listener(identity, saved)
            except Exception:
                LOGGER.exception("Config change listener failed")
        return saved

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _write(self, identity: str, config: AccountConfig) -> AccountConfig:
        os.makedirs(self._data_dir, exist_ok=True)
        path = self.path_for(identity)
        payload = json.dumps(config_to_dict(config), indent=2, ensure_ascii=False)
        fd, tmp_path = tempfile.mkstemp(prefix=f".{identity}.", suffix=".tmp", dir=self._data_dir)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        self._own_mtimes[identity] = os.stat(path).st_mtime_ns
        return config

    def _mtime(self, identity: str) -> Optional[int]:
        try:
            return os.stat(self.path_for(identity)).st_mtime_ns
        except OSError:
            return None

    async def watch(
        self,
        identity: str,
        callback: Callable[[AccountConfig], Awaitable[None]],
        interval: float = 2.0,
    ) -> None:
        """Poll the record and await ``callback`` when another writer changes it."""

        seen = self._mtime(identity)
        while True:
            await asyncio.sleep(interval)
            current = self._mtime(identity)
            if current is None or current == seen:
                continue
            seen = current
            if current == self._own_mtimes.get(identity):
                continue
            LOGGER.info("Record for %s changed on disk, reloading", identity)
            try:
                await callback(self.load_config(identity))
            except Exception:
                LOGGER.exception("Failed to apply reloaded config for %s", identity)
            # load_config may have rewritten a normalized copy.
            seen = self._mtime(identity)
