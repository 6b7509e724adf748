"""Static configuration for replywatch.

Process-level settings (data location, debounce, history window, logging)
live in a single JSON file. Per-account rules are not here: they live in the
account records under ``DATA_DIR``.
"""

import json
import os

from dotenv import load_dotenv

from core.config import HistoryConfig, PersistenceConfig

load_dotenv()

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

CONFIG_PATH = os.getenv("REPLYWATCH_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))


def _load_json_config() -> dict:
    """Load config.json; every key is optional."""

    if not os.path.exists(CONFIG_PATH):
        return {}

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


_CONFIG = _load_json_config()

# One <identity>.json record per account is kept here.
DATA_DIR = _CONFIG.get("data_dir", "data")
if not os.path.isabs(DATA_DIR):
    DATA_DIR = os.path.join(PROJECT_ROOT, DATA_DIR)

# Bursts of rule state changes are written at most once per quiet window.
_persistence = _CONFIG.get("persistence", {})
PERSISTENCE = PersistenceConfig(debounce_seconds=int(_persistence.get("debounce_ms", 200)) / 1000)

# How many recent private messages are scanned per target when strike-out
# mode is switched on.
_history = _CONFIG.get("history", {})
HISTORY = HistoryConfig(limit=int(_history.get("limit", 100)))

# Poll interval for picking up edits made to the account record by other tools.
_watch = _CONFIG.get("watch", {})
WATCH_INTERVAL_SECONDS = float(_watch.get("interval_seconds", 2.0))

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
