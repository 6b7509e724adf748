from __future__ import annotations

import asyncio
import json
import os

from adapters.json_config_store import JsonConfigStore
from core.models import AccountConfig, Rule


def _read(path: str) -> dict:
    with open(path, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _write_raw(path: str, payload: str) -> None:
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(payload)


def test_missing_record_is_created_with_defaults(tmp_path) -> None:
    store = JsonConfigStore(str(tmp_path / "data"))

    config = store.load_config("42")

    assert config == AccountConfig()
    assert _read(store.path_for("42")) == {
        "enabled": True,
        "strikeOutMode": False,
        "debug": False,
        "rules": [],
    }


def test_malformed_record_falls_back_and_is_rewritten(tmp_path) -> None:
    store = JsonConfigStore(str(tmp_path))
    _write_raw(store.path_for("42"), "{not json")

    config = store.load_config("42")

    assert config == AccountConfig()
    assert _read(store.path_for("42"))["rules"] == []


def test_record_fields_are_normalized(tmp_path) -> None:
    store = JsonConfigStore(str(tmp_path))
    raw = {
        "strikeOutMode": 1,
        "rules": [
            {
                "groupCode": " -100123 ",
                "triggerFriendUin": 555,
                "targetFriendUin": " 777",
                "replyText": "  keep my spaces ",
                "awaitingReply": True,
                "noReplyStreak": "2",
                "lastSentAt": -10,
                "lastReplyAt": "later",
            },
            {"enabled": False},
            "garbage",
        ],
    }
    _write_raw(store.path_for("42"), json.dumps(raw))

    config = store.load_config("42")

    assert config.enabled
    assert config.strike_out_mode
    assert len(config.rules) == 2
    first, second = config.rules
    assert first.enabled
    assert first.group_id == "-100123"
    assert first.trigger_user_id == "555"
    assert first.target_user_id == "777"
    assert first.reply_text == "  keep my spaces "
    assert first.awaiting_reply
    assert first.no_reply_streak == 2
    assert first.last_sent_at == 0
    assert first.last_reply_at == 0
    assert not second.enabled
    # The normalized shape is written back for other editors.
    assert _read(store.path_for("42"))["rules"][0]["groupCode"] == "-100123"


def test_save_returns_normalized_record_and_notifies(tmp_path) -> None:
    store = JsonConfigStore(str(tmp_path))
    seen = []
    unsubscribe = store.subscribe(lambda identity, config: seen.append((identity, config)))

    saved = store.save_config("42", AccountConfig(rules=[Rule(group_id=" G ", target_user_id="U2")]))

    assert saved.rules[0].group_id == "G"
    assert seen == [("42", saved)]
    assert store.load_config("42") == saved

    unsubscribe()
    store.save_config("42", saved)
    assert len(seen) == 1
    assert not [name for name in os.listdir(tmp_path) if name.endswith(".tmp")]


def test_list_identities(tmp_path) -> None:
    store = JsonConfigStore(str(tmp_path))
    assert store.list_identities() == []

    store.load_config("7")
    store.load_config("42")

    assert store.list_identities() == ["42", "7"]


def test_watch_reports_external_edits_only(tmp_path) -> None:
    store = JsonConfigStore(str(tmp_path))
    store.load_config("42")
    received = []

    async def _callback(config: AccountConfig) -> None:
        received.append(config)

    async def _scenario() -> None:
        watcher = asyncio.create_task(store.watch("42", _callback, interval=0.01))
        await asyncio.sleep(0.05)

        store.save_config("42", AccountConfig(debug=True))
        await asyncio.sleep(0.05)
        assert received == []

        path = store.path_for("42")
        _write_raw(path, json.dumps({"strikeOutMode": True, "rules": []}))
        stat = os.stat(path)
        os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))
        await asyncio.sleep(0.05)

        watcher.cancel()

    asyncio.run(_scenario())

    assert len(received) == 1
    assert received[0].strike_out_mode
