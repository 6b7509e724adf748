from __future__ import annotations

import logging

import pytest

import app
import settings
from adapters.json_config_store import JsonConfigStore
from core.models import AccountConfig, Rule


def _struck_out_rule() -> Rule:
    return Rule(
        enabled=False,
        group_id="G",
        trigger_user_id="U1",
        target_user_id="U2",
        reply_text="ping",
        awaiting_reply=True,
        no_reply_streak=3,
        last_sent_at=1_700_000_000_000,
    )


def test_enable_resets_strike_state(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(settings, "DATA_DIR", str(tmp_path))
    store = JsonConfigStore(str(tmp_path))
    store.save_config("42", AccountConfig(strike_out_mode=True, rules=[_struck_out_rule()]))

    app.main(["enable", "0"])

    rule = store.load_config("42").rules[0]
    assert rule.enabled
    assert not rule.awaiting_reply
    assert rule.no_reply_streak == 0
    assert rule.last_sent_at == 1_700_000_000_000


def test_enable_rejects_unknown_position(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(settings, "DATA_DIR", str(tmp_path))
    JsonConfigStore(str(tmp_path)).load_config("42")

    with pytest.raises(SystemExit):
        app.main(["enable", "3", "--account", "42"])


def test_account_is_required_when_ambiguous(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(settings, "DATA_DIR", str(tmp_path))
    store = JsonConfigStore(str(tmp_path))
    store.load_config("1")
    store.load_config("2")

    with pytest.raises(SystemExit):
        app.main(["rules"])


def test_rules_lists_struck_out_rules(tmp_path, monkeypatch, capsys) -> None:
    monkeypatch.setattr(settings, "DATA_DIR", str(tmp_path))
    JsonConfigStore(str(tmp_path)).save_config("42", AccountConfig(rules=[_struck_out_rule()]))

    app.main(["rules", "--account", "42"])

    assert "struck" in capsys.readouterr().out


def test_debug_switch_follows_account_record() -> None:
    app._apply_debug(AccountConfig(debug=True))
    assert logging.getLogger("core").level == logging.DEBUG

    app._apply_debug(AccountConfig(debug=False))
    assert logging.getLogger("core").level == logging.NOTSET


def test_log_formatter_masks_login_secrets(monkeypatch) -> None:
    monkeypatch.setenv("API_HASH", "0123456789abcdef")
    monkeypatch.delenv("2FA", raising=False)
    monkeypatch.delenv("PHONE", raising=False)
    formatter = app._RedactingFormatter("%(message)s")
    record = logging.LogRecord("telethon", logging.INFO, __file__, 1, "hash=%s", ("0123456789abcdef",), None)

    assert formatter.format(record) == "hash=***"
