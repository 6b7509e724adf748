"""Application entry point for the replywatch auto-replier."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from rich.console import Console
from rich.table import Table

import settings
from adapters.json_config_store import JsonConfigStore
from adapters.telegram_transport import TelegramTransport
from client import authorize, build_client
from core.models import AccountConfig
from core.persistence import PersistenceGate
from core.processor import Dispatcher
from core.store import RuleStore

NAME = "REPLYWATCH"
FONT = "tarty-1"

# Loggers whose level follows the per-account debug switch.
DEBUG_LOGGERS = ("core", "adapters")

# Environment variables read by client.py that must never reach a log.
SECRET_ENV_VARS = ("API_HASH", "2FA", "PHONE")


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    """Masks login secrets in case a library logs them."""

    def __init__(self, fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        values = {os.getenv(name) for name in SECRET_ENV_VARS}
        self._secrets = sorted((value for value in values if value), key=len, reverse=True)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    level = getattr(logging, str(config.get("level", "INFO")).upper(), logging.INFO)
    formatter = _RedactingFormatter("%(asctime)s %(levelname)s %(name)s: %(message)s", "%Y-%m-%d %H:%M:%S")

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    handlers: list[logging.Handler] = [console_handler]

    # Optional rotating log file.
    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/replywatch.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        file_handler = RotatingFileHandler(
            path,
            maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
            backupCount=int(file_cfg.get("backup_count", 5)),
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers)


def _apply_debug(config: AccountConfig) -> None:
    # NOTSET falls back to the root level configured above.
    level = logging.DEBUG if config.debug else logging.NOTSET
    for name in DEBUG_LOGGERS:
        logging.getLogger(name).setLevel(level)


async def _serve() -> None:
    logger = logging.getLogger(__name__)

    client = build_client()
    await client.connect()
    await authorize(client)

    transport = TelegramTransport(client)
    identity = await transport.current_account_identity()
    logger.info("Logged in as %s", identity)

    config_store = JsonConfigStore(settings.DATA_DIR)
    store = RuleStore(identity)
    persistence = PersistenceGate(store, config_store, settings.PERSISTENCE)
    dispatcher = Dispatcher(
        store,
        transport,
        persistence,
        history_config=settings.HISTORY,
        on_config_applied=_apply_debug,
    )

    # The store starts from defaults (strike-out off), so a record that already
    # has strike-out on reconciles history here, covering downtime.
    await dispatcher.apply_config(config_store.load_config(identity))
    # Our own flushes merge in edits from other writers; adopt what was saved.
    stop_listening = config_store.subscribe(dispatcher.on_record_saved)

    watcher = asyncio.create_task(
        config_store.watch(identity, dispatcher.apply_config, settings.WATCH_INTERVAL_SECONDS)
    )
    logger.info("Listening for incoming messages...")
    try:
        await client.run_until_disconnected()
    finally:
        watcher.cancel()
        stop_listening()
        dispatcher.stop()
        persistence.flush()
        await client.disconnect()


def _run() -> None:
    _print_banner()
    _configure_logging()
    logging.getLogger(__name__).info("Starting replywatch")
    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Stopped")


def _pick_account(config_store: JsonConfigStore, account: Optional[str]) -> str:
    if account:
        return account
    identities = config_store.list_identities()
    if len(identities) != 1:
        raise SystemExit(f"Use --account, found {len(identities)} account records in {settings.DATA_DIR}")
    return identities[0]


def _list_rules(account: Optional[str]) -> None:
    config_store = JsonConfigStore(settings.DATA_DIR)
    identity = _pick_account(config_store, account)
    config = config_store.load_config(identity)

    console = Console()
    console.print(
        f"[bold]{identity}[/bold] enabled={config.enabled} "
        f"strike_out_mode={config.strike_out_mode} debug={config.debug}"
    )
    table = Table("#", "Enabled", "Group", "Trigger", "Target", "Awaiting", "Streak", "Reply")
    for index, rule in enumerate(config.rules):
        status = "struck out" if rule.is_struck_out else ("yes" if rule.enabled else "no")
        table.add_row(
            str(index),
            status,
            rule.group_id,
            rule.trigger_user_id,
            rule.target_user_id,
            "yes" if rule.awaiting_reply else "no",
            str(rule.no_reply_streak),
            rule.reply_text,
        )
    console.print(table)


def _enable_rule(account: Optional[str], index: int) -> None:
    config_store = JsonConfigStore(settings.DATA_DIR)
    identity = _pick_account(config_store, account)
    config = config_store.load_config(identity)
    if not 0 <= index < len(config.rules):
        raise SystemExit(f"No rule #{index} for {identity}")

    rule = config.rules[index]
    rule.enabled = True
    # Without a reset a struck-out rule would strike out again on its next fire.
    rule.awaiting_reply = False
    rule.no_reply_streak = 0
    config_store.save_config(identity, config)
    print(f"Rule #{index} enabled for {identity}")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="replywatch")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the watcher")
    rules_parser = subparsers.add_parser("rules", help="Show rules and their strike state")
    rules_parser.add_argument("--account", help="Account id (defaults to the only record)")
    enable_parser = subparsers.add_parser("enable", help="Re-enable a rule and reset its strikes")
    enable_parser.add_argument("index", type=int, help="Rule position as shown by 'rules'")
    enable_parser.add_argument("--account", help="Account id (defaults to the only record)")

    args = parser.parse_args(argv)
    if args.command == "rules":
        _list_rules(args.account)
        return
    if args.command == "enable":
        _enable_rule(args.account, args.index)
        return
    _run()


if __name__ == "__main__":
    main()
