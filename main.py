"""
main.py — Telegram Forwarder Entry Point

Usage:
    python main.py run                      # start the forwarder service
    python main.py run --boot               # ...and announce "System Boot Completed"
    python main.py run --updated            # ...and announce "App Updated"
    python main.py verify                   # send "DONE" to the configured chat
    python main.py run --log-level DEBUG    # verbose logging
    python main.py run --config path/to/config.yaml
"""

from __future__ import annotations
# ─────────────────────────────────────────────────────────────────────────────
# 🔐 Load environment variables FIRST
# ─────────────────────────────────────────────────────────────────────────────

from dotenv import load_dotenv
from pathlib import Path

# Load .env from project root explicitly
ENV_PATH = Path(__file__).parent / ".env"
load_dotenv(dotenv_path=ENV_PATH)

# ─────────────────────────────────────────────────────────────────────────────
import argparse
import asyncio
import sys
from typing import Optional, Sequence


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="telegram-forwarder",
        description="Telegram Forwarder — forward device events to a Telegram chat "
                    "and control the device from it",
    )
    parser.add_argument(
        "command",
        nargs="?",
        choices=["run", "verify"],
        default="run",
        help=(
            "'run' — start the forwarder service (default). "
            "'verify' — send a test message to the configured chat."
        ),
    )
    parser.add_argument(
        "--boot",
        action="store_true",
        default=False,
        help="Emit the boot-completed event after startup (use from a boot script)",
    )
    parser.add_argument(
        "--updated",
        action="store_true",
        default=False,
        help="Emit the app-updated event after startup (use from an upgrade hook)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: $FORWARDER_CONFIG or config/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override log level from config",
    )
    return parser.parse_args(argv)


def bootstrap(args: argparse.Namespace):
    """
    Load config, validate it fully, and set up logging.
    Returns (settings, log) ready for use.

    Exits with code 1 (after printing a clear message) if:
      - config.yaml has invalid values (Pydantic ValidationError)
      - cross-field problems are found (ConfigError from validate_all())
    """
    from config.settings import load_settings, ConfigError
    from observability.logger import setup_logging, get_logger
    from pydantic import ValidationError

    # -- Load and parse -------------------------------------------------------
    try:
        settings = load_settings(args.config)
    except ValidationError as exc:
        problems = "\n".join(
            f"  • {e['loc'][-1] if e['loc'] else '?'}: {e['msg']}"
            for e in exc.errors()
        )
        print(
            f"\n❌  Config validation failed:\n\n{problems}\n\n"
            f"    Fix config/config.yaml or your .env file and restart.\n",
            file=sys.stderr,
        )
        sys.exit(1)
    except (OSError, ValueError, TypeError) as exc:
        print(
            f"\n❌  Failed to load config: {type(exc).__name__}: {exc}\n",
            file=sys.stderr,
        )
        sys.exit(1)

    # -- Cross-field validation -----------------------------------------------
    try:
        settings.validate_all()
    except ConfigError as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(1)

    # -- Logging --------------------------------------------------------------
    # CLI --log-level flag overrides config.yaml
    log_level = args.log_level or settings.log_level

    setup_logging(
        level=log_level,
        log_dir=settings.log_dir,
        json_format=settings.log_json_format,
        console_output=settings.log_console_output,
        max_bytes=settings.logging.max_file_size_mb * 1024 * 1024,
        backup_count=settings.logging.backup_count,
    )

    log = get_logger("forwarder.main")
    return settings, log


async def verify(settings, log) -> int:
    """
    Send "DONE" to the configured chat and report the outcome, so a user can
    check the bot token and chat id before relying on the forwarder.
    """
    from exceptions import MissingCredentialsError
    from remote.client import TelegramClient

    if not settings.has_credentials:
        print(f"Failed: {MissingCredentialsError()}", file=sys.stderr)
        return 1

    client = TelegramClient(timeout=settings.polling.http_timeout_seconds)
    try:
        result = await client.send_message(
            settings.telegram_bot_token, settings.telegram_chat_id, "DONE"
        )
    finally:
        await client.aclose()

    if result.ok:
        log.info("forwarder.verified")
        print("Saved & Verified!")
        return 0

    log.warning("forwarder.verify_failed", error=str(result.error))
    print(f"Failed: {result.error}", file=sys.stderr)
    return 1


async def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    settings, log = bootstrap(args)

    if args.command == "verify":
        return await verify(settings, log)

    log.info(
        "forwarder.starting",
        backend=settings.device.backend,
        bot_polling=settings.features.bot_polling,
        sms_forwarding=settings.features.sms_forwarding,
    )

    missing = settings.missing_credentials()
    if missing:
        # Not fatal: the service idles until credentials appear on reload
        log.warning("forwarder.credentials_missing", missing=missing)
        print(
            f"\n⚠️  Missing environment variables: {', '.join(missing)}\n"
            f"    Nothing will be sent until they are set. "
            f"Copy .env.example → .env, fill in the values and send SIGHUP.\n",
            file=sys.stderr,
        )

    from service.bot_service import ForwarderService

    service = ForwarderService(settings, config_path=args.config, env_path=ENV_PATH)
    try:
        await service.serve_forever(boot=args.boot, updated=args.updated)
    except KeyboardInterrupt:
        log.info("forwarder.interrupted")
    return 0


def cli() -> None:
    """Console-script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
