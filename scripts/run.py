#!/usr/bin/env python3
"""KWOTD Notifier — Application Runner.

Checks that the bot can actually start (credentials present and well
formed, settings loadable, writable data and log directories), then
hands over to kwotd.main.

Usage:
    python scripts/run.py [--once] [--force]
"""

from __future__ import annotations

import os
import re
import sys
from pathlib import Path
from typing import Callable

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

BANNER = r"""
╔══════════════════════════════════════════════════════════╗
║                                                          ║
║   ██╗  ██╗██╗    ██╗ ██████╗ ████████╗██████╗            ║
║   ██║ ██╔╝██║    ██║██╔═══██╗╚══██╔══╝██╔══██╗           ║
║   █████╔╝ ██║ █╗ ██║██║   ██║   ██║   ██║  ██║           ║
║   ██╔═██╗ ██║███╗██║██║   ██║   ██║   ██║  ██║           ║
║   ██║  ██╗╚███╔███╔╝╚██████╔╝   ██║   ██████╔╝           ║
║   ╚═╝  ╚═╝ ╚══╝╚══╝  ╚═════╝    ╚═╝   ╚═════╝            ║
║                                                          ║
║              KWOTD Notifier v1.0                         ║
║          Klingon Word of the Day on Telegram             ║
║                                                          ║
╚══════════════════════════════════════════════════════════╝
"""

PLACEHOLDERS = {"", "your_key_here", "test", "123456789"}

# "<bot id>:<secret>" as issued by @BotFather.
BOT_TOKEN_PATTERN = re.compile(r"^\d+:[A-Za-z0-9_-]{30,}$")
# Numeric chat id (groups and channels are negative) or a public @channelname.
CHAT_ID_PATTERN = re.compile(r"^(-?\d+|@[A-Za-z][A-Za-z0-9_]{4,})$")


def _mask(value: str) -> str:
    return value[:6] + "..." + value[-4:] if len(value) > 10 else "***"


def check_env_file() -> bool:
    env_path = PROJECT_ROOT / ".env"
    if not env_path.exists():
        print("❌ .env file not found!")
        print("   Copy .env.example to .env and fill in your bot token and chat id.")
        return False
    from dotenv import load_dotenv
    load_dotenv(env_path)
    print("✅ .env loaded")
    return True


def _check_env_var(name: str, pattern: re.Pattern) -> bool:
    value = os.environ.get(name, "").strip()
    if value in PLACEHOLDERS:
        print(f"❌ {name} is not set")
        return False
    if not pattern.match(value):
        print(f"❌ {name} = {_mask(value)} does not look valid")
        return False
    print(f"✅ {name} = {_mask(value)}")
    return True


def check_bot_token() -> bool:
    return _check_env_var("TELEGRAM_BOT_TOKEN", BOT_TOKEN_PATTERN)


def check_chat_id() -> bool:
    return _check_env_var("TELEGRAM_CHAT_ID", CHAT_ID_PATTERN)


def check_settings() -> bool:
    """Load settings.yaml the way the app will, reporting the first problem."""
    import yaml

    from kwotd.config import SETTINGS_PATH, load_config

    if not SETTINGS_PATH.exists():
        print(f"❌ {SETTINGS_PATH.relative_to(PROJECT_ROOT)} not found!")
        return False
    try:
        config = load_config()
    except (ValueError, OSError, yaml.YAMLError) as e:
        print(f"❌ settings.yaml: {e}")
        return False
    schedule = config.schedule
    print(
        f"✅ settings.yaml: {config.feed.format} feed, daily run at "
        f"{schedule.daily_hour}:{schedule.daily_minute:02d} {schedule.timezone}"
    )
    return True


def check_directories() -> bool:
    ok = True
    for name in ("data", "logs"):
        path = PROJECT_ROOT / name
        path.mkdir(exist_ok=True)
        if os.access(path, os.W_OK):
            print(f"✅ {name}/ is writable")
        else:
            print(f"❌ {name}/ is not writable")
            ok = False
    return ok


CHECKS: list[Callable[[], bool]] = [
    check_env_file,
    check_bot_token,
    check_chat_id,
    check_settings,
    check_directories,
]


def preflight_checks() -> bool:
    """Run every check (not stopping at the first failure).

    Returns:
        True if all checks pass.
    """
    os.chdir(str(PROJECT_ROOT))
    results = [check() for check in CHECKS]
    return all(results)


def main() -> None:
    print(BANNER)

    print("═══ Pre-flight Checks ═══\n")
    if not preflight_checks():
        print("\n❌ Pre-flight checks failed! Fix the issues above and try again.")
        sys.exit(1)

    print("\n✅ All checks passed!\n")
    print("═══ Starting KWOTD Notifier ═══\n")

    from kwotd.main import main as app_main
    sys.exit(app_main(sys.argv[1:]))


if __name__ == "__main__":
    main()
