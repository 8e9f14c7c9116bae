# --- Standard library imports ---
import os
from datetime import time
from pathlib import Path

# --- Third-party imports ---
from dotenv import load_dotenv


# Load .env once
load_dotenv()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except ValueError:
        return default

def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except ValueError:
        return default

def parse_time_of_day(value: str | None, default: time = time(2, 0)) -> time:
    """
    Parse an 'HH:MM' string into a time-of-day.

    Anything unparseable falls back to `default`.
    """
    if not value:
        return default
    try:
        hours, minutes = value.strip().split(":", 1)
        return time(int(hours), int(minutes))
    except ValueError:
        return default


class Config:
    """Centralized config for escalation thresholds, runtime paths and observability"""

    # --- Escalation Policy ---
    STAGE1_DAYS = _env_float("STAGE1_DAYS", 2.0)
    STAGE2_DAYS = _env_float("STAGE2_DAYS", 4.0)
    STAGE3_DAYS = _env_float("STAGE3_DAYS", 6.0)

    REBOOT_COUNTDOWN_MIN = _env_int("REBOOT_COUNTDOWN_MIN", 20)

    # Shorter delay for the plain reboot command used when the forced-reboot task cannot be registered
    FALLBACK_COUNTDOWN_MIN = _env_int("FALLBACK_COUNTDOWN_MIN", 5)

    # No-session path: local time-of-day for the unattended maintenance reboot
    MAINTENANCE_TIME = parse_time_of_day(os.getenv("MAINTENANCE_TIME"))

    # --- Persistence ---
    STATE_FILE = Path(
        os.getenv(
            "STATE_FILE",
            str(Path.home() / ".local" / "state" / "uptime_enforcer" / "stage.json"),
        )
    ).expanduser()

    # --- Status reporting (optional) ---
    STATUS_WEBHOOK_URL = os.getenv("STATUS_WEBHOOK_URL") or None

    # --- Timeouts (NOT user configurable beyond sane bounds) ---
    API_TIMEOUT = _env_int("API_TIMEOUT", 8)          # seconds
    COMMAND_TIMEOUT = _env_int("COMMAND_TIMEOUT", 15)  # seconds per OS command

    # Display-then-cleanup delay for transient notification helpers
    NOTIFY_LINGER_S = _env_float("NOTIFY_LINGER_S", 5.0)

    # --- Observability Policy ---
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FILE = os.getenv("LOG_FILE") or None

    # --- Locale ---
    TZ = os.getenv("TZ", "UTC")
