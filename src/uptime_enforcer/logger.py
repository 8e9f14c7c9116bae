# --- Standard library imports ---
import sys
import logging
from pathlib import Path
from logging.handlers import RotatingFileHandler

# --- Project imports ---
from .config import Config


# --- Format configuration constants ---
LOG_LEVEL_EMOJIS = {
    logging.DEBUG: "🧱",
    logging.INFO: "🟢",
    logging.WARNING: "⚠️ ",
    logging.ERROR: "❌",
    logging.CRITICAL: "🔥",
}

LEVEL_NAME_MAP = {
    "WARNING": "WARN",
    "CRITICAL": "FATAL",
}

LOG_FORMAT = "%(asctime)s %(levelemoji)s %(name)s:%(funcName)s → %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Scheduled runs are short; a handful of small files covers weeks of history
LOG_FILE_MAX_BYTES = 512 * 1024
LOG_FILE_BACKUPS = 3

# --- Formatters ---
class EmojiFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        """
        Prepend an emoji per log level and shorten log level names.
        """
        record.levelemoji = LOG_LEVEL_EMOJIS.get(record.levelno, "")
        record.levelname = LEVEL_NAME_MAP.get(record.levelname, record.levelname)
        return super().format(record)

def resolve_level(name: str | int) -> int:
    """Map a level name such as 'debug' to its numeric value (INFO if unknown)."""
    if isinstance(name, int):
        return name
    level = logging.getLevelName(str(name).upper())
    return level if isinstance(level, int) else logging.INFO

# --- Public logging setup API ---
def setup_logging(level=logging.INFO, log_file: str | Path | None = None) -> None:
    """
    Configure global logging with emoji decorations.

    Always logs to stdout (captured by the invoking scheduler); when
    `log_file` is given a size-rotated file copy is kept as well.
    """
    root = logging.getLogger()
    root.setLevel(resolve_level(level))
    root.handlers.clear()

    formatter = EmojiFormatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root.addHandler(handler)

    if log_file:
        path = Path(log_file).expanduser()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                path,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding="utf-8",
            )
        except OSError as e:
            root.warning(f"Log file unavailable ({path}): {e}")
        else:
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)

def setup_from_config() -> None:
    """Configure logging from Config.LOG_LEVEL / Config.LOG_FILE."""
    setup_logging(level=Config.LOG_LEVEL, log_file=Config.LOG_FILE)

def get_logger(name: str) -> logging.Logger:
    """
    Return a namespaced logger for any module.
    """
    return logging.getLogger(f"uptime_enforcer.{name}")
