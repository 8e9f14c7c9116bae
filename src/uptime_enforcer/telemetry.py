# --- Standard library imports ---
import logging


def format_meta(meta: dict) -> str:
    """Render key/value metadata as 'k=v | k=v', skipping None values."""
    return " | ".join(f"{k}={v}" for k, v in meta.items() if v is not None)

def tlog(
    logger: logging.Logger,
    emoji: str,
    subsystem: str,
    state: str,
    primary: str = "—--",
    level: int = logging.INFO,
    **meta,
) -> None:
    """
    Emit a standardized telemetry log "tlog" line.

    Format:
        SUBSYSTEM STATE PRIMARY | k=v | k=v
    """
    msg = f"{subsystem:<11} {state:<14} {primary:<18}"
    rendered = format_meta(meta)
    if rendered:
        msg += f" | {rendered}"

    logger.log(level, f"{emoji} {msg}", stacklevel=2)
