# --- Standard library imports ---
import time
from dataclasses import dataclass
from typing import Callable, Optional

# --- Third-party imports ---
import psutil

# --- Project imports ---
from .errors import SamplingFailure, SessionLookupFailure
from .logger import get_logger


# Define the logger once for the entire module
logger = get_logger("host")

SECONDS_PER_DAY = 86400

# Unknown session state is treated as "someone is logged on" so that a
# broken lookup can never silently skip escalation.
SESSION_UNKNOWN_ASSUMED_PRESENT = True


def sample_uptime_days(now: Optional[float] = None) -> float:
    """
    Days since the last boot.

    Raises:
        SamplingFailure: If the boot time is unavailable or implausible.
    """
    try:
        boot_ts = psutil.boot_time()
    except Exception as e:
        raise SamplingFailure(f"Boot time unavailable ({type(e).__name__}: {e})") from e

    now = time.time() if now is None else now
    uptime_s = now - boot_ts
    if uptime_s < 0:
        raise SamplingFailure(f"Boot time lies in the future ({boot_ts} > {now})")

    return uptime_s / SECONDS_PER_DAY

def has_interactive_session() -> bool:
    """
    True if any user session is active on the host.

    Raises:
        SessionLookupFailure: If sessions cannot be enumerated.
    """
    try:
        return len(psutil.users()) > 0
    except Exception as e:
        raise SessionLookupFailure(f"Session lookup failed ({type(e).__name__}: {e})") from e

def get_active_session_user() -> Optional[str]:
    """Name of the first logged-on user, or None."""
    try:
        users = psutil.users()
    except Exception as e:
        logger.debug(f"Session user lookup failed: {e}")
        return None
    return users[0].name if users else None


@dataclass
class HostFacts:
    """
    Collaborator bundle giving the orchestrators their OS facts.

    Swappable per field so tests can inject fixed samples or failures.
    """
    sample_uptime: Callable[[], float] = sample_uptime_days
    has_session: Callable[[], bool] = has_interactive_session
    session_user: Callable[[], Optional[str]] = get_active_session_user

    def session_present(self) -> bool:
        """
        Session presence with the fail-open policy applied.
        """
        try:
            return self.has_session()
        except SessionLookupFailure as e:
            logger.warning(
                f"{e}; assuming session present="
                f"{SESSION_UNKNOWN_ASSUMED_PRESENT}"
            )
            return SESSION_UNKNOWN_ASSUMED_PRESENT
