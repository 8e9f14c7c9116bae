# --- Standard library imports ---
import socket
from datetime import datetime
from typing import Optional

# --- Third-party imports ---
import requests

# --- Project imports ---
from .config import Config
from .logger import get_logger


class StatusReporter:
    """
    Optional uplink of per-run outcomes to an HTTP endpoint (JSON POST).

    Best-effort only: a failed report is logged and never changes the
    outcome of the run that produced it.
    """

    def __init__(self, url: Optional[str] = None, timeout: Optional[float] = None,
                 hostname: Optional[str] = None):
        self.url = url if url is not None else Config.STATUS_WEBHOOK_URL
        self.timeout = Config.API_TIMEOUT if timeout is None else timeout
        self.hostname = hostname or socket.gethostname()
        self.logger = get_logger("reporter")

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    def build_payload(
            self,
            command: str,
            compliant: bool,
            stage: int,
            uptime_days: Optional[float],
            action: str,
            at: datetime,
        ) -> dict:
        return {
            "host": self.hostname,
            "command": command,
            "compliant": compliant,
            "stage": int(stage),
            "uptime_days": round(uptime_days, 3) if uptime_days is not None else None,
            "action": action,
            "at": at.isoformat(timespec="seconds"),
        }

    def report(self, **fields) -> bool:
        """
        POST one run outcome.

        Returns:
            True if the endpoint accepted the report, False otherwise
            (including when reporting is disabled).
        """
        if not self.enabled:
            return False

        payload = self.build_payload(**fields)
        try:
            resp = requests.post(self.url, json=payload, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            self.logger.warning(f"Status report failed ({e.__class__.__name__})")
            return False

        self.logger.debug(f"📡 Status reported → {self.url}")
        return True
