# --- Standard library imports ---
from datetime import datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

# --- Project imports ---
from .config import Config


class TimeService:
    """
    Timezone-aware clock for the enforcer.

    - TZ resolved once at construction (falls back to UTC)
    - Provides:
        * now()
        * format_local()
        * next_maintenance_window()
    """

    def __init__(self, tz_name: str | None = None):
        tz_name = tz_name or Config.TZ
        try:
            self.tz = ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            self.tz = ZoneInfo("UTC")

    # -------------------------
    # Wall clock utilities
    # -------------------------

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def format_local(self, dt: datetime) -> str:
        """Format a datetime as 'MM/DD/YY @ HH:MM:SS TZ'."""
        return dt.astimezone(self.tz).strftime("%m/%d/%y @ %H:%M:%S %Z")

    # -------------------------------
    # Maintenance window
    # -------------------------------

    def next_maintenance_window(self, now: datetime, at: time) -> datetime:
        """
        Next local occurrence of `at` strictly after `now`.

        Example:
            now=01:30, at=02:00 → today 02:00
            now=09:00, at=02:00 → tomorrow 02:00
        """
        local_now = now.astimezone(self.tz)
        candidate = datetime.combine(local_now.date(), at, tzinfo=self.tz)
        if candidate <= local_now:
            candidate = datetime.combine(
                local_now.date() + timedelta(days=1), at, tzinfo=self.tz
            )
        return candidate
