# ─── Future imports ───
from __future__ import annotations

# ─── Standard library imports ───
import os
import re
import sys
import math
import tempfile
import subprocess
from pathlib import Path
from datetime import datetime, tzinfo
from typing import Optional
from xml.etree import ElementTree
from xml.sax.saxutils import escape

# ─── Project imports ───
from .config import Config
from .errors import SchedulingFailure
from .logger import get_logger
from .telemetry import tlog
from .time_service import TimeService


# ─── Task identities (idempotency keys) ───
FORCED_REBOOT_TASK = "UptimeEnforcer-ForcedReboot"
MAINTENANCE_REBOOT_TASK = "UptimeEnforcer-MaintenanceReboot"

REBOOT_COMMENT = "Restart required by uptime policy"

logger = get_logger("scheduler")


class RebootScheduler:
    """
    OS-level reboot scheduling behind a small, query-first contract.

    Every operation is bounded by `timeout` and raises SchedulingFailure on
    error; callers decide the fallback.
    """

    def __init__(self, tz: tzinfo | None = None, timeout: float | None = None):
        self.tz = tz or TimeService().tz
        self.timeout = Config.COMMAND_TIMEOUT if timeout is None else timeout

    # ─── Contract ───
    def find(self, task_id: str) -> Optional[datetime]:
        """Start time of a pending task with this identity, or None."""
        raise NotImplementedError

    def schedule_reboot(self, at: datetime, forced: bool = True) -> None:
        raise NotImplementedError

    def cancel_scheduled_reboot(self) -> None:
        raise NotImplementedError

    def schedule_maintenance_reboot(self, at: datetime) -> None:
        raise NotImplementedError

    def fallback_reboot(self, countdown_min: int) -> None:
        """Simplest possible delayed reboot, used when scheduling fails."""
        raise NotImplementedError

    # ─── Shared helpers ───
    def _run(self, cmd: list[str], check: bool = True) -> subprocess.CompletedProcess:
        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise SchedulingFailure(f"{cmd[0]} timed out after {self.timeout}s") from e
        except OSError as e:
            raise SchedulingFailure(f"{cmd[0]} failed to start: {e}") from e

        if check and result.returncode != 0:
            raise SchedulingFailure(
                f"{' '.join(cmd[:3])} failed (rc={result.returncode}): "
                f"{(result.stderr or result.stdout).strip()!r}"
            )
        return result

    def _localize(self, dt: datetime) -> datetime:
        return dt.replace(tzinfo=self.tz) if dt.tzinfo is None else dt


# ──────────────────────────────────────────────────────────────
# Windows: Task Scheduler (schtasks) + shutdown.exe
# ──────────────────────────────────────────────────────────────

_TASK_NS = {"t": "http://schemas.microsoft.com/windows/2004/02/mit/task"}

_TASK_XML = """\
<?xml version="1.0" encoding="UTF-16"?>
<Task version="1.2" xmlns="http://schemas.microsoft.com/windows/2004/02/mit/task">
  <RegistrationInfo><Description>{description}</Description></RegistrationInfo>
  <Triggers>
    <TimeTrigger>
      <StartBoundary>{start}</StartBoundary>
      <Enabled>true</Enabled>
    </TimeTrigger>
  </Triggers>
  <Principals>
    <Principal id="Author">
      <UserId>S-1-5-18</UserId>
      <RunLevel>HighestAvailable</RunLevel>
    </Principal>
  </Principals>
  <Settings>
    <StartWhenAvailable>true</StartWhenAvailable>
    <DisallowStartIfOnBatteries>false</DisallowStartIfOnBatteries>
    <StopIfGoingOnBatteries>false</StopIfGoingOnBatteries>
    <ExecutionTimeLimit>PT5M</ExecutionTimeLimit>
  </Settings>
  <Actions Context="Author">
    <Exec>
      <Command>shutdown.exe</Command>
      <Arguments>{arguments}</Arguments>
    </Exec>
  </Actions>
</Task>
"""


class WindowsTaskScheduler(RebootScheduler):
    """
    Registers one-shot reboot tasks through schtasks.

    Tasks are created and queried as XML so that start times round-trip
    as ISO-8601 independent of the system locale.
    """

    def find(self, task_id: str) -> Optional[datetime]:
        result = self._run(["schtasks", "/Query", "/TN", task_id, "/XML"], check=False)
        if result.returncode != 0:
            logger.debug(f"Task {task_id} not registered")
            return None
        return self._parse_start_boundary(result.stdout)

    def _parse_start_boundary(self, xml_text: str) -> Optional[datetime]:
        # Declared UTF-16 but already decoded by subprocess
        xml_text = re.sub(r"^\s*<\?xml[^>]*\?>", "", xml_text)
        try:
            root = ElementTree.fromstring(xml_text.strip())
        except ElementTree.ParseError as e:
            raise SchedulingFailure(f"Unreadable task XML: {e}") from e

        node = root.find(".//t:Triggers/t:TimeTrigger/t:StartBoundary", _TASK_NS)
        if node is None or not node.text:
            return None
        try:
            return self._localize(datetime.fromisoformat(node.text.strip()))
        except ValueError as e:
            raise SchedulingFailure(f"Bad StartBoundary {node.text!r}") from e

    def _register(self, task_id: str, at: datetime, arguments: str, description: str) -> None:
        xml_text = _TASK_XML.format(
            description=escape(description),
            start=self._localize(at).isoformat(timespec="seconds"),
            arguments=escape(arguments),
        )
        fd, xml_path = tempfile.mkstemp(prefix="uptime_task_", suffix=".xml")
        try:
            with os.fdopen(fd, "w", encoding="utf-16") as fh:
                fh.write(xml_text)
            # /F replaces an existing task with the same identity
            self._run(["schtasks", "/Create", "/TN", task_id, "/XML", xml_path, "/F"])
        finally:
            Path(xml_path).unlink(missing_ok=True)

    def schedule_reboot(self, at: datetime, forced: bool = True) -> None:
        arguments = f'/r {"/f " if forced else ""}/t 0 /c "{REBOOT_COMMENT}"'
        self._register(FORCED_REBOOT_TASK, at, arguments, "Forced reboot after final uptime warning")

    def schedule_maintenance_reboot(self, at: datetime) -> None:
        arguments = f'/r /f /t 0 /c "{REBOOT_COMMENT}"'
        self._register(MAINTENANCE_REBOOT_TASK, at, arguments, "Off-hours maintenance reboot")

    def cancel_scheduled_reboot(self) -> None:
        """
        Delete the forced-reboot task if it is still registered.

        Pending `shutdown /t` countdowns are left alone: `shutdown /a` would
        also abort countdowns started by others (e.g. Windows Update), and a
        fallback countdown of ours does not outlive the reboot that triggers
        a reset.
        """
        if self.find(FORCED_REBOOT_TASK) is not None:
            self._run(["schtasks", "/Delete", "/TN", FORCED_REBOOT_TASK, "/F"])

    def fallback_reboot(self, countdown_min: int) -> None:
        seconds = max(0, int(countdown_min) * 60)
        self._run(["shutdown", "/r", "/f", "/t", str(seconds), "/c", REBOOT_COMMENT])


# ──────────────────────────────────────────────────────────────
# Linux: systemd-logind delayed shutdown
# ──────────────────────────────────────────────────────────────

SYSTEMD_SCHEDULED_FILE = Path("/run/systemd/shutdown/scheduled")


class SystemdShutdownScheduler(RebootScheduler):
    """
    Delayed reboots through `shutdown -r +MIN`.

    logind keeps a single pending shutdown, so both task identities resolve
    to the same slot; registering one replaces the other.
    """

    def __init__(self, tz: tzinfo | None = None, timeout: float | None = None,
                 scheduled_file: Path = SYSTEMD_SCHEDULED_FILE):
        super().__init__(tz=tz, timeout=timeout)
        self.scheduled_file = scheduled_file

    def find(self, task_id: str) -> Optional[datetime]:
        try:
            raw = self.scheduled_file.read_text()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise SchedulingFailure(f"Cannot read {self.scheduled_file}: {e}") from e

        fields = dict(
            line.split("=", 1) for line in raw.splitlines() if "=" in line
        )
        if fields.get("MODE", "reboot") != "reboot" or "USEC" not in fields:
            return None
        try:
            usec = int(fields["USEC"])
        except ValueError as e:
            raise SchedulingFailure(f"Bad USEC in {self.scheduled_file}") from e
        return datetime.fromtimestamp(usec / 1_000_000, tz=self.tz)

    def _minutes_until(self, at: datetime) -> int:
        now = datetime.now(tz=self.tz)
        return max(1, math.ceil((self._localize(at) - now).total_seconds() / 60))

    def schedule_reboot(self, at: datetime, forced: bool = True) -> None:
        self._run(["shutdown", "-r", f"+{self._minutes_until(at)}", REBOOT_COMMENT])

    def schedule_maintenance_reboot(self, at: datetime) -> None:
        self._run(["shutdown", "-r", f"+{self._minutes_until(at)}", REBOOT_COMMENT])

    def cancel_scheduled_reboot(self) -> None:
        self._run(["shutdown", "-c"], check=False)

    def fallback_reboot(self, countdown_min: int) -> None:
        self._run(["systemctl", "reboot", f"--when=+{max(1, int(countdown_min))}min"])


def get_scheduler(platform: str = sys.platform, tz: tzinfo | None = None) -> RebootScheduler:
    """Pick the scheduler backend for this host."""
    if platform.startswith("win"):
        return WindowsTaskScheduler(tz=tz)
    return SystemdShutdownScheduler(tz=tz)


def ensure_maintenance_reboot(
        scheduler: RebootScheduler,
        at: datetime,
        now: datetime,
    ) -> bool:
    """
    Query-then-create the no-session maintenance reboot.

    An already pending, future-dated maintenance task is kept as is so that
    repeated hourly runs do not keep pushing the reboot forward.

    Returns:
        True if a new task was registered, False if an existing one was kept.
    """
    existing = scheduler.find(MAINTENANCE_REBOOT_TASK)
    if existing is not None and existing > now:
        tlog(
            logger, "🗓️ ", "MAINTENANCE", "KEPT",
            primary=existing.isoformat(timespec="minutes"),
        )
        return False

    scheduler.schedule_maintenance_reboot(at)
    tlog(
        logger, "🗓️ ", "MAINTENANCE", "SCHEDULED",
        primary=at.isoformat(timespec="minutes"),
        replaced=existing.isoformat(timespec="minutes") if existing else None,
    )
    return True
