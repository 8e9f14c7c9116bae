# --- Standard library imports ---
import sys
import shutil
import subprocess
from enum import Enum
from dataclasses import dataclass

# --- Project imports ---
from .config import Config
from .errors import NotificationFailure
from .escalation import Stage
from .logger import get_logger


class Urgency(Enum):
    LOW = "low"
    NORMAL = "normal"
    CRITICAL = "critical"

@dataclass(frozen=True)
class StageMessage:
    title: str
    body: str
    dismissible: bool
    urgency: Urgency

# Body may reference {days} (stage threshold) and {minutes} (forced-reboot countdown)
STAGE_MESSAGES = {
    Stage.REMINDER: StageMessage(
        title="Restart recommended",
        body=(
            "Your computer has not restarted in over {days:g} days. "
            "Please save your work and restart when convenient."
        ),
        dismissible=True,
        urgency=Urgency.LOW,
    ),
    Stage.URGENT: StageMessage(
        title="Restart required soon",
        body=(
            "Your computer has not restarted in over {days:g} days. "
            "Please restart today to stay up to date and secure."
        ),
        dismissible=False,
        urgency=Urgency.NORMAL,
    ),
    Stage.FINAL: StageMessage(
        title="Restart scheduled",
        body=(
            "Your computer has not restarted in over {days:g} days and will "
            "restart automatically within {minutes} minutes. Save your work now."
        ),
        dismissible=False,
        urgency=Urgency.CRITICAL,
    ),
}


class Notifier:
    """
    Best-effort desktop notifications.

    `show()` never raises: any failure is logged and reported as
    "not shown" so that the caller keeps the stage unchanged and retries
    on the next run.
    """

    def __init__(self, platform: str = sys.platform, timeout: float | None = None,
                 linger_s: float | None = None):
        self.platform = platform
        self.timeout = Config.COMMAND_TIMEOUT if timeout is None else timeout
        self.linger_s = Config.NOTIFY_LINGER_S if linger_s is None else linger_s
        self.logger = get_logger("notifier")

    def show(self, title: str, body: str, dismissible: bool, urgency: Urgency) -> bool:
        try:
            self._dispatch(title, body, dismissible, urgency)
        except NotificationFailure as e:
            self.logger.warning(f"Notification not shown: {e}")
            return False
        except Exception as e:
            self.logger.error(f"Unexpected notification error ({type(e).__name__}: {e})")
            return False

        self.logger.info(f"🔔 Notification shown [{title}]")
        return True

    def show_stage(self, stage: Stage, threshold_days: float, countdown_min: int) -> bool:
        message = STAGE_MESSAGES[Stage(stage)]
        body = message.body.format(days=threshold_days, minutes=countdown_min)
        return self.show(message.title, body, message.dismissible, message.urgency)

    # --- Platform backends ---
    def _dispatch(self, title: str, body: str, dismissible: bool, urgency: Urgency) -> None:
        if self.platform.startswith("win"):
            self._show_windows_toast(title, body)
        elif shutil.which("notify-send"):
            self._run([
                "notify-send",
                "--urgency", urgency.value,
                # 0 = never expire
                "--expire-time", "10000" if dismissible else "0",
                title,
                body,
            ])
        else:
            raise NotificationFailure(f"No notification backend on platform {self.platform!r}")

    def _show_windows_toast(self, title: str, body: str) -> None:
        # Installed on Windows only
        from win10toast import ToastNotifier

        # Blocking call: the toast is shown for `linger_s` seconds, then torn down
        shown = ToastNotifier().show_toast(
            title, body, duration=self.linger_s, threaded=False,
        )
        if shown is False:
            raise NotificationFailure("Toast host busy with another notification")

    def _run(self, cmd: list[str]) -> None:
        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise NotificationFailure(f"{cmd[0]} timed out after {self.timeout}s") from e
        except OSError as e:
            raise NotificationFailure(f"{cmd[0]} failed to start: {e}") from e

        if result.returncode != 0:
            raise NotificationFailure(
                f"{cmd[0]} exited rc={result.returncode}: {result.stderr.strip()!r}"
            )
