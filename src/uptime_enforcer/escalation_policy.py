# ─── Future imports ───
from __future__ import annotations

# ─── Standard library imports ───
from datetime import time, timedelta
from dataclasses import dataclass

# ─── Project imports ───
from .config import Config
from .errors import ConfigurationError


@dataclass(frozen=True)
class EscalationPolicy:
    """
    Policy governing how long a host may run before users are nudged,
    urged and finally forced to reboot.

    Passed explicitly into the engine so that different hosts or tests can
    run different policies side by side in one process.
    """

    # ─── Uptime thresholds (days) ───

    # Dismissible reminder
    stage1_days: float = 2.0

    # Urgent reminder
    stage2_days: float = 4.0

    # Final warning + forced reboot
    stage3_days: float = 6.0

    # ─── Forced reboot ───

    # Time between the final warning and the unattended reboot
    reboot_countdown_min: int = 20

    # Plain reboot command used when the forced-reboot task cannot be registered
    fallback_countdown_min: int = 5

    # ─── No-session path ───

    # Local time-of-day for the maintenance reboot when nobody is logged on
    maintenance_time: time = time(2, 0)

    # ─── Construction ───

    @classmethod
    def from_config(cls, config=None) -> EscalationPolicy:
        config = config or Config
        return cls(
            stage1_days=config.STAGE1_DAYS,
            stage2_days=config.STAGE2_DAYS,
            stage3_days=config.STAGE3_DAYS,
            reboot_countdown_min=config.REBOOT_COUNTDOWN_MIN,
            fallback_countdown_min=config.FALLBACK_COUNTDOWN_MIN,
            maintenance_time=config.MAINTENANCE_TIME,
        )

    # ─── Derived policy values (computed) ───

    @property
    def thresholds(self) -> tuple[float, float, float]:
        return (self.stage1_days, self.stage2_days, self.stage3_days)

    @property
    def reboot_countdown(self) -> timedelta:
        return timedelta(minutes=self.reboot_countdown_min)

    @property
    def fallback_countdown(self) -> timedelta:
        return timedelta(minutes=self.fallback_countdown_min)

    # ─── Validation ───

    def validate(self) -> EscalationPolicy:
        """
        Fail fast on values that cannot form a forward-only escalation.

        Raises:
            ConfigurationError: unless 0 < t1 < t2 < t3, countdown > 0
                and 0 < fallback countdown <= countdown.
        """
        t1, t2, t3 = self.thresholds
        if not 0 < t1 < t2 < t3:
            raise ConfigurationError(
                f"Thresholds must satisfy 0 < t1 < t2 < t3 (got {t1}/{t2}/{t3})"
            )
        if self.reboot_countdown_min <= 0:
            raise ConfigurationError(
                f"Reboot countdown must be positive (got {self.reboot_countdown_min} min)"
            )
        if not 0 < self.fallback_countdown_min <= self.reboot_countdown_min:
            raise ConfigurationError(
                f"Fallback countdown must satisfy 0 < fallback <= countdown "
                f"(got {self.fallback_countdown_min}/{self.reboot_countdown_min} min)"
            )
        return self

    # ─── Introspection / debugging helpers ───

    def summary(self) -> dict[str, float | int | str]:
        """
        Structured summary of the effective policy, for startup logs and reports.
        """
        return {
            "stage1_days": self.stage1_days,
            "stage2_days": self.stage2_days,
            "stage3_days": self.stage3_days,
            "reboot_countdown_min": self.reboot_countdown_min,
            "fallback_countdown_min": self.fallback_countdown_min,
            "maintenance_time": self.maintenance_time.strftime("%H:%M"),
        }
