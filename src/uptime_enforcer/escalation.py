# ─── Future imports ───
from __future__ import annotations

# ─── Standard library imports ───
import math
from datetime import datetime
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

# ─── Project imports ───
from .escalation_policy import EscalationPolicy


class Stage(IntEnum):
    """
    Escalation levels recorded per host.

    • NOMINAL   — nothing shown
    • REMINDER  — dismissible reminder shown
    • URGENT    — urgent reminder shown
    • FINAL     — final warning shown, forced reboot scheduled
    """
    NOMINAL = 0
    REMINDER = 1
    URGENT = 2
    FINAL = 3

    def __str__(self) -> str:
        return self.name

STAGE_EMOJI = {
    Stage.NOMINAL:  "💚",
    Stage.REMINDER: "🟡",
    Stage.URGENT:   "🟠",
    Stage.FINAL:    "🔴",
}


def target_stage(uptime_days: float, thresholds: tuple[float, float, float]) -> Stage:
    """
    Highest stage whose threshold the uptime has reached.

    Evaluated from the top down so that ties resolve to the higher stage.
    """
    t1, t2, t3 = thresholds
    if uptime_days >= t3:
        return Stage.FINAL
    if uptime_days >= t2:
        return Stage.URGENT
    if uptime_days >= t1:
        return Stage.REMINDER
    return Stage.NOMINAL

def is_compliant(
        uptime_days: float,
        session_present: bool,
        thresholds: tuple[float, float, float],
    ) -> bool:
    """
    Non-compliant only when someone is present to be notified and the
    uptime has crossed at least the first threshold.
    """
    return not (session_present and target_stage(uptime_days, thresholds) >= Stage.REMINDER)


@dataclass(frozen=True)
class Decision:
    """
    Output of one engine evaluation.

    • notify_stage        — stage whose notification should fire now
    • new_stage           — stage to record once that notification is shown
    • schedule_reboot_at  — forced reboot to register (entering FINAL only)
    • reset               — drop stage to NOMINAL and cancel any forced reboot
    """
    target_stage: Stage
    compliant: bool
    notify_stage: Optional[Stage] = None
    new_stage: Optional[Stage] = None
    schedule_reboot_at: Optional[datetime] = None
    reset: bool = False

    @property
    def has_action(self) -> bool:
        return self.reset or self.notify_stage is not None

    @property
    def label(self) -> str:
        if self.reset:
            return "reset"
        if self.notify_stage is None:
            return "none"
        if self.schedule_reboot_at is not None:
            return f"notify:{self.notify_stage}+reboot"
        return f"notify:{self.notify_stage}"


class EscalationEngine:
    """
    Pure decision core of the reboot policy.

    Invariants:
      - stage only moves forward while uptime rises
      - the only backward move is the full reset to NOMINAL once uptime
        falls under the first threshold (the host rebooted)
      - notifications fire only with a session present and only when the
        target stage is above the recorded one, so a shown notification is
        never repeated within the same uptime bracket
      - a forced reboot is scheduled only on the transition into FINAL
      - the engine performs no I/O
    """

    def __init__(self, policy: EscalationPolicy):
        self.policy = policy

    def target_stage(self, uptime_days: float) -> Stage:
        return target_stage(uptime_days, self.policy.thresholds)

    def is_compliant(self, uptime_days: float, session_present: bool) -> bool:
        return is_compliant(uptime_days, session_present, self.policy.thresholds)

    def decide(
            self,
            uptime_days: float,
            session_present: bool,
            current_stage: int,
            now: datetime,
        ) -> Decision:
        """
        Decide the next escalation step.

        Args:
            uptime_days: Valid uptime sample in days (callers short-circuit
                         sampling failures before getting here).
            session_present: Whether an interactive user is logged on.
            current_stage: Stage recorded by the last successful run.
            now: Reference time used for the forced-reboot schedule.

        Raises:
            ValueError: On a negative/NaN uptime or an unknown stage.
        """
        if math.isnan(uptime_days) or uptime_days < 0:
            raise ValueError(f"Invalid uptime sample: {uptime_days!r}")
        current = Stage(current_stage)

        target = self.target_stage(uptime_days)
        compliant = is_compliant(uptime_days, session_present, self.policy.thresholds)

        # ─── Reset: uptime fell back, the host rebooted ───
        if target == Stage.NOMINAL:
            return Decision(
                target_stage=target,
                compliant=compliant,
                reset=current > Stage.NOMINAL,
            )

        # ─── Escalate: someone to notify and a new bracket reached ───
        if session_present and target > current:
            reboot_at = None
            if target == Stage.FINAL:
                reboot_at = now + self.policy.reboot_countdown
            return Decision(
                target_stage=target,
                compliant=compliant,
                notify_stage=target,
                new_stage=target,
                schedule_reboot_at=reboot_at,
            )

        # ─── Already escalated (or nobody present) ───
        return Decision(target_stage=target, compliant=compliant)
