# --- Future imports ---
from __future__ import annotations

# --- Standard library imports ---
from datetime import datetime
from typing import Optional

# --- Project imports ---
from .errors import PersistenceFailure, SamplingFailure, SchedulingFailure
from .escalation import STAGE_EMOJI, Decision, EscalationEngine, Stage
from .escalation_policy import EscalationPolicy
from .host import HostFacts
from .logger import get_logger
from .notifier import Notifier
from .reporter import StatusReporter
from .scheduler import RebootScheduler, ensure_maintenance_reboot
from .state import StageRecord, StageStore, read_or_default
from .telemetry import tlog
from .time_service import TimeService


EXIT_OK = 0
EXIT_FAULT = 1


class RemediationRunner:
    """
    Write path: carry out the engine's decision.

    Workflow:
    1. Read the stage record (unreadable → skip escalation)
    2. Sample uptime (unreadable → skip) and session presence (fail open)
    3. No session → keep a maintenance reboot pending, stage untouched
    4. Session → decide, notify, advance the stage on success, schedule
       the forced reboot when entering FINAL
    5. Persist the fresh sample and any stage change

    Responsibilities:
    • Side effects only in the order the decision dictates
    • Stage advances only after the notification was actually shown

    Non-responsibilities:
    • No policy decisions (EscalationEngine)
    • No OS specifics (Notifier / RebootScheduler)
    """

    def __init__(
        self,
        policy: EscalationPolicy,
        store: StageStore,
        notifier: Notifier,
        scheduler: RebootScheduler,
        facts: Optional[HostFacts] = None,
        time_service: Optional[TimeService] = None,
        reporter: Optional[StatusReporter] = None,
    ):
        self.policy = policy
        self.engine = EscalationEngine(policy)
        self.store = store
        self.notifier = notifier
        self.scheduler = scheduler
        self.facts = facts or HostFacts()
        self.time = time_service or TimeService()
        self.reporter = reporter
        self.logger = get_logger("remediation")

    def run(self) -> int:
        try:
            return self._run()
        except Exception:
            self.logger.exception("Unhandled error during remediation")
            return EXIT_FAULT

    def _run(self) -> int:
        now = self.time.now()

        # --- Preconditions: any unreadable input skips escalation ---
        try:
            record = read_or_default(self.store)
        except PersistenceFailure as e:
            self.logger.error(f"{e}; skipping escalation this run")
            return EXIT_OK

        try:
            uptime_days = self.facts.sample_uptime()
        except SamplingFailure as e:
            self.logger.warning(f"{e}; skipping escalation this run")
            return EXIT_OK

        session_present = self.facts.session_present()
        decision = self.engine.decide(uptime_days, session_present, record.stage, now)
        record = record.with_sample(uptime_days, now)
        exit_code = EXIT_OK
        actions = []

        # Reboot detected: applies whether or not anyone is logged on
        if decision.reset:
            record = self._reset(record)
            actions.append("reset")

        if not session_present:
            self._maintenance_reboot(now)
            actions.append("maintenance")
        elif not decision.reset:
            record, exit_code, escalation = self._escalate(record, decision, now)
            actions.append(escalation)

        action = "+".join(actions)

        self._persist(record)

        tlog(
            self.logger,
            STAGE_EMOJI[record.stage],
            "REMEDIATION",
            action.upper(),
            primary=f"uptime={uptime_days:.2f}d",
            stage=str(record.stage),
            target=str(decision.target_stage),
            user=self.facts.session_user() if session_present else None,
        )

        if self.reporter is not None:
            self.reporter.report(
                command="remediate",
                compliant=decision.compliant,
                stage=record.stage,
                uptime_days=uptime_days,
                action=action,
                at=now,
            )

        return exit_code

    # ──────────────────────────────────────────────────────────────
    # Actions
    # ──────────────────────────────────────────────────────────────

    def _reset(self, record: StageRecord) -> StageRecord:
        """
        Host rebooted: cancel any pending forced reboot and drop to NOMINAL.
        """
        try:
            self.scheduler.cancel_scheduled_reboot()
        except SchedulingFailure as e:
            self.logger.error(f"Forced reboot cancel failed: {e}")

        try:
            self.store.clear()
        except PersistenceFailure as e:
            self.logger.error(f"{e}; will retry next run")

        self.logger.info(f"♻️  Reboot detected; stage {record.stage} → {Stage.NOMINAL}")
        return record.reset()

    def _maintenance_reboot(self, now: datetime) -> None:
        at = self.time.next_maintenance_window(now, self.policy.maintenance_time)
        try:
            ensure_maintenance_reboot(self.scheduler, at, now)
        except SchedulingFailure as e:
            self.logger.error(f"Maintenance reboot not scheduled: {e}")

    def _escalate(
            self,
            record: StageRecord,
            decision: Decision,
            now: datetime,
        ) -> tuple[StageRecord, int, str]:
        if decision.notify_stage is None:
            self.logger.debug(f"Stage {record.stage} already acted upon; nothing to do")
            return record, EXIT_OK, decision.label

        stage = decision.notify_stage
        shown = self.notifier.show_stage(
            stage,
            threshold_days=self.policy.thresholds[stage - 1],
            countdown_min=self.policy.reboot_countdown_min,
        )
        if not shown:
            # Stage stays put; the same notification is retried next run
            self.logger.warning(f"Stage {stage} notification not shown; retrying next run")
            return record, EXIT_OK, "notify-failed"

        if decision.schedule_reboot_at is None:
            return record.advanced_to(decision.new_stage, now), EXIT_OK, decision.label

        reboot_at = self._schedule_forced_reboot(decision.schedule_reboot_at, now)
        if reboot_at is None:
            return record, EXIT_FAULT, "reboot-failed"

        record = record.advanced_to(decision.new_stage, now).with_reboot(reboot_at)
        return record, EXIT_OK, decision.label

    def _schedule_forced_reboot(self, at: datetime, now: datetime) -> Optional[datetime]:
        """
        Register the forced reboot, falling back to a plain reboot command on
        the shorter fallback countdown if the task cannot be registered.

        Returns:
            When the reboot will happen, or None if nothing could be scheduled.
        """
        try:
            self.scheduler.schedule_reboot(at, forced=True)
            tlog(self.logger, "🔴", "REBOOT", "SCHEDULED", primary=self.time.format_local(at))
            return at
        except SchedulingFailure as e:
            self.logger.error(f"Forced reboot task failed: {e}; using fallback")

        countdown = self.policy.fallback_countdown_min
        try:
            self.scheduler.fallback_reboot(countdown)
        except SchedulingFailure as e:
            self.logger.critical(f"Fallback reboot failed: {e}")
            return None

        fallback_at = now + self.policy.fallback_countdown
        tlog(
            self.logger, "🔴", "REBOOT", "FALLBACK",
            primary=self.time.format_local(fallback_at),
            countdown_min=countdown,
        )
        return fallback_at

    def _persist(self, record: StageRecord) -> None:
        try:
            self.store.write(record)
        except PersistenceFailure as e:
            self.logger.error(f"{e}; will retry next run")
