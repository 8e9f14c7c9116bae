# --- Future imports ---
from __future__ import annotations

# --- Standard library imports ---
from typing import Optional

# --- Project imports ---
from .errors import PersistenceFailure, SamplingFailure
from .escalation import STAGE_EMOJI, EscalationEngine
from .escalation_policy import EscalationPolicy
from .host import HostFacts
from .logger import get_logger
from .reporter import StatusReporter
from .state import StageStore, read_or_default
from .telemetry import tlog
from .time_service import TimeService


EXIT_COMPLIANT = 0
EXIT_NON_COMPLIANT = 1


class ComplianceCheck:
    """
    Read path: sample uptime and session presence, judge compliance,
    record the sample.

    Never changes the recorded stage. Every failure resolves to
    "compliant" so that a broken reading cannot trigger remediation.
    """

    def __init__(
        self,
        policy: EscalationPolicy,
        store: StageStore,
        facts: Optional[HostFacts] = None,
        time_service: Optional[TimeService] = None,
        reporter: Optional[StatusReporter] = None,
    ):
        self.engine = EscalationEngine(policy)
        self.store = store
        self.facts = facts or HostFacts()
        self.time = time_service or TimeService()
        self.reporter = reporter
        self.logger = get_logger("compliance")

    def run(self) -> int:
        try:
            return self._run()
        except Exception:
            self.logger.exception("Unhandled error during compliance check; reporting compliant")
            return EXIT_COMPLIANT

    def _run(self) -> int:
        now = self.time.now()

        # --- Sample uptime (no sample, no verdict) ---
        try:
            uptime_days = self.facts.sample_uptime()
        except SamplingFailure as e:
            self.logger.warning(f"{e}; reporting compliant")
            return EXIT_COMPLIANT

        session_present = self.facts.session_present()
        target = self.engine.target_stage(uptime_days)
        compliant = self.engine.is_compliant(uptime_days, session_present)

        # --- Record the sample, keeping the stage as is ---
        stage = self._record_sample(uptime_days, now)

        tlog(
            self.logger,
            STAGE_EMOJI[target],
            "COMPLIANCE",
            "COMPLIANT" if compliant else "NON-COMPLIANT",
            primary=f"uptime={uptime_days:.2f}d",
            target=str(target),
            stage=stage,
            session=session_present,
        )

        if self.reporter is not None:
            self.reporter.report(
                command="check",
                compliant=compliant,
                stage=stage if stage is not None else 0,
                uptime_days=uptime_days,
                action="none",
                at=now,
            )

        return EXIT_COMPLIANT if compliant else EXIT_NON_COMPLIANT

    def _record_sample(self, uptime_days: float, now) -> Optional[int]:
        """
        Persist uptime/last_check. Returns the recorded stage, or None if
        the record could not be read (the write is then skipped so an
        unreadable stage is never overwritten).
        """
        try:
            record = read_or_default(self.store)
        except PersistenceFailure as e:
            self.logger.error(f"{e}; uptime sample not recorded")
            return None

        try:
            self.store.write(record.with_sample(uptime_days, now))
        except PersistenceFailure as e:
            self.logger.error(f"{e}; will retry next run")

        return int(record.stage)
