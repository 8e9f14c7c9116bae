# --- Standard library imports ---
import sys
import json
import argparse

# --- Project imports ---
from .config import Config
from .errors import ConfigurationError, PersistenceFailure
from .logger import get_logger, setup_from_config
from .escalation_policy import EscalationPolicy
from .compliance import ComplianceCheck, EXIT_COMPLIANT
from .remediation import RemediationRunner, EXIT_FAULT
from .notifier import Notifier
from .reporter import StatusReporter
from .scheduler import get_scheduler
from .state import JsonStageStore
from .time_service import TimeService


def _load_policy(logger) -> EscalationPolicy | None:
    try:
        policy = EscalationPolicy.from_config().validate()
    except ConfigurationError as e:
        logger.error(f"Invalid escalation policy: {e}")
        return None
    logger.debug(f"Policy: {policy.summary()}")
    return policy

def run_check() -> int:
    """
    Compliance Check entry point.

    Exit code 0 = compliant, 1 = non-compliant.
    """
    logger = get_logger("check")
    policy = _load_policy(logger)
    if policy is None:
        return EXIT_COMPLIANT

    check = ComplianceCheck(
        policy,
        JsonStageStore(Config.STATE_FILE),
        time_service=TimeService(),
        reporter=StatusReporter(),
    )
    return check.run()

def run_remediate() -> int:
    """
    Remediation Runner entry point.

    Exit code 0 on handled outcomes, 1 on an internal fault.
    """
    logger = get_logger("remediate")
    policy = _load_policy(logger)
    if policy is None:
        return EXIT_FAULT

    time_service = TimeService()
    runner = RemediationRunner(
        policy,
        JsonStageStore(Config.STATE_FILE),
        notifier=Notifier(),
        scheduler=get_scheduler(tz=time_service.tz),
        time_service=time_service,
        reporter=StatusReporter(),
    )
    return runner.run()

def run_status() -> int:
    """Print the stored stage record as JSON (read-only)."""
    logger = get_logger("status")
    try:
        record = JsonStageStore(Config.STATE_FILE).read()
    except PersistenceFailure as e:
        logger.error(str(e))
        return 1

    print(json.dumps(record.to_dict() if record else None, indent=2))
    return 0

COMMANDS = {
    "check": run_check,
    "remediate": run_remediate,
    "status": run_status,
}

def main(argv: list[str] | None = None) -> int:
    """
    Dispatch `python -m uptime_enforcer {check,remediate,status}`.
    """
    parser = argparse.ArgumentParser(
        prog="uptime_enforcer",
        description="Nudge, then force, a reboot on hosts that have run too long.",
    )
    parser.add_argument("command", choices=sorted(COMMANDS))
    args = parser.parse_args(argv)

    setup_from_config()
    return COMMANDS[args.command]()

def check_main() -> None:
    setup_from_config()
    sys.exit(run_check())

def remediate_main() -> None:
    setup_from_config()
    sys.exit(run_remediate())

if __name__ == "__main__":
    sys.exit(main())
