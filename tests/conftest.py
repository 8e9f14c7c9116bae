import pytest
from datetime import datetime, time
from zoneinfo import ZoneInfo

from uptime_enforcer.errors import SchedulingFailure
from uptime_enforcer.escalation_policy import EscalationPolicy
from uptime_enforcer.host import HostFacts
from uptime_enforcer.scheduler import (
    FORCED_REBOOT_TASK,
    MAINTENANCE_REBOOT_TASK,
    RebootScheduler,
)
from uptime_enforcer.time_service import TimeService


UTC = ZoneInfo("UTC")
NOW = datetime(2026, 10, 19, 14, 30, tzinfo=UTC)


# =====
# FAKES
# =====
class FixedTimeService(TimeService):
    """TimeService frozen at a given instant."""
    def __init__(self, now: datetime = NOW):
        super().__init__("UTC")
        self._now = now

    def now(self) -> datetime:
        return self._now


class FakeNotifier:
    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.shown = []

    def show_stage(self, stage, threshold_days, countdown_min):
        self.shown.append((int(stage), threshold_days, countdown_min))
        return self.succeed


class FakeScheduler(RebootScheduler):
    """In-memory task table keyed by task identity."""
    def __init__(self, fail_schedule=False, fail_fallback=False, fail_cancel=False):
        super().__init__(tz=UTC, timeout=1)
        self.tasks = {}
        self.fallbacks = []
        self.cancels = 0
        self.fail_schedule = fail_schedule
        self.fail_fallback = fail_fallback
        self.fail_cancel = fail_cancel

    def find(self, task_id):
        return self.tasks.get(task_id)

    def schedule_reboot(self, at, forced=True):
        if self.fail_schedule:
            raise SchedulingFailure("schtasks unavailable")
        self.tasks[FORCED_REBOOT_TASK] = at

    def cancel_scheduled_reboot(self):
        self.cancels += 1
        if self.fail_cancel:
            raise SchedulingFailure("cancel failed")
        self.tasks.pop(FORCED_REBOOT_TASK, None)

    def schedule_maintenance_reboot(self, at):
        if self.fail_schedule:
            raise SchedulingFailure("schtasks unavailable")
        self.tasks[MAINTENANCE_REBOOT_TASK] = at

    def fallback_reboot(self, countdown_min):
        if self.fail_fallback:
            raise SchedulingFailure("shutdown unavailable")
        self.fallbacks.append(countdown_min)


def make_facts(uptime=1.0, session=True, user="alice"):
    """HostFacts with fixed answers; pass an exception instance to raise it."""
    def _sample():
        if isinstance(uptime, Exception):
            raise uptime
        return uptime

    def _session():
        if isinstance(session, Exception):
            raise session
        return session

    return HostFacts(sample_uptime=_sample, has_session=_session, session_user=lambda: user)


# ========
# FIXTURES
# ========
@pytest.fixture
def policy():
    return EscalationPolicy(
        stage1_days=2, stage2_days=4, stage3_days=6,
        reboot_countdown_min=20, fallback_countdown_min=5, maintenance_time=time(2, 0),
    )

@pytest.fixture
def clock():
    return FixedTimeService()

@pytest.fixture
def notifier():
    return FakeNotifier()

@pytest.fixture
def scheduler():
    return FakeScheduler()
