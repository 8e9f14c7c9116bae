import math
import pytest
from datetime import timedelta

from uptime_enforcer.errors import ConfigurationError
from uptime_enforcer.escalation import EscalationEngine, Stage, is_compliant, target_stage
from uptime_enforcer.escalation_policy import EscalationPolicy

from conftest import NOW


THRESHOLDS = (2, 4, 6)


# ========
# FIXTURES
# ========
@pytest.fixture
def engine(policy):
    return EscalationEngine(policy)


# ==========================
# TEST GROUP: Target Stage
# ==========================
# Function: target_stage()
# ------------------------
@pytest.mark.parametrize(
    "uptime_days, expected_stage",
    [
        # ✅ Under t1 → nominal
        (0.0, Stage.NOMINAL),
        (1.99, Stage.NOMINAL),

        # ✅ Exact thresholds resolve to the higher stage
        (2.0, Stage.REMINDER),
        (4.0, Stage.URGENT),
        (6.0, Stage.FINAL),

        # ✅ Inside brackets
        (3.0, Stage.REMINDER),
        (5.5, Stage.URGENT),
        (30.0, Stage.FINAL),
    ],
)
def test_target_stage(uptime_days, expected_stage):
    """Verify the highest reached threshold wins"""
    assert target_stage(uptime_days, THRESHOLDS) == expected_stage


# ========================
# TEST GROUP: Compliance
# ========================
# Function: is_compliant()
# ------------------------
@pytest.mark.parametrize(
    "uptime_days, session_present, expected_result",
    [
        # ✅ Under t1 → compliant regardless of session
        (1.5, True, True),
        (1.5, False, True),

        # ❌ Over t1 with someone present → non-compliant
        (3.0, True, False),
        (9.0, True, False),

        # ✅ Nobody present → always compliant
        (3.0, False, True),
        (9.0, False, True),
    ],
)
def test_is_compliant(uptime_days, session_present, expected_result):
    assert is_compliant(uptime_days, session_present, THRESHOLDS) is expected_result


@pytest.mark.parametrize("uptime_days", [0.0, 0.5, 1.0, 1.999])
@pytest.mark.parametrize("session_present", [True, False])
@pytest.mark.parametrize("current_stage", [0, 1, 2, 3])
def test_below_first_threshold_is_nominal_and_compliant(engine, uptime_days, session_present, current_stage):
    """Any uptime under t1 → target 0 and compliant, whatever else is true"""
    decision = engine.decide(uptime_days, session_present, current_stage, NOW)

    assert decision.target_stage == Stage.NOMINAL
    assert decision.compliant is True
    assert decision.notify_stage is None


# ================================
# TEST GROUP: Decision Scenarios
# ================================
# Function: EscalationEngine.decide()
# -----------------------------------
def test_decide_fresh_host_no_action(engine):
    """uptime 1.5, stage 0, session → nothing to do"""
    decision = engine.decide(1.5, True, 0, NOW)

    assert decision.target_stage == Stage.NOMINAL
    assert decision.compliant is True
    assert not decision.has_action
    assert decision.reset is False


def test_decide_first_reminder(engine):
    """uptime 3.0, stage 0, session → show stage-1, advance to 1"""
    decision = engine.decide(3.0, True, 0, NOW)

    assert decision.target_stage == Stage.REMINDER
    assert decision.compliant is False
    assert decision.notify_stage == Stage.REMINDER
    assert decision.new_stage == Stage.REMINDER
    assert decision.schedule_reboot_at is None
    assert decision.label == "notify:REMINDER"


def test_decide_final_warning_schedules_reboot(engine):
    """uptime 6.5, stage 2, session → final warning + reboot at now+20min"""
    decision = engine.decide(6.5, True, 2, NOW)

    assert decision.target_stage == Stage.FINAL
    assert decision.notify_stage == Stage.FINAL
    assert decision.new_stage == Stage.FINAL
    assert decision.schedule_reboot_at == NOW + timedelta(minutes=20)
    assert decision.label == "notify:FINAL+reboot"


def test_decide_already_final_no_new_action(engine):
    """uptime 6.5, stage 3, session → already escalated"""
    decision = engine.decide(6.5, True, 3, NOW)

    assert decision.target_stage == Stage.FINAL
    assert decision.compliant is False
    assert not decision.has_action
    assert decision.schedule_reboot_at is None


def test_decide_reset_after_reboot(engine):
    """uptime 1.0, stage 3, session → clear stage, cancel reboot"""
    decision = engine.decide(1.0, True, 3, NOW)

    assert decision.target_stage == Stage.NOMINAL
    assert decision.reset is True
    assert decision.has_action
    assert decision.label == "reset"


def test_decide_reset_without_session(engine):
    """Reset is a lifecycle rule; it does not need anyone logged on"""
    assert engine.decide(0.2, False, 2, NOW).reset is True


def test_decide_skipping_stages_notifies_highest(engine):
    """A host first seen at 7 days goes straight to FINAL"""
    decision = engine.decide(7.0, True, 0, NOW)

    assert decision.notify_stage == Stage.FINAL
    assert decision.schedule_reboot_at is not None


def test_decide_no_session_never_notifies(engine):
    for uptime in (3.0, 5.0, 9.0):
        decision = engine.decide(uptime, False, 0, NOW)
        assert decision.notify_stage is None
        assert decision.compliant is True


@pytest.mark.parametrize(
    "uptime_days, current_stage",
    [
        (3.0, 1),
        (5.0, 2),
        (9.0, 3),
        # ✅ Recorded stage above target (thresholds changed) → no action either
        (3.0, 2),
    ],
)
def test_decide_idempotent_once_stage_matches(engine, uptime_days, current_stage):
    """Repeated calls with unchanged inputs after advancing → no action"""
    for _ in range(3):
        decision = engine.decide(uptime_days, True, current_stage, NOW)
        assert not decision.has_action


def test_stage_monotonic_while_uptime_rises(engine):
    """Applying decisions over rising uptime never lowers the stage"""
    stage = 0
    seen = []
    uptime = 0.0
    while uptime < 10:
        decision = engine.decide(uptime, True, stage, NOW)
        if decision.new_stage is not None:
            stage = decision.new_stage
        seen.append(stage)
        uptime += 0.25

    assert seen == sorted(seen)
    assert seen[-1] == Stage.FINAL

    # Uptime drops under t1 → the only way back
    decision = engine.decide(0.1, True, stage, NOW)
    assert decision.reset is True


def test_reboot_scheduled_only_on_entering_final(engine):
    scheduled = [
        engine.decide(6.5, True, stage, NOW).schedule_reboot_at is not None
        for stage in (0, 1, 2, 3)
    ]
    assert scheduled == [True, True, True, False]


@pytest.mark.parametrize("bad_uptime", [-0.1, math.nan])
def test_decide_rejects_invalid_sample(engine, bad_uptime):
    with pytest.raises(ValueError):
        engine.decide(bad_uptime, True, 0, NOW)


def test_decide_rejects_unknown_stage(engine):
    with pytest.raises(ValueError):
        engine.decide(3.0, True, 7, NOW)


def test_custom_policy_changes_brackets():
    """Different policies can coexist in one process"""
    strict = EscalationEngine(EscalationPolicy(stage1_days=0.5, stage2_days=1, stage3_days=1.5,
                                               reboot_countdown_min=5))
    lenient = EscalationEngine(EscalationPolicy())

    assert strict.decide(1.6, True, 0, NOW).schedule_reboot_at == NOW + timedelta(minutes=5)
    assert lenient.decide(1.6, True, 0, NOW).target_stage == Stage.NOMINAL


# ==========================
# TEST GROUP: Policy Checks
# ==========================
# Function: EscalationPolicy.validate()
# -------------------------------------
@pytest.mark.parametrize(
    "kwargs, should_raise_error",
    [
        # ✅ Defaults
        ({}, False),

        # ❌ Thresholds not strictly increasing
        ({"stage1_days": 4, "stage2_days": 4}, True),
        ({"stage2_days": 7}, True),

        # ❌ Zero first threshold
        ({"stage1_days": 0}, True),

        # ❌ Non-positive countdown
        ({"reboot_countdown_min": 0}, True),

        # ✅ Fallback may match the countdown
        ({"reboot_countdown_min": 5, "fallback_countdown_min": 5}, False),

        # ❌ Fallback longer than the countdown
        ({"reboot_countdown_min": 5, "fallback_countdown_min": 10}, True),

        # ❌ Non-positive fallback
        ({"fallback_countdown_min": 0}, True),
    ],
)
def test_policy_validate(kwargs, should_raise_error):
    policy = EscalationPolicy(**kwargs)

    if should_raise_error:
        with pytest.raises(ConfigurationError):
            policy.validate()
    else:
        assert policy.validate() is policy


def test_policy_summary():
    summary = EscalationPolicy().summary()

    assert summary["stage3_days"] == 6.0
    assert summary["reboot_countdown_min"] == 20
    assert summary["fallback_countdown_min"] == 5
    assert summary["maintenance_time"] == "02:00"
