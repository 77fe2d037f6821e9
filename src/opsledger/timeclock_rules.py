from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from .models import OvertimeThresholds

ROUNDING_INTERVALS = {
    "5min": 300,
    "6min": 360,
    "7min": 420,  # 7/8 rule
    "15min": 900,
}


@dataclass(frozen=True)
class TimeclockRules:
    rounding_mode: str = "none"
    break_deduction_enabled: bool = False
    break_deduction_after_hours: float = 6.0
    break_deduction_minutes: int = 30
    min_duration_enabled: bool = False
    min_duration_seconds: int = 60
    min_duration_action: str = "flag"  # flag or reject
    auto_approve_enabled: bool = False
    auto_approve_min_hours: float = 0.0
    auto_approve_max_hours: float = 12.0
    auto_approve_block_on_overtime: bool = True


@dataclass(frozen=True)
class BreakDeduction:
    deducted_seconds: int
    adjusted_duration: int


@dataclass(frozen=True)
class MinDurationCheck:
    passed: bool
    action: str  # pass, flag or reject


@dataclass(frozen=True)
class AutoApproveCheck:
    should_auto_approve: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class ClockOutResult:
    raw_duration: int
    final_duration: int
    break_deducted: int
    status: str
    flag_reason: Optional[str] = None
    auto_approved: bool = False
    rejected_note: Optional[str] = None


def apply_rounding(duration_seconds: int, mode: str) -> int:
    interval = ROUNDING_INTERVALS.get(mode)
    if not interval:
        return duration_seconds
    # half-up, so a duration exactly halfway between marks rounds forward
    return int(math.floor(duration_seconds / interval + 0.5)) * interval


def apply_break_deduction(duration_seconds: int, rules: TimeclockRules) -> BreakDeduction:
    if not rules.break_deduction_enabled:
        return BreakDeduction(deducted_seconds=0, adjusted_duration=duration_seconds)
    if duration_seconds <= rules.break_deduction_after_hours * 3600:
        return BreakDeduction(deducted_seconds=0, adjusted_duration=duration_seconds)
    deducted = rules.break_deduction_minutes * 60
    return BreakDeduction(deducted_seconds=deducted, adjusted_duration=max(0, duration_seconds - deducted))


def check_min_duration(duration_seconds: int, rules: TimeclockRules) -> MinDurationCheck:
    if not rules.min_duration_enabled or duration_seconds >= rules.min_duration_seconds:
        return MinDurationCheck(passed=True, action="pass")
    return MinDurationCheck(passed=False, action=rules.min_duration_action)


def check_auto_approve(
    duration_seconds: int,
    rules: TimeclockRules,
    thresholds: Optional[OvertimeThresholds] = None,
) -> AutoApproveCheck:
    if not rules.auto_approve_enabled:
        return AutoApproveCheck(False, "auto-approve disabled")

    hours = duration_seconds / 3600
    if hours < rules.auto_approve_min_hours:
        return AutoApproveCheck(False, "below minimum hours")
    if hours > rules.auto_approve_max_hours:
        return AutoApproveCheck(False, "exceeds maximum hours")

    if rules.auto_approve_block_on_overtime and thresholds is not None:
        daily = thresholds.daily_threshold_minutes
        if daily is not None and duration_seconds > daily * 60:
            return AutoApproveCheck(False, "triggers daily overtime")

    return AutoApproveCheck(True)


def process_clock_out(
    raw_duration_seconds: int,
    rules: TimeclockRules,
    thresholds: Optional[OvertimeThresholds] = None,
) -> ClockOutResult:
    """Break deduction, then rounding, then the minimum-duration and auto-approve checks."""

    deduction = apply_break_deduction(raw_duration_seconds, rules)
    final_duration = apply_rounding(deduction.adjusted_duration, rules.rounding_mode)

    flag_reason = None
    min_check = check_min_duration(final_duration, rules)
    if not min_check.passed:
        if min_check.action == "reject":
            return ClockOutResult(
                raw_duration=raw_duration_seconds,
                final_duration=final_duration,
                break_deducted=deduction.deducted_seconds,
                status="rejected",
                flag_reason="min_duration",
                rejected_note=(
                    f"Auto-rejected: duration ({round(final_duration / 60)}m) below minimum "
                    f"threshold ({round(rules.min_duration_seconds / 60)}m)"
                ),
            )
        flag_reason = "min_duration"

    status = "pending"
    auto_approved = False
    if flag_reason is None and check_auto_approve(final_duration, rules, thresholds).should_auto_approve:
        status = "approved"
        auto_approved = True

    return ClockOutResult(
        raw_duration=raw_duration_seconds,
        final_duration=final_duration,
        break_deducted=deduction.deducted_seconds,
        status=status,
        flag_reason=flag_reason,
        auto_approved=auto_approved,
    )
