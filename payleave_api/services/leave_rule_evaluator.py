# payleave_api/services/leave_rule_evaluator.py
"""
Opening-balance contribution of each leave rule for one employee.

Pure: callers hand in the employee, the active rules, and the work history
(punched local dates + weekly-off calendar); the result is
{leave_type_code: opening} ready for the ledger write.
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import AbstractSet, Dict, Iterable, Mapping, Optional, Tuple

from payleave_api.models.leave import (
    ALLOCATION_FIXED, ALLOCATION_WORKING_DAYS, ALLOCATION_WEEKLY_OFF_WORK,
    SCOPE_GLOBAL, SCOPE_DEPARTMENT, SCOPE_EMPLOYEES,
)
from payleave_api.services.comp_off import WeeklyOff, detect_comp_off
from payleave_api.services.salary_calculator import to_decimal

log = logging.getLogger(__name__)

MERGE_OVERWRITE = "overwrite"
MERGE_SUM = "sum"
MERGE_MODES = (MERGE_OVERWRITE, MERGE_SUM)


def days_employed(doj: Optional[date], today: date) -> int:
    if doj is None:
        return 0
    return (today - doj).days


def split_scope(scope_value) -> Tuple[str, ...]:
    if not scope_value:
        return ()
    return tuple(s.strip() for s in str(scope_value).split(",") if s.strip())


def scope_matches(rule, employee) -> bool:
    scope = rule.eligibility_scope or SCOPE_GLOBAL
    if scope == SCOPE_GLOBAL:
        return True
    if scope == SCOPE_DEPARTMENT:
        return (employee.department or "") in split_scope(rule.scope_value)
    if scope == SCOPE_EMPLOYEES:
        return employee.code in split_scope(rule.scope_value)
    return False


def gender_applies(leave_type, employee) -> bool:
    """Unknown gender on either side never excludes."""
    wanted = (getattr(leave_type, "gender_applicability", None) or "All").strip().lower()
    if wanted == "all":
        return True
    have = (getattr(employee, "gender", None) or "").strip().lower()
    return not have or have == wanted


def evaluate_rule(rule, employee, today: date, *,
                  work_dates: AbstractSet[date] = frozenset(),
                  weekly_off: Optional[WeeklyOff] = None,
                  window: Optional[Tuple[date, date]] = None,
                  worked_days: Optional[int] = None) -> Optional[Decimal]:
    """
    Contribution of a single rule, or None when the rule does not apply.

    `worked_days` is only consulted for "Working Days Based" rules, and only
    when the caller passes it (min_working_days enforcement is opt-in).
    """
    if days_employed(employee.doj, today) < int(rule.eligibility_days or 0):
        return None
    if not scope_matches(rule, employee):
        return None

    allocated = to_decimal(rule.allocated_count)

    if rule.allocation_type in (ALLOCATION_FIXED, ALLOCATION_WORKING_DAYS):
        if (rule.allocation_type == ALLOCATION_WORKING_DAYS and worked_days is not None
                and worked_days < int(rule.min_working_days or 0)):
            return None
        return allocated

    if rule.allocation_type == ALLOCATION_WEEKLY_OFF_WORK:
        if weekly_off is None or window is None:
            return Decimal("0")
        earned = detect_comp_off(work_dates, weekly_off, window[0], window[1], as_of=today).count
        multiplier = allocated if allocated > 0 else Decimal("1")
        return Decimal(earned) * multiplier

    log.warning("leave rule %s has unknown allocation_type %r", getattr(rule, "id", None), rule.allocation_type)
    return None


def evaluate_rules(employee, rules: Iterable, today: date, *,
                   leave_types: Optional[Mapping[str, object]] = None,
                   work_dates: AbstractSet[date] = frozenset(),
                   weekly_off: Optional[WeeklyOff] = None,
                   window: Optional[Tuple[date, date]] = None,
                   worked_days: Optional[int] = None,
                   merge_mode: str = MERGE_OVERWRITE) -> Dict[str, Decimal]:
    """
    {leave_type_code: opening} for every leave type some rule wrote to.

    A rule writes when its contribution is positive, or always for
    "Work on Weekly Off" rules (so earned comp-off can drop back to zero).
    Several rules on one leave type: last write wins, or sum with MERGE_SUM.
    """
    if merge_mode not in MERGE_MODES:
        raise ValueError(f"merge_mode must be one of {MERGE_MODES}, got {merge_mode!r}")

    out: Dict[str, Decimal] = {}
    for rule in rules:
        if leave_types is not None:
            lt = leave_types.get(rule.leave_type_code)
            if lt is None:
                log.warning("leave rule %s references unknown/inactive leave type %r",
                            getattr(rule, "id", None), rule.leave_type_code)
                continue
            if not gender_applies(lt, employee):
                continue

        amount = evaluate_rule(rule, employee, today, work_dates=work_dates,
                               weekly_off=weekly_off, window=window, worked_days=worked_days)
        if amount is None:
            continue
        if amount <= 0 and rule.allocation_type != ALLOCATION_WEEKLY_OFF_WORK:
            continue

        code = rule.leave_type_code
        if merge_mode == MERGE_SUM and code in out:
            out[code] += amount
        else:
            out[code] = amount
    return out
