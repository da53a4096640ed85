# payleave_api/services/leave_accrual_service.py
from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from payleave_api.extensions import db
from payleave_api.common.errors import APIError, ValidationError
from payleave_api.models.employee import Employee
from payleave_api.models.attendance_punch import AttendancePunch
from payleave_api.models.weekly_off import WeeklyOffSetting
from payleave_api.models.leave import LeaveRule, LeaveType
from payleave_api.services.calendar_utils import (
    as_date, get_tz, local_today, build_work_map, punch_query_window,
)
from payleave_api.services.comp_off import WeeklyOff, detect_comp_off
from payleave_api.services.leave_rule_evaluator import evaluate_rules
from payleave_api.services import leave_ledger

log = logging.getLogger(__name__)

# neighbours of off days at the window edges need punches from outside it
_SANDWICH_MARGIN = timedelta(days=7)


def _tz():
    return get_tz(current_app.config.get("APP_TIMEZONE"))


def today_local() -> date:
    return local_today(_tz())


def comp_off_window(today: date, period_start=None, period_end=None) -> Tuple[date, date]:
    """Caller-specified pay period, else the trailing lookback ending today."""
    if period_start or period_end:
        if not (period_start and period_end):
            raise ValidationError("period_start and period_end must be given together")
        start, end = as_date(period_start, "period_start"), as_date(period_end, "period_end")
        if end < start:
            raise ValidationError("period_end cannot be before period_start")
        return start, end
    days = int(current_app.config.get("LEAVE_COMP_OFF_LOOKBACK_DAYS", 90))
    return today - timedelta(days=days - 1), today


def _load_work_map(codes: List[str], start: date, end: date):
    lo, hi = punch_query_window(start - _SANDWICH_MARGIN, end + _SANDWICH_MARGIN)
    rows = db.session.execute(
        select(AttendancePunch.employee_code, AttendancePunch.ts)
        .filter(AttendancePunch.employee_code.in_(codes), AttendancePunch.ts >= lo, AttendancePunch.ts < hi)
    ).all()
    return build_work_map(rows, _tz())


def _load_weekly_offs(codes: List[str]) -> Dict[str, WeeklyOff]:
    rows = db.session.execute(
        select(WeeklyOffSetting).filter(WeeklyOffSetting.employee_code.in_(codes))
    ).scalars()
    return {r.employee_code: WeeklyOff.from_setting(r) for r in rows}


def load_rule_catalog():
    rules = db.session.execute(
        select(LeaveRule).filter(LeaveRule.status == "active").order_by(LeaveRule.id.asc())
    ).scalars().all()
    leave_types = {
        lt.code: lt
        for lt in db.session.execute(select(LeaveType).filter(LeaveType.status == "active")).scalars()
    }
    return rules, leave_types


def preview_comp_off(employee_code: str, start=None, end=None, today: Optional[date] = None):
    emp = leave_ledger.require_employee(employee_code)
    today = today or today_local()
    sd, ed = comp_off_window(today, start, end)
    work_map = _load_work_map([emp.code], sd, ed)
    weekly_off = _load_weekly_offs([emp.code]).get(emp.code, WeeklyOff())
    res = detect_comp_off(work_map.get(emp.code, set()), weekly_off, sd, ed, as_of=today)
    data = res.to_dict()
    data.update({
        "employee_code": emp.code,
        "start": sd.isoformat(),
        "end": ed.isoformat(),
        "off_days": sorted(weekly_off.off_days),
        "sandwich_rule": weekly_off.sandwich_rule,
    })
    return data


def credit_employee(emp: Employee, rules, leave_types, *, work_dates, weekly_off,
                    window: Tuple[date, date], today: date) -> Dict[str, float]:
    """Evaluate every rule for one employee and write the openings in one transaction."""
    worked_days = None
    if current_app.config.get("LEAVE_ENFORCE_MIN_WORKING_DAYS"):
        worked_days = sum(1 for d in work_dates if window[0] <= d <= window[1])

    contributions = evaluate_rules(
        emp, rules, today,
        leave_types=leave_types,
        work_dates=work_dates,
        weekly_off=weekly_off,
        window=window,
        worked_days=worked_days,
        merge_mode=current_app.config.get("LEAVE_RULE_MERGE_MODE", "overwrite"),
    )
    with leave_ledger.unit_of_work():
        for code, opening in contributions.items():
            leave_ledger.set_opening(emp.code, code, opening, employee_name=emp.full_name)
    return {code: float(v) for code, v in contributions.items()}


def sync_roster_balances(employee_codes: Optional[List[str]] = None, period_start=None, period_end=None,
                         today: Optional[date] = None, stop_event=None):
    """
    Roster-wide auto-credit. Each employee is its own transaction: a failure
    is reported and the batch moves on; `stop_event` aborts between employees.
    """
    today = today or today_local()
    window = comp_off_window(today, period_start, period_end)

    q = select(Employee).filter(Employee.status == "active").order_by(Employee.code.asc())
    if employee_codes:
        q = q.filter(Employee.code.in_(employee_codes))
    employees = db.session.execute(q).scalars().all()
    codes = [e.code for e in employees]

    rules, leave_types = load_rule_catalog()
    work_map = _load_work_map(codes, *window) if codes else {}
    offs = _load_weekly_offs(codes) if codes else {}

    processed, updated, errors = 0, 0, []
    aborted = False
    for emp in employees:
        if stop_event is not None and stop_event.is_set():
            aborted = True
            break
        try:
            credited = credit_employee(
                emp, rules, leave_types,
                work_dates=work_map.get(emp.code, set()),
                weekly_off=offs.get(emp.code),
                window=window,
                today=today,
            )
        except APIError as e:
            log.warning("auto-credit skipped %s: %s", emp.code, e.message)
            errors.append({"employee_code": emp.code, "code": e.code, "message": e.message})
            continue
        except SQLAlchemyError as e:
            log.exception("auto-credit failed for %s", emp.code)
            errors.append({"employee_code": emp.code, "code": "DB_ERROR", "message": str(getattr(e, "orig", None) or e)})
            continue
        processed += 1
        updated += len(credited)

    log.info("auto-credit: %s employees, %s balances, %s errors%s",
             processed, updated, len(errors), " (aborted)" if aborted else "")
    return {
        "window": {"start": window[0].isoformat(), "end": window[1].isoformat()},
        "employees_processed": processed,
        "balances_updated": updated,
        "errors": errors,
        "aborted": aborted,
    }
