# payleave_api/services/absentee_audit.py
from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, AbstractSet

from flask import current_app
from sqlalchemy import select

from payleave_api.extensions import db
from payleave_api.common.errors import ValidationError
from payleave_api.models.employee import Employee
from payleave_api.models.attendance_punch import AttendancePunch
from payleave_api.models.weekly_off import WeeklyOffSetting
from payleave_api.models.leave import LeaveApplication
from payleave_api.services.calendar_utils import (
    as_date, iterate_local_dates, weekday_name, get_tz, build_work_map, punch_query_window,
)


@dataclass(frozen=True)
class AbsenceInstance:
    employee_code: str
    employee_name: str
    date: str
    day_name: str
    department: str
    location: str

    def to_dict(self):
        return asdict(self)


def find_absences(employees: Iterable, dates: List[date],
                  work_map: Mapping[str, AbstractSet[date]],
                  off_map: Mapping[str, AbstractSet[str]],
                  applied_map: Mapping[str, AbstractSet[date]]) -> List[AbsenceInstance]:
    """
    Absent = no punch, not a weekly off, and no leave application on record.
    Each (employee, date) is reported at most once per call, even when the
    roster lists an employee twice.
    """
    out: List[AbsenceInstance] = []
    seen = set()
    for emp in employees:
        worked = work_map.get(emp.code, ())
        offs = off_map.get(emp.code, ())
        applied = applied_map.get(emp.code, ())
        for d in dates:
            key = (emp.code, d)
            if key in seen:
                continue
            if emp.doj and d < emp.doj:
                continue
            if emp.dol and d > emp.dol:
                continue
            day_name = weekday_name(d)
            if d in worked or day_name in offs or d in applied:
                continue
            seen.add(key)
            out.append(AbsenceInstance(
                employee_code=emp.code,
                employee_name=emp.full_name,
                date=d.isoformat(),
                day_name=day_name,
                department=emp.department or "Unassigned",
                location=emp.location or "Default",
            ))
    return out


def _load_day_maps(codes: List[str], sd: date, ed: date, *, with_applications: bool = True):
    tz = get_tz(current_app.config.get("APP_TIMEZONE"))
    lo, hi = punch_query_window(sd, ed)
    punches = db.session.execute(
        select(AttendancePunch.employee_code, AttendancePunch.ts)
        .filter(AttendancePunch.employee_code.in_(codes), AttendancePunch.ts >= lo, AttendancePunch.ts < hi)
    ).all()
    work_map = build_work_map(punches, tz)

    off_map: Dict[str, AbstractSet[str]] = {
        s.employee_code: s.off_days
        for s in db.session.execute(
            select(WeeklyOffSetting).filter(WeeklyOffSetting.employee_code.in_(codes))
        ).scalars()
    }

    applied_map: Dict[str, set] = {}
    if with_applications:
        for code, d in db.session.execute(
            select(LeaveApplication.employee_code, LeaveApplication.date)
            .filter(LeaveApplication.employee_code.in_(codes),
                    LeaveApplication.date >= sd, LeaveApplication.date <= ed)
        ).all():
            applied_map.setdefault(code, set()).add(d)
    return work_map, off_map, applied_map


def run_absentee_audit(start, end, department: Optional[str] = None,
                       employee_codes: Optional[List[str]] = None) -> List[AbsenceInstance]:
    sd, ed = as_date(start, "start"), as_date(end, "end")
    if ed < sd:
        raise ValidationError("end cannot be before start")

    q = select(Employee).filter(Employee.status == "active").order_by(Employee.code.asc())
    if department:
        q = q.filter(Employee.department == department)
    if employee_codes:
        q = q.filter(Employee.code.in_(employee_codes))
    employees = db.session.execute(q).scalars().all()
    codes = [e.code for e in employees]
    if not codes:
        return []

    work_map, off_map, applied_map = _load_day_maps(codes, sd, ed)
    return find_absences(employees, iterate_local_dates(sd, ed), work_map, off_map, applied_map)


def is_unpunched_working_day(emp, day: date) -> bool:
    """No punch, not a weekly off, within employment. Leave on record is not consulted."""
    work_map, off_map, _ = _load_day_maps([emp.code], day, day, with_applications=False)
    return bool(find_absences([emp], [day], work_map, off_map, {}))
