# payleave_api/seed.py
"""Idempotent demo data behind `flask seed-demo`."""
from datetime import date, timedelta

from payleave_api.extensions import db
from payleave_api.models.employee import Employee
from payleave_api.models.weekly_off import WeeklyOffSetting
from payleave_api.models.leave import (
    LeaveType, LeaveRule, ALLOCATION_FIXED, ALLOCATION_WEEKLY_OFF_WORK,
)
from payleave_api.models.payroll import EarningComponent, DeductionComponent, EmployerAdditionalComponent

EARNINGS = [
    ("Basic Salary", 50, "Gross", None),
    ("House Rent Allowance", 40, "Basic", 9000),
    ("Conveyance", 1600, "Fixed", None),
    ("Special Allowance", None, "Gross", None),
]
DEDUCTIONS = [
    ("Provident Fund", 12, "Basic", 1800),
    ("ESI", 0.75, "Gross", None),
    ("Professional Tax", 200, "Fixed", None),
]
EMPLOYER = [
    ("Employer PF", 13, "Basic", 1950),
    ("Employer ESI", 3.25, "Gross", None),
]

LEAVE_TYPES = [
    ("CL", "Casual Leave", "All", False),
    ("SL", "Sick Leave", "All", False),
    ("ML", "Maternity Leave", "Female", False),
    ("CO", "Compensatory Off", "All", True),
]
LEAVE_RULES = [
    ("CL", 90, ALLOCATION_FIXED, 12),
    ("SL", 0, ALLOCATION_FIXED, 7),
    ("ML", 180, ALLOCATION_FIXED, 182),
    ("CO", 0, ALLOCATION_WEEKLY_OFF_WORK, 1),
]

ROSTER = [
    ("EMP-001", "Asha", "Kulkarni", "Engineering", "Pune", "Female", 400),
    ("EMP-002", "Rohan", "Mehta", "Engineering", "Pune", "Male", 30),
    ("EMP-003", "Neha", "Joshi", "HR", "Mumbai", "Female", 900),
]


def _ensure_components(model, rows):
    n = 0
    for i, (name, pct, based_on, cap) in enumerate(rows):
        if model.query.filter_by(name=name).first():
            continue
        db.session.add(model(
            name=name, calculation_percentage=pct, based_on=based_on,
            max_calculated_value=cap, sort_order=(i + 1) * 10,
        ))
        n += 1
    return n


def seed_demo_data(today: date = None):
    today = today or date.today()
    created = {"components": 0, "leave_types": 0, "leave_rules": 0, "employees": 0}

    created["components"] += _ensure_components(EarningComponent, EARNINGS)
    created["components"] += _ensure_components(DeductionComponent, DEDUCTIONS)
    created["components"] += _ensure_components(EmployerAdditionalComponent, EMPLOYER)

    for code, name, gender, is_co in LEAVE_TYPES:
        if not LeaveType.query.filter_by(code=code).first():
            db.session.add(LeaveType(code=code, name=name, gender_applicability=gender, is_comp_off=is_co))
            created["leave_types"] += 1
    db.session.flush()

    for code, elig, alloc, count in LEAVE_RULES:
        if not LeaveRule.query.filter_by(leave_type_code=code, allocation_type=alloc).first():
            db.session.add(LeaveRule(leave_type_code=code, eligibility_days=elig,
                                     allocation_type=alloc, allocated_count=count))
            created["leave_rules"] += 1

    for code, first, last, dept, loc, gender, tenure in ROSTER:
        if Employee.query.filter_by(code=code).first():
            continue
        db.session.add(Employee(code=code, first_name=first, last_name=last, department=dept,
                                location=loc, gender=gender, doj=today - timedelta(days=tenure)))
        db.session.add(WeeklyOffSetting(employee_code=code, days=["Sunday"], sandwich_rule=True))
        created["employees"] += 1

    db.session.commit()
    return created
