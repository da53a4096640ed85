import os
from datetime import date, datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import select

from payleave_api import create_app
from payleave_api.extensions import db
from payleave_api.common.errors import ValidationError
from payleave_api.models.employee import Employee
from payleave_api.models.attendance_punch import AttendancePunch
from payleave_api.models.weekly_off import WeeklyOffSetting
from payleave_api.models.leave import LeaveType
from payleave_api.services import leave_ledger
from payleave_api.services.absentee_audit import find_absences, run_absentee_audit


@pytest.fixture(scope="function")
def app():
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"
    app = create_app()
    with app.app_context():
        db.create_all()
        db.session.add_all([
            Employee(code="E1", first_name="Asha", last_name="Kulkarni", department="Engineering",
                     location="Pune", doj=date(2024, 1, 1)),
            Employee(code="E2", first_name="Rohan", department=None, doj=date(2024, 3, 6)),
            WeeklyOffSetting(employee_code="E1", days=["Sunday"]),
            WeeklyOffSetting(employee_code="E2", days=["Sunday"]),
            LeaveType(code="CL", name="Casual Leave"),
        ])
        # Mon 4 and Wed 6 punched, Tue 5 missing
        for day in (4, 6):
            db.session.add(AttendancePunch(employee_code="E1", ts=datetime(2024, 3, day, 9, 30), direction="in"))
            db.session.add(AttendancePunch(employee_code="E1", ts=datetime(2024, 3, day, 18, 0), direction="out"))
        db.session.commit()
        yield app
        db.session.remove()
        db.drop_all()


def test_single_missing_day_is_reported_once(app):
    items = run_absentee_audit("2024-03-04", "2024-03-06", employee_codes=["E1"])
    assert [i.to_dict() for i in items] == [{
        "employee_code": "E1",
        "employee_name": "Asha Kulkarni",
        "date": "2024-03-05",
        "day_name": "Tuesday",
        "department": "Engineering",
        "location": "Pune",
    }]


def test_regularizing_closes_the_gap(app):
    with leave_ledger.unit_of_work():
        leave_ledger.set_opening("E1", "CL", 2)

    leave_ledger.regularize_absence("E1", "2024-03-05", "CL")

    assert leave_ledger.get_balance("E1", "CL").remaining == Decimal("1")
    assert [a.date for a in leave_ledger.list_applications("E1")] == [date(2024, 3, 5)]
    assert run_absentee_audit("2024-03-04", "2024-03-06", employee_codes=["E1"]) == []


def test_weekly_off_is_not_an_absence(app):
    # Sun 10 is off, Sat 9 and Mon 11 have no punches
    items = run_absentee_audit("2024-03-09", "2024-03-11", employee_codes=["E1"])
    assert [i.date for i in items] == ["2024-03-09", "2024-03-11"]


def test_days_before_joining_are_skipped_and_defaults_fill_in(app):
    items = run_absentee_audit("2024-03-04", "2024-03-06", employee_codes=["E2"])
    assert [i.date for i in items] == ["2024-03-06"]
    assert items[0].department == "Unassigned"
    assert items[0].location == "Default"


def test_department_filter(app):
    items = run_absentee_audit("2024-03-05", "2024-03-06", department="Engineering")
    assert {i.employee_code for i in items} == {"E1"}


def test_bad_range_is_rejected(app):
    with pytest.raises(ValidationError):
        run_absentee_audit("2024-03-06", "2024-03-04")
    with pytest.raises(ValidationError):
        run_absentee_audit("yesterday", "2024-03-04")


def test_duplicate_roster_entries_are_reported_once():
    emp = SimpleNamespace(code="E1", full_name="Asha", department="", location=None, doj=None, dol=None)
    dates = [date(2024, 3, 5)]
    items = find_absences([emp, emp], dates, {}, {}, {})
    assert len(items) == 1
    assert items[0].department == "Unassigned"


def test_leaving_date_ends_the_audit():
    emp = SimpleNamespace(code="E9", full_name="Gone", department="HR", location="Mumbai",
                          doj=None, dol=date(2024, 3, 5))
    items = find_absences([emp], [date(2024, 3, 5), date(2024, 3, 6)], {}, {}, {})
    assert [i.date for i in items] == ["2024-03-05"]


def test_only_absent_days_can_be_regularized(app):
    with leave_ledger.unit_of_work():
        leave_ledger.set_opening("E1", "CL", 2)
        leave_ledger.set_opening("E2", "CL", 2)

    # Mon 4 has punches, Sun 3 is the weekly off, E2 joined on the 6th
    with pytest.raises(ValidationError, match="not an absence"):
        leave_ledger.regularize_absence("E1", "2024-03-04", "CL")
    with pytest.raises(ValidationError, match="not an absence"):
        leave_ledger.regularize_absence("E1", "2024-03-03", "CL")
    with pytest.raises(ValidationError, match="not an absence"):
        leave_ledger.regularize_absence("E2", "2024-03-05", "CL")

    assert leave_ledger.get_balance("E1", "CL").remaining == Decimal("2")
    assert leave_ledger.get_balance("E2", "CL").remaining == Decimal("2")
    assert leave_ledger.list_applications() == []


def test_aware_punch_counts_on_its_local_day(app):
    # 19:00 UTC on Mon 4 is 00:30 IST on Tue 5; 20:00 UTC on Fri 8 is 01:30 IST on Sat 9
    db.session.add(AttendancePunch(employee_code="E1", ts=datetime(2024, 3, 4, 19, 0, tzinfo=timezone.utc),
                                   direction="in"))
    db.session.add(AttendancePunch(employee_code="E1", ts=datetime(2024, 3, 8, 20, 0, tzinfo=timezone.utc),
                                   direction="in"))
    db.session.commit()

    assert run_absentee_audit("2024-03-05", "2024-03-05", employee_codes=["E1"]) == []
    items = run_absentee_audit("2024-03-08", "2024-03-09", employee_codes=["E1"])
    assert [i.date for i in items] == ["2024-03-08"]


def test_punches_load_back_as_utc(app):
    db.session.expire_all()
    first = db.session.execute(
        select(AttendancePunch).order_by(AttendancePunch.id.asc())
    ).scalars().first()
    # naive 09:30 is Asia/Kolkata civil time
    assert first.ts == datetime(2024, 3, 4, 4, 0, tzinfo=timezone.utc)
    assert first.ts.utcoffset().total_seconds() == 0
