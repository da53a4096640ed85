# payleave_api/services/leave_ledger.py
"""
Leave ledger: the one place LeaveBalance / LeaveApplication / LeaveRequest rows
are written.

Every balance mutation is a single conditional UPDATE whose WHERE clause
carries the invariant (remaining >= amount for debits, used <= opening for
opening resets). Two concurrent writers can both read a stale balance, but
only one of their UPDATEs can match; the loser gets rowcount 0 and raises
InsufficientBalanceError with nothing written.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update

from payleave_api.extensions import db
from payleave_api.common.errors import (
    ValidationError, NotFoundError, InsufficientBalanceError, InvalidTransitionError,
)
from payleave_api.common.http import parse_date
from payleave_api.models.employee import Employee
from payleave_api.models.leave import (
    LeaveType, LeaveBalance, LeaveApplication, LeaveRequest, LeaveApprovalAction,
    REQUEST_PENDING, REQUEST_APPROVED, REQUEST_REJECTED,
)
from payleave_api.services.absentee_audit import is_unpunched_working_day
from payleave_api.services.calendar_utils import iterate_local_dates
from payleave_api.services.salary_calculator import to_decimal

log = logging.getLogger(__name__)


@contextmanager
def unit_of_work():
    """Commit on success; roll everything back on any error and re-raise."""
    try:
        yield
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


# ---------- dialect helpers ----------

def _dialect_insert(model):
    name = db.session.get_bind().dialect.name
    if name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        return None
    return insert(model)


def _insert_ignore(model, values: dict, keys: list):
    """INSERT ... ON CONFLICT DO NOTHING; plain check-then-insert elsewhere."""
    stmt = _dialect_insert(model)
    if stmt is not None:
        db.session.execute(stmt.values(**values).on_conflict_do_nothing(index_elements=keys))
        return
    exists = db.session.execute(
        select(model).filter_by(**{k: values[k] for k in keys})
    ).scalar_one_or_none()
    if exists is None:
        db.session.add(model(**values))
        db.session.flush()


def _fresh(stmt):
    return db.session.execute(stmt.execution_options(populate_existing=True)).scalar_one_or_none()


# ---------- reads ----------

def get_balance(employee_code: str, leave_type: str) -> Optional[LeaveBalance]:
    return _fresh(select(LeaveBalance).filter_by(employee_code=employee_code, leave_type=leave_type))


def list_balances(employee_code: Optional[str] = None):
    q = select(LeaveBalance).order_by(LeaveBalance.employee_code.asc(), LeaveBalance.leave_type.asc())
    if employee_code:
        q = q.filter(LeaveBalance.employee_code == employee_code)
    return db.session.execute(q).scalars().all()


def require_employee(employee_code: str) -> Employee:
    if not employee_code:
        raise ValidationError("employee_code is required")
    emp = db.session.execute(select(Employee).filter_by(code=employee_code)).scalar_one_or_none()
    if emp is None:
        raise NotFoundError(f"employee {employee_code!r} not found")
    return emp


def require_leave_type(code: str) -> LeaveType:
    if not code:
        raise ValidationError("leave_type is required")
    lt = db.session.execute(select(LeaveType).filter_by(code=code)).scalar_one_or_none()
    if lt is None or lt.status != "active":
        raise NotFoundError(f"leave type {code!r} not found")
    return lt


def _positive_days(days) -> Decimal:
    d = to_decimal(days, default=None)
    if d is None or d <= 0:
        raise ValidationError(f"days must be a positive number, got {days!r}")
    return d


# ---------- balance primitives (caller owns the transaction) ----------

def set_opening(employee_code: str, leave_type: str, opening, employee_name: Optional[str] = None) -> LeaveBalance:
    """
    Upsert the opening figure: remaining = opening - used.
    Fails when `used` already exceeds the new opening.
    """
    o = to_decimal(opening, default=None)
    if o is None or o < 0:
        raise ValidationError(f"opening must be a non-negative number, got {opening!r}")

    now = datetime.utcnow()
    _insert_ignore(
        LeaveBalance,
        {"employee_code": employee_code, "leave_type": leave_type, "employee_name": employee_name,
         "opening": 0, "used": 0, "remaining": 0, "updated_at": now},
        ["employee_code", "leave_type"],
    )

    values = {"opening": o, "remaining": o - LeaveBalance.used, "updated_at": now}
    if employee_name:
        values["employee_name"] = employee_name
    res = db.session.execute(
        update(LeaveBalance)
        .where(LeaveBalance.employee_code == employee_code,
               LeaveBalance.leave_type == leave_type,
               LeaveBalance.used <= o)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    bal = get_balance(employee_code, leave_type)
    if res.rowcount != 1:
        raise InsufficientBalanceError(remaining=o, requested=bal.used if bal else 0, leave_type=leave_type)
    return bal


def debit(employee_code: str, leave_type: str, days) -> LeaveBalance:
    """used += days, remaining -= days, only if remaining >= days."""
    d = _positive_days(days)
    res = db.session.execute(
        update(LeaveBalance)
        .where(LeaveBalance.employee_code == employee_code,
               LeaveBalance.leave_type == leave_type,
               LeaveBalance.remaining >= d)
        .values(used=LeaveBalance.used + d,
                remaining=LeaveBalance.remaining - d,
                updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    bal = get_balance(employee_code, leave_type)
    if res.rowcount != 1:
        raise InsufficientBalanceError(remaining=bal.remaining if bal else 0, requested=d, leave_type=leave_type)
    return bal


def upsert_application(employee_code: str, day: date, leave_type: str, *,
                       source: str = "request", leave_request_id: Optional[int] = None) -> LeaveApplication:
    app = _fresh(select(LeaveApplication).filter_by(employee_code=employee_code, date=day))
    if app is None:
        app = LeaveApplication(employee_code=employee_code, date=day, leave_type=leave_type,
                               source=source, leave_request_id=leave_request_id)
        db.session.add(app)
    else:
        app.leave_type = leave_type
        app.source = source
        app.leave_request_id = leave_request_id
    db.session.flush()
    return app


def list_applications(employee_code: Optional[str] = None, start: Optional[date] = None, end: Optional[date] = None):
    q = select(LeaveApplication).order_by(LeaveApplication.date.asc(), LeaveApplication.employee_code.asc())
    if employee_code:
        q = q.filter(LeaveApplication.employee_code == employee_code)
    if start:
        q = q.filter(LeaveApplication.date >= start)
    if end:
        q = q.filter(LeaveApplication.date <= end)
    return db.session.execute(q).scalars().all()


# ---------- absence → leave ----------

def regularize_absence(employee_code: str, day, leave_type: str) -> LeaveApplication:
    """
    Convert one absent day into leave: debit exactly 1 day and record the
    application. Re-running for an already-converted day is a no-op.
    """
    d = parse_date(day, "date")
    emp = require_employee(employee_code)
    require_leave_type(leave_type)

    with unit_of_work():
        existing = _fresh(select(LeaveApplication).filter_by(employee_code=emp.code, date=d))
        if existing is not None:
            if existing.leave_type == leave_type:
                return existing
            raise ValidationError(
                f"{d.isoformat()} is already covered by {existing.leave_type} leave for {emp.code}"
            )
        if not is_unpunched_working_day(emp, d):
            raise ValidationError(f"{d.isoformat()} is not an absence for {emp.code}")
        debit(emp.code, leave_type, 1)
        app = upsert_application(emp.code, d, leave_type, source="regularize")
    log.info("regularized absence %s on %s as %s", emp.code, d.isoformat(), leave_type)
    return app


# ---------- leave request workflow ----------

def _log_action(lr_id: int, action: str, actor: Optional[str], comment: Optional[str] = None):
    db.session.add(LeaveApprovalAction(
        leave_request_id=lr_id, action=action, comment=comment,
        acted_by=actor, acted_at=datetime.utcnow(),
    ))


def submit_request(employee_code: str, leave_type: str, start_date, end_date,
                   reason: Optional[str] = None, actor: Optional[str] = None) -> LeaveRequest:
    emp = require_employee(employee_code)
    require_leave_type(leave_type)
    sd = parse_date(start_date, "start_date")
    ed = parse_date(end_date, "end_date")
    if ed < sd:
        raise ValidationError("end_date cannot be before start_date")
    total = Decimal((ed - sd).days + 1)

    # advisory only; approval re-checks atomically
    bal = get_balance(emp.code, leave_type)
    remaining = bal.remaining if bal else Decimal("0")
    if remaining < total:
        raise InsufficientBalanceError(remaining=remaining, requested=total, leave_type=leave_type)

    with unit_of_work():
        lr = LeaveRequest(
            employee_code=emp.code,
            employee_name=emp.full_name,
            leave_type=leave_type,
            start_date=sd,
            end_date=ed,
            total_days=total,
            reason=reason,
            status=REQUEST_PENDING,
        )
        db.session.add(lr)
        db.session.flush()
        _log_action(lr.id, "applied", actor)
    return lr


def _transition_from_pending(request_id: int, new_status: str, **extra) -> LeaveRequest:
    """Compare-and-set Pending → new_status; exactly one caller can win."""
    now = datetime.utcnow()
    res = db.session.execute(
        update(LeaveRequest)
        .where(LeaveRequest.id == request_id, LeaveRequest.status == REQUEST_PENDING)
        .values(status=new_status, decided_at=now, updated_at=now, **extra)
        .execution_options(synchronize_session=False)
    )
    lr = _fresh(select(LeaveRequest).filter_by(id=request_id))
    if lr is None:
        raise NotFoundError(f"leave request {request_id} not found")
    if res.rowcount != 1:
        raise InvalidTransitionError(
            f"cannot move leave request {request_id} from {lr.status} to {new_status}",
            {"status": lr.status},
        )
    return lr


def approve_request(request_id: int, actor: Optional[str] = None) -> LeaveRequest:
    with unit_of_work():
        lr = _transition_from_pending(request_id, REQUEST_APPROVED)
        covered = list_applications(lr.employee_code, lr.start_date, lr.end_date)
        if covered:
            raise ValidationError(
                f"leave already recorded for {lr.employee_code} on "
                + ", ".join(f"{a.date.isoformat()} ({a.leave_type})" for a in covered),
                {"dates": [a.date.isoformat() for a in covered]},
            )
        debit(lr.employee_code, lr.leave_type, lr.total_days)
        for d in iterate_local_dates(lr.start_date, lr.end_date):
            upsert_application(lr.employee_code, d, lr.leave_type, source="request", leave_request_id=lr.id)
        _log_action(lr.id, "approved", actor)
    log.info("approved leave request %s (%s, %s days)", lr.id, lr.employee_code, lr.total_days)
    return lr


def reject_request(request_id: int, reason: Optional[str] = None, actor: Optional[str] = None) -> LeaveRequest:
    with unit_of_work():
        lr = _transition_from_pending(request_id, REQUEST_REJECTED, rejection_reason=reason)
        _log_action(lr.id, "rejected", actor, comment=reason)
    return lr


def list_requests(employee_code: Optional[str] = None, status: Optional[str] = None,
                  start: Optional[date] = None, end: Optional[date] = None):
    q = select(LeaveRequest).order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc())
    if employee_code:
        q = q.filter(LeaveRequest.employee_code == employee_code)
    if status:
        q = q.filter(LeaveRequest.status == status)
    if start:
        q = q.filter(LeaveRequest.start_date >= start)
    if end:
        q = q.filter(LeaveRequest.start_date <= end)
    return db.session.execute(q).scalars().all()
