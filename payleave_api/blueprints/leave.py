from flask import Blueprint, request
from flask_jwt_extended import jwt_required
from sqlalchemy import select

from payleave_api.extensions import db
from payleave_api.common.auth import requires_roles, current_actor
from payleave_api.common.http import ok, parse_date, csv_arg
from payleave_api.common.errors import ValidationError
from payleave_api.models.leave import LeaveApprovalAction, REQUEST_PENDING, REQUEST_APPROVED, REQUEST_REJECTED
from payleave_api.services import leave_ledger, leave_accrual_service
from payleave_api.services.absentee_audit import run_absentee_audit

bp = Blueprint("leave", __name__, url_prefix="/api/v1/leave")

_STATUSES = (REQUEST_PENDING, REQUEST_APPROVED, REQUEST_REJECTED)


def _opt_date(name):
    raw = request.args.get(name)
    return parse_date(raw, name) if raw else None


# ---------- Balances ----------
@bp.get("/balances")
@jwt_required()
def get_balances():
    code = request.args.get("employee_code")
    rows = leave_ledger.list_balances(code)
    return _list([r.to_dict() for r in rows])


@bp.post("/balances/sync")
@requires_roles("hr", "payroll")
def sync_balances():
    """Roster-wide (or selected employees) rule evaluation and opening reset."""
    d = request.get_json(silent=True) or {}
    res = leave_accrual_service.sync_roster_balances(
        employee_codes=csv_arg(d.get("employee_codes")),
        period_start=d.get("period_start"),
        period_end=d.get("period_end"),
    )
    return ok(res)


@bp.get("/comp-off")
@requires_roles("hr", "payroll")
def comp_off_preview():
    code = request.args.get("employee_code")
    if not code:
        raise ValidationError("employee_code is required")
    data = leave_accrual_service.preview_comp_off(
        code, request.args.get("start"), request.args.get("end"),
    )
    return ok(data)


# ---------- Absentee audit ----------
@bp.get("/absentees")
@requires_roles("hr", "payroll")
def absentees():
    start, end = request.args.get("start"), request.args.get("end")
    if not (start and end):
        raise ValidationError("start and end are required")
    items = run_absentee_audit(
        start, end,
        department=request.args.get("department") or None,
        employee_codes=csv_arg(request.args.get("employee_codes")),
    )
    return _list([a.to_dict() for a in items])


@bp.post("/absentees/regularize")
@requires_roles("hr", "payroll")
def regularize():
    d = request.get_json(silent=True) or {}
    la = leave_ledger.regularize_absence(d.get("employee_code"), d.get("date"), d.get("leave_type"))
    bal = leave_ledger.get_balance(la.employee_code, la.leave_type)
    return ok({"application": la.to_dict(), "balance": bal.to_dict() if bal else None})


# ---------- Requests ----------
@bp.post("/requests")
@jwt_required()
def apply_leave():
    d = request.get_json(silent=True) or {}
    lr = leave_ledger.submit_request(
        d.get("employee_code"), d.get("leave_type"),
        d.get("start_date"), d.get("end_date"),
        reason=d.get("reason"), actor=current_actor(),
    )
    return ok(lr.to_dict(), status=201)


@bp.get("/requests")
@jwt_required()
def list_requests():
    status = request.args.get("status")
    if status and status not in _STATUSES:
        raise ValidationError(f"status must be one of {', '.join(_STATUSES)}")
    rows = leave_ledger.list_requests(
        employee_code=request.args.get("employee_code"),
        status=status,
        start=_opt_date("start"),
        end=_opt_date("end"),
    )
    return _list([r.to_dict() for r in rows])


@bp.get("/requests/<int:request_id>/actions")
@jwt_required()
def request_actions(request_id: int):
    rows = db.session.execute(
        select(LeaveApprovalAction)
        .filter_by(leave_request_id=request_id)
        .order_by(LeaveApprovalAction.acted_at.asc(), LeaveApprovalAction.id.asc())
    ).scalars().all()
    return _list([{
        "action": a.action,
        "comment": a.comment,
        "acted_by": a.acted_by,
        "acted_at": a.acted_at.isoformat() if a.acted_at else None,
    } for a in rows])


@bp.post("/requests/<int:request_id>/approve")
@requires_roles("hr")
def approve(request_id: int):
    lr = leave_ledger.approve_request(request_id, actor=current_actor())
    bal = leave_ledger.get_balance(lr.employee_code, lr.leave_type)
    return ok({"request": lr.to_dict(), "balance": bal.to_dict() if bal else None})


@bp.post("/requests/<int:request_id>/reject")
@requires_roles("hr")
def reject(request_id: int):
    d = request.get_json(silent=True) or {}
    lr = leave_ledger.reject_request(request_id, reason=d.get("reason"), actor=current_actor())
    return ok(lr.to_dict())


# ---------- Applications ----------
@bp.get("/applications")
@jwt_required()
def list_applications():
    rows = leave_ledger.list_applications(
        employee_code=request.args.get("employee_code"),
        start=_opt_date("start"),
        end=_opt_date("end"),
    )
    return _list([a.to_dict() for a in rows])


def _list(items):
    return ok({"items": items, "meta": {"total": len(items)}})
