from flask import Blueprint, request
from flask_jwt_extended import jwt_required
from sqlalchemy import select

from payleave_api.extensions import db
from payleave_api.common.http import ok
from payleave_api.models.leave import LeaveRule, LeaveType

bp = Blueprint("leave_rules", __name__, url_prefix="/api/v1/leave")


@bp.get("/types")
@jwt_required()
def list_types():
    items = db.session.execute(
        select(LeaveType).filter_by(status="active").order_by(LeaveType.code.asc())
    ).scalars().all()
    return ok({"items": [{
        "id": t.id, "code": t.code, "name": t.name,
        "gender_applicability": t.gender_applicability,
        "frequency": t.frequency,
        "carry_forward": t.carry_forward,
        "encashable": t.encashable,
        "is_comp_off": t.is_comp_off,
    } for t in items], "meta": {"total": len(items)}})


@bp.get("/rules")
@jwt_required()
def list_rules():
    q = select(LeaveRule).filter_by(status="active").order_by(LeaveRule.id.asc())
    lt = request.args.get("leave_type")
    if lt:
        q = q.filter_by(leave_type_code=lt)
    items = db.session.execute(q).scalars().all()

    data = []
    for r in items:
        data.append({
            "id": r.id,
            "leave_type_code": r.leave_type_code,
            "leave_type_name": r.leave_type.name if r.leave_type else None,
            "eligibility_days": r.eligibility_days,
            "allocation_type": r.allocation_type,
            "min_working_days": r.min_working_days,
            "auto_add_frequency": r.auto_add_frequency,
            "auto_remove_frequency": r.auto_remove_frequency,
            "eligibility_scope": r.eligibility_scope,
            "scope_value": r.scope_value,
            "allocated_count": float(r.allocated_count or 0),
        })
    return ok({"items": data, "meta": {"total": len(data)}})
