from flask import Blueprint, request

from payleave_api.common.auth import requires_roles
from payleave_api.common.http import ok
from payleave_api.common.errors import ValidationError
from payleave_api.services import salary_structure_service as svc

bp = Blueprint("salary_structures", __name__, url_prefix="/api/v1/salary-structures")


@bp.get("/components")
@requires_roles("hr", "payroll")
def list_components():
    return ok(svc.catalog_to_dict())


@bp.post("/preview")
@requires_roles("hr", "payroll")
def preview():
    d = request.get_json(silent=True) or {}
    if "monthly_gross" not in d:
        raise ValidationError("monthly_gross is required")
    return ok(svc.preview_structure(d["monthly_gross"]).to_dict())


@bp.get("/<employee_code>")
@requires_roles("hr", "payroll")
def get_structure(employee_code):
    return ok(svc.structure_to_dict(svc.get_structure(employee_code)))


@bp.put("/<employee_code>")
@requires_roles("payroll")
def assign(employee_code):
    """Derive every line from gross and replace the stored structure."""
    d = request.get_json(silent=True) or {}
    if "monthly_gross" not in d:
        raise ValidationError("monthly_gross is required")
    s = svc.assign_structure(employee_code, d["monthly_gross"])
    return ok(svc.structure_to_dict(s))


@bp.patch("/<employee_code>/components")
@requires_roles("payroll")
def override(employee_code):
    d = request.get_json(silent=True) or {}
    missing = [k for k in ("kind", "component_id", "amount") if k not in d]
    if missing:
        raise ValidationError(f"missing fields: {', '.join(missing)}")
    s = svc.override_structure_component(employee_code, d["kind"], d["component_id"], d["amount"])
    return ok(svc.structure_to_dict(s))


@bp.post("/bulk")
@requires_roles("payroll")
def bulk_assign():
    d = request.get_json(silent=True) or {}
    rows = d.get("rows")
    if not isinstance(rows, list):
        raise ValidationError("rows must be a list of {employee_code, monthly_gross}")
    res = svc.bulk_assign_structures(rows)
    return ok(res)
