# payleave_api/services/salary_structure_service.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import select

from payleave_api.extensions import db
from payleave_api.common.errors import APIError, NotFoundError, ValidationError
from payleave_api.models.payroll import (
    EarningComponent, DeductionComponent, EmployerAdditionalComponent, SalaryStructure,
)
from payleave_api.services.leave_ledger import require_employee, unit_of_work
from payleave_api.services.salary_calculator import (
    Catalog, SalaryBreakdown, derive_from_gross, override_component, to_decimal, KINDS,
)

log = logging.getLogger(__name__)


def _active(model):
    return db.session.execute(
        select(model).filter(model.status == "active").order_by(model.sort_order.asc(), model.id.asc())
    ).scalars().all()


def load_catalog() -> Catalog:
    return Catalog.build(
        earnings=_active(EarningComponent),
        deductions=_active(DeductionComponent),
        employer_additional=_active(EmployerAdditionalComponent),
    )


def catalog_to_dict():
    return {
        "earnings": [c.to_dict() for c in _active(EarningComponent)],
        "deductions": [c.to_dict() for c in _active(DeductionComponent)],
        "employer_additional": [c.to_dict() for c in _active(EmployerAdditionalComponent)],
    }


def structure_to_dict(s: SalaryStructure):
    data = SalaryBreakdown.from_snapshot(s).to_dict()
    data.update({
        "employee_code": s.employee_code,
        "derived_at": s.derived_at.isoformat() if s.derived_at else None,
        "updated_at": s.updated_at.isoformat() if s.updated_at else None,
    })
    return data


def _lines_json(lines):
    return [l.to_dict() for l in lines]


def _write_snapshot(s: SalaryStructure, bd: SalaryBreakdown):
    s.monthly_gross = bd.monthly_gross
    s.basic_salary = bd.basic_salary
    s.ctc = bd.ctc
    s.earnings_breakdown = _lines_json(bd.earnings)
    s.deductions_breakdown = _lines_json(bd.deductions)
    s.employer_additional_breakdown = _lines_json(bd.employer_additional)
    s.total_earnings = bd.total_earnings
    s.total_deductions = bd.total_deductions
    s.total_employer_additional = bd.total_employer_additional
    s.net_salary = bd.net_salary
    s.is_overridden = bd.is_overridden
    s.updated_at = datetime.utcnow()


def get_structure(employee_code: str) -> SalaryStructure:
    s = db.session.execute(select(SalaryStructure).filter_by(employee_code=employee_code)).scalar_one_or_none()
    if s is None:
        raise NotFoundError(f"no salary structure for employee {employee_code!r}")
    return s


def preview_structure(gross, catalog: Optional[Catalog] = None) -> SalaryBreakdown:
    return derive_from_gross(gross, catalog or load_catalog())


def _assign(employee_code: str, gross, catalog: Catalog) -> SalaryStructure:
    emp = require_employee(employee_code)
    bd = derive_from_gross(gross, catalog)
    s = db.session.execute(select(SalaryStructure).filter_by(employee_code=emp.code)).scalar_one_or_none()
    if s is None:
        s = SalaryStructure(employee_code=emp.code)
        db.session.add(s)
    _write_snapshot(s, bd)
    s.derived_at = datetime.utcnow()
    db.session.flush()
    return s


def assign_structure(employee_code: str, gross) -> SalaryStructure:
    """Full replace: every line recomputed from gross, any earlier override discarded."""
    with unit_of_work():
        s = _assign(employee_code, gross, load_catalog())
    log.info("salary structure derived for %s (gross %s)", s.employee_code, s.monthly_gross)
    return s


def override_structure_component(employee_code: str, kind: str, component_id, amount) -> SalaryStructure:
    if kind not in KINDS:
        raise ValidationError(f"kind must be one of {', '.join(KINDS)}")
    try:
        cid = int(component_id)
    except (TypeError, ValueError):
        raise ValidationError(f"component_id must be an integer, got {component_id!r}")

    with unit_of_work():
        s = get_structure(employee_code)
        bd = override_component(SalaryBreakdown.from_snapshot(s), kind, cid, amount, load_catalog())
        _write_snapshot(s, bd)
    return s


def bulk_assign_structures(rows: Iterable[dict]):
    """
    Each row is committed on its own; a bad row is reported and skipped.
    Returns {"saved": [...], "errors": [...]}.
    """
    catalog = load_catalog()
    saved: List[dict] = []
    errors: List[dict] = []
    for i, row in enumerate(rows or []):
        code = (row or {}).get("employee_code")
        gross = to_decimal((row or {}).get("monthly_gross"), default=None)
        if gross is None:
            errors.append({"row": i, "employee_code": code, "code": "VALIDATION_ERROR",
                           "message": "monthly_gross must be a number"})
            continue
        try:
            with unit_of_work():
                s = _assign(code, gross, catalog)
        except APIError as e:
            errors.append({"row": i, "employee_code": code, "code": e.code, "message": e.message})
            continue
        saved.append({"employee_code": s.employee_code, "net_salary": float(s.net_salary), "ctc": float(s.ctc)})

    log.info("bulk salary assignment: %s saved, %s failed", len(saved), len(errors))
    return {"saved": saved, "errors": errors}
