from dataclasses import replace
from decimal import Decimal

import pytest

from payleave_api.common.errors import ValidationError, NotFoundError
from payleave_api.services.salary_calculator import (
    Catalog, ComponentRole, SalaryBreakdown, derive_from_gross, override_component, ensure_basic_line,
    resolve_role, KIND_EARNINGS, KIND_DEDUCTIONS, KIND_EMPLOYER_ADDITIONAL, BASIC_FALLBACK_NAME,
)


def _catalog(**extra):
    earnings = [
        {"id": 1, "name": "Basic Salary", "calculation_percentage": 50, "based_on": "Gross"},
        {"id": 2, "name": "House Rent Allowance", "calculation_percentage": 40, "based_on": "Basic",
         "max_calculated_value": 9000},
        {"id": 3, "name": "Special Allowance", "calculation_percentage": None, "based_on": "Gross"},
    ]
    deductions = [
        {"id": 10, "name": "Provident Fund", "calculation_percentage": None, "based_on": "Basic"},
        {"id": 11, "name": "ESI", "calculation_percentage": None, "based_on": "Gross"},
    ]
    employer = [
        {"id": 20, "name": "Employer PF", "calculation_percentage": None, "based_on": "Basic"},
        {"id": 21, "name": "Employer ESI", "calculation_percentage": None, "based_on": "Gross"},
    ]
    return Catalog.build(
        earnings=extra.get("earnings", earnings),
        deductions=extra.get("deductions", deductions),
        employer_additional=extra.get("employer_additional", employer),
    )


def _amounts(lines):
    return {l.name: l.amount for l in lines}


def test_roles_are_resolved_once_from_names():
    assert resolve_role("Basic Salary", KIND_EARNINGS) is ComponentRole.BASIC
    assert resolve_role("HRA", KIND_EARNINGS) is ComponentRole.HRA
    assert resolve_role("Provident Fund", KIND_DEDUCTIONS) is ComponentRole.PF
    assert resolve_role("Voluntary PF", KIND_DEDUCTIONS) is ComponentRole.GENERIC
    assert resolve_role("Employer ESI", KIND_EMPLOYER_ADDITIONAL) is ComponentRole.ESI
    assert resolve_role("Canteen", KIND_DEDUCTIONS) is ComponentRole.GENERIC


def test_gross_50000_breakdown():
    bd = derive_from_gross(50000, _catalog())

    assert bd.basic_salary == Decimal("25000")
    assert _amounts(bd.earnings) == {"Basic Salary": 25000, "House Rent Allowance": 9000}
    # ESI is out of scope above the 21000 ceiling
    assert _amounts(bd.deductions) == {"Provident Fund": 3000}
    assert _amounts(bd.employer_additional) == {"Employer PF": 3250}
    assert bd.net_salary == Decimal("31000")
    assert bd.ctc == Decimal("53250")
    assert bd.is_overridden is False


def test_esi_applies_at_or_below_threshold():
    bd = derive_from_gross(20000, _catalog())
    assert _amounts(bd.deductions) == {"Provident Fund": 1200, "ESI": 150}
    assert _amounts(bd.employer_additional) == {"Employer PF": 1300, "Employer ESI": 650}

    at_limit = derive_from_gross(21000, _catalog())
    assert "ESI" in _amounts(at_limit.deductions)


def test_every_line_respects_its_cap():
    cat = _catalog()
    caps = {c.id: c.max_value for c in cat.earnings + cat.deductions + cat.employer_additional}
    for gross in (0, 999, 21000, 50000, 250000):
        bd = derive_from_gross(gross, cat)
        for line in bd.earnings + bd.deductions + bd.employer_additional:
            cap = caps[line.component_id]
            if cap > 0:
                assert line.amount <= cap


def test_totals_are_sums_of_lines():
    bd = derive_from_gross(37500, _catalog())
    assert bd.total_earnings == sum(l.amount for l in bd.earnings)
    assert bd.total_deductions == sum(l.amount for l in bd.deductions)
    assert bd.net_salary == bd.total_earnings - bd.total_deductions


def test_derivation_is_deterministic():
    cat = _catalog()
    assert derive_from_gross("42000", cat) == derive_from_gross(Decimal("42000"), cat)


def test_amounts_round_half_up():
    cat = _catalog(earnings=[
        {"id": 1, "name": "Basic", "calculation_percentage": 33.33, "based_on": "Gross"},
    ])
    bd = derive_from_gross(1000, cat)
    # raw 333.30 -> 333
    assert _amounts(bd.earnings) == {"Basic": 333}
    cat = _catalog(earnings=[
        {"id": 1, "name": "Basic", "calculation_percentage": 50, "based_on": "Gross"},
    ])
    assert _amounts(derive_from_gross(1001, cat).earnings) == {"Basic": 501}


def test_fixed_and_hra_based_components():
    cat = _catalog(earnings=[
        {"id": 1, "name": "Basic", "calculation_percentage": 50, "based_on": "Gross"},
        {"id": 2, "name": "HRA", "calculation_percentage": 40, "based_on": "Basic"},
        {"id": 3, "name": "Conveyance", "calculation_percentage": 1600, "based_on": "Fixed"},
        {"id": 4, "name": "HRA Supplement", "calculation_percentage": 10, "based_on": "HRA"},
    ], deductions=[], employer_additional=[])
    bd = derive_from_gross(40000, cat)
    assert _amounts(bd.earnings) == {"Basic": 20000, "HRA": 8000, "Conveyance": 1600, "HRA Supplement": 800}


def test_negative_or_non_numeric_gross_is_rejected():
    with pytest.raises(ValidationError):
        derive_from_gross(-1, _catalog())
    with pytest.raises(ValidationError):
        derive_from_gross("lots", _catalog())


def test_override_patches_one_line_and_flags_structure():
    cat = _catalog()
    bd = derive_from_gross(50000, cat)
    patched = override_component(bd, KIND_EARNINGS, 2, 5000, cat)

    assert patched.is_overridden is True
    assert _amounts(patched.earnings) == {"Basic Salary": 25000, "House Rent Allowance": 5000}
    # nothing else is re-derived
    assert patched.deductions == bd.deductions
    assert patched.basic_salary == bd.basic_salary
    assert patched.net_salary == Decimal("27000")


def test_override_adds_line_for_catalog_component_and_zero_removes_it():
    cat = _catalog()
    bd = derive_from_gross(50000, cat)

    added = override_component(bd, KIND_EARNINGS, 3, 2500, cat)
    assert _amounts(added.earnings)["Special Allowance"] == 2500

    removed = override_component(added, KIND_EARNINGS, 3, 0, cat)
    assert "Special Allowance" not in _amounts(removed.earnings)


def test_override_of_basic_updates_basic_salary():
    cat = _catalog()
    bd = override_component(derive_from_gross(50000, cat), KIND_EARNINGS, 1, 26000, cat)
    assert bd.basic_salary == Decimal("26000")
    # PF is not recomputed by an override
    assert _amounts(bd.deductions) == {"Provident Fund": 3000}


def test_override_rejects_bad_input():
    cat = _catalog()
    bd = derive_from_gross(50000, cat)
    with pytest.raises(ValidationError):
        override_component(bd, KIND_EARNINGS, 2, -5, cat)
    with pytest.raises(NotFoundError):
        override_component(bd, KIND_DEDUCTIONS, 999, 100, cat)
    with pytest.raises(ValidationError):
        override_component(bd, "bonuses", 2, 100, cat)


def test_basic_salary_always_has_an_earnings_line():
    cat = _catalog()
    bd = SalaryBreakdown(monthly_gross=Decimal("30000"), basic_salary=Decimal("15000"))
    fixed = ensure_basic_line(bd, cat)
    assert fixed.earnings[0].name == BASIC_FALLBACK_NAME
    assert fixed.earnings[0].amount == Decimal("15000")
    # already present: untouched
    assert ensure_basic_line(fixed, cat) is fixed
    assert ensure_basic_line(replace(bd, basic_salary=Decimal("0")), cat).earnings == ()


def test_to_dict_shape():
    data = derive_from_gross(50000, _catalog()).to_dict()
    assert data["net_salary"] == 31000
    assert data["earnings_breakdown"][0] == {"component_id": 1, "name": "Basic Salary", "amount": 25000}
    assert data["deductions_breakdown"] == [{"component_id": 10, "name": "Provident Fund", "amount": 3000}]


def test_figures_too_large_for_storage_are_rejected():
    with pytest.raises(ValidationError, match="too large"):
        derive_from_gross(Decimal("1e10"), _catalog())
    # gross fits but CTC (gross + employer contributions) does not
    with pytest.raises(ValidationError, match="exceed"):
        derive_from_gross(Decimal("9999999999"), _catalog())

    bd = derive_from_gross(50000, _catalog())
    with pytest.raises(ValidationError, match="too large"):
        override_component(bd, KIND_EARNINGS, 2, Decimal("1e11"), _catalog())
