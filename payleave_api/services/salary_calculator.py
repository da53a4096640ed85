# payleave_api/services/salary_calculator.py
"""
Gross → full compensation breakdown.

Two distinct operations:
  derive_from_gross(gross, catalog)      full replace, every amount recomputed
  override_component(bd, kind, id, amt)  partial patch of one line; nothing else
                                         is re-derived, the result is flagged

Statutory lines are recognised once per catalog load (ComponentRole) instead of
sniffing names on every calculation. Defaults when the catalog leaves the
percentage empty:

  employee PF   12% of basic         employer PF   13% of basic
  employee ESI  0.75% of gross       employer ESI  3.25% of gross
  (ESI only while gross <= 21000)
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from payleave_api.common.errors import ValidationError, NotFoundError

ZERO = Decimal("0")
HUNDRED = Decimal("100")
# largest value a Numeric(12, 2) column holds
MAX_STORABLE = Decimal("9999999999.99")

ESI_GROSS_THRESHOLD = Decimal("21000")
PF_EMPLOYEE_DEFAULT_PCT = Decimal("12")
ESI_EMPLOYEE_DEFAULT_PCT = Decimal("0.75")
PF_EMPLOYER_DEFAULT_PCT = Decimal("13")
ESI_EMPLOYER_DEFAULT_PCT = Decimal("3.25")

BASIC_FALLBACK_NAME = "Basic Salary"

KIND_EARNINGS = "earnings"
KIND_DEDUCTIONS = "deductions"
KIND_EMPLOYER_ADDITIONAL = "employer_additional"
KINDS = (KIND_EARNINGS, KIND_DEDUCTIONS, KIND_EMPLOYER_ADDITIONAL)


class ComponentRole(str, Enum):
    BASIC = "basic"
    HRA = "hra"
    PF = "pf"
    ESI = "esi"
    GENERIC = "generic"


def resolve_role(name: str, kind: str) -> ComponentRole:
    n = (name or "").lower()
    if kind == KIND_EARNINGS:
        if "basic" in n:
            return ComponentRole.BASIC
        if "hra" in n or "house rent" in n:
            return ComponentRole.HRA
        return ComponentRole.GENERIC
    # voluntary PF is a plain deduction
    if ("pf" in n or "provident" in n) and "vol" not in n:
        return ComponentRole.PF
    if "esi" in n:
        return ComponentRole.ESI
    return ComponentRole.GENERIC


def to_decimal(v, default=ZERO) -> Decimal:
    """Lenient numeric parse; anything non-numeric (or NaN/inf) becomes `default`."""
    if v is None or v == "":
        return default
    try:
        d = Decimal(str(v).strip())
    except (InvalidOperation, ValueError):
        return default
    return d if d.is_finite() else default


def round_amount(v: Decimal) -> Decimal:
    return v.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def as_number(v: Decimal):
    """JSON-friendly: int when integral, else float."""
    return int(v) if v == v.to_integral_value() else float(v)


@dataclass(frozen=True)
class ComponentDef:
    id: Optional[int]
    name: str
    percentage: Decimal
    based_on: str
    max_value: Decimal
    role: ComponentRole

    @classmethod
    def build(cls, kind, id, name, calculation_percentage=None, based_on=None, max_calculated_value=None):
        pct = to_decimal(calculation_percentage)
        cap = to_decimal(max_calculated_value)
        return cls(
            id=id,
            name=name,
            percentage=pct if pct > 0 else ZERO,
            based_on=(based_on or "").strip().lower(),
            max_value=cap if cap > 0 else ZERO,
            role=resolve_role(name, kind),
        )

    @classmethod
    def from_source(cls, kind, src):
        """Accept a model row or a plain dict."""
        get = src.get if isinstance(src, dict) else (lambda k, d=None: getattr(src, k, d))
        return cls.build(
            kind,
            get("id"),
            get("name"),
            get("calculation_percentage"),
            get("based_on"),
            get("max_calculated_value"),
        )

    @property
    def is_manual(self) -> bool:
        return self.percentage <= 0

    def cap(self, amount: Decimal) -> Decimal:
        if self.max_value > 0 and amount > self.max_value:
            return self.max_value
        return amount


@dataclass(frozen=True)
class Catalog:
    earnings: Tuple[ComponentDef, ...] = ()
    deductions: Tuple[ComponentDef, ...] = ()
    employer_additional: Tuple[ComponentDef, ...] = ()

    @classmethod
    def build(cls, earnings: Iterable = (), deductions: Iterable = (), employer_additional: Iterable = ()):
        return cls(
            earnings=tuple(ComponentDef.from_source(KIND_EARNINGS, c) for c in earnings),
            deductions=tuple(ComponentDef.from_source(KIND_DEDUCTIONS, c) for c in deductions),
            employer_additional=tuple(ComponentDef.from_source(KIND_EMPLOYER_ADDITIONAL, c) for c in employer_additional),
        )

    def components(self, kind: str) -> Tuple[ComponentDef, ...]:
        if kind not in KINDS:
            raise ValidationError(f"unknown component kind {kind!r}; expected one of {', '.join(KINDS)}")
        return getattr(self, kind)

    def find(self, kind: str, component_id) -> Optional[ComponentDef]:
        return next((c for c in self.components(kind) if c.id == component_id), None)

    @property
    def basic(self) -> Optional[ComponentDef]:
        return next((c for c in self.earnings if c.role is ComponentRole.BASIC), None)


@dataclass(frozen=True)
class BreakdownLine:
    component_id: Optional[int]
    name: str
    amount: Decimal

    def to_dict(self):
        return {"component_id": self.component_id, "name": self.name, "amount": as_number(self.amount)}


@dataclass(frozen=True)
class SalaryBreakdown:
    monthly_gross: Decimal
    basic_salary: Decimal
    earnings: Tuple[BreakdownLine, ...] = ()
    deductions: Tuple[BreakdownLine, ...] = ()
    employer_additional: Tuple[BreakdownLine, ...] = ()
    is_overridden: bool = False

    @property
    def total_earnings(self) -> Decimal:
        return sum((l.amount for l in self.earnings), ZERO)

    @property
    def total_deductions(self) -> Decimal:
        return sum((l.amount for l in self.deductions), ZERO)

    @property
    def total_employer_additional(self) -> Decimal:
        return sum((l.amount for l in self.employer_additional), ZERO)

    @property
    def ctc(self) -> Decimal:
        return self.monthly_gross + self.total_employer_additional

    @property
    def net_salary(self) -> Decimal:
        return self.total_earnings - self.total_deductions

    def lines(self, kind: str) -> Tuple[BreakdownLine, ...]:
        if kind not in KINDS:
            raise ValidationError(f"unknown component kind {kind!r}; expected one of {', '.join(KINDS)}")
        return getattr(self, kind)

    def to_dict(self):
        return {
            "monthly_gross": as_number(self.monthly_gross),
            "basic_salary": as_number(self.basic_salary),
            "ctc": as_number(self.ctc),
            "earnings_breakdown": [l.to_dict() for l in self.earnings],
            "deductions_breakdown": [l.to_dict() for l in self.deductions],
            "employer_additional_breakdown": [l.to_dict() for l in self.employer_additional],
            "total_earnings": as_number(self.total_earnings),
            "total_deductions": as_number(self.total_deductions),
            "total_employer_additional": as_number(self.total_employer_additional),
            "net_salary": as_number(self.net_salary),
            "is_overridden": self.is_overridden,
        }

    @classmethod
    def from_snapshot(cls, s) -> "SalaryBreakdown":
        """Rebuild from a stored SalaryStructure row."""
        def _lines(raw):
            return tuple(
                BreakdownLine(x.get("component_id", x.get("id")), x.get("name") or "", to_decimal(x.get("amount")))
                for x in (raw or [])
            )
        return cls(
            monthly_gross=to_decimal(s.monthly_gross),
            basic_salary=to_decimal(s.basic_salary),
            earnings=_lines(s.earnings_breakdown),
            deductions=_lines(s.deductions_breakdown),
            employer_additional=_lines(s.employer_additional_breakdown),
            is_overridden=bool(s.is_overridden),
        )


# ---------- derivation ----------

def _parse_gross(gross) -> Decimal:
    g = to_decimal(gross, default=None)
    if g is None:
        raise ValidationError(f"gross salary must be a number, got {gross!r}")
    if g < 0:
        raise ValidationError(f"gross salary cannot be negative: {g}")
    if g > MAX_STORABLE:
        raise ValidationError(f"gross salary is too large: {g}")
    return g


def _percent_of(base: Decimal, pct: Decimal) -> Decimal:
    return base * pct / HUNDRED


def _generic_amount(comp: ComponentDef, basic: Decimal, gross: Decimal, hra: Decimal) -> Decimal:
    if comp.is_manual:
        return ZERO
    if comp.based_on == "basic":
        return _percent_of(basic, comp.percentage)
    if comp.based_on == "gross":
        return _percent_of(gross, comp.percentage)
    if comp.based_on == "fixed":
        return comp.percentage
    if comp.based_on == "hra":
        return _percent_of(hra, comp.percentage)
    return ZERO


def _statutory_amount(comp, basic, gross, hra, pf_default, esi_default) -> Decimal:
    if comp.role is ComponentRole.PF:
        return _percent_of(basic, comp.percentage if comp.percentage > 0 else pf_default)
    if comp.role is ComponentRole.ESI:
        if gross > ESI_GROSS_THRESHOLD:
            return ZERO
        return _percent_of(gross, comp.percentage if comp.percentage > 0 else esi_default)
    return _generic_amount(comp, basic, gross, hra)


def _finish(comp: ComponentDef, raw: Decimal) -> Decimal:
    # the cap bounds the rounded figure as well
    return comp.cap(round_amount(comp.cap(raw)))


def _positive_lines(comps, amounts) -> Tuple[BreakdownLine, ...]:
    return tuple(
        BreakdownLine(c.id, c.name, amounts[i])
        for i, c in enumerate(comps)
        if amounts[i] > 0
    )


def derive_from_gross(gross, catalog: Catalog) -> SalaryBreakdown:
    g = _parse_gross(gross)

    basic_comp = catalog.basic
    basic = ZERO
    if basic_comp is not None and not basic_comp.is_manual:
        basic = basic_comp.cap(_percent_of(g, basic_comp.percentage))

    # HRA is resolved ahead of the rest so HRA-based components can see it
    hra = ZERO
    hra_comp = next((c for c in catalog.earnings if c.role is ComponentRole.HRA), None)
    if hra_comp is not None:
        hra = hra_comp.cap(_generic_amount(hra_comp, basic, g, ZERO))

    earn_amounts = []
    for comp in catalog.earnings:
        if comp is basic_comp:
            earn_amounts.append(_finish(comp, basic))
        elif comp is hra_comp:
            earn_amounts.append(_finish(comp, hra))
        else:
            earn_amounts.append(_finish(comp, _generic_amount(comp, basic, g, hra)))

    ded_amounts = [
        _finish(c, _statutory_amount(c, basic, g, hra, PF_EMPLOYEE_DEFAULT_PCT, ESI_EMPLOYEE_DEFAULT_PCT))
        for c in catalog.deductions
    ]
    er_amounts = [
        _finish(c, _statutory_amount(c, basic, g, hra, PF_EMPLOYER_DEFAULT_PCT, ESI_EMPLOYER_DEFAULT_PCT))
        for c in catalog.employer_additional
    ]

    return ensure_storable(SalaryBreakdown(
        monthly_gross=g,
        basic_salary=round_amount(basic),
        earnings=_positive_lines(catalog.earnings, earn_amounts),
        deductions=_positive_lines(catalog.deductions, ded_amounts),
        employer_additional=_positive_lines(catalog.employer_additional, er_amounts),
    ))


def ensure_storable(bd: SalaryBreakdown) -> SalaryBreakdown:
    figures = (bd.monthly_gross, bd.basic_salary, bd.total_earnings, bd.total_deductions,
               bd.total_employer_additional, bd.ctc, bd.net_salary)
    if any(abs(v) > MAX_STORABLE for v in figures):
        raise ValidationError(f"salary figures exceed {MAX_STORABLE}")
    return bd


# ---------- manual override ----------

def _is_basic_line(line: BreakdownLine, catalog: Catalog) -> bool:
    basic_comp = catalog.basic
    if basic_comp is not None and line.component_id == basic_comp.id:
        return True
    return "basic" in (line.name or "").lower()


def ensure_basic_line(bd: SalaryBreakdown, catalog: Catalog) -> SalaryBreakdown:
    """A nonzero basic salary always shows up as an earnings line."""
    if bd.basic_salary <= 0 or any(_is_basic_line(l, catalog) for l in bd.earnings):
        return bd
    line = BreakdownLine(None, BASIC_FALLBACK_NAME, bd.basic_salary)
    return replace(bd, earnings=(line,) + bd.earnings)


def override_component(bd: SalaryBreakdown, kind: str, component_id, amount, catalog: Catalog) -> SalaryBreakdown:
    amt = to_decimal(amount, default=None)
    if amt is None:
        raise ValidationError(f"amount must be a number, got {amount!r}")
    if amt < 0:
        raise ValidationError(f"amount cannot be negative: {amt}")
    if amt > MAX_STORABLE:
        raise ValidationError(f"amount is too large: {amt}")

    current = list(bd.lines(kind))
    idx = next((i for i, l in enumerate(current) if l.component_id == component_id), None)
    if idx is not None:
        target = current[idx]
    else:
        comp = catalog.find(kind, component_id)
        if comp is None:
            raise NotFoundError(f"component {component_id} not found in {kind}")
        target = BreakdownLine(comp.id, comp.name, ZERO)

    patched = BreakdownLine(target.component_id, target.name, amt)
    if idx is None:
        current.append(patched)
    else:
        current[idx] = patched
    current = [l for l in current if l.amount > 0]

    changes = {kind: tuple(current), "is_overridden": True}
    if kind == KIND_EARNINGS and _is_basic_line(target, catalog):
        changes["basic_salary"] = amt
    return ensure_storable(ensure_basic_line(replace(bd, **changes), catalog))
