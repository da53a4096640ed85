# payleave_api/models/payroll/__init__.py
from payleave_api.extensions import db  # noqa

from .components import EarningComponent, DeductionComponent, EmployerAdditionalComponent
from .salary_structure import SalaryStructure

__all__ = [
    "EarningComponent", "DeductionComponent", "EmployerAdditionalComponent",
    "SalaryStructure",
]
