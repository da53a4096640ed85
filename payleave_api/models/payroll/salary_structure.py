from datetime import datetime
from payleave_api.extensions import db


class SalaryStructure(db.Model):
    """Derived snapshot; replaced wholesale on every derivation from gross."""
    __tablename__ = "salary_structures"

    id = db.Column(db.Integer, primary_key=True)
    employee_code = db.Column(db.String(32), unique=True, nullable=False)
    monthly_gross = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    basic_salary = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    ctc = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # [{component_id, name, amount}]
    earnings_breakdown = db.Column(db.JSON, nullable=False, default=list)
    deductions_breakdown = db.Column(db.JSON, nullable=False, default=list)
    employer_additional_breakdown = db.Column(db.JSON, nullable=False, default=list)

    total_earnings = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_deductions = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_employer_additional = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    net_salary = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # set once a single component is edited after the last derivation
    is_overridden = db.Column(db.Boolean, nullable=False, default=False)
    derived_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
