from datetime import datetime
from payleave_api.extensions import db


class _ComponentColumns:
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    # null/0 => manual or flat component
    calculation_percentage = db.Column(db.Numeric(8, 3), nullable=True)
    based_on = db.Column(db.String(10), nullable=False, default="Basic")  # Basic|Gross|Fixed|HRA
    max_calculated_value = db.Column(db.Numeric(12, 2), nullable=True)
    sort_order = db.Column(db.Integer, nullable=False, default=100)
    status = db.Column(db.String(10), nullable=False, default="active")
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "calculation_percentage": float(self.calculation_percentage) if self.calculation_percentage is not None else None,
            "based_on": self.based_on,
            "max_calculated_value": float(self.max_calculated_value) if self.max_calculated_value is not None else None,
            "sort_order": self.sort_order,
        }


class EarningComponent(_ComponentColumns, db.Model):
    __tablename__ = "earning_components"


class DeductionComponent(_ComponentColumns, db.Model):
    __tablename__ = "deduction_components"


class EmployerAdditionalComponent(_ComponentColumns, db.Model):
    __tablename__ = "employer_additional_components"
