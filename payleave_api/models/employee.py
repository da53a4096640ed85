from datetime import datetime
from payleave_api.extensions import db

class Employee(db.Model):
    """Read-only mirror of the HR master roster."""
    __tablename__ = "employees"

    id = db.Column(db.Integer, primary_key=True)
    code  = db.Column(db.String(32), unique=True, nullable=False)
    first_name = db.Column(db.String(80), nullable=False)
    last_name  = db.Column(db.String(80), nullable=True)

    department = db.Column(db.String(120), nullable=True)
    location   = db.Column(db.String(120), nullable=True)
    gender     = db.Column(db.String(16), nullable=True)   # Male/Female/Other

    doj = db.Column(db.Date, nullable=True)   # date of joining
    dol = db.Column(db.Date, nullable=True)   # date of leaving (null if active)
    status = db.Column(db.String(16), default="active", nullable=False)  # active/inactive

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.Index("ix_emp_department", "department"),
        db.Index("ix_emp_status", "status"),
    )

    @property
    def full_name(self):
        return " ".join(p for p in (self.first_name, self.last_name) if p)
