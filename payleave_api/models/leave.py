from datetime import datetime
from payleave_api.extensions import db

REQUEST_PENDING = "Pending"
REQUEST_APPROVED = "Approved"
REQUEST_REJECTED = "Rejected"

ALLOCATION_FIXED = "Fixed"
ALLOCATION_WORKING_DAYS = "Working Days Based"
ALLOCATION_WEEKLY_OFF_WORK = "Work on Weekly Off"

SCOPE_GLOBAL = "Global"
SCOPE_DEPARTMENT = "Department"
SCOPE_EMPLOYEES = "Specific Employees"


class LeaveType(db.Model):
    __tablename__ = "leave_types"
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(20), unique=True, nullable=False)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    gender_applicability = db.Column(db.String(10), nullable=False, default="All")  # All|Male|Female
    frequency = db.Column(db.String(20), nullable=False, default="Yearly")         # Monthly|Quarterly|Yearly|One Time
    carry_forward = db.Column(db.Boolean, nullable=False, default=False)
    encashable = db.Column(db.Boolean, nullable=False, default=False)
    is_comp_off = db.Column(db.Boolean, nullable=False, default=False)
    status = db.Column(db.String(10), nullable=False, default="active")
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)


class LeaveRule(db.Model):
    __tablename__ = "leave_rules"
    id = db.Column(db.Integer, primary_key=True)
    leave_type_code = db.Column(db.String(20), db.ForeignKey("leave_types.code", ondelete="CASCADE"), nullable=False, index=True)
    eligibility_days = db.Column(db.Integer, nullable=False, default=0)
    allocation_type = db.Column(db.String(30), nullable=False, default=ALLOCATION_FIXED)
    min_working_days = db.Column(db.Integer, nullable=False, default=0)
    auto_add_frequency = db.Column(db.String(20), nullable=False, default="Yearly")     # Monthly|Quarterly|Half-Yearly|Yearly|None
    auto_remove_frequency = db.Column(db.String(20), nullable=False, default="Yearly")  # Yearly|Cycle End|Never
    eligibility_scope = db.Column(db.String(30), nullable=False, default=SCOPE_GLOBAL)
    scope_value = db.Column(db.Text, nullable=False, default="All")                     # comma list
    allocated_count = db.Column(db.Numeric(6, 2), nullable=False, default=0)
    status = db.Column(db.String(10), nullable=False, default="active")
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    leave_type = db.relationship("LeaveType")


class LeaveBalance(db.Model):
    """remaining = opening - used, and never below zero."""
    __tablename__ = "leave_balances"
    id = db.Column(db.Integer, primary_key=True)
    employee_code = db.Column(db.String(32), nullable=False, index=True)
    employee_name = db.Column(db.String(200))
    leave_type = db.Column(db.String(20), nullable=False)
    opening = db.Column(db.Numeric(8, 2), nullable=False, default=0)
    used = db.Column(db.Numeric(8, 2), nullable=False, default=0)
    remaining = db.Column(db.Numeric(8, 2), nullable=False, default=0)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("employee_code", "leave_type", name="uq_leave_balance_emp_type"),
        db.CheckConstraint("remaining >= 0", name="ck_leave_balance_non_negative"),
    )

    def to_dict(self):
        return {
            "employee_code": self.employee_code,
            "employee_name": self.employee_name,
            "leave_type": self.leave_type,
            "opening": float(self.opening),
            "used": float(self.used),
            "remaining": float(self.remaining),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class LeaveApplication(db.Model):
    """A day already accounted for as leave."""
    __tablename__ = "leave_applications"
    id = db.Column(db.Integer, primary_key=True)
    employee_code = db.Column(db.String(32), nullable=False)
    date = db.Column(db.Date, nullable=False)
    leave_type = db.Column(db.String(20), nullable=False)
    source = db.Column(db.String(20), nullable=False, default="request")  # request|regularize
    leave_request_id = db.Column(db.Integer, db.ForeignKey("leave_requests.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("employee_code", "date", name="uq_leave_application_emp_date"),
        db.Index("ix_leave_application_date", "date"),
    )

    def to_dict(self):
        return {
            "employee_code": self.employee_code,
            "date": self.date.isoformat(),
            "leave_type": self.leave_type,
            "source": self.source,
            "leave_request_id": self.leave_request_id,
        }


class LeaveRequest(db.Model):
    __tablename__ = "leave_requests"
    id = db.Column(db.Integer, primary_key=True)
    employee_code = db.Column(db.String(32), nullable=False, index=True)
    employee_name = db.Column(db.String(200))
    leave_type = db.Column(db.String(20), nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    total_days = db.Column(db.Numeric(6, 2), nullable=False)
    reason = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default=REQUEST_PENDING)  # Pending|Approved|Rejected
    rejection_reason = db.Column(db.Text)
    decided_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "employee_code": self.employee_code,
            "employee_name": self.employee_name,
            "leave_type": self.leave_type,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "total_days": float(self.total_days),
            "reason": self.reason,
            "status": self.status,
            "rejection_reason": self.rejection_reason,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class LeaveApprovalAction(db.Model):
    __tablename__ = "leave_approval_actions"
    id = db.Column(db.Integer, primary_key=True)
    leave_request_id = db.Column(db.Integer, db.ForeignKey("leave_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    action = db.Column(db.String(20), nullable=False)  # applied|approved|rejected
    comment = db.Column(db.Text)
    acted_by = db.Column(db.String(64))
    acted_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
