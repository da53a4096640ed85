from datetime import datetime
from payleave_api.extensions import db

class WeeklyOffSetting(db.Model):
    __tablename__ = "weekly_off_settings"

    id = db.Column(db.Integer, primary_key=True)
    employee_code = db.Column(db.String(32), unique=True, nullable=False)
    off_type = db.Column(db.String(20), nullable=False, default="Fix Day")  # Fix Day | Monthly 4 | Monthly (Custom)
    days = db.Column(db.JSON, nullable=False, default=list)                 # ["Sunday"]
    monthly_count = db.Column(db.Integer, nullable=False, default=0)
    sandwich_rule = db.Column(db.Boolean, nullable=False, default=False)
    effective_from = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    @property
    def off_days(self):
        return frozenset(self.days or [])
