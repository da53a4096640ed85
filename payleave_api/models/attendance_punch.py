# payleave_api/models/attendance_punch.py
from __future__ import annotations

from datetime import datetime
from typing import Optional, Dict, Any

from sqlalchemy import Index, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from payleave_api.extensions import db
from payleave_api.models.utc_datetime import UtcDateTime


class AttendancePunch(db.Model):
    """
    Append-only punch row written by the attendance collaborators
    (machine dump, excel backfill, selfie). The engine only reads it:
    a punch of any direction on a local date means the employee worked that day.
    """

    __tablename__ = "attendance_punches"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    employee_code: Mapped[str] = mapped_column(db.String(32), index=True, nullable=False)

    # stored as UTC; naive input is local civil time in APP_TIMEZONE
    ts: Mapped[datetime] = mapped_column(UtcDateTime(), index=True, nullable=False)
    direction: Mapped[Optional[str]] = mapped_column(db.String(8), nullable=True)  # 'in' | 'out'

    method: Mapped[Optional[str]] = mapped_column(db.String(16), nullable=True)  # 'machine' | 'excel' | 'selfie'
    device_id: Mapped[Optional[str]] = mapped_column(db.String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("employee_code", "ts", "direction", name="uq_punch_employee_ts_dir"),
        Index("ix_punch_employee_ts", "employee_code", "ts"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "employee_code": self.employee_code,
            "ts": self.ts.isoformat(),
            "direction": self.direction,
            "method": self.method,
            "device_id": self.device_id,
        }
