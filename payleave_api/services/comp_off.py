# payleave_api/services/comp_off.py
"""
Compensatory-off detection.

A day earns comp-off when it is one of the employee's weekly offs and they
punched on it. With the sandwich rule on, the credit is voided when the nearest
working-calendar day on *both* sides of the off day has no punch: the off day
is then read as part of an unauthorised extended break.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import AbstractSet, Optional, Tuple

from payleave_api.services.calendar_utils import WEEKDAY_NAMES, iterate_local_dates, weekday_name

# walking further than a week cannot reach a new weekday
_MAX_WALK = 7


@dataclass(frozen=True)
class WeeklyOff:
    off_days: frozenset = frozenset()
    sandwich_rule: bool = False

    @classmethod
    def from_setting(cls, setting) -> "WeeklyOff":
        if setting is None:
            return cls()
        days = frozenset(d for d in (setting.days or []) if d in WEEKDAY_NAMES)
        return cls(off_days=days, sandwich_rule=bool(setting.sandwich_rule))

    def is_off(self, d: date) -> bool:
        return weekday_name(d) in self.off_days


@dataclass(frozen=True)
class CompOffResult:
    earned: Tuple[date, ...] = ()
    voided: Tuple[date, ...] = ()

    @property
    def count(self) -> int:
        return len(self.earned)

    def to_dict(self):
        return {
            "earned_count": self.count,
            "earned_dates": [d.isoformat() for d in self.earned],
            "sandwich_voided_dates": [d.isoformat() for d in self.voided],
        }


def nearest_working_day(day: date, weekly_off: WeeklyOff, step: int) -> Optional[date]:
    d = day
    for _ in range(_MAX_WALK):
        d = d + timedelta(days=step)
        if not weekly_off.is_off(d):
            return d
    return None


def is_sandwiched(day: date, work_dates: AbstractSet[date], weekly_off: WeeklyOff,
                  as_of: Optional[date] = None) -> bool:
    """
    True when the nearest non-off day before AND after `day` both lack punches.
    A neighbour later than `as_of` has not happened yet and never counts as absent.
    """
    before = nearest_working_day(day, weekly_off, -1)
    after = nearest_working_day(day, weekly_off, +1)
    if before is None or after is None:
        return False
    if as_of is not None and after > as_of:
        return False
    return before not in work_dates and after not in work_dates


def detect_comp_off(work_dates: AbstractSet[date], weekly_off: WeeklyOff, start, end,
                    as_of: Optional[date] = None) -> CompOffResult:
    """
    `work_dates` must cover a few days beyond [start, end] so that neighbours of
    off days at the window edges can be checked.
    """
    earned, voided = [], []
    for d in iterate_local_dates(start, end):
        if not weekly_off.is_off(d) or d not in work_dates:
            continue
        if weekly_off.sandwich_rule and is_sandwiched(d, work_dates, weekly_off, as_of):
            voided.append(d)
        else:
            earned.append(d)
    return CompOffResult(earned=tuple(earned), voided=tuple(voided))
