"""
Typed records, reporting period and error taxonomy shared by the
source adapters, the leave window logic and the report writer.
"""

import calendar
import re
from dataclasses import dataclass
from datetime import date
from typing import Optional


# =========================
# ERRORS
# =========================

class ReportError(Exception):
    """Base error for a report run. ``stage`` names the step that failed."""

    def __init__(self, stage: str, message: str):
        super().__init__(message)
        self.stage = stage
        self.message = message

    def __str__(self) -> str:
        return f"{self.stage}: {self.message}"


class ReportIOError(ReportError):
    """A source could not be read or the output could not be written."""


class ParseError(ReportError):
    """A field, cell, date or config value has the wrong type or shape."""


# =========================
# REPORTING PERIOD
# =========================

_PERIOD_RE = re.compile(r"^\s*(\d{4})-(\d{1,2})\s*$")


def next_month_first_day(year: int, month: int) -> date:
    """First day of the month after (year, month); December rolls into January."""
    if month == 12:
        return date(year + 1, 1, 1)
    return date(year, month + 1, 1)


@dataclass(frozen=True)
class ReportingPeriod:
    year: int
    month: int

    def __post_init__(self):
        if not 1 <= self.month <= 12:
            raise ParseError("config", f"Month out of range in reporting period: {self.month}")

    @classmethod
    def of(cls, d: date) -> "ReportingPeriod":
        return cls(d.year, d.month)

    @classmethod
    def parse(cls, text: str) -> "ReportingPeriod":
        """Parse ``YYYY-MM``."""
        m = _PERIOD_RE.match(str(text))
        if not m:
            raise ParseError("config", f"Reporting period must look like YYYY-MM, got {text!r}")
        return cls(int(m.group(1)), int(m.group(2)))

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def next_first_day(self) -> date:
        return next_month_first_day(self.year, self.month)

    @property
    def days_in_month(self) -> int:
        return calendar.monthrange(self.year, self.month)[1]

    @property
    def label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    def contains(self, d: date) -> bool:
        return self.first_day <= d < self.next_first_day


# =========================
# RECORDS
# =========================

@dataclass(frozen=True)
class Employee:
    emp_id: int
    emp_name: str
    dept_id: Optional[int]  # None when the roster leaves it blank
    mobile_no: str
    email: str


@dataclass(frozen=True)
class Department:
    dept_id: int
    dept_title: str


@dataclass(frozen=True)
class SalaryPosting:
    emp_id: int
    posting_date: date  # first day of the posted month
    status: str


@dataclass(frozen=True)
class LeaveInterval:
    emp_id: int
    leave_from: date
    leave_to: date


@dataclass(frozen=True)
class ReportRow:
    emp_id: int
    emp_name: str
    dept_title: str
    mobile_no: str
    email: str
    salary_status: str
    leave_days: int

    def fields(self) -> list[str]:
        """Output column values in header order."""
        return [
            str(self.emp_id),
            self.emp_name,
            self.dept_title,
            self.mobile_no,
            self.email,
            self.salary_status,
            str(self.leave_days),
        ]
