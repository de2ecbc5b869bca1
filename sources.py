"""
Source adapters for the four report inputs.

Each adapter reads one file, checks cells positionally against the layouts
below, and returns typed records. Anything that does not fit the layout is a
ParseError; a missing or unreadable file is a ReportIOError.
"""

import csv
import numbers
import re
import zipfile
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException

from leave_window import aggregate_leave
from models import (
    Department,
    Employee,
    LeaveInterval,
    ParseError,
    ReportIOError,
    ReportingPeriod,
    SalaryPosting,
)


# =========================
# LAYOUTS
# =========================

EMPLOYEE_STAGE = "employee data"
EMPLOYEE_FIELDS = ["emp_id", "emp_name", "dept_id", "mobile_no", "email"]
EMPLOYEE_HEADERS = ["Emp ID", "Emp Name", "Dept ID", "Mobile No", "Email"]

SOURCE_LAYOUTS = {
    "department": {
        "stage": "department data",
        "sheet": "Sheet1",
        "headers": ["Dept ID", "Dept Title"],
        "columns": {"dept_id": 0, "dept_title": 1},
    },
    "salary": {
        "stage": "salary data",
        "sheet": "Sheet1",
        "headers": ["Emp ID", "Emp Name", "Salary Month", "Salary Amount", "Salary Status"],
        "columns": {"emp_id": 0, "salary_month": 2, "status": 4},
    },
    "leave": {
        "stage": "leave data",
        "sheet": "Sheet1",
        "headers": ["Emp ID", "Emp Name", "Leave From", "Leave To", "Leave Type"],
        "columns": {"emp_id": 0, "leave_from": 2, "leave_to": 3},
    },
}

# Salary month cells hold "<Mon> <YYYY>"; a literal day is prefixed before parsing.
SALARY_DAY_PREFIX = "01 "
SALARY_DATE_FORMAT = "%d %b %Y"
LEAVE_DATE_FORMAT = "%d-%m-%Y"

DUPLICATE_POLICIES = ("last", "first")

_INT_RE = re.compile(r"^[+-]?\d+$")


# =========================
# CELL PARSING
# =========================

def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def parse_int_cell(value: Any, field: str, stage: str, where: str) -> int:
    """
    Accept ints, integral floats and digit strings. Everything else,
    including blanks and booleans, is a ParseError.
    """
    if is_blank(value):
        raise ParseError(stage, f"{where}: {field} is empty")
    if isinstance(value, bool):
        raise ParseError(stage, f"{where}: {field} must be a number, got {value!r}")
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, numbers.Real):
        if float(value).is_integer():
            return int(value)
        raise ParseError(stage, f"{where}: {field} must be a whole number, got {value!r}")
    if isinstance(value, str) and _INT_RE.match(value.strip()):
        return int(value.strip())
    raise ParseError(stage, f"{where}: {field} must be a whole number, got {value!r}")


def parse_text_cell(value: Any, field: str, stage: str, where: str) -> str:
    """Text is kept as written, padding included, like roster fields."""
    if is_blank(value):
        raise ParseError(stage, f"{where}: {field} is empty")
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def parse_date_cell(
    value: Any,
    fmt: str,
    field: str,
    stage: str,
    where: str,
    prefix: str = "",
) -> date:
    """Parse a date cell. Native spreadsheet dates are taken as they are."""
    if is_blank(value):
        raise ParseError(stage, f"{where}: {field} is empty")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ParseError(stage, f"{where}: {field} must be a date, got {value!r}")
    try:
        return datetime.strptime(prefix + value.strip(), fmt).date()
    except ValueError:
        raise ParseError(stage, f"{where}: could not parse {field} {value!r}") from None


# ==============================
# File loading
# ==============================

def _require_file(path: Path, stage: str) -> Path:
    path = Path(path)
    if not path.exists():
        raise ReportIOError(stage, f"File not found: {path}")
    if not path.is_file():
        raise ReportIOError(stage, f"Not a file: {path}")
    return path


def load_table(path: Path, sheet_name: str, stage: str, min_columns: int = 1) -> pd.DataFrame:
    """
    Load one worksheet with row 0 (the header) dropped and cells kept as
    raw Python values. Fully empty rows are skipped.
    """
    path = _require_file(path, stage)

    try:
        df = pd.read_excel(path, sheet_name=sheet_name, header=None, dtype=object)
    except (InvalidFileException, zipfile.BadZipFile) as e:
        raise ParseError(stage, f"{path} is not a readable .xlsx workbook: {e}") from e
    except ValueError as e:
        # pandas raises ValueError for a missing worksheet
        raise ParseError(stage, f"Could not read sheet {sheet_name!r} from {path}: {e}") from e
    except OSError as e:
        raise ReportIOError(stage, f"Could not read {path}: {e}") from e

    df = df.iloc[1:].dropna(how="all")
    if not df.empty and df.shape[1] < min_columns:
        raise ParseError(
            stage,
            f"{path} sheet {sheet_name!r} has {df.shape[1]} column(s), expected at least {min_columns}",
        )
    return df


def _rows(df: pd.DataFrame):
    """Yield (spreadsheet row number, cells) pairs; row numbers are 1-based."""
    for label, cells in zip(df.index, df.itertuples(index=False, name=None)):
        yield int(label) + 1, cells


def _min_columns(layout: dict) -> int:
    return max(layout["columns"].values()) + 1


# ==============================
# Employee roster (delimited text)
# ==============================

def load_employees(path: Path, delimiter: str = "|") -> List[Employee]:
    """
    Read the employee roster: one header line, then one employee per line
    with fields emp_id, emp_name, dept_id, mobile_no, email.

    A blank dept_id is kept as None and later shows up as an unknown
    department. A malformed emp_id or dept_id is a ParseError.
    """
    path = _require_file(path, EMPLOYEE_STAGE)

    sep = delimiter if len(delimiter) == 1 else re.escape(delimiter)
    try:
        df = pd.read_csv(
            path,
            sep=sep,
            header=None,
            skiprows=1,
            dtype=str,
            keep_default_na=False,
            quoting=csv.QUOTE_NONE,
            skip_blank_lines=True,
            encoding="utf-8",
            engine="c" if len(delimiter) == 1 else "python",
        )
    except pd.errors.EmptyDataError:
        print(f"[INFO] Employee roster {path} has no employee lines.")
        return []
    except pd.errors.ParserError as e:
        raise ParseError(EMPLOYEE_STAGE, f"Malformed line in {path}: {e}") from e
    except UnicodeDecodeError as e:
        raise ParseError(EMPLOYEE_STAGE, f"{path} is not valid UTF-8: {e}") from e
    except OSError as e:
        raise ReportIOError(EMPLOYEE_STAGE, f"Could not read {path}: {e}") from e

    if df.shape[1] != len(EMPLOYEE_FIELDS):
        raise ParseError(
            EMPLOYEE_STAGE,
            f"{path} has {df.shape[1]} field(s) per line, expected {len(EMPLOYEE_FIELDS)}",
        )

    employees: List[Employee] = []
    for record_no, fields in _rows(df):
        where = f"{path.name} record {record_no}"
        if any(pd.isna(f) for f in fields):
            raise ParseError(
                EMPLOYEE_STAGE, f"{where}: expected {len(EMPLOYEE_FIELDS)} fields"
            )
        emp_id_raw, emp_name, dept_id_raw, mobile_no, email = fields

        dept_id: Optional[int] = None
        if not is_blank(dept_id_raw):
            dept_id = parse_int_cell(dept_id_raw, "dept_id", EMPLOYEE_STAGE, where)

        employees.append(
            Employee(
                emp_id=parse_int_cell(emp_id_raw, "emp_id", EMPLOYEE_STAGE, where),
                emp_name=emp_name,
                dept_id=dept_id,
                mobile_no=mobile_no,
                email=email,
            )
        )

    print(f"[INFO] Loaded {len(employees)} employee(s) from {path}")
    return employees


# ==============================
# Department directory
# ==============================

def load_departments(path: Path, sheet_name: Optional[str] = None) -> Dict[int, Department]:
    layout = SOURCE_LAYOUTS["department"]
    stage = layout["stage"]
    sheet = sheet_name or layout["sheet"]
    cols = layout["columns"]

    df = load_table(path, sheet, stage, min_columns=_min_columns(layout))

    departments: Dict[int, Department] = {}
    for row_no, cells in _rows(df):
        where = f"{Path(path).name} row {row_no}"
        department = Department(
            dept_id=parse_int_cell(cells[cols["dept_id"]], "dept_id", stage, where),
            dept_title=parse_text_cell(cells[cols["dept_title"]], "dept_title", stage, where),
        )
        departments[department.dept_id] = department

    print(f"[INFO] Loaded {len(departments)} department(s) from {path}")
    return departments


# ==============================
# Salary postings
# ==============================

def read_salary_postings(path: Path, sheet_name: Optional[str] = None) -> List[SalaryPosting]:
    """All salary postings in file order, for every month."""
    layout = SOURCE_LAYOUTS["salary"]
    stage = layout["stage"]
    sheet = sheet_name or layout["sheet"]
    cols = layout["columns"]

    df = load_table(path, sheet, stage, min_columns=_min_columns(layout))

    postings: List[SalaryPosting] = []
    for row_no, cells in _rows(df):
        where = f"{Path(path).name} row {row_no}"
        postings.append(
            SalaryPosting(
                emp_id=parse_int_cell(cells[cols["emp_id"]], "emp_id", stage, where),
                posting_date=parse_date_cell(
                    cells[cols["salary_month"]],
                    SALARY_DATE_FORMAT,
                    "salary month",
                    stage,
                    where,
                    prefix=SALARY_DAY_PREFIX,
                ).replace(day=1),
                status=parse_text_cell(cells[cols["status"]], "salary status", stage, where),
            )
        )
    return postings


def load_salaries(
    path: Path,
    period: ReportingPeriod,
    sheet_name: Optional[str] = None,
    legacy: bool = False,
    duplicates: str = "last",
) -> Dict[int, str]:
    """
    Salary status per employee for the reporting month.

    Postings for other months are dropped. When an employee has more than
    one posting in the month, ``duplicates`` picks the "last" or "first"
    one in file order. In legacy mode only the month number is compared.
    """
    if duplicates not in DUPLICATE_POLICIES:
        raise ParseError("config", f"Unknown duplicate salary policy: {duplicates!r}")

    postings = read_salary_postings(path, sheet_name)

    statuses: Dict[int, str] = {}
    skipped = 0
    duplicate_count = 0
    for posting in postings:
        if legacy:
            in_period = posting.posting_date.month == period.month
        else:
            in_period = period.contains(posting.posting_date)
        if not in_period:
            skipped += 1
            continue

        if posting.emp_id in statuses:
            duplicate_count += 1
            if duplicates == "first":
                continue
        statuses[posting.emp_id] = posting.status

    print(
        f"[INFO] Loaded {len(postings)} salary posting(s) from {path}; "
        f"{len(statuses)} employee(s) posted in {period.label}, {skipped} outside the period."
    )
    if duplicate_count:
        print(
            f"[WARN] {duplicate_count} duplicate salary posting(s) in {period.label}; "
            f"keeping the {duplicates} one per employee."
        )
    return statuses


# ==============================
# Leave intervals
# ==============================

def read_leave_intervals(path: Path, sheet_name: Optional[str] = None) -> List[LeaveInterval]:
    layout = SOURCE_LAYOUTS["leave"]
    stage = layout["stage"]
    sheet = sheet_name or layout["sheet"]
    cols = layout["columns"]

    df = load_table(path, sheet, stage, min_columns=_min_columns(layout))

    intervals: List[LeaveInterval] = []
    for row_no, cells in _rows(df):
        where = f"{Path(path).name} row {row_no}"
        intervals.append(
            LeaveInterval(
                emp_id=parse_int_cell(cells[cols["emp_id"]], "emp_id", stage, where),
                leave_from=parse_date_cell(
                    cells[cols["leave_from"]], LEAVE_DATE_FORMAT, "leave from date", stage, where
                ),
                leave_to=parse_date_cell(
                    cells[cols["leave_to"]], LEAVE_DATE_FORMAT, "leave to date", stage, where
                ),
            )
        )
    return intervals


def load_leaves(
    path: Path,
    period: ReportingPeriod,
    sheet_name: Optional[str] = None,
    legacy: bool = False,
) -> Dict[int, int]:
    """Leave days per employee inside the reporting month."""
    intervals = read_leave_intervals(path, sheet_name)
    leaves = aggregate_leave(intervals, period, legacy=legacy)

    print(
        f"[INFO] Loaded {len(intervals)} leave interval(s) from {path}; "
        f"{len(leaves)} employee(s) on leave in {period.label}."
    )
    return leaves
