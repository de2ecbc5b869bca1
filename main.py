# main.py

import argparse
import json
import os
import sys
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, TextIO

from models import (
    Department,
    Employee,
    ParseError,
    ReportError,
    ReportIOError,
    ReportingPeriod,
    ReportRow,
)
from sources import (
    DUPLICATE_POLICIES,
    load_departments,
    load_employees,
    load_leaves,
    load_salaries,
)


CONFIG_DIR = Path(__file__).resolve().parent / "config"
CONFIG_NAME = "report_defaults.json"
CONFIG_ENV_VAR = "EMP_REPORT_CONFIG"

OUTPUT_DELIMITER = "~#~"
REPORT_HEADER = [
    "Emp ID",
    "Emp Name",
    "Dept Title",
    "Mobile No",
    "Email",
    "Salary Status",
    "On Leave",
]


# ============================================================
# Configuration
# ============================================================

@dataclass(frozen=True)
class ReportConfig:
    """Delimiters, sheet names and the defaults used for join misses."""

    employee_delimiter: str = "|"
    output_delimiter: str = OUTPUT_DELIMITER
    department_sheet: str = "Sheet1"
    salary_sheet: str = "Sheet1"
    leave_sheet: str = "Sheet1"
    unknown_department: str = "Unknown"
    salary_not_credited: str = "Not Credited"
    default_leave_days: int = 0
    duplicate_salary_policy: str = "last"
    legacy_month_matching: bool = False
    reporting_period: Optional[str] = None  # "YYYY-MM"; None means the current UTC month

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReportConfig":
        if not isinstance(data, dict):
            raise ParseError("config", f"Config must be a JSON object, got {type(data).__name__}")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ParseError("config", f"Unknown config key(s): {', '.join(unknown)}")

        for key, value in data.items():
            if key == "default_leave_days":
                ok = isinstance(value, int) and not isinstance(value, bool) and value >= 0
            elif key == "legacy_month_matching":
                ok = isinstance(value, bool)
            elif key == "reporting_period":
                ok = value is None or isinstance(value, str)
            else:
                ok = isinstance(value, str)
                if ok and key.endswith("_delimiter"):
                    ok = value != ""
            if not ok:
                raise ParseError("config", f"Invalid value for {key}: {value!r}")

        config = cls(**data)
        if config.duplicate_salary_policy not in DUPLICATE_POLICIES:
            raise ParseError(
                "config",
                f"duplicate_salary_policy must be one of {DUPLICATE_POLICIES}, "
                f"got {config.duplicate_salary_policy!r}",
            )
        if config.reporting_period is not None:
            ReportingPeriod.parse(config.reporting_period)
        return config


def load_config(path: Optional[Path] = None) -> ReportConfig:
    """
    Load the report config. An explicit path (argument or EMP_REPORT_CONFIG)
    must exist; the bundled default file is optional.
    """
    explicit = path or os.getenv(CONFIG_ENV_VAR)
    config_path = Path(explicit) if explicit else CONFIG_DIR / CONFIG_NAME

    if not config_path.exists():
        if explicit:
            raise ReportIOError("config", f"Config file not found: {config_path}")
        print("[INFO] No config file found; using defaults.")
        return ReportConfig()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ParseError("config", f"{config_path} is not valid JSON: {e}") from e
    except OSError as e:
        raise ReportIOError("config", f"Could not read {config_path}: {e}") from e

    return ReportConfig.from_dict(data)


def resolve_reporting_period(config: ReportConfig, now: Optional[datetime] = None) -> ReportingPeriod:
    """
    The month the report is for. Read once per run and passed down, so every
    record in the run is measured against the same month.
    """
    if config.reporting_period:
        return ReportingPeriod.parse(config.reporting_period)
    now = now or datetime.now(timezone.utc)
    return ReportingPeriod.of(now.date())


# ============================================================
# Join
# ============================================================

def join_records(
    employees: Sequence[Employee],
    departments: Dict[int, Department],
    salaries: Dict[int, str],
    leaves: Dict[int, int],
    config: Optional[ReportConfig] = None,
) -> List[ReportRow]:
    """
    One report row per employee, in roster order. Lookups that miss fall
    back to the configured defaults; no employee is ever dropped.
    """
    config = config or ReportConfig()
    rows: List[ReportRow] = []

    for employee in employees:
        department = departments.get(employee.dept_id)
        rows.append(
            ReportRow(
                emp_id=employee.emp_id,
                emp_name=employee.emp_name,
                dept_title=department.dept_title if department else config.unknown_department,
                mobile_no=employee.mobile_no,
                email=employee.email,
                salary_status=salaries.get(employee.emp_id, config.salary_not_credited),
                leave_days=leaves.get(employee.emp_id, config.default_leave_days),
            )
        )

    return rows


# ============================================================
# Rendering
# ============================================================

def render_lines(rows: Iterable[ReportRow], delimiter: str = OUTPUT_DELIMITER) -> Iterator[str]:
    """Header line, then one line per row. No line terminators."""
    yield delimiter.join(REPORT_HEADER)
    for row in rows:
        yield delimiter.join(row.fields())


def render_report(rows: Iterable[ReportRow], delimiter: str = OUTPUT_DELIMITER) -> bytes:
    return "".join(f"{line}\n" for line in render_lines(rows, delimiter)).encode("utf-8")


def write_report(rows: Iterable[ReportRow], sink: TextIO, delimiter: str = OUTPUT_DELIMITER) -> int:
    """Write the report to ``sink`` a whole line at a time. Returns the data row count."""
    lines = render_lines(rows, delimiter)
    sink.write(f"{next(lines)}\n")

    written = 0
    for line in lines:
        sink.write(f"{line}\n")
        written += 1
    return written


def write_report_file(rows: Sequence[ReportRow], output_path: Path, delimiter: str = OUTPUT_DELIMITER) -> int:
    output_path = Path(output_path)
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8", newline="\n") as f:
            return write_report(rows, f, delimiter)
    except OSError as e:
        raise ReportIOError("output", f"Could not write {output_path}: {e}") from e


# ============================================================
# Run summary
# ============================================================

@dataclass
class RunSummary:
    period: str  # "YYYY-MM"
    employee_count: int
    department_misses: int
    salary_misses: int
    employees_on_leave: int
    total_leave_days: int
    output_path: Path


def build_run_summary(
    employees: Sequence[Employee],
    departments: Dict[int, Department],
    salaries: Dict[int, str],
    rows: Sequence[ReportRow],
    period: ReportingPeriod,
    output_path: Path,
) -> RunSummary:
    """
    Leave figures come from the written rows, so configured defaults count
    the same way they appear in the report. Misses are lookup failures,
    whatever label the defaults render them with.
    """
    return RunSummary(
        period=period.label,
        employee_count=len(rows),
        department_misses=sum(1 for e in employees if e.dept_id not in departments),
        salary_misses=sum(1 for e in employees if e.emp_id not in salaries),
        employees_on_leave=sum(1 for row in rows if row.leave_days > 0),
        total_leave_days=sum(row.leave_days for row in rows),
        output_path=Path(output_path),
    )


def print_run_summary(summary: RunSummary) -> None:
    print("\n=== Employee Report Summary ===")
    print(f"Reporting period:          {summary.period}")
    print(f"Employees reported:        {summary.employee_count:>4}")
    print(f"Unknown department:        {summary.department_misses:>4}")
    print(f"Salary not credited:       {summary.salary_misses:>4}")
    print(f"Employees on leave:        {summary.employees_on_leave:>4}")
    print(f"Total leave days:          {summary.total_leave_days:>4}")
    print(f"\nReport written to: {summary.output_path}")


# ============================================================
# Orchestration
# ============================================================

def run_report(
    emp_data_file: Path,
    dept_data_file: Path,
    salary_data_file: Path,
    leave_data_file: Path,
    output_file: Path,
    config: Optional[ReportConfig] = None,
    period: Optional[ReportingPeriod] = None,
) -> Dict[str, Any]:
    """
    Read the four sources, join them and write the report.

    All sources are parsed before the output file is opened, so a parse
    failure never leaves a partial report behind. Raises ReportIOError or
    ParseError on the first failure.
    """
    config = config or ReportConfig()
    period = period or resolve_reporting_period(config)
    legacy = config.legacy_month_matching

    print(f"Running employee report for {period.label}...")
    if legacy:
        print("[WARN] Legacy month matching is on; years are ignored when matching months.")

    employees = load_employees(emp_data_file, delimiter=config.employee_delimiter)
    departments = load_departments(dept_data_file, sheet_name=config.department_sheet)
    salaries = load_salaries(
        salary_data_file,
        period,
        sheet_name=config.salary_sheet,
        legacy=legacy,
        duplicates=config.duplicate_salary_policy,
    )
    leaves = load_leaves(leave_data_file, period, sheet_name=config.leave_sheet, legacy=legacy)

    rows = join_records(employees, departments, salaries, leaves, config)
    written = write_report_file(rows, output_file, delimiter=config.output_delimiter)

    return {
        "rows": rows,
        "rows_written": written,
        "output_file": str(output_file),
        "summary": build_run_summary(employees, departments, salaries, rows, period, output_file),
    }


def run_report_with_summary(
    emp_data_file: Path,
    dept_data_file: Path,
    salary_data_file: Path,
    leave_data_file: Path,
    output_file: Path,
    config: Optional[ReportConfig] = None,
    period: Optional[ReportingPeriod] = None,
) -> Dict[str, Any]:
    """
    Wrapper around run_report that always returns a dict:

      success: {"summary": RunSummary, "results_dict": <run_report result>, "error": None}
      failure: {"summary": None, "results_dict": {}, "error": "<stage>: <message>", "stage": <stage>}

    Only ReportError is turned into an error entry; anything else is a bug
    and propagates.
    """
    try:
        results = run_report(
            emp_data_file,
            dept_data_file,
            salary_data_file,
            leave_data_file,
            output_file,
            config=config,
            period=period,
        )
    except ReportError as e:
        return {"summary": None, "results_dict": {}, "error": str(e), "stage": e.stage}

    return {"summary": results["summary"], "results_dict": results, "error": None}


# ============================================================
# CLI
# ============================================================

def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Employee Report Generator: roster, departments, salary and leave in one report"
    )
    parser.add_argument(
        "-e", "--emp-data-file-path", dest="emp_data", required=True,
        help="Path to the employee data file",
    )
    parser.add_argument(
        "-d", "--dept-data-file-path", dest="dept_data", required=True,
        help="Path to the department data file",
    )
    parser.add_argument(
        "-s", "--salary-data-file-path", dest="salary_data", required=True,
        help="Path to the salary data file",
    )
    parser.add_argument(
        "-l", "--leave-data-file-path", dest="leave_data", required=True,
        help="Path to the leave data file",
    )
    parser.add_argument(
        "-o", "--output-file-path", dest="output_file", required=True,
        help="Path to the output file",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)

    try:
        config = load_config()
    except ReportError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1

    period = resolve_reporting_period(config)

    results = run_report_with_summary(
        emp_data_file=Path(args.emp_data),
        dept_data_file=Path(args.dept_data),
        salary_data_file=Path(args.salary_data),
        leave_data_file=Path(args.leave_data),
        output_file=Path(args.output_file),
        config=config,
        period=period,
    )

    if results["error"]:
        print(f"[ERROR] {results['error']}", file=sys.stderr)
        return 1

    print_run_summary(results["summary"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
