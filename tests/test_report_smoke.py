from pathlib import Path
import io
import json
import sys
from datetime import date, datetime, timezone

import pandas as pd
import pytest

# Ensure repo root (where main.py lives) is on PYTHONPATH
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from main import (  # noqa: E402
    REPORT_HEADER,
    build_run_summary,
    ReportConfig,
    join_records,
    load_config,
    main,
    render_lines,
    render_report,
    resolve_reporting_period,
    run_report,
    run_report_with_summary,
    write_report,
)
from models import (  # noqa: E402
    Department,
    Employee,
    ParseError,
    ReportIOError,
    ReportingPeriod,
    ReportRow,
)
from sources import (  # noqa: E402
    EMPLOYEE_HEADERS,
    SOURCE_LAYOUTS,
    load_departments,
    load_employees,
    load_leaves,
    load_salaries,
    read_leave_intervals,
    read_salary_postings,
)


JUNE = ReportingPeriod(2025, 6)


def write_employees(path: Path, lines: list[str]) -> None:
    header = "|".join(EMPLOYEE_HEADERS)
    path.write_text("\n".join([header, *lines]) + "\n", encoding="utf-8")


def write_sheet(path: Path, layout_name: str, rows: list[list], sheet_name: str = "Sheet1") -> None:
    headers = SOURCE_LAYOUTS[layout_name]["headers"]
    pd.DataFrame(rows, columns=headers).to_excel(path, sheet_name=sheet_name, index=False)


@pytest.fixture
def inputs(tmp_path: Path) -> dict:
    """Three employees; 42 has no department, salary or leave records."""
    paths = {
        "employees": tmp_path / "employees.txt",
        "departments": tmp_path / "departments.xlsx",
        "salaries": tmp_path / "salaries.xlsx",
        "leaves": tmp_path / "leaves.xlsx",
        "output": tmp_path / "out" / "report.txt",
    }

    write_employees(
        paths["employees"],
        [
            "1|Asha Rao|10|9000000001|asha@example.com",
            "42|Zed Null|77|9000000042|zed@example.com",
            "2|Ravi Kumar||9000000002|ravi@example.com",
        ],
    )
    write_sheet(paths["departments"], "department", [[10, "Finance"], [20, "Sales"]])
    write_sheet(
        paths["salaries"],
        "salary",
        [
            [1, "Asha Rao", "Jun 2025", 5000, "Credited"],
            [2, "Ravi Kumar", "May 2025", 4000, "Credited"],
            [2, "Ravi Kumar", "Jun 2024", 4000, "Credited"],
        ],
    )
    write_sheet(
        paths["leaves"],
        "leave",
        [
            [1, "Asha Rao", "20-05-2025", "10-06-2025", "Casual"],
            [1, "Asha Rao", "05-06-2025", "05-06-2025", "Sick"],
            [2, "Ravi Kumar", "01-01-2025", "31-01-2025", "Casual"],
        ],
    )
    return paths


def run(inputs: dict, config: ReportConfig | None = None) -> dict:
    return run_report(
        inputs["employees"],
        inputs["departments"],
        inputs["salaries"],
        inputs["leaves"],
        inputs["output"],
        config=config,
        period=JUNE,
    )


# ==============================
# End to end
# ==============================

def test_report_happy_path(inputs):
    results = run(inputs)

    lines = inputs["output"].read_text(encoding="utf-8").splitlines()
    assert lines == [
        "Emp ID~#~Emp Name~#~Dept Title~#~Mobile No~#~Email~#~Salary Status~#~On Leave",
        "1~#~Asha Rao~#~Finance~#~9000000001~#~asha@example.com~#~Credited~#~11",
        "42~#~Zed Null~#~Unknown~#~9000000042~#~zed@example.com~#~Not Credited~#~0",
        "2~#~Ravi Kumar~#~Unknown~#~9000000002~#~ravi@example.com~#~Not Credited~#~0",
    ]
    assert results["rows_written"] == 3

    summary = results["summary"]
    assert summary.period == "2025-06"
    assert summary.employee_count == 3
    assert summary.department_misses == 2
    assert summary.salary_misses == 2
    assert summary.employees_on_leave == 1
    assert summary.total_leave_days == 11


def test_legacy_month_matching_ignores_year(inputs):
    """Older reports matched on month number only, so Jun 2024 counts for Jun 2025."""
    run(inputs, ReportConfig(legacy_month_matching=True))

    lines = inputs["output"].read_text(encoding="utf-8").splitlines()
    assert lines[3].split("~#~")[5] == "Credited"


def test_duplicate_salary_postings_last_wins_by_default(tmp_path):
    path = tmp_path / "salaries.xlsx"
    write_sheet(
        path,
        "salary",
        [
            [1, "Asha Rao", "Jun 2025", 5000, "Processing"],
            [1, "Asha Rao", "Jun 2025", 5000, "Credited"],
        ],
    )

    assert load_salaries(path, JUNE) == {1: "Credited"}
    assert load_salaries(path, JUNE, duplicates="first") == {1: "Processing"}


def test_parse_failure_writes_no_report(inputs):
    write_employees(inputs["employees"], ["abc|Broken|10|1|b@example.com"])

    with pytest.raises(ParseError) as excinfo:
        run(inputs)

    assert excinfo.value.stage == "employee data"
    assert not inputs["output"].exists()


def test_run_report_with_summary_reports_stage(inputs):
    inputs["leaves"].unlink()

    results = run_report_with_summary(
        inputs["employees"],
        inputs["departments"],
        inputs["salaries"],
        inputs["leaves"],
        inputs["output"],
        period=JUNE,
    )

    assert results["summary"] is None
    assert results["stage"] == "leave data"
    assert results["error"].startswith("leave data: File not found")


# ==============================
# CLI
# ==============================

def cli_args(inputs: dict) -> list[str]:
    return [
        "-e", str(inputs["employees"]),
        "-d", str(inputs["departments"]),
        "-s", str(inputs["salaries"]),
        "-l", str(inputs["leaves"]),
        "-o", str(inputs["output"]),
    ]


def test_cli_success(inputs, tmp_path, monkeypatch):
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"reporting_period": "2025-06"}), encoding="utf-8")
    monkeypatch.setenv("EMP_REPORT_CONFIG", str(config_path))

    assert main(cli_args(inputs)) == 0
    assert len(inputs["output"].read_text(encoding="utf-8").splitlines()) == 4


def test_cli_failure_exits_non_zero(inputs, tmp_path, monkeypatch, capsys):
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"reporting_period": "2025-06"}), encoding="utf-8")
    monkeypatch.setenv("EMP_REPORT_CONFIG", str(config_path))
    write_sheet(inputs["departments"], "department", [["ten", "Finance"]])

    assert main(cli_args(inputs)) == 1
    assert "[ERROR] department data:" in capsys.readouterr().err


def test_cli_requires_all_paths(inputs):
    with pytest.raises(SystemExit) as excinfo:
        main(cli_args(inputs)[:-2])
    assert excinfo.value.code != 0


# ==============================
# Join + render
# ==============================

def test_join_is_total_and_keeps_roster_order():
    employees = [
        Employee(3, "C", 1, "m3", "c@x"),
        Employee(42, "Nobody", 99, "m42", "n@x"),
        Employee(1, "A", None, "m1", "a@x"),
    ]
    departments = {1: Department(1, "Ops")}

    rows = join_records(employees, departments, {3: "Credited"}, {3: 4})

    assert [r.emp_id for r in rows] == [3, 42, 1]
    assert rows[1] == ReportRow(42, "Nobody", "Unknown", "m42", "n@x", "Not Credited", 0)
    assert rows[2].dept_title == "Unknown"


def test_join_uses_configured_defaults():
    config = ReportConfig(unknown_department="N/A", salary_not_credited="Pending")
    rows = join_records([Employee(5, "E", 2, "m", "e@x")], {}, {}, {}, config)
    assert (rows[0].dept_title, rows[0].salary_status, rows[0].leave_days) == ("N/A", "Pending", 0)


def test_render_lines_split_back_into_row_fields():
    rows = [
        ReportRow(1, "Asha Rao", "Finance", "900", "a@x", "Credited", 11),
        ReportRow(2, "Ravi Kumar", "Unknown", "901", "r@x", "Not Credited", 0),
    ]

    lines = list(render_lines(rows))

    assert lines[0].split("~#~") == REPORT_HEADER
    for line, row in zip(lines[1:], rows):
        parts = line.split("~#~")
        assert len(parts) == 7
        assert parts == row.fields()

    assert render_report(rows) == ("\n".join(lines) + "\n").encode("utf-8")


def test_write_report_counts_rows():
    sink = io.StringIO()
    written = write_report([ReportRow(1, "A", "D", "m", "e", "S", 0)], sink)
    assert written == 1
    assert sink.getvalue().count("\n") == 2


# ==============================
# Sources
# ==============================

def test_load_employees_blank_department_is_none(inputs):
    employees = load_employees(inputs["employees"])
    assert [e.emp_id for e in employees] == [1, 42, 2]
    assert employees[2].dept_id is None
    assert employees[0].mobile_no == "9000000001"


def test_load_employees_wrong_field_count(tmp_path):
    path = tmp_path / "employees.txt"
    write_employees(path, ["1|Asha|10|900", "2|Ravi|10|901"])
    with pytest.raises(ParseError):
        load_employees(path)


def test_load_employees_missing_file(tmp_path):
    with pytest.raises(ReportIOError) as excinfo:
        load_employees(tmp_path / "nope.txt")
    assert excinfo.value.stage == "employee data"


def test_load_departments_missing_sheet(tmp_path):
    path = tmp_path / "departments.xlsx"
    write_sheet(path, "department", [[10, "Finance"]], sheet_name="Data")
    with pytest.raises(ParseError):
        load_departments(path)
    assert load_departments(path, sheet_name="Data") == {10: Department(10, "Finance")}


def test_leave_sheet_accepts_native_date_cells(tmp_path):
    path = tmp_path / "leaves.xlsx"
    write_sheet(path, "leave", [[7, "Li Chen", date(2025, 6, 28), date(2025, 7, 2), "Earned"]])

    intervals = read_leave_intervals(path)

    assert intervals[0].leave_from == date(2025, 6, 28)
    assert load_leaves(path, JUNE) == {7: 3}


def test_leave_sheet_bad_date_is_parse_error(tmp_path):
    path = tmp_path / "leaves.xlsx"
    write_sheet(path, "leave", [[7, "Li Chen", "2025/06/28", "02-07-2025", "Earned"]])
    with pytest.raises(ParseError) as excinfo:
        read_leave_intervals(path)
    assert excinfo.value.stage == "leave data"


# ==============================
# Config
# ==============================

def test_config_rejects_bad_values():
    with pytest.raises(ParseError):
        ReportConfig.from_dict({"duplicate_salary_policy": "middle"})
    with pytest.raises(ParseError):
        ReportConfig.from_dict({"colour": "blue"})
    with pytest.raises(ParseError):
        ReportConfig.from_dict({"reporting_period": "2025-13"})
    with pytest.raises(ParseError):
        ReportConfig.from_dict({"legacy_month_matching": "yes"})


def test_load_config_bundled_defaults(monkeypatch):
    monkeypatch.delenv("EMP_REPORT_CONFIG", raising=False)
    assert load_config() == ReportConfig()


def test_load_config_missing_explicit_path(tmp_path):
    with pytest.raises(ReportIOError):
        load_config(tmp_path / "missing.json")


def test_reporting_period_read_from_clock_once():
    now = datetime(2025, 12, 31, 23, 59, tzinfo=timezone.utc)
    assert resolve_reporting_period(ReportConfig(), now=now) == ReportingPeriod(2025, 12)
    assert resolve_reporting_period(ReportConfig(reporting_period="2024-02"), now=now) == ReportingPeriod(2024, 2)


# ==============================
# Summary and failure paths
# ==============================

def test_summary_matches_rows_with_configured_leave_default(tmp_path):
    """A non-zero default for missing leave shows up in the summary as it does in the report."""
    config = ReportConfig(default_leave_days=2)
    employees = [Employee(1, "A", None, "m", "e"), Employee(2, "B", 10, "m2", "e2")]
    departments = {10: Department(10, "Ops")}

    rows = join_records(employees, departments, {}, {2: 5}, config)
    summary = build_run_summary(employees, departments, {}, rows, JUNE, tmp_path / "r.txt")

    assert [row.leave_days for row in rows] == [2, 5]
    assert summary.total_leave_days == 7
    assert summary.employees_on_leave == 2
    assert summary.department_misses == 1
    assert summary.salary_misses == 2


def test_unwritable_output_is_output_error(inputs, tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    inputs["output"] = blocker / "report.txt"

    with pytest.raises(ReportIOError) as excinfo:
        run(inputs)

    assert excinfo.value.stage == "output"


def test_cli_unwritable_output_exits_non_zero(inputs, tmp_path, monkeypatch, capsys):
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"reporting_period": "2025-06"}), encoding="utf-8")
    monkeypatch.setenv("EMP_REPORT_CONFIG", str(config_path))
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    inputs["output"] = blocker / "report.txt"

    assert main(cli_args(inputs)) == 1
    assert "[ERROR] output:" in capsys.readouterr().err


def test_salary_sheet_bad_month_is_parse_error(tmp_path):
    path = tmp_path / "salaries.xlsx"
    write_sheet(path, "salary", [[1, "Asha Rao", "June 2025", 5000, "Credited"]])

    with pytest.raises(ParseError) as excinfo:
        read_salary_postings(path)

    assert excinfo.value.stage == "salary data"
    assert "salary month" in excinfo.value.message


def test_text_fields_keep_padding_in_every_source(tmp_path):
    roster = tmp_path / "employees.txt"
    write_employees(roster, ["1|  Asha Rao  |10|900|a@example.com"])
    departments = tmp_path / "departments.xlsx"
    write_sheet(departments, "department", [[10, "  Finance  "]])
    salaries = tmp_path / "salaries.xlsx"
    write_sheet(salaries, "salary", [[1, "Asha Rao", "Jun 2025", 5000, " Credited "]])

    assert load_employees(roster)[0].emp_name == "  Asha Rao  "
    assert load_departments(departments)[10].dept_title == "  Finance  "
    assert load_salaries(salaries, JUNE) == {1: " Credited "}
