from pathlib import Path
import sys

# Ensure repo root (where main.py lives) is on PYTHONPATH
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from generate_sample_inputs import generate_sample_inputs  # noqa: E402
from main import run_report  # noqa: E402
from models import ReportingPeriod  # noqa: E402
from sources import load_employees, read_leave_intervals  # noqa: E402


def test_generated_inputs_produce_a_full_report(tmp_path: Path):
    """
    Sample inputs round through the whole report: one line per generated
    employee and leave days never above the month length.
    """
    period = ReportingPeriod(2025, 12)
    paths = generate_sample_inputs(out_dir=tmp_path / "raw", period=period, num_emps=25, seed=3)

    results = run_report(
        paths["employees"],
        paths["departments"],
        paths["salaries"],
        paths["leaves"],
        tmp_path / "report.txt",
        period=period,
    )

    employees = load_employees(paths["employees"])
    assert len(employees) == 25
    assert [row.emp_id for row in results["rows"]] == [e.emp_id for e in employees]
    assert all(0 <= row.leave_days <= 2 * period.days_in_month for row in results["rows"])
    assert all(i.leave_from <= i.leave_to for i in read_leave_intervals(paths["leaves"]))

    lines = (tmp_path / "report.txt").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 26
    assert all(len(line.split("~#~")) == 7 for line in lines)
