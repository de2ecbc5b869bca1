import argparse
from datetime import date, timedelta
from pathlib import Path
from typing import Dict, Optional

import numpy as np
import pandas as pd

from models import ReportingPeriod
from sources import (
    EMPLOYEE_HEADERS,
    LEAVE_DATE_FORMAT,
    SOURCE_LAYOUTS,
)

# Project paths
PROJECT_ROOT = Path(__file__).resolve().parent
DATA_RAW = PROJECT_ROOT / "data" / "raw"

DEPARTMENT_TITLES = ["Finance", "Engineering", "Sales", "Operations", "People", "Legal"]
FIRST_NAMES = ["Asha", "Ravi", "Meera", "John", "Li", "Fatima", "Carlos", "Ines", "Tomas", "Priya"]
LAST_NAMES = ["Rao", "Kumar", "Smith", "Chen", "Khan", "Garcia", "Silva", "Novak", "Iyer", "Brown"]
SALARY_STATUSES = ["Credited", "Credited", "Credited", "On Hold", "Processing"]
LEAVE_TYPES = ["Casual", "Sick", "Earned", "Unpaid"]

# Unknown to the department workbook on purpose
UNMAPPED_DEPT_ID = 999


def _salary_month(d: date) -> str:
    return d.strftime("%b %Y")


def _leave_interval(rng: np.random.Generator, period: ReportingPeriod) -> tuple[date, date]:
    """
    Pick an interval that starts before, ends after, straddles, sits inside,
    or misses the reporting month.
    """
    first = period.first_day
    last = period.next_first_day - timedelta(days=1)
    kind = rng.choice(["inside", "starts_before", "ends_after", "straddles", "other_month"])

    if kind == "inside":
        start = first + timedelta(days=int(rng.integers(0, period.days_in_month)))
        end = start + timedelta(days=int(rng.integers(0, (last - start).days + 1)))
    elif kind == "starts_before":
        start = first - timedelta(days=int(rng.integers(1, 15)))
        end = first + timedelta(days=int(rng.integers(0, 10)))
    elif kind == "ends_after":
        start = last - timedelta(days=int(rng.integers(0, 10)))
        end = last + timedelta(days=int(rng.integers(1, 15)))
    elif kind == "straddles":
        start = first - timedelta(days=int(rng.integers(1, 10)))
        end = last + timedelta(days=int(rng.integers(1, 10)))
    else:
        end = first - timedelta(days=int(rng.integers(20, 40)))
        start = end - timedelta(days=int(rng.integers(0, 5)))

    return start, end


def generate_sample_inputs(
    out_dir: Path = DATA_RAW,
    period: Optional[ReportingPeriod] = None,
    num_emps: int = 40,
    seed: int = 7,
) -> Dict[str, Path]:
    """
    Generate a synthetic roster plus department, salary and leave workbooks
    in the layouts the report reads.

    - Most employees map to a department; some point at an unknown id or
      leave the department blank
    - Salary postings for the previous month for everyone, and for the
      reporting month for roughly 80% of employees
    - Leave intervals inside, across and outside the reporting month
    """
    print("Starting sample input generation...")

    rng = np.random.default_rng(seed)
    period = period or ReportingPeriod.of(date.today())
    previous_month = ReportingPeriod.of(period.first_day - timedelta(days=1))
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    dept_rows = [[10 * (i + 1), title] for i, title in enumerate(DEPARTMENT_TITLES)]
    dept_ids = [row[0] for row in dept_rows]

    employee_rows = []
    salary_rows = []
    leave_rows = []

    for emp_idx in range(num_emps):
        emp_id = 1001 + emp_idx
        name = f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}"

        dept_roll = rng.random()
        if dept_roll < 0.85:
            dept_id = str(rng.choice(dept_ids))
        elif dept_roll < 0.95:
            dept_id = str(UNMAPPED_DEPT_ID)
        else:
            dept_id = ""

        employee_rows.append(
            [
                emp_id,
                name,
                dept_id,
                f"9{int(rng.integers(100_000_000, 1_000_000_000))}",
                f"{name.lower().replace(' ', '.')}.{emp_id}@example.com",
            ]
        )

        salary = round(float(rng.uniform(30_000, 120_000)) / 12, 2)

        # -------------------------
        # Salary postings
        # -------------------------
        salary_rows.append(
            [emp_id, name, _salary_month(previous_month.first_day), salary, "Credited"]
        )
        if rng.random() < 0.80:
            salary_rows.append(
                [emp_id, name, _salary_month(period.first_day), salary, str(rng.choice(SALARY_STATUSES))]
            )

        # -------------------------
        # Leave intervals
        # -------------------------
        for _ in range(int(rng.choice([0, 0, 1, 1, 2]))):
            start, end = _leave_interval(rng, period)
            leave_rows.append(
                [
                    emp_id,
                    name,
                    start.strftime(LEAVE_DATE_FORMAT),
                    end.strftime(LEAVE_DATE_FORMAT),
                    str(rng.choice(LEAVE_TYPES)),
                ]
            )

    paths = {
        "employees": out_dir / "employees.txt",
        "departments": out_dir / "departments.xlsx",
        "salaries": out_dir / "salaries.xlsx",
        "leaves": out_dir / "leaves.xlsx",
    }

    pd.DataFrame(employee_rows, columns=EMPLOYEE_HEADERS).to_csv(
        paths["employees"], sep="|", index=False
    )
    for key, layout_name, rows in [
        ("departments", "department", dept_rows),
        ("salaries", "salary", salary_rows),
        ("leaves", "leave", leave_rows),
    ]:
        layout = SOURCE_LAYOUTS[layout_name]
        pd.DataFrame(rows, columns=layout["headers"]).to_excel(
            paths[key], sheet_name=layout["sheet"], index=False
        )

    print(f"Generated employee roster:   {paths['employees']}  ({len(employee_rows)} rows)")
    print(f"Generated departments:       {paths['departments']}  ({len(dept_rows)} rows)")
    print(f"Generated salary postings:   {paths['salaries']}  ({len(salary_rows)} rows)")
    print(f"Generated leave intervals:   {paths['leaves']}  ({len(leave_rows)} rows)")
    return paths


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Generate sample inputs for the employee report")
    parser.add_argument("--out-dir", default=str(DATA_RAW))
    parser.add_argument("--period", default=None, help="Reporting period as YYYY-MM (default: this month)")
    parser.add_argument("--employees", type=int, default=40)
    parser.add_argument("--seed", type=int, default=7)
    args = parser.parse_args()

    generate_sample_inputs(
        out_dir=Path(args.out_dir),
        period=ReportingPeriod.parse(args.period) if args.period else None,
        num_emps=args.employees,
        seed=args.seed,
    )
