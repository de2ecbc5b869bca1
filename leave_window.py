from datetime import date, timedelta
from typing import Dict, Iterable

from models import LeaveInterval, ReportingPeriod, next_month_first_day


# ==============================
# Clipping
# ==============================

def clip_to_month(
    leave_from: date,
    leave_to: date,
    period: ReportingPeriod,
    legacy: bool = False,
) -> int:
    """
    Number of days of the inclusive interval [leave_from, leave_to] that fall
    inside the reporting month.

      - Both ends inside the month: to - from + 1
      - One end inside: counted from the later start up to the earlier end,
        where the month boundary stands in for the end that is outside
      - Interval covers the whole month: days in the month
      - No overlap: 0

    With ``legacy=True`` dates are matched on month number only, and month
    boundaries are built from the interval's own years, which is how older
    reports were produced. Kept for output compatibility. Legacy results are
    not bounded by the month length: a December interval running into
    January ends at the following year's January 1st.
    """
    if legacy:
        return _legacy_clip(leave_from, leave_to, period.month)

    start = max(leave_from, period.first_day)
    end = min(leave_to + timedelta(days=1), period.next_first_day)  # exclusive
    return max(0, (end - start).days)


def _legacy_clip(leave_from: date, leave_to: date, month: int) -> int:
    from_inside = leave_from.month == month
    to_inside = leave_to.month == month

    if from_inside and to_inside:
        return (leave_to - leave_from).days + 1

    if from_inside or to_inside:
        start = leave_from if from_inside else date(leave_from.year, month, 1)
        if to_inside:
            return (leave_to - start).days + 1
        return (next_month_first_day(leave_to.year, month) - start).days

    if leave_from.month < month < leave_to.month:
        month_start = date(leave_to.year, month, 1)
        return (next_month_first_day(leave_to.year, month) - month_start).days

    return 0


# ==============================
# Aggregation
# ==============================

def aggregate_leave(
    intervals: Iterable[LeaveInterval],
    period: ReportingPeriod,
    legacy: bool = False,
) -> Dict[int, int]:
    """
    Sum clipped leave days per employee for the reporting month.

    An employee only gets an entry once one of their intervals contributes
    days; intervals outside the month never create a zero entry.
    """
    totals: Dict[int, int] = {}
    for interval in intervals:
        days = clip_to_month(interval.leave_from, interval.leave_to, period, legacy=legacy)
        if days:
            totals[interval.emp_id] = totals.get(interval.emp_id, 0) + days
    return totals
