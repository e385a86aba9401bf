"""CSV export of a fiscal year's generated weeks."""

from __future__ import annotations

import csv
from datetime import date
from io import BytesIO, StringIO
from typing import Iterable, Optional

from .calendar import FiscalPeriod, FiscalWeek, FiscalYear
from .selection import Selection

_OUTPUT_FIELDS = ["Week", "Label", "Period", "Quarter", "Start", "End", "Selected"]


def _format_day(day: date) -> str:
    """Return a friendly label like 'Sat, Feb 1, 2025'."""
    return f"{day.strftime('%a')}, {day.strftime('%b')} {day.day}, {day.year}"


def _period_heading(period: FiscalPeriod) -> dict:
    return {
        "Week": "",
        "Label": f"{period.name} (W{period.start_week}-{period.end_week})",
        "Period": period.name,
        "Quarter": f"Q{period.quarter}",
        "Start": _format_day(period.start_date),
        "End": _format_day(period.end_date),
        "Selected": "",
    }


def build_csv_rows(year: FiscalYear, selection: Optional[Selection] = None) -> list[dict]:
    rows = []
    periods = {period.id: period for period in year.periods}
    previous_period = None
    for week in year.weeks:
        if week.period_num != previous_period:
            # Grouping row before the weeks of each period.
            rows.append(_period_heading(periods[week.period_num]))
            previous_period = week.period_num
        rows.append(_week_row(week, selection))
    return rows


def _week_row(week: FiscalWeek, selection: Optional[Selection]) -> dict:
    selected = bool(
        selection
        and selection.start_date <= week.end_date
        and week.start_date <= selection.end_date
    )
    return {
        "Week": week.week_num,
        "Label": week.label,
        "Period": week.period_name,
        "Quarter": f"Q{week.quarter}",
        "Start": _format_day(week.start_date),
        "End": _format_day(week.end_date),
        "Selected": "yes" if selected else "",
    }


def generate_csv_bytes(rows: Iterable[dict]) -> BytesIO:
    buffer = StringIO()
    writer = csv.DictWriter(buffer, fieldnames=_OUTPUT_FIELDS, extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow(row)
    binary = BytesIO()
    binary.write(buffer.getvalue().encode("utf-8-sig"))
    binary.seek(0)
    return binary
