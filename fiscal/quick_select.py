"""Resolve named quick-select presets against the fiscal year being viewed."""

from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional

from .calendar import FiscalCalendarData, FiscalPeriod, FiscalWeek, get_current_fiscal_context
from .selection import (
    QUICK_LABELS,
    Selection,
    select_periods,
    select_quick_range,
    select_week,
)

logger = logging.getLogger(__name__)

QUICK_TYPES = tuple(QUICK_LABELS)
CURRENT_YEAR_PRESETS = ("thisWeek", "lastWeek", "thisPeriod", "thisQuarter", "ytd")
OTHER_YEAR_PRESETS = ("firstWeek", "lastWeek", "firstPeriod", "lastPeriod", "fullYear")


class QuickSelectContextError(RuntimeError):
    """Raised when no reference week or period can be determined."""


def is_current_year(data: FiscalCalendarData, fiscal_year: int, today: date) -> bool:
    year = data.years.get(fiscal_year)
    return bool(year and year.contains(today))


def presets_for_year(data: FiscalCalendarData, fiscal_year: int, today: date) -> List[dict]:
    """Return the presets offered while ``fiscal_year`` is on screen."""

    names = CURRENT_YEAR_PRESETS if is_current_year(data, fiscal_year, today) else OTHER_YEAR_PRESETS
    return [{"id": name, "label": QUICK_LABELS[name]} for name in names]


def resolve_quick_select(
    quick_type: str,
    data: FiscalCalendarData,
    viewing_year: Optional[int] = None,
    *,
    today: date,
) -> Optional[Selection]:
    """Return the selection for ``quick_type``.

    ``None`` means the preset refers to a week or period that does not exist
    (for example the week before week 1) and the current selection should be
    left alone. Raises :class:`QuickSelectContextError` when the viewing year
    is unknown, or when no viewing year is given and ``today`` is outside every
    known year.
    """

    if quick_type not in QUICK_LABELS:
        raise ValueError(f"Unknown quick select preset {quick_type!r}")

    today_week, today_period = get_current_fiscal_context(data, today)

    if viewing_year is not None:
        year = data.years.get(viewing_year)
        if year is None:
            raise QuickSelectContextError(f"Fiscal year {viewing_year} not found in data")
        if today_week is not None and today_week.fiscal_year == viewing_year:
            reference_week, reference_period = today_week, today_period
        else:
            reference_week = year.weeks[0] if year.weeks else None
            reference_period = year.periods[0] if year.periods else None
    else:
        if today_week is None or today_period is None:
            raise QuickSelectContextError(f"{today.isoformat()} is outside every known fiscal year")
        year = data.years[today_week.fiscal_year]
        reference_week, reference_period = today_week, today_period

    if reference_week is None or reference_period is None:
        raise QuickSelectContextError(f"FY {year.year} has no weeks or periods")

    viewing_current = year.contains(today)
    logger.debug(
        "Resolving %s for FY %s (current=%s, week=%s, period=%s)",
        quick_type,
        year.year,
        viewing_current,
        reference_week.week_num,
        reference_period.id,
    )

    if quick_type == "thisWeek":
        return select_week(reference_week)

    if quick_type == "lastWeek":
        previous: Optional[FiscalWeek]
        if viewing_current:
            previous = year.find_week(reference_week.week_num - 1)
        else:
            previous = year.weeks[-1]
        return select_week(previous) if previous else None

    if quick_type == "firstWeek":
        return select_week(year.weeks[0])

    if quick_type == "thisPeriod":
        return select_periods([reference_period.id], year.periods)

    if quick_type == "firstPeriod":
        return select_periods([year.periods[0].id], year.periods)

    if quick_type == "lastPeriod":
        prior: Optional[FiscalPeriod]
        if viewing_current:
            prior = year.find_period(reference_period.id - 1)
        else:
            prior = year.periods[-1]
        return select_periods([prior.id], year.periods) if prior else None

    if quick_type == "thisQuarter":
        quarter_ids = [period.id for period in year.periods if period.quarter == reference_period.quarter]
        return select_periods(quarter_ids, year.periods)

    if quick_type == "ytd":
        return select_quick_range("ytd", year.start_date, today, QUICK_LABELS["ytd"])

    return select_quick_range("fullYear", year.start_date, year.end_date, f"FY {year.year}")
