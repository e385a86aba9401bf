"""Build a navigable fiscal calendar from period boundary rows.

Only period rows are stored upstream; weeks are generated here. The weekday on
which a year's weeks start is taken from the first period's start date.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("YEAR", "START_DATE", "END_DATE", "PERIOD", "QUARTER")
VIEW_MODES = ("Q1", "Q2", "Q3", "Q4", "Year")


class CalendarDataError(ValueError):
    """Raised when period rows are missing, empty, or malformed."""


@dataclass(frozen=True)
class FiscalCalendarRow:
    year: int
    start_date: date
    end_date: date
    period: int
    quarter: int


@dataclass
class FiscalPeriod:
    id: int
    name: str
    fiscal_year: int
    quarter: int
    start_date: date
    end_date: date
    days_in_period: int
    start_week: int = 0
    end_week: int = 0

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


@dataclass(frozen=True)
class FiscalWeek:
    week_num: int
    period_num: int
    period_name: str
    quarter: int
    fiscal_year: int
    label: str
    week_in_period: int
    start_date: date
    end_date: date
    days: Tuple[date, ...]


@dataclass
class FiscalYear:
    year: int
    start_date: date
    end_date: date
    periods: List[FiscalPeriod]
    weeks: List[FiscalWeek]

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def find_week(self, week_num: int) -> Optional[FiscalWeek]:
        for week in self.weeks:
            if week.week_num == week_num:
                return week
        return None

    def find_period(self, period_id: int) -> Optional[FiscalPeriod]:
        for period in self.periods:
            if period.id == period_id:
                return period
        return None


@dataclass
class FiscalCalendarData:
    years: Dict[int, FiscalYear]
    date_to_week: Dict[str, FiscalWeek]
    min_year: int
    max_year: int
    warnings: List[str] = field(default_factory=list)


def date_key(day: date) -> str:
    """Return the ``YYYY-MM-DD`` lookup key for ``day``."""

    if isinstance(day, datetime):
        day = day.date()
    return day.isoformat()


def period_name(period_id: int) -> str:
    return f"P{period_id:02d}"


def _parse_date(value: object, field_name: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise CalendarDataError(f"{field_name} must be a date, got {value!r}")
    # Accept "2025-02-01", "2025-02-01T00:00:00" and "2025-02-01 00:00:00Z".
    text = value.strip()[:10]
    try:
        return date.fromisoformat(text)
    except ValueError as exc:
        raise CalendarDataError(f"{field_name} is not an ISO date: {value!r}") from exc


def _parse_int(value: object, field_name: str) -> int:
    if isinstance(value, bool):
        raise CalendarDataError(f"{field_name} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise CalendarDataError(f"{field_name} must be an integer, got {value!r}")
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.replace(",", "").strip())
        except ValueError as exc:
            raise CalendarDataError(f"{field_name} must be an integer, got {value!r}") from exc
    raise CalendarDataError(f"{field_name} must be an integer, got {value!r}")


def coerce_row(raw: Mapping[str, object]) -> FiscalCalendarRow:
    """Validate a loosely-typed row mapping and return a typed row."""

    if isinstance(raw, FiscalCalendarRow):
        return raw
    if not isinstance(raw, Mapping):
        raise CalendarDataError(f"Row must be a mapping, got {type(raw).__name__}")

    values = {str(key).upper(): value for key, value in raw.items()}
    missing = [name for name in REQUIRED_FIELDS if values.get(name) in (None, "")]
    if missing:
        raise CalendarDataError(f"Row is missing required fields: {', '.join(missing)}")

    row = FiscalCalendarRow(
        year=_parse_int(values["YEAR"], "YEAR"),
        start_date=_parse_date(values["START_DATE"], "START_DATE"),
        end_date=_parse_date(values["END_DATE"], "END_DATE"),
        period=_parse_int(values["PERIOD"], "PERIOD"),
        quarter=_parse_int(values["QUARTER"], "QUARTER"),
    )
    if row.end_date < row.start_date:
        raise CalendarDataError(
            f"Period {row.period} of {row.year} ends before it starts "
            f"({row.start_date} > {row.end_date})"
        )
    if row.period <= 0:
        raise CalendarDataError(f"PERIOD must be positive, got {row.period}")
    return row


def _week_start_on_or_before(day: date, anchor_weekday: int) -> date:
    return day - timedelta(days=(day.weekday() - anchor_weekday) % 7)


def _build_periods(rows: List[FiscalCalendarRow], fiscal_year: int) -> List[FiscalPeriod]:
    return [
        FiscalPeriod(
            id=row.period,
            name=period_name(row.period),
            fiscal_year=fiscal_year,
            quarter=row.quarter,
            start_date=row.start_date,
            end_date=row.end_date,
            days_in_period=(row.end_date - row.start_date).days + 1,
        )
        for row in rows
    ]


def _build_weeks(periods: List[FiscalPeriod]) -> List[FiscalWeek]:
    weeks: List[FiscalWeek] = []
    anchor_weekday = periods[0].start_date.weekday()
    week_num = 1

    for period in periods:
        start = _week_start_on_or_before(period.start_date, anchor_weekday)
        week_in_period = 1
        # The last week may run past the period end; it still belongs here.
        while start <= period.end_date:
            days = tuple(start + timedelta(days=offset) for offset in range(7))
            weeks.append(
                FiscalWeek(
                    week_num=week_num,
                    period_num=period.id,
                    period_name=period.name,
                    quarter=period.quarter,
                    fiscal_year=period.fiscal_year,
                    label=f"{period.name}-W{week_in_period:02d}",
                    week_in_period=week_in_period,
                    start_date=start,
                    end_date=days[-1],
                    days=days,
                )
            )
            start += timedelta(days=7)
            week_num += 1
            week_in_period += 1
    return weeks


def _backfill_week_bounds(periods: List[FiscalPeriod], weeks: List[FiscalWeek]) -> None:
    bounds: Dict[int, Tuple[int, int]] = {}
    for week in weeks:
        first, _ = bounds.get(week.period_num, (week.week_num, week.week_num))
        bounds[week.period_num] = (first, week.week_num)
    for period in periods:
        period.start_week, period.end_week = bounds[period.id]


def _detect_anomalies(fiscal_year: int, rows: List[FiscalCalendarRow]) -> List[str]:
    found: List[str] = []
    for previous, current in zip(rows, rows[1:]):
        expected = previous.end_date + timedelta(days=1)
        if current.start_date < expected:
            found.append(
                f"FY {fiscal_year}: {period_name(current.period)} starts {current.start_date} "
                f"before {period_name(previous.period)} ends {previous.end_date}"
            )
        elif current.start_date > expected:
            found.append(
                f"FY {fiscal_year}: gap between {period_name(previous.period)} ({previous.end_date}) "
                f"and {period_name(current.period)} ({current.start_date})"
            )
    return found


def build_calendar(raw_rows: Iterable[Mapping[str, object]]) -> FiscalCalendarData:
    """Turn period rows into years, periods, generated weeks and a date index.

    Raises :class:`CalendarDataError` when no rows are supplied or any row is
    malformed. No partial result is ever returned.
    """

    rows = [coerce_row(raw) for raw in raw_rows]
    if not rows:
        raise CalendarDataError("No fiscal calendar rows were supplied.")

    rows_by_year: Dict[int, List[FiscalCalendarRow]] = {}
    for row in rows:
        rows_by_year.setdefault(row.year, []).append(row)

    years: Dict[int, FiscalYear] = {}
    date_to_week: Dict[str, FiscalWeek] = {}
    warnings: List[str] = []

    for fiscal_year in sorted(rows_by_year):
        year_rows = sorted(rows_by_year[fiscal_year], key=lambda item: item.period)
        period_ids = [row.period for row in year_rows]
        if len(set(period_ids)) != len(period_ids):
            raise CalendarDataError(f"FY {fiscal_year} has duplicate period numbers: {period_ids}")

        for message in _detect_anomalies(fiscal_year, year_rows):
            logger.warning("Fiscal calendar anomaly: %s", message)
            warnings.append(message)

        periods = _build_periods(year_rows, fiscal_year)
        weeks = _build_weeks(periods)
        _backfill_week_bounds(periods, weeks)

        for week in weeks:
            for day in week.days:
                date_to_week[date_key(day)] = week

        years[fiscal_year] = FiscalYear(
            year=fiscal_year,
            start_date=year_rows[0].start_date,
            end_date=year_rows[-1].end_date,
            periods=periods,
            weeks=weeks,
        )

    year_numbers = sorted(years)
    logger.info(
        "Built fiscal calendar for FY %s-%s (%d periods, %d weeks)",
        year_numbers[0],
        year_numbers[-1],
        sum(len(item.periods) for item in years.values()),
        sum(len(item.weeks) for item in years.values()),
    )
    return FiscalCalendarData(
        years=years,
        date_to_week=date_to_week,
        min_year=year_numbers[0],
        max_year=year_numbers[-1],
        warnings=warnings,
    )


# ----- lookups -------------------------------------------------------------


def get_current_fiscal_context(
    data: FiscalCalendarData, today: date
) -> Tuple[Optional[FiscalWeek], Optional[FiscalPeriod]]:
    """Return the week and period containing ``today``, or ``(None, None)``."""

    week = data.date_to_week.get(date_key(today))
    if week is None:
        return None, None
    year = data.years.get(week.fiscal_year)
    period = year.find_period(week.period_num) if year else None
    return week, period


def fiscal_year_for_date(data: FiscalCalendarData, day: date) -> Optional[int]:
    for number in sorted(data.years):
        if data.years[number].contains(day):
            return number
    return None


def get_current_fiscal_year(data: FiscalCalendarData, today: date) -> int:
    """Return the fiscal year to show first for ``today``."""

    week = data.date_to_week.get(date_key(today))
    if week is not None:
        return week.fiscal_year
    year = fiscal_year_for_date(data, today)
    if year is not None:
        return year
    numbers = sorted(data.years)
    return numbers[len(numbers) // 2]


def get_periods_for_quarter(periods: List[FiscalPeriod], quarter: int) -> List[FiscalPeriod]:
    return [period for period in periods if period.quarter == quarter]


def get_weeks_for_view(weeks: List[FiscalWeek], view: str) -> List[FiscalWeek]:
    if view not in VIEW_MODES:
        raise ValueError(f"Unknown view mode {view!r}")
    if view == "Year":
        return list(weeks)
    quarter = int(view[1:])
    return [week for week in weeks if week.quarter == quarter]


def get_months_in_view(weeks: List[FiscalWeek]) -> List[dict]:
    """Return the calendar months covered by ``weeks`` in chronological order.

    A week counts toward the month of its middle day.
    """

    months: Dict[Tuple[int, int], set] = {}
    for week in weeks:
        middle = week.days[len(week.days) // 2]
        months.setdefault((middle.year, middle.month), set()).add(week.period_name)
    return [
        {"year": year, "month": month, "periodNames": sorted(names)}
        for (year, month), names in sorted(months.items())
    ]


# ----- serialisation -------------------------------------------------------


def period_to_dict(period: FiscalPeriod) -> dict:
    return {
        "id": period.id,
        "name": period.name,
        "fiscalYear": period.fiscal_year,
        "quarter": period.quarter,
        "startDate": period.start_date.isoformat(),
        "endDate": period.end_date.isoformat(),
        "daysInPeriod": period.days_in_period,
        "startWeek": period.start_week,
        "endWeek": period.end_week,
    }


def week_to_dict(week: FiscalWeek) -> dict:
    return {
        "weekNum": week.week_num,
        "periodNum": week.period_num,
        "periodName": week.period_name,
        "quarter": week.quarter,
        "fiscalYear": week.fiscal_year,
        "label": week.label,
        "weekInPeriod": week.week_in_period,
        "startDate": week.start_date.isoformat(),
        "endDate": week.end_date.isoformat(),
        "days": [day.isoformat() for day in week.days],
    }


def year_to_dict(year: FiscalYear, view: str = "Year") -> dict:
    weeks = get_weeks_for_view(year.weeks, view)
    periods = year.periods if view == "Year" else get_periods_for_quarter(year.periods, int(view[1:]))
    return {
        "year": year.year,
        "startDate": year.start_date.isoformat(),
        "endDate": year.end_date.isoformat(),
        "view": view,
        "periods": [period_to_dict(period) for period in periods],
        "weeks": [week_to_dict(week) for week in weeks],
        "months": get_months_in_view(weeks),
    }


def calendar_to_dict(data: FiscalCalendarData) -> dict:
    return {
        "minYear": data.min_year,
        "maxYear": data.max_year,
        "years": [
            {
                "year": item.year,
                "startDate": item.start_date.isoformat(),
                "endDate": item.end_date.isoformat(),
                "periodCount": len(item.periods),
                "weekCount": len(item.weeks),
            }
            for item in (data.years[number] for number in sorted(data.years))
        ],
        "warnings": list(data.warnings),
    }
