"""Date-range selection values built from periods, weeks and free ranges."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

from .calendar import FiscalPeriod, FiscalWeek, period_name

SELECTION_TYPES = ("periods", "week", "weekRange", "custom", "quick")
CUSTOM_LABEL = "Custom Range"
RESTORED_LABEL = "Selected Range"

QUICK_LABELS = {
    "thisWeek": "This Week",
    "lastWeek": "Last Week",
    "firstWeek": "First Week",
    "thisPeriod": "This Period",
    "lastPeriod": "Last Period",
    "firstPeriod": "First Period",
    "thisQuarter": "This Quarter",
    "ytd": "Year to Date",
    "fullYear": "Full Year",
}


class UnknownEntityError(LookupError):
    """Raised when a period id or week number is not part of the given list."""


@dataclass(frozen=True)
class SelectionMeta:
    period_ids: Optional[Tuple[int, ...]] = None
    week_num: Optional[int] = None
    week_range: Optional[Tuple[int, int]] = None
    quick_type: Optional[str] = None


@dataclass(frozen=True)
class Selection:
    type: str
    start_date: date
    end_date: date
    label: str
    meta: Optional[SelectionMeta] = None

    def __post_init__(self) -> None:
        if self.type not in SELECTION_TYPES:
            raise ValueError(f"Unknown selection type {self.type!r}")
        if self.start_date > self.end_date:
            raise ValueError("Selection start must not be after its end")

    @property
    def days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def contains(self, day: date) -> bool:
        return self.start_date <= _as_date(day) <= self.end_date


def _as_date(value: date) -> date:
    return value.date() if isinstance(value, datetime) else value


def _ordered(first: date, second: date) -> Tuple[date, date]:
    first, second = _as_date(first), _as_date(second)
    return (first, second) if first <= second else (second, first)


def _find_period(periods: Iterable[FiscalPeriod], period_id: int) -> FiscalPeriod:
    for period in periods:
        if period.id == period_id:
            return period
    raise UnknownEntityError(f"Period {period_id} is not available")


def _find_week(weeks: Iterable[FiscalWeek], week_num: int) -> FiscalWeek:
    for week in weeks:
        if week.week_num == week_num:
            return week
    raise UnknownEntityError(f"Week {week_num} is not available")


def select_periods(period_ids: Sequence[int], periods: Sequence[FiscalPeriod]) -> Optional[Selection]:
    """Return a selection spanning the earliest to the latest chosen period.

    An empty id list clears the selection (``None``). The date span always
    runs from the lowest id's start to the highest id's end; the metadata keeps
    exactly the ids that were chosen.
    """

    if not period_ids:
        return None
    sorted_ids = tuple(sorted(period_ids))
    first = _find_period(periods, sorted_ids[0])
    last = _find_period(periods, sorted_ids[-1])
    return Selection(
        type="periods",
        start_date=first.start_date,
        end_date=last.end_date,
        label=", ".join(period_name(period_id) for period_id in sorted_ids),
        meta=SelectionMeta(period_ids=sorted_ids),
    )


def select_week(week: FiscalWeek) -> Selection:
    return Selection(
        type="week",
        start_date=week.start_date,
        end_date=week.end_date,
        label=week.label,
        meta=SelectionMeta(week_num=week.week_num),
    )


def select_week_range(start_week: int, end_week: int, weeks: Sequence[FiscalWeek]) -> Selection:
    low, high = min(start_week, end_week), max(start_week, end_week)
    first = _find_week(weeks, low)
    last = _find_week(weeks, high)
    label = f"Week {low}" if low == high else f"Weeks {low}-{high}"
    return Selection(
        type="weekRange",
        start_date=first.start_date,
        end_date=last.end_date,
        label=label,
        meta=SelectionMeta(week_range=(low, high)),
    )


def select_custom_range(start: date, end: date, label: str = CUSTOM_LABEL) -> Selection:
    start, end = _ordered(start, end)
    return Selection(type="custom", start_date=start, end_date=end, label=label)


def select_quick_range(quick_type: str, start: date, end: date, label: str) -> Selection:
    start, end = _ordered(start, end)
    return Selection(
        type="quick",
        start_date=start,
        end_date=end,
        label=label,
        meta=SelectionMeta(quick_type=quick_type),
    )


# ----- display helpers -----------------------------------------------------


def _format_date(day: date) -> str:
    return f"{day.strftime('%b')} {day.day}, {day.year}"


def format_selection_label(selection: Selection) -> str:
    """Return a summary such as ``Feb 1, 2025 - Feb 28, 2025 • P01 • 28 days``."""

    parts = [f"{_format_date(selection.start_date)} - {_format_date(selection.end_date)}"]
    meta = selection.meta
    if meta is not None:
        if meta.period_ids:
            parts.append(", ".join(period_name(period_id) for period_id in meta.period_ids))
        if meta.week_num:
            parts.append(f"Week {meta.week_num}")
        if meta.week_range:
            parts.append(f"Weeks {meta.week_range[0]}-{meta.week_range[1]}")
        if meta.quick_type:
            parts.append(QUICK_LABELS.get(meta.quick_type, meta.quick_type))
    parts.append(f"{selection.days} days")
    return " • ".join(parts)


def is_date_in_selection(
    day: date,
    selection: Optional[Selection],
    drag_start: Optional[date] = None,
    drag_current: Optional[date] = None,
) -> bool:
    """Return whether ``day`` should render as selected, including a live drag."""

    day = _as_date(day)
    if drag_start is not None and drag_current is not None:
        low, high = _ordered(drag_start, drag_current)
        if low <= day <= high:
            return True
    if selection is not None:
        return selection.contains(day)
    return False


def is_week_highlighted(week: FiscalWeek, selection: Optional[Selection]) -> bool:
    """Return whether the metadata marks ``week`` as part of the selection."""

    if selection is None or selection.meta is None:
        return False
    meta = selection.meta
    if meta.week_num == week.week_num:
        return True
    if meta.period_ids and week.period_num in meta.period_ids:
        return True
    if meta.week_range:
        return meta.week_range[0] <= week.week_num <= meta.week_range[1]
    return False


# ----- filter values -------------------------------------------------------


def to_filter_value(selection: Optional[Selection]) -> Optional[dict]:
    """Map a selection onto a "between two dates" filter value."""

    if selection is None:
        return None
    return {
        "type": "specific",
        "operator": "between",
        "values": [selection.start_date.isoformat(), selection.end_date.isoformat()],
        "hasTime": False,
    }


def from_filter_value(value: Optional[Mapping[str, object]]) -> Optional[Selection]:
    if not value:
        return None
    if not isinstance(value, Mapping):
        raise ValueError("A filter value must be an object")
    if value.get("type") != "specific" or value.get("operator") != "between":
        raise ValueError("Only specific between filters can be restored")
    values = value.get("values")
    if not isinstance(values, (list, tuple)) or len(values) != 2:
        raise ValueError("A between filter needs exactly two dates")
    start, end = (parse_day(item) for item in values)
    return select_custom_range(start, end, RESTORED_LABEL)


def serialize_date_range(selection: Optional[Selection]) -> Optional[str]:
    if selection is None:
        return None
    return f"{selection.start_date.isoformat()}~{selection.end_date.isoformat()}"


def parse_date_range(text: Optional[str]) -> Optional[Selection]:
    if not text:
        return None
    if not isinstance(text, str):
        raise ValueError(f"Expected a YYYY-MM-DD~YYYY-MM-DD range, got {text!r}")
    start, separator, end = text.partition("~")
    if not separator or not start or not end:
        raise ValueError(f"Expected a YYYY-MM-DD~YYYY-MM-DD range, got {text!r}")
    return select_custom_range(parse_day(start), parse_day(end), RESTORED_LABEL)


def parse_day(value: object) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip()[:10])
    raise ValueError(f"Expected an ISO date, got {value!r}")


# ----- JSON ----------------------------------------------------------------


def selection_to_dict(selection: Optional[Selection]) -> Optional[dict]:
    if selection is None:
        return None
    payload = {
        "type": selection.type,
        "startDate": selection.start_date.isoformat(),
        "endDate": selection.end_date.isoformat(),
        "label": selection.label,
    }
    meta = selection.meta
    if meta is not None:
        meta_payload: dict = {}
        if meta.period_ids is not None:
            meta_payload["periodIds"] = list(meta.period_ids)
        if meta.week_num is not None:
            meta_payload["weekNum"] = meta.week_num
        if meta.week_range is not None:
            meta_payload["weekRange"] = list(meta.week_range)
        if meta.quick_type is not None:
            meta_payload["quickType"] = meta.quick_type
        payload["meta"] = meta_payload
    return payload


def selection_from_dict(payload: Optional[Mapping[str, object]]) -> Optional[Selection]:
    if not payload:
        return None
    if not isinstance(payload, Mapping):
        raise ValueError("A selection must be an object")
    meta = None
    raw_meta = payload.get("meta")
    if isinstance(raw_meta, Mapping) and raw_meta:
        period_ids = raw_meta.get("periodIds")
        week_range = raw_meta.get("weekRange")
        week_num = raw_meta.get("weekNum")
        meta = SelectionMeta(
            period_ids=tuple(int(item) for item in period_ids) if period_ids else None,
            week_num=int(week_num) if week_num is not None else None,
            week_range=(int(week_range[0]), int(week_range[1])) if week_range else None,
            quick_type=raw_meta.get("quickType"),
        )
    start, end = _ordered(parse_day(payload.get("startDate")), parse_day(payload.get("endDate")))
    return Selection(
        type=str(payload.get("type")),
        start_date=start,
        end_date=end,
        label=str(payload.get("label") or ""),
        meta=meta,
    )


def selected_period_ids(selection: Optional[Selection]) -> List[int]:
    if selection is None or selection.meta is None or not selection.meta.period_ids:
        return []
    return list(selection.meta.period_ids)
