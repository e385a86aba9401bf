"""Editing rules for period checkboxes and week clicks.

Both rules keep the chosen periods or weeks a contiguous run.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from .calendar import FiscalPeriod, FiscalWeek
from .selection import Selection, select_week, select_week_range


def toggle_period(selected_ids: Sequence[int], period_id: int, all_period_ids: Iterable[int]) -> List[int]:
    """Return the period ids selected after toggling ``period_id``.

    Unchecking truncates the sorted selection at the unchecked id, dropping it
    and every id after it. Checking fills in every known id between the new
    minimum and maximum. If either end is not a known id the selection is
    returned unchanged.
    """

    ordered_all = sorted(all_period_ids)
    current = sorted(selected_ids)

    if period_id in current:
        return current[: current.index(period_id)]

    if not current:
        return [period_id]

    low = min(current[0], period_id)
    high = max(current[-1], period_id)
    if low not in ordered_all or high not in ordered_all:
        return current
    return ordered_all[ordered_all.index(low) : ordered_all.index(high) + 1]


def select_all_periods(periods: Iterable[FiscalPeriod]) -> List[int]:
    return [period.id for period in periods]


@dataclass(frozen=True)
class WeekClickResult:
    """Outcome of a week click.

    ``action`` is ``"clear"``, ``"week"`` or ``"range"``. ``anchor`` is the week
    number to remember for the next shift-click (``None`` forgets it).
    """

    action: str
    anchor: Optional[int]
    week_num: Optional[int] = None
    week_range: Optional[Tuple[int, int]] = None


def resolve_week_click(
    week_num: int,
    *,
    shift: bool,
    anchor: Optional[int],
    current_range: Optional[Tuple[int, int]] = None,
) -> WeekClickResult:
    if shift and anchor is not None:
        if current_range is not None:
            low, high = current_range
            if week_num == low and low < high:
                return WeekClickResult("range", anchor=high, week_range=(low + 1, high))
            if week_num == high and high > low:
                return WeekClickResult("range", anchor=low, week_range=(low, high - 1))
        return WeekClickResult(
            "range",
            anchor=anchor,
            week_range=(min(anchor, week_num), max(anchor, week_num)),
        )

    if anchor == week_num:
        return WeekClickResult("clear", anchor=None)
    return WeekClickResult("week", anchor=week_num, week_num=week_num)


def apply_week_click(result: WeekClickResult, week: FiscalWeek, weeks: Sequence[FiscalWeek]) -> Optional[Selection]:
    """Build the selection a resolved click asks for.

    Raises ``UnknownEntityError`` when the range names a week missing from
    ``weeks``.
    """

    if result.action == "clear":
        return None
    if result.action == "week":
        return select_week(week)
    return select_week_range(result.week_range[0], result.week_range[1], weeks)
