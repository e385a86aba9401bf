"""The single mutable selection cell for one interactive calendar session."""

from __future__ import annotations

import logging
from datetime import date
from typing import Callable, List, Optional, Sequence

from .calendar import FiscalCalendarData, FiscalPeriod, FiscalWeek
from .drag import DragRangeController, DragState
from .editing import apply_week_click, resolve_week_click, select_all_periods, toggle_period
from .quick_select import QuickSelectContextError, resolve_quick_select
from .selection import (
    CUSTOM_LABEL,
    Selection,
    UnknownEntityError,
    select_custom_range,
    select_periods,
    select_week,
    select_week_range,
    selected_period_ids,
)

logger = logging.getLogger(__name__)


class SelectionSession:
    """Holds the current selection, the drag state and the shift-click anchor.

    Every operation replaces the selection as a whole. Operations that refer
    to a missing week or period leave it untouched.
    """

    def __init__(self, today: Optional[Callable[[], date]] = None) -> None:
        self.selection: Optional[Selection] = None
        self.last_clicked_week: Optional[int] = None
        self._drag = DragRangeController()
        self._today = today or date.today

    @property
    def drag_state(self) -> DragState:
        return self._drag.state

    def _replace(self, build: Callable[[], Optional[Selection]]) -> bool:
        try:
            selection = build()
        except UnknownEntityError as exc:
            logger.debug("Ignoring selection change: %s", exc)
            return False
        self.selection = selection
        return True

    # construction

    def select_periods(self, period_ids: Sequence[int], periods: Sequence[FiscalPeriod]) -> bool:
        return self._replace(lambda: select_periods(period_ids, periods))

    def select_week(self, week: FiscalWeek) -> bool:
        return self._replace(lambda: select_week(week))

    def select_week_range(self, start_week: int, end_week: int, weeks: Sequence[FiscalWeek]) -> bool:
        return self._replace(lambda: select_week_range(start_week, end_week, weeks))

    def select_custom_range(self, start: date, end: date, label: str = CUSTOM_LABEL) -> bool:
        return self._replace(lambda: select_custom_range(start, end, label))

    def clear_selection(self) -> None:
        self.selection = None

    def select_quick(self, quick_type: str, data: FiscalCalendarData, viewing_year: Optional[int] = None) -> bool:
        """Apply a preset; returns ``False`` when nothing changed."""

        try:
            selection = resolve_quick_select(quick_type, data, viewing_year, today=self._today())
        except QuickSelectContextError as exc:
            logger.warning("Unable to resolve quick select %s: %s", quick_type, exc)
            return False
        if selection is None:
            logger.debug("Quick select %s has no target in FY %s", quick_type, viewing_year)
            return False
        self.selection = selection
        return True

    # editing

    def toggle_period(self, period_id: int, periods: Sequence[FiscalPeriod]) -> List[int]:
        ids = toggle_period(selected_period_ids(self.selection), period_id, [period.id for period in periods])
        self.select_periods(ids, periods)
        return selected_period_ids(self.selection)

    def select_all_periods(self, periods: Sequence[FiscalPeriod]) -> List[int]:
        ids = select_all_periods(periods)
        self.select_periods(ids, periods)
        return selected_period_ids(self.selection)

    def click_week(self, week: FiscalWeek, weeks: Sequence[FiscalWeek], *, shift: bool = False) -> None:
        meta = self.selection.meta if self.selection else None
        result = resolve_week_click(
            week.week_num,
            shift=shift,
            anchor=self.last_clicked_week,
            current_range=meta.week_range if meta else None,
        )
        self._replace(lambda: apply_week_click(result, week, weeks))
        self.last_clicked_week = result.anchor

    # drag

    def start_drag(self, day: date) -> None:
        self._drag.start(day)

    def update_drag(self, day: date) -> None:
        self._drag.update(day)

    def end_drag(self) -> None:
        selection = self._drag.end()
        if selection is not None:
            self.selection = selection
