"""Pointer-drag range selection."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from .selection import CUSTOM_LABEL, Selection, select_custom_range


@dataclass(frozen=True)
class DragState:
    is_dragging: bool = False
    start_date: Optional[date] = None
    current_date: Optional[date] = None


IDLE = DragState()


class DragRangeController:
    """Track a drag between pointer-down and pointer-up.

    A release outside the grid must still call :meth:`end`, otherwise the
    controller stays in the dragging state.
    """

    def __init__(self) -> None:
        self.state = IDLE

    @property
    def is_dragging(self) -> bool:
        return self.state.is_dragging

    def start(self, day: date) -> None:
        self.state = DragState(is_dragging=True, start_date=day, current_date=day)

    def update(self, day: date) -> None:
        if not self.state.is_dragging:
            return
        self.state = DragState(is_dragging=True, start_date=self.state.start_date, current_date=day)

    def end(self) -> Optional[Selection]:
        """Return the committed range and go idle; ``None`` when nothing was dragged."""

        state, self.state = self.state, IDLE
        if not state.is_dragging or state.start_date is None or state.current_date is None:
            return None
        return select_custom_range(state.start_date, state.current_date, CUSTOM_LABEL)
