import pytest

from fiscal.editing import apply_week_click, resolve_week_click, select_all_periods, toggle_period
from fiscal.selection import UnknownEntityError

ALL_IDS = [1, 2, 3, 4, 5, 6]


def test_unchecking_truncates_at_the_unchecked_period():
    assert toggle_period([1, 2, 3, 4], 2, ALL_IDS) == [1]
    assert toggle_period([4, 1, 3, 2], 4, ALL_IDS) == [1, 2, 3]
    assert toggle_period([3], 3, ALL_IDS) == []


def test_checking_first_period():
    assert toggle_period([], 4, ALL_IDS) == [4]


def test_checking_fills_gaps():
    assert toggle_period([3], 1, ALL_IDS) == [1, 2, 3]
    assert toggle_period([2, 3], 6, ALL_IDS) == [2, 3, 4, 5, 6]


def test_checking_respects_sparse_period_ids():
    assert toggle_period([10], 40, [10, 20, 30, 40]) == [10, 20, 30, 40]


def test_uncheck_then_recheck_gives_contiguous_range():
    start = [1, 2, 3, 4]
    unchecked = toggle_period(start, 3, ALL_IDS)
    assert unchecked == [1, 2]
    assert toggle_period(unchecked, 3, ALL_IDS) == [1, 2, 3]


def test_checking_unknown_period_keeps_selection():
    assert toggle_period([1, 2], 9, ALL_IDS) == [1, 2]


def test_select_all(fy2024):
    assert select_all_periods(fy2024.periods) == ALL_IDS


def test_plain_click_selects_then_clears():
    first = resolve_week_click(5, shift=False, anchor=None)
    assert (first.action, first.week_num, first.anchor) == ("week", 5, 5)

    again = resolve_week_click(5, shift=False, anchor=5)
    assert (again.action, again.anchor) == ("clear", None)

    other = resolve_week_click(7, shift=False, anchor=5)
    assert (other.action, other.anchor) == ("week", 7)


def test_shift_click_extends_from_anchor():
    result = resolve_week_click(2, shift=True, anchor=6)
    assert result.action == "range"
    assert result.week_range == (2, 6)
    assert result.anchor == 6


def test_shift_click_without_anchor_is_plain_click():
    result = resolve_week_click(4, shift=True, anchor=None)
    assert (result.action, result.anchor) == ("week", 4)


def test_shift_click_on_boundary_shrinks_one_week():
    from_start = resolve_week_click(3, shift=True, anchor=3, current_range=(3, 8))
    assert from_start.week_range == (4, 8)
    assert from_start.anchor == 8

    from_end = resolve_week_click(8, shift=True, anchor=8, current_range=(3, 8))
    assert from_end.week_range == (3, 7)
    assert from_end.anchor == 3


def test_single_week_range_does_not_shrink():
    result = resolve_week_click(5, shift=True, anchor=2, current_range=(5, 5))
    assert result.week_range == (2, 5)


def test_apply_week_click_builds_each_action(fy2024):
    weeks = fy2024.weeks
    week = weeks[4]

    assert apply_week_click(resolve_week_click(week.week_num, shift=False, anchor=week.week_num), week, weeks) is None

    single = apply_week_click(resolve_week_click(week.week_num, shift=False, anchor=None), week, weeks)
    assert single.type == "week"
    assert single.meta.week_num == week.week_num

    ranged = apply_week_click(resolve_week_click(week.week_num, shift=True, anchor=2), week, weeks)
    assert ranged.type == "weekRange"
    assert ranged.meta.week_range == (2, week.week_num)
    assert (ranged.start_date, ranged.end_date) == (weeks[1].start_date, week.end_date)


def test_apply_week_click_unknown_range_week(fy2024):
    week = fy2024.weeks[0]
    result = resolve_week_click(week.week_num, shift=True, anchor=99)
    with pytest.raises(UnknownEntityError):
        apply_week_click(result, week, fy2024.weeks)
