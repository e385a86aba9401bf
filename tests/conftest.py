from datetime import date

import pytest

from fiscal.calendar import build_calendar

# FY2024 is a 4-4-5 half year starting on a Sunday; FY2025 starts on a Saturday
# and its second period does not end on a week boundary.
ROWS = [
    {"YEAR": 2024, "START_DATE": "2024-02-04", "END_DATE": "2024-03-02", "PERIOD": 1, "QUARTER": 1},
    {"YEAR": 2024, "START_DATE": "2024-03-03", "END_DATE": "2024-03-30", "PERIOD": 2, "QUARTER": 1},
    {"YEAR": 2024, "START_DATE": "2024-03-31", "END_DATE": "2024-05-04", "PERIOD": 3, "QUARTER": 1},
    {"YEAR": 2024, "START_DATE": "2024-05-05", "END_DATE": "2024-06-01", "PERIOD": 4, "QUARTER": 2},
    {"YEAR": 2024, "START_DATE": "2024-06-02", "END_DATE": "2024-06-29", "PERIOD": 5, "QUARTER": 2},
    {"YEAR": 2024, "START_DATE": "2024-06-30", "END_DATE": "2024-08-03", "PERIOD": 6, "QUARTER": 2},
    {"YEAR": 2025, "START_DATE": "2025-02-01", "END_DATE": "2025-02-28", "PERIOD": 1, "QUARTER": 1},
    {"YEAR": 2025, "START_DATE": "2025-03-01", "END_DATE": "2025-03-31", "PERIOD": 2, "QUARTER": 1},
]

# Wednesday of FY2024 week 10 (period 3).
TODAY = date(2024, 4, 10)


@pytest.fixture
def rows():
    return [dict(row) for row in ROWS]


@pytest.fixture
def calendar_data(rows):
    return build_calendar(rows)


@pytest.fixture
def fy2024(calendar_data):
    return calendar_data.years[2024]


@pytest.fixture
def fy2025(calendar_data):
    return calendar_data.years[2025]
