from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable

from fiscal.calendar import VIEW_MODES, FiscalCalendarData, FiscalYear, build_calendar, calendar_to_dict, year_to_dict
from fiscal.config import Settings
from fiscal.quick_select import presets_for_year
from fiscal.source import CalendarSourceError, load_configured_rows
from fiscal.spreadsheet import build_csv_rows, generate_csv_bytes

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
logger = logging.getLogger("build_static")

PROJECT_ROOT = Path(__file__).resolve().parent
DOCS_DIR = PROJECT_ROOT / "docs"


def ensure_directory(path: Path) -> None:
    """Create directory and parents if missing."""

    path.mkdir(parents=True, exist_ok=True)


def serialise_calendar(data: FiscalCalendarData, docs_dir: Path) -> None:
    ensure_directory(docs_dir / "api")
    calendar_path = docs_dir / "api" / "calendar.json"
    calendar_path.write_text(json.dumps(calendar_to_dict(data), indent=2), encoding="utf-8")


def serialise_year(data: FiscalCalendarData, year: FiscalYear, docs_dir: Path, settings: Settings) -> None:
    base_dir = docs_dir / "api" / "years" / str(year.year)
    ensure_directory(base_dir)
    for view in VIEW_MODES:
        payload = year_to_dict(year, view)
        payload["quickPresets"] = presets_for_year(data, year.year, settings.today())
        path = base_dir / f"{view.lower()}.json"
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def serialise_csv(years: Iterable[FiscalYear], docs_dir: Path) -> None:
    ensure_directory(docs_dir / "downloads")
    for year in years:
        stream = generate_csv_bytes(build_csv_rows(year))
        csv_path = docs_dir / "downloads" / f"fiscal_calendar_fy{year.year}.csv"
        csv_path.write_bytes(stream.getbuffer())


def build_static_site(settings: Settings | None = None, docs_dir: Path = DOCS_DIR) -> None:
    settings = settings or Settings.from_env()
    ensure_directory(docs_dir)

    logger.info("Loading fiscal calendar rows...")
    try:
        rows = load_configured_rows(settings)
    except CalendarSourceError as exc:
        logger.error("Failed to load fiscal calendar rows: %s", exc)
        raise
    data = build_calendar(rows)

    logger.info("Serialising API payloads...")
    serialise_calendar(data, docs_dir)
    for number in sorted(data.years):
        logger.info("Writing FY %s", number)
        serialise_year(data, data.years[number], docs_dir, settings)
    serialise_csv((data.years[number] for number in sorted(data.years)), docs_dir)

    logger.info("Static snapshot build complete.")


if __name__ == "__main__":
    build_static_site()
