from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Callable, Dict, List, Optional

from flask import Flask, jsonify, request, send_file

from fiscal.calendar import (
    VIEW_MODES,
    CalendarDataError,
    FiscalCalendarData,
    FiscalYear,
    build_calendar,
    calendar_to_dict,
    fiscal_year_for_date,
    get_current_fiscal_year,
    year_to_dict,
)
from fiscal.config import Settings
from fiscal.drag import DragRangeController
from fiscal.editing import apply_week_click, resolve_week_click, select_all_periods, toggle_period
from fiscal.quick_select import QUICK_TYPES, QuickSelectContextError, presets_for_year, resolve_quick_select
from fiscal.selection import (
    UnknownEntityError,
    format_selection_label,
    from_filter_value,
    parse_date_range,
    parse_day,
    select_periods,
    select_week_range,
    selection_from_dict,
    selection_to_dict,
    serialize_date_range,
    to_filter_value,
)
from fiscal.source import CalendarSourceError, load_configured_rows
from fiscal.spreadsheet import build_csv_rows, generate_csv_bytes

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.json.sort_keys = False
app.config["FISCAL_SETTINGS"] = Settings.from_env()
# Callables so the row source and the clock can be swapped out.
app.config["FISCAL_ROWS_LOADER"] = None
app.config["FISCAL_TODAY"] = None

_cache: Dict[str, object] = {}


class ValidationError(ValueError):
    pass


def _settings() -> Settings:
    return app.config["FISCAL_SETTINGS"]


def _today() -> date:
    override = app.config.get("FISCAL_TODAY")
    return override() if override else _settings().today()


def _default_rows_loader() -> List[dict]:
    return load_configured_rows(_settings())


def _rows_loader() -> Callable[[], List[dict]]:
    return app.config.get("FISCAL_ROWS_LOADER") or _default_rows_loader


def _get_calendar() -> FiscalCalendarData:
    expires_at = _cache.get("expires_at")
    if isinstance(expires_at, datetime) and expires_at > datetime.now(timezone.utc):
        return _cache["data"]
    _cache.clear()

    data = build_calendar(_rows_loader()())

    _cache["data"] = data
    _cache["expires_at"] = datetime.now(timezone.utc) + _settings().cache_ttl
    return data


def _payload() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Missing request payload.")
    return payload


def _require_int(payload: dict, key: str) -> int:
    value = payload.get(key)
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{key} is required.")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be an integer.")


def _optional_int(payload: dict, key: str) -> Optional[int]:
    if payload.get(key) is None:
        return None
    return _require_int(payload, key)


def _require_year(data: FiscalCalendarData, year: int) -> FiscalYear:
    fiscal_year = data.years.get(year)
    if fiscal_year is None:
        raise ValidationError(f"Fiscal year {year} is not available.")
    return fiscal_year


def _parse_day(value: object, key: str) -> date:
    try:
        return parse_day(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be an ISO date.")


def _selection_response(selection, **extra):
    body = {
        "selection": selection_to_dict(selection),
        "summary": format_selection_label(selection) if selection else None,
        "filter": to_filter_value(selection),
    }
    body.update(extra)
    return jsonify(body)


@app.errorhandler(ValidationError)
def _handle_validation_error(exc: ValidationError):
    return jsonify({"error": str(exc)}), 400


@app.errorhandler(CalendarSourceError)
def _handle_source_error(exc: CalendarSourceError):
    logger.warning("Fiscal calendar source failed: %s", exc)
    return jsonify({"error": str(exc)}), 502


@app.errorhandler(CalendarDataError)
def _handle_calendar_data_error(exc: CalendarDataError):
    logger.warning("Fiscal calendar data is invalid: %s", exc)
    return jsonify({"error": f"Fiscal calendar data is invalid: {exc}"}), 502


@app.get("/api/calendar")
def api_calendar():
    data = _get_calendar()
    body = calendar_to_dict(data)
    body["currentFiscalYear"] = get_current_fiscal_year(data, _today())
    return jsonify(body)


@app.get("/api/years/<int:year>")
def api_year(year: int):
    data = _get_calendar()
    fiscal_year = _require_year(data, year)
    view = request.args.get("view", "Year")
    if view not in VIEW_MODES:
        raise ValidationError(f"view must be one of {', '.join(VIEW_MODES)}.")
    body = year_to_dict(fiscal_year, view)
    body["quickPresets"] = presets_for_year(data, year, _today())
    return jsonify(body)


@app.post("/api/selection/periods")
def api_select_periods():
    payload = _payload()
    fiscal_year = _require_year(_get_calendar(), _require_int(payload, "year"))
    period_ids = payload.get("periodIds") or []
    if not isinstance(period_ids, list):
        raise ValidationError("periodIds must be a list.")
    try:
        selection = select_periods([int(item) for item in period_ids], fiscal_year.periods)
    except (TypeError, ValueError):
        raise ValidationError("periodIds must be integers.")
    except UnknownEntityError as exc:
        raise ValidationError(str(exc))
    return _selection_response(selection)


@app.post("/api/selection/periods/toggle")
def api_toggle_period():
    payload = _payload()
    fiscal_year = _require_year(_get_calendar(), _require_int(payload, "year"))
    if payload.get("clear"):
        period_ids: List[int] = []
    elif payload.get("all"):
        period_ids = select_all_periods(fiscal_year.periods)
    else:
        selected = payload.get("selectedIds") or []
        if not isinstance(selected, list):
            raise ValidationError("selectedIds must be a list.")
        try:
            selected = [int(item) for item in selected]
        except (TypeError, ValueError):
            raise ValidationError("selectedIds must be integers.")
        period_ids = toggle_period(
            selected,
            _require_int(payload, "periodId"),
            [period.id for period in fiscal_year.periods],
        )
    try:
        selection = select_periods(period_ids, fiscal_year.periods)
    except UnknownEntityError as exc:
        raise ValidationError(str(exc))
    return _selection_response(selection, periodIds=period_ids)


@app.post("/api/selection/weeks")
def api_select_weeks():
    payload = _payload()
    fiscal_year = _require_year(_get_calendar(), _require_int(payload, "year"))
    try:
        selection = select_week_range(
            _require_int(payload, "startWeek"),
            _require_int(payload, "endWeek"),
            fiscal_year.weeks,
        )
    except UnknownEntityError as exc:
        raise ValidationError(str(exc))
    return _selection_response(selection)


@app.post("/api/selection/week-click")
def api_week_click():
    payload = _payload()
    fiscal_year = _require_year(_get_calendar(), _require_int(payload, "year"))
    week = fiscal_year.find_week(_require_int(payload, "weekNum"))
    if week is None:
        raise ValidationError("Unknown week selection.")
    try:
        current = selection_from_dict(payload.get("selection"))
    except (TypeError, ValueError, IndexError):
        raise ValidationError("selection is malformed.")

    result = resolve_week_click(
        week.week_num,
        shift=bool(payload.get("shift")),
        anchor=_optional_int(payload, "anchor"),
        current_range=current.meta.week_range if current and current.meta else None,
    )
    try:
        selection = apply_week_click(result, week, fiscal_year.weeks)
    except UnknownEntityError:
        selection = current
    return _selection_response(selection, anchor=result.anchor)


@app.post("/api/selection/quick")
def api_quick():
    payload = _payload()
    preset = payload.get("preset")
    if preset not in QUICK_TYPES:
        raise ValidationError("Unsupported quick select preset.")
    try:
        current = selection_from_dict(payload.get("selection"))
    except (TypeError, ValueError, IndexError):
        raise ValidationError("selection is malformed.")

    data = _get_calendar()
    try:
        selection = resolve_quick_select(preset, data, _optional_int(payload, "year"), today=_today())
    except QuickSelectContextError as exc:
        logger.warning("Unable to resolve quick select %s: %s", preset, exc)
        return _selection_response(current, changed=False, error=str(exc))
    if selection is None:
        return _selection_response(current, changed=False)
    return _selection_response(selection, changed=True)


@app.post("/api/selection/drag")
def api_drag():
    payload = _payload()
    controller = DragRangeController()
    controller.start(_parse_day(payload.get("anchor"), "anchor"))
    controller.update(_parse_day(payload.get("current") or payload.get("anchor"), "current"))
    selection = controller.end()
    data = _get_calendar()
    return _selection_response(selection, fiscalYear=fiscal_year_for_date(data, selection.start_date))


@app.post("/api/selection/filter")
def api_filter():
    payload = _payload()
    try:
        if "parameter" in payload:
            selection = parse_date_range(payload.get("parameter"))
        elif "filter" in payload:
            selection = from_filter_value(payload.get("filter"))
        else:
            selection = selection_from_dict(payload.get("selection"))
    except (TypeError, ValueError, IndexError) as exc:
        raise ValidationError(str(exc) or "Malformed selection.")

    fiscal_year = None
    if selection is not None:
        fiscal_year = fiscal_year_for_date(_get_calendar(), selection.start_date)
    return _selection_response(selection, parameter=serialize_date_range(selection), fiscalYear=fiscal_year)


@app.get("/download/<int:year>")
def download(year: int):
    fiscal_year = _require_year(_get_calendar(), year)
    selection = None
    if request.args.get("range"):
        try:
            selection = parse_date_range(request.args["range"])
        except ValueError as exc:
            raise ValidationError(str(exc))

    csv_stream = generate_csv_bytes(build_csv_rows(fiscal_year, selection))
    return send_file(
        csv_stream,
        mimetype="text/csv",
        as_attachment=True,
        download_name=f"fiscal_calendar_fy{year}.csv",
    )


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    app.run(debug=True)
