"""Fetch fiscal calendar rows from a saved question or a local file."""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

FISCAL_CALENDAR_MARKER = "[FISCAL_CALENDAR_SOURCE]"
PREFERRED_COLLECTION_NAMES = ("Fiscal Calendar", "System Queries")
REQUIRED_COLUMNS = ("YEAR", "START_DATE", "END_DATE", "PERIOD", "QUARTER")

_DEFAULT_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/json",
}


class CalendarSourceError(RuntimeError):
    """Raised when calendar rows cannot be located or fetched."""


def parse_query_result(result: object) -> List[Dict[str, object]]:
    """Turn a ``{"data": {"cols": [...], "rows": [...]}}`` result into row dicts."""

    data = result.get("data") if isinstance(result, dict) else None
    if not isinstance(data, dict) or not isinstance(data.get("rows"), list) or not isinstance(data.get("cols"), list):
        raise CalendarSourceError("Invalid query result format")

    columns: Dict[str, int] = {}
    for index, column in enumerate(data["cols"]):
        name = column.get("name") if isinstance(column, dict) else None
        if name:
            columns[str(name).upper()] = index

    missing = [name for name in REQUIRED_COLUMNS if name not in columns]
    if missing:
        raise CalendarSourceError(
            f"Missing required columns: {', '.join(missing)}. Expected: {', '.join(REQUIRED_COLUMNS)}"
        )

    rows: List[Dict[str, object]] = []
    for raw in data["rows"]:
        if not isinstance(raw, (list, tuple)):
            raise CalendarSourceError("Query result rows must be lists")
        rows.append({name: raw[columns[name]] if columns[name] < len(raw) else None for name in REQUIRED_COLUMNS})
    return rows


class CalendarSource:
    """Thin client for the saved-question API that holds the period rows."""

    def __init__(
        self,
        base_url: str,
        *,
        api_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: int = 20,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(_DEFAULT_HEADERS)
        if api_key:
            self.session.headers["x-api-key"] = api_key

    def _request(self, method: str, path: str, **kwargs) -> object:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise CalendarSourceError(f"Request to {path} failed") from exc

        if response.status_code not in (200, 202):
            raise CalendarSourceError(f"{path} returned {response.status_code}")

        try:
            return response.json()
        except ValueError as exc:
            raise CalendarSourceError(f"{path} response was not valid JSON") from exc

    def query_card(
        self,
        card_id: int,
        *,
        start_year: Optional[int] = None,
        end_year: Optional[int] = None,
    ) -> List[Dict[str, object]]:
        """Run the saved question and return its rows, optionally limited to a year range."""

        parameters = []
        if start_year is not None and end_year is not None:
            parameters = [
                {
                    "type": "number/=",
                    "value": start_year,
                    "target": ["variable", ["template-tag", "start_year"]],
                },
                {
                    "type": "number/=",
                    "value": end_year,
                    "target": ["variable", ["template-tag", "end_year"]],
                },
            ]
        result = self._request("POST", f"/api/card/{card_id}/query", json={"parameters": parameters})
        rows = parse_query_result(result)
        logger.info("Fetched %d fiscal calendar rows from card %s", len(rows), card_id)
        return rows

    def search_cards(self, query: str, *, limit: int = 20) -> List[dict]:
        payload = self._request(
            "GET",
            "/api/search",
            params={
                "q": query,
                "models": ["card", "dataset"],
                "filter_items_in_personal_collection": "exclude",
                "archived": "false",
                "limit": limit,
            },
        )
        if isinstance(payload, dict):
            payload = payload.get("data")
        if not isinstance(payload, list):
            logger.warning("Search payload for %r was not a list", query)
            return []
        return [item for item in payload if isinstance(item, dict)]


def _coerce_card_id(value: object) -> Optional[int]:
    try:
        card_id = int(str(value))
    except (TypeError, ValueError):
        return None
    return card_id if card_id > 0 else None


class CardDiscovery:
    """Locate the saved question that supplies fiscal calendar rows.

    An explicit ``override`` is used as-is. Otherwise cards whose description
    carries :data:`FISCAL_CALENDAR_MARKER` are searched, preferring ones in a
    known system collection. The first discovered id is remembered.
    """

    def __init__(self, source: CalendarSource, override: Optional[int] = None) -> None:
        self.source = source
        self.override = override
        self._discovered: Optional[int] = None

    @property
    def origin(self) -> str:
        if self.override:
            return "override"
        return "auto-discovered" if self._discovered else "not-found"

    def resolve(self) -> int:
        if self.override:
            logger.info("Using fiscal calendar card override %s", self.override)
            return self.override
        if self._discovered:
            return self._discovered

        results = self.source.search_cards(FISCAL_CALENDAR_MARKER)
        marked = [card for card in results if FISCAL_CALENDAR_MARKER in (card.get("description") or "")]
        if not marked:
            raise CalendarSourceError(
                f'Fiscal calendar card not found. Add "{FISCAL_CALENDAR_MARKER}" to the description '
                "of the saved question that returns the period rows."
            )

        def in_preferred_collection(card: dict) -> bool:
            collection = card.get("collection") or {}
            name = (collection.get("name") or "").lower()
            return any(preferred.lower() in name for preferred in PREFERRED_COLLECTION_NAMES)

        chosen = next((card for card in marked if in_preferred_collection(card)), marked[0])
        card_id = _coerce_card_id(chosen.get("id"))
        if card_id is None:
            raise CalendarSourceError(f"Discovered card has an invalid id: {chosen.get('id')!r}")

        collection_name = (chosen.get("collection") or {}).get("name") or "root"
        logger.info('Discovered fiscal calendar card "%s" (%s) in "%s"', chosen.get("name"), card_id, collection_name)
        self._discovered = card_id
        return card_id

    def fetch_rows(self) -> List[Dict[str, object]]:
        return self.source.query_card(self.resolve())


def load_rows_file(path: str | Path) -> List[Dict[str, object]]:
    """Load period rows from a JSON list or a CSV file with the required headers."""

    file_path = Path(path)
    if not file_path.exists():
        raise CalendarSourceError(f"Fiscal calendar file not found at {file_path}")

    if file_path.suffix.lower() == ".csv":
        with file_path.open(encoding="utf-8-sig", newline="") as handle:
            return [dict(row) for row in csv.DictReader(handle)]

    try:
        with file_path.open(encoding="utf-8") as handle:
            payload = json.load(handle)
    except json.JSONDecodeError as exc:
        raise CalendarSourceError(f"Invalid JSON in {file_path}") from exc

    if isinstance(payload, dict) and "data" in payload:
        return parse_query_result(payload)
    if not isinstance(payload, list):
        raise CalendarSourceError(f"Unexpected structure in {file_path}")
    return payload


def load_configured_rows(settings) -> List[Dict[str, object]]:
    """Load rows from the file or the saved question named by ``settings``."""

    if settings.rows_file:
        return load_rows_file(settings.rows_file)
    if not settings.metabase_url:
        raise CalendarSourceError("Set METABASE_URL or FISCAL_CALENDAR_ROWS_FILE to load the fiscal calendar.")
    source = CalendarSource(settings.metabase_url, api_key=settings.metabase_api_key)
    return CardDiscovery(source, override=settings.card_id_override).fetch_rows()
