"""Runtime settings read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Mapping, Optional
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "America/New_York"


def _optional_int(value: Optional[str], name: str) -> Optional[int]:
    if value is None or not value.strip():
        return None
    try:
        parsed = int(value.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc
    if parsed <= 0:
        raise ValueError(f"{name} must be positive, got {parsed}")
    return parsed


@dataclass(frozen=True)
class Settings:
    metabase_url: Optional[str] = None
    metabase_api_key: Optional[str] = None
    card_id_override: Optional[int] = None
    rows_file: Optional[str] = None
    timezone: str = DEFAULT_TIMEZONE
    cache_ttl: timedelta = timedelta(minutes=5)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        cache_minutes = _optional_int(env.get("FISCAL_CALENDAR_CACHE_MINUTES"), "FISCAL_CALENDAR_CACHE_MINUTES")
        return cls(
            metabase_url=(env.get("METABASE_URL") or "").rstrip("/") or None,
            metabase_api_key=env.get("METABASE_API_KEY") or None,
            card_id_override=_optional_int(env.get("FISCAL_CALENDAR_CARD_ID"), "FISCAL_CALENDAR_CARD_ID"),
            rows_file=env.get("FISCAL_CALENDAR_ROWS_FILE") or None,
            timezone=env.get("FISCAL_CALENDAR_TIMEZONE") or DEFAULT_TIMEZONE,
            cache_ttl=timedelta(minutes=cache_minutes) if cache_minutes else timedelta(minutes=5),
        )

    def today(self) -> date:
        """Return today's date in the configured calendar zone."""

        return datetime.now(tz=ZoneInfo(self.timezone)).date()
