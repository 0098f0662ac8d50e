from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import pytz
from dotenv import load_dotenv

from roster_errors import ConfigurationError

DEFAULT_TIMEZONE = "America/Winnipeg"
DEFAULT_FETCH_TIMEOUT = 20.0
DEFAULT_MIN_REST_HOURS = 12.0
DEFAULT_CONTACTS_FILE = Path(__file__).parent / "contacts.json"


@dataclass(frozen=True)
class RosterConfig:
    feed_url: str | None
    timezone: str
    fetch_timeout: float
    min_rest_hours: float
    contacts_file: Path

    def require_feed_url(self) -> str:
        """Return the feed URL or raise ConfigurationError if it was never supplied."""
        if not self.feed_url:
            raise ConfigurationError(
                "ICS_URL is not set. Export the calendar feed URL or add it to .env"
            )
        return self.feed_url


def load_env(dotenv_path: str | Path | None = None) -> None:
    path = Path(dotenv_path) if dotenv_path else None
    if path and path.exists():
        load_dotenv(path)
        return
    load_dotenv()


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


def load_config(dotenv_path: str | Path | None = None) -> RosterConfig:
    load_env(dotenv_path)

    timezone = os.getenv("ROSTER_TIMEZONE", DEFAULT_TIMEZONE).strip() or DEFAULT_TIMEZONE
    if timezone not in pytz.all_timezones_set:
        raise ConfigurationError(f"Unknown ROSTER_TIMEZONE {timezone!r}")

    contacts = os.getenv("ROSTER_CONTACTS_FILE", "").strip()
    contacts_file = Path(contacts).expanduser() if contacts else DEFAULT_CONTACTS_FILE

    return RosterConfig(
        feed_url=os.getenv("ICS_URL", "").strip() or None,
        timezone=timezone,
        fetch_timeout=_float_env("ROSTER_FETCH_TIMEOUT", DEFAULT_FETCH_TIMEOUT),
        min_rest_hours=_float_env("ROSTER_MIN_REST_HOURS", DEFAULT_MIN_REST_HOURS),
        contacts_file=contacts_file,
    )
