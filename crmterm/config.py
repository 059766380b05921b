"""User preferences for crmterm.

Handles the display name and time zone stored in a small JSON file.
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .database import data_dir

logger = logging.getLogger(__name__)

DEFAULT_NAME = "CRM User"
DEFAULT_TIMEZONE = "UTC"


class ConfigError(Exception):
    """Preferences could not be read or written."""


class InvalidTimezoneError(ConfigError):
    """The value is not a loadable time zone identifier."""


def config_path() -> Path:
    override = os.getenv("CRMTERM_CONFIG")
    if override:
        return Path(override)
    return data_dir() / "config.json"


def load_zone(name: str) -> ZoneInfo:
    """Return the zone for ``name`` or raise :class:`InvalidTimezoneError`."""
    name = (name or "").strip()
    if not name:
        raise InvalidTimezoneError("timezone cannot be empty")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError) as exc:
        raise InvalidTimezoneError(f"unknown timezone: {name}") from exc


def default_name() -> str:
    for var in ("USER", "USERNAME"):
        name = os.getenv(var)
        if name:
            return name
    return DEFAULT_NAME


def default_timezone() -> str:
    candidate = os.getenv("TZ", "").lstrip(":")
    if candidate:
        try:
            load_zone(candidate)
            return candidate
        except InvalidTimezoneError:
            pass
    return DEFAULT_TIMEZONE


class Settings:
    """Persisted display name and time zone."""

    def __init__(self, path: Path, name: str, timezone: str):
        self.path = path
        self.name = name
        self.timezone = timezone

    @classmethod
    def load(cls, path: Path | None = None) -> "Settings":
        """Read the preferences file, writing defaults when it is missing."""
        path = Path(path) if path is not None else config_path()
        if not path.exists():
            settings = cls(path, default_name(), default_timezone())
            settings.save()
            return settings
        try:
            data = json.loads(path.read_text())
        except OSError as exc:
            raise ConfigError(f"read config: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise ConfigError(f"parse config: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError("parse config: expected a JSON object")
        name = str(data.get("name") or "").strip() or default_name()
        timezone = str(data.get("timezone") or "").strip() or default_timezone()
        return cls(path, name, timezone)

    def save(self) -> None:
        payload = {"name": self.name, "timezone": self.timezone}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(payload, indent=2))
        except OSError as exc:
            raise ConfigError(f"write config: {exc}") from exc

    def location(self) -> ZoneInfo:
        """Configured zone, or UTC when the stored identifier is unusable."""
        try:
            return load_zone(self.timezone)
        except InvalidTimezoneError:
            logger.warning("timezone %r not loadable, using UTC", self.timezone)
            return ZoneInfo(DEFAULT_TIMEZONE)

    def set_name(self, name: str) -> None:
        name = (name or "").strip()
        if not name:
            raise ConfigError("name cannot be empty")
        previous = self.name
        self.name = name
        try:
            self.save()
        except ConfigError:
            self.name = previous
            raise

    def set_timezone(self, timezone: str) -> None:
        load_zone(timezone)
        previous = self.timezone
        self.timezone = timezone.strip()
        try:
            self.save()
        except ConfigError:
            self.timezone = previous
            raise
