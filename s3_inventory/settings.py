from __future__ import annotations
"""Application settings persistence helpers."""

from dataclasses import asdict, dataclass, fields
import json
import logging
from pathlib import Path

LOGGER = logging.getLogger(__name__)


@dataclass
class AppSettings:
    """Simple container for persistent tool settings.

    ``bucket_timeout_seconds`` of 0 means buckets may take as long as they need.
    """

    max_workers: int = 8
    bucket_timeout_seconds: int = 0
    max_attempts: int = 3
    connect_timeout: int = 10
    read_timeout: int = 60
    default_profile: str = ""


_MINIMUMS = {
    "max_workers": 1,
    "bucket_timeout_seconds": 0,
    "max_attempts": 1,
    "connect_timeout": 1,
    "read_timeout": 1,
}


def coerce_setting(name: str, value: object) -> object:
    """Validate ``value`` for the setting ``name``.

    Raises:
        KeyError: when ``name`` is not a setting.
        ValueError: when ``value`` cannot be used for it.
    """

    if name not in {item.name for item in fields(AppSettings)}:
        raise KeyError(name)
    if name in _MINIMUMS:
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise ValueError(f"{name} must be an integer") from None
        if number < _MINIMUMS[name]:
            raise ValueError(f"{name} must be at least {_MINIMUMS[name]}")
        return number
    if not isinstance(value, str):
        raise ValueError(f"{name} must be a string")
    return value


class SettingsStorage:
    """JSON-backed persistence for :class:`AppSettings`."""

    def __init__(self, storage_path: str | Path | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".s3_inventory_settings.json"
        self._path = Path(storage_path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> AppSettings:
        if not self._path.exists():
            return AppSettings()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            LOGGER.warning("Ignoring unreadable settings file %s", self._path)
            return AppSettings()
        if not isinstance(data, dict):
            return AppSettings()
        values = {}
        for item in fields(AppSettings):
            if item.name not in data:
                continue
            try:
                values[item.name] = coerce_setting(item.name, data[item.name])
            except ValueError:
                LOGGER.warning("Ignoring invalid value for setting '%s'", item.name)
        return AppSettings(**values)

    def save(self, settings: AppSettings) -> None:
        payload = asdict(settings)
        for name, minimum in _MINIMUMS.items():
            payload[name] = max(int(payload[name]), minimum)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            # Persist best-effort; ignore filesystem issues.
            LOGGER.warning("Unable to write settings to %s", self._path)
