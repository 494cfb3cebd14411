"""Settings dataclass, value coercion and JSON persistence."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping

__all__ = [
    "Settings",
    "SettingsStore",
    "DEFAULT_PREFIX_TEMPLATE",
    "DEFAULT_BASE_URL",
    "coerce_setting",
    "parse_bool",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".parley"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
DEFAULT_PREFIX_TEMPLATE = "<TIMESTAMP><MARKER><ROLENAME><ROLEPROMPT>"
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_ENV_PREFIX = "PARLEY_"
# Environment names that differ from the upper-cased field name.
_ENV_ALIASES: Mapping[str, str] = {
    "timestamps_enabled": "PARLEY_TIMESTAMPS",
    "autosave_enabled": "PARLEY_AUTOSAVE",
    "log_dir": "PARLEY_LOG_DIRECTORY",
}
# Fields that are never read from the environment.
_ENV_EXCLUDED = frozenset({"word_replacements", "prefix_template"})


@dataclass(slots=True)
class Settings:
    """User-configurable settings persisted between editor sessions."""

    api_key_source: str = "GEMINI_API_KEY"
    model: str = "gemini-2.0-flash"
    base_url: str = DEFAULT_BASE_URL
    request_timeout: float = 60.0
    timestamps_enabled: bool = False
    user_role_name: str = "User"
    model_role_name: str = "Gemini"
    role_marker: str = "## "
    role_prompt: str = ":"
    prefix_template: str = DEFAULT_PREFIX_TEMPLATE
    log_dir: str = str(_SETTINGS_DIR / "transcripts")
    autosave_enabled: bool = False
    autosave_interval: float = 300.0
    max_log_files: int = 0
    word_replacements: dict[str, str] = field(default_factory=dict)
    debug_logging: bool = False

    @property
    def log_path(self) -> Path:
        """Return the transcript log directory as an expanded path."""

        return Path(self.log_dir).expanduser()


# ----------------------------------------------------------------------
# Coercion
# ----------------------------------------------------------------------
def parse_bool(value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"'{value}' is not a boolean value")


def _parse_replacements(value: str) -> dict[str, str]:
    try:
        payload = json.loads(value or "{}")
    except json.JSONDecodeError as exc:
        raise ValueError("word_replacements must be a JSON object") from exc
    if not isinstance(payload, dict):
        raise ValueError("word_replacements must be a JSON object")
    return {str(key): str(item) for key, item in payload.items()}


_COERCERS: Mapping[type, Callable[[str], Any]] = {
    bool: parse_bool,
    int: lambda value: int(value.strip(), 10),
    float: lambda value: float(value.strip()),
    dict: _parse_replacements,
    str: lambda value: value,
}


def _field_types() -> Dict[str, type]:
    defaults = Settings()
    return {item.name: type(getattr(defaults, item.name)) for item in fields(Settings)}


def coerce_setting(name: str, raw_value: str) -> Any:
    """Convert ``raw_value`` to the type of the ``Settings`` field ``name``.

    Raises:
        KeyError: ``name`` is not a settings field.
        ValueError: ``raw_value`` cannot be converted.
    """

    field_type = _field_types()[name]
    return _COERCERS.get(field_type, _COERCERS[str])(raw_value)


def _env_name(field_name: str) -> str:
    return _ENV_ALIASES.get(field_name, f"{_ENV_PREFIX}{field_name.upper()}")


class SettingsStore:
    """Persistence adapter for :class:`Settings`."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        """Return the resolved path backing this store."""

        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Read the JSON file, then apply runtime overrides, then environment overrides."""

        settings = self._from_payload(self._read_payload())
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="runtime")
        return self._apply_overrides(settings, self._env_overrides(), source="environment")

    def save(self, settings: Settings) -> Path:
        """Persist settings to disk with atomic file writes."""

        payload: Dict[str, Any] = {"version": _SETTINGS_VERSION, **asdict(settings)}
        self._path.parent.mkdir(parents=True, exist_ok=True)
        staging = self._path.with_suffix(".tmp")
        staging.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        staging.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _read_payload(self) -> Dict[str, Any]:
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Settings file %s does not contain an object", self._path)
            return {}
        return payload

    def _from_payload(self, payload: Mapping[str, Any]) -> Settings:
        if not payload:
            return Settings()
        types = _field_types()
        data: Dict[str, Any] = {}
        for key, value in payload.items():
            expected = types.get(key)
            if expected is None:
                continue
            if expected is float and isinstance(value, int) and not isinstance(value, bool):
                value = float(value)
            if not isinstance(value, expected):
                LOGGER.warning("Ignoring setting %s of type %s", key, type(value).__name__)
                continue
            if expected is dict:
                value = {str(old): str(new) for old, new in value.items()}
            data[key] = value
        LOGGER.debug("Settings loaded from %s (%d key(s))", self._path, len(data))
        return Settings(**data)

    def _env_overrides(self) -> Dict[str, Any]:
        overrides: Dict[str, Any] = {}
        for item in fields(Settings):
            if item.name in _ENV_EXCLUDED:
                continue
            env_name = _env_name(item.name)
            raw = os.environ.get(env_name)
            if raw is None:
                continue
            try:
                overrides[item.name] = coerce_setting(item.name, raw)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid value", env_name, raw)
        return overrides

    @staticmethod
    def _apply_overrides(settings: Settings, overrides: Mapping[str, Any], *, source: str) -> Settings:
        allowed = {item.name for item in fields(Settings)}
        changes = {key: value for key, value in overrides.items() if key in allowed and value is not None}
        if not changes:
            return settings
        replacements = changes.get("word_replacements")
        if isinstance(replacements, Mapping):
            changes["word_replacements"] = {**settings.word_replacements, **replacements}
        LOGGER.debug("Applying %s settings overrides: %s", source, sorted(changes))
        return replace(settings, **changes)
