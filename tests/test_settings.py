"""Tests for the settings persistence layer."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from parley.services.settings import DEFAULT_PREFIX_TEMPLATE, Settings, SettingsStore, coerce_setting


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("PARLEY_"):
            monkeypatch.delenv(name, raising=False)


def test_load_returns_defaults_when_file_missing(tmp_path: Path) -> None:
    settings = SettingsStore(tmp_path / "settings.json").load()

    assert settings == Settings()
    assert settings.prefix_template == DEFAULT_PREFIX_TEMPLATE
    assert settings.autosave_enabled is False


def test_save_and_load_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "settings.json"
    store = SettingsStore(path)
    original = Settings(
        model="gemini-1.5-pro",
        timestamps_enabled=True,
        user_role_name="Me",
        autosave_enabled=True,
        autosave_interval=45.0,
        max_log_files=5,
        word_replacements={"foo": "bar"},
    )

    store.save(original)

    assert json.loads(path.read_text(encoding="utf-8"))["version"] == 1
    assert not path.with_suffix(".tmp").exists()
    assert store.load() == original


def test_load_ignores_unknown_keys_and_bad_replacements(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(
        json.dumps({"model": "custom", "theme": "dark", "word_replacements": ["not", "a", "dict"]}),
        encoding="utf-8",
    )

    settings = SettingsStore(path).load()

    assert settings.model == "custom"
    assert settings.word_replacements == {}


def test_load_recovers_from_invalid_json(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")

    assert SettingsStore(path).load() == Settings()


def test_runtime_overrides_merge_word_replacements(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    SettingsStore(path).save(Settings(word_replacements={"a": "b"}))

    settings = SettingsStore(path).load(overrides={"word_replacements": {"c": "d"}, "unknown": 1, "model": None})

    assert settings.word_replacements == {"a": "b", "c": "d"}
    assert settings.model == Settings().model


def test_environment_overrides_are_coerced(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PARLEY_MODEL", "env-model")
    monkeypatch.setenv("PARLEY_TIMESTAMPS", "yes")
    monkeypatch.setenv("PARLEY_AUTOSAVE_INTERVAL", "12.5")
    monkeypatch.setenv("PARLEY_MAX_LOG_FILES", "not-a-number")

    settings = SettingsStore(tmp_path / "settings.json").load()

    assert settings.model == "env-model"
    assert settings.timestamps_enabled is True
    assert settings.autosave_interval == 12.5
    assert settings.max_log_files == 0


def test_log_path_expands_user() -> None:
    settings = Settings(log_dir="~/transcripts")

    assert settings.log_path == Path.home() / "transcripts"


def test_coerce_setting_follows_field_types() -> None:
    assert coerce_setting("max_log_files", " 7 ") == 7
    assert coerce_setting("autosave_enabled", "off") is False
    assert coerce_setting("word_replacements", '{"x": 1}') == {"x": "1"}
    assert coerce_setting("role_marker", "> ") == "> "

    with pytest.raises(ValueError):
        coerce_setting("request_timeout", "soon")
    with pytest.raises(KeyError):
        coerce_setting("theme", "dark")


def test_payload_with_wrong_types_keeps_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"max_log_files": "many", "request_timeout": 30}), encoding="utf-8")

    settings = SettingsStore(path).load()

    assert settings.max_log_files == 0
    assert settings.request_timeout == 30.0
