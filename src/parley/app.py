"""Application bootstrap helpers for Parley."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, cast

from .ai.client import ClientSettings, OpenAIGenerationClient, RemoteGenerationClient
from .chat.commands import ChatCommands, CommandResult, execute_command, parse_command
from .chat.formatting import HeaderFormat
from .chat.registry import SessionRegistry
from .chat.surfaces import DisplaySurfaceManager
from .chat.transcript import AutoSaveReport, AutoSaveTimer, TranscriptLogger
from .chat.word_filter import WordReplacementFilter
from .editor.host import EchoLevel, EditorHost
from .services.settings import Settings, SettingsStore, coerce_setting, parse_bool
from .utils import logging as logging_utils

__all__ = [
    "ParleyContext",
    "build_context",
    "configure_logging",
    "create_qapp",
    "load_settings",
    "main",
    "run_command",
    "shutdown",
]

_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ParleyContext:
    """Every service wired together for one editor host."""

    settings: Settings
    host: EditorHost
    client: RemoteGenerationClient
    surfaces: DisplaySurfaceManager
    registry: SessionRegistry
    transcripts: TranscriptLogger
    autosave: AutoSaveTimer
    commands: ChatCommands


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    """Configure structured logging for the application."""

    level = logging.DEBUG if debug else logging.INFO
    logging_utils.setup_logging(level, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        settings = active_store.load(overrides=overrides)
    except (OSError, ValueError) as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        settings = Settings()
    return settings


def build_context(
    settings: Settings,
    host: EditorHost,
    *,
    client: RemoteGenerationClient | None = None,
) -> ParleyContext:
    """Wire the registry, surfaces, transcript logger and commands onto ``host``.

    The auto-save timer is started when ``settings.autosave_enabled`` is set.
    """

    active_client = client or OpenAIGenerationClient(
        ClientSettings(
            base_url=settings.base_url,
            model=settings.model,
            request_timeout=settings.request_timeout,
            debug_logging=settings.debug_logging,
        )
    )
    surfaces = DisplaySurfaceManager(host, HeaderFormat.from_settings(settings))
    registry = SessionRegistry(
        active_client,
        surfaces,
        api_key_source=settings.api_key_source,
        model=settings.model,
    )
    transcripts = TranscriptLogger(surfaces, settings.log_path, max_files=settings.max_log_files)
    autosave = AutoSaveTimer(host, transcripts, registry, interval=settings.autosave_interval)
    commands = ChatCommands(
        host=host,
        client=active_client,
        surfaces=surfaces,
        registry=registry,
        logger=transcripts,
        word_filter=WordReplacementFilter(settings.word_replacements),
        api_key_source=settings.api_key_source,
        model=settings.model,
    )
    if settings.autosave_enabled and settings.autosave_interval <= 0:
        _LOGGER.warning(
            "Auto-save disabled: autosave_interval must be positive (got %s)", settings.autosave_interval
        )
    elif settings.autosave_enabled:
        autosave.start()
    return ParleyContext(
        settings=settings,
        host=host,
        client=active_client,
        surfaces=surfaces,
        registry=registry,
        transcripts=transcripts,
        autosave=autosave,
        commands=commands,
    )


def run_command(context: ParleyContext, text: str) -> CommandResult:
    """Parse a command-line string and run it against ``context``."""

    try:
        request = parse_command(text)
    except ValueError as exc:
        context.host.echo(str(exc), EchoLevel.WARNING)
        return CommandResult(ok=False, message=str(exc), error_code="usage")
    _LOGGER.debug("Running command %s", request.command.value)
    return execute_command(context.commands, request)


def shutdown(context: ParleyContext) -> AutoSaveReport:
    """Stop the auto-save timer and write every live chat transcript once more."""

    context.autosave.stop()
    report = context.autosave.flush()
    if report.failures:
        _LOGGER.warning("Final transcript flush had %d failure(s)", len(report.failures))
    return report


def create_qapp() -> Any:
    """Create (or reuse) the ``QApplication`` instance."""

    try:  # Local import to avoid mandatory PySide6 dependency at import time.
        from PySide6.QtWidgets import QApplication
    except ImportError as exc:  # pragma: no cover - depends on desktop stack
        raise RuntimeError("PySide6 must be installed to launch the Parley UI.") from exc

    os.environ.setdefault("QT_ENABLE_HIGHDPI_SCALING", "1")
    app = cast(Any, QApplication.instance() or QApplication(sys.argv))
    app.setApplicationName("Parley")
    app.setApplicationDisplayName("Parley")
    return app


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point invoked by the `parley` console script."""

    args = _parse_cli_args(argv)

    debug = _env_flag("PARLEY_DEBUG", default=False)
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("PARLEY_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc

    settings = load_settings(resolved_path, store=settings_store, overrides=cli_overrides or None)

    if args.dump_settings:
        _dump_settings(settings, settings_store)
        return

    if settings.debug_logging and not debug:
        configure_logging(True, force=True)

    app = create_qapp()
    from .editor.qt_host import ParleyWindow

    window = ParleyWindow()
    context = build_context(settings, window.host)
    window.set_command_handler(lambda text: run_command(context, text))
    window.show()

    try:
        app.exec()
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown path
        _LOGGER.info("Shutdown requested by user.")
    finally:
        shutdown(context)


# ----------------------------------------------------------------------
# CLI helpers
# ----------------------------------------------------------------------
def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return parse_bool(value)
    except ValueError:
        _LOGGER.warning("Ignoring %s=%s; expected a boolean", name, value)
        return default


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="parley",
        description="Launch the Parley editor or inspect its configuration.",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.parley/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings before launch (repeatable).",
    )
    return parser.parse_args(argv)


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for entry in items:
        key, separator, raw_value = entry.partition("=")
        key = key.strip()
        if not separator:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        if not key:
            raise ValueError("Override is missing a field name.")
        try:
            overrides[key] = coerce_setting(key, raw_value.strip())
        except KeyError:
            raise ValueError(f"Unknown setting '{key}'.") from None
    return overrides


def _dump_settings(settings: Settings, store: SettingsStore, *, stream: TextIO | None = None) -> None:
    output = stream or sys.stdout
    log_path = logging_utils.get_log_path()
    payload = {
        "path": str(store.path),
        "log_file": str(log_path) if log_path is not None else None,
        "settings": asdict(settings),
    }
    output.write(json.dumps(payload, indent=2, sort_keys=True))
    output.write("\n")
