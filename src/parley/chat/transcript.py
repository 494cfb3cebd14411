"""Transcript persistence: on-demand saves, periodic auto-save and retention."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Sequence

from ..editor.host import EditorHost, TimerId
from ..errors import TranscriptIOError
from .registry import SessionRegistry
from .surfaces import DisplaySurface, DisplaySurfaceManager, strip_placeholder

__all__ = [
    "ASK_LABEL",
    "LOG_TIMESTAMP_FORMAT",
    "AutoSaveReport",
    "AutoSaveTimer",
    "TranscriptLogger",
    "transcript_label",
]

LOGGER = logging.getLogger(__name__)

LOG_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"
ASK_LABEL = "gemini_ask"


def transcript_label(session_prefix: str) -> str:
    """Return the log file label used for a chat session."""

    return f"gemini_chat_{session_prefix}"


@dataclass(slots=True)
class AutoSaveReport:
    """Outcome of one auto-save pass over the registry."""

    saved: List[Path] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    pruned: List[str] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


class TranscriptLogger:
    """Writes surface contents to ``<log_dir>/<label>.<timestamp>.log`` files."""

    def __init__(
        self,
        surfaces: DisplaySurfaceManager,
        log_dir: Path | str,
        *,
        max_files: int = 0,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._surfaces = surfaces
        self._log_dir = Path(log_dir).expanduser()
        self._max_files = max(0, int(max_files))
        self._clock = clock

    @property
    def log_dir(self) -> Path:
        return self._log_dir

    def save(self, surface: DisplaySurface, label: str) -> Path | None:
        """Persist ``surface``; returns ``None`` when there is nothing to save.

        Raises:
            TranscriptIOError: the log directory or file could not be written.
        """

        lines = self._surfaces.lines(surface)
        content = _transcript_lines(lines)
        if not content:
            LOGGER.debug("Nothing to save for %s", label)
            return None

        try:
            self._log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise TranscriptIOError(
                message=f"Unable to create log directory {self._log_dir}: {exc}",
                details={"path": str(self._log_dir)},
            ) from exc

        target = self._log_dir / f"{label}.{self._clock().strftime(LOG_TIMESTAMP_FORMAT)}.log"
        try:
            target.write_text("\n".join(content) + "\n", encoding="utf-8")
        except OSError as exc:
            raise TranscriptIOError(
                message=f"Unable to write transcript {target}: {exc}",
                details={"path": str(target)},
            ) from exc
        LOGGER.info("Saved transcript %s (%d line(s))", target, len(content))
        self._enforce_retention(label, keep=target)
        return target

    def auto_save_all(self, registry: SessionRegistry) -> AutoSaveReport:
        """Save every live chat surface; one failure never stops the others."""

        report = AutoSaveReport()
        report.pruned.extend(registry.prune_stale())
        for session in registry:
            label = transcript_label(registry.unique_prefix(session.id))
            try:
                path = self.save(session.surface, label)
            except TranscriptIOError as exc:
                LOGGER.warning("Auto-save failed for session %s: %s", session.id, exc)
                report.failures[session.id] = exc.message
                continue
            if path is None:
                report.skipped.append(session.id)
            else:
                report.saved.append(path)
        return report

    def _enforce_retention(self, label: str, *, keep: Path) -> None:
        if self._max_files <= 0:
            return
        logs = sorted(
            (path for path in self._log_dir.glob(f"{label}.*.log") if path.is_file()),
            key=lambda path: path.name,
        )
        excess = len(logs) - self._max_files
        for path in logs:
            if excess <= 0:
                break
            if path == keep:
                continue
            try:
                path.unlink()
                excess -= 1
                LOGGER.debug("Removed old transcript %s", path)
            except OSError as exc:
                LOGGER.warning("Unable to remove old transcript %s: %s", path, exc)
                excess -= 1


class AutoSaveTimer:
    """Periodic driver for :meth:`TranscriptLogger.auto_save_all`.

    ``start`` replaces any running timer, ``stop`` on a stopped timer is a
    no-op, and ``flush`` runs one pass immediately regardless of schedule.
    """

    def __init__(
        self,
        host: EditorHost,
        logger: TranscriptLogger,
        registry: SessionRegistry,
        *,
        interval: float,
    ) -> None:
        self._host = host
        self._logger = logger
        self._registry = registry
        self._interval = float(interval)
        self._timer: TimerId | None = None
        self.last_report: AutoSaveReport | None = None

    @property
    def running(self) -> bool:
        return self._timer is not None

    def start(self) -> None:
        self.stop()
        self._timer = self._host.start_timer(self._interval, self._tick)
        LOGGER.debug("Auto-save timer started (interval=%ss)", self._interval)

    def stop(self) -> None:
        if self._timer is None:
            return
        self._host.stop_timer(self._timer)
        self._timer = None
        LOGGER.debug("Auto-save timer stopped")

    def flush(self) -> AutoSaveReport:
        self.last_report = self._logger.auto_save_all(self._registry)
        return self.last_report

    def _tick(self) -> None:
        report = self.flush()
        if report.saved or report.failures:
            LOGGER.info(
                "Auto-save pass: %d saved, %d failed, %d pruned",
                len(report.saved),
                len(report.failures),
                len(report.pruned),
            )


def _transcript_lines(lines: Sequence[str]) -> List[str]:
    content = strip_placeholder(lines)
    while content and not content[-1].strip():
        content.pop()
    if not any(line.strip() for line in content):
        return []
    return content
