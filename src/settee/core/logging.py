"""Structured logging and verbosity levels for view and design-document activity."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from pathlib import Path
from typing import Any

from rich.console import Console


class Verbosity(IntEnum):
    """Verbosity levels for console output."""

    DEFAULT = 0   # Nothing on the console
    VERBOSE = 1   # + design document fetches and writes
    DEBUG = 2     # + every view query with its parameters


@dataclass
class ModelLog:
    """Per-model-type view statistics."""

    model_type: str
    design_fetches: int = 0
    design_writes: int = 0
    design_conflicts: int = 0
    queries: int = 0
    rows: int = 0
    revisions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "model_type": self.model_type,
            "design_fetches": self.design_fetches,
            "design_writes": self.design_writes,
            "design_conflicts": self.design_conflicts,
            "queries": self.queries,
            "rows": self.rows,
            "revisions": list(self.revisions),
        }


@dataclass
class SyncLog:
    """Aggregate log across all model types.

    The dict format is::

        {
            "models": {
                "Article": {
                    "design_fetches": 1,
                    "design_writes": 1,
                    "design_conflicts": 0,
                    "queries": 4,
                    "rows": 16,
                    "revisions": ["1-abc"],
                },
                ...
            },
            "total_writes": 1,
            "total_queries": 4,
        }
    """

    models: dict[str, ModelLog] = field(default_factory=dict)

    def get_or_create_model(self, model_type: str) -> ModelLog:
        """Get existing model log or create a new one."""
        if model_type not in self.models:
            self.models[model_type] = ModelLog(model_type=model_type)
        return self.models[model_type]

    @property
    def total_writes(self) -> int:
        return sum(m.design_writes for m in self.models.values())

    @property
    def total_queries(self) -> int:
        return sum(m.queries for m in self.models.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "models": {name: log.to_dict() for name, log in self.models.items()},
            "total_writes": self.total_writes,
            "total_queries": self.total_queries,
        }


class ViewLogger:
    """Structured logger for design-document synchronization and view queries.

    Writes JSONL events to ``log_dir/views.jsonl`` when a directory is given
    and echoes to the console through Rich based on verbosity. Safe to share
    between threads.
    """

    def __init__(
        self,
        verbosity: Verbosity = Verbosity.DEFAULT,
        log_dir: Path | None = None,
    ):
        self.verbosity = verbosity
        self.log_dir = log_dir
        self.sync_log = SyncLog()
        self._lock = threading.Lock()
        self._console = Console(stderr=True)
        self._log_file = None
        self._log_path: Path | None = None

        if log_dir is not None:
            log_dir.mkdir(parents=True, exist_ok=True)
            self._log_path = log_dir / "views.jsonl"
            self._log_file = open(self._log_path, "a")

    @classmethod
    def from_settings(cls, settings) -> ViewLogger:
        """Build a logger from a ``Settings`` instance."""
        return cls(verbosity=Verbosity(settings.verbosity), log_dir=settings.log_dir)

    @property
    def log_path(self) -> Path | None:
        return self._log_path

    def _write_event(self, event: dict[str, Any]) -> None:
        """Write a JSON event to the JSONL log file."""
        if self._log_file is not None:
            event["timestamp"] = datetime.now(timezone.utc).isoformat()
            self._log_file.write(json.dumps(event, default=str) + "\n")
            self._log_file.flush()

    def _console_print(self, message: str, min_verbosity: Verbosity) -> None:
        """Print to console if verbosity is high enough."""
        if self.verbosity >= min_verbosity:
            self._console.print(message)

    # -- Design document events --

    def design_fetched(self, model_type: str, design_id: str, revision: str | None) -> None:
        """Log a design document read from the store."""
        with self._lock:
            self.sync_log.get_or_create_model(model_type).design_fetches += 1
            self._write_event({
                "event": "design_fetch",
                "model_type": model_type,
                "design_id": design_id,
                "revision": revision,
            })
        state = revision or "[dim]absent[/dim]"
        self._console_print(f"  [bold]Fetched[/bold] {design_id} ({state})", Verbosity.VERBOSE)

    def design_written(self, model_type: str, design_id: str, revision: str, views: list[str]) -> None:
        """Log a successful design document write."""
        with self._lock:
            log = self.sync_log.get_or_create_model(model_type)
            log.design_writes += 1
            log.revisions.append(revision)
            self._write_event({
                "event": "design_write",
                "model_type": model_type,
                "design_id": design_id,
                "revision": revision,
                "views": sorted(views),
            })
        self._console_print(
            f"  [green]+[/green] {design_id} -> {revision} ({len(views)} views)",
            Verbosity.VERBOSE,
        )

    def design_conflict(self, model_type: str, design_id: str, revision: str | None) -> None:
        """Log a revision conflict on a design document write."""
        with self._lock:
            self.sync_log.get_or_create_model(model_type).design_conflicts += 1
            self._write_event({
                "event": "design_conflict",
                "model_type": model_type,
                "design_id": design_id,
                "revision": revision,
            })
        self._console_print(
            f"  [yellow]![/yellow] {design_id} conflict at {revision}, re-fetching",
            Verbosity.VERBOSE,
        )

    # -- Query events --

    def view_queried(self, model_type: str, view_name: str, params: dict[str, Any], row_count: int) -> None:
        """Log a finished view query."""
        with self._lock:
            log = self.sync_log.get_or_create_model(model_type)
            log.queries += 1
            log.rows += row_count
            self._write_event({
                "event": "view_query",
                "model_type": model_type,
                "view": view_name,
                "params": params,
                "rows": row_count,
            })
        self._console_print(
            f"    [dim]{model_type}/{view_name} {params} -> {row_count} rows[/dim]",
            Verbosity.DEBUG,
        )

    def close(self) -> None:
        """Close the log file if open."""
        with self._lock:
            if self._log_file is not None:
                self._log_file.close()
                self._log_file = None
