"""History and audit sinks.

Sinks only ever receive a ``HistoryEntry`` built from the redacted preview
and redacted values; they have no way to see a sensitive value.
"""

import logging
import time
from pathlib import Path
from typing import Protocol

from quocli.domain.builder import ArgumentVector
from quocli.domain.guard import redact_values
from quocli.models import CommandSpec, FieldValue, HistoryEntry

logger = logging.getLogger(__name__)


class HistorySink(Protocol):
    def record(self, entry: HistoryEntry) -> None: ...


def make_entry(
    spec: CommandSpec,
    argv: ArgumentVector,
    values: dict[str, FieldValue],
    exit_status: int | None,
    timestamp: float | None = None,
) -> HistoryEntry:
    return HistoryEntry(
        identity=spec.identity,
        command_line=argv.display(),
        values=redact_values(spec, values),
        exit_status=exit_status,
        timestamp=time.time() if timestamp is None else timestamp,
    )


class LoggingHistorySink:
    """Appends one JSON line per executed command and logs it."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path).expanduser()

    def record(self, entry: HistoryEntry) -> None:
        logger.info("Executed %s (exit %s)", entry.command_line, entry.exit_status)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a") as f:
                f.write(entry.model_dump_json() + "\n")
        except OSError as exc:
            logger.warning("Could not write history to %s: %s", self._path, exc)


class MemoryHistorySink:
    def __init__(self) -> None:
        self.entries: list[HistoryEntry] = []

    def record(self, entry: HistoryEntry) -> None:
        self.entries.append(entry)
