"""Boundaries to the outside world: help text, spec parsing, execution.

Each boundary is a Protocol with a subprocess- or file-backed implementation
and an in-memory one seeded from ``DEMO_HELP``/``DEMO_SPECS`` for offline use
and tests.
"""

import json
import logging
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Protocol

from quocli.constants import DEMO_HELP, DEMO_SPECS, HELP_TIMEOUT_SECONDS
from quocli.domain.spec import parse_spec
from quocli.models import CommandSpec

logger = logging.getLogger(__name__)


class HelpUnavailableError(Exception):
    """Raised when no help text can be obtained for a command."""


class ParseError(Exception):
    """Raised when the spec parser cannot produce a spec at all."""


class ExecutionError(Exception):
    """Raised when the built command cannot be started."""


class HelpSource(Protocol):
    def fetch_help(self, identity: Sequence[str]) -> str:
        """Return the raw help text for a command path."""
        ...


class SpecParser(Protocol):
    def parse(self, identity: tuple[str, ...], help_text: str) -> CommandSpec:
        """Turn help text into a spec. May be slow; may fail."""
        ...


class ExecutionSink(Protocol):
    def run(self, argv: list[str]) -> int:
        """Execute a fully resolved argv and return its exit status."""
        ...


class SubprocessHelpSource:
    """Runs ``<command> --help`` (then ``-h``) and returns the output."""

    def __init__(self, timeout: float = HELP_TIMEOUT_SECONDS) -> None:
        self._timeout = timeout

    def fetch_help(self, identity: Sequence[str]) -> str:
        base = list(identity)
        for variant in (base + ["--help"], base + ["-h"]):
            try:
                result = subprocess.run(
                    variant, capture_output=True, text=True, timeout=self._timeout
                )
            except FileNotFoundError as exc:
                raise HelpUnavailableError(f"command not found: {identity[0]}") from exc
            except (subprocess.TimeoutExpired, PermissionError) as exc:
                logger.debug("Help variant %s failed: %s", variant, exc)
                continue
            output = result.stdout or result.stderr
            # Error messages are short; real help text mentions options.
            if output and len(output) > 50 and "-" in output:
                return output
        raise HelpUnavailableError(f"no help text available for: {' '.join(identity)}")


class StaticHelpSource:
    """Serves help text from a mapping of command line to text."""

    def __init__(self, texts: Mapping[str, str] | None = None) -> None:
        self._texts = dict(DEMO_HELP if texts is None else texts)

    def fetch_help(self, identity: Sequence[str]) -> str:
        try:
            return self._texts[" ".join(identity)]
        except KeyError:
            raise HelpUnavailableError(f"no help text available for: {' '.join(identity)}") from None


class JsonSpecParser:
    """Reads structured spec JSON from a file.

    The JSON is what a help-text parser (an LLM prompted with the help text)
    produces.  With an explicit *spec_file* that file is used; otherwise the
    file ``<identity joined by '-'>.json`` is looked up in *spec_dirs*.
    Unreadable or missing files raise ParseError; structurally invalid
    content raises MalformedSpecError.
    """

    def __init__(self, spec_dirs: Sequence[Path] = (), spec_file: Path | None = None) -> None:
        self._spec_dirs = [Path(d).expanduser() for d in spec_dirs]
        self._spec_file = spec_file

    def _locate(self, identity: tuple[str, ...]) -> Path:
        if self._spec_file is not None:
            return self._spec_file
        name = "-".join(identity) + ".json"
        for directory in self._spec_dirs:
            candidate = directory / name
            if candidate.exists():
                return candidate
        searched = ", ".join(str(d) for d in self._spec_dirs) or "(no spec directories)"
        raise ParseError(f"no spec for '{' '.join(identity)}' found in {searched}")

    def parse(self, identity: tuple[str, ...], help_text: str) -> CommandSpec:
        path = self._locate(identity)
        try:
            raw = path.read_text()
        except OSError as exc:
            raise ParseError(f"cannot read spec file {path}: {exc}") from exc
        return parse_spec(raw, identity)


class StaticSpecParser:
    """Parses specs from an in-memory mapping of command line to raw spec."""

    def __init__(self, specs: Mapping[str, object] | None = None) -> None:
        self._specs = dict(DEMO_SPECS if specs is None else specs)
        self.calls = 0

    def parse(self, identity: tuple[str, ...], help_text: str) -> CommandSpec:
        self.calls += 1
        raw = self._specs.get(" ".join(identity))
        if raw is None:
            raise ParseError(f"no spec known for: {' '.join(identity)}")
        return parse_spec(raw, identity)


class SubprocessExecutionSink:
    """Runs the command with the terminal attached and returns its status."""

    def run(self, argv: list[str]) -> int:
        try:
            return subprocess.run(argv).returncode
        except OSError as exc:
            raise ExecutionError(f"failed to start {argv[0]}: {exc}") from exc


class RecordingExecutionSink:
    """Records argv instead of running it."""

    def __init__(self, exit_status: int = 0) -> None:
        self.runs: list[list[str]] = []
        self._exit_status = exit_status

    def run(self, argv: list[str]) -> int:
        self.runs.append(list(argv))
        return self._exit_status


def dump_spec(spec: CommandSpec) -> str:
    """Pretty JSON for ``--show-spec``."""
    return json.dumps(spec.model_dump(mode="json"), indent=2)
