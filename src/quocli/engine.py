"""Wires the form engine to its collaborators.

``Engine`` fetches help text, resolves the spec through the cache, opens
form sessions pre-filled from the value cache, executes finished forms and
records the redacted result.  The TUI and the CLI both drive it.
"""

import contextlib
import logging
from collections.abc import Iterator, Mapping, Sequence
from pathlib import Path

from quocli.cache.spec_cache import DAY, SpecCache, SpecResolver
from quocli.cache.store import JsonFileStore, MemoryStore
from quocli.config import Config
from quocli.domain.builder import ArgumentVector
from quocli.domain.form import Executor, FormState, form_session
from quocli.history import HistorySink, LoggingHistorySink, MemoryHistorySink, make_entry
from quocli.models import CommandSpec, Outcome
from quocli.providers import (
    ExecutionSink,
    HelpSource,
    JsonSpecParser,
    RecordingExecutionSink,
    SpecParser,
    StaticHelpSource,
    StaticSpecParser,
    SubprocessExecutionSink,
    SubprocessHelpSource,
)

logger = logging.getLogger(__name__)


class Engine:
    def __init__(
        self,
        cache: SpecCache,
        help_source: HelpSource,
        parser: SpecParser,
        sink: ExecutionSink,
        history: HistorySink,
        resolver: SpecResolver | None = None,
        dry_run: bool = False,
    ) -> None:
        self.cache = cache
        self.dry_run = dry_run
        self._help = help_source
        self._parser = parser
        self._sink = sink
        self._history = history
        self._resolver = resolver or SpecResolver(cache)

    @classmethod
    def demo(cls) -> "Engine":
        """Offline engine over the built-in demo commands. Never runs anything."""
        return cls(
            cache=SpecCache(MemoryStore()),
            help_source=StaticHelpSource(),
            parser=StaticSpecParser(),
            sink=RecordingExecutionSink(),
            history=MemoryHistorySink(),
            dry_run=True,
        )

    @classmethod
    def from_config(
        cls, config: Config, spec_file: Path | None = None, dry_run: bool = False
    ) -> "Engine":
        cache = SpecCache(
            JsonFileStore(config.cache.path),
            ttl=config.cache.ttl_days * DAY,
            values_ttl=config.cache.values_ttl_days * DAY,
        )
        history: HistorySink = (
            LoggingHistorySink(config.history.path)
            if config.history.enabled
            else MemoryHistorySink()
        )
        return cls(
            cache=cache,
            help_source=SubprocessHelpSource(),
            parser=JsonSpecParser(config.spec_dirs, spec_file),
            sink=SubprocessExecutionSink(),
            history=history,
            resolver=SpecResolver(cache, claim_timeout=config.cache.claim_timeout_seconds),
            dry_run=dry_run,
        )

    def load_spec(self, identity: Sequence[str], refresh: bool = False) -> CommandSpec:
        """Return the spec for *identity*, parsing its help text on a cache miss.

        HelpUnavailableError, ParseError and MalformedSpecError propagate: no
        session can be built without a spec.
        """
        help_text = self._help.fetch_help(identity)
        return self._resolver.resolve(identity, help_text, self._parser.parse, refresh=refresh)

    def cached_values(self, spec: CommandSpec) -> dict[str, str]:
        return self.cache.lookup_values(spec)

    @contextlib.contextmanager
    def session(
        self, spec: CommandSpec, execute: Executor | None = None
    ) -> Iterator[FormState]:
        with form_session(spec, self.cached_values(spec), execute=execute or self.execute) as state:
            yield state

    def execute(self, argv: ArgumentVector, secrets: Mapping[str, str]) -> int:
        """Resolve placeholders and hand the argv to the execution sink.

        In dry-run mode nothing is resolved or run and the status is 0.
        """
        if self.dry_run:
            logger.info("Dry run: %s", argv.display())
            return 0
        logger.info("Running %s", argv.display())
        return self._sink.run(argv.resolve(secrets))

    def finish(self, state: FormState) -> None:
        """Remember values and record history for an executed session.

        Values are remembered on a dry run too; history only records commands
        that actually ran.
        """
        if state.outcome is not Outcome.EXECUTED or state.argv is None:
            return
        self.cache.store_values(state.spec, state.values)
        if not self.dry_run:
            self._history.record(
                make_entry(state.spec, state.argv, state.values, state.exit_status)
            )

    def clear_values(self, identity: Sequence[str]) -> int:
        return self.cache.clear_values(identity)
