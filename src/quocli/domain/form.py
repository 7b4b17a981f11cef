"""Form session state machine.

A ``FormState`` owns the values of one interactive session over a shared,
read-only ``CommandSpec``.  Renderers never touch it directly: they read a
``FormSnapshot`` and feed input back through the transition methods below.

Modes::

    NAVIGATING --activate(flag|enum)--> NAVIGATING
    NAVIGATING --activate(other)------> EDITING --confirm_edit/cancel_edit--> NAVIGATING
    NAVIGATING --request_execute------> CONFIRMING (dangerous) | DONE(EXECUTED)
    CONFIRMING --confirm--> DONE(EXECUTED)     CONFIRMING --deny--> NAVIGATING
    any live mode --cancel--> DONE(CANCELLED)

The cursor wraps at both ends.  Entering DONE zeroes every sensitive value,
whatever the outcome and whether or not execution raised.
"""

import contextlib
import logging
from collections.abc import Callable, Iterator, Mapping

from quocli.domain.builder import (
    ArgumentVector,
    InvalidValueError,
    build,
    format_value,
    is_empty,
    parse_value,
)
from quocli.domain.guard import display_value, is_dangerous, is_sensitive
from quocli.models import (
    CommandSpec,
    FieldKind,
    FieldRow,
    FieldSpec,
    FieldValue,
    FormMode,
    FormSnapshot,
    Outcome,
    SecretValue,
)

logger = logging.getLogger(__name__)

# Called with the built argv and the plain-text secrets it needs; returns the
# exit status of the executed command.
Executor = Callable[[ArgumentVector, Mapping[str, str]], int]


class FormStateError(Exception):
    """Raised when a transition is not allowed in the current mode."""


class FormState:
    def __init__(
        self,
        spec: CommandSpec,
        cached: Mapping[str, str] | None = None,
        execute: Executor | None = None,
    ) -> None:
        self.spec = spec
        self.values: dict[str, FieldValue] = {}
        self.cursor = 0
        self.mode = FormMode.NAVIGATING
        self.outcome: Outcome | None = None
        self.error: str | None = None
        self.argv: ArgumentVector | None = None
        self.exit_status: int | None = None
        self._buffer = SecretValue()
        self._execute = execute
        self._load(cached or {})

    def _load(self, cached: Mapping[str, str]) -> None:
        """Seed values from cached text, falling back to field defaults."""
        for f in self.spec.fields:
            if f.kind is FieldKind.FLAG:
                self.values[f.name] = False
            if is_sensitive(f):
                # Never seeded: the cache cannot hold them and defaults for
                # secrets are not trusted.
                continue
            text = cached.get(f.name, f.default)
            if text is None:
                continue
            try:
                self.values[f.name] = parse_value(f, text)
            except InvalidValueError as exc:
                logger.debug("Ignoring stale value for %s: %s", f.name, exc)

    @property
    def current(self) -> FieldSpec | None:
        if not self.spec.fields:
            return None
        return self.spec.fields[self.cursor]

    @property
    def editing(self) -> bool:
        return self.mode is FormMode.EDITING

    @property
    def done(self) -> bool:
        return self.mode is FormMode.DONE

    @property
    def buffer(self) -> str:
        """Edit buffer as text (masked for sensitive fields)."""
        field = self.current
        if field is not None and is_sensitive(field):
            return "*" * len(self._buffer.reveal())
        return self._buffer.reveal()

    def _require(self, action: str, *modes: FormMode) -> None:
        if self.mode not in modes:
            raise FormStateError(f"cannot {action} while {self.mode.name.lower()}")

    # Navigation

    def next(self) -> None:
        self._require("move", FormMode.NAVIGATING)
        if self.spec.fields:
            self.cursor = (self.cursor + 1) % len(self.spec.fields)
        self.error = None

    def prev(self) -> None:
        self._require("move", FormMode.NAVIGATING)
        if self.spec.fields:
            self.cursor = (self.cursor - 1) % len(self.spec.fields)
        self.error = None

    def move_to(self, index: int) -> None:
        self._require("move", FormMode.NAVIGATING)
        if not 0 <= index < len(self.spec.fields):
            raise FormStateError(f"no field at position {index}")
        self.cursor = index
        self.error = None

    def activate(self) -> None:
        """Toggle a flag, cycle an enum, or start editing any other field."""
        self._require("activate a field", FormMode.NAVIGATING)
        field = self.current
        if field is None:
            return
        self.error = None

        if field.kind is FieldKind.FLAG:
            self.values[field.name] = not self.values.get(field.name, False)
        elif field.kind is FieldKind.ENUM:
            current = self.values.get(field.name)
            choices = field.choices
            if current in choices:
                self.values[field.name] = choices[(choices.index(current) + 1) % len(choices)]
            else:
                self.values[field.name] = choices[0]
        else:
            self._buffer.wipe()
            value = self.values.get(field.name)
            if isinstance(value, SecretValue):
                self._buffer.append(value.reveal())
            elif value is not None:
                self._buffer.append(format_value(value))
            self.mode = FormMode.EDITING

    # Editing

    def type_text(self, text: str) -> None:
        self._require("type", FormMode.EDITING)
        self._buffer.append(text)

    def backspace(self) -> None:
        self._require("type", FormMode.EDITING)
        self._buffer.backspace()

    def confirm_edit(self, text: str | None = None) -> bool:
        """Commit the edit buffer (or *text*, replacing it) to the field.

        Returns False and stays in EDITING with ``error`` set when the text
        does not parse for the field's kind.
        """
        self._require("commit an edit", FormMode.EDITING)
        field = self.current
        if field is None:
            raise FormStateError("no field to commit to")
        if text is not None:
            self._buffer.wipe()
            self._buffer.append(text)

        raw = self._buffer.reveal()
        if raw == "":
            self._discard(field.name)
        else:
            try:
                value = parse_value(field, raw)
            except InvalidValueError as exc:
                self.error = exc.reason
                return False
            self._discard(field.name)
            self.values[field.name] = value

        self._buffer.wipe()
        self.error = None
        self.mode = FormMode.NAVIGATING
        return True

    def cancel_edit(self) -> None:
        self._require("cancel an edit", FormMode.EDITING)
        self._buffer.wipe()
        self.error = None
        self.mode = FormMode.NAVIGATING

    def clear_all(self) -> None:
        """Reset every field: flags off, everything else empty."""
        self._require("clear values", FormMode.NAVIGATING)
        for name in list(self.values):
            self._discard(name)
        for f in self.spec.fields:
            if f.kind is FieldKind.FLAG:
                self.values[f.name] = False
        self.error = None

    # Execution

    def missing_required(self) -> list[str]:
        return [
            f.name for f in self.spec.fields if f.required and is_empty(self.values.get(f.name))
        ]

    def request_execute(self) -> FormMode:
        """Ask to run the command.

        Refused while a required field is empty: the cursor moves to the
        first such field and the form stays in NAVIGATING.
        """
        self._require("execute", FormMode.NAVIGATING)
        missing = self.missing_required()
        if missing:
            self.cursor = self.spec.index_of(missing[0])
            self.error = f"'{missing[0]}' is required"
            return self.mode
        self.error = None
        if is_dangerous(self.spec):
            self.mode = FormMode.CONFIRMING
        else:
            self._finish(Outcome.EXECUTED)
        return self.mode

    def confirm(self) -> None:
        self._require("confirm", FormMode.CONFIRMING)
        self._finish(Outcome.EXECUTED)

    def deny(self) -> None:
        self._require("deny", FormMode.CONFIRMING)
        self.mode = FormMode.NAVIGATING

    def cancel(self) -> None:
        self._require("cancel", FormMode.NAVIGATING, FormMode.EDITING, FormMode.CONFIRMING)
        self._finish(Outcome.CANCELLED)

    def close(self) -> None:
        """End the session if it is still live. Safe to call repeatedly."""
        if self.mode is not FormMode.DONE:
            self._finish(Outcome.CANCELLED)

    def _finish(self, outcome: Outcome) -> None:
        try:
            if outcome is Outcome.EXECUTED:
                self.argv = build(self.spec, self.values)
                if self._execute is not None:
                    self.exit_status = self._execute(self.argv, self._secrets())
        finally:
            self.outcome = outcome
            self.mode = FormMode.DONE
            self._wipe_sensitive()

    def _secrets(self) -> dict[str, str]:
        secrets: dict[str, str] = {}
        for f in self.spec.fields:
            value = self.values.get(f.name)
            if not is_sensitive(f) or is_empty(value):
                continue
            secrets[f.name] = value.reveal() if isinstance(value, SecretValue) else format_value(value)
        return secrets

    def _discard(self, name: str) -> None:
        value = self.values.pop(name, None)
        if isinstance(value, SecretValue):
            value.wipe()

    def _wipe_sensitive(self) -> None:
        self._buffer.wipe()
        for f in self.spec.fields:
            if is_sensitive(f):
                self._discard(f.name)
        # Anything typed as secret but attached to a field we did not expect.
        for name, value in list(self.values.items()):
            if isinstance(value, SecretValue):
                self._discard(name)

    # Rendering

    def preview(self) -> str:
        return build(self.spec, self.values, strict=False).display()

    def snapshot(self) -> FormSnapshot:
        rows = tuple(
            FieldRow(
                name=f.name,
                label=f.label,
                kind=f.kind,
                display=display_value(f, self.values.get(f.name)),
                required=f.required,
                sensitive=is_sensitive(f),
                help=f.help,
            )
            for f in self.spec.fields
        )
        try:
            preview = self.preview()
        except InvalidValueError as exc:
            preview = f"(invalid: {exc})"
        return FormSnapshot(
            title=self.spec.command_line,
            mode=self.mode,
            cursor=self.cursor,
            rows=rows,
            buffer=self.buffer if self.editing else "",
            error=self.error,
            dangerous=is_dangerous(self.spec),
            warning=self.spec.warning,
            preview=preview,
            outcome=self.outcome,
            missing=tuple(self.missing_required()),
        )


@contextlib.contextmanager
def form_session(
    spec: CommandSpec,
    cached: Mapping[str, str] | None = None,
    execute: Executor | None = None,
) -> Iterator[FormState]:
    """Open a form session that is always closed (and zeroed) on exit."""
    state = FormState(spec, cached, execute=execute)
    try:
        yield state
    finally:
        state.close()
