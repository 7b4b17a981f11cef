"""Turn a filled-in form into an argument vector.

The result is a sequence of tokens, never a shell string: quoting is only
done for the redacted preview, so user input cannot inject shell syntax.
Sensitive fields are emitted as ``SecretPlaceholder`` tokens; the real value
is substituted by ``ArgumentVector.resolve`` right before execution.
"""

import math
import os
import shlex
from collections.abc import Mapping
from dataclasses import dataclass

from quocli.constants import MASK
from quocli.domain.guard import is_sensitive
from quocli.models import CommandSpec, FieldKind, FieldSpec, FieldValue, SecretValue


class BuildError(Exception):
    """Base class for argument-vector construction failures."""


class MissingRequiredError(BuildError):
    """Raised when a required field has no value."""

    def __init__(self, field: str) -> None:
        super().__init__(f"'{field}' is required")
        self.field = field


class InvalidValueError(BuildError):
    """Raised when a value does not parse for its field's kind."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"'{field}': {reason}")
        self.field = field
        self.reason = reason


@dataclass(frozen=True)
class SecretPlaceholder:
    """Stands in for a sensitive value until the execution boundary."""

    field: str

    def __str__(self) -> str:
        return MASK


Token = str | SecretPlaceholder


@dataclass(frozen=True)
class ArgumentVector:
    program: tuple[str, ...]
    args: tuple[Token, ...]

    @property
    def placeholders(self) -> tuple[str, ...]:
        return tuple(t.field for t in self.args if isinstance(t, SecretPlaceholder))

    def resolve(self, secrets: Mapping[str, str]) -> list[str]:
        """Return the full argv with every placeholder replaced by its secret."""
        argv = list(self.program)
        for token in self.args:
            if isinstance(token, SecretPlaceholder):
                if token.field not in secrets:
                    raise BuildError(f"no value available for sensitive field '{token.field}'")
                argv.append(secrets[token.field])
            else:
                argv.append(token)
        return argv

    def display(self) -> str:
        """Shell-quoted rendering with sensitive values masked."""
        parts = [shlex.quote(p) for p in self.program]
        for token in self.args:
            parts.append(MASK if isinstance(token, SecretPlaceholder) else shlex.quote(token))
        return " ".join(parts)


def is_empty(value: FieldValue | None) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, SecretValue)):
        return len(value) == 0
    return False


def parse_numeric(text: str) -> int | float:
    text = text.strip()
    try:
        return int(text)
    except ValueError:
        pass
    number = float(text)
    if not math.isfinite(number):
        raise ValueError(f"{text!r} is not a finite number")
    return number


def parse_value(field: FieldSpec, text: str) -> FieldValue:
    """Convert user or cache text into the typed value for *field*.

    Raises InvalidValueError when *text* is not acceptable for the kind.
    Sensitive fields always come back wrapped in a ``SecretValue``.
    """
    if field.kind is FieldKind.FLAG:
        lowered = text.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off", ""):
            return False
        raise InvalidValueError(field.name, f"{text!r} is not a boolean")
    if field.kind is FieldKind.ENUM:
        if text not in field.choices:
            raise InvalidValueError(field.name, f"{text!r} is not one of {', '.join(field.choices)}")
        return text
    if field.kind is FieldKind.NUMERIC:
        try:
            number = parse_numeric(text)
        except ValueError:
            raise InvalidValueError(field.name, f"{text!r} is not a number") from None
        return SecretValue(text.strip()) if is_sensitive(field) else number
    if field.kind in (FieldKind.STRING, FieldKind.PASSWORD, FieldKind.PATH):
        return SecretValue(text) if is_sensitive(field) else text
    raise InvalidValueError(field.name, f"unsupported kind {field.kind!r}")


def format_value(value: FieldValue) -> str:
    """Text form of a non-sensitive value, as stored in the value cache."""
    if isinstance(value, SecretValue):
        raise TypeError("sensitive values have no stored text form")
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build(
    spec: CommandSpec, values: Mapping[str, FieldValue], *, strict: bool = True
) -> ArgumentVector:
    """Build the argument vector for *spec* from typed form *values*.

    With ``strict=False`` missing required values are skipped instead of
    raising, which is what the live preview wants.
    """
    positional: list[Token] = []
    for f in spec.positionals():
        value = values.get(f.name)
        if is_empty(value):
            if f.required and strict:
                raise MissingRequiredError(f.name)
            continue
        positional.append(_token(f, value))

    named: list[Token] = []
    for f in spec.named():
        value = values.get(f.name)
        if f.kind is FieldKind.FLAG:
            if value is not None and not isinstance(value, bool):
                raise InvalidValueError(f.name, "flag value must be true or false")
            if value:
                named.append(f.option)
            continue
        if is_empty(value):
            if f.required and strict:
                raise MissingRequiredError(f.name)
            continue
        named.extend([f.option, _token(f, value)])

    args = positional + named if spec.positionals_first else named + positional
    return ArgumentVector(program=spec.identity, args=tuple(args))


def _token(field: FieldSpec, value: FieldValue) -> Token:
    if is_sensitive(field):
        return SecretPlaceholder(field.name)
    if isinstance(value, SecretValue):
        raise InvalidValueError(field.name, "unexpected sensitive value")

    if field.kind is FieldKind.NUMERIC:
        if isinstance(value, bool):
            raise InvalidValueError(field.name, "expected a number")
        if isinstance(value, str):
            try:
                value = parse_numeric(value)
            except ValueError:
                raise InvalidValueError(field.name, f"{value!r} is not a number") from None
        if not isinstance(value, (int, float)):
            raise InvalidValueError(field.name, "expected a number")
        return str(value)
    if field.kind is FieldKind.ENUM:
        if value not in field.choices:
            raise InvalidValueError(field.name, f"{value!r} is not one of {', '.join(field.choices)}")
        return str(value)
    if not isinstance(value, str):
        raise InvalidValueError(field.name, "expected text")
    if field.kind is FieldKind.PATH:
        return os.path.expanduser(value)
    return value
