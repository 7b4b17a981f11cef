"""Security policy shared by the cache, the form and the builder.

Everything here is a pure function of a spec, a field or a value.  There is
no guard object and no mutable state, so every call site applies the same
policy.  When classification cannot be decided the answer is "sensitive".
"""

import logging
import re
from collections.abc import Mapping

from quocli.constants import MASK
from quocli.models import CommandSpec, DangerLevel, FieldKind, FieldSpec, FieldValue, SecretValue

logger = logging.getLogger(__name__)

# Names of value-bearing fields that are treated as secrets even when the
# parser did not flag them.
_SECRET_NAME = re.compile(
    r"pass(word|wd|phrase)?|secret|token|api[-_]?key|credential|private[-_]?key|auth[-_]?key",
    re.IGNORECASE,
)

# Commands whose main purpose is destructive.
_DESTRUCTIVE_COMMANDS = frozenset(
    {"rm", "rmdir", "dd", "mkfs", "shred", "wipefs", "fdisk", "kill", "killall", "pkill", "truncate"}
)

# Subcommands and option names that signal destructive behaviour.
_DESTRUCTIVE_WORDS = frozenset(
    {"delete", "destroy", "purge", "prune", "wipe", "drop", "force", "hard", "erase"}
)

_DESTRUCTIVE_HELP = re.compile(
    r"cannot be undone|irreversibl|permanently (delete|remove|erase|destroy)|data loss",
    re.IGNORECASE,
)


def is_sensitive(field: FieldSpec) -> bool:
    """Return True if values of *field* must never be cached, logged or shown."""
    try:
        if field.sensitive or field.kind is FieldKind.PASSWORD:
            return True
        if field.kind in (FieldKind.FLAG, FieldKind.ENUM):
            return False
        return bool(_SECRET_NAME.search(field.name))
    except (AttributeError, TypeError) as exc:
        logger.warning("Could not classify field %r, treating it as sensitive: %s", field, exc)
        return True


def redact(value: object) -> str:
    """Return the fixed mask used in place of a sensitive value."""
    return MASK


def is_dangerous(spec: CommandSpec) -> bool:
    return spec.dangerous or spec.danger_level in (DangerLevel.HIGH, DangerLevel.CRITICAL)


def assess_danger(spec: CommandSpec, help_text: str | None = None) -> CommandSpec:
    """Return *spec* marked dangerous when the command looks destructive.

    A spec is marked when the command itself is a known destructive tool,
    when a subcommand or option name is a destructive verb (``--force``,
    ``branch delete``), or when the help text warns about irreversible
    effects.  Specs that are already dangerous are returned unchanged.
    """
    if is_dangerous(spec):
        return spec

    reason: str | None = None
    if spec.identity[0].rsplit("/", 1)[-1] in _DESTRUCTIVE_COMMANDS:
        reason = f"'{spec.identity[0]}' is a destructive command"
    else:
        for token in spec.identity[1:]:
            if token.lower() in _DESTRUCTIVE_WORDS:
                reason = f"subcommand '{token}' is destructive"
                break
    if reason is None:
        for f in spec.fields:
            words = set(re.split(r"[-_]+", f.name.lower()))
            if not f.positional and words & _DESTRUCTIVE_WORDS:
                reason = f"option {f.option} can destroy data"
                break
    if reason is None and help_text:
        match = _DESTRUCTIVE_HELP.search(help_text)
        if match:
            reason = f"help text warns: '{match.group(0)}'"
    if reason is None:
        return spec

    warning = spec.warning or f"This command may be destructive: {reason}."
    return spec.model_copy(update={"dangerous": True, "warning": warning})


def display_value(field: FieldSpec, value: FieldValue | None) -> str:
    """Render a form value for the screen, masking sensitive values."""
    if value is None:
        return ""
    if field.kind is FieldKind.FLAG:
        return "on" if value else "off"
    if is_sensitive(field) or isinstance(value, SecretValue):
        return redact(value) if value else ""
    return str(value)


def redact_values(spec: CommandSpec, values: Mapping[str, FieldValue]) -> dict[str, str]:
    """Display strings for every set value, with sensitive ones masked."""
    redacted: dict[str, str] = {}
    for f in spec.fields:
        value = values.get(f.name)
        if value is None or value == "":
            continue
        redacted[f.name] = display_value(f, value)
    return redacted
