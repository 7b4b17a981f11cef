"""Construction and validation of command specs from external input.

Parser output arrives either in the native layout::

    {"identity": ["git", "commit"], "fields": [{"name": "message", ...}], ...}

or in the option/positional layout the help-text parser prompt asks for::

    {"command": "git commit",
     "options": [{"flags": ["-m", "--message"], "argument_type": "string", ...}],
     "positional_args": [{"name": "pathspec", ...}]}

Both are normalized into a ``CommandSpec``.  Anything structurally wrong is
rejected with ``MalformedSpecError``; nothing is silently coerced into shape.
"""

import json
from collections.abc import Mapping, Sequence

from pydantic import ValidationError

from quocli.models import CommandSpec, structural_problems


class SpecError(Exception):
    """Base class for command-spec problems."""


class MalformedSpecError(SpecError):
    """Raised when parser output does not describe a valid command spec."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"malformed command spec: {reason}")
        self.reason = reason


def validate_spec(spec: CommandSpec) -> None:
    """Raise MalformedSpecError if *spec* breaks a cross-field rule.

    Specs built through the model are already checked; this re-checks specs
    that were copied with ``model_copy`` (which skips validation).
    """
    problems = structural_problems(spec.fields)
    if problems:
        raise MalformedSpecError("; ".join(problems))


def parse_spec(raw: object, identity: Sequence[str] | None = None) -> CommandSpec:
    """Build a validated CommandSpec from a mapping or a JSON document.

    *identity* fills in the command path when the payload does not carry one.
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise MalformedSpecError(f"not valid JSON: {exc}") from exc

    if not isinstance(raw, Mapping):
        raise MalformedSpecError("spec must be a JSON object at the top level")

    data = dict(raw)
    if "options" in data or "positional_args" in data:
        data = _from_option_layout(data)

    if "identity" not in data:
        command = data.pop("command", None)
        if isinstance(command, str) and command.split():
            data["identity"] = command.split()
        elif identity:
            data["identity"] = list(identity)
        else:
            raise MalformedSpecError("spec has no command identity")
    else:
        data.pop("command", None)

    try:
        return CommandSpec.model_validate(data)
    except ValidationError as exc:
        raise MalformedSpecError(_describe(exc)) from exc


def spec_to_json(spec: CommandSpec) -> str:
    return spec.model_dump_json()


def spec_from_json(payload: str) -> CommandSpec:
    try:
        return CommandSpec.model_validate_json(payload)
    except ValidationError as exc:
        raise MalformedSpecError(_describe(exc)) from exc


def _from_option_layout(data: dict) -> dict:
    """Translate the options/positional_args layout into native fields."""
    options = data.pop("options", None) or []
    positionals = data.pop("positional_args", None) or []
    if not isinstance(options, list) or not isinstance(positionals, list):
        raise MalformedSpecError("'options' and 'positional_args' must be lists")
    # Parser bookkeeping with no counterpart in the form.
    data.pop("version_hash", None)
    data.pop("subcommands", None)

    fields: list[dict] = []
    for index, arg in enumerate(positionals):
        if not isinstance(arg, Mapping):
            raise MalformedSpecError(f"positional_args[{index}] is not an object")
        fields.append(
            {
                "name": arg.get("name"),
                "kind": arg.get("argument_type", "string"),
                "required": bool(arg.get("required", False)),
                "positional": True,
                "order": index,
                "sensitive": bool(arg.get("sensitive", False)),
                "help": arg.get("description") or "",
                "default": _optional_text(arg.get("default")),
            }
        )

    for index, opt in enumerate(options):
        if not isinstance(opt, Mapping):
            raise MalformedSpecError(f"options[{index}] is not an object")
        flags = opt.get("flags")
        if not isinstance(flags, list) or not flags or not all(isinstance(f, str) for f in flags):
            raise MalformedSpecError(f"options[{index}] has no flags")
        primary = max(flags, key=len)
        name = primary.lstrip("-")
        if not name:
            raise MalformedSpecError(f"options[{index}] has an empty flag")
        fields.append(
            {
                "name": name,
                "kind": opt.get("argument_type", "string"),
                "required": bool(opt.get("required", False)),
                "sensitive": bool(opt.get("sensitive", False)),
                "help": opt.get("description") or "",
                "choices": list(opt.get("enum_values") or []),
                "flag": primary,
                "default": _optional_text(opt.get("default")),
            }
        )

    data["fields"] = fields
    return data


def _optional_text(value: object) -> str | None:
    # Parser output sometimes uses false/0 where it means "no default".
    if value is None or value is False:
        return None
    if value is True:
        return "true"
    return str(value)


def _describe(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error["loc"])
        message = error["msg"].removeprefix("Value error, ")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)
