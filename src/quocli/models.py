"""Domain models.

``CommandSpec`` and ``FieldSpec`` are frozen pydantic models: a spec is built
once (from parser output or from the cache) and shared read-only by every
component.  Structural rules that can be checked on a single object live in
the validators here; ``quocli.domain.spec`` wraps them for external input.
"""

from dataclasses import dataclass, field
from enum import Enum, auto

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class FieldKind(str, Enum):
    FLAG = "flag"
    STRING = "string"
    ENUM = "enum"
    PASSWORD = "password"
    PATH = "path"
    NUMERIC = "numeric"


# Spellings accepted from parser output, mapped onto the closed kind set.
KIND_ALIASES: dict[str, FieldKind] = {
    "flag": FieldKind.FLAG,
    "bool": FieldKind.FLAG,
    "boolean": FieldKind.FLAG,
    "switch": FieldKind.FLAG,
    "string": FieldKind.STRING,
    "str": FieldKind.STRING,
    "text": FieldKind.STRING,
    "enum": FieldKind.ENUM,
    "choice": FieldKind.ENUM,
    "select": FieldKind.ENUM,
    "option": FieldKind.ENUM,
    "password": FieldKind.PASSWORD,
    "secret": FieldKind.PASSWORD,
    "path": FieldKind.PATH,
    "file": FieldKind.PATH,
    "filename": FieldKind.PATH,
    "filepath": FieldKind.PATH,
    "dir": FieldKind.PATH,
    "directory": FieldKind.PATH,
    "numeric": FieldKind.NUMERIC,
    "number": FieldKind.NUMERIC,
    "int": FieldKind.NUMERIC,
    "integer": FieldKind.NUMERIC,
    "float": FieldKind.NUMERIC,
    "decimal": FieldKind.NUMERIC,
    "double": FieldKind.NUMERIC,
}


def normalize_kind(raw: object) -> FieldKind:
    """Map a kind spelling onto ``FieldKind``. Raises ValueError if unknown."""
    if isinstance(raw, FieldKind):
        return raw
    if isinstance(raw, str):
        kind = KIND_ALIASES.get(raw.strip().lower())
        if kind is not None:
            return kind
    raise ValueError(f"unknown field kind: {raw!r}")


class DangerLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class FieldSpec(BaseModel):
    """One argument, flag or option of a wrapped command."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    kind: FieldKind = FieldKind.STRING
    required: bool = False
    positional: bool = False
    order: int | None = None
    sensitive: bool = False
    help: str = ""
    choices: tuple[str, ...] = ()
    flag: str | None = None
    default: str | None = None

    @field_validator("kind", mode="before")
    @classmethod
    def _normalize_kind(cls, value: object) -> FieldKind:
        return normalize_kind(value)

    @model_validator(mode="before")
    @classmethod
    def _password_is_sensitive(cls, data: object) -> object:
        if isinstance(data, dict) and "kind" in data:
            try:
                kind = normalize_kind(data["kind"])
            except ValueError:
                return data
            if kind is FieldKind.PASSWORD and not data.get("sensitive"):
                data = {**data, "sensitive": True}
        return data

    @model_validator(mode="after")
    def _check_kind_rules(self) -> "FieldSpec":
        if self.kind is FieldKind.ENUM and not self.choices:
            raise ValueError(f"enum field '{self.name}' has no choices")
        if len(set(self.choices)) != len(self.choices):
            raise ValueError(f"field '{self.name}' has duplicate choices")
        if self.kind is FieldKind.FLAG and self.required:
            raise ValueError(f"flag field '{self.name}' cannot be required")
        if self.kind is FieldKind.FLAG and self.positional:
            raise ValueError(f"flag field '{self.name}' cannot be positional")
        if self.order is not None and not self.positional:
            raise ValueError(f"field '{self.name}' has an order but is not positional")
        return self

    @property
    def option(self) -> str:
        """The argv token that introduces this field (``--name`` unless overridden)."""
        return self.flag or f"--{self.name}"

    @property
    def label(self) -> str:
        return f"<{self.name}>" if self.positional else self.option


def structural_problems(fields: tuple[FieldSpec, ...]) -> list[str]:
    """Return every cross-field rule the given field list breaks."""
    problems: list[str] = []
    seen: set[str] = set()
    for f in fields:
        if f.name in seen:
            problems.append(f"duplicate field name '{f.name}'")
        seen.add(f.name)

    orders: set[int] = set()
    for f in fields:
        if not f.positional:
            continue
        if f.order is None:
            problems.append(f"positional field '{f.name}' has no order")
        elif f.order in orders:
            problems.append(f"positional order {f.order} is used twice")
        else:
            orders.add(f.order)
    return problems


class CommandSpec(BaseModel):
    """Normalized description of one wrapped command."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    identity: tuple[str, ...] = Field(min_length=1)
    description: str = ""
    fields: tuple[FieldSpec, ...] = ()
    dangerous: bool = False
    warning: str | None = None
    danger_level: DangerLevel = DangerLevel.LOW
    positionals_first: bool = True
    examples: tuple[str, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _default_positional_order(cls, data: object) -> object:
        """Number positionals in declaration order when none declares an order."""
        if not isinstance(data, dict):
            return data
        raw_fields = data.get("fields")
        if not isinstance(raw_fields, (list, tuple)):
            return data

        def get(item: object, attr: str) -> object:
            if isinstance(item, FieldSpec):
                return getattr(item, attr)
            if isinstance(item, dict):
                return item.get(attr)
            return None

        positionals = [item for item in raw_fields if get(item, "positional")]
        if not positionals or any(get(item, "order") is not None for item in positionals):
            return data

        numbered: list[object] = []
        index = 0
        for item in raw_fields:
            if get(item, "positional"):
                if isinstance(item, FieldSpec):
                    item = item.model_copy(update={"order": index})
                elif isinstance(item, dict):
                    item = {**item, "order": index}
                index += 1
            numbered.append(item)
        return {**data, "fields": numbered}

    @model_validator(mode="after")
    def _check_structure(self) -> "CommandSpec":
        problems = structural_problems(self.fields)
        if problems:
            raise ValueError("; ".join(problems))
        if not all(token.strip() for token in self.identity):
            raise ValueError("identity tokens must be non-empty")
        return self

    @model_validator(mode="before")
    @classmethod
    def _level_implies_dangerous(cls, data: object) -> object:
        if not isinstance(data, dict):
            return data
        level = data.get("danger_level")
        if isinstance(level, DangerLevel):
            level = level.value
        if isinstance(level, str) and level.lower() in ("high", "critical"):
            data = {**data, "dangerous": True}
        return data

    @property
    def command_line(self) -> str:
        return " ".join(self.identity)

    def field(self, name: str) -> FieldSpec | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def index_of(self, name: str) -> int:
        for i, f in enumerate(self.fields):
            if f.name == name:
                return i
        raise KeyError(name)

    def positionals(self) -> list[FieldSpec]:
        """Positional fields in argv order."""
        return sorted((f for f in self.fields if f.positional), key=lambda f: f.order or 0)

    def named(self) -> list[FieldSpec]:
        """Non-positional fields in spec order."""
        return [f for f in self.fields if not f.positional]


class SecretValue:
    """Mutable holder for a sensitive value that can be zeroed in place.

    ``str`` objects are immutable and cannot be overwritten, so sensitive form
    values are kept as UTF-8 bytes in a ``bytearray`` until the session ends.
    """

    __slots__ = ("_buf",)

    def __init__(self, value: str = "") -> None:
        self._buf = bytearray(value.encode("utf-8"))

    def reveal(self) -> str:
        return self._buf.decode("utf-8")

    def append(self, text: str) -> None:
        self._buf.extend(text.encode("utf-8"))

    def backspace(self) -> None:
        """Drop the last character (all of its UTF-8 continuation bytes)."""
        while self._buf and (self._buf[-1] & 0xC0) == 0x80:
            self._buf.pop()
        if self._buf:
            self._buf.pop()

    def wipe(self) -> None:
        for i in range(len(self._buf)):
            self._buf[i] = 0
        self._buf.clear()

    def __len__(self) -> int:
        return len(self._buf)

    def __bool__(self) -> bool:
        return bool(self._buf)

    def __repr__(self) -> str:
        return "SecretValue('***')"


FieldValue = bool | int | float | str | SecretValue


class FormMode(Enum):
    NAVIGATING = auto()
    EDITING = auto()
    CONFIRMING = auto()
    DONE = auto()


class Outcome(Enum):
    EXECUTED = auto()
    CANCELLED = auto()


@dataclass(frozen=True)
class FieldRow:
    """Display-ready view of one field; sensitive values are already masked."""

    name: str
    label: str
    kind: FieldKind
    display: str
    required: bool
    sensitive: bool
    help: str


@dataclass(frozen=True)
class FormSnapshot:
    """Immutable picture of a form session handed to the renderer each frame."""

    title: str
    mode: FormMode
    cursor: int
    rows: tuple[FieldRow, ...]
    buffer: str = ""
    error: str | None = None
    dangerous: bool = False
    warning: str | None = None
    preview: str = ""
    outcome: Outcome | None = None
    missing: tuple[str, ...] = field(default_factory=tuple)


class HistoryEntry(BaseModel):
    """Redacted record of one executed command."""

    identity: tuple[str, ...]
    command_line: str
    values: dict[str, str]
    exit_status: int | None = None
    timestamp: float
