"""quocli settings: config.json and the saved TUI theme.

Schema on disk (~/.config/quocli/config.json, or $QUOCLI_HOME/config.json):

    {
        "cache": {"path": "~/.local/share/quocli/cache", "ttl_days": 30, "values_ttl_days": 30},
        "ui": {"preview_command": true},
        "history": {"enabled": true, "path": "~/.local/share/quocli/history.jsonl"},
        "spec_dirs": ["~/.config/quocli/specs"],
        "log_level": "INFO"
    }

Every section is optional.  Keys starting with "_" (such as "_example") are
comments and are dropped on load.
"""

import json
import os
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from quocli.constants import DEFAULT_CLAIM_TIMEOUT_SECONDS, DEFAULT_TTL_DAYS, DEFAULT_VALUES_TTL_DAYS

CONFIG_DIR = Path(os.environ.get("QUOCLI_HOME", "~/.config/quocli")).expanduser()
CONFIG_PATH = CONFIG_DIR / "config.json"
DATA_DIR = Path(os.environ.get("XDG_DATA_HOME", "~/.local/share")).expanduser() / "quocli"

_README_PATH = CONFIG_DIR / "README.md"

_README_CONTENT = """\
# quocli configuration

Edit `config.json` in this directory to change cache and history settings.

## Schema

```json
{
    "cache": {"path": "~/.local/share/quocli/cache", "ttl_days": 30, "values_ttl_days": 30},
    "ui": {"preview_command": true},
    "history": {"enabled": true, "path": "~/.local/share/quocli/history.jsonl"},
    "spec_dirs": ["~/.config/quocli/specs"],
    "log_level": "INFO"
}
```

Command specs are read from `specs/<command>-<subcommand>.json`, for example
`specs/git-commit.json`.  Keys prefixed with `_` are ignored by quocli.
"""


class CacheSettings(BaseModel):
    path: Path = DATA_DIR / "cache"
    ttl_days: float = Field(default=DEFAULT_TTL_DAYS, gt=0)
    values_ttl_days: float = Field(default=DEFAULT_VALUES_TTL_DAYS, gt=0)
    claim_timeout_seconds: float = Field(default=DEFAULT_CLAIM_TIMEOUT_SECONDS, gt=0)


class UiSettings(BaseModel):
    preview_command: bool = True


class HistorySettings(BaseModel):
    enabled: bool = True
    path: Path = DATA_DIR / "history.jsonl"


class Config(BaseModel):
    cache: CacheSettings = Field(default_factory=CacheSettings)
    ui: UiSettings = Field(default_factory=UiSettings)
    history: HistorySettings = Field(default_factory=HistorySettings)
    spec_dirs: list[Path] = Field(default_factory=lambda: [CONFIG_DIR / "specs"])
    log_level: str = "INFO"
    log_path: Path = DATA_DIR / "quocli.log"


class ConfigError(Exception):
    """config.json is present but unusable."""


def load_config() -> Config:
    """Read ``config.json``, writing a default one (and a README) if absent.

    ConfigError is raised for a file that is not JSON, not an object, or
    fails validation.
    """
    if not CONFIG_PATH.exists():
        _write_defaults()
        return Config()

    try:
        raw: object = json.loads(CONFIG_PATH.read_text() or "{}")
    except json.JSONDecodeError as exc:
        raise ConfigError(f"{CONFIG_PATH.name} is not valid JSON: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"{CONFIG_PATH.name} must hold an object at the top level")

    # "_"-prefixed keys are comments.
    settings = {key: value for key, value in raw.items() if not key.startswith("_")}
    try:
        return Config.model_validate(settings)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config: {exc}") from exc


def save_config(config: Config) -> None:
    CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_PATH.write_text(config.model_dump_json(indent=2))


def _write_defaults() -> None:
    CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_PATH.write_text("{}\n")
    if not _README_PATH.exists():
        _README_PATH.write_text(_README_CONTENT)


# The TUI theme lives in its own file so that switching themes never rewrites
# the user's config.json.
THEME_CONFIG_PATH = CONFIG_DIR / "theme.json"


class ThemeSettings(BaseModel):
    theme: str | None = None


def load_theme() -> str | None:
    """Name of the last theme picked in the TUI, if any was saved."""
    try:
        return ThemeSettings.model_validate_json(THEME_CONFIG_PATH.read_text()).theme
    except (OSError, ValidationError):
        return None


def save_theme(theme: str) -> None:
    THEME_CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    THEME_CONFIG_PATH.write_text(ThemeSettings(theme=theme).model_dump_json(indent=2))
