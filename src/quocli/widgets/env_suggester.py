"""Completion of ``$NAME`` environment variable references in text inputs."""

import os
import re
from collections.abc import Iterable

from textual.suggester import Suggester

# A trailing "$" optionally followed by the start of a variable name.
_REFERENCE = re.compile(r"\$([A-Za-z_][A-Za-z0-9_]*)?$")


class EnvVarSuggester(Suggester):
    """Suggests the rest of an environment variable name after a ``$``.

    Only the reference at the end of the input is completed, so
    ``--data $HO`` suggests ``--data $HOME``.
    """

    def __init__(self, names: Iterable[str] | None = None) -> None:
        super().__init__(use_cache=False, case_sensitive=True)
        self._names = sorted(os.environ if names is None else names)

    async def get_suggestion(self, value: str) -> str | None:
        match = _REFERENCE.search(value)
        if match is None:
            return None
        typed = match.group(1) or ""
        for name in self._names:
            if name.startswith(typed) and name != typed:
                return value + name[len(typed) :]
        return None
