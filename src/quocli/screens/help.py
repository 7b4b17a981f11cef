"""Help overlay screen."""

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Static

from quocli.constants import HELP_TEXT
from quocli.models import CommandSpec


def command_help(spec: CommandSpec) -> str:
    """Description and usage examples for the command being edited."""
    lines = [spec.command_line, "─" * 30]
    if spec.description:
        lines.append(spec.description)
    if spec.examples:
        lines.append("")
        lines.append("Examples")
        lines.extend(f"  {example}" for example in spec.examples)
    return "\n".join(lines)


class HelpScreen(ModalScreen):
    """Key bindings, followed by what quocli knows about the command."""

    BINDINGS = [
        Binding("escape", "dismiss", show=False),
        Binding("?", "dismiss", show=False),
        Binding("q", "dismiss", show=False),
    ]

    def __init__(self, spec: CommandSpec | None = None) -> None:
        super().__init__()
        self._spec = spec

    def compose(self) -> ComposeResult:
        with VerticalScroll(id="help-container"):
            yield Static(HELP_TEXT, id="help-text")
            if self._spec is not None:
                yield Static(command_help(self._spec), id="help-command")

    def on_click(self) -> None:
        self.dismiss()
