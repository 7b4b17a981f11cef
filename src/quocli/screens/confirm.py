"""Confirm screen: asks before running a dangerous command."""

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Label


class ConfirmScreen(ModalScreen[bool]):
    """Shows the redacted command line and asks to run it.

    Dismisses with True on confirm, False on deny.  "No" has focus so a
    stray Enter never runs the command.
    """

    BINDINGS = [
        Binding("escape", "deny", show=False),
        Binding("y", "confirm", show=False),
        Binding("n", "deny", show=False),
    ]

    def __init__(self, command_line: str, warning: str | None = None) -> None:
        super().__init__()
        self._command_line = command_line
        self._warning = warning or "This command is marked as dangerous."

    def compose(self) -> ComposeResult:
        with Vertical(id="confirm-container"):
            yield Label(self._warning, id="confirm-warning")
            yield Label(self._command_line, id="confirm-command")
            yield Label("Run it?", id="confirm-message")
            with Horizontal(id="confirm-buttons"):
                yield Button("Yes", variant="error", id="confirm-yes")
                yield Button("No", variant="primary", id="confirm-no")

    def on_mount(self) -> None:
        self.query_one("#confirm-no", Button).focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "confirm-yes")

    def action_confirm(self) -> None:
        self.dismiss(True)

    def action_deny(self) -> None:
        self.dismiss(False)
