"""Edit screen: modal for typing a field value."""

from collections.abc import Callable

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.screen import ModalScreen
from textual.widgets import Input, Label

from quocli.widgets.env_suggester import EnvVarSuggester


class EditScreen(ModalScreen[bool]):
    """Modal that edits one field of the form.

    *commit* receives the submitted text and returns an error message when
    the value is rejected, in which case the modal stays open.  Dismisses
    with True once a value is committed, False on cancel.  With *suggest_env*
    the input offers completions for $NAME environment variable references.
    """

    BINDINGS = [
        Binding("escape", "cancel", show=False),
    ]

    def __init__(
        self,
        label: str,
        current_value: str,
        commit: Callable[[str], str | None],
        password: bool = False,
        help: str = "",
        suggest_env: bool = False,
    ) -> None:
        super().__init__()
        self._label = label
        self._current_value = current_value
        self._commit = commit
        self._password = password
        self._help = help
        self._suggest_env = suggest_env

    def compose(self) -> ComposeResult:
        with Vertical(id="edit-container"):
            yield Label(f"Edit  {self._label}", id="edit-title")
            if self._help:
                yield Label(self._help, id="edit-help")
            yield Input(
                value=self._current_value,
                password=self._password,
                suggester=EnvVarSuggester() if self._suggest_env else None,
                id="edit-value",
            )
            yield Label("", id="edit-error")
            hint = "Enter to save · empty clears · Escape to cancel"
            yield Label(hint, id="edit-hint")

    def on_mount(self) -> None:
        input = self.query_one("#edit-value", Input)
        input.focus()
        input.cursor_position = len(self._current_value)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        error = self._commit(event.value)
        if error is not None:
            self.query_one("#edit-error", Label).update(error)
            return
        if self._password:
            event.input.value = ""
        self.dismiss(True)

    def action_cancel(self) -> None:
        if self._password:
            self.query_one("#edit-value", Input).value = ""
        self.dismiss(False)
