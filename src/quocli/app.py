"""Main application entry point."""

import contextlib
from collections.abc import Callable, Mapping, Sequence

from textual import work
from textual.app import App, ComposeResult, SuspendNotSupported
from textual.binding import Binding
from textual.reactive import reactive
from textual.widgets import DataTable, Footer, Header, LoadingIndicator
from textual.worker import get_current_worker

from quocli.config import load_theme, save_theme
from quocli.constants import APP_TITLE
from quocli.domain.builder import ArgumentVector
from quocli.domain.form import FormState
from quocli.domain.guard import is_sensitive
from quocli.domain.spec import SpecError
from quocli.engine import Engine
from quocli.models import CommandSpec, FieldKind, FormMode, Outcome
from quocli.providers import ExecutionError, HelpUnavailableError, ParseError
from quocli.screens.confirm import ConfirmScreen
from quocli.screens.edit import EditScreen
from quocli.screens.help import HelpScreen
from quocli.widgets.field_table import FieldTable
from quocli.widgets.preview import CommandPreview

# Actions that drive the form and only apply while navigating it.
_FORM_ACTIONS = frozenset(
    {
        "next_field",
        "prev_field",
        "first_field",
        "last_field",
        "activate",
        "execute",
        "clear_values",
    }
)


class QuocliApp(App[int | None]):
    """quocli: an interactive form for a command line."""

    CSS = """
    #fields {
        height: 1fr;
    }
    #preview {
        height: auto;
        padding: 0 1;
        border-top: solid $primary;
    }
    """
    TITLE = APP_TITLE
    ENABLE_COMMAND_PALETTE = False

    loading: reactive[bool] = reactive(True, init=False)
    show_preview: reactive[bool] = reactive(True, init=False)

    BINDINGS = [
        Binding("q", "cancel", "Cancel"),
        Binding("escape", "cancel", show=False),
        Binding("?", "toggle_help", "Help"),
        Binding("tab", "next_field", show=False, priority=True),
        Binding("shift+tab", "prev_field", show=False, priority=True),
        Binding("g", "first_field", show=False),
        Binding("G", "last_field", show=False),
        Binding("i", "activate", "Edit"),
        Binding("space", "activate", show=False),
        Binding("ctrl+e", "execute", "Run"),
        Binding("ctrl+p", "toggle_preview", "Preview"),
        Binding("ctrl+x", "clear_values", "Clear"),
    ]

    def __init__(
        self,
        engine: Engine,
        identity: Sequence[str],
        refresh: bool = False,
        show_preview: bool = True,
        _use_config: bool = False,
    ) -> None:
        super().__init__()
        self._engine = engine
        self._identity = tuple(identity)
        self._refresh = refresh
        self._use_config = _use_config
        self._sessions = contextlib.ExitStack()
        self._state: FormState | None = None
        self.spec: CommandSpec | None = None
        self.outcome: Outcome | None = None
        self.command_line: str | None = None
        self.error_message: str | None = None
        self.set_reactive(QuocliApp.show_preview, show_preview)

    def compose(self) -> ComposeResult:
        yield Header()
        yield LoadingIndicator(id="loading")
        yield FieldTable(id="fields")
        yield CommandPreview(id="preview")
        yield Footer()

    def on_mount(self) -> None:
        self.sub_title = " ".join(self._identity)
        self._get_table().display = False
        if self._use_config:
            saved_theme = load_theme()
            if saved_theme:
                self.theme = saved_theme
        self._load_spec()

    def on_unmount(self) -> None:
        self.close_session()

    @property
    def form_state(self) -> FormState | None:
        """The live form session, once the spec has loaded."""
        return self._state

    def close_session(self) -> None:
        """End the form session, zeroing any secrets it still holds."""
        self._sessions.close()

    @work(thread=True, exclusive=True)
    def _load_spec(self) -> None:
        """Fetch help text and resolve the spec off the event loop."""
        worker = get_current_worker()
        try:
            spec = self._engine.load_spec(self._identity, refresh=self._refresh)
        except (HelpUnavailableError, ParseError, SpecError) as exc:
            if not worker.is_cancelled and self.is_running:
                self.call_from_thread(self._fail, str(exc))
            return
        if not worker.is_cancelled and self.is_running:
            self.call_from_thread(self._open, spec)

    def _fail(self, message: str) -> None:
        self.error_message = message
        self.exit(None, return_code=1, message=f"quocli: {message}")

    def _open(self, spec: CommandSpec) -> None:
        if self.outcome is not None:
            return
        self.spec = spec
        self._state = self._sessions.enter_context(
            self._engine.session(spec, execute=self._run_command)
        )
        self.title = f"{APP_TITLE} · {spec.command_line}"
        self.sub_title = spec.description
        self.loading = False
        self._render()
        self._get_table().focus()

    def _run_command(self, argv: ArgumentVector, secrets: Mapping[str, str]) -> int:
        """Hand the terminal to the command while it runs."""
        if self._engine.dry_run:
            return self._engine.execute(argv, secrets)
        try:
            with self.suspend():
                return self._engine.execute(argv, secrets)
        except SuspendNotSupported:
            return self._engine.execute(argv, secrets)

    def watch_loading(self, loading: bool) -> None:
        self.query_one("#loading", LoadingIndicator).display = loading
        self._get_table().display = not loading

    def watch_show_preview(self, show_preview: bool) -> None:
        if self._state is not None:
            self._render()

    def watch_theme(self, theme: str) -> None:
        """Persist theme changes whenever the theme is changed."""
        if self._use_config:
            save_theme(theme)

    def check_action(self, action: str, parameters: tuple[object, ...]) -> bool | None:
        if action in _FORM_ACTIONS:
            return self._state is not None and self._state.mode is FormMode.NAVIGATING
        return True

    def _get_table(self) -> FieldTable:
        return self.query_one("#fields", FieldTable)

    def _render(self) -> None:
        """Redraw the table and the preview from a fresh snapshot."""
        if self._state is None:
            return
        snapshot = self._state.snapshot()
        self._get_table().load(snapshot.rows, snapshot.cursor)
        self.query_one("#preview", CommandPreview).show(snapshot, with_command=self.show_preview)

    def _transition(self, step: Callable[[], object]) -> None:
        """Apply a state transition that may end the session."""
        if self._state is None:
            return
        try:
            step()
        except ExecutionError as exc:
            self.error_message = str(exc)
        if self._state.done:
            self._complete()
        else:
            self._render()

    def _complete(self) -> None:
        state = self._state
        if state is None:
            return
        self.outcome = state.outcome
        if state.argv is not None:
            self.command_line = state.argv.display()
        if self.error_message is None:
            self._engine.finish(state)
            self.exit(state.exit_status)
        else:
            self.exit(None, return_code=1, message=f"quocli: {self.error_message}")

    def on_field_table_step(self, event: FieldTable.Step) -> None:
        event.stop()
        if not self.check_action("next_field", ()):
            return
        if event.delta > 0:
            self.action_next_field()
        else:
            self.action_prev_field()

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        """Enter or a click on a row activates that field."""
        event.stop()
        state = self._state
        if state is None or state.mode is not FormMode.NAVIGATING:
            return
        if event.cursor_row != state.cursor:
            state.move_to(event.cursor_row)
        self.action_activate()

    def action_next_field(self) -> None:
        if self._state is None:
            return
        self._state.next()
        self._render()

    def action_prev_field(self) -> None:
        if self._state is None:
            return
        self._state.prev()
        self._render()

    def action_first_field(self) -> None:
        if self._state is None:
            return
        if self._state.spec.fields:
            self._state.move_to(0)
            self._render()

    def action_last_field(self) -> None:
        if self._state is None:
            return
        if self._state.spec.fields:
            self._state.move_to(len(self._state.spec.fields) - 1)
            self._render()

    def action_activate(self) -> None:
        """Toggle a flag, cycle a choice, or open the edit modal."""
        state = self._state
        if state is None:
            return
        state.activate()
        self._render()
        if not state.editing:
            return
        field = state.current
        if field is None:
            return
        sensitive = is_sensitive(field)

        def commit(text: str) -> str | None:
            return None if state.confirm_edit(text) else state.error

        def on_close(saved: bool | None) -> None:
            if not saved and state.editing:
                state.cancel_edit()
            self._render()
            self._get_table().focus()

        self.push_screen(
            EditScreen(
                label=field.label,
                current_value="" if sensitive else state.buffer,
                commit=commit,
                password=sensitive,
                help=field.help,
                suggest_env=not sensitive and field.kind in (FieldKind.STRING, FieldKind.PATH),
            ),
            on_close,
        )

    def action_execute(self) -> None:
        """Run the command, asking first when it is dangerous."""
        state = self._state
        if state is None:
            return
        self._transition(state.request_execute)
        if state.mode is not FormMode.CONFIRMING:
            return

        def on_confirm(confirmed: bool | None) -> None:
            if confirmed:
                self._transition(state.confirm)
            else:
                state.deny()
                self._render()
                self._get_table().focus()

        self.push_screen(ConfirmScreen(state.preview(), state.spec.warning), on_confirm)

    def action_clear_values(self) -> None:
        if self._state is None:
            return
        self._state.clear_all()
        self._render()
        self.notify("Cleared all values", timeout=2)

    def action_toggle_preview(self) -> None:
        self.show_preview = not self.show_preview

    def action_toggle_help(self) -> None:
        self.push_screen(HelpScreen(self.spec))

    def action_cancel(self) -> None:
        """Abandon the session without running anything."""
        state = self._state
        if state is None:
            # Still loading: nothing to apply.
            self.outcome = Outcome.CANCELLED
            self.exit(None)
            return
        if state.mode is FormMode.NAVIGATING:
            self._transition(state.cancel)

