"""Form field table widget."""

from rich.text import Text
from textual.binding import Binding
from textual.coordinate import Coordinate
from textual.message import Message
from textual.widgets import DataTable

from quocli.constants import TABLE_COLUMNS
from quocli.models import FieldKind, FieldRow

_REQUIRED_MARK = Text("*", style="bold red")
_SECRET_STYLE = "bold magenta"
_EMPTY_STYLE = "dim"


class FieldTable(DataTable):
    """One row per command field, keyed by field name.

    The cursor belongs to the form session, not to the table: vertical moves
    post ``FieldTable.Step`` and the app moves the cursor back after the
    session has moved.  Moving past either end wraps.
    """

    class Step(Message):
        """Posted when the user asks to move to the next or previous field."""

        def __init__(self, delta: int) -> None:
            super().__init__()
            self.delta = delta

    BINDINGS = [
        Binding("j", "cursor_down", show=False),
        Binding("k", "cursor_up", show=False),
    ]

    def action_cursor_down(self) -> None:
        if self.row_count:
            self.post_message(FieldTable.Step(1))

    def action_cursor_up(self) -> None:
        if self.row_count:
            self.post_message(FieldTable.Step(-1))

    def on_mount(self) -> None:
        self.cursor_type = "row"
        self.zebra_stripes = True
        self._value_column = self.add_columns(*TABLE_COLUMNS)[2]
        self._names: list[str] = []

    def load(self, rows: tuple[FieldRow, ...], cursor: int) -> None:
        """Show the session's rows, updating values in place when the fields are unchanged."""
        names = [row.name for row in rows]
        if names != self._names:
            self.clear()
            for row in rows:
                self.add_row(
                    _REQUIRED_MARK if row.required else "",
                    row.label,
                    _value_cell(row),
                    row.help,
                    key=row.name,
                )
            self._names = names
        else:
            for row in rows:
                self.update_cell(row.name, self._value_column, _value_cell(row), update_width=True)
        if rows and self.cursor_row != cursor:
            self.move_cursor(row=cursor)

    def value_at(self, row: int) -> str:
        """Plain text of a row's value cell."""
        cell = self.get_cell_at(Coordinate(row, 2))
        return cell.plain if isinstance(cell, Text) else str(cell)


def _value_cell(row: FieldRow) -> str | Text:
    if row.sensitive and row.display:
        return Text(row.display, style=_SECRET_STYLE)
    if row.display:
        return row.display
    if row.kind is FieldKind.ENUM:
        return Text("(choose)", style=_EMPTY_STYLE)
    return Text("(empty)", style=_EMPTY_STYLE)
