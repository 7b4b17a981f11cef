"""Command preview and status line."""

from rich.text import Text
from textual.widgets import Static

from quocli.models import FormSnapshot


class CommandPreview(Static):
    """Shows the redacted command line, the current error and any warning."""

    def show(self, snapshot: FormSnapshot, with_command: bool = True) -> None:
        text = Text()
        if with_command:
            text.append("$ ", style="dim")
            text.append(snapshot.preview or snapshot.title, style="bold")
        if snapshot.error:
            text.append("\n" if text else "")
            text.append(snapshot.error, style="bold red")
        if snapshot.dangerous and snapshot.warning:
            text.append("\n" if text else "")
            text.append(snapshot.warning, style="yellow")
        self.update(text)
