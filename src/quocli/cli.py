"""Command-line entry point: ``quocli COMMAND...``."""

from pathlib import Path

import typer

from quocli.app import QuocliApp
from quocli.config import ConfigError, load_config
from quocli.domain.spec import SpecError
from quocli.engine import Engine
from quocli.logs import configure_logging
from quocli.models import CommandSpec, FormMode, Outcome
from quocli.providers import ExecutionError, HelpUnavailableError, ParseError, dump_spec

app = typer.Typer(
    help="Turn any command's --help into an interactive form",
    no_args_is_help=True,
    add_completion=False,
)

# Module-level defaults for Typer arguments
_COMMAND_HELP = "Command (and subcommands) to wrap, e.g. 'git commit'"
_SPEC_FILE_HELP = "Read the command spec from this JSON file instead of the spec directories"
_PREVIEW_HELP = "Fill in the form, then print the command instead of running it"
_DIRECT_HELP = "Skip the form and run with remembered and default values"
_DEMO_HELP = "Use the built-in demo commands (curl, rm); nothing is executed"

CANCELLED_MESSAGE = "Execution cancelled."


def _fail(message: str, code: int = 1) -> typer.Exit:
    typer.echo(f"quocli: {message}", err=True)
    return typer.Exit(code)


def run_direct(engine: Engine, spec: CommandSpec) -> int:
    """Run *spec* without the form, asking on the terminal if it is dangerous."""
    with engine.session(spec) as state:
        mode = state.request_execute()
        if mode is FormMode.NAVIGATING:
            raise _fail(f"{state.error} (run without --direct to fill it in)", code=2)
        if mode is FormMode.CONFIRMING:
            typer.echo(spec.warning or "This command is marked as dangerous.", err=True)
            if not typer.confirm(f"Run {state.preview()}?", default=False):
                state.deny()
                state.cancel()
                typer.echo(CANCELLED_MESSAGE)
                return 0
            state.confirm()
        engine.finish(state)
        if engine.dry_run and state.argv is not None:
            typer.echo(state.argv.display())
        return state.exit_status or 0


@app.command()
def main(
    command: list[str] = typer.Argument(..., help=_COMMAND_HELP),  # noqa: B008
    refresh_cache: bool = typer.Option(False, "--refresh-cache", help="Re-parse the help text"),
    clear_values: bool = typer.Option(
        False, "--clear-values", help="Forget remembered values for this command"
    ),
    show_spec: bool = typer.Option(False, "--show-spec", help="Print the command spec as JSON"),
    spec_file: Path | None = typer.Option(  # noqa: B008
        None, "--spec-file", exists=True, dir_okay=False, help=_SPEC_FILE_HELP
    ),
    preview: bool = typer.Option(False, "--preview", help=_PREVIEW_HELP),
    direct: bool = typer.Option(False, "--direct", help=_DIRECT_HELP),
    demo: bool = typer.Option(False, "--demo", help=_DEMO_HELP),
) -> None:
    """Build COMMAND's arguments in a form, then run it."""
    try:
        config = load_config()
    except ConfigError as e:
        raise _fail(str(e)) from e
    configure_logging(config.log_path, config.log_level)

    engine = Engine.demo() if demo else Engine.from_config(config, spec_file, dry_run=preview)

    if clear_values:
        removed = engine.clear_values(command)
        typer.echo(f"Cleared cached values for: {' '.join(command)} ({removed} removed)")
        return

    if show_spec or direct:
        try:
            spec = engine.load_spec(command, refresh=refresh_cache)
        except (HelpUnavailableError, ParseError, SpecError) as e:
            raise _fail(str(e)) from e
        if show_spec:
            typer.echo(dump_spec(spec))
            return
        try:
            status = run_direct(engine, spec)
        except ExecutionError as e:
            raise _fail(str(e)) from e
        raise typer.Exit(status)

    tui = QuocliApp(
        engine,
        command,
        refresh=refresh_cache,
        show_preview=config.ui.preview_command,
        _use_config=True,
    )
    try:
        status = tui.run()
    finally:
        tui.close_session()

    if tui.return_code:
        raise typer.Exit(tui.return_code)
    if tui.outcome is Outcome.CANCELLED:
        typer.echo(CANCELLED_MESSAGE)
        return
    if engine.dry_run and tui.command_line:
        typer.echo(tui.command_line)
    raise typer.Exit(status or 0)
