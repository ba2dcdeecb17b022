"""
Command-line interface for gator.

Uses Typer for the global options; the command itself and its positional
arguments are dispatched through the Commands registry, so
`gator <command> [args...]` behaves the same for every handler.
"""

from __future__ import annotations

from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape

from .commands import Command, Commands, State
from .config import load_config
from .errors import GatorError
from .handlers import register_default_commands
from .logging_utils import setup_logging
from .store import Store

app = typer.Typer(add_completion=False)
console = Console()
err_console = Console(stderr=True)


@app.command(context_settings={"allow_interspersed_args": False})
def main(
    command: str | None = typer.Argument(None, help="Command to run, e.g. register, addfeed, agg."),
    args: list[str] | None = typer.Argument(None, help="Arguments for the command."),
    config: Path | None = typer.Option(
        None, "--config", "-c", envvar="GATOR_CONFIG", help="Config file (default ~/.gatorconfig.json)."
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
    log_file: bool | None = typer.Option(
        None, "--log-file/--no-log-file", help="Enable or disable file logging."
    ),
):
    """Run a gator command.

    Commands: login <username>, register <username>, reset, users,
    agg <interval>, addfeed <name> <url>, feeds, follow <url>, following,
    unfollow <url>, browse [limit].
    """
    load_dotenv()

    commands = register_default_commands(Commands())
    if not command:
        _fail(f"no command given; available: {', '.join(commands.names())}")

    try:
        cfg = load_config(config)
    except GatorError as exc:
        _fail(exc)

    if log_level:
        cfg.logging.level = log_level
    if log_file is not None:
        cfg.logging.file = log_file
    logger = setup_logging(cfg.logging, cfg.path.parent if cfg.path else None)

    try:
        store = Store.open(cfg.db_url)
    except GatorError as exc:
        _fail(exc)

    state = State(store=store, config=cfg, console=console, logger=logger)
    try:
        commands.run(state, Command(name=command, args=list(args or [])))
    except GatorError as exc:
        _fail(exc)
    except KeyboardInterrupt:
        err_console.print("interrupted")
        raise typer.Exit(code=130)
    finally:
        store.close()


def _fail(error: object) -> None:
    err_console.print(f"[red]error:[/red] {escape(str(error))}", highlight=False)
    raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
