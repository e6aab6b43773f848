"""
Main CLI entry point.
"""

import typer

from bulwark import __version__
from bulwark.cli import config, demo


def version_callback(value: bool):
    """Callback to display version and exit."""
    if value:
        typer.echo(f"bulwark version {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="bulwark",
    help="Bulwark - retry and circuit breaker policies for flaky network calls",
    add_completion=False,
)

app.add_typer(demo.app, name="demo")
app.add_typer(config.app, name="config")


@app.callback(invoke_without_command=True)
def entrypoint(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
):
    """
    Bulwark - retry and circuit breaker policies for flaky network calls.

    Run 'bulwark <command> --help' for help on a specific command.
    """
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
