"""Cluster manager CLI - admission and telemetry for a fleet of member clusters."""

import logging

import typer

from clustermanager.cli.accept import accept_app
from clustermanager.cli.collect import collect_app

app = typer.Typer(
    name="clustermanager",
    help="Admission and telemetry for a fleet of member clusters",
    no_args_is_help=True,
)

# Add command groups
app.add_typer(accept_app, name="accept")
app.add_typer(collect_app, name="collect")


@app.callback()
def configure_logging(
    log_level: str = typer.Option(
        None,
        "--log-level",
        "-l",
        envvar="CLUSTERMANAGER_LOG_LEVEL",
        help="Log level (DEBUG, INFO, WARNING, ERROR)",
    ),
) -> None:
    """Configure the root logger before any command runs."""
    level = (log_level or "INFO").upper()
    if level not in logging.getLevelNamesMapping():
        raise typer.BadParameter(f"Unknown log level {log_level!r}", param_hint="--log-level")
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
