import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import typer

from . import __version__
from .config import Settings, load_settings
from .dash.catalog import AgentCatalog
from .dash.models import Category
from .launchctl import LaunchctlManager
from .util import is_tty, json_line


logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


app = typer.Typer(
    name="launchagents",
    add_completion=False,
    help=(
        "Browse and edit launchd LaunchAgents, then reload them with launchctl.\n\n"
        "Usage:\n"
        "  launchagents                  Open the dashboard\n"
        "  launchagents ps [-c CAT]      List agents (tab-separated)\n\n"
        "Categories: user (~/Library/LaunchAgents), global (/Library/LaunchAgents), "
        "system (/System/Library/LaunchAgents)."
    ),
    context_settings={"help_option_names": ["-h", "--help"]},
)


def configure_logging(log_file: Optional[Path], verbose: bool, console: bool) -> None:
    """Send package logs to a file, to stderr (non-interactive commands), or nowhere.

    The dashboard owns the terminal, so it never logs to the console.
    """
    pkg = logging.getLogger("launchagents_tui")
    for h in list(pkg.handlers):
        pkg.removeHandler(h)
    handler: logging.Handler
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file, encoding="utf-8")
    elif console and verbose:
        handler = logging.StreamHandler(sys.stderr)
    else:
        handler = logging.NullHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    pkg.addHandler(handler)
    pkg.setLevel(logging.DEBUG if verbose else logging.INFO)
    pkg.propagate = False


@app.callback(invoke_without_command=True)
def _root(
    ctx: typer.Context,
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit",
        is_eager=True,
    ),
    log_file: Optional[Path] = typer.Option(
        None, "--log-file", help="Write logs to this file (env: LAUNCHAGENTS_LOG_FILE)", show_default=False
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug details"),
):
    if version:
        typer.echo(__version__)
        raise typer.Exit()
    settings = load_settings()
    configure_logging(log_file or settings.log_file, verbose, console=ctx.invoked_subcommand is not None)
    ctx.obj = settings
    if ctx.invoked_subcommand is None:
        _run_dashboard(settings)


def _run_dashboard(settings: Settings) -> None:
    if not is_tty():
        typer.echo("launchagents needs an interactive terminal (use `launchagents ps` in scripts).", err=True)
        raise typer.Exit(code=1)

    # Lazy import keeps `ps` and `--help` free of Textual start-up cost
    from .dash.app import run_dash

    try:
        code = run_dash(settings)
    except Exception as e:
        logger.exception("dashboard crashed")
        typer.echo(f"Failed to run dashboard: {e}", err=True)
        raise typer.Exit(code=1)
    if code:
        raise typer.Exit(code=code)


@app.command()
def version():
    """Show CLI version (semver)."""
    typer.echo(__version__)


@app.command("ps")
def ps(
    ctx: typer.Context,
    category: Category = typer.Option(Category.USER, "--category", "-c", case_sensitive=False, help="Which LaunchAgents root to list"),
    json_out: bool = typer.Option(False, "--json", help="One JSON object per line"),
):
    """List agents. Prints: status\tenabled\tlabel\tfilename"""
    settings: Settings = ctx.obj or load_settings()

    async def _ps():
        manager = LaunchctlManager(launchctl=settings.launchctl, timeout=settings.timeout)
        catalog = AgentCatalog(roots={c: settings.root(c) for c in Category}, manager=manager)
        return await catalog.refresh(category)

    agents = asyncio.run(_ps())
    for agent in agents:
        enabled = "enabled" if agent.enabled else "disabled"
        label = agent.label or "-"
        if json_out:
            typer.echo(json_line({
                "status": agent.status.value,
                "enabled": agent.enabled,
                "label": agent.label,
                "path": str(agent.path),
            }))
        else:
            typer.echo(f"{agent.status.value}\t{enabled}\t{label}\t{agent.filename}")
