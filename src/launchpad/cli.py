"""Launchpad CLI entry point."""

import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from launchpad.config import CONFIG_ENV_VAR, ConfigError, LauncherConfig, load_config
from launchpad.git import ConsoleProgressObserver
from launchpad.launcher import EXIT_CONFIG_ERROR, run, update
from launchpad.sync import SyncEngine, SyncStatus

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
    )


def _load(ctx: click.Context) -> LauncherConfig:
    """Resolve the config or exit with EX_CONFIG before anything else runs."""
    try:
        return load_config(ctx.obj["config_path"], platform_key=ctx.obj["platform"])
    except ConfigError as e:
        console.print(f"[red]✗[/red] Configuration error: {escape(str(e))}")
        raise SystemExit(EXIT_CONFIG_ERROR) from e


def _engine() -> SyncEngine:
    return SyncEngine(observer=ConsoleProgressObserver(console))


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar=CONFIG_ENV_VAR,
    help="Config file (default: ./launchpad.yaml)",
)
@click.option("--platform", "platform_key", help="Config section to use instead of the running platform")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: Path | None, platform_key: str | None) -> None:
    """Launchpad - keep an application up to date from git, then run it."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config_path
    ctx.obj["platform"] = platform_key
    setup_logging(verbose)


@cli.command("run", context_settings={"ignore_unknown_options": True})
@click.option("--no-sync", is_flag=True, help="Launch the local copy without checking for updates")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def run_app(ctx: click.Context, no_sync: bool, args: tuple[str, ...]) -> None:
    """Update the application, then run it.

    Any additional arguments are passed to the application. The launcher
    exits with the application's exit status.
    """
    config = _load(ctx)
    result = run(config, skip_sync=no_sync, extra_args=args, engine=_engine())
    raise SystemExit(result.exit_code)


@cli.command()
@click.pass_context
def sync(ctx: click.Context) -> None:
    """Synchronize the application directory without launching it."""
    config = _load(ctx)
    outcome = update(config, _engine())

    if outcome.status == SyncStatus.FAILED:
        console.print(f"[red]✗[/red] {escape(outcome.message)}")
        raise SystemExit(1)

    symbol = "[green]✓[/green]" if outcome.status == SyncStatus.UP_TO_DATE else "[yellow]→[/yellow]"
    console.print(f"{symbol} {outcome.message}")
    if outcome.commit:
        console.print(f"  Commit: [cyan]{outcome.commit[:10]}[/cyan]")


@cli.command("config")
@click.pass_context
def show_config(ctx: click.Context) -> None:
    """Show the resolved configuration for this platform."""
    config = _load(ctx)

    table = Table(title=f"Launchpad config ({config.platform})")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("remote", escape(config.remote))
    table.add_row("target", escape(str(config.target_path)))
    table.add_row("executable", escape(str(config.executable_path)))
    if config.args:
        table.add_row("args", escape(" ".join(config.args)))
    console.print(table)


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
