"""Command-line interface for hytale-pm."""

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

import click
import paramiko
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table
from rich.text import Text

from .api import CurseForgeAPI, RegistryError
from .checker import CheckResult, CheckStatus, ModChecker, summarize
from .config import DEFAULT_CONFIG_FILENAME, ConfigError, ModConfig, example_config, load_config
from .storage import FileStorage, StorageError, open_storage
from .updater import ModUpdater, UpdateResult, failed, successful

console = Console()
logger = logging.getLogger("hytale_pm")

LOG_FILENAME = "hytale-pm.log"

STATUS_MARKUP = {
    CheckStatus.UP_TO_DATE: "[green]Up to date[/green]",
    CheckStatus.UPDATE_AVAILABLE: "[yellow]Update available[/yellow]",
    CheckStatus.NOT_INSTALLED: "[blue]Not installed[/blue]",
    CheckStatus.NO_RELEASE_FILES: "[red]No release files[/red]",
    CheckStatus.REGISTRY_ERROR: "[red]Registry error[/red]",
    CheckStatus.ERROR: "[red]Error[/red]",
}


def _setup_logging(log_dir: Path, verbose: bool) -> None:
    """Log to a daily-rotating file; the console is reserved for rich output."""
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        log_dir / LOG_FILENAME, when="midnight", backupCount=14, encoding="utf-8"
    )
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logging.getLogger("paramiko").setLevel(logging.WARNING)


def _create_progress() -> Progress:
    return Progress(
        TextColumn("[cyan]{task.description}"),
        BarColumn(bar_width=30),
        TaskProgressColumn(),
        SpinnerColumn(),
        console=console,
    )


@click.group()
@click.option(
    "--api-key",
    envvar="CURSEFORGE_API_KEY",
    help="CurseForge API key (or set CURSEFORGE_API_KEY env var)",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=DEFAULT_CONFIG_FILENAME,
    show_default=True,
    help="Path to the config file",
)
@click.option(
    "--log-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("logs"),
    show_default=True,
    help="Directory for log files",
)
@click.option("-v", "--verbose", is_flag=True, help="Debug-level logging")
@click.pass_context
def main(
    ctx: click.Context,
    api_key: str | None,
    config_path: Path,
    log_dir: Path,
    verbose: bool,
) -> None:
    """Check CurseForge mods in a mods directory and update them."""
    ctx.ensure_object(dict)
    ctx.obj["api_key"] = api_key
    ctx.obj["config_path"] = config_path
    _setup_logging(log_dir, verbose)


def _load_config_or_exit(config_path: Path) -> ModConfig:
    try:
        config = load_config(config_path)
    except ConfigError as e:
        logger.error("Config error: %s", e)
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        if not config_path.exists():
            console.print(
                Panel(
                    Text(example_config()),
                    title="[bold]Example config.json structure[/bold]",
                    border_style="dim",
                )
            )
        sys.exit(1)
    logger.info("Configured mods: %d", len(config.mods))
    return config


def _open_storage_or_exit(config: ModConfig, mods_dir: str) -> FileStorage:
    if config.ssh is None and not Path(mods_dir).is_dir():
        logger.error("Mods directory not found: %s", mods_dir)
        console.print(f"[red]Error:[/red] Mods directory not found: {mods_dir}")
        sys.exit(1)

    if config.ssh is not None:
        console.print(f"[dim]Connecting to {config.ssh.host}:{config.ssh.port}...[/dim]")
    try:
        storage = open_storage(config.ssh)
    except StorageError as e:
        logger.error("Error connecting to SSH server: %s", e)
        console.print(f"[red]Error connecting to SSH server:[/red] {escape(str(e))}")
        sys.exit(1)

    if config.ssh is not None:
        console.print("[green]SSH connection established[/green]")
    return storage


def _connection_label(config: ModConfig) -> str:
    if config.ssh is None:
        return "[green]Local[/green]"
    method = "private key" if config.ssh.private_key_path else "password"
    return f"[yellow]SSH ({method})[/yellow]"


def _print_settings(config: ModConfig, mods_dir: str) -> None:
    table = Table(title="Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Configuration", str(config.source))
    table.add_row("Connection Type", _connection_label(config))
    table.add_row("Mods Directory", mods_dir)
    table.add_row("Configured Mods", str(len(config.mods)))
    console.print(table)


def _run_check(
    api: CurseForgeAPI, config: ModConfig, mods_dir: str, storage: FileStorage
) -> list[CheckResult]:
    checker = ModChecker(api, config.mods)
    with _create_progress() as progress:
        task_id = progress.add_task("Checking mods against CurseForge", total=1.0)

        def on_progress(event: str, pct: float, msg: str) -> None:
            progress.update(task_id, completed=pct, description=escape(msg))

        try:
            return checker.check_mods(mods_dir, storage, on_progress=on_progress)
        except (OSError, paramiko.SSHException, StorageError) as e:
            logger.error("%s", e)
            progress.console.print(f"[red]Error:[/red] {escape(str(e))}")
            sys.exit(1)


def _print_results(results: list[CheckResult]) -> None:
    table = Table(title="Mod Status")
    table.add_column("Mod", style="cyan")
    table.add_column("Status")
    table.add_column("Local Version", style="green")
    table.add_column("Latest Version", style="blue")

    for result in results:
        status = STATUS_MARKUP[result.status]
        if result.message and result.status.is_error:
            status += f"\n[dim]{escape(result.message)}[/dim]"
        table.add_row(
            escape(result.mod_name[:40]),
            status,
            escape(result.local_file or "-"),
            escape(result.latest_version or "-"),
        )
    console.print(table)

    counts = summarize(results)
    errors = sum(n for status, n in counts.items() if status.is_error)
    logger.info(
        "Summary: %d up to date, %d updates, %d not installed, %d errors",
        counts[CheckStatus.UP_TO_DATE],
        counts[CheckStatus.UPDATE_AVAILABLE],
        counts[CheckStatus.NOT_INSTALLED],
        errors,
    )
    console.print(
        Panel(
            f"[green]Up to date:[/green] {counts[CheckStatus.UP_TO_DATE]}    "
            f"[yellow]Updates available:[/yellow] {counts[CheckStatus.UPDATE_AVAILABLE]}\n"
            f"[blue]Not installed:[/blue] {counts[CheckStatus.NOT_INSTALLED]}    "
            f"[red]Errors:[/red] {errors}",
            title="[bold]Summary[/bold]",
            border_style="cyan",
        )
    )


def _print_actionable(actionable: list[CheckResult]) -> None:
    lines = []
    for r in actionable:
        status = STATUS_MARKUP[r.status]
        lines.append(
            f"[yellow]*[/yellow] [bold]{escape(r.mod_name)}[/bold]\n"
            f"  Status: {status}\n"
            f"  Latest: [cyan]{escape(r.latest_version or '-')}[/cyan]\n"
            f"  Download: {escape(r.download_url or '-')}"
        )
    console.print(
        Panel(
            "\n".join(lines),
            title="[bold yellow]Mods with updates or missing[/bold yellow]",
            border_style="yellow",
        )
    )


def _print_update_results(results: list[UpdateResult], storage: FileStorage) -> None:
    table = Table(title="Update Results")
    table.add_column("Mod", style="cyan")
    table.add_column("Status")
    table.add_column("Old File")
    table.add_column("New File")
    table.add_column("Backup")

    for r in results:
        status = "[green]Success[/green]" if r.success else f"[red]Failed[/red]\n[dim]{escape(r.message)}[/dim]"
        table.add_row(
            escape(r.mod_name[:40]),
            status,
            escape(r.old_file or "-"),
            escape(r.new_file or "-"),
            storage.get_file_name(r.backup_path) if r.backup_path else "-",
        )
    console.print(table)


@main.command()
@click.argument("mods_dir")
@click.pass_context
def check(ctx: click.Context, mods_dir: str) -> None:
    """
    Compare installed mods with the latest CurseForge releases.

    MODS_DIR: Directory containing mod .jar/.zip files (a remote path when
    SSH is configured)
    """
    config = _load_config_or_exit(ctx.obj["config_path"])

    try:
        api = CurseForgeAPI(ctx.obj.get("api_key") or config.api_key)
    except RegistryError as e:
        console.print(f"[red]API Error:[/red] {escape(str(e))}")
        sys.exit(1)

    with api, _open_storage_or_exit(config, mods_dir) as storage:
        _print_settings(config, mods_dir)
        results = _run_check(api, config, mods_dir, storage)

    _print_results(results)
    actionable = [r for r in results if r.status.is_actionable]
    if actionable:
        _print_actionable(actionable)
        console.print("[dim]Run 'update' to install or update these mods.[/dim]")


@main.command()
@click.argument("mods_dir")
@click.option("--mod", "only", multiple=True, help="Only update the named mod (repeatable)")
@click.option("--yes", "-y", is_flag=True, help="Update without asking for confirmation")
@click.option("--dry-run", is_flag=True, help="Show what would be updated without downloading")
@click.pass_context
def update(
    ctx: click.Context,
    mods_dir: str,
    only: tuple[str, ...],
    yes: bool,
    dry_run: bool,
) -> None:
    """
    Check for and install updated mods, backing up replaced files.

    MODS_DIR: Directory containing mod .jar/.zip files (a remote path when
    SSH is configured)
    """
    config = _load_config_or_exit(ctx.obj["config_path"])

    try:
        api = CurseForgeAPI(ctx.obj.get("api_key") or config.api_key)
    except RegistryError as e:
        console.print(f"[red]API Error:[/red] {escape(str(e))}")
        sys.exit(1)

    with api, _open_storage_or_exit(config, mods_dir) as storage:
        _print_settings(config, mods_dir)
        results = _run_check(api, config, mods_dir, storage)
        _print_results(results)

        actionable = [r for r in results if r.status.is_actionable]
        if only:
            configured = {m.name.lower() for m in config.mods}
            unknown = [name for name in only if name.lower() not in configured]
            for name in unknown:
                logger.warning("--mod %s does not match any configured mod", name)
                console.print(
                    f"[yellow]Warning:[/yellow] {escape(name)} does not match any configured mod"
                )
            wanted = {name.lower() for name in only}
            actionable = [r for r in actionable if r.mod_name.lower() in wanted]

        if not actionable:
            if only:
                console.print("[green]None of the selected mods need updating.[/green]")
            else:
                console.print("[green]Everything is up to date![/green]")
            return

        _print_actionable(actionable)

        if dry_run:
            console.print("\n[yellow]Dry run - no changes made.[/yellow]")
            return

        # auto_update only skips the prompt for local directories
        auto = config.auto_update and storage.is_local
        if not (yes or auto) and not click.confirm(
            "Do you want to update/install these mods now?", default=False
        ):
            console.print("[dim]No changes made.[/dim]")
            return

        updater = ModUpdater(config.backup_directory)
        console.print(
            f"[bold]Backup directory:[/bold] {updater.backup_dir_for(mods_dir, storage)}"
        )
        logger.info("Starting update/install for %d mods", len(actionable))

        with _create_progress() as progress:
            task_id = progress.add_task("Updating mods", total=1.0)

            def on_progress(event: str, pct: float, msg: str) -> None:
                progress.update(task_id, completed=pct, description=escape(msg))

            update_results = updater.update_mods(
                mods_dir, storage, actionable, on_progress=on_progress
            )

        _print_update_results(update_results, storage)

    ok = successful(update_results)
    bad = failed(update_results)
    logger.info("Update results: %d succeeded, %d failed", len(ok), len(bad))
    if ok:
        console.print(f"[green]Successfully updated {len(ok)} mod(s)[/green]")
    if bad:
        console.print(f"[red]Failed to update {len(bad)} mod(s)[/red]")
        sys.exit(1)
