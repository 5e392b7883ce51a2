"""Command-line interface for umdloader."""

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .components.load_session import LoadOptions, LoadSession, MediaReference
from .config import DEFAULT_CONFIG_PATH, LoaderConfig, create_sample_config, load_config
from .error_handling import ConfigurationError, LoaderError, handle_error
from .media.boot import BootResolver, CandidateStatus, game_boot_candidates
from .media.inspector import ContentInspector, ContentKind
from .media.metadata import extract_file_metadata, extract_media_metadata
from .media.volume import open_volume
from .services.runtime import DryRunRuntime
from .storage.recent import RecentHistory, RecentKind
from .storage.settings import SqliteSettingsStore

console = Console()

KIND_CHOICE = click.Choice([kind.value for kind in RecentKind])


def setup_logging(
    *,
    verbose: bool = False,
    config: LoaderConfig | None = None,
) -> None:
    """Set up logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO

    # Clean up existing handlers first to prevent resource leaks
    cleanup_logging()

    show_path = level == logging.DEBUG
    handlers: list[logging.Handler] = [
        RichHandler(console=console, rich_tracebacks=True, show_path=show_path),
    ]

    if config and config.log_dir:
        config.log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(config.log_dir / "umdloader.log")
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            ),
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
        force=True,
    )


def cleanup_logging() -> None:
    """Clean up logging handlers to prevent ResourceWarnings."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        if isinstance(handler, logging.FileHandler):
            handler.close()
            root_logger.removeHandler(handler)


def build_history(config: LoaderConfig) -> RecentHistory:
    store = SqliteSettingsStore(config.settings_db)
    return RecentHistory(store, capacity=config.mru_capacity)


def build_session(config: LoaderConfig) -> LoadSession:
    """Wire a load session to the persistent history and a dry-run runtime."""
    config.ensure_directories()
    return LoadSession(config, build_history(config), DryRunRuntime())


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Configuration file path",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, config: Path | None, verbose: bool) -> None:
    """umdloader - Inspect, resolve and load UMD media and PSP executables."""
    try:
        ctx.ensure_object(dict)
        loaded_config = load_config(config)
        ctx.obj["config"] = loaded_config
        ctx.obj["verbose"] = verbose

        setup_logging(verbose=verbose, config=loaded_config)
    except (OSError, ValueError) as e:
        config_error = ConfigurationError(
            f"Failed to load configuration: {e}",
            config_path=config,
            solution="Run 'umdloader config validate' to check your configuration file",
        )
        console.print(f"[red]Configuration Error:[/red] {config_error}")
        sys.exit(1)


@cli.group("config")
@click.pass_context
def config_cmd(ctx: click.Context) -> None:
    """Configuration management commands."""


@config_cmd.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show current configuration."""
    config: LoaderConfig = ctx.obj["config"]

    table = Table()
    table.add_column("Setting")
    table.add_column("Value")

    table.add_row("State Directory", str(config.state_dir))
    table.add_row("Log Directory", str(config.log_dir))
    table.add_row("Decrypted Cache", str(config.decrypted_cache_dir))
    table.add_row("Disc Temp Directory", str(config.disc_tmp_dir))
    table.add_row("Recent Capacity", str(config.mru_capacity))
    table.add_row("UMD Buffering", "on" if config.umd_buffering else "off")
    table.add_row("Load And Run", "on" if config.load_and_run else "off")
    table.add_row(
        "Memory Size",
        f"0x{config.memory_size:X}" if config.memory_size else "From metadata",
    )
    table.add_row("Default Firmware", config.default_firmware_version)

    console.print(table)


@config_cmd.command("validate")
@click.pass_context
def config_validate(ctx: click.Context) -> None:
    """Validate current configuration."""
    config: LoaderConfig = ctx.obj["config"]

    console.print("[bold]Configuration Validation[/bold]")

    errors = []
    for name, path in [
        ("State", config.state_dir),
        ("Log", config.log_dir),
        ("Decrypted cache", config.decrypted_cache_dir),
        ("Disc temp", config.disc_tmp_dir),
    ]:
        try:
            path.mkdir(parents=True, exist_ok=True)
            console.print(f"[green]✓[/green] {name} directory: {path}")
        except OSError as e:
            console.print(f"[red]✗[/red] {name} directory: {e}")
            errors.append(f"{name} directory: {e}")

    if errors:
        console.print(f"\n[red]Found {len(errors)} configuration errors[/red]")
        sys.exit(1)
    else:
        console.print("\n[green]Configuration is valid[/green]")


@config_cmd.command("init")
@click.option(
    "--path",
    "-p",
    type=click.Path(path_type=Path),
    default=DEFAULT_CONFIG_PATH,
    help="Path for the configuration file",
)
def config_init(path: Path) -> None:
    """Create a sample configuration file."""
    try:
        create_sample_config(path)
        console.print(f"[green]Created sample configuration at {path}[/green]")
        console.print("Please edit the configuration file with your settings.")
    except OSError as e:
        console.print(f"[red]Error creating configuration: {e}[/red]")
        sys.exit(1)


def _run_load(ctx: click.Context, path: Path, run: bool | None) -> None:
    config: LoaderConfig = ctx.obj["config"]
    session = build_session(config)
    options = LoadOptions.from_config(config, run_after_load=run)

    reference = session.load(path, options)
    _report_load(session, reference)


def _report_load(session: LoadSession, reference: MediaReference | None) -> None:
    if reference is None:
        error = session.last_error
        if isinstance(error, LoaderError):
            error.display_to_user()
        elif error is not None:
            handle_error(error)
        sys.exit(1)

    console.print(format_reference_table(reference))
    if getattr(session.runtime, "running", False):
        console.print(f"[green]Running {reference.display_title}[/green]")
    session.runtime.close()


@cli.command("load-umd")
@click.argument("path", type=click.Path(exists=True, path_type=Path))
@click.option("--run/--no-run", default=None, help="Run after loading (defaults to load_and_run)")
@click.pass_context
def load_umd(ctx: click.Context, path: Path, run: bool | None) -> None:
    """Load a UMD (extracted disc directory)."""
    _run_load(ctx, path, run)


@cli.command("load-file")
@click.argument("path", type=click.Path(exists=True, path_type=Path))
@click.option("--run/--no-run", default=None, help="Run after loading (defaults to load_and_run)")
@click.pass_context
def load_file(ctx: click.Context, path: Path, run: bool | None) -> None:
    """Load a file (EBOOT.PBP, ELF or PRX)."""
    _run_load(ctx, path, run)


@cli.command()
@click.argument("path", type=click.Path(exists=True, path_type=Path))
@click.pass_context
def inspect(ctx: click.Context, path: Path) -> None:
    """Show what a piece of media is and which boot candidates it offers."""
    config: LoaderConfig = ctx.obj["config"]
    inspector = ContentInspector()

    try:
        with open_volume(path) as volume:
            kind = inspector.classify(volume)
            console.print(f"[bold]Content:[/bold] {kind.value.replace('_', ' ').title()}")
            if kind is ContentKind.UNKNOWN:
                return

            if kind is ContentKind.RAW_EXECUTABLE:
                metadata = extract_file_metadata(volume)
            else:
                metadata = extract_media_metadata(
                    volume,
                    inspector.param_sfo_for(kind),
                    game=kind is ContentKind.GAME,
                )

            table = Table()
            table.add_column("Field")
            table.add_column("Value")
            table.add_row("Title", metadata.title)
            table.add_row("Disc ID", metadata.disc_id)
            table.add_row("UMD ID", metadata.umd_id or "-")
            table.add_row("Firmware", metadata.firmware_hint or "-")
            table.add_row("Homebrew", "yes" if metadata.is_homebrew else "no")
            table.add_row("64MB Memory", "yes" if metadata.memory_size_flag else "no")
            console.print(table)

            if kind is ContentKind.GAME:
                resolver = BootResolver(volume)
                candidates = game_boot_candidates(
                    metadata.disc_id,
                    config,
                    buffering=config.umd_buffering,
                )
                console.print(format_candidate_table(resolver, candidates))
    except LoaderError as e:
        e.display_to_user()
        sys.exit(1)
    except OSError as e:
        handle_error(e)
        sys.exit(1)


@cli.group()
@click.pass_context
def recent(ctx: click.Context) -> None:
    """Recently loaded media and files."""


@recent.command("list")
@click.option("--kind", "-k", type=KIND_CHOICE, help="Only show one history")
@click.pass_context
def recent_list(ctx: click.Context, kind: str | None) -> None:
    """List recent media and files, most recent first."""
    history = build_history(ctx.obj["config"])
    kinds = [RecentKind(kind)] if kind else list(RecentKind)

    table = Table()
    table.add_column("#", justify="right")
    table.add_column("Kind")
    table.add_column("Title")
    table.add_column("Path")

    rows = 0
    for recent_kind in kinds:
        for rank, entry in enumerate(history.for_kind(recent_kind).list(), start=1):
            table.add_row(str(rank), recent_kind.value, entry.title, entry.path)
            rows += 1

    if rows == 0:
        console.print("No recent items")
        return
    console.print(table)


@recent.command("open")
@click.argument("kind", type=KIND_CHOICE)
@click.argument("index", type=click.IntRange(min=1))
@click.option("--run/--no-run", default=None, help="Run after loading (defaults to load_and_run)")
@click.pass_context
def recent_open(ctx: click.Context, kind: str, index: int, run: bool | None) -> None:
    """Load the INDEX-th entry of a recent list."""
    config: LoaderConfig = ctx.obj["config"]
    session = build_session(config)
    recent_kind = RecentKind(kind)

    entries = session.history.for_kind(recent_kind).list()
    if index > len(entries):
        console.print(f"[red]No {kind} entry #{index}[/red]")
        sys.exit(1)

    options = LoadOptions.from_config(config, run_after_load=run)
    reference = session.open_recent(recent_kind, entries[index - 1].path, options)
    _report_load(session, reference)


@recent.command("remove")
@click.argument("kind", type=KIND_CHOICE)
@click.argument("path")
@click.pass_context
def recent_remove(ctx: click.Context, kind: str, path: str) -> None:
    """Remove a path from a recent list."""
    history = build_history(ctx.obj["config"])
    history.for_kind(RecentKind(kind)).remove(path)
    console.print(f"[green]Removed {path} from recent {kind} list[/green]")


@recent.command("clear")
@click.argument("kind", type=KIND_CHOICE)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def recent_clear(ctx: click.Context, kind: str, yes: bool) -> None:
    """Clear a recent list."""
    if yes or click.confirm(f"Are you sure you want to clear the recent {kind} list?"):
        history = build_history(ctx.obj["config"])
        history.for_kind(RecentKind(kind)).clear()
        console.print(f"[green]Cleared recent {kind} list[/green]")


def format_reference_table(reference: MediaReference) -> Table:
    """Format a loaded media reference into a table."""
    table = Table(title=reference.display_title)
    table.add_column("Field")
    table.add_column("Value")

    table.add_row("Content", reference.content_kind.value.replace("_", " ").title())
    table.add_row("Path", reference.path)
    table.add_row("Disc ID", reference.disc_id)
    table.add_row("Boot Image", reference.boot_source or "-")
    table.add_row("Firmware", format_firmware(reference.firmware_version))
    table.add_row("Homebrew", "yes" if reference.is_homebrew else "no")
    table.add_row("64MB Memory", "yes" if reference.memory_size_flag else "no")
    return table


def format_candidate_table(resolver: BootResolver, candidates: list) -> Table:
    """Probe each boot candidate and tabulate the outcomes."""
    status_colors = {
        CandidateStatus.LOADED: "green",
        CandidateStatus.SKIPPED: "yellow",
        CandidateStatus.FAILED: "red",
    }

    table = Table(title="Boot candidates")
    table.add_column("Priority", justify="right")
    table.add_column("Candidate")
    table.add_column("Status")
    table.add_column("Detail")

    for candidate in candidates:
        outcome = resolver.probe(candidate)
        color = status_colors[outcome.status]
        detail = outcome.reason or f"{outcome.image.size} bytes"
        table.add_row(
            str(candidate.priority),
            str(candidate),
            f"[{color}]{outcome.status.value}[/{color}]",
            detail,
        )
    return table


def format_firmware(version: int | None) -> str:
    """Format a numeric firmware version (660) as 6.60."""
    if version is None:
        return "-"
    return f"{version // 100}.{version % 100:02d}"


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
