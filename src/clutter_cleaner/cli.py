"""Command-line interface for photo-clutter-cleaner."""

import json
import logging
import sys
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path
from typing import Any, Dict, Optional

import click
from rich.console import Console
from rich.table import Table
from tqdm import tqdm

from clutter_cleaner import __version__
from clutter_cleaner.core.manager import LibraryManager
from clutter_cleaner.core.models import (
    DeletionPolicy,
    DuplicateGroup,
    FetchTier,
    ScanResult,
)
from clutter_cleaner.platforms.base import AssetSource
from clutter_cleaner.platforms.google_drive import GoogleDriveLibrary
from clutter_cleaner.platforms.local import LocalPhotoLibrary
from clutter_cleaner.utils import telemetry
from clutter_cleaner.utils.config import Config
from clutter_cleaner.utils.logger import setup_logger

console = Console()
logger = logging.getLogger(__name__)

MAX_GROUPS_SHOWN = 10


@click.group()
@click.version_option(version=__version__, prog_name="photo-clutter-cleaner")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Also write DEBUG logs to this file",
)
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Config file (default: ~/.photo-clutter-cleaner/config.json)",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    log_file: Optional[Path],
    config_file: Optional[Path],
) -> None:
    """
    Photo Clutter Cleaner - find byte-identical photos and remove them.

    Scans a photo library (a local folder or Google Drive), groups photos
    whose content is exactly the same, and deletes groups you confirm.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_file"] = config_file

    setup_logger(level=logging.DEBUG if verbose else logging.INFO, log_file=log_file)


def _load_config(ctx: click.Context) -> Config:
    return Config(ctx.obj.get("config_file"))


def _build_source(
    config: Config, path: Optional[Path], drive: bool, show_progress: bool = False
) -> AssetSource:
    if drive:
        return GoogleDriveLibrary(
            credentials_file=config.get_drive_credentials_file(),
            token_file=config.get_drive_token_file(),
        )
    return LocalPhotoLibrary(path, config, show_progress=show_progress)


def _describe_source(source: AssetSource) -> Dict[str, Any]:
    if isinstance(source, LocalPhotoLibrary):
        return {"type": source.name, "root": str(source.root)}
    return {"type": source.name}


@cli.command()
@click.option(
    "--path",
    "-p",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
    help="Local photo folder to scan",
)
@click.option("--drive", is_flag=True, help="Scan Google Drive instead of a folder")
@click.option(
    "--tier",
    type=click.Choice([t.value for t in FetchTier], case_sensitive=False),
    help="Content to hash: original bytes or fast previews (default: from config)",
)
@click.option(
    "--limit",
    "-l",
    type=click.IntRange(min=1),
    help="Maximum concurrent fetches (default: from config)",
)
@click.option(
    "--allow-network/--no-network",
    default=None,
    help="Allow fetching over the network (default: on for Drive, else from config)",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output file for duplicate report (JSON)",
)
@click.option(
    "--show-progress/--no-progress",
    default=True,
    help="Show progress bars",
)
@click.pass_context
def scan(
    ctx: click.Context,
    path: Optional[Path],
    drive: bool,
    tier: Optional[str],
    limit: Optional[int],
    allow_network: Optional[bool],
    output: Optional[Path],
    show_progress: bool,
) -> None:
    """
    Scan a photo library for byte-identical duplicates.

    Example:
        photo-clutter-cleaner scan --path ~/Pictures --output duplicates.json
    """
    if bool(path) == drive:
        raise click.UsageError("Give exactly one of --path or --drive")

    config = _load_config(ctx)
    if allow_network is None and drive:
        allow_network = True

    console.print(
        f"\n[bold cyan]Photo Clutter Cleaner v{__version__}[/bold cyan] - Duplicate Detection\n"
    )

    source = _build_source(config, path, drive, show_progress=show_progress)
    with LibraryManager(
        source,
        config=config,
        limit=limit,
        tier=FetchTier(tier.lower()) if tier else None,
        allow_network=allow_network,
    ) as manager:
        _authorize(manager, scan_on_grant=False)

        result = _run_scan(manager, manager.find_duplicates(), show_progress)
        if result.cancelled:
            console.print("[yellow]Scan cancelled. No results were published.[/yellow]")
            sys.exit(130)

        console.print(
            f"\n[green]Photos scanned:[/green] {result.scanned}"
            f"  [yellow]Skipped:[/yellow] {result.skipped}\n"
        )

        if not result.groups:
            console.print("[green]✓ No duplicates found![/green]")
        else:
            _display_duplicate_results(result)

        if output:
            _save_results(result, _describe_source(source), output)
            console.print(f"\n[green]✓ Results saved to:[/green] {output}")


@cli.command()
@click.option(
    "--input",
    "-i",
    "input_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="JSON file from the 'scan' command",
)
@click.option(
    "--group",
    "-g",
    "group_number",
    type=click.IntRange(min=1),
    required=True,
    help="Number of the duplicate group to delete (as listed by 'scan')",
)
@click.option(
    "--policy",
    type=click.Choice([p.value for p in DeletionPolicy], case_sensitive=False),
    help="Which photos survive: delete_all, keep_newest, keep_oldest (default: from config)",
)
@click.option(
    "--yes",
    "-y",
    "confirm",
    is_flag=True,
    help="Skip confirmation prompt (use with caution!)",
)
@click.option(
    "--show-progress/--no-progress",
    default=True,
    help="Show progress bars during the re-scan",
)
@click.pass_context
def delete(
    ctx: click.Context,
    input_file: Path,
    group_number: int,
    policy: Optional[str],
    confirm: bool,
    show_progress: bool,
) -> None:
    """
    Delete one duplicate group, then re-scan the library.

    With the default delete_all policy every photo in the group is deleted,
    including the last copy of the image.

    Example:
        photo-clutter-cleaner delete --input duplicates.json --group 1
    """
    try:
        with open(input_file, "r", encoding="utf-8") as f:
            report = json.load(f)
        result = ScanResult.from_dict(report)
    except (OSError, ValueError, KeyError) as e:
        console.print(f"[red]✗ Error loading duplicates file:[/red] {e}")
        sys.exit(1)

    if group_number > len(result.groups):
        console.print(
            f"[red]✗ Group {group_number} not found "
            f"({len(result.groups)} groups in {input_file}).[/red]"
        )
        sys.exit(1)

    source_info = report.get("source") or {}
    config = _load_config(ctx)
    if source_info.get("type") == GoogleDriveLibrary.name:
        source = _build_source(config, None, drive=True)
        allow_network: Optional[bool] = True
    elif source_info.get("root"):
        source = _build_source(config, Path(source_info["root"]), drive=False)
        allow_network = None
    else:
        console.print("[red]✗ Duplicates file does not say which library it came from.[/red]")
        sys.exit(1)

    group = result.groups[group_number - 1]

    with LibraryManager(
        source,
        config=config,
        allow_network=allow_network,
        policy=DeletionPolicy(policy.lower()) if policy else None,
    ) as manager:
        to_delete, to_keep = manager.deletion.select(group.assets)

        _display_group(group_number, group)
        if not confirm:
            console.print("[bold yellow]⚠ Warning:[/bold yellow]")
            console.print(f"  About to delete: {len(to_delete)} photos")
            if to_keep:
                console.print(f"  Keeping: {', '.join(a.display_name for a in to_keep)}")
            else:
                console.print("  No copy of this image will be kept.")

            confirm_input = click.prompt(
                "\nType 'DELETE' to confirm",
                type=str,
                default="",
                show_default=False,
            )
            if confirm_input.upper() != "DELETE":
                console.print("[yellow]Deletion cancelled.[/yellow]")
                return

        _authorize(manager, scan_on_grant=False)

        outcome = manager.delete_assets(group)
        if not outcome.success:
            console.print(f"[red]✗ Deletion failed:[/red] {outcome.message}")
            sys.exit(1)

        console.print(f"[bold green]✓ {len(outcome.deleted)} photos deleted[/bold green]")

        console.print("\n[cyan]Re-scanning library...[/cyan]")
        refreshed = _run_scan(manager, outcome.rescan, show_progress)
        if refreshed.cancelled:
            console.print("[yellow]Re-scan cancelled; duplicates file left unchanged.[/yellow]")
            return

        _save_results(refreshed, source_info, input_file)
        console.print(
            f"[green]✓ {len(refreshed.groups)} duplicate groups remain; "
            f"updated {input_file}[/green]"
        )


@cli.command()
@click.option(
    "--path",
    "-p",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Filesystem to report disk space for (default: home directory)",
)
def performance(path: Optional[Path]) -> None:
    """Show disk space, memory use and temp-directory clutter."""
    free, total = telemetry.disk_space(path)
    memory = telemetry.memory_usage()
    junk = telemetry.junk_size()

    table = Table(show_header=False, box=None)
    table.add_column("Key", style="cyan")
    table.add_column("Value")

    table.add_row("Disk Free", f"{free:.2f} GB")
    table.add_row("Disk Total", f"{total:.2f} GB")
    table.add_row("Memory Used", f"{memory:.2f} GB")
    table.add_row("Junk", f"{junk / 1e6:.2f} MB")

    console.print(table)


@cli.command(name="config-show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Print the current configuration."""
    config = _load_config(ctx)
    console.print(f"[dim]{config.config_file}[/dim]")
    console.print_json(json.dumps(config.settings))


@cli.command(name="config-set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def config_set(ctx: click.Context, key: str, value: str) -> None:
    """
    Set a configuration value (dot notation, e.g. fetch.limit 8).

    VALUE is parsed as JSON when possible, so numbers and booleans keep
    their type.
    """
    try:
        parsed: Any = json.loads(value)
    except ValueError:
        parsed = value

    config = _load_config(ctx)
    config.set(key, parsed)
    console.print(f"[green]✓ {key} = {parsed!r}[/green]")


def _authorize(manager: LibraryManager, scan_on_grant: bool) -> None:
    level = manager.request_authorization(scan_on_grant=scan_on_grant)
    if not level.is_authorized:
        message = manager.error_message or f"Library access is {level.value.replace('_', ' ')}."
        console.print(f"[red]✗ {message}[/red]")
        sys.exit(1)


def _run_scan(
    manager: LibraryManager, future: Optional[Future], show_progress: bool
) -> ScanResult:
    """Wait for a scan, drawing a progress bar; Ctrl-C cancels it."""
    if future is None:
        return manager.duplicates

    bar = tqdm(desc="Hashing photos", unit="photo", disable=not show_progress)
    try:
        while True:
            try:
                result = future.result(timeout=0.1)
                break
            except FutureTimeoutError:
                pass
            except KeyboardInterrupt:
                console.print("\n[yellow]Cancelling scan...[/yellow]")
                manager.cancel()
            _update_bar(bar, manager)
    except Exception as e:
        console.print(f"[red]Error during duplicate detection:[/red] {e}")
        sys.exit(1)
    finally:
        _update_bar(bar, manager)
        bar.close()

    return result


def _update_bar(bar: tqdm, manager: LibraryManager) -> None:
    progress = manager.progress
    bar.total = progress.total
    bar.n = progress.completed
    bar.refresh()


def _display_group(number: int, group: DuplicateGroup) -> None:
    table = Table(
        title=f"Set {number} [dim]({group.digest[:12]})[/dim]",
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("Photo")
    table.add_column("Created")
    table.add_column("Size", justify="right")

    for asset in group:
        created = asset.created.strftime("%Y-%m-%d %H:%M") if asset.created else "-"
        size = f"{asset.size / 1024:.1f} KB" if asset.size is not None else "-"
        table.add_row(asset.display_name, created, size)

    console.print(table)


def _display_duplicate_results(result: ScanResult) -> None:
    """Display duplicate detection results in formatted tables."""
    console.print(
        f"[bold green]Found {len(result.groups)} duplicate groups "
        f"({result.duplicate_count} photos):[/bold green]\n"
    )

    for number, group in enumerate(result.groups[:MAX_GROUPS_SHOWN], 1):
        _display_group(number, group)
        console.print()

    if len(result.groups) > MAX_GROUPS_SHOWN:
        console.print(
            f"[dim]... and {len(result.groups) - MAX_GROUPS_SHOWN} more groups[/dim]\n"
        )


def _save_results(result: ScanResult, source: Dict[str, Any], output_path: Path) -> None:
    """Save scan results to a JSON file."""
    output_path.parent.mkdir(parents=True, exist_ok=True)

    report = {"source": source, **result.to_dict()}
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(report, f, indent=2)


def main() -> None:
    """Main entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
