"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
import time
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from lesson_offline import __version__
from lesson_offline.core import DownloadOrchestrator, OfflineContext
from lesson_offline.exceptions import LessonOfflineError
from lesson_offline.models.config import OfflineConfig
from lesson_offline.storage.config_manager import ConfigManager
from lesson_offline.utils.formatting import format_duration, format_size

from .formatters import (
    print_config,
    print_downloads_table,
    print_storage_panel,
    print_video_details,
)
from .progress_manager import ProgressManager

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("lesson_offline")

app = typer.Typer(
    name="lesson-offline",
    help=(
        "Keep video lessons available offline: download, list, play back and evict"
        " cached lessons. Use 'lesson-offline <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)

T = TypeVar("T")


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "lesson-offline"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


def _load_config(cli_options: dict[str, Any] | None = None) -> OfflineConfig:
    return ConfigManager(CONFIG_FILE).load_config(cli_options)


def _run_with_orchestrator(
    action: Callable[[DownloadOrchestrator], Awaitable[T]],
    config: OfflineConfig | None = None,
    revoke_handles: bool = True,
) -> T:
    """Opens the offline context, runs one action against it, and closes it."""
    config = config or _load_config()

    async def _runner() -> T:
        context = OfflineContext.from_config(config)
        await context.open()
        try:
            return await action(DownloadOrchestrator(context))
        finally:
            await context.close(revoke_handles=revoke_handles)

    return asyncio.run(_runner())


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """Offline lesson cache CLI"""
    if version:
        console.print(f"[bold]lesson-offline[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("lesson_offline").setLevel(log_level)

    if show_config:
        config = _load_config()
        data = config.model_dump(exclude={"config_path"})
        data["data_dir"] = str(config.resolved_data_dir)
        print_config(CONFIG_FILE, data)
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    data_dir: Path | None = typer.Option(
        None, "--data-dir", "-d", help="Where cached lessons are stored."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration file."
    ),
):
    """Create the configuration file with default settings."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings = {}
    if data_dir:
        settings["data_dir"] = str(data_dir.expanduser().resolve())
    ConfigManager(CONFIG_FILE).save_new_config(settings)
    console.print(f"[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")


@app.command(name="download")
def download_command(
    video_id: int = typer.Argument(..., help="Catalog id of the lesson."),
    title: str = typer.Argument(..., help="Title to record for the lesson."),
    video_url: str = typer.Argument(..., help="URL of the video file."),
    subtitles: list[str] | None = typer.Option(  # noqa: B008
        None, "--subtitle", "-s", help="Subtitle URL (repeat for several)."
    ),
    thumbnail: str | None = typer.Option(
        None, "--thumbnail", "-t", help="Thumbnail image URL."
    ),
    estimated_size: int | None = typer.Option(
        None,
        "--estimated-size",
        help="Expected size in bytes, used for the free space check.",
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Download even if free space looks too low."
    ),
):
    """Download a lesson and keep it available offline."""
    config = _load_config()
    required = (
        estimated_size if estimated_size is not None else config.default_estimated_size
    )

    async def _download(orchestrator: DownloadOrchestrator):
        if not force and not await orchestrator.context.quota_probe.has_enough_space(
            required
        ):
            console.print(
                f"[red]✗ Not enough free space for about {format_size(required)}.[/red]"
                " Use [cyan]--force[/cyan] to try anyway."
            )
            raise typer.Exit(code=1)

        start_time = time.monotonic()
        async with ProgressManager(console) as progress_manager:
            progress_manager.add_video_task(video_id, title)
            try:
                metadata = await orchestrator.download(
                    video_id,
                    title,
                    video_url,
                    subtitles or [],
                    thumbnail,
                    on_progress=progress_manager.on_progress,
                )
            except (asyncio.CancelledError, LessonOfflineError):
                progress_manager.finish_video_task(video_id, success=False)
                raise
            progress_manager.finish_video_task(video_id, success=True)

        duration = time.monotonic() - start_time
        console.print(
            f"[bold green]✓ '{escape(metadata.title)}' is available offline[/bold green]"
            f" ({format_size(metadata.size)} in {format_duration(duration)})."
        )

    _run_with_orchestrator(_download, config)


@app.command(name="list")
def list_command():
    """List downloaded lessons."""

    async def _list(orchestrator: DownloadOrchestrator):
        videos = await orchestrator.get_all_downloaded_videos()
        total = sum(video.size for video in videos)
        print_downloads_table(videos, total)

    _run_with_orchestrator(_list)


@app.command()
def show(video_id: int = typer.Argument(..., help="Catalog id of the lesson.")):
    """Show one downloaded lesson and check that its files are present."""

    async def _show(orchestrator: DownloadOrchestrator):
        video = await orchestrator.get_downloaded_video(video_id)
        if video is None:
            console.print(f"[yellow]Video {video_id} is not downloaded.[/yellow]")
            raise typer.Exit(code=1)
        missing = await orchestrator.verify_downloaded_video(video_id)
        print_video_details(video, missing)

    _run_with_orchestrator(_show)


@app.command()
def verify(
    video_id: int = typer.Argument(..., help="Catalog id of the lesson."),
    repair: bool = typer.Option(
        False, "--repair", help="Re-fetch missing assets or drop broken entries."
    ),
):
    """Check that a lesson's cached files match its record."""

    async def _verify(orchestrator: DownloadOrchestrator):
        missing = await orchestrator.verify_downloaded_video(video_id)
        if missing is None:
            console.print(f"[yellow]Video {video_id} is not downloaded.[/yellow]")
            raise typer.Exit(code=1)
        if not missing:
            console.print(f"[green]✓ All files for video {video_id} are cached.[/green]")
            return
        for url in missing:
            console.print(f"  [red]✗ missing[/red] [dim]{escape(url)}[/dim]")
        if not repair:
            raise typer.Exit(code=1)
        repaired = await orchestrator.repair_downloaded_video(video_id)
        if repaired is None:
            console.print(
                f"[yellow]Video {video_id} could not be recovered and was removed."
                "[/yellow]"
            )
        else:
            remaining = await orchestrator.verify_downloaded_video(video_id) or []
            console.print(
                f"[green]✓ Repair finished, {len(remaining)} assets still missing."
                "[/green]"
            )

    _run_with_orchestrator(_verify)


@app.command()
def delete(video_id: int = typer.Argument(..., help="Catalog id of the lesson.")):
    """Delete a downloaded lesson."""

    async def _delete(orchestrator: DownloadOrchestrator):
        if not await orchestrator.is_video_downloaded(video_id):
            console.print(f"[dim]Video {video_id} is not downloaded.[/dim]")
            return
        await orchestrator.delete_downloaded_video(video_id)
        console.print(f"[green]✓ Video {video_id} deleted.[/green]")

    _run_with_orchestrator(_delete)


@app.command()
def clear(
    force: bool = typer.Option(
        False, "--force", "-f", help="Bypass the confirmation prompt."
    ),
):
    """Delete every downloaded lesson."""
    if not force and not typer.confirm(
        "Are you sure you want to delete all offline lessons? "
        "They will have to be downloaded again."
    ):
        console.print("[yellow]Operation cancelled.[/yellow]")
        raise typer.Abort()

    async def _clear(orchestrator: DownloadOrchestrator):
        await orchestrator.clear_all_downloads()
        console.print("[green]✓ All offline lessons deleted.[/green]")

    _run_with_orchestrator(_clear)


@app.command()
def size(
    raw: bool = typer.Option(False, "--bytes", help="Print the size in bytes."),
):
    """Show the total size of downloaded lessons."""

    async def _size(orchestrator: DownloadOrchestrator):
        if raw:
            console.print(str(await orchestrator.get_total_download_size()))
        else:
            console.print(await orchestrator.get_formatted_total_download_size())

    _run_with_orchestrator(_size)


@app.command()
def storage():
    """Show free space and what offline lessons occupy."""

    async def _storage(orchestrator: DownloadOrchestrator):
        info = await orchestrator.context.quota_probe.get_storage_info()
        downloads_size = await orchestrator.get_total_download_size()
        cache_size = await orchestrator.get_cache_size()
        print_storage_panel(info, downloads_size, cache_size)

    _run_with_orchestrator(_storage)


@app.command()
def url(video_url: str = typer.Argument(..., help="Cached resource URL.")):
    """Print a local file URI for a cached resource, for playback."""

    async def _url(orchestrator: DownloadOrchestrator):
        handle = await orchestrator.get_cached_video_url(video_url)
        if handle is None:
            console.print("[yellow]Not cached.[/yellow]")
            raise typer.Exit(code=1)
        console.print(handle, soft_wrap=True)

    # The playback file has to outlive this process to be useful.
    _run_with_orchestrator(_url, revoke_handles=False)


@app.command()
def vacuum():
    """Optimize the metadata database."""

    async def _vacuum(orchestrator: DownloadOrchestrator):
        console.print("[cyan]Optimizing metadata database...[/cyan]")
        await orchestrator.metadata_store.vacuum()
        console.print("[green]✓ Database optimized.[/green]")

    _run_with_orchestrator(_vacuum)


@app.command()
def diagnose():
    """Diagnose common configuration and storage issues."""
    console.print("\n[bold cyan]Running diagnostics...[/bold cyan]\n")
    issues_found = False

    if CONFIG_FILE.is_file():
        console.print(f"[green]✓[/] Config file exists at: [dim]{CONFIG_FILE}[/dim]")
    else:
        console.print(
            "[yellow]○ No config file, using defaults.[/] Run "
            "[cyan]lesson-offline init[/cyan] to create one."
        )

    try:
        config = _load_config()
        console.print("[green]✓[/] Configuration is valid.")
    except LessonOfflineError as e:
        console.print(f"[red]✗ Configuration validation failed: {e}[/red]")
        raise typer.Exit(code=1) from e

    async def _check(orchestrator: DownloadOrchestrator) -> bool:
        ok = True
        console.print(
            f"[green]✓[/] Stores opened in [dim]{config.resolved_data_dir}[/dim]"
        )
        info = await orchestrator.context.quota_probe.get_storage_info()
        if info is None:
            console.print("[yellow]○ Free space cannot be measured.[/yellow]")
        elif not await orchestrator.context.quota_probe.has_enough_space(
            config.default_estimated_size
        ):
            console.print(
                f"[red]✗ Less than {format_size(config.default_estimated_size)} "
                "of usable free space.[/red]"
            )
            ok = False
        else:
            console.print(f"[green]✓[/] {format_size(info.available)} available.")

        videos = await orchestrator.get_all_downloaded_videos()
        broken = 0
        for video in videos:
            if await orchestrator.verify_downloaded_video(video.video_id):
                broken += 1
        if broken:
            console.print(
                f"[red]✗ {broken} of {len(videos)} lessons have missing files.[/] "
                "Run [cyan]lesson-offline verify <id> --repair[/cyan]."
            )
            ok = False
        else:
            console.print(f"[green]✓[/] {len(videos)} lessons, all files present.")
        return ok

    try:
        if not _run_with_orchestrator(_check, config):
            issues_found = True
    except LessonOfflineError as e:
        console.print(f"[red]✗ Storage check failed: {e}[/red]")
        issues_found = True

    console.print()
    if not issues_found:
        console.print(
            "[bold green]✓ All checks passed! Your setup looks good.[/bold green]\n"
        )
    else:
        console.print(
            "[bold red]✗ Some issues were found. "
            "Please review the messages above.[/bold red]\n"
        )
        raise typer.Exit(code=1)
