"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table
from rich.text import Text

from lesson_offline.models.video import VideoMetadata
from lesson_offline.storage.quota import StorageInfo
from lesson_offline.utils.formatting import format_size, format_timestamp


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "NetworkFetchError": [
            "• Check that the video URL is reachable from this machine.",
            "• A 403/404 usually means the signed URL expired; request a new one.",
            "• Run the command with -vv for detailed logs.",
        ],
        "StorageError": [
            "• Check that the data directory exists and is writable.",
            "• Make sure the disk is not full (`lesson-offline storage`).",
            "• Another process may hold the database; try again shortly.",
        ],
        "ConfigurationError": [
            "• Review the values in your configuration file.",
            "• Run `lesson-offline init --force` to regenerate it.",
        ],
        "DownloadCancelledError": [
            "• The download was interrupted; run the command again to retry.",
        ],
        "TimeoutError": [
            "• A download timed out, which may indicate network throttling.",
            "• Increase `read_timeout` in the configuration file.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration."""
    console = Console()
    content = "\n".join(f"{key} = {value}" for key, value in sorted(config_data.items()))
    console.print(
        Panel(
            content or "[dim](defaults)[/dim]",
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_downloads_table(videos: list[VideoMetadata], total_size: int):
    """Displays every downloaded lesson."""
    console = Console()
    if not videos:
        console.print("[dim]No lessons are downloaded yet.[/dim]")
        return

    table = Table(title="Offline Lessons", box=box.SIMPLE_HEAVY)
    table.add_column("Video", style="dim", justify="right")
    table.add_column("Title", style="cyan")
    table.add_column("Subtitles", justify="right")
    table.add_column("Size", justify="right", style="green")
    table.add_column("Downloaded", style="magenta")
    for video in videos:
        table.add_row(
            str(video.video_id),
            escape(video.title),
            str(len(video.subtitle_urls)),
            format_size(video.size),
            format_timestamp(video.downloaded_at),
        )
    console.print(table)
    console.print(
        f"[bold]{len(videos)}[/bold] lessons, "
        f"[green]{format_size(total_size)}[/green] in total."
    )


def print_video_details(video: VideoMetadata, missing: list[str] | None = None):
    """Displays one lesson record, flagging blobs that are gone from the cache."""
    console = Console()
    missing = missing or []
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    def locator_cell(url: str) -> str:
        mark = "[red]✗ missing[/red]" if url in missing else "[green]✓[/green]"
        return f"{mark} [dim]{escape(url)}[/dim]"

    table.add_row("Key:", video.id)
    table.add_row("Title:", escape(video.title))
    table.add_row("Video:", locator_cell(video.video_url))
    for url in video.subtitle_urls:
        table.add_row("Subtitle:", locator_cell(url))
    if video.thumbnail_url:
        table.add_row("Thumbnail:", locator_cell(video.thumbnail_url))
    table.add_row("Size:", format_size(video.size))
    table.add_row("Downloaded:", format_timestamp(video.downloaded_at))

    border = "yellow" if missing else "green"
    console.print(
        Panel(table, title=f"[bold]Video {video.video_id}[/bold]", border_style=border)
    )


def print_storage_panel(
    info: StorageInfo | None, downloads_size: int, cache_size: int
):
    """Displays storage capacity alongside what the offline lessons occupy."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column()

    if info is None:
        table.add_row("Volume:", "[yellow]Storage estimate unavailable[/yellow]")
    else:
        table.add_row(
            "Used:",
            f"{format_size(info.usage)} of {format_size(info.quota)} "
            f"({info.usage_percent:.1f}%)",
        )
        table.add_row(
            "", ProgressBar(total=100, completed=info.usage_percent, width=40)
        )
        table.add_row("Available:", f"[green]{format_size(info.available)}[/green]")

    table.add_row("Offline lessons:", f"[cyan]{format_size(downloads_size)}[/cyan]")
    table.add_row("Blob cache on disk:", f"[dim]{format_size(cache_size)}[/dim]")

    console.print(Panel(table, title="[bold]Storage[/bold]", border_style="cyan"))
