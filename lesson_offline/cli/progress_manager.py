"""
Manages a Rich progress display for lesson downloads.
"""

import asyncio
import logging

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)

from lesson_offline.models.progress import DownloadProgress

log = logging.getLogger("lesson_offline")


class ProgressManager:
    """
    Renders one progress bar per video being downloaded, fed by the
    orchestrator's DownloadProgress reports.
    """

    def __init__(self, console: Console, quiet: bool = False):
        self.console = console
        self.quiet = quiet

        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            BarColumn(bar_width=30),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            DownloadColumn(),
            "•",
            TransferSpeedColumn(),
            "•",
            TimeRemainingColumn(),
            console=console,
            transient=False,
        )
        self._tasks: dict[int, TaskID] = {}

    def add_video_task(self, video_id: int, title: str) -> TaskID | None:
        if self.quiet:
            return None
        if len(title) > 40:
            title = title[:38] + "…"
        # The total is unknown until the server answers.
        task_id = self.progress.add_task(f"[cyan]#{video_id}[/] {title}", total=None)
        self._tasks[video_id] = task_id
        return task_id

    def on_progress(self, progress: DownloadProgress) -> None:
        """Callback handed to the orchestrator."""
        task_id = self._tasks.get(progress.video_id)
        if task_id is None or self.quiet:
            return
        self.progress.update(task_id, completed=progress.loaded, total=progress.total)

    def finish_video_task(self, video_id: int, success: bool = True) -> None:
        task_id = self._tasks.pop(video_id, None)
        if task_id is None:
            return
        task = self.progress.tasks[self.progress.task_ids.index(task_id)]
        if success and task.total:
            self.progress.update(task_id, completed=task.total)
        self.progress.stop_task(task_id)

    async def __aenter__(self):
        if not self.quiet:
            self.progress.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if not self.quiet:
            await asyncio.sleep(0.1)
            self.progress.stop()
