"""
Cooperative cancellation for long-running downloads.
"""

import asyncio
import logging

from lesson_offline.exceptions import DownloadCancelledError

log = logging.getLogger(__name__)


class CancellationToken:
    """
    A flag shared between the caller and a running download.

    The download checks the token at every suspension point and stops with
    DownloadCancelledError once it has been cancelled.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self.reason = ""

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled by user") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()
            log.debug(f"Cancellation requested: {reason}")

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise DownloadCancelledError(self.reason or "Download cancelled.")
