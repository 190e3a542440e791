"""Cooperative cancellation shared between a job and its caller."""
import asyncio
import threading
from typing import Optional

from facematch.core.logging import get_logger

logger = get_logger(__name__)


class CancellationToken:
    """A persistent, thread-safe cancellation flag.

    One token belongs to one job. The orchestrator polls it at its
    checkpoints; nothing is interrupted mid-comparison.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: Optional[str] = None
        self._deadline_handle: Optional[asyncio.TimerHandle] = None

    def request_cancel(self, reason: str = "requested") -> bool:
        """Raise the flag.

        Returns:
            True for the call that cancelled the token, False for repeats.
        """
        with self._lock:
            if self._event.is_set():
                return False
            self._reason = reason
            self._event.set()
        logger.info("Cancellation requested", reason=reason)
        return True

    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel_after(self, seconds: float) -> asyncio.TimerHandle:
        """Request cancellation once ``seconds`` have elapsed on the running loop."""
        if seconds < 0:
            raise ValueError("seconds must be >= 0")
        loop = asyncio.get_running_loop()
        if self._deadline_handle is not None:
            self._deadline_handle.cancel()
        self._deadline_handle = loop.call_later(
            seconds, self.request_cancel, f"deadline of {seconds}s reached"
        )
        return self._deadline_handle

    def clear_deadline(self) -> None:
        """Drop a pending ``cancel_after`` timer."""
        if self._deadline_handle is not None:
            self._deadline_handle.cancel()
            self._deadline_handle = None

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.is_cancelled()})"
