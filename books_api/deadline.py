"""
Per-request deadline and cancellation token.

One RequestDeadline is created at the request boundary and handed to every
store call made on behalf of that request. A store call wrapped with
`run()` is aborted when the deadline passes or when `cancel()` is called,
for example by the client disconnect watcher in books_api.main.
"""

import asyncio
import time
from typing import Any, Awaitable, Optional

import structlog

from books_api.exceptions import DeadlineExceededError, RequestCancelledError

logger = structlog.get_logger(__name__)


class RequestDeadline:
    """Deadline and cancellation signal shared by the store calls of one request."""

    def __init__(self, timeout: Optional[float] = None):
        """
        Initialize the deadline.

        Args:
            timeout: Seconds from now until store calls are aborted, None for no limit
        """
        self.timeout = timeout
        self.expires_at = time.monotonic() + timeout if timeout else None
        self._cancelled = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Abort in-flight and future store calls of this request."""
        self._cancelled.set()

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, None when unbounded."""
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - time.monotonic())

    async def run(self, awaitable: Awaitable[Any]) -> Any:
        """
        Await a store call under this deadline.

        Args:
            awaitable: The driver call to run

        Returns:
            The call's result

        Raises:
            RequestCancelledError: cancel() was called before the call finished
            DeadlineExceededError: the deadline passed before the call finished
        """
        operation = asyncio.ensure_future(awaitable)
        if self.cancelled:
            operation.cancel()
            raise RequestCancelledError("Request cancelled by caller")

        watcher = asyncio.ensure_future(self._cancelled.wait())
        try:
            done, _ = await asyncio.wait(
                {operation, watcher},
                timeout=self.remaining(),
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            # Also reached when the surrounding task itself is cancelled
            for future in (operation, watcher):
                if not future.done():
                    future.cancel()

        if operation in done:
            return operation.result()
        if watcher in done:
            logger.info("Store call cancelled by caller")
            raise RequestCancelledError("Request cancelled by caller")
        logger.warning("Store call exceeded request deadline", timeout=self.timeout)
        raise DeadlineExceededError(
            "Store call timed out",
            detail=f"exceeded {self.timeout} second deadline",
        )
