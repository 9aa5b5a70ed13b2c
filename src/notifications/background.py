"""Fire-and-forget dispatch on a worker pool.

Wraps another dispatcher so the request that produced a notice never waits
on delivery. A failing delivery is logged from the worker and never reaches
the caller.
"""

from concurrent.futures import Future, ThreadPoolExecutor

import structlog

from notifications.port import NotificationDispatcher, describe

logger = structlog.get_logger(__name__)


class BackgroundDispatcher(NotificationDispatcher):
    def __init__(self, inner: NotificationDispatcher, max_workers: int = 4) -> None:
        self.inner = inner
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="notifier")

    def dispatch(self, event) -> Future:
        future = self._executor.submit(self.inner.dispatch, event)
        summary = describe(event)
        future.add_done_callback(lambda done: self._report(done, summary))
        return future

    @staticmethod
    def _report(future: Future, summary: dict) -> None:
        error = future.exception()
        if error is not None:
            logger.error("Background notification dispatch failed", error=str(error), **summary)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def close(self) -> None:
        """Drain queued deliveries before the process exits."""
        self.shutdown(wait=True)
        self.inner.close()
