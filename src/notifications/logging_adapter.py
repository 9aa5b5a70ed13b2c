"""Default dispatcher: records each notice as a structured log line."""

import structlog

from notifications.port import NotificationDispatcher, describe

logger = structlog.get_logger(__name__)


class LoggingDispatcher(NotificationDispatcher):
    def dispatch(self, event) -> None:
        logger.info("Lifecycle notice dispatched", **describe(event))
