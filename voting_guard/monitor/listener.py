"""Callbacks through which the hosting UI is told about warnings and blocks."""

import logging

from typing_extensions import Protocol

from voting_guard.monitor.state import BlockInfo

logger = logging.getLogger(__name__)


class MonitorListener(Protocol):
    """Capability implemented by the UI hosting a monitored session."""

    def on_warning(self, message: str) -> None:
        ...

    def on_block(self, info: BlockInfo) -> None:
        ...


class LoggingListener:
    """Listener that only writes to the log (headless monitoring)."""

    def on_warning(self, message: str) -> None:
        logger.warning(message)

    def on_block(self, info: BlockInfo) -> None:
        logger.error(f"Voting blocked after {info.count} violations: {info.reason}")
