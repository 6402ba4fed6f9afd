"""
Logging abstraction for the madapt package.

The engine never raises on recoverable stream or configuration
anomalies (unmapped frames, dropped frames, validation warnings).
These are reported through a LoggerBase object instead, which every
component takes as an optional `logger` argument. This makes the
diagnostics surface replaceable: the console logger is used by
default, while LoglistLogger keeps the messages in memory so that
they can be inspected by the caller or by tests.

Usage:
    ```python
    from madapt.utils.logging import get_logger, LoglistLogger

    logger = get_logger(__name__)   # console
    diagnostics = LoglistLogger()   # in-memory
    mapper = StreamEventMapper(config, logger=diagnostics)
    ...
    print(diagnostics.get_logs(level=1))
    ```
"""

import logging
import sys
from abc import ABC, abstractmethod


class LoggerBase(ABC):
    """
    Receiver of the engine diagnostics.
    """

    @abstractmethod
    def info(self, msg: str) -> None:
        """Unmapped frames, aborted streams."""
        pass

    @abstractmethod
    def warning(self, msg: str) -> None:
        """Dropped frames, skipped fields."""
        pass

    @abstractmethod
    def error(self, msg: str) -> None:
        """Failed upstream calls."""
        pass


class ConsoleLogger(LoggerBase):
    """
    Writes the diagnostics to stdout through a logging.Logger
    delegate named after the reporting module.
    """

    def __init__(self, name: str | None = None) -> None:
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        if not self.logger.hasHandlers():
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(
                logging.Formatter('%(levelname)s - %(name)s - %(message)s')
            )
            self.logger.addHandler(handler)

    def info(self, msg: str) -> None:
        self.logger.info(msg)

    def warning(self, msg: str) -> None:
        self.logger.warning(msg)

    def error(self, msg: str) -> None:
        self.logger.error(msg)


class LoglistLogger(LoggerBase):
    """
    Keeps the diagnostics in memory, in the order they were reported.
    Used to observe stream diagnostics (unmapped and dropped frames)
    without printing them.
    """

    # filter rank of each severity, see get_logs
    _RANKS = {'INFO': 0, 'WARNING': 1, 'ERROR': 2}

    def __init__(self) -> None:
        self.logs: list[tuple[str, str]] = []

    def info(self, msg: str) -> None:
        self.logs.append(('INFO', msg))

    def warning(self, msg: str) -> None:
        self.logs.append(('WARNING', msg))

    def error(self, msg: str) -> None:
        self.logs.append(('ERROR', msg))

    def get_logs(self, level: int = 0) -> list[str]:
        """
        Returns the recorded messages, prefixed by their severity.

        Args:
           level: 0 returns all messages, 1 omits info, 2 or more
                returns errors only
        """
        return [
            f"{severity} - {msg}"
            for severity, msg in self.logs
            if self._RANKS[severity] >= min(level, 2)
        ]

    def count_logs(self, level: int = 0) -> int:
        """The number of recorded messages at or above level."""
        return len(self.get_logs(level))


def get_logger(name: str) -> LoggerBase:
    """
    Get the console logger of a module.

    Args:
        name: typically __name__
    """
    return ConsoleLogger(name)
