"""
Logging helpers: timing of server round trips.
"""

import logging
import time
from typing import Optional

from AutoLogout.core.logging import get_logger


class LogTimer:
    """
    Context manager timing an operation and logging the duration.

    Works with both `with` and `async with`:

        async with LogTimer("get_time_left", logger):
            await session.get(url)
    """

    def __init__(
        self,
        operation: str,
        logger: Optional[logging.Logger] = None,
        level: int = logging.DEBUG
    ):
        self.operation = operation
        self.logger = logger or get_logger(__name__)
        self.level = level
        self.start_time: Optional[float] = None
        self.duration: Optional[float] = None

    def __enter__(self) -> 'LogTimer':
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.start_time is None:
            return
        self.duration = time.perf_counter() - self.start_time
        if exc_type is not None:
            self.logger.log(
                self.level,
                "Operation '%s' failed after %.4f seconds: %s",
                self.operation, self.duration, exc_val
            )
        else:
            self.logger.log(
                self.level,
                "Operation '%s' completed in %.4f seconds",
                self.operation, self.duration
            )

    async def __aenter__(self) -> 'LogTimer':
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)
