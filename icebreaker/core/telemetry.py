"""
icebreaker/core/telemetry.py

Purpose: Telemetry sink for the data layer

- Records trace messages and exceptions
- Write-only: nothing is returned and delivery is not guaranteed
- Default sink forwards everything to the application logger
"""

import logging
from typing import Any, Optional

from icebreaker.core.logging import get_logger


class Telemetry:
    """
    Logging-backed telemetry sink.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or get_logger("telemetry")

    def track_trace(self, message: str, severity: int = logging.INFO, **properties: Any) -> None:
        self.logger.log(severity, message, extra=properties or None)

    def track_exception(self, exc: BaseException, **properties: Any) -> None:
        """
        Records an exception together with its traceback.

        Args:
            exc: The exception that was handled
            **properties: Extra context (user_id, team_id, container, operation)
        """
        self.logger.error(
            f"{type(exc).__name__}: {exc}",
            exc_info=(type(exc), exc, exc.__traceback__),
            extra=properties or None,
        )
