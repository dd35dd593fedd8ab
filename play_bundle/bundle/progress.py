"""Progress and error reporting sinks for pipeline runs."""

from __future__ import annotations

import logging
from typing import List, Protocol, Tuple

logger = logging.getLogger(__name__)


class ProgressSink(Protocol):
    def report(self, stage: str, fraction: float) -> None: ...

    def clear(self) -> None: ...


class ErrorSink(Protocol):
    def display(self, message: str) -> None: ...


class NullProgress:
    """Progress sink for headless runs."""

    def report(self, stage: str, fraction: float) -> None:
        return None

    def clear(self) -> None:
        return None


class LoggingProgress:
    def report(self, stage: str, fraction: float) -> None:
        logger.info("[%3d%%] %s", round(fraction * 100), stage)

    def clear(self) -> None:
        return None


class RecordingProgress:
    """Keeps every report in order; handy for callers that render progress later."""

    def __init__(self) -> None:
        self.events: List[Tuple[str, float]] = []
        self.cleared = 0

    def report(self, stage: str, fraction: float) -> None:
        self.events.append((stage, fraction))

    def clear(self) -> None:
        self.cleared += 1


class LoggingErrorSink:
    def display(self, message: str) -> None:
        logger.error(message)
