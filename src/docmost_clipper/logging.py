"""Structured logging built on loguru.

Every API call, bridge request and extraction runs inside a LogSpan, which
emits one line with the span name, elapsed time, attributes and error.
"""

from __future__ import annotations

import sys
import time
from pathlib import Path
from types import TracebackType
from typing import Any

from loguru import logger

_LOG_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level>"
)


def configure_logging(
    level: str = "WARNING", log_file: Path | str | None = None
) -> None:
    """Replace loguru's default sink with the clipper's sinks.

    Args:
        level: Minimum level for the stderr sink
        log_file: Optional file that receives DEBUG and above
    """
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=_LOG_FORMAT)
    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(path, level="DEBUG", rotation="1 MB", retention=5)
    logger.debug(f"Logging configured (level={level}, file={log_file or 'disabled'})")


class LogSpan:
    """A structured logging span with timing and attributes."""

    def __init__(self, span: str, level: str = "DEBUG", **attrs: Any) -> None:
        """Initialize a log span.

        Args:
            span: Span name (e.g., "api.login")
            level: Level used when the span completes without error
            **attrs: Initial attributes to log
        """
        self.name = span
        self.level = level
        self.attrs: dict[str, Any] = dict(attrs)
        self.start_time = time.monotonic()
        self.error: str | None = None

    def add(self, key: str | None = None, value: Any = None, **attrs: Any) -> LogSpan:
        """Add attributes to the span.

        Supports both positional and keyword argument styles.

        Returns:
            Self for method chaining
        """
        if key is not None:
            self.attrs[key] = value
        self.attrs.update(attrs)
        return self

    @property
    def elapsed_ms(self) -> float:
        return round((time.monotonic() - self.start_time) * 1000, 2)

    def _emit(self) -> None:
        fields = " ".join(f"{k}={v!r}" for k, v in self.attrs.items())
        message = f"{self.name} elapsed_ms={self.elapsed_ms}"
        if fields:
            message = f"{message} {fields}"
        if self.error:
            logger.opt(depth=2).warning(f"{message} error={self.error!r}")
        else:
            logger.opt(depth=2).log(self.level, message)

    def __enter__(self) -> LogSpan:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc is not None and self.error is None:
            self.error = f"{type(exc).__name__}: {exc}"
        self._emit()
