"""Logging setup for the supervisor.

Every component logs through a ``ContextualLogger`` so that records carry
the component name (and any other bound dimensions) without each call
site having to repeat them.
"""

import logging
import sys
from typing import Any, MutableMapping, Optional

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s%(context)s"
_ROOT_NAME = "nfs_supervisor"


class ContextualLogger(logging.LoggerAdapter):
    """Logger adapter that appends bound dimensions to every record."""

    def __init__(self, logger: logging.Logger, dimensions: Optional[dict[str, Any]] = None):
        """Initialize the adapter.

        Args:
            logger: The underlying stdlib logger.
            dimensions: Key/value pairs rendered after each message.
        """
        super().__init__(logger, dimensions or {})
        self.dimensions: dict[str, Any] = dict(dimensions or {})

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        extra = kwargs.setdefault("extra", {})
        if self.dimensions:
            rendered = " ".join(f"{k}={v}" for k, v in self.dimensions.items())
            extra["context"] = f" [{rendered}]"
        else:
            extra["context"] = ""
        return msg, kwargs

    def with_context(self, **dimensions: Any) -> "ContextualLogger":
        """Return a new logger with additional bound dimensions.

        Existing dimensions are kept; keys passed here take precedence.
        """
        merged = {**self.dimensions, **dimensions}
        return ContextualLogger(self.logger, merged)


class LoggerConfigurator:
    """Builds loggers that share one stdout handler."""

    _configured = False

    @classmethod
    def configure_root(cls, level: str = "INFO") -> None:
        """Install the stdout handler and set the package log level.

        Safe to call more than once; later calls only adjust the level.
        """
        root = logging.getLogger(_ROOT_NAME)
        root.setLevel(int(level) if level.isdigit() else level.upper())
        if cls._configured:
            return
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_FORMAT, defaults={"context": ""}))
        root.addHandler(handler)
        root.propagate = False
        cls._configured = True

    @classmethod
    def configure_logger(
        cls, name: str, dimensions: Optional[dict[str, Any]] = None
    ) -> ContextualLogger:
        """Return a contextual logger for ``name``.

        Args:
            name: Logger name, usually ``__name__``.
            dimensions: Optional dimensions bound to every record.
        """
        if not cls._configured:
            cls.configure_root()
        return ContextualLogger(logging.getLogger(name), dimensions)


logger = LoggerConfigurator.configure_logger(_ROOT_NAME)
