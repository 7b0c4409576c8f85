"""JSON logging for services and the worker.

Each entry is one JSON object: ``event`` first, then any context bound with
``bind()``, then the call's keyword fields. Values that are not JSON-native
(enums, datetimes, exceptions) are stringified.

    log = get_logger(__name__).bind(project_id="p1", run_id="evt-1")
    log.info("step_completed", step="transcribe-audio")
"""

import json
import logging
import sys
import traceback
from typing import Any

_LINE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class StructuredLogger:
    """Keyword-argument logging on top of a stdlib ``logging.Logger``."""

    def __init__(self, logger: logging.Logger, context: dict[str, Any] | None = None):
        self._logger = logger
        self._context = dict(context or {})

    def bind(self, **context: Any) -> "StructuredLogger":
        """Return a child logger; the parent's context is left untouched."""
        return StructuredLogger(self._logger, {**self._context, **context})

    def _emit(self, level: int, event: str, fields: dict[str, Any]) -> None:
        payload = {"event": event, **self._context, **fields}
        self._logger.log(level, json.dumps(payload, default=str))

    def debug(self, event: str, **fields: Any) -> None:
        self._emit(logging.DEBUG, event, fields)

    def info(self, event: str, **fields: Any) -> None:
        self._emit(logging.INFO, event, fields)

    def warning(self, event: str, **fields: Any) -> None:
        self._emit(logging.WARNING, event, fields)

    def error(self, event: str, **fields: Any) -> None:
        self._emit(logging.ERROR, event, fields)

    def exception(self, event: str, error: BaseException, **fields: Any) -> None:
        """Log at ERROR with the error's type, message and formatted traceback."""
        formatted = traceback.format_exception(type(error), error, error.__traceback__)
        self._emit(
            logging.ERROR,
            event,
            {
                "error_type": type(error).__name__,
                "error_message": str(error),
                "traceback": "".join(formatted),
                **fields,
            },
        )


def get_logger(name: str) -> StructuredLogger:
    """Return a StructuredLogger for ``name``, attaching a stdout handler once."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        stdout = logging.StreamHandler(sys.stdout)
        stdout.setFormatter(logging.Formatter(_LINE_FORMAT))
        logger.addHandler(stdout)
        logger.setLevel(logging.INFO)
    return StructuredLogger(logger)
