"""Logging for the ZK attendance client.

ZKLogger carries structured fields (device, reply id, byte counts) next to the
message; the JSON and human formatters render them along with the active
correlation id.

Module loggers never install handlers themselves. Applications (or the bundled
CLI) call configure_logging() once to attach handlers to the package logger.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import cast, override

from zk_attendance.correlation import get_correlation_id

__all__ = [
    "HumanReadableFormatter",
    "JSONFormatter",
    "ZKLogger",
    "configure_logging",
    "get_logger",
]

PACKAGE_LOGGER_NAME = "zk_attendance"


def _context(record: logging.LogRecord) -> dict[str, object]:
    """Structured fields passed through ZKLogger's ``extra``."""
    extra_data = getattr(record, "extra_data", None)
    if isinstance(extra_data, Mapping):
        return dict(cast("Mapping[str, object]", extra_data))
    return {}


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    @override
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
            "correlation_id": get_correlation_id(),
        }
        if context := _context(record):
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack_info"] = self.formatStack(record.stack_info)
        return json.dumps(entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """``time level [module:line] [corr] > message | key=value ...``"""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s [%(module)s:%(lineno)d] %(correlation_id)s > %(message)s",
            datefmt="%m/%d/%y %H:%M:%S",
        )

    @override
    def format(self, record: logging.LogRecord) -> str:
        # UUIDv7 ids share their leading timestamp bits, the tail tells them apart
        correlation_id = get_correlation_id()
        record.correlation_id = f"[{correlation_id[-8:]}]" if correlation_id else "[--------]"

        line = super().format(record)
        context = _context(record)
        if not context:
            return line
        return " | ".join([line, *(f"{key}={value}" for key, value in context.items())])


class ZKLogger:
    """Logger wrapper that carries structured context in ``extra``.

    Mirrors the stdlib Logger call signature, except ``extra`` is stored under
    ``extra_data`` so formatters can render it without clashing with
    LogRecord attributes.
    """

    def __init__(self, name: str) -> None:
        self.name: str = name
        self.logger: logging.Logger = logging.getLogger(name)

    def _log(
        self,
        level: int,
        msg: str,
        *args: object,
        extra: Mapping[str, object] | None = None,
        exc_info: bool = False,
    ) -> None:
        extra_payload = {"extra_data": dict(extra)} if extra else None
        self.logger.log(level, msg, *args, extra=extra_payload, exc_info=exc_info, stacklevel=3)

    def debug(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.DEBUG, msg, *args, extra=extra)

    def info(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.INFO, msg, *args, extra=extra)

    def warning(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.WARNING, msg, *args, extra=extra)

    def error(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.ERROR, msg, *args, extra=extra)

    def exception(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        """Log at ERROR level with the active exception's traceback."""
        self._log(logging.ERROR, msg, *args, extra=extra, exc_info=True)

    def is_enabled_for(self, level: int) -> bool:
        return self.logger.isEnabledFor(level)

    def set_level(self, level: int) -> None:
        self.logger.setLevel(level)

    @property
    def handlers(self) -> list[logging.Handler]:
        return self.logger.handlers


def get_logger(name: str) -> ZKLogger:
    """Get a ZKLogger for a module (typically ``__name__``)."""
    return ZKLogger(name)


def _human_handler(human_output: str | None) -> logging.Handler:
    normalized_output = human_output or "stderr"
    if normalized_output == "stdout":
        return logging.StreamHandler(sys.stdout)
    if normalized_output == "stderr":
        return logging.StreamHandler(sys.stderr)
    try:
        human_path = Path(normalized_output)
        human_path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(human_path, mode="a")
    except OSError as e:
        print(f"Warning: Failed to create human log file {human_output}: {e}", file=sys.stderr)
        return logging.StreamHandler(sys.stderr)


def configure_logging(
    level: int = logging.INFO,
    log_format: str = "human",
    json_file: str | Path | None = None,
    human_output: str | None = "stderr",
) -> logging.Logger:
    """Attach handlers to the package logger.

    Calling it again replaces the handlers it installed earlier, so repeated
    calls never duplicate output.

    Args:
        level: Log level for the package logger and its handlers
        log_format: Output format - "json", "human", or "both"
        json_file: Path for JSON output (None writes JSON to stderr when format is "json")
        human_output: "stdout", "stderr", or file path for human-readable output

    Returns:
        The configured package logger

    """
    package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    for handler in list(package_logger.handlers):
        if getattr(handler, "_zk_managed", False):
            package_logger.removeHandler(handler)
            handler.close()

    handlers: list[logging.Handler] = []

    if log_format in ("json", "both"):
        if json_file:
            try:
                json_path = Path(json_file)
                json_path.parent.mkdir(parents=True, exist_ok=True)
                json_handler: logging.Handler = logging.FileHandler(json_path, mode="a")
            except OSError as e:
                print(f"Warning: Failed to create JSON log file {json_file}: {e}", file=sys.stderr)
                json_handler = logging.StreamHandler(sys.stderr)
        else:
            json_handler = logging.StreamHandler(sys.stderr)
        json_handler.setFormatter(JSONFormatter())
        handlers.append(json_handler)

    if log_format in ("human", "both"):
        human_handler = _human_handler(human_output)
        human_handler.setFormatter(HumanReadableFormatter())
        handlers.append(human_handler)

    for handler in handlers:
        handler.setLevel(level)
        handler._zk_managed = True  # type: ignore[attr-defined]
        package_logger.addHandler(handler)

    package_logger.setLevel(level)
    package_logger.propagate = False
    return package_logger
