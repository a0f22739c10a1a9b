"""
Logging utilities for kafka_datasource.

Provides:
- Structured logging helpers (log_with_context, log_exception)
- LoggedClass mixin with automatic instance context
- Transport log sinks resolved from the configured verbosity
- setup_logging() for console output in JSON or plain format
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Callable, Dict, NamedTuple, Optional

from kafka_datasource.common.security import sanitize_error_message

TRANSPORT_LOGGER_NAME = "kafka_datasource.transport"

DEBUG_LOG_LEVEL = "debug"
ERROR_LOG_LEVEL = "error"

DEBUG_PREFIX = "[KAFKA DEBUG] "
ERROR_PREFIX = "[KAFKA ERROR] "

# Noisy loggers to suppress
NOISY_LOGGERS = [
    "aiokafka",
    "kafka",
]

LogSink = Callable[..., None]


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def log_with_context(
    logger: logging.Logger,
    level: int,
    msg: str,
    **kwargs: Any,
) -> None:
    """
    Log with structured context fields.

    Args:
        logger: Logger instance
        level: Log level (logging.INFO, etc.)
        msg: Log message
        **kwargs: Additional context fields (topic, partition, offset, etc.)

    Example:
        log_with_context(
            logger, logging.INFO, "Reader assigned",
            topic="sensors",
            partition=0,
            offset=-1,
        )
    """
    logger.log(level, msg, extra=kwargs)


def log_exception(
    logger: logging.Logger,
    exc: BaseException,
    msg: str,
    level: int = logging.ERROR,
    include_traceback: bool = True,
    **kwargs: Any,
) -> None:
    """
    Log exception with context and optional traceback.

    Automatically extracts error_category from DatasourceError subclasses.
    The error text is sanitized so SASL secrets never reach the log.

    Args:
        logger: Logger instance
        exc: Exception to log
        msg: Context message
        level: Log level (default: ERROR)
        include_traceback: Include full traceback (default: True)
        **kwargs: Additional context fields
    """
    error_category = kwargs.get("error_category")
    if error_category is None and hasattr(exc, "category"):
        cat = exc.category
        kwargs["error_category"] = cat.value if hasattr(cat, "value") else str(cat)

    kwargs["error_message"] = sanitize_error_message(str(exc))

    if include_traceback:
        logger.log(level, msg, exc_info=exc, extra=kwargs)
    else:
        logger.log(level, msg, extra=kwargs)


def _extract_instance_context(obj: Any) -> Dict[str, Any]:
    """Pull identifier fields off an instance for log context."""
    ctx: Dict[str, Any] = {}

    for attr in ["topic", "partition", "bootstrap_servers"]:
        value = getattr(obj, attr, None)
        if value is not None:
            ctx[attr] = value

    return ctx


class LoggedClass:
    """
    Mixin providing logging infrastructure for classes.

    Provides:
    - self._logger: Logger instance
    - self._log(): Log with auto-extracted context
    - self._log_exception(): Exception logging with context
    """

    log_component: Optional[str] = None  # Optional logger name suffix

    def __init__(self, *args, **kwargs):
        logger_name = self.__class__.__module__
        if self.log_component:
            logger_name = f"{logger_name}.{self.log_component}"
        self._logger = get_logger(logger_name)
        super().__init__(*args, **kwargs)

    def _log(self, level: int, msg: str, **extra: Any) -> None:
        context = _extract_instance_context(self)
        context.update(extra)
        log_with_context(self._logger, level, msg, **context)

    def _log_exception(
        self,
        exc: BaseException,
        msg: str,
        level: int = logging.ERROR,
        **extra: Any,
    ) -> None:
        context = _extract_instance_context(self)
        context.update(extra)
        log_exception(self._logger, exc, msg, level=level, **context)


# ---------------------------------------------------------------------------
# Transport log sinks
# ---------------------------------------------------------------------------


class LogSinks(NamedTuple):
    """Debug and error sinks handed to the broker transport."""

    debug: LogSink
    error: LogSink


def _noop_sink(msg: Any, *args: Any) -> None:
    return None


def _make_sink(logger: logging.Logger, level: int, prefix: str) -> LogSink:
    def sink(msg: Any, *args: Any) -> None:
        # logging defers %-formatting to the handler, which reports
        # formatting problems through handleError instead of raising
        logger.log(level, prefix + str(msg), *args)

    return sink


def resolve_log_sinks(
    level: Optional[str],
    logger: Optional[logging.Logger] = None,
) -> LogSinks:
    """
    Map a configured verbosity to transport log sinks.

    "debug" enables both sinks, "error" enables only the error sink, any other
    value (including None and "") disables both. Matching ignores case.

    Args:
        level: Configured log level string
        logger: Logger the enabled sinks write to
            (default: kafka_datasource.transport)

    Returns:
        LogSinks(debug, error)
    """
    target = logger or get_logger(TRANSPORT_LOGGER_NAME)
    debug_sink: LogSink = _noop_sink
    error_sink: LogSink = _noop_sink

    normalized = (level or "").lower()
    if normalized == DEBUG_LOG_LEVEL:
        debug_sink = _make_sink(target, logging.DEBUG, DEBUG_PREFIX)
        error_sink = _make_sink(target, logging.ERROR, ERROR_PREFIX)
    elif normalized == ERROR_LOG_LEVEL:
        error_sink = _make_sink(target, logging.ERROR, ERROR_PREFIX)

    return LogSinks(debug=debug_sink, error=error_sink)


# ---------------------------------------------------------------------------
# Formatters and setup
# ---------------------------------------------------------------------------


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter.

    Produces one JSON object per line for easy parsing with jq/grep.
    """

    # Fields to extract from LogRecord extras
    EXTRA_FIELDS = [
        "topic",
        "partition",
        "offset",
        "policy",
        "strategy",
        "timestamp_mode",
        "bootstrap_servers",
        "security_protocol",
        "sasl_mechanism",
        "timeout_ms",
        "attempts",
        "duration_ms",
        "error_category",
        "error_message",
    ]

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3]
            + "Z",
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        if record.levelno in (logging.DEBUG, logging.ERROR, logging.CRITICAL):
            log_entry["file"] = f"{record.filename}:{record.lineno}"

        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human readable single-line formatter with Kafka context appended."""

    CONTEXT_FIELDS = ["topic", "partition", "offset", "error_category"]

    def __init__(self):
        super().__init__("%(asctime)s - %(levelname)s - %(name)s - %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = [
            f"{field}={getattr(record, field)}"
            for field in self.CONTEXT_FIELDS
            if getattr(record, field, None) is not None
        ]
        if context:
            line = f"{line} [{' '.join(context)}]"
        return line


def setup_logging(
    level: int = logging.INFO,
    json_format: bool = False,
    suppress_noisy: bool = True,
) -> logging.Logger:
    """
    Configure root logging with a single console handler.

    Args:
        level: Console log level
        json_format: Emit JSON lines instead of plain text
        suppress_noisy: Quiet down the aiokafka loggers

    Returns:
        The kafka_datasource package logger
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter() if json_format else ConsoleFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates on re-init
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    if suppress_noisy:
        for logger_name in NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    logger = logging.getLogger("kafka_datasource")
    logger.debug(f"Logging initialized: json={json_format}")
    return logger
