"""Formatter construction for configured handlers.

Besides the plain ``logging.Formatter``, formatters are structlog
``ProcessorFormatter`` instances sharing one pre-chain, so records from plain
stdlib loggers and from structlog loggers render the same way. Extras set by
handler processors reach the output through ``ExtraAdder``.
"""

import importlib.util
import json
import logging
from collections.abc import Sequence
from typing import Any

import structlog
from structlog.types import Processor

from .binder import Binder, Option, to_bool
from .errors import ConstructionError

# Default processor configurations
DEFAULT_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_TIMESTAMP_UTC = False


def create_shared_processors(
        timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT,
        utc: bool = DEFAULT_TIMESTAMP_UTC
) -> list[Processor]:
    """Create the list of shared structlog processors.

    These processors are used by every structlog-based formatter to provide
    consistent base formatting and enrichment of log records.

    Args:
        timestamp_format:   strftime format, or "iso"
        utc:                Render timestamps in UTC instead of local time

    Returns:
        List of structlog processors for the formatter pre-chain
    """
    return [
        # Context management
        structlog.contextvars.merge_contextvars,

        # Standard library integration
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.ExtraAdder(),

        # Error handling and stack traces
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,

        # Timestamp handling
        structlog.processors.TimeStamper(fmt=timestamp_format, utc=utc),
    ]


def ordered_json_dumps(data: dict, **kwargs: Any) -> str:
    """Create an ordered JSON dump with event first and timestamp last.

    Args:
        data:       Dictionary to serialize
        **kwargs:   Additional arguments passed to json.dumps

    Returns:
        JSON string with enforced field ordering
    """
    ordered = {"event": data["event"]} if "event" in data else {}

    ordered.update({
        key: value for key, value in data.items()
        if key not in {"event", "timestamp"}
    })

    if "timestamp" in data:
        ordered["timestamp"] = data["timestamp"]

    return json.dumps(ordered, **kwargs)


def create_line_formatter(
        fmt: str | None = None,
        datefmt: str | None = None,
        style: str = "%"
) -> logging.Formatter:
    """Create a plain stdlib formatter.

    Raises:
        ValueError: If the format string does not match the style
    """
    return logging.Formatter(fmt=fmt, datefmt=datefmt, style=style, validate=True)


def create_json_formatter(
        timestamp_format: str = "iso",
        utc: bool = True,
        include_stacktraces: bool = True,
        ensure_ascii: bool = False
) -> structlog.stdlib.ProcessorFormatter:
    """Create a formatter rendering one JSON object per record.

    Args:
        timestamp_format:       strftime format, or "iso"
        utc:                    Render timestamps in UTC
        include_stacktraces:    Render exceptions as structured tracebacks
                                instead of a formatted string
        ensure_ascii:           Escape non-ASCII characters

    Returns:
        Configured ProcessorFormatter for JSON output
    """
    exception_processor = (
        structlog.processors.dict_tracebacks
        if include_stacktraces
        else structlog.processors.format_exc_info
    )

    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=create_shared_processors(timestamp_format, utc),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            exception_processor,
            structlog.processors.JSONRenderer(serializer=ordered_json_dumps, ensure_ascii=ensure_ascii),
        ],
    )


def create_console_formatter(
        colors: bool = True,
        rich_tracebacks: bool = True,
        timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT
) -> structlog.stdlib.ProcessorFormatter:
    """Create a formatter for human-readable console output.

    Args:
        colors:             Enable colored output
        rich_tracebacks:    Render exceptions with rich (requires 'rich')
        timestamp_format:   strftime format, or "iso"

    Returns:
        Configured ProcessorFormatter for console output

    Raises:
        ConstructionError: If rich tracebacks are requested but 'rich' is not installed
    """
    if rich_tracebacks and importlib.util.find_spec("rich") is None:
        msg = "Rich tracebacks require the 'rich' package"
        raise ConstructionError(msg)

    exception_formatter = (
        structlog.dev.rich_traceback if rich_tracebacks else structlog.dev.plain_traceback
    )

    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=create_shared_processors(timestamp_format),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(
                colors=colors,
                exception_formatter=exception_formatter
            ),
        ],
    )


def create_logfmt_formatter(
        sort_keys: bool = False,
        key_order: Sequence[str] | None = None,
        drop_missing: bool = False,
        bool_as_flag: bool = True,
        timestamp_format: str = "iso"
) -> structlog.stdlib.ProcessorFormatter:
    """Create a formatter rendering records in logfmt."""
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=create_shared_processors(timestamp_format, utc=True),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.LogfmtRenderer(
                sort_keys=sort_keys,
                key_order=key_order,
                drop_missing=drop_missing,
                bool_as_flag=bool_as_flag,
            ),
        ],
    )


def create_key_value_formatter(
        sort_keys: bool = False,
        key_order: Sequence[str] | None = None,
        drop_missing: bool = False,
        timestamp_format: str = "iso"
) -> structlog.stdlib.ProcessorFormatter:
    """Create a formatter rendering ``key=repr(value)`` pairs."""
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=create_shared_processors(timestamp_format, utc=True),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.KeyValueRenderer(
                sort_keys=sort_keys,
                key_order=key_order,
                drop_missing=drop_missing,
            ),
        ],
    )


def _formatter_binder(kind: str, target: Any, *options: Option) -> Binder:
    return Binder(kind, target, options=options, requires_options=False)


LineFormatterFactory = _formatter_binder(
    "LineFormatter",
    create_line_formatter,
    Option("format", argument="fmt"),
    Option("dateFormat", argument="datefmt"),
    Option("style", "%"),
)

JsonFormatterFactory = _formatter_binder(
    "JsonFormatter",
    create_json_formatter,
    Option("timestampFormat", "iso", argument="timestamp_format"),
    Option("utc", True, convert=to_bool),
    Option("includeStacktraces", True, convert=to_bool, argument="include_stacktraces"),
    Option("ensureAscii", False, convert=to_bool, argument="ensure_ascii"),
)

ConsoleFormatterFactory = _formatter_binder(
    "ConsoleFormatter",
    create_console_formatter,
    Option("colors", True, convert=to_bool),
    Option("richTracebacks", True, convert=to_bool, argument="rich_tracebacks"),
    Option("timestampFormat", DEFAULT_TIMESTAMP_FORMAT, argument="timestamp_format"),
)

LogfmtFormatterFactory = _formatter_binder(
    "LogfmtFormatter",
    create_logfmt_formatter,
    Option("sortKeys", False, convert=to_bool, argument="sort_keys"),
    Option("keyOrder", argument="key_order"),
    Option("dropMissing", False, convert=to_bool, argument="drop_missing"),
    Option("boolAsFlag", True, convert=to_bool, argument="bool_as_flag"),
    Option("timestampFormat", "iso", argument="timestamp_format"),
)

KeyValueFormatterFactory = _formatter_binder(
    "KeyValueFormatter",
    create_key_value_formatter,
    Option("sortKeys", False, convert=to_bool, argument="sort_keys"),
    Option("keyOrder", argument="key_order"),
    Option("dropMissing", False, convert=to_bool, argument="drop_missing"),
    Option("timestampFormat", "iso", argument="timestamp_format"),
)
