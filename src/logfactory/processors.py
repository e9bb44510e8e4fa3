"""Structlog processors and their factories.

Processors take ``(logger, method_name, event_dict)`` and return the event
dict. They can be pushed onto handlers and channel loggers, where a
``ProcessorStack`` runs them over every record, or used directly in a
structlog processor chain.
"""

import os
import re
import secrets
import socket
import tracemalloc
from collections.abc import Iterable
from datetime import datetime, tzinfo
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import psutil
import structlog
from structlog.processors import CallsiteParameter, CallsiteParameterAdder
from structlog.types import EventDict, WrappedLogger

from .binder import Binder, Option, to_bool

DEFAULT_UID_LENGTH = 7
MAX_UID_LENGTH = 32

DEFAULT_CALLSITE_PARAMETERS = (
    CallsiteParameter.FUNC_NAME,
    CallsiteParameter.THREAD_NAME,
    CallsiteParameter.PROCESS_NAME,
)

_PLACEHOLDER = re.compile(r"\{([A-Za-z0-9_.]+)\}")


def to_timezone(value: tzinfo | str) -> tzinfo:
    """Convert a configured timezone into a ``tzinfo``.

    Raises:
        ValueError: If the zone name is unknown
        TypeError:  If the value is neither a string nor a ``tzinfo``
    """
    if isinstance(value, tzinfo):
        return value

    if not isinstance(value, str):
        msg = f"Invalid timezone type: {type(value).__name__}"
        raise TypeError(msg)

    try:
        return ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError) as e:
        msg = f"Unknown timezone: {value!r}"
        raise ValueError(msg) from e


class HostnameProcessor:
    """Add the host name under ``hostname``."""

    def __init__(self) -> None:
        self.hostname = socket.gethostname()

    def __call__(self, logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict["hostname"] = self.hostname
        return event_dict


def add_process_id(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add the current process id under ``process_id``."""
    event_dict["process_id"] = os.getpid()
    return event_dict


class UidProcessor:
    """Add a random identifier, stable for the processor's lifetime, under ``uid``.

    Attributes:
        length: Number of hexadecimal characters in the identifier
    """

    def __init__(self, length: int = DEFAULT_UID_LENGTH) -> None:
        if isinstance(length, bool) or not isinstance(length, int) or not 0 < length <= MAX_UID_LENGTH:
            msg = f"The uid length must be an integer between 1 and {MAX_UID_LENGTH}"
            raise ValueError(msg)

        self.length = length
        self.uid = self._generate()

    def reset(self) -> None:
        self.uid = self._generate()

    def _generate(self) -> str:
        return secrets.token_hex(MAX_UID_LENGTH // 2)[:self.length]

    def __call__(self, logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict["uid"] = self.uid
        return event_dict


class TagProcessor:
    """Add a fixed list of tags under ``tags``."""

    def __init__(self, tags: Iterable[str] = ()) -> None:
        if isinstance(tags, str):
            msg = "Tags must be a list of strings"
            raise TypeError(msg)
        self.tags = list(tags)

    def add_tags(self, tags: Iterable[str]) -> None:
        self.tags.extend(tags)

    def set_tags(self, tags: Iterable[str]) -> None:
        self.tags = list(tags)

    def __call__(self, logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict["tags"] = [*event_dict.get("tags", ()), *self.tags]
        return event_dict


class ZonedTimeStamper:
    """Add a timestamp rendered in a fixed timezone.

    Attributes:
        timezone:   Zone the timestamp is rendered in
        fmt:        strftime format, or "iso"
        key:        Event dict key receiving the timestamp
    """

    def __init__(self, timezone: tzinfo | str, fmt: str = "iso", key: str = "timestamp") -> None:
        self.timezone = to_timezone(timezone)
        self.fmt = fmt
        self.key = key

    def __call__(self, logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        now = datetime.now(self.timezone)
        event_dict[self.key] = now.isoformat() if self.fmt == "iso" else now.strftime(self.fmt)
        return event_dict


class PsrLogMessageProcessor:
    """Interpolate ``{placeholder}`` tokens in the event from event dict values.

    Attributes:
        date_format:                strftime format for datetime values, ISO when None
        remove_used_context_fields: Drop keys that were interpolated
    """

    def __init__(self, date_format: str | None = None, remove_used_context_fields: bool = False) -> None:
        self.date_format = date_format
        self.remove_used_context_fields = remove_used_context_fields

    def __call__(self, logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event = event_dict.get("event")
        if not isinstance(event, str) or "{" not in event:
            return event_dict

        used: set[str] = set()

        def replace(match: re.Match[str]) -> str:
            key = match.group(1)
            if key not in event_dict or key == "event":
                return match.group(0)
            used.add(key)
            return self._stringify(event_dict[key])

        event_dict["event"] = _PLACEHOLDER.sub(replace, event)

        if self.remove_used_context_fields:
            for key in used:
                event_dict.pop(key, None)

        return event_dict

    def _stringify(self, value: Any) -> str:
        if value is None or isinstance(value, (str, int, float)):
            return "" if value is None else str(value)
        if isinstance(value, datetime):
            return value.strftime(self.date_format) if self.date_format else value.isoformat()
        return f"[{type(value).__name__}]"


def format_bytes(size: int) -> str:
    """Render a byte count as "512 B", "1.5 KB" or "12.25 MB"."""
    if size > 1024 * 1024:
        return f"{round(size / 1024 / 1024, 2)} MB"
    if size > 1024:
        return f"{round(size / 1024, 2)} KB"
    return f"{size} B"


class MemoryUsageProcessor:
    """Add the memory usage under ``memory_usage`` and its peak under ``memory_peak_usage``.

    With ``real_usage`` the resident set size of the process is reported.
    Otherwise the memory allocated by Python is reported when ``tracemalloc``
    is tracing, and the resident set size when it is not.

    Attributes:
        real_usage:     Report the process memory rather than Python allocations
        use_formatting: Render sizes as strings like "12.25 MB"
    """

    def __init__(self, real_usage: bool = True, use_formatting: bool = True) -> None:
        self.real_usage = real_usage
        self.use_formatting = use_formatting
        self._peak = 0

    def measure(self) -> tuple[int, int]:
        """Return the current and peak usage in bytes."""
        if not self.real_usage and tracemalloc.is_tracing():
            return tracemalloc.get_traced_memory()

        usage = psutil.Process().memory_info().rss
        self._peak = max(self._peak, usage)
        return usage, self._peak

    def __call__(self, logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        usage, peak = self.measure()
        if self.use_formatting:
            event_dict["memory_usage"] = format_bytes(usage)
            event_dict["memory_peak_usage"] = format_bytes(peak)
        else:
            event_dict["memory_usage"] = usage
            event_dict["memory_peak_usage"] = peak
        return event_dict


def create_introspection_processor(
        parameters: Iterable[str | CallsiteParameter] = DEFAULT_CALLSITE_PARAMETERS,
        additional_ignores: list[str] | None = None
) -> CallsiteParameterAdder:
    """Create a processor adding call-site information.

    Raises:
        ValueError: If a parameter name is unknown
    """
    return CallsiteParameterAdder(
        parameters={CallsiteParameter(parameter) for parameter in parameters},
        additional_ignores=additional_ignores,
    )


def create_timestamper(
        fmt: str = "iso",
        utc: bool = True,
        key: str = "timestamp",
        timezone: tzinfo | str | None = None
) -> structlog.processors.TimeStamper | ZonedTimeStamper:
    """Create a timestamp processor, zone-aware when ``timezone`` is set."""
    if timezone is not None:
        return ZonedTimeStamper(timezone, fmt=fmt, key=key)
    return structlog.processors.TimeStamper(fmt=fmt, utc=utc, key=key)


def _processor_binder(kind: str, target: Any, *options: Option) -> Binder:
    return Binder(kind, target, options=options, requires_options=False)


HostnameProcessorFactory = _processor_binder("HostnameProcessor", HostnameProcessor)

ProcessIdProcessorFactory = _processor_binder("ProcessIdProcessor", lambda: add_process_id)

UidProcessorFactory = _processor_binder(
    "UidProcessor",
    UidProcessor,
    Option("length", DEFAULT_UID_LENGTH),
)

TagProcessorFactory = _processor_binder(
    "TagProcessor",
    TagProcessor,
    Option("tags", ()),
)

IntrospectionProcessorFactory = _processor_binder(
    "IntrospectionProcessor",
    create_introspection_processor,
    Option("parameters", DEFAULT_CALLSITE_PARAMETERS),
    Option("skipPackages", argument="additional_ignores"),
)

TimestampProcessorFactory = _processor_binder(
    "TimestampProcessor",
    create_timestamper,
    Option("format", "iso", argument="fmt"),
    Option("utc", True, convert=to_bool),
    Option("key", "timestamp"),
    Option("timezone"),
)

PsrLogMessageProcessorFactory = _processor_binder(
    "PsrLogMessageProcessor",
    PsrLogMessageProcessor,
    Option("dateFormat", argument="date_format"),
    Option("removeUsedContextFields", False, convert=to_bool, argument="remove_used_context_fields"),
)

ContextVarsProcessorFactory = _processor_binder(
    "ContextVarsProcessor",
    lambda: structlog.contextvars.merge_contextvars,
)

MemoryUsageProcessorFactory = _processor_binder(
    "MemoryUsageProcessor",
    MemoryUsageProcessor,
    Option("realUsage", True, convert=to_bool, argument="real_usage"),
    Option("useFormatting", True, convert=to_bool, argument="use_formatting"),
)
