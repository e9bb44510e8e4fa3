"""Handler kinds and the binders that build them.

Each kind is declared as a ``Binder``: the slots it resolves through the
lookup, the scalar options it reads, and the callable constructing the
handler. Every handler kind also accepts ``level`` (default DEBUG),
``bubble`` (default True), ``formatter`` and ``processors``.
"""

import logging
import logging.handlers
import os
import queue
import socket
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

from .activation import ActivationStrategy
from .binder import (
    Binder,
    Option,
    Slot,
    get_handler,
    get_handlers,
    get_manager,
    lookup_service,
    resolve_block,
    resolve_dependency,
    to_bool,
)
from .errors import ConfigurationTypeError, ConstructionError
from .handlers import (
    BufferHandler,
    CollectingHandler,
    DeduplicationHandler,
    FallbackGroupHandler,
    FilterHandler,
    FingersCrossedHandler,
    GroupHandler,
    LoggerHandler,
    OverflowHandler,
    SamplingHandler,
    WhatFailureGroupHandler,
)
from .log_levels import HIGHEST_LEVEL, LOWEST_LEVEL, is_level, normalize_level
from .lookup import ACTIVATION_STRATEGY_MANAGER, Lookup

_STANDARD_STREAMS = {
    "ext://sys.stdout": "stdout",
    "ext://sys.stderr": "stderr",
}

_SOCKET_TYPES = {
    "udp": socket.SOCK_DGRAM,
    "tcp": socket.SOCK_STREAM,
}


def _set_level(handler: logging.Handler, level: int) -> None:
    handler.setLevel(level)


def _set_bubble(handler: logging.Handler, bubble: bool) -> None:
    handler.bubble = bubble


HANDLER_OPTIONS = (
    Option("level", LOWEST_LEVEL, convert=normalize_level, apply=_set_level),
    Option("bubble", True, convert=to_bool, apply=_set_bubble),
)


def handler_binder(
        kind: str,
        target: Any,
        *,
        slots: Sequence[Slot] = (),
        options: Sequence[Option] = ()
) -> Binder:
    """Declare a handler kind with the options shared by all handlers."""
    return Binder(kind, target, slots=slots, options=(*options, *HANDLER_OPTIONS), attach=True)


def _literal(lookup: Lookup, value: Any) -> Any:
    return value


def required(key: str, message: str, argument: str | None = None) -> Slot:
    """Declare a required scalar option."""
    return Slot(key, _literal, argument=argument, required=message)


HANDLER_SLOT = Slot("handler", get_handler, required="No handler provided")


# Collaborator resolution


def resolve_stream(lookup: Lookup, stream: Any) -> Any:
    """Resolve the ``stream`` option of a stream handler.

    Objects with a ``write`` method are used as is. Strings are, in order,
    a standard stream (``ext://sys.stdout``, ``ext://sys.stderr``), a service
    known to the lookup, or a file path. Callables are invoked.

    Raises:
        DependencyResolutionError:  If the lookup fails to load a known stream
        ConstructionError:          If the value cannot be a stream
    """
    if hasattr(stream, "write"):
        return stream

    if isinstance(stream, str):
        if stream in _STANDARD_STREAMS:
            return getattr(sys, _STANDARD_STREAMS[stream])
        if lookup.has(stream):
            return lookup_service(lookup, stream, role="stream")
        return stream

    if isinstance(stream, os.PathLike):
        return stream

    if callable(stream):
        return stream()

    msg = "invalid stream given"
    raise ConstructionError(msg)


def resolve_queue(lookup: Lookup, reference: Any) -> Any:
    return resolve_dependency(
        reference,
        lookup,
        capability=(queue.Queue, queue.SimpleQueue),
        role="queue",
        deferred=True,
    )


def resolve_logger(lookup: Lookup, reference: Any) -> Any:
    return resolve_dependency(reference, lookup, capability=logging.Logger, role="logger")


def resolve_activation_strategy(lookup: Lookup, strategy: Any) -> ActivationStrategy | int | str | None:
    """Resolve the ``activationStrategy`` option of a fingers-crossed handler.

    Accepts None, a level, a strategy instance, the name of a strategy
    service, or a ``{type, options}`` block.

    Raises:
        ConfigurationTypeError: If nothing matches the configured value
    """
    if strategy is None or isinstance(strategy, ActivationStrategy):
        return strategy

    if isinstance(strategy, int) and not isinstance(strategy, bool):
        return strategy

    manager = get_manager(lookup, ACTIVATION_STRATEGY_MANAGER)

    if isinstance(strategy, Mapping):
        return resolve_block(strategy, manager, kind="ActivationStrategy")

    if isinstance(strategy, str):
        if manager.has(strategy):
            return lookup_service(manager, strategy, role="ActivationStrategy", options={})
        if is_level(strategy):
            return strategy

    msg = "Could not find Class for ActivationStrategy"
    raise ConfigurationTypeError(msg)


# Constructors


def _prepare_path(filename: str | os.PathLike) -> Path:
    path = Path(filename)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def create_stream_handler(
        stream: Any,
        mode: str = "a",
        encoding: str | None = "utf-8",
        delay: bool = False
) -> logging.StreamHandler:
    """Create a handler writing to a stream, or to a file for path values."""
    if isinstance(stream, (str, os.PathLike)):
        return logging.FileHandler(_prepare_path(stream), mode=mode, encoding=encoding, delay=delay)
    return logging.StreamHandler(stream)


def create_rotating_file_handler(
        filename: str | os.PathLike,
        mode: str = "a",
        max_bytes: int = 10 * 1024 * 1024,  # 10MB
        backup_count: int = 5,
        encoding: str | None = "utf-8",
        delay: bool = False
) -> logging.handlers.RotatingFileHandler:
    """Create a size-based rotating file handler."""
    return logging.handlers.RotatingFileHandler(
        filename=_prepare_path(filename),
        mode=mode,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding=encoding,
        delay=delay,
    )


def create_timed_rotating_file_handler(
        filename: str | os.PathLike,
        when: str = "midnight",
        interval: int = 1,
        backup_count: int = 14,
        encoding: str | None = "utf-8",
        delay: bool = True,
        utc: bool = False
) -> logging.handlers.TimedRotatingFileHandler:
    """Create a time-based rotating file handler.

    Raises:
        ValueError: If ``when`` is not a valid rotation interval
    """
    return logging.handlers.TimedRotatingFileHandler(
        _prepare_path(filename),
        when=when,
        interval=interval,
        backupCount=backup_count,
        encoding=encoding,
        delay=delay,
        utc=utc,
    )


def create_syslog_handler(
        address: str | Sequence[Any] = ("localhost", logging.handlers.SYSLOG_UDP_PORT),
        facility: str | int = "user",
        socktype: str = "udp"
) -> logging.handlers.SysLogHandler:
    """Create a syslog handler.

    Args:
        address:    Unix socket path, or a ``(host, port)`` pair
        facility:   Facility name (e.g. "local0") or number
        socktype:   "udp" or "tcp", ignored for unix sockets

    Raises:
        ValueError: If the facility or socket type is unknown
        OSError:    If the socket cannot be opened
    """
    if isinstance(facility, str):
        if facility.lower() not in logging.handlers.SysLogHandler.facility_names:
            msg = f"Unknown syslog facility: {facility!r}"
            raise ValueError(msg)
        facility = logging.handlers.SysLogHandler.facility_names[facility.lower()]

    if socktype not in _SOCKET_TYPES:
        msg = f"Unknown socket type: {socktype!r}. Must be one of: {', '.join(sorted(_SOCKET_TYPES))}"
        raise ValueError(msg)

    if not isinstance(address, str):
        host, port = address
        address = (host, int(port))

    return logging.handlers.SysLogHandler(
        address=address,
        facility=facility,
        socktype=_SOCKET_TYPES[socktype],
    )


def create_socket_handler(connection_string: str) -> logging.handlers.SocketHandler:
    """Create a socket handler from ``tcp://host:port`` or ``udp://host:port``.

    Raises:
        ValueError: If the connection string is malformed
    """
    if not isinstance(connection_string, str):
        msg = "The connection string must be a string"
        raise TypeError(msg)

    parts = urlsplit(connection_string)
    if parts.scheme not in _SOCKET_TYPES or not parts.hostname or parts.port is None:
        msg = f"Invalid connection string: {connection_string!r}"
        raise ValueError(msg)

    if parts.scheme == "udp":
        return logging.handlers.DatagramHandler(parts.hostname, parts.port)
    return logging.handlers.SocketHandler(parts.hostname, parts.port)


def create_smtp_handler(
        fromaddr: str,
        toaddrs: str | Sequence[str],
        subject: str,
        mailhost: str | Sequence[Any] = "localhost",
        credentials: Sequence[str] | None = None,
        secure: bool = False,
        timeout: float = 5.0
) -> logging.handlers.SMTPHandler:
    """Create a handler sending one mail per record."""
    if isinstance(toaddrs, str):
        toaddrs = [toaddrs]
    if not isinstance(mailhost, str):
        host, port = mailhost
        mailhost = (host, int(port))

    return logging.handlers.SMTPHandler(
        mailhost=mailhost,
        fromaddr=fromaddr,
        toaddrs=list(toaddrs),
        subject=subject,
        credentials=tuple(credentials) if credentials else None,
        secure=() if secure else None,
        timeout=timeout,
    )


def create_http_handler(
        url: str,
        method: str = "POST",
        credentials: Sequence[str] | None = None
) -> logging.handlers.HTTPHandler:
    """Create a handler posting each record to a URL.

    Raises:
        ValueError: If the URL scheme or the method is not supported
    """
    parts = urlsplit(url)
    if parts.scheme not in {"http", "https"} or not parts.netloc:
        msg = f"Unsupported URL: {url!r}"
        raise ValueError(msg)

    path = parts.path or "/"
    if parts.query:
        path = f"{path}?{parts.query}"

    return logging.handlers.HTTPHandler(
        host=parts.netloc,
        url=path,
        method=method.upper(),
        secure=parts.scheme == "https",
        credentials=tuple(credentials) if credentials else None,
    )


def create_queue_handler(queue: Any) -> logging.handlers.QueueHandler:
    """Create a handler putting records on a queue.

    Raises:
        TypeError: If the queue does not provide ``put_nowait``
    """
    if not callable(getattr(queue, "put_nowait", None)):
        msg = f"Expected a queue providing put_nowait, got {type(queue).__name__}"
        raise TypeError(msg)
    return logging.handlers.QueueHandler(queue)


# Handler kinds


StreamHandlerFactory = handler_binder(
    "StreamHandler",
    create_stream_handler,
    slots=(Slot("stream", resolve_stream, required="The required stream is missing"),),
    options=(
        Option("mode", "a"),
        Option("encoding", "utf-8"),
        Option("delay", False, convert=to_bool),
    ),
)

RotatingFileHandlerFactory = handler_binder(
    "RotatingFileHandler",
    create_rotating_file_handler,
    slots=(required("filename", "The required filename is missing"),),
    options=(
        Option("mode", "a"),
        Option("maxBytes", 10 * 1024 * 1024, argument="max_bytes"),
        Option("backupCount", 5, argument="backup_count"),
        Option("encoding", "utf-8"),
        Option("delay", False, convert=to_bool),
    ),
)

TimedRotatingFileHandlerFactory = handler_binder(
    "TimedRotatingFileHandler",
    create_timed_rotating_file_handler,
    slots=(required("filename", "The required filename is missing"),),
    options=(
        Option("when", "midnight"),
        Option("interval", 1),
        Option("backupCount", 14, argument="backup_count"),
        Option("encoding", "utf-8"),
        Option("delay", True, convert=to_bool),
        Option("utc", False, convert=to_bool),
    ),
)

SyslogHandlerFactory = handler_binder(
    "SysLogHandler",
    create_syslog_handler,
    options=(
        Option("address", ("localhost", logging.handlers.SYSLOG_UDP_PORT)),
        Option("facility", "user"),
        Option("socktype", "udp"),
    ),
)

SocketHandlerFactory = handler_binder(
    "SocketHandler",
    create_socket_handler,
    slots=(required("connectionString", "No connectionString provided", argument="connection_string"),),
)

SmtpHandlerFactory = handler_binder(
    "SMTPHandler",
    create_smtp_handler,
    slots=(
        required("from", "No sender provided", argument="fromaddr"),
        required("to", "No recipients provided", argument="toaddrs"),
        required("subject", "No subject provided"),
    ),
    options=(
        Option("mailhost", "localhost"),
        Option("credentials"),
        Option("secure", False, convert=to_bool),
        Option("timeout", 5.0),
    ),
)

HttpHandlerFactory = handler_binder(
    "HTTPHandler",
    create_http_handler,
    slots=(required("url", "No url provided"),),
    options=(
        Option("method", "POST"),
        Option("credentials"),
    ),
)

QueueHandlerFactory = handler_binder(
    "QueueHandler",
    create_queue_handler,
    slots=(Slot("queue", resolve_queue, required="No queue provided"),),
)

LoggerHandlerFactory = handler_binder(
    "LoggerHandler",
    LoggerHandler,
    slots=(Slot("logger", resolve_logger, required="No Service name provided for the required logger class"),),
)

NullHandlerFactory = handler_binder("NullHandler", logging.NullHandler)

CollectingHandlerFactory = handler_binder("CollectingHandler", CollectingHandler)

BufferHandlerFactory = handler_binder(
    "BufferHandler",
    BufferHandler,
    slots=(Slot("handler", get_handler, argument="target", required="No handler provided"),),
    options=(
        Option("capacity", 100),
        Option("flushLevel", logging.ERROR, convert=normalize_level, argument="flushLevel"),
        Option("flushOnClose", True, convert=to_bool, argument="flushOnClose"),
    ),
)

FilterHandlerFactory = handler_binder(
    "FilterHandler",
    FilterHandler,
    slots=(HANDLER_SLOT,),
    options=(
        Option("minLevelOrList", LOWEST_LEVEL, argument="min_level_or_list"),
        Option("maxLevel", HIGHEST_LEVEL, argument="max_level"),
    ),
)

FingersCrossedHandlerFactory = handler_binder(
    "FingersCrossedHandler",
    FingersCrossedHandler,
    slots=(
        HANDLER_SLOT,
        Slot("activationStrategy", resolve_activation_strategy, argument="activation_strategy"),
    ),
    options=(
        Option("bufferSize", 0, argument="buffer_size"),
        Option("stopBuffering", True, convert=to_bool, argument="stop_buffering"),
        Option("passthruLevel", argument="passthru_level"),
    ),
)

SamplingHandlerFactory = handler_binder(
    "SamplingHandler",
    SamplingHandler,
    slots=(
        HANDLER_SLOT,
        required("factor", "Factor is missing or is less then 1"),
    ),
)

GroupHandlerFactory = handler_binder(
    "GroupHandler",
    GroupHandler,
    slots=(Slot("handlers", get_handlers, required="No Service names provided for the required handler classes"),),
)

FallbackGroupHandlerFactory = handler_binder(
    "FallbackGroupHandler",
    FallbackGroupHandler,
    slots=(Slot("handlers", get_handlers, required="No Service names provided for the required handler classes"),),
)

WhatFailureGroupHandlerFactory = handler_binder(
    "WhatFailureGroupHandler",
    WhatFailureGroupHandler,
    slots=(Slot("handlers", get_handlers, required="No Service names provided for the required handler classes"),),
)

DeduplicationHandlerFactory = handler_binder(
    "DeduplicationHandler",
    DeduplicationHandler,
    slots=(HANDLER_SLOT,),
    options=(
        Option("deduplicationStore", argument="deduplication_store"),
        Option("deduplicationLevel", logging.ERROR, convert=normalize_level, argument="deduplication_level"),
        Option("time", 60, argument="window"),
    ),
)

OverflowHandlerFactory = handler_binder(
    "OverflowHandler",
    OverflowHandler,
    slots=(HANDLER_SLOT,),
    options=(Option("thresholdMap", argument="threshold_map"),),
)
