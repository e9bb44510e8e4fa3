"""Handler classes the standard library does not ship.

These cover the wrapping and grouping behaviour many logging configurations
rely on: level filtering around another handler, fan-out to several handlers
(all of them, the first that works, or all while ignoring failures),
buffering until an activation level is reached, deduplication, overflow
thresholds and sampling. Every handler here carries a ``bubble`` flag that
``ChannelLogger`` honours when dispatching records.
"""

import json
import logging
import logging.handlers
import os
import random
import sys
import time
from collections import deque
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path

from .activation import ActivationStrategy, ErrorLevelActivationStrategy
from .log_levels import HIGHEST_LEVEL, LOWEST_LEVEL, normalize_level


class WrapperHandler(logging.Handler):
    """Base class for handlers that forward records to another handler.

    Formatters set on the wrapper are passed down to the wrapped handler,
    since the wrapper itself never formats anything.

    Attributes:
        handler:    Wrapped handler receiving the forwarded records
        bubble:     Whether records continue to the next handler of a logger
    """

    bubble: bool = True

    def __init__(self, handler: logging.Handler) -> None:
        super().__init__()
        self.handler = handler

    def forward(self, record: logging.LogRecord) -> None:
        """Pass ``record`` to the wrapped handler if its level accepts it."""
        if record.levelno >= self.handler.level:
            self.handler.handle(record)

    def setFormatter(self, fmt: logging.Formatter | None) -> None:
        super().setFormatter(fmt)
        self.handler.setFormatter(fmt)

    def flush(self) -> None:
        self.handler.flush()

    def close(self) -> None:
        self.handler.close()
        super().close()


class FilterHandler(WrapperHandler):
    """Forward only records whose level is accepted.

    Accepted levels are either an explicit list or an inclusive range.
    """

    def __init__(
            self,
            handler: logging.Handler,
            min_level_or_list: int | str | Iterable[int | str] = LOWEST_LEVEL,
            max_level: int | str = HIGHEST_LEVEL
    ) -> None:
        super().__init__(handler)
        self._accepted_levels: frozenset[int] = frozenset()
        self._level_range: tuple[int, int] | None = None
        self.set_accepted_levels(min_level_or_list, max_level)

    @property
    def accepted_levels(self) -> frozenset[int] | tuple[int, int]:
        """Explicit accepted levels, or the inclusive ``(min, max)`` range."""
        return self._level_range if self._level_range is not None else self._accepted_levels

    def set_accepted_levels(
            self,
            min_level_or_list: int | str | Iterable[int | str] = LOWEST_LEVEL,
            max_level: int | str = HIGHEST_LEVEL
    ) -> None:
        """Configure the accepted levels.

        Args:
            min_level_or_list:  Minimum level, or an explicit list of levels
            max_level:          Maximum level, ignored when a list is given

        Raises:
            ValueError: If a level name is unknown
            TypeError:  If a level has an unsupported type
        """
        if isinstance(min_level_or_list, (int, str)):
            self._level_range = (normalize_level(min_level_or_list), normalize_level(max_level))
            self._accepted_levels = frozenset()
            return

        self._accepted_levels = frozenset(normalize_level(level) for level in min_level_or_list)
        self._level_range = None

    def is_accepted(self, levelno: int) -> bool:
        if self._level_range is not None:
            low, high = self._level_range
            return low <= levelno <= high
        return levelno in self._accepted_levels

    def emit(self, record: logging.LogRecord) -> None:
        if self.is_accepted(record.levelno):
            self.forward(record)


class GroupHandler(logging.Handler):
    """Forward every record to a group of handlers."""

    bubble: bool = True

    def __init__(self, handlers: Sequence[logging.Handler]) -> None:
        super().__init__()
        self.handlers = list(handlers)

    def setFormatter(self, fmt: logging.Formatter | None) -> None:
        super().setFormatter(fmt)
        for handler in self.handlers:
            handler.setFormatter(fmt)

    def emit(self, record: logging.LogRecord) -> None:
        for handler in self.handlers:
            if record.levelno >= handler.level:
                handler.handle(record)

    def flush(self) -> None:
        for handler in self.handlers:
            handler.flush()

    def close(self) -> None:
        for handler in self.handlers:
            handler.close()
        super().close()


def _reraise(record: logging.LogRecord) -> None:
    error = sys.exc_info()[1]
    if error is None:
        msg = f"Handler failed to emit record {record.getMessage()!r}"
        raise RuntimeError(msg)
    raise error


def deliver(handler: logging.Handler, record: logging.LogRecord) -> bool:
    """Let ``handler`` emit ``record`` and raise what it would otherwise report.

    Standard library handlers catch their own errors in ``emit`` and pass
    them to ``handleError``. While the handler lock is held, ``handleError``
    is replaced so those errors reach the caller instead.

    Returns:
        False if the handler's level or filters rejected the record
    """
    if record.levelno < handler.level:
        return False

    filtered = handler.filter(record)
    if not filtered:
        return False
    if isinstance(filtered, logging.LogRecord):
        record = filtered

    handler.acquire()
    try:
        previous = vars(handler).get("handleError")
        handler.handleError = _reraise
        try:
            handler.emit(record)
        finally:
            if previous is None:
                del handler.handleError
            else:
                handler.handleError = previous
    finally:
        handler.release()
    return True


class FallbackGroupHandler(GroupHandler):
    """Forward each record to the first handler able to emit it.

    Handlers are tried in order. A handler that raises is skipped in favour
    of the next one; handlers whose level rejects the record are passed
    over. When every handler fails, the last error goes to ``handleError``.
    """

    def emit(self, record: logging.LogRecord) -> None:
        last = len(self.handlers) - 1
        for index, handler in enumerate(self.handlers):
            try:
                if deliver(handler, record):
                    return
            except Exception:
                if index == last:
                    self.handleError(record)


class WhatFailureGroupHandler(GroupHandler):
    """Forward every record to a group of handlers, ignoring their failures."""

    def emit(self, record: logging.LogRecord) -> None:
        for handler in self.handlers:
            try:
                deliver(handler, record)
            except Exception:
                continue


class DeduplicationHandler(WrapperHandler):
    """Buffer records and drop batches whose important records were already sent.

    On flush, the buffer is forwarded only if it holds a record at or above
    ``deduplication_level`` whose level and message were not forwarded in
    the last ``window`` seconds; otherwise the whole buffer is discarded.
    Forwarded messages are remembered in memory, or in the file
    ``deduplication_store`` so separate processes share them.

    Attributes:
        deduplication_store:    JSON lines file of forwarded messages, or None
        deduplication_level:    Records at or above this level are deduplicated
        window:                 Seconds during which a message counts as sent
    """

    def __init__(
            self,
            handler: logging.Handler,
            deduplication_store: str | os.PathLike | None = None,
            deduplication_level: int | str = logging.ERROR,
            window: float = 60
    ) -> None:
        if window < 0:
            msg = "The deduplication time must not be negative"
            raise ValueError(msg)

        super().__init__(handler)
        self.deduplication_store = None if deduplication_store is None else Path(deduplication_store)
        self.deduplication_level = normalize_level(deduplication_level)
        self.window = window
        self._buffer: list[logging.LogRecord] = []
        self._sent: list[tuple[float, int, str]] = []

    @property
    def buffered_records(self) -> tuple[logging.LogRecord, ...]:
        return tuple(self._buffer)

    def emit(self, record: logging.LogRecord) -> None:
        self._buffer.append(record)

    def flush(self) -> None:
        records, self._buffer = self._buffer, []
        important = [record for record in records if record.levelno >= self.deduplication_level]

        if important:
            now = time.time()
            sent = [entry for entry in self._load_sent() if entry[0] + self.window > now]
            seen = {(levelno, message) for _, levelno, message in sent}
            fresh = [record for record in important if (record.levelno, record.getMessage()) not in seen]

            if fresh:
                for record in records:
                    self.forward(record)
                sent.extend((record.created, record.levelno, record.getMessage()) for record in fresh)
                self._save_sent(sent)

        super().flush()

    def close(self) -> None:
        self.flush()
        super().close()

    def _load_sent(self) -> list[tuple[float, int, str]]:
        if self.deduplication_store is None:
            return list(self._sent)
        if not self.deduplication_store.exists():
            return []

        with self.deduplication_store.open(encoding="utf-8") as f:
            return [tuple(json.loads(line)) for line in f if line.strip()]

    def _save_sent(self, sent: list[tuple[float, int, str]]) -> None:
        if self.deduplication_store is None:
            self._sent = sent
            return

        self.deduplication_store.parent.mkdir(parents=True, exist_ok=True)
        with self.deduplication_store.open("w", encoding="utf-8") as f:
            f.writelines(json.dumps(list(entry)) + "\n" for entry in sent)


class OverflowHandler(WrapperHandler):
    """Hold records back until a level sees more than its threshold.

    The first ``threshold`` records of a level are buffered. The next one
    releases the buffered records of that level together with itself, and
    later records of the level pass straight through. Levels missing from
    the map pass straight through.

    Attributes:
        threshold_map:  Number of records held back, per level
    """

    def __init__(self, handler: logging.Handler, threshold_map: Mapping[int | str, int] | None = None) -> None:
        if threshold_map is not None and not isinstance(threshold_map, Mapping):
            msg = "The threshold map must map levels to integers"
            raise TypeError(msg)

        super().__init__(handler)
        self.threshold_map: dict[int, int] = {}
        for level, threshold in (threshold_map or {}).items():
            if isinstance(threshold, bool) or not isinstance(threshold, int) or threshold < 0:
                msg = f"Threshold for level {level!r} must be a non-negative integer"
                raise ValueError(msg)
            self.threshold_map[normalize_level(level)] = threshold
        self._remaining = dict(self.threshold_map)
        self._buffers: dict[int, list[logging.LogRecord]] = {}

    def emit(self, record: logging.LogRecord) -> None:
        remaining = self._remaining.get(record.levelno, 0)

        if remaining > 0:
            self._remaining[record.levelno] = remaining - 1
            self._buffers.setdefault(record.levelno, []).append(record)
            return

        for buffered in self._buffers.pop(record.levelno, ()):
            self.forward(buffered)
        self.forward(record)

    def reset(self) -> None:
        """Drop held records and restore the thresholds."""
        self._remaining = dict(self.threshold_map)
        self._buffers.clear()


class FingersCrossedHandler(WrapperHandler):
    """Buffer records until one of them activates the handler.

    Once activated, the buffer is flushed to the wrapped handler. With
    ``stop_buffering`` enabled, later records pass straight through;
    otherwise buffering resumes after each flush.

    Attributes:
        activation_strategy:    Decides which record activates the handler
        buffer_size:            Maximum buffered records, 0 for unlimited
        stop_buffering:         Pass records through after activation
        passthru_level:         On close, records at or above this level are
                                flushed even if the handler never activated
    """

    def __init__(
            self,
            handler: logging.Handler,
            activation_strategy: ActivationStrategy | int | str | None = None,
            buffer_size: int = 0,
            stop_buffering: bool = True,
            passthru_level: int | str | None = None
    ) -> None:
        super().__init__(handler)
        if activation_strategy is None:
            activation_strategy = ErrorLevelActivationStrategy(logging.WARNING)
        elif isinstance(activation_strategy, (int, str)):
            activation_strategy = ErrorLevelActivationStrategy(activation_strategy)

        if buffer_size < 0:
            msg = "buffer_size must be a non-negative integer"
            raise ValueError(msg)

        self.activation_strategy = activation_strategy
        self.buffer_size = buffer_size
        self.stop_buffering = stop_buffering
        self.passthru_level = None if passthru_level is None else normalize_level(passthru_level)
        self._buffer: deque[logging.LogRecord] = deque(maxlen=buffer_size or None)
        self._buffering = True

    @property
    def buffered_records(self) -> tuple[logging.LogRecord, ...]:
        return tuple(self._buffer)

    def emit(self, record: logging.LogRecord) -> None:
        if not self._buffering:
            self.forward(record)
            return

        self._buffer.append(record)
        if self.activation_strategy.is_handler_activated(record):
            self.activate()

    def activate(self) -> None:
        """Flush the buffer to the wrapped handler."""
        if self.stop_buffering:
            self._buffering = False

        records = list(self._buffer)
        self._buffer.clear()
        for record in records:
            self.forward(record)

    def clear(self) -> None:
        """Drop buffered records and resume buffering."""
        self._buffer.clear()
        self._buffering = True

    def close(self) -> None:
        if self.passthru_level is not None and self._buffer:
            for record in list(self._buffer):
                if record.levelno >= self.passthru_level:
                    self.forward(record)
        self._buffer.clear()
        super().close()


class SamplingHandler(WrapperHandler):
    """Forward roughly one record out of every ``factor``."""

    def __init__(self, handler: logging.Handler, factor: int) -> None:
        if factor < 1:
            msg = "Factor is missing or is less then 1"
            raise ValueError(msg)
        super().__init__(handler)
        self.factor = factor

    def emit(self, record: logging.LogRecord) -> None:
        if random.randint(1, self.factor) == 1:
            self.forward(record)


class LoggerHandler(logging.Handler):
    """Forward records to another logger."""

    bubble: bool = True

    def __init__(self, logger: logging.Logger) -> None:
        if not isinstance(logger, logging.Logger):
            msg = f"Expected a logging.Logger, got {type(logger).__name__}"
            raise TypeError(msg)
        super().__init__()
        self.logger = logger

    def emit(self, record: logging.LogRecord) -> None:
        if self.logger.isEnabledFor(record.levelno):
            self.logger.handle(record)


class BufferHandler(logging.handlers.MemoryHandler):
    """Memory handler that passes formatters down to its target."""

    bubble: bool = True

    def setFormatter(self, fmt: logging.Formatter | None) -> None:
        super().setFormatter(fmt)
        if self.target is not None:
            self.target.setFormatter(fmt)


class CollectingHandler(logging.Handler):
    """Keep every handled record in memory.

    Attributes:
        records:    Handled records in arrival order
        messages:   Formatted output for each record
    """

    bubble: bool = True

    def __init__(self) -> None:
        super().__init__()
        self.records: list[logging.LogRecord] = []
        self.messages: list[str] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)
        self.messages.append(self.format(record))

    def has_record(self, message: str, level: int | str | None = None) -> bool:
        """Check whether a record with the given message was handled.

        Args:
            message:    Rendered message to look for
            level:      Optional level the record must have

        Returns:
            True if a matching record was handled
        """
        levelno = None if level is None else normalize_level(level)
        return any(
            record.getMessage() == message and (levelno is None or record.levelno == levelno)
            for record in self.records
        )

    def clear(self) -> None:
        self.records.clear()
        self.messages.clear()
