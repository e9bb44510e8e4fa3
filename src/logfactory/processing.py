"""Handler- and logger-level structlog processors.

Standard library handlers and loggers only know filters. ``ProcessorStack`` is
a filter that runs a stack of structlog processors over each record, so any
``logging.Filterer`` can carry processors. The stack is LIFO: the most
recently pushed processor runs first.

Each record is copied before processing, so processors attached to one
handler never leak into the records seen by its siblings.
"""

import copy
import logging
from typing import Any

import structlog
from structlog.types import EventDict, Processor

# LogRecord attributes that processors must not overwrite
_PROTECTED_RECORD_ATTRS = frozenset({
    "args",
    "created",
    "exc_info",
    "exc_text",
    "levelname",
    "levelno",
    "message",
    "msecs",
    "msg",
    "name",
    "relativeCreated",
    "stack_info",
})

# Attributes every LogRecord carries, used to tell extras apart
_BUILTIN_RECORD_ATTRS = frozenset(
    logging.LogRecord("", logging.NOTSET, "", 0, "", (), None).__dict__
) | {"message", "asctime"}


class ProcessorStack(logging.Filter):
    """Filter running a LIFO stack of structlog processors.

    The event dict handed to the processors holds the rendered message under
    ``event``, every extra attribute of the record, and the record itself
    under ``_record`` so stdlib-aware processors such as
    ``CallsiteParameterAdder`` can read call-site information.
    """

    def __init__(self) -> None:
        super().__init__()
        self._processors: list[Processor] = []

    @property
    def processors(self) -> tuple[Processor, ...]:
        """Processors in execution order."""
        return tuple(self._processors)

    def push(self, processor: Processor) -> None:
        self._processors.insert(0, processor)

    def pop(self) -> Processor:
        """Remove and return the processor that would run first.

        Raises:
            IndexError: If the stack is empty
        """
        if not self._processors:
            msg = "You tried to pop from an empty processor stack."
            raise IndexError(msg)
        return self._processors.pop(0)

    def filter(self, record: logging.LogRecord) -> logging.LogRecord | bool:
        if not self._processors:
            return True

        message = record.getMessage()
        event_dict: EventDict = {
            **_record_extras(record),
            "event": message,
            "_record": record,
            "_from_structlog": False,
        }

        try:
            for processor in self._processors:
                event_dict = processor(None, record.levelname.lower(), event_dict)
        except structlog.DropEvent:
            return False

        processed = copy.copy(record)
        event = event_dict.pop("event", message)
        if event != message:
            processed.msg = event
            processed.args = ()

        for key, value in event_dict.items():
            if key.startswith("_") or key in _PROTECTED_RECORD_ATTRS:
                continue
            setattr(processed, key, value)

        return processed


def _record_extras(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value for key, value in record.__dict__.items()
        if key not in _BUILTIN_RECORD_ATTRS
    }


def get_processor_stack(target: logging.Filterer) -> ProcessorStack:
    """Return the processor stack of a handler or logger, installing one if needed.

    Args:
        target: Handler or logger carrying the stack

    Returns:
        The ProcessorStack filter attached to ``target``
    """
    for existing in target.filters:
        if isinstance(existing, ProcessorStack):
            return existing

    stack = ProcessorStack()
    target.addFilter(stack)
    return stack


def push_processor(target: logging.Filterer, processor: Processor) -> None:
    """Push a processor onto the stack of a handler or logger.

    Args:
        target:     Handler or logger receiving the processor
        processor:  Structlog processor; it runs before every processor
                    pushed earlier
    """
    get_processor_stack(target).push(processor)


def get_processors(target: logging.Filterer) -> tuple[Processor, ...]:
    """Return the processors attached to ``target`` in execution order."""
    for existing in target.filters:
        if isinstance(existing, ProcessorStack):
            return existing.processors
    return ()
