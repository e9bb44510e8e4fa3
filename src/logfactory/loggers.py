"""Channel loggers and the factories that build them from configuration."""

import logging
from collections.abc import Iterable, Mapping
from datetime import tzinfo
from typing import Any

import structlog
from structlog.stdlib import BoundLogger

from .binder import Binder, Option, Slot, add_processors, get_manager, lookup_service, resolve_handler
from .errors import ConfigurationTypeError, ConstructionError
from .log_levels import normalize_level
from .lookup import CONFIG, LOGGER_MANAGER, Lookup
from .processing import push_processor
from .processors import ZonedTimeStamper, to_timezone

CHANNEL_LOGGER = "channel"


class ChannelLogger(logging.Logger):
    """Logger owning its handlers, independent of the logging hierarchy.

    Handlers are kept on a stack: the most recently pushed handler sees a
    record first. Dispatch stops after a handler that accepted the record
    and has ``bubble`` set to False. Records never propagate to parents.
    """

    def __init__(self, name: str, level: int = logging.NOTSET) -> None:
        super().__init__(name, level)
        self.propagate = False

    def push_handler(self, handler: logging.Handler) -> None:
        """Put ``handler`` on top of the handler stack."""
        if handler not in self.handlers:
            self.handlers.insert(0, handler)

    def pop_handler(self) -> logging.Handler:
        """Remove and return the top handler.

        Raises:
            IndexError: If the logger has no handlers
        """
        if not self.handlers:
            msg = "You tried to pop from an empty handler stack."
            raise IndexError(msg)
        return self.handlers.pop(0)

    def callHandlers(self, record: logging.LogRecord) -> None:
        for handler in self.handlers:
            if record.levelno < handler.level:
                continue
            if handler.handle(record) and not getattr(handler, "bubble", True):
                break


def resolve_timezone(lookup: Lookup, timezone: Any) -> tzinfo | None:
    """Resolve the ``timezone`` option of a channel logger.

    Raises:
        ConstructionError: If the value is not a known timezone
    """
    if timezone is None:
        return None
    try:
        return to_timezone(timezone)
    except (TypeError, ValueError) as e:
        msg = "An invalid timezone was set"
        raise ConstructionError(msg) from e


def resolve_channel_handlers(lookup: Lookup, references: Any) -> list[logging.Handler]:
    """Resolve the handlers of a channel, skipping disabled ones.

    Raises:
        ConfigurationTypeError: If ``references`` is not iterable
    """
    if isinstance(references, (str, bytes, Mapping)) or not isinstance(references, Iterable):
        msg = "Handlers must be an Array"
        raise ConfigurationTypeError(msg)

    return [
        handler for reference in references
        if (handler := resolve_handler(lookup, reference)) is not None
    ]


def create_channel_logger(
        name: str,
        handlers: Iterable[logging.Handler] = (),
        timezone: tzinfo | None = None,
        level: int | str = logging.NOTSET
) -> ChannelLogger:
    """Create a channel logger with its handlers pushed in configured order.

    Args:
        name:       Channel name
        handlers:   Handlers, the last one ends up on top of the stack
        timezone:   Zone used for the ``timestamp`` key, if any
        level:      Logger level

    Returns:
        Configured ChannelLogger
    """
    if not isinstance(name, str) or not name:
        msg = "The logger name must be a non-empty string"
        raise ValueError(msg)

    logger = ChannelLogger(name)
    logger.setLevel(level)
    for handler in handlers:
        logger.push_handler(handler)
    if timezone is not None:
        push_processor(logger, ZonedTimeStamper(timezone))
    return logger


class ChannelLoggerFactory(Binder):
    """Build a ``ChannelLogger`` from ``name``, ``handlers``, ``processors`` and ``timezone``."""

    def __init__(self) -> None:
        super().__init__(
            "Logger",
            create_channel_logger,
            slots=(
                Slot("name", lambda lookup, name: name, required="The name for the logger is missing"),
                Slot("handlers", resolve_channel_handlers),
                Slot("timezone", resolve_timezone),
            ),
            options=(Option("level", logging.NOTSET, convert=normalize_level),),
        )

    def __call__(self, container: Lookup, requested_name: str, options: Mapping[str, Any] | None = None) -> ChannelLogger:
        logger = super().__call__(container, requested_name, options)
        add_processors(container, logger, options)
        return logger


class LoggerFactory:
    """Abstract factory serving every channel listed under ``config["log"]``.

    The channel is built through the logger plugin manager and returned
    wrapped in a structlog ``BoundLogger``.
    """

    def can_create(self, container: Lookup, requested_name: str) -> bool:
        return requested_name in self._get_log_config(container)

    def __call__(
            self,
            container: Lookup,
            requested_name: str,
            options: Mapping[str, Any] | None = None
    ) -> BoundLogger:
        """Build the logger configured under ``requested_name``.

        Args:
            container:      Lookup holding the configuration and plugin managers
            requested_name: Channel name, also used as the logger name by default
            options:        Overrides merged over the configured options

        Returns:
            BoundLogger wrapping the channel logger
        """
        channel_options = {
            "name": requested_name,
            **self._get_log_config(container).get(requested_name, {}),
            **(options or {}),
        }
        manager = get_manager(container, LOGGER_MANAGER)
        channel = lookup_service(manager, CHANNEL_LOGGER, role="logger", options=channel_options)

        return BoundLogger(
            channel,
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.StackInfoRenderer(),
                structlog.dev.set_exc_info,
                structlog.stdlib.render_to_log_kwargs,
            ],
            context={},
        )

    @staticmethod
    def _get_log_config(container: Lookup) -> Mapping[str, Any]:
        if not container.has(CONFIG):
            return {}
        config = container.get(CONFIG)
        if not isinstance(config, Mapping):
            return {}
        log_config = config.get("log", {})
        return log_config if isinstance(log_config, Mapping) else {}
