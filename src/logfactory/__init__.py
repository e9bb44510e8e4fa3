"""Configuration-driven factories for standard library and structlog logging.

This package turns plain configuration mappings into fully wired logging
objects: handlers, formatters, processors, activation strategies and channel
loggers. Nested collaborators are referenced by instance, by service name or
by an inline ``{type, enabled, options}`` block, and resolved through an
injected lookup.

Key Features:
    - One validation, resolution and construction pipeline for every kind
    - Nested handlers (filter, buffer, fingers-crossed, sampling, group,
      fallback group, deduplication, overflow)
    - PSR-3 level names accepted next to the standard library ones
    - structlog processors attached to handlers and loggers
    - structlog-based JSON, console, logfmt and key-value formatters
    - TOML configuration with one ``[log.<name>]`` table per channel
    - Precise exception hierarchy for configuration mistakes

Basic Usage:
    ```python
    from logfactory import configure_container, get_logger

    container = configure_container("config/logging.toml").build()
    logger = get_logger(container, "app")
    logger.info("Logging configured", channel="app")
    ```

Configuration:
    ```toml
    [log.app]
    timezone = "UTC"
    processors = ["hostname", { type = "uid", options = { length = 12 } }]

    [[log.app.handlers]]
    type = "fingerscrossed"
    options = { activationStrategy = "error", handler = { type = "stream", options = { stream = "ext://sys.stderr", formatter = { type = "console" } } } }

    [[log.app.handlers]]
    type = "rotating"
    options = { filename = "logs/app.log", level = "notice", formatter = { type = "json" } }
    ```

Building single objects:
    ```python
    from logfactory import configure_container
    from logfactory.lookup import HANDLER_MANAGER

    container = configure_container().build()
    handlers = container.get(HANDLER_MANAGER)
    handler = handlers.get("filter", {"handler": {"type": "null"}, "minLevelOrList": "warning"})
    ```

Implementation Notes:
    - Handlers configured for a channel are stacked: the last one runs first
    - Processors are stacked too: the last configured processor runs first
    - A disabled nested handler raises where exactly one handler is needed
      and is skipped in collections
    - Binders cache nothing; every call constructs new objects
"""

from .config import ConfigProvider, load_config
from .errors import (
    ConfigurationError,
    ConfigurationTypeError,
    ConstructionError,
    DependencyResolutionError,
    LoggerFactoryError,
    MissingRequiredOptionError,
    MissingTypeError,
    NoActiveDependencyError,
)
from .factory import ContainerBuilder, configure_container, get_logger
from .loggers import ChannelLogger

__all__ = [
    "ChannelLogger",
    "ConfigProvider",
    "ConfigurationError",
    "ConfigurationTypeError",
    "ConstructionError",
    "ContainerBuilder",
    "DependencyResolutionError",
    "LoggerFactoryError",
    "MissingRequiredOptionError",
    "MissingTypeError",
    "NoActiveDependencyError",
    "configure_container",
    "get_logger",
    "load_config",
]
