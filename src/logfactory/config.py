"""Configuration loading and plugin manager registration.

``load_config`` reads the application configuration from a TOML file, in
which every ``[log.<name>]`` table describes one channel logger.
``ConfigProvider`` describes which factories the plugin managers hold and
under which aliases, so a host container can register them in one place.
"""

from pathlib import Path
from typing import Any

import tomllib

from . import formatters, handler_factories, processors
from .activation import ChannelLevelActivationStrategyFactory, ErrorLevelActivationStrategyFactory
from .loggers import CHANNEL_LOGGER, ChannelLoggerFactory, LoggerFactory
from .lookup import (
    ACTIVATION_STRATEGY_MANAGER,
    FORMATTER_MANAGER,
    HANDLER_MANAGER,
    LOGGER_MANAGER,
    PROCESSOR_MANAGER,
)

PluginConfig = dict[str, dict[str, Any]]


class ConfigProvider:
    """Plugin manager configuration for every family of logging objects.

    Each ``get_*_config`` method returns a mapping with ``factories`` keyed by
    canonical name and ``aliases`` mapping short names to canonical names.
    """

    def __call__(self) -> dict[str, Any]:
        """Return the complete configuration, keyed by service name.

        Returns:
            Mapping with the plugin manager configurations and the abstract
            factories a container should register
        """
        return {
            "plugin_managers": {
                HANDLER_MANAGER: self.get_handler_config(),
                FORMATTER_MANAGER: self.get_formatter_config(),
                PROCESSOR_MANAGER: self.get_processor_config(),
                ACTIVATION_STRATEGY_MANAGER: self.get_activation_strategy_config(),
                LOGGER_MANAGER: self.get_logger_config(),
            },
            "abstract_factories": [LoggerFactory()],
        }

    def get_handler_config(self) -> PluginConfig:
        return {
            "factories": {
                "StreamHandler": handler_factories.StreamHandlerFactory,
                "RotatingFileHandler": handler_factories.RotatingFileHandlerFactory,
                "TimedRotatingFileHandler": handler_factories.TimedRotatingFileHandlerFactory,
                "SysLogHandler": handler_factories.SyslogHandlerFactory,
                "SocketHandler": handler_factories.SocketHandlerFactory,
                "SMTPHandler": handler_factories.SmtpHandlerFactory,
                "HTTPHandler": handler_factories.HttpHandlerFactory,
                "QueueHandler": handler_factories.QueueHandlerFactory,
                "LoggerHandler": handler_factories.LoggerHandlerFactory,
                "NullHandler": handler_factories.NullHandlerFactory,
                "CollectingHandler": handler_factories.CollectingHandlerFactory,
                "BufferHandler": handler_factories.BufferHandlerFactory,
                "FilterHandler": handler_factories.FilterHandlerFactory,
                "FingersCrossedHandler": handler_factories.FingersCrossedHandlerFactory,
                "SamplingHandler": handler_factories.SamplingHandlerFactory,
                "GroupHandler": handler_factories.GroupHandlerFactory,
                "FallbackGroupHandler": handler_factories.FallbackGroupHandlerFactory,
                "WhatFailureGroupHandler": handler_factories.WhatFailureGroupHandlerFactory,
                "DeduplicationHandler": handler_factories.DeduplicationHandlerFactory,
                "OverflowHandler": handler_factories.OverflowHandlerFactory,
            },
            "aliases": {
                "stream": "StreamHandler",
                "rotating": "RotatingFileHandler",
                "timedrotating": "TimedRotatingFileHandler",
                "syslog": "SysLogHandler",
                "socket": "SocketHandler",
                "smtp": "SMTPHandler",
                "http": "HTTPHandler",
                "queue": "QueueHandler",
                "logger": "LoggerHandler",
                "null": "NullHandler",
                "collecting": "CollectingHandler",
                "test": "CollectingHandler",
                "buffer": "BufferHandler",
                "filter": "FilterHandler",
                "fingerscrossed": "FingersCrossedHandler",
                "sampling": "SamplingHandler",
                "group": "GroupHandler",
                "fallbackgroup": "FallbackGroupHandler",
                "whatfailuregroup": "WhatFailureGroupHandler",
                "deduplication": "DeduplicationHandler",
                "overflow": "OverflowHandler",
            },
        }

    def get_formatter_config(self) -> PluginConfig:
        return {
            "factories": {
                "LineFormatter": formatters.LineFormatterFactory,
                "JsonFormatter": formatters.JsonFormatterFactory,
                "ConsoleFormatter": formatters.ConsoleFormatterFactory,
                "LogfmtFormatter": formatters.LogfmtFormatterFactory,
                "KeyValueFormatter": formatters.KeyValueFormatterFactory,
            },
            "aliases": {
                "line": "LineFormatter",
                "json": "JsonFormatter",
                "console": "ConsoleFormatter",
                "logfmt": "LogfmtFormatter",
                "keyvalue": "KeyValueFormatter",
            },
        }

    def get_processor_config(self) -> PluginConfig:
        return {
            "factories": {
                "HostnameProcessor": processors.HostnameProcessorFactory,
                "ProcessIdProcessor": processors.ProcessIdProcessorFactory,
                "UidProcessor": processors.UidProcessorFactory,
                "TagProcessor": processors.TagProcessorFactory,
                "IntrospectionProcessor": processors.IntrospectionProcessorFactory,
                "TimestampProcessor": processors.TimestampProcessorFactory,
                "PsrLogMessageProcessor": processors.PsrLogMessageProcessorFactory,
                "ContextVarsProcessor": processors.ContextVarsProcessorFactory,
                "MemoryUsageProcessor": processors.MemoryUsageProcessorFactory,
            },
            "aliases": {
                "hostname": "HostnameProcessor",
                "processid": "ProcessIdProcessor",
                "uid": "UidProcessor",
                "tags": "TagProcessor",
                "introspection": "IntrospectionProcessor",
                "timestamp": "TimestampProcessor",
                "psrlogmessage": "PsrLogMessageProcessor",
                "contextvars": "ContextVarsProcessor",
                "memoryusage": "MemoryUsageProcessor",
            },
        }

    def get_activation_strategy_config(self) -> PluginConfig:
        return {
            "factories": {
                "ErrorLevelActivationStrategy": ErrorLevelActivationStrategyFactory,
                "ChannelLevelActivationStrategy": ChannelLevelActivationStrategyFactory,
            },
            "aliases": {
                "errorlevel": "ErrorLevelActivationStrategy",
                "channellevel": "ChannelLevelActivationStrategy",
            },
        }

    def get_logger_config(self) -> PluginConfig:
        return {
            "factories": {
                "ChannelLogger": ChannelLoggerFactory(),
            },
            "aliases": {
                CHANNEL_LOGGER: "ChannelLogger",
            },
        }


def load_config(config_path: str | Path) -> dict[str, Any]:
    """Load the application configuration from a TOML file.

    Channel loggers are read from ``[log.<name>]`` tables, for example:

    ```toml
    [log.app]
    timezone = "Europe/Berlin"
    processors = [{ type = "uid", options = { length = 12 } }]

    [[log.app.handlers]]
    type = "stream"
    options = { stream = "ext://sys.stderr", level = "notice" }
    ```

    Args:
        config_path: Path to the TOML configuration file

    Returns:
        Parsed configuration dictionary, with an empty ``log`` table if the
        file defines none

    Raises:
        FileNotFoundError:  If the configuration file doesn't exist
        TOMLDecodeError:    If the TOML file is malformed
        ValueError:         If the ``log`` section is not made of tables
    """
    config_path = Path(config_path)
    try:
        with config_path.open("rb") as f:
            config_data = tomllib.load(f)

    except FileNotFoundError as e:
        msg = f"Configuration file not found: {config_path}"
        raise FileNotFoundError(msg) from e

    except tomllib.TOMLDecodeError as e:
        msg = f"Failed to parse TOML file {config_path}"
        raise tomllib.TOMLDecodeError(msg) from e

    log_config = config_data.setdefault("log", {})
    if not isinstance(log_config, dict):
        msg = f"Invalid value in configuration file: 'log' must be a table, got {type(log_config).__name__}"
        raise ValueError(msg)

    for name, channel in log_config.items():
        if not isinstance(channel, dict):
            msg = f"Invalid value in configuration file: 'log.{name}' must be a table"
            raise ValueError(msg)

    return config_data
