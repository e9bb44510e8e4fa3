"""Factory module for assembling a container of logging factories.

This module provides the main entry point of the package: a fluent builder
producing a ``Container`` whose plugin managers hold every handler,
formatter, processor, activation strategy and logger factory, and whose
configuration describes the channel loggers to build.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from structlog.stdlib import BoundLogger

from .binder import lookup_service
from .config import ConfigProvider, load_config
from .log import get_internal_logger
from .lookup import (
    ACTIVATION_STRATEGY_MANAGER,
    CONFIG,
    FORMATTER_MANAGER,
    HANDLER_MANAGER,
    PROCESSOR_MANAGER,
    Container,
    Factory,
    PluginManager,
)

logger = get_internal_logger(__name__)


@dataclass
class ContainerBuilder:
    """Builder for a logging container.

    Provides a fluent interface for registering shared services and custom
    plugins on top of the built-in ones before the container is created.

    Attributes:
        _config:    Application configuration, holding the ``log`` section
        _services:  Shared services, e.g. streams or queues referenced by name
        _plugins:   Custom factories and aliases per plugin manager
    """

    _config: Mapping[str, Any]
    _services: dict[str, Any] = field(default_factory=dict)
    _plugins: dict[str, list[tuple[str, Factory, tuple[str, ...]]]] = field(default_factory=dict)

    def with_service(self, name: str, service: Any) -> "ContainerBuilder":
        """Register a shared service that configurations can refer to by name.

        Args:
            name:       Service name
            service:    Service instance

        Returns:
            Self for method chaining
        """
        self._services[name] = service
        return self

    def with_handler(self, name: str, factory: Factory, aliases: Iterable[str] = ()) -> "ContainerBuilder":
        """Register a custom handler factory.

        Args:
            name:       Canonical name of the handler kind
            factory:    Callable ``(container, requested_name, options)``
            aliases:    Alternative names for the ``type`` key

        Returns:
            Self for method chaining
        """
        return self._with_plugin(HANDLER_MANAGER, name, factory, aliases)

    def with_formatter(self, name: str, factory: Factory, aliases: Iterable[str] = ()) -> "ContainerBuilder":
        """Register a custom formatter factory."""
        return self._with_plugin(FORMATTER_MANAGER, name, factory, aliases)

    def with_processor(self, name: str, factory: Factory, aliases: Iterable[str] = ()) -> "ContainerBuilder":
        """Register a custom processor factory."""
        return self._with_plugin(PROCESSOR_MANAGER, name, factory, aliases)

    def with_activation_strategy(
            self,
            name: str,
            factory: Factory,
            aliases: Iterable[str] = ()
    ) -> "ContainerBuilder":
        """Register a custom activation strategy factory."""
        return self._with_plugin(ACTIVATION_STRATEGY_MANAGER, name, factory, aliases)

    def build(self) -> Container:
        """Build the container.

        The build process:
        1. Registers the configuration and shared services
        2. Creates one plugin manager per family with the built-in factories
        3. Adds the custom factories registered on this builder
        4. Registers the abstract factory serving the configured channels

        Returns:
            Container resolving channel names to loggers
        """
        provided = ConfigProvider()()
        container = Container(services={CONFIG: self._config, **self._services})

        for manager_name, plugin_config in provided["plugin_managers"].items():
            manager = PluginManager.from_config(container, plugin_config)
            for name, factory, aliases in self._plugins.get(manager_name, ()):
                manager.register(name, factory, aliases)
            container.set_service(manager_name, manager)

        for abstract_factory in provided["abstract_factories"]:
            container.add_abstract_factory(abstract_factory)

        logger.debug(
            "Built logging container",
            channels=sorted(self._config.get("log", {})),
            services=sorted(self._services),
        )
        return container

    def _with_plugin(
            self,
            manager_name: str,
            name: str,
            factory: Factory,
            aliases: Iterable[str]
    ) -> "ContainerBuilder":
        self._plugins.setdefault(manager_name, []).append((name, factory, tuple(aliases)))
        return self


def configure_container(
        config_path: str | Path | None = None,
        config: Mapping[str, Any] | None = None
) -> ContainerBuilder:
    """Start building a logging container.

    If no configuration path is provided, the mapping ``config`` is used, or
    an empty configuration without any channel. The returned builder allows
    further customization before the container is built.

    Args:
        config_path:    Optional path to a TOML config file
        config:         Configuration mapping, used when no path is given

    Returns:
        ContainerBuilder instance for method chaining
    """
    if config_path is not None:
        config = load_config(config_path)

    return ContainerBuilder(config if config is not None else {"log": {}})


def get_logger(container: Container, name: str) -> BoundLogger:
    """Get the logger configured for a channel.

    Args:
        container:  Container built by ``ContainerBuilder``
        name:       Channel name, as in ``[log.<name>]``

    Returns:
        Configured BoundLogger instance

    Raises:
        DependencyResolutionError: If no channel is configured under ``name``
                                   or it cannot be built
    """
    return lookup_service(container, name, role="logger")
