"""Service lookup used by every binder.

Binders never reach for global state: they receive a ``Lookup`` and ask it
for collaborators by name. This module defines that protocol together with
a small reference container and the plugin managers that hold the named
handler, formatter, processor, activation strategy and logger factories.
"""

import threading
from collections.abc import Callable, Iterable, Mapping
from typing import Any, Final, Protocol, runtime_checkable

from .errors import LoggerFactoryError

CONFIG: Final = "config"
HANDLER_MANAGER: Final = "logfactory.handlers"
FORMATTER_MANAGER: Final = "logfactory.formatters"
PROCESSOR_MANAGER: Final = "logfactory.processors"
ACTIVATION_STRATEGY_MANAGER: Final = "logfactory.activation_strategies"
LOGGER_MANAGER: Final = "logfactory.loggers"


class ServiceLookupError(LookupError):
    """Base exception for lookup failures."""


class ServiceNotFoundError(ServiceLookupError):
    """No service is registered under the requested name."""


class ServiceNotCreatedError(ServiceLookupError):
    """A registered factory failed to create the requested service."""


@runtime_checkable
class Lookup(Protocol):
    """Minimal service locator consumed by binders."""

    def has(self, name: str) -> bool:
        """Check whether a service can be produced for ``name``."""

    def get(self, name: str, options: Mapping[str, Any] | None = None) -> Any:
        """Produce the service registered under ``name``."""


Factory = Callable[[Lookup, str, Mapping[str, Any] | None], Any]


@runtime_checkable
class AbstractFactory(Protocol):
    """Factory able to decide at runtime which names it serves."""

    def can_create(self, container: Lookup, requested_name: str) -> bool:
        """Check whether this factory serves ``requested_name``."""

    def __call__(
            self,
            container: Lookup,
            requested_name: str,
            options: Mapping[str, Any] | None = None
    ) -> Any:
        """Create the service for ``requested_name``."""


def _create(factory: Factory, container: Lookup, name: str, options: Mapping[str, Any] | None) -> Any:
    try:
        return factory(container, name, options)
    except LoggerFactoryError as e:
        msg = f"Service with name {name!r} could not be created: {e}"
        raise ServiceNotCreatedError(msg) from e


class PluginManager:
    """Named factories for one family of objects.

    Plugin managers never share instances: every ``get`` call invokes the
    factory again. Factories receive the parent container, so they can reach
    other plugin managers while resolving nested collaborators.

    Attributes:
        _container: Parent lookup passed to every factory
        _factories: Factories keyed by canonical name
        _aliases:   Alternative names mapped to canonical names
    """

    def __init__(
            self,
            container: Lookup,
            factories: Mapping[str, Factory] | None = None,
            aliases: Mapping[str, str] | None = None
    ) -> None:
        self._container = container
        self._factories: dict[str, Factory] = dict(factories or {})
        self._aliases: dict[str, str] = dict(aliases or {})

    @classmethod
    def from_config(cls, container: Lookup, config: Mapping[str, Any]) -> "PluginManager":
        """Create a plugin manager from a ``factories``/``aliases`` mapping.

        Args:
            container:  Parent lookup
            config:     Mapping with optional ``factories`` and ``aliases`` keys

        Returns:
            Configured PluginManager instance
        """
        return cls(container, config.get("factories"), config.get("aliases"))

    def register(self, name: str, factory: Factory, aliases: Iterable[str] = ()) -> None:
        """Register a factory under a canonical name and optional aliases."""
        self._factories[name] = factory
        for alias in aliases:
            self._aliases[alias] = name

    def has(self, name: str) -> bool:
        return self._aliases.get(name, name) in self._factories

    def get(self, name: str, options: Mapping[str, Any] | None = None) -> Any:
        """Create a new service instance.

        Args:
            name:       Canonical name or alias of the service
            options:    Options passed to the factory

        Returns:
            Newly created service

        Raises:
            ServiceNotFoundError:   If no factory is registered for ``name``
            ServiceNotCreatedError: If the factory rejects the options
        """
        canonical = self._aliases.get(name, name)
        if canonical not in self._factories:
            msg = f"A plugin by the name {name!r} was not found in the plugin manager {type(self).__name__}"
            raise ServiceNotFoundError(msg)

        return _create(self._factories[canonical], self._container, name, options)


class Container:
    """Reference service container.

    Services registered as instances are returned as is. Factories are invoked
    once and their result shared, unless options are passed, in which case a
    fresh instance is built. Abstract factories are consulted last.

    Attributes:
        _services:              Shared service instances
        _factories:             Factories for shared services
        _abstract_factories:    Fallback factories checked in order
        _lock:                  Guards lazy creation of shared services
    """

    def __init__(
            self,
            services: Mapping[str, Any] | None = None,
            factories: Mapping[str, Factory] | None = None,
            abstract_factories: Iterable[AbstractFactory] = ()
    ) -> None:
        self._services: dict[str, Any] = dict(services or {})
        self._factories: dict[str, Factory] = dict(factories or {})
        self._abstract_factories: list[AbstractFactory] = list(abstract_factories)
        self._lock: Final = threading.RLock()

    def set_service(self, name: str, service: Any) -> None:
        self._services[name] = service

    def set_factory(self, name: str, factory: Factory) -> None:
        self._factories[name] = factory

    def add_abstract_factory(self, factory: AbstractFactory) -> None:
        self._abstract_factories.append(factory)

    def has(self, name: str) -> bool:
        return (
            name in self._services
            or name in self._factories
            or self._find_abstract_factory(name) is not None
        )

    def get(self, name: str, options: Mapping[str, Any] | None = None) -> Any:
        """Retrieve or build a service.

        Args:
            name:       Service name
            options:    Build options; when given, a fresh instance is created

        Returns:
            Requested service

        Raises:
            ServiceNotFoundError:   If nothing can produce ``name``
            ServiceNotCreatedError: If a factory rejects its options
        """
        if options is None and name in self._services:
            return self._services[name]

        factory = self._factories.get(name) or self._find_abstract_factory(name)
        if factory is None:
            msg = f"Unable to resolve service {name!r} to a factory"
            raise ServiceNotFoundError(msg)

        if options is not None:
            return _create(factory, self, name, options)

        with self._lock:
            if name not in self._services:
                self._services[name] = _create(factory, self, name, None)
            return self._services[name]

    def _find_abstract_factory(self, name: str) -> AbstractFactory | None:
        for factory in self._abstract_factories:
            if factory.can_create(self, name):
                return factory
        return None
