"""Generic configuration binder.

Every factory in this package follows the same pipeline: check that the
options are a mapping, check that required options are present, resolve
collaborators through the lookup, normalize scalar options, construct the
target and finally attach a formatter and processors. ``Binder`` implements
that pipeline once; each kind only declares its slots and options.

A configured collaborator is resolved by inspecting its runtime type:

- an instance of the expected type is used as is,
- a string names a service known to the lookup,
- a mapping ``{"type": ..., "enabled": ..., "options": ...}`` describes how
  to build the collaborator through a plugin manager,
- for slots that allow it, a callable is invoked and its result used.
"""

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from structlog.types import Processor

from .errors import (
    ConfigurationTypeError,
    ConstructionError,
    DependencyResolutionError,
    MissingRequiredOptionError,
    MissingTypeError,
    NoActiveDependencyError,
)
from .log import get_internal_logger
from .lookup import FORMATTER_MANAGER, HANDLER_MANAGER, PROCESSOR_MANAGER, Lookup
from .processing import push_processor

logger = get_internal_logger(__name__)

Options = Mapping[str, Any]

_TRUE_STRINGS = frozenset({"true", "1", "yes", "on"})
_FALSE_STRINGS = frozenset({"false", "0", "no", "off", ""})


def to_bool(value: Any) -> bool:
    """Read a flag from configuration.

    Booleans and integers keep their truth value. Strings are matched
    case-insensitively against "true"/"false", "1"/"0", "yes"/"no" and
    "on"/"off", so environment-style values like ``"false"`` stay False.

    Raises:
        ValueError: If a string is not a recognized flag
        TypeError:  If the value has an unsupported type
    """
    if isinstance(value, (bool, int)):
        return bool(value)

    if isinstance(value, str):
        flag = value.strip().lower()
        if flag in _TRUE_STRINGS:
            return True
        if flag in _FALSE_STRINGS:
            return False
        msg = f"Invalid boolean value: {value!r}"
        raise ValueError(msg)

    msg = f"Expected a boolean, got {type(value).__name__}"
    raise TypeError(msg)


@dataclass(frozen=True, slots=True)
class Option:
    """A scalar option read with a default.

    Attributes:
        key:        Configuration key
        default:    Value used when the key is absent
        convert:    Optional normalization applied to non-None values
        argument:   Constructor keyword, defaults to ``key``
        apply:      Post-construction setter; when set, the option is not
                    passed to the constructor
    """

    key: str
    default: Any = None
    convert: Callable[[Any], Any] | None = None
    argument: str | None = None
    apply: Callable[[Any, Any], None] | None = None

    def read(self, options: Options) -> Any:
        value = options.get(self.key, self.default)
        if self.convert is not None and value is not None:
            return self.convert(value)
        return value


@dataclass(frozen=True, slots=True)
class Slot:
    """A collaborator resolved through the lookup.

    Attributes:
        key:        Configuration key
        resolve:    Turns the configured reference into the collaborator
        argument:   Constructor keyword, defaults to ``key``
        required:   Error message raised when the key is absent; None marks
                    the slot as optional
    """

    key: str
    resolve: Callable[[Lookup, Any], Any]
    argument: str | None = None
    required: str | None = None


class Binder:
    """Validate, resolve, construct and attach for one kind of object.

    Instances are the factories registered with plugin managers and are
    called as ``binder(lookup, requested_name, options)``. They hold no state
    between calls.

    Attributes:
        kind:               Name of the constructed kind, used in error messages
        target:             Callable constructing the object
        slots:              Collaborators resolved through the lookup
        options:            Scalar options
        requires_options:   Reject ``None`` options; otherwise treat them as empty
        attach:             Attach ``formatter`` and ``processors`` after construction
    """

    def __init__(
            self,
            kind: str,
            target: Callable[..., Any],
            *,
            slots: Sequence[Slot] = (),
            options: Sequence[Option] = (),
            requires_options: bool = True,
            attach: bool = False
    ) -> None:
        self.kind = kind
        self.target = target
        self.slots = tuple(slots)
        self.options = tuple(options)
        self.requires_options = requires_options
        self.attach = attach

    def __call__(self, container: Lookup, requested_name: str, options: Options | None = None) -> Any:
        """Build the object described by ``options``.

        Args:
            container:      Lookup used to resolve collaborators
            requested_name: Name the object was requested under, for diagnostics
            options:        Configuration mapping

        Returns:
            Newly constructed object

        Raises:
            ConfigurationTypeError:     If the options are not a mapping
            MissingRequiredOptionError: If a required option is absent
            DependencyResolutionError:  If a collaborator cannot be resolved
            ConstructionError:          If the constructor rejects the options
        """
        if options is None and not self.requires_options:
            options = {}

        if not isinstance(options, Mapping):
            msg = "Options must be an Array"
            raise ConfigurationTypeError(msg)

        for slot in self.slots:
            if slot.required is not None and slot.key not in options:
                raise MissingRequiredOptionError(slot.required)

        arguments = {
            slot.argument or slot.key: slot.resolve(container, options[slot.key])
            for slot in self.slots
            if slot.key in options
        }

        try:
            for option in self.options:
                if option.apply is None:
                    arguments[option.argument or option.key] = option.read(options)

            target = self.target(**arguments)

            for option in self.options:
                if option.apply is not None:
                    option.apply(target, option.read(options))

        except (TypeError, ValueError, OSError) as e:
            msg = f"Could not create {self.kind}"
            raise ConstructionError(msg) from e

        if self.attach:
            add_formatter(container, target, options)
            add_processors(container, target, options)

        logger.debug("Created logging object", kind=self.kind, requested_name=requested_name)
        return target


def lookup_service(lookup: Lookup, name: str, *, role: str, options: Options | None = None) -> Any:
    """Fetch a named service, translating lookup failures.

    Args:
        lookup:     Lookup or plugin manager to ask
        name:       Requested service name
        role:       Role of the dependency, used in the error message
        options:    Options forwarded to the lookup

    Returns:
        Resolved service

    Raises:
        DependencyResolutionError: If the lookup cannot produce ``name``
    """
    try:
        return lookup.get(name, options)
    except LookupError as e:
        msg = f"Could not load {role} {name!r}: {e}"
        raise DependencyResolutionError(msg) from e


def resolve_dependency(
        reference: Any,
        lookup: Lookup,
        *,
        capability: type | tuple[type, ...],
        role: str,
        options: Options | None = None,
        deferred: bool = False
) -> Any:
    """Resolve an instance, service name or deferred reference.

    Values of any other type are returned unchanged so that the constructor
    can reject them.

    Args:
        reference:  Configured value
        lookup:     Lookup resolving service names
        capability: Type(s) accepted as already-constructed instances
        role:       Role of the dependency, used in error messages
        options:    Options forwarded to the lookup for named services
        deferred:   Invoke callables and use their result

    Returns:
        The resolved dependency
    """
    if isinstance(reference, capability):
        return reference

    if isinstance(reference, str):
        return lookup_service(lookup, reference, role=role, options=options)

    if deferred and callable(reference):
        return reference()

    return reference


def get_manager(lookup: Lookup, name: str) -> Lookup:
    """Fetch a plugin manager from the container.

    Raises:
        DependencyResolutionError: If the container does not provide it
    """
    try:
        return lookup.get(name)
    except LookupError as e:
        msg = f"Could not find service {name}"
        raise DependencyResolutionError(msg) from e


def resolve_block(block: Options, manager: Lookup, *, kind: str) -> Any | None:
    """Build a collaborator from a ``{type, enabled, options}`` block.

    Args:
        block:      Nested configuration block
        manager:    Plugin manager building the collaborator
        kind:       Kind of collaborator, used in error messages

    Returns:
        The collaborator, or None when the block is disabled

    Raises:
        MissingTypeError:           If the block has no ``type``
        DependencyResolutionError:  If the plugin manager fails
    """
    if "type" not in block:
        msg = f"Options must contain a type for the {kind}"
        raise MissingTypeError(msg)

    if not block.get("enabled", True):
        return None

    return lookup_service(manager, block["type"], role=kind, options=block.get("options", {}))


def resolve_handler(lookup: Lookup, reference: Any) -> logging.Handler | None:
    """Resolve a handler reference, returning None for disabled blocks.

    Raises:
        ConfigurationTypeError: If the reference has an unsupported shape
    """
    if isinstance(reference, logging.Handler):
        return reference

    if isinstance(reference, str):
        return lookup_service(get_manager(lookup, HANDLER_MANAGER), reference, role="handler", options={})

    if isinstance(reference, Mapping):
        return resolve_block(reference, get_manager(lookup, HANDLER_MANAGER), kind="handler")

    msg = "HandlerConfig must be an Array"
    raise ConfigurationTypeError(msg)


def get_handler(lookup: Lookup, reference: Any) -> logging.Handler:
    """Resolve the single handler wrapped by another handler.

    Raises:
        NoActiveDependencyError: If the handler is disabled
    """
    handler = resolve_handler(lookup, reference)
    if handler is None:
        msg = "No active handler specified"
        raise NoActiveDependencyError(msg)
    return handler


def get_handlers(lookup: Lookup, references: Any) -> list[logging.Handler]:
    """Resolve a collection of handlers, skipping disabled ones.

    A failure on any element aborts the whole collection.

    Raises:
        ConfigurationTypeError:     If ``references`` is not a sequence
        NoActiveDependencyError:    If no handler remains enabled
    """
    if isinstance(references, (str, bytes, Mapping)) or not isinstance(references, Iterable):
        msg = "Handlers must be an Array"
        raise ConfigurationTypeError(msg)

    handlers = [
        handler for reference in references
        if (handler := resolve_handler(lookup, reference)) is not None
    ]

    if not handlers:
        msg = "No active handlers specified"
        raise NoActiveDependencyError(msg)

    return handlers


def resolve_processor(lookup: Lookup, reference: Any) -> Processor | None:
    """Resolve a processor reference, returning None for disabled blocks.

    Raises:
        ConfigurationTypeError: If the reference has an unsupported shape
    """
    if callable(reference):
        return reference

    if isinstance(reference, str):
        return lookup_service(get_manager(lookup, PROCESSOR_MANAGER), reference, role="processor", options={})

    if isinstance(reference, Mapping):
        return resolve_block(reference, get_manager(lookup, PROCESSOR_MANAGER), kind="processor")

    msg = "Processor must be an Array or a callable"
    raise ConfigurationTypeError(msg)


def add_formatter(lookup: Lookup, handler: logging.Handler, options: Options | None) -> None:
    """Attach the configured formatter to a handler.

    Without a ``formatter`` option the handler keeps its own default.

    Args:
        lookup:     Lookup providing the formatter plugin manager
        handler:    Handler receiving the formatter
        options:    Handler options

    Raises:
        ConfigurationTypeError: If the formatter is neither a mapping nor a
                                ``logging.Formatter``
    """
    if not isinstance(options, Mapping) or "formatter" not in options:
        return

    reference = options["formatter"]
    if isinstance(reference, logging.Formatter):
        formatter = reference
    elif isinstance(reference, Mapping):
        formatter = resolve_block(reference, get_manager(lookup, FORMATTER_MANAGER), kind="formatter")
    else:
        msg = f"Formatter must be an Array or an Instance of {logging.Formatter.__module__}.{logging.Formatter.__qualname__}"
        raise ConfigurationTypeError(msg)

    if formatter is not None:
        handler.setFormatter(formatter)


def add_processors(lookup: Lookup, target: logging.Filterer, options: Options | None) -> None:
    """Push the configured processors onto a handler or logger.

    Processors are pushed in configured order onto a LIFO stack, so the last
    configured processor runs first.

    Args:
        lookup:     Lookup providing the processor plugin manager
        target:     Handler or logger receiving the processors
        options:    Handler or logger options

    Raises:
        ConfigurationTypeError: If ``processors`` is not a sequence
    """
    if not isinstance(options, Mapping) or "processors" not in options:
        return

    references = options["processors"]
    if isinstance(references, (str, bytes, Mapping)) or not isinstance(references, Sequence):
        msg = "Processors must be an Array"
        raise ConfigurationTypeError(msg)

    for reference in references:
        if (processor := resolve_processor(lookup, reference)) is not None:
            push_processor(target, processor)
