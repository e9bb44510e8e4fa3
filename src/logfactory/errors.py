"""Exceptions raised while binding configuration to logging objects.

The hierarchy follows the order in which a binder validates its input:
shape problems first, then missing options, nested type discriminators,
disabled dependencies, lookup failures and finally constructor failures.
"""


class LoggerFactoryError(Exception):
    """Base exception for all binder errors."""


class ConfigurationError(LoggerFactoryError):
    """The configuration mapping is not usable as given."""


class ConfigurationTypeError(ConfigurationError):
    """A configuration value has the wrong shape."""


class MissingRequiredOptionError(ConfigurationError):
    """A required option is absent."""


class MissingTypeError(ConfigurationError):
    """A nested dependency block has no ``type`` key."""


class NoActiveDependencyError(ConfigurationError):
    """The only dependency of a single-dependency kind is disabled."""


class DependencyResolutionError(LoggerFactoryError):
    """The lookup could not produce a named dependency."""


class ConstructionError(LoggerFactoryError):
    """The target constructor rejected the normalized options."""
