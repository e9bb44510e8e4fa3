"""Activation strategies for fingers-crossed handlers.

A fingers-crossed handler buffers records until a strategy declares one of
them important enough to flush the buffer. Channel-specific thresholds use
glob-style patterns (e.g. ``"sqlalchemy.*"``) matched against logger names.
"""

import fnmatch
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from .binder import Binder, Option
from .log_levels import LOWEST_LEVEL, normalize_level


@runtime_checkable
class ActivationStrategy(Protocol):
    """Decides whether a record activates a fingers-crossed handler."""

    def is_handler_activated(self, record: logging.LogRecord) -> bool:
        """Check whether ``record`` activates the handler."""


class ErrorLevelActivationStrategy:
    """Activate on any record at or above a fixed level.

    Attributes:
        action_level: Minimum level that triggers activation
    """

    def __init__(self, action_level: int | str = LOWEST_LEVEL) -> None:
        self.action_level = normalize_level(action_level)

    def is_handler_activated(self, record: logging.LogRecord) -> bool:
        return record.levelno >= self.action_level


@dataclass(frozen=True, slots=True)
class ChannelLevel:
    """A single pattern-level pair.

    Attributes:
        pattern:    Glob-style pattern matched against logger names
        level:      Activation level for matching loggers
    """

    pattern: str
    level: int

    def __post_init__(self) -> None:
        if not self.pattern:
            msg = "Pattern cannot be empty"
            raise ValueError(msg)

    def matches(self, channel: str) -> bool:
        return fnmatch.fnmatch(channel, self.pattern)


class ChannelLevelActivationStrategy:
    """Activate at a level that depends on the record's logger name.

    Patterns are checked in the order they were configured and the first
    match wins. Records from loggers matching no pattern use the default
    action level.

    Attributes:
        default_action_level:   Level for channels without a matching pattern
        channel_levels:         Ordered pattern-level pairs
    """

    def __init__(
            self,
            default_action_level: int | str = LOWEST_LEVEL,
            channel_to_action_level: Mapping[str, int | str] | None = None
    ) -> None:
        if channel_to_action_level is not None and not isinstance(channel_to_action_level, Mapping):
            msg = "channel_to_action_level must map channel patterns to levels"
            raise TypeError(msg)

        self.default_action_level = normalize_level(default_action_level)
        self.channel_levels: tuple[ChannelLevel, ...] = tuple(
            ChannelLevel(pattern, normalize_level(level))
            for pattern, level in (channel_to_action_level or {}).items()
        )

    def get_level_for_channel(self, channel: str) -> int:
        """Get the activation level for a logger name.

        Args:
            channel: Name of the logger that emitted the record

        Returns:
            Level of the first matching pattern, or the default action level
        """
        for channel_level in self.channel_levels:
            if channel_level.matches(channel):
                return channel_level.level
        return self.default_action_level

    def is_handler_activated(self, record: logging.LogRecord) -> bool:
        return record.levelno >= self.get_level_for_channel(record.name)


ErrorLevelActivationStrategyFactory = Binder(
    "ErrorLevelActivationStrategy",
    ErrorLevelActivationStrategy,
    options=(Option("actionLevel", LOWEST_LEVEL, argument="action_level"),),
    requires_options=False,
)

ChannelLevelActivationStrategyFactory = Binder(
    "ChannelLevelActivationStrategy",
    ChannelLevelActivationStrategy,
    options=(
        Option("defaultActionLevel", LOWEST_LEVEL, argument="default_action_level"),
        Option("channelToActionLevel", argument="channel_to_action_level"),
    ),
    requires_options=False,
)
