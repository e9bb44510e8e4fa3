"""Log level definitions and normalization.

Levels may be configured as integers, standard library level names or the
PSR-3 names used by many logging configurations. PSR-3 names without a
standard library counterpart collapse onto the nearest standard level.
"""

import logging
from typing import Final, Literal, get_args

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
PsrLogLevel = Literal[
    "debug", "info", "notice", "warning", "error", "critical", "alert", "emergency"
]

VALID_LOG_LEVELS = frozenset(get_args(LogLevel))

PSR_LOG_LEVELS: Final[dict[str, int]] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "notice": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
    "alert": logging.CRITICAL,
    "emergency": logging.CRITICAL,
}

LOWEST_LEVEL: Final = logging.DEBUG
HIGHEST_LEVEL: Final = logging.CRITICAL


def normalize_level(level: int | str) -> int:
    """Convert a configured level into its numeric form.

    Args:
        level: Numeric level, standard level name or PSR-3 level name
               (case-insensitive)

    Returns:
        Numeric logging level

    Raises:
        ValueError: If the name is not a known level
        TypeError:  If the value is neither a string nor an integer
    """
    if isinstance(level, bool):
        msg = f"Invalid logging level: {level!r}"
        raise TypeError(msg)

    if isinstance(level, int):
        return level

    if not isinstance(level, str):
        msg = f"Invalid logging level type: {type(level).__name__}"
        raise TypeError(msg)

    name = level.strip()
    if (psr_level := PSR_LOG_LEVELS.get(name.lower())) is not None:
        return psr_level

    levels = logging.getLevelNamesMapping()
    if name.upper() in levels:
        return levels[name.upper()]

    msg = (
        f"Invalid logging level: {level!r}. "
        f"Must be one of: {', '.join(sorted(VALID_LOG_LEVELS | set(PSR_LOG_LEVELS)))}"
    )
    raise ValueError(msg)


def is_level(value: object) -> bool:
    """Check whether ``value`` can be normalized into a level."""
    try:
        normalize_level(value)
    except (TypeError, ValueError):
        return False
    return True
