from __future__ import annotations

import logging

import pytest

from logfactory.log_levels import is_level, normalize_level


@pytest.mark.parametrize(
    ("level", "expected"),
    [
        ("debug", logging.DEBUG),
        ("NOTICE", logging.INFO),
        (" warning ", logging.WARNING),
        ("critical", logging.CRITICAL),
        ("alert", logging.CRITICAL),
        ("emergency", logging.CRITICAL),
        ("WARN", logging.WARNING),
        (25, 25),
    ],
)
def test_normalize_level(level: int | str, expected: int) -> None:
    assert normalize_level(level) == expected


def test_unknown_level_name() -> None:
    with pytest.raises(ValueError, match="Invalid logging level: 'loud'"):
        normalize_level("loud")


@pytest.mark.parametrize("level", [True, 1.5, None, ["info"]])
def test_level_of_wrong_type(level: object) -> None:
    with pytest.raises(TypeError):
        normalize_level(level)


def test_is_level() -> None:
    assert is_level("notice")
    assert is_level(logging.ERROR)
    assert not is_level("sometimes")
    assert not is_level(False)
