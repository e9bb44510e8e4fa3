from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import pytest

from logfactory import configure_container
from logfactory.lookup import Container


class StubHandler(logging.Handler):
    def emit(self, record: logging.LogRecord) -> None:
        pass


class RecordingLookup:
    """Lookup that records every call before delegating to a container."""

    def __init__(self, container: Container) -> None:
        self._container = container
        self.calls: list[tuple[str, str]] = []

    def has(self, name: str) -> bool:
        self.calls.append(("has", name))
        return self._container.has(name)

    def get(self, name: str, options: Mapping[str, Any] | None = None) -> Any:
        self.calls.append(("get", name))
        return self._container.get(name, options)


@pytest.fixture
def stub_handler() -> StubHandler:
    return StubHandler()


@pytest.fixture
def container(stub_handler: StubHandler) -> Container:
    return (
        configure_container(config={"log": {}})
        .with_handler("abc", lambda container, name, options: stub_handler)
        .build()
    )


@pytest.fixture
def lookup(container: Container) -> RecordingLookup:
    return RecordingLookup(container)


def make_record(
        message: str = "message",
        level: int = logging.INFO,
        name: str = "app",
        **extra: Any
) -> logging.LogRecord:
    record = logging.LogRecord(name, level, __file__, 1, message, (), None)
    record.__dict__.update(extra)
    return record
