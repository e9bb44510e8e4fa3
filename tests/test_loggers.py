from __future__ import annotations

import logging
from zoneinfo import ZoneInfo

import pytest
from conftest import RecordingLookup, StubHandler, make_record
from structlog.stdlib import BoundLogger

from logfactory import configure_container, get_logger
from logfactory.errors import (
    ConstructionError,
    DependencyResolutionError,
    MissingRequiredOptionError,
)
from logfactory.handlers import CollectingHandler
from logfactory.log import get_internal_logger
from logfactory.loggers import ChannelLogger, ChannelLoggerFactory, create_channel_logger
from logfactory.processing import get_processors
from logfactory.processors import UidProcessor, ZonedTimeStamper


def test_handlers_are_stacked() -> None:
    first, second = CollectingHandler(), CollectingHandler()
    logger = create_channel_logger("app", [first, second])

    assert logger.handlers == [second, first]
    assert logger.propagate is False


def test_non_bubbling_handler_stops_dispatch() -> None:
    bottom, top = CollectingHandler(), CollectingHandler()
    top.bubble = False
    logger = create_channel_logger("app", [bottom, top])

    logger.info("hello")

    assert top.has_record("hello")
    assert bottom.records == []


def test_handler_below_its_level_does_not_stop_dispatch() -> None:
    bottom, top = CollectingHandler(), CollectingHandler()
    top.bubble = False
    top.setLevel(logging.ERROR)
    logger = create_channel_logger("app", [bottom, top])

    logger.info("hello")

    assert top.records == []
    assert bottom.has_record("hello")


def test_pop_handler() -> None:
    handler = CollectingHandler()
    logger = ChannelLogger("app")
    logger.push_handler(handler)

    assert logger.pop_handler() is handler
    with pytest.raises(IndexError):
        logger.pop_handler()


def test_factory_requires_name(lookup: RecordingLookup) -> None:
    with pytest.raises(MissingRequiredOptionError, match="The name for the logger is missing"):
        ChannelLoggerFactory()(lookup, "app", {"handlers": []})


def test_factory_builds_channel(lookup: RecordingLookup, stub_handler: StubHandler) -> None:
    logger = ChannelLoggerFactory()(lookup, "app", {
        "name": "billing",
        "handlers": [
            {"type": "abc"},
            {"type": "collecting", "enabled": False},
            {"type": "null"},
        ],
        "processors": [{"type": "uid"}],
        "timezone": "Europe/Berlin",
    })

    assert logger.name == "billing"
    assert len(logger.handlers) == 2
    assert isinstance(logger.handlers[0], logging.NullHandler)
    assert logger.handlers[1] is stub_handler

    uid, stamper = get_processors(logger)
    assert isinstance(uid, UidProcessor)
    assert isinstance(stamper, ZonedTimeStamper)
    assert stamper.timezone == ZoneInfo("Europe/Berlin")


def test_factory_rejects_invalid_timezone(lookup: RecordingLookup) -> None:
    with pytest.raises(ConstructionError, match="An invalid timezone was set"):
        ChannelLoggerFactory()(lookup, "app", {"name": "app", "timezone": "Nowhere/Special"})


def test_channel_processors_reach_handlers(lookup: RecordingLookup) -> None:
    collecting = CollectingHandler()
    logger = ChannelLoggerFactory()(lookup, "app", {
        "name": "app",
        "handlers": [collecting],
        "processors": [{"type": "tags", "options": {"tags": ["web"]}}],
    })

    logger.handle(make_record("hello", name="app"))

    assert collecting.records[0].tags == ["web"]


def test_configured_channel_is_a_bound_logger() -> None:
    collecting = CollectingHandler()
    container = (
        configure_container(config={"log": {"app": {"handlers": ["collector"]}}})
        .with_handler("collector", lambda container, name, options: collecting)
        .build()
    )

    logger = get_logger(container, "app")
    logger.warning("Disk almost full", free_mb=12)

    assert isinstance(logger, BoundLogger)
    assert get_logger(container, "app") is logger
    assert collecting.has_record("Disk almost full", "warning")
    assert collecting.records[0].free_mb == 12


def test_configured_channel_binds_context() -> None:
    collecting = CollectingHandler()
    container = (
        configure_container(config={"log": {"app": {"handlers": ["collector"]}}})
        .with_handler("collector", lambda container, name, options: collecting)
        .build()
    )

    bound = get_logger(container, "app").bind(request_id="r-1")
    bound.info("Request done")

    assert isinstance(bound, BoundLogger)
    assert collecting.records[0].request_id == "r-1"


def test_internal_logger_is_a_bound_logger() -> None:
    logger = get_internal_logger("logfactory.tests")

    assert isinstance(logger, BoundLogger)
    assert isinstance(logger.bind(kind="Handler"), BoundLogger)


def test_unknown_channel() -> None:
    container = configure_container().build()

    with pytest.raises(DependencyResolutionError, match="'missing'"):
        get_logger(container, "missing")
