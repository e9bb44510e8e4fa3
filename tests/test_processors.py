from __future__ import annotations

import os
import socket
import tracemalloc
from datetime import datetime, timezone

import pytest
from conftest import RecordingLookup

from logfactory.errors import ConstructionError
from logfactory.lookup import PROCESSOR_MANAGER
from logfactory.processors import (
    HostnameProcessor,
    MemoryUsageProcessor,
    PsrLogMessageProcessor,
    TagProcessor,
    UidProcessor,
    ZonedTimeStamper,
    add_process_id,
    format_bytes,
    to_timezone,
)


def test_hostname_and_process_id() -> None:
    assert HostnameProcessor()(None, "info", {})["hostname"] == socket.gethostname()
    assert add_process_id(None, "info", {})["process_id"] == os.getpid()


def test_uid_is_stable_until_reset() -> None:
    processor = UidProcessor(10)
    first = processor(None, "info", {})["uid"]

    assert len(first) == 10
    assert processor(None, "info", {})["uid"] == first

    processor.reset()
    assert len(processor.uid) == 10


@pytest.mark.parametrize("length", [0, 33, "7", True])
def test_uid_length_bounds(length: object) -> None:
    with pytest.raises(ValueError, match="between 1 and 32"):
        UidProcessor(length)


def test_tags_are_appended() -> None:
    processor = TagProcessor(["web"])
    processor.add_tags(["eu"])

    assert processor(None, "info", {"tags": ["existing"]})["tags"] == ["existing", "web", "eu"]

    processor.set_tags(["api"])
    assert processor(None, "info", {})["tags"] == ["api"]


def test_tags_reject_plain_string() -> None:
    with pytest.raises(TypeError):
        TagProcessor("web")


def test_zoned_timestamp() -> None:
    event_dict = ZonedTimeStamper("UTC", fmt="%Z")(None, "info", {})
    assert event_dict["timestamp"] == "UTC"


def test_to_timezone() -> None:
    assert to_timezone(timezone.utc) is timezone.utc
    assert str(to_timezone("Europe/Berlin")) == "Europe/Berlin"

    with pytest.raises(ValueError, match="Unknown timezone"):
        to_timezone("Mars/Olympus")
    with pytest.raises(TypeError):
        to_timezone(3)


def test_psr_message_interpolation() -> None:
    processor = PsrLogMessageProcessor(remove_used_context_fields=True)
    event_dict = processor(None, "info", {"event": "User {user} logged in from {ip}", "user": "ada", "other": 1})

    assert event_dict == {"event": "User ada logged in from {ip}", "other": 1}


def test_psr_message_date_format() -> None:
    processor = PsrLogMessageProcessor(date_format="%Y-%m-%d")
    event_dict = processor(None, "info", {"event": "At {when}", "when": datetime(2024, 5, 1)})

    assert event_dict["event"] == "At 2024-05-01"
    assert "when" in event_dict


def test_processor_factories_through_manager(lookup: RecordingLookup) -> None:
    manager = lookup.get(PROCESSOR_MANAGER)

    uid = manager.get("uid", {"length": 4})
    tags = manager.get("tags", {"tags": ["a", "b"]})
    stamper = manager.get("timestamp", {"timezone": "UTC", "format": "%Z"})

    assert uid.length == 4
    assert tags.tags == ["a", "b"]
    assert stamper(None, "info", {})["timestamp"] == "UTC"
    assert manager.get("contextvars", None) is not None


def test_processor_factory_rejects_bad_options(lookup: RecordingLookup) -> None:
    manager = lookup.get(PROCESSOR_MANAGER)

    with pytest.raises(LookupError) as excinfo:
        manager.get("uid", {"length": 99})

    assert isinstance(excinfo.value.__cause__, ConstructionError)
    assert str(excinfo.value.__cause__) == "Could not create UidProcessor"


def test_introspection_processor(lookup: RecordingLookup) -> None:
    manager = lookup.get(PROCESSOR_MANAGER)
    processor = manager.get("introspection", {"parameters": ["func_name", "lineno"]})

    assert processor is not None
    with pytest.raises(LookupError):
        manager.get("introspection", {"parameters": ["nonsense"]})


def test_format_bytes() -> None:
    assert format_bytes(512) == "512 B"
    assert format_bytes(1536) == "1.5 KB"
    assert format_bytes(5 * 1024 * 1024 + 256 * 1024) == "5.25 MB"


def test_memory_usage_reports_process_memory() -> None:
    event_dict = MemoryUsageProcessor(use_formatting=False)(None, "info", {})

    assert event_dict["memory_usage"] > 0
    assert event_dict["memory_peak_usage"] >= event_dict["memory_usage"]


def test_memory_usage_formatted() -> None:
    event_dict = MemoryUsageProcessor()(None, "info", {})

    assert event_dict["memory_usage"].endswith("B")
    assert event_dict["memory_peak_usage"].endswith("B")


def test_memory_usage_from_tracemalloc() -> None:
    processor = MemoryUsageProcessor(real_usage=False, use_formatting=False)
    tracemalloc.start()
    try:
        payload = [bytes(1024) for _ in range(100)]
        event_dict = processor(None, "info", {})
    finally:
        tracemalloc.stop()

    assert payload
    assert 0 < event_dict["memory_usage"] <= event_dict["memory_peak_usage"]


def test_memory_usage_factory_reads_string_flags(lookup: RecordingLookup) -> None:
    processor = lookup.get(PROCESSOR_MANAGER).get("memoryusage", {"realUsage": "false", "useFormatting": "no"})

    assert isinstance(processor, MemoryUsageProcessor)
    assert processor.real_usage is False
    assert processor.use_formatting is False
