from __future__ import annotations

import logging

import pytest
from conftest import RecordingLookup, StubHandler

from logfactory.binder import Binder, Option, Slot, resolve_dependency, to_bool
from logfactory.errors import (
    ConfigurationError,
    ConfigurationTypeError,
    ConstructionError,
    DependencyResolutionError,
    MissingRequiredOptionError,
    MissingTypeError,
    NoActiveDependencyError,
)
from logfactory.handler_factories import FilterHandlerFactory, GroupHandlerFactory
from logfactory.processing import get_processors
from logfactory.processors import UidProcessor


def _first(logger, method_name, event_dict):
    return event_dict


def _second(logger, method_name, event_dict):
    return event_dict


def _third(logger, method_name, event_dict):
    return event_dict


@pytest.mark.parametrize("options", [None, "abc", ["handler"], 42, True])
def test_non_mapping_options_fail_before_any_lookup(lookup: RecordingLookup, options: object) -> None:
    with pytest.raises(ConfigurationTypeError, match="Options must be an Array"):
        FilterHandlerFactory(lookup, "", options)
    assert lookup.calls == []


def test_missing_handler_is_reported(lookup: RecordingLookup) -> None:
    with pytest.raises(MissingRequiredOptionError, match="No handler provided") as excinfo:
        FilterHandlerFactory(lookup, "", {})
    assert isinstance(excinfo.value, ConfigurationError)
    assert lookup.calls == []


def test_nested_block_builds_with_defaults(lookup: RecordingLookup, stub_handler: StubHandler) -> None:
    handler = FilterHandlerFactory(lookup, "", {"handler": {"type": "abc", "enabled": True}})

    assert handler.handler is stub_handler
    assert handler.level == logging.DEBUG
    assert handler.bubble is True
    assert get_processors(handler) == ()


def test_handler_referenced_by_name(lookup: RecordingLookup, stub_handler: StubHandler) -> None:
    handler = FilterHandlerFactory(lookup, "", {"handler": "abc"})
    assert handler.handler is stub_handler


def test_handler_instance_is_used_without_lookup(lookup: RecordingLookup) -> None:
    inner = StubHandler()
    handler = FilterHandlerFactory(lookup, "", {"handler": inner})

    assert handler.handler is inner
    assert lookup.calls == []


def test_handler_reference_of_wrong_shape(lookup: RecordingLookup) -> None:
    with pytest.raises(ConfigurationTypeError, match="HandlerConfig must be an Array"):
        FilterHandlerFactory(lookup, "", {"handler": 42})


def test_type_is_checked_before_enabled(lookup: RecordingLookup) -> None:
    with pytest.raises(MissingTypeError, match="Options must contain a type for the handler"):
        FilterHandlerFactory(lookup, "", {"handler": {"enabled": False}})


def test_disabled_single_handler_is_an_error(lookup: RecordingLookup) -> None:
    with pytest.raises(NoActiveDependencyError, match="No active handler specified"):
        FilterHandlerFactory(lookup, "", {"handler": {"type": "abc", "enabled": False}})


def test_disabled_handler_is_skipped_in_collection(lookup: RecordingLookup, stub_handler: StubHandler) -> None:
    group = GroupHandlerFactory(lookup, "", {
        "handlers": [
            {"type": "null", "enabled": False},
            {"type": "abc"},
        ],
    })
    assert group.handlers == [stub_handler]


def test_collection_with_only_disabled_handlers(lookup: RecordingLookup) -> None:
    with pytest.raises(NoActiveDependencyError, match="No active handlers specified"):
        GroupHandlerFactory(lookup, "", {"handlers": [{"type": "abc", "enabled": False}]})


def test_unknown_dependency_names_requested_identifier(lookup: RecordingLookup) -> None:
    with pytest.raises(DependencyResolutionError, match="'does-not-exist'") as excinfo:
        FilterHandlerFactory(lookup, "", {"handler": {"type": "does-not-exist"}})
    assert isinstance(excinfo.value.__cause__, LookupError)


def test_builds_are_independent(lookup: RecordingLookup, stub_handler: StubHandler) -> None:
    options = {"handler": {"type": "abc"}, "level": "warning", "bubble": False}

    first = FilterHandlerFactory(lookup, "", options)
    second = FilterHandlerFactory(lookup, "", options)

    assert first is not second
    assert (first.level, first.bubble, first.handler) == (second.level, second.bubble, second.handler)
    assert first.handler is stub_handler


@pytest.mark.parametrize(
    ("level", "expected"),
    [
        ("notice", logging.INFO),
        ("ALERT", logging.CRITICAL),
        ("emergency", logging.CRITICAL),
        ("Warning", logging.WARNING),
        (logging.ERROR, logging.ERROR),
    ],
)
def test_levels_are_normalized(lookup: RecordingLookup, level: object, expected: int) -> None:
    handler = FilterHandlerFactory(lookup, "", {"handler": "abc", "level": level})
    assert handler.level == expected


def test_invalid_level_is_a_construction_error(lookup: RecordingLookup) -> None:
    with pytest.raises(ConstructionError, match="Could not create FilterHandler") as excinfo:
        FilterHandlerFactory(lookup, "", {"handler": "abc", "level": "verbose"})
    assert isinstance(excinfo.value.__cause__, ValueError)


def test_formatter_must_be_mapping_or_instance(lookup: RecordingLookup) -> None:
    with pytest.raises(ConfigurationTypeError, match="Instance of logging.Formatter"):
        FilterHandlerFactory(lookup, "", {"handler": {"type": "abc"}, "formatter": True})


def test_formatter_instance_is_passed_through(lookup: RecordingLookup, stub_handler: StubHandler) -> None:
    formatter = logging.Formatter("%(message)s")
    handler = FilterHandlerFactory(lookup, "", {"handler": "abc", "formatter": formatter})

    assert handler.formatter is formatter
    assert stub_handler.formatter is formatter
    assert ("get", "logfactory.formatters") not in lookup.calls


def test_formatter_block_is_built(lookup: RecordingLookup) -> None:
    handler = FilterHandlerFactory(lookup, "", {
        "handler": "abc",
        "formatter": {"type": "line", "options": {"format": "%(levelname)s %(message)s"}},
    })
    assert handler.formatter._fmt == "%(levelname)s %(message)s"


def test_disabled_formatter_keeps_default(lookup: RecordingLookup) -> None:
    handler = FilterHandlerFactory(lookup, "", {
        "handler": "abc",
        "formatter": {"type": "json", "enabled": False},
    })
    assert handler.formatter is None


def test_processors_run_in_reverse_configured_order(lookup: RecordingLookup) -> None:
    handler = FilterHandlerFactory(lookup, "", {"handler": StubHandler(), "processors": [_first, _second, _third]})

    assert get_processors(handler) == (_third, _second, _first)
    assert lookup.calls == []


def test_processors_by_name_and_block(lookup: RecordingLookup) -> None:
    handler = FilterHandlerFactory(lookup, "", {
        "handler": "abc",
        "processors": [
            "hostname",
            {"type": "uid", "options": {"length": 12}},
            {"type": "tags", "enabled": False},
        ],
    })

    uid, hostname = get_processors(handler)
    assert isinstance(uid, UidProcessor)
    assert len(uid.uid) == 12
    assert hostname.hostname


def test_processors_must_be_a_sequence(lookup: RecordingLookup) -> None:
    with pytest.raises(ConfigurationTypeError, match="Processors must be an Array"):
        FilterHandlerFactory(lookup, "", {"handler": "abc", "processors": "uid"})


def test_processor_of_wrong_shape(lookup: RecordingLookup) -> None:
    with pytest.raises(ConfigurationTypeError, match="Processor must be an Array or a callable"):
        FilterHandlerFactory(lookup, "", {"handler": "abc", "processors": [42]})


def test_custom_binder_with_optional_options() -> None:
    binder = Binder(
        "Pair",
        lambda left, right="b": (left, right),
        slots=(Slot("left", lambda lookup, value: value.upper(), required="left is missing"),),
        options=(Option("right", "b"),),
    )

    assert binder(None, "pair", {"left": "a"}) == ("A", "b")
    with pytest.raises(MissingRequiredOptionError, match="left is missing"):
        binder(None, "pair", {"right": "c"})


def test_resolve_dependency_forms(lookup: RecordingLookup, stub_handler: StubHandler) -> None:
    instance = StubHandler()

    assert resolve_dependency(instance, lookup, capability=logging.Handler, role="handler") is instance
    assert lookup.calls == []

    produced = resolve_dependency(lambda: instance, lookup, capability=logging.Handler, role="handler", deferred=True)
    assert produced is instance

    assert resolve_dependency(3.5, lookup, capability=logging.Handler, role="handler") == 3.5


def test_resolve_dependency_translates_lookup_failure(lookup: RecordingLookup) -> None:
    with pytest.raises(DependencyResolutionError, match="Could not load queue 'jobs'"):
        resolve_dependency("jobs", lookup, capability=logging.Handler, role="queue")


@pytest.mark.parametrize(
    ("value", "expected"),
    [(True, True), (0, False), ("false", False), ("No", False), ("off", False), (" TRUE ", True), ("1", True)],
)
def test_flags_read_from_strings(value: object, expected: bool) -> None:
    assert to_bool(value) is expected


def test_unrecognized_flag_is_a_construction_error(lookup: RecordingLookup) -> None:
    with pytest.raises(ConstructionError, match="Could not create FilterHandler"):
        FilterHandlerFactory(lookup, "", {"handler": "abc", "bubble": "maybe"})


def test_bubble_string_false_disables_bubbling(lookup: RecordingLookup) -> None:
    handler = FilterHandlerFactory(lookup, "", {"handler": "abc", "bubble": "false"})
    assert handler.bubble is False
