from __future__ import annotations

import pytest

from logfactory.errors import ConfigurationTypeError
from logfactory.lookup import (
    Container,
    Lookup,
    PluginManager,
    ServiceNotCreatedError,
    ServiceNotFoundError,
)


def _build(container, name, options):
    return {"name": name, "options": options}


def _fail(container, name, options):
    raise ConfigurationTypeError("Options must be an Array")


class _Prefixed:
    def can_create(self, container, requested_name):
        return requested_name.startswith("dyn.")

    def __call__(self, container, requested_name, options=None):
        return {"dynamic": requested_name}


def test_plugin_manager_never_shares() -> None:
    manager = PluginManager(Container(), {"thing": _build}, {"t": "thing"})

    first = manager.get("t", {"a": 1})
    second = manager.get("thing", {"a": 1})

    assert first == {"name": "t", "options": {"a": 1}}
    assert first is not second
    assert manager.has("t") and manager.has("thing") and not manager.has("other")


def test_plugin_manager_register_and_errors() -> None:
    manager = PluginManager.from_config(Container(), {})
    manager.register("broken", _fail, aliases=["b"])

    with pytest.raises(ServiceNotFoundError):
        manager.get("unknown")

    with pytest.raises(ServiceNotCreatedError, match="'b' could not be created") as excinfo:
        manager.get("b", {})
    assert isinstance(excinfo.value.__cause__, ConfigurationTypeError)


def test_container_shares_unless_options_given() -> None:
    container = Container(factories={"thing": _build})

    assert container.get("thing") is container.get("thing")
    assert container.get("thing", {"x": 1}) is not container.get("thing", {"x": 1})


def test_container_abstract_factories() -> None:
    container = Container(services={"config": {}})
    container.add_abstract_factory(_Prefixed())

    assert isinstance(container, Lookup)
    assert container.has("config")
    assert container.has("dyn.anything")
    assert container.get("dyn.anything") == {"dynamic": "dyn.anything"}
    assert not container.has("static")

    with pytest.raises(ServiceNotFoundError):
        container.get("static")
