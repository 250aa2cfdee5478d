"""Unit tests for the tool registry (mcp_gateway/registry.py)."""

import json
import threading

from mcp_gateway.registry import ToolDefinition, ToolDescriptor, ToolRegistry, ToolSchema
from mcp_gateway.tools import GET_CURRENT_TIME


def make_definition(name: str, description: str = "test tool") -> ToolDefinition:
    return ToolDefinition(name=name, description=description, handler=lambda args: name)


class TestRegistryLookup:
    def test_get_returns_each_registered_tool(self):
        registry = ToolRegistry()
        names = ["alpha", "beta", "gamma"]
        for name in names:
            registry.register(make_definition(name))

        for name in names:
            definition = registry.get(name)
            assert definition is not None
            assert definition.name == name

    def test_get_unknown_name_returns_none(self):
        registry = ToolRegistry()
        registry.register(make_definition("alpha"))

        assert registry.get("nonexistent") is None

    def test_lookup_is_exact_match(self):
        registry = ToolRegistry()
        registry.register(make_definition("alpha"))

        assert registry.get("Alpha") is None
        assert registry.get("alph") is None

    def test_empty_name_is_a_valid_key(self):
        registry = ToolRegistry()
        registry.register(make_definition(""))

        assert registry.get("") is not None
        assert "" in registry

    def test_new_registry_is_empty(self):
        registry = ToolRegistry()

        assert registry.list_all() == []
        assert len(registry) == 0


class TestRegistryReplacement:
    def test_last_registration_wins(self):
        registry = ToolRegistry()
        first = make_definition("alpha", description="first")
        second = make_definition("alpha", description="second")

        registry.register(first)
        registry.register(second)

        assert registry.get("alpha") is second
        assert [d.name for d in registry.list_all()] == ["alpha"]

    def test_separate_registries_are_isolated(self):
        a = ToolRegistry()
        b = ToolRegistry()
        a.register(make_definition("alpha"))

        assert b.get("alpha") is None


class TestRegistryListing:
    def test_list_all_contains_every_tool(self):
        registry = ToolRegistry()
        for name in ["gamma", "alpha", "beta"]:
            registry.register(make_definition(name))

        # Order is not part of the contract; compare as sets.
        assert {d.name for d in registry.list_all()} == {"alpha", "beta", "gamma"}

    def test_descriptors_have_no_handler(self):
        registry = ToolRegistry()
        registry.register(GET_CURRENT_TIME)

        descriptors = registry.descriptors()

        assert len(descriptors) == 1
        assert isinstance(descriptors[0], ToolDescriptor)
        serialized = json.loads(descriptors[0].model_dump_json())
        assert set(serialized) == {"name", "description", "parameters"}
        assert serialized["name"] == "get_current_time"
        assert serialized["parameters"] == {"type": "object", "properties": {}, "required": []}

    def test_default_schema_is_empty_object(self):
        definition = make_definition("alpha")

        assert definition.parameters == ToolSchema(type="object", properties={}, required=[])


class TestRegistryConcurrency:
    def test_concurrent_registration_and_lookup(self):
        registry = ToolRegistry()
        errors = []

        def writer(offset: int):
            for i in range(200):
                registry.register(make_definition(f"tool-{offset}-{i}"))

        def reader():
            try:
                for _ in range(200):
                    for definition in registry.list_all():
                        assert registry.get(definition.name) is not None
            except AssertionError as e:
                errors.append(e)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(3)]
        threads += [threading.Thread(target=reader) for _ in range(3)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(registry) == 600
