"""Tests for the formula FunctionRegistry."""

import pytest

from crmcore.errors import UnknownFunctionError
from crmcore.formula import FunctionDescriptor, FunctionRegistry


class TestRegistry:
    """Tests for register/resolve."""

    def test_register_callable(self):
        registry = FunctionRegistry()
        descriptor = registry.register("custom\\double", lambda args, ctx: args[0] * 2, min_args=1)
        assert registry.has("custom\\double")
        assert registry.resolve("custom\\double") is descriptor
        assert descriptor.min_args == 1
        assert descriptor.category == "custom"
        assert descriptor.short_name == "double"

    def test_register_descriptor_under_other_name(self):
        registry = FunctionRegistry()
        original = FunctionDescriptor("a\\b", lambda args, ctx: None, min_args=2, lazy=True)
        stored = registry.register("c\\d", original)
        assert stored.name == "c\\d"
        assert stored.min_args == 2
        assert stored.lazy

    def test_unknown_function(self):
        with pytest.raises(UnknownFunctionError, match="Unknown function 'nope'"):
            FunctionRegistry().resolve("nope")

    def test_get(self):
        registry = FunctionRegistry()
        descriptor = registry.register("custom\\double", lambda args, ctx: args[0] * 2)
        assert registry.get("custom\\double") is descriptor
        assert registry.get("nope") is None

    def test_general_category(self):
        registry = FunctionRegistry()
        registry.register("ifThen", lambda args, ctx: None)
        assert registry.categories() == ["general"]


class TestDefaultRegistry:
    """Tests for the built-in function tables."""

    def test_categories(self):
        registry = FunctionRegistry.create_default()
        assert set(registry.categories()) == {
            "general", "array", "logical", "comparison", "numeric", "number", "string", "entity",
        }

    def test_array_functions(self):
        registry = FunctionRegistry.create_default()
        assert registry.names("array") == [
            "array\\at",
            "array\\includes",
            "array\\indexOf",
            "array\\join",
            "array\\length",
            "array\\push",
            "array\\removeAt",
            "array\\unique",
        ]

    def test_array_at_descriptor(self):
        descriptor = FunctionRegistry.create_default().resolve("array\\at")
        assert descriptor.min_args == 2
        assert not descriptor.lazy

    def test_lazy_functions(self):
        registry = FunctionRegistry.create_default()
        lazy = {name for name in registry.names() if registry.resolve(name).lazy}
        assert lazy == {"assign", "ifThen", "ifThenElse", "logical\\and", "logical\\or"}
