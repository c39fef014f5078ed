"""Entity functions (entity\\*): read and write the record in context."""

from typing import Any

from crmcore.formula.functions.base import require_string
from crmcore.formula.registry import FunctionDescriptor


def get_attribute(args: list, ctx) -> Any:
    name = require_string("entity\\attribute", args[0])
    return ctx.require_record("entity\\attribute").get(name)


def set_attribute(args: list, ctx) -> Any:
    name = require_string("entity\\setAttribute", args[0])
    ctx.require_record("entity\\setAttribute").set(name, args[1])
    return args[1]


def clear_attribute(args: list, ctx) -> None:
    name = require_string("entity\\clearAttribute", args[0])
    ctx.require_record("entity\\clearAttribute").clear(name)
    return None


def is_new(args: list, ctx) -> bool:
    return ctx.require_record("entity\\isNew").is_new()


def is_attribute_changed(args: list, ctx) -> bool:
    name = require_string("entity\\isAttributeChanged", args[0])
    return ctx.require_record("entity\\isAttributeChanged").is_attribute_changed(name)


def is_attribute_not_changed(args: list, ctx) -> bool:
    name = require_string("entity\\isAttributeNotChanged", args[0])
    return not ctx.require_record("entity\\isAttributeNotChanged").is_attribute_changed(name)


def attribute_fetched(args: list, ctx) -> Any:
    name = require_string("entity\\attributeFetched", args[0])
    return ctx.require_record("entity\\attributeFetched").get_fetched(name)


FUNCTIONS = [
    FunctionDescriptor("entity\\attribute", get_attribute, min_args=1),
    FunctionDescriptor("entity\\setAttribute", set_attribute, min_args=2),
    FunctionDescriptor("entity\\clearAttribute", clear_attribute, min_args=1),
    FunctionDescriptor("entity\\isNew", is_new),
    FunctionDescriptor("entity\\isAttributeChanged", is_attribute_changed, min_args=1),
    FunctionDescriptor("entity\\isAttributeNotChanged", is_attribute_not_changed, min_args=1),
    FunctionDescriptor("entity\\attributeFetched", attribute_fetched, min_args=1),
]
