"""General functions: raw values, variables, attributes and control flow."""

from typing import Any

from crmcore.formula.functions.base import fail, lookup_miss, require_string, to_bool
from crmcore.formula.registry import FunctionDescriptor


def value(args: list, ctx) -> Any:
    return args[0]


def variable(args: list, ctx) -> Any:
    name = require_string("variable", args[0])
    if name not in ctx.variables:
        return lookup_miss(ctx, "variable", f"Variable '{name}' is not set.")
    return ctx.variables[name]


def attribute(args: list, ctx) -> Any:
    """Read a record attribute. An unset attribute is null, not a miss."""
    name = require_string("attribute", args[0])
    record = ctx.require_record("attribute")
    return record.get(name)


def assign(args: list, ctx) -> Any:
    """assign(name, value): lazy so a plain string name need not be wrapped in value()."""
    name = ctx.evaluate(args[0])
    if not isinstance(name, str) or not name:
        raise fail("assign", "First argument must be a variable name.")
    result = ctx.evaluate(args[1])
    ctx.variables[name] = result
    return result


def list_(args: list, ctx) -> list:
    return list(args)


def bundle(args: list, ctx) -> Any:
    """Evaluate every statement in order; the last result is the bundle's value."""
    result = None
    for arg in args:
        result = arg
    return result


def if_then(args: list, ctx) -> Any:
    if to_bool(ctx.evaluate(args[0])):
        return ctx.evaluate(args[1])
    return None


def if_then_else(args: list, ctx) -> Any:
    if to_bool(ctx.evaluate(args[0])):
        return ctx.evaluate(args[1])
    return ctx.evaluate(args[2])


FUNCTIONS = [
    FunctionDescriptor("value", value, min_args=1, description="Literal value"),
    FunctionDescriptor("variable", variable, min_args=1, description="Read a formula variable"),
    FunctionDescriptor("attribute", attribute, min_args=1, description="Read a record attribute"),
    FunctionDescriptor("assign", assign, min_args=2, lazy=True, description="Set a formula variable"),
    FunctionDescriptor("list", list_, description="Build a list from the arguments"),
    FunctionDescriptor("bundle", bundle, description="Evaluate statements in order"),
    FunctionDescriptor("ifThen", if_then, min_args=2, lazy=True, description="Conditional without else"),
    FunctionDescriptor("ifThenElse", if_then_else, min_args=3, lazy=True, description="Conditional"),
]
