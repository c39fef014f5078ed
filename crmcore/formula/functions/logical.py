"""Logical functions (logical\\*). and/or short-circuit."""

from crmcore.formula.functions.base import to_bool
from crmcore.formula.registry import FunctionDescriptor


def and_(args: list, ctx) -> bool:
    for arg in args:
        if not to_bool(ctx.evaluate(arg)):
            return False
    return True


def or_(args: list, ctx) -> bool:
    for arg in args:
        if to_bool(ctx.evaluate(arg)):
            return True
    return False


def not_(args: list, ctx) -> bool:
    return not to_bool(args[0])


FUNCTIONS = [
    FunctionDescriptor("logical\\and", and_, min_args=1, lazy=True, description="True if every argument is true"),
    FunctionDescriptor("logical\\or", or_, min_args=1, lazy=True, description="True if any argument is true"),
    FunctionDescriptor("logical\\not", not_, min_args=1, description="Negation"),
]
