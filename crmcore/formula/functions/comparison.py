"""Comparison functions (comparison\\*)."""

import operator
from typing import Any, Callable

from crmcore.formula.functions.base import fail, is_number
from crmcore.formula.registry import FunctionDescriptor
from crmcore.record import values_differ


def equals(args: list, ctx) -> bool:
    return not values_differ(args[0], args[1])


def not_equals(args: list, ctx) -> bool:
    return values_differ(args[0], args[1])


def _ordering(name: str, op: Callable[[Any, Any], bool]):
    def compare(args: list, ctx) -> bool:
        left, right = args[0], args[1]
        if is_number(left) and is_number(right):
            return op(left, right)
        if isinstance(left, str) and isinstance(right, str):
            return op(left, right)
        # Ordering against null is false rather than an error
        if left is None or right is None:
            return False
        raise fail(name, "Arguments must be both numbers or both strings.")
    return compare


FUNCTIONS = [
    FunctionDescriptor("comparison\\equals", equals, min_args=2),
    FunctionDescriptor("comparison\\notEquals", not_equals, min_args=2),
    FunctionDescriptor(
        "comparison\\greaterThan",
        _ordering("comparison\\greaterThan", operator.gt),
        min_args=2,
    ),
    FunctionDescriptor(
        "comparison\\lessThan",
        _ordering("comparison\\lessThan", operator.lt),
        min_args=2,
    ),
    FunctionDescriptor(
        "comparison\\greaterThanOrEquals",
        _ordering("comparison\\greaterThanOrEquals", operator.ge),
        min_args=2,
    ),
    FunctionDescriptor(
        "comparison\\lessThanOrEquals",
        _ordering("comparison\\lessThanOrEquals", operator.le),
        min_args=2,
    ),
]
