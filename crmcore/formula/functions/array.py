"""Array functions (array\\*)."""

from typing import Any

from crmcore.formula.functions.base import (
    lookup_miss,
    require_int,
    require_list,
    require_string,
)
from crmcore.formula.registry import FunctionDescriptor


def at(args: list, ctx) -> Any:
    """array\\at(list, index): element at index, or None (with a notice) when out of range."""
    array = require_list("array\\at", args[0])
    index = require_int("array\\at", args[1])

    # Negative indexes are misses, not Python-style offsets from the end
    if index < 0 or index >= len(array):
        return lookup_miss(ctx, "array\\at", "Index doesn't exist.")

    return array[index]


def includes(args: list, ctx) -> bool:
    array = args[0]
    if array is None:
        return False
    require_list("array\\includes", array)
    return args[1] in array


def push(args: list, ctx) -> list:
    """array\\push(list, item, ...): new list with the items appended."""
    array = args[0]
    if array is None:
        array = []
    require_list("array\\push", array)
    return list(array) + list(args[1:])


def length(args: list, ctx) -> int:
    array = args[0]
    if array is None:
        return 0
    require_list("array\\length", array)
    return len(array)


def index_of(args: list, ctx) -> Any:
    """array\\indexOf(list, item): first index of item, None when absent."""
    array = args[0]
    if array is None:
        return None
    require_list("array\\indexOf", array)
    try:
        return array.index(args[1])
    except ValueError:
        return None


def join(args: list, ctx) -> str:
    array = require_list("array\\join", args[0])
    separator = require_string("array\\join", args[1], "Second")
    return separator.join("" if item is None else str(item) for item in array)


def remove_at(args: list, ctx) -> list:
    """array\\removeAt(list, index): copy without the element; out of range leaves the list unchanged."""
    array = require_list("array\\removeAt", args[0])
    index = require_int("array\\removeAt", args[1])
    if index < 0 or index >= len(array):
        lookup_miss(ctx, "array\\removeAt", "Index doesn't exist.")
        return list(array)
    return array[:index] + array[index + 1:]


def unique(args: list, ctx) -> list:
    array = require_list("array\\unique", args[0])
    result = []
    for item in array:
        if item not in result:
            result.append(item)
    return result


FUNCTIONS = [
    FunctionDescriptor("array\\at", at, min_args=2, description="Element at index"),
    FunctionDescriptor("array\\includes", includes, min_args=2, description="Whether list contains a value"),
    FunctionDescriptor("array\\push", push, min_args=2, description="Append values to a list"),
    FunctionDescriptor("array\\length", length, min_args=1, description="Number of elements"),
    FunctionDescriptor("array\\indexOf", index_of, min_args=2, description="Index of a value"),
    FunctionDescriptor("array\\join", join, min_args=2, description="Join elements with a separator"),
    FunctionDescriptor("array\\removeAt", remove_at, min_args=2, description="Remove element at index"),
    FunctionDescriptor("array\\unique", unique, min_args=1, description="Drop duplicate elements"),
]
