"""String functions (string\\*)."""

from typing import Any

from crmcore.formula.functions.base import require_int, require_string
from crmcore.formula.registry import FunctionDescriptor


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def concatenate(args: list, ctx) -> str:
    return "".join(_text(a) for a in args)


def length(args: list, ctx) -> int:
    if args[0] is None:
        return 0
    return len(require_string("string\\length", args[0]))


def substring(args: list, ctx) -> str:
    """string\\substring(string, start[, length]): negative start counts from the end, negative length stops short of it."""
    text = require_string("string\\substring", args[0])
    start = require_int("string\\substring", args[1])
    if len(args) > 2 and args[2] is not None:
        count = require_int("string\\substring", args[2], "Third")
        if start < 0:
            start = max(len(text) + start, 0)
        end = start + count if count >= 0 else len(text) + count
        return text[start:end]
    return text[start:]


def contains(args: list, ctx) -> bool:
    text = args[0]
    if text is None:
        return False
    require_string("string\\contains", text)
    needle = require_string("string\\contains", args[1], "Second")
    return needle in text


def upper_case(args: list, ctx) -> str:
    return _text(args[0]).upper()


def lower_case(args: list, ctx) -> str:
    return _text(args[0]).lower()


def trim(args: list, ctx) -> str:
    return _text(args[0]).strip()


FUNCTIONS = [
    FunctionDescriptor("string\\concatenate", concatenate, description="Join values as text"),
    FunctionDescriptor("string\\length", length, min_args=1),
    FunctionDescriptor("string\\substring", substring, min_args=2),
    FunctionDescriptor("string\\contains", contains, min_args=2),
    FunctionDescriptor("string\\upperCase", upper_case, min_args=1),
    FunctionDescriptor("string\\lowerCase", lower_case, min_args=1),
    FunctionDescriptor("string\\trim", trim, min_args=1),
]
