"""Arithmetic (numeric\\*) and rounding (number\\*) functions."""

import math

from crmcore.errors import FormulaError
from crmcore.formula.functions.base import is_int, require_int, require_number
from crmcore.formula.registry import FunctionDescriptor

_POSITIONS = ("First", "Second", "Third", "Fourth", "Fifth")


def _position(i: int) -> str:
    return _POSITIONS[i] if i < len(_POSITIONS) else f"#{i + 1}"


def _numbers(name: str, args: list) -> list:
    return [require_number(name, a, _position(i)) for i, a in enumerate(args)]


def summation(args: list, ctx):
    return sum(_numbers("numeric\\summation", args))


def subtraction(args: list, ctx):
    left, right = _numbers("numeric\\subtraction", args[:2])
    return left - right


def multiplication(args: list, ctx):
    result = 1
    for n in _numbers("numeric\\multiplication", args):
        result *= n
    return result


def division(args: list, ctx):
    left, right = _numbers("numeric\\division", args[:2])
    if right == 0:
        raise FormulaError("Formula: numeric\\division: Division by zero.")
    result = left / right
    if is_int(left) and is_int(right) and left % right == 0:
        return left // right
    return result


def modulo(args: list, ctx):
    left, right = _numbers("numeric\\modulo", args[:2])
    if right == 0:
        raise FormulaError("Formula: numeric\\modulo: Division by zero.")
    return left % right


def abs_(args: list, ctx):
    return abs(require_number("number\\abs", args[0], "First"))


def round_(args: list, ctx):
    value = require_number("number\\round", args[0], "First")
    precision = 0
    if len(args) > 1:
        precision = require_int("number\\round", args[1])
    # Half away from zero, not Python's banker's rounding
    factor = 10 ** precision
    rounded = math.floor(abs(value) * factor + 0.5) / factor
    rounded = math.copysign(rounded, value)
    return int(rounded) if precision == 0 else rounded


def floor_(args: list, ctx) -> int:
    return math.floor(require_number("number\\floor", args[0], "First"))


def ceil_(args: list, ctx) -> int:
    return math.ceil(require_number("number\\ceil", args[0], "First"))


FUNCTIONS = [
    FunctionDescriptor("numeric\\summation", summation, min_args=2),
    FunctionDescriptor("numeric\\subtraction", subtraction, min_args=2),
    FunctionDescriptor("numeric\\multiplication", multiplication, min_args=2),
    FunctionDescriptor("numeric\\division", division, min_args=2),
    FunctionDescriptor("numeric\\modulo", modulo, min_args=2),
    FunctionDescriptor("number\\abs", abs_, min_args=1),
    FunctionDescriptor("number\\round", round_, min_args=1),
    FunctionDescriptor("number\\floor", floor_, min_args=1),
    FunctionDescriptor("number\\ceil", ceil_, min_args=1),
]
