"""
Shared helpers for built-in formula functions.

Every function follows the same failure contract:
- wrong argument type -> FormulaTypeError (hard, aborts evaluation)
- index/lookup miss -> notice logged, None returned (soft)
"""

from typing import Any

from crmcore.errors import FormulaTypeError
from crmcore.utils import log_notice


def is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def fail(name: str, message: str) -> FormulaTypeError:
    return FormulaTypeError(f"Formula: {name}: {message}")


def require_list(name: str, value: Any, position: str = "First") -> list:
    if not isinstance(value, list):
        raise fail(name, f"{position} argument must be array.")
    return value


def require_int(name: str, value: Any, position: str = "Second") -> int:
    if not is_int(value):
        raise fail(name, f"{position} argument must be integer.")
    return value


def require_number(name: str, value: Any, position: str) -> Any:
    if not is_number(value):
        raise fail(name, f"{position} argument must be number.")
    return value


def require_string(name: str, value: Any, position: str = "First") -> str:
    if not isinstance(value, str):
        raise fail(name, f"{position} argument must be string.")
    return value


def lookup_miss(ctx, name: str, message: str) -> None:
    """Soft failure: log a notice and evaluate to None."""
    log_notice(ctx.logger, f"Formula: {name}: {message}")
    return None


def to_bool(value: Any) -> bool:
    """Formula truthiness: None, False, 0, "" and empty lists are false."""
    return bool(value)
