"""
Built-in formula functions, grouped by category.

Each category module exports a FUNCTIONS table of FunctionDescriptors.
FunctionRegistry.create_default() registers BUILTIN_FUNCTIONS.
"""

from crmcore.formula.functions import (
    array,
    comparison,
    entity,
    general,
    logical,
    numeric,
    string,
)

BUILTIN_FUNCTIONS = [
    *general.FUNCTIONS,
    *array.FUNCTIONS,
    *logical.FUNCTIONS,
    *comparison.FUNCTIONS,
    *numeric.FUNCTIONS,
    *string.FUNCTIONS,
    *entity.FUNCTIONS,
]

__all__ = ["BUILTIN_FUNCTIONS"]
