"""
crmcore.formula - the Formula expression language.

FormulaNode trees (stored as {"type": ..., "value": [...]}) are evaluated by
an Evaluator against a FunctionRegistry and an optional Record.
"""

from crmcore.formula.node import FormulaNode
from crmcore.formula.registry import FunctionDescriptor, FunctionRegistry
from crmcore.formula.evaluator import EvaluationContext, Evaluator

__all__ = [
    "FormulaNode",
    "FunctionDescriptor",
    "FunctionRegistry",
    "EvaluationContext",
    "Evaluator",
]
