"""
Formula evaluator.

Evaluates a FormulaNode tree top-down:
1. Evaluate each argument, left to right (literals evaluate to themselves)
2. Resolve the function name in the registry
3. Check the minimum argument count
4. Call the function with the evaluated arguments and the context

An error raised while evaluating an argument wins over an unknown name or a
missing argument in the enclosing call. Lazy functions (ifThen,
logical\\and, ...) skip step 1 and receive the raw argument nodes; they
evaluate what they need through ctx.evaluate().

Error handling contract:
- UnknownFunctionError, FormulaTypeError, FormulaError abort the whole
  evaluation and propagate unchanged
- Lookup misses are soft: the function logs a notice and returns None
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from crmcore.errors import FormulaError, FormulaTypeError, UnknownFunctionError
from crmcore.formula.node import FormulaNode
from crmcore.formula.registry import FunctionRegistry
from crmcore.record import Record

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 100


@dataclass
class EvaluationContext:
    """
    Ambient state for one formula evaluation.

    Attributes:
        evaluator: The evaluator running this formula
        record: Record the formula reads and writes, if any
        variables: Formula variables (shared with the caller's mapping)
        logger: Diagnostic sink for soft failures
        depth: Current nesting depth
    """
    evaluator: "Evaluator"
    record: Optional[Record] = None
    variables: dict[str, Any] = field(default_factory=dict)
    logger: logging.Logger = logger
    depth: int = 0

    def evaluate(self, item: Any) -> Any:
        """Evaluate a raw argument (node or literal) one level deeper."""
        return self.evaluator._evaluate(item, self, self.depth + 1)

    def require_record(self, function_name: str) -> Record:
        if self.record is None:
            raise FormulaError(f"Formula: {function_name}: No record in context.")
        return self.record


class Evaluator:
    """
    Evaluates formula trees against a function registry.

    Args:
        registry: Function registry (defaults to all built-ins)
        logger: Diagnostic sink passed to functions through the context
        max_depth: Maximum node nesting before evaluation fails
    """

    def __init__(
        self,
        registry: Optional[FunctionRegistry] = None,
        logger: Optional[logging.Logger] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        self.registry = registry if registry is not None else FunctionRegistry.create_default()
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self.max_depth = max_depth

    def evaluate(
        self,
        node: Any,
        record: Optional[Record] = None,
        variables: Optional[dict[str, Any]] = None,
    ) -> Any:
        """
        Evaluate a node (or literal) and return its value.

        Args:
            node: FormulaNode or literal
            record: Record available to entity/attribute functions
            variables: Variable mapping; assignments are written back into it

        Raises:
            UnknownFunctionError: Function name not registered
            FormulaTypeError: Wrong arity or argument type
            FormulaError: Any other hard evaluation failure, including nesting
                too deep for the interpreter
        """
        ctx = EvaluationContext(
            evaluator=self,
            record=record,
            variables=variables if variables is not None else {},
            logger=self.logger,
        )
        try:
            return self._evaluate(node, ctx, 0)
        except RecursionError:
            raise FormulaError("Formula: Nesting too deep to evaluate.") from None

    def run(
        self,
        script: Union[FormulaNode, dict, str],
        record: Optional[Record] = None,
        variables: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Evaluate a stored formula given as a node, wire-format dict or JSON string."""
        if isinstance(script, str):
            node = FormulaNode.from_json(script)
        elif isinstance(script, dict):
            node = FormulaNode.from_dict(script)
        else:
            node = script
        return self.evaluate(node, record=record, variables=variables)

    def _evaluate(self, item: Any, ctx: EvaluationContext, depth: int) -> Any:
        if not isinstance(item, FormulaNode):
            return item

        if depth > self.max_depth:
            raise FormulaError(
                f"Formula: Maximum nesting depth of {self.max_depth} exceeded."
            )

        descriptor = self.registry.get(item.name)

        call_ctx = EvaluationContext(
            evaluator=self,
            record=ctx.record,
            variables=ctx.variables,
            logger=ctx.logger,
            depth=depth,
        )

        if descriptor is not None and descriptor.lazy:
            args = list(item.args)
        else:
            args = [self._evaluate(arg, call_ctx, depth + 1) for arg in item.args]
            if descriptor is None:
                raise UnknownFunctionError(item.name)

        if len(args) < descriptor.min_args:
            raise FormulaTypeError(f"Formula: {item.name}: Not enough arguments.")

        return descriptor.fn(args, call_ctx)


def format_value(value: Any) -> str:
    """Render an evaluation result for display."""
    if isinstance(value, Record):
        value = value.to_dict()
    return json.dumps(value, default=str)
