"""
FunctionRegistry - maps namespaced formula function names to implementations.

Names use a backslash separator mirroring a category/function hierarchy:
category "array", function "at" -> registry key "array\\at". Names without a
separator (ifThen, value, ...) belong to the "general" category.

Built-ins are registered at startup from explicit per-category tables in
crmcore.formula.functions. Nothing is resolved by reflection on names.

Usage:
    registry = FunctionRegistry.create_default()
    descriptor = registry.resolve("array\\at")

    # Tests and extensions
    registry.register("custom\\double", lambda args, ctx: args[0] * 2, min_args=1)
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional, TYPE_CHECKING

from crmcore.errors import UnknownFunctionError

if TYPE_CHECKING:
    from crmcore.formula.evaluator import EvaluationContext


# fn(args, ctx) -> value. Eager functions get evaluated args, lazy functions
# get the raw argument nodes and evaluate them through ctx.evaluate().
FormulaFn = Callable[[list, "EvaluationContext"], Any]

NAMESPACE_SEPARATOR = "\\"
GENERAL_CATEGORY = "general"


@dataclass(frozen=True)
class FunctionDescriptor:
    """
    A registered formula function.

    Attributes:
        name: Full namespaced name (e.g. "array\\at")
        fn: Evaluation routine
        min_args: Minimum argument count, checked before fn is called
        lazy: If True, fn receives unevaluated arguments (short-circuit)
        description: One-line help text for listings
    """
    name: str
    fn: FormulaFn
    min_args: int = 0
    lazy: bool = False
    description: str = ""

    @property
    def category(self) -> str:
        if NAMESPACE_SEPARATOR not in self.name:
            return GENERAL_CATEGORY
        return self.name.rsplit(NAMESPACE_SEPARATOR, 1)[0]

    @property
    def short_name(self) -> str:
        return self.name.rsplit(NAMESPACE_SEPARATOR, 1)[-1]


class FunctionRegistry:
    """Registry of formula functions keyed by namespaced name."""

    def __init__(self) -> None:
        self._functions: dict[str, FunctionDescriptor] = {}

    def register(
        self,
        name: str,
        fn,
        *,
        min_args: int = 0,
        lazy: bool = False,
        description: str = "",
    ) -> FunctionDescriptor:
        """
        Register a function by name, replacing any previous registration.

        Args:
            name: Namespaced function name
            fn: A FunctionDescriptor, or a callable fn(args, ctx)
            min_args: Minimum argument count (ignored for descriptors)
            lazy: Pass raw argument nodes instead of values (ignored for descriptors)
            description: Help text (ignored for descriptors)

        Returns:
            The stored FunctionDescriptor
        """
        if isinstance(fn, FunctionDescriptor):
            descriptor = fn
            if descriptor.name != name:
                descriptor = FunctionDescriptor(
                    name=name,
                    fn=fn.fn,
                    min_args=fn.min_args,
                    lazy=fn.lazy,
                    description=fn.description,
                )
        else:
            descriptor = FunctionDescriptor(
                name=name,
                fn=fn,
                min_args=min_args,
                lazy=lazy,
                description=description,
            )
        self._functions[name] = descriptor
        return descriptor

    def register_all(self, descriptors) -> None:
        for descriptor in descriptors:
            self.register(descriptor.name, descriptor)

    def resolve(self, name: str) -> FunctionDescriptor:
        """
        Look up a function by name.

        Raises:
            UnknownFunctionError: If no function is registered under name
        """
        descriptor = self._functions.get(name)
        if descriptor is None:
            raise UnknownFunctionError(name)
        return descriptor

    def get(self, name: str) -> Optional[FunctionDescriptor]:
        """Look up a function by name, or None if it is not registered."""
        return self._functions.get(name)

    def has(self, name: str) -> bool:
        return name in self._functions

    def names(self, category: Optional[str] = None) -> list[str]:
        """Sorted registered names, optionally limited to one category."""
        return sorted(
            name for name, d in self._functions.items()
            if category is None or d.category == category
        )

    def categories(self) -> list[str]:
        return sorted({d.category for d in self._functions.values()})

    def __len__(self) -> int:
        return len(self._functions)

    @classmethod
    def create_default(cls) -> "FunctionRegistry":
        """Create a registry with every built-in function."""
        from crmcore.formula.functions import BUILTIN_FUNCTIONS

        registry = cls()
        registry.register_all(BUILTIN_FUNCTIONS)
        return registry
