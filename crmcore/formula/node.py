"""
FormulaNode - a stored formula expression tree.

Wire format (the storage format for formulas):

    {"type": "array\\at", "value": [<arg>, <arg>]}
    {"type": "value", "value": 5}
    {"type": "attribute", "value": "userName"}
    {"type": "variable", "value": "counter"}

An argument that is an object with a "type" key is a node; anything else is
a literal passed through unchanged. Raw nodes (value, attribute, variable)
hold exactly one literal argument.
"""

import json
from dataclasses import dataclass, field
from typing import Any

from crmcore.errors import FormulaSyntaxError


RAW_NODE_TYPES = frozenset({"value", "variable", "attribute"})

# Deepest node nesting accepted when parsing, and the cap on evaluator depth
MAX_NODE_DEPTH = 200


@dataclass(frozen=True)
class FormulaNode:
    """
    One function application in a formula tree.

    Attributes:
        name: Namespaced function name, e.g. "array\\at"
        args: Argument nodes or literals, in evaluation order
    """
    name: str
    args: tuple = field(default_factory=tuple)

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name:
            raise FormulaSyntaxError("Formula node name must be a non-empty string")
        if not isinstance(self.args, tuple):
            object.__setattr__(self, "args", tuple(self.args))
        if self.name in RAW_NODE_TYPES and len(self.args) != 1:
            raise FormulaSyntaxError(
                f"Formula node '{self.name}' takes exactly one value"
            )

    @classmethod
    def value(cls, literal: Any) -> "FormulaNode":
        return cls("value", (literal,))

    @classmethod
    def from_dict(cls, data: dict[str, Any], _depth: int = 0) -> "FormulaNode":
        """
        Parse a node from its wire format.

        Raises:
            FormulaSyntaxError: Malformed node, or nesting deeper than MAX_NODE_DEPTH
        """
        if _depth > MAX_NODE_DEPTH:
            raise FormulaSyntaxError(
                f"Formula nesting exceeds {MAX_NODE_DEPTH} levels"
            )
        if not isinstance(data, dict) or "type" not in data:
            raise FormulaSyntaxError(f"Not a formula node: {data!r}")

        name = data["type"]
        raw = data.get("value")

        if name in RAW_NODE_TYPES:
            return cls(name, (raw,))

        if raw is None:
            return cls(name)
        if not isinstance(raw, list):
            raise FormulaSyntaxError(
                f"Formula node '{name}': value must be a list of arguments"
            )
        return cls(name, tuple(_parse_arg(item, _depth + 1) for item in raw))

    def to_dict(self) -> dict[str, Any]:
        if self.name in RAW_NODE_TYPES:
            return {"type": self.name, "value": self.args[0]}
        return {"type": self.name, "value": [_dump_arg(a) for a in self.args]}

    @classmethod
    def from_json(cls, text: str) -> "FormulaNode":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise FormulaSyntaxError(f"Invalid formula JSON: {e}")
        except RecursionError:
            raise FormulaSyntaxError("Invalid formula JSON: nesting too deep")
        return cls.from_dict(data)

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def _parse_arg(item: Any, depth: int) -> Any:
    if isinstance(item, dict) and "type" in item:
        return FormulaNode.from_dict(item, depth)
    return item


def _dump_arg(item: Any) -> Any:
    if isinstance(item, FormulaNode):
        return item.to_dict()
    return item
