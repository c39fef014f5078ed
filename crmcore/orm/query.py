"""
Query conditions and the Select builder.

Where clauses use a mapping with optional operator suffixes on the keys:

    {"userName": "alice", "id!=": record.id}
    {"type": ["regular", "admin"]}            # IN
    {"createdAt>=": "2020-01-01"}

Stores evaluate conditions either in Python (Condition.matches) or as
parameterized SQL (build_where_sql). Values are never interpolated.
"""

import re
from dataclasses import dataclass
from typing import Any, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from crmcore.orm.repository import Repository
    from crmcore.record import Record


# Allowed comparison operators (SQL-safe)
ALLOWED_OPS = {"=", "!=", "<", ">", "<=", ">="}

_KEY_RE = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)(=|!=|<=|>=|<|>)?$")


@dataclass(frozen=True)
class Condition:
    """A single field comparison."""
    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in ALLOWED_OPS:
            raise ValueError(f"Invalid operator '{self.op}'. Allowed: {ALLOWED_OPS}")
        if isinstance(self.value, list) and self.op not in ("=", "!="):
            raise ValueError(f"List values only support '=' and '!=', got '{self.op}'")

    def matches(self, attributes: dict[str, Any]) -> bool:
        actual = attributes.get(self.field)

        if isinstance(self.value, list):
            found = actual in self.value
            return found if self.op == "=" else not found

        if self.op == "=":
            return actual == self.value
        if self.op == "!=":
            return actual != self.value

        # Ordering comparisons never match nulls
        if actual is None or self.value is None:
            return False
        try:
            if self.op == "<":
                return actual < self.value
            if self.op == ">":
                return actual > self.value
            if self.op == "<=":
                return actual <= self.value
            return actual >= self.value
        except TypeError:
            return False


def parse_where(where: Optional[dict[str, Any]]) -> list[Condition]:
    """Turn a where mapping into Conditions."""
    conditions: list[Condition] = []
    for key, value in (where or {}).items():
        match = _KEY_RE.match(key)
        if not match:
            raise ValueError(f"Invalid where key: {key!r}")
        field_name, op = match.group(1), match.group(2) or "="
        conditions.append(Condition(field_name, op, value))
    return conditions


def build_where_sql(conditions: list[Condition], column: str = "data") -> tuple[str, list[Any]]:
    """
    Build a parameterized WHERE clause over a JSON column.

    Args:
        conditions: Conditions to AND together
        column: Name of the JSON column holding the attributes

    Returns:
        Tuple of (SQL fragment, positional parameters). The fragment is
        "1" when there are no conditions.
    """
    clauses: list[str] = []
    params: list[Any] = []

    for cond in conditions:
        path = f"$.{cond.field}"
        expr = f"json_extract({column}, ?)"

        if isinstance(cond.value, list):
            if not cond.value:
                clauses.append("0" if cond.op == "=" else "1")
                continue
            placeholders = ", ".join("?" * len(cond.value))
            keyword = "IN" if cond.op == "=" else "NOT IN"
            clauses.append(f"{expr} {keyword} ({placeholders})")
            params.append(path)
            params.extend(_sql_value(v) for v in cond.value)
            continue

        if cond.value is None:
            clauses.append(f"{expr} IS NULL" if cond.op == "=" else f"{expr} IS NOT NULL")
            params.append(path)
            continue

        if cond.op == "!=":
            # Attributes that are unset/null differ from any concrete value
            clauses.append(f"({expr} IS NULL OR {expr} != ?)")
            params.extend([path, path, _sql_value(cond.value)])
            continue

        clauses.append(f"{expr} {cond.op} ?")
        params.extend([path, _sql_value(cond.value)])

    return (" AND ".join(clauses) if clauses else "1"), params


def _sql_value(value: Any) -> Any:
    # json_extract returns JSON true/false as 1/0
    if isinstance(value, bool):
        return int(value)
    return value


class Select:
    """
    Query builder bound to a repository.

    Usage:
        user = repo.select(["id"]).where({"userName": "alice"}).find_one()
    """

    def __init__(self, repository: "Repository", fields: Optional[list[str]] = None):
        self._repository = repository
        self._fields = list(fields) if fields is not None else None
        self._where: dict[str, Any] = {}
        self._limit: Optional[int] = None

    def where(self, where: dict[str, Any]) -> "Select":
        self._where.update(where)
        return self

    def limit(self, limit: int) -> "Select":
        self._limit = limit
        return self

    def _params(self) -> dict[str, Any]:
        params: dict[str, Any] = {"where": dict(self._where)}
        if self._fields is not None:
            params["select"] = list(self._fields)
        if self._limit is not None:
            params["limit"] = self._limit
        self._repository.handle_select_params(params)
        return params

    def find(self) -> list["Record"]:
        params = self._params()
        rows = self._repository.store.find(
            self._repository.entity_type,
            parse_where(params["where"]),
            fields=params.get("select"),
            limit=params.get("limit"),
        )
        return [self._repository.entity_class.from_storage(row) for row in rows]

    def find_one(self) -> Optional["Record"]:
        self._limit = 1
        rows = self.find()
        return rows[0] if rows else None

    def count(self) -> int:
        self._fields = ["id"]
        return len(self.find())
