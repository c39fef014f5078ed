"""
Record - dynamic attribute bag for a persisted business object.

A Record keeps two maps:
- attributes: current values
- fetched: values as last loaded from (or written to) storage

is_attribute_changed(name) compares the two. New records have no fetched
values, so every attribute set on them counts as changed.

Values are restricted to None, bool, int, float, str, list, dict and nested
Records. Typed accessors never coerce: a mismatch raises AttributeTypeError.
"""

import copy
from typing import Any, Iterable, Optional

from crmcore.errors import AttributeTypeError


_MISSING = object()


def values_differ(a: Any, b: Any) -> bool:
    """Compare two attribute values without letting True == 1 hide a change."""
    if isinstance(a, bool) != isinstance(b, bool):
        return True
    if isinstance(a, Record):
        a = a.to_dict()
    if isinstance(b, Record):
        b = b.to_dict()
    return a != b


class Record:
    """
    A business entity instance with dynamically named attributes.

    Subclasses set entity_type. The id lives in the "id" attribute so it
    round-trips through storage with everything else.
    """

    entity_type: str = ""

    def __init__(
        self,
        attributes: Optional[dict[str, Any]] = None,
        id: Optional[str] = None,
        *,
        is_new: bool = True,
    ):
        self._attributes: dict[str, Any] = {}
        self._fetched: dict[str, Any] = {}
        self._is_new = is_new
        if attributes:
            self.set(attributes)
        if id is not None:
            self._attributes["id"] = id

    # -------------------------------------------------------------------------
    # Identity and lifecycle
    # -------------------------------------------------------------------------

    @property
    def id(self) -> Optional[str]:
        return self._attributes.get("id")

    @id.setter
    def id(self, value: Optional[str]) -> None:
        self._attributes["id"] = value

    def is_new(self) -> bool:
        return self._is_new

    def set_is_new(self, is_new: bool) -> None:
        self._is_new = is_new

    # -------------------------------------------------------------------------
    # Attribute access
    # -------------------------------------------------------------------------

    def has(self, name: str) -> bool:
        """True if the attribute is set (even to None)."""
        return name in self._attributes

    def get(self, name: str, default: Any = None) -> Any:
        return self._attributes.get(name, default)

    def set(self, name, value: Any = _MISSING) -> None:
        """
        Set one attribute, or several from a mapping.

            record.set("userName", "alice")
            record.set({"userName": "alice", "type": "regular"})
        """
        if isinstance(name, dict):
            if value is not _MISSING:
                raise TypeError("set() with a mapping takes no value argument")
            for key, item in name.items():
                self._attributes[key] = item
            return
        if value is _MISSING:
            raise TypeError(f"set() missing value for attribute '{name}'")
        self._attributes[name] = value

    def clear(self, name: str) -> None:
        """Unset an attribute. Clearing an unset attribute is a no-op."""
        self._attributes.pop(name, None)

    def attribute_names(self) -> list[str]:
        return list(self._attributes.keys())

    # -------------------------------------------------------------------------
    # Dirty tracking
    # -------------------------------------------------------------------------

    def has_fetched(self, name: str) -> bool:
        return name in self._fetched

    def get_fetched(self, name: str, default: Any = None) -> Any:
        return self._fetched.get(name, default)

    def set_as_fetched(self) -> None:
        """Make the current values the baseline for change detection."""
        self._fetched = copy.deepcopy(self._attributes)

    def is_attribute_changed(self, name: str) -> bool:
        current = self._attributes.get(name, _MISSING)
        original = self._fetched.get(name, _MISSING)
        if current is _MISSING or original is _MISSING:
            return current is not original
        return values_differ(current, original)

    def changed_attributes(self) -> list[str]:
        names = set(self._attributes) | set(self._fetched)
        return sorted(n for n in names if self.is_attribute_changed(n))

    # -------------------------------------------------------------------------
    # Typed accessors
    # -------------------------------------------------------------------------

    def _typed(self, name: str, types: tuple, expected: str) -> Any:
        value = self._attributes.get(name)
        if value is None:
            return None
        # bool is an int subclass; only accept it where bool was asked for
        if isinstance(value, bool) and bool not in types:
            raise AttributeTypeError(name, expected, value)
        if not isinstance(value, types):
            raise AttributeTypeError(name, expected, value)
        return value

    def get_str(self, name: str) -> Optional[str]:
        return self._typed(name, (str,), "string")

    def get_bool(self, name: str) -> Optional[bool]:
        return self._typed(name, (bool,), "bool")

    def get_int(self, name: str) -> Optional[int]:
        return self._typed(name, (int,), "int")

    def get_float(self, name: str) -> Optional[float]:
        return self._typed(name, (float, int), "float")

    def get_list(self, name: str) -> Optional[list]:
        return self._typed(name, (list,), "list")

    def get_record(self, name: str) -> Optional["Record"]:
        return self._typed(name, (Record,), "record")

    # -------------------------------------------------------------------------
    # Conversion
    # -------------------------------------------------------------------------

    def to_dict(self, fields: Optional[Iterable[str]] = None) -> dict[str, Any]:
        """Plain-dict view of the attributes; nested Records become dicts."""
        names = self._attributes.keys() if fields is None else fields
        result = {}
        for name in names:
            if name not in self._attributes:
                continue
            result[name] = _plain(self._attributes[name])
        return result

    def copy(self) -> "Record":
        clone = type(self)(is_new=self._is_new)
        clone._attributes = copy.deepcopy(self._attributes)
        clone._fetched = copy.deepcopy(self._fetched)
        return clone

    @classmethod
    def from_storage(cls, data: dict[str, Any]) -> "Record":
        """Build a loaded (not new) record whose fetched values match storage."""
        record = cls(data, is_new=False)
        record.set_as_fetched()
        return record

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r}, new={self._is_new})"


def _plain(value: Any) -> Any:
    if isinstance(value, Record):
        return value.to_dict()
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value
