"""Parameterized WHERE clause builder.

Callers add a condition for every optional filter unconditionally: absent or
empty values are silently ignored. Only programming errors (bad operator or
match type) and enum violations raise.

Example::

    builder = QueryConditionBuilder()
    builder.add_number_condition("is_deleted", 0)
    builder.add_string_condition("name", keywords)
    builder.add_array_condition("status", status_list, "BizStatusEnums")
    clause = builder.build()  # {"where": "...", "params": [...]}
"""
import math
from numbers import Real
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple

from .enums import EnumRegistry, get_default_registry
from .exceptions import EnumValidationError, UnsupportedMatchTypeError, UnsupportedOperatorError

NUMBER_OPERATORS = ("=", ">", "<", ">=", "<=", "!=")

_LIKE_PATTERNS = {
    "like": "%{}%",
    "start": "{}%",
    "end": "%{}",
}


class Predicate(NamedTuple):
    """One SQL fragment with ``?`` placeholders and its bound values."""
    fragment: str
    values: Tuple[Any, ...]


class QueryConditionBuilder:
    """Accumulates predicates and renders them to a single WHERE fragment."""

    def __init__(self, enums: Optional[EnumRegistry] = None):
        self._enums = enums
        self._predicates: List[Predicate] = []

    @property
    def enums(self) -> EnumRegistry:
        if self._enums is None:
            self._enums = get_default_registry()
        return self._enums

    @property
    def predicates(self) -> Tuple[Predicate, ...]:
        return tuple(self._predicates)

    def __len__(self) -> int:
        return len(self._predicates)

    def __bool__(self) -> bool:
        return bool(self._predicates)

    def add_predicate(self, fragment: str, values: Sequence[Any] = ()) -> "QueryConditionBuilder":
        """Append a raw predicate. ``fragment`` must hold one ``?`` per value."""
        values = tuple(values)
        if fragment.count("?") != len(values):
            raise ValueError(f"Placeholder count does not match values in {fragment!r}")
        self._predicates.append(Predicate(fragment, values))
        return self

    def add_number_condition(self, field: str, value: Any, operator: str = "=") -> "QueryConditionBuilder":
        """Add ``field <operator> ?``; ignored when ``value`` is None, NaN or not a number."""
        if value is None or not isinstance(value, Real):
            return self
        if isinstance(value, float) and math.isnan(value):
            return self
        if operator not in NUMBER_OPERATORS:
            raise UnsupportedOperatorError(operator)
        if isinstance(value, bool):
            value = int(value)
        return self.add_predicate(f"{field} {operator} ?", (value,))

    def add_string_condition(self, field: str, value: Any, match_type: str = "like") -> "QueryConditionBuilder":
        """Add an exact or LIKE match on ``field``.

        Args:
            field: Column name.
            value: Search text; empty or non-string values are ignored.
            match_type: ``exact``, ``like`` (substring), ``start`` or ``end``.
        """
        if not value or not isinstance(value, str):
            return self
        if match_type == "exact":
            return self.add_predicate(f"{field} = ?", (value,))
        pattern = _LIKE_PATTERNS.get(match_type)
        if pattern is None:
            raise UnsupportedMatchTypeError(match_type)
        return self.add_predicate(f"{field} LIKE ?", (pattern.format(value),))

    def add_array_condition(self, field: str, values: Any, enum_key: Optional[str] = None) -> "QueryConditionBuilder":
        """Add ``field IN (?, ...)`` keeping the supplied value order.

        Raises:
            EnumValidationError: If ``enum_key`` is given and any value is not
                a member of that enum. Nothing is added in that case.
        """
        if not values or not isinstance(values, (list, tuple)):
            return self
        if enum_key:
            result = self.enums.validate_array(enum_key, values)
            if not result.valid:
                raise EnumValidationError(field, result.invalid_values, result.valid_values)
        placeholders = ",".join("?" for _ in values)
        return self.add_predicate(f"{field} IN ({placeholders})", values)

    def build(self, connector: str = "AND") -> Dict[str, Any]:
        """Render ``{"where": str, "params": list}``; ``where`` is ``""`` when empty."""
        if not self._predicates:
            return {"where": "", "params": []}
        params: List[Any] = []
        for predicate in self._predicates:
            params.extend(predicate.values)
        return {
            "where": f" {connector} ".join(p.fragment for p in self._predicates),
            "params": params,
        }

    def reset(self) -> "QueryConditionBuilder":
        self._predicates = []
        return self
