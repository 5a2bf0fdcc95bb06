# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Filter and sorter descriptors, and the pipelines that apply them.

A Filter selects records by comparing one property against a value; the
active filters of a store are AND-combined. A Sorter orders records by one
property; the active sorters form a multi-key comparator where the first
non-tied sorter decides.

Operators:
    - eq / ne: strict equality, inequality (booleans never equal numbers)
    - gt / gte / lt / lte: relational comparison
    - like: case-insensitive substring match on str() of both sides
    - in: membership in a list, tuple or set

Example:
    >>> records = [{'id': 1, 'age': 30}, {'id': 2, 'age': 25}]
    >>> apply_filters(records, [Filter('age', 'gte', 28)])
    [{'id': 1, 'age': 30}]
    >>> apply_sorters(records, [Sorter('age')])
    [{'id': 2, 'age': 25}, {'id': 1, 'age': 30}]
"""

from __future__ import annotations

import operator as _op
from functools import cmp_to_key
from typing import Any, Callable, Iterable

from .exceptions import InvalidFilterError, InvalidSorterError

ASC = 'ASC'
DESC = 'DESC'


def strict_eq(a: Any, b: Any) -> bool:
    """Equality that keeps booleans apart from numbers.

    ``True == 1`` and ``False == 0`` hold in Python; here they do not.

    Example:
        >>> strict_eq(1, 1.0), strict_eq(1, True)
        (True, False)
    """
    return a == b and (type(a) is bool) == (type(b) is bool)


def strict_key(value: Any) -> Any:
    """Dict key under which strict_eq values collide and no others do."""
    return (type(value) is bool, value)


def _ne(value: Any, filter_value: Any) -> bool:
    return not strict_eq(value, filter_value)


def _relational(fn: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def compare(value: Any, filter_value: Any) -> bool:
        try:
            return bool(fn(value, filter_value))
        except TypeError:
            # incomparable types never match
            return False
    return compare


def _like(value: Any, filter_value: Any) -> bool:
    return str(filter_value).lower() in str(value).lower()


def _in(value: Any, filter_value: Any) -> bool:
    if not isinstance(filter_value, (list, tuple, set, frozenset)):
        return False
    return any(strict_eq(value, item) for item in filter_value)


OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    'eq': strict_eq,
    'ne': _ne,
    'gt': _relational(_op.gt),
    'gte': _relational(_op.ge),
    'lt': _relational(_op.lt),
    'lte': _relational(_op.le),
    'like': _like,
    'in': _in,
}


class Filter:
    """A {property, operator, value} record predicate.

    Example:
        >>> f = Filter('name', 'like', 'jo')
        >>> f.matches({'name': 'John'})
        True
    """

    __slots__ = ('property', 'operator', 'value')

    def __init__(self, property: str, operator: str | None = None, value: Any = None) -> None:
        """Initialize a Filter.

        Args:
            property: Record key to test. Missing keys read as None.
            operator: One of OPERATORS; None means 'eq'.
            value: Value compared against the record's property.

        Raises:
            InvalidFilterError: If property is empty or operator unknown.
        """
        if not property:
            raise InvalidFilterError("Filter requires a property")
        operator = operator or 'eq'
        if operator not in OPERATORS:
            raise InvalidFilterError(
                f"Unknown filter operator '{operator}' "
                f"(expected one of {', '.join(OPERATORS)})"
            )
        self.property = property
        self.operator = operator
        self.value = value

    def __repr__(self) -> str:
        return f"Filter({self.property!r}, {self.operator!r}, {self.value!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Filter):
            return NotImplemented
        return (self.property, self.operator, self.value) == (
            other.property, other.operator, other.value
        )

    __hash__ = None  # type: ignore[assignment]

    def matches(self, record: dict[str, Any]) -> bool:
        """True if record satisfies this filter."""
        return OPERATORS[self.operator](record.get(self.property), self.value)

    def as_dict(self) -> dict[str, Any]:
        return {'property': self.property, 'operator': self.operator, 'value': self.value}


class Sorter:
    """A {property, direction} sort key.

    Example:
        >>> Sorter('age', 'desc').direction
        'DESC'
    """

    __slots__ = ('property', 'direction')

    def __init__(self, property: str, direction: str | None = None) -> None:
        """Initialize a Sorter.

        Args:
            property: Record key to sort by.
            direction: 'ASC' (default) or 'DESC', case-insensitive.

        Raises:
            InvalidSorterError: If property is empty or direction unknown.
        """
        if not property:
            raise InvalidSorterError("Sorter requires a property")
        direction = (direction or ASC).upper()
        if direction not in (ASC, DESC):
            raise InvalidSorterError(
                f"Unknown sort direction '{direction}' (expected ASC or DESC)"
            )
        self.property = property
        self.direction = direction

    def __repr__(self) -> str:
        return f"Sorter({self.property!r}, {self.direction!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Sorter):
            return NotImplemented
        return (self.property, self.direction) == (other.property, other.direction)

    __hash__ = None  # type: ignore[assignment]

    def compare(self, a: dict[str, Any], b: dict[str, Any]) -> int:
        """Compare two records on this key, honouring direction."""
        result = compare_values(a.get(self.property), b.get(self.property))
        return -result if self.direction == DESC else result

    def as_dict(self) -> dict[str, Any]:
        return {'property': self.property, 'direction': self.direction}


# ==================== Normalization ====================

def to_filter(spec: Filter | dict[str, Any]) -> Filter:
    """Build a Filter from a Filter or a {property, operator, value} dict."""
    if isinstance(spec, Filter):
        return spec
    if isinstance(spec, dict):
        return Filter(spec.get('property'), spec.get('operator'), spec.get('value'))
    raise InvalidFilterError(
        f"filter must be Filter or dict, not {type(spec).__name__}"
    )


def to_sorter(spec: Sorter | dict[str, Any]) -> Sorter:
    """Build a Sorter from a Sorter or a {property, direction} dict."""
    if isinstance(spec, Sorter):
        return spec
    if isinstance(spec, dict):
        return Sorter(spec.get('property'), spec.get('direction'))
    raise InvalidSorterError(
        f"sorter must be Sorter or dict, not {type(spec).__name__}"
    )


def to_filters(specs: Any) -> list[Filter]:
    """Normalize a single filter spec or a list of them."""
    if specs is None:
        return []
    if isinstance(specs, (Filter, dict)):
        return [to_filter(specs)]
    return [to_filter(spec) for spec in specs]


def to_sorters(specs: Any) -> list[Sorter]:
    """Normalize a single sorter spec or a list of them."""
    if specs is None:
        return []
    if isinstance(specs, (Sorter, dict)):
        return [to_sorter(specs)]
    return [to_sorter(spec) for spec in specs]


# ==================== Pipelines ====================

def compare_values(a: Any, b: Any) -> int:
    """Return -1, 0 or 1 using < and >. Incomparable values tie."""
    try:
        if a < b:
            return -1
        if a > b:
            return 1
    except TypeError:
        pass
    return 0


def apply_filters(
    records: Iterable[dict[str, Any]], filters: list[Filter]
) -> list[dict[str, Any]]:
    """Return the records satisfying every filter, in input order."""
    if not filters:
        return list(records)
    return [r for r in records if all(f.matches(r) for f in filters)]


def apply_sorters(
    records: Iterable[dict[str, Any]], sorters: list[Sorter]
) -> list[dict[str, Any]]:
    """Return the records ordered by the multi-key comparator.

    The sort is stable: records tied on every sorter keep their input order.
    """
    if not sorters:
        return list(records)

    def _cmp(a: dict[str, Any], b: dict[str, Any]) -> int:
        for sorter in sorters:
            result = sorter.compare(a, b)
            if result:
                return result
        return 0

    return sorted(records, key=cmp_to_key(_cmp))
