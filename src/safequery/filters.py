"""
Filter model shared by the WHERE and HAVING clause builders.

A filter is a `FilterCondition(column, operator, value)`. Callers may supply
conditions in two shapes, both normalized here to the same tuple of
conditions:

Keyed mapping (one condition per column):

    {'status': 'open', 'total': {'operator': '>=', 'value': 100}}

List of records (repeatable columns, explicit order):

    [{'column': 'status', 'operator': '=', 'value': 'open'},
     {'key': 'created', 'op': 'BETWEEN', 'value': ['2025-01-01', '2025-01-31']},
     {'or': [{'column': 'name', 'operator': 'LIKE', 'value': 'ann'},
             {'column': 'email', 'operator': 'LIKE', 'value': 'ann'}]}]

An `{'or': [...]}` (or `{'and': [...]}`) record becomes a `FilterGroup`,
rendered as one parenthesized predicate.
"""
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from safequery.exceptions import UnsupportedOperator

from libb import issequence

__all__ = [
    'Operator',
    'FilterCondition',
    'FilterGroup',
    'parse_operator',
    'is_empty_value',
    'conditions_from_mapping',
    'conditions_from_records',
    'normalize_filters',
]


class Operator(str, Enum):
    """Recognized filter operators."""
    EQ = '='
    LIKE = 'LIKE'
    OR_LIKE = 'OR LIKE'
    GE = '>='
    LE = '<='
    GT = '>'
    LT = '<'
    IN = 'IN'
    BETWEEN = 'BETWEEN'


def parse_operator(token: Any, column: str | None = None) -> Operator:
    """Resolve an operator token, case and whitespace insensitive.

    >>> parse_operator('or  like')
    <Operator.OR_LIKE: 'OR LIKE'>
    """
    if isinstance(token, Operator):
        return token
    if token is None or token == '':
        return Operator.EQ
    normalized = ' '.join(str(token).upper().split())
    try:
        return Operator(normalized)
    except ValueError:
        where = f' for column "{column}"' if column is not None else ''
        raise UnsupportedOperator(f'Unsupported operator "{token}"{where}') from None


def is_empty_value(value: Any) -> bool:
    """True for the scalar "no value supplied" markers: None and ''.
    """
    return value is None or (isinstance(value, str) and value == '')


@dataclass(frozen=True, slots=True)
class FilterCondition:
    """A single `column operator value` condition."""
    column: str
    operator: Operator = Operator.EQ
    value: Any = None

    def __post_init__(self):
        object.__setattr__(self, 'operator', parse_operator(self.operator, self.column))


@dataclass(frozen=True, slots=True)
class FilterGroup:
    """Conditions combined into one parenthesized predicate."""
    conditions: tuple[FilterCondition, ...] = field(default_factory=tuple)
    conjunction: str = 'OR'

    def __post_init__(self):
        conjunction = str(self.conjunction).upper()
        if conjunction not in {'AND', 'OR'}:
            raise UnsupportedOperator(f'Unsupported group conjunction "{self.conjunction}"')
        object.__setattr__(self, 'conjunction', conjunction)
        object.__setattr__(self, 'conditions', tuple(self.conditions))


Filter = FilterCondition | FilterGroup


def conditions_from_mapping(filters: Mapping[str, Any] | None) -> tuple[Filter, ...]:
    """Normalize a keyed mapping of conditions.

    Values may be a bare value (equality), a sequence (IN), a
    `{'operator': ..., 'value': ...}` mapping or a `FilterCondition`.

    >>> conditions_from_mapping({'a': 1})
    (FilterCondition(column='a', operator=<Operator.EQ: '='>, value=1),)
    """
    if not filters:
        return ()
    conditions = []
    for column, cond in filters.items():
        if isinstance(cond, FilterCondition):
            conditions.append(cond)
        elif isinstance(cond, Mapping):
            conditions.append(FilterCondition(column, cond.get('operator') or Operator.EQ,
                                              cond.get('value')))
        elif issequence(cond) and not isinstance(cond, str | bytes):
            conditions.append(FilterCondition(column, Operator.IN, cond))
        else:
            conditions.append(FilterCondition(column, Operator.EQ, cond))
    return tuple(conditions)


def _group_from_record(record: Mapping[str, Any]) -> FilterGroup | None:
    for conjunction in ('or', 'and', 'OR', 'AND'):
        if conjunction in record:
            members = conditions_from_records(record[conjunction])
            nested = [m for m in members if isinstance(m, FilterGroup)]
            if nested:
                raise UnsupportedOperator('Filter groups cannot be nested')
            return FilterGroup(members, conjunction)
    return None


def conditions_from_records(records: Iterable[Any] | None) -> tuple[Filter, ...]:
    """Normalize a list of condition records.

    Each record is a `FilterCondition`, a `FilterGroup`, a mapping with
    `column` (or `key`), `operator` (or `op`) and `value`, or a mapping with a
    single `or`/`and` entry holding a list of such records.
    """
    if not records:
        return ()
    conditions = []
    for record in records:
        if isinstance(record, FilterCondition | FilterGroup):
            conditions.append(record)
            continue
        if not isinstance(record, Mapping):
            raise UnsupportedOperator(f'Unrecognized filter record: {record!r}')
        group = _group_from_record(record)
        if group is not None:
            conditions.append(group)
            continue
        column = record.get('column', record.get('key'))
        operator = record.get('operator', record.get('op')) or Operator.EQ
        conditions.append(FilterCondition(column, operator, record.get('value')))
    return tuple(conditions)


def normalize_filters(filters: Any) -> tuple[Filter, ...]:
    """Normalize either supported filter shape to a tuple of conditions.
    """
    if not filters:
        return ()
    if isinstance(filters, FilterCondition | FilterGroup):
        return (filters,)
    if isinstance(filters, Mapping):
        if any(k in filters for k in ('or', 'and', 'OR', 'AND')) and len(filters) == 1:
            return conditions_from_records([filters])
        return conditions_from_mapping(filters)
    return conditions_from_records(filters)
