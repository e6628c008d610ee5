"""
Clause builders.

Each builder turns one part of a query description into a `StatementPlan`
fragment: WHERE, HAVING, JOIN, GROUP BY, ORDER BY, LIMIT/OFFSET and the
SELECT column list. Identifiers are checked against the whitelists before any
text referencing them is produced; values only ever appear as `?`
placeholders.

WHERE and HAVING share one predicate builder. Both start from the tautology
`1=1` so every condition can be prefixed with its connector:

    WHERE 1=1 AND status = ? AND total BETWEEN ? AND ? OR name LIKE ?

Note that an `OR LIKE` condition is joined with OR against everything before
it, which changes precedence within the clause. Use a `FilterGroup` to get a
parenthesized `AND (a LIKE ? OR b LIKE ?)` instead.
"""
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from safequery.exceptions import InvalidBetweenRange, InvalidPagination
from safequery.exceptions import InvalidSortDirection, UnsupportedJoinType
from safequery.exceptions import UnsupportedOperator, ValidationError
from safequery.filters import FilterCondition, FilterGroup, Operator
from safequery.filters import is_empty_value, normalize_filters
from safequery.options import JOIN_TYPES, SORT_DIRECTIONS, BuilderOptions
from safequery.options import get_options
from safequery.sql import EMPTY, StatementPlan, concat, fragment, placeholders
from safequery.whitelist import allowed_set, assert_column_allowed
from safequery.whitelist import assert_select_column_allowed
from safequery.whitelist import assert_table_allowed

from libb import issequence

logger = logging.getLogger(__name__)

__all__ = [
    'JoinOn',
    'JoinSpec',
    'OrderSpec',
    'build_where_clause',
    'build_search_group',
    'build_having_clause',
    'build_join_clause',
    'build_group_by_clause',
    'build_order_by_clause',
    'build_pagination_clause',
    'build_column_list',
    'to_page_int',
]

JOIN_OPERATORS = frozenset({'=', '<>', '!=', '<', '>', '<=', '>='})


@dataclass(frozen=True, slots=True)
class JoinOn:
    """Structured `left operator right` join predicate over whitelisted columns."""
    left: str
    right: str
    operator: str = '='


@dataclass(frozen=True, slots=True)
class JoinSpec:
    """Join target table, ON predicate and join type.

    `on` given as a string is trusted raw SQL and is emitted verbatim. Never
    pass user-controlled text there; use `JoinOn` instead.
    """
    table: str
    on: str | JoinOn
    type: str | None = None


@dataclass(frozen=True, slots=True)
class OrderSpec:
    """Sort column and direction."""
    column: str
    direction: str | None = None


#
# WHERE / HAVING
#


def _in_values(value: Any) -> tuple[Any, ...]:
    if is_empty_value(value):
        return ()
    if issequence(value) and not isinstance(value, str | bytes):
        return tuple(value)
    return (value,)


def _render_condition(cond: FilterCondition, allowed_columns: frozenset[str],
                      options: BuilderOptions, context: str) -> tuple[str, StatementPlan]:
    """Render one condition as (connector, fragment); the fragment is empty
    when the condition is skipped.
    """
    column = assert_column_allowed(cond.column, allowed_columns, context)
    value = cond.value

    match cond.operator:
        case Operator.IN:
            values = _in_values(value)
            if not values:
                logger.debug(f'Skipping {context} IN filter on {column} with no values')
                return 'AND', EMPTY
            return 'AND', fragment(f'{column} IN ({placeholders(len(values))})', *values)
        case Operator.BETWEEN:
            if (not issequence(value) or isinstance(value, str | bytes)
                    or len(value) != 2):
                raise InvalidBetweenRange(f'BETWEEN requires [min, max] for {column}')
            return 'AND', fragment(f'{column} BETWEEN ? AND ?', value[0], value[1])

    if is_empty_value(value):
        logger.debug(f'Skipping {context} filter on {column} with no value')
        return 'AND', EMPTY

    wildcard = options.like_wildcard
    match cond.operator:
        case Operator.LIKE:
            return 'AND', fragment(f'{column} LIKE ?', f'{wildcard}{value}{wildcard}')
        case Operator.OR_LIKE:
            return 'OR', fragment(f'{column} LIKE ?', f'{wildcard}{value}{wildcard}')
        case Operator.EQ | Operator.GE | Operator.LE | Operator.GT | Operator.LT:
            return 'AND', fragment(f'{column} {cond.operator.value} ?', value)
        case _:
            raise UnsupportedOperator(f'Unsupported operator "{cond.operator}" for column "{column}"')


def _render_group(group: FilterGroup, allowed_columns: frozenset[str],
                  options: BuilderOptions, context: str) -> StatementPlan:
    members = []
    for cond in group.conditions:
        _, frag = _render_condition(cond, allowed_columns, options, context)
        if frag:
            members.append(frag)
    if not members:
        return EMPTY
    inner = concat(*members, sep=f' {group.conjunction} ')
    return StatementPlan(f'({inner.text})', inner.params)


def build_predicate(keyword: str, filters: Any, allowed_columns: Iterable[str],
                    options: BuilderOptions | None = None,
                    leading: StatementPlan = EMPTY) -> StatementPlan:
    """Build `{keyword} 1=1` followed by every non-skipped condition.

    `leading` is an already rendered group ANDed in ahead of the filters.
    """
    options = get_options(options)
    allowed = allowed_set(allowed_columns)
    parts = [fragment(f'{keyword} 1=1')]
    if leading:
        parts.append(concat(fragment('AND'), leading))
    for cond in normalize_filters(filters):
        if isinstance(cond, FilterGroup):
            connector, frag = 'AND', _render_group(cond, allowed, options, keyword)
        else:
            connector, frag = _render_condition(cond, allowed, options, keyword)
        if frag:
            parts.append(concat(fragment(connector), frag))
    return concat(*parts)


def build_where_clause(filters: Any, allowed_columns: Iterable[str],
                       options: BuilderOptions | None = None,
                       search: StatementPlan = EMPTY) -> StatementPlan:
    """Build the WHERE clause. Always present, starting with `WHERE 1=1`.

    A `search` group from `build_search_group()` comes first.

    >>> build_where_clause({'id': [1, 2]}, ['id'])
    StatementPlan(text='WHERE 1=1 AND id IN (?, ?)', params=(1, 2))
    """
    return build_predicate('WHERE', filters, allowed_columns, options, search)


def build_search_group(term: Any, search_columns: Iterable[str],
                       options: BuilderOptions | None = None) -> StatementPlan:
    """Build `(c1 LIKE ? OR c2 LIKE ?)` for a global search term.

    The group is checked against `search_columns` only, so expressions that
    are searchable are not thereby allowed in the rest of the statement.

    >>> build_search_group('ali', ['id', 'name'])
    StatementPlan(text='(id LIKE ? OR name LIKE ?)', params=('%ali%', '%ali%'))
    """
    if is_empty_value(term):
        return EMPTY
    columns = list(search_columns)
    group = FilterGroup(tuple(FilterCondition(col, Operator.LIKE, term) for col in columns), 'OR')
    return _render_group(group, allowed_set(columns), get_options(options), 'WHERE')


def build_having_clause(having: Any, allowed_columns: Iterable[str],
                        options: BuilderOptions | None = None) -> StatementPlan:
    """Build the HAVING clause, or nothing when `having` is empty.

    Aggregate expressions (`COUNT(*)`, `SUM(total)`) must be listed in the
    allowed columns like any other column.
    """
    if not normalize_filters(having):
        return EMPTY
    return build_predicate('HAVING', having, allowed_columns, options)


#
# JOIN
#


def _join_specs(joins: Any) -> list[JoinSpec]:
    if not joins:
        return []
    if isinstance(joins, JoinSpec | Mapping):
        joins = [joins]
    specs = []
    for join in joins:
        if isinstance(join, JoinSpec):
            specs.append(join)
        elif isinstance(join, Mapping):
            specs.append(JoinSpec(join.get('table'), join.get('on'), join.get('type')))
        else:
            specs.append(JoinSpec(*join))
    return specs


def _render_join_predicate(join: JoinSpec, allowed_columns: frozenset[str]) -> str:
    on = join.on
    if isinstance(on, Mapping):
        on = JoinOn(on.get('left'), on.get('right'), on.get('operator') or '=')
    if isinstance(on, JoinOn):
        left = assert_column_allowed(on.left, allowed_columns, f'JOIN {join.table}')
        right = assert_column_allowed(on.right, allowed_columns, f'JOIN {join.table}')
        if on.operator not in JOIN_OPERATORS:
            raise UnsupportedOperator(f'Unsupported join operator "{on.operator}"')
        return f'{left} {on.operator} {right}'
    if not isinstance(on, str) or not on.strip():
        raise ValidationError(f'Join on "{join.table}" requires an ON predicate')
    return on


def build_join_clause(joins: Any, allowed_tables: Iterable[str],
                      allowed_columns: Iterable[str] = (),
                      options: BuilderOptions | None = None) -> StatementPlan:
    """Build `{TYPE} JOIN {table} ON {predicate}` for each join, in order.

    Joins bind no parameters.

    >>> build_join_clause([{'table': 'c', 'on': 'c.id = o.cid'}], ['c']).text
    'LEFT JOIN c ON c.id = o.cid'
    """
    options = get_options(options)
    allowed = allowed_set(allowed_columns)
    parts = []
    for join in _join_specs(joins):
        table = assert_table_allowed(join.table, allowed_tables, 'JOIN')
        join_type = str(join.type or options.default_join_type).upper()
        if join_type not in JOIN_TYPES:
            raise UnsupportedJoinType(f'Unsupported join type "{join.type}" for {table}')
        parts.append(fragment(f'{join_type} JOIN {table} ON {_render_join_predicate(join, allowed)}'))
    return concat(*parts)


#
# GROUP BY / ORDER BY / LIMIT
#


def _as_list(value: Any) -> list[Any]:
    if value is None or value == '':
        return []
    if isinstance(value, str) or not isinstance(value, Iterable):
        return [value]
    return list(value)


def build_group_by_clause(group_by: Any, allowed_columns: Iterable[str]) -> StatementPlan:
    """Build `GROUP BY c1, c2`, or nothing when `group_by` is empty.
    """
    columns = [assert_column_allowed(col, allowed_columns, 'GROUP BY')
               for col in _as_list(group_by)]
    if not columns:
        return EMPTY
    return fragment(f"GROUP BY {', '.join(columns)}")


def _order_specs(order_by: Any) -> list[OrderSpec]:
    if isinstance(order_by, OrderSpec | Mapping):
        order_by = [order_by]
    specs = []
    for item in _as_list(order_by):
        if isinstance(item, OrderSpec):
            specs.append(item)
        elif isinstance(item, Mapping):
            specs.append(OrderSpec(item.get('column'),
                                   item.get('dir', item.get('direction'))))
        elif isinstance(item, str):
            specs.append(OrderSpec(item))
        else:
            specs.append(OrderSpec(*item))
    return specs


def _sort_direction(direction: Any) -> str:
    normalized = str(direction).strip().upper()
    if normalized not in SORT_DIRECTIONS:
        raise InvalidSortDirection(f'Sort direction must be one of {SORT_DIRECTIONS} (not {direction!r})')
    return normalized


def build_order_by_clause(order_by: Any, allowed_columns: Iterable[str],
                          order_dir: str | None = None,
                          options: BuilderOptions | None = None) -> StatementPlan:
    """Build `ORDER BY col DIR, ...`.

    Sort columns outside the whitelist are dropped rather than rejected. The
    direction is always validated as ASC or DESC.
    """
    options = get_options(options)
    allowed = allowed_set(allowed_columns)
    terms = []
    for entry in _order_specs(order_by):
        if not isinstance(entry.column, str) or entry.column not in allowed:
            logger.debug(f'Dropping sort on column not in whitelist: {entry.column!r}')
            continue
        direction = _sort_direction(entry.direction or order_dir or options.default_order_direction)
        terms.append(f'{entry.column} {direction}')
    if not terms:
        return EMPTY
    return fragment(f"ORDER BY {', '.join(terms)}")


def to_page_int(value: Any, name: str) -> int:
    """Coerce a paging value to a non-negative int.
    """
    if isinstance(value, bool):
        raise InvalidPagination(f'{name} must be a number (not {value!r})')
    try:
        number = int(value)
    except (TypeError, ValueError) as e:
        raise InvalidPagination(f'{name} must be a number (not {value!r})') from e
    if number < 0:
        raise InvalidPagination(f'{name} must be non-negative (not {number})')
    return number


def build_pagination_clause(limit: Any, offset: Any = None,
                            options: BuilderOptions | None = None) -> StatementPlan:
    """Build `LIMIT ? OFFSET ?`, or nothing when `limit` is None.
    """
    if limit is None:
        if offset:
            logger.debug(f'Ignoring offset {offset} without a limit')
        return EMPTY
    options = get_options(options)
    offset = options.default_offset if offset is None else offset
    return fragment('LIMIT ? OFFSET ?', to_page_int(limit, 'LIMIT'), to_page_int(offset, 'OFFSET'))


#
# SELECT list
#


def build_column_list(columns: Any, allowed_columns: Iterable[str]) -> StatementPlan:
    """Render the SELECT column list; `*` when no columns are given.
    """
    selected = [assert_select_column_allowed(col, allowed_columns)
                for col in _as_list(columns)]
    return fragment(', '.join(selected) if selected else '*')
