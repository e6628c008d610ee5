"""
SELECT and COUNT statement builders.

Two entry shapes share the same clause builders:

- `list_data_query()` takes filters as a keyed mapping and returns both the
  paged data statement and its count statement as a `SelectPlan`.
- `select_query()` and `count_query()` take filters as a list of condition
  records and return one `StatementPlan` each.

Equivalent filters produce identical clause text through either shape.

The count statement reuses the WHERE values of the data statement but never
its LIMIT/OFFSET values. When the query is grouped, counting wraps the
grouped query in a subquery so each group counts as one row:

    SELECT COUNT(*) AS total FROM (SELECT 1 FROM t WHERE 1=1 GROUP BY c) AS sub
"""
import logging
from collections.abc import Iterable
from typing import Any

from safequery.clauses import build_column_list, build_group_by_clause
from safequery.clauses import build_having_clause, build_join_clause
from safequery.clauses import build_order_by_clause, build_pagination_clause
from safequery.clauses import build_where_clause
from safequery.filters import normalize_filters
from safequery.options import BuilderOptions, get_options
from safequery.sql import EMPTY, SelectPlan, StatementPlan, concat, fragment
from safequery.whitelist import allowed_set, assert_table_allowed

logger = logging.getLogger(__name__)

__all__ = [
    'list_data_query',
    'select_query',
    'count_query',
]


def _base_clauses(table: str, allowed_tables: Iterable[str], allowed_columns: frozenset[str],
                  joins: Any, filters: Any, group_by: Any, having: Any,
                  options: BuilderOptions, search: StatementPlan = EMPTY) -> tuple[StatementPlan, ...]:
    """Return the FROM/JOIN, WHERE, GROUP BY and HAVING fragments.
    """
    assert_table_allowed(table, allowed_tables)
    source = concat(fragment(f'FROM {table}'),
                    build_join_clause(joins, allowed_tables, allowed_columns, options))
    where = build_where_clause(filters, allowed_columns, options, search)
    group = build_group_by_clause(group_by, allowed_columns)
    having = build_having_clause(having, allowed_columns, options)
    return source, where, group, having


def _count_statement(source: StatementPlan, where: StatementPlan, group: StatementPlan,
                     having: StatementPlan, options: BuilderOptions) -> StatementPlan:
    alias = options.count_alias
    if group or having:
        inner = concat(fragment('SELECT 1'), source, where, group, having)
        return StatementPlan(f'SELECT COUNT(*) AS {alias} FROM ({inner.text}) AS sub', inner.params)
    return concat(fragment(f'SELECT COUNT(1) AS {alias}'), source, where)


def _select_statement(columns: Any, allowed_columns: frozenset[str], source: StatementPlan,
                      where: StatementPlan, group: StatementPlan, having: StatementPlan,
                      order_by: Any, order_dir: str | None, limit: Any, offset: Any,
                      options: BuilderOptions) -> StatementPlan:
    column_list = build_column_list(columns, allowed_columns)
    order = build_order_by_clause(order_by, allowed_columns, order_dir, options)
    page = build_pagination_clause(limit, offset, options)
    return concat(fragment('SELECT'), column_list, source, where, group, having, order, page)


def list_data_query(
    table: str,
    allowed_tables: Iterable[str] = (),
    allowed_columns: Iterable[str] = ('*',),
    columns: Any = ('*',),
    joins: Any = (),
    filters: Any = None,
    order_by: Any = None,
    order_dir: str | None = None,
    limit: Any = None,
    offset: Any = None,
    group_by: Any = None,
    having: Any = None,
    options: BuilderOptions | None = None,
    **kw: Any
) -> SelectPlan:
    """Build a paged SELECT and its COUNT from keyed-mapping filters.

    Parameters
        table: Base table, must be in `allowed_tables`.
        allowed_tables: Tables that may appear in the statement.
        allowed_columns: Column expressions that may appear in the statement.
        columns: SELECT list entries; `col AS alias` is accepted when `col`
            is allowed.
        joins: `JoinSpec`s or `{'table', 'on', 'type'}` mappings.
        filters: `{col: value}` or `{col: {'operator': op, 'value': v}}`.
            A list of condition records is accepted as well.
        order_by: Sort column (dropped when not allowed), `OrderSpec` or list.
        order_dir: ASC or DESC.
        limit: Page size, defaults to `options.default_limit`.
        offset: Page offset, defaults to `options.default_offset`.
        group_by: Grouping column or list of columns.
        having: Conditions on grouped rows, same shapes as `filters`.
        options: `BuilderOptions` defaults.

    Returns
        `SelectPlan(data, count)`. The data statement ends with
        `LIMIT ? OFFSET ?` and binds limit and offset last; the count
        statement binds only the filter values.

    Raises
        DisallowedTable, DisallowedColumn, UnsupportedOperator,
        InvalidBetweenRange, InvalidSortDirection, InvalidPagination
    """
    options = get_options(options)
    allowed = allowed_set(allowed_columns)
    source, where, group, having_clause = _base_clauses(
        table, allowed_tables, allowed, joins, normalize_filters(filters), group_by,
        normalize_filters(having), options)

    limit = options.default_limit if limit is None else limit
    data = _select_statement(columns, allowed, source, where, group, having_clause,
                             order_by, order_dir, limit, offset, options)
    count = _count_statement(source, where, group, having_clause, options)

    logger.debug(f'Built list query on {table}: {len(data.params)} data and {len(count.params)} count parameters')
    return SelectPlan(data, count)


def select_query(
    table: str,
    allowed_tables: Iterable[str],
    allowed_columns: Iterable[str],
    columns: Any = None,
    filters: Any = None,
    joins: Any = None,
    group_by: Any = None,
    having: Any = None,
    order_by: Any = None,
    order_dir: str | None = None,
    limit: Any = None,
    offset: Any = None,
    options: BuilderOptions | None = None,
    **kw: Any
) -> StatementPlan:
    """Build a SELECT from a list of condition records.

    Pagination is only added when `limit` is given; `offset` without a
    limit is ignored.

    >>> select_query('t', ['t'], ['a'], filters=[{'column': 'a', 'value': 1}], limit=5)
    StatementPlan(text='SELECT * FROM t WHERE 1=1 AND a = ? LIMIT ? OFFSET ?', params=(1, 5, 0))
    """
    options = get_options(options)
    allowed = allowed_set(allowed_columns)
    source, where, group, having_clause = _base_clauses(
        table, allowed_tables, allowed, joins, filters, group_by, having, options)
    plan = _select_statement(columns, allowed, source, where, group, having_clause,
                             order_by, order_dir, limit, offset, options)
    logger.debug(f'Built select on {table} with {len(plan.params)} parameters')
    return plan


def count_query(
    table: str,
    allowed_tables: Iterable[str],
    allowed_columns: Iterable[str],
    joins: Any = None,
    filters: Any = None,
    group_by: Any = None,
    having: Any = None,
    options: BuilderOptions | None = None,
    **kw: Any
) -> StatementPlan:
    """Build a COUNT over the same source and filters a SELECT would use.

    >>> count_query('t', ['t'], ['a'], group_by='a').text
    'SELECT COUNT(*) AS total FROM (SELECT 1 FROM t WHERE 1=1 GROUP BY a) AS sub'
    """
    options = get_options(options)
    allowed = allowed_set(allowed_columns)
    source, where, group, having_clause = _base_clauses(
        table, allowed_tables, allowed, joins, filters, group_by, having, options)
    plan = _count_statement(source, where, group, having_clause, options)
    logger.debug(f'Built count on {table} with {len(plan.params)} parameters')
    return plan
