"""
DataTables server-side processing.

Coordinates the statement builders for a grid UI: an unfiltered count, a
filtered count and one page of data. The three statements are executed one
after the other through a caller-supplied executor:

    execute(text, params) -> rows

They are not wrapped in a transaction, so concurrent writes between them can
leave `recordsTotal`, `recordsFiltered` and `data` mutually inconsistent.

Usage:
    result = datatable_query(cursor_executor(cn), table='orders',
                             allowed_tables=['orders'],
                             allowed_columns=['id', 'status'],
                             search='open', start=0, length=25)
"""
import inspect
import logging
from collections.abc import Callable, Iterable, Mapping, Set
from typing import Any

from more_itertools import unique_everseen
from safequery.clauses import build_search_group, to_page_int
from safequery.filters import normalize_filters
from safequery.options import BuilderOptions, get_options
from safequery.query import _base_clauses, _count_statement, _select_statement
from safequery.query import count_query
from safequery.sql import StatementPlan
from safequery.whitelist import STAR, allowed_set, column_expression

from libb import attrdict

logger = logging.getLogger(__name__)

__all__ = [
    'datatable_statements',
    'datatable_query',
    'datatable_query_async',
    'cursor_executor',
]

Executor = Callable[[str, tuple[Any, ...]], Any]


def search_columns(allowed_columns: Iterable[str]) -> list[str]:
    """Column expressions searched by the global search box.

    Aliases are stripped and `*` is skipped. Aggregates and other call
    expressions (anything with a parenthesis) are skipped too, they are not
    valid in WHERE. Unordered whitelists are sorted so the generated text
    does not depend on set iteration order.
    """
    if isinstance(allowed_columns, Set):
        allowed_columns = sorted(allowed_columns)
    expressions = (column_expression(col) for col in allowed_columns if col != STAR)
    return list(unique_everseen(expr for expr in expressions if '(' not in expr))


def _page_length(length: Any) -> int | None:
    if length is None:
        return None
    try:
        if int(length) < 0:
            return None
    except (TypeError, ValueError):
        pass
    return to_page_int(length, 'length')


def datatable_statements(
    table: str,
    allowed_tables: Iterable[str],
    allowed_columns: Iterable[str],
    joins: Any = None,
    group_by: Any = None,
    extra_where: Any = None,
    start: Any = 0,
    length: Any = 10,
    search: str | None = None,
    order_column: str | None = None,
    order_dir: str | None = 'ASC',
    columns: Any = None,
    options: BuilderOptions | None = None,
    **kw: Any
) -> tuple[StatementPlan, StatementPlan, StatementPlan]:
    """Build the total count, filtered count and page statements.

    A non-empty `search` adds one OR-group of `LIKE` conditions over every
    searchable column ahead of `extra_where`. Only that group may use the
    alias-stripped expressions; `extra_where`, `order_column`, `group_by`
    and `columns` are checked against `allowed_columns` as given. A negative
    `length` (DataTables sends -1 for "All") drops pagination.
    """
    options = get_options(options)
    allowed_columns = list(allowed_columns) if not isinstance(allowed_columns, Set) \
        else allowed_columns
    allowed = allowed_set(allowed_columns)
    search_group = build_search_group(search, search_columns(allowed_columns), options)

    limit = _page_length(length)
    offset = to_page_int(start or 0, 'start')

    total = count_query(table, allowed_tables, allowed, joins=joins,
                        group_by=group_by, options=options)
    source, where, group, having = _base_clauses(
        table, allowed_tables, allowed, joins, normalize_filters(extra_where), group_by,
        None, options, search_group)
    filtered = _count_statement(source, where, group, having, options)
    data = _select_statement(columns, allowed, source, where, group, having,
                             order_column or None, order_dir, limit, offset, options)
    return total, filtered, data


def read_total(rows: Any, alias: str = 'total') -> int:
    """Read the count from the first row of a count statement's result.
    """
    rows = list(rows or [])
    if not rows:
        return 0
    first = rows[0]
    value = first.get(alias) if isinstance(first, Mapping) else first[0]
    return int(value or 0)


def _result(draw: Any, records_total: int, records_filtered: int, rows: Any) -> attrdict:
    return attrdict(
        draw=to_page_int(draw or 0, 'draw'),
        recordsTotal=records_total,
        recordsFiltered=records_filtered,
        data=list(rows or []),
        )


def datatable_query(execute: Executor, table: str, allowed_tables: Iterable[str],
                    allowed_columns: Iterable[str], draw: Any = 0,
                    options: BuilderOptions | None = None, **kw: Any) -> attrdict:
    """Run DataTables server-side processing through a synchronous executor.

    Keyword arguments are those of `datatable_statements()`.

    Returns
        attrdict with `draw`, `recordsTotal`, `recordsFiltered` and `data`.
    """
    options = get_options(options)
    total, filtered, data = datatable_statements(table, allowed_tables, allowed_columns,
                                                 options=options, **kw)
    records_total = read_total(execute(*total), options.count_alias)
    records_filtered = read_total(execute(*filtered), options.count_alias)
    rows = execute(*data)
    logger.debug(f'Datatable on {table}: {records_filtered} of {records_total} records')
    return _result(draw, records_total, records_filtered, rows)


async def _maybe_await(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


async def datatable_query_async(execute: Executor, table: str, allowed_tables: Iterable[str],
                                allowed_columns: Iterable[str], draw: Any = 0,
                                options: BuilderOptions | None = None, **kw: Any) -> attrdict:
    """Same as `datatable_query()` for an executor returning awaitables.

    The three statements are awaited in turn.
    """
    options = get_options(options)
    total, filtered, data = datatable_statements(table, allowed_tables, allowed_columns,
                                                 options=options, **kw)
    records_total = read_total(await _maybe_await(execute(*total)), options.count_alias)
    records_filtered = read_total(await _maybe_await(execute(*filtered)), options.count_alias)
    rows = await _maybe_await(execute(*data))
    logger.debug(f'Datatable on {table}: {records_filtered} of {records_total} records')
    return _result(draw, records_total, records_filtered, rows)


def cursor_executor(cn: Any) -> Executor:
    """Adapt a DB-API connection into an executor returning attrdict rows.

    The connection's driver must accept `?` placeholders (sqlite3, pyodbc,
    mysql-connector with prepared cursors).
    """
    def execute(sql: str, params: tuple[Any, ...]) -> list[attrdict]:
        cursor = cn.cursor()
        try:
            cursor.execute(sql, params)
            if cursor.description is None:
                return []
            names = [col[0] for col in cursor.description]
            return [attrdict(dict(zip(names, row))) for row in cursor.fetchall()]
        finally:
            cursor.close()

    return execute
