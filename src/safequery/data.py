"""
Data statement builders (INSERT, UPDATE, DELETE).
"""
import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from more_itertools import flatten
from safequery.exceptions import InconsistentRowSchema, MissingWhereClause
from safequery.exceptions import NoInsertableColumns, NoUpdatableFields
from safequery.sql import StatementPlan, concat, fragment, placeholders
from safequery.whitelist import allowed_set, assert_column_allowed
from safequery.whitelist import assert_table_allowed

logger = logging.getLogger(__name__)

__all__ = [
    'insert_one_query',
    'insert_many_query',
    'update_query',
    'delete_query',
]


def filter_allowed_keys(row: Mapping[str, Any], allowed_columns: frozenset[str]) -> list[str]:
    """Return the keys of `row` that are allowed columns, in row order.
    """
    return [key for key in row if key in allowed_columns]


def _equality_where(where: Mapping[str, Any] | None, allowed_columns: frozenset[str]) -> StatementPlan:
    """Build `WHERE 1=1 AND k = ? ...` from a mapping.

    Unlike the filter WHERE builder no condition is ever skipped: a None
    value binds NULL rather than widening the statement.
    """
    parts = [fragment('WHERE 1=1')]
    for key, value in (where or {}).items():
        assert_column_allowed(key, allowed_columns, 'WHERE')
        parts.append(fragment(f'AND {key} = ?', value))
    return concat(*parts)


def insert_one_query(
    table: str,
    allowed_tables: Iterable[str],
    allowed_columns: Iterable[str],
    data: Mapping[str, Any],
    on_duplicate: Iterable[str] | str | None = None,
    **kw: Any
) -> StatementPlan:
    """Build a single row INSERT, optionally as an upsert.

    Keys of `data` outside the allowed columns are dropped. Columns listed in
    `on_duplicate` that are both allowed and inserted are refreshed from the
    inserted values with `ON DUPLICATE KEY UPDATE col = VALUES(col)`.

    >>> insert_one_query('t', ['t'], ['a', 'b'], {'a': 1, 'x': 2, 'b': 3}, ['b'])
    StatementPlan(text='INSERT INTO t (a, b) VALUES (?, ?) ON DUPLICATE KEY UPDATE b = VALUES(b)', params=(1, 3))
    """
    assert_table_allowed(table, allowed_tables)
    allowed = allowed_set(allowed_columns)

    keys = filter_allowed_keys(data or {}, allowed)
    if not keys:
        raise NoInsertableColumns(f'No valid fields to insert into {table}.')
    dropped = [key for key in (data or {}) if key not in allowed]
    if dropped:
        logger.debug(f'Ignoring columns not allowed for {table}: {dropped}')

    text = f"INSERT INTO {table} ({', '.join(keys)}) VALUES ({placeholders(len(keys))})"

    if isinstance(on_duplicate, str):
        on_duplicate = [on_duplicate]
    updates = [f'{key} = VALUES({key})' for key in (on_duplicate or [])
               if key in allowed and key in keys]
    if updates:
        text += f" ON DUPLICATE KEY UPDATE {', '.join(updates)}"

    return StatementPlan(text, tuple(data[key] for key in keys))


def insert_many_query(
    table: str,
    allowed_tables: Iterable[str],
    allowed_columns: Iterable[str],
    rows: Sequence[Mapping[str, Any]],
    **kw: Any
) -> StatementPlan:
    """Build a multi-row INSERT.

    The column order comes from the first row. Every row must carry the same
    set of allowed keys, in any order; its values are bound in the first
    row's column order, row after row.

    >>> insert_many_query('t', ['t'], ['a', 'b'], [{'a': 1, 'b': 2}, {'b': 4, 'a': 3}])
    StatementPlan(text='INSERT INTO t (a, b) VALUES (?, ?), (?, ?)', params=(1, 2, 3, 4))
    """
    assert_table_allowed(table, allowed_tables)
    allowed = allowed_set(allowed_columns)

    if not rows or isinstance(rows, Mapping):
        raise NoInsertableColumns(f'Rows for {table} must be a non-empty sequence of mappings.')

    keys = filter_allowed_keys(rows[0], allowed)
    if not keys:
        raise NoInsertableColumns(f'No valid columns to insert into {table}.')

    expected = set(keys)
    for index, row in enumerate(rows):
        row_keys = filter_allowed_keys(row, allowed)
        if len(row_keys) != len(keys) or set(row_keys) != expected:
            raise InconsistentRowSchema(
                f'Row {index} columns {sorted(row_keys)} do not match {sorted(expected)}.')

    group = f'({placeholders(len(keys))})'
    text = f"INSERT INTO {table} ({', '.join(keys)}) VALUES {', '.join([group] * len(rows))}"
    params = tuple(flatten((row[key] for key in keys) for row in rows))
    logger.debug(f'Built insert of {len(rows)} rows into {table}')
    return StatementPlan(text, params)


def update_query(
    table: str,
    allowed_tables: Iterable[str],
    allowed_columns: Iterable[str],
    data: Mapping[str, Any],
    where: Mapping[str, Any] | None = None,
    **kw: Any
) -> StatementPlan:
    """Build an UPDATE with equality conditions.

    Every key of `data` and `where` must be an allowed column. An empty
    `where` is accepted and updates every row of the table.

    >>> update_query('t', ['t'], ['a', 'id'], {'a': 1}, {'id': 5})
    StatementPlan(text='UPDATE t SET a = ? WHERE 1=1 AND id = ?', params=(1, 5))
    """
    assert_table_allowed(table, allowed_tables)
    allowed = allowed_set(allowed_columns)

    assignments = [fragment(f'{assert_column_allowed(key, allowed, "SET")} = ?', value)
                   for key, value in (data or {}).items()]
    if not assignments:
        raise NoUpdatableFields(f'No valid fields to update in {table}.')

    where_clause = _equality_where(where, allowed)
    if not where:
        logger.warning(f'Building UPDATE on {table} without WHERE conditions, every row is affected')

    return concat(fragment(f'UPDATE {table} SET'), concat(*assignments, sep=', '), where_clause)


def delete_query(
    table: str,
    allowed_tables: Iterable[str],
    allowed_columns: Iterable[str],
    where: Mapping[str, Any] | None = None,
    **kw: Any
) -> StatementPlan:
    """Build a DELETE with equality conditions.

    A DELETE without conditions is refused to prevent full-table deletion.

    >>> delete_query('t', ['t'], ['id'], {'id': 5})
    StatementPlan(text='DELETE FROM t WHERE 1=1 AND id = ?', params=(5,))
    """
    assert_table_allowed(table, allowed_tables)
    if not where:
        raise MissingWhereClause(
            f'DELETE on {table} must have a WHERE condition to prevent full-table deletion.')
    return concat(fragment(f'DELETE FROM {table}'), _equality_where(where, allowed_set(allowed_columns)))
