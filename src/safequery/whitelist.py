"""
Identifier whitelist checks.

Tables and columns are accepted by exact string membership in the allowed
sets supplied with each call. This is a whitelist match, not a parser: no SQL
syntax of the identifiers is inspected.
"""
import re
from collections.abc import Iterable

from safequery.exceptions import DisallowedColumn, DisallowedTable

ALIAS_SEPARATOR = ' AS '
STAR = '*'

_IDENTIFIER = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


def allowed_set(identifiers: Iterable[str] | None) -> frozenset[str]:
    """Normalize a caller-supplied whitelist to a frozenset.
    """
    if not identifiers:
        return frozenset()
    if isinstance(identifiers, str):
        return frozenset((identifiers,))
    return frozenset(identifiers)


def is_plain_identifier(name: str) -> bool:
    """True for a bare identifier usable as a column alias.
    """
    return isinstance(name, str) and _IDENTIFIER.match(name) is not None


def assert_table_allowed(table: str, allowed_tables: Iterable[str],
                         context: str | None = None) -> str:
    """Return `table` unchanged or raise `DisallowedTable`.
    """
    if not isinstance(table, str) or table not in allowed_set(allowed_tables):
        raise DisallowedTable(table, context)
    return table


def assert_column_allowed(column: str, allowed_columns: Iterable[str],
                          context: str | None = None) -> str:
    """Return `column` unchanged or raise `DisallowedColumn`.
    """
    if not isinstance(column, str) or column not in allowed_set(allowed_columns):
        raise DisallowedColumn(column, context)
    return column


def is_select_column_allowed(column: str, allowed_columns: Iterable[str]) -> bool:
    """Check a SELECT-list entry against the allowed columns.

    An entry is valid when it equals an allowed column verbatim, or when it
    contains `' AS '`, the text before the first `' AS '` is allowed and the
    alias after it is a plain identifier:

    >>> is_select_column_allowed('price AS p', ['price'])
    True
    >>> is_select_column_allowed('price AS p', ['cost'])
    False
    >>> is_select_column_allowed('price AS p, secret', ['price'])
    False
    """
    if not isinstance(column, str):
        return False
    allowed = allowed_set(allowed_columns)
    if column == STAR or column in allowed:
        return True
    if ALIAS_SEPARATOR in column:
        expression, alias = column.split(ALIAS_SEPARATOR, 1)
        return expression in allowed and is_plain_identifier(alias)
    return False


def assert_select_column_allowed(column: str, allowed_columns: Iterable[str]) -> str:
    """Return a SELECT-list entry unchanged or raise `DisallowedColumn`.
    """
    if not is_select_column_allowed(column, allowed_columns):
        raise DisallowedColumn(column, 'SELECT')
    return column


def column_expression(column: str) -> str:
    """Strip an alias suffix from a column expression.

    >>> column_expression('customers.name AS customer_name')
    'customers.name'
    """
    return column.split(ALIAS_SEPARATOR, 1)[0]
