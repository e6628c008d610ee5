"""
Whitelisted, parametrized SQL statement builders.

Every builder returns a `StatementPlan(text, params)` whose `?` placeholders
line up with `params`, ready for a prepared-statement interface:

    sql, params = sq.delete_query('orders', ['orders'], ['id'], {'id': 5})
    cursor.execute(sql, params)

Tables and columns are only emitted when they appear in the allowed sets
passed with the call. Builders are pure functions and safe to call from any
number of threads.
"""
__version__ = '0.1.0'

from safequery.clauses import JoinOn, JoinSpec, OrderSpec
from safequery.data import delete_query, insert_many_query, insert_one_query
from safequery.data import update_query
from safequery.datatable import cursor_executor, datatable_query
from safequery.datatable import datatable_query_async, datatable_statements
from safequery.exceptions import DisallowedColumn, DisallowedIdentifier
from safequery.exceptions import DisallowedTable, InconsistentRowSchema
from safequery.exceptions import InvalidBetweenRange, InvalidPagination
from safequery.exceptions import InvalidSortDirection, MissingWhereClause
from safequery.exceptions import NoInsertableColumns, NoUpdatableFields
from safequery.exceptions import SafeQueryError, UnsupportedJoinType
from safequery.exceptions import UnsupportedOperator, ValidationError
from safequery.filters import FilterCondition, FilterGroup, Operator
from safequery.filters import conditions_from_mapping, conditions_from_records
from safequery.options import BuilderOptions
from safequery.query import count_query, list_data_query, select_query
from safequery.sql import SelectPlan, StatementPlan
from safequery.whitelist import assert_column_allowed, assert_table_allowed
from safequery.whitelist import is_select_column_allowed

__all__ = [
    'BuilderOptions',
    'StatementPlan',
    'SelectPlan',
    'Operator',
    'FilterCondition',
    'FilterGroup',
    'JoinSpec',
    'JoinOn',
    'OrderSpec',
    'conditions_from_mapping',
    'conditions_from_records',
    'assert_table_allowed',
    'assert_column_allowed',
    'is_select_column_allowed',
    'list_data_query',
    'select_query',
    'count_query',
    'insert_one_query',
    'insert_many_query',
    'update_query',
    'delete_query',
    'datatable_statements',
    'datatable_query',
    'datatable_query_async',
    'cursor_executor',
    'SafeQueryError',
    'ValidationError',
    'DisallowedIdentifier',
    'DisallowedTable',
    'DisallowedColumn',
    'NoInsertableColumns',
    'NoUpdatableFields',
    'InvalidBetweenRange',
    'UnsupportedOperator',
    'MissingWhereClause',
    'InconsistentRowSchema',
    'UnsupportedJoinType',
    'InvalidSortDirection',
    'InvalidPagination',
]
