"""
Unit tests for the DataTables orchestrator, with a mocked executor.
"""
import asyncio

import pytest
from safequery.datatable import datatable_query, datatable_query_async
from safequery.datatable import datatable_statements, read_total
from safequery.datatable import search_columns
from safequery.exceptions import DisallowedColumn, DisallowedTable, InvalidPagination
from safequery.sql import count_placeholders

COLUMNS = ['id', 'status', 'customers.name AS customer_name', '*']
JOINS = [{'table': 'customers', 'on': 'customers.id = orders.customer_id'}]


def test_search_columns_strip_alias_and_star():
    assert search_columns(COLUMNS) == ['id', 'status', 'customers.name']


def test_search_columns_sorted_for_sets():
    assert search_columns({'status', 'id', 'created'}) == ['created', 'id', 'status']


def test_search_columns_skip_aggregates():
    assert search_columns(['id', 'COUNT(*)', 'SUM(total) AS amount', 'status']) == ['id', 'status']


class TestStatements:
    """The three statements built for one request"""

    def test_without_search(self):
        total, filtered, data = datatable_statements('orders', ['orders'], COLUMNS)
        assert total == ('SELECT COUNT(1) AS total FROM orders WHERE 1=1', ())
        assert filtered == total
        assert data == ('SELECT * FROM orders WHERE 1=1 LIMIT ? OFFSET ?', (10, 0))

    def test_search_builds_or_group(self):
        total, filtered, data = datatable_statements(
            'orders', ['orders', 'customers'], COLUMNS, joins=JOINS, search='ali',
            extra_where=[{'column': 'status', 'operator': '=', 'value': 'open'}],
            start=20, length=10, order_column='id', order_dir='desc')
        where = ('WHERE 1=1 AND (id LIKE ? OR status LIKE ? OR customers.name LIKE ?) '
                 'AND status = ?')
        assert total.text == ('SELECT COUNT(1) AS total FROM orders '
                              'LEFT JOIN customers ON customers.id = orders.customer_id WHERE 1=1')
        assert filtered.text == ('SELECT COUNT(1) AS total FROM orders '
                                 f'LEFT JOIN customers ON customers.id = orders.customer_id {where}')
        assert filtered.params == ('%ali%', '%ali%', '%ali%', 'open')
        assert data.text == ('SELECT * FROM orders '
                             f'LEFT JOIN customers ON customers.id = orders.customer_id {where} '
                             'ORDER BY id DESC LIMIT ? OFFSET ?')
        assert data.params == ('%ali%', '%ali%', '%ali%', 'open', 10, 20)

    def test_group_by_counts_groups(self):
        total, filtered, data = datatable_statements('orders', ['orders'], COLUMNS,
                                                     group_by='status', columns=['status'])
        assert total.text.startswith('SELECT COUNT(*) AS total FROM (SELECT 1 FROM orders')
        assert data.text == 'SELECT status FROM orders WHERE 1=1 GROUP BY status LIMIT ? OFFSET ?'

    def test_length_all_drops_pagination(self):
        _, _, data = datatable_statements('orders', ['orders'], COLUMNS, length=-1, start=30)
        assert data == ('SELECT * FROM orders WHERE 1=1', ())

    def test_string_paging_coerced(self):
        _, _, data = datatable_statements('orders', ['orders'], COLUMNS, length='25', start='50')
        assert data.params == (25, 50)

    @pytest.mark.parametrize(('start', 'length'), [('x', 10), (0, 'all'), (-5, 10)])
    def test_invalid_paging(self, start, length):
        with pytest.raises(InvalidPagination):
            datatable_statements('orders', ['orders'], COLUMNS, start=start, length=length)

    def test_search_on_stripped_alias_only(self):
        _, filtered, _ = datatable_statements('orders', ['orders'], ['id', 'customers.name AS customer_name'],
                                              search='x')
        assert filtered.text.endswith('WHERE 1=1 AND (id LIKE ? OR customers.name LIKE ?)')

    def test_extra_where_on_stripped_alias_rejected(self):
        with pytest.raises(DisallowedColumn):
            datatable_statements('orders', ['orders'], ['id', 'customers.name AS customer_name'],
                                 extra_where=[{'column': 'customers.name', 'value': 'x'}])

    def test_group_by_on_stripped_alias_rejected(self):
        with pytest.raises(DisallowedColumn):
            datatable_statements('orders', ['orders'], ['id', 'customers.name AS customer_name'],
                                 group_by='customers.name')

    def test_order_on_stripped_alias_dropped(self):
        _, _, data = datatable_statements('orders', ['orders'], ['id', 'customers.name AS customer_name'],
                                          order_column='customers.name')
        assert 'ORDER BY' not in data.text

    def test_aggregates_not_searched(self):
        _, filtered, _ = datatable_statements('orders', ['orders'], ['id', 'COUNT(*)'], search='x')
        assert filtered == ('SELECT COUNT(1) AS total FROM orders WHERE 1=1 AND (id LIKE ?)', ('%x%',))

    def test_every_statement_aligned(self):
        statements = datatable_statements('orders', ['orders'], COLUMNS, search='x',
                                          extra_where={'id': [1, 2, 3]})
        for plan in statements:
            assert count_placeholders(plan.text) == len(plan.params)


@pytest.mark.parametrize(('rows', 'expected'), [
    ([{'total': 7}], 7),
    ([(3,)], 3),
    ([], 0),
    (None, 0),
    ([{'total': None}], 0),
])
def test_read_total(rows, expected):
    assert read_total(rows) == expected


class TestDatatableQuery:
    """Execution order and result shape"""

    def test_executes_three_statements_in_order(self, mocker):
        rows = [{'id': 1, 'status': 'open'}]
        execute = mocker.Mock(side_effect=[[{'total': 12}], [{'total': 4}], rows])

        result = datatable_query(execute, 'orders', ['orders'], COLUMNS,
                                 draw='3', search='op', start=0, length=2)

        assert result == {'draw': 3, 'recordsTotal': 12, 'recordsFiltered': 4, 'data': rows}
        assert result.recordsFiltered == 4
        assert execute.call_count == 3
        total_call, filtered_call, data_call = execute.call_args_list
        assert total_call.args[0].startswith('SELECT COUNT(1) AS total FROM orders')
        assert total_call.args[1] == ()
        assert filtered_call.args[1] == ('%op%', '%op%', '%op%')
        assert data_call.args[1] == ('%op%', '%op%', '%op%', 2, 0)

    def test_table_rejected_before_execution(self, mocker):
        execute = mocker.Mock()
        with pytest.raises(DisallowedTable):
            datatable_query(execute, 'users', ['orders'], COLUMNS)
        execute.assert_not_called()

    def test_async_executor(self):
        calls = []

        async def execute(sql, params):
            calls.append((sql, params))
            if sql.startswith('SELECT COUNT'):
                return [{'total': 2}]
            return [{'id': 1}, {'id': 2}]

        result = asyncio.run(datatable_query_async(execute, 'orders', ['orders'], COLUMNS, draw=1))

        assert result == {'draw': 1, 'recordsTotal': 2, 'recordsFiltered': 2,
                          'data': [{'id': 1}, {'id': 2}]}
        assert len(calls) == 3

    def test_async_accepts_sync_executor(self, mocker):
        execute = mocker.Mock(side_effect=[[(5,)], [(5,)], []])
        result = asyncio.run(datatable_query_async(execute, 'orders', ['orders'], COLUMNS))
        assert result.recordsTotal == 5
        assert result.data == []
