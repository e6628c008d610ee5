import pytest


@pytest.fixture
def allowed_tables():
    """Tables the statement builders may reference."""
    return ['orders', 'customers', 'order_items']


@pytest.fixture
def allowed_columns():
    """Column expressions the statement builders may reference."""
    return [
        'id',
        'status',
        'total',
        'created',
        'customer_id',
        'orders.id',
        'orders.status',
        'customers.id',
        'customers.name',
        'customers.name AS customer_name',
        'COUNT(*)',
        'SUM(total)',
        ]


pytest_plugins = [
    'tests.fixtures.sqlite',
]
