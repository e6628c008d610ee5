"""
Unit tests for the filter model and its two input adapters.
"""
import pytest
from safequery.exceptions import UnsupportedOperator
from safequery.filters import FilterCondition, FilterGroup, Operator
from safequery.filters import conditions_from_mapping, conditions_from_records
from safequery.filters import is_empty_value, normalize_filters, parse_operator


@pytest.mark.parametrize(('token', 'expected'), [
    ('=', Operator.EQ),
    ('like', Operator.LIKE),
    ('or like', Operator.OR_LIKE),
    ('  OR   LIKE ', Operator.OR_LIKE),
    ('in', Operator.IN),
    ('Between', Operator.BETWEEN),
    ('>=', Operator.GE),
    (None, Operator.EQ),
    ('', Operator.EQ),
    (Operator.LT, Operator.LT),
])
def test_parse_operator(token, expected):
    assert parse_operator(token) is expected


@pytest.mark.parametrize('token', ['!=', 'NOT IN', 'IS', '; DROP', 'LIKE%'])
def test_parse_operator_unsupported(token):
    with pytest.raises(UnsupportedOperator, match='for column "status"'):
        parse_operator(token, 'status')


def test_condition_normalizes_operator():
    cond = FilterCondition('status', 'like', 'op')
    assert cond.operator is Operator.LIKE


def test_condition_rejects_unknown_operator():
    with pytest.raises(UnsupportedOperator):
        FilterCondition('status', '<>', 'open')


@pytest.mark.parametrize(('value', 'expected'), [
    (None, True),
    ('', True),
    (0, False),
    (False, False),
    ('0', False),
    ([], False),
])
def test_is_empty_value(value, expected):
    """Only None and the empty string mean "no value supplied" """
    assert is_empty_value(value) is expected


def test_conditions_from_mapping_shapes():
    conditions = conditions_from_mapping({
        'status': 'open',
        'total': {'operator': '>=', 'value': 100},
        'id': [1, 2, 3],
        'created': FilterCondition('created', 'BETWEEN', ['2025-01-01', '2025-01-31']),
        })
    assert conditions == (
        FilterCondition('status', Operator.EQ, 'open'),
        FilterCondition('total', Operator.GE, 100),
        FilterCondition('id', Operator.IN, [1, 2, 3]),
        FilterCondition('created', Operator.BETWEEN, ['2025-01-01', '2025-01-31']),
        )


def test_conditions_from_mapping_defaults_operator():
    conditions = conditions_from_mapping({'status': {'value': 'open'}})
    assert conditions[0].operator is Operator.EQ


def test_conditions_from_records_aliases():
    """Records may use column/key and operator/op"""
    conditions = conditions_from_records([
        {'column': 'status', 'operator': 'LIKE', 'value': 'op'},
        {'key': 'total', 'op': '<', 'value': 10},
        {'column': 'id', 'value': 7},
        ])
    assert conditions == (
        FilterCondition('status', Operator.LIKE, 'op'),
        FilterCondition('total', Operator.LT, 10),
        FilterCondition('id', Operator.EQ, 7),
        )


def test_conditions_from_records_or_group():
    conditions = conditions_from_records([
        {'or': [{'key': 'status', 'operator': 'LIKE', 'value': 'x'},
                {'key': 'customers.name', 'operator': 'LIKE', 'value': 'x'}]},
        ])
    assert len(conditions) == 1
    group = conditions[0]
    assert isinstance(group, FilterGroup)
    assert group.conjunction == 'OR'
    assert [c.column for c in group.conditions] == ['status', 'customers.name']


def test_nested_groups_rejected():
    with pytest.raises(UnsupportedOperator, match='nested'):
        conditions_from_records([{'or': [{'and': [{'key': 'a', 'value': 1}]}]}])


def test_unrecognized_record_rejected():
    with pytest.raises(UnsupportedOperator):
        conditions_from_records(['status = 1'])


def test_group_conjunction_validated():
    with pytest.raises(UnsupportedOperator):
        FilterGroup((), 'XOR')


def test_normalize_filters_dispatches_on_shape():
    """Both shapes normalize to the same conditions"""
    from_mapping = normalize_filters({'status': 'open', 'total': {'operator': '>', 'value': 5}})
    from_records = normalize_filters([{'column': 'status', 'value': 'open'},
                                      {'column': 'total', 'operator': '>', 'value': 5}])
    assert from_mapping == from_records


def test_normalize_filters_empty():
    assert normalize_filters(None) == ()
    assert normalize_filters({}) == ()
    assert normalize_filters([]) == ()


def test_normalize_filters_single_condition():
    cond = FilterCondition('id', '=', 1)
    assert normalize_filters(cond) == (cond,)
