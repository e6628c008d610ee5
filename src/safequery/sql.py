"""
Statement and clause fragment primitives.

Every builder in this package returns a `StatementPlan`: the SQL text and the
tuple of values bound to its positional `?` placeholders, in order. Clause
fragments use the same type so that text and values are always concatenated
together:

    SELECT * FROM orders WHERE 1=1 AND status = ?     ('open',)
    ^^^^^^^^^^^^^^^^^^^^ ^^^^^^^^^^^^^^^^^^^^^^^^
         fragment               fragment

`concat()` joins fragments left to right, so the n-th placeholder in the
resulting text is always bound to the n-th value.
"""
import re
from typing import Any, NamedTuple

from more_itertools import flatten

__all__ = [
    'PLACEHOLDER',
    'StatementPlan',
    'SelectPlan',
    'EMPTY',
    'fragment',
    'concat',
    'placeholders',
    'count_placeholders',
]

PLACEHOLDER = '?'

# String literals are matched first so a quoted '?' is not counted
_TOKENIZE = re.compile(r"""
    (?P<string>'(?:[^']|'')*'|"(?:[^"]|"")*")
    |(?P<qmark>\?)
""", re.VERBOSE)


class StatementPlan(NamedTuple):
    """SQL text with its ordered placeholder values."""
    text: str
    params: tuple[Any, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.text)


class SelectPlan(NamedTuple):
    """Paged data statement and its matching count statement."""
    data: StatementPlan
    count: StatementPlan


EMPTY = StatementPlan('')


def fragment(text: str, *params: Any) -> StatementPlan:
    """Build a clause fragment from text and the values of its placeholders.
    """
    return StatementPlan(text, tuple(params))


def concat(*fragments: StatementPlan, sep: str = ' ') -> StatementPlan:
    """Join fragments in order, skipping empty ones.

    >>> concat(fragment('WHERE 1=1'), EMPTY, fragment('AND a = ?', 1)).text
    'WHERE 1=1 AND a = ?'
    """
    parts = [f for f in fragments if f]
    return StatementPlan(sep.join(f.text for f in parts),
                         tuple(flatten(f.params for f in parts)))


def placeholders(count: int) -> str:
    """Return a comma separated list of `count` placeholders.

    >>> placeholders(3)
    '?, ?, ?'
    """
    return ', '.join([PLACEHOLDER] * count)


def count_placeholders(sql: str) -> int:
    """Count positional placeholders outside of string literals.

    >>> count_placeholders("SELECT * FROM t WHERE a = ? AND b = '?'")
    1
    """
    if not sql or PLACEHOLDER not in sql:
        return 0
    return sum(1 for m in _TOKENIZE.finditer(sql) if m.lastgroup == 'qmark')
