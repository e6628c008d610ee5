"""
Statement builder exception classes.

Every error here is a caller-input validation failure. None of them are
transient: retrying with the same input fails the same way.
"""


class SafeQueryError(Exception):
    """Base class for all safequery errors.
    """


class ValidationError(SafeQueryError, ValueError):
    """Error in statement builder input validation.
    """


class DisallowedIdentifier(ValidationError):
    """Identifier is not a member of the caller-supplied whitelist.
    """

    kind = 'Identifier'

    def __init__(self, identifier: str, context: str | None = None) -> None:
        self.identifier = identifier
        self.context = context
        where = f' in {context}' if context else ''
        super().__init__(f'{self.kind} "{identifier}" is not allowed{where}.')


class DisallowedTable(DisallowedIdentifier):
    """Table name is not in the allowed tables.
    """

    kind = 'Table'


class DisallowedColumn(DisallowedIdentifier):
    """Column expression is not in the allowed columns.
    """

    kind = 'Column'


class NoInsertableColumns(ValidationError):
    """No row keys survive whitelist filtering for an INSERT.
    """


class NoUpdatableFields(ValidationError):
    """UPDATE called without any fields to set.
    """


class InvalidBetweenRange(ValidationError):
    """BETWEEN value is not a two element [min, max] pair.
    """


class UnsupportedOperator(ValidationError):
    """Filter operator is not one of the recognized operators.
    """


class MissingWhereClause(ValidationError):
    """DELETE attempted without any WHERE conditions.
    """


class InconsistentRowSchema(ValidationError):
    """Batch INSERT rows disagree on their allowed column set.
    """


class UnsupportedJoinType(ValidationError):
    """Join type is not LEFT, INNER, RIGHT or FULL.
    """


class InvalidSortDirection(ValidationError):
    """Sort direction is not ASC or DESC.
    """


class InvalidPagination(ValidationError):
    """LIMIT or OFFSET is not a non-negative integer.
    """
