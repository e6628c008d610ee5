from dataclasses import dataclass

from safequery.whitelist import is_plain_identifier

from libb import ConfigOptions

__all__ = [
    'BuilderOptions',
    'JOIN_TYPES',
    'SORT_DIRECTIONS',
    'get_options',
]

JOIN_TYPES = ('LEFT', 'INNER', 'RIGHT', 'FULL')
SORT_DIRECTIONS = ('ASC', 'DESC')


@dataclass
class BuilderOptions(ConfigOptions):
    """Options

    Defaults applied by the statement builders when a call leaves a value out:
    - default_join_type: join type for a join without one (default: LEFT)
    - default_order_direction: sort direction when omitted (default: ASC)
    - default_limit: page size for SELECT (default: 10)
    - default_offset: page offset for SELECT (default: 0)
    - count_alias: column alias of COUNT statements (default: total)
    - like_wildcard: wrapped around LIKE values (default: %)
    """
    default_join_type: str = 'LEFT'
    default_order_direction: str = 'ASC'
    default_limit: int = 10
    default_offset: int = 0
    count_alias: str = 'total'
    like_wildcard: str = '%'

    def __post_init__(self):
        self.default_join_type = str(self.default_join_type).upper()
        if self.default_join_type not in JOIN_TYPES:
            raise ValueError(f'default_join_type must be one of: {JOIN_TYPES}')
        self.default_order_direction = str(self.default_order_direction).upper()
        if self.default_order_direction not in SORT_DIRECTIONS:
            raise ValueError(f'default_order_direction must be one of: {SORT_DIRECTIONS}')
        if not is_plain_identifier(self.count_alias):
            raise ValueError(f'count_alias must be a plain identifier (not {self.count_alias!r})')
        if self.default_limit < 0 or self.default_offset < 0:
            raise ValueError('default_limit and default_offset must be non-negative')


def get_options(options: BuilderOptions | None = None) -> BuilderOptions:
    """Return the supplied options or a fresh default instance.
    """
    return options if options is not None else BuilderOptions()
