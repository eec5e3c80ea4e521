"""
SQL text helpers shared by the statement builders and the strategies.

- `sql_name()` - Derive lower-snake-case column/table names from Python names
- `standardize_placeholders()` - Convert ? placeholders to the dialect's marker
- `quote_identifier()` - Quote table/column names
- `make_placeholders()` - Comma-separated positional placeholders
"""
import re
from dataclasses import dataclass
from enum import Enum, auto

__all__ = [
    'sql_name',
    'tokenize_sql',
    'standardize_placeholders',
    'has_placeholders',
    'quote_identifier',
    'make_placeholders',
]


class TokenType(Enum):
    """Token types identified during SQL parsing."""
    SQL_TEXT = auto()
    STRING_LITERAL = auto()
    POSITIONAL_PH = auto()      # %s or ?


@dataclass(slots=True)
class Token:
    """Token from SQL parsing."""
    type: TokenType
    text: str


_TOKENIZE = re.compile(r"""
    (?P<string>'(?:[^']|'')*'|"(?:[^"]|"")*")
    |(?P<placeholder>%s|\?)
""", re.VERBOSE)

_HAS_PLACEHOLDER = re.compile(r'%s|\?')

# Boundary before an upper-case letter that follows a lower-case letter or
# digit, or that starts a new word after an acronym (HTTPServer -> http_server)
_CASE_BOUNDARY = re.compile(r'(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])')


def sql_name(*parts: str) -> str:
    """Join Python names into one lower-snake-case SQL name.

    Each part is case-split independently, so ``sql_name('Person', 'id')`` and
    ``sql_name('PersonId')`` both give ``person_id``.

    Parameters
        parts: Class or property names

    Returns
        Lower-snake-case name
    """
    words = []
    for part in parts:
        for chunk in part.split('_'):
            if chunk:
                words.append(_CASE_BOUNDARY.sub('_', chunk).lower())
    return '_'.join(words)


def tokenize_sql(sql: str) -> list[Token]:
    """Split SQL into literal, placeholder and plain-text tokens.
    """
    tokens = []
    last_end = 0
    for match in _TOKENIZE.finditer(sql):
        start, end = match.span()
        if start > last_end:
            tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:start]))
        if match.group('string') is not None:
            tokens.append(Token(TokenType.STRING_LITERAL, match.group(0)))
        else:
            tokens.append(Token(TokenType.POSITIONAL_PH, match.group(0)))
        last_end = end
    if last_end < len(sql):
        tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:]))
    return tokens


def has_placeholders(sql: str | None) -> bool:
    """Check if SQL has positional placeholders.
    """
    if not sql:
        return False
    return bool(_HAS_PLACEHOLDER.search(sql))


def standardize_placeholders(sql: str, dialect: str = 'postgresql') -> str:
    """Convert placeholders between %s and ? based on dialect.

    String literals are left untouched.

    Parameters
        sql: SQL query string
        dialect: Database dialect

    Returns
        SQL with standardized placeholders
    """
    if not sql or not has_placeholders(sql):
        return sql

    if dialect == 'sqlite':
        source, target = '%s', '?'
    elif dialect == 'postgresql':
        source, target = '?', '%s'
    else:
        raise ValueError(f'Unknown dialect: {dialect}')

    result = []
    for token in tokenize_sql(sql):
        if token.type == TokenType.POSITIONAL_PH and token.text == source:
            result.append(target)
        else:
            result.append(token.text)
    return ''.join(result)


def quote_identifier(identifier: str, dialect: str = 'postgresql') -> str:
    """Safely quote database identifiers.

    Parameters
        identifier: Table or column name
        dialect: Database dialect

    Returns
        Quoted identifier

    Raises
        ValueError: If dialect is unsupported
    """
    if dialect in {'postgresql', 'sqlite'}:
        return '"' + identifier.replace('"', '""') + '"'

    raise ValueError(f'Unknown dialect: {dialect}')


def make_placeholders(count: int) -> str:
    """Create ``count`` comma-separated ``?`` placeholders.
    """
    return ', '.join(['?'] * count)
