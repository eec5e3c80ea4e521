"""
Base strategy interface for database operations.

Defines the abstract base class that all database-specific strategy implementations
must inherit from. The strategy pattern encapsulates the few places where the
statement engine has to behave differently per backend (placeholders, like
operator, parameter representations, sequences) while the rest of the engine
stays dialect-agnostic.
"""
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from rowmap.sql import quote_identifier as sql_quote_identifier
from rowmap.sql import standardize_placeholders

if TYPE_CHECKING:
    import datetime

    from rowmap.connection import Connection
    from rowmap.options import DatabaseOptions

# Registry of dialect name -> strategy class
# Defined here to avoid circular imports (concrete strategies import from base)
_STRATEGY_REGISTRY: dict[str, type['DatabaseStrategy']] = {}


def register_strategy(dialect: str):
    """Decorator to register a strategy class for a dialect.

    Usage:
        @register_strategy('postgresql')
        class PostgresStrategy(DatabaseStrategy):
            ...
    """
    def decorator(cls: type['DatabaseStrategy']) -> type['DatabaseStrategy']:
        _STRATEGY_REGISTRY[dialect] = cls
        return cls
    return decorator


class DatabaseStrategy(ABC):
    """Base class for database-specific operations.
    """

    #: Python types the driver binds and returns without help.
    native_types: frozenset[type] = frozenset()

    #: Case-insensitive pattern match operator.
    like_operator: str = 'like'

    @contextmanager
    def _cursor(self, cn: 'Connection', sql: str, params: tuple | None = None):
        """Context manager for cursor lifecycle with SQL standardization.

        Handles cursor creation, SQL execution, and cleanup.
        """
        sql = self.standardize_sql(sql)
        cursor = cn.dbapi_connection.cursor()
        try:
            cursor.execute(sql, params or ())
            yield cursor
        finally:
            cursor.close()

    def _execute_raw(self, cn: 'Connection', sql: str,
                     params: tuple | None = None) -> int:
        """Execute SQL and return rowcount.

        Used internally by strategy methods for DDL/DML operations.
        """
        with self._cursor(cn, sql, params) as cursor:
            return cursor.rowcount

    def _select_column_raw(self, cn: 'Connection', sql: str,
                           params: tuple | None = None) -> list:
        """Execute SQL and return first column as list.

        Used internally by strategy methods for single-column queries.
        """
        with self._cursor(cn, sql, params) as cursor:
            return [row[0] for row in cursor.fetchall()]

    @property
    @abstractmethod
    def dialect_name(self) -> str:
        """Return the dialect identifier (e.g., 'postgresql', 'sqlite')."""

    @abstractmethod
    def build_connection_url(self, options: 'DatabaseOptions') -> str:
        """Build the database connection URL for this dialect.

        Args:
            options: DatabaseOptions containing connection parameters

        Returns
            Connection URL string suitable for SQLAlchemy
        """

    @abstractmethod
    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for this dialect.
        """

    @abstractmethod
    def configure_connection(self, conn: Any) -> None:
        """Configure connection settings.

        Args:
            conn: Database connection to configure with database-specific settings
        """

    @abstractmethod
    def create_dict_cursor(self, raw_conn: Any) -> Any:
        """Create a cursor that returns rows addressable by column name.

        Args:
            raw_conn: Raw DBAPI connection

        Returns
            Cursor configured to return dict-like rows
        """

    @classmethod
    @abstractmethod
    def get_required_options(cls) -> list[str]:
        """Return list of required option field names for this dialect.
        """

    @classmethod
    def validate_options(cls, options: 'DatabaseOptions') -> None:
        """Validate options for this dialect.

        Args:
            options: DatabaseOptions to validate

        Raises
            ValueError: If any required field is None or 0
        """
        for field in cls.get_required_options():
            if not getattr(options, field):
                raise ValueError(f'field {field} cannot be None or 0')

    @abstractmethod
    def next_sequence_value(self, cn: 'Connection', sequence_name: str) -> int:
        """Advance a named sequence and return its new value.

        Args:
            cn: Database connection object
            sequence_name: Schema-qualified sequence name
        """

    @abstractmethod
    def now(self, cn: 'Connection') -> 'datetime.datetime':
        """Return the current timestamp as seen by the database.
        """

    @abstractmethod
    def enabled_roles(self, cn: 'Connection') -> list[str]:
        """Return the roles enabled for the session user.
        """

    @abstractmethod
    def bind_collection(self, values: list) -> Any:
        """Convert a non-empty list of element values to a bindable parameter.
        """

    @abstractmethod
    def load_collection(self, value: Any) -> list:
        """Convert a non-null collection column value to a list.
        """

    def standardize_sql(self, sql: str) -> str:
        """Convert ? placeholders written by the statement builders to this dialect's style.
        """
        return standardize_placeholders(sql, dialect=self.dialect_name)

    def quote_identifier(self, identifier: str) -> str:
        """Quote a database identifier.

        Default implementation uses standard SQL double-quote escaping.
        """
        return sql_quote_identifier(identifier, self.dialect_name)

    def is_native(self, python_type: type) -> bool:
        """Check whether the driver handles ``python_type`` without conversion.
        """
        return python_type in self.native_types
