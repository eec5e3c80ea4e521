"""
SQLite-specific strategy implementation.

This module implements the DatabaseStrategy interface with SQLite-specific operations.
It handles SQLite's limitations such as:
- No sequences (emulated with a rowmap_sequence table)
- No array type (collections are stored as JSON text)
- Temporal values and UUIDs stored as ISO text
- like is already case-insensitive for ASCII
"""
import json
import logging
import sqlite3
from typing import TYPE_CHECKING, Any

import dateutil.parser
from rowmap.strategy.base import DatabaseStrategy, register_strategy

if TYPE_CHECKING:
    import datetime

    from rowmap.connection import Connection
    from rowmap.options import DatabaseOptions

logger = logging.getLogger(__name__)

SEQUENCE_TABLE = 'rowmap_sequence'


def convert_date(val: bytes) -> 'datetime.date':
    """Convert ISO 8601 date string to date object."""
    return dateutil.parser.isoparse(val.decode()).date()


def convert_datetime(val: bytes) -> 'datetime.datetime':
    """Convert ISO 8601 datetime string to datetime object."""
    return dateutil.parser.isoparse(val.decode())


@register_strategy('sqlite')
class SQLiteStrategy(DatabaseStrategy):
    """SQLite-specific operations.
    """

    native_types = frozenset({bool, int, float, str, bytes})

    like_operator = 'like'

    @property
    def dialect_name(self) -> str:
        """Return the dialect identifier for SQLite."""
        return 'sqlite'

    def build_connection_url(self, options: 'DatabaseOptions') -> str:
        """Build the SQLAlchemy connection URL for SQLite."""
        return f'sqlite:///{options.database}'

    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for SQLite."""
        connect_args = {'detect_types': sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES}
        if options.timeout:
            connect_args['timeout'] = options.timeout
        return {'connect_args': connect_args}

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for SQLite connections."""
        return ['database']

    def register_type_adapters(self, connection: Any) -> None:
        """Register converters for date/datetime columns coming from the database.
        """
        sqlite3.register_converter('date', convert_date)
        sqlite3.register_converter('datetime', convert_datetime)
        sqlite3.register_converter('timestamp', convert_datetime)

    def configure_connection(self, conn: Any) -> None:
        """Configure connection settings for SQLite.
        """
        sqlite_conn = conn
        if hasattr(conn, 'driver_connection'):
            sqlite_conn = conn.driver_connection

        sqlite_conn.execute('PRAGMA foreign_keys = ON')
        sqlite_conn.isolation_level = None
        self.register_type_adapters(sqlite_conn)

    def create_dict_cursor(self, raw_conn: Any) -> Any:
        """Create a cursor that returns rows as sqlite3.Row.
        """
        cursor = raw_conn.cursor()
        cursor.row_factory = sqlite3.Row
        return cursor

    def next_sequence_value(self, cn: 'Connection', sequence_name: str) -> int:
        """Advance an emulated sequence.

        SQLite has no sequence objects, so the counters live in one table keyed
        by sequence name. The table is created on first use.
        """
        table = self.quote_identifier(SEQUENCE_TABLE)
        self._execute_raw(cn, f'create table if not exists {table} '
                              '(name text primary key, value integer not null)')
        self._execute_raw(cn, f'insert or ignore into {table} (name, value) values (?, 0)',
                          (sequence_name,))
        self._execute_raw(cn, f'update {table} set value = value + 1 where name = ?',
                          (sequence_name,))
        value = self._select_column_raw(cn, f'select value from {table} where name = ?',
                                        (sequence_name,))[0]
        logger.debug(f'Sequence {sequence_name} advanced to {value}')
        return int(value)

    def now(self, cn: 'Connection') -> 'datetime.datetime':
        value = self._select_column_raw(cn, "select strftime('%Y-%m-%d %H:%M:%f', 'now')")[0]
        return dateutil.parser.isoparse(value)

    def enabled_roles(self, cn: 'Connection') -> list[str]:
        """SQLite has no roles."""
        return []

    def bind_collection(self, values: list) -> Any:
        return json.dumps(values)

    def load_collection(self, value: Any) -> list:
        if isinstance(value, bytes):
            value = value.decode()
        if isinstance(value, str):
            return json.loads(value)
        return list(value)
