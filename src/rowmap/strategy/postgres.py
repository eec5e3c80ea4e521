"""
PostgreSQL-specific strategy implementation.

This module implements the DatabaseStrategy interface with PostgreSQL-specific operations.
PostgreSQL is the reference backend of the statement engine:
- Native sequences via nextval()
- Native arrays for collection properties
- ilike for case-insensitive matching
- Native date, time, timestamp, uuid and bytea types
"""
import datetime
import decimal
import logging
import uuid
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from psycopg.rows import dict_row
from rowmap.strategy.base import DatabaseStrategy, register_strategy

if TYPE_CHECKING:
    from rowmap.connection import Connection
    from rowmap.options import DatabaseOptions

logger = logging.getLogger(__name__)


@register_strategy('postgresql')
class PostgresStrategy(DatabaseStrategy):
    """PostgreSQL-specific operations.
    """

    native_types = frozenset({
        bool, int, float, decimal.Decimal, str, bytes,
        datetime.date, datetime.time, datetime.datetime, uuid.UUID,
    })

    like_operator = 'ilike'

    @property
    def dialect_name(self) -> str:
        """Return the dialect identifier for PostgreSQL."""
        return 'postgresql'

    def build_connection_url(self, options: 'DatabaseOptions') -> str:
        """Build the SQLAlchemy connection URL for PostgreSQL."""
        query = {}
        if options.timeout:
            query['connect_timeout'] = str(options.timeout)
        if options.ssl:
            query['sslmode'] = 'require'

        url = sa.URL.create(
            drivername='postgresql+psycopg',
            username=options.username,
            password=options.password,
            host=options.hostname,
            port=options.port,
            database=options.database,
            query=query,
        )
        return url.render_as_string(hide_password=False)

    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for PostgreSQL."""
        return {'connect_args': {'application_name': options.appname}}

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for PostgreSQL connections."""
        return ['hostname', 'username', 'password', 'database', 'port']

    def configure_connection(self, conn: Any) -> None:
        """Configure connection settings for PostgreSQL.

        Every statement commits on its own, there are no multi-statement
        transactions.
        """
        raw_conn = conn
        if hasattr(conn, 'driver_connection'):
            raw_conn = conn.driver_connection
        raw_conn.autocommit = True

    def create_dict_cursor(self, raw_conn: Any) -> Any:
        """Create a cursor that returns rows as dictionaries.
        """
        return raw_conn.cursor(row_factory=dict_row)

    def next_sequence_value(self, cn: 'Connection', sequence_name: str) -> int:
        """Advance a PostgreSQL sequence with nextval().
        """
        value = self._select_column_raw(cn, 'select nextval(?)', (sequence_name,))[0]
        logger.debug(f'Sequence {sequence_name} advanced to {value}')
        return int(value)

    def now(self, cn: 'Connection') -> datetime.datetime:
        return self._select_column_raw(cn, 'select now()')[0]

    def enabled_roles(self, cn: 'Connection') -> list[str]:
        sql = 'select role_name from information_schema.enabled_roles'
        return self._select_column_raw(cn, sql)

    def bind_collection(self, values: list) -> Any:
        """psycopg adapts Python lists to arrays."""
        return values

    def load_collection(self, value: Any) -> list:
        return list(value)
