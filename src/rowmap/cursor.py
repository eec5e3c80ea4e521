"""
Cursor wrapper used by statements.

Every statement runs through Cursor.execute, which converts the `?`
placeholders written by the builders to the dialect's marker, logs the SQL
with its arguments and records call statistics on the owning connection.
"""
import logging
import time
from collections.abc import Sequence
from functools import wraps
from typing import TYPE_CHECKING, Any, Self

if TYPE_CHECKING:
    from rowmap.connection import Connection

logger = logging.getLogger(__name__)

__all__ = ['Cursor', 'dumpsql']


def dumpsql(func):
    """Decorator for logging SQL queries and parameters."""
    @wraps(func)
    def wrapper(self, operation: str, params: Sequence = (), *args: Any, **kwargs: Any):
        start = time.time()
        logger.debug(f'SQL:\n{operation}\nargs: {tuple(params)}')
        try:
            result = func(self, operation, params, *args, **kwargs)
            if hasattr(self.dbapi_cursor, 'statusmessage'):
                logger.debug(f'Query result: {self.dbapi_cursor.statusmessage}')
            return result
        except Exception:
            logger.error(f'Error with query:\nSQL:\n{operation}\nargs: {tuple(params)}')
            raise
        finally:
            elapsed = time.time() - start
            self.connection.addcall(elapsed)
            logger.debug(f'Query time: {elapsed:.4f}s')
    return wrapper


class Cursor:
    """Thin wrapper over a DB-API cursor returning name-addressable rows.
    """

    def __init__(self, connection: 'Connection') -> None:
        self.connection = connection
        self.strategy = connection.strategy
        self.dbapi_cursor = self.strategy.create_dict_cursor(connection.driver_connection)

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __getattr__(self, name: str) -> Any:
        """Delegate members to underlying cursor."""
        return getattr(self.dbapi_cursor, name)

    @property
    def rowcount(self) -> int:
        return self.dbapi_cursor.rowcount

    @dumpsql
    def execute(self, operation: str, params: Sequence = ()) -> int:
        """Execute one statement and return the affected row count."""
        operation = self.strategy.standardize_sql(operation)
        if params:
            self.dbapi_cursor.execute(operation, tuple(params))
        else:
            self.dbapi_cursor.execute(operation)
        return self.dbapi_cursor.rowcount

    def fetchall(self) -> list:
        return self.dbapi_cursor.fetchall()

    def close(self) -> None:
        self.dbapi_cursor.close()

