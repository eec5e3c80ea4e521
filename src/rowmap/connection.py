"""
Database connection handling with SQLAlchemy.

This module provides:
1. The `connect()` function for opening a Connection
2. The `Connection` class that owns one database session, the lookups of
   identity-cached classes and the sequence source, and exposes the
   object-level CRUD operations:

- insert(schema, cls, values) / try_insert(...)
- select(schema, cls, where) / select_all / select_one
- update(schema, obj, *names) / update_where(schema, cls, values, where)
- delete(schema, obj) / delete_where(schema, cls, where) / delete_all
- register_lookup(cls) / lookup(cls, key)
- next_id(sequence_name)
"""
import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import fields
from functools import wraps
from typing import Any, Self, TypeVar

import sqlalchemy as sa
from rowmap.condition import Condition, and_, equals
from rowmap.descriptor import DescriptorRegistry, PropertyDescriptor
from rowmap.descriptor import TypeDescriptor
from rowmap.exceptions import ConnectionFailure, ConnectionUsageError
from rowmap.exceptions import NoKeyPropertyError, QuerySequenceError
from rowmap.exceptions import RowmapError
from rowmap.lookup import Lookup
from rowmap.options import DatabaseOptions
from rowmap.statement import DeleteStatement, InsertStatement, SelectStatement
from rowmap.statement import UpdateStatement, UpdateWhereStatement
from rowmap.strategy import get_db_strategy, get_strategy
from rowmap.utils import get_dialect_name, get_raw_connection
from sqlalchemy.pool import NullPool

from libb import load_options

logger = logging.getLogger(__name__)

__all__ = [
    'Connection',
    'connect',
    'configure_connection',
]

T = TypeVar('T')


def owner_thread(func: Callable[..., T]) -> Callable[..., T]:
    """Reject calls on a closed connection or from a thread that does not own it.
    """
    @wraps(func)
    def inner(self: 'Connection', *args: Any, **kwargs: Any) -> T:
        if self.closed:
            raise ConnectionFailure('Connection is closed')
        if threading.get_ident() != self.owner:
            raise ConnectionUsageError(
                f'{func.__name__}() called from thread {threading.get_ident()}, '
                f'connection belongs to thread {self.owner}')
        return func(self, *args, **kwargs)
    return inner


class Connection:
    """One database session with its identity caches.

    A Connection is bound to the thread that opened it. Lookups live as long
    as the connection and are dropped, not flushed, on close.

    Subclasses may override `connected()` and `closing()` to run code right
    after opening and right before closing.
    """

    def __init__(self, sa_connection: sa.engine.Connection,
                 options: DatabaseOptions | None = None,
                 registry: DescriptorRegistry | None = None) -> None:
        self.sa_connection = sa_connection
        self.engine = sa_connection.engine
        self.options = options
        self.dbapi_connection = sa_connection.connection
        self.driver_connection = get_raw_connection(sa_connection)
        self._dialect = get_dialect_name(sa_connection)
        self.strategy = get_strategy(self._dialect)
        self.registry = registry if registry is not None else DescriptorRegistry()
        self.owner = threading.get_ident()
        self.closed = False
        self.calls = 0
        self.time = 0
        self._lookups: dict[type, Lookup] = {}
        self._sequence_lock = threading.Lock()
        self.connected()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    def __repr__(self) -> str:
        state = 'closed' if self.closed else 'open'
        return f'<Connection {self.dialect} {state} lookups={len(self._lookups)}>'

    def connected(self) -> None:
        """Hook called once the session is open."""

    def closing(self) -> None:
        """Hook called before the session is closed."""

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics
        """
        self.time += elapsed
        self.calls += 1

    @property
    def dialect(self) -> str:
        """Return the dialect name ('postgresql' or 'sqlite')."""
        return self._dialect

    @property
    def user(self) -> str | None:
        """Name of the user the session logged in as."""
        return self.options.username if self.options else None

    def close(self) -> None:
        """Drop all lookups and close the session. Closing twice is a no-op.
        """
        if self.closed:
            return
        try:
            self.closing()
        finally:
            self._lookups.clear()
            self.closed = True
            if not self.sa_connection.closed:
                self.sa_connection.close()
            logger.debug(f'Connection closed: {self.calls} queries in {self.time:.2f}s '
                         f'(avg: {self.time/max(1,self.calls):.3f}s per query)')

    # Descriptors and lookups

    def descriptor_for(self, cls: type) -> TypeDescriptor:
        return self.registry.descriptor_for(cls)

    @owner_thread
    def register_lookup(self, cls: type) -> Lookup:
        """Enable identity caching for a class with exactly one key property.

        Registering a class twice keeps the existing cache.
        """
        lookup = self._lookups.get(cls)
        if lookup is None:
            lookup = self._lookups[cls] = Lookup(self.descriptor_for(cls))
            logger.debug(f'Registered lookup for {cls.__qualname__} by {lookup.key_property_name}')
        return lookup

    def is_lookup(self, cls: Any) -> bool:
        return cls in self._lookups

    def lookup_of(self, cls: type) -> Lookup | None:
        return self._lookups.get(cls)

    def lookup_key_property(self, cls: type) -> PropertyDescriptor:
        return self._lookups[cls].key_property

    def lookup(self, cls: type, key: Any) -> Any | None:
        """Cached instance of `cls` for `key`, None when absent or not registered.
        """
        lookup = self._lookups.get(cls)
        if lookup is None:
            return None
        return lookup.get(key)

    # Statements

    @owner_thread
    def insert(self, schema: str | None, cls: type, values: Mapping[str, Any]) -> Any:
        """Insert a row and return the new object.
        """
        with InsertStatement(self, schema, self.descriptor_for(cls), values) as stmt:
            return stmt.execute()

    @owner_thread
    def try_insert(self, schema: str | None, cls: type, values: Mapping[str, Any]) -> Any | None:
        """Insert a row, returning None instead of raising on any failure.
        """
        try:
            return self.insert(schema, cls, values)
        except Exception as exc:
            logger.warning(f'Insert of {cls.__qualname__} failed: {exc}')
            return None

    @owner_thread
    def select(self, schema: str | None, cls: type, where: Condition | None = None) -> list:
        with SelectStatement(self, schema, self.descriptor_for(cls), where) as stmt:
            return stmt.execute()

    def select_all(self, schema: str | None, cls: type) -> list:
        return self.select(schema, cls)

    def select_one(self, schema: str | None, cls: type, where: Condition | None = None) -> Any | None:
        """The matching object, None unless exactly one row matches.
        """
        result = self.select(schema, cls, where)
        if len(result) != 1:
            logger.debug(f'select_one of {cls.__qualname__} matched {len(result)} rows')
            return None
        return result[0]

    @owner_thread
    def update(self, schema: str | None, obj: Any, *names: str | Iterable[str]) -> int:
        """Write the current values of an object.

        Without names all writable properties are written. Names may be given
        as arguments or as one set or list; an empty set or list writes
        nothing.
        """
        subset = None
        if len(names) == 1 and not isinstance(names[0], str):
            subset = tuple(names[0])
        elif names:
            subset = names
        descriptor = self.descriptor_for(type(obj))
        with UpdateStatement(self, schema, descriptor, obj, subset) as stmt:
            return stmt.execute()

    @owner_thread
    def update_where(self, schema: str | None, cls: type, values: Mapping[str, Any],
                     where: Condition | None = None) -> int:
        """Set the given values on every matching row, every row without a condition.
        """
        with UpdateWhereStatement(self, schema, self.descriptor_for(cls), values, where) as stmt:
            return stmt.execute()

    def delete(self, schema: str | None, obj: Any) -> int:
        """Delete the row of an object, located by its key properties.
        """
        descriptor = self.descriptor_for(type(obj))
        if not descriptor.key_properties:
            raise NoKeyPropertyError(descriptor.target)
        where = and_(*(equals(key.name, key.get_value(obj)) for key in descriptor.key_properties))
        return self._delete(schema, descriptor, where)

    def delete_where(self, schema: str | None, cls: type, where: Condition) -> int:
        if where is None:
            raise ValueError('delete_where requires a condition, use delete_all to empty a table')
        return self._delete(schema, self.descriptor_for(cls), where)

    def delete_all(self, schema: str | None, cls: type) -> int:
        return self._delete(schema, self.descriptor_for(cls), None)

    @owner_thread
    def _delete(self, schema: str | None, descriptor: TypeDescriptor,
                where: Condition | None) -> int:
        with DeleteStatement(self, schema, descriptor, where) as stmt:
            return stmt.execute()

    # Database services

    @owner_thread
    def next_id(self, sequence_name: str) -> int:
        """Next value of a database sequence.
        """
        with self._sequence_lock:
            try:
                return self.strategy.next_sequence_value(self, sequence_name)
            except RowmapError:
                raise
            except Exception as exc:
                raise QuerySequenceError(sequence_name, exc) from exc

    @owner_thread
    def now(self):
        """Current timestamp of the database server."""
        return self.strategy.now(self)

    @owner_thread
    def enabled_roles(self) -> list[str]:
        return self.strategy.enabled_roles(self)


def configure_connection(sa_connection: sa.engine.Connection) -> None:
    """Configure a SQLAlchemy connection with database-specific settings.
    """
    strategy = get_db_strategy(sa_connection)
    strategy.configure_connection(sa_connection.connection)


@load_options(cls=DatabaseOptions)
def connect(options: DatabaseOptions | dict[str, Any] | str,
            config: Any | None = None, **kw: Any) -> Connection:
    """Open a Connection using SQLAlchemy for engine management

    Args:
        options: Can be:
                - DatabaseOptions object
                - String path to configuration
                - Dictionary of options
                - Options specified as keyword arguments
        config: Configuration object (for loading from config files)
        **kw: Additional keyword arguments to override options. `registry`
              passes a DescriptorRegistry to share between connections.

    Returns
        Connection bound to the calling thread
    """
    registry = kw.pop('registry', None)
    if isinstance(options, DatabaseOptions):
        for field in fields(options):
            kw.pop(field.name, None)
    else:
        options_func = load_options(cls=DatabaseOptions)(lambda o, c: o)
        options = options_func(options, config, **kw)

    strategy = get_strategy(options.drivername)
    engine = sa.create_engine(strategy.build_connection_url(options), poolclass=NullPool,
                              **strategy.get_engine_kwargs(options))
    try:
        sa_connection = engine.connect()
    except sa.exc.DBAPIError as exc:
        raise ConnectionFailure(f'Cannot connect to {options.drivername} '
                                f'database {options.database}: {exc}') from exc
    configure_connection(sa_connection)
    logger.debug(f'Connected to {options.drivername} database {options.database}')

    return Connection(sa_connection, options, registry)
