"""
Object-relational mapping over PostgreSQL and SQLite.

Mapped classes declare their shape with annotated properties; a Connection
inserts, selects, updates and deletes their instances and keeps one live
instance per key for classes registered as lookups.

    >>> cn = connect({'drivername': 'sqlite', 'database': 'app.db'})
    >>> cn.register_lookup(Person)
    >>> smith = cn.select_one('main', Person, equals('name', 'Smith'))
"""
__version__ = '0.1.0'

from rowmap.condition import And, Condition, DateInterval, Not, Or, and_
from rowmap.condition import between, during, equals, greater
from rowmap.condition import greater_or_equal, in_, is_null, like, not_
from rowmap.condition import not_equals, or_, smaller, smaller_or_equal
from rowmap.connection import Connection, connect
from rowmap.descriptor import DescriptorRegistry, PropertyDescriptor
from rowmap.descriptor import PropertyInit, TypeDescriptor, initializer
from rowmap.descriptor import persistence
from rowmap.exceptions import ArgumentMismatchError, BindingError
from rowmap.exceptions import ConnectionFailure, ConnectionUsageError
from rowmap.exceptions import DbConnectionError, DuplicatePropertyError
from rowmap.exceptions import ExecutionError, InitializerError, IntegrityError
from rowmap.exceptions import MappingError, MissingLookupError
from rowmap.exceptions import NoKeyPropertyError, NoSuchPropertyError
from rowmap.exceptions import ObjectCreationError, OperationalError
from rowmap.exceptions import ProgrammingError, QuerySequenceError
from rowmap.exceptions import ReadOnlyPropertyError, ResultGetterError
from rowmap.exceptions import ResultSetError, RowmapError, SetParameterError
from rowmap.exceptions import StatementExecutionError, UniqueViolation
from rowmap.exceptions import UnsupportedPropertyTypeError
from rowmap.lookup import Lookup
from rowmap.options import DatabaseOptions
