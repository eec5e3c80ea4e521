"""
Mapping-specific exception classes.
"""
import sqlite3

import psycopg


class RowmapError(Exception):
    """Base class for all rowmap errors.
    """


class ConnectionFailure(RowmapError):
    """Error establishing or maintaining database connection.
    """


class ConnectionUsageError(RowmapError):
    """A connection was used from a thread other than the one that opened it.
    """


# Construction-time mapping errors

class MappingError(RowmapError):
    """Error in the declared shape of a mapped type.
    """


class DuplicatePropertyError(MappingError):

    def __init__(self, target: type, name: str) -> None:
        super().__init__(f'Duplicate property {name!r} in {target.__qualname__}')
        self.target = target
        self.name = name


class InitializerError(MappingError):
    """Missing or ambiguous key-initializing constructor.
    """

    def __init__(self, target: type, reason: str) -> None:
        super().__init__(f'{target.__qualname__}: {reason}')
        self.target = target


class NoSuchPropertyError(MappingError):

    def __init__(self, target: type, name: str) -> None:
        super().__init__(f'{target.__qualname__} has no property {name!r}')
        self.target = target
        self.name = name


class UnsupportedPropertyTypeError(MappingError):
    """No marshalling is available for the value type of a property.
    """

    def __init__(self, prop) -> None:
        super().__init__(f'Unsupported type {prop.value_type!r} of property {prop.full_name}')
        self.property = prop


class NoKeyPropertyError(MappingError):
    """A type registered for identity caching lacks a single key property.
    """

    def __init__(self, target: type) -> None:
        super().__init__(f'{target.__qualname__} must declare exactly one key property')
        self.target = target


class MissingLookupError(MappingError):
    """A property references a mapped type that has no registered lookup.
    """

    def __init__(self, prop) -> None:
        referenced = getattr(prop.value_type, '__qualname__', None) or repr(prop.value_type)
        super().__init__(f'Property {prop.full_name} references {referenced} '
                         'which is not registered as a lookup')
        self.property = prop


# Binding errors

class BindingError(RowmapError):
    """Error moving values between objects and statements.
    """


class ArgumentMismatchError(BindingError):
    """An initializer argument does not match the declared parameter type.
    """

    def __init__(self, target: type, parameter: str, position: int,
                 expected: object, actual: type | None) -> None:
        actual_name = 'None' if actual is None else actual.__name__
        super().__init__(f'{target.__qualname__}: argument {parameter!r} at position {position} '
                         f'expected {expected!r}, got {actual_name}')
        self.target = target
        self.parameter = parameter
        self.position = position
        self.expected = expected
        self.actual = actual


class ObjectCreationError(BindingError):

    def __init__(self, target: type, cause: BaseException) -> None:
        super().__init__(f'Cannot create instance of {target.__qualname__}: {cause}')
        self.target = target


class ReadOnlyPropertyError(BindingError):
    """A property without a setter was given a value outside its initializer.
    """

    def __init__(self, prop) -> None:
        super().__init__(f'Property {prop.full_name} has no setter')
        self.property = prop


class SetParameterError(BindingError):

    def __init__(self, prop, cause: BaseException) -> None:
        super().__init__(f'Cannot bind value of property {prop.full_name}: {cause}')
        self.property = prop


# Execution errors

class ExecutionError(RowmapError):
    """Error while talking to the database.
    """


class StatementExecutionError(ExecutionError):

    def __init__(self, sql: str, cause: BaseException) -> None:
        super().__init__(f'Error executing statement: {cause}\nSQL: {sql}')
        self.sql = sql


class ResultSetError(ExecutionError):

    def __init__(self, sql: str, cause: BaseException) -> None:
        super().__init__(f'Error reading result set: {cause}\nSQL: {sql}')
        self.sql = sql


class ResultGetterError(ExecutionError):

    def __init__(self, prop, cause: BaseException) -> None:
        super().__init__(f'Cannot read value of property {prop.full_name}: {cause}')
        self.property = prop


class QuerySequenceError(ExecutionError):

    def __init__(self, sequence_name: str, cause: BaseException) -> None:
        super().__init__(f'Cannot query next value of sequence {sequence_name!r}: {cause}')
        self.sequence_name = sequence_name


DbConnectionError = (
    psycopg.OperationalError,
    psycopg.InterfaceError,
    sqlite3.OperationalError,
    sqlite3.InterfaceError,
    ConnectionFailure,
    )

IntegrityError = (
    psycopg.IntegrityError,
    sqlite3.IntegrityError,
    )

ProgrammingError = (
    psycopg.ProgrammingError,
    psycopg.DatabaseError,
    sqlite3.ProgrammingError,
    sqlite3.DatabaseError,
    )

OperationalError = (
    psycopg.OperationalError,
    sqlite3.OperationalError,
    )

UniqueViolation = (
    psycopg.errors.UniqueViolation,
    sqlite3.IntegrityError,
    )
