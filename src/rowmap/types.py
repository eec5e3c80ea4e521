"""
Typed marshalling between property values and statement parameters or
result columns.

This module provides:
- convert_value: normalize NumPy and Pandas scalars before binding
- ValueHandler subclasses: one per supported value type
- handler_for: the dispatch table, resolved once per declared type
- ParameterSetter / LookupSetter: bind a property value as a parameter
- ResultGetter / LookupGetter: read a property value from a result row
"""
import datetime
import decimal
import logging
import math
import types
import typing
import uuid
from functools import lru_cache
from typing import TYPE_CHECKING, Any

import dateutil.parser
import numpy as np
import pandas as pd
from rowmap.exceptions import MissingLookupError, ResultGetterError
from rowmap.exceptions import SetParameterError, UnsupportedPropertyTypeError
from rowmap.sql import sql_name

if TYPE_CHECKING:
    from rowmap.connection import Connection
    from rowmap.descriptor import PropertyDescriptor
    from rowmap.strategy import DatabaseStrategy

logger = logging.getLogger(__name__)

__all__ = [
    'convert_value',
    'sanitize_string',
    'ValueHandler',
    'handler_for',
    'ParameterSetter',
    'LookupSetter',
    'ResultGetter',
    'LookupGetter',
    'create_setter',
    'create_getter',
]

NUMPY_FLOAT_TYPES = (np.floating,)
NUMPY_INT_TYPES = (np.integer, np.unsignedinteger)

COLLECTION_TYPES = (list, set, frozenset, tuple)

_isoparser = dateutil.parser.isoparser()


# Value normalization - NumPy and Pandas scalars -> Python

def _convert_numpy_value(val: Any) -> Any:
    """Convert NumPy value to Python type."""
    if isinstance(val, np.floating) and np.isnan(val):
        return None

    if isinstance(val, np.datetime64) and np.isnat(val):
        return None

    if isinstance(val, np.bool_):
        return bool(val)

    if isinstance(val, (np.floating, np.integer | np.unsignedinteger)):
        return val.item()

    if isinstance(val, np.datetime64):
        return pd.Timestamp(val).to_pydatetime()

    return val


def convert_value(value: Any) -> Any:
    """Convert a single value to a bindable Python value.

    NaN, NaT and pandas.NA become None.
    """
    if value is None:
        return None

    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        return None

    if value is pd.NaT or value is pd.NA:
        return None

    if isinstance(value, (*NUMPY_FLOAT_TYPES, *NUMPY_INT_TYPES, np.bool_, np.datetime64)):
        return _convert_numpy_value(value)

    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()

    return value


def sanitize_string(value: str) -> str:
    """Remove null bytes, which no text column accepts."""
    return value.replace('\x00', '')


# Value handlers - one per supported type

class ValueHandler:
    """Binds and reads values of one Python type.

    `default` is returned for NULL columns when the declared type is not
    optional.
    """

    python_type: type = object
    default: Any = None

    def to_db(self, value: Any, strategy: 'DatabaseStrategy') -> Any:
        return value

    def from_db(self, value: Any, strategy: 'DatabaseStrategy') -> Any:
        return value

    def default_value(self) -> Any:
        return self.default

    def __repr__(self) -> str:
        return f'<{type(self).__name__}>'


class BoolHandler(ValueHandler):
    python_type = bool
    default = False

    def to_db(self, value, strategy):
        return bool(value)

    def from_db(self, value, strategy):
        return bool(value)


class IntHandler(ValueHandler):
    python_type = int
    default = 0

    def to_db(self, value, strategy):
        return int(value)

    def from_db(self, value, strategy):
        return int(value)


class FloatHandler(ValueHandler):
    python_type = float
    default = 0.0

    def to_db(self, value, strategy):
        return float(value)

    def from_db(self, value, strategy):
        return float(value)


class DecimalHandler(ValueHandler):
    python_type = decimal.Decimal

    def to_db(self, value, strategy):
        value = decimal.Decimal(value) if not isinstance(value, decimal.Decimal) else value
        return value if strategy.is_native(decimal.Decimal) else str(value)

    def from_db(self, value, strategy):
        if isinstance(value, decimal.Decimal):
            return value
        return decimal.Decimal(str(value))


class StrHandler(ValueHandler):
    python_type = str

    def to_db(self, value, strategy):
        return sanitize_string(str(value))

    def from_db(self, value, strategy):
        return str(value)


class BytesHandler(ValueHandler):
    python_type = bytes

    def to_db(self, value, strategy):
        return bytes(value)

    def from_db(self, value, strategy):
        return bytes(value)


class DateHandler(ValueHandler):
    python_type = datetime.date

    def to_db(self, value, strategy):
        if isinstance(value, datetime.datetime):
            value = value.date()
        return value if strategy.is_native(datetime.date) else value.isoformat()

    def from_db(self, value, strategy):
        if isinstance(value, datetime.datetime):
            return value.date()
        if isinstance(value, datetime.date):
            return value
        return _isoparser.parse_isodate(str(value))


class TimeHandler(ValueHandler):
    python_type = datetime.time

    def to_db(self, value, strategy):
        return value if strategy.is_native(datetime.time) else value.isoformat()

    def from_db(self, value, strategy):
        if isinstance(value, datetime.time):
            return value
        return _isoparser.parse_isotime(str(value))


class DateTimeHandler(ValueHandler):
    python_type = datetime.datetime

    def to_db(self, value, strategy):
        if not isinstance(value, datetime.datetime):
            value = datetime.datetime.combine(value, datetime.time())
        return value if strategy.is_native(datetime.datetime) else value.isoformat(sep=' ')

    def from_db(self, value, strategy):
        if isinstance(value, datetime.datetime):
            return value
        if isinstance(value, datetime.date):
            return datetime.datetime.combine(value, datetime.time())
        return dateutil.parser.isoparse(str(value))


class UUIDHandler(ValueHandler):
    python_type = uuid.UUID

    def to_db(self, value, strategy):
        value = value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
        return value if strategy.is_native(uuid.UUID) else str(value)

    def from_db(self, value, strategy):
        if isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))


class CollectionHandler(ValueHandler):
    """Homogeneous collections, stored as arrays or JSON depending on the dialect.

    An empty collection binds as NULL and NULL reads back as an empty
    collection of the declared container type.
    """

    def __init__(self, container: type, element: ValueHandler) -> None:
        self.python_type = container
        self.element = element

    def default_value(self):
        return self.python_type()

    def to_db(self, value, strategy):
        if not value:
            return None
        items = [self.element.to_db(convert_value(item), strategy) for item in value]
        return strategy.bind_collection(items)

    def from_db(self, value, strategy):
        items = strategy.load_collection(value)
        return self.python_type(self.element.from_db(item, strategy) for item in items)

    def __repr__(self) -> str:
        return f'<CollectionHandler {self.python_type.__name__}[{self.element!r}]>'


_SCALAR_HANDLERS: dict[type, ValueHandler] = {
    handler.python_type: handler for handler in (
        BoolHandler(), IntHandler(), FloatHandler(), DecimalHandler(),
        StrHandler(), BytesHandler(), DateHandler(), TimeHandler(),
        DateTimeHandler(), UUIDHandler(),
    )
}


def unwrap_optional(value_type: Any) -> tuple[Any, bool]:
    """Split `X | None` into `(X, True)`; other types return `(type, False)`."""
    origin = typing.get_origin(value_type)
    if origin in {typing.Union, types.UnionType}:
        args = typing.get_args(value_type)
        members = [arg for arg in args if arg is not type(None)]
        if len(members) == 1:
            return members[0], type(None) in args
    return value_type, False


@lru_cache(maxsize=256)
def handler_for(value_type: Any) -> ValueHandler | None:
    """Resolve the handler of a declared (non-optional) value type.

    Returns None when the type has no marshalling.
    """
    handler = _SCALAR_HANDLERS.get(value_type)
    if handler is not None:
        return handler

    origin = typing.get_origin(value_type)
    if origin in COLLECTION_TYPES:
        args = typing.get_args(value_type)
        if origin is tuple:
            if len(args) != 2 or args[1] is not Ellipsis:
                return None
            args = args[:1]
        if len(args) != 1:
            return None
        element, _ = unwrap_optional(args[0])
        element_handler = _SCALAR_HANDLERS.get(element)
        if element_handler is None:
            return None
        return CollectionHandler(origin, element_handler)

    return None


# Setters - property value -> statement parameter

class ParameterSetter:
    """Binds values of one property into statement parameters.
    """

    def __init__(self, prop: 'PropertyDescriptor', handler: ValueHandler,
                 strategy: 'DatabaseStrategy') -> None:
        self.property = prop
        self.handler = handler
        self.strategy = strategy

    def to_param(self, value: Any) -> Any:
        value = convert_value(value)
        if value is None:
            return None
        try:
            return self.handler.to_db(value, self.strategy)
        except (TypeError, ValueError, ArithmeticError) as exc:
            raise SetParameterError(self.property, exc) from exc

    def bind(self, params: list, index: int, value: Any) -> None:
        """Bind a value into a numbered parameter slot."""
        params[index] = self.to_param(value)


class LookupSetter(ParameterSetter):
    """Binds a reference to a cached object as the object's key.

    A raw key value is accepted in place of the object.
    """

    def __init__(self, prop: 'PropertyDescriptor', target: type,
                 key_setter: ParameterSetter) -> None:
        super().__init__(prop, key_setter.handler, key_setter.strategy)
        self.target = target
        self.key_setter = key_setter

    def to_param(self, value: Any) -> Any:
        if isinstance(value, self.target):
            value = self.key_setter.property.get_value(value)
        return self.key_setter.to_param(value)


# Getters - result row -> property value

class ResultGetter:
    """Reads one property from a named result column.
    """

    def __init__(self, prop: 'PropertyDescriptor', handler: ValueHandler,
                 strategy: 'DatabaseStrategy', column: str, optional: bool) -> None:
        self.property = prop
        self.handler = handler
        self.strategy = strategy
        self.column = column
        self.optional = optional

    def raw(self, row: Any) -> Any:
        return row[self.column]

    def get(self, row: Any) -> Any:
        try:
            value = self.raw(row)
            if value is None:
                return None if self.optional else self.handler.default_value()
            return self.handler.from_db(value, self.strategy)
        except (KeyError, IndexError, TypeError, ValueError, ArithmeticError) as exc:
            raise ResultGetterError(self.property, exc) from exc


class LookupGetter(ResultGetter):
    """Reads a key column and resolves it through the connection's lookups.
    """

    def __init__(self, prop: 'PropertyDescriptor', target: type, key_getter: ResultGetter,
                 connection: 'Connection') -> None:
        super().__init__(prop, key_getter.handler, key_getter.strategy,
                         key_getter.column, optional=True)
        self.target = target
        self.key_getter = key_getter
        self.connection = connection

    def get(self, row: Any) -> Any:
        key = self.key_getter.get(row)
        if key is None:
            return None
        return self.connection.lookup(self.target, key)


# Factories

def _lookup_target(prop: 'PropertyDescriptor', connection: 'Connection') -> type | None:
    value_type, _ = unwrap_optional(prop.value_type)
    if isinstance(value_type, type) and connection.is_lookup(value_type):
        return value_type
    return None


def _is_mapped(value_type: Any, connection: 'Connection') -> bool:
    """Whether a type looks like a mapped class: described already, or declaring properties."""
    if not isinstance(value_type, type) or value_type.__module__ == 'builtins':
        return False
    if value_type in connection.registry:
        return True
    return any(isinstance(member, property)
               for klass in value_type.__mro__ for member in vars(klass).values())


def _resolve(prop: 'PropertyDescriptor', connection: 'Connection') -> tuple[ValueHandler, bool]:
    value_type, optional = unwrap_optional(prop.value_type)
    handler = handler_for(value_type)
    if handler is None:
        if _is_mapped(value_type, connection):
            raise MissingLookupError(prop)
        raise UnsupportedPropertyTypeError(prop)
    return handler, optional


def column_name(prop: 'PropertyDescriptor', connection: 'Connection') -> str:
    """Column of a property: snake case, plus the key name for lookup references."""
    target = _lookup_target(prop, connection)
    if target is None:
        return sql_name(prop.name)
    key = connection.lookup_key_property(target)
    return sql_name(prop.name, key.name)


def create_setter(prop: 'PropertyDescriptor', connection: 'Connection') -> ParameterSetter:
    target = _lookup_target(prop, connection)
    if target is not None:
        key = connection.lookup_key_property(target)
        return LookupSetter(prop, target, create_setter(key, connection))
    handler, _ = _resolve(prop, connection)
    return ParameterSetter(prop, handler, connection.strategy)


def create_getter(prop: 'PropertyDescriptor', connection: 'Connection') -> ResultGetter:
    column = column_name(prop, connection)
    target = _lookup_target(prop, connection)
    if target is not None:
        key = connection.lookup_key_property(target)
        handler, _ = _resolve(key, connection)
        key_getter = ResultGetter(key, handler, connection.strategy, column, optional=True)
        return LookupGetter(prop, target, key_getter, connection)
    handler, optional = _resolve(prop, connection)
    return ResultGetter(prop, handler, connection.strategy, column, optional)
