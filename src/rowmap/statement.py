"""
SQL statement construction and execution.

A StatementBuilder turns a type descriptor, a schema name and an optional
condition into SQL text plus converted parameters. The Statement classes
build one statement each, execute it once and dispose of the cursor:

- InsertStatement: insert one object, assigning auto-increment keys
- SelectStatement: select and materialize objects through the lookups
- UpdateStatement: write the current values of one object by key
- UpdateWhereStatement: write a fixed set of values to matching rows
- DeleteStatement: delete matching rows
"""
import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any, Self

from rowmap.condition import Condition, and_, equals
from rowmap.cursor import Cursor
from rowmap.descriptor import PropertyDescriptor, TypeDescriptor
from rowmap.exceptions import NoKeyPropertyError, ResultSetError, RowmapError
from rowmap.exceptions import StatementExecutionError
from rowmap.sql import make_placeholders, sql_name
from rowmap.types import ParameterSetter, column_name, convert_value
from rowmap.types import create_getter, create_setter, unwrap_optional

if TYPE_CHECKING:
    from rowmap.connection import Connection

logger = logging.getLogger(__name__)

__all__ = [
    'StatementBuilder',
    'Statement',
    'InsertStatement',
    'SelectStatement',
    'UpdateStatement',
    'UpdateWhereStatement',
    'DeleteStatement',
    'table_name',
    'sequence_name',
]


def table_name(schema: str | None, descriptor: TypeDescriptor) -> str:
    """Unquoted, schema-qualified table name of a mapped class."""
    name = sql_name(descriptor.name)
    return f'{schema}.{name}' if schema else name


def sequence_name(schema: str | None, descriptor: TypeDescriptor,
                  prop: PropertyDescriptor) -> str:
    """Sequence feeding an auto-increment property: `schema.type_property`."""
    name = sql_name(descriptor.name, prop.name)
    return f'{schema}.{name}' if schema else name


class StatementBuilder:
    """Accumulates SQL text and parameters for one statement.

    Conditions visit the builder: they append literal SQL, columns resolved
    from property names, and parameters bound with the property's setter.
    """

    def __init__(self, connection: 'Connection', schema: str | None,
                 descriptor: TypeDescriptor) -> None:
        self.connection = connection
        self.schema = schema
        self.descriptor = descriptor
        self.strategy = connection.strategy
        self.params: list[Any] = []
        self._parts: list[str] = []
        self._setters: dict[str, ParameterSetter] = {}

    @property
    def sql(self) -> str:
        return ''.join(self._parts)

    @property
    def like_operator(self) -> str:
        return self.strategy.like_operator

    def append(self, text: str) -> Self:
        self._parts.append(text)
        return self

    def quote(self, identifier: str) -> str:
        return self.strategy.quote_identifier(identifier)

    def table(self) -> str:
        name = self.quote(sql_name(self.descriptor.name))
        if self.schema:
            return f'{self.quote(self.schema)}.{name}'
        return name

    def column(self, prop: PropertyDescriptor) -> str:
        return self.quote(column_name(prop, self.connection))

    def columns(self, props: Iterable[PropertyDescriptor]) -> str:
        return ', '.join(self.column(prop) for prop in props)

    def setter(self, prop: PropertyDescriptor) -> ParameterSetter:
        setter = self._setters.get(prop.name)
        if setter is None:
            setter = self._setters[prop.name] = create_setter(prop, self.connection)
        return setter

    def bind(self, prop: PropertyDescriptor, value: Any) -> None:
        """Add the converted value of a property to the parameter list."""
        self.params.append(self.setter(prop).to_param(value))

    def append_table(self) -> Self:
        return self.append(self.table())

    def append_column(self, name: str) -> Self:
        return self.append(self.column(self.descriptor.get_property(name)))

    def append_parameter(self, name: str, value: Any) -> Self:
        self.bind(self.descriptor.get_property(name), value)
        return self.append('?')

    def append_where(self, where: Condition | None) -> Self:
        if where is not None:
            self.append(' where ')
            where.visit(self)
        return self


class Statement:
    """One SQL statement, executed once.

    Use as a context manager, or call dispose() after execute().
    """

    def __init__(self, connection: 'Connection', schema: str | None,
                 descriptor: TypeDescriptor) -> None:
        self.connection = connection
        self.schema = schema
        self.descriptor = descriptor
        self.builder = StatementBuilder(connection, schema, descriptor)
        self._cursor: Cursor | None = None

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.dispose()

    @property
    def sql(self) -> str:
        return self.builder.sql

    @property
    def params(self) -> list[Any]:
        return self.builder.params

    def dispose(self) -> None:
        if self._cursor is not None:
            self._cursor.close()
            self._cursor = None

    def _execute(self) -> int:
        sql = self.sql
        try:
            self._cursor = Cursor(self.connection)
            return self._cursor.execute(sql, self.params)
        except RowmapError:
            raise
        except Exception as exc:
            raise StatementExecutionError(sql, exc) from exc

    def __repr__(self) -> str:
        return f'<{type(self).__name__} {self.sql!r}>'


class InsertStatement(Statement):
    """Insert one object.

    Auto-increment properties without a value draw the next value of their
    sequence before binding. After execution the object is constructed from
    the complete values and added to the lookup of its class, if any.
    """

    def __init__(self, connection: 'Connection', schema: str | None,
                 descriptor: TypeDescriptor, values: Mapping[str, Any]) -> None:
        super().__init__(connection, schema, descriptor)
        bound = self._complete(values)
        props = descriptor.persistent_properties
        b = self.builder
        b.append('insert into ').append_table()
        b.append(f' ({b.columns(props)}) values ({make_placeholders(len(props))})')
        for prop in props:
            b.bind(prop, bound.get(prop.name))
        # raw reference keys are bound as given, the new instance gets the cached object
        self.values = {name: self._resolve_reference(descriptor.get_property(name), value)
                       for name, value in bound.items()}

    def _complete(self, values: Mapping[str, Any]) -> dict[str, Any]:
        result = {}
        for name, value in values.items():
            self.descriptor.get_property(name)
            result[name] = convert_value(value)
        for prop in self.descriptor.persistent_properties:
            if prop.is_auto_increment and result.get(prop.name) is None:
                name = sequence_name(self.schema, self.descriptor, prop)
                result[prop.name] = self.connection.next_id(name)
        return result

    def _resolve_reference(self, prop: PropertyDescriptor, value: Any) -> Any:
        """Replace a raw key given for a lookup-typed property by the cached object."""
        target, _ = unwrap_optional(prop.value_type)
        if value is None or not self.connection.is_lookup(target) or isinstance(value, target):
            return value
        return self.connection.lookup(target, value)

    def execute(self) -> Any:
        self._execute()
        obj = self.descriptor.new_instance(self.values)
        lookup = self.connection.lookup_of(self.descriptor.target)
        if lookup is not None:
            lookup.add(obj)
        return obj


class SelectStatement(Statement):
    """Select objects of one class.

    With a lookup, rows whose key is already cached refresh the cached
    instance instead of creating a new one.
    """

    def __init__(self, connection: 'Connection', schema: str | None,
                 descriptor: TypeDescriptor, where: Condition | None = None) -> None:
        super().__init__(connection, schema, descriptor)
        props = descriptor.persistent_properties
        self.getters = [create_getter(prop, connection) for prop in props]
        b = self.builder
        b.append(f'select {b.columns(props)} from ').append_table()
        b.append_where(where)

    def execute(self) -> list:
        self._execute()
        try:
            rows = self._cursor.fetchall()
        except Exception as exc:
            raise ResultSetError(self.sql, exc) from exc
        lookup = self.connection.lookup_of(self.descriptor.target)
        result = []
        for row in rows:
            values = {getter.property.name: getter.get(row) for getter in self.getters}
            result.append(self._materialize(values, lookup))
        logger.debug(f'Selected {len(result)} {self.descriptor.name} objects')
        return result

    def _materialize(self, values: dict[str, Any], lookup) -> Any:
        if lookup is None:
            return self.descriptor.new_instance(values)
        obj = lookup.get(values.get(lookup.key_property_name))
        if obj is None:
            obj = self.descriptor.new_instance(values)
            lookup.add(obj)
        else:
            self.descriptor.update_instance(obj, values)
        return obj


class UpdateStatement(Statement):
    """Write the current values of one object, located by its key columns.

    Value columns are the writable, persistent, non-key properties, restricted
    to `names` when given.
    """

    def __init__(self, connection: 'Connection', schema: str | None,
                 descriptor: TypeDescriptor, obj: Any,
                 names: Iterable[str] | None = None) -> None:
        super().__init__(connection, schema, descriptor)
        if not descriptor.key_properties:
            raise NoKeyPropertyError(descriptor.target)
        if names is not None:
            names = {descriptor.get_property(name).name for name in names}
        self.value_properties = [
            prop for prop in descriptor.persistent_properties
            if prop.is_writable and not prop.is_key and (names is None or prop.name in names)
            ]
        b = self.builder
        b.append('update ').append_table().append(' set ')
        for i, prop in enumerate(self.value_properties):
            if i:
                b.append(', ')
            b.append(f'{b.column(prop)} = ?')
            b.bind(prop, prop.get_value(obj))
        b.append_where(and_(*(equals(key.name, key.get_value(obj))
                              for key in descriptor.key_properties)))

    def execute(self) -> int:
        if not self.value_properties:
            logger.debug(f'Nothing to update for {self.descriptor.name}')
            return 0
        return self._execute()


class UpdateWhereStatement(Statement):
    """Write fixed values to every row matching a condition.

    Names in `values` that are not persistent properties are ignored. Without
    a condition the whole table is updated.
    """

    def __init__(self, connection: 'Connection', schema: str | None,
                 descriptor: TypeDescriptor, values: Mapping[str, Any],
                 where: Condition | None = None) -> None:
        super().__init__(connection, schema, descriptor)
        self.value_properties = [prop for prop in descriptor.persistent_properties
                                 if prop.name in values]
        b = self.builder
        b.append('update ').append_table().append(' set ')
        for i, prop in enumerate(self.value_properties):
            if i:
                b.append(', ')
            b.append(f'{b.column(prop)} = ?')
            b.bind(prop, values[prop.name])
        b.append_where(where)

    def execute(self) -> int:
        if not self.value_properties:
            logger.debug(f'Nothing to update for {self.descriptor.name}')
            return 0
        return self._execute()


class DeleteStatement(Statement):
    """Delete rows matching a condition, or every row without one."""

    def __init__(self, connection: 'Connection', schema: str | None,
                 descriptor: TypeDescriptor, where: Condition | None = None) -> None:
        super().__init__(connection, schema, descriptor)
        self.builder.append('delete from ').append_table().append_where(where)

    def execute(self) -> int:
        return self._execute()
