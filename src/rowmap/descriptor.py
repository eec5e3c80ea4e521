"""
Type descriptors for mapped classes.

A mapped class declares its persistent shape with ordinary Python properties.
Every property whose getter carries a return annotation becomes a property
descriptor; `@persistence` refines the key, persistence and initialization
flags, `@initializer` names the values the constructor receives.

Example:
    >>> class Person:
    ...     @initializer('id')
    ...     def __init__(self, id):
    ...         self._id = id
    ...         self._name = None
    ...
    ...     @property
    ...     @persistence(key=True, init=PropertyInit.AUTO_INCREMENT)
    ...     def id(self) -> int:
    ...         return self._id
    ...
    ...     @property
    ...     def name(self) -> str | None:
    ...         return self._name
    ...
    ...     @name.setter
    ...     def name(self, value):
    ...         self._name = value

Descriptors are built once per class and memoized in a DescriptorRegistry.
"""
import enum
import inspect
import logging
import threading
import types
import typing
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from rowmap.exceptions import ArgumentMismatchError, DuplicatePropertyError
from rowmap.exceptions import InitializerError, MappingError
from rowmap.exceptions import NoSuchPropertyError, ObjectCreationError
from rowmap.exceptions import ReadOnlyPropertyError, RowmapError

logger = logging.getLogger(__name__)

__all__ = [
    'PropertyInit',
    'Persistence',
    'persistence',
    'initializer',
    'PropertyDescriptor',
    'TypeDescriptor',
    'DescriptorRegistry',
]

_PERSISTENCE_ATTR = '__rowmap_persistence__'
_INITIALIZER_ATTR = '__rowmap_initializer__'

_NOT_NULLABLE = (bool, int, float)


class PropertyInit(enum.Enum):
    """How a property receives its value on insert."""

    MANUAL = 'manual'
    AUTO_INCREMENT = 'auto_increment'


@dataclass(frozen=True)
class Persistence:
    key: bool = False
    ignore: bool = False
    init: PropertyInit = PropertyInit.MANUAL
    name: str | None = None


def persistence(key: bool = False, ignore: bool = False,
                init: PropertyInit = PropertyInit.MANUAL,
                name: str | None = None) -> Callable:
    """Tag a property getter with persistence flags.

    Works both under and above `@property`.
    """
    info = Persistence(key=key, ignore=ignore, init=init, name=name)

    def decorator(func):
        target = func.fget if isinstance(func, property) else func
        setattr(target, _PERSISTENCE_ATTR, info)
        return func

    return decorator


def initializer(*property_names: str) -> Callable:
    """Mark the key-initializing constructor of a mapped class.

    The arguments name the properties passed positionally to the
    constructor. Used bare (`@initializer`), the constructor's own
    parameter names are taken as property names.
    """
    if len(property_names) == 1 and not isinstance(property_names[0], str):
        func = property_names[0]
        _mark_initializer(func, None)
        return func

    def decorator(func):
        _mark_initializer(func, tuple(property_names))
        return func

    return decorator


def _mark_initializer(func, names: tuple[str, ...] | None) -> None:
    target = func.__func__ if isinstance(func, classmethod | staticmethod) else func
    setattr(target, _INITIALIZER_ATTR, names)


def _unwrap(member: Any) -> Any:
    if isinstance(member, classmethod | staticmethod):
        return member.__func__
    return member


def _is_optional(value_type: Any) -> bool:
    origin = typing.get_origin(value_type)
    return origin in {typing.Union, types.UnionType} and type(None) in typing.get_args(value_type)


class PropertyDescriptor:
    """One mapped attribute of a class.
    """

    def __init__(self, owner: type, name: str, attribute: str, value_type: Any,
                 fget: Callable, fset: Callable | None, info: Persistence | None) -> None:
        info = info or Persistence()
        self.owner = owner
        self.name = name
        self.attribute = attribute
        self.value_type = value_type
        self.is_key = info.key
        self.is_persistent = not info.ignore
        self.init = info.init
        self._fget = fget
        self._fset = fset

    @property
    def full_name(self) -> str:
        return f'{self.owner.__qualname__}.{self.name}'

    @property
    def is_writable(self) -> bool:
        return self._fset is not None

    @property
    def is_optional(self) -> bool:
        return _is_optional(self.value_type)

    @property
    def is_auto_increment(self) -> bool:
        return self.init is PropertyInit.AUTO_INCREMENT

    def get_value(self, obj: Any) -> Any:
        return self._fget(obj)

    def set_value(self, obj: Any, value: Any) -> None:
        if self._fset is None:
            raise ReadOnlyPropertyError(self)
        self._fset(obj, value)

    def __repr__(self) -> str:
        flags = [flag for flag, on in (('key', self.is_key),
                                       ('transient', not self.is_persistent),
                                       ('auto', self.is_auto_increment),
                                       ('writable', self.is_writable)) if on]
        return f'<PropertyDescriptor {self.full_name} {self.value_type!r} {",".join(flags)}>'


class TypeDescriptor:
    """Shape of a mapped class: its properties, keys and constructor.

    Properties are ordered parent first, then in declaration order.
    """

    def __init__(self, registry: 'DescriptorRegistry', target: type) -> None:
        self.target = target
        self.name = target.__name__
        base = target.__bases__[0] if target.__bases__ else object
        self.parent = None if base is object else registry.descriptor_for(base)

        own = _collect_properties(target)
        inherited = self.parent.properties if self.parent else ()
        for prop in inherited:
            if prop.name in own:
                raise DuplicatePropertyError(target, prop.name)

        self.own_properties = tuple(own.values())
        self.properties = (*inherited, *self.own_properties)
        self._by_name = {prop.name: prop for prop in self.properties}
        self.key_properties = tuple(p for p in self.properties if p.is_key)
        self.persistent_properties = tuple(p for p in self.properties if p.is_persistent)

        self._factory, self.initializer_names, self._parameter_types = self._find_initializer()
        self._post_init = tuple(p for p in self.properties if p.name not in self.initializer_names)

    @property
    def key_property(self) -> PropertyDescriptor | None:
        """The single key property, None when there are zero or several."""
        if len(self.key_properties) == 1:
            return self.key_properties[0]
        return None

    def has_property(self, name: str) -> bool:
        return name in self._by_name

    def get_property(self, name: str) -> PropertyDescriptor:
        try:
            return self._by_name[name]
        except KeyError:
            raise NoSuchPropertyError(self.target, name) from None

    def __iter__(self) -> Iterator[PropertyDescriptor]:
        return iter(self.properties)

    def values_of(self, obj: Any) -> dict[str, Any]:
        """Current values of all persistent properties of an instance."""
        return {prop.name: prop.get_value(obj) for prop in self.persistent_properties}

    def new_instance(self, values: Mapping[str, Any]) -> Any:
        """Construct an instance from a property-name to value mapping.

        Initializer properties go to the constructor; the rest are applied
        through their setters when present in `values`. Read-only properties
        that are not constructor arguments are skipped.
        """
        args = [values.get(name) for name in self.initializer_names]
        self.check_arguments(args)
        try:
            obj = self._factory(*args)
        except RowmapError:
            raise
        except Exception as exc:
            raise ObjectCreationError(self.target, exc) from exc
        for prop in self._post_init:
            if prop.is_writable and prop.name in values:
                prop.set_value(obj, values[prop.name])
        return obj

    def update_instance(self, obj: Any, values: Mapping[str, Any]) -> None:
        """Apply fresh values onto an existing instance."""
        for prop in self.properties:
            if prop.is_writable and prop.name in values:
                prop.set_value(obj, values[prop.name])

    def check_arguments(self, args: list[Any]) -> None:
        for position, (name, expected, value) in enumerate(
                zip(self.initializer_names, self._parameter_types, args)):
            if not _matches(expected, value):
                actual = None if value is None else type(value)
                raise ArgumentMismatchError(self.target, name, position, expected, actual)

    def _find_initializer(self):
        target = self.target
        marked = [(attr, member) for attr, member in vars(target).items()
                  if callable(_unwrap(member)) and hasattr(_unwrap(member), _INITIALIZER_ATTR)]
        if len(marked) > 1:
            names = ', '.join(attr for attr, _ in marked)
            raise InitializerError(target, f'multiple initializers declared: {names}')

        if marked:
            attr, member = marked[0]
            func = _unwrap(member)
            factory = target if attr == '__init__' else getattr(target, attr)
            skip_first = not isinstance(member, staticmethod)
        elif hasattr(target.__init__, _INITIALIZER_ATTR):
            func = target.__init__
            factory = target
            skip_first = True
        else:
            self._check_no_arg_construction()
            return target, (), ()

        parameters = [p for p in inspect.signature(func).parameters.values()
                      if p.kind in {p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD}]
        if skip_first:
            parameters = parameters[1:]
        names = getattr(func, _INITIALIZER_ATTR)
        if names is None:
            names = tuple(p.name for p in parameters)
        if len(names) > len(parameters):
            raise InitializerError(target, f'initializer takes {len(parameters)} arguments, '
                                           f'{len(names)} properties named')
        for name in names:
            self.get_property(name)

        try:
            hints = typing.get_type_hints(func)
        except NameError as exc:
            raise MappingError(f'Cannot resolve initializer annotations of '
                               f'{target.__qualname__}: {exc}') from exc
        parameter_types = tuple(hints.get(param.name, self._by_name[name].value_type)
                                for name, param in zip(names, parameters))
        return factory, tuple(names), parameter_types

    def _check_no_arg_construction(self) -> None:
        try:
            signature = inspect.signature(self.target)
        except (TypeError, ValueError):
            return
        required = [p.name for p in signature.parameters.values()
                    if p.default is p.empty and p.kind not in {p.VAR_POSITIONAL, p.VAR_KEYWORD}]
        if required:
            raise InitializerError(self.target, 'no initializer declared and the constructor '
                                                f'requires {", ".join(required)}')

    def __repr__(self) -> str:
        return f'<TypeDescriptor {self.target.__qualname__} ({len(self.properties)} properties)>'


def _collect_properties(target: type) -> dict[str, PropertyDescriptor]:
    result = {}
    for attr, member in vars(target).items():
        if attr.startswith('__') and attr.endswith('__'):
            continue
        if not isinstance(member, property) or member.fget is None:
            continue
        info = getattr(member.fget, _PERSISTENCE_ATTR, None)
        value_type = _return_type(target, attr, member.fget)
        if value_type is None:
            if info is not None:
                raise MappingError(f'Property {target.__qualname__}.{attr} is tagged '
                                   'with @persistence but has no return annotation')
            logger.debug(f'Skipping unannotated property {target.__qualname__}.{attr}')
            continue
        name = info.name if info and info.name else attr
        if name in result:
            raise DuplicatePropertyError(target, name)
        result[name] = PropertyDescriptor(target, name, attr, value_type,
                                          member.fget, member.fset, info)
    return result


def _return_type(target: type, attr: str, fget: Callable) -> Any:
    if 'return' not in getattr(fget, '__annotations__', {}):
        return None
    try:
        value_type = typing.get_type_hints(fget)['return']
    except NameError as exc:
        raise MappingError(f'Cannot resolve return type of {target.__qualname__}.{attr}: '
                           f'{exc}') from exc
    if value_type is type(None):
        return None
    return value_type


def _matches(expected: Any, value: Any) -> bool:
    """Whether a constructor argument is acceptable for a declared parameter type.
    """
    if expected is Any:
        return True
    origin = typing.get_origin(expected)
    if origin in {typing.Union, types.UnionType}:
        members = [arg for arg in typing.get_args(expected) if arg is not type(None)]
        if value is None:
            return type(None) in typing.get_args(expected)
        return any(_matches(arg, value) for arg in members)
    if value is None:
        return expected not in _NOT_NULLABLE
    if origin is not None:
        expected = origin
    if not isinstance(expected, type):
        return True
    if isinstance(value, bool) and expected in {int, float}:
        return False
    if expected is float and isinstance(value, int):
        return True
    return isinstance(value, expected)


class DescriptorRegistry:
    """Memo of type descriptors, one per class.

    A registry may be shared between connections; building is guarded by a
    reentrant lock because parent descriptors are built recursively.
    """

    def __init__(self) -> None:
        self._descriptors: dict[type, TypeDescriptor] = {}
        self._lock = threading.RLock()

    def descriptor_for(self, target: type) -> TypeDescriptor:
        if not isinstance(target, type):
            raise TypeError(f'Expected a class, got {target!r}')
        descriptor = self._descriptors.get(target)
        if descriptor is not None:
            return descriptor
        with self._lock:
            descriptor = self._descriptors.get(target)
            if descriptor is None:
                descriptor = TypeDescriptor(self, target)
                self._descriptors[target] = descriptor
                logger.debug(f'Built descriptor for {target.__qualname__}: '
                             f'{[p.name for p in descriptor.properties]}')
        return descriptor

    def __contains__(self, target: type) -> bool:
        return target in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)
