"""
Per-type identity cache.

A Lookup maps the key value of a mapped class to the single live instance
representing that row. Entries are never evicted; the cache lives as long as
the connection that owns it.
"""
import logging
from typing import Any

from rowmap.descriptor import PropertyDescriptor, TypeDescriptor
from rowmap.exceptions import NoKeyPropertyError

logger = logging.getLogger(__name__)

__all__ = ['Lookup']


class Lookup:
    """Identity map for one mapped class.
    """

    def __init__(self, descriptor: TypeDescriptor) -> None:
        key_property = descriptor.key_property
        if key_property is None:
            raise NoKeyPropertyError(descriptor.target)
        self.descriptor = descriptor
        self.key_property: PropertyDescriptor = key_property
        self._items: dict[Any, Any] = {}

    @property
    def target(self) -> type:
        return self.descriptor.target

    @property
    def key_property_name(self) -> str:
        return self.key_property.name

    def key_of(self, obj: Any) -> Any:
        return self.key_property.get_value(obj)

    def add(self, obj: Any) -> None:
        """Cache an instance under its key, replacing any previous entry."""
        self._items[self.key_of(obj)] = obj

    def get(self, key: Any) -> Any | None:
        """Cached instance for `key`; None for absent or unhashable keys."""
        try:
            return self._items.get(key)
        except TypeError:
            return None

    def clear(self) -> None:
        self._items.clear()

    def __contains__(self, key: Any) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self._items.values())

    def __repr__(self) -> str:
        return f'<Lookup {self.target.__qualname__} by {self.key_property_name}: {len(self)} cached>'
