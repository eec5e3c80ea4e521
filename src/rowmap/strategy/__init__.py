"""
Strategy lookup by dialect name.

One strategy instance per dialect is shared by every Connection of that
dialect; strategies hold no per-connection state.
"""
from functools import lru_cache

from rowmap.strategy.base import _STRATEGY_REGISTRY
from rowmap.strategy.base import DatabaseStrategy as DatabaseStrategy
from rowmap.strategy.base import register_strategy as register_strategy
from rowmap.strategy.postgres import PostgresStrategy as PostgresStrategy
from rowmap.strategy.sqlite import SQLiteStrategy as SQLiteStrategy
from rowmap.utils import get_dialect_name


def get_strategy_class(dialect: str) -> type[DatabaseStrategy]:
    try:
        return _STRATEGY_REGISTRY[dialect]
    except KeyError:
        raise ValueError(f'Unsupported dialect: {dialect}. '
                         f'Available: {get_available_dialects()}') from None


@lru_cache(maxsize=None)
def get_strategy(dialect: str) -> DatabaseStrategy:
    """Shared strategy instance for a dialect name."""
    return get_strategy_class(dialect)()


def get_db_strategy(cn) -> DatabaseStrategy:
    """Strategy for a SQLAlchemy, DB-API or rowmap connection."""
    return get_strategy(get_dialect_name(cn))


def get_available_dialects() -> list[str]:
    return sorted(_STRATEGY_REGISTRY)


def is_supported_dialect(dialect: str) -> bool:
    return dialect in _STRATEGY_REGISTRY
