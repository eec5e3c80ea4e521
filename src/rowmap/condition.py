"""
Composable where-clause predicates.

Predicates are immutable trees of plain values. They reference properties
by name and know nothing about sessions; a statement builder resolves the
names to columns when the tree visits it.

    >>> cond = and_(equals('name', 'Smith'), greater('age', 30))
    >>> cond = equals('name', 'Smith') & ~is_null('email')
"""
import datetime
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, ClassVar

__all__ = [
    'Condition',
    'And',
    'Or',
    'Not',
    'Equals',
    'NotEquals',
    'Greater',
    'GreaterOrEqual',
    'Smaller',
    'SmallerOrEqual',
    'Between',
    'Like',
    'In',
    'IsNull',
    'DateInterval',
    'and_',
    'or_',
    'not_',
    'equals',
    'not_equals',
    'greater',
    'greater_or_equal',
    'smaller',
    'smaller_or_equal',
    'between',
    'like',
    'in_',
    'is_null',
    'during',
]


class Condition:
    """Base of all predicate nodes."""

    __slots__ = ()

    def visit(self, builder) -> None:
        raise NotImplementedError

    def __and__(self, other: 'Condition') -> 'And':
        return And((self, other))

    def __or__(self, other: 'Condition') -> 'Or':
        return Or((self, other))

    def __invert__(self) -> 'Not':
        return Not(self)


@dataclass(frozen=True)
class _Junction(Condition):
    conditions: tuple[Condition, ...]

    operator: ClassVar[str]
    empty: ClassVar[str]

    def visit(self, builder) -> None:
        if not self.conditions:
            builder.append(self.empty)
            return
        for i, condition in enumerate(self.conditions):
            if i:
                builder.append(self.operator)
            builder.append('(')
            condition.visit(builder)
            builder.append(')')


@dataclass(frozen=True)
class And(_Junction):
    """All children hold. Without children it matches every row."""

    operator: ClassVar[str] = ' and '
    empty: ClassVar[str] = '1 = 1'


@dataclass(frozen=True)
class Or(_Junction):
    """Any child holds. Without children it matches no row."""

    operator: ClassVar[str] = ' or '
    empty: ClassVar[str] = '1 = 0'


@dataclass(frozen=True)
class Not(Condition):
    condition: Condition

    def visit(self, builder) -> None:
        builder.append('not (')
        self.condition.visit(builder)
        builder.append(')')


@dataclass(frozen=True)
class _Comparison(Condition):
    name: str
    value: Any

    operator: ClassVar[str]

    def visit(self, builder) -> None:
        builder.append_column(self.name)
        builder.append(self.operator)
        builder.append_parameter(self.name, self.value)


@dataclass(frozen=True)
class Equals(_Comparison):
    operator: ClassVar[str] = ' = '


@dataclass(frozen=True)
class NotEquals(_Comparison):
    operator: ClassVar[str] = ' <> '


@dataclass(frozen=True)
class Greater(_Comparison):
    operator: ClassVar[str] = ' > '


@dataclass(frozen=True)
class GreaterOrEqual(_Comparison):
    operator: ClassVar[str] = ' >= '


@dataclass(frozen=True)
class Smaller(_Comparison):
    operator: ClassVar[str] = ' < '


@dataclass(frozen=True)
class SmallerOrEqual(_Comparison):
    operator: ClassVar[str] = ' <= '


@dataclass(frozen=True)
class Like(Condition):
    """Case-insensitive pattern match using the dialect's like operator."""

    name: str
    pattern: str

    def visit(self, builder) -> None:
        builder.append_column(self.name)
        builder.append(f' {builder.like_operator} ')
        builder.append_parameter(self.name, self.pattern)


@dataclass(frozen=True)
class Between(Condition):
    """Inclusive range."""

    name: str
    low: Any
    high: Any

    def visit(self, builder) -> None:
        builder.append_column(self.name)
        builder.append(' between ')
        builder.append_parameter(self.name, self.low)
        builder.append(' and ')
        builder.append_parameter(self.name, self.high)


@dataclass(frozen=True)
class In(Condition):
    """Membership in a finite list. An empty list matches no row."""

    name: str
    values: tuple

    def visit(self, builder) -> None:
        if not self.values:
            builder.append('1 = 0')
            return
        builder.append_column(self.name)
        builder.append(' in (')
        for i, value in enumerate(self.values):
            if i:
                builder.append(', ')
            builder.append_parameter(self.name, value)
        builder.append(')')


@dataclass(frozen=True)
class IsNull(Condition):
    name: str

    def visit(self, builder) -> None:
        builder.append_column(self.name)
        builder.append(' is null')


@dataclass(frozen=True)
class DateInterval:
    """A range of dates, open on either end when the bound is None."""

    start: datetime.date | None = None
    end: datetime.date | None = None

    def __post_init__(self):
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValueError(f'Interval start {self.start} is after end {self.end}')

    @property
    def is_open_start(self) -> bool:
        return self.start is None

    @property
    def is_open_end(self) -> bool:
        return self.end is None

    def contains(self, day: datetime.date) -> bool:
        if self.start is not None and day < self.start:
            return False
        return not (self.end is not None and day > self.end)


def and_(*conditions: Condition) -> And:
    return And(tuple(conditions))


def or_(*conditions: Condition) -> Or:
    return Or(tuple(conditions))


def not_(condition: Condition) -> Not:
    return Not(condition)


def equals(name: str, value: Any) -> Equals:
    return Equals(name, value)


def not_equals(name: str, value: Any) -> NotEquals:
    return NotEquals(name, value)


def greater(name: str, value: Any) -> Greater:
    return Greater(name, value)


def greater_or_equal(name: str, value: Any) -> GreaterOrEqual:
    return GreaterOrEqual(name, value)


def smaller(name: str, value: Any) -> Smaller:
    return Smaller(name, value)


def smaller_or_equal(name: str, value: Any) -> SmallerOrEqual:
    return SmallerOrEqual(name, value)


def between(name: str, low: Any, high: Any) -> Between:
    return Between(name, low, high)


def like(name: str, pattern: str) -> Like:
    return Like(name, pattern)


def in_(name: str, values: Iterable) -> In:
    return In(name, tuple(values))


def is_null(name: str) -> IsNull:
    return IsNull(name)


def during(name: str, interval: DateInterval) -> Condition:
    """Restrict a date property to an interval.

    Closed intervals become `between`, half-open ones a single comparison,
    and a fully open interval matches every row.
    """
    if interval.is_open_start and interval.is_open_end:
        return And(())
    if interval.is_open_start:
        return SmallerOrEqual(name, interval.end)
    if interval.is_open_end:
        return GreaterOrEqual(name, interval.start)
    return Between(name, interval.start, interval.end)
