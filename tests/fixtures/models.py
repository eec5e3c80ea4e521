"""
Mapped classes shared by the unit and integration tests.
"""
import datetime
import decimal
import uuid

from rowmap import PropertyInit, initializer, persistence


class Entity:
    """Root of classes keyed by a sequence-generated id."""

    @initializer('id')
    def __init__(self, id: int):
        self._id = id

    @property
    @persistence(key=True, init=PropertyInit.AUTO_INCREMENT)
    def id(self) -> int:
        return self._id


class Department(Entity):

    @initializer('id')
    def __init__(self, id: int):
        super().__init__(id)
        self._name = None
        self._code = None

    @property
    def name(self) -> str | None:
        return self._name

    @name.setter
    def name(self, value):
        self._name = value

    @property
    def code(self) -> str | None:
        return self._code

    @code.setter
    def code(self, value):
        self._code = value


class Person(Entity):

    @initializer('id')
    def __init__(self, id: int):
        super().__init__(id)
        self._name = None
        self._email = None
        self._age = 0
        self._salary = None
        self._active = False
        self._birthday = None
        self._start_time = None
        self._updated = None
        self._token = None
        self._photo = None
        self._tags = []
        self._department = None
        self._nickname = None

    @property
    def name(self) -> str | None:
        return self._name

    @name.setter
    def name(self, value):
        self._name = value

    @property
    def email(self) -> str | None:
        return self._email

    @email.setter
    def email(self, value):
        self._email = value

    @property
    def age(self) -> int:
        return self._age

    @age.setter
    def age(self, value):
        self._age = value

    @property
    def salary(self) -> decimal.Decimal | None:
        return self._salary

    @salary.setter
    def salary(self, value):
        self._salary = value

    @property
    def active(self) -> bool:
        return self._active

    @active.setter
    def active(self, value):
        self._active = value

    @property
    def birthday(self) -> datetime.date | None:
        return self._birthday

    @birthday.setter
    def birthday(self, value):
        self._birthday = value

    @property
    def start_time(self) -> datetime.time | None:
        return self._start_time

    @start_time.setter
    def start_time(self, value):
        self._start_time = value

    @property
    def updated(self) -> datetime.datetime | None:
        return self._updated

    @updated.setter
    def updated(self, value):
        self._updated = value

    @property
    def token(self) -> uuid.UUID | None:
        return self._token

    @token.setter
    def token(self, value):
        self._token = value

    @property
    def photo(self) -> bytes | None:
        return self._photo

    @photo.setter
    def photo(self, value):
        self._photo = value

    @property
    def tags(self) -> list[str]:
        return self._tags

    @tags.setter
    def tags(self, value):
        self._tags = value

    @property
    def department(self) -> Department | None:
        return self._department

    @department.setter
    def department(self, value):
        self._department = value

    @property
    @persistence(ignore=True)
    def nickname(self) -> str | None:
        return self._nickname

    @nickname.setter
    def nickname(self, value):
        self._nickname = value

    def greeting(self) -> str:
        return f'Hello {self._name}'


class Preference:
    """Composite key, never identity cached."""

    @initializer('owner', 'key')
    def __init__(self, owner: int, key: str):
        self._owner = owner
        self._key = key
        self._value = None

    @property
    @persistence(key=True)
    def owner(self) -> int:
        return self._owner

    @property
    @persistence(key=True)
    def key(self) -> str:
        return self._key

    @property
    def value(self) -> str | None:
        return self._value

    @value.setter
    def value(self, value):
        self._value = value


class Event:
    """No initializer; every property is set after construction."""

    def __init__(self):
        self._code = None
        self._day = None
        self._weight = 0.0
        self._flags = frozenset()
        self._confirmed = None

    @property
    @persistence(key=True)
    def code(self) -> str:
        return self._code

    @code.setter
    def code(self, value):
        self._code = value

    @property
    def day(self) -> datetime.date | None:
        return self._day

    @day.setter
    def day(self, value):
        self._day = value

    @property
    def weight(self) -> float:
        return self._weight

    @weight.setter
    def weight(self, value):
        self._weight = value

    @property
    def flags(self) -> frozenset[int]:
        return self._flags

    @flags.setter
    def flags(self, value):
        self._flags = value

    @property
    def confirmed(self) -> bool | None:
        return self._confirmed

    @confirmed.setter
    def confirmed(self, value):
        self._confirmed = value


SQLITE_DDL = [
    'create table department (id integer primary key, name text, code text unique)',
    """create table person (
        id integer primary key,
        name text,
        email text,
        age integer,
        salary text,
        active boolean,
        birthday date,
        start_time text,
        updated timestamp,
        token text,
        photo blob,
        tags text,
        department_id integer references department (id)
    )""",
    'create table preference (owner integer, key text, value text, primary key (owner, key))',
    'create table event (code text primary key, day date, weight real, flags text, confirmed boolean)',
]

POSTGRES_DDL = [
    'drop schema if exists test cascade',
    'create schema test',
    'create sequence test.department_id',
    'create sequence test.person_id',
    'create table test.department (id integer primary key, name varchar(100), code varchar(10) unique)',
    """create table test.person (
        id integer primary key,
        name varchar(255),
        email varchar(255),
        age integer,
        salary numeric(12, 2),
        active boolean,
        birthday date,
        start_time time,
        updated timestamp,
        token uuid,
        photo bytea,
        tags text[],
        department_id integer references test.department (id)
    )""",
    'create table test.preference (owner integer, key varchar(50), value text, primary key (owner, key))',
    'create table test.event (code varchar(20) primary key, day date, weight double precision, '
    'flags integer[], confirmed boolean)',
]


def create_schema(cn, statements):
    """Run DDL straight on the driver connection."""
    cursor = cn.driver_connection.cursor()
    try:
        for sql in statements:
            cursor.execute(sql)
    finally:
        cursor.close()
