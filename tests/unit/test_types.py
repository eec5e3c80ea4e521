import datetime
import decimal
import json
import uuid

import numpy as np
import pandas as pd
import pytest
from rowmap import MissingLookupError, ResultGetterError, SetParameterError
from rowmap import UnsupportedPropertyTypeError, persistence
from rowmap.types import CollectionHandler, LookupGetter, LookupSetter
from rowmap.types import ResultGetter, column_name, convert_value
from rowmap.types import create_getter, create_setter, handler_for
from rowmap.types import sanitize_string, unwrap_optional

from tests.fixtures.models import Department, Event, Person


class Unsupported:

    @property
    def payload(self) -> dict:
        return {}

    @property
    def owner(self) -> Person | None:
        return None


@pytest.fixture
def pg(create_mock_connection):
    return create_mock_connection('postgresql', lookups=[Department])


@pytest.fixture
def lite(create_mock_connection):
    return create_mock_connection('sqlite', lookups=[Department])


def prop(cn, cls, name):
    return cn.descriptor_for(cls).get_property(name)


class TestConvertValue:

    @pytest.mark.parametrize(('value', 'expected'), [
        (np.int64(5), 5),
        (np.float32(1.5), 1.5),
        (np.bool_(True), True),
        (float('nan'), None),
        (np.float64('nan'), None),
        (pd.NaT, None),
        (pd.NA, None),
        (None, None),
        ('text', 'text'),
    ])
    def test_scalars(self, value, expected):
        assert convert_value(value) == expected

    def test_numpy_types_become_python_types(self):
        assert type(convert_value(np.int32(3))) is int
        assert type(convert_value(np.bool_(False))) is bool

    def test_timestamp(self):
        value = convert_value(pd.Timestamp('2024-03-01 10:30'))
        assert value == datetime.datetime(2024, 3, 1, 10, 30)
        assert type(value) is datetime.datetime

    def test_datetime64(self):
        assert convert_value(np.datetime64('2024-03-01T10:30:00')) == datetime.datetime(2024, 3, 1, 10, 30)

    def test_sanitize_string(self):
        assert sanitize_string('bad\x00text\x00') == 'badtext'


class TestHandlerResolution:

    @pytest.mark.parametrize('value_type', [
        bool, int, float, decimal.Decimal, str, bytes,
        datetime.date, datetime.time, datetime.datetime, uuid.UUID,
    ])
    def test_scalar_types(self, value_type):
        assert handler_for(value_type).python_type is value_type

    @pytest.mark.parametrize(('value_type', 'container'), [
        (list[str], list),
        (set[int], set),
        (frozenset[int], frozenset),
        (tuple[datetime.date, ...], tuple),
    ])
    def test_collections(self, value_type, container):
        handler = handler_for(value_type)
        assert isinstance(handler, CollectionHandler)
        assert handler.python_type is container

    @pytest.mark.parametrize('value_type', [dict, complex, tuple[int, str], list[dict], list])
    def test_unsupported(self, value_type):
        assert handler_for(value_type) is None

    def test_resolved_once(self):
        assert handler_for(list[int]) is handler_for(list[int])

    def test_unwrap_optional(self):
        assert unwrap_optional(int | None) == (int, True)
        assert unwrap_optional(int) == (int, False)


class TestSetters:

    def test_postgres_binds_native_values(self, pg):
        when = datetime.datetime(2024, 5, 1, 12, 0)
        assert create_setter(prop(pg, Person, 'updated'), pg).to_param(when) == when
        token = uuid.uuid4()
        assert create_setter(prop(pg, Person, 'token'), pg).to_param(token) == token

    def test_sqlite_binds_text(self, lite):
        when = datetime.datetime(2024, 5, 1, 12, 0)
        assert create_setter(prop(lite, Person, 'updated'), lite).to_param(when) == '2024-05-01 12:00:00'
        token = uuid.UUID('12345678-1234-5678-1234-567812345678')
        assert create_setter(prop(lite, Person, 'token'), lite).to_param(token) == str(token)
        assert create_setter(prop(lite, Person, 'salary'), lite).to_param(decimal.Decimal('1.50')) == '1.50'

    def test_collections(self, pg, lite):
        assert create_setter(prop(pg, Person, 'tags'), pg).to_param(['a', 'b']) == ['a', 'b']
        assert json.loads(create_setter(prop(lite, Person, 'tags'), lite).to_param(['a', 'b'])) == ['a', 'b']

    def test_empty_collection_binds_null(self, pg):
        assert create_setter(prop(pg, Person, 'tags'), pg).to_param([]) is None

    def test_none_binds_null(self, pg):
        assert create_setter(prop(pg, Person, 'age'), pg).to_param(None) is None

    def test_numpy_value(self, pg):
        value = create_setter(prop(pg, Person, 'age'), pg).to_param(np.int64(7))
        assert value == 7
        assert type(value) is int

    def test_string_scrubbed(self, pg):
        assert create_setter(prop(pg, Person, 'name'), pg).to_param('a\x00') == 'a'

    def test_bad_value(self, pg):
        with pytest.raises(SetParameterError):
            create_setter(prop(pg, Person, 'age'), pg).to_param('not a number')

    def test_bind_numbered_slot(self, pg):
        params = [None, None]
        create_setter(prop(pg, Person, 'age'), pg).bind(params, 1, 3)
        assert params == [None, 3]

    def test_lookup_setter(self, pg):
        setter = create_setter(prop(pg, Person, 'department'), pg)
        assert isinstance(setter, LookupSetter)
        assert setter.to_param(Department(4)) == 4
        assert setter.to_param(None) is None

    def test_unsupported_type(self, pg):
        with pytest.raises(UnsupportedPropertyTypeError, match='payload'):
            create_setter(prop(pg, Unsupported, 'payload'), pg)

    def test_mapped_type_without_lookup(self, pg):
        pg.descriptor_for(Person)
        with pytest.raises(MissingLookupError, match='owner'):
            create_setter(prop(pg, Unsupported, 'owner'), pg)

    def test_missing_lookup_names_optional_reference(self, pg):
        with pytest.raises(MissingLookupError, match=r'Person \| None'):
            create_getter(prop(pg, Unsupported, 'owner'), pg)


class TestGetters:

    def test_typed_defaults_for_null(self, pg):
        row = {'age': None, 'active': None, 'tags': None, 'name': None}
        assert create_getter(prop(pg, Person, 'age'), pg).get(row) == 0
        assert create_getter(prop(pg, Person, 'active'), pg).get(row) is False
        assert create_getter(prop(pg, Person, 'tags'), pg).get(row) == []
        assert create_getter(prop(pg, Person, 'name'), pg).get(row) is None

    def test_optional_bool_keeps_null(self, pg):
        assert create_getter(prop(pg, Event, 'confirmed'), pg).get({'confirmed': None}) is None

    def test_collection_container(self, lite):
        getter = create_getter(prop(lite, Event, 'flags'), lite)
        assert getter.get({'flags': '[1, 2, 2]'}) == frozenset({1, 2})
        assert getter.get({'flags': None}) == frozenset()

    def test_sqlite_text_values(self, lite):
        row = {
            'start_time': '08:30:00',
            'updated': '2024-05-01 12:00:00',
            'token': '12345678-1234-5678-1234-567812345678',
            'salary': '1.50',
            'active': 1,
        }
        assert create_getter(prop(lite, Person, 'start_time'), lite).get(row) == datetime.time(8, 30)
        assert create_getter(prop(lite, Person, 'updated'), lite).get(row) == datetime.datetime(2024, 5, 1, 12)
        assert create_getter(prop(lite, Person, 'token'), lite).get(row) == uuid.UUID(row['token'])
        assert create_getter(prop(lite, Person, 'salary'), lite).get(row) == decimal.Decimal('1.50')
        assert create_getter(prop(lite, Person, 'active'), lite).get(row) is True

    def test_date_from_datetime(self, lite):
        getter = create_getter(prop(lite, Person, 'birthday'), lite)
        assert getter.get({'birthday': datetime.datetime(2000, 1, 2, 3, 4)}) == datetime.date(2000, 1, 2)

    def test_missing_column(self, pg):
        with pytest.raises(ResultGetterError):
            create_getter(prop(pg, Person, 'age'), pg).get({})

    def test_lookup_getter_resolves_cached_object(self, pg):
        dept = Department(9)
        pg.lookup_of(Department).add(dept)
        getter = create_getter(prop(pg, Person, 'department'), pg)
        assert isinstance(getter, LookupGetter)
        assert getter.column == 'department_id'
        assert getter.get({'department_id': 9}) is dept
        assert getter.get({'department_id': 10}) is None
        assert getter.get({'department_id': None}) is None

    def test_plain_getter(self, pg):
        getter = create_getter(prop(pg, Person, 'email'), pg)
        assert type(getter) is ResultGetter
        assert getter.column == 'email'


def test_column_name(pg):
    assert column_name(prop(pg, Person, 'start_time'), pg) == 'start_time'
    assert column_name(prop(pg, Person, 'department'), pg) == 'department_id'


class Renamed:

    @property
    @persistence(name='startDate')
    def start(self) -> datetime.date | None:
        return None


def test_column_name_from_camel_case(pg):
    assert column_name(prop(pg, Renamed, 'startDate'), pg) == 'start_date'
