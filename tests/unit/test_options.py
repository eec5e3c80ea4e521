import pytest
from rowmap.options import DatabaseOptions


def test_init_defaults():
    """Test default initialization"""
    options = DatabaseOptions(
        hostname='testhost',
        username='testuser',
        password='testpass',
        database='testdb',
        port=1234,
        timeout=30
    )

    assert options.drivername == 'postgresql'
    assert options.appname is not None
    assert options.ssl is False


def test_sqlite_needs_only_database():
    options = DatabaseOptions(drivername='sqlite', database=':memory:')
    assert options.database == ':memory:'


def test_validation():
    """Test validation rules"""
    with pytest.raises(ValueError):
        DatabaseOptions(
            drivername='invalid',
            hostname='testhost',
            username='testuser',
            password='testpass',
            database='testdb',
            port=1234,
            timeout=30
        )

    with pytest.raises(ValueError):
        DatabaseOptions(
            drivername='postgresql',
            hostname=None,
            username='testuser',
            password='testpass',
            database='testdb',
            port=1234,
        )

    with pytest.raises(ValueError):
        DatabaseOptions(drivername='sqlite')


def test_explicit_appname():
    options = DatabaseOptions(drivername='sqlite', database='x.db', appname='reporting')
    assert options.appname == 'reporting'
