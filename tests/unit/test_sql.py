import pytest
from rowmap.sql import TokenType, has_placeholders, make_placeholders
from rowmap.sql import quote_identifier, sql_name, standardize_placeholders
from rowmap.sql import tokenize_sql


class TestSqlName:

    @pytest.mark.parametrize(('parts', 'expected'), [
        (('name',), 'name'),
        (('startTime',), 'start_time'),
        (('start_time',), 'start_time'),
        (('Person',), 'person'),
        (('BankAccount',), 'bank_account'),
        (('HTTPServer',), 'http_server'),
        (('Person', 'id'), 'person_id'),
        (('owner', 'id'), 'owner_id'),
        (('Line2Item',), 'line2_item'),
        (('BankAccount', 'accountNumber'), 'bank_account_account_number'),
    ])
    def test_sql_name(self, parts, expected):
        assert sql_name(*parts) == expected


class TestPlaceholders:

    def test_postgres(self):
        assert standardize_placeholders('select * from t where a = ? and b = ?', 'postgresql') == \
            'select * from t where a = %s and b = %s'

    def test_sqlite(self):
        assert standardize_placeholders('select * from t where a = %s', 'sqlite') == \
            'select * from t where a = ?'

    def test_literals_untouched(self):
        sql = "select '?' as q, a from t where b = ?"
        assert standardize_placeholders(sql, 'postgresql') == "select '?' as q, a from t where b = %s"

    def test_quoted_identifier_untouched(self):
        sql = 'select "what?" from t where a = ?'
        assert standardize_placeholders(sql, 'postgresql') == 'select "what?" from t where a = %s'

    def test_no_placeholders(self):
        assert standardize_placeholders('select 1', 'postgresql') == 'select 1'

    def test_unknown_dialect(self):
        with pytest.raises(ValueError):
            standardize_placeholders('select ?', 'oracle')

    def test_has_placeholders(self):
        assert has_placeholders('a = ?')
        assert has_placeholders('a = %s')
        assert not has_placeholders('a = 1')
        assert not has_placeholders(None)

    def test_make_placeholders(self):
        assert make_placeholders(3) == '?, ?, ?'
        assert make_placeholders(0) == ''

    def test_tokenize(self):
        tokens = tokenize_sql("a = ? and b = 'x'")
        assert [t.type for t in tokens] == [
            TokenType.SQL_TEXT, TokenType.POSITIONAL_PH,
            TokenType.SQL_TEXT, TokenType.STRING_LITERAL,
        ]


class TestQuoteIdentifier:

    @pytest.mark.parametrize('dialect', ['postgresql', 'sqlite'])
    def test_quote(self, dialect):
        assert quote_identifier('person', dialect) == '"person"'
        assert quote_identifier('we"ird', dialect) == '"we""ird"'

    def test_unknown_dialect(self):
        with pytest.raises(ValueError):
            quote_identifier('person', 'mssql')
