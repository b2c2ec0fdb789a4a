# tests/integration/test_postgresql_seeding.py
"""
Integration tests for seeding a real PostgreSQL database.
These tests require a running PostgreSQL instance.
"""

from datetime import datetime

import pyarrow as pa
import pytest

from blink import UNBOUNDED, PostgreSQLConfig, Seeder, run
from blink.errors import DuplicateKeyError
from tests.fixtures.test_data import generate_posts, generate_users

SPECIAL_STRINGS = [
    'a\nb|c"d',
    'pipe | inside',
    'quote " inside',
    'carriage\rreturn',
    'back\\slash',
    '\\N',
    '',
    'comma, separated',
    'tab\tinside',
    'unicode ✓ ünïcödé',
]


@pytest.fixture
def table_suffix():
    """Unique suffix so concurrent runs never share tables"""
    return datetime.now().strftime('%Y%m%d_%H%M%S_%f')


@pytest.fixture
def connection(postgresql_test_config):
    conn = PostgreSQLConfig.from_dict(postgresql_test_config).connect()
    yield conn
    conn.rollback()
    conn.close()


@pytest.fixture
def schema(connection, table_suffix):
    """Create users/posts tables with a foreign key between them"""
    users = f'users_{table_suffix}'
    posts = f'posts_{table_suffix}'
    with connection.cursor() as cur:
        cur.execute(
            f"""
            CREATE TABLE {users} (
                id INTEGER PRIMARY KEY,
                name TEXT,
                email TEXT,
                settings JSONB
            )
            """
        )
        cur.execute(
            f"""
            CREATE TABLE {posts} (
                id INTEGER PRIMARY KEY,
                title TEXT,
                body TEXT,
                user_id INTEGER NOT NULL REFERENCES {users}(id)
            )
            """
        )
    connection.commit()

    yield {'users': users, 'posts': posts}

    connection.rollback()
    with connection.cursor() as cur:
        cur.execute(f'DROP TABLE IF EXISTS {posts} CASCADE')
        cur.execute(f'DROP TABLE IF EXISTS {users} CASCADE')
    connection.commit()


def count(connection, table):
    with connection.cursor() as cur:
        cur.execute(f'SELECT COUNT(*) FROM {table}')
        total = cur.fetchone()[0]
    connection.rollback()
    return total


def fetch(connection, query):
    with connection.cursor() as cur:
        cur.execute(query)
        rows = cur.fetchall()
    connection.rollback()
    return rows


@pytest.mark.integration
@pytest.mark.postgresql
class TestPostgreSQLSeeding:
    """Seeding against PostgreSQL with the default COPY adapter"""

    def test_users_and_posts(self, connection, schema):
        seeder = (
            Seeder.new()
            .with_context('user_ids', lambda s, k: list(range(1, 51)))
            .with_table(schema['users'], lambda s, n: generate_users(len(s.context['user_ids'])))
            .with_table(schema['posts'], lambda s, n: generate_posts(s.context['user_ids'], posts_per_user=3))
        )

        result = run(seeder, connection, batch_size=20)

        assert result.success, result.error
        assert result.rows_loaded == 200
        assert count(connection, schema['users']) == 50
        assert count(connection, schema['posts']) == 150

    def test_context_feeds_table_but_is_not_loaded(self, connection, schema):
        seeder = (
            Seeder.new()
            .with_context('ids', lambda s, k: [1, 2, 3])
            .with_table(schema['users'], lambda s, n: [{'id': i, 'name': f'user_{i}'} for i in s.context['ids']])
        )

        result = run(seeder, connection)

        assert result.success, result.error
        assert fetch(connection, f"SELECT id FROM {schema['users']} ORDER BY id") == [(1,), (2,), (3,)]
        assert fetch(connection, "SELECT 1 FROM information_schema.tables WHERE table_name = 'ids'") == []

    def test_special_strings_round_trip(self, connection, schema):
        records = [{'id': i, 'name': value, 'email': None} for i, value in enumerate(SPECIAL_STRINGS, start=1)]
        seeder = Seeder.new().with_table(schema['users'], lambda s, n: records)

        result = run(seeder, connection)

        assert result.success, result.error
        rows = fetch(connection, f"SELECT id, name, email FROM {schema['users']} ORDER BY id")
        assert [row[1] for row in rows] == SPECIAL_STRINGS
        assert all(row[2] is None for row in rows)

    def test_literal_null_token_is_not_null(self, connection, schema):
        seeder = Seeder.new().with_table(
            schema['users'], lambda s, n: [{'id': 1, 'name': '\\N', 'email': None}, {'id': 2, 'name': None}]
        )

        result = run(seeder, connection)

        assert result.success, result.error
        rows = fetch(connection, f"SELECT name IS NULL, name FROM {schema['users']} ORDER BY id")
        assert rows == [(False, '\\N'), (True, None)]

    def test_json_settings(self, connection, schema):
        settings = {'theme': 'dark', 'quote': 'say "hi"', 'nested': {'pipe': 'a|b'}, 'list': [1, None]}
        seeder = Seeder.new().with_table(schema['users'], lambda s, n: [{'id': 1, 'settings': settings}])

        result = run(seeder, connection)

        assert result.success, result.error
        assert fetch(connection, f"SELECT settings FROM {schema['users']}") == [(settings,)]

    @pytest.mark.parametrize('batch_size', [1, 7, 10_000, UNBOUNDED])
    def test_batch_sizes_load_everything(self, connection, schema, batch_size):
        seeder = Seeder.new().with_table(schema['users'], lambda s, n: generate_users(25))

        result = run(seeder, connection, batch_size=batch_size)

        assert result.success, result.error
        assert count(connection, schema['users']) == 25

    def test_text_format(self, connection, schema):
        records = [{'id': i, 'name': value} for i, value in enumerate(SPECIAL_STRINGS, start=1)]
        seeder = Seeder.new().with_table(schema['users'], lambda s, n: records)

        result = run(seeder, connection, format='text')

        assert result.success, result.error
        rows = fetch(connection, f"SELECT name FROM {schema['users']} ORDER BY id")
        assert [row[0] for row in rows] == SPECIAL_STRINGS

    def test_arrow_table_source(self, connection, schema):
        table = pa.table({'id': [1, 2], 'name': ['x', None]})
        seeder = Seeder.new().with_table(schema['users'], lambda s, n: table)

        result = run(seeder, connection)

        assert result.success, result.error
        assert fetch(connection, f"SELECT id, name FROM {schema['users']} ORDER BY id") == [(1, 'x'), (2, None)]

    def test_empty_table(self, connection, schema):
        seeder = Seeder.new().with_table(schema['users'], lambda s, n: [])

        result = run(seeder, connection)

        assert result.success
        assert count(connection, schema['users']) == 0

    def test_insert_adapter(self, connection, schema):
        seeder = (
            Seeder.new()
            .with_table(schema['users'], lambda s, n: generate_users(10))
            .with_table(schema['posts'], lambda s, n: generate_posts(list(range(1, 11)), posts_per_user=1))
        )

        result = run(seeder, connection, adapter='postgresql_insert', batch_size=4)

        assert result.success, result.error
        assert count(connection, schema['users']) == 10
        assert count(connection, schema['posts']) == 10

    def test_dsn_destination(self, postgresql_test_config, connection, schema):
        config = PostgreSQLConfig.from_dict(postgresql_test_config)
        seeder = Seeder.new().with_table(schema['users'], lambda s, n: generate_users(3))

        result = run(seeder, config)

        assert result.success, result.error
        assert count(connection, schema['users']) == 3


@pytest.mark.integration
@pytest.mark.postgresql
class TestPostgreSQLAllOrNothing:
    """Failures roll back every table of the run"""

    def test_foreign_key_violation_rolls_back_users(self, connection, schema):
        seeder = (
            Seeder.new()
            .with_table(schema['users'], lambda s, n: generate_users(5))
            .with_table(schema['posts'], lambda s, n: [{'id': 1, 'title': 't', 'body': 'b', 'user_id': 999}])
        )

        result = run(seeder, connection)

        assert not result.success
        assert result.failed_table == schema['posts']
        assert 'foreign key' in result.error
        assert count(connection, schema['users']) == 0
        assert count(connection, schema['posts']) == 0

    def test_reverse_order_fails(self, connection, schema):
        seeder = (
            Seeder.new()
            .with_table(schema['posts'], lambda s, n: generate_posts([1]))
            .with_table(schema['users'], lambda s, n: generate_users(1))
        )

        result = run(seeder, connection)

        assert not result.success
        assert result.failed_table == schema['posts']

    def test_unique_violation_in_later_chunk(self, connection, schema):
        records = [{'id': i % 8, 'name': f'user_{i}'} for i in range(10)]
        seeder = Seeder.new().with_table(schema['users'], lambda s, n: records)

        result = run(seeder, connection, batch_size=3)

        assert not result.success
        assert count(connection, schema['users']) == 0

    def test_missing_column_policy_raise(self, connection, schema):
        seeder = Seeder.new().with_table(schema['users'], lambda s, n: [{'id': 1, 'name': 'a'}, {'id': 2}])

        result = run(seeder, connection, on_missing_column='raise')

        assert not result.success
        assert "missing column 'name'" in result.error
        assert count(connection, schema['users']) == 0

    def test_unknown_table(self, connection, schema):
        seeder = Seeder.new().with_table('no_such_table', lambda s, n: [{'id': 1}])

        result = run(seeder, connection)

        assert not result.success
        assert 'does not exist' in result.error

    def test_duplicate_declaration_never_reaches_database(self, connection, schema):
        seeder = Seeder.new().with_table(schema['users'], lambda s, n: generate_users(1))

        with pytest.raises(DuplicateKeyError):
            seeder.with_table(schema['users'], lambda s, n: generate_users(1))

        assert count(connection, schema['users']) == 0

    def test_connection_usable_after_failure(self, connection, schema):
        failing = Seeder.new().with_table(schema['posts'], lambda s, n: [{'id': 1, 'title': 't', 'user_id': 42}])
        assert not run(failing, connection).success

        working = Seeder.new().with_table(schema['users'], lambda s, n: generate_users(2))
        assert run(working, connection).success
        assert count(connection, schema['users']) == 2
