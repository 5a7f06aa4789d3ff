"""
DB Tests — LigatureDatabase with in-memory SQLite.

Tests connection, transactions, queries, error handling and the
module-level accessors.
"""

import pytest
import pytest_asyncio

from ligature.db import (
    DatabaseConnectionFault,
    LigatureDatabase,
    QueryFault,
    configure_database,
    get_database,
    set_database,
)


@pytest_asyncio.fixture
async def database():
    database = LigatureDatabase("sqlite:///:memory:")
    await database.connect()
    await database.execute('CREATE TABLE "threads" ("ID" INTEGER PRIMARY KEY AUTOINCREMENT, "Title" TEXT)')
    yield database
    await database.disconnect()


class TestDatabaseConnection:
    """Test database connection management."""

    @pytest.mark.asyncio
    async def test_connect_disconnect(self):
        db = LigatureDatabase("sqlite:///:memory:")
        assert db.is_connected is False

        await db.connect()
        assert db.is_connected is True
        assert db.dialect == "sqlite"

        await db.disconnect()
        assert db.is_connected is False

    @pytest.mark.asyncio
    async def test_double_connect_and_disconnect_safe(self):
        db = LigatureDatabase("sqlite:///:memory:")
        await db.connect()
        await db.connect()
        await db.disconnect()
        await db.disconnect()

    def test_unsupported_scheme(self):
        with pytest.raises(DatabaseConnectionFault):
            LigatureDatabase("mysql://localhost/forum")

    @pytest.mark.asyncio
    async def test_execute_connects_lazily(self):
        db = LigatureDatabase("sqlite:///:memory:")
        assert await db.fetch_val("SELECT 1") == 1
        assert db.is_connected
        await db.disconnect()


class TestQueries:

    @pytest.mark.asyncio
    async def test_insert_reports_lastrowid(self, database):
        cursor = await database.execute('INSERT INTO "threads" ("Title") VALUES (?)', ["a"])
        assert cursor.lastrowid == 1

    @pytest.mark.asyncio
    async def test_fetch_rows_as_dicts(self, database):
        await database.execute('INSERT INTO "threads" ("Title") VALUES (?)', ["a"])
        await database.execute('INSERT INTO "threads" ("Title") VALUES (?)', ["b"])

        rows = await database.fetch_all('SELECT * FROM "threads" ORDER BY "ID"')
        assert rows == [{"ID": 1, "Title": "a"}, {"ID": 2, "Title": "b"}]
        assert await database.fetch_one('SELECT * FROM "threads" WHERE "ID" = ?', [2]) == {"ID": 2, "Title": "b"}
        assert await database.fetch_one('SELECT * FROM "threads" WHERE "ID" = ?', [9]) is None

    @pytest.mark.asyncio
    async def test_fetch_all_empty(self, database):
        assert await database.fetch_all('SELECT * FROM "threads"') == []

    @pytest.mark.asyncio
    async def test_bad_sql_raises_query_fault(self, database):
        with pytest.raises(QueryFault) as exc_info:
            await database.execute("SELEC nonsense")
        assert "sql" in exc_info.value.metadata

    @pytest.mark.asyncio
    async def test_introspection(self, database):
        assert await database.table_exists("threads")
        assert not await database.table_exists("posts")
        assert await database.get_tables() == ["threads"]
        columns = await database.get_columns("threads")
        assert [c.name for c in columns] == ["ID", "Title"]
        assert columns[0].primary_key


class TestTransactions:

    @pytest.mark.asyncio
    async def test_commit(self, database):
        async with database.transaction():
            assert database.in_transaction
            await database.execute('INSERT INTO "threads" ("Title") VALUES (?)', ["kept"])
        assert not database.in_transaction
        assert await database.fetch_val('SELECT COUNT(*) FROM "threads"') == 1

    @pytest.mark.asyncio
    async def test_rollback_on_error(self, database):
        with pytest.raises(RuntimeError):
            async with database.transaction():
                await database.execute('INSERT INTO "threads" ("Title") VALUES (?)', ["lost"])
                raise RuntimeError("abort")
        assert await database.fetch_val('SELECT COUNT(*) FROM "threads"') == 0

    @pytest.mark.asyncio
    async def test_invalid_savepoint_name(self, database):
        with pytest.raises(QueryFault):
            await database.savepoint("bad name; DROP TABLE threads")


class TestDefaultDatabase:

    def test_unconfigured_raises(self):
        set_database(None)
        with pytest.raises(DatabaseConnectionFault):
            get_database()

    def test_configure_sets_default(self):
        try:
            db = configure_database("sqlite:///:memory:")
            assert get_database() is db
            assert get_database("default") is db
        finally:
            set_database(None)

    def test_alias(self):
        try:
            db = configure_database("sqlite:///:memory:", alias="archive")
            assert get_database("archive") is db
            with pytest.raises(DatabaseConnectionFault):
                get_database("missing")
        finally:
            set_database(None, alias="archive")
