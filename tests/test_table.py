# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Tests for Table: initialization, column mapping, CRUD and hooks."""

from __future__ import annotations

from datetime import time
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from tabledb.chain import Behavior
from tabledb.row import Row
from tabledb.rowset import Rowset
from tabledb.sql.adapters import QueryResult
from tabledb.sql.schema import Column
from tabledb.table import SelectMode, Table, TableState

USERS_ROWS = [
    {"id": 1, "name": "A", "email": "a@x"},
    {"id": 2, "name": "B", "email": "b@x"},
]

ITEMS_COLUMNS = {
    "label": Column("label", "string"),
    "qty": Column("qty", "int"),
    "price": Column("price", "float"),
}

ACCOUNTS_COLUMNS = {
    "account_id": Column("account_id", "int", unique=True, autoinc=True),
    "owner": Column("owner", "string"),
}


def add_tables(adapter, **tables):
    """Extend the fake adapter's schema for this test only."""
    adapter.tables = {**type(adapter).tables, **tables}


class Recorder(Behavior):
    """Behavior that records every event it sees."""

    def __init__(self):
        self.events: list[str] = []

    async def before_select(self, context):
        self.events.append("before.select")
        return context

    async def after_select(self, context):
        self.events.append("after.select")
        return context

    def before_insert(self, context):
        self.events.append("before.insert")
        return context

    async def after_insert(self, context):
        self.events.append(f"after.insert:{context.result.insert_id}")
        return context

    async def before_update(self, context):
        self.events.append("before.update")

    async def after_delete(self, context):
        self.events.append("after.delete")
        return context


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------


class TestTableInitialize:
    """Tests for Table.initialize() and name/identity resolution."""

    async def test_ready_after_initialize(self, users):
        """An initialized table is READY with its name and adapter kind."""
        assert isinstance(users, Table)
        assert users.state is TableState.READY
        assert users.get_name() == "users"
        assert users.db == "default"
        assert users.adapter_kind == "fake"

    async def test_default_name_is_component_and_plural(self, services, fake_adapter):
        """Without a name, the table is <component>_<plural of identifier name>."""
        add_tables(fake_adapter, app_categories=ACCOUNTS_COLUMNS)
        table = await services.get_service("com:app.database.table.category")
        assert table.get_name() == "app_categories"

    async def test_prefix_is_prepended(self, services, fake_adapter):
        """The database prefix is prepended to the resolved name."""
        add_tables(fake_adapter, t_users=ACCOUNTS_COLUMNS)
        services.config.database("default").prefix = "t_"
        table = await services.get_service("com:app.database.table.prefixed", {"name": "users"})
        assert table.get_name() == "t_users"

    async def test_component_config_fallback(self, services, fake_adapter):
        """Settings missing from config come from the '<type>.<name>' component config."""
        services.config.components["com.member"] = {
            "name": "users",
            "column_map": {"full_name": "name"},
        }
        table = await services.get_service("com:app.database.table.member")
        assert table.get_name() == "users"
        assert "full_name" in await table.get_columns()

    async def test_missing_table_raises(self, services):
        """A table absent from the database fails initialization."""
        with pytest.raises(ValueError, match="does not exist"):
            await services.get_service("com:app.database.table.ghost")

    async def test_unknown_database_raises(self, services):
        """A db name with no configuration fails initialization."""
        with pytest.raises(ValueError, match="not configured"):
            await services.get_service("com:app.database.table.other", {"db": "archive"})

    async def test_is_connected(self, users):
        """After initialization the adapter is connected."""
        assert users.is_connected() is True

    async def test_table_is_singleton(self, services, users):
        """The same identifier resolves to the same Table instance."""
        again = await services.get_service("com:app.database.table.user")
        assert again is users


# ---------------------------------------------------------------------------
# Identity column and column map
# ---------------------------------------------------------------------------


class TestIdentityColumn:
    """Tests for get_identity_column() and the implicit id mapping."""

    async def test_identity_derived_from_autoinc_unique(self, users):
        """The single autoinc unique column is the identity column."""
        assert await users.get_identity_column() == "id"

    async def test_identity_cached(self, users):
        """The identity column is computed once per instance."""
        with patch.object(users, "get_unique_columns", AsyncMock()) as spy:
            assert await users.get_identity_column() == "id"
            assert await users.get_identity_column() == "id"
        spy.assert_not_called()

    async def test_no_identity_cached_as_none(self, services, fake_adapter):
        """A table without autoinc unique column caches None."""
        add_tables(fake_adapter, items=ITEMS_COLUMNS)
        items = await services.get_service("com:app.database.table.item", {"name": "items"})
        with patch.object(items, "get_unique_columns", AsyncMock()) as spy:
            assert await items.get_identity_column() is None
        spy.assert_not_called()

    async def test_explicit_identity_column(self, services, fake_adapter):
        """identity_column config wins over schema derivation."""
        add_tables(fake_adapter, items=ITEMS_COLUMNS)
        items = await services.get_service(
            "com:app.database.table.item", {"name": "items", "identity_column": "label"}
        )
        assert await items.get_identity_column() == "label"
        assert items.map_columns({"id": 1}) == {"label": 1}

    async def test_id_mapped_to_identity(self, services, fake_adapter):
        """Without an explicit "id" mapping, "id" maps to the identity column."""
        add_tables(fake_adapter, accounts=ACCOUNTS_COLUMNS)
        accounts = await services.get_service("com:app.database.table.account", {"name": "accounts"})
        assert accounts.map_columns({"id": 5}) == {"account_id": 5}
        columns = await accounts.get_columns()
        assert list(columns) == ["id", "owner"]
        assert columns["id"].name == "account_id"


class TestMapColumns:
    """Tests for map_columns()."""

    async def test_forward_and_reverse(self, services):
        """Mapped keys are renamed, unmapped keys pass through."""
        table = await services.get_service(
            "com:app.database.table.member", {"name": "users", "column_map": {"full_name": "name"}}
        )
        external = {"id": 1, "full_name": "Ada", "extra": True}
        physical = table.map_columns(external)
        assert physical == {"id": 1, "name": "Ada", "extra": True}
        assert table.map_columns(physical, reverse=True) == external

    async def test_returns_new_dict(self, users):
        """The input mapping is not modified."""
        data = {"id": 1}
        assert users.map_columns(data) is not data

    async def test_get_unique_columns(self, users):
        """Only unique columns are returned, keyed by external name."""
        assert list(await users.get_unique_columns()) == ["id", "email"]


# ---------------------------------------------------------------------------
# select
# ---------------------------------------------------------------------------


class TestSelect:
    """Tests for Table.select()."""

    async def test_rowset_preserves_order_and_fields(self, users, fake_adapter):
        """Mode 2 returns one Row per result row, in order, with the same fields."""
        fake_adapter.result = QueryResult(rows=[dict(r) for r in USERS_ROWS])
        rowset = await users.select(None, SelectMode.ROWSET)

        assert isinstance(rowset, Rowset)
        assert len(rowset) == 2
        assert rowset.get_data() == USERS_ROWS
        assert all(row.is_new is False for row in rowset)
        assert fake_adapter.statements[0][0] == 'SELECT * FROM "users"'

    async def test_mode_accepts_plain_int(self, users, fake_adapter):
        """Mode 1 as int returns the first row as a Row."""
        fake_adapter.result = QueryResult(rows=[dict(r) for r in USERS_ROWS])
        row = await users.select(None, 1)

        assert isinstance(row, Row)
        assert row.get_data() == USERS_ROWS[0]
        assert row.is_new is False
        assert row.table is users

    async def test_single_row_miss_returns_new_row(self, users, fake_adapter):
        """Mode 1 with no result returns a new default Row."""
        fake_adapter.result = QueryResult(rows=[])
        row = await users.select(None, SelectMode.ROW)
        assert row.is_new is True
        assert row.get_data() == {"id": None, "name": None, "email": None}

    async def test_fields_are_external_names(self, services, fake_adapter):
        """Physical names in results are reverse-mapped."""
        table = await services.get_service(
            "com:app.database.table.member", {"name": "users", "column_map": {"full_name": "name"}}
        )
        fake_adapter.result = QueryResult(rows=[{"id": 1, "name": "A", "email": "a@x"}])
        rowset = await table.select()
        assert rowset.get_data() == [{"id": 1, "full_name": "A", "email": "a@x"}]

    async def test_explicit_query(self, users, fake_adapter):
        """A caller-built query is executed as is."""
        query = (await users.get_query()).select("id").table("users").where("id", "=", 2)
        await users.select(query, SelectMode.ROW)
        assert fake_adapter.statements == [('SELECT "id" FROM "users" WHERE "id" = :w_0', {"w_0": 2})]

    async def test_invalid_mode_raises(self, users):
        """Only SelectMode values are accepted."""
        with pytest.raises(ValueError):
            await users.select(None, 3)

    async def test_hooks_can_rewrite_query_and_data(self, services, fake_adapter):
        """before.select sees the query, after.select sees mapped data."""

        class Scoped(Behavior):
            async def before_select(self, context):
                context.query.where("email", "IS NOT NULL")
                return context

            async def after_select(self, context):
                context.data = [d for d in context.data if d["id"] != 1]
                return context

        table = await services.get_service(
            "com:app.database.table.scoped", {"name": "users", "behaviors": [Scoped]}
        )
        fake_adapter.result = QueryResult(rows=[dict(r) for r in USERS_ROWS])
        rowset = await table.select()

        assert fake_adapter.statements[0][0] == 'SELECT * FROM "users" WHERE "email" IS NOT NULL'
        assert rowset.get_data() == [USERS_ROWS[1]]


# ---------------------------------------------------------------------------
# insert / update / delete
# ---------------------------------------------------------------------------


class TestInsert:
    """Tests for Table.insert()."""

    async def test_insert_assigns_id_and_keeps_is_new(self, users, fake_adapter):
        """The backend insert id lands on row["id"]; is_new is untouched."""
        fake_adapter.result = QueryResult(insert_id=3)
        row = await users.get_row()
        row.set_data({"name": "C", "email": "c@x"})

        context = await users.insert(row)

        assert row["id"] == 3
        assert row.is_new is True
        assert context.data is row
        assert context.table == "users"
        assert fake_adapter.statements == [
            ('INSERT INTO "users" ("name", "email") VALUES (:s_0, :s_1)', {"s_0": "C", "s_1": "c@x"})
        ]

    async def test_autoinc_column_excluded(self, users, fake_adapter):
        """The autoinc column is never part of the INSERT even when set."""
        row = await users.get_row()
        row.set_data({"id": 99, "name": "C", "email": "c@x"})
        await users.insert(row)
        assert '"id"' not in fake_adapter.statements[0][0]

    async def test_strict_columns_keep_falsy_values(self, users, fake_adapter):
        """Strict adapters skip None but keep "" and 0."""
        row = await users.get_row()
        row.set_data({"name": "", "email": None})
        await users.insert(row)
        assert fake_adapter.statements == [('INSERT INTO "users" ("name") VALUES (:s_0)', {"s_0": ""})]

    async def test_non_strict_includes_all_columns_by_field_name(self, services, fake_adapter):
        """Non-strict adapters set every non-autoinc column keyed by field name."""
        table = await services.get_service(
            "com:app.database.table.member", {"name": "users", "column_map": {"full_name": "name"}}
        )
        fake_adapter.strict_columns = False
        row = await table.get_row()
        row.set_data({"full_name": "Ada"})
        await table.insert(row)
        assert fake_adapter.statements[-1] == (
            'INSERT INTO "users" ("full_name", "email") VALUES (:s_0, :s_1)',
            {"s_0": "Ada", "s_1": None},
        )

    async def test_decimal_price_kept(self, services, fake_adapter):
        """Decimal values pass the float filter unchanged."""
        add_tables(fake_adapter, items=ITEMS_COLUMNS)
        items = await services.get_service("com:app.database.table.item", {"name": "items"})
        row = await items.get_row()
        price = Decimal("12345678901234567.89")
        row.set_data({"label": "gold", "qty": 1, "price": price})

        await items.insert(row)

        assert row["price"] is price
        assert fake_adapter.statements[-1][1]["s_2"] is price

    async def test_invalid_int_sanitized_to_fallback(self, services, fake_adapter):
        """A value failing int validation is written as the filter fallback."""
        add_tables(fake_adapter, items=ITEMS_COLUMNS)
        items = await services.get_service("com:app.database.table.item", {"name": "items"})
        row = await items.get_row()
        row.set_data({"label": 12, "qty": "abc", "price": "1.5"})

        await items.insert(row)

        assert row.get_data() == {"label": "12", "qty": 0, "price": 1.5, "id": None}
        sql, params = fake_adapter.statements[-1]
        assert params == {"s_0": "12", "s_1": 0, "s_2": 1.5}

    async def test_hooks_run_in_order(self, services, fake_adapter):
        """before.insert runs before execution, after.insert sees the result."""
        recorder = Recorder()
        table = await services.get_service(
            "com:app.database.table.audited", {"name": "users", "behaviors": [recorder]}
        )
        fake_adapter.result = QueryResult(insert_id=7)
        row = await table.get_row()
        row.set_data({"name": "X"})
        await table.insert(row)
        assert recorder.events == ["before.insert", "after.insert:7"]

    async def test_failing_hook_aborts(self, services, fake_adapter):
        """An exception in a before hook propagates and nothing is executed."""

        class Veto(Behavior):
            def before_insert(self, context):
                raise PermissionError("read only")

        table = await services.get_service(
            "com:app.database.table.readonly", {"name": "users", "behaviors": [Veto()]}
        )
        row = await table.get_row()
        with pytest.raises(PermissionError, match="read only"):
            await table.insert(row)
        assert fake_adapter.statements == []

    async def test_backend_error_propagates(self, users, fake_adapter):
        """Execution failures reach the caller unchanged."""
        fake_adapter._run_write = AsyncMock(side_effect=RuntimeError("disk full"))
        row = await users.get_row()
        row.set_data({"name": "C"})
        with pytest.raises(RuntimeError, match="disk full"):
            await users.insert(row)


class TestUpdateDelete:
    """Tests for Table.update() and Table.delete()."""

    async def test_update_where_every_unique_column(self, users, fake_adapter):
        """UPDATE sets non-autoinc columns and matches all unique columns."""
        row = await users.get_row()
        row.set_data({"id": 7, "name": "N", "email": "n@x"})
        await users.update(row)
        assert fake_adapter.statements == [
            (
                'UPDATE "users" SET "name" = :s_0, "email" = :s_1 WHERE "id" = :w_0 AND "email" = :w_1',
                {"s_0": "N", "s_1": "n@x", "w_0": 7, "w_1": "n@x"},
            )
        ]

    async def test_update_uses_physical_names(self, services, fake_adapter):
        """SET and WHERE use physical names when the field is mapped."""
        add_tables(fake_adapter, accounts=ACCOUNTS_COLUMNS)
        accounts = await services.get_service("com:app.database.table.account", {"name": "accounts"})
        row = await accounts.get_row()
        row.set_data({"id": 4, "owner": "ada"})
        await accounts.update(row)
        assert fake_adapter.statements[-1] == (
            'UPDATE "accounts" SET "owner" = :s_0 WHERE "account_id" = :w_0',
            {"s_0": "ada", "w_0": 4},
        )

    async def test_delete_where_unique_only(self, users, fake_adapter):
        """DELETE has no SET clause and matches unique columns only."""
        recorder = Recorder()
        users.get_command_chain().enqueue(recorder)
        row = await users.get_row()
        row.set_data({"id": 7, "name": "N", "email": "n@x"})
        context = await users.delete(row)
        assert fake_adapter.statements == [
            ('DELETE FROM "users" WHERE "id" = :w_0 AND "email" = :w_1', {"w_0": 7, "w_1": "n@x"})
        ]
        assert context.query.kind == "delete"
        assert recorder.events == ["after.delete"]

    async def test_without_unique_columns_raises(self, services, fake_adapter):
        """Update and delete need at least one unique column."""
        add_tables(fake_adapter, items=ITEMS_COLUMNS)
        items = await services.get_service("com:app.database.table.item", {"name": "items"})
        row = await items.get_row()
        with pytest.raises(ValueError, match="no unique columns"):
            await items.update(row)
        with pytest.raises(ValueError, match="no unique columns"):
            await items.delete(row)
        assert fake_adapter.statements == []

    async def test_update_writes_none_values(self, services, fake_adapter):
        """Strict UPDATE sets every field the row carries, None included."""
        add_tables(fake_adapter, accounts=ACCOUNTS_COLUMNS)
        accounts = await services.get_service("com:app.database.table.account", {"name": "accounts"})
        row = await accounts.get_row()
        row.set_data({"id": 4, "owner": None})
        await accounts.update(row)
        assert fake_adapter.statements[-1] == (
            'UPDATE "accounts" SET "owner" = :s_0 WHERE "account_id" = :w_0',
            {"s_0": None, "w_0": 4},
        )


# ---------------------------------------------------------------------------
# SQLite round trip
# ---------------------------------------------------------------------------


class TestSqliteTable:
    """Table against a real SQLite database."""

    async def test_crud_cycle(self, sqlite_services):
        """Insert, select, update and delete through the same table."""
        users = await sqlite_services.get_service("com:app.database.table.user", {"name": "users"})

        row = await users.get_row()
        assert row.get_data() == {"id": None, "name": "anonymous", "email": None, "score": 0}
        row.set_data({"name": "Ada", "email": "ada@example.com", "score": "42"})
        await row.save()
        assert row["id"] == 1
        assert row.is_new is False

        loaded = await users.select(
            (await users.get_query()).select().table("users").where("id", "=", 1), SelectMode.ROW
        )
        assert loaded.get_data() == {"id": 1, "name": "Ada", "email": "ada@example.com", "score": 42}

        loaded["name"] = "Ada L."
        await loaded.save()
        rowset = await users.select()
        assert [r["name"] for r in rowset] == ["Ada L."]

        await loaded.delete()
        assert len(await users.select()) == 0

    async def test_update_clears_column_with_none(self, sqlite_services):
        """An explicit None on update writes NULL."""
        adapter = sqlite_services.adapters.lookup("default")
        await adapter.execute("CREATE TABLE notes (id INTEGER PRIMARY KEY, body TEXT, tag TEXT)")
        notes = await sqlite_services.get_service("com:app.database.table.note", {"name": "notes"})
        row = await notes.get_row()
        row.set_data({"body": "x", "tag": "t"})
        await row.save()

        loaded = await notes.select(None, SelectMode.ROW)
        loaded["tag"] = None
        await loaded.save()

        stored = await adapter.execute("SELECT body, tag FROM notes")
        assert stored.rows == [{"body": "x", "tag": None}]

    async def test_time_column(self, sqlite_services):
        """TIME columns keep time-of-day text and time values."""
        adapter = sqlite_services.adapters.lookup("default")
        await adapter.execute("CREATE TABLE shifts (id INTEGER PRIMARY KEY, starts TIME)")
        shifts = await sqlite_services.get_service("com:app.database.table.shift", {"name": "shifts"})
        assert (await shifts.get_columns())["starts"].type == "timeofday"

        first = await shifts.get_row()
        first.set_data({"starts": "10:30:00"})
        await first.save()
        assert first.get_data() == {"id": 1, "starts": "10:30:00"}

        second = await shifts.get_row()
        second.set_data({"starts": time(18, 0)})
        await second.save()

        stored = await adapter.execute("SELECT starts FROM shifts ORDER BY id")
        assert stored.rows == [{"starts": "10:30:00"}, {"starts": "18:00:00"}]

    async def test_insert_order_and_ids(self, sqlite_services):
        """Successive inserts get increasing ids and select keeps insertion order."""
        users = await sqlite_services.get_service("com:app.database.table.user", {"name": "users"})
        for name in ("A", "B", "C"):
            row = await users.get_row()
            row.set_data({"name": name, "email": f"{name.lower()}@x"})
            await row.save()

        rowset = await users.select()
        assert [(r["id"], r["name"]) for r in rowset] == [(1, "A"), (2, "B"), (3, "C")]
