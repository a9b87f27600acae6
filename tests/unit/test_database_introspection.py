"""
Tests for netsales.database.introspection module.
"""

import pytest
from unittest.mock import AsyncMock

from netsales.database.introspection import ColumnInfo, TableInfo, SchemaIntrospector
from netsales.exceptions import DatabaseConnectionError, DatabaseError, SchemaError


class TestColumnInfo:
    """Test ColumnInfo dataclass."""

    def test_column_info_basic(self):
        col = ColumnInfo(name="label", data_type="text", is_nullable=True)

        assert col.name == "label"
        assert col.default_value is None
        assert str(col) == "label text"

    def test_column_info_str_with_details(self):
        col = ColumnInfo(
            name="status",
            data_type="character varying",
            is_nullable=False,
            default_value="'Active'::character varying",
            max_length=50,
        )

        assert str(col) == "status character varying(50) NOT NULL DEFAULT 'Active'::character varying"


class TestTableInfo:
    """Test TableInfo dataclass."""

    def test_table_info_lookup(self):
        table = TableInfo(
            schema="public",
            name="customers",
            columns={"id": ColumnInfo(name="id", data_type="integer", is_nullable=False)},
            constraints={"customers_pkey"},
        )

        assert table.full_name == "public.customers"
        assert table.has_column("id")
        assert not table.has_column("email")
        assert table.get_column("id").data_type == "integer"
        assert table.get_column("email") is None
        assert table.indexes == set()


class TestSchemaIntrospector:
    """Test SchemaIntrospector class."""

    @pytest.fixture
    def introspector(self, mock_pool):
        return SchemaIntrospector(mock_pool)

    @pytest.mark.asyncio
    async def test_table_exists(self, introspector, mock_pool):
        mock_pool.fetchval.return_value = True

        assert await introspector.table_exists("public", "customers") is True
        query, schema, table = mock_pool.fetchval.call_args.args
        assert "information_schema.tables" in query
        assert (schema, table) == ("public", "customers")

    @pytest.mark.asyncio
    async def test_table_exists_false(self, introspector, mock_pool):
        mock_pool.fetchval.return_value = False

        assert await introspector.table_exists("public", "missing") is False

    @pytest.mark.asyncio
    async def test_table_exists_error(self, introspector, mock_pool):
        mock_pool.fetchval.side_effect = Exception("permission denied for schema")

        with pytest.raises(DatabaseError, match="Failed to check table existence"):
            await introspector.table_exists("public", "customers")

    @pytest.mark.asyncio
    async def test_connection_error_propagates(self, introspector, mock_pool):
        mock_pool.fetchval.side_effect = DatabaseConnectionError("Pool is not connected")

        with pytest.raises(DatabaseConnectionError):
            await introspector.table_exists("public", "customers")

    @pytest.mark.asyncio
    async def test_get_columns_error(self, introspector, mock_pool):
        mock_pool.fetch.side_effect = Exception("boom")

        with pytest.raises(SchemaError, match="Failed to get columns") as exc_info:
            await introspector.get_columns("public", "widgets")
        assert exc_info.value.table == "widgets"

    @pytest.mark.asyncio
    async def test_get_constraint_names(self, introspector, mock_pool):
        mock_pool.fetch.return_value = [
            {"constraint_name": "customers_pkey"},
            {"constraint_name": "customers_customer_id_key"},
        ]

        names = await introspector.get_constraint_names("public", "customers")

        assert names == {"customers_pkey", "customers_customer_id_key"}
        assert "information_schema.table_constraints" in mock_pool.fetch.call_args.args[0]

    @pytest.mark.asyncio
    async def test_get_index_names(self, introspector, mock_pool):
        mock_pool.fetch.return_value = [{"indexname": "idx_tickets_status"}]

        assert await introspector.get_index_names("public", "tickets") == {"idx_tickets_status"}
        assert "pg_indexes" in mock_pool.fetch.call_args.args[0]

    @pytest.mark.asyncio
    async def test_get_columns(self, introspector, mock_pool):
        mock_pool.fetch.return_value = [
            {
                "column_name": "name",
                "data_type": "character varying",
                "is_nullable": "NO",
                "column_default": None,
                "character_maximum_length": 100,
                "ordinal_position": 2,
            }
        ]

        columns = await introspector.get_columns("public", "provinces")

        assert list(columns) == ["name"]
        assert columns["name"].is_nullable is False
        assert columns["name"].max_length == 100
        assert "information_schema.columns" in mock_pool.fetch.call_args.args[0]

    @pytest.mark.asyncio
    async def test_get_table_info_missing_table(self, introspector, mock_pool):
        mock_pool.fetchval.return_value = False

        assert await introspector.get_table_info("public", "missing") is None
        mock_pool.fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_get_table_info(self, fake_catalog):
        table = fake_catalog.add_table("widgets", ["id", "label"])
        table.constraints.add("widgets_pkey")
        table.indexes.add("idx_widgets_label")

        info = await SchemaIntrospector(fake_catalog).get_table_info("public", "widgets")

        assert set(info.columns) == {"id", "label"}
        assert info.constraints == {"widgets_pkey"}
        assert info.indexes == {"idx_widgets_label"}
