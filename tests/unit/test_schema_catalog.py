"""
Tests for the netsales table catalog and spec file loading.
"""

import pytest
import yaml

from netsales.exceptions import SpecError
from netsales.schema.catalog import NETSALES_TABLES, get_table, with_schema
from netsales.schema.loader import load_table_specs, parse_table_specs, resolve_table_specs
from netsales.schema.spec import ColumnType, forward_references


class TestCatalog:
    """Test the canonical netsales tables."""

    def test_table_set(self):
        assert [spec.name for spec in NETSALES_TABLES] == [
            "target_clusters",
            "target_cities",
            "products",
            "promos",
            "hot_news",
            "customers",
            "person_in_charge",
            "coverage_sites",
            "tickets",
            "ticket_activities",
            "users",
            "roles",
            "system_settings",
            "clusters",
            "provinces",
        ]

    def test_foreign_key_safe_order(self):
        assert forward_references(NETSALES_TABLES) == []

    def test_customer_id_unique_constraint(self):
        names = [c.name for c in get_table("customers").all_constraints()]

        assert "customers_customer_id_key" in names

    def test_system_settings_keyed_by_name(self):
        key = get_table("system_settings").primary_key

        assert key.name == "key"
        assert key.type == ColumnType.VARCHAR

    def test_hot_news_created_by_is_text(self):
        column = get_table("hot_news").get_column("created_by")

        assert column.type == ColumnType.VARCHAR
        assert column.default == "Admin"

    def test_indexes(self):
        assert [i.index_name for i in get_table("coverage_sites").indexes] == [
            "idx_coverage_site_id",
            "idx_coverage_locality",
            "idx_coverage_network",
        ]
        assert [i.index_name for i in get_table("ticket_activities").indexes] == ["idx_activities_ticket"]

    def test_unknown_table(self):
        assert get_table("nope") is None

    def test_with_schema(self):
        moved = with_schema(NETSALES_TABLES, "sales")

        assert all(spec.schema_name == "sales" for spec in moved)
        assert all(spec.schema_name == "public" for spec in NETSALES_TABLES)


class TestLoader:
    """Test YAML spec loading."""

    def test_load_table_specs(self, spec_file):
        specs = load_table_specs(spec_file)

        assert [spec.name for spec in specs] == ["widgets"]
        assert specs[0].get_column("label").length == 100
        assert specs[0].indexes[0].index_name == "idx_widgets_label"

    def test_missing_file(self, tmp_path):
        with pytest.raises(SpecError, match="not found"):
            load_table_specs(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("tables: [")

        with pytest.raises(SpecError, match="Invalid YAML"):
            load_table_specs(path)

    def test_requires_tables_list(self):
        with pytest.raises(SpecError, match="top-level 'tables' list"):
            parse_table_specs({"columns": []})

    def test_invalid_table(self):
        data = {"tables": [{"name": "widgets", "columns": [{"name": "label", "type": "text"}]}]}

        with pytest.raises(SpecError, match="Invalid table spec widgets") as exc_info:
            parse_table_specs(data)
        assert exc_info.value.cause is not None

    def test_duplicate_tables(self):
        table = {"name": "widgets", "columns": [{"name": "id", "type": "serial", "primary_key": True}]}

        with pytest.raises(SpecError, match="more than once"):
            parse_table_specs({"tables": [table, table]})

    def test_resolve_defaults_to_catalog(self):
        assert resolve_table_specs() == NETSALES_TABLES

    def test_resolve_from_file_with_schema(self, spec_file):
        specs = resolve_table_specs(spec_file, "sales")

        assert specs[0].full_name == "sales.widgets"
