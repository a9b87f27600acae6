"""
Canonical netsales table catalog.

Tables are listed so that every foreign-key target comes before the tables
that reference it. This list is the single source of truth for column
definitions; older setup scripts disagreed on a few of them.
"""

from typing import List, Optional

from .spec import ColumnSpec, ColumnType, ForeignKeyRef, IndexSpec, OnDelete, TableSpec


def _id() -> ColumnSpec:
    return ColumnSpec(name="id", type=ColumnType.SERIAL, primary_key=True)


def _varchar(name: str, length: int, default: Optional[str] = None, **kwargs) -> ColumnSpec:
    return ColumnSpec(name=name, type=ColumnType.VARCHAR, length=length, default=default, **kwargs)


def _money(name: str) -> ColumnSpec:
    return ColumnSpec(name=name, type=ColumnType.DECIMAL, precision=12, scale=2, default=0)


def _coordinate(name: str, precision: int) -> ColumnSpec:
    return ColumnSpec(name=name, type=ColumnType.DECIMAL, precision=precision, scale=8)


def _column(name: str, column_type: ColumnType, **kwargs) -> ColumnSpec:
    return ColumnSpec(name=name, type=column_type, **kwargs)


def _timestamp(name: str) -> ColumnSpec:
    return ColumnSpec(name=name, type=ColumnType.TIMESTAMP, default_expression="NOW()")


def _is_active() -> ColumnSpec:
    return ColumnSpec(name="is_active", type=ColumnType.BOOLEAN, default=True)


def _json_list(name: str) -> ColumnSpec:
    return ColumnSpec(name=name, type=ColumnType.JSONB, default=[])


TARGET_CLUSTERS = TableSpec(
    name="target_clusters",
    columns=[
        _id(),
        _varchar("name", 100, nullable=False, unique=True),
        _column("total_target", ColumnType.INTEGER, default=0),
        _timestamp("created_at"),
    ],
)

TARGET_CITIES = TableSpec(
    name="target_cities",
    columns=[
        _id(),
        _column(
            "cluster_id",
            ColumnType.INTEGER,
            references=ForeignKeyRef(table="target_clusters", on_delete=OnDelete.CASCADE),
        ),
        _varchar("city_name", 100),
        _varchar("province", 100),
        _column("homepass", ColumnType.INTEGER, default=0),
        _column("percentage", ColumnType.DECIMAL, precision=5, scale=2, default=0),
        _column("target", ColumnType.INTEGER, default=0),
        _timestamp("created_at"),
    ],
)

PRODUCTS = TableSpec(
    name="products",
    columns=[
        _id(),
        _varchar("name", 255),
        _varchar("category", 100),
        _varchar("service_type", 50),
        _money("price"),
        _money("cogs"),
        _varchar("bandwidth", 50),
        _column("release_date", ColumnType.DATE),
        _varchar("status", 50, "Active"),
        _timestamp("created_at"),
    ],
)

PROMOS = TableSpec(
    name="promos",
    columns=[
        _id(),
        _varchar("name", 255),
        _column("valid_from", ColumnType.DATE),
        _column("valid_to", ColumnType.DATE),
        _money("price"),
        _money("cogs"),
        _column("description", ColumnType.TEXT),
        _varchar("status", 50, "Active"),
        _timestamp("created_at"),
    ],
)

HOT_NEWS = TableSpec(
    name="hot_news",
    columns=[
        _id(),
        _varchar("title", 255),
        _column("content", ColumnType.TEXT),
        _column("priority", ColumnType.INTEGER, default=1),
        _timestamp("start_date"),
        _column(
            "end_date",
            ColumnType.TIMESTAMP,
            default_expression="(NOW() + interval '30 days')",
        ),
        _is_active(),
        _varchar("created_by", 100, "Admin"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    ],
)

CUSTOMERS = TableSpec(
    name="customers",
    columns=[
        _id(),
        _varchar("customer_id", 100, unique=True),
        _varchar("type", 50),
        _varchar("name", 255),
        _column("address", ColumnType.TEXT),
        _varchar("area", 100),
        _varchar("kabupaten", 100),
        _varchar("kecamatan", 100),
        _varchar("kelurahan", 100),
        _coordinate("latitude", 10),
        _coordinate("longitude", 11),
        _varchar("phone", 50),
        _varchar("email", 255),
        _column("product_id", ColumnType.INTEGER),
        _varchar("product_name", 255),
        _column("rfs_date", ColumnType.DATE),
        _json_list("files"),
        _column("sales_id", ColumnType.INTEGER),
        _varchar("sales_name", 100),
        _varchar("status", 50, "Prospect"),
        _column("prospect_date", ColumnType.DATE, default_expression="NOW()"),
        _is_active(),
        _varchar("fat", 100),
        _varchar("homepass_id", 100),
        _varchar("site_id", 100),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    ],
)

PERSON_IN_CHARGE = TableSpec(
    name="person_in_charge",
    columns=[
        _id(),
        _varchar("name", 255),
        _varchar("role", 100),
        _varchar("employee_id", 50),
        _varchar("email", 255),
        _varchar("phone", 50),
        _varchar("area", 100),
        _varchar("position", 100),
        _varchar("status", 50, "Active"),
        _column("active_date", ColumnType.DATE),
        _column("inactive_date", ColumnType.DATE),
        _column("profile_image", ColumnType.TEXT),
        _timestamp("created_at"),
    ],
)

COVERAGE_SITES = TableSpec(
    name="coverage_sites",
    columns=[
        _id(),
        _varchar("network_type", 50),
        _varchar("site_id", 100),
        _varchar("homepass_id", 100),
        _coordinate("ampli_lat", 10),
        _coordinate("ampli_long", 11),
        _coordinate("area_lat", 10),
        _coordinate("area_long", 11),
        _varchar("locality", 255),
        _varchar("province", 100),
        _varchar("cluster", 100),
        _varchar("status", 50, "active"),
        _column("polygon_data", ColumnType.JSONB),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    ],
    indexes=[
        IndexSpec(columns=["site_id"], name="idx_coverage_site_id"),
        IndexSpec(columns=["locality"], name="idx_coverage_locality"),
        IndexSpec(columns=["network_type"], name="idx_coverage_network"),
    ],
)

TICKETS = TableSpec(
    name="tickets",
    columns=[
        _id(),
        _varchar("ticket_number", 50, unique=True),
        _column("customer_id", ColumnType.INTEGER),
        _varchar("customer_name", 255),
        _varchar("category", 100),
        _column("description", ColumnType.TEXT),
        _column("assigned_to", ColumnType.INTEGER),
        _varchar("assigned_name", 255),
        _varchar("source", 100, "WhatsApp"),
        _varchar("priority", 50, "Medium"),
        _varchar("status", 50, "Open"),
        _column("solved_at", ColumnType.TIMESTAMP),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    ],
    indexes=[
        IndexSpec(columns=["status"], name="idx_tickets_status"),
        IndexSpec(columns=["customer_id"], name="idx_tickets_customer"),
    ],
)

TICKET_ACTIVITIES = TableSpec(
    name="ticket_activities",
    columns=[
        _id(),
        _column(
            "ticket_id",
            ColumnType.INTEGER,
            references=ForeignKeyRef(table="tickets", on_delete=OnDelete.CASCADE),
        ),
        _varchar("activity_type", 50, "note"),
        _column("content", ColumnType.TEXT),
        _varchar("created_by", 100, "System"),
        _timestamp("created_at"),
    ],
    indexes=[
        IndexSpec(columns=["ticket_id"], name="idx_activities_ticket"),
    ],
)

USERS = TableSpec(
    name="users",
    columns=[
        _id(),
        _varchar("username", 100, nullable=False, unique=True),
        _varchar("email", 255, nullable=False, unique=True),
        _varchar("password_hash", 255, nullable=False),
        _varchar("full_name", 255),
        _varchar("role", 100, "user"),
        _varchar("cluster", 100),
        _varchar("province", 100),
        _is_active(),
        _column("last_login", ColumnType.TIMESTAMP),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    ],
)

ROLES = TableSpec(
    name="roles",
    columns=[
        _id(),
        _varchar("name", 100, nullable=False, unique=True),
        _column("description", ColumnType.TEXT),
        _json_list("permissions"),
        _json_list("allowed_clusters"),
        _json_list("allowed_provinces"),
        _varchar("data_scope", 50, "all"),
        _is_active(),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    ],
)

SYSTEM_SETTINGS = TableSpec(
    name="system_settings",
    columns=[
        _varchar("key", 100, primary_key=True),
        _column("value", ColumnType.TEXT),
        _timestamp("updated_at"),
    ],
)

CLUSTERS = TableSpec(
    name="clusters",
    columns=[
        _id(),
        _varchar("name", 100, nullable=False, unique=True),
        _varchar("province", 100),
        _column("description", ColumnType.TEXT),
        _is_active(),
        _timestamp("created_at"),
    ],
)

PROVINCES = TableSpec(
    name="provinces",
    columns=[
        _id(),
        _varchar("name", 100, nullable=False, unique=True),
        _varchar("code", 10),
        _is_active(),
        _timestamp("created_at"),
    ],
)


NETSALES_TABLES: List[TableSpec] = [
    TARGET_CLUSTERS,
    TARGET_CITIES,
    PRODUCTS,
    PROMOS,
    HOT_NEWS,
    CUSTOMERS,
    PERSON_IN_CHARGE,
    COVERAGE_SITES,
    TICKETS,
    TICKET_ACTIVITIES,
    USERS,
    ROLES,
    SYSTEM_SETTINGS,
    CLUSTERS,
    PROVINCES,
]


def get_table(name: str) -> Optional[TableSpec]:
    """Look up a catalog table by name."""
    return next((spec for spec in NETSALES_TABLES if spec.name == name), None)


def with_schema(specs: List[TableSpec], schema_name: str) -> List[TableSpec]:
    """Copy specs into another schema."""
    if all(spec.schema_name == schema_name for spec in specs):
        return list(specs)
    return [spec.model_copy(update={"schema_name": schema_name}) for spec in specs]
