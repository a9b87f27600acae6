"""
Declarative table specifications.

A ``TableSpec`` describes the structure a table must have: its columns with a
semantic type, the uniqueness and foreign-key constraints on them, and the
indexes to build. Specs are engine-neutral data; ``netsales.schema.ddl``
renders them into PostgreSQL statements.
"""

import re
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")

# PostgreSQL truncates identifiers to NAMEDATALEN - 1 bytes.
MAX_IDENTIFIER_LENGTH = 63


def validate_identifier(value: str) -> str:
    """Reject names that are not plain SQL identifiers."""
    if not isinstance(value, str) or not IDENTIFIER_PATTERN.match(value):
        raise ValueError(
            f"Invalid identifier {value!r}: use letters, digits and underscores, "
            f"starting with a letter or underscore, at most {MAX_IDENTIFIER_LENGTH} characters"
        )
    return value


def derive_name(*parts: str, suffix: str = "") -> str:
    """
    Build a default object name the way PostgreSQL's makeObjectName does.

    The first part is the table (or prefix), the rest are joined as the
    second name. When the result is too long, whichever of the two names is
    longer loses one character at a time, so ``customers_customer_id_key``
    matches the name PostgreSQL gives an inline UNIQUE.
    """
    first = parts[0] if parts else ""
    second = "_".join(parts[1:])

    available = MAX_IDENTIFIER_LENGTH
    if suffix:
        available -= len(suffix) + 1
    if second:
        available -= 1

    first_len, second_len = len(first), len(second)
    while first_len + second_len > available:
        if first_len > second_len:
            first_len -= 1
        else:
            second_len -= 1

    name = first[:first_len]
    if second:
        name += "_" + second[:second_len]
    if suffix:
        name += "_" + suffix
    return name


class ColumnType(str, Enum):
    """Semantic column types understood by the DDL renderer."""

    SERIAL = "serial"
    TEXT = "text"
    VARCHAR = "varchar"
    INTEGER = "integer"
    BIGINT = "bigint"
    DECIMAL = "decimal"
    DATE = "date"
    TIMESTAMP = "timestamp"
    TIMESTAMPTZ = "timestamptz"
    BOOLEAN = "boolean"
    JSON = "json"
    JSONB = "jsonb"


class ConstraintKind(str, Enum):
    """Constraints the reconciler can add to an existing table."""

    UNIQUE = "unique"
    FOREIGN_KEY = "foreign_key"


class OnDelete(str, Enum):
    """Referential actions for foreign keys."""

    CASCADE = "CASCADE"
    SET_NULL = "SET NULL"
    RESTRICT = "RESTRICT"
    NO_ACTION = "NO ACTION"


class ForeignKeyRef(BaseModel):
    """Target of a column-level foreign key."""

    model_config = ConfigDict(extra="forbid")

    table: str
    column: str = "id"
    on_delete: Optional[OnDelete] = None

    @field_validator("table", "column")
    @classmethod
    def check_names(cls, v: str) -> str:
        return validate_identifier(v)


class ColumnSpec(BaseModel):
    """Desired definition of a single column."""

    model_config = ConfigDict(extra="forbid")

    name: str
    type: ColumnType
    length: Optional[int] = Field(None, gt=0, description="VARCHAR length")
    precision: Optional[int] = Field(None, gt=0, description="DECIMAL precision")
    scale: Optional[int] = Field(None, ge=0, description="DECIMAL scale")
    nullable: bool = True
    default: Optional[Any] = Field(None, description="Literal default value")
    default_expression: Optional[str] = Field(
        None, description="Trusted SQL expression used as default, e.g. NOW()"
    )
    primary_key: bool = False
    unique: bool = False
    references: Optional[ForeignKeyRef] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        return validate_identifier(v)

    @model_validator(mode="after")
    def check_type_arguments(self) -> "ColumnSpec":
        if self.type == ColumnType.VARCHAR and self.length is None:
            raise ValueError(f"Column {self.name!r}: varchar requires a length")
        if self.type != ColumnType.VARCHAR and self.length is not None:
            raise ValueError(f"Column {self.name!r}: length only applies to varchar")
        if self.type == ColumnType.DECIMAL and self.precision is None:
            raise ValueError(f"Column {self.name!r}: decimal requires a precision")
        if self.type != ColumnType.DECIMAL and (
            self.precision is not None or self.scale is not None
        ):
            raise ValueError(f"Column {self.name!r}: precision/scale only apply to decimal")
        if self.precision is not None and self.scale is not None and self.scale > self.precision:
            raise ValueError(f"Column {self.name!r}: scale cannot exceed precision")
        if self.default is not None and self.default_expression is not None:
            raise ValueError(
                f"Column {self.name!r}: set either default or default_expression, not both"
            )
        if self.type == ColumnType.SERIAL and (
            self.default is not None or self.default_expression is not None
        ):
            raise ValueError(f"Column {self.name!r}: serial columns take no default")
        if self.primary_key:
            if self.unique or self.references is not None:
                raise ValueError(
                    f"Column {self.name!r}: primary key cannot also be unique or a foreign key"
                )
            self.nullable = False
        return self


class ConstraintSpec(BaseModel):
    """A named uniqueness or foreign-key constraint."""

    model_config = ConfigDict(extra="forbid")

    name: str
    kind: ConstraintKind
    columns: List[str] = Field(..., min_length=1)
    ref_table: Optional[str] = None
    ref_columns: List[str] = Field(default_factory=list)
    on_delete: Optional[OnDelete] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        return validate_identifier(v)

    @field_validator("columns", "ref_columns")
    @classmethod
    def check_column_names(cls, v: List[str]) -> List[str]:
        return [validate_identifier(name) for name in v]

    @model_validator(mode="after")
    def check_reference(self) -> "ConstraintSpec":
        if self.kind == ConstraintKind.FOREIGN_KEY:
            if not self.ref_table:
                raise ValueError(f"Constraint {self.name!r}: foreign key requires ref_table")
            validate_identifier(self.ref_table)
            if not self.ref_columns:
                self.ref_columns = ["id"] * len(self.columns) if len(self.columns) == 1 else []
            if len(self.ref_columns) != len(self.columns):
                raise ValueError(
                    f"Constraint {self.name!r}: ref_columns must match columns one to one"
                )
        elif self.ref_table or self.ref_columns or self.on_delete:
            raise ValueError(f"Constraint {self.name!r}: only foreign keys take a reference")
        return self


class IndexSpec(BaseModel):
    """An index over one or more columns of a table."""

    model_config = ConfigDict(extra="forbid")

    columns: List[str] = Field(..., min_length=1)
    unique: bool = False
    table: Optional[str] = Field(None, description="Target table, filled in by TableSpec")
    name: Optional[str] = None

    @field_validator("columns")
    @classmethod
    def check_column_names(cls, v: List[str]) -> List[str]:
        return [validate_identifier(name) for name in v]

    @field_validator("table", "name")
    @classmethod
    def check_optional_names(cls, v: Optional[str]) -> Optional[str]:
        return validate_identifier(v) if v is not None else v

    @property
    def index_name(self) -> str:
        """Explicit name, or idx_<table>_<columns>."""
        if self.name:
            return self.name
        return derive_name("idx", self.table or "", *self.columns)


class TableSpec(BaseModel):
    """Desired structure of a table."""

    model_config = ConfigDict(extra="forbid")

    name: str
    schema_name: str = "public"
    columns: List[ColumnSpec] = Field(..., min_length=1)
    constraints: List[ConstraintSpec] = Field(default_factory=list)
    indexes: List[IndexSpec] = Field(default_factory=list)

    @field_validator("name", "schema_name")
    @classmethod
    def check_names(cls, v: str) -> str:
        return validate_identifier(v)

    @model_validator(mode="after")
    def check_structure(self) -> "TableSpec":
        names = [column.name for column in self.columns]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Table {self.name!r}: duplicate columns {duplicates}")

        keys = [column.name for column in self.columns if column.primary_key]
        if len(keys) != 1:
            raise ValueError(
                f"Table {self.name!r}: exactly one primary key column is required, found {len(keys)}"
            )

        known = set(names)
        for constraint in self.constraints:
            missing = [c for c in constraint.columns if c not in known]
            if missing:
                raise ValueError(
                    f"Table {self.name!r}: constraint {constraint.name!r} uses unknown columns {missing}"
                )

        indexes = []
        for index in self.indexes:
            if index.table is not None and index.table != self.name:
                raise ValueError(
                    f"Table {self.name!r}: index on columns {index.columns} targets table {index.table!r}"
                )
            missing = [c for c in index.columns if c not in known]
            if missing:
                raise ValueError(f"Table {self.name!r}: index uses unknown columns {missing}")
            indexes.append(index.model_copy(update={"table": self.name}))
        self.indexes = indexes

        constraint_names = [c.name for c in self.all_constraints()]
        clashes = sorted({n for n in constraint_names if constraint_names.count(n) > 1})
        if clashes:
            raise ValueError(f"Table {self.name!r}: duplicate constraint names {clashes}")
        return self

    @property
    def full_name(self) -> str:
        return f"{self.schema_name}.{self.name}"

    @property
    def primary_key(self) -> ColumnSpec:
        return next(column for column in self.columns if column.primary_key)

    def get_column(self, name: str) -> Optional[ColumnSpec]:
        return next((column for column in self.columns if column.name == name), None)

    def all_constraints(self) -> List[ConstraintSpec]:
        """Column-level unique/references flags plus explicit constraints.

        Column-level constraints get PostgreSQL's own default names so that
        tables originally created with inline UNIQUE/REFERENCES clauses are
        recognised as already constrained.
        """
        derived = []
        for column in self.columns:
            if column.unique:
                derived.append(
                    ConstraintSpec(
                        name=derive_name(self.name, column.name, suffix="key"),
                        kind=ConstraintKind.UNIQUE,
                        columns=[column.name],
                    )
                )
            if column.references is not None:
                derived.append(
                    ConstraintSpec(
                        name=derive_name(self.name, column.name, suffix="fkey"),
                        kind=ConstraintKind.FOREIGN_KEY,
                        columns=[column.name],
                        ref_table=column.references.table,
                        ref_columns=[column.references.column],
                        on_delete=column.references.on_delete,
                    )
                )
        return derived + list(self.constraints)

    def referenced_tables(self) -> List[str]:
        """Tables this table points at through foreign keys, in declaration order."""
        seen: Dict[str, None] = {}
        for constraint in self.all_constraints():
            if constraint.kind == ConstraintKind.FOREIGN_KEY and constraint.ref_table != self.name:
                seen.setdefault(constraint.ref_table, None)
        return list(seen)


def forward_references(specs: Sequence[TableSpec]) -> List[Tuple[str, str]]:
    """Find foreign keys that point at a table declared later in the sequence.

    The reconciler processes tables strictly in the given order, so such a
    reference only succeeds when the target table already exists live.
    """
    positions = {spec.name: i for i, spec in enumerate(specs)}
    problems = []
    for i, spec in enumerate(specs):
        for target in spec.referenced_tables():
            if positions.get(target, -1) > i:
                problems.append((spec.name, target))
    return problems
