"""
Loading table specs from YAML files.

The file holds a top-level ``tables`` list; each entry mirrors ``TableSpec``::

    tables:
      - name: widgets
        columns:
          - {name: id, type: serial, primary_key: true}
          - {name: label, type: varchar, length: 100, nullable: false}
        indexes:
          - {columns: [label]}
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

import yaml
from pydantic import ValidationError

from ..exceptions import SpecError
from .catalog import NETSALES_TABLES, with_schema
from .spec import TableSpec


logger = logging.getLogger(__name__)


def parse_table_specs(data) -> List[TableSpec]:
    """Build table specs from already-parsed YAML data."""
    if not isinstance(data, dict) or not isinstance(data.get("tables"), list):
        raise SpecError("Spec file must contain a top-level 'tables' list")

    specs = []
    for position, entry in enumerate(data["tables"]):
        try:
            specs.append(TableSpec.model_validate(entry))
        except ValidationError as e:
            name = entry.get("name") if isinstance(entry, dict) else None
            raise SpecError(
                f"Invalid table spec {name or '#' + str(position)}",
                details={"errors": e.error_count()},
                cause=e,
            ) from e

    names = [spec.name for spec in specs]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise SpecError(f"Tables declared more than once: {', '.join(duplicates)}")
    return specs


def load_table_specs(path: Union[str, Path]) -> List[TableSpec]:
    """Load table specs from a YAML file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise SpecError(f"Spec file not found: {path}")
    except yaml.YAMLError as e:
        raise SpecError(f"Invalid YAML in spec file: {e}") from e

    specs = parse_table_specs(data)
    logger.info(f"Loaded {len(specs)} table specs from {path}")
    return specs


def resolve_table_specs(
    spec_file: Optional[Union[str, Path]] = None, schema_name: str = "public"
) -> List[TableSpec]:
    """Specs from a file when given, otherwise the netsales catalog."""
    if spec_file:
        specs = load_table_specs(spec_file)
    else:
        specs = NETSALES_TABLES
    return with_schema(specs, schema_name)
