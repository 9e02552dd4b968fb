from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

SQLITE_TYPES = {
    "uuid": "TEXT",
    "text": "TEXT",
    "number": "REAL",
    "datetime": "TEXT",
    "date": "TEXT",
    "enum": "TEXT",
}


class SchemaError(RuntimeError):
    pass


@dataclass(frozen=True)
class FieldSpec:
    name: str
    type: str
    required: bool = False
    unique: bool = False
    enum: str | None = None
    ref: tuple[str, str] | None = None


@dataclass(frozen=True)
class TableSpec:
    name: str
    primary_key: str
    fields: list[FieldSpec]
    indexes: list[list[str]] = field(default_factory=list)

    def field_names(self) -> list[str]:
        return [spec.name for spec in self.fields]


@dataclass(frozen=True)
class Schema:
    version: int
    enums: dict[str, list[str]]
    tables: list[TableSpec]

    def table(self, name: str) -> TableSpec:
        for table in self.tables:
            if table.name == name:
                return table
        raise SchemaError(f"Unknown table {name}.")


def load_schema(schema_path: Path) -> Schema:
    data = yaml.safe_load(Path(schema_path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise SchemaError("Schema must be a mapping.")
    enums = data.get("enums") or {}
    tables = data.get("tables") or {}
    if not isinstance(enums, dict):
        raise SchemaError("Schema enums must be a mapping.")
    if not isinstance(tables, dict):
        raise SchemaError("Schema tables must be a mapping.")
    return Schema(
        version=int(data.get("version", 1)),
        enums={name: list(members) for name, members in enums.items()},
        tables=[_parse_table(name, table_def, enums) for name, table_def in tables.items()],
    )


def apply_schema(conn, schema_path: Path) -> None:
    """Create missing tables and indexes, then record the schema version.

    Tables are created in declaration order, so a table must come after any
    table its ``ref`` fields point at.
    """
    schema = load_schema(schema_path)
    conn.execute(
        "CREATE TABLE IF NOT EXISTS __schema_meta (version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL)"
    )
    for table in schema.tables:
        conn.execute(table_ddl(table))
        for statement in index_ddl(table):
            conn.execute(statement)
    conn.execute(
        "INSERT OR REPLACE INTO __schema_meta (version, applied_at) VALUES (?, datetime('now'))",
        (schema.version,),
    )


def table_ddl(table: TableSpec) -> str:
    columns = [_column_sql(spec, spec.name == table.primary_key) for spec in table.fields]
    columns.extend(
        f"FOREIGN KEY ({spec.name}) REFERENCES {spec.ref[0]}({spec.ref[1]})"
        for spec in table.fields
        if spec.ref
    )
    return f"CREATE TABLE IF NOT EXISTS {table.name} ({', '.join(columns)});"


def index_ddl(table: TableSpec) -> list[str]:
    return [
        f"CREATE INDEX IF NOT EXISTS idx_{table.name}_{'_'.join(cols)} "
        f"ON {table.name} ({', '.join(cols)});"
        for cols in table.indexes
    ]


def _parse_table(name: str, table_def: Any, enums: dict[str, Any]) -> TableSpec:
    if not isinstance(table_def, dict) or not isinstance(table_def.get("fields"), dict):
        raise SchemaError(f"Table {name} fields must be a mapping.")
    fields = [
        _parse_field(name, field_name, spec, enums)
        for field_name, spec in table_def["fields"].items()
    ]
    primary_key = table_def.get("primary_key")
    if primary_key not in [spec.name for spec in fields]:
        raise SchemaError(f"Table {name} primary_key must name one of its fields.")
    indexes = [cols for cols in table_def.get("indexes") or [] if isinstance(cols, list) and cols]
    return TableSpec(name=name, primary_key=primary_key, fields=fields, indexes=indexes)


def _parse_field(table: str, name: str, spec: Any, enums: dict[str, Any]) -> FieldSpec:
    label = f"{table}.{name}"
    if not isinstance(spec, dict):
        raise SchemaError(f"Field {label} must be a mapping.")
    field_type = spec.get("type")
    if field_type not in SQLITE_TYPES:
        raise SchemaError(f"Unknown field type {field_type} for {label}.")
    enum_name = spec.get("enum")
    if field_type == "enum" and enum_name not in enums:
        raise SchemaError(f"Unknown enum {enum_name} for {label}.")
    ref = spec.get("ref")
    if ref is not None:
        parts = str(ref).split(".")
        if len(parts) != 2:
            raise SchemaError(f"Field {label} ref must look like table.field.")
        ref = (parts[0], parts[1])
    return FieldSpec(
        name=name,
        type=field_type,
        required=bool(spec.get("required", False)),
        unique=bool(spec.get("unique", False)),
        enum=enum_name,
        ref=ref,
    )


def _column_sql(spec: FieldSpec, primary: bool) -> str:
    parts = [spec.name, SQLITE_TYPES[spec.type]]
    if spec.required:
        parts.append("NOT NULL")
    if spec.unique:
        parts.append("UNIQUE")
    if primary:
        parts.append("PRIMARY KEY")
    return " ".join(parts)
