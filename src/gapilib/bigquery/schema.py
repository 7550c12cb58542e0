"""Schema inference and row mapping for dataclass row models

A row model is a dataclass whose fields are BigQuery columns. The column name
defaults to the field name and can be overridden with ``field(metadata={"bigquery": "Name"})``;
``metadata={"bigquery": "-"}`` leaves the field out of the table.

Type mapping:
    int -> INTEGER, float -> FLOAT, str -> STRING, bool -> BOOLEAN, bytes -> BYTES,
    datetime -> TIMESTAMP, date -> DATE, time -> TIME, Decimal -> NUMERIC, dict -> JSON,
    NullX -> the wrapped type (NULLABLE), nested dataclass -> RECORD.

Plain types are REQUIRED, ``Optional[...]`` and NullX are NULLABLE, ``list[...]`` is REPEATED.
"""

from __future__ import annotations

import dataclasses
import types
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Mapping, Union, get_args, get_origin, get_type_hints

from google.cloud import bigquery

from gapilib.bigquery.nulls import NullValue

_SCALAR_TYPES: dict[type, str] = {
    int: "INTEGER",
    float: "FLOAT",
    str: "STRING",
    bool: "BOOLEAN",
    bytes: "BYTES",
    datetime: "TIMESTAMP",
    date: "DATE",
    time: "TIME",
    Decimal: "NUMERIC",
    dict: "JSON",
}

SKIP = "-"


def _model_class(model: Any) -> type:
    """Accept a dataclass type or instance and return the type"""
    cls = model if isinstance(model, type) else type(model)
    if not dataclasses.is_dataclass(cls):
        raise TypeError(f"Row model must be a dataclass, got {cls!r}")
    return cls


def model_columns(model: Any) -> list[tuple[str, dataclasses.Field, Any]]:
    """(column name, dataclass field, resolved type) for each column of a row model"""
    cls = _model_class(model)
    hints = get_type_hints(cls)
    columns = []
    for f in dataclasses.fields(cls):
        name = f.metadata.get("bigquery", f.name)
        if name == SKIP:
            continue
        columns.append((name, f, hints.get(f.name, Any)))
    return columns


def column_names(model: Any) -> list[str]:
    """Column names of a row model, in field order"""
    return [name for name, _, _ in model_columns(model)]


def _unwrap_optional(tp: Any) -> tuple[Any, bool]:
    """Strip None from a union, returning (inner type, was optional)"""
    origin = get_origin(tp)
    if origin is Union or origin is types.UnionType:
        args = [a for a in get_args(tp) if a is not type(None)]
        optional = len(args) < len(get_args(tp))
        if len(args) != 1:
            raise TypeError(f"Unsupported union type {tp!r}")
        return args[0], optional
    return tp, False


def _is_null_type(tp: Any) -> bool:
    return isinstance(tp, type) and issubclass(tp, NullValue)


def _field_schema(name: str, tp: Any) -> bigquery.SchemaField:
    mode = "REQUIRED"

    tp, optional = _unwrap_optional(tp)
    if optional:
        mode = "NULLABLE"

    if get_origin(tp) in (list, tuple):
        args = get_args(tp)
        if not args:
            raise TypeError(f"Field {name!r}: repeated field needs an item type")
        item, item_optional = _unwrap_optional(args[0])
        if item_optional or _is_null_type(item):
            raise TypeError(f"Field {name!r}: repeated fields cannot hold NULL values")
        mode = "REPEATED"
        tp = item

    if _is_null_type(tp):
        return bigquery.SchemaField(name, tp.field_type, mode="NULLABLE")

    if dataclasses.is_dataclass(tp):
        return bigquery.SchemaField(name, "RECORD", mode=mode, fields=infer_schema(tp))

    field_type = _SCALAR_TYPES.get(tp)
    if field_type is None:
        raise TypeError(f"Cannot infer BigQuery type for field {name!r} of type {tp!r}")

    return bigquery.SchemaField(name, field_type, mode=mode)


def infer_schema(model: Any) -> list[bigquery.SchemaField]:
    """Infer a BigQuery table schema from a dataclass row model

    Raises:
        TypeError: If the model is not a dataclass or a field type has no BigQuery counterpart

    Example:
        >>> @dataclass
        ... class Visit:
        ...     Id: int
        ...     Page: str
        ...     Duration: NullFloat64
        >>> [(f.name, f.field_type, f.mode) for f in infer_schema(Visit)]
        [('Id', 'INTEGER', 'REQUIRED'), ('Page', 'STRING', 'REQUIRED'), ('Duration', 'FLOAT', 'NULLABLE')]
    """
    return [_field_schema(name, tp) for name, _, tp in model_columns(model)]


def _from_value(value: Any, tp: Any) -> Any:
    tp, _ = _unwrap_optional(tp)

    if _is_null_type(tp):
        return tp.from_bigquery(value)
    if value is None:
        return None

    if get_origin(tp) in (list, tuple):
        item = get_args(tp)[0] if get_args(tp) else Any
        return [_from_value(v, item) for v in value]

    if dataclasses.is_dataclass(tp) and isinstance(value, Mapping):
        return row_to_model(value, tp)

    return value


def row_to_model(row: Mapping[str, Any], model: type) -> Any:
    """Map a BigQuery row (or any mapping) onto a dataclass row model

    Columns missing from the row take the field default, or NULL for NullX fields.
    """
    kwargs: dict[str, Any] = {}
    for name, f, tp in model_columns(model):
        if not f.init:
            continue
        if name in row.keys():
            kwargs[f.name] = _from_value(row[name], tp)
        elif f.default is not dataclasses.MISSING or f.default_factory is not dataclasses.MISSING:
            continue
        else:
            kwargs[f.name] = _from_value(None, tp)
    return model(**kwargs)


def _to_value(value: Any) -> Any:
    if isinstance(value, NullValue):
        return value.to_bigquery()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return model_to_row(value)
    if isinstance(value, (list, tuple)):
        return [_to_value(v) for v in value]
    return value


def model_to_row(instance: Any) -> dict[str, Any]:
    """Convert a row model instance (or a plain dict) into an insertable row"""
    if isinstance(instance, Mapping):
        return {k: _to_value(v) for k, v in instance.items()}
    return {
        name: _to_value(getattr(instance, f.name))
        for name, f, _ in model_columns(instance)
    }
