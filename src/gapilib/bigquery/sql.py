"""SQL builders for SELECT, DELETE and MERGE statements against BigQuery tables"""

from dataclasses import dataclass
from typing import Any, Optional, Sequence

from gapilib.bigquery.schema import column_names

IGNORE_FIELD = "Ignore"
JSON_SUFFIX = "Json"


@dataclass
class SelectConfig:
    """Parameters of a SELECT against a single table or view

    Attributes:
        dataset_name: Dataset holding the table; empty when table_or_view_name is qualified
        table_or_view_name: Table or view to select from
        sql_select: Select list, defaults to ``*``
        sql_where: Filter, with or without the ``WHERE`` keyword
        sql_order_by: Ordering, with or without the ``ORDER BY`` keywords
        sql_limit: Maximum number of rows
        model: Optional dataclass row model
        parameters: Query parameters referenced as ``@name`` in the clauses
    """

    dataset_name: str
    table_or_view_name: str
    sql_select: str = ""
    sql_where: str = ""
    sql_order_by: Optional[str] = None
    sql_limit: Optional[int] = None
    model: Optional[type] = None
    parameters: Optional[Sequence[Any]] = None


SQLConfig = SelectConfig


def table_reference(dataset_name: str, table_name: str) -> str:
    """Backtick-quoted ``dataset.table`` reference"""
    if dataset_name:
        return f"`{dataset_name}.{table_name}`"
    return f"`{table_name}`"


def _with_keyword(clause: Optional[str], keyword: str) -> str:
    """Prefix a clause with its keyword unless it already starts with it"""
    if not clause or not clause.strip():
        return ""
    clause = clause.strip()
    normalized = " ".join(clause.upper().split())
    if normalized == keyword:
        return ""
    if normalized.startswith(keyword + " "):
        return clause
    return f"{keyword} {clause}"


def build_select(config: SelectConfig) -> str:
    """Build the SELECT statement described by a SelectConfig

    Example:
        >>> build_select(SelectConfig("sales", "orders", sql_where="Status = 'open'", sql_limit=10))
        "SELECT * FROM `sales.orders` WHERE Status = 'open' LIMIT 10"
    """
    sql_select = config.sql_select or "*"

    parts = [
        f"SELECT {sql_select} FROM {table_reference(config.dataset_name, config.table_or_view_name)}",
        _with_keyword(config.sql_where, "WHERE"),
        _with_keyword(config.sql_order_by, "ORDER BY"),
    ]
    if config.sql_limit is not None:
        parts.append(f"LIMIT {int(config.sql_limit)}")

    return " ".join(part for part in parts if part)


def build_delete(dataset_name: str, table_name: str, sql_where: str = "") -> str:
    """Build a DELETE statement; an empty filter deletes every row"""
    where = _with_keyword(sql_where, "WHERE") or "WHERE TRUE"
    return f"DELETE FROM {table_reference(dataset_name, table_name)} {where}"


def build_merge(
    model: Any,
    source_table: str,
    target_table: str,
    id_field: str,
    has_ignore_field: bool = False,
) -> str:
    """Build a MERGE of source_table into target_table over the columns of a row model

    Columns whose name ends with ``Json`` and the ``Ignore`` column are not merged.
    With has_ignore_field, source rows flagged ``Ignore`` are neither updated nor inserted.
    """
    columns = [
        f"`{name}`"
        for name in column_names(model)
        if not name.endswith(JSON_SUFFIX) and name != IGNORE_FIELD
    ]
    if not columns:
        raise ValueError("Row model has no columns to merge")

    sql_update = ", ".join(f"TARGET.{c} = SOURCE.{c}" for c in columns)
    sql_insert = ", ".join(columns)
    sql_values = ", ".join(f"SOURCE.{c}" for c in columns)

    ignore = f" AND SOURCE.{IGNORE_FIELD} IS FALSE" if has_ignore_field else ""

    return (
        f"MERGE `{target_table}` AS TARGET"
        f" USING `{source_table}` AS SOURCE"
        f" ON TARGET.`{id_field}` = SOURCE.`{id_field}`"
        f" WHEN MATCHED{ignore} THEN UPDATE SET {sql_update}"
        f" WHEN NOT MATCHED BY TARGET{ignore} THEN INSERT ({sql_insert}) VALUES ({sql_values})"
    )
