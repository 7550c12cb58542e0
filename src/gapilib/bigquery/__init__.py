"""BigQuery service, SQL builders, row models and nullable column wrappers"""

from gapilib.bigquery.credentials import CredentialsJSON
from gapilib.bigquery.result import QueryResult
from gapilib.bigquery.service import BigQueryService
from gapilib.bigquery.sql import (
    SelectConfig,
    SQLConfig,
    build_select,
    build_delete,
    build_merge,
    table_reference,
)
from gapilib.bigquery.schema import (
    infer_schema,
    row_to_model,
    model_to_row,
    column_names,
)
from gapilib.bigquery.nulls import (
    NullValue,
    NullInt64,
    NullFloat64,
    NullNumeric,
    NullString,
    NullBool,
    NullTimestamp,
    NullDate,
    NullTime,
    NullDateTime,
    int_to_null_int64,
    null_int64_to_int,
    float64_to_null_float64,
    null_float64_to_float64,
    string_to_null_string,
    null_string_to_string,
    time_to_null_timestamp,
    null_timestamp_to_time,
    date_to_null_timestamp,
    date_to_null_date,
    time_to_null_date,
    time_to_null_time,
    time_to_null_datetime,
    time_civil_to_null_time,
    bool_to_null_bool,
)

__all__ = [
    # Service
    "BigQueryService",
    "CredentialsJSON",
    "QueryResult",
    # SQL
    "SelectConfig",
    "SQLConfig",
    "build_select",
    "build_delete",
    "build_merge",
    "table_reference",
    # Row models
    "infer_schema",
    "row_to_model",
    "model_to_row",
    "column_names",
    # Nullable wrappers
    "NullValue",
    "NullInt64",
    "NullFloat64",
    "NullNumeric",
    "NullString",
    "NullBool",
    "NullTimestamp",
    "NullDate",
    "NullTime",
    "NullDateTime",
    "int_to_null_int64",
    "null_int64_to_int",
    "float64_to_null_float64",
    "null_float64_to_float64",
    "string_to_null_string",
    "null_string_to_string",
    "time_to_null_timestamp",
    "null_timestamp_to_time",
    "date_to_null_timestamp",
    "date_to_null_date",
    "time_to_null_date",
    "time_to_null_time",
    "time_to_null_datetime",
    "time_civil_to_null_time",
    "bool_to_null_bool",
]
