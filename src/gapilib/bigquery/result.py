"""A unified, simplified interface for BigQuery query results"""
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

import pandas as pd

from gapilib.bigquery.schema import row_to_model


@dataclass
class QueryResult:
    """A unified, simplified interface for BigQuery query results

    Rows are streamed from the underlying row iterator, so they can be consumed once.
    """
    _rows: Any
    _job: Any = None
    _iterator: Optional[Iterator[Any]] = field(default=None, init=False, repr=False)

    @property
    def job_id(self) -> Optional[str]:
        """The BigQuery job ID, when the rows come from a query job"""
        if self._job is not None:
            return self._job.job_id
        return getattr(self._rows, "job_id", None)

    @property
    def sql(self) -> Optional[str]:
        """The SQL statement that was executed"""
        if self._job is None:
            return None
        return self._job.query

    @property
    def total_rows(self) -> int:
        """Total number of rows in the result set"""
        total = getattr(self._rows, "total_rows", None)
        return total if total is not None else 0

    @property
    def schema(self) -> list[Any]:
        """Schema fields of the result columns"""
        return list(getattr(self._rows, "schema", None) or [])

    def _iter(self) -> Iterator[Any]:
        if self._iterator is None:
            self._iterator = iter(self._rows)
        return self._iterator

    def __iter__(self) -> Iterator[Any]:
        return self._iter()

    def fetch_one(self) -> Optional[Any]:
        """Fetch the next row of the result set, or None when exhausted"""
        return next(self._iter(), None)

    def fetch_all(self) -> list[Any]:
        """Fetch all remaining rows of the result set"""
        return list(self._iter())

    def fetch_models(self, model: type) -> list[Any]:
        """Fetch all remaining rows mapped onto a dataclass row model"""
        return [row_to_model(row, model) for row in self._iter()]

    def to_df(self, lowercase_columns: bool = False) -> pd.DataFrame:
        """Fetch all remaining rows as a DataFrame with optional column casing"""
        columns = [f.name for f in self.schema]
        rows = [list(row.values()) for row in self._iter()]

        if columns:
            df = pd.DataFrame(rows, columns=columns)
        else:
            df = pd.DataFrame(rows)

        if lowercase_columns and columns:
            df.columns = df.columns.str.lower()

        return df

    def __repr__(self) -> str:
        """String representation"""
        return (
            f"QueryResult(job_id='{self.job_id}', "
            f"total_rows={self.total_rows})"
        )
