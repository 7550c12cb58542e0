"""BigQuery table and query helper

Builds SQL from configuration objects, runs it through google-cloud-bigquery and
polls jobs until they finish. Every failure is raised as GapiError, with the vendor
error message kept verbatim.
"""

import logging
import time
import uuid
from typing import Any, Optional, Sequence, Union

from google.api_core.exceptions import GoogleAPIError, NotFound
from google.cloud import bigquery, storage
from google.oauth2 import service_account

from gapilib.bigquery.credentials import CredentialsJSON
from gapilib.bigquery.result import QueryResult
from gapilib.bigquery.schema import infer_schema, model_to_row, row_to_model
from gapilib.bigquery.sql import SelectConfig, build_delete, build_merge, build_select
from gapilib.errors import GapiError

logger = logging.getLogger(__name__)

JOB_POLL_INTERVAL = 1.0
LOAD_POLL_INTERVAL = 5.0
INSERT_BATCH_SIZE = 1000
TABLE_EXISTS_MAX_CHECKS = 1000
TABLE_EXISTS_POLL_INTERVAL = 0.1


class BigQueryService:
    """Thin wrapper around a BigQuery client bound to one project and service account

    Args:
        credentials: Service account key, as CredentialsJSON or a plain info dict
        project_id: Project that runs the jobs and owns unqualified datasets

    Example:
        >>> service = BigQueryService(CredentialsJSON.from_file("~/keys/sa.json"), "my-project")
        >>> service.run("DELETE FROM `sales.orders` WHERE Status = 'void'", "deleting void orders")
        >>> value = service.get_value(SelectConfig("sales", "orders", sql_select="COUNT(*)"))
    """

    def __init__(
        self,
        credentials: Optional[Union[CredentialsJSON, dict[str, Any]]],
        project_id: str,
    ) -> None:
        if isinstance(credentials, dict):
            credentials = CredentialsJSON.model_validate(credentials)
        self._credentials = credentials
        self._project_id = project_id
        self._client: Optional[bigquery.Client] = None

    @property
    def project_id(self) -> str:
        return self._project_id

    @property
    def credentials(self) -> Optional[CredentialsJSON]:
        return self._credentials

    def is_valid(self) -> bool:
        """Whether credentials and project id are set"""
        return (
            self._credentials is not None
            and not self._credentials.is_empty()
            and bool(self._project_id)
        )

    def validate(self) -> None:
        """Raise GapiError unless credentials and project id are set"""
        if not self.is_valid():
            raise GapiError("BigQuery credentials and/or project id not set")

    def create_client(self) -> bigquery.Client:
        """Create a new BigQuery client from the service account credentials"""
        self.validate()
        assert self._credentials is not None

        try:
            google_credentials = service_account.Credentials.from_service_account_info(
                self._credentials.to_info()
            )
            return bigquery.Client(project=self._project_id, credentials=google_credentials)
        except (ValueError, GoogleAPIError) as e:
            raise GapiError(e) from e

    @property
    def client(self) -> bigquery.Client:
        """Get the BigQuery client, creating it if needed"""
        if self._client is None:
            self._client = self.create_client()
        return self._client

    def close(self) -> None:
        """Close the cached client, if any"""
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "BigQueryService":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"BigQueryService(project_id='{self._project_id}')"

    def table_id(self, dataset_name: str, table_name: str) -> str:
        """Fully qualified ``project.dataset.table`` id"""
        return f"{self._project_id}.{dataset_name}.{table_name}"

    # tables

    def get_tables(
        self, dataset_name: str, client: Optional[bigquery.Client] = None
    ) -> list[Any]:
        """List all tables in a dataset"""
        client = client or self.client
        try:
            return list(client.list_tables(f"{self._project_id}.{dataset_name}"))
        except GoogleAPIError as e:
            raise GapiError(e) from e

    def table_exists(
        self, dataset_name: str, table_name: str, client: Optional[bigquery.Client] = None
    ) -> bool:
        """Check whether a table exists in a dataset"""
        return any(
            table.table_id == table_name
            for table in self.get_tables(dataset_name, client=client)
        )

    def create_table(
        self,
        dataset_name: str,
        table_name: str,
        model: Any,
        recreate: bool = False,
        client: Optional[bigquery.Client] = None,
    ) -> bigquery.Table:
        """Create a table with the schema inferred from a dataclass row model

        An existing table is kept as is, unless recreate is set in which case it is
        dropped first. After creation the table listing is polled until the new
        table shows up.

        Raises:
            GapiError: If the schema cannot be inferred, an API call fails or the
                table does not show up within TABLE_EXISTS_MAX_CHECKS checks
        """
        client = client or self.client
        table_id = self.table_id(dataset_name, table_name)

        exists = self.table_exists(dataset_name, table_name, client=client)

        try:
            if exists and recreate:
                logger.info("Dropping table %s before recreating it", table_id)
                client.delete_table(table_id)

            if exists and not recreate:
                return client.get_table(table_id)

            try:
                schema = infer_schema(model)
            except TypeError as e:
                raise GapiError(e) from e

            table = client.create_table(bigquery.Table(table_id, schema=schema))
        except GoogleAPIError as e:
            raise GapiError(e) from e

        self._wait_for_table(dataset_name, table_name, client)
        logger.info("Created table %s", table_id)
        return table

    def _wait_for_table(
        self, dataset_name: str, table_name: str, client: bigquery.Client
    ) -> None:
        for _ in range(TABLE_EXISTS_MAX_CHECKS):
            if self.table_exists(dataset_name, table_name, client=client):
                return
            time.sleep(TABLE_EXISTS_POLL_INTERVAL)

        raise GapiError(
            f"Table {table_name} not available in dataset {dataset_name} "
            f"after {TABLE_EXISTS_MAX_CHECKS} checks"
        )

    def delete_table(
        self, dataset_name: str, table_name: str, client: Optional[bigquery.Client] = None
    ) -> None:
        """Drop a table"""
        client = client or self.client
        try:
            client.delete_table(self.table_id(dataset_name, table_name))
        except NotFound as e:
            raise GapiError(
                f"Table {table_name} does not exist in dataset {dataset_name}."
            ) from e
        except GoogleAPIError as e:
            raise GapiError(e) from e

    # queries

    def run(
        self,
        sql: str,
        pending_message: str = "running query",
        parameters: Optional[Sequence[Any]] = None,
        client: Optional[bigquery.Client] = None,
    ) -> bigquery.QueryJob:
        """Run a statement and block until its job is done

        Args:
            sql: Statement to run (DDL, DML, MERGE, ...)
            pending_message: Logged while the job is running
            parameters: Query parameters referenced as ``@name`` in the statement

        Returns:
            The finished QueryJob, e.g. for ``num_dml_affected_rows``

        Raises:
            GapiError: If the job cannot be submitted or finishes with an error
        """
        self.validate()
        client = client or self.client

        job_config = bigquery.QueryJobConfig()
        if parameters:
            job_config.query_parameters = list(parameters)

        try:
            job = client.query(sql, job_config=job_config)
        except GoogleAPIError as e:
            raise GapiError(e) from e

        self._wait_for_job(job, pending_message, JOB_POLL_INTERVAL)
        return job

    def _wait_for_job(self, job: Any, pending_message: str, poll_interval: float) -> None:
        logger.info("%s...", pending_message)

        try:
            while not job.done():
                logger.debug("%s: job %s still running", pending_message, job.job_id)
                time.sleep(poll_interval)
        except GoogleAPIError as e:
            raise GapiError(e) from e

        if job.error_result:
            for error in job.errors or []:
                logger.error("%s: %s", pending_message, error.get("message"))
            raise GapiError(job.error_result.get("message") or job.error_result)

        logger.debug("%s: job %s done", pending_message, job.job_id)

    def select(self, config: SelectConfig) -> QueryResult:
        """Run the SELECT described by config and return its result"""
        return self._select(build_select(config), config.parameters)

    def select_raw(self, sql: str, parameters: Optional[Sequence[Any]] = None) -> QueryResult:
        """Run an arbitrary query and return its result"""
        return self._select(sql, parameters)

    def _select(self, sql: str, parameters: Optional[Sequence[Any]] = None) -> QueryResult:
        self.validate()

        job_config = bigquery.QueryJobConfig()
        if parameters:
            job_config.query_parameters = list(parameters)

        try:
            job = self.client.query(sql, job_config=job_config)
            rows = job.result()
        except GoogleAPIError as e:
            raise GapiError(e) from e

        return QueryResult(_rows=rows, _job=job)

    def delete(self, dataset_name: str, table_name: str, sql_where: str = "") -> bigquery.QueryJob:
        """Delete the rows matching sql_where"""
        return self.run(build_delete(dataset_name, table_name, sql_where), "deleting")

    def merge(
        self,
        model: Any,
        source_table: str,
        target_table: str,
        id_field: str,
        has_ignore_field: bool = False,
    ) -> bigquery.QueryJob:
        """Merge source_table into target_table over the columns of a row model

        Columns ending with ``Json`` and the ``Ignore`` column are skipped; with
        has_ignore_field, source rows where ``Ignore`` is TRUE are left out.
        """
        try:
            sql = build_merge(model, source_table, target_table, id_field, has_ignore_field)
        except (TypeError, ValueError) as e:
            raise GapiError(e) from e
        return self.run(sql, "merging")

    def get_value(self, config: SelectConfig) -> str:
        """First column of the first row as string; empty when there is no row or it is NULL"""
        row = self.select(config).fetch_one()
        if row is None or row[0] is None:
            return ""
        return str(row[0])

    def get_values(self, config: SelectConfig) -> list[str]:
        """Every value of every row as string, row by row; NULL becomes an empty string"""
        values: list[str] = []
        for row in self.select(config):
            values.extend("" if value is None else str(value) for value in row.values())
        return values

    def get_struct(
        self, config: SelectConfig, model: Optional[type] = None
    ) -> tuple[Optional[Any], int]:
        """First row mapped onto a dataclass row model, and the total row count

        The model defaults to ``config.model``. The instance is None when there is no row.
        """
        if config is None:
            raise GapiError("SelectConfig must not be None")
        model = model or config.model
        if model is None:
            raise GapiError("No row model given")

        result = self.select(config)
        row = result.fetch_one()
        if row is None:
            return None, result.total_rows

        return row_to_model(row, model), result.total_rows

    # loading

    def insert(
        self,
        table: Union[bigquery.Table, str],
        rows: Sequence[Any],
        client: Optional[bigquery.Client] = None,
    ) -> int:
        """Stream rows (dataclass instances or dicts) into a table in batches

        Returns:
            Number of rows inserted
        """
        self.validate()
        client = client or self.client

        try:
            if isinstance(table, str):
                table = client.get_table(table)

            inserted = 0
            for start in range(0, len(rows), INSERT_BATCH_SIZE):
                batch = [model_to_row(row) for row in rows[start:start + INSERT_BATCH_SIZE]]
                errors = client.insert_rows(table, batch)
                if errors:
                    raise GapiError(f"Inserting rows into {table.table_id} failed: {errors}")
                inserted += len(batch)
        except GoogleAPIError as e:
            raise GapiError(e) from e

        logger.debug("Inserted %d rows into %s", inserted, table.table_id)
        return inserted

    def insert_slice(
        self,
        dataset_name: str,
        rows: Sequence[Any],
        model: Any,
        table_name: Optional[str] = None,
    ) -> str:
        """Create the table for a row model when missing and stream rows into it

        Without table_name a ``temp_<uuid>`` table is created.

        Returns:
            Name of the table the rows went into
        """
        self.validate()

        if not table_name:
            table_name = "temp_" + uuid.uuid4().hex

        table = self.create_table(dataset_name, table_name, model, recreate=False)
        self.insert(table, rows)
        return table_name

    def copy_object_to_table(
        self,
        blob: storage.Blob,
        dataset_name: str,
        table_name: str,
        model: Any,
        truncate_table: bool = False,
        delete_object: bool = False,
    ) -> bigquery.LoadJob:
        """Load a newline-delimited JSON object from Cloud Storage into a table

        The table is created when missing, using the schema inferred from model.

        Args:
            blob: Cloud Storage object to load
            truncate_table: Replace the table contents instead of appending
            delete_object: Delete the object once the load succeeded
        """
        self.validate()

        try:
            schema = infer_schema(model)
        except TypeError as e:
            raise GapiError(e) from e

        job_config = bigquery.LoadJobConfig(
            source_format=bigquery.SourceFormat.NEWLINE_DELIMITED_JSON,
            schema=schema,
            create_disposition=bigquery.CreateDisposition.CREATE_IF_NEEDED,
            write_disposition=(
                bigquery.WriteDisposition.WRITE_TRUNCATE if truncate_table
                else bigquery.WriteDisposition.WRITE_APPEND
            ),
        )

        uri = f"gs://{blob.bucket.name}/{blob.name}"
        try:
            job = self.client.load_table_from_uri(
                uri, self.table_id(dataset_name, table_name), job_config=job_config
            )
        except GoogleAPIError as e:
            raise GapiError(e) from e

        try:
            self._wait_for_job(job, f"loading {uri}", LOAD_POLL_INTERVAL)
        except GapiError as e:
            raise GapiError(f"Job failed with error {e.message}") from e

        if delete_object:
            try:
                blob.delete()
            except GoogleAPIError as e:
                raise GapiError(e) from e

        return job

