"""OAuth2 token persistence in a BigQuery table

The token table holds one row per (Api, ClientID):

    Api STRING, ClientID STRING, TokenType STRING, AccessToken STRING,
    RefreshToken STRING, Expiry TIMESTAMP, Scope STRING

Tokens are upserted with a MERGE. Present values are bound as query parameters,
absent ones are written as NULL literals.
"""

import logging
from dataclasses import dataclass
from datetime import timezone
from typing import Any, Optional

from google.cloud import bigquery

from gapilib.bigquery.nulls import (
    NullString,
    NullTimestamp,
    null_string_to_string,
    null_timestamp_to_time,
)
from gapilib.bigquery.service import BigQueryService
from gapilib.bigquery.sql import SelectConfig, table_reference
from gapilib.errors import GapiError
from gapilib.oauth2.token import Token

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_TABLE = "gapilib.oauth2"

NULL_STRING = "NULLIF('','')"
NULL_TIMESTAMP = "TIMESTAMP(NULL)"

TOKEN_COLUMNS = "TokenType, AccessToken, RefreshToken, Expiry, Scope"


@dataclass(frozen=True)
class TokenRow:
    """Token columns as read from the token table"""
    TokenType: NullString = NullString()
    AccessToken: NullString = NullString()
    RefreshToken: NullString = NullString()
    Expiry: NullTimestamp = NullTimestamp()
    Scope: NullString = NullString()

    def to_token(self) -> Token:
        expiry = null_timestamp_to_time(self.Expiry)
        if expiry is not None:
            expiry = expiry.astimezone(timezone.utc)

        return Token(
            access_token=null_string_to_string(self.AccessToken),
            scope=null_string_to_string(self.Scope),
            token_type=null_string_to_string(self.TokenType),
            expires_in=None,
            refresh_token=null_string_to_string(self.RefreshToken),
            expiry=expiry,
        )


def _key_parameters(api_name: str, client_id: str) -> list[Any]:
    return [
        bigquery.ScalarQueryParameter("api", "STRING", api_name),
        bigquery.ScalarQueryParameter("client_id", "STRING", client_id),
    ]


def build_token_merge(
    table: str, api_name: str, client_id: str, token: Token
) -> tuple[str, list[Any]]:
    """Build the MERGE that upserts a token row, with its query parameters

    AccessToken and Expiry are always overwritten. TokenType, RefreshToken and
    Scope are only overwritten when the token carries a non-empty value, so a
    refresh response without refresh token keeps the stored one.
    """
    parameters = _key_parameters(api_name, client_id)
    sql_update = ["AccessToken = SOURCE.AccessToken", "Expiry = SOURCE.Expiry"]

    def string_value(column: str, name: str, value: Optional[str], update: bool) -> str:
        if not value:
            return NULL_STRING
        parameters.append(bigquery.ScalarQueryParameter(name, "STRING", value))
        if update:
            sql_update.append(f"{column} = SOURCE.{column}")
        return f"@{name}"

    token_type = string_value("TokenType", "token_type", token.token_type, True)
    access_token = string_value("AccessToken", "access_token", token.access_token, False)
    refresh_token = string_value("RefreshToken", "refresh_token", token.refresh_token, True)

    expiry = NULL_TIMESTAMP
    if token.expiry is not None:
        parameters.append(
            bigquery.ScalarQueryParameter("expiry", "TIMESTAMP", token.expiry.astimezone(timezone.utc))
        )
        expiry = "@expiry"

    scope = string_value("Scope", "scope", token.scope, True)

    sql = (
        f"MERGE {table_reference('', table)} AS TARGET"
        " USING (SELECT @api AS Api, @client_id AS ClientID,"
        f" {token_type} AS TokenType,"
        f" {access_token} AS AccessToken,"
        f" {refresh_token} AS RefreshToken,"
        f" {expiry} AS Expiry,"
        f" {scope} AS Scope) AS SOURCE"
        " ON TARGET.Api = SOURCE.Api AND TARGET.ClientID = SOURCE.ClientID"
        f" WHEN MATCHED THEN UPDATE SET {', '.join(sql_update)}"
        " WHEN NOT MATCHED BY TARGET THEN"
        " INSERT (Api, ClientID, TokenType, AccessToken, RefreshToken, Expiry, Scope)"
        " VALUES (SOURCE.Api, SOURCE.ClientID, SOURCE.TokenType, SOURCE.AccessToken,"
        " SOURCE.RefreshToken, SOURCE.Expiry, SOURCE.Scope)"
    )

    return sql, parameters


class TokenTable:
    """Token source persisting the token of one (API, client) pair in BigQuery

    Example:
        >>> bq = BigQueryService(CredentialsJSON.from_file("~/keys/sa.json"), "my-project")
        >>> tokens = TokenTable("searchconsole", "1234.apps.googleusercontent.com", bq)
        >>> tokens.retrieve_token()
        >>> tokens.token()
        Token(token_type='Bearer', scope='...', expiry=..., has_refresh_token=True)
    """

    def __init__(
        self,
        api_name: str,
        client_id: str,
        service: BigQueryService,
        table: str = DEFAULT_TOKEN_TABLE,
    ) -> None:
        if service is None:
            raise GapiError("BigQueryService must not be None")

        self._api_name = api_name
        self._client_id = client_id
        self._service = service
        self._table = table
        self._token: Optional[Token] = None

    @property
    def table(self) -> str:
        return self._table

    def token(self) -> Optional[Token]:
        return self._token

    def new_token(self) -> Optional[Token]:
        """The token table cannot mint tokens; authorize through the OAuth2 flow instead"""
        return None

    def set_token(self, token: Optional[Token], save: bool = False) -> None:
        self._token = token

        if save:
            self.save_token()

    def retrieve_token(self) -> None:
        """Load the stored token; without a stored row the current token is cleared"""
        config = SelectConfig(
            dataset_name="",
            table_or_view_name=self._table,
            sql_select=TOKEN_COLUMNS,
            sql_where="Api = @api AND ClientID = @client_id",
            parameters=_key_parameters(self._api_name, self._client_id),
        )

        row, _ = self._service.get_struct(config, TokenRow)
        if row is None:
            logger.debug("No stored token for %s / %s", self._api_name, self._client_id)
            self._token = None
            return

        self._token = row.to_token()

    def save_token(self) -> None:
        """Upsert the current token; does nothing without a token"""
        if self._token is None:
            return

        sql, parameters = build_token_merge(self._table, self._api_name, self._client_id, self._token)
        self._service.run(sql, "saving token", parameters=parameters)

    def __repr__(self) -> str:
        return f"TokenTable(api_name='{self._api_name}', table='{self._table}')"


def get_token(
    api_name: str,
    client_id: str,
    service: BigQueryService,
    table: str = DEFAULT_TOKEN_TABLE,
) -> Optional[Token]:
    """Read the stored token of an (API, client) pair, None when there is none"""
    token_table = TokenTable(api_name, client_id, service, table=table)
    token_table.retrieve_token()
    return token_table.token()


def save_token(
    api_name: str,
    client_id: str,
    token: Optional[Token],
    service: BigQueryService,
    table: str = DEFAULT_TOKEN_TABLE,
) -> None:
    """Store the token of an (API, client) pair; a None token is not stored"""
    TokenTable(api_name, client_id, service, table=table).set_token(token, save=True)
