"""OAuth2 token and the token source protocol used to persist it"""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol, runtime_checkable


@dataclass(repr=False)
class Token:
    """OAuth2 credential tuple

    Expiry is always timezone-aware; naive datetimes are taken as UTC.
    """
    access_token: Optional[str] = None
    scope: Optional[str] = None
    token_type: Optional[str] = None
    expires_in: Optional[int] = None
    refresh_token: Optional[str] = None
    expiry: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.expiry is not None and self.expiry.tzinfo is None:
            self.expiry = self.expiry.replace(tzinfo=timezone.utc)

    def in_utc(self) -> "Token":
        """Copy of the token with expiry converted to UTC"""
        if self.expiry is None:
            return replace(self)
        return replace(self, expiry=self.expiry.astimezone(timezone.utc))

    def is_expired(self, margin: timedelta = timedelta(0), now: Optional[datetime] = None) -> bool:
        """Whether the token expires within margin from now; a token without expiry never does"""
        if self.expiry is None:
            return False
        now = now or datetime.now(timezone.utc)
        return self.expiry - margin <= now

    def is_valid(self, margin: timedelta = timedelta(0)) -> bool:
        """Whether the token has an access token that does not expire within margin"""
        return bool(self.access_token) and not self.is_expired(margin)

    def __repr__(self) -> str:
        """String representation without the secrets"""
        return (
            f"Token(token_type={self.token_type!r}, scope={self.scope!r}, "
            f"expiry={self.expiry!r}, has_refresh_token={bool(self.refresh_token)})"
        )


@runtime_checkable
class TokenSource(Protocol):
    """Where an OAuth2 service keeps its token between requests and processes"""

    def token(self) -> Optional[Token]:
        """The current token, without loading it"""
        ...

    def new_token(self) -> Optional[Token]:
        """A token obtained outside of the authorization flow, if the source can make one"""
        ...

    def set_token(self, token: Optional[Token], save: bool) -> None:
        """Replace the current token and persist it when save is set"""
        ...

    def retrieve_token(self) -> None:
        """Load the persisted token into the source"""
        ...

    def save_token(self) -> None:
        """Persist the current token"""
        ...


class MemoryTokenSource:
    """Token source that keeps the token in memory only"""

    def __init__(self, token: Optional[Token] = None) -> None:
        self._token = token

    def token(self) -> Optional[Token]:
        return self._token

    def new_token(self) -> Optional[Token]:
        return None

    def set_token(self, token: Optional[Token], save: bool) -> None:
        self._token = token

    def retrieve_token(self) -> None:
        pass

    def save_token(self) -> None:
        pass
