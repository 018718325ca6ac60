"""
Questrade credential state.

``Credential`` is the in-memory token set; ``TokenStore`` wraps it with the
accessors the lifecycle manager uses, plus conversion to and from the
persisted record (which keeps only a lifetime, not an absolute expiry).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def mask_token(token: str, *, visible: int = 4) -> str:
    """Hide all but the last few characters of a secret."""
    if not token:
        return ""
    if len(token) <= visible:
        return "*" * len(token)
    return "*" * (len(token) - visible) + token[-visible:]


@dataclass
class Credential:
    """Questrade token set. Mutated in place on every successful refresh."""

    refresh_token: str
    access_token: str = ""
    api_server: str = ""
    expires_at: datetime | None = None
    expires_in: int = 0

    @property
    def has_cached_access(self) -> bool:
        """True when access token, API server and expiry are all present."""
        return bool(self.access_token and self.api_server and self.expires_at is not None)

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return True
        return (now or _utcnow()) >= self.expires_at

    def is_usable(self, now: datetime | None = None) -> bool:
        """True when the access token can be presented right now."""
        return self.has_cached_access and not self.is_expired(now)

    def auth_header(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    def __repr__(self) -> str:
        return (
            f"Credential(refresh_token={mask_token(self.refresh_token)!r}, "
            f"access_token={mask_token(self.access_token)!r}, "
            f"api_server={self.api_server!r}, expires_at={self.expires_at!r})"
        )


class TokenStore:
    """Holds the current ``Credential`` for one process."""

    def __init__(self, credential: Credential | None = None) -> None:
        self._credential = credential or Credential(refresh_token="")

    @classmethod
    def from_record(cls, record: dict[str, Any], *, loaded_at: datetime | None = None) -> TokenStore:
        """Build a store from the persisted Questrade record.

        The record stores ``expires_in`` seconds; the absolute expiry is
        computed from the moment it is loaded.
        """
        loaded_at = loaded_at or _utcnow()
        expires_in = int(record.get("expires_in") or 0)
        access_token = record.get("access_token") or ""
        api_server = record.get("api_server") or ""
        expires_at = None
        if access_token and api_server and expires_in > 0:
            expires_at = loaded_at + timedelta(seconds=expires_in)
        return cls(
            Credential(
                refresh_token=record.get("refresh_token") or "",
                access_token=access_token,
                api_server=api_server,
                expires_at=expires_at,
                expires_in=expires_in if expires_at else 0,
            )
        )

    def to_record(self) -> dict[str, Any]:
        cred = self._credential
        return {
            "refresh_token": cred.refresh_token,
            "access_token": cred.access_token,
            "api_server": cred.api_server,
            "expires_in": cred.expires_in,
        }

    @property
    def credential(self) -> Credential:
        return self._credential

    @property
    def refresh_token(self) -> str:
        return self._credential.refresh_token

    @property
    def access_token(self) -> str:
        return self._credential.access_token

    @property
    def api_server(self) -> str:
        return self._credential.api_server

    @property
    def expires_at(self) -> datetime | None:
        return self._credential.expires_at

    def set_refresh_token(self, token: str) -> None:
        self._credential.refresh_token = token

    def apply_refresh(
        self,
        *,
        access_token: str,
        api_server: str,
        expires_in: int,
        refresh_token: str = "",
        now: datetime | None = None,
    ) -> Credential:
        """Overwrite the cached access fields after a successful exchange.

        The refresh token only changes when the endpoint rotated it.
        """
        cred = self._credential
        cred.access_token = access_token
        cred.api_server = api_server
        cred.expires_in = expires_in
        cred.expires_at = (now or _utcnow()) + timedelta(seconds=expires_in)
        if refresh_token:
            cred.refresh_token = refresh_token
        return cred

    def clear_access(self) -> None:
        """Forget the cached access token so the next check refreshes."""
        cred = self._credential
        cred.access_token = ""
        cred.api_server = ""
        cred.expires_at = None
        cred.expires_in = 0
