"""
Error types raised by questrade-ynab.

Everything the tool raises on purpose derives from ``QuestradeYNABError`` so
the CLI can report it without a traceback.
"""

from __future__ import annotations


class QuestradeYNABError(Exception):
    """Base class for all expected failures."""


class ConfigError(QuestradeYNABError):
    """A local config or mapping file is missing or unusable."""


class PersistenceError(ConfigError):
    """Writing local state to disk failed."""


class CredentialError(QuestradeYNABError):
    """No usable credential could be obtained."""


class MissingCredential(CredentialError):
    """No token is available and the user declined to supply one."""


class RefreshExhausted(CredentialError):
    """Refresh failed again after the one interactive recovery attempt."""


class AuthError(CredentialError):
    """A data call was rejected with 401 Unauthorized."""


class ValidationError(QuestradeYNABError):
    """The live access-token check could not reach a verdict."""


class RefreshError(QuestradeYNABError):
    """A single refresh-token exchange failed."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RemoteError(QuestradeYNABError):
    """A remote API returned an unexpected non-2xx status."""

    def __init__(self, status_code: int, detail: str = "", *, service: str = "API") -> None:
        self.status_code = status_code
        self.detail = detail
        self.service = service
        message = f"{service} returned status {status_code}"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class DecodeError(QuestradeYNABError):
    """A response or stored file could not be decoded."""


class MalformedResponse(DecodeError):
    """A response decoded but lacks a required field."""


class TransportError(QuestradeYNABError):
    """A request did not complete (connection failure, timeout)."""
