"""
Local persistence — credentials in ``config.json``, mappings in ``mappings.json``.

Both files live in the config directory (``~/.questrade-ynab`` by default),
which is created owner-only; files are written with 0600 permissions.

``config.json`` is versioned. Version 1 nests the two services::

    {"version": 1,
     "questrade": {"refresh_token": ..., "access_token": ..., "api_server": ..., "expires_in": ...},
     "ynab": {"access_token": ..., "budget_id": ...}}

Files without a ``version`` key use the older flat layout
(``questrade_refresh_token``, ``ynab_budget_id``, ...) and are read as
version 0; the next save rewrites them as version 1.

With ``security.encrypt_at_rest`` the body is Fernet-encrypted with a
machine-bound key. Loading accepts both encrypted and plain files.
"""

from __future__ import annotations

import base64
import json
import logging
import os
import socket
from pathlib import Path
from typing import Any, Protocol

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from questrade_ynab.config import SyncConfig
from questrade_ynab.errors import ConfigError, DecodeError, PersistenceError

logger = logging.getLogger("questrade_ynab.storage")

CURRENT_VERSION = 1

_LEGACY_KEYS = {
    "questrade_refresh_token": ("questrade", "refresh_token"),
    "questrade_access_token": ("questrade", "access_token"),
    "questrade_api_server": ("questrade", "api_server"),
    "questrade_expires_in": ("questrade", "expires_in"),
    "ynab_access_token": ("ynab", "access_token"),
    "ynab_budget_id": ("ynab", "budget_id"),
}


# ---------------------------------------------------------------------------
# Stored records
# ---------------------------------------------------------------------------


class QuestradeRecord(BaseModel):
    refresh_token: str = ""
    access_token: str = ""
    api_server: str = ""
    expires_in: int = 0


class YNABRecord(BaseModel):
    access_token: str = ""
    budget_id: str = ""


class StoredCredentials(BaseModel):
    """Decoded contents of ``config.json``."""

    version: int = CURRENT_VERSION
    questrade: QuestradeRecord = Field(default_factory=QuestradeRecord)
    ynab: YNABRecord = Field(default_factory=YNABRecord)

    @classmethod
    def decode(cls, data: Any) -> StoredCredentials:
        """Decode a parsed ``config.json`` body, upgrading old layouts.

        Raises:
            DecodeError: Unknown version or fields of the wrong type.
        """
        if not isinstance(data, dict):
            raise DecodeError("config.json must contain a JSON object")

        version = data.get("version", 0)
        if version == 0:
            data = _upgrade_legacy(data)
        elif version != CURRENT_VERSION:
            raise DecodeError(f"Unsupported config.json version: {version!r}")

        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            raise DecodeError(f"Invalid config.json: {e}") from e

    def encode(self) -> dict[str, Any]:
        return self.model_dump()


def _upgrade_legacy(data: dict[str, Any]) -> dict[str, Any]:
    upgraded: dict[str, Any] = {"version": CURRENT_VERSION, "questrade": {}, "ynab": {}}
    for key, (section, field) in _LEGACY_KEYS.items():
        value = data.get(key)
        if value is not None:
            upgraded[section][field] = value
    # JSON numbers for expires_in arrive as floats in files written by hand
    expires_in = upgraded["questrade"].get("expires_in")
    if isinstance(expires_in, float):
        upgraded["questrade"]["expires_in"] = int(expires_in)
    return upgraded


# ---------------------------------------------------------------------------
# Encryption helpers
# ---------------------------------------------------------------------------


def _get_encryption_key(config_dir: Path) -> bytes:
    """Derive an encryption key from machine-specific data.

    Uses the hostname plus a salt stored next to the config, so an encrypted
    config.json is only readable on the machine that wrote it.
    """
    key_file = config_dir / ".key_salt"

    if key_file.exists():
        salt = key_file.read_bytes()
    else:
        salt = os.urandom(16)
        key_file.parent.mkdir(parents=True, exist_ok=True)
        key_file.write_bytes(salt)
        key_file.chmod(0o600)

    password = socket.gethostname().encode() + b"questrade-ynab-v1"

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=480000,
    )
    return base64.urlsafe_b64encode(kdf.derive(password))


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------


class PersistenceGateway(Protocol):
    """Durable storage for credential and mapping state."""

    def load_credentials(self) -> StoredCredentials: ...

    def save_credentials(self, stored: StoredCredentials) -> None: ...

    def save_questrade_record(self, record: dict[str, Any]) -> None: ...

    def load_mapping(self) -> dict[str, str]: ...

    def save_mapping(self, mapping: dict[str, str]) -> None: ...


class JSONFileGateway:
    """``PersistenceGateway`` backed by JSON files in the config directory."""

    def __init__(self, config: SyncConfig) -> None:
        self.config_dir = config.config_dir
        self.credentials_file = config.credentials_file
        self.mappings_file = config.mappings_file
        self.encrypt = config.security.encrypt_at_rest
        self._fernet: Fernet | None = None

    def _cipher(self) -> Fernet:
        if self._fernet is None:
            try:
                key = _get_encryption_key(self.config_dir)
            except OSError as e:
                raise PersistenceError(f"Cannot set up encryption key in {self.config_dir}: {e}") from e
            self._fernet = Fernet(key)
        return self._fernet

    def ensure_config_dir(self) -> Path:
        try:
            self.config_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot create config directory {self.config_dir}: {e}") from e
        return self.config_dir

    def _write(self, path: Path, content: str) -> None:
        self.ensure_config_dir()
        tmp = path.with_name(path.name + ".tmp")
        try:
            tmp.write_text(content)
            tmp.chmod(0o600)
            tmp.replace(path)
        except OSError as e:
            raise PersistenceError(f"Cannot write {path}: {e}") from e

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def has_credentials(self) -> bool:
        return self.credentials_file.exists()

    def read_raw_credentials(self) -> dict[str, Any] | None:
        """Parsed ``config.json`` as stored, or None when there is none."""
        if not self.credentials_file.exists():
            return None
        try:
            content = self.credentials_file.read_text()
        except OSError as e:
            raise ConfigError(f"Cannot read {self.credentials_file}: {e}") from e

        try:
            return json.loads(content)
        except json.JSONDecodeError:
            pass

        # Not plain JSON, so it should be an encrypted body
        try:
            decrypted = self._cipher().decrypt(content.strip().encode()).decode()
        except InvalidToken as e:
            raise DecodeError(
                f"{self.credentials_file} is neither JSON nor readable with this machine's key"
            ) from e
        try:
            return json.loads(decrypted)
        except json.JSONDecodeError as e:
            raise DecodeError(f"Invalid JSON in {self.credentials_file}: {e}") from e

    def load_credentials(self) -> StoredCredentials:
        data = self.read_raw_credentials()
        if data is None:
            logger.debug("No %s found; starting empty", self.credentials_file)
            return StoredCredentials()
        stored = StoredCredentials.decode(data)
        logger.debug("Loaded credentials from %s", self.credentials_file)
        return stored

    def save_credentials(self, stored: StoredCredentials) -> None:
        body = json.dumps(stored.encode(), indent=2)
        if self.encrypt:
            body = self._cipher().encrypt(body.encode()).decode()
        self._write(self.credentials_file, body)
        logger.debug("Saved credentials to %s", self.credentials_file)

    def save_questrade_record(self, record: dict[str, Any]) -> None:
        """Replace the Questrade section, keeping the YNAB section as is."""
        try:
            stored = self.load_credentials()
        except (ConfigError, DecodeError) as e:
            raise PersistenceError(f"Cannot update {self.credentials_file}: {e}") from e
        stored.questrade = QuestradeRecord.model_validate(record)
        self.save_credentials(stored)

    # ------------------------------------------------------------------
    # Mappings
    # ------------------------------------------------------------------

    def has_mapping(self) -> bool:
        return self.mappings_file.exists()

    def load_mapping(self) -> dict[str, str]:
        """Read ``mappings.json``.

        Raises:
            ConfigError: The file does not exist.
            DecodeError: The file is not a flat string-to-string object.
        """
        if not self.mappings_file.exists():
            raise ConfigError(
                f"No account mappings found at {self.mappings_file}. "
                "Run 'questrade-ynab mapping set' first."
            )
        try:
            data = json.loads(self.mappings_file.read_text())
        except OSError as e:
            raise ConfigError(f"Cannot read {self.mappings_file}: {e}") from e
        except json.JSONDecodeError as e:
            raise DecodeError(f"Invalid JSON in {self.mappings_file}: {e}") from e

        if not isinstance(data, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in data.items()
        ):
            raise DecodeError(f"{self.mappings_file} must map account numbers to YNAB account ids")
        return data

    def save_mapping(self, mapping: dict[str, str]) -> None:
        self._write(self.mappings_file, json.dumps(mapping, indent=2))
        logger.info("Saved %d account mapping(s) to %s", len(mapping), self.mappings_file)
