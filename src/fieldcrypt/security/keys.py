"""Key sources that hand a field key to :class:`FieldCipher`.

A key source only answers "what are the key bytes right now". It returns
``None`` when it has no key and raises :class:`KeyUnavailableError` when the
backing store fails; length checks happen in the cipher constructor.
"""
from __future__ import annotations

import base64
import binascii
import logging
import os
from pathlib import Path
from typing import Dict, Optional, Protocol, runtime_checkable

from fieldcrypt.core.exceptions import KeyUnavailableError

from .kdf import Argon2Params, derive_key
from .keystore import assess_keyring_backend, load_key as keystore_load, save_key as keystore_save

logger = logging.getLogger(__name__)

ENV_KEY = "FIELDCRYPT_KEY"


def generate_key(size: int = 32) -> bytes:
    """Return ``size`` bytes of fresh key material from the OS CSPRNG."""
    return os.urandom(size)


@runtime_checkable
class KeySource(Protocol):
    def load_key(self) -> Optional[bytes]:
        ...


class StaticKeySource:
    """Hands out a key the caller already holds (tests, migrations)."""

    def __init__(self, key: Optional[bytes]):
        self._key = key

    def load_key(self) -> Optional[bytes]:
        return self._key

    def __repr__(self) -> str:
        return "StaticKeySource(<redacted>)"


class EnvironmentKeySource:
    """Reads a base64-encoded key from an environment variable."""

    def __init__(self, variable: str = ENV_KEY):
        self.variable = variable

    def load_key(self) -> Optional[bytes]:
        raw = os.getenv(self.variable)
        if not raw:
            return None
        try:
            return base64.b64decode(raw.strip(), validate=True)
        except (binascii.Error, ValueError):
            raise KeyUnavailableError(f"{self.variable} is not valid base64") from None


class FileKeySource:
    """Reads a base64-encoded key from a text file (one line)."""

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()

    def load_key(self) -> Optional[bytes]:
        if not self.path.exists():
            return None
        try:
            raw = self.path.read_text(encoding="utf-8").strip()
        except (OSError, UnicodeDecodeError) as e:
            raise KeyUnavailableError(f"key file {self.path.name} is unreadable") from e
        if not raw:
            return None
        try:
            return base64.b64decode(raw, validate=True)
        except (binascii.Error, ValueError):
            raise KeyUnavailableError(f"key file {self.path.name} is not valid base64") from None


class KeyringKeySource:
    """
    Loads the field key from the OS keystore.

    With ``create_if_missing`` a fresh key is generated and stored on first
    use, so an installation provisions its key once and reuses it afterwards.
    Storing is refused on backends that look insecure unless ``force`` is set.
    """

    def __init__(
        self,
        service: str,
        account: str,
        key_size: int = 32,
        create_if_missing: bool = False,
        force: bool = False,
    ):
        self.service = service
        self.account = account
        self.key_size = key_size
        self.create_if_missing = create_if_missing
        self.force = force

    def load_key(self) -> Optional[bytes]:
        try:
            key = keystore_load(self.service, self.account)
        except Exception as e:
            # keyring backends raise a wide variety of errors (DBus, Keychain, ...)
            raise KeyUnavailableError(f"keystore lookup failed: {e}") from e

        if key is not None or not self.create_if_missing:
            return key

        if not self.force:
            secure, msg = assess_keyring_backend()
            if not secure:
                raise KeyUnavailableError(f"refusing to store field key in OS keystore: {msg}")

        key = generate_key(self.key_size)
        try:
            keystore_save(self.service, self.account, key)
        except Exception as e:
            raise KeyUnavailableError(f"keystore write failed: {e}") from e
        logger.info("Provisioned new field key in keystore service=%s", self.service)
        return key


class PasswordKeySource:
    """
    Derives the field key from a password with Argon2id.

    When no salt is given a fresh one is drawn; the caller must then persist
    :meth:`params` to derive the same key again.
    """

    def __init__(
        self,
        password: bytes | str,
        salt: Optional[bytes] = None,
        key_size: int = 32,
        time_cost: int = 3,
        memory_cost: int = 65536,
        parallelism: int = 1,
    ):
        if isinstance(password, str):
            password = password.encode("utf-8")
        self._password = password
        self.key_size = key_size
        if salt is None:
            self.kdf = Argon2Params.fresh(time_cost, memory_cost, parallelism)
        else:
            self.kdf = Argon2Params(salt, time_cost, memory_cost, parallelism)

    @property
    def salt(self) -> bytes:
        return self.kdf.salt

    @classmethod
    def from_params(cls, password: bytes | str, params: Dict, key_size: int = 32) -> "PasswordKeySource":
        kdf = Argon2Params.from_dict(params)
        return cls(
            password,
            salt=kdf.salt,
            key_size=key_size,
            time_cost=kdf.time_cost,
            memory_cost=kdf.memory_cost,
            parallelism=kdf.parallelism,
        )

    def params(self) -> Dict:
        return self.kdf.to_dict()

    def load_key(self) -> Optional[bytes]:
        if not self._password:
            return None
        return derive_key(self._password, self.kdf, key_len=self.key_size)

    def __repr__(self) -> str:
        return f"PasswordKeySource(key_size={self.key_size})"
