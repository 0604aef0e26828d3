"""Cipher configuration with environment overrides."""

from __future__ import annotations

from dataclasses import dataclass
import os

from fieldcrypt.core.exceptions import ConfigurationError


ALLOWED_KEY_SIZES = (16, 24, 32)

ENV_KEY_SIZE = "FIELDCRYPT_KEY_SIZE"
ENV_AUTHENTICATE = "FIELDCRYPT_AUTHENTICATE"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class CipherConfig:
    """
    Settings shared by every :class:`~fieldcrypt.security.encryption.FieldCipher`.

    - ``key_size``: AES key length in bytes; the held key must match exactly.
    - ``authenticate``: append an HMAC-SHA256 tag to each envelope
      (encrypt-then-MAC). Turn off only to read or write envelopes in the
      plain ``iv || AES-CBC`` layout used by older data.
    - ``hkdf_info``: label prefix for splitting the key into cipher and MAC
      subkeys in authenticated mode.
    """

    key_size: int = 32
    authenticate: bool = True
    hkdf_info: bytes = b"fieldcrypt"

    def __post_init__(self):
        if self.key_size not in ALLOWED_KEY_SIZES:
            raise ConfigurationError(
                f"key_size must be one of {ALLOWED_KEY_SIZES}, got {self.key_size}"
            )

    @classmethod
    def from_env(cls) -> "CipherConfig":
        """
        Build a config from ``FIELDCRYPT_*`` environment variables.

        Unset variables fall back to the defaults above.
        """
        kwargs = {}

        key_size = os.getenv(ENV_KEY_SIZE)
        if key_size:
            try:
                kwargs["key_size"] = int(key_size)
            except ValueError:
                raise ConfigurationError(f"{ENV_KEY_SIZE} must be an integer") from None

        authenticate = os.getenv(ENV_AUTHENTICATE)
        if authenticate:
            flag = authenticate.strip().lower()
            if flag in _TRUE:
                kwargs["authenticate"] = True
            elif flag in _FALSE:
                kwargs["authenticate"] = False
            else:
                raise ConfigurationError(f"{ENV_AUTHENTICATE} must be a boolean flag")

        return cls(**kwargs)
