"""Security helpers: field cipher, envelope codec and key sources for fieldcrypt.

This package provides:
- AES-CBC field encryption with per-value random IVs and an optional
  HMAC-SHA256 tag (encrypt-then-MAC)
- Base64 envelope framing for storing ciphertext as text
- Key sources: static, environment, OS keystore (keyring), Argon2id password
"""

from .encryption import FieldCipher
from .envelope import IV_SIZE, Envelope, decode_envelope
from .kdf import Argon2Params, generate_salt, derive_key
from .keys import (
    KeySource,
    StaticKeySource,
    EnvironmentKeySource,
    FileKeySource,
    KeyringKeySource,
    PasswordKeySource,
    generate_key,
)
from .keystore import save_key, load_key, delete_key

__all__ = [
    "FieldCipher",
    "IV_SIZE",
    "Envelope",
    "decode_envelope",
    "Argon2Params",
    "generate_salt",
    "derive_key",
    "KeySource",
    "StaticKeySource",
    "EnvironmentKeySource",
    "FileKeySource",
    "KeyringKeySource",
    "PasswordKeySource",
    "generate_key",
    "save_key",
    "load_key",
    "delete_key",
]
