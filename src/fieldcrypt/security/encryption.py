"""
Field-level encryption for record values stored as text.

One :class:`FieldCipher` owns one symmetric key for its whole lifetime and
turns short strings (notes, identifiers, JSON blobs) into Base64 envelopes
and back. It knows nothing about where keys come from or where envelopes are
stored; :mod:`fieldcrypt.security.keys` and the callers handle that.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Optional

import hashlib
import hmac
import json
import logging
import os
import threading

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from fieldcrypt.core.config import CipherConfig
from fieldcrypt.core.exceptions import (
    CipherError,
    DecryptionFailedError,
    KeyUnavailableError,
    ProviderError,
)
from fieldcrypt.core.models import CipherResult, Operation

from .envelope import IV_SIZE, Envelope, decode_envelope
from .keys import KeySource

logger = logging.getLogger(__name__)

TAG_SIZE = 32
MAC_KEY_SIZE = 32


class FieldCipher:
    """
    AES-CBC field cipher with a fresh random IV per value.

    Every envelope is ``base64(iv || ciphertext)``. In authenticated mode
    (the default) the ciphertext region ends with an HMAC-SHA256 tag over
    ``iv || aes_ciphertext``, computed with a subkey split off the held key
    by HKDF, and the tag is checked before any decryption happens. With
    ``CipherConfig(authenticate=False)`` the raw key drives AES-CBC directly
    and tampering is only caught when it breaks the PKCS7 padding.

    ``encrypt``/``decrypt`` never raise for cipher failures; they return a
    :class:`~fieldcrypt.core.models.CipherResult` whose ``error`` names the
    failure kind. Empty or ``None`` input is a success with an empty value.

    Encrypt/decrypt may run concurrently from any number of threads.
    :meth:`clear` waits for in-flight calls, then zeroes the key; every call
    after that reports ``KEY_UNAVAILABLE``.
    """

    def __init__(self, key: Optional[bytes], config: Optional[CipherConfig] = None):
        self.config = config if config is not None else CipherConfig()

        if key is None:
            raise KeyUnavailableError("no field key available")
        if not isinstance(key, (bytes, bytearray, memoryview)):
            raise KeyUnavailableError("field key must be bytes")
        if len(key) != self.config.key_size:
            raise KeyUnavailableError(f"field key must be exactly {self.config.key_size} bytes")

        self._key = bytearray(key)
        self._cond = threading.Condition()
        self._active = 0
        self._cleared = False

        try:
            self._cipher_key, self._mac_key = self._split_key()
            # Fail at construction if the backend rejects AES-CBC with this key.
            Cipher(algorithms.AES(bytes(self._cipher_key)), modes.CBC(bytes(IV_SIZE)))
        except (UnsupportedAlgorithm, ValueError, TypeError) as e:
            raise ProviderError(f"AES-CBC unavailable: {e}") from e

    @classmethod
    def from_key_source(cls, source: KeySource, config: Optional[CipherConfig] = None) -> "FieldCipher":
        """Fetch a key from ``source`` once and build a cipher around it."""
        return cls(source.load_key(), config)

    def _split_key(self):
        if not self.config.authenticate:
            return self._key, None

        raw = bytes(self._key)
        enc = HKDF(
            algorithm=hashes.SHA256(),
            length=self.config.key_size,
            salt=None,
            info=self.config.hkdf_info + b":enc",
        ).derive(raw)
        mac = HKDF(
            algorithm=hashes.SHA256(),
            length=MAC_KEY_SIZE,
            salt=None,
            info=self.config.hkdf_info + b":mac",
        ).derive(raw)
        return bytearray(enc), bytearray(mac)

    # ------------------------------------------------------------------
    # Key lifecycle
    # ------------------------------------------------------------------

    @property
    def is_cleared(self) -> bool:
        with self._cond:
            return self._cleared

    @contextmanager
    def _holding_key(self):
        with self._cond:
            if self._cleared:
                raise KeyUnavailableError("field key has been cleared")
            self._active += 1
        try:
            yield
        finally:
            with self._cond:
                self._active -= 1
                if self._active == 0:
                    self._cond.notify_all()

    def clear(self) -> None:
        """Drop the key for good. Blocks until running operations finish."""
        with self._cond:
            if self._cleared:
                return
            self._cleared = True
            while self._active:
                self._cond.wait()

            for buf in (self._key, self._cipher_key, self._mac_key):
                if buf is None:
                    continue
                for i in range(len(buf)):
                    buf[i] = 0
            self._mac_key = None
        logger.debug("Field key cleared")

    def __enter__(self) -> "FieldCipher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.clear()

    def __repr__(self) -> str:
        state = "cleared" if self._cleared else "ready"
        return f"FieldCipher(key_size={self.config.key_size}, authenticate={self.config.authenticate}, state={state})"

    # ------------------------------------------------------------------
    # Envelope primitives
    # ------------------------------------------------------------------

    def _tag(self, iv: bytes, ciphertext: bytes) -> bytes:
        return hmac.new(bytes(self._mac_key), iv + ciphertext, hashlib.sha256).digest()

    def _seal(self, data: bytes) -> str:
        iv = os.urandom(IV_SIZE)
        try:
            padder = padding.PKCS7(algorithms.AES.block_size).padder()
            padded = padder.update(data) + padder.finalize()
            encryptor = Cipher(algorithms.AES(bytes(self._cipher_key)), modes.CBC(iv)).encryptor()
            ciphertext = encryptor.update(padded) + encryptor.finalize()
        except (UnsupportedAlgorithm, ValueError, TypeError) as e:
            raise ProviderError(f"encryption backend error: {e}") from e

        if self._mac_key is not None:
            ciphertext += self._tag(iv, ciphertext)
        return Envelope(iv=iv, ciphertext=ciphertext).encode()

    def _open(self, text: str) -> bytes:
        envelope = decode_envelope(text)
        ciphertext = envelope.ciphertext

        if self._mac_key is not None:
            if len(ciphertext) < TAG_SIZE:
                raise DecryptionFailedError("envelope is missing its tag")
            ciphertext, tag = ciphertext[:-TAG_SIZE], ciphertext[-TAG_SIZE:]
            if not hmac.compare_digest(tag, self._tag(envelope.iv, ciphertext)):
                raise DecryptionFailedError("tag mismatch")

        try:
            decryptor = Cipher(algorithms.AES(bytes(self._cipher_key)), modes.CBC(envelope.iv)).decryptor()
            padded = decryptor.update(ciphertext) + decryptor.finalize()
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            return unpadder.update(padded) + unpadder.finalize()
        except UnsupportedAlgorithm as e:
            raise ProviderError(f"decryption backend error: {e}") from e
        except ValueError:
            # block length or padding: wrong key or corrupted ciphertext
            raise DecryptionFailedError("cipher rejected the envelope") from None

    def _run(self, operation: Operation, fn: Callable[[], Any]) -> CipherResult:
        try:
            with self._holding_key():
                value = fn()
        except CipherError as e:
            logger.warning("Field %s failed: %s", operation.value, e.kind.value)
            return CipherResult.failure(operation, e.kind)
        return CipherResult.success(operation, value)

    # ------------------------------------------------------------------
    # Text
    # ------------------------------------------------------------------

    def encrypt(self, plaintext: Optional[str]) -> CipherResult:
        """
        Encrypt a text value into an encoded envelope.

        ``None`` and ``""`` yield a successful empty result without touching
        the cipher.
        """
        if plaintext is not None and not isinstance(plaintext, str):
            raise TypeError("plaintext must be str")

        def _encrypt() -> str:
            if not plaintext:
                return ""
            return self._seal(plaintext.encode("utf-8"))

        return self._run(Operation.ENCRYPT, _encrypt)

    def decrypt(self, encoded: Optional[str]) -> CipherResult:
        """
        Decrypt an encoded envelope back to text.

        Failure kinds, checked in this order: ``MALFORMED_ENVELOPE`` (not
        Base64), ``ENVELOPE_TOO_SHORT`` (fewer than 16 bytes),
        ``DECRYPTION_FAILED`` (tag, padding, key or UTF-8 mismatch).
        """
        if encoded is not None and not isinstance(encoded, str):
            raise TypeError("encoded envelope must be str")

        def _decrypt() -> str:
            if not encoded:
                return ""
            data = self._open(encoded)
            try:
                return data.decode("utf-8")
            except UnicodeDecodeError:
                raise DecryptionFailedError("plaintext is not UTF-8") from None

        return self._run(Operation.DECRYPT, _decrypt)

    # ------------------------------------------------------------------
    # Bytes / JSON helpers
    # ------------------------------------------------------------------

    def encrypt_bytes(self, data: Optional[bytes]) -> CipherResult:
        """Same envelope as :meth:`encrypt`, for binary values."""

        def _encrypt() -> str:
            if not data:
                return ""
            return self._seal(bytes(data))

        return self._run(Operation.ENCRYPT, _encrypt)

    def decrypt_bytes(self, encoded: Optional[str]) -> CipherResult:
        def _decrypt() -> bytes:
            if not encoded:
                return b""
            return self._open(encoded)

        return self._run(Operation.DECRYPT, _decrypt)

    def encrypt_json(self, obj: Any) -> CipherResult:
        """
        Encrypt a JSON-serializable object.

        The object is serialized with :func:`json.dumps` (UTF-8, non-ASCII kept)
        and passed through :meth:`encrypt`.
        """
        return self.encrypt(json.dumps(obj, ensure_ascii=False))

    def decrypt_json(self, encoded: Optional[str]) -> CipherResult:
        """
        Decrypt a value produced by :meth:`encrypt_json`.

        An empty envelope decrypts to ``None``; text that is not JSON after a
        clean decrypt counts as ``DECRYPTION_FAILED``.
        """
        result = self.decrypt(encoded)
        if not result.ok:
            return result
        if result.value == "":
            return CipherResult.success(Operation.DECRYPT, None)
        try:
            return CipherResult.success(Operation.DECRYPT, json.loads(result.value))
        except json.JSONDecodeError:
            logger.warning("Field decrypt failed: payload is not JSON")
            return CipherResult.failure(Operation.DECRYPT, DecryptionFailedError.kind)
