"""Envelope framing and text encoding for encrypted field values.

Layout (raw bytes):
- 16 bytes: IV
- N bytes: ciphertext (in authenticated mode the last 32 bytes are the tag)

Stored form is standard Base64 (RFC 4648, padded) of the raw bytes. Decoding
tolerates line breaks and surrounding whitespace, since older values were
written line-wrapped, but rejects any other character outside the alphabet.
"""

from __future__ import annotations

from dataclasses import dataclass
import base64
import binascii

from fieldcrypt.core.exceptions import EnvelopeTooShortError, MalformedEnvelopeError


IV_SIZE = 16

_EDGE_WHITESPACE = " \t\r\n"


@dataclass(frozen=True)
class Envelope:
    iv: bytes
    ciphertext: bytes

    def __post_init__(self):
        if len(self.iv) != IV_SIZE:
            raise ValueError(f"IV must be exactly {IV_SIZE} bytes")

    @classmethod
    def from_bytes(cls, data: bytes) -> "Envelope":
        """Split raw envelope bytes; anything shorter than the IV is rejected."""
        if len(data) < IV_SIZE:
            raise EnvelopeTooShortError("envelope too short to contain IV")
        return cls(iv=bytes(data[:IV_SIZE]), ciphertext=bytes(data[IV_SIZE:]))

    def to_bytes(self) -> bytes:
        return self.iv + self.ciphertext

    def encode(self) -> str:
        return encode_bytes(self.to_bytes())

    def __repr__(self) -> str:
        return f"Envelope(ciphertext_len={len(self.ciphertext)})"


def encode_bytes(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode_text(text: str) -> bytes:
    """
    Decode Base64 text into bytes.

    Raises :class:`MalformedEnvelopeError` for characters outside the
    alphabet, bad padding, or non-ASCII input. Never truncates.
    """
    # only ASCII line breaks inside, ASCII whitespace at the ends
    compact = text.strip(_EDGE_WHITESPACE).replace("\r", "").replace("\n", "")
    try:
        return base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError):
        raise MalformedEnvelopeError("envelope text is not valid Base64") from None


def decode_envelope(text: str) -> Envelope:
    """Decode text, then frame it; decoding errors are reported before length errors."""
    return Envelope.from_bytes(decode_text(text))
