"""
Base data models for cipher results and the error taxonomy
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class CipherErrorKind(Enum):
    # Closed set of failure kinds a cipher operation can report
    KEY_UNAVAILABLE = "key_unavailable"
    MALFORMED_ENVELOPE = "malformed_envelope"
    ENVELOPE_TOO_SHORT = "envelope_too_short"
    DECRYPTION_FAILED = "decryption_failed"
    PROVIDER_ERROR = "provider_error"


class Operation(Enum):
    ENCRYPT = "encrypt"
    DECRYPT = "decrypt"


@dataclass(frozen=True)
class CipherResult:
    """
    Outcome of one encrypt/decrypt call.

    Exactly one of ``value`` / ``error`` is meaningful: a successful result
    always has ``error is None`` (its value may be the empty string), a failed
    one always has ``value is None``. Callers branch on :attr:`ok` rather than
    on the truthiness of ``value``.
    """

    operation: Operation
    value: Any = None
    error: Optional[CipherErrorKind] = None

    @classmethod
    def success(cls, operation: Operation, value: Any) -> "CipherResult":
        return cls(operation=operation, value=value)

    @classmethod
    def failure(cls, operation: Operation, error: CipherErrorKind) -> "CipherResult":
        return cls(operation=operation, error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> str:
        # Deliberately the same text for every failure kind of an operation
        if self.ok:
            return ""
        return f"{self.operation.value}ion failed"

    def unwrap(self) -> Any:
        """Return the value, or raise the exception matching the error kind."""
        if self.ok:
            return self.value
        from fieldcrypt.core.exceptions import error_for_kind

        raise error_for_kind(self.error)

    def __repr__(self) -> str:
        # Values can be plaintext; keep them out of reprs and logs
        if self.ok:
            return f"CipherResult({self.operation.value}, ok)"
        return f"CipherResult({self.operation.value}, error={self.error.value})"
