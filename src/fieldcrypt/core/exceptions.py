"""
Exceptions for the fieldcrypt core module
This is placed such that there is a general error catcher
"""

from fieldcrypt.core.models import CipherErrorKind


class FieldCryptError(Exception):
    # general container for errors
    pass


class ConfigurationError(FieldCryptError):
    # raised when a config value (env or explicit) is invalid
    pass


class CipherError(FieldCryptError):
    # base for the closed cipher error set; subclasses pin `kind`
    kind: CipherErrorKind = CipherErrorKind.PROVIDER_ERROR


class KeyUnavailableError(CipherError):
    # raised when no usable key exists, or the key was cleared
    kind = CipherErrorKind.KEY_UNAVAILABLE


class MalformedEnvelopeError(CipherError):
    # raised when encoded text is not valid Base64
    kind = CipherErrorKind.MALFORMED_ENVELOPE


class EnvelopeTooShortError(CipherError):
    # raised when decoded bytes cannot even hold the IV
    kind = CipherErrorKind.ENVELOPE_TOO_SHORT


class DecryptionFailedError(CipherError):
    # raised on wrong key, tampering, bad padding
    kind = CipherErrorKind.DECRYPTION_FAILED


class ProviderError(CipherError):
    # raised when the crypto backend cannot do the requested operation
    kind = CipherErrorKind.PROVIDER_ERROR


class BackupError(FieldCryptError):
    # raised when a backup file cannot be written or restored
    pass


_ERRORS_BY_KIND = {
    cls.kind: cls
    for cls in (
        KeyUnavailableError,
        MalformedEnvelopeError,
        EnvelopeTooShortError,
        DecryptionFailedError,
        ProviderError,
    )
}


def error_for_kind(kind: CipherErrorKind, message: str = "") -> CipherError:
    """Build the exception instance matching ``kind``."""
    return _ERRORS_BY_KIND[kind](message or kind.value)
