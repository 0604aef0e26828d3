"""Field-key storage in the OS keystore via `keyring`.

Keys are binary, keyring stores strings, so entries hold the Base64 form of
the key under a (service, account) pair. Whether an entry is protected by the
platform (Keychain, Credential Locker, Secret Service) depends on the active
backend; :func:`assess_keyring_backend` reports on that before a key is
written.
"""
import base64
import binascii
from typing import Optional

try:
    import keyring
    from keyring.errors import PasswordDeleteError
except ImportError:
    keyring = None
    PasswordDeleteError = None

# backend class-name fragments
_INSECURE_BACKENDS = ("Plaintext", "Uncrypted", "Null", "Fail")
_PLATFORM_BACKENDS = ("Win", "Keychain", "SecretService", "KWallet")


def _keyring():
    if keyring is None:
        raise RuntimeError("keyring package is not available; install keyring to use keystore features")
    return keyring


def save_key(service: str, account: str, key_bytes: bytes) -> None:
    _keyring().set_password(service, account, base64.b64encode(bytes(key_bytes)).decode("ascii"))


def load_key(service: str, account: str) -> Optional[bytes]:
    """Return the stored key, or ``None`` if the entry is absent or not Base64."""
    entry = _keyring().get_password(service, account)
    if entry is None:
        return None
    try:
        return base64.b64decode(entry, validate=True)
    except (binascii.Error, ValueError):
        return None


def delete_key(service: str, account: str) -> bool:
    """Remove the entry; ``False`` when there was none. Backend failures propagate."""
    try:
        _keyring().delete_password(service, account)
    except PasswordDeleteError:
        return False
    return True


def assess_keyring_backend() -> tuple[bool, str]:
    """
    Decide whether the active backend is fit to hold a field key.

    Returns ``(ok, reason)``. File-based, null and fail backends are refused,
    as is any backend keyring itself ranks at priority zero or below.
    """
    if keyring is None:
        return False, "keyring package is not installed"
    try:
        backend = keyring.get_keyring()
    except Exception as e:
        return False, f"failed to get keyring backend: {e}"

    name = backend.__class__.__name__
    priority = getattr(backend, "priority", None)

    if any(fragment in name for fragment in _INSECURE_BACKENDS):
        return False, f"insecure backend detected: {name}"
    if priority is not None and priority <= 0:
        return False, f"no suitable secure keyring backend available (priority={priority}, backend={name})"
    if any(fragment in name for fragment in _PLATFORM_BACKENDS):
        return True, f"backend looks acceptable: {name} (priority={priority})"
    return True, f"unknown backend '{name}', treat with caution (priority={priority})"
