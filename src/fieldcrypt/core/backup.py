"""
Encrypted backup files

A backup is one JSON document (the caller's payload plus ``timestamp`` and
``version``) sealed as a single envelope and written as text, so it can be
copied around like any other exported file.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict
import logging

from fieldcrypt.core.exceptions import BackupError
from fieldcrypt.security.encryption import FieldCipher

logger = logging.getLogger(__name__)

BACKUP_VERSION = "1.0.0"


def write_backup(path: Path | str, payload: Dict[str, Any], cipher: FieldCipher) -> Dict[str, Any]:
    """
    Encrypt ``payload`` into ``path`` and return backup metadata.

    The payload is not modified; ``timestamp`` and ``version`` are added to
    the stored document.
    """
    path = Path(path).expanduser()
    document = dict(payload)
    document["timestamp"] = datetime.now(timezone.utc).isoformat()
    document["version"] = BACKUP_VERSION

    try:
        result = cipher.encrypt_json(document)
    except (TypeError, ValueError) as e:
        # json.dumps: unserializable or circular payload
        raise BackupError(f"failed to create backup: {e}") from e
    if not result.ok:
        raise BackupError(f"failed to create backup: {result.message}")

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(result.value)
    except OSError as e:
        raise BackupError(f"failed to create backup: {e}") from e

    logger.info("Wrote backup %s", path.name)
    return {
        "path": str(path),
        "file_name": path.name,
        "size": len(result.value),
        "timestamp": document["timestamp"],
    }


def read_backup(path: Path | str) -> str:
    path = Path(path).expanduser()
    if not path.exists():
        raise BackupError(f"backup file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise BackupError(f"backup file is unreadable: {path.name}") from e


def restore_backup(path: Path | str, cipher: FieldCipher) -> Dict[str, Any]:
    """Decrypt and validate a backup written by :func:`write_backup`."""
    result = cipher.decrypt_json(read_backup(path))
    document = result.value if result.ok else None
    if not isinstance(document, dict):
        raise BackupError("Invalid backup file or wrong encryption key")
    if "version" not in document or "timestamp" not in document:
        raise BackupError("Invalid backup structure")
    return document
