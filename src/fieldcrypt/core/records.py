"""
Apply a field cipher to selected fields of plain record dicts.

Records (transactions, budgets, ...) stay ordinary dicts; only the named
string fields are swapped for their encoded envelopes on the way to storage
and back on the way out. Everything else passes through untouched.
"""

from typing import Any, Dict, Iterable

from fieldcrypt.core.models import CipherResult
from fieldcrypt.security.encryption import FieldCipher


class RecordFieldCodec:
    """Seal/open a fixed set of sensitive fields on record dicts."""

    def __init__(self, cipher: FieldCipher, fields: Iterable[str]):
        self.cipher = cipher
        self.fields = tuple(fields)

    def seal(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """
        Return a copy of ``record`` with each configured field encrypted.

        Missing fields and ``None`` values are left as they are. Non-string
        values raise ``TypeError``; cipher failures raise the matching
        :class:`~fieldcrypt.core.exceptions.CipherError`.
        """
        sealed = dict(record)
        for name in self.fields:
            value = sealed.get(name)
            if value is None:
                continue
            if not isinstance(value, str):
                raise TypeError(f"field {name!r} must be str to be encrypted")
            sealed[name] = self.cipher.encrypt(value).unwrap()
        return sealed

    def open(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Inverse of :meth:`seal`."""
        opened = dict(record)
        for name in self.fields:
            value = opened.get(name)
            if value is None:
                continue
            opened[name] = self.cipher.decrypt(value).unwrap()
        return opened

    def seal_many(self, records: Iterable[Dict[str, Any]]) -> list:
        return [self.seal(r) for r in records]

    def open_many(self, records: Iterable[Dict[str, Any]]) -> list:
        return [self.open(r) for r in records]


def reencrypt(encoded: str, source: FieldCipher, target: FieldCipher) -> CipherResult:
    """
    Move one stored value from ``source``'s key to ``target``'s key.

    Returns the decrypt failure unchanged when ``source`` cannot open the
    value, otherwise the result of encrypting under ``target``.
    """
    opened = source.decrypt(encoded)
    if not opened.ok:
        return opened
    return target.encrypt(opened.value)
