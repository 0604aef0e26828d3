"""Integration tests: sealed records stored in SQLite as opaque text."""

import base64
import sqlite3

import pytest

from fieldcrypt.core.backup import restore_backup, write_backup
from fieldcrypt.core.config import CipherConfig
from fieldcrypt.core.records import RecordFieldCodec, reencrypt
from fieldcrypt.security.encryption import FieldCipher
from fieldcrypt.security.keys import FileKeySource, PasswordKeySource, generate_key

# --- Fixtures ---


@pytest.fixture
def db(tmp_path):
    conn = sqlite3.connect(str(tmp_path / "records.sqlite"))
    conn.row_factory = sqlite3.Row
    conn.execute(
        "CREATE TABLE transactions ("
        " id TEXT PRIMARY KEY, amount TEXT, category TEXT, description TEXT, notes TEXT)"
    )
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture
def key_file(tmp_path):
    path = tmp_path / "field.key"
    path.write_text(base64.b64encode(generate_key()).decode("ascii"), encoding="utf-8")
    return path


def _insert(db, record):
    db.execute(
        "INSERT INTO transactions VALUES (:id, :amount, :category, :description, :notes)",
        record,
    )
    db.commit()


def _rows(db):
    return [dict(r) for r in db.execute("SELECT * FROM transactions ORDER BY id")]


TRANSACTIONS = [
    {"id": "tx-1", "amount": "12.00", "category": "food", "description": "Groceries", "notes": "grocery-note"},
    {"id": "tx-2", "amount": "950.00", "category": "housing", "description": "Rent", "notes": ""},
    {"id": "tx-3", "amount": "4.20", "category": "misc", "description": "Coffee ☕", "notes": None},
]


# --- Tests ---


def test_sealed_records_survive_storage(db, key_file):
    """Write sealed rows, reopen with a new cipher from the same key file, read back."""
    writer = FieldCipher.from_key_source(FileKeySource(key_file))
    codec = RecordFieldCodec(writer, ["description", "notes"])
    for tx in TRANSACTIONS:
        _insert(db, codec.seal(tx))
    writer.clear()

    stored = _rows(db)
    assert all(row["description"] not in {"Groceries", "Rent", "Coffee ☕"} for row in stored)
    assert stored[1]["notes"] == ""
    assert stored[2]["notes"] is None

    reader = FieldCipher.from_key_source(FileKeySource(key_file))
    assert RecordFieldCodec(reader, ["description", "notes"]).open_many(stored) == TRANSACTIONS


def test_key_rotation_migration(db, key_file):
    """Migrate every stored value from an old key to a password-derived key."""
    old = FieldCipher.from_key_source(FileKeySource(key_file))
    for tx in TRANSACTIONS:
        _insert(db, RecordFieldCodec(old, ["notes"]).seal(tx))

    source = PasswordKeySource("correct horse battery staple", time_cost=1, memory_cost=8)
    new = FieldCipher.from_key_source(source)

    for row in _rows(db):
        if row["notes"] is None:
            continue
        moved = reencrypt(row["notes"], old, new)
        assert moved.ok
        db.execute("UPDATE transactions SET notes = ? WHERE id = ?", (moved.value, row["id"]))
    db.commit()

    # a later session re-derives the key from stored params
    again = FieldCipher.from_key_source(
        PasswordKeySource.from_params("correct horse battery staple", source.params())
    )
    notes = [RecordFieldCodec(again, ["notes"]).open(r)["notes"] for r in _rows(db)]
    assert notes == ["grocery-note", "", None]


def test_legacy_rows_stay_readable(db, key_file):
    """Rows written in the untagged layout open with a legacy-mode cipher only."""
    key = FileKeySource(key_file).load_key()
    legacy = FieldCipher(key, CipherConfig(authenticate=False))
    _insert(db, RecordFieldCodec(legacy, ["notes"]).seal(TRANSACTIONS[0]))

    row = _rows(db)[0]
    assert legacy.decrypt(row["notes"]).value == "grocery-note"
    assert not FieldCipher(key).decrypt(row["notes"]).ok


def test_backup_round_trip(tmp_path, db, key_file):
    cipher = FieldCipher.from_key_source(FileKeySource(key_file))
    for tx in TRANSACTIONS:
        _insert(db, tx)

    write_backup(tmp_path / "backup.json", {"transactions": _rows(db)}, cipher)
    restored = restore_backup(tmp_path / "backup.json", cipher)
    assert restored["transactions"] == TRANSACTIONS
