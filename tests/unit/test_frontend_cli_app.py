"""Unit tests for the fieldcrypt command line tool."""

import base64
import io

import pytest

from fieldcrypt.frontend.cli import app
from fieldcrypt.security.keys import ENV_KEY, generate_key


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in (ENV_KEY, "FIELDCRYPT_KEY_SIZE", "FIELDCRYPT_AUTHENTICATE"):
        monkeypatch.delenv(var, raising=False)


def _write_key(path, key=None):
    key = key or generate_key()
    path.write_text(base64.b64encode(key).decode("ascii"), encoding="utf-8")
    return str(path)


@pytest.fixture
def key_file(tmp_path):
    return _write_key(tmp_path / "field.key")


def _run(capsys, *argv):
    code = app.main(list(argv))
    out, err = capsys.readouterr()
    return code, out, err


def test_keygen_prints_base64_key(capsys):
    code, out, _ = _run(capsys, "keygen")
    assert code == app.EXIT_OK
    assert len(base64.b64decode(out.strip())) == 32


def test_keygen_custom_size(capsys):
    code, out, _ = _run(capsys, "keygen", "--size", "16")
    assert code == app.EXIT_OK
    assert len(base64.b64decode(out.strip())) == 16


def test_keygen_rejects_bad_size(capsys):
    code, _, err = _run(capsys, "keygen", "--size", "20")
    assert code == app.EXIT_FAILED
    assert "key_size" in err


def test_encrypt_then_decrypt(capsys, key_file):
    code, out, _ = _run(capsys, "--key-file", key_file, "encrypt", "grocery-note")
    assert code == app.EXIT_OK
    envelope = out.strip()
    assert envelope != "grocery-note"

    code, out, _ = _run(capsys, "--key-file", key_file, "decrypt", envelope)
    assert code == app.EXIT_OK
    assert out.strip() == "grocery-note"


def test_key_from_environment(capsys, monkeypatch):
    monkeypatch.setenv(ENV_KEY, base64.b64encode(generate_key()).decode("ascii"))
    code, out, _ = _run(capsys, "encrypt", "x")
    assert code == app.EXIT_OK
    assert out.strip()


def test_missing_key(capsys, tmp_path):
    code, out, err = _run(capsys, "--key-file", str(tmp_path / "none.key"), "encrypt", "x")
    assert code == app.EXIT_NO_KEY
    assert out == ""
    assert "no usable field key" in err


def test_unreadable_key_file(capsys, tmp_path):
    binary = tmp_path / "binary.key"
    binary.write_bytes(b"\xff" * 32)
    for path in (tmp_path, binary):
        code, out, err = _run(capsys, "--key-file", str(path), "encrypt", "x")
        assert code == app.EXIT_NO_KEY
        assert out == ""
        assert "no usable field key" in err


def test_decrypt_failure_is_generic(capsys, key_file):
    code, out, err = _run(capsys, "--key-file", key_file, "decrypt", "!!!")
    assert code == app.EXIT_FAILED
    assert out == ""
    assert "decryption failed" in err


def test_legacy_flag_produces_untagged_envelopes(capsys, key_file):
    code, out, _ = _run(capsys, "--key-file", key_file, "--legacy", "encrypt", "grocery-note")
    assert code == app.EXIT_OK
    assert len(base64.b64decode(out.strip())) == 32

    # authenticated mode rejects it, legacy mode reads it
    code, _, _ = _run(capsys, "--key-file", key_file, "decrypt", out.strip())
    assert code == app.EXIT_FAILED


def test_stdin_values(capsys, monkeypatch, key_file):
    monkeypatch.setattr("sys.stdin", io.StringIO("first\nsecond\n"))
    code, out, _ = _run(capsys, "--key-file", key_file, "encrypt")
    assert code == app.EXIT_OK
    envelopes = out.splitlines()
    assert len(envelopes) == 2

    monkeypatch.setattr("sys.stdin", io.StringIO("\n".join(envelopes) + "\n"))
    code, out, _ = _run(capsys, "--key-file", key_file, "decrypt")
    assert out.splitlines() == ["first", "second"]


def test_reencrypt(capsys, tmp_path, key_file):
    new_key_file = _write_key(tmp_path / "new.key")
    _, out, _ = _run(capsys, "--key-file", key_file, "encrypt", "rent")
    old_envelope = out.strip()

    code, out, _ = _run(
        capsys, "--key-file", key_file, "reencrypt", "--new-key-file", new_key_file, old_envelope
    )
    assert code == app.EXIT_OK
    new_envelope = out.strip()

    _, out, _ = _run(capsys, "--key-file", new_key_file, "decrypt", new_envelope)
    assert out.strip() == "rent"


def test_reencrypt_missing_new_key(capsys, tmp_path, key_file):
    code, _, err = _run(
        capsys, "--key-file", key_file, "reencrypt", "--new-key-file", str(tmp_path / "x.key"), "AAAA"
    )
    assert code == app.EXIT_NO_KEY
    assert "no usable field key" in err


def test_bad_config_env(capsys, monkeypatch, key_file):
    monkeypatch.setenv("FIELDCRYPT_KEY_SIZE", "abc")
    code, _, err = _run(capsys, "--key-file", key_file, "encrypt", "x")
    assert code == app.EXIT_FAILED
    assert "FIELDCRYPT_KEY_SIZE" in err
