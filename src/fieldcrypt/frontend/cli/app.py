"""
Command line tool for provisioning field keys and working with stored values.

Examples:

    fieldcrypt keygen > field.key
    fieldcrypt --key-file field.key encrypt "grocery-note"
    FIELDCRYPT_KEY=... fieldcrypt decrypt "<envelope>"
    fieldcrypt --key-file old.key reencrypt --new-key-file new.key "<envelope>"

Values are taken from the positional argument, or read line by line from
stdin when it is omitted, so the tool also works as a small migration filter.
Failures print a generic message; the failure kind only shows up in the log
with ``--verbose``.
"""

from __future__ import annotations

import argparse
import base64
import logging
import sys
from typing import Iterable, List, Optional

from fieldcrypt.core.config import CipherConfig
from fieldcrypt.core.exceptions import CipherError, ConfigurationError
from fieldcrypt.core.records import reencrypt
from fieldcrypt.frontend.cli.logging_config import configure_logging
from fieldcrypt.security.encryption import FieldCipher
from fieldcrypt.security.keys import EnvironmentKeySource, FileKeySource, KeySource, generate_key

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_NO_KEY = 2


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fieldcrypt",
        description="Encrypt and decrypt record field values.",
    )
    parser.add_argument(
        "--key-file",
        default=None,
        help="File holding the base64 field key (default: $FIELDCRYPT_KEY)",
    )
    parser.add_argument(
        "--legacy",
        action="store_true",
        help="Use unauthenticated iv||AES-CBC envelopes (no tag)",
    )
    parser.add_argument("-v", "--verbose", action="store_true")

    sub = parser.add_subparsers(dest="command", required=True)

    keygen = sub.add_parser("keygen", help="Print a fresh base64 field key")
    keygen.add_argument("--size", type=int, default=None, help="Key size in bytes (16, 24 or 32)")

    for name in ("encrypt", "decrypt"):
        cmd = sub.add_parser(name, help=f"{name.capitalize()} a value")
        cmd.add_argument("value", nargs="?", default=None)

    re_cmd = sub.add_parser("reencrypt", help="Move a value to a new key")
    re_cmd.add_argument("--new-key-file", required=True)
    re_cmd.add_argument("value", nargs="?", default=None)

    return parser


def _config(args: argparse.Namespace) -> CipherConfig:
    config = CipherConfig.from_env()
    if args.legacy:
        config = CipherConfig(key_size=config.key_size, authenticate=False, hkdf_info=config.hkdf_info)
    return config


def _key_source(key_file: Optional[str]) -> KeySource:
    if key_file:
        return FileKeySource(key_file)
    return EnvironmentKeySource()


def _open_cipher(source: KeySource, config: CipherConfig) -> Optional[FieldCipher]:
    try:
        return FieldCipher.from_key_source(source, config)
    except CipherError as e:
        logger.debug("Key setup failed: %s", e)
        print("error: no usable field key", file=sys.stderr)
        return None


def _values(value: Optional[str]) -> Iterable[str]:
    if value is not None:
        return [value]
    return (line.rstrip("\n") for line in sys.stdin)


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)

    configure_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        config = _config(args)
    except ConfigurationError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FAILED

    if args.command == "keygen":
        size = args.size or config.key_size
        try:
            CipherConfig(key_size=size)
        except ConfigurationError as e:
            print(f"error: {e}", file=sys.stderr)
            return EXIT_FAILED
        print(base64.b64encode(generate_key(size)).decode("ascii"))
        return EXIT_OK

    cipher = _open_cipher(_key_source(args.key_file), config)
    if cipher is None:
        return EXIT_NO_KEY
    target = None
    if args.command == "reencrypt":
        target = _open_cipher(FileKeySource(args.new_key_file), config)
        if target is None:
            cipher.clear()
            return EXIT_NO_KEY

    status = EXIT_OK
    try:
        for value in _values(args.value):
            if args.command == "encrypt":
                result = cipher.encrypt(value)
            elif args.command == "decrypt":
                result = cipher.decrypt(value)
            else:
                result = reencrypt(value, cipher, target)

            if result.ok:
                print(result.value)
            else:
                print(f"error: {result.message}", file=sys.stderr)
                status = EXIT_FAILED
    finally:
        cipher.clear()
        if target is not None:
            target.clear()

    return status


if __name__ == "__main__":  # pragma: no cover - CLI entry
    sys.exit(main())
