"""Argon2id derivation of field keys from passwords.

The cost parameters and salt travel together as :class:`Argon2Params`, which
serializes to a small dict so a caller can store it next to the data and
re-derive the same key in a later session.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict

from argon2.low_level import Type, hash_secret_raw

KDF_NAME = "argon2id"


def generate_salt(length: int = 16) -> bytes:
    return os.urandom(length)


@dataclass(frozen=True)
class Argon2Params:
    salt: bytes
    time_cost: int = 3
    memory_cost: int = 65536
    parallelism: int = 1

    @classmethod
    def fresh(cls, time_cost: int = 3, memory_cost: int = 65536, parallelism: int = 1) -> "Argon2Params":
        """New parameter set with a random salt."""
        return cls(generate_salt(), time_cost, memory_cost, parallelism)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "algo": KDF_NAME,
            "salt": self.salt.hex(),
            "time": self.time_cost,
            "memory": self.memory_cost,
            "parallelism": self.parallelism,
        }

    @classmethod
    def from_dict(cls, params: Dict[str, Any]) -> "Argon2Params":
        """Inverse of :meth:`to_dict`; raises ``ValueError`` for foreign or broken params."""
        if params.get("algo") != KDF_NAME:
            raise ValueError(f"unsupported KDF: {params.get('algo')!r}")
        if "salt" not in params:
            raise ValueError("KDF params carry no salt")
        return cls(
            salt=bytes.fromhex(params["salt"]),
            time_cost=int(params.get("time", 3)),
            memory_cost=int(params.get("memory", 65536)),
            parallelism=int(params.get("parallelism", 1)),
        )

    def __repr__(self) -> str:
        return (
            f"Argon2Params(time_cost={self.time_cost}, memory_cost={self.memory_cost}, "
            f"parallelism={self.parallelism})"
        )


def derive_key(password: bytes | str, params: Argon2Params, key_len: int = 32) -> bytes:
    if isinstance(password, str):
        password = password.encode("utf-8")
    return hash_secret_raw(
        secret=password,
        salt=params.salt,
        time_cost=params.time_cost,
        memory_cost=params.memory_cost,
        parallelism=params.parallelism,
        hash_len=key_len,
        type=Type.ID,
    )
