"""
Password hashing for stored accounts.

Stored formats, told apart by the prefix before the first ``$``:

- ``argon2id$iterations:memory_kib:lanes:length$salt_b64$hash_b64``, used for
  every new hash.
- ``pbkdf2$iterations$salt_hex$hash_hex`` (PBKDF2-HMAC-SHA256), accepted when
  verifying accounts written before Argon2id; never produced.
"""

from __future__ import annotations

import base64
import hmac
import os
from dataclasses import dataclass
from hashlib import pbkdf2_hmac

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives.kdf.argon2 import Argon2id


@dataclass(frozen=True)
class Argon2Params:
    iterations: int = 2
    memory_cost_kib: int = 64 * 1024
    lanes: int = 2
    hash_len: int = 32


DEFAULT_ARGON2_PARAMS = Argon2Params()


def _b64e(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def _b64d(text: str) -> bytes:
    return base64.b64decode(text.encode("ascii"), validate=True)


def _argon2(salt: bytes, params: Argon2Params) -> Argon2id:
    return Argon2id(
        salt=salt,
        length=params.hash_len,
        iterations=params.iterations,
        lanes=params.lanes,
        memory_cost=params.memory_cost_kib,
        ad=None,
        secret=None,
    )


def hash_password(password: str, params: Argon2Params = DEFAULT_ARGON2_PARAMS) -> str:
    if not isinstance(password, str):
        raise TypeError("password must be a string")
    salt = os.urandom(16)
    digest = _argon2(salt, params).derive(password.encode("utf-8"))
    meta = f"{params.iterations}:{params.memory_cost_kib}:{params.lanes}:{params.hash_len}"
    return f"argon2id${meta}${_b64e(salt)}${_b64e(digest)}"


def _verify_argon2(password: str, rest: str) -> bool:
    try:
        meta, salt_b64, hash_b64 = rest.split("$", 2)
        iterations, memory, lanes, length = (int(part) for part in meta.split(":"))
        params = Argon2Params(iterations, memory, lanes, length)
        kdf = _argon2(_b64d(salt_b64), params)
        expected = _b64d(hash_b64)
    except ValueError:
        return False
    try:
        kdf.verify(password.encode("utf-8"), expected)
    except InvalidKey:
        return False
    return True


def _verify_pbkdf2(password: str, rest: str) -> bool:
    try:
        iter_str, salt_hex, hash_hex = rest.split("$", 2)
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(hash_hex)
        candidate = pbkdf2_hmac(
            "sha256", password.encode("utf-8"), salt, int(iter_str), dklen=len(expected)
        )
    except ValueError:
        return False
    return hmac.compare_digest(candidate, expected)


def verify_password(password: str, stored: str) -> bool:
    if not stored or "$" not in stored:
        return False
    prefix, rest = stored.split("$", 1)
    if prefix == "argon2id":
        return _verify_argon2(password, rest)
    if prefix == "pbkdf2":
        return _verify_pbkdf2(password, rest)
    return False
