from __future__ import annotations

import hashlib
import secrets

_ALGORITHM = "pbkdf2_sha256"
_ITERATIONS = 120000


def _derive(password: str, salt: str, iterations: int) -> str:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), iterations).hex()


def hash_password(password: str) -> str:
    salt = secrets.token_hex(16)
    return f"{_ALGORITHM}${_ITERATIONS}${salt}${_derive(password, salt, _ITERATIONS)}"


def verify_password(password: str, encoded: str | None) -> bool:
    if not password or not encoded:
        return False
    parts = encoded.split("$")
    if len(parts) != 4 or parts[0] != _ALGORITHM or not parts[1].isdigit():
        return False
    _, iterations, salt, expected = parts
    return secrets.compare_digest(_derive(password, salt, int(iterations)), expected)


def new_token(num_bytes: int) -> str:
    return secrets.token_urlsafe(num_bytes)
