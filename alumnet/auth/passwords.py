from __future__ import annotations
from passlib.context import CryptContext

# pure-python backend; no 72-byte input limit
_pwd = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(plain: str) -> str:
    return _pwd.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return _pwd.verify(plain, hashed)
    except (ValueError, TypeError):
        # malformed or unknown hash format
        return False
