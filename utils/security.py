from __future__ import annotations

from typing import Optional
from werkzeug.security import generate_password_hash, check_password_hash


def hash_password(plain: str, method: str = "pbkdf2:sha256", salt_length: int = 16) -> str:
    plain = (plain or "").strip()
    if not plain:
        raise ValueError("Password cannot be empty")
    return generate_password_hash(plain, method=method, salt_length=salt_length)


def verify_password(stored_value: Optional[str], candidate: str) -> bool:
    """Check ``candidate`` against a Werkzeug hash; empty hashes never match."""
    if not stored_value:
        return False
    try:
        return check_password_hash(stored_value, (candidate or "").strip())
    except ValueError:
        return False
