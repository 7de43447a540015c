"""
Cryptographically secure share code generation.
"""
import re
import secrets

from linkt.errors import StorageFailure

CODE_LENGTH = 6
CODE_PATTERN = re.compile(r"^[0-9A-F]{6}$")


def generate_code() -> str:
    """
    Generate a random share code.

    Draws 3 bytes from the `secrets` module and hex-encodes them, giving
    16^6 (about 16.7M) possible codes.

    Returns:
        str: A code like "9F04AC"
    """
    return secrets.token_hex(CODE_LENGTH // 2).upper()


def normalize_code(raw) -> str:
    """Strip whitespace and upper-case a user-typed code."""
    if not raw or not isinstance(raw, str):
        return ""
    return raw.strip().upper()


def is_valid_code(code: str) -> bool:
    return bool(code) and CODE_PATTERN.match(code) is not None


async def ensure_unique_code(store, attempts: int = 10) -> str:
    """
    Generate a code and verify no entry already uses it.

    Args:
        store: ShareStore consulted for existing entries
        attempts: Maximum number of draws before giving up

    Returns:
        str: A code not already in use

    Raises:
        StorageFailure: If every draw collided
    """
    for _ in range(attempts):
        code = generate_code()
        if not await store.exists(code):
            return code
    raise StorageFailure(f"Failed to generate unique code after {attempts} attempts")
