"""
Security utilities for Linkt.
Provides path traversal protection, filename sanitization and the
maintenance credential check.
"""
import re
import logging
import secrets
from pathlib import Path
from typing import Optional

security_logger = logging.getLogger('security')

# Dangerous patterns in filenames
DANGEROUS_PATTERNS = [
    r'\.\.', r'/', r'\\', r'\x00',  # Path traversal
    r'<', r'>', r':', r'"', r'\|', r'\?', r'\*'  # Windows special chars
]


def validate_path_traversal(base_path: Path, requested_path: str) -> Path:
    """
    Validate that a file path doesn't escape the base directory.

    Args:
        base_path: The allowed base directory
        requested_path: The artifact filename

    Returns:
        Safe resolved path

    Raises:
        ValueError: If path traversal detected
    """
    clean_path = requested_path.replace('..', '').replace('/', '').replace('\\', '')
    full_path = (base_path / clean_path).resolve()

    try:
        full_path.relative_to(base_path.resolve())
    except ValueError:
        security_logger.warning(f"Path traversal attempt: {requested_path}")
        raise ValueError("Invalid file path")

    return full_path


def sanitize_filename(filename: Optional[str]) -> str:
    """
    Sanitize a client-supplied filename before echoing it back.

    Args:
        filename: Original filename

    Returns:
        Safe filename
    """
    if not filename:
        return "unnamed_file"

    for pattern in DANGEROUS_PATTERNS:
        filename = re.sub(pattern, '', filename)

    filename = filename.strip('. \t\n\r')

    if len(filename) > 255:
        name, ext = filename[:200], filename[-50:] if '.' in filename else ''
        filename = name + ext

    return filename or "unnamed_file"


def verify_bearer(authorization: Optional[str], secret: Optional[str]) -> bool:
    """
    Check an Authorization header against the shared maintenance secret.

    An unset secret rejects every request.
    """
    if not secret or not authorization:
        return False
    return secrets.compare_digest(authorization.encode(), f"Bearer {secret}".encode())


def log_security_event(event_type: str, details: dict):
    """Log a security-relevant event."""
    security_logger.warning(f"SECURITY_EVENT: {event_type} - {details}")
