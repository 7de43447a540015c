"""
Maps a share code to a live entry or a typed failure.

Each lookup runs: validate code shape, locate the artifact, check expiry,
emit. Expired entries are reported, never deleted, here.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from linkt.errors import Expired, InvalidInput, NotFound
from linkt.expiry import expires_at, is_expired
from linkt.security import log_security_event
from linkt.store import ShareStore, content_type_for
from linkt.utils.code_generator import is_valid_code, normalize_code

logger = logging.getLogger(__name__)


@dataclass
class ResolvedFile:
    code: str
    path: Path
    filename: str
    media_type: str
    size: int
    created_at: datetime
    expires_at: datetime


@dataclass
class ResolvedText:
    code: str
    content: str
    language: str
    created_at: datetime
    expires_at: datetime


def validate_code(raw) -> str:
    """Normalize a user-supplied code or raise InvalidInput."""
    code = normalize_code(raw)
    if not is_valid_code(code):
        log_security_event("invalid_share_code", {"code": str(raw)[:12]})
        raise InvalidInput("Invalid share code")
    return code


async def resolve_file(store: ShareStore, raw_code) -> ResolvedFile:
    code = validate_code(raw_code)

    artifact = store.get_file(code)
    if artifact is None:
        raise NotFound("File not found or expired")

    try:
        created = await store.created_at(artifact)
        size = artifact.path.stat().st_size
    except FileNotFoundError:
        # Reclaimed between lookup and stat
        raise NotFound("File not found or expired")

    if is_expired(created, store.now()):
        logger.info(f"Refusing expired file {artifact.filename}")
        raise Expired("File has expired")

    return ResolvedFile(
        code=code,
        path=artifact.path,
        filename=artifact.filename,
        media_type=content_type_for(artifact.filename),
        size=size,
        created_at=created,
        expires_at=expires_at(created),
    )


async def resolve_text(store: ShareStore, raw_code) -> ResolvedText:
    code = validate_code(raw_code)

    found = store.get_text(code)
    if found is None:
        raise NotFound("Text not found or expired")
    artifact, record = found

    try:
        created = await store.created_at(artifact)
    except FileNotFoundError:
        raise NotFound("Text not found or expired")

    if is_expired(created, store.now()):
        logger.info(f"Refusing expired text {artifact.filename}")
        raise Expired("Text has expired")

    return ResolvedText(
        code=code,
        content=record.content,
        language=record.language,
        created_at=created,
        expires_at=expires_at(created),
    )
