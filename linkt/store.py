"""
Entry store for shared files and text snippets.

Payloads live on disk under the uploads directory, one artifact per share
code, with file and text entries kept in separate namespaces:

    uploads/files/<CODE><ext>
    uploads/text/<CODE>.txt

The SQLite index records each entry's authoritative creation time. The
directory listing stays the source of truth for what exists, so an artifact
without an index row still resolves and ages by its modification time.
"""
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

import aiosqlite

from linkt.database import get_db, init_db
from linkt.errors import InvalidInput, StorageFailure
from linkt.expiry import expires_at, isoformat, parse_timestamp, utcnow
from linkt.security import validate_path_traversal
from linkt.utils.code_generator import is_valid_code

logger = logging.getLogger(__name__)

MiB = 1024 * 1024
MAX_FILE_SIZE = 100 * MiB
MAX_TEXT_SIZE = 1 * MiB

KIND_FILE = "file"
KIND_TEXT = "text"

DEFAULT_EXTENSION = ".bin"
DEFAULT_CONTENT_TYPE = "application/octet-stream"

EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "text/plain": ".txt",
    "application/pdf": ".pdf",
    "application/json": ".json",
    "text/javascript": ".js",
    "text/typescript": ".ts",
    "text/css": ".css",
    "text/html": ".html",
}

# Download lookup tries these in order and serves the first hit
PROBE_ORDER = (
    ".jpg", ".png", ".gif", ".webp", ".txt", ".pdf",
    ".json", ".js", ".ts", ".css", ".html", ".bin",
)

CONTENT_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "txt": "text/plain",
    "pdf": "application/pdf",
    "json": "application/json",
    "js": "text/javascript",
    "ts": "text/typescript",
    "css": "text/css",
    "html": "text/html",
}


def extension_for(type_hint: Optional[str]) -> str:
    """Map a MIME type hint to the storage extension, `.bin` when unknown."""
    mime = (type_hint or "").split(";")[0].strip().lower()
    return EXTENSIONS.get(mime, DEFAULT_EXTENSION)


def content_type_for(filename: str) -> str:
    """Content type served for a stored artifact, keyed by its extension."""
    ext = Path(filename).suffix.lstrip(".").lower()
    return CONTENT_TYPES.get(ext, DEFAULT_CONTENT_TYPE)


def format_limit(size: int) -> str:
    if size >= MiB and size % MiB == 0:
        return f"{size // MiB}MB"
    if size >= 1024:
        return f"{size // 1024}KB"
    return f"{size} bytes"


@dataclass
class StoredArtifact:
    """One payload on disk."""
    kind: str
    code: str
    path: Path

    @property
    def filename(self) -> str:
        return self.path.name


@dataclass
class Persisted:
    """Where a new entry was written and the creation time recorded for it."""
    path: Path
    created_at: datetime


@dataclass
class TextRecord:
    """Serialized form of a text share."""
    content: str
    language: str
    created_at: datetime
    expires_at: datetime

    def to_json(self) -> str:
        return json.dumps({
            "content": self.content,
            "language": self.language,
            "createdAt": isoformat(self.created_at),
            "expiresAt": isoformat(self.expires_at),
        }, indent=2, ensure_ascii=False)

    @classmethod
    def from_json(cls, raw: str) -> "TextRecord":
        data = json.loads(raw)
        created = parse_timestamp(data["createdAt"])
        return cls(
            content=data["content"],
            language=data.get("language") or "text",
            created_at=created,
            expires_at=expires_at(created),
        )


class ShareStore:
    """
    Filesystem-backed store of share entries.

    No in-memory state is kept between calls apart from configuration;
    every lookup goes back to disk and the index.
    """

    def __init__(
        self,
        root: Union[str, Path],
        database_path: Union[str, Path],
        clock: Optional[Callable[[], datetime]] = None,
        max_file_size: int = MAX_FILE_SIZE,
        max_text_size: int = MAX_TEXT_SIZE,
    ):
        self.root = Path(root)
        self.files_dir = self.root / "files"
        self.text_dir = self.root / "text"
        self.database_path = Path(database_path)
        self.clock = clock or utcnow
        self.max_file_size = max_file_size
        self.max_text_size = max_text_size
        self._initialized = False

    def now(self) -> datetime:
        return self.clock()

    async def init(self):
        await init_db(self.database_path)
        self._initialized = True

    async def _connect(self):
        if not self._initialized:
            await self.init()
        return await get_db(self.database_path)

    def _directory(self, kind: str) -> Path:
        return self.text_dir if kind == KIND_TEXT else self.files_dir

    def _path(self, kind: str, filename: str) -> Path:
        return validate_path_traversal(self._directory(kind), filename)

    # ============ SIZE LIMITS ============

    def check_file_size(self, size: int):
        if size > self.max_file_size:
            raise InvalidInput(f"File too large (max {format_limit(self.max_file_size)})")

    def check_text_size(self, content: str):
        if len(content.encode("utf-8")) > self.max_text_size:
            raise InvalidInput(f"Text too long (max {format_limit(self.max_text_size)})")

    # ============ WRITES ============

    def _write(self, kind: str, filename: str, data: bytes) -> Path:
        """Write an artifact, creating the directory and retrying once on failure."""
        directory = self._directory(kind)
        path = self._path(kind, filename)
        try:
            path.write_bytes(data)
        except OSError:
            logger.info(f"Creating storage directory {directory}")
            try:
                directory.mkdir(parents=True, exist_ok=True)
                path.write_bytes(data)
            except OSError as e:
                logger.error(f"Failed to write {path}: {e}")
                raise StorageFailure(f"Failed to write {filename}") from e
        return path

    async def _index(self, code: str, kind: str, filename: str, mime_type: Optional[str],
                     language: Optional[str], size: int, created_at: datetime):
        db = await self._connect()
        try:
            await db.execute(
                """
                INSERT OR REPLACE INTO shares (code, kind, filename, mime_type, language, size, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (code, kind, filename, mime_type, language, size, isoformat(created_at))
            )
            await db.commit()
        finally:
            await db.close()

    async def _persist(self, code: str, kind: str, filename: str, data: bytes,
                       created_at: datetime, mime_type: Optional[str] = None,
                       language: Optional[str] = None) -> Persisted:
        path = self._write(kind, filename, data)
        try:
            await self._index(code, kind, filename, mime_type, language, len(data), created_at)
        except aiosqlite.Error as e:
            path.unlink(missing_ok=True)
            logger.error(f"Failed to index {code}: {e}")
            raise StorageFailure(f"Failed to index {code}") from e
        logger.info(f"Stored {kind} entry {filename} ({len(data)} bytes)")
        return Persisted(path, created_at)

    async def put_file(self, code: str, data: bytes, type_hint: Optional[str]) -> Persisted:
        """Persist file bytes as `<code><ext>`, the extension chosen from the type hint."""
        self.check_file_size(len(data))
        filename = f"{code}{extension_for(type_hint)}"
        return await self._persist(code, KIND_FILE, filename, data, self.now(), mime_type=type_hint)

    async def put_text(self, code: str, content: str, language: str) -> Persisted:
        """Persist a text snippet as a JSON record under `<code>.txt`."""
        self.check_text_size(content)
        created = self.now()
        record = TextRecord(content, language, created, expires_at(created))
        return await self._persist(
            code, KIND_TEXT, f"{code}.txt", record.to_json().encode("utf-8"),
            created, language=language,
        )

    # ============ READS ============

    def get_file(self, code: str) -> Optional[StoredArtifact]:
        """Probe each known extension and return the first artifact found."""
        if not is_valid_code(code):
            raise InvalidInput("Invalid share code")
        for ext in PROBE_ORDER:
            path = self._path(KIND_FILE, f"{code}{ext}")
            if path.is_file():
                return StoredArtifact(KIND_FILE, code, path)
        return None

    def get_text(self, code: str) -> Optional[Tuple[StoredArtifact, TextRecord]]:
        if not is_valid_code(code):
            raise InvalidInput("Invalid share code")
        path = self._path(KIND_TEXT, f"{code}.txt")
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            record = TextRecord.from_json(raw)
        except (ValueError, KeyError, TypeError) as e:
            raise StorageFailure(f"Corrupt text entry {code}") from e
        return StoredArtifact(KIND_TEXT, code, path), record

    async def _lookup(self, code: str, kind: Optional[str] = None):
        query = "SELECT code, kind, filename, created_at FROM shares WHERE code = ?"
        params = (code,)
        if kind is not None:
            query += " AND kind = ?"
            params = (code, kind)
        db = await self._connect()
        try:
            cursor = await db.execute(query, params)
            return await cursor.fetchone()
        finally:
            await db.close()

    async def created_at(self, artifact: StoredArtifact) -> datetime:
        """
        Creation time of an artifact.

        The index row is authoritative; the artifact's modification time is
        the fallback for entries the index does not know about.
        """
        row = await self._lookup(artifact.code, artifact.kind)
        if row is not None:
            return parse_timestamp(row["created_at"])
        mtime = artifact.path.stat().st_mtime
        return datetime.fromtimestamp(mtime, tz=timezone.utc)

    async def exists(self, code: str) -> bool:
        """True if any entry, live or expired, holds this code."""
        if await self._lookup(code) is not None:
            return True
        if self.get_file(code) is not None:
            return True
        return self._path(KIND_TEXT, f"{code}.txt").exists()

    # ============ ENUMERATION AND DELETION ============

    def list_entries(self) -> List[StoredArtifact]:
        """Enumerate every artifact in both namespaces. A missing root yields nothing."""
        artifacts = []
        for kind in (KIND_FILE, KIND_TEXT):
            directory = self._directory(kind)
            try:
                paths = sorted(directory.iterdir())
            except FileNotFoundError:
                continue
            allowed = PROBE_ORDER if kind == KIND_FILE else (".txt",)
            for path in paths:
                if not is_valid_code(path.stem) or path.suffix not in allowed:
                    logger.debug(f"Skipping unrecognized artifact {path}")
                    continue
                artifacts.append(StoredArtifact(kind, path.stem, path))
        return artifacts

    async def _unindex(self, code: str, kind: str):
        db = await self._connect()
        try:
            await db.execute("DELETE FROM shares WHERE code = ? AND kind = ?", (code, kind))
            await db.commit()
        finally:
            await db.close()

    async def delete(self, artifact: StoredArtifact) -> bool:
        """
        Remove an artifact and its index row.

        Returns False if the artifact was already gone. Other I/O errors
        propagate to the caller.
        """
        try:
            artifact.path.unlink()
            removed = True
        except FileNotFoundError:
            removed = False
        await self._unindex(artifact.code, artifact.kind)
        logger.debug(f"Deleted {artifact.kind} entry {artifact.filename} (present={removed})")
        return removed

    async def prune_index(self, cutoff: datetime) -> int:
        """Drop index rows older than cutoff whose artifact no longer exists."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "SELECT code, kind, filename FROM shares WHERE created_at < ?",
                (isoformat(cutoff),)
            )
            rows = await cursor.fetchall()
            stale = [
                (row["code"], row["kind"]) for row in rows
                if not (self._directory(row["kind"]) / row["filename"]).exists()
            ]
            for code, kind in stale:
                await db.execute("DELETE FROM shares WHERE code = ? AND kind = ?", (code, kind))
            await db.commit()
        finally:
            await db.close()
        return len(stale)
