"""
SQLite async index of share entries.

The uploads directory holds the payloads; this table records each entry's
kind, stored filename and authoritative creation time.
"""
from pathlib import Path
from typing import Union

import aiosqlite


async def get_db(database_path: Union[str, Path]):
    """Get database connection."""
    db = await aiosqlite.connect(database_path)
    db.row_factory = aiosqlite.Row
    return db


async def init_db(database_path: Union[str, Path]):
    """Initialize database with required tables."""
    Path(database_path).parent.mkdir(parents=True, exist_ok=True)
    async with aiosqlite.connect(database_path) as db:
        await db.execute("""
            CREATE TABLE IF NOT EXISTS shares (
                code TEXT NOT NULL,
                kind TEXT NOT NULL,
                filename TEXT NOT NULL,
                mime_type TEXT,
                language TEXT,
                size INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                PRIMARY KEY (code, kind)
            )
        """)
        await db.execute("""
            CREATE INDEX IF NOT EXISTS idx_shares_created ON shares(created_at)
        """)
        await db.commit()
